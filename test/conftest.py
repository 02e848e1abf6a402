from __future__ import annotations

from typing import Iterable, Optional, Sequence, Tuple, Union

import pytest

from recipe_match.core.config import MatchSettings
from recipe_match.domain.entities import Difficulty, Recipe, RecipeIngredient
from recipe_match.infrastructure.memory_repositories import (
    InMemoryDocumentStore,
    InMemoryRecipeRepository,
)
from recipe_match.infrastructure.result_cache import InMemoryResultCache
from recipe_match.services.search_index import RecipeSearchIndex
from recipe_match.application.query_facade import RecipeQueryFacade

IngredientSpec = Union[str, Tuple[str, bool]]


def make_recipe(
    recipe_id: str,
    ingredients: Sequence[IngredientSpec],
    name: Optional[str] = None,
    description: str = "",
    rating: float = 0.0,
    cuisine: str = "",
    difficulty: Difficulty = Difficulty.EASY,
    prep_time: int = 10,
    cook_time: int = 20,
    tags: Iterable[str] = (),
) -> Recipe:
    """Ingredients are ids, or (id, optional) pairs. The id doubles as the display name."""
    items = []
    for spec in ingredients:
        iid, optional = (spec, False) if isinstance(spec, str) else spec
        items.append(RecipeIngredient.create(iid, 1, "piece", optional=optional, name=iid.replace("-", " ")))
    return Recipe(
        id=recipe_id,
        name=name or recipe_id.replace("-", " ").title(),
        description=description,
        ingredients=tuple(items),
        steps=("cook",),
        prep_time=prep_time,
        cook_time=cook_time,
        difficulty=difficulty,
        cuisine=cuisine,
        tags=tuple(tags),
        average_rating=rating,
    )


@pytest.fixture
def anyio_backend():
    return "asyncio"


@pytest.fixture
def fast_settings() -> MatchSettings:
    return MatchSettings(
        deadline_ms=5000,
        retry_attempts=3,
        retry_base_delay_s=0.001,
        retry_max_delay_s=0.002,
        cache_ttl_s=3600,
    )


@pytest.fixture
def pantry_recipes():
    return [
        make_recipe("r1", ["tomato", "onion", "garlic"], name="Tomato Garlic Soup", rating=4.0, cuisine="Italian"),
        make_recipe(
            "r2", ["tomato", "onion", "garlic", ("basil", True)],
            name="Basil Tomato Soup", rating=4.5, cuisine="Italian",
        ),
        make_recipe("r3", ["chicken", "rice", "pepper"], name="Chicken Fried Rice", rating=5.0, cuisine="Chinese"),
    ]


@pytest.fixture
def recipe_repo(pantry_recipes):
    return InMemoryRecipeRepository(pantry_recipes)


@pytest.fixture
def search_index(pantry_recipes):
    index = RecipeSearchIndex(InMemoryDocumentStore())
    index.load()
    for r in pantry_recipes:
        index.index(r)
    return index


@pytest.fixture
def result_cache():
    return InMemoryResultCache(max_items=64)


@pytest.fixture
def facade(search_index, recipe_repo, result_cache, fast_settings):
    return RecipeQueryFacade(
        index=search_index,
        recipe_repo=recipe_repo,
        cache=result_cache,
        settings=fast_settings,
    )
