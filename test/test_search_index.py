from __future__ import annotations

import pytest

from conftest import make_recipe
from recipe_match.core.errors import IndexUnavailable, RecipeNotFound
from recipe_match.domain.entities import (
    Difficulty,
    Ingredient,
    IngredientCategory,
    Recipe,
    RecipeIngredient,
    SearchFilters,
)
from recipe_match.domain.repositories import DocumentStore
from recipe_match.infrastructure.memory_repositories import (
    InMemoryDocumentStore,
    InMemoryIngredientRepository,
)
from recipe_match.services.search_index import IngredientSearchIndex, RecipeSearchIndex


@pytest.fixture
def corpus():
    return [
        make_recipe(
            "a", ["tomato", "onion", "garlic"], name="Roasted Tomato Soup",
            description="Silky soup, finished with garlic", rating=4.5, cuisine="Italian",
            prep_time=10, cook_time=40, tags=["soup"],
        ),
        make_recipe(
            "b", ["bread", "garlic"], name="Garlic Bread",
            description="Crusty bread rubbed with tomato", rating=3.5, cuisine="French",
            prep_time=5, cook_time=10,
        ),
        make_recipe(
            "c", ["green-onions", "flour"], name="Scallion Pancakes",
            description="Savory flatbread", rating=4.0, cuisine="Chinese",
            difficulty=Difficulty.MEDIUM, prep_time=20, cook_time=15, tags=["snack"],
        ),
        make_recipe(
            "d", ["chicken", "onion", "curry-powder"], name="Chicken Curry",
            description="Weeknight curry", rating=4.9, cuisine="Indian",
            difficulty=Difficulty.HARD, prep_time=15, cook_time=45,
        ),
        make_recipe(
            "e", ["pasta", "tomato", "cheese"], name="Lasagna",
            description="Layered and baked", rating=4.2, cuisine="Italian",
            difficulty=Difficulty.HARD, prep_time=30, cook_time=60,
        ),
    ]


@pytest.fixture
def index(corpus):
    idx = RecipeSearchIndex(InMemoryDocumentStore())
    idx.load()
    for r in corpus:
        idx.index(r)
    return idx


def test_name_matches_outrank_description_matches(index):
    page = index.search("Tomatoes")
    assert page.ids[0] == "a"
    assert set(page.ids) == {"a", "b", "e"}
    assert page.total == 3
    assert page.scores["a"] > page.scores["b"]


def test_synonyms_resolve_both_ways(index):
    assert "c" in index.search("green onion").ids
    assert "c" in index.search("scallions").ids


def test_fuzzy_name_match(index):
    assert index.search("lasagne").ids == ["e"]


def test_unknown_term_matches_nothing(index):
    page = index.search("xylophone")
    assert page.ids == [] and page.total == 0


def test_empty_term_sorts_by_rating(index):
    page = index.search("")
    assert page.ids == ["d", "a", "e", "c", "b"]
    assert page.scores == {}


def test_filters_are_anded(index):
    assert index.search("", SearchFilters(cuisine=("italian",))).ids == ["a", "e"]
    assert index.search("", SearchFilters(difficulty=(Difficulty.HARD,))).ids == ["d", "e"]
    assert index.search("", SearchFilters(max_cook_time=20)).ids == ["c", "b"]
    assert index.search("", SearchFilters(max_prep_time=10, max_cook_time=20)).ids == ["b"]
    assert index.search("", SearchFilters(tags=("soup",))).ids == ["a"]
    assert index.search("tomato", SearchFilters(cuisine=("Italian",))).ids == ["a", "e"]


def test_pagination_reports_total(index):
    page = index.search("", page=2, page_size=2)
    assert page.ids == ["e", "c"]
    assert page.total == 5
    assert index.search("", page=4, page_size=2).ids == []


def test_index_is_idempotent_and_replaces(index, corpus):
    index.index(corpus[0])
    assert len(index) == 5
    renamed = make_recipe("a", ["tomato"], name="Gazpacho", rating=4.5)
    index.index(renamed)
    assert "a" not in index.search("roasted").ids
    assert index.search("gazpacho").ids == ["a"]


def test_remove(index):
    index.remove("a")
    assert set(index.search("tomato").ids) == {"b", "e"}
    assert "a" not in index.search("").ids
    index.remove("a")
    index.remove("never-indexed")
    assert len(index) == 4


def test_candidates_for_ingredients(index):
    assert index.candidates_for_ingredients(["onion"]) == ["a", "d"]
    assert index.candidates_for_ingredients(["onion", "pasta"]) == ["a", "d", "e"]
    assert index.candidates_for_ingredients([]) == []


def test_projection_survives_reload():
    store = InMemoryDocumentStore()
    first = RecipeSearchIndex(store)
    first.load()
    first.index(make_recipe("x", ["tomato"], name="Tomato Salad"))

    second = RecipeSearchIndex(store)
    assert second.load() == 1
    assert second.search("salad").ids == ["x"]


def test_ingredient_names_resolved_from_store():
    repo = InMemoryIngredientRepository([Ingredient(id="i-1", name="Chickpeas")])
    idx = RecipeSearchIndex(InMemoryDocumentStore(), ingredient_repo=repo)
    idx.load()
    recipe = Recipe(
        id="hummus", name="Hummus", description="",
        ingredients=(RecipeIngredient.create("i-1", 1, "cup"),),
    )
    idx.index(recipe)
    assert idx.search("chickpea").ids == ["hummus"]
    assert idx.search("garbanzo beans").ids == ["hummus"]


def test_similar_excludes_source(index):
    ids = index.similar("a", limit=3)
    assert "a" not in ids
    assert ids
    assert len(ids) <= 3
    with pytest.raises(RecipeNotFound):
        index.similar("zzz")


class _DownStore(DocumentStore):
    def upsert(self, doc_id, doc):
        raise IndexUnavailable("down")

    def delete(self, doc_id):
        raise IndexUnavailable("down")

    def all(self):
        raise IndexUnavailable("down")


def test_backend_failures_surface_as_index_unavailable():
    idx = RecipeSearchIndex(_DownStore())
    with pytest.raises(IndexUnavailable):
        idx.search("tomato")
    with pytest.raises(IndexUnavailable):
        idx.index(make_recipe("a", ["tomato"]))


def test_ingredient_search():
    repo = InMemoryIngredientRepository([
        Ingredient(id="scallion", name="Scallion", category=IngredientCategory.PRODUCE,
                   recognition_tags=("green onions",)),
        Ingredient(id="onion", name="Onion", category=IngredientCategory.PRODUCE,
                   recognition_tags=("yellow onion",)),
        Ingredient(id="tomato", name="Tomato", category=IngredientCategory.PRODUCE),
        Ingredient(id="basil", name="Basil", category=IngredientCategory.SPICES,
                   recognition_tags=("sweet basil",)),
    ])
    idx = IngredientSearchIndex(repo)

    assert [h.ingredient.id for h in idx.search("green onion")] == ["scallion"]
    assert [h.ingredient.id for h in idx.search("tomatoes")] == ["tomato"]
    assert idx.search("tomato", categories=[IngredientCategory.SPICES]) == []
    assert idx.search("") == []


def test_punctuation_only_term_counts_as_empty(index):
    assert index.search("!!!").ids == index.search("").ids == ["d", "a", "e", "c", "b"]
    assert index.search("the").ids == []


def test_page_carries_documents_from_same_snapshot(index):
    page = index.search("", page=1, page_size=2)
    index.remove("d")

    assert [d.recipe_id for d in page.docs] == page.ids == ["d", "a"]
    assert page.docs[0].name == "Chicken Curry"
    assert page.total == 5
