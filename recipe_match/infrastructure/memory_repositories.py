# recipe_match/infrastructure/memory_repositories.py
from __future__ import annotations

import logging
import threading
from typing import Any, Dict, Iterable, List, Tuple

import ujson as json

from recipe_match.domain.entities import Ingredient, Recipe
from recipe_match.domain.repositories import DocumentStore, IngredientReadRepo, RecipeReadRepo
from recipe_match.infrastructure.mongo_repositories import parse_ingredient, parse_recipe

log = logging.getLogger("infra.memory_repo")


class InMemoryRecipeRepository(RecipeReadRepo):
    def __init__(self, recipes: Iterable[Recipe] = ()) -> None:
        self._by_id: Dict[str, Recipe] = {r.id: r for r in recipes}

    def put(self, recipe: Recipe) -> None:
        self._by_id[recipe.id] = recipe

    def all(self) -> List[Recipe]:
        return list(self._by_id.values())

    def get_recipe(self, recipe_id: str) -> Recipe | None:
        return self._by_id.get(str(recipe_id))

    def get_recipes_by_ids(self, recipe_ids: Iterable[str]) -> List[Recipe]:
        return [self._by_id[i] for i in recipe_ids if i in self._by_id]

    def get_recipes_by_ingredient_ids(self, ingredient_ids: Iterable[str]) -> List[Recipe]:
        wanted = set(ingredient_ids)
        if not wanted:
            return []
        return [r for r in self._by_id.values() if wanted.intersection(r.ingredient_ids)]


class InMemoryIngredientRepository(IngredientReadRepo):
    def __init__(self, ingredients: Iterable[Ingredient] = ()) -> None:
        self._by_id: Dict[str, Ingredient] = {i.id: i for i in ingredients}

    def all(self) -> List[Ingredient]:
        return list(self._by_id.values())

    def get_ingredient(self, ingredient_id: str) -> Ingredient | None:
        return self._by_id.get(str(ingredient_id))


class InMemoryDocumentStore(DocumentStore):
    def __init__(self) -> None:
        self._docs: Dict[str, Dict[str, Any]] = {}
        self._lock = threading.Lock()

    def upsert(self, doc_id: str, doc: Dict[str, Any]) -> None:
        with self._lock:
            self._docs[doc_id] = dict(doc)

    def delete(self, doc_id: str) -> None:
        with self._lock:
            self._docs.pop(doc_id, None)

    def all(self) -> List[Dict[str, Any]]:
        with self._lock:
            return [dict(d) for d in self._docs.values()]


def load_seed_file(path: str) -> Tuple[List[Recipe], List[Ingredient]]:
    """Read `{"recipes": [...], "ingredients": [...]}` in the store's document schema."""
    with open(path, "r", encoding="utf-8") as f:
        raw = json.load(f)
    recipes: List[Recipe] = []
    for doc in raw.get("recipes") or []:
        try:
            recipes.append(parse_recipe(doc))
        except ValueError:
            log.warning("Seed recipe skipped: %s", doc.get("id") or doc.get("_id"))
    ingredients = [parse_ingredient(doc) for doc in raw.get("ingredients") or []]
    log.info("Seed loaded from %s | recipes=%d ingredients=%d", path, len(recipes), len(ingredients))
    return recipes, ingredients
