# recipe_match/domain/repositories.py
from __future__ import annotations
from abc import ABC, abstractmethod
from typing import Any, Dict, Iterable, List

from recipe_match.domain.entities import Ingredient, Recipe


class RecipeReadRepo(ABC):
    """Read-only view of the Recipe Store. Missing ids are simply absent."""

    @abstractmethod
    def all(self) -> List[Recipe]: ...

    @abstractmethod
    def get_recipe(self, recipe_id: str) -> Recipe | None: ...

    @abstractmethod
    def get_recipes_by_ids(self, recipe_ids: Iterable[str]) -> List[Recipe]: ...

    @abstractmethod
    def get_recipes_by_ingredient_ids(self, ingredient_ids: Iterable[str]) -> List[Recipe]: ...


class IngredientReadRepo(ABC):
    @abstractmethod
    def all(self) -> List[Ingredient]: ...

    @abstractmethod
    def get_ingredient(self, ingredient_id: str) -> Ingredient | None: ...


class DocumentStore(ABC):
    """Persistence behind the search projection (raw dict documents keyed by id)."""

    @abstractmethod
    def upsert(self, doc_id: str, doc: Dict[str, Any]) -> None: ...

    @abstractmethod
    def delete(self, doc_id: str) -> None: ...

    @abstractmethod
    def all(self) -> List[Dict[str, Any]]: ...
