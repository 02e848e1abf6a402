# recipe_match/infrastructure/mongo_repositories.py
from __future__ import annotations
from typing import Any, Dict, Iterable, List
import logging
from pymongo.collection import Collection
from pymongo.errors import PyMongoError
from bson import ObjectId
from recipe_match.core.errors import IndexUnavailable, StoreUnavailable
from recipe_match.domain.entities import (
    Difficulty,
    Ingredient,
    IngredientCategory,
    Recipe,
    RecipeIngredient,
    compute_average_rating,
)
from recipe_match.domain.repositories import DocumentStore, IngredientReadRepo, RecipeReadRepo

log = logging.getLogger("infra.mongo_repo")


def _as_str_id(v: Any) -> str:
    if isinstance(v, ObjectId):
        return str(v)
    return str(v)


def _id_query(ids: Iterable[str]) -> List[Any]:
    # ids reach us as strings; the store keys by ObjectId
    out: List[Any] = []
    for i in ids:
        out.append(i)
        if ObjectId.is_valid(i):
            out.append(ObjectId(i))
    return out


def _pick(doc: Dict[str, Any], *keys: str, default: Any = None) -> Any:
    for k in keys:
        if doc.get(k) is not None:
            return doc[k]
    return default


def parse_recipe(doc: Dict[str, Any]) -> Recipe:
    """Map a recipe document (camelCase store schema or snake_case) to a Recipe."""
    try:
        ingredients = tuple(
            RecipeIngredient.create(
                ingredient_id=_as_str_id(_pick(i, "ingredientId", "ingredient_id")),
                quantity=_pick(i, "quantity", default=0),
                unit=_pick(i, "unit", default=""),
                optional=bool(_pick(i, "optional", default=False)),
                name=_pick(i, "name", default=""),
            )
            for i in (doc.get("ingredients") or [])
        )
        steps = []
        for s in _pick(doc, "instructions", "steps", default=[]):
            steps.append(s.get("instruction", "") if isinstance(s, dict) else str(s))
        ratings = tuple(
            int(r.get("rating") if isinstance(r, dict) else r)
            for r in (doc.get("ratings") or [])
        )
        average = _pick(doc, "averageRating", "average_rating")
        if average is None:
            average = compute_average_rating(ratings)
        return Recipe(
            id=_as_str_id(doc.get("id") or doc.get("_id")),
            name=(doc.get("name") or "").strip(),
            description=(doc.get("description") or "").strip(),
            ingredients=ingredients,
            steps=tuple(steps),
            prep_time=int(_pick(doc, "prepTime", "prep_time", default=0)),
            cook_time=int(_pick(doc, "cookTime", "cook_time", default=0)),
            difficulty=Difficulty.parse(doc.get("difficulty") or "easy"),
            cuisine=(doc.get("cuisine") or "").strip(),
            tags=tuple(doc.get("tags") or ()),
            average_rating=float(average),
            ratings=ratings,
        )
    except Exception as e:
        log.exception("Invalid recipe document: %s", doc.get("_id"))
        raise ValueError(f"Invalid recipe document: {e}") from e


def parse_ingredient(doc: Dict[str, Any]) -> Ingredient:
    shelf = doc.get("shelfLife") or doc.get("shelf_life_days") or {}
    return Ingredient(
        id=_as_str_id(doc.get("id") or doc.get("_id")),
        name=(doc.get("name") or "").strip(),
        category=IngredientCategory.parse(doc.get("category")),
        canonical_unit=_pick(doc, "canonicalUnit", "canonical_unit", default="") or "",
        alternative_units=tuple(_pick(doc, "alternativeUnits", "commonUnits", "alternative_units", default=())),
        recognition_tags=tuple(_pick(doc, "recognitionTags", "recognition_tags", default=())),
        shelf_life_days={k: int(v) for k, v in dict(shelf).items() if v is not None},
    )


class MongoRecipeRepository(RecipeReadRepo):
    """
    Read-only recipe repository backed by MongoDB.
    Documents that fail to parse are skipped with a warning on bulk reads.
    """

    def __init__(self, col: Collection) -> None:
        self._col = col

    def _parse_many(self, query: Dict[str, Any]) -> List[Recipe]:
        out: List[Recipe] = []
        try:
            docs = list(self._col.find(query))
        except PyMongoError as e:
            raise StoreUnavailable(f"recipe store read failed: {e.__class__.__name__}") from e
        for doc in docs:
            try:
                out.append(parse_recipe(doc))
            except ValueError:
                log.warning("Skipping unparsable recipe %s", doc.get("_id"))
        return out

    def all(self) -> List[Recipe]:
        return self._parse_many({})

    def get_recipe(self, recipe_id: str) -> Recipe | None:
        try:
            doc = self._col.find_one({"_id": {"$in": _id_query([str(recipe_id)])}})
        except PyMongoError as e:
            raise StoreUnavailable(f"recipe store read failed: {e.__class__.__name__}") from e
        return parse_recipe(doc) if doc else None

    def get_recipes_by_ids(self, recipe_ids: Iterable[str]) -> List[Recipe]:
        ids = [str(i) for i in recipe_ids]
        if not ids:
            return []
        return self._parse_many({"_id": {"$in": _id_query(ids)}})

    def get_recipes_by_ingredient_ids(self, ingredient_ids: Iterable[str]) -> List[Recipe]:
        ids = [str(i) for i in ingredient_ids]
        if not ids:
            return []
        return self._parse_many({"ingredients.ingredientId": {"$in": _id_query(ids)}})


class MongoIngredientRepository(IngredientReadRepo):

    def __init__(self, col: Collection) -> None:
        self._col = col

    def all(self) -> List[Ingredient]:
        try:
            docs = list(self._col.find({}))
        except PyMongoError as e:
            raise StoreUnavailable(f"ingredient store read failed: {e.__class__.__name__}") from e
        return [parse_ingredient(doc) for doc in docs]

    def get_ingredient(self, ingredient_id: str) -> Ingredient | None:
        try:
            doc = self._col.find_one({"_id": {"$in": _id_query([str(ingredient_id)])}})
        except PyMongoError as e:
            raise StoreUnavailable(f"ingredient store read failed: {e.__class__.__name__}") from e
        return parse_ingredient(doc) if doc else None


class MongoDocumentStore(DocumentStore):
    """Search projection persisted in its own collection; rebuildable at any time."""

    def __init__(self, col: Collection) -> None:
        self._col = col

    def upsert(self, doc_id: str, doc: Dict[str, Any]) -> None:
        try:
            self._col.replace_one({"_id": doc_id}, dict(doc, _id=doc_id), upsert=True)
        except PyMongoError as e:
            raise IndexUnavailable(f"search store write failed: {e.__class__.__name__}") from e

    def delete(self, doc_id: str) -> None:
        try:
            self._col.delete_one({"_id": doc_id})
        except PyMongoError as e:
            raise IndexUnavailable(f"search store delete failed: {e.__class__.__name__}") from e

    def all(self) -> List[Dict[str, Any]]:
        try:
            return list(self._col.find({}))
        except PyMongoError as e:
            raise IndexUnavailable(f"search store read failed: {e.__class__.__name__}") from e
