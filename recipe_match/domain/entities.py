# recipe_match/domain/entities.py
from __future__ import annotations
from dataclasses import dataclass, field
from enum import Enum
from fractions import Fraction
from typing import Any, Dict, Iterable, List, Optional, Tuple

from recipe_match.core.errors import InvalidRecipe


class IngredientCategory(str, Enum):
    PRODUCE = "produce"
    MEAT = "meat"
    DAIRY = "dairy"
    GRAINS = "grains"
    SPICES = "spices"
    CONDIMENTS = "condiments"
    BEVERAGES = "beverages"
    OTHER = "other"

    @classmethod
    def parse(cls, value: Any) -> "IngredientCategory":
        # stored upper-case by the pantry backend
        try:
            return cls(str(value or "other").strip().lower())
        except ValueError:
            return cls.OTHER


class Difficulty(str, Enum):
    EASY = "easy"
    MEDIUM = "medium"
    HARD = "hard"

    @classmethod
    def parse(cls, value: Any) -> "Difficulty":
        return cls(str(value).strip().lower())


_IRREGULAR_SINGULARS = {
    "leaves": "leaf",
    "loaves": "loaf",
    "halves": "half",
    "knives": "knife",
    "potatoes": "potato",
    "tomatoes": "tomato",
    "dashes": "dash",
    "pinches": "pinch",
    "bunches": "bunch",
    "boxes": "box",
}


def singularize(word: str) -> str:
    w = word
    if w in _IRREGULAR_SINGULARS:
        return _IRREGULAR_SINGULARS[w]
    if len(w) <= 3 or w.endswith("ss") or w.endswith("us"):
        return w
    if w.endswith("ies"):
        return w[:-3] + "y"
    if w.endswith(("ches", "shes", "xes", "zes", "oes")):
        return w[:-2]
    if w.endswith("s"):
        return w[:-1]
    return w


def normalize_unit(unit: Optional[str]) -> str:
    """Lowercase, trim and singularize a free-text unit ("Cups " -> "cup")."""
    words = (unit or "").strip().lower().split()
    if not words:
        return ""
    words[-1] = singularize(words[-1])
    return " ".join(words)


@dataclass(frozen=True)
class Ingredient:
    id: str
    name: str
    category: IngredientCategory = IngredientCategory.OTHER
    canonical_unit: str = ""
    alternative_units: Tuple[str, ...] = ()
    recognition_tags: Tuple[str, ...] = ()
    # days per storage method: refrigerated / frozen / pantry
    shelf_life_days: Dict[str, int] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "category": self.category.value,
            "canonical_unit": self.canonical_unit,
            "alternative_units": list(self.alternative_units),
            "recognition_tags": list(self.recognition_tags),
            "shelf_life_days": dict(self.shelf_life_days),
        }


@dataclass(frozen=True)
class RecipeIngredient:
    ingredient_id: str
    quantity: float
    unit: str
    optional: bool = False
    name: str = ""

    @classmethod
    def create(
        cls,
        ingredient_id: str,
        quantity: float | int | str | Fraction,
        unit: str,
        optional: bool = False,
        name: str = "",
    ) -> "RecipeIngredient":
        # "1/2" style quantities are accepted from the store
        qty = float(Fraction(str(quantity))) if isinstance(quantity, str) else float(quantity)
        return cls(
            ingredient_id=str(ingredient_id),
            quantity=qty,
            unit=normalize_unit(unit),
            optional=bool(optional),
            name=(name or "").strip(),
        )


@dataclass(frozen=True)
class Recipe:
    id: str
    name: str
    description: str
    ingredients: Tuple[RecipeIngredient, ...]
    steps: Tuple[str, ...] = ()
    prep_time: int = 0
    cook_time: int = 0
    difficulty: Difficulty = Difficulty.EASY
    cuisine: str = ""
    tags: Tuple[str, ...] = ()
    average_rating: float = 0.0
    ratings: Tuple[int, ...] = ()

    @property
    def ingredient_ids(self) -> List[str]:
        return [i.ingredient_id for i in self.ingredients]

    @property
    def required_ingredient_ids(self) -> List[str]:
        return [i.ingredient_id for i in self.ingredients if not i.optional]


def compute_average_rating(ratings: Iterable[int]) -> float:
    """Mean of 1-5 star ratings, 0.0 when unrated.

    Recomputed synchronously on every rating write. Not rounded: rounding
    happens only when presenting (`present_rating`).
    """
    values = [int(r) for r in ratings]
    if not values:
        return 0.0
    return sum(values) / len(values)


def present_rating(value: float) -> float:
    return round(float(value), 1)


def validate_recipe(recipe: Recipe, max_ingredients: int = 50) -> Recipe:
    errors: List[str] = []
    if not recipe.id:
        errors.append("id is required")
    if not (recipe.name or "").strip():
        errors.append("name is required")
    if not recipe.ingredients:
        errors.append("recipe must reference at least one ingredient")
    elif len(recipe.ingredients) > max_ingredients:
        errors.append(f"recipe must have between 1 and {max_ingredients} ingredients")
    seen = set()
    for pos, ing in enumerate(recipe.ingredients, start=1):
        if ing.quantity <= 0:
            errors.append(f"invalid quantity for ingredient at position {pos}")
        if not ing.unit:
            errors.append(f"invalid unit for ingredient at position {pos}")
        if ing.ingredient_id in seen:
            errors.append(f"duplicate ingredient {ing.ingredient_id} at position {pos}")
        seen.add(ing.ingredient_id)
    if recipe.prep_time < 0 or recipe.cook_time < 0:
        errors.append("prep_time and cook_time must be non-negative")
    if not 0.0 <= recipe.average_rating <= 5.0:
        errors.append("average_rating must be within 0-5")
    if any(not 1 <= r <= 5 for r in recipe.ratings):
        errors.append("ratings must be within 1-5")
    if errors:
        raise InvalidRecipe(f"recipe {recipe.id or '?'}: " + "; ".join(errors))
    return recipe


@dataclass(frozen=True)
class MatchResult:
    recipe_id: str
    matched_count: int
    total_count: int
    match_score: float
    missing_ingredient_ids: Tuple[str, ...]
    average_rating: float = 0.0


@dataclass(frozen=True)
class SearchFilters:
    cuisine: Tuple[str, ...] = ()
    difficulty: Tuple[Difficulty, ...] = ()
    max_prep_time: Optional[int] = None
    max_cook_time: Optional[int] = None
    tags: Tuple[str, ...] = ()

    @property
    def is_empty(self) -> bool:
        return not (
            self.cuisine or self.difficulty or self.tags
            or self.max_prep_time is not None or self.max_cook_time is not None
        )

    def to_canonical(self) -> Dict[str, Any]:
        """Order-free representation used for fingerprints."""
        out: Dict[str, Any] = {}
        if self.cuisine:
            out["cuisine"] = sorted({c.strip().lower() for c in self.cuisine})
        if self.difficulty:
            out["difficulty"] = sorted({d.value for d in self.difficulty})
        if self.tags:
            out["tags"] = sorted({t.strip().lower() for t in self.tags})
        if self.max_prep_time is not None:
            out["max_prep_time"] = int(self.max_prep_time)
        if self.max_cook_time is not None:
            out["max_cook_time"] = int(self.max_cook_time)
        return out


@dataclass(frozen=True)
class SearchIngredientDoc:
    ingredient_id: str
    name: str
    quantity: float
    unit: str
    optional: bool = False


@dataclass(frozen=True)
class SearchDocument:
    recipe_id: str
    name: str
    description: str
    ingredients: Tuple[SearchIngredientDoc, ...]
    tags: Tuple[str, ...]
    cuisine: str
    difficulty: str
    prep_time: int
    cook_time: int
    average_rating: float

    @classmethod
    def from_recipe(cls, recipe: Recipe, names: Optional[Dict[str, str]] = None) -> "SearchDocument":
        names = names or {}
        return cls(
            recipe_id=recipe.id,
            name=recipe.name,
            description=recipe.description,
            ingredients=tuple(
                SearchIngredientDoc(
                    ingredient_id=i.ingredient_id,
                    name=i.name or names.get(i.ingredient_id, ""),
                    quantity=i.quantity,
                    unit=i.unit,
                    optional=i.optional,
                )
                for i in recipe.ingredients
            ),
            tags=tuple(t.strip().lower() for t in recipe.tags if t and t.strip()),
            cuisine=(recipe.cuisine or "").strip().lower(),
            difficulty=recipe.difficulty.value,
            prep_time=recipe.prep_time,
            cook_time=recipe.cook_time,
            average_rating=recipe.average_rating,
        )

    @classmethod
    def from_dict(cls, doc: Dict[str, Any]) -> "SearchDocument":
        return cls(
            recipe_id=str(doc.get("recipe_id") or doc.get("_id")),
            name=doc.get("name") or "",
            description=doc.get("description") or "",
            ingredients=tuple(
                SearchIngredientDoc(
                    ingredient_id=str(i.get("ingredient_id")),
                    name=i.get("name") or "",
                    quantity=float(i.get("quantity") or 0),
                    unit=i.get("unit") or "",
                    optional=bool(i.get("optional", False)),
                )
                for i in (doc.get("ingredients") or [])
            ),
            tags=tuple(doc.get("tags") or ()),
            cuisine=doc.get("cuisine") or "",
            difficulty=doc.get("difficulty") or Difficulty.EASY.value,
            prep_time=int(doc.get("prep_time") or 0),
            cook_time=int(doc.get("cook_time") or 0),
            average_rating=float(doc.get("average_rating") or 0.0),
        )

    @property
    def ingredient_ids(self) -> List[str]:
        return [i.ingredient_id for i in self.ingredients]

    def to_dict(self) -> Dict[str, Any]:
        return {
            "recipe_id": self.recipe_id,
            "name": self.name,
            "description": self.description,
            "ingredients": [
                {
                    "ingredient_id": i.ingredient_id,
                    "name": i.name,
                    "quantity": i.quantity,
                    "unit": i.unit,
                    "optional": i.optional,
                }
                for i in self.ingredients
            ],
            "tags": list(self.tags),
            "cuisine": self.cuisine,
            "difficulty": self.difficulty,
            "prep_time": self.prep_time,
            "cook_time": self.cook_time,
            "average_rating": self.average_rating,
        }


@dataclass(frozen=True)
class SearchHit:
    recipe_id: str
    name: str
    cuisine: str
    difficulty: str
    prep_time: int
    cook_time: int
    average_rating: float
    score: Optional[float] = None
    match_score: Optional[float] = None
    matched_count: Optional[int] = None
    total_count: Optional[int] = None
    missing_ingredient_ids: Optional[List[str]] = None

    def to_dict(self) -> Dict[str, Any]:
        out: Dict[str, Any] = {
            "recipe_id": self.recipe_id,
            "name": self.name,
            "cuisine": self.cuisine,
            "difficulty": self.difficulty,
            "prep_time": self.prep_time,
            "cook_time": self.cook_time,
            "average_rating": present_rating(self.average_rating),
        }
        if self.score is not None:
            out["score"] = self.score
        # absent (not zero) on the pure search path
        if self.match_score is not None:
            out["match_score"] = self.match_score
            out["matched_count"] = self.matched_count
            out["total_count"] = self.total_count
            out["missing_ingredient_ids"] = list(self.missing_ingredient_ids or [])
        return out


@dataclass(frozen=True)
class CacheEntry:
    fingerprint: str
    payload: Any
    created_at: float
    ttl: float
    tags: Tuple[str, ...] = ()

    def expired(self, now: float) -> bool:
        return now - self.created_at >= self.ttl
