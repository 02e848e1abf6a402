# recipe_match/core/errors.py
from __future__ import annotations

from typing import Dict


class RecipeMatchError(Exception):
    """Base error. `kind` is the machine-readable code sent to API callers."""

    kind: str = "internal_error"

    def __init__(self, message: str = "") -> None:
        super().__init__(message or self.kind)
        self.message = message or self.kind

    def to_dict(self) -> Dict[str, str]:
        return {"kind": self.kind, "message": self.message}


class IndexUnavailable(RecipeMatchError):
    kind = "index_unavailable"


class ServiceDegraded(RecipeMatchError):
    kind = "service_degraded"


class CacheError(RecipeMatchError):
    kind = "cache_error"


class StoreUnavailable(RecipeMatchError):
    kind = "store_unavailable"


class InvalidQuery(RecipeMatchError):
    kind = "invalid_query"


class QueryTimeout(RecipeMatchError):
    kind = "timeout"


class InvalidRecipe(RecipeMatchError):
    kind = "invalid_recipe"


class RecipeNotFound(RecipeMatchError):
    kind = "not_found"


class DataIntegrityWarning(UserWarning):
    """Bad recipe data met during matching. Logged, never raised to callers."""

    def __init__(self, recipe_id: str, reason: str) -> None:
        super().__init__(f"recipe {recipe_id}: {reason}")
        self.recipe_id = recipe_id
        self.reason = reason
