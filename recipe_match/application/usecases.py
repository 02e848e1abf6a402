# =========================
# FILE: recipe_match/application/usecases.py
# (index lifecycle hooks called by the recipe store's write path)
# =========================
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, Optional

from recipe_match.application.retry import run_blocking, with_retry
from recipe_match.core.config import MatchSettings
from recipe_match.core.errors import InvalidRecipe, RecipeNotFound
from recipe_match.domain.entities import validate_recipe
from recipe_match.domain.repositories import RecipeReadRepo
from recipe_match.infrastructure.result_cache import ResultCache
from recipe_match.services.search_index import RecipeSearchIndex

log = logging.getLogger("app.usecases")


async def _invalidate(cache: Optional[ResultCache], recipe_id: str) -> int:
    # best effort: TTL still bounds staleness if this fails
    if cache is None:
        return 0
    try:
        return await run_blocking(cache.invalidate_by_recipe, recipe_id)
    except Exception as e:
        log.warning("Cache invalidation failed for recipe %s: %s", recipe_id, e)
        return 0


@dataclass(frozen=True)
class IndexRecipe:
    """On create/update: re-read the recipe from the store and upsert its SearchDocument."""

    recipe_repo: RecipeReadRepo
    index: RecipeSearchIndex
    cache: Optional[ResultCache] = None
    settings: MatchSettings = field(default_factory=MatchSettings)

    async def __call__(self, recipe_id: str) -> Dict[str, Any]:
        key = (recipe_id or "").strip()
        if not key:
            raise RecipeNotFound("recipe id is required")
        recipe = await with_retry(
            self.recipe_repo.get_recipe, key,
            attempts=self.settings.retry_attempts,
            base_delay_s=self.settings.retry_base_delay_s,
            max_delay_s=self.settings.retry_max_delay_s,
            what="recipe store",
        )
        if recipe is None:
            raise RecipeNotFound(f"Recipe not found: {key}")
        validate_recipe(recipe, self.settings.max_recipe_ingredients)
        doc = await with_retry(
            self.index.index, recipe,
            attempts=self.settings.retry_attempts,
            base_delay_s=self.settings.retry_base_delay_s,
            max_delay_s=self.settings.retry_max_delay_s,
            what="search index",
        )
        invalidated = await _invalidate(self.cache, key)
        log.info("Recipe %s indexed | invalidated_cache_entries=%d", key, invalidated)
        return {"recipe_id": doc.recipe_id, "indexed": True, "invalidated": invalidated}


@dataclass(frozen=True)
class RemoveRecipe:
    """On delete: drop the SearchDocument. Removing an absent id is a no-op."""

    index: RecipeSearchIndex
    cache: Optional[ResultCache] = None
    settings: MatchSettings = field(default_factory=MatchSettings)

    async def __call__(self, recipe_id: str) -> Dict[str, Any]:
        key = (recipe_id or "").strip()
        if not key:
            raise RecipeNotFound("recipe id is required")
        await with_retry(
            self.index.remove, key,
            attempts=self.settings.retry_attempts,
            base_delay_s=self.settings.retry_base_delay_s,
            max_delay_s=self.settings.retry_max_delay_s,
            what="search index",
        )
        invalidated = await _invalidate(self.cache, key)
        log.info("Recipe %s removed from index | invalidated_cache_entries=%d", key, invalidated)
        return {"recipe_id": key, "removed": True, "invalidated": invalidated}


@dataclass(frozen=True)
class ReindexAll:
    """Rebuild the whole projection from the recipe store (startup / manual reconciliation)."""

    recipe_repo: RecipeReadRepo
    index: RecipeSearchIndex
    cache: Optional[ResultCache] = None
    settings: MatchSettings = field(default_factory=MatchSettings)

    def __call__(self) -> Dict[str, Any]:
        indexed, skipped = 0, 0
        for recipe in self.recipe_repo.all():
            try:
                validate_recipe(recipe, self.settings.max_recipe_ingredients)
            except InvalidRecipe as e:
                log.warning("Not indexing invalid recipe: %s", e)
                skipped += 1
                continue
            self.index.index(recipe)
            indexed += 1
        if self.cache is not None:
            self.cache.clear()
        log.info("Reindex complete | indexed=%d skipped=%d", indexed, skipped)
        return {"indexed": indexed, "skipped": skipped}
