# =========================
# FILE: recipe_match/application/query_facade.py
# (single entry point: cache -> search/filter -> match -> cache populate)
# =========================
from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Dict, Iterable, List, Mapping, Optional, Sequence, TypeVar

import anyio

from recipe_match.application.fingerprint import fingerprint
from recipe_match.application.retry import run_blocking, with_retry
from recipe_match.core.config import MatchSettings
from recipe_match.core.errors import InvalidQuery, QueryTimeout
from recipe_match.domain.entities import (
    CacheEntry,
    Difficulty,
    IngredientCategory,
    MatchResult,
    Recipe,
    SearchDocument,
    SearchFilters,
    SearchHit,
)
from recipe_match.domain.repositories import RecipeReadRepo
from recipe_match.infrastructure.result_cache import ResultCache
from recipe_match.services.match_engine import MatchEngine, paginate
from recipe_match.services.search_index import IngredientSearchIndex, RecipeSearchIndex

log = logging.getLogger("app.query_facade")

T = TypeVar("T")

MAX_TERM_LENGTH = 200
_FILTER_KEYS = {"cuisine", "difficulty", "max_prep_time", "max_cook_time", "tags"}


def _as_str_tuple(value: Any, key: str) -> tuple:
    if value is None:
        return ()
    if isinstance(value, str):
        value = [value]
    if not isinstance(value, (list, tuple, set, frozenset)):
        raise InvalidQuery(f"filter '{key}' must be a string or a list of strings")
    out = []
    for v in value:
        if not isinstance(v, str) or not v.strip():
            raise InvalidQuery(f"filter '{key}' must contain non-empty strings")
        out.append(v.strip())
    return tuple(out)


def _as_minutes(value: Any, key: str) -> Optional[int]:
    if value is None:
        return None
    if isinstance(value, bool) or not isinstance(value, int) or value < 0:
        raise InvalidQuery(f"filter '{key}' must be a non-negative integer (minutes)")
    return value


def build_filters(raw: Optional[Mapping[str, Any]]) -> SearchFilters:
    """Validate a snake_case filter mapping into SearchFilters."""
    if not raw:
        return SearchFilters()
    unknown = set(raw) - _FILTER_KEYS
    if unknown:
        raise InvalidQuery(f"unknown filter(s): {', '.join(sorted(unknown))}")
    difficulty = []
    for d in _as_str_tuple(raw.get("difficulty"), "difficulty"):
        try:
            difficulty.append(Difficulty.parse(d))
        except ValueError:
            raise InvalidQuery(f"unknown difficulty '{d}'") from None
    return SearchFilters(
        cuisine=_as_str_tuple(raw.get("cuisine"), "cuisine"),
        difficulty=tuple(difficulty),
        max_prep_time=_as_minutes(raw.get("max_prep_time"), "max_prep_time"),
        max_cook_time=_as_minutes(raw.get("max_cook_time"), "max_cook_time"),
        tags=_as_str_tuple(raw.get("tags"), "tags"),
    )


@dataclass(frozen=True)
class QueryResult:
    items: List[Dict[str, Any]]
    total: int
    took_ms: float
    cached: bool = False
    tags: List[str] = field(default_factory=list)


def _hit_from_doc(doc: SearchDocument, score: Optional[float] = None) -> SearchHit:
    return SearchHit(
        recipe_id=doc.recipe_id,
        name=doc.name,
        cuisine=doc.cuisine,
        difficulty=doc.difficulty,
        prep_time=doc.prep_time,
        cook_time=doc.cook_time,
        average_rating=doc.average_rating,
        score=score,
    )


def _hit_from_match(recipe: Recipe, res: MatchResult) -> SearchHit:
    return SearchHit(
        recipe_id=recipe.id,
        name=recipe.name,
        cuisine=(recipe.cuisine or "").lower(),
        difficulty=recipe.difficulty.value,
        prep_time=recipe.prep_time,
        cook_time=recipe.cook_time,
        average_rating=recipe.average_rating,
        match_score=res.match_score,
        matched_count=res.matched_count,
        total_count=res.total_count,
        missing_ingredient_ids=list(res.missing_ingredient_ids),
    )


class RecipeQueryFacade:
    """
    Combines free-text search, filters and ingredient matching.

    Stateless between calls: every request works on its own locals plus the
    shared index/store/cache collaborators. Two concurrent misses on the same
    fingerprint both compute and both populate; recomputation is idempotent,
    so there is no single-flight lock.
    """

    def __init__(
        self,
        index: RecipeSearchIndex,
        recipe_repo: RecipeReadRepo,
        cache: Optional[ResultCache] = None,
        engine: Optional[MatchEngine] = None,
        settings: Optional[MatchSettings] = None,
        ingredient_index: Optional[IngredientSearchIndex] = None,
    ) -> None:
        self.settings = settings or MatchSettings()
        self.index = index
        self.recipe_repo = recipe_repo
        self.cache = cache
        self.engine = engine or MatchEngine(self.settings.threshold, self.settings.epsilon)
        self.ingredient_index = ingredient_index

    # ---------- public ----------
    async def query(
        self,
        term: Optional[str] = None,
        filters: Optional[SearchFilters] = None,
        availability: Iterable[str] = (),
        page: int = 1,
        page_size: Optional[int] = None,
    ) -> QueryResult:
        term = (term or "").strip()
        filters = filters or SearchFilters()
        page_size = self.settings.default_page_size if page_size is None else page_size
        avail = self._validate(term, availability, page, page_size)

        fp = fingerprint(term, filters, avail, page, page_size)
        entry = await self._cache_get(fp)
        if entry is not None:
            payload = entry.payload
            return QueryResult(items=list(payload["items"]), total=int(payload["total"]), took_ms=0.0, cached=True)

        start = time.perf_counter()
        if avail:
            result = await self._bounded(self._match_path, term, filters, avail, page, page_size)
        else:
            result = await self._bounded(self._search_path, term, filters, page, page_size)
        took_ms = round((time.perf_counter() - start) * 1000.0, 3)

        if took_ms > self.settings.slow_query_ms:
            log.warning(
                "Slow recipe query | took_ms=%.1f term=%r filters=%s available=%d",
                took_ms, term, filters.to_canonical(), len(avail),
            )
        await self._cache_put(fp, {"items": result.items, "total": result.total}, result.tags)
        return QueryResult(items=result.items, total=result.total, took_ms=took_ms, tags=result.tags)

    async def similar(self, recipe_id: str, limit: int = 5) -> List[Dict[str, Any]]:
        if not 1 <= limit <= self.settings.max_page_size:
            raise InvalidQuery(f"limit must be within 1..{self.settings.max_page_size}")

        async def run() -> List[Dict[str, Any]]:
            ids = await self._index(self.index.similar, recipe_id, limit)
            docs = await self._index(self.index.get_documents, ids)
            return [_hit_from_doc(d).to_dict() for d in docs]

        return await self._bounded(run)

    async def search_ingredients(
        self,
        term: str,
        categories: Sequence[str] = (),
        limit: int = 20,
    ) -> List[Dict[str, Any]]:
        if self.ingredient_index is None:
            return []
        if not (term or "").strip():
            raise InvalidQuery("q is required")
        if not 1 <= limit <= self.settings.max_page_size:
            raise InvalidQuery(f"limit must be within 1..{self.settings.max_page_size}")
        cats = []
        for c in categories:
            try:
                cats.append(IngredientCategory(c.strip().lower()))
            except ValueError:
                raise InvalidQuery(f"unknown ingredient category '{c}'") from None

        async def run() -> List[Dict[str, Any]]:
            hits = await self._index(self.ingredient_index.search, term, tuple(cats), limit)
            return [dict(h.ingredient.to_dict(), score=h.score) for h in hits]

        return await self._bounded(run)

    # ---------- compute paths ----------
    async def _search_path(self, term: str, filters: SearchFilters, page: int, page_size: int) -> QueryResult:
        found = await self._index(self.index.search, term, filters, page, page_size)
        items = [_hit_from_doc(d, found.scores.get(d.recipe_id)).to_dict() for d in found.docs]
        return QueryResult(items=items, total=found.total, took_ms=0.0, tags=list(found.ids))

    async def _match_path(
        self, term: str, filters: SearchFilters, avail: List[str], page: int, page_size: int
    ) -> QueryResult:
        candidates = await self._index(self.index.candidates_for_ingredients, avail)
        if candidates and (term or not filters.is_empty):
            allowed = set(await self._index(self.index.search_ids, term, filters))
            candidates = [c for c in candidates if c in allowed]
        recipes: List[Recipe] = []
        if candidates:
            recipes = await with_retry(
                self.recipe_repo.get_recipes_by_ids, candidates,
                attempts=self.settings.retry_attempts,
                base_delay_s=self.settings.retry_base_delay_s,
                max_delay_s=self.settings.retry_max_delay_s,
                what="recipe store",
            )
        # pure in-memory scoring, no suspension
        ranked = self.engine.match(recipes, avail)
        by_id = {r.id: r for r in recipes}
        page_results = paginate(ranked, page, page_size)
        items = [_hit_from_match(by_id[m.recipe_id], m).to_dict() for m in page_results]
        return QueryResult(
            items=items, total=len(ranked), took_ms=0.0, tags=[m.recipe_id for m in page_results],
        )

    # ---------- helpers ----------
    def _validate(self, term: str, availability: Iterable[str], page: int, page_size: int) -> List[str]:
        if isinstance(page, bool) or not isinstance(page, int) or page < 1:
            raise InvalidQuery("page must be an integer >= 1")
        if isinstance(page_size, bool) or not isinstance(page_size, int) or not 1 <= page_size <= self.settings.max_page_size:
            raise InvalidQuery(f"pageSize must be within 1..{self.settings.max_page_size}")
        if len(term) > MAX_TERM_LENGTH:
            raise InvalidQuery(f"term must be at most {MAX_TERM_LENGTH} characters")
        if isinstance(availability, str):
            raise InvalidQuery("availableIngredientIds must be a list of ids")
        avail = set()
        for i in availability:
            if not isinstance(i, str) or not i.strip():
                raise InvalidQuery("availableIngredientIds must contain non-empty string ids")
            avail.add(i.strip())
        return sorted(avail)

    async def _index(self, fn: Callable[..., T], *args: Any) -> T:
        return await with_retry(
            fn, *args,
            attempts=self.settings.retry_attempts,
            base_delay_s=self.settings.retry_base_delay_s,
            max_delay_s=self.settings.retry_max_delay_s,
            what="search index",
        )

    async def _bounded(self, fn: Callable[..., Awaitable[T]], *args: Any) -> T:
        deadline_s = self.settings.deadline_ms / 1000.0
        try:
            with anyio.fail_after(deadline_s):
                return await fn(*args)
        except TimeoutError as e:
            log.warning("Recipe query exceeded deadline of %d ms", self.settings.deadline_ms)
            raise QueryTimeout(f"request exceeded {self.settings.deadline_ms} ms deadline") from e

    async def _cache_get(self, fp: str) -> Optional[CacheEntry]:
        if self.cache is None:
            return None
        try:
            entry = await run_blocking(self.cache.get, fp)
        except Exception as e:
            log.warning("Result cache degraded (get), computing live: %s", e)
            return None
        if entry is None:
            return None
        payload = entry.payload
        if not isinstance(payload, dict) or "items" not in payload or "total" not in payload:
            log.warning("Ignoring malformed cache payload for %s", fp)
            return None
        return entry

    async def _cache_put(self, fp: str, payload: Dict[str, Any], tags: List[str]) -> None:
        if self.cache is None:
            return
        try:
            await run_blocking(self.cache.put, fp, payload, self.settings.cache_ttl_s, tuple(tags))
        except Exception as e:
            log.warning("Result cache degraded (put), result not cached: %s", e)
