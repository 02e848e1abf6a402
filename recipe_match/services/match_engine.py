# =========================
# FILE: recipe_match/services/match_engine.py
# (ingredient-overlap scoring with threshold + deterministic ranking)
# =========================
from __future__ import annotations

import logging
from typing import AbstractSet, Iterable, List, Optional, Sequence, Tuple, TypeVar

from recipe_match.core.config import MATCH_EPSILON, MINIMUM_MATCH_THRESHOLD
from recipe_match.core.errors import DataIntegrityWarning
from recipe_match.domain.entities import MatchResult, Recipe

log = logging.getLogger("services.match_engine")

T = TypeVar("T")


def score_recipe(recipe: Recipe, availability: AbstractSet[str]) -> Optional[MatchResult]:
    """Score one recipe against the available ingredient ids.

    Optional ingredients are left out of both counts: a missing garnish
    does not lower the score. Returns None (and logs) when the recipe has
    no required ingredient to divide by.
    """
    required = recipe.required_ingredient_ids
    if not required:
        warning = DataIntegrityWarning(recipe.id, "no required ingredients")
        log.warning("Skipping recipe during matching: %s", warning)
        return None
    matched = [i for i in required if i in availability]
    missing = sorted(i for i in required if i not in availability)
    total = len(required)
    return MatchResult(
        recipe_id=recipe.id,
        matched_count=len(matched),
        total_count=total,
        match_score=len(matched) / total,
        missing_ingredient_ids=tuple(missing),
        average_rating=recipe.average_rating,
    )


def rank_key(result: MatchResult) -> Tuple[float, float, str]:
    # raw floats only; display rounding would make ties unstable
    return (-result.match_score, -result.average_rating, result.recipe_id)


def passes_threshold(score: float, threshold: float, epsilon: float = MATCH_EPSILON) -> bool:
    return score >= threshold - epsilon


def match_recipes(
    recipes: Iterable[Recipe],
    availability: AbstractSet[str],
    threshold: float = MINIMUM_MATCH_THRESHOLD,
    epsilon: float = MATCH_EPSILON,
) -> List[MatchResult]:
    if not availability:
        return []
    results: List[MatchResult] = []
    seen = set()
    for recipe in recipes:
        if recipe.id in seen:
            continue
        seen.add(recipe.id)
        try:
            res = score_recipe(recipe, availability)
        except Exception:
            # one bad recipe never aborts the batch
            log.exception("Match failed for recipe %s", getattr(recipe, "id", "?"))
            continue
        if res is not None and passes_threshold(res.match_score, threshold, epsilon):
            results.append(res)
    results.sort(key=rank_key)
    return results


def paginate(items: Sequence[T], page: int, page_size: int) -> List[T]:
    start = (page - 1) * page_size
    return list(items[start:start + page_size])


class MatchEngine:
    def __init__(self, threshold: float = MINIMUM_MATCH_THRESHOLD, epsilon: float = MATCH_EPSILON) -> None:
        if not 0.0 <= threshold <= 1.0:
            raise ValueError("threshold must be within [0, 1]")
        self.threshold = threshold
        self.epsilon = epsilon

    def match(self, recipes: Iterable[Recipe], availability: Iterable[str]) -> List[MatchResult]:
        avail = frozenset(str(i) for i in availability)
        out = match_recipes(recipes, avail, self.threshold, self.epsilon)
        log.debug("Matched %d recipes for %d available ingredients", len(out), len(avail))
        return out
