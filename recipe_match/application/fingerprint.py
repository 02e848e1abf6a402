# recipe_match/application/fingerprint.py
from __future__ import annotations

import hashlib
from typing import Iterable, Optional

import ujson as json

from recipe_match.domain.entities import SearchFilters
from recipe_match.services.text_analysis import canonical_term


def fingerprint(
    term: Optional[str],
    filters: Optional[SearchFilters],
    availability: Iterable[str],
    page: int,
    page_size: int,
    namespace: str = "q",
) -> str:
    """Stable cache key for a query.

    Inputs are canonicalized first (folded term, sorted filter pairs,
    sorted unique availability ids) so logically equal requests collide.
    """
    canonical = {
        "term": canonical_term(term or ""),
        "filters": (filters or SearchFilters()).to_canonical(),
        "available": sorted({str(i) for i in availability}),
        "page": int(page),
        "page_size": int(page_size),
    }
    raw = json.dumps(canonical, sort_keys=True, ensure_ascii=True)
    return f"{namespace}:" + hashlib.sha256(raw.encode("utf-8")).hexdigest()
