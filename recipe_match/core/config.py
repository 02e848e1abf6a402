# recipe_match/core/config.py
from __future__ import annotations
from dataclasses import dataclass
import os
import logging

# Mongo settings (empty URI => in-memory stores seeded from SEED_FILE)
MONGO_URI: str = os.getenv("MONGO_URI", "")
MONGO_DB: str = os.getenv("MONGO_DB", "pantrychef")
MONGO_RECIPES_COL: str = os.getenv("MONGO_RECIPES_COL", "recipes")
MONGO_INGREDIENTS_COL: str = os.getenv("MONGO_INGREDIENTS_COL", "ingredients")
MONGO_SEARCH_COL: str = os.getenv("MONGO_SEARCH_COL", "recipe_search_documents")
MONGO_TIMEOUT_MS: int = int(os.getenv("MONGO_TIMEOUT_MS", "3000"))

# Matching
MINIMUM_MATCH_THRESHOLD: float = float(os.getenv("MINIMUM_MATCH_THRESHOLD", "0.5"))
MATCH_EPSILON: float = float(os.getenv("MATCH_EPSILON", "1e-9"))
MAX_RECIPE_INGREDIENTS: int = int(os.getenv("MAX_RECIPE_INGREDIENTS", "50"))

# Pagination
DEFAULT_PAGE_SIZE: int = int(os.getenv("DEFAULT_PAGE_SIZE", "20"))
MAX_PAGE_SIZE: int = int(os.getenv("MAX_PAGE_SIZE", "100"))

# Result cache
CACHE_TTL_S: int = int(os.getenv("CACHE_TTL_S", "3600"))
CACHE_MAX_ITEMS: int = int(os.getenv("CACHE_MAX_ITEMS", "2048"))

# Request budget
REQUEST_DEADLINE_MS: int = int(os.getenv("REQUEST_DEADLINE_MS", "300"))
SLOW_QUERY_MS: int = int(os.getenv("SLOW_QUERY_MS", "200"))

# Index retry policy
INDEX_RETRY_ATTEMPTS: int = int(os.getenv("INDEX_RETRY_ATTEMPTS", "3"))
INDEX_RETRY_BASE_DELAY_S: float = float(os.getenv("INDEX_RETRY_BASE_DELAY_S", "0.05"))
INDEX_RETRY_MAX_DELAY_S: float = float(os.getenv("INDEX_RETRY_MAX_DELAY_S", "0.5"))

# Char n-gram similarity needed for a name to count as a fuzzy hit
FUZZY_MIN_SIMILARITY: float = float(os.getenv("FUZZY_MIN_SIMILARITY", "0.6"))


@dataclass(frozen=True)
class Paths:
    ROOT: str = os.path.abspath(os.path.join(os.path.dirname(__file__), "..", ".."))
    SEED_FILE: str = os.getenv("SEED_FILE", os.path.join(ROOT, "data", "seed.json"))


@dataclass(frozen=True)
class MatchSettings:
    threshold: float = MINIMUM_MATCH_THRESHOLD
    epsilon: float = MATCH_EPSILON
    max_recipe_ingredients: int = MAX_RECIPE_INGREDIENTS
    default_page_size: int = DEFAULT_PAGE_SIZE
    max_page_size: int = MAX_PAGE_SIZE
    cache_ttl_s: int = CACHE_TTL_S
    deadline_ms: int = REQUEST_DEADLINE_MS
    slow_query_ms: int = SLOW_QUERY_MS
    retry_attempts: int = INDEX_RETRY_ATTEMPTS
    retry_base_delay_s: float = INDEX_RETRY_BASE_DELAY_S
    retry_max_delay_s: float = INDEX_RETRY_MAX_DELAY_S


# Global logging (module-level loggers inherit this)
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()
logging.basicConfig(
    level=LOG_LEVEL,
    format="%(asctime)s %(levelname)s [%(name)s] %(message)s"
)
