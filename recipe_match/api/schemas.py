# =========================
# FILE: recipe_match/api/schemas.py
# =========================
from __future__ import annotations

from typing import List, Optional, Union

from pydantic import BaseModel, ConfigDict, Field


class SearchFiltersIn(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="forbid")

    cuisine: Optional[Union[str, List[str]]] = None
    difficulty: Optional[Union[str, List[str]]] = None
    max_prep_time: Optional[int] = Field(default=None, alias="maxPrepTime")
    max_cook_time: Optional[int] = Field(default=None, alias="maxCookTime")
    tags: Optional[Union[str, List[str]]] = None


class SearchRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    term: Optional[str] = Field(default=None, examples=["tomato soup"])
    filters: Optional[SearchFiltersIn] = None
    available_ingredient_ids: List[str] = Field(default_factory=list, alias="availableIngredientIds")
    page: int = 1
    page_size: Optional[int] = Field(default=None, alias="pageSize")


class SearchItem(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    recipe_id: str = Field(alias="recipeId")
    name: str
    cuisine: str = ""
    difficulty: str
    prep_time: int = Field(alias="prepTime")
    cook_time: int = Field(alias="cookTime")
    average_rating: float = Field(alias="averageRating")
    score: Optional[float] = None
    # only present when availableIngredientIds was non-empty
    match_score: Optional[float] = Field(default=None, alias="matchScore")
    matched_count: Optional[int] = Field(default=None, alias="matchedCount")
    total_count: Optional[int] = Field(default=None, alias="totalCount")
    missing_ingredient_ids: Optional[List[str]] = Field(default=None, alias="missingIngredientIds")


class SearchResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    items: List[SearchItem]
    total: int
    took_ms: float = Field(alias="tookMs")


class IngredientItem(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    id: str
    name: str
    category: str
    canonical_unit: str = Field(default="", alias="canonicalUnit")
    recognition_tags: List[str] = Field(default_factory=list, alias="recognitionTags")
    score: float = 0.0


class IngredientSearchResponse(BaseModel):
    items: List[IngredientItem]


class SimilarResponse(BaseModel):
    items: List[SearchItem]


class LifecycleResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    recipe_id: str = Field(alias="recipeId")
    indexed: Optional[bool] = None
    removed: Optional[bool] = None
    invalidated: int = 0


class ErrorResponse(BaseModel):
    kind: str
    message: str
