# recipe_match/api/routes.py
from __future__ import annotations

import logging
from typing import Any, List

from fastapi import APIRouter, Depends, FastAPI, Query, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from recipe_match.api.schemas import (
    ErrorResponse,
    IngredientSearchResponse,
    LifecycleResponse,
    SearchRequest,
    SearchResponse,
    SimilarResponse,
)
from recipe_match.application.query_facade import build_filters
from recipe_match.core.errors import (
    InvalidQuery,
    InvalidRecipe,
    QueryTimeout,
    RecipeMatchError,
    RecipeNotFound,
    ServiceDegraded,
)

log = logging.getLogger("api.routes")
router = APIRouter()

_ERRORS = {
    400: {"model": ErrorResponse},
    503: {"model": ErrorResponse},
    504: {"model": ErrorResponse},
}

_STATUS = {
    InvalidQuery: 400,
    InvalidRecipe: 400,
    RecipeNotFound: 404,
    QueryTimeout: 504,
    ServiceDegraded: 503,
}


# -------------------------
# Dependencies via app.state
# -------------------------
def _state(request: Request, name: str):
    obj = getattr(request.app.state, name, None)
    if obj is None:
        raise RuntimeError(f"{name} not initialized. Check app startup wiring.")
    return obj


def get_facade(request: Request):
    return _state(request, "query_facade")


def get_index_recipe(request: Request):
    return _state(request, "index_recipe")


def get_remove_recipe(request: Request):
    return _state(request, "remove_recipe")


# -------------------------
# Error mapping: kind + message only, never internals
# -------------------------
async def _recipe_match_error(request: Request, exc: RecipeMatchError) -> JSONResponse:
    status = next((code for cls, code in _STATUS.items() if isinstance(exc, cls)), 500)
    body: dict = exc.to_dict()
    if isinstance(exc, ServiceDegraded):
        body.update(items=[], total=0)
    return JSONResponse(status_code=status, content=body)


async def _validation_error(request: Request, exc: RequestValidationError) -> JSONResponse:
    parts = []
    for err in exc.errors():
        loc = ".".join(str(p) for p in err.get("loc", ()) if p != "body")
        parts.append(f"{loc}: {err.get('msg')}" if loc else str(err.get("msg")))
    return JSONResponse(status_code=400, content=InvalidQuery("; ".join(parts)).to_dict())


async def _unexpected_error(request: Request, exc: Exception) -> JSONResponse:
    log.exception("Unhandled error on %s", request.url.path)
    return JSONResponse(status_code=500, content={"kind": "internal_error", "message": "internal error"})


def register_error_handlers(app: FastAPI) -> None:
    app.add_exception_handler(RecipeMatchError, _recipe_match_error)
    app.add_exception_handler(RequestValidationError, _validation_error)
    app.add_exception_handler(Exception, _unexpected_error)


# -------------------------
# /recipes/search
# -------------------------
@router.post(
    "/recipes/search",
    response_model=SearchResponse,
    response_model_exclude_none=True,
    response_model_by_alias=True,
    responses=_ERRORS,
)
async def search_recipes(req: SearchRequest, facade=Depends(get_facade)) -> Any:
    filters = build_filters(req.filters.model_dump(exclude_none=True) if req.filters else None)
    result = await facade.query(
        term=req.term,
        filters=filters,
        availability=req.available_ingredient_ids,
        page=req.page,
        page_size=req.page_size,
    )
    return {"items": result.items, "total": result.total, "took_ms": result.took_ms}


@router.get(
    "/recipes/{recipe_id}/similar",
    response_model=SimilarResponse,
    response_model_exclude_none=True,
    response_model_by_alias=True,
)
async def similar_recipes(recipe_id: str, limit: int = 5, facade=Depends(get_facade)) -> Any:
    return {"items": await facade.similar(recipe_id, limit)}


@router.get("/ingredients/search", response_model=IngredientSearchResponse, response_model_by_alias=True)
async def search_ingredients(
    q: str = "",
    category: List[str] = Query(default=[]),
    limit: int = 20,
    facade=Depends(get_facade),
) -> Any:
    return {"items": await facade.search_ingredients(q, category, limit)}


# -------------------------
# Lifecycle hooks for the recipe store's write path
# -------------------------
@router.put("/recipes/{recipe_id}/index", response_model=LifecycleResponse, response_model_exclude_none=True)
async def index_recipe(recipe_id: str, uc=Depends(get_index_recipe)) -> Any:
    return await uc(recipe_id)


@router.delete("/recipes/{recipe_id}/index", response_model=LifecycleResponse, response_model_exclude_none=True)
async def remove_recipe(recipe_id: str, uc=Depends(get_remove_recipe)) -> Any:
    return await uc(recipe_id)


@router.get("/healthz")
def healthz(request: Request) -> Any:
    # no load attempt here; the next query retries a failed startup load
    index = getattr(request.app.state, "search_index", None)
    loaded = index is not None and index.loaded
    return {
        "status": "ok" if loaded else "degraded",
        "loaded": loaded,
        "indexed_recipes": len(index) if loaded else 0,
    }
