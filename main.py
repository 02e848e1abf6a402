from __future__ import annotations

import logging
import os
from typing import Optional

import uvicorn
from fastapi import FastAPI
from pymongo import MongoClient
from dotenv import load_dotenv
load_dotenv()
from recipe_match.api.routes import register_error_handlers, router
from recipe_match.core.config import (
    CACHE_MAX_ITEMS,
    MONGO_DB,
    MONGO_INGREDIENTS_COL,
    MONGO_RECIPES_COL,
    MONGO_SEARCH_COL,
    MONGO_TIMEOUT_MS,
    MONGO_URI,
    MatchSettings,
    Paths,
)
from recipe_match.core.errors import IndexUnavailable
from recipe_match.domain.repositories import DocumentStore, IngredientReadRepo, RecipeReadRepo
from recipe_match.infrastructure.memory_repositories import (
    InMemoryDocumentStore,
    InMemoryIngredientRepository,
    InMemoryRecipeRepository,
    load_seed_file,
)
from recipe_match.infrastructure.mongo_repositories import (
    MongoDocumentStore,
    MongoIngredientRepository,
    MongoRecipeRepository,
)
from recipe_match.infrastructure.result_cache import InMemoryResultCache, ResultCache
from recipe_match.services.match_engine import MatchEngine
from recipe_match.services.search_index import IngredientSearchIndex, RecipeSearchIndex
from recipe_match.application.query_facade import RecipeQueryFacade
from recipe_match.application.usecases import IndexRecipe, ReindexAll, RemoveRecipe

log = logging.getLogger("app")
app = FastAPI(title="Recipe Matching & Discovery")
register_error_handlers(app)
app.include_router(router)

_mongo_client: MongoClient | None = None


def wire_services(
    target: FastAPI,
    recipe_repo: RecipeReadRepo,
    ingredient_repo: IngredientReadRepo,
    doc_store: DocumentStore,
    settings: Optional[MatchSettings] = None,
    cache: Optional[ResultCache] = None,
) -> None:
    settings = settings or MatchSettings()
    cache = cache if cache is not None else InMemoryResultCache(max_items=CACHE_MAX_ITEMS)

    search_index = RecipeSearchIndex(doc_store, ingredient_repo=ingredient_repo)
    try:
        if search_index.load() == 0:
            ReindexAll(recipe_repo, search_index, cache, settings)()
    except IndexUnavailable:
        # queries retry the load lazily
        log.exception("Search index not loaded at startup")
    ingredient_index = IngredientSearchIndex(ingredient_repo)

    # DI for routes.py
    target.state.search_index = search_index
    target.state.result_cache = cache
    target.state.query_facade = RecipeQueryFacade(
        index=search_index,
        recipe_repo=recipe_repo,
        cache=cache,
        engine=MatchEngine(settings.threshold, settings.epsilon),
        settings=settings,
        ingredient_index=ingredient_index,
    )
    target.state.index_recipe = IndexRecipe(recipe_repo, search_index, cache, settings)
    target.state.remove_recipe = RemoveRecipe(search_index, cache, settings)


@app.on_event("startup")
def on_startup() -> None:
    global _mongo_client

    if MONGO_URI:
        _mongo_client = MongoClient(MONGO_URI, serverSelectionTimeoutMS=MONGO_TIMEOUT_MS)
        db = _mongo_client[MONGO_DB]
        recipe_repo: RecipeReadRepo = MongoRecipeRepository(db[MONGO_RECIPES_COL])
        ingredient_repo: IngredientReadRepo = MongoIngredientRepository(db[MONGO_INGREDIENTS_COL])
        doc_store: DocumentStore = MongoDocumentStore(db[MONGO_SEARCH_COL])
    else:
        recipes, ingredients = [], []
        if os.path.exists(Paths.SEED_FILE):
            recipes, ingredients = load_seed_file(Paths.SEED_FILE)
        else:
            log.warning("MONGO_URI not set and no seed file at %s; starting empty", Paths.SEED_FILE)
        recipe_repo = InMemoryRecipeRepository(recipes)
        ingredient_repo = InMemoryIngredientRepository(ingredients)
        doc_store = InMemoryDocumentStore()

    wire_services(app, recipe_repo, ingredient_repo, doc_store)
    log.info("Startup complete")


@app.on_event("shutdown")
def on_shutdown() -> None:
    global _mongo_client
    if _mongo_client:
        _mongo_client.close()


if __name__ == "__main__":
    uvicorn.run("main:app", host="0.0.0.0", port=8081, reload=False)
