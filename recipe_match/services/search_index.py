# =========================
# FILE: recipe_match/services/search_index.py
# (fielded BM25 + char TF-IDF fuzzy name match, nested ingredient lookup)
# =========================
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Optional, Sequence, Set, Tuple
import logging
import threading

import numpy as np
from rank_bm25 import BM25Okapi
from sklearn.feature_extraction.text import TfidfVectorizer

from recipe_match.core.config import FUZZY_MIN_SIMILARITY
from recipe_match.core.errors import RecipeNotFound
from recipe_match.domain.entities import (
    Ingredient,
    IngredientCategory,
    Recipe,
    SearchDocument,
    SearchFilters,
)
from recipe_match.domain.repositories import DocumentStore, IngredientReadRepo
from recipe_match.services.text_analysis import analyze, analyze_many, char_ngram_preprocess, fold

log = logging.getLogger("services.search_index")

# field boosts
NAME_BOOST = 3.0
DESCRIPTION_BOOST = 1.0
INGREDIENT_BOOST = 2.0
TAG_BOOST = 1.0
FUZZY_BOOST = 1.0


class _FieldScorer:
    """BM25 over one analyzed field. Degenerate corpora score zero."""

    def __init__(self, corpus: List[List[str]]) -> None:
        self.size = len(corpus)
        self.tokens = [set(doc) for doc in corpus]
        self.bm25: Optional[BM25Okapi] = None
        if corpus and any(corpus):
            self.bm25 = BM25Okapi(corpus)

    def scores(self, q_tokens: List[str]) -> np.ndarray:
        if self.bm25 is None or not q_tokens:
            return np.zeros(self.size, dtype=np.float64)
        s = np.asarray(self.bm25.get_scores(q_tokens), dtype=np.float64)
        return np.clip(s, 0.0, None)

    def hits(self, q_tokens: List[str]) -> np.ndarray:
        q = set(q_tokens)
        return np.array([bool(q & doc) for doc in self.tokens], dtype=bool)


class _CharScorer:
    """Char n-gram TF-IDF cosine, tolerant to misspellings ("tomatoe", "lasagne")."""

    def __init__(self, texts: List[str]) -> None:
        self.size = len(texts)
        self.vectorizer: Optional[TfidfVectorizer] = None
        self.matrix = None
        if not any(t.strip() for t in texts):
            return
        vec = TfidfVectorizer(
            analyzer="char_wb",
            preprocessor=char_ngram_preprocess,
            lowercase=False,
            ngram_range=(3, 4),
            min_df=1,
        )
        try:
            self.matrix = vec.fit_transform(texts)
            self.vectorizer = vec
        except ValueError:
            # empty vocabulary: names too short for 3-grams
            self.matrix = None

    def similarity(self, query: str) -> np.ndarray:
        if self.vectorizer is None or not query.strip():
            return np.zeros(self.size, dtype=np.float64)
        q = self.vectorizer.transform([query])
        # rows are L2-normalized, so the dot product is the cosine
        return np.asarray((self.matrix @ q.T).toarray()).ravel().astype(np.float64)


@dataclass
class _Snapshot:
    docs: List[SearchDocument]
    by_id: Dict[str, int]
    by_ingredient: Dict[str, Set[int]]
    name: _FieldScorer
    description: _FieldScorer
    ingredients: _FieldScorer
    tags: _FieldScorer
    fuzzy_name: _CharScorer
    ratings: np.ndarray


@dataclass(frozen=True)
class SearchPage:
    ids: List[str]
    total: int
    scores: Dict[str, float] = field(default_factory=dict)
    # taken from the same snapshot as ids and total
    docs: List[SearchDocument] = field(default_factory=list)


def _matches_filters(doc: SearchDocument, filters: SearchFilters) -> bool:
    if filters.cuisine and doc.cuisine not in {c.strip().lower() for c in filters.cuisine}:
        return False
    if filters.difficulty and doc.difficulty not in {d.value for d in filters.difficulty}:
        return False
    if filters.max_prep_time is not None and doc.prep_time > filters.max_prep_time:
        return False
    if filters.max_cook_time is not None and doc.cook_time > filters.max_cook_time:
        return False
    if filters.tags and not {t.strip().lower() for t in filters.tags} & set(doc.tags):
        return False
    return True


def _paginate_ids(ids: Sequence[str], page: int, page_size: int) -> List[str]:
    start = (page - 1) * page_size
    return list(ids[start:start + page_size])


class RecipeSearchIndex:
    """
    Queryable projection of recipes.

    Writes go through the DocumentStore first, then into the in-memory
    projection; ranking structures are rebuilt lazily on the next read.
    Reads work on an immutable snapshot and take no lock.
    """

    def __init__(
        self,
        store: DocumentStore,
        ingredient_repo: Optional[IngredientReadRepo] = None,
        fuzzy_min_similarity: float = FUZZY_MIN_SIMILARITY,
    ) -> None:
        self._store = store
        self._ingredient_repo = ingredient_repo
        self.fuzzy_min_similarity = fuzzy_min_similarity
        self._docs: Dict[str, SearchDocument] = {}
        self._snapshot: Optional[_Snapshot] = None
        self._loaded = False
        self._lock = threading.Lock()

    # ---------- lifecycle ----------
    def load(self) -> int:
        """(Re)build the projection from the document store."""
        raw = self._store.all()
        docs: Dict[str, SearchDocument] = {}
        for d in raw:
            try:
                doc = SearchDocument.from_dict(d)
            except (TypeError, ValueError):
                log.warning("Skipping malformed search document %s", d.get("_id"))
                continue
            docs[doc.recipe_id] = doc
        with self._lock:
            self._docs = docs
            self._snapshot = None
            self._loaded = True
        log.info("RecipeSearchIndex loaded %d documents", len(docs))
        return len(docs)

    def index(self, recipe: Recipe) -> SearchDocument:
        doc = SearchDocument.from_recipe(recipe, self._ingredient_names(recipe))
        self._store.upsert(doc.recipe_id, doc.to_dict())
        with self._lock:
            self._docs[doc.recipe_id] = doc
            self._snapshot = None
        log.debug("Indexed recipe %s", doc.recipe_id)
        return doc

    def remove(self, recipe_id: str) -> None:
        with self._lock:
            present = recipe_id in self._docs or not self._loaded
        if not present:
            return
        self._store.delete(recipe_id)
        with self._lock:
            self._docs.pop(recipe_id, None)
            self._snapshot = None
        log.debug("Removed recipe %s from index", recipe_id)

    def __len__(self) -> int:
        return len(self._docs)

    @property
    def loaded(self) -> bool:
        return self._loaded

    def _ingredient_names(self, recipe: Recipe) -> Dict[str, str]:
        if self._ingredient_repo is None:
            return {}
        names: Dict[str, str] = {}
        for ing in recipe.ingredients:
            if ing.name:
                continue
            ref = self._ingredient_repo.get_ingredient(ing.ingredient_id)
            if ref is not None:
                names[ing.ingredient_id] = ref.name
        return names

    def _snap(self) -> _Snapshot:
        if not self._loaded:
            # store was unreachable at startup; try again
            self.load()
        snap = self._snapshot
        if snap is not None:
            return snap
        with self._lock:
            if self._snapshot is None:
                self._snapshot = self._build(list(self._docs.values()))
            return self._snapshot

    @staticmethod
    def _build(docs: List[SearchDocument]) -> _Snapshot:
        docs = sorted(docs, key=lambda d: d.recipe_id)
        by_ingredient: Dict[str, Set[int]] = {}
        for pos, d in enumerate(docs):
            for iid in d.ingredient_ids:
                by_ingredient.setdefault(iid, set()).add(pos)
        snap = _Snapshot(
            docs=docs,
            by_id={d.recipe_id: pos for pos, d in enumerate(docs)},
            by_ingredient=by_ingredient,
            name=_FieldScorer([analyze(d.name) for d in docs]),
            description=_FieldScorer([analyze(d.description) for d in docs]),
            ingredients=_FieldScorer([analyze_many(i.name for i in d.ingredients) for d in docs]),
            tags=_FieldScorer([analyze_many(d.tags) for d in docs]),
            fuzzy_name=_CharScorer([d.name for d in docs]),
            ratings=np.array([d.average_rating for d in docs], dtype=np.float64),
        )
        log.info("RecipeSearchIndex rebuilt | docs=%d", len(docs))
        return snap

    # ---------- reads ----------
    def _rank(self, snap: _Snapshot, term: str, filters: SearchFilters) -> Tuple[List[str], Dict[str, float]]:
        n = len(snap.docs)
        if n == 0:
            return [], {}
        allowed = np.array([_matches_filters(d, filters) for d in snap.docs], dtype=bool)
        q_tokens = analyze(term)

        # "!!!" folds to nothing and counts as no term
        if not fold(term):
            positions = [int(i) for i in np.flatnonzero(allowed)]
            positions.sort(key=lambda p: (-snap.ratings[p], snap.docs[p].recipe_id))
            return [snap.docs[p].recipe_id for p in positions], {}

        fuzzy = snap.fuzzy_name.similarity(term)
        text_hit = (
            snap.name.hits(q_tokens)
            | snap.description.hits(q_tokens)
            | snap.ingredients.hits(q_tokens)
            | snap.tags.hits(q_tokens)
            | (fuzzy >= self.fuzzy_min_similarity)
        )
        score = (
            NAME_BOOST * snap.name.scores(q_tokens)
            + DESCRIPTION_BOOST * snap.description.scores(q_tokens)
            + INGREDIENT_BOOST * snap.ingredients.scores(q_tokens)
            + TAG_BOOST * snap.tags.scores(q_tokens)
            + FUZZY_BOOST * fuzzy
        )
        positions = [int(i) for i in np.flatnonzero(allowed & text_hit)]
        positions.sort(key=lambda p: (-score[p], -snap.ratings[p], snap.docs[p].recipe_id))
        ids = [snap.docs[p].recipe_id for p in positions]
        return ids, {snap.docs[p].recipe_id: float(score[p]) for p in positions}

    def search(
        self,
        term: str,
        filters: Optional[SearchFilters] = None,
        page: int = 1,
        page_size: int = 20,
    ) -> SearchPage:
        snap = self._snap()
        ids, scores = self._rank(snap, term or "", filters or SearchFilters())
        page_ids = _paginate_ids(ids, page, page_size)
        return SearchPage(
            ids=page_ids,
            total=len(ids),
            scores={i: scores[i] for i in page_ids if i in scores},
            docs=[snap.docs[snap.by_id[i]] for i in page_ids],
        )

    def search_ids(self, term: str, filters: Optional[SearchFilters] = None) -> List[str]:
        """Every matching id in rank order (unpaginated), used to narrow match candidates."""
        ids, _ = self._rank(self._snap(), term or "", filters or SearchFilters())
        return ids

    def candidates_for_ingredients(self, ingredient_ids: Iterable[str]) -> List[str]:
        """Ids of recipes whose nested ingredients intersect the given set."""
        snap = self._snap()
        positions: Set[int] = set()
        for iid in ingredient_ids:
            positions |= snap.by_ingredient.get(iid, set())
        return sorted(snap.docs[p].recipe_id for p in positions)

    def get_documents(self, recipe_ids: Iterable[str]) -> List[SearchDocument]:
        snap = self._snap()
        return [snap.docs[snap.by_id[i]] for i in recipe_ids if i in snap.by_id]

    def similar(self, recipe_id: str, limit: int = 5) -> List[str]:
        """More-like-this over name, ingredient names, tags and cuisine."""
        snap = self._snap()
        pos = snap.by_id.get(recipe_id)
        if pos is None:
            raise RecipeNotFound(f"recipe {recipe_id} is not indexed")
        src = snap.docs[pos]
        q_tokens = (
            analyze(src.name)
            + analyze_many(i.name for i in src.ingredients)
            + analyze_many(src.tags)
            + analyze(src.cuisine)
        )
        if not q_tokens:
            return []
        score = (
            snap.name.scores(q_tokens)
            + snap.ingredients.scores(q_tokens)
            + snap.tags.scores(q_tokens)
        )
        overlap = snap.name.hits(q_tokens) | snap.ingredients.hits(q_tokens) | snap.tags.hits(q_tokens)
        same_cuisine = np.array([bool(src.cuisine) and d.cuisine == src.cuisine for d in snap.docs], dtype=bool)
        score = score + same_cuisine.astype(np.float64)
        positions = [int(i) for i in np.flatnonzero(overlap | same_cuisine) if int(i) != pos]
        positions.sort(key=lambda p: (-score[p], -snap.ratings[p], snap.docs[p].recipe_id))
        return [snap.docs[p].recipe_id for p in positions[:limit]]


@dataclass(frozen=True)
class IngredientHit:
    ingredient: Ingredient
    score: float


class IngredientSearchIndex:
    """Ingredient lookup over name (x3) and recognition tags, with fuzzy fallback."""

    def __init__(self, ingredient_repo: IngredientReadRepo, fuzzy_min_similarity: float = FUZZY_MIN_SIMILARITY) -> None:
        self._repo = ingredient_repo
        self.fuzzy_min_similarity = fuzzy_min_similarity
        self._items: List[Ingredient] = []
        self._name: Optional[_FieldScorer] = None
        self._tags: Optional[_FieldScorer] = None
        self._fuzzy: Optional[_CharScorer] = None

    def load(self) -> int:
        items = sorted(self._repo.all(), key=lambda i: i.id)
        self._name = _FieldScorer([analyze(i.name) for i in items])
        self._tags = _FieldScorer([analyze_many(i.recognition_tags) for i in items])
        self._fuzzy = _CharScorer([i.name for i in items])
        self._items = items
        log.info("IngredientSearchIndex loaded %d ingredients", len(items))
        return len(items)

    def search(
        self,
        term: str,
        categories: Sequence[IngredientCategory] = (),
        limit: int = 20,
    ) -> List[IngredientHit]:
        if self._name is None:
            self.load()
        items = self._items
        q_tokens = analyze(term)
        if not items or not (term or "").strip():
            return []
        fuzzy = self._fuzzy.similarity(term)
        hit = self._name.hits(q_tokens) | self._tags.hits(q_tokens) | (fuzzy >= self.fuzzy_min_similarity)
        score = NAME_BOOST * self._name.scores(q_tokens) + self._tags.scores(q_tokens) + FUZZY_BOOST * fuzzy
        wanted = set(categories)
        positions = [
            int(p) for p in np.flatnonzero(hit)
            if not wanted or items[int(p)].category in wanted
        ]
        positions.sort(key=lambda p: (-score[p], items[p].id))
        return [IngredientHit(ingredient=items[p], score=float(score[p])) for p in positions[:limit]]
