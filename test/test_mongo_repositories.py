from __future__ import annotations

import pytest
from bson import ObjectId
from pymongo.errors import ServerSelectionTimeoutError

from recipe_match.core.errors import IndexUnavailable, StoreUnavailable
from recipe_match.domain.entities import Difficulty, IngredientCategory
from recipe_match.infrastructure.mongo_repositories import (
    MongoDocumentStore,
    MongoIngredientRepository,
    MongoRecipeRepository,
    parse_ingredient,
    parse_recipe,
)


class FakeCollection:
    """Just enough of pymongo's Collection for the repositories."""

    def __init__(self, docs=(), down=False):
        self.docs = {d["_id"]: dict(d) for d in docs}
        self.down = down
        self.queries = []

    def _check(self):
        if self.down:
            raise ServerSelectionTimeoutError("no servers")

    def _match(self, doc, query):
        for key, cond in query.items():
            if key == "ingredients.ingredientId":
                values = [i.get("ingredientId") for i in doc.get("ingredients", [])]
            else:
                values = [doc.get(key)]
            if not any(v in cond["$in"] for v in values):
                return False
        return True

    def find(self, query):
        self._check()
        self.queries.append(query)
        return [d for d in self.docs.values() if self._match(d, query)]

    def find_one(self, query):
        found = self.find(query)
        return found[0] if found else None

    def replace_one(self, flt, doc, upsert=False):
        self._check()
        self.docs[flt["_id"]] = doc

    def delete_one(self, flt):
        self._check()
        self.docs.pop(flt["_id"], None)


RECIPE_DOC = {
    "_id": "soup",
    "name": " Tomato Soup ",
    "description": "Warm.",
    "ingredients": [
        {"ingredientId": "tomato", "name": "Tomato", "quantity": "1/2", "unit": "Cups"},
        {"ingredientId": "basil", "quantity": 2, "unit": "leaves", "optional": True},
    ],
    "instructions": [{"stepNumber": 1, "instruction": "Simmer."}],
    "prepTime": 5,
    "cookTime": 25,
    "difficulty": "MEDIUM",
    "cuisine": "Italian",
    "tags": ["soup"],
    "ratings": [{"rating": 5}, {"rating": 3}],
}


def test_parse_recipe_from_store_schema():
    r = parse_recipe(RECIPE_DOC)
    assert r.id == "soup"
    assert r.name == "Tomato Soup"
    assert r.difficulty is Difficulty.MEDIUM
    assert (r.prep_time, r.cook_time) == (5, 25)
    assert r.steps == ("Simmer.",)
    assert r.average_rating == 4.0
    assert r.ingredients[0].quantity == 0.5
    assert r.ingredients[0].unit == "cup"
    assert r.required_ingredient_ids == ["tomato"]


def test_parse_recipe_accepts_snake_case_and_object_ids():
    oid = ObjectId()
    r = parse_recipe({
        "_id": oid,
        "name": "Toast",
        "ingredients": [{"ingredient_id": "bread", "quantity": 1, "unit": "slice"}],
        "prep_time": 1,
        "cook_time": 2,
        "average_rating": 3.5,
    })
    assert r.id == str(oid)
    assert r.average_rating == 3.5
    assert r.ingredient_ids == ["bread"]


def test_parse_recipe_rejects_garbage():
    with pytest.raises(ValueError):
        parse_recipe({"_id": "bad", "name": "x", "difficulty": "impossible"})


def test_parse_ingredient():
    ing = parse_ingredient({
        "_id": "tomato", "name": "Tomato", "category": "PRODUCE",
        "canonicalUnit": "piece", "commonUnits": ["g"], "recognitionTags": ["roma tomato"],
        "shelfLife": {"refrigerated": 7, "frozen": None},
    })
    assert ing.category is IngredientCategory.PRODUCE
    assert ing.alternative_units == ("g",)
    assert ing.recognition_tags == ("roma tomato",)
    assert ing.shelf_life_days == {"refrigerated": 7}


def test_recipe_repository_reads():
    broken = {"_id": "broken", "name": "x", "difficulty": "impossible"}
    repo = MongoRecipeRepository(FakeCollection([RECIPE_DOC, broken]))

    assert [r.id for r in repo.all()] == ["soup"]
    assert repo.get_recipe("soup").name == "Tomato Soup"
    assert repo.get_recipe("missing") is None
    assert [r.id for r in repo.get_recipes_by_ids(["soup", "missing"])] == ["soup"]
    assert repo.get_recipes_by_ids([]) == []
    assert [r.id for r in repo.get_recipes_by_ingredient_ids(["basil"])] == ["soup"]


def test_store_outage_maps_to_store_unavailable():
    repo = MongoRecipeRepository(FakeCollection([RECIPE_DOC], down=True))
    with pytest.raises(StoreUnavailable):
        repo.get_recipes_by_ids(["soup"])
    with pytest.raises(StoreUnavailable):
        repo.get_recipe("soup")
    with pytest.raises(StoreUnavailable):
        MongoIngredientRepository(FakeCollection(down=True)).all()


def test_document_store_round_trip_and_outage():
    col = FakeCollection()
    store = MongoDocumentStore(col)
    store.upsert("soup", {"recipe_id": "soup", "name": "Tomato Soup"})
    assert store.all() == [{"_id": "soup", "recipe_id": "soup", "name": "Tomato Soup"}]
    store.delete("soup")
    assert store.all() == []

    col.down = True
    with pytest.raises(IndexUnavailable):
        store.upsert("soup", {})
    with pytest.raises(IndexUnavailable):
        store.delete("soup")
    with pytest.raises(IndexUnavailable):
        store.all()
