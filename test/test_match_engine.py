from __future__ import annotations

import logging
import random

import pytest

from conftest import make_recipe
from recipe_match.services.match_engine import (
    MatchEngine,
    match_recipes,
    paginate,
    passes_threshold,
    score_recipe,
)

INGREDIENTS = ["tomato", "onion", "garlic", "basil", "rice", "egg", "pasta", "chicken", "pepper", "lime"]


def test_three_ingredient_recipe_with_two_available_is_included():
    r1 = make_recipe("r1", ["tomato", "onion", "garlic"])

    [res] = match_recipes([r1], {"tomato", "onion"})

    assert res.matched_count == 2
    assert res.total_count == 3
    assert res.match_score == pytest.approx(0.667, abs=1e-3)
    assert res.missing_ingredient_ids == ("garlic",)


def test_optional_ingredient_left_out_of_denominator():
    r1 = make_recipe("r1", ["tomato", "onion", "garlic", "pepper"], rating=4.9)
    r2 = make_recipe("r2", ["tomato", "onion", "garlic", ("basil", True)], rating=1.0)

    results = match_recipes([r1, r2], {"tomato", "onion", "garlic"})

    assert [r.recipe_id for r in results] == ["r2", "r1"]
    assert (results[0].matched_count, results[0].total_count, results[0].match_score) == (3, 3, 1.0)


def test_optional_presence_does_not_change_counts():
    base = make_recipe("r", ["tomato", "onion", "garlic"])
    with_optional = make_recipe("r", ["tomato", "onion", "garlic", ("basil", True), ("lime", True)])

    for avail in ({"tomato"}, {"tomato", "basil"}, {"tomato", "basil", "lime"}):
        a = score_recipe(base, avail)
        b = score_recipe(with_optional, avail)
        assert (a.matched_count, a.total_count, a.match_score) == (b.matched_count, b.total_count, b.match_score)


def test_empty_availability_matches_nothing():
    recipes = [make_recipe("r1", ["tomato"]), make_recipe("r2", ["onion"])]
    assert match_recipes(recipes, set()) == []
    assert MatchEngine().match(recipes, []) == []


def test_every_result_meets_threshold():
    rng = random.Random(7)
    recipes = [
        make_recipe(f"r{i:03d}", rng.sample(INGREDIENTS, rng.randint(1, 6)), rating=rng.choice([3.0, 4.0, 4.5]))
        for i in range(200)
    ]
    for _ in range(20):
        avail = set(rng.sample(INGREDIENTS, rng.randint(1, 5)))
        results = match_recipes(recipes, avail)
        assert all(r.match_score >= 0.5 - 1e-9 for r in results)
        kept = {r.recipe_id for r in results}
        for recipe in recipes:
            score = len(set(recipe.required_ingredient_ids) & avail) / len(recipe.required_ingredient_ids)
            assert (recipe.id in kept) == (score >= 0.5 - 1e-9)


def test_ranking_is_total_and_input_order_independent():
    rng = random.Random(11)
    recipes = [
        make_recipe(f"r{i:02d}", rng.sample(INGREDIENTS, 4), rating=rng.choice([4.0, 4.5]))
        for i in range(40)
    ]
    avail = {"tomato", "onion", "garlic", "rice", "egg"}

    first = match_recipes(recipes, avail)
    shuffled = list(recipes)
    rng.shuffle(shuffled)
    second = match_recipes(shuffled, avail)

    assert first == second
    keys = [(-r.match_score, -r.average_rating, r.recipe_id) for r in first]
    assert keys == sorted(keys)


def test_rating_then_id_break_ties():
    recipes = [
        make_recipe("b", ["tomato", "onion"], rating=4.0),
        make_recipe("a", ["tomato", "onion"], rating=4.0),
        make_recipe("c", ["tomato", "onion"], rating=4.5),
    ]
    assert [r.recipe_id for r in match_recipes(recipes, {"tomato", "onion"})] == ["c", "a", "b"]


def test_threshold_boundary_uses_epsilon():
    assert passes_threshold(0.5, 0.5)
    assert passes_threshold(0.5 - 1e-12, 0.5)
    assert not passes_threshold(0.4999, 0.5)
    [res] = match_recipes([make_recipe("half", ["tomato", "onion"])], {"tomato"})
    assert res.match_score == 0.5


def test_configurable_threshold():
    recipe = make_recipe("r", ["tomato", "onion", "garlic"])
    assert MatchEngine(threshold=0.75).match([recipe], {"tomato", "onion"}) == []
    assert len(MatchEngine(threshold=0.25).match([recipe], {"tomato"})) == 1
    with pytest.raises(ValueError):
        MatchEngine(threshold=1.5)


def test_recipe_without_required_ingredients_is_skipped_and_logged(caplog):
    caplog.set_level(logging.WARNING, logger="services.match_engine")
    empty = make_recipe("empty", [])
    only_optional = make_recipe("garnish", [("basil", True)])
    good = make_recipe("good", ["tomato"])

    results = match_recipes([empty, only_optional, good], {"tomato", "basil"})

    assert [r.recipe_id for r in results] == ["good"]
    assert "recipe empty: no required ingredients" in caplog.text
    assert "recipe garnish: no required ingredients" in caplog.text


class _BrokenRecipe:
    id = "broken"
    average_rating = 0.0

    @property
    def required_ingredient_ids(self):
        raise RuntimeError("corrupt ingredient list")


def test_failure_on_one_recipe_does_not_abort_batch(caplog):
    caplog.set_level(logging.ERROR, logger="services.match_engine")
    results = match_recipes([_BrokenRecipe(), make_recipe("ok", ["tomato"])], {"tomato"})

    assert [r.recipe_id for r in results] == ["ok"]
    assert "Match failed for recipe broken" in caplog.text


def test_paginate():
    items = list(range(7))
    assert paginate(items, 1, 3) == [0, 1, 2]
    assert paginate(items, 3, 3) == [6]
    assert paginate(items, 4, 3) == []
