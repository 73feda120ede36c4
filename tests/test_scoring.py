"""
Overall score aggregation tests.

Guards against:
1. Assuming all six categories are present (weights must re-normalise)
2. Returning 0 instead of None when nothing has been analysed
"""
import pytest

from marketplace_audit.analysis.scoring import CATEGORY_WEIGHTS, compute_overall_score


def test_weights_sum_to_one():
    assert sum(CATEGORY_WEIGHTS.values()) == pytest.approx(1.0)


def test_empty_input_is_none():
    assert compute_overall_score({}) is None


def test_unknown_and_missing_categories_are_ignored():
    assert compute_overall_score({"pricing": 10}) is None
    assert compute_overall_score({"content": None, "orders": 80}) == 80


def test_single_category_returns_its_score():
    assert compute_overall_score({"advertising": 42}) == 42


def test_renormalises_over_present_categories():
    # 100 * 0.30 / (0.30 + 0.25) = 54.5
    assert compute_overall_score({"content": 100, "inventory": 0}) == 55


def test_small_weights_renormalise_too():
    assert compute_overall_score({"returns": 50, "performance": 100}) == 75


def test_all_categories():
    scores = {
        "content": 80,
        "inventory": 60,
        "orders": 70,
        "advertising": 90,
        "returns": 90,
        "performance": 100,
    }
    # 24 + 15 + 14 + 13.5 + 4.5 + 5 = 76
    assert compute_overall_score(scores) == 76
