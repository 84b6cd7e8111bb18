"""Tests for metrical accuracy scoring."""

import pytest

from metergram.evaluation import MetricalAccuracy, evaluate
from metergram.models import Measure


def test_exact_match():
    assert evaluate(Measure(4, 2), 1, 0, Measure(4, 2), 1, 0) == MetricalAccuracy(3, 0, 0, 1.0, 1.0, 1.0)


def test_half_measure_is_not_a_false_positive():
    result = evaluate(Measure(4, 2), 1, 0, Measure(2, 2), 1, 0)
    assert (result.true_positives, result.false_positives, result.false_negatives) == (2, 0, 1)
    assert result.precision == 1.0
    assert result.recall == pytest.approx(2 / 3)
    assert result.f1 == pytest.approx(0.8)


def test_clashing_measure_is_a_false_positive():
    result = evaluate(Measure(3, 2), 1, 0, Measure(4, 2), 1, 0)
    assert (result.true_positives, result.false_positives, result.false_negatives) == (2, 1, 1)
    assert result.precision == pytest.approx(2 / 3)
    assert result.recall == pytest.approx(2 / 3)
    assert result.f1 == pytest.approx(2 / 3)


def test_wrong_phase():
    result = evaluate(Measure(4, 2), 1, 0, Measure(4, 2), 1, 1)
    assert (result.true_positives, result.false_positives, result.false_negatives) == (1, 2, 2)
    assert result.f1 == pytest.approx(1 / 3)


def test_no_matches_gives_zero_ratios():
    result = evaluate(Measure(4, 2), 2, 0, Measure(1, 1), 1, 0)
    assert result == MetricalAccuracy(0, 0, 3, 0.0, 0.0, 0.0)
