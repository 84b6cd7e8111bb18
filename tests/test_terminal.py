"""Tests for terminal patterns and their reduction."""

import logging
from fractions import Fraction

import pytest

from metergram.grammar.terminal import (
    EMPTY_HEAD,
    Head,
    Quantum,
    Terminal,
    pattern_gcf,
    pattern_string,
    reduce_pattern,
)

PATTERNS = ["x--x-", "x-x-", "x---x---", "--x-", "x-..", "..x-x-", "x.x.x.", "xxxx", "....", "-"]


def _expand(reduced, factor):
    expanded = []
    for quantum in reduced:
        if quantum is Quantum.ONSET:
            expanded.append(Quantum.ONSET)
            expanded.extend([Quantum.TIE] * (factor - 1))
        else:
            expanded.extend([quantum] * factor)
    return tuple(expanded)


def test_head_of_two_notes():
    terminal = Terminal(Quantum.parse("x--x-"))
    assert pattern_string(terminal.reduced_pattern) == "x--x-"
    assert terminal.head == Head(Fraction(3, 5), Fraction(0), False)


@pytest.mark.parametrize("pattern,reduced", [
    ("x-x-", "xx"),
    ("x---x---", "xx"),
    ("x-..", "x."),
    ("x--..", "x--.."),
    ("--x-", "-x"),
    ("....", "."),
])
def test_reduce_pattern(pattern, reduced):
    assert pattern_string(reduce_pattern(Quantum.parse(pattern))) == reduced


@pytest.mark.parametrize("pattern", PATTERNS)
def test_reduction_is_idempotent(pattern):
    reduced = reduce_pattern(Quantum.parse(pattern))
    assert reduce_pattern(reduced) == reduced


@pytest.mark.parametrize("pattern", PATTERNS)
def test_reduction_preserves_content(pattern):
    original = Quantum.parse(pattern)
    reduced = reduce_pattern(original)
    factor = pattern_gcf(original)
    assert len(reduced) * factor == len(original)
    assert _expand(reduced, factor) == original


def test_tie_after_rest_becomes_onset(caplog):
    with caplog.at_level(logging.WARNING, logger="metergram.grammar.terminal"):
        terminal = Terminal(Quantum.parse("x.-"))
    assert str(terminal) == "x.x"
    assert "TIE after REST" in caplog.text


def test_equality_uses_reduced_pattern():
    a = Terminal(Quantum.parse("x-x-"))
    b = Terminal(Quantum.parse("xx"))
    assert a == b
    assert hash(a) == hash(b)
    assert a != Terminal(Quantum.parse("x-xx"))


def test_empty_terminal():
    terminal = Terminal(())
    assert terminal.is_empty
    assert terminal.starts_with_rest
    assert terminal.head == EMPTY_HEAD


def test_all_rest_terminal_is_empty():
    terminal = Terminal(Quantum.parse("...."))
    assert terminal.is_empty
    assert terminal.head == EMPTY_HEAD


def test_head_starting_with_tie():
    # Equal runs: the first one wins
    terminal = Terminal(Quantum.parse("--x-"))
    assert terminal.head == Head(Fraction(1, 2), Fraction(0), True)
    assert not terminal.starts_with_rest


def test_head_scaled_by_base_length():
    terminal = Terminal(Quantum.parse("x-.x"), base_length=2)
    assert terminal.head == Head(Fraction(1), Fraction(0), False)
    assert terminal.length == 2


def test_dict_round_trip():
    terminal = Terminal(Quantum.parse("x-.x"), base_length=2)
    restored = Terminal.from_dict(terminal.to_dict())
    assert restored == terminal
    assert restored.original_pattern == terminal.original_pattern
    assert restored.base_length == 2
