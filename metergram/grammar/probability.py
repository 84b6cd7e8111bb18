"""Conditional frequency tables of the rhythmic grammar.

Three tables are kept:

* transitions: ``measure;type;head_length`` -> transition string -> count
* heads: ``measure;type;parent_head_length`` -> head length -> count
* measure heads: measure -> head length -> count

The transition and head tables also count every event under a backoff key
that replaces the measure with a coarser description of the node's level.
"""

import math
from fractions import Fraction

from metergram.grammar.nonterminal import Level
from metergram.grammar.smoothing import frequency_of_frequencies, good_turing_smoothing
from metergram.grammar.terminal import Head
from metergram.models import Measure


class GrammarElementNotFoundError(LookupError):
    """Raised when removing a tree or event the grammar does not contain."""


def encode(measure: Measure, type_string: str, head: Head) -> str:
    return f"{measure};{type_string};{head.length}"


def encode_backoff(measure: Measure, type_string: str, head: Head, level: Level) -> str:
    if level is Level.SUB_BEAT:
        level_key = "SSB"
    elif level is Level.BEAT:
        level_key = f"{measure.sub_beats_per_beat}SB"
    else:
        level_key = f"{measure.beats_per_measure}B"
    return f"{level_key};{type_string};{head.length}"


def _smoothed_log_probability(table: dict, event) -> tuple[int, float]:
    count = table.get(event, 0)
    smoothed = good_turing_smoothing(frequency_of_frequencies(table.values()), sum(table.values()))
    return count, math.log(smoothed[count])


def _increment(tables: dict, key, event) -> None:
    table = tables.setdefault(key, {})
    table[event] = table.get(event, 0) + 1


def _require(tables: dict, key, event) -> None:
    if tables.get(key, {}).get(event, 0) <= 0:
        raise GrammarElementNotFoundError(f"{event!r} not found under {key}")


def _decrement(tables: dict, key, event) -> None:
    table = tables[key]
    table[event] -= 1
    if table[event] == 0:
        del table[event]
        if not table:
            del tables[key]


class ProbabilityTracker:
    """Counts of transitions, heads and measure heads over a set of trees."""

    def __init__(self):
        self.transitions: dict[str, dict[str, int]] = {}
        self.heads: dict[str, dict[Fraction, int]] = {}
        self.measure_heads: dict[Measure, dict[Fraction, int]] = {}

    # Transitions

    def add_transition(self, measure: Measure, type_string: str, head: Head, transition: str, level: Level) -> None:
        _increment(self.transitions, encode(measure, type_string, head), transition)
        _increment(self.transitions, encode_backoff(measure, type_string, head, level), transition)

    def remove_transition(self, measure: Measure, type_string: str, head: Head, transition: str, level: Level) -> None:
        key = encode(measure, type_string, head)
        backoff_key = encode_backoff(measure, type_string, head, level)
        _require(self.transitions, key, transition)
        _require(self.transitions, backoff_key, transition)
        _decrement(self.transitions, key, transition)
        _decrement(self.transitions, backoff_key, transition)

    def transition_log_probability(
        self, measure: Measure, type_string: str, head: Head, transition: str, level: Level
    ) -> float:
        return self._backed_off(
            self.transitions,
            encode(measure, type_string, head),
            encode_backoff(measure, type_string, head, level),
            transition,
        )

    # Heads

    def add_head(self, measure: Measure, type_string: str, parent_head: Head, head: Head, level: Level) -> None:
        _increment(self.heads, encode(measure, type_string, parent_head), head.length)
        _increment(self.heads, encode_backoff(measure, type_string, parent_head, level), head.length)

    def remove_head(self, measure: Measure, type_string: str, parent_head: Head, head: Head, level: Level) -> None:
        key = encode(measure, type_string, parent_head)
        backoff_key = encode_backoff(measure, type_string, parent_head, level)
        _require(self.heads, key, head.length)
        _require(self.heads, backoff_key, head.length)
        _decrement(self.heads, key, head.length)
        _decrement(self.heads, backoff_key, head.length)

    def head_log_probability(
        self, measure: Measure, type_string: str, parent_head: Head, head: Head, level: Level
    ) -> float:
        return self._backed_off(
            self.heads,
            encode(measure, type_string, parent_head),
            encode_backoff(measure, type_string, parent_head, level),
            head.length,
        )

    # Measure heads

    def add_measure_head(self, measure: Measure, head: Head) -> None:
        _increment(self.measure_heads, measure, head.length)

    def remove_measure_head(self, measure: Measure, head: Head) -> None:
        _require(self.measure_heads, measure, head.length)
        _decrement(self.measure_heads, measure, head.length)

    def measure_head_log_probability(self, measure: Measure, head: Head) -> float:
        table = self.measure_heads.get(measure)
        if table is None:
            return -math.inf
        return _smoothed_log_probability(table, head.length)[1]

    @staticmethod
    def _backed_off(tables: dict, key: str, backoff_key: str, event) -> float:
        """Primary log probability, plus the backoff one if the event is unseen."""
        primary = tables.get(key)
        backoff = tables.get(backoff_key)
        if primary is None and backoff is None:
            return -math.inf

        count = 0
        log_probability = 0.0
        if primary is not None:
            count, log_probability = _smoothed_log_probability(primary, event)
        if count == 0 and backoff is not None:
            log_probability += _smoothed_log_probability(backoff, event)[1]
        return log_probability

    @property
    def is_empty(self) -> bool:
        return not (self.transitions or self.heads or self.measure_heads)

    def deep_copy(self) -> "ProbabilityTracker":
        copy = ProbabilityTracker()
        copy.transitions = {k: dict(v) for k, v in self.transitions.items()}
        copy.heads = {k: dict(v) for k, v in self.heads.items()}
        copy.measure_heads = {k: dict(v) for k, v in self.measure_heads.items()}
        return copy

    def to_dict(self) -> dict:
        return {
            "transitions": self.transitions,
            "heads": {k: {str(length): c for length, c in v.items()} for k, v in self.heads.items()},
            "measure_heads": [
                {
                    "measure": [m.beats_per_measure, m.sub_beats_per_beat],
                    "counts": {str(length): c for length, c in v.items()},
                }
                for m, v in self.measure_heads.items()
            ],
        }

    @classmethod
    def from_dict(cls, data: dict) -> "ProbabilityTracker":
        tracker = cls()
        tracker.transitions = {k: dict(v) for k, v in data["transitions"].items()}
        tracker.heads = {
            k: {Fraction(length): c for length, c in v.items()} for k, v in data["heads"].items()
        }
        tracker.measure_heads = {
            Measure(*entry["measure"]): {Fraction(length): c for length, c in entry["counts"].items()}
            for entry in data["measure_heads"]
        }
        return tracker

    def __eq__(self, other) -> bool:
        if not isinstance(other, ProbabilityTracker):
            return NotImplemented
        return (
            self.transitions == other.transitions
            and self.heads == other.heads
            and self.measure_heads == other.measure_heads
        )

    __hash__ = None

    def __str__(self) -> str:
        return f"{self.transitions}\n{self.heads}\n{self.measure_heads}"
