"""Terminal symbols of the rhythmic grammar.

A terminal is the rhythm of one sub beat (or of a whole beat when the beat
holds a single note or rest), written as a sequence of quantums at tatum
resolution. Terminals are compared by their *reduced* pattern: every run of
notes and rests divided by the greatest common factor of the run lengths.
``x-x-`` and ``xx`` are the same grammar symbol.
"""

import logging
from dataclasses import dataclass
from enum import Enum
from fractions import Fraction
from functools import reduce
from math import gcd

logger = logging.getLogger(__name__)


class Quantum(Enum):
    """The content of a single tatum."""
    ONSET = "x"
    TIE = "-"
    REST = "."

    @classmethod
    def parse(cls, symbols: str) -> tuple["Quantum", ...]:
        """Parse a compact pattern string such as ``"x--x-"``."""
        return tuple(cls(s) for s in symbols)


def pattern_string(pattern) -> str:
    return "".join(q.value for q in pattern)


@dataclass(frozen=True)
class Head:
    """The longest note of a node, relative to the node's span.

    ``length`` and ``offset`` are measured in sub beats. ``starts_with_tie``
    is set when the head note was tied in from before the node.
    """
    length: Fraction
    offset: Fraction
    starts_with_tie: bool = False

    def shifted(self, offset) -> "Head":
        return Head(self.length, self.offset + offset, self.starts_with_tie)

    def __str__(self) -> str:
        tie = "T" if self.starts_with_tie else ""
        return f"H({self.length},{self.offset}{tie})"


EMPTY_HEAD = Head(Fraction(0), Fraction(0), False)


def _runs(pattern) -> list[list]:
    """Split a pattern into [start, length, symbol] runs of notes and rests.

    The symbol of a note run is its first quantum, so only a run at index 0
    can be a TIE. A TIE directly after a REST is read as an ONSET.
    """
    runs: list[list] = []
    for i, quantum in enumerate(pattern):
        if quantum is Quantum.REST:
            if runs and runs[-1][2] is Quantum.REST:
                runs[-1][1] += 1
            else:
                runs.append([i, 1, Quantum.REST])

        elif quantum is Quantum.ONSET:
            runs.append([i, 1, Quantum.ONSET])

        elif not runs:
            runs.append([i, 1, Quantum.TIE])

        elif runs[-1][2] is Quantum.REST:
            logger.warning(f"TIE after REST at {i} in {pattern_string(pattern)}; treating as ONSET")
            runs.append([i, 1, Quantum.ONSET])

        else:
            runs[-1][1] += 1

    return runs


def pattern_gcf(pattern) -> int:
    """Greatest common factor of the lengths of all notes and rests in a pattern."""
    runs = _runs(pattern)
    if not runs:
        return 1
    return reduce(gcd, (length for _, length, _ in runs))


def reduce_pattern(pattern) -> tuple[Quantum, ...]:
    """Divide every constituent length of the pattern by their GCF."""
    return _reduce_runs(_runs(pattern))


def _reduce_runs(runs: list[list]) -> tuple[Quantum, ...]:
    if not runs:
        return ()

    factor = reduce(gcd, (length for _, length, _ in runs))
    reduced: list[Quantum] = []
    for _, length, symbol in runs:
        reduced_length = length // factor
        if symbol is Quantum.REST:
            reduced.extend([Quantum.REST] * reduced_length)
        else:
            reduced.append(symbol)
            reduced.extend([Quantum.TIE] * (reduced_length - 1))

    return tuple(reduced)


class Terminal:
    """A terminal rhythm pattern.

    ``base_length`` is the number of sub beats the pattern spans. It is 1 for
    a sub beat terminal and the number of sub beats per beat for a terminal
    that covers a whole beat, so that heads are always in sub beat units.
    """

    def __init__(self, pattern=(Quantum.REST,), base_length: int = 1):
        self.original_pattern = tuple(pattern)
        self._runs = _runs(self.original_pattern)
        self.reduced_pattern = _reduce_runs(self._runs)
        self.base_length = base_length

    @property
    def length(self) -> int:
        return self.base_length

    @property
    def is_empty(self) -> bool:
        """True if the terminal contains no notes."""
        return all(q is Quantum.REST for q in self.reduced_pattern)

    @property
    def starts_with_rest(self) -> bool:
        return not self.reduced_pattern or self.reduced_pattern[0] is Quantum.REST

    @property
    def head(self) -> Head:
        """The longest note in this terminal (the first one on ties)."""
        total = len(self.original_pattern)
        if total == 0:
            return EMPTY_HEAD

        best = None
        for start, length, symbol in self._runs:
            if symbol is Quantum.REST:
                continue
            if best is None or length > best[1]:
                best = (start, length, symbol)

        if best is None:
            return EMPTY_HEAD

        start, length, symbol = best
        return Head(
            length=Fraction(length, total) * self.base_length,
            offset=Fraction(start, total) * self.base_length,
            starts_with_tie=symbol is Quantum.TIE,
        )

    def terminals(self) -> list["Terminal"]:
        return [self]

    def to_dict(self) -> dict:
        return {"pattern": pattern_string(self.original_pattern), "base_length": self.base_length}

    @classmethod
    def from_dict(cls, data: dict) -> "Terminal":
        return cls(Quantum.parse(data["pattern"]), data["base_length"])

    def to_pretty_string(self, depth: int = 0, tab: str = "\t") -> str:
        return tab * depth + str(self)

    def __eq__(self, other) -> bool:
        if not isinstance(other, Terminal):
            return NotImplemented
        return self.reduced_pattern == other.reduced_pattern

    def __hash__(self) -> int:
        return hash(self.reduced_pattern)

    def __lt__(self, other: "Terminal") -> bool:
        return (len(self.reduced_pattern), str(self)) < (len(other.reduced_pattern), str(other))

    def __str__(self) -> str:
        return pattern_string(self.reduced_pattern)

    def __repr__(self) -> str:
        return f"Terminal({pattern_string(self.original_pattern)!r}, base_length={self.base_length})"
