"""Capabilities shared by the voice, beat and metrical hypothesis states.

Each axis of the joint search has a replay-from-annotation state and may
have an inference state. They are interchangeable as long as they provide
these methods; ``handle_incoming`` and ``close`` return the states that
survive the step, which may include the receiver itself.
"""

from typing import Protocol

import numpy as np

from metergram.models import Beat, Measure, MidiNote


class HypothesisState(Protocol):
    @property
    def score(self) -> float: ...

    def handle_incoming(self, notes: list[MidiNote]) -> list: ...

    def close(self) -> list: ...

    def deep_copy(self): ...


class VoiceState(HypothesisState, Protocol):
    @property
    def voices(self) -> list: ...


class BeatState(HypothesisState, Protocol):
    voice_state: VoiceState

    @property
    def beats(self) -> list[Beat]: ...

    @property
    def times(self) -> np.ndarray: ...

    @property
    def num_beats(self) -> int: ...

    @property
    def tacti_per_measure(self) -> int: ...


class MetricalState(HypothesisState, Protocol):
    voice_state: VoiceState
    beat_state: BeatState
    measure: Measure | None
    sub_beat_length: int
    anacrusis_length: int


def compare_scores(a: float, b: float) -> int:
    """Compare two scores, higher first.

    Returns a negative number when ``a`` ranks first. A score of exactly 0.0
    means nothing has been scored yet, so when either side is 0.0 the order
    is reversed and unscored states rank last.
    """
    if a == b:
        return 0
    result = -1 if a > b else 1
    if a == 0.0 or b == 0.0:
        return -result
    return result


def compare_values(a, b) -> int:
    return (a > b) - (a < b)
