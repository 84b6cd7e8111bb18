"""Shared test fixtures for metrical analysis tests."""

import pytest

from metergram.config import Settings
from metergram.grammar.lpcfg import Grammar
from metergram.grammar.terminal import Quantum
from metergram.grammar.tree_factory import make_tree_from_quantums
from metergram.models import Measure, MidiNote
from metergram.search.beat import BeatGrid

TATUM_TIME = 100  # microseconds per tatum


def note(onset: int, offset: int, pitch: int = 60, voice: int = 0) -> MidiNote:
    """A note spanning tatums [onset, offset) of a grid with TATUM_TIME spacing."""
    return MidiNote(
        pitch=pitch,
        velocity=100,
        onset_time=onset * TATUM_TIME,
        onset_tick=onset,
        offset_time=offset * TATUM_TIME,
        offset_tick=offset,
        voice=voice,
    )


def generate_voice(durations: list[int], start: int = 0, pitch: int = 60, voice: int = 0) -> list[MidiNote]:
    """Consecutive notes with the given lengths in tatums.

    Negative lengths are rests.
    """
    notes = []
    time = start
    for duration in durations:
        if duration > 0:
            notes.append(note(time, time + duration, pitch, voice))
        time += abs(duration)
    return notes


def grid(num_measures: int, tacti_per_measure: int) -> BeatGrid:
    return BeatGrid.regular(num_measures, tacti_per_measure, TATUM_TIME)


def tree(pattern: str, beats_per_measure: int, sub_beats_per_beat: int):
    return make_tree_from_quantums(Quantum.parse(pattern), beats_per_measure, sub_beats_per_beat)


@pytest.fixture
def config():
    """Settings isolated from the environment."""
    return Settings(sub_beat_lengths=[1], wrong_match_limit=5, beam_width=None, verbose=False)


@pytest.fixture
def grammar_4_4():
    """A small grammar of 4/4 measures with 2 sub beats per beat."""
    grammar = Grammar()
    for pattern in ["x-x-x-x-", "x---x---", "x-x-x---", "x-xxx-x-", "x-------", "x-x-xxx-"]:
        grammar.add_tree(tree(pattern, 4, 2))
    return grammar


@pytest.fixture
def grammar_4_4_and_3_4(grammar_4_4):
    """Adds 3/4 measures with 2 sub beats per beat."""
    for pattern in ["x-x-x-", "x---x-", "x-----", "x-xxx-"]:
        grammar_4_4.add_tree(tree(pattern, 3, 2))
    return grammar_4_4


@pytest.fixture
def measure_4_4():
    return Measure(4, 2)
