"""Tests for beat grids, voices and the note models."""

import numpy as np
import pytest

from metergram.models import Beat, Measure, MidiNote, group_by_onset, note_name
from metergram.search.beat import BeatGrid, FromFileBeatState, offset_beat_index, onset_beat_index
from metergram.search.voice import FromFileVoiceState, Voice
from tests.conftest import TATUM_TIME, note

TIMES = np.array([0, 100, 200, 300], dtype=np.int64)


@pytest.mark.parametrize("time,expected", [
    (-10, 0),
    (0, 0),
    (49, 0),
    (50, 0),  # earlier beat on ties
    (51, 1),
    (300, 3),
    (400, 3),
])
def test_onset_beat_index(time, expected):
    assert onset_beat_index(TIMES, time) == expected


@pytest.mark.parametrize("time,expected", [
    (-10, 0),
    (49, 0),
    (50, 1),
    (100, 1),
    (149, 1),
    (150, 2),
    (400, 3),
])
def test_offset_beat_index(time, expected):
    assert offset_beat_index(TIMES, time) == expected


def test_empty_grid_lookup():
    with pytest.raises(ValueError):
        onset_beat_index(np.array([], dtype=np.int64), 0)
    with pytest.raises(ValueError):
        offset_beat_index(np.array([], dtype=np.int64), 0)


def test_regular_grid():
    grid = BeatGrid.regular(2, 4, TATUM_TIME)
    assert len(grid) == 9
    assert grid.beats[5] == Beat(1, 1, 500, 5)
    assert grid.beats[-1] == Beat(2, 0, 800, 8)
    assert grid.beats_until(250) == grid.beats[:3]
    assert grid.beats_until(-1) == []
    assert grid.tacti_per_measure_at(700) == 4


def test_tacti_changes():
    beats = BeatGrid.regular(2, 4, TATUM_TIME).beats
    grid = BeatGrid(beats, [(800, 3), (0, 4)])
    assert grid.tacti_per_measure_at(-5) == 4
    assert grid.tacti_per_measure_at(799) == 4
    assert grid.tacti_per_measure_at(800) == 3


def test_decreasing_times_rejected():
    with pytest.raises(ValueError):
        BeatGrid([Beat(0, 0, 100), Beat(0, 1, 0)])


def test_from_file_beat_state():
    state = FromFileBeatState(BeatGrid.regular(2, 4, TATUM_TIME))
    assert state.num_beats == 0
    assert state.score == 0.0

    state.handle_incoming([note(2, 3)])
    assert state.num_beats == 3
    assert list(state.times) == [0, 100, 200]
    assert state.tacti_per_measure == 4

    state.handle_incoming([])
    assert state.num_beats == 3

    copy = state.deep_copy()
    copy.handle_incoming([note(5, 6)])
    assert copy.num_beats == 6
    assert state.num_beats == 3

    state.close()
    assert state.num_beats == 9
    assert state.beats[-1] == Beat(2, 0, 800, 8)


def test_from_file_voice_state():
    first = [note(0, 2), note(2, 4)]
    second = [note(1, 3, pitch=64, voice=1)]
    state = FromFileVoiceState([first, second, []])
    assert state.score == 0.0
    assert [v.notes for v in state.voices] == [first[:1]]

    state.handle_incoming(second)
    assert [v.notes for v in state.voices] == [first[:1], second]

    copy = state.deep_copy()
    copy.handle_incoming(first[1:])
    assert [v.notes for v in copy.voices] == [first, second]
    assert [v.notes for v in state.voices] == [first[:1], second]

    state.close()
    assert state.voices[0].most_recent_note == first[0]


def test_note_without_offset_rejected():
    with pytest.raises(ValueError):
        FromFileVoiceState([[note(0, 0)]])


def test_voice_chain():
    a, b, c = note(0, 1), note(1, 2), note(2, 3)
    voice = Voice(a).extend(b).extend(c)
    assert voice.notes == [a, b, c]
    assert list(voice.recent_notes()) == [c, b, a]
    assert len(voice) == 3
    assert voice == Voice(a).extend(b).extend(c)
    assert voice != Voice(a).extend(c)
    assert voice.previous.notes == [a, b]


def test_group_by_onset():
    low, high, first = note(2, 4, pitch=60), note(2, 3, pitch=64), note(0, 1)
    assert group_by_onset([high, first, low]) == [[first], [low, high]]
    assert group_by_onset([]) == []


def test_note_equality_ignores_times():
    a = MidiNote(pitch=60, velocity=100, onset_time=0, onset_tick=0, offset_time=100, offset_tick=1)
    b = MidiNote(pitch=60, velocity=100, onset_time=5, onset_tick=0, offset_time=105, offset_tick=1)
    assert a == b
    assert hash(a) == hash(b)
    assert a != MidiNote(pitch=60, velocity=100, onset_time=0, onset_tick=0, offset_time=200, offset_tick=2)


def test_note_helpers():
    a = note(0, 4)
    assert a.duration_time == 4 * TATUM_TIME
    assert a.overlaps(note(3, 5))
    assert not a.overlaps(note(4, 5))
    assert not a.overlaps(None)
    assert note_name(60) == "C4"
    assert note_name(61) == "C#4"


def test_measure():
    measure = Measure(4, 2)
    assert str(measure) == "M_4,2"
    assert measure.sub_beats_per_measure == 8
    assert sorted([Measure(4, 2), Measure(3, 2), Measure(3, 3)]) == [Measure(3, 2), Measure(3, 3), Measure(4, 2)]
