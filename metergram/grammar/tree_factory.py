"""Build grammar trees from notes on a beat grid."""

import numpy as np

from metergram.grammar.nonterminal import Level, Nonterminal, Tree
from metergram.grammar.terminal import Quantum, Terminal
from metergram.models import Measure, MidiNote
from metergram.search.beat import offset_beat_index, onset_beat_index


def make_tree(
    notes: list[MidiNote],
    beat_times: np.ndarray,
    measure: Measure,
    sub_beat_length: int,
    anacrusis_length: int,
    measure_index: int,
) -> Tree:
    """Make the tree of one measure of a voice.

    ``beat_times`` holds the times of every tatum of the song seen so far.
    ``anacrusis_length`` is in sub beats and ``measure_index`` counts full
    measures from 0, with -1 for the anacrusis.
    """
    if sub_beat_length <= 0:
        raise ValueError(f"sub_beat_length must be positive, got {sub_beat_length}")

    measure_length = sub_beat_length * measure.sub_beats_per_measure
    first = measure_length * measure_index + sub_beat_length * anacrusis_length
    last = first + measure_length

    quantums = [Quantum.REST] * measure_length
    for note in notes:
        _add_note(note, quantums, beat_times, first, last)

    return make_tree_from_quantums(quantums, measure.beats_per_measure, measure.sub_beats_per_beat)


def _add_note(note: MidiNote, quantums: list[Quantum], beat_times: np.ndarray, first: int, last: int) -> None:
    onset = onset_beat_index(beat_times, note.onset_time)
    offset = offset_beat_index(beat_times, note.offset_time)

    if first <= onset < last:
        _set_quantum(quantums, onset - first, Quantum.ONSET)

    for index in range(max(onset + 1, first), min(last, len(beat_times), offset)):
        _set_quantum(quantums, index - first, Quantum.TIE)


def _set_quantum(quantums: list[Quantum], index: int, quantum: Quantum) -> None:
    # A TIE never overwrites an ONSET.
    if quantums[index] is not Quantum.ONSET:
        quantums[index] = quantum


def make_tree_from_quantums(quantums, beats_per_measure: int, sub_beats_per_beat: int) -> Tree:
    """Split a measure's quantums into beats and sub beats and build its tree."""
    quantums = list(quantums)
    if len(quantums) % (beats_per_measure * sub_beats_per_beat):
        raise ValueError(
            f"{len(quantums)} quantums do not divide into {beats_per_measure}x{sub_beats_per_beat} sub beats"
        )

    root = Nonterminal(Level.MEASURE)
    beat_length = len(quantums) // beats_per_measure
    for beat in range(beats_per_measure):
        beat_quantums = quantums[beat_length * beat:beat_length * (beat + 1)]
        root.add_child(_make_beat(beat_quantums, sub_beats_per_beat))
    root.fix_children_types()

    return Tree(root, Measure(beats_per_measure, sub_beats_per_beat))


def _make_beat(quantums: list[Quantum], sub_beats_per_beat: int) -> Nonterminal:
    beat = Nonterminal(Level.BEAT)

    terminal = Terminal(quantums, sub_beats_per_beat)
    if len(terminal.reduced_pattern) == 1:
        beat.add_child(terminal)
        return beat

    sub_beat_length = len(quantums) // sub_beats_per_beat
    for i in range(sub_beats_per_beat):
        sub_beat = Nonterminal(Level.SUB_BEAT)
        sub_beat.add_child(Terminal(quantums[sub_beat_length * i:sub_beat_length * (i + 1)]))
        beat.add_child(sub_beat)
    beat.fix_children_types()

    return beat
