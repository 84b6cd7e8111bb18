"""Grammar generation from annotated songs."""

import logging
from contextlib import contextmanager

import numpy as np

from metergram.grammar.lpcfg import Grammar
from metergram.grammar.nonterminal import Tree
from metergram.grammar.tree_factory import make_tree
from metergram.models import Measure, MidiNote

logger = logging.getLogger(__name__)


class GrammarGenerator:
    """Accumulates the trees of songs with known meter into one grammar."""

    def __init__(self, grammar: Grammar | None = None):
        self.grammar = grammar if grammar is not None else Grammar()

    def parse_song(
        self,
        voices: list[list[MidiNote]],
        beat_times: np.ndarray,
        measure: Measure,
        sub_beat_length: int,
        anacrusis_length: int = 0,
    ) -> list[Tree]:
        """Add one tree per voice per measure of a song and return them.

        Empty trees are skipped, as is a voice's first tree when it starts
        with a rest, so leading silence is never learned as rhythm.
        """
        if sub_beat_length <= 0:
            raise ValueError(f"sub_beat_length must be positive, got {sub_beat_length}")

        beat_times = np.asarray(beat_times)
        measure_length = sub_beat_length * measure.sub_beats_per_measure
        anacrusis_tatums = sub_beat_length * anacrusis_length
        first_index = -1 if anacrusis_length else 0

        song_trees = []
        for notes in voices:
            has_begun = False
            measure_index = first_index
            while measure_length * measure_index + anacrusis_tatums < len(beat_times):
                tree = make_tree(notes, beat_times, measure, sub_beat_length, anacrusis_length, measure_index)
                measure_index += 1
                if tree.is_empty:
                    continue
                if not has_begun:
                    has_begun = True
                    if tree.starts_with_rest:
                        continue
                song_trees.append(tree)

        for tree in song_trees:
            self.grammar.add_tree(tree)

        logger.debug(f"Parsed {len(song_trees)} trees in {measure} from {len(voices)} voices")
        return song_trees


@contextmanager
def leave_one_out(grammar: Grammar, trees: list[Tree]):
    """Temporarily extract ``trees`` from ``grammar``.

    The trees are added back on exit, also when the body raises. If a tree
    is missing the ones already extracted are restored before the
    GrammarElementNotFoundError propagates.
    """
    extracted = []
    try:
        for tree in trees:
            grammar.extract_tree(tree)
            extracted.append(tree)
        yield grammar
    finally:
        for tree in extracted:
            grammar.add_tree(tree)
