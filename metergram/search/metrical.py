"""Metrical hypothesis states.

``LpcfgMetricalState`` is an incremental parser for one hypothesis of
(measure type, sub beat length, anacrusis length). Notes are buffered per
voice, and each time the beat grid passes the end of a measure the buffered
notes of that measure are turned into trees and scored against the grammar.

Alongside scoring, every completed note is checked for consistency with the
hypothesis. A note that lines up with a sub beat or a beat counts as a
match at that level; a note that cannot fit the hypothesis counts as wrong.
Hypotheses collecting too many wrong notes are dropped, and a hypothesis is
only accepted at the end once both a sub beat and a beat have been matched.

Positions are measured in tatums from the first grid point, shifted so that
0 is the start of the first full measure. Tatums of the anacrusis are
negative and use floor division, so their phase is their real position in
the beat.
"""

import copy
import logging
from collections import deque
from enum import Enum
from functools import cmp_to_key

from metergram.config import Settings, settings
from metergram.grammar.lpcfg import Grammar
from metergram.grammar.terminal import Quantum
from metergram.grammar.tree_factory import make_tree
from metergram.models import Beat, Measure, MidiNote
from metergram.search.beat import offset_beat_index, onset_beat_index
from metergram.search.states import compare_scores, compare_values

logger = logging.getLogger(__name__)


class MatchType(Enum):
    SUB_BEAT = "SUB_BEAT"
    BEAT = "BEAT"
    WRONG = "WRONG"


class FromFileMetricalState:
    """Metrical hypothesis fixed to the annotated measure."""

    def __init__(self, measure: Measure, sub_beat_length: int = 1, anacrusis_length: int = 0):
        self.measure = measure
        self.sub_beat_length = sub_beat_length
        self.anacrusis_length = anacrusis_length
        self.voice_state = None
        self.beat_state = None
        self.most_recent_time = 0

    @property
    def score(self) -> float:
        return 1.0

    def handle_incoming(self, notes: list[MidiNote]) -> list["FromFileMetricalState"]:
        if notes:
            self.most_recent_time = notes[0].onset_time
        return [self]

    def close(self) -> list["FromFileMetricalState"]:
        return [self]

    def deep_copy(self) -> "FromFileMetricalState":
        return copy.copy(self)

    def __str__(self) -> str:
        return f"[{self.measure}]"


class LpcfgMetricalState:
    """One metrical hypothesis, scored by a grammar as notes arrive.

    A fresh state has no measure. It waits for the first note to finish and
    then branches into one state per candidate sub beat length, measure type
    known to the grammar and anacrusis length.
    """

    def __init__(self, grammar: Grammar, config: Settings | None = None):
        self.grammar = grammar
        self.config = config or settings

        self.measure: Measure | None = None
        self.sub_beat_length = 0
        self.anacrusis_length = 0

        self.voice_state = None
        self.beat_state = None

        self.local_grammar = Grammar()
        self.log_probability = 0.0
        self.measure_num = 0
        self.next_measure_index = 0

        self.has_begun: list[bool] = []
        self.unfinished_notes: list[list[MidiNote]] = []
        self.notes_to_check: deque[MidiNote] = deque()
        self.notes_to_check_beats: list[deque[MidiNote]] = []

        self.sub_beat_matches = 0
        self.beat_matches = 0
        self.wrong_matches = 0

    def _branch(self, measure: Measure | None, sub_beat_length: int, anacrusis_length: int) -> "LpcfgMetricalState":
        state = copy.copy(self)
        state.measure = measure
        state.sub_beat_length = sub_beat_length
        state.anacrusis_length = anacrusis_length

        state.local_grammar = self.local_grammar.deep_copy()
        state.has_begun = list(self.has_begun)
        state.unfinished_notes = [list(voice) for voice in self.unfinished_notes]
        state.notes_to_check = deque(self.notes_to_check)
        state.notes_to_check_beats = [deque(voice) for voice in self.notes_to_check_beats]

        if measure is not None and state.next_measure_index == 0:
            if anacrusis_length != 0:
                state.next_measure_index = anacrusis_length * sub_beat_length
                state.measure_num = -1
            else:
                state.next_measure_index = state.measure_length

        return state

    def deep_copy(self) -> "LpcfgMetricalState":
        return self._branch(self.measure, self.sub_beat_length, self.anacrusis_length)

    @property
    def score(self) -> float:
        return self.log_probability

    @property
    def beat_length(self) -> int:
        return self.sub_beat_length * self.measure.sub_beats_per_beat

    @property
    def measure_length(self) -> int:
        return self.sub_beat_length * self.measure.sub_beats_per_measure

    # Match bookkeeping

    @property
    def is_fully_matched(self) -> bool:
        return self.sub_beat_matches > 0 and self.beat_matches > 0

    @property
    def is_wrong(self) -> bool:
        return self.wrong_matches >= self.config.wrong_match_limit

    def matches(self, match_type: MatchType) -> bool:
        if match_type is MatchType.SUB_BEAT:
            return self.sub_beat_matches > 0
        if match_type is MatchType.BEAT:
            return self.beat_matches > 0
        return self.is_wrong

    def add_match(self, match_type: MatchType) -> None:
        if match_type is MatchType.SUB_BEAT:
            self.sub_beat_matches += 1
        elif match_type is MatchType.BEAT:
            self.beat_matches += 1
        else:
            self.wrong_matches += 1

    def _log(self, message: str) -> None:
        logger.log(logging.INFO if self.config.verbose else logging.DEBUG, message)

    # Search steps

    def handle_incoming(self, notes: list[MidiNote]) -> list["LpcfgMetricalState"]:
        if not self.is_fully_matched:
            self.notes_to_check.extend(notes)

        self._add_new_voices(notes)

        if self.measure is None:
            return self._first_step_branches()

        while self.beat_state.num_beats > self.next_measure_index:
            self._parse_step()

        if not self.is_fully_matched:
            self._update_match_type()

        if self.is_wrong:
            self._log(f"Eliminating {self}")
            return []
        return [self]

    def close(self) -> list["LpcfgMetricalState"]:
        if self.measure is None:
            branches = [s for s in self._first_step_branches() if s.measure is not None]
            return [closed for state in branches for closed in state.close()]

        while any(self.unfinished_notes):
            self._parse_step()

        if not self.is_fully_matched:
            self._update_match_type()

        if not self.is_wrong and self.is_fully_matched:
            return [self]

        self._log(f"Eliminating {self}")
        return []

    def _first_step_branches(self) -> list["LpcfgMetricalState"]:
        if not self.notes_to_check or self.beat_state.num_beats == 0:
            return [self]

        # Wait until the first note has finished
        if self.beat_state.times[-1] < self.notes_to_check[0].offset_time:
            return [self]

        branches = []
        for sub_beat_length in self.config.sub_beat_lengths:
            if sub_beat_length <= 0:
                raise ValueError(f"sub beat lengths must be positive, got {sub_beat_length}")
            for measure in self.grammar.measures:
                for anacrusis_length in range(measure.sub_beats_per_measure):
                    state = self._branch(measure, sub_beat_length, anacrusis_length)
                    state._update_match_type()
                    if not state.is_wrong:
                        branches.append(state)
                        self._log(f"Adding {state}")
        return branches

    def _parse_step(self) -> None:
        times = self.beat_state.times
        for i, notes in enumerate(self.unfinished_notes):
            tree = make_tree(notes, times, self.measure, self.sub_beat_length, self.anacrusis_length, self.measure_num)
            if tree.is_empty:
                continue

            # Leading silence of a voice is not scored
            if not self.has_begun[i]:
                self.has_begun[i] = True
                if tree.starts_with_rest:
                    continue

            self.log_probability += self.grammar.tree_log_probability(tree)
            self.local_grammar.add_tree(tree)

        self._remove_finished_notes()
        self.next_measure_index += self.measure_length
        self.measure_num += 1

    def _remove_finished_notes(self) -> None:
        times = self.beat_state.times
        last = len(times) - 1
        for i, notes in enumerate(self.unfinished_notes):
            kept = []
            for note in notes:
                index = offset_beat_index(times, note.offset_time)
                if index < self.next_measure_index or (index == self.next_measure_index and index != last):
                    continue
                kept.append(note)
            self.unfinished_notes[i] = kept

    def _add_new_voices(self, notes: list[MidiNote]) -> None:
        incoming = set(notes)
        for i, voice in enumerate(self.voice_state.voices):
            if voice.most_recent_note not in incoming:
                continue

            new_notes = []
            is_new_voice = True
            for note in voice.recent_notes():
                if note not in incoming:
                    is_new_voice = False
                    break
                new_notes.append(note)
            new_notes.reverse()

            if is_new_voice:
                self.unfinished_notes.insert(i, new_notes)
                self.has_begun.insert(i, False)
                if not self.matches(MatchType.BEAT):
                    self.notes_to_check_beats.insert(i, deque(new_notes))
            else:
                self.unfinished_notes[i].extend(new_notes)
                if not self.matches(MatchType.BEAT):
                    self.notes_to_check_beats[i].extend(new_notes)

    # Match type checks

    def _tactus(self, beat: Beat, first: Beat, tacti_per_measure: int) -> int:
        if tacti_per_measure != 0:
            return tacti_per_measure * (beat.measure - first.measure) + beat.beat - first.beat
        return beat.beat

    def _note_span(self, note: MidiNote) -> tuple[int, int]:
        """Start tatum relative to the first full measure, and length in tatums."""
        beats = self.beat_state.beats
        times = self.beat_state.times
        tacti = self.beat_state.tacti_per_measure
        start = self._tactus(beats[onset_beat_index(times, note.onset_time)], beats[0], tacti)
        end = self._tactus(beats[offset_beat_index(times, note.offset_time)], beats[0], tacti)
        return start - self.anacrusis_length * self.sub_beat_length, max(1, end - start)

    def _update_match_type(self) -> None:
        i = 0
        while not self.is_wrong and not self.matches(MatchType.BEAT) and i < len(self.notes_to_check_beats):
            while self._check_conglomerate_beat_match(self.notes_to_check_beats[i]):
                pass
            if self.matches(MatchType.BEAT):
                self.notes_to_check_beats.clear()
            i += 1

        if self.beat_state.num_beats == 0:
            return
        last_time = self.beat_state.times[-1]
        while (
            not self.is_wrong
            and not self.is_fully_matched
            and self.notes_to_check
            and self.notes_to_check[0].offset_time <= last_time
        ):
            self._update_note_match_type(self.notes_to_check.popleft())

    def _check_conglomerate_beat_match(self, voice_notes: deque[MidiNote]) -> bool:
        """Look for notes of differing lengths that exactly fill one beat.

        A beat filled by equal notes is not counted, as it fits a finer
        subdivision just as well. Returns True while more notes of the
        voice are worth checking.
        """
        if not voice_notes:
            return False

        beats = self.beat_state.beats
        beat_length = self.beat_length
        last_tactus = self._tactus(beats[-1], beats[0], self.beat_state.tacti_per_measure)
        last_beat_num = (last_tactus - self.anacrusis_length * self.sub_beat_length) // beat_length

        first_note = voice_notes.popleft()
        start, length = self._note_span(first_note)
        first_beat_num, beat_offset = divmod(start, beat_length)

        # The first note's beat hasn't finished yet
        if first_beat_num == last_beat_num:
            voice_notes.appendleft(first_note)
            return False

        if beat_offset != 0:
            return bool(voice_notes)

        quantums = [Quantum.REST] * (beat_length + 1)
        quantums[0] = Quantum.ONSET
        for tactus in range(1, min(length, len(quantums))):
            quantums[tactus] = Quantum.TIE

        while voice_notes:
            start, length = self._note_span(voice_notes[0])
            beat_num, beat_offset = divmod(start, beat_length)
            if beat_num != first_beat_num:
                if beat_offset == 0:
                    quantums[beat_length] = Quantum.ONSET
                break

            voice_notes.popleft()
            quantums[beat_offset] = Quantum.ONSET
            for tactus in range(beat_offset + 1, min(beat_offset + length, len(quantums))):
                quantums[tactus] = Quantum.TIE

        # Tied over the beat boundary
        if quantums[beat_length] is Quantum.TIE:
            return bool(voice_notes)

        onsets = []
        for tactus in range(beat_length):
            if quantums[tactus] is Quantum.REST:
                return bool(voice_notes)
            if quantums[tactus] is Quantum.ONSET:
                onsets.append(tactus)

        lengths = [b - a for a, b in zip(onsets, onsets[1:] + [beat_length])]
        if len(lengths) > 1 and len(set(lengths)) > 1:
            self.add_match(MatchType.BEAT)
            return False
        return bool(voice_notes)

    def _update_note_match_type(self, note: MidiNote) -> None:
        start, length = self._note_span(note)
        end = start + length

        prefix_start = middle_start = start
        postfix_start = end
        prefix_length = postfix_length = 0
        middle_length = length

        # Split a note crossing a matched level's boundaries into its parts
        unit = None
        if self.matches(MatchType.SUB_BEAT) and start // self.sub_beat_length != (end - 1) // self.sub_beat_length:
            unit = self.sub_beat_length
        elif self.matches(MatchType.BEAT) and start // self.beat_length != (end - 1) // self.beat_length:
            unit = self.beat_length

        if unit is not None:
            if start % unit != 0:
                prefix_length = unit - start % unit
            middle_start += prefix_length
            middle_length -= prefix_length
            postfix_length = end % unit
            postfix_start -= postfix_length
            middle_length -= postfix_length

        if prefix_length:
            self._update_span_match_type(prefix_start, prefix_length)
        if not self.is_fully_matched and not self.is_wrong and middle_length:
            self._update_span_match_type(middle_start, middle_length)
        if not self.is_fully_matched and not self.is_wrong and postfix_length:
            self._update_span_match_type(postfix_start, postfix_length)

    def _update_span_match_type(self, start: int, length: int) -> None:
        sub_beat_length = self.sub_beat_length
        beat_length = self.beat_length
        measure_length = self.measure_length

        sub_beat_offset = start % sub_beat_length
        beat_offset = start % beat_length
        measure_offset = start % measure_length

        if self.matches(MatchType.SUB_BEAT):
            if length <= sub_beat_length:
                pass
            elif length < beat_length:
                # Two sub beats of a beat divided in three
                self.add_match(MatchType.WRONG)
            elif length == beat_length:
                self.add_match(MatchType.BEAT if beat_offset == 0 else MatchType.WRONG)
            elif length % beat_length != 0:
                self.add_match(MatchType.WRONG)
            return

        if length < sub_beat_length:
            if sub_beat_length % length != 0 or sub_beat_offset % length != 0:
                self.add_match(MatchType.WRONG)

        elif length == sub_beat_length:
            self.add_match(MatchType.SUB_BEAT if sub_beat_offset == 0 else MatchType.WRONG)

        elif length < beat_length:
            # Must start or end on a beat
            if beat_offset != 0 and beat_offset + length != beat_length:
                self.add_match(MatchType.WRONG)

        elif self.matches(MatchType.BEAT):
            pass

        elif length == beat_length:
            self.add_match(MatchType.BEAT if beat_offset == 0 else MatchType.WRONG)

        elif (
            measure_length % length != 0
            or measure_offset % length != 0
            or beat_offset != 0
            or length % beat_length != 0
        ):
            self.add_match(MatchType.WRONG)

    def __str__(self) -> str:
        return (
            f"{self.measure} length={self.sub_beat_length} "
            f"anacrusis={self.anacrusis_length} Score={self.log_probability}"
        )


def compare_metrical_states(a, b) -> int:
    result = compare_scores(a.score, b.score)
    if result:
        return result
    result = compare_values(a.sub_beat_length, b.sub_beat_length)
    if result:
        return result
    result = compare_values(a.anacrusis_length, b.anacrusis_length)
    if result:
        return result
    if a.measure is not None and b.measure is not None:
        return compare_values(a.measure, b.measure)
    return 0


metrical_sort_key = cmp_to_key(compare_metrical_states)
