"""Joint search over voice, beat and metrical hypotheses."""

import logging
from collections.abc import Iterable
from functools import cmp_to_key

from metergram.config import Settings, settings
from metergram.models import MidiNote
from metergram.search.metrical import compare_metrical_states
from metergram.search.states import BeatState, MetricalState, VoiceState, compare_scores, compare_values

logger = logging.getLogger(__name__)


class JointModelState:
    """One voice, beat and metrical hypothesis, wired together.

    The beat state reads the voice state, and the metrical state reads both.
    """

    def __init__(self, voice_state: VoiceState, beat_state: BeatState, metrical_state: MetricalState):
        self.voice_state = voice_state
        self.beat_state = beat_state
        self.metrical_state = metrical_state

        beat_state.voice_state = voice_state
        metrical_state.voice_state = voice_state
        metrical_state.beat_state = beat_state

    @property
    def score(self) -> float:
        return self.voice_state.score + self.beat_state.score + self.metrical_state.score

    def handle_incoming(self, notes: list[MidiNote]) -> list["JointModelState"]:
        return self._expand(lambda state: state.handle_incoming(notes))

    def close(self) -> list["JointModelState"]:
        return self._expand(lambda state: state.close())

    def _expand(self, step) -> list["JointModelState"]:
        """Apply ``step`` to each axis in turn, branching on every result.

        Each sub-state is copied before it is stepped, so no two joint states
        share a sub-state that will be mutated again.
        """
        beat_states = []
        for voice_state in step(self.voice_state.deep_copy()):
            beat_state = self.beat_state.deep_copy()
            beat_state.voice_state = voice_state
            beat_states.extend(step(beat_state))

        metrical_states = []
        for beat_state in beat_states:
            metrical_state = self.metrical_state.deep_copy()
            metrical_state.voice_state = beat_state.voice_state
            metrical_state.beat_state = beat_state
            metrical_states.extend(step(metrical_state))

        return [JointModelState(m.voice_state, m.beat_state, m) for m in metrical_states]

    def __str__(self) -> str:
        return f"{{{self.voice_state};{self.beat_state};{self.metrical_state}}}={self.score}"


def compare_joint_states(a: JointModelState, b: JointModelState) -> int:
    result = compare_scores(a.score, b.score)
    if result:
        return result
    for x, y in (
        (a.voice_state.score, b.voice_state.score),
        (a.beat_state.score, b.beat_state.score),
        (a.metrical_state.score, b.metrical_state.score),
    ):
        result = compare_values(x, y)
        if result:
            return result
    return compare_metrical_states(a.metrical_state, b.metrical_state)


class JointModel:
    """The ranked set of live joint hypotheses.

    ``config.beam_width`` caps how many hypotheses are kept after each step;
    None keeps them all.
    """

    def __init__(
        self,
        voice_state: VoiceState,
        beat_state: BeatState,
        metrical_state: MetricalState,
        config: Settings | None = None,
    ):
        self.config = config or settings
        self.hypotheses = [JointModelState(voice_state, beat_state, metrical_state)]

    def handle_incoming(self, notes: list[MidiNote]) -> None:
        new_states = [s for h in self.hypotheses for s in h.handle_incoming(notes)]
        self.hypotheses = self._rank(new_states)
        self._log_hypotheses(notes)

    def close(self) -> None:
        new_states = [s for h in self.hypotheses for s in h.close()]
        self.hypotheses = self._rank(new_states)
        self._log_hypotheses()

    def _rank(self, states: list[JointModelState]) -> list[JointModelState]:
        ranked = sorted(states, key=cmp_to_key(compare_joint_states))
        beam_width = self.config.beam_width
        if beam_width is not None and len(ranked) > beam_width:
            logger.debug(f"Pruning {len(ranked) - beam_width} of {len(ranked)} hypotheses")
            ranked = ranked[:beam_width]
        return ranked

    def _log_hypotheses(self, notes: list[MidiNote] | None = None) -> None:
        level = logging.INFO if self.config.verbose else logging.DEBUG
        if not logger.isEnabledFor(level):
            return
        header = "CLOSE:" if notes is None else f"{[str(n) for n in notes]}:"
        logger.log(level, header)
        for state in self.hypotheses:
            logger.log(level, f"  {state}")

    def voice_hypotheses(self) -> list[VoiceState]:
        return [h.voice_state for h in self.hypotheses]

    def beat_hypotheses(self) -> list[BeatState]:
        return [h.beat_state for h in self.hypotheses]

    def metrical_hypotheses(self) -> list[MetricalState]:
        return [h.metrical_state for h in self.hypotheses]


def run_inference(model: JointModel, batches: Iterable[list[MidiNote]]) -> list[MetricalState]:
    """Feed every note batch to the model, close it and return its metrical hypotheses."""
    count = 0
    for batch in batches:
        model.handle_incoming(batch)
        count += 1
    model.close()
    logger.info(f"Inference over {count} batches left {len(model.hypotheses)} hypotheses")
    return model.metrical_hypotheses()
