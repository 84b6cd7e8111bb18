"""Accuracy of a metrical hypothesis against the annotated meter.

The sub beat, beat and measure levels of the hypothesis are each compared
with the correct grid. A level counts as a true positive when it coincides
with a correct level, and as a false positive when it clashes with the
correct grid (crossing one of its boundaries or sitting at the wrong
phase). Levels that fit inside the correct grid without matching one of
its levels count as neither. All lengths and offsets are in tatums.
"""

from dataclasses import dataclass

from metergram.models import Measure


@dataclass(frozen=True)
class MetricalAccuracy:
    true_positives: int
    false_positives: int
    false_negatives: int
    precision: float
    recall: float
    f1: float


def _ratio(numerator: float, denominator: float) -> float:
    return numerator / denominator if denominator else 0.0


def _level_match(length: int, offset: int, correct_levels: list[tuple[int, int]]) -> int:
    """1 if the level matches a correct one, -1 if it clashes, 0 otherwise."""
    for correct_length, correct_offset in correct_levels:
        if correct_length == length:
            return 1 if correct_offset == offset else -1
        if correct_length < length:
            if (offset - correct_offset) % correct_length or (offset + length - correct_offset) % correct_length:
                return -1
        elif (correct_offset - offset) % length or (correct_offset + correct_length - offset) % length:
            return -1
    return 0


def _levels(measure: Measure, sub_beat_length: int, anacrusis_length: int) -> list[tuple[int, int]]:
    beat_length = sub_beat_length * measure.sub_beats_per_beat
    measure_length = beat_length * measure.beats_per_measure
    return [
        (sub_beat_length, anacrusis_length % sub_beat_length),
        (beat_length, anacrusis_length % beat_length),
        (measure_length, anacrusis_length),
    ]


def evaluate(
    correct_measure: Measure,
    correct_sub_beat_length: int,
    correct_anacrusis: int,
    hypothesis_measure: Measure,
    hypothesis_sub_beat_length: int,
    hypothesis_anacrusis: int,
) -> MetricalAccuracy:
    """Score a hypothesis. Anacrusis lengths are in tatums."""
    if (
        hypothesis_measure == correct_measure
        and hypothesis_sub_beat_length == correct_sub_beat_length
        and hypothesis_anacrusis == correct_anacrusis
    ):
        return MetricalAccuracy(3, 0, 0, 1.0, 1.0, 1.0)

    correct_levels = _levels(correct_measure, correct_sub_beat_length, correct_anacrusis)
    hypothesis_levels = _levels(hypothesis_measure, hypothesis_sub_beat_length, hypothesis_anacrusis)

    true_positives = false_positives = 0
    for length, offset in hypothesis_levels:
        match = _level_match(length, offset, correct_levels)
        if match > 0:
            true_positives += 1
        elif match < 0:
            false_positives += 1

    false_negatives = 3 - true_positives
    precision = _ratio(true_positives, true_positives + false_positives)
    recall = _ratio(true_positives, true_positives + false_negatives)
    f1 = _ratio(2 * precision * recall, precision + recall)

    return MetricalAccuracy(true_positives, false_positives, false_negatives, precision, recall, f1)
