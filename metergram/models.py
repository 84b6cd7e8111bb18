"""Core data models for metrical analysis."""

from dataclasses import dataclass, field
from itertools import groupby


@dataclass(frozen=True, order=True)
class MidiNote:
    """A single note with resolved onset and offset."""
    pitch: int
    velocity: int
    onset_time: int = field(compare=False)  # microseconds
    onset_tick: int
    offset_time: int = field(compare=False)
    offset_tick: int
    voice: int = 0  # gold standard voice

    @property
    def duration_time(self) -> int:
        return self.offset_time - self.onset_time

    def overlaps(self, other: "MidiNote | None") -> bool:
        """Whether this note starts before the other ends and ends after it starts."""
        if other is None:
            return False
        return self.onset_tick < other.offset_tick and self.offset_tick > other.onset_tick

    def __str__(self) -> str:
        return f"(K:{note_name(self.pitch)} V:{self.velocity} [{self.onset_time}-{self.offset_time}] {self.voice})"


@dataclass(frozen=True, order=True)
class Beat:
    """One point of the beat grid, labelled with its measure and tatum number."""
    measure: int
    beat: int
    time: int
    tick: int = 0

    def __str__(self) -> str:
        return f"({self.measure}.{self.beat},{self.time})"


@dataclass(frozen=True, order=True)
class Measure:
    """A measure type: how many beats per measure and sub beats per beat."""
    beats_per_measure: int
    sub_beats_per_beat: int

    @property
    def sub_beats_per_measure(self) -> int:
        return self.beats_per_measure * self.sub_beats_per_beat

    def __str__(self) -> str:
        return f"M_{self.beats_per_measure},{self.sub_beats_per_beat}"


NOTE_NAMES = ["C", "C#", "D", "D#", "E", "F", "F#", "G", "G#", "A", "A#", "B"]


def note_name(pitch: int) -> str:
    return f"{NOTE_NAMES[pitch % 12]}{pitch // 12 - 1}"


def group_by_onset(notes: list[MidiNote]) -> list[list[MidiNote]]:
    """Split notes into batches sharing an onset time, in increasing onset order."""
    ordered = sorted(notes, key=lambda n: (n.onset_time, n.pitch))
    return [list(batch) for _, batch in groupby(ordered, key=lambda n: n.onset_time)]
