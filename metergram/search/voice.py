"""Voices and the ground-truth voice splitting state."""

import bisect
import copy
from collections.abc import Iterator

from metergram.models import MidiNote


class Voice:
    """An immutable chain of notes, linked from the most recent one back."""

    __slots__ = ("most_recent_note", "previous")

    def __init__(self, note: MidiNote, previous: "Voice | None" = None):
        self.most_recent_note = note
        self.previous = previous

    def extend(self, note: MidiNote) -> "Voice":
        return Voice(note, self)

    def recent_notes(self) -> Iterator[MidiNote]:
        """Notes from the most recent back to the first."""
        node = self
        while node is not None:
            yield node.most_recent_note
            node = node.previous

    @property
    def notes(self) -> list[MidiNote]:
        notes = list(self.recent_notes())
        notes.reverse()
        return notes

    def __len__(self) -> int:
        return sum(1 for _ in self.recent_notes())

    def __eq__(self, other) -> bool:
        if not isinstance(other, Voice):
            return NotImplemented
        a, b = self, other
        while a is not None and b is not None:
            if a is b:
                return True
            if a.most_recent_note != b.most_recent_note:
                return False
            a, b = a.previous, b.previous
        return a is b

    __hash__ = None

    def __str__(self) -> str:
        return f"[{', '.join(str(n) for n in self.notes)}]"


class FromFileVoiceState:
    """Voice splitting hypothesis that replays the annotated voices.

    A voice is visible once its first note has started, and shows the notes
    that have started so far.
    """

    def __init__(self, voices: list[list[MidiNote]]):
        self._chains: list[list[Voice]] = []
        self._onsets: list[list[int]] = []
        for notes in voices:
            if not notes:
                continue
            notes = sorted(notes, key=lambda n: n.onset_time)
            chain = []
            voice = None
            for note in notes:
                if note.offset_time == 0:
                    raise ValueError(f"No offset found for note {note}")
                voice = Voice(note, voice)
                chain.append(voice)
            self._chains.append(chain)
            self._onsets.append([n.onset_time for n in notes])
        self.most_recent_time = 0

    @property
    def voices(self) -> list[Voice]:
        current = []
        for chain, onsets in zip(self._chains, self._onsets):
            count = bisect.bisect_right(onsets, self.most_recent_time)
            if count:
                current.append(chain[count - 1])
        return current

    @property
    def score(self) -> float:
        return 0.0

    def handle_incoming(self, notes: list[MidiNote]) -> list["FromFileVoiceState"]:
        if notes:
            self.most_recent_time = notes[0].onset_time
        return [self]

    def close(self) -> list["FromFileVoiceState"]:
        self.most_recent_time += 1
        return [self]

    def deep_copy(self) -> "FromFileVoiceState":
        # Voice chains are immutable and shared between copies.
        return copy.copy(self)

    def __str__(self) -> str:
        return f"{[str(v) for v in self.voices]}"
