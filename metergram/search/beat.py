"""Beat grids, beat lookup and the ground-truth beat tracking state.

The grid is a list of tatum-level beats. Every search component refers to
a note's position by the index of its closest grid point, so lookups go
through ``onset_beat_index`` and ``offset_beat_index`` on the grid's
``times`` array.
"""

import bisect
import copy
import logging

import numpy as np

from metergram.models import Beat, MidiNote

logger = logging.getLogger(__name__)


def onset_beat_index(times: np.ndarray, time: int) -> int:
    """Index of the grid point closest to an onset, the earlier one on ties."""
    n = len(times)
    if n == 0:
        raise ValueError("empty beat grid")
    hi = int(np.searchsorted(times, time, side="right"))
    if hi == 0:
        return 0
    if hi >= n:
        return n - 1
    lo = hi - 1
    return hi if times[hi] - time < time - times[lo] else lo


def offset_beat_index(times: np.ndarray, time: int) -> int:
    """Index of the grid point closest to an offset.

    Offsets lean towards the later grid point: it wins when it is within one
    time unit of being as close as the earlier one.
    """
    n = len(times)
    if n == 0:
        raise ValueError("empty beat grid")
    hi = int(np.searchsorted(times, time, side="right"))
    if hi == 0:
        return 0
    if hi >= n:
        return n - 1
    lo = hi - 1
    return hi if (times[hi] - time) - 1 <= time - times[lo] else lo


class BeatGrid:
    """An ordered tatum grid with the number of tatums per measure over time.

    ``tacti_per_measure`` is either a constant or a list of
    ``(time, tacti_per_measure)`` changes. A value of 0 means the beat
    labels are already consecutive tatum numbers.
    """

    def __init__(self, beats: list[Beat], tacti_per_measure=0):
        self.beats = list(beats)
        self.times = np.array([b.time for b in self.beats], dtype=np.int64)
        if np.any(np.diff(self.times) < 0):
            raise ValueError("beat times must be non-decreasing")

        if isinstance(tacti_per_measure, int):
            self.tacti_changes = [(0, tacti_per_measure)]
        else:
            self.tacti_changes = sorted(tacti_per_measure)
            if not self.tacti_changes:
                self.tacti_changes = [(0, 0)]
        self._change_times = [t for t, _ in self.tacti_changes]

    @classmethod
    def regular(
        cls,
        num_measures: int,
        tacti_per_measure: int,
        tatum_time: int,
        start_time: int = 0,
        ticks_per_tatum: int = 1,
    ) -> "BeatGrid":
        """Evenly spaced grid of ``num_measures`` measures plus a closing downbeat."""
        beats = []
        for measure in range(num_measures):
            for tatum in range(tacti_per_measure):
                index = measure * tacti_per_measure + tatum
                beats.append(Beat(measure, tatum, start_time + index * tatum_time, index * ticks_per_tatum))
        end = num_measures * tacti_per_measure
        beats.append(Beat(num_measures, 0, start_time + end * tatum_time, end * ticks_per_tatum))
        return cls(beats, tacti_per_measure)

    def __len__(self) -> int:
        return len(self.beats)

    def beats_until(self, time: int) -> list[Beat]:
        """All beats at or before ``time``."""
        return self.beats[:self.count_until(time)]

    def count_until(self, time: int) -> int:
        return int(np.searchsorted(self.times, time, side="right"))

    def tacti_per_measure_at(self, time: int) -> int:
        i = bisect.bisect_right(self._change_times, time) - 1
        return self.tacti_changes[max(i, 0)][1]


class FromFileBeatState:
    """Beat tracking hypothesis that replays a known beat grid.

    Only the beats at or before the most recent onset are visible, until
    ``close`` reveals the rest.
    """

    def __init__(self, grid: BeatGrid):
        self.grid = grid
        self.voice_state = None
        self.most_recent_time = 0
        self._visible = 0

    @property
    def beats(self) -> list[Beat]:
        return self.grid.beats[:self._visible]

    @property
    def times(self) -> np.ndarray:
        return self.grid.times[:self._visible]

    @property
    def num_beats(self) -> int:
        return self._visible

    @property
    def tacti_per_measure(self) -> int:
        return self.grid.tacti_per_measure_at(self.most_recent_time)

    @property
    def score(self) -> float:
        return 0.0

    def handle_incoming(self, notes: list[MidiNote]) -> list["FromFileBeatState"]:
        if notes:
            self.most_recent_time = notes[0].onset_time
            self._visible = max(self._visible, self.grid.count_until(self.most_recent_time))
        return [self]

    def close(self) -> list["FromFileBeatState"]:
        self._visible = len(self.grid)
        if len(self.grid):
            self.most_recent_time = int(self.grid.times[-1])
        return [self]

    def deep_copy(self) -> "FromFileBeatState":
        # The grid is read-only and shared between copies.
        return copy.copy(self)

    def __str__(self) -> str:
        return f"[{','.join(str(b) for b in self.beats)}] {self.score}"
