"""Good-Turing smoothing of grammar event counts.

Probabilities are always computed from the current counts of one
conditioned table and are never cached, so they follow every add and
remove of a tree.
"""

from collections import Counter
from collections.abc import Iterable, Mapping

import numpy as np


def frequency_of_frequencies(counts: Iterable[int]) -> Counter:
    """Map each observed count r to N_r, the number of events seen r times."""
    return Counter(c for c in counts if c > 0)


def good_turing_smoothing(freqs: Mapping[int, int], total: int) -> dict[int, float]:
    """Smoothed probabilities keyed by count.

    Key 0 holds the probability reserved for an unseen event,
    ``max(N_1, 1) / (total + 1)``. Every other key r holds the probability of
    a single event seen r times, taken from the Simple Good-Turing estimate
    and scaled so that all seen events share the remaining mass.
    """
    p0 = max(freqs.get(1, 0), 1) / (total + 1)
    probabilities = {0: p0}

    rs = sorted(r for r in freqs if r > 0)
    if not rs:
        return probabilities

    r_star = _smoothed_counts(rs, freqs)
    seen_mass = sum(freqs[r] * r_star[r] for r in rs)
    for r in rs:
        probabilities[r] = (1.0 - p0) * r_star[r] / seen_mass

    return probabilities


def _smoothed_counts(rs: list[int], freqs: Mapping[int, int]) -> dict[int, float]:
    """Simple Good-Turing r* for each observed count.

    Falls back to the raw counts when there are too few distinct counts to
    fit the log-log line, or when the fitted slope is not steeper than -1.
    """
    if len(rs) < 2:
        return {r: float(r) for r in rs}

    r = np.array(rs, dtype=np.float64)
    n = np.array([freqs[k] for k in rs], dtype=np.float64)

    # Average N_r over the gap to its neighbouring observed counts.
    q = np.concatenate(([0.0], r[:-1]))
    t = np.concatenate((r[1:], [2.0 * r[-1] - q[-1]]))
    z = 2.0 * n / (t - q)

    slope, _ = np.polyfit(np.log(r), np.log(z), 1)
    if slope >= -1.0:
        return {k: float(k) for k in rs}

    # S(r + 1) / S(r) for S(r) = exp(a) * r ** slope
    r_star = (r + 1.0) * ((r + 1.0) / r) ** slope
    return dict(zip(rs, r_star.tolist()))
