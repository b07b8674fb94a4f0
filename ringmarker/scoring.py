"""Reading rectified cut signals against the radius-ratio bank of markers."""

from __future__ import annotations

import math
from collections.abc import Sequence

import numpy as np

from ringmarker.sampling import ImageCut

# Samples at the start of a cut that are left out of the signal statistics.
STATISTICS_OFFSET = 30


def dis(sig: float, val: float, mub: float, muw: float, var_sub_s: float) -> float:
    """Distance of one sample *sig* to the binary profile value *val*.

    A black profile value (-1) is only penalised by samples brighter than
    the black mean *mub*; a white one only by samples darker than the white
    mean *muw*. The squared excess is scaled by twice the variance.
    """
    if val == -1:
        return max(sig - mub, 0.0) ** 2 / (2.0 * var_sub_s)
    return min(sig - muw, 0.0) ** 2 / (2.0 * var_sub_s)


def _mean(values: np.ndarray) -> float:
    return float(values.mean()) if values.size else math.nan


def _black_white_means(signal: np.ndarray, threshold: float) -> tuple[float, float]:
    """Means of the samples below and above *threshold*.

    Samples are only counted from the first one below the threshold on.
    """
    below = np.flatnonzero(signal < threshold)
    if below.size == 0:
        return math.nan, math.nan
    tail = signal[below[0]:]
    return _mean(tail[tail < threshold]), _mean(tail[tail >= threshold])


def _profile(ratios: Sequence[float], begin: float, step: float, n: int) -> np.ndarray:
    """Binary profile (+1 white, -1 black) of a marker along a cut."""
    thresholds = [1.0 / r for r in ratios]
    digits = np.empty(n, dtype=float)
    x = begin
    for i in range(n):
        crossed = sum(1 for t in thresholds if t <= x)
        digits[i] = 1.0 - 2.0 * (crossed % 2)
        x += step
    return digits


def _profile_distance(
    signal: np.ndarray, digits: np.ndarray, mub: float, muw: float, variance: float
) -> float:
    black = digits == -1
    excess = np.where(
        black,
        np.maximum(signal - mub, 0.0),
        np.minimum(signal - muw, 0.0),
    )
    return float(np.sum(excess**2 / (2.0 * variance)))


def orazio_distance_robust(
    rr_bank: Sequence[Sequence[float]], cuts: Sequence[ImageCut]
) -> list[list[float]]:
    """Score every readable cut against every marker of the bank.

    For each cut that stayed inside the image, the marker whose profile lies
    nearest to the signal wins, and its likelihood ``exp(-distance)`` is
    appended to that marker's list. Among equal likelihoods the marker of
    higher index wins. The returned lists are indexed like *rr_bank*.
    """
    if not cuts:
        raise ValueError("no cuts to read")
    scores: list[list[float]] = [[] for _ in rr_bank]
    if not rr_bank:
        return scores

    for cut in cuts:
        if cut.out_of_bounds:
            continue
        signal = np.asarray(cut.signal, dtype=float)
        n = signal.size
        tail = signal[STATISTICS_OFFSET:]
        mean = _mean(tail)
        variance = float(tail.var()) if tail.size else math.nan
        mub, muw = _black_white_means(signal, mean)

        step = (cut.end_sig - cut.begin_sig) / (n - 1.0) if n > 1 else 0.0
        likelihoods = [
            math.exp(
                -_profile_distance(
                    signal, _profile(ratios, cut.begin_sig, step, n), mub, muw, variance
                )
            )
            for ratios in rr_bank
        ]
        best = max(range(len(likelihoods)), key=lambda i: (likelihoods[i], i))
        scores[best].append(likelihoods[best])
    return scores


def vote_identity(scores: Sequence[Sequence[float]]) -> tuple[int, float]:
    """Pick the marker that won the most cuts and its mean likelihood.

    Ties go to the lower index. When no cut was read at all, marker 0 is
    returned with a NaN score.
    """
    if not scores:
        raise ValueError("no marker scores to vote on")
    winner = 0
    most = 0
    for i, results in enumerate(scores):
        if len(results) > most:
            winner, most = i, len(results)
    results = scores[winner]
    score = math.fsum(results) / len(results) if results else math.nan
    return winner, score