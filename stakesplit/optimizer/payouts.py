"""Payout tables and subset probability totals."""

import bisect

import numpy as np

from stakesplit.optimizer.ratio import ExactRatio


def build_payout_table(ratio: ExactRatio, budget: int) -> list[int]:
    """Integer payout for every stake ``0..budget``.

    ``table[s] = floor(s * numerator / denominator)``, computed on Python
    integers so the result is exact for any multiplier and budget.
    """
    if budget < 0:
        raise ValueError(f"budget must be non-negative, got {budget}")
    numerator, denominator = ratio.numerator, ratio.denominator
    return [s * numerator // denominator for s in range(budget + 1)]


def payout_array(table: list[int]) -> np.ndarray:
    """Float view of a payout table for objective arithmetic."""
    return np.array([float(x) for x in table], dtype=np.float64)


def first_stake_reaching(table: list[int], threshold: int) -> int:
    """Smallest stake whose payout is ``>= threshold``, or ``len(table)`` if none.

    Relies on the table being non-decreasing.
    """
    return bisect.bisect_left(table, threshold)


def mask_probabilities(probabilities: list[float]) -> np.ndarray:
    """Total probability of every subset of candidates.

    ``totals[mask]`` sums ``probabilities[i]`` over the set bits of ``mask``;
    each entry extends the subset without its lowest bit.
    """
    count = 1 << len(probabilities)
    totals = np.zeros(count, dtype=np.float64)
    for mask in range(1, count):
        bit = mask & -mask
        totals[mask] = totals[mask ^ bit] + probabilities[bit.bit_length() - 1]
    return totals
