"""Order statistics used by the scorecard and the threshold tuner."""

from __future__ import annotations

from collections.abc import Sequence

import numpy as np


def median(values: Sequence[float]) -> float:
    """Median of ``values``; even-length input averages the two middle values. Empty input gives 0."""
    if len(values) == 0:
        return 0.0
    return float(np.median(np.asarray(values, dtype=np.float64)))


def quantile(values: Sequence[float], q: float) -> float:
    """Linearly interpolated quantile, ``q`` in [0, 1]. Empty input gives 0."""
    if not 0.0 <= q <= 1.0:
        raise ValueError(f"q must be in [0, 1], got {q!r}")
    if len(values) == 0:
        return 0.0
    return float(np.quantile(np.asarray(values, dtype=np.float64), q))


def ratio(numerator: float, denominator: float) -> float:
    return 0.0 if denominator == 0 else numerator / denominator
