from __future__ import annotations

from typing import Tuple

import numpy as np


class InsufficientWindow(Exception):
    """A test cannot run because the reference window is too short."""

    def __init__(self, available: int, required: int) -> None:
        super().__init__(
            f"Reference window has {available} points, at least {required} required"
        )
        self.available = available
        self.required = required


def extract_windows(
    series: np.ndarray, reference_size: int, active_size: int, min_reference_size: int = 0
) -> Tuple[np.ndarray, np.ndarray]:
    """Split a series into (reference, active) views.

    The active window is the trailing ``active_size`` points and the reference
    window is the ``reference_size`` points right before it, both truncated to
    what the series holds. Slices are numpy views into ``series``.
    """
    n = len(series)
    active_size = min(active_size, n)
    reference_size = max(0, min(reference_size, n - active_size))
    if reference_size < min_reference_size:
        raise InsufficientWindow(reference_size, min_reference_size)
    return (
        series[n - active_size - reference_size : n - active_size],
        series[n - active_size :],
    )
