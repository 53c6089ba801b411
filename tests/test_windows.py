from __future__ import annotations

import numpy as np
import pytest

from anomalyzer.core.windows import InsufficientWindow, extract_windows


def test_extract_windows_basic() -> None:
    series = np.arange(10, dtype=float)
    reference, active = extract_windows(series, 4, 2)
    assert list(reference) == [4.0, 5.0, 6.0, 7.0]
    assert list(active) == [8.0, 9.0]


def test_extract_windows_truncates_to_series() -> None:
    series = np.array([1.0, 2.0, 3.0])
    reference, active = extract_windows(series, 10, 2)
    assert list(reference) == [1.0]
    assert list(active) == [2.0, 3.0]

    reference, active = extract_windows(series, 4, 5)
    assert len(reference) == 0
    assert list(active) == [1.0, 2.0, 3.0]


def test_extract_windows_minimum_reference() -> None:
    series = np.array([1.0, 2.0, 3.0])
    with pytest.raises(InsufficientWindow) as info:
        extract_windows(series, 4, 1, min_reference_size=3)
    assert info.value.available == 2
    assert info.value.required == 3


def test_extract_windows_empty_series() -> None:
    reference, active = extract_windows(np.array([]), 4, 1)
    assert len(reference) == 0 and len(active) == 0


def test_extract_windows_returns_views() -> None:
    series = np.arange(6, dtype=float)
    _, active = extract_windows(series, 4, 1)
    assert np.shares_memory(active, series)
