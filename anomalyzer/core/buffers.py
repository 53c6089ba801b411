from __future__ import annotations

import threading
from collections import deque
from typing import Deque, Iterable, Optional

import numpy as np


class EmptyBufferError(ValueError):
    """Fixed-width push attempted on a buffer with no width."""


class DataBuffer:
    """Thread-safe ordered buffer of observations, oldest first.

    Three append policies are offered: ``push`` grows without limit,
    ``push_fixed`` keeps the current length, ``push_capped`` evicts the
    oldest points beyond a capacity.
    """

    def __init__(self, data: Optional[Iterable[float]] = None) -> None:
        self._buffer: Deque[float] = deque(float(x) for x in (data if data is not None else ()))
        self._lock = threading.RLock()

    def push(self, x: float) -> None:
        with self._lock:
            self._buffer.append(float(x))

    def push_fixed(self, x: float) -> None:
        with self._lock:
            width = len(self._buffer)
            if width == 0:
                raise EmptyBufferError("Cannot push onto a fixed-size buffer of length 0")
            self._buffer.append(float(x))
            while len(self._buffer) > width:
                self._buffer.popleft()

    def push_capped(self, x: float, capacity: int) -> None:
        with self._lock:
            self._buffer.append(float(x))
            if capacity > 0:
                while len(self._buffer) > capacity:
                    self._buffer.popleft()

    def extend(self, values: Iterable[float]) -> None:
        with self._lock:
            self._buffer.extend(float(x) for x in values)

    def size(self) -> int:
        with self._lock:
            return len(self._buffer)

    def __len__(self) -> int:
        return self.size()

    def snapshot(self) -> np.ndarray:
        with self._lock:
            return np.fromiter(self._buffer, dtype=float, count=len(self._buffer))
