from __future__ import annotations

import logging
import math
import threading
from typing import Any, Dict, Iterable, Mapping, Optional, Tuple, Union

import numpy as np

from ..config import AnomalyzerConfig, ConfigError, ResolvedConfig, build_config, resolve_config
from .buffers import DataBuffer
from .evaluator import Evaluation, evaluate


logger = logging.getLogger(__name__)

ConfigLike = Union[AnomalyzerConfig, ResolvedConfig, Mapping[str, Any]]


def _as_resolved(config: ConfigLike) -> ResolvedConfig:
    if isinstance(config, ResolvedConfig):
        return config
    if isinstance(config, AnomalyzerConfig):
        return resolve_config(config)
    if isinstance(config, Mapping):
        return build_config(**config)
    raise ConfigError(f"Unsupported config type {type(config).__name__}")


def _finite(x: float) -> float:
    value = float(x)
    if not math.isfinite(value):
        raise ValueError(f"Observations must be finite, got {x!r}")
    return value


class Anomalyzer:
    """Scores how anomalous the latest points of a series are.

    The configuration is validated once here. Every push re-evaluates the
    ensemble on the post-push buffer; a single lock guards push+eval so an
    instance may be shared across threads.
    """

    def __init__(
        self,
        config: ConfigLike,
        data: Optional[Iterable[float]] = None,
        rng: Optional[np.random.Generator] = None,
    ) -> None:
        self._config = _as_resolved(config)
        self._buffer = DataBuffer(_finite(x) for x in (data if data is not None else ()))
        self._rng = rng if rng is not None else np.random.default_rng()
        self._lock = threading.RLock()
        self._last: Optional[Evaluation] = None
        logger.info(
            "anomalyzer created",
            extra={
                "methods": [m.value for m in self._config.methods],
                "active_size": self._config.active_size,
                "reference_size": self._config.reference_size,
                "n": len(self._buffer),
            },
        )

    @property
    def config(self) -> ResolvedConfig:
        return self._config

    @property
    def data(self) -> np.ndarray:
        return self._buffer.snapshot()

    def __len__(self) -> int:
        return len(self._buffer)

    def update(self, batch: Iterable[float]) -> None:
        """Append a batch of observations without evaluating."""
        values = [_finite(x) for x in batch]
        with self._lock:
            self._buffer.extend(values)
            self._last = None

    def push(self, x: float) -> float:
        value = _finite(x)
        with self._lock:
            self._buffer.push(value)
            return self.eval()

    def push_fixed(self, x: float) -> float:
        """Push while keeping the buffer at its current length.

        Raises :class:`~anomalyzer.core.buffers.EmptyBufferError` on an empty
        buffer.
        """
        value = _finite(x)
        with self._lock:
            self._buffer.push_fixed(value)
            return self.eval()

    def push_capped(self, x: float) -> float:
        """Push, evicting the oldest points beyond ``config.capacity``."""
        value = _finite(x)
        with self._lock:
            self._buffer.push_capped(value, self._config.capacity)
            return self.eval()

    def evaluate(self) -> Evaluation:
        with self._lock:
            self._last = evaluate(self._buffer.snapshot(), self._config, self._rng)
            return self._last

    def eval(self) -> float:
        return self.evaluate().probability

    def eval_by_test(self) -> Tuple[Dict[str, float], Dict[str, float]]:
        """Per-test scores and weights that fed the last probability.

        A fresh evaluation runs only when nothing has been scored yet or
        when ``update`` changed the buffer since the last score.
        """
        with self._lock:
            result = self._last if self._last is not None else self.evaluate()
            return result.scores, result.weights
