"""Anomaly scoring for a single numeric time series.

An :class:`Anomalyzer` keeps an in-memory buffer of observations and, on
every push, estimates the probability that the most recent values deviate
from recent history. No model is trained; the probability is a weighted
ensemble of simple statistical tests.
"""

from .config import AnomalyzerConfig, ConfigError, ResolvedConfig, load_config, resolve_config
from .core.buffers import EmptyBufferError
from .core.detector import Anomalyzer
from .core.evaluator import Evaluation
from .core.methods import Method

__all__ = [
    "Anomalyzer",
    "AnomalyzerConfig",
    "ConfigError",
    "EmptyBufferError",
    "Evaluation",
    "Method",
    "ResolvedConfig",
    "load_config",
    "resolve_config",
]
