from __future__ import annotations

import logging
import math
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Dict, Sequence

import numpy as np

from .algorithms import clip
from .methods import DYNAMIC_WEIGHT_METHODS, REGISTRY, Method

if TYPE_CHECKING:
    from ..config import ResolvedConfig


logger = logging.getLogger(__name__)

RANK_KEY = "rank"
HIGH_CONFIDENCE = 0.8


@dataclass
class Evaluation:
    probability: float
    scores: Dict[str, float] = field(default_factory=dict)
    weights: Dict[str, float] = field(default_factory=dict)
    short_circuited: bool = False


def weighted_mean(values: Sequence[float], weights: Sequence[float]) -> float:
    """Weighted mean that is 0 when there is nothing (or no weight) to average."""
    if len(values) != len(weights):
        raise ValueError("values and weights must have the same length")
    total = float(sum(weights))
    if total == 0:
        return 0.0
    mean = float(sum(v * w for v, w in zip(values, weights))) / total
    return 0.0 if math.isnan(mean) else mean


def method_weight(name: str, score: float, config: "ResolvedConfig") -> float:
    """Base weight for every test; magnitude and fence dominate or drop out."""
    if name in {m.value for m in DYNAMIC_WEIGHT_METHODS}:
        return config.high_weight if score > HIGH_CONFIDENCE else config.low_weight
    return config.base_weight


def run_tests(
    series: np.ndarray, config: "ResolvedConfig", rng: np.random.Generator
) -> Dict[str, float]:
    """Run every enabled test, returning clamped scores keyed by method name.

    Tests that cannot run are left out. When both rank directions are
    enabled they collapse into a single ``rank`` score, the larger of the two.
    """
    collapse_rank = config.enabled(Method.HIGH_RANK) and config.enabled(Method.LOW_RANK)
    scores: Dict[str, float] = {}
    for method in config.methods:
        raw = REGISTRY[method].compute(series, config, rng)
        if raw is None or math.isnan(raw):
            logger.debug("test not applicable", extra={"method": method.value, "n": len(series)})
            continue
        score = clip(raw)
        if collapse_rank and method in (Method.HIGH_RANK, Method.LOW_RANK):
            scores[RANK_KEY] = max(scores.get(RANK_KEY, 0.0), score)
        else:
            scores[method.value] = score
    return scores


def evaluate(
    series: np.ndarray, config: "ResolvedConfig", rng: np.random.Generator
) -> Evaluation:
    """Combine the enabled tests into one anomaly probability."""
    if config.delay and len(series) < config.history_size:
        logger.debug(
            "delaying evaluation", extra={"n": len(series), "required": config.history_size}
        )
        return Evaluation(probability=0.0)

    scores = run_tests(series, config, rng)
    weights = {name: method_weight(name, score, config) for name, score in scores.items()}

    magnitude = scores.get(Method.MAGNITUDE.value)
    if magnitude is not None and magnitude < config.sensitivity:
        logger.debug(
            "magnitude below sensitivity",
            extra={"magnitude": magnitude, "sensitivity": config.sensitivity},
        )
        return Evaluation(probability=0.0, scores=scores, weights=weights, short_circuited=True)

    names = list(scores)
    probability = clip(weighted_mean([scores[n] for n in names], [weights[n] for n in names]))
    logger.debug("evaluated", extra={"probability": probability, "scores": scores})
    return Evaluation(probability=probability, scores=scores, weights=weights)
