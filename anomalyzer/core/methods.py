from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import TYPE_CHECKING, Callable, Dict, FrozenSet, Optional, Tuple

import numpy as np

from . import algorithms

if TYPE_CHECKING:
    from ..config import ResolvedConfig


MethodFunc = Callable[[np.ndarray, "ResolvedConfig", np.random.Generator], Optional[float]]


class Method(str, Enum):
    MAGNITUDE = "magnitude"
    DIFF = "diff"
    HIGH_RANK = "highrank"
    LOW_RANK = "lowrank"
    FENCE = "fence"
    KS = "ks"
    CDF = "cdf"


@dataclass(frozen=True)
class MethodSpec:
    key: Method
    compute: MethodFunc
    label: str
    resampling: bool = False


REGISTRY: Dict[Method, MethodSpec] = {
    Method.MAGNITUDE: MethodSpec(Method.MAGNITUDE, algorithms.magnitude_test, "Magnitude"),
    Method.DIFF: MethodSpec(Method.DIFF, algorithms.diff_test, "Diff rank", resampling=True),
    Method.HIGH_RANK: MethodSpec(
        Method.HIGH_RANK, algorithms.high_rank_test, "High rank", resampling=True
    ),
    Method.LOW_RANK: MethodSpec(
        Method.LOW_RANK, algorithms.low_rank_test, "Low rank", resampling=True
    ),
    Method.FENCE: MethodSpec(Method.FENCE, algorithms.fence_test, "Fence"),
    Method.KS: MethodSpec(Method.KS, algorithms.bootstrap_ks_test, "Bootstrap KS", resampling=True),
    Method.CDF: MethodSpec(Method.CDF, algorithms.cdf_test, "Diff CDF"),
}

MINIMUM_METHODS: Tuple[Method, ...] = (Method.MAGNITUDE, Method.KS)
RESAMPLING_METHODS: FrozenSet[Method] = frozenset(m for m, s in REGISTRY.items() if s.resampling)
# magnitude and fence either dominate the ensemble or stay out of it
DYNAMIC_WEIGHT_METHODS: FrozenSet[Method] = frozenset({Method.MAGNITUDE, Method.FENCE})
