from __future__ import annotations

from typing import Optional

import numpy as np


def random_walk(
    nsteps: int,
    start: float,
    sd: float,
    rng: Optional[np.random.Generator] = None,
    lower: Optional[float] = None,
    upper: Optional[float] = None,
) -> np.ndarray:
    """Gaussian random walk of ``nsteps`` points starting at ``start``.

    With ``lower``/``upper`` every step is clipped into that band.
    """
    if nsteps < 1:
        raise ValueError("nsteps must be at least 1")
    rng = rng if rng is not None else np.random.default_rng()
    walk = np.empty(nsteps, dtype=float)
    walk[0] = float(start)
    steps = rng.normal(0.0, sd, size=nsteps - 1) if sd > 0 else np.zeros(nsteps - 1)
    for i in range(1, nsteps):
        value = walk[i - 1] + steps[i - 1]
        if lower is not None or upper is not None:
            value = float(np.clip(value, lower, upper))
        walk[i] = value
    return walk
