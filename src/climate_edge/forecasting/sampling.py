"""Random variate generation for the synthetic ensemble builders.

All draws come from a ``numpy.random.Generator``. Callers may pass their own
seeded generator; otherwise the process-wide default is used and results
vary run to run.
"""

from __future__ import annotations

import math

import numpy as np

_default_rng = np.random.default_rng()


def get_rng(rng: np.random.Generator | None = None) -> np.random.Generator:
    return rng if rng is not None else _default_rng


def gaussian(rng: np.random.Generator | None = None) -> float:
    """Standard normal variate via the Box-Muller transform."""
    gen = get_rng(rng)
    u = 0.0
    v = 0.0
    while u == 0.0:
        u = gen.random()
    while v == 0.0:
        v = gen.random()
    return math.sqrt(-2.0 * math.log(u)) * math.cos(2.0 * math.pi * v)


def poisson_sample(lam: float, rng: np.random.Generator | None = None) -> int:
    """Poisson variate by multiplying uniforms until the product drops below e^-lam.

    Returns 0 for non-positive rates.
    """
    if lam <= 0:
        return 0
    gen = get_rng(rng)
    limit = math.exp(-lam)
    k = 0
    p = 1.0
    while True:
        k += 1
        p *= gen.random()
        if p <= limit:
            return k - 1
