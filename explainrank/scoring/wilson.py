"""
Wilson Score Interval
=====================

Confidence bounds for a binomial proportion (saves out of views) and the
exploration bonus derived from the interval width.

With p = s/n:

    denom  = 1 + z²/n
    centre = (p + z²/2n) / denom
    margin = z * sqrt(p(1-p)/n + z²/4n²) / denom

An explanation nobody has seen yet has the interval [0, 1], so it gets the
full bonus; the bonus shrinks as views accumulate.
"""

import math
from statistics import NormalDist

DEFAULT_Z = 1.96


def z_for_confidence(confidence: float) -> float:
    """Two-sided normal quantile for a confidence level (0.95 -> 1.96)."""
    if not 0.0 < confidence < 1.0:
        raise ValueError(f"confidence must be in (0, 1), got {confidence}")
    return NormalDist().inv_cdf(1 - (1 - confidence) / 2)


def wilson_interval(successes: int, trials: int, z: float = DEFAULT_Z) -> tuple[float, float]:
    """
    Wilson score interval for ``successes`` out of ``trials``.

    Args:
        successes: Number of positive outcomes (clamped to [0, trials])
        trials: Number of observations
        z: Normal quantile for the desired confidence

    Returns:
        (lower, upper), both within [0, 1]
    """
    if trials < 0:
        raise ValueError(f"trials must be non-negative, got {trials}")
    if trials == 0:
        return 0.0, 1.0

    successes = max(0, min(successes, trials))
    n = float(trials)
    p = successes / n
    z2 = z * z

    denom = 1 + z2 / n
    centre = (p + z2 / (2 * n)) / denom
    margin = z * math.sqrt(p * (1 - p) / n + z2 / (4 * n * n)) / denom

    return max(0.0, centre - margin), min(1.0, centre + margin)


def wilson_lower_bound(successes: int, trials: int, z: float = DEFAULT_Z) -> float:
    return wilson_interval(successes, trials, z)[0]


def exploration_bonus(successes: int, trials: int, weight: float, z: float = DEFAULT_Z) -> float:
    """Bonus proportional to the interval width; ``weight`` at zero trials."""
    lower, upper = wilson_interval(successes, trials, z)
    return weight * (upper - lower)
