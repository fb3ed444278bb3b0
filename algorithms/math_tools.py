import math
from typing import Iterable

import numpy as np


class MathTools:
    """Provides essential numeric utilities for load and volume calculations."""

    EPLEY_DIVISOR: float = 30.0

    @staticmethod
    def clamp(value: float, min_value: float, max_value: float) -> float:
        """Clamp ``value`` to the inclusive range [min_value, max_value]."""
        if min_value > max_value:
            raise ValueError("min_value must not exceed max_value")
        return max(min_value, min(value, max_value))

    @staticmethod
    def finite_or(value: float, default: float) -> float:
        """Return ``value`` unless it is NaN or infinite, in which case ``default``."""
        try:
            value = float(value)
        except (TypeError, ValueError):
            return default
        if not math.isfinite(value):
            return default
        return value

    @staticmethod
    def round_half_up(value: float, digits: int = 0) -> float:
        """Round ``value`` with halves going up instead of to even."""
        factor = 10**digits
        return math.floor(value * factor + 0.5) / factor

    @classmethod
    def epley_1rm(cls, weight: float, reps: int) -> float:
        """Return the estimated one-rep max using the Epley formula.

        A single rep is already a max and is returned unchanged. Other rep
        counts are rounded to one decimal.
        """
        if reps < 0:
            raise ValueError("reps must be non-negative")
        if reps == 1:
            return weight
        return cls.round_half_up(weight * (1 + reps / cls.EPLEY_DIVISOR), 1)

    @classmethod
    def snap_to_increment(cls, value: float, increment: float) -> float:
        """Snap ``value`` to the nearest multiple of ``increment``, halves up."""
        if increment <= 0:
            raise ValueError("increment must be positive")
        steps = int(cls.round_half_up(value / increment))
        return steps * increment

    @staticmethod
    def balance_score(totals: Iterable[float]) -> float:
        """Return 1 - coefficient of variation over the positive ``totals``."""
        arr = np.array([v for v in totals if v > 0], dtype=float)
        if arr.size == 0:
            return 0.0
        mean = float(np.mean(arr))
        std = float(np.std(arr))
        return max(0.0, 1.0 - std / mean)
