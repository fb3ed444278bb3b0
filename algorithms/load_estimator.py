from __future__ import annotations

import logging
from typing import Iterable

from models import ExerciseHistoryEntry, Tier, TierParameters, resolve_tier, TIER_PARAMETERS
from .math_tools import MathTools

logger = logging.getLogger(__name__)


class LoadEstimator:
    """Estimate one-rep maxes from history and prescribe training loads."""

    EXPLORATORY_WEIGHT = 20.0
    PLATE_INCREMENT = 2.5
    REP_RANGE = (8, 12)

    def __init__(
        self,
        exploratory_weight: float = EXPLORATORY_WEIGHT,
        plate_increment: float = PLATE_INCREMENT,
    ) -> None:
        if plate_increment <= 0:
            raise ValueError("plate_increment must be positive")
        if exploratory_weight < 0:
            raise ValueError("exploratory_weight must be non-negative")
        self.exploratory_weight = float(exploratory_weight)
        self.plate_increment = float(plate_increment)

    @property
    def target_reps(self) -> int:
        low, high = self.REP_RANGE
        return (low + high) // 2

    @property
    def reps_range(self) -> str:
        low, high = self.REP_RANGE
        return f"{low}-{high}"

    @staticmethod
    def latest_entry(
        history: Iterable[ExerciseHistoryEntry], exercise_id: str
    ) -> ExerciseHistoryEntry | None:
        """Return the most recent entry for ``exercise_id``.

        Entries are compared by date. On equal dates the entry appearing
        later in ``history`` wins since the log is append-only.
        """
        latest = None
        for entry in history:
            if entry.exercise_id != exercise_id:
                continue
            if latest is None or entry.date >= latest.date:
                latest = entry
        return latest

    def estimate_1rm(
        self, history: Iterable[ExerciseHistoryEntry], exercise_id: str
    ) -> tuple[float, bool]:
        """Return ``(one_rep_max, is_new)`` for ``exercise_id``."""
        entry = self.latest_entry(history, exercise_id)
        if entry is None:
            logger.debug("No history for %s, using exploratory weight", exercise_id)
            return self.exploratory_weight, True
        if entry.estimated_1rm and entry.estimated_1rm > 0:
            return float(entry.estimated_1rm), False
        return MathTools.epley_1rm(entry.weight, entry.reps), False

    @staticmethod
    def load_parameters(tier: Tier | str | None) -> TierParameters:
        return TIER_PARAMETERS[resolve_tier(tier)]

    def prescribe(self, one_rep_max: float, tier: Tier | str | None) -> tuple[float, int]:
        """Return ``(target_weight, rir)`` for the tier's intensity.

        The raw load is snapped to the plate increment with halves rounding
        up, so 106.25 becomes 107.5 rather than 105.
        """
        params = self.load_parameters(tier)
        raw = one_rep_max * params.intensity
        target = MathTools.snap_to_increment(raw, self.plate_increment)
        return target, params.rir

    def session_note(
        self, target_weight: float, tier: Tier | str | None, is_new: bool
    ) -> str:
        params = self.load_parameters(tier)
        if is_new:
            return (
                f"New exercise - exploratory test with {target_weight:g}kg. "
                "Adjust to your capacity."
            )
        return (
            f"{target_weight:g}kg @ RIR {params.rir} "
            f"({params.intensity * 100:.0f}% 1RM) - Hypertrophy"
        )
