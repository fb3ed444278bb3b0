from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from typing import Iterable

import numpy as np

from models import ATTRIBUTE_AXES, ExerciseNode, SelectionResult
from .exercise_graph import ExerciseGraph
from .math_tools import MathTools

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class MuscleBalancePolicy:
    """Limit how much of the session's stimulus one attribute axis may take.

    Once ``min_selected`` exercises are in the session, a candidate is
    skipped when adding it would push any axis above ``max_share`` of the
    XP-weighted stimulus total.
    """

    max_share: float = 0.40
    min_selected: int = 4

    def __post_init__(self) -> None:
        if not 0 < self.max_share <= 1:
            raise ValueError("max_share must be in (0, 1]")
        if self.min_selected < 0:
            raise ValueError("min_selected must be non-negative")

    def admits(self, stimulus: np.ndarray, node: ExerciseNode, selected: int) -> bool:
        if selected < self.min_selected:
            return True
        candidate = stimulus + node.base_xp * np.array(node.muscle_targets, dtype=float)
        total = float(candidate.sum())
        if total <= 0:
            return True
        return bool(np.all(candidate / total <= self.max_share + 1e-9))


class DailySelector:
    """Greedy two-budget selection of today's exercises.

    Candidates are the nodes unlocked for the user, ranked by
    ``base_xp / (time_weight * time + fatigue_weight * fatigue)``. Ties go
    to the lower ``level_required`` and then to the lower id. Each
    candidate is admitted if it fits both remaining budgets, otherwise it
    is skipped and the scan continues.
    """

    MAX_EXERCISES = 12

    def __init__(
        self,
        time_weight: float = 0.5,
        fatigue_weight: float = 0.5,
        max_exercises: int | None = MAX_EXERCISES,
        balance: MuscleBalancePolicy | None = None,
    ) -> None:
        if time_weight < 0 or fatigue_weight < 0:
            raise ValueError("cost weights must be non-negative")
        if max_exercises is not None and max_exercises < 0:
            raise ValueError("max_exercises must be non-negative")
        self.time_weight = time_weight
        self.fatigue_weight = fatigue_weight
        self.max_exercises = max_exercises
        self.balance = balance

    def density(self, node: ExerciseNode) -> float:
        cost = self.time_weight * node.execution_time + self.fatigue_weight * node.fatigue_cost
        if cost <= 0:
            return math.inf if node.base_xp > 0 else 0.0
        return node.base_xp / cost

    def rank(self, candidates: Iterable[ExerciseNode]) -> list[ExerciseNode]:
        return sorted(
            candidates,
            key=lambda n: (-self.density(n), n.level_required, n.id),
        )

    @staticmethod
    def _budget(value: float) -> float:
        """Coerce a budget to a non-negative float; ``inf`` means unlimited."""
        try:
            value = float(value)
        except (TypeError, ValueError):
            return 0.0
        if math.isnan(value):
            return 0.0
        return max(0.0, value)

    def select(
        self,
        graph: ExerciseGraph,
        user_level: int,
        completed: Iterable[str],
        time_budget: float,
        fatigue_budget: float,
    ) -> SelectionResult:
        unlocked = graph.unlocked_for(user_level, completed)
        candidates = [graph.node(node_id) for node_id in unlocked]
        return self.select_from(candidates, time_budget, fatigue_budget)

    def select_from(
        self,
        candidates: Iterable[ExerciseNode],
        time_budget: float,
        fatigue_budget: float,
    ) -> SelectionResult:
        time_left = self._budget(time_budget)
        fatigue_left = self._budget(fatigue_budget)
        result = SelectionResult()
        stimulus = np.zeros(len(ATTRIBUTE_AXES))

        for node in self.rank(candidates):
            if self.max_exercises is not None and len(result.nodes) >= self.max_exercises:
                break
            if node.execution_time > time_left or node.fatigue_cost > fatigue_left:
                logger.debug("Skipping %s: over budget", node.id)
                continue
            if self.balance and not self.balance.admits(stimulus, node, len(result.nodes)):
                logger.debug("Skipping %s: muscle balance", node.id)
                continue
            result.nodes.append(node)
            time_left -= node.execution_time
            fatigue_left -= node.fatigue_cost
            result.total_xp += node.base_xp
            result.total_time += node.execution_time
            result.total_fatigue += node.fatigue_cost
            stimulus += node.base_xp * np.array(node.muscle_targets, dtype=float)

        result.muscle_balance = MathTools.balance_score(
            np.sum([n.muscle_targets for n in result.nodes], axis=0)
            if result.nodes
            else []
        )
        logger.info(
            "Selected %d exercises (xp=%.1f time=%.1f fatigue=%.1f)",
            len(result.nodes),
            result.total_xp,
            result.total_time,
            result.total_fatigue,
        )
        return result
