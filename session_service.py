from __future__ import annotations

import logging
from typing import Iterable

from algorithms.daily_selector import DailySelector
from algorithms.exercise_graph import ExerciseGraph
from algorithms.load_estimator import LoadEstimator
from models import (
    ExerciseHistoryEntry,
    ExerciseNode,
    PreparedExerciseSession,
    UserCapabilityProfile,
    resolve_tier,
)

logger = logging.getLogger(__name__)


class SessionAssembler:
    """Builds one day's prescription from the selector and load estimator."""

    def __init__(
        self,
        selector: DailySelector | None = None,
        estimator: LoadEstimator | None = None,
    ) -> None:
        self.selector = selector or DailySelector()
        self.estimator = estimator or LoadEstimator()

    def prepare_exercise(
        self,
        node: ExerciseNode,
        profile: UserCapabilityProfile,
        history: Iterable[ExerciseHistoryEntry],
    ) -> PreparedExerciseSession:
        tier = resolve_tier(profile.tier)
        params = self.estimator.load_parameters(tier)
        one_rep_max, is_new = self.estimator.estimate_1rm(history, node.id)
        target_weight, rir = self.estimator.prescribe(one_rep_max, tier)
        return PreparedExerciseSession(
            exercise_id=node.id,
            name=node.name,
            target_weight=target_weight,
            rir=rir,
            intensity=params.intensity,
            reps_range=self.estimator.reps_range,
            target_reps=self.estimator.target_reps,
            sets=params.sets_per_exercise,
            is_new=is_new,
            requires_test=is_new,
            tier=tier.value,
            notes=self.estimator.session_note(target_weight, tier, is_new),
            estimated_1rm=None if is_new else one_rep_max,
            gif_url=node.gif_url,
            instructions="\n".join(node.instructions),
        )

    def prepare(
        self,
        graph: ExerciseGraph,
        profile: UserCapabilityProfile,
        history: Iterable[ExerciseHistoryEntry],
        user_level: int,
        completed: Iterable[str],
        time_budget: float,
        fatigue_budget: float,
    ) -> list[PreparedExerciseSession]:
        history = list(history)
        selection = self.selector.select(
            graph, user_level, completed, time_budget, fatigue_budget
        )
        sessions = [self.prepare_exercise(node, profile, history) for node in selection.nodes]
        logger.info("Prepared %d exercises for level %d", len(sessions), user_level)
        return sessions
