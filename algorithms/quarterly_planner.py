from __future__ import annotations

import datetime
import logging

from models import (
    DecisionNode,
    PlannerAction,
    PlannerState,
    QuarterlyCycle,
    Tier,
    TIER_PARAMETERS,
    UserCapabilityProfile,
    VolumeLandmarks,
    resolve_tier,
)
from .math_tools import MathTools

logger = logging.getLogger(__name__)


class QuarterlyPlanner:
    """Plan a 12-week volume progression with a one-step Bellman lookahead.

    Each week every eligible action is scored as its immediate gain plus
    the discounted heuristic value of the state it leads to. The action
    with the strictly greatest score wins, so ties keep the first action
    in increase / maintain / deload order. Every ``deload_interval`` weeks
    a mandatory deload halves volume for the next week when fatigue is
    above 0.6. The heuristic is not an exact value function and the plan is not
    guaranteed to be optimal.
    """

    GAMMA = 0.95
    WEEKS = 12
    DELOAD_INTERVAL = 4
    INITIAL_FATIGUE = 0.2

    FORCED_DELOAD_FATIGUE = 0.6
    INCREASE_FATIGUE_LIMIT = 0.75
    DELOAD_FATIGUE_THRESHOLD = 0.6

    PROMOTION_ADHERENCE = 0.8
    PROMOTION_XP = 5000
    LOW_ADHERENCE = 0.6

    def __init__(
        self,
        gamma: float = GAMMA,
        weeks: int = WEEKS,
        deload_interval: int = DELOAD_INTERVAL,
    ) -> None:
        if not 0 <= gamma <= 1:
            raise ValueError("gamma must be between 0 and 1")
        if weeks < 1:
            raise ValueError("weeks must be positive")
        if deload_interval < 1:
            raise ValueError("deload_interval must be positive")
        self.gamma = gamma
        self.weeks = weeks
        self.deload_interval = deload_interval

    # landmarks and state

    @staticmethod
    def landmarks_for(
        tier: Tier | str | None, composition_multiplier: float = 1.0
    ) -> VolumeLandmarks:
        """Scale the tier's base landmarks and keep ``1 <= MEV <= MAV <= MRV``."""
        base = TIER_PARAMETERS[resolve_tier(tier)].base_landmarks
        mult = max(0.0, MathTools.finite_or(composition_multiplier, 1.0))
        mev = max(1.0, MathTools.round_half_up(base.mev * mult))
        mav = max(mev, MathTools.round_half_up(base.mav * mult))
        mrv = max(mav, MathTools.round_half_up(base.mrv * mult))
        return VolumeLandmarks(mev, mav, mrv)

    @staticmethod
    def sanitize(state: PlannerState, landmarks: VolumeLandmarks) -> PlannerState:
        volume = MathTools.finite_or(state.volume, landmarks.mev)
        fatigue = MathTools.finite_or(state.fatigue, 0.0)
        return PlannerState(
            volume=MathTools.clamp(volume, landmarks.mev, landmarks.mrv),
            fatigue=MathTools.clamp(fatigue, 0.0, 1.0),
        )

    # actions, transition and reward

    def possible_actions(
        self, state: PlannerState, landmarks: VolumeLandmarks, tier: Tier | str | None
    ) -> list[PlannerAction]:
        """Return eligible actions in increase / maintain / deload order.

        When no gate holds the state is stuck and ``maintain`` is returned
        on its own so a decision can always be made.
        """
        actions = []
        if state.volume < landmarks.mrv and state.fatigue < self.INCREASE_FATIGUE_LIMIT:
            step = TIER_PARAMETERS[resolve_tier(tier)].volume_step
            actions.append(PlannerAction(PlannerAction.INCREASE, step))
        if landmarks.mev <= state.volume <= landmarks.mav:
            actions.append(PlannerAction(PlannerAction.MAINTAIN, 0))
        if state.fatigue > self.DELOAD_FATIGUE_THRESHOLD or state.volume > landmarks.mav:
            actions.append(PlannerAction(PlannerAction.DELOAD, -int(state.volume * 0.4)))
        if not actions:
            logger.debug("No eligible action at %s, falling back to maintain", state)
            actions.append(PlannerAction(PlannerAction.MAINTAIN, 0))
        return actions

    @staticmethod
    def apply(
        state: PlannerState, action: PlannerAction, landmarks: VolumeLandmarks
    ) -> PlannerState:
        volume = MathTools.clamp(state.volume + action.delta, landmarks.mev, landmarks.mrv)
        fatigue = state.fatigue
        if action.kind == PlannerAction.INCREASE:
            fatigue += 0.08 * (action.delta / landmarks.mev)
        elif action.kind == PlannerAction.DELOAD:
            fatigue *= 0.5
        else:
            fatigue += 0.03
        return PlannerState(volume=volume, fatigue=MathTools.clamp(fatigue, 0.0, 1.0))

    def gain(
        self, state: PlannerState, action: PlannerAction, landmarks: VolumeLandmarks
    ) -> float:
        nxt = self.apply(state, action, landmarks)
        value = nxt.volume * 10
        if landmarks.mav * 0.9 <= nxt.volume <= landmarks.mav * 1.1:
            value *= 1.2
        if nxt.fatigue > 0.8:
            value *= 1 - nxt.fatigue
        if nxt.volume < landmarks.mev:
            value *= 0.5
        if action.kind == PlannerAction.DELOAD:
            value *= 0.3
        return value

    @staticmethod
    def value_estimate(
        state: PlannerState, landmarks: VolumeLandmarks, weeks_remaining: int
    ) -> float:
        if weeks_remaining <= 0:
            return 0.0
        value = state.volume * 10 * weeks_remaining
        value *= 1 - state.fatigue * 0.5
        proximity = max(0.0, 1 - abs(state.volume - landmarks.mav) / landmarks.mav)
        value *= 0.8 + 0.4 * proximity
        return value

    # solving

    def step(
        self,
        state: PlannerState,
        week: int,
        landmarks: VolumeLandmarks,
        tier: Tier | str | None,
    ) -> DecisionNode:
        """Choose week ``week``'s action.

        The decision records the state the chosen action leads to. When the
        mandatory deload fires it is only flagged here; ``carry_over`` gives
        the state the following week starts from.
        """
        state = self.sanitize(state, landmarks)
        remaining = self.weeks - week
        best_action = None
        best_value = float("-inf")
        best_gain = 0.0
        for action in self.possible_actions(state, landmarks, tier):
            nxt = self.apply(state, action, landmarks)
            gain = self.gain(state, action, landmarks)
            value = gain + self.gamma * self.value_estimate(nxt, landmarks, remaining)
            logger.debug("Week %d %s -> %.2f", week, action.kind, value)
            if value > best_value:
                best_action, best_value, best_gain = action, value, gain

        result = self.apply(state, best_action, landmarks)
        forced = week % self.deload_interval == 0 and result.fatigue > self.FORCED_DELOAD_FATIGUE
        if forced:
            logger.info("Week %d: mandatory deload (fatigue %.2f)", week, result.fatigue)
        return DecisionNode(
            week=week,
            state=result,
            action=best_action,
            value=best_value,
            gain=best_gain,
            forced_deload=forced,
        )

    @staticmethod
    def carry_over(decision: DecisionNode, landmarks: VolumeLandmarks) -> PlannerState:
        """Return the state the week after ``decision`` starts from."""
        if not decision.forced_deload:
            return decision.state
        return PlannerState(
            volume=max(landmarks.mev, decision.state.volume * 0.5),
            fatigue=max(0.2, decision.state.fatigue * 0.4),
        )

    def solve(
        self,
        initial: PlannerState,
        landmarks: VolumeLandmarks,
        tier: Tier | str | None,
    ) -> list[DecisionNode]:
        decisions = []
        state = self.sanitize(initial, landmarks)
        for week in range(1, self.weeks + 1):
            decision = self.step(state, week, landmarks, tier)
            decisions.append(decision)
            state = self.carry_over(decision, landmarks)
        return decisions

    def plan(
        self,
        profile: UserCapabilityProfile,
        start_date: datetime.date | None = None,
        initial_state: PlannerState | None = None,
    ) -> QuarterlyCycle:
        landmarks = self.landmarks_for(profile.tier, profile.composition_multiplier)
        if initial_state is None:
            initial_state = PlannerState(landmarks.mev, self.INITIAL_FATIGUE)
        start = start_date or datetime.date.today()
        decisions = self.solve(initial_state, landmarks, profile.tier)
        cycle = QuarterlyCycle(
            start_date=start,
            end_date=start + datetime.timedelta(weeks=self.weeks),
            decisions=tuple(decisions),
            total_xp=sum(d.gain for d in decisions),
            final_fatigue=decisions[-1].state.fatigue,
            volume_progression=tuple(d.state.volume for d in decisions),
            landmarks=landmarks,
        )
        logger.info(
            "Planned %d weeks for tier %s: xp=%.1f final fatigue=%.2f",
            len(decisions),
            resolve_tier(profile.tier).value,
            cycle.total_xp,
            cycle.final_fatigue,
        )
        return cycle

    def evaluate_cycle(
        self, profile: UserCapabilityProfile, adherence: float, xp_gained: float
    ) -> dict:
        """Judge a finished cycle and recommend whether to promote the tier."""
        if not 0 <= adherence <= 1:
            raise ValueError("adherence must be between 0 and 1")
        current = resolve_tier(profile.tier)
        new_tier = current
        if adherence >= self.PROMOTION_ADHERENCE and xp_gained > self.PROMOTION_XP:
            if current == Tier.BASICO:
                new_tier = Tier.INTERMEDIO
                recommendation = "Excellent progress. Intermediate exercises unlocked."
            elif current == Tier.INTERMEDIO:
                new_tier = Tier.AVANZADO
                recommendation = "Outstanding progress. Advanced programs unlocked."
            else:
                recommendation = "Keep up the excellent work on your advanced program."
        elif adherence < self.LOW_ADHERENCE:
            recommendation = "Low adherence detected. Consider reducing frequency or adjusting goals."
        else:
            recommendation = "Steady progress. Keep going to reach the next tier."

        if xp_gained > 5000:
            progress = "excellent"
        elif xp_gained > 3000:
            progress = "good"
        else:
            progress = "moderate"
        return {
            "previous_tier": current.value,
            "new_tier": new_tier.value,
            "promoted": new_tier != current,
            "adherence": adherence,
            "progress": progress,
            "recommendation": recommendation,
        }
