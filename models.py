from __future__ import annotations

import datetime
import logging
import unicodedata
from dataclasses import dataclass, field, asdict
from enum import Enum
from typing import NamedTuple, Optional

logger = logging.getLogger(__name__)

ATTRIBUTE_AXES = ("STR", "AGI", "STA", "INT", "DEX", "END")


class Tier(str, Enum):
    """Capability bracket derived from the sRPG score."""

    BASICO = "Básico"
    INTERMEDIO = "Intermedio"
    AVANZADO = "Avanzado"


class VolumeLandmarks(NamedTuple):
    mev: float
    mav: float
    mrv: float


@dataclass(frozen=True)
class TierParameters:
    """Numeric training parameters attached to a tier."""

    intensity: float
    rir: int
    volume_step: int
    sets_per_exercise: int
    base_landmarks: VolumeLandmarks
    frequency_range: tuple[int, int]
    rir_range: tuple[int, int]
    load_range: tuple[float, float]


TIER_PARAMETERS: dict[Tier, TierParameters] = {
    Tier.BASICO: TierParameters(
        intensity=0.7,
        rir=3,
        volume_step=1,
        sets_per_exercise=3,
        base_landmarks=VolumeLandmarks(10, 15, 20),
        frequency_range=(2, 3),
        rir_range=(3, 4),
        load_range=(0.65, 0.75),
    ),
    Tier.INTERMEDIO: TierParameters(
        intensity=0.8,
        rir=2,
        volume_step=2,
        sets_per_exercise=4,
        base_landmarks=VolumeLandmarks(12, 18, 24),
        frequency_range=(3, 4),
        rir_range=(2, 3),
        load_range=(0.75, 0.85),
    ),
    Tier.AVANZADO: TierParameters(
        intensity=0.9,
        rir=1,
        volume_step=3,
        sets_per_exercise=5,
        base_landmarks=VolumeLandmarks(15, 22, 30),
        frequency_range=(4, 5),
        rir_range=(0, 1),
        load_range=(0.85, 0.95),
    ),
}


def _fold(text: str) -> str:
    decomposed = unicodedata.normalize("NFKD", text)
    return "".join(c for c in decomposed if not unicodedata.combining(c)).lower().strip()


_TIER_LOOKUP = {_fold(t.value): t for t in Tier}
_TIER_LOOKUP.update({_fold(t.name): t for t in Tier})


def resolve_tier(value: Tier | str | None) -> Tier:
    """Return the ``Tier`` for ``value``.

    Names are matched case- and accent-insensitively, so ``"basico"`` and
    ``"BÁSICO"`` both resolve. Anything unrecognised degrades to
    ``Tier.INTERMEDIO`` with a warning instead of failing the request.
    """
    if isinstance(value, Tier):
        return value
    if isinstance(value, str):
        tier = _TIER_LOOKUP.get(_fold(value))
        if tier is not None:
            return tier
    logger.warning("Unknown tier %r, falling back to %s", value, Tier.INTERMEDIO.value)
    return Tier.INTERMEDIO


@dataclass(frozen=True)
class ExerciseNode:
    """One exercise in the unlock graph, with its costs and metadata."""

    id: str
    level_required: int
    base_xp: float
    fatigue_cost: float
    execution_time: float
    muscle_targets: tuple[float, ...] = (0.0,) * len(ATTRIBUTE_AXES)
    prerequisites: frozenset[str] = frozenset()
    unlocks: frozenset[str] = frozenset()
    name: str = ""
    gif_url: str = ""
    target_muscle: str = "unknown"
    equipment: str = "unknown"
    body_part: str = "unknown"
    secondary_muscles: tuple[str, ...] = ()
    instructions: tuple[str, ...] = ()

    def muscle_target_map(self) -> dict[str, float]:
        return dict(zip(ATTRIBUTE_AXES, self.muscle_targets))

    def to_dict(self) -> dict:
        data = asdict(self)
        data["prerequisites"] = sorted(self.prerequisites)
        data["unlocks"] = sorted(self.unlocks)
        data["muscle_targets"] = self.muscle_target_map()
        data["secondary_muscles"] = list(self.secondary_muscles)
        data["instructions"] = list(self.instructions)
        return data


@dataclass(frozen=True)
class ExerciseHistoryEntry:
    exercise_id: str
    weight: float
    reps: int
    date: datetime.date
    estimated_1rm: Optional[float] = None


@dataclass(frozen=True)
class UserCapabilityProfile:
    s_rpg: float
    tier: Tier
    composition_multiplier: float = 1.0
    frequency_range: tuple[int, int] = (3, 4)
    rir_range: tuple[int, int] = (2, 3)
    load_range: tuple[float, float] = (0.75, 0.85)
    estimated_body_fat: Optional[float] = None

    @classmethod
    def for_tier(
        cls,
        tier: Tier | str,
        s_rpg: float = 0.0,
        composition_multiplier: float = 1.0,
        estimated_body_fat: float | None = None,
    ) -> "UserCapabilityProfile":
        """Build a profile whose derived ranges come from the tier table."""
        resolved = resolve_tier(tier)
        params = TIER_PARAMETERS[resolved]
        return cls(
            s_rpg=s_rpg,
            tier=resolved,
            composition_multiplier=composition_multiplier,
            frequency_range=params.frequency_range,
            rir_range=params.rir_range,
            load_range=params.load_range,
            estimated_body_fat=estimated_body_fat,
        )

    def to_dict(self) -> dict:
        data = asdict(self)
        data["tier"] = self.tier.value
        return data


@dataclass(frozen=True)
class PlannerState:
    """Weekly training volume and normalized fatigue."""

    volume: float
    fatigue: float


@dataclass(frozen=True)
class PlannerAction:
    kind: str
    delta: float

    INCREASE = "increase"
    MAINTAIN = "maintain"
    DELOAD = "deload"


@dataclass(frozen=True)
class DecisionNode:
    week: int
    state: PlannerState
    action: PlannerAction
    value: float
    gain: float
    forced_deload: bool = False


@dataclass(frozen=True)
class QuarterlyCycle:
    start_date: datetime.date
    end_date: datetime.date
    decisions: tuple[DecisionNode, ...]
    total_xp: float
    final_fatigue: float
    volume_progression: tuple[float, ...]
    landmarks: VolumeLandmarks

    def to_dict(self) -> dict:
        return {
            "start_date": self.start_date.isoformat(),
            "end_date": self.end_date.isoformat(),
            "total_xp": self.total_xp,
            "final_fatigue": self.final_fatigue,
            "volume_progression": list(self.volume_progression),
            "landmarks": self.landmarks._asdict(),
            "decisions": [
                {
                    "week": d.week,
                    "volume": d.state.volume,
                    "fatigue": d.state.fatigue,
                    "action": d.action.kind,
                    "delta": d.action.delta,
                    "value": d.value,
                    "gain": d.gain,
                    "forced_deload": d.forced_deload,
                }
                for d in self.decisions
            ],
        }


@dataclass
class SelectionResult:
    nodes: list[ExerciseNode] = field(default_factory=list)
    total_xp: float = 0.0
    total_time: float = 0.0
    total_fatigue: float = 0.0
    muscle_balance: float = 0.0

    @property
    def ids(self) -> list[str]:
        return [n.id for n in self.nodes]


@dataclass(frozen=True)
class PreparedExerciseSession:
    exercise_id: str
    name: str
    target_weight: float
    rir: int
    intensity: float
    reps_range: str
    target_reps: int
    sets: int
    is_new: bool
    requires_test: bool
    tier: str
    notes: str
    estimated_1rm: Optional[float] = None
    gif_url: str = ""
    instructions: str = ""

    def to_dict(self) -> dict:
        return asdict(self)
