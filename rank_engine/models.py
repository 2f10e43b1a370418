"""Value types shared by the ranking engine.

Reference data (exercises, muscles, tiers) and stored rank state are frozen
dataclasses; every step of a calculation pass returns new copies instead of
assigning onto rows fetched from the database.
"""

from __future__ import annotations

from dataclasses import asdict, dataclass, field, fields
from datetime import datetime
from enum import Enum
from typing import Any, Dict, Mapping, Optional


class ExerciseType(Enum):
    FREE_WEIGHT = "free_weight"
    WEIGHTED_BODY_WEIGHT = "weighted_body_weight"
    ASSISTED_BODY_WEIGHT = "assisted_body_weight"
    CALISTHENICS = "calisthenics"
    CARDIO = "cardio"


class MuscleIntensity(Enum):
    PRIMARY = "primary"
    SECONDARY = "secondary"


class CalculationSource(Enum):
    """Where a calculation request originated."""
    WORKOUT = "workout"
    ONBOARDING = "onboarding"
    CALCULATOR = "calculator"


class EntityKind(Enum):
    USER = "user"
    MUSCLE_GROUP = "muscle_group"
    MUSCLE = "muscle"
    EXERCISE = "exercise"


def _float_or_none(value: Any) -> Optional[float]:
    # NUMERIC columns come back from psycopg2 as Decimal
    return float(value) if value is not None else None


# --- Reference data ---

@dataclass(frozen=True)
class ExerciseConfig:
    id: str
    name: str
    exercise_type: ExerciseType
    alpha: Optional[float] = None
    elite_reps_male: Optional[float] = None
    elite_reps_female: Optional[float] = None
    elite_duration_male: Optional[float] = None
    elite_duration_female: Optional[float] = None
    elite_swr_male: Optional[float] = None
    elite_swr_female: Optional[float] = None

    @classmethod
    def from_row(cls, row: Mapping[str, Any]) -> ExerciseConfig:
        return cls(
            id=str(row['id']),
            name=row.get('name') or '',
            exercise_type=ExerciseType(row.get('exercise_type') or ExerciseType.FREE_WEIGHT.value),
            alpha=_float_or_none(row.get('alpha_value')),
            elite_reps_male=_float_or_none(row.get('elite_reps_male')),
            elite_reps_female=_float_or_none(row.get('elite_reps_female')),
            elite_duration_male=_float_or_none(row.get('elite_duration_male')),
            elite_duration_female=_float_or_none(row.get('elite_duration_female')),
            elite_swr_male=_float_or_none(row.get('elite_swr_male')),
            elite_swr_female=_float_or_none(row.get('elite_swr_female')),
        )


@dataclass(frozen=True)
class MuscleGroup:
    id: str
    name: str
    overall_weight: float


@dataclass(frozen=True)
class Muscle:
    id: str
    name: str
    muscle_group_id: str
    muscle_group_weight: float


@dataclass(frozen=True)
class ExerciseMuscleLink:
    exercise_id: str
    muscle_id: str
    intensity: MuscleIntensity
    weight: float


@dataclass(frozen=True)
class Tier:
    id: int
    name: str


@dataclass(frozen=True)
class SubTier:
    id: int
    tier_id: int
    name: str
    min_score: int


# --- Per-call inputs ---

@dataclass(frozen=True)
class PerformanceInput:
    """One logged set (or calculator entry) to be scored."""
    exercise_id: str
    reps: int = 0
    duration: float = 0.0
    weight_kg: float = 0.0
    session_set_id: Optional[str] = None


@dataclass(frozen=True)
class UserProfile:
    user_id: str
    gender: str
    bodyweight_kg: Optional[float]
    is_premium: bool = False
    rank_calculator_balance: int = 0


# --- Stored rank state ---

@dataclass(frozen=True, kw_only=True)
class RankState:
    user_id: str
    permanent_score: int = 0
    permanent_tier_id: Optional[int] = None
    permanent_sub_tier_id: Optional[int] = None
    leaderboard_score: int = 0
    leaderboard_tier_id: Optional[int] = None
    leaderboard_sub_tier_id: Optional[int] = None
    last_calculated_at: Optional[datetime] = None

    @property
    def kind(self) -> EntityKind:
        raise NotImplementedError

    @property
    def entity_id(self) -> str:
        raise NotImplementedError

    @classmethod
    def from_row(cls, row: Mapping[str, Any]):
        names = {f.name for f in fields(cls)}
        values = {k: v for k, v in row.items() if k in names}
        values['user_id'] = str(row['user_id'])
        # NULL scores on legacy rows are treated as zero
        values['permanent_score'] = int(row.get('permanent_score') or 0)
        values['leaderboard_score'] = int(row.get('leaderboard_score') or 0)
        return cls(**values)

    def to_row(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass(frozen=True, kw_only=True)
class UserRank(RankState):
    @property
    def kind(self) -> EntityKind:
        return EntityKind.USER

    @property
    def entity_id(self) -> str:
        return self.user_id


@dataclass(frozen=True, kw_only=True)
class MuscleGroupRank(RankState):
    muscle_group_id: str
    locked: bool = False

    @property
    def kind(self) -> EntityKind:
        return EntityKind.MUSCLE_GROUP

    @property
    def entity_id(self) -> str:
        return self.muscle_group_id

    @classmethod
    def from_row(cls, row: Mapping[str, Any]):
        return super().from_row({**row, 'muscle_group_id': str(row['muscle_group_id']),
                                 'locked': bool(row.get('locked'))})


@dataclass(frozen=True, kw_only=True)
class MuscleRank(RankState):
    muscle_id: str
    locked: bool = False

    @property
    def kind(self) -> EntityKind:
        return EntityKind.MUSCLE

    @property
    def entity_id(self) -> str:
        return self.muscle_id

    @classmethod
    def from_row(cls, row: Mapping[str, Any]):
        return super().from_row({**row, 'muscle_id': str(row['muscle_id']),
                                 'locked': bool(row.get('locked'))})


@dataclass(frozen=True, kw_only=True)
class ExerciseRank(RankState):
    exercise_id: str
    weight_kg: float = 0.0
    reps: int = 0
    bodyweight_kg: float = 0.0
    estimated_1rm: float = 0.0
    swr: float = 0.0
    session_set_id: Optional[str] = None

    @property
    def kind(self) -> EntityKind:
        return EntityKind.EXERCISE

    @property
    def entity_id(self) -> str:
        return self.exercise_id

    @classmethod
    def from_row(cls, row: Mapping[str, Any]):
        return super().from_row({
            **row,
            'exercise_id': str(row['exercise_id']),
            'weight_kg': _float_or_none(row.get('weight_kg')) or 0.0,
            'reps': int(row.get('reps') or 0),
            'bodyweight_kg': _float_or_none(row.get('bodyweight_kg')) or 0.0,
            'estimated_1rm': _float_or_none(row.get('estimated_1rm')) or 0.0,
            'swr': _float_or_none(row.get('swr')) or 0.0,
            'session_set_id': str(row['session_set_id']) if row.get('session_set_id') else None,
        })


@dataclass(frozen=True)
class UserRankStates:
    """Everything stored for one user, keyed by entity id."""
    user_rank: Optional[UserRank] = None
    muscle_group_ranks: Dict[str, MuscleGroupRank] = field(default_factory=dict)
    muscle_ranks: Dict[str, MuscleRank] = field(default_factory=dict)
    exercise_ranks: Dict[str, ExerciseRank] = field(default_factory=dict)
