import pytest
import os
import sys

sys.path.append(os.path.dirname(os.path.dirname(__file__)))

from rank_engine.models import (
    ExerciseConfig,
    ExerciseMuscleLink,
    ExerciseType,
    Muscle,
    MuscleGroup,
    MuscleIntensity,
    SubTier,
    Tier,
    UserProfile,
)
from rank_engine.ranking import ReferenceData
from rank_engine.tiers import TierTable

# Bronze < Silver < Gold < Elite, two sub-tiers each except Elite
TIERS = [Tier(1, "Bronze"), Tier(2, "Silver"), Tier(3, "Gold"), Tier(4, "Elite")]
SUB_TIERS = [
    SubTier(11, 1, "Bronze II", 0),
    SubTier(12, 1, "Bronze I", 250),
    SubTier(21, 2, "Silver II", 500),
    SubTier(22, 2, "Silver I", 1000),
    SubTier(31, 3, "Gold II", 2000),
    SubTier(32, 3, "Gold I", 3000),
    SubTier(41, 4, "Elite", 4500),
]


def build_tier_table():
    return TierTable(TIERS, SUB_TIERS)


def build_reference(tier_table=None):
    exercises = [
        ExerciseConfig("bench", "Bench Press", ExerciseType.FREE_WEIGHT, alpha=0.1,
                       elite_swr_male=3.0, elite_swr_female=1.8),
        ExerciseConfig("squat", "Squat", ExerciseType.FREE_WEIGHT, alpha=0.1,
                       elite_swr_male=3.5, elite_swr_female=2.5),
        ExerciseConfig("pushup", "Push-Up", ExerciseType.CALISTHENICS, alpha=0.2,
                       elite_reps_male=80, elite_reps_female=50),
        ExerciseConfig("weighted_pullup", "Weighted Pull-Up", ExerciseType.WEIGHTED_BODY_WEIGHT,
                       alpha=0.1, elite_swr_male=1.9, elite_swr_female=1.45),
        ExerciseConfig("assisted_dip", "Assisted Dip", ExerciseType.ASSISTED_BODY_WEIGHT,
                       alpha=0.1, elite_swr_male=1.6, elite_swr_female=1.2),
        ExerciseConfig("plank", "Plank", ExerciseType.CARDIO, alpha=0.1,
                       elite_duration_male=600, elite_duration_female=600),
    ]
    muscle_groups = [
        MuscleGroup("upper", "Upper Body", 0.5),
        MuscleGroup("lower", "Lower Body", 0.5),
    ]
    muscles = [
        Muscle("chest", "Chest", "upper", 0.6),
        Muscle("triceps", "Triceps", "upper", 0.4),
        Muscle("quads", "Quadriceps", "lower", 1.0),
    ]
    links = [
        ExerciseMuscleLink("bench", "chest", MuscleIntensity.PRIMARY, 1.0),
        ExerciseMuscleLink("bench", "triceps", MuscleIntensity.PRIMARY, 0.5),
        ExerciseMuscleLink("squat", "quads", MuscleIntensity.PRIMARY, 1.0),
        ExerciseMuscleLink("pushup", "chest", MuscleIntensity.PRIMARY, 0.8),
        ExerciseMuscleLink("pushup", "triceps", MuscleIntensity.SECONDARY, 0.5),
        ExerciseMuscleLink("assisted_dip", "triceps", MuscleIntensity.PRIMARY, 1.0),
    ]
    return ReferenceData.build(exercises, muscles, muscle_groups, links, tier_table or build_tier_table())


@pytest.fixture
def tier_table():
    return build_tier_table()


@pytest.fixture
def reference():
    return build_reference()


@pytest.fixture
def make_reference():
    """Same catalog as `reference`, with a custom tier table."""
    return build_reference


@pytest.fixture
def free_profile():
    return UserProfile(user_id="user-1", gender="male", bodyweight_kg=80.0, is_premium=False,
                       rank_calculator_balance=2)


@pytest.fixture
def premium_profile():
    return UserProfile(user_id="user-1", gender="male", bodyweight_kg=80.0, is_premium=True)
