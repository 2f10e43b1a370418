"""Per-exercise scoring: turns raw performance inputs into rank points."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Dict, Iterable, Mapping, Optional, Tuple

from .constants import DEFAULT_ALPHA, MAX_RANK_POINTS
from .formulas import curve_score, one_rep_max, strength_to_weight_ratio
from .models import ExerciseConfig, ExerciseType, PerformanceInput

logger = logging.getLogger(__name__)

WEIGHT_BASED_TYPES = (
    ExerciseType.FREE_WEIGHT,
    ExerciseType.WEIGHTED_BODY_WEIGHT,
    ExerciseType.ASSISTED_BODY_WEIGHT,
)


@dataclass(frozen=True)
class ExerciseScore:
    """Best score of a batch for one exercise and the input that produced it."""
    exercise_id: str
    exercise_type: ExerciseType
    score: int
    performance: PerformanceInput


def effective_weight(exercise_type: ExerciseType, weight_kg: float, bodyweight_kg: float) -> float:
    """Load actually moved, accounting for bodyweight on bodyweight exercises."""
    if exercise_type is ExerciseType.WEIGHTED_BODY_WEIGHT:
        return weight_kg + bodyweight_kg
    if exercise_type is ExerciseType.ASSISTED_BODY_WEIGHT:
        return max(0.0, bodyweight_kg - weight_kg)
    if exercise_type is ExerciseType.CALISTHENICS:
        return bodyweight_kg
    return weight_kg


def _by_gender(gender: str, male_value: Optional[float], female_value: Optional[float]) -> float:
    value = female_value if gender == 'female' else male_value
    return value or 0.0


def performance_ratios(
    exercise: ExerciseConfig,
    performance: PerformanceInput,
    gender: str,
    bodyweight_kg: float,
) -> Tuple[float, float]:
    """Returns (user_ratio, elite_ratio) for the exercise's type."""
    exercise_type = exercise.exercise_type

    if exercise_type is ExerciseType.CALISTHENICS:
        return float(performance.reps), _by_gender(gender, exercise.elite_reps_male, exercise.elite_reps_female)

    if exercise_type is ExerciseType.CARDIO:
        return (
            float(performance.duration),
            _by_gender(gender, exercise.elite_duration_male, exercise.elite_duration_female),
        )

    if exercise_type in WEIGHT_BASED_TYPES:
        total_weight = effective_weight(exercise_type, performance.weight_kg, bodyweight_kg)
        swr = strength_to_weight_ratio(one_rep_max(total_weight, performance.reps), bodyweight_kg)
        return swr or 0.0, _by_gender(gender, exercise.elite_swr_male, exercise.elite_swr_female)

    raise ValueError(f"Unhandled exercise type: {exercise_type!r}")


def score_performance(
    exercise: ExerciseConfig,
    performance: PerformanceInput,
    gender: str,
    bodyweight_kg: float,
) -> int:
    user_ratio, elite_ratio = performance_ratios(exercise, performance, gender, bodyweight_kg)
    if elite_ratio <= 0:
        logger.error(
            "Exercise %s has no elite reference for gender '%s'; scoring as 0", exercise.id, gender
        )
    alpha = exercise.alpha if exercise.alpha is not None else DEFAULT_ALPHA
    return curve_score(alpha, elite_ratio, user_ratio, MAX_RANK_POINTS)


def calculate_exercise_scores(
    inputs: Iterable[PerformanceInput],
    exercises: Mapping[str, ExerciseConfig],
    gender: str,
    bodyweight_kg: float,
) -> Dict[str, ExerciseScore]:
    """
    Scores every input and keeps the single best one per exercise.
    On equal scores the earlier input wins. Inputs for unknown exercises are skipped.
    """
    best: Dict[str, ExerciseScore] = {}
    for performance in inputs:
        exercise = exercises.get(performance.exercise_id)
        if exercise is None:
            logger.warning("Skipping input for unknown exercise %s", performance.exercise_id)
            continue

        score = score_performance(exercise, performance, gender, bodyweight_kg)
        current = best.get(exercise.id)
        if current is None or score > current.score:
            best[exercise.id] = ExerciseScore(
                exercise_id=exercise.id,
                exercise_type=exercise.exercise_type,
                score=score,
                performance=performance,
            )
    return best


def best_set_metrics(exercise_score: ExerciseScore, bodyweight_kg: float) -> Tuple[float, float]:
    """(estimated_1rm, swr) stored alongside an exercise rank, 0 when unavailable."""
    performance = exercise_score.performance
    total_weight = effective_weight(exercise_score.exercise_type, performance.weight_kg, bodyweight_kg)
    estimated_1rm = one_rep_max(total_weight, performance.reps)
    swr = strength_to_weight_ratio(estimated_1rm, bodyweight_kg)
    return estimated_1rm or 0.0, swr or 0.0
