"""
Rolls exercise scores up the muscle hierarchy.

exercise -> muscle:        mean of the top 3 weighted primary contributions, zero-padded
muscle -> muscle group:    sum of muscle score * muscle_group_weight
muscle group -> overall:   sum of group score * overall_weight
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Dict, FrozenSet, Iterable, List, Mapping, Sequence

from .constants import TOP_MUSCLE_CONTRIBUTIONS
from .formulas import round_half_up
from .models import ExerciseMuscleLink, ExerciseRank, Muscle, MuscleGroup, MuscleIntensity
from .scoring import ExerciseScore

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class AffectedEntities:
    exercise_ids: FrozenSet[str]
    muscle_ids: FrozenSet[str]
    muscle_group_ids: FrozenSet[str]


@dataclass(frozen=True)
class AggregatedScores:
    exercise_scores: Dict[str, int]
    muscle_scores: Dict[str, int]
    muscle_group_scores: Dict[str, int]
    overall_score: int


def find_affected_entities(
    exercise_ids: Iterable[str],
    links: Iterable[ExerciseMuscleLink],
    muscles: Iterable[Muscle],
) -> AffectedEntities:
    """Entities reachable from the batch's exercises through primary links."""
    affected_exercises = frozenset(exercise_ids)
    affected_muscles = frozenset(
        link.muscle_id
        for link in links
        if link.exercise_id in affected_exercises and link.intensity is MuscleIntensity.PRIMARY
    )
    affected_groups = frozenset(m.muscle_group_id for m in muscles if m.id in affected_muscles)
    return AffectedEntities(affected_exercises, affected_muscles, affected_groups)


def combine_exercise_scores(
    stored_ranks: Mapping[str, ExerciseRank],
    batch_scores: Mapping[str, ExerciseScore],
) -> Dict[str, int]:
    """Stored permanent exercise scores overlaid with this batch's scores (batch wins)."""
    combined = {exercise_id: rank.permanent_score for exercise_id, rank in stored_ranks.items()}
    for exercise_id, exercise_score in batch_scores.items():
        combined[exercise_id] = exercise_score.score
    return combined


def top_contributions_mean(contributions: Sequence[float], count: int = TOP_MUSCLE_CONTRIBUTIONS) -> int:
    """Mean of the `count` largest contributions; missing ones count as zero."""
    top = sorted(contributions, reverse=True)[:count]
    top.extend([0.0] * (count - len(top)))
    return round_half_up(sum(top) / count)


def calculate_muscle_scores(
    exercise_scores: Mapping[str, int],
    links: Iterable[ExerciseMuscleLink],
    muscles: Iterable[Muscle],
) -> Dict[str, int]:
    contributions: Dict[str, List[float]] = {m.id: [] for m in muscles}
    for link in links:
        if link.intensity is not MuscleIntensity.PRIMARY:
            continue
        score = exercise_scores.get(link.exercise_id)
        if score is None or link.muscle_id not in contributions:
            continue
        contributions[link.muscle_id].append(score * link.weight)

    muscle_scores = {
        muscle_id: top_contributions_mean(weighted) for muscle_id, weighted in contributions.items()
    }
    logger.debug("Muscle contributions: %s", contributions)
    return muscle_scores


def calculate_muscle_group_scores(
    muscle_scores: Mapping[str, int],
    muscles: Iterable[Muscle],
    muscle_groups: Iterable[MuscleGroup],
) -> Dict[str, int]:
    weighted_sums: Dict[str, float] = {g.id: 0.0 for g in muscle_groups}
    for muscle in muscles:
        if muscle.muscle_group_id not in weighted_sums:
            continue
        weighted_sums[muscle.muscle_group_id] += muscle_scores.get(muscle.id, 0) * muscle.muscle_group_weight
    return {group_id: round_half_up(total) for group_id, total in weighted_sums.items()}


def calculate_overall_score(muscle_group_scores: Mapping[str, int], muscle_groups: Iterable[MuscleGroup]) -> int:
    total = sum(muscle_group_scores.get(g.id, 0) * g.overall_weight for g in muscle_groups)
    return round_half_up(total)


def aggregate_scores(
    exercise_scores: Mapping[str, int],
    links: Sequence[ExerciseMuscleLink],
    muscles: Sequence[Muscle],
    muscle_groups: Sequence[MuscleGroup],
) -> AggregatedScores:
    muscle_scores = calculate_muscle_scores(exercise_scores, links, muscles)
    muscle_group_scores = calculate_muscle_group_scores(muscle_scores, muscles, muscle_groups)
    overall_score = calculate_overall_score(muscle_group_scores, muscle_groups)
    return AggregatedScores(
        exercise_scores=dict(exercise_scores),
        muscle_scores=muscle_scores,
        muscle_group_scores=muscle_group_scores,
        overall_score=overall_score,
    )
