"""
Dual-track rank updates.

Every ranked entity keeps two tracks:
  - permanent:   the best score ever reached, never decreases
  - leaderboard: the score shown on public boards, can be frozen for free
                 accounts (muscles and muscle groups after a workout)

update_user_ranks() runs one calculation pass for one user:
    sync leaderboard -> score exercises -> combine with stored scores
    -> aggregate (muscles, groups, overall) -> update each affected entity
    -> build report, payload and rank-up events
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Dict, List, Mapping, Optional, Sequence, Tuple

from .aggregation import aggregate_scores, combine_exercise_scores, find_affected_entities
from .models import (
    CalculationSource,
    EntityKind,
    ExerciseConfig,
    ExerciseMuscleLink,
    ExerciseRank,
    Muscle,
    MuscleGroup,
    MuscleGroupRank,
    MuscleRank,
    PerformanceInput,
    RankState,
    SubTier,
    UserProfile,
    UserRank,
    UserRankStates,
)
from .payload import (
    RankChange,
    RankingResults,
    RankUpdate,
    build_payload,
    build_rank_up_events,
    build_report,
)
from .scoring import ExerciseScore, best_set_metrics, calculate_exercise_scores
from .sync import sync_leaderboard_scores
from .tiers import TierTable

logger = logging.getLogger(__name__)

__all__ = [
    'ReferenceData',
    'should_freeze',
    'locked_flag',
    'update_user_rank',
    'update_locked_rank',
    'update_exercise_rank',
    'update_user_ranks',
]

LOCKABLE_KINDS = (EntityKind.MUSCLE, EntityKind.MUSCLE_GROUP)


@dataclass(frozen=True)
class ReferenceData:
    """Catalogs a calculation pass reads but never writes."""
    exercises: Dict[str, ExerciseConfig]
    muscles: Tuple[Muscle, ...]
    muscle_groups: Tuple[MuscleGroup, ...]
    links: Tuple[ExerciseMuscleLink, ...]
    tier_table: TierTable
    entity_names: Dict[Tuple[EntityKind, str], str] = field(default_factory=dict)

    @classmethod
    def build(cls, exercises, muscles, muscle_groups, links, tier_table: TierTable) -> ReferenceData:
        exercises = {e.id: e for e in exercises} if not isinstance(exercises, Mapping) else dict(exercises)
        muscles = tuple(muscles)
        muscle_groups = tuple(muscle_groups)

        names: Dict[Tuple[EntityKind, str], str] = {}
        names.update({(EntityKind.EXERCISE, e.id): e.name for e in exercises.values()})
        names.update({(EntityKind.MUSCLE, m.id): m.name for m in muscles})
        names.update({(EntityKind.MUSCLE_GROUP, g.id): g.name for g in muscle_groups})

        return cls(
            exercises=exercises,
            muscles=muscles,
            muscle_groups=muscle_groups,
            links=tuple(links),
            tier_table=tier_table,
            entity_names=names,
        )


def should_freeze(
    kind: EntityKind,
    source: CalculationSource,
    is_premium: bool,
    currently_locked: Optional[bool],
) -> bool:
    """
    A muscle or muscle group rank of a free account is frozen after a workout,
    but only once it has been stored unlocked (i.e. set by onboarding/calculator).
    Exercise and user ranks are never frozen.
    """
    if kind not in LOCKABLE_KINDS:
        return False
    return source is CalculationSource.WORKOUT and not is_premium and currently_locked is False


def locked_flag(source: CalculationSource, is_premium: bool) -> bool:
    """Value stored in `locked` on a muscle/group rank written by this pass."""
    if source is CalculationSource.WORKOUT:
        return not is_premium
    return False


def _resolve_tracks(
    tier_table: TierTable,
    permanent_score: int,
    leaderboard_score: int,
    kind: EntityKind,
    entity_id: str,
) -> Optional[Tuple[SubTier, SubTier]]:
    permanent = tier_table.resolve(permanent_score)
    leaderboard = tier_table.resolve(leaderboard_score)
    if permanent is None or leaderboard is None:
        logger.warning(
            "No sub-tier for %s %s (permanent=%s, leaderboard=%s); keeping stored rank",
            kind.value, entity_id, permanent_score, leaderboard_score,
        )
        return None
    return permanent, leaderboard


def _track_values(permanent_score, leaderboard_score, tracks, now) -> dict:
    permanent, leaderboard = tracks
    return dict(
        permanent_score=permanent_score,
        permanent_tier_id=permanent.tier_id,
        permanent_sub_tier_id=permanent.id,
        leaderboard_score=leaderboard_score,
        leaderboard_tier_id=leaderboard.tier_id,
        leaderboard_sub_tier_id=leaderboard.id,
        last_calculated_at=now,
    )


def _is_change(previous: Optional[RankState], current: RankState) -> bool:
    if previous is None:
        return True
    return (
        current.permanent_score != previous.permanent_score
        or current.permanent_sub_tier_id != previous.permanent_sub_tier_id
    )


def _finish(previous: Optional[RankState], current: RankState) -> RankUpdate:
    change = RankChange.between(previous, current) if _is_change(previous, current) else None
    return RankUpdate(previous=previous, state=current, change=change)


def update_user_rank(
    user_id: str,
    overall_score: int,
    previous: Optional[UserRank],
    tier_table: TierTable,
    now: datetime,
) -> RankUpdate:
    """The overall rank moves only when the new overall beats the stored leaderboard score."""
    baseline = previous.leaderboard_score if previous else 0
    if overall_score <= baseline:
        return RankUpdate(previous=previous)

    permanent_score = max(overall_score, previous.permanent_score if previous else 0)
    tracks = _resolve_tracks(tier_table, permanent_score, overall_score, EntityKind.USER, user_id)
    if tracks is None:
        return RankUpdate(previous=previous)

    current = UserRank(user_id=user_id, **_track_values(permanent_score, overall_score, tracks, now))
    return _finish(previous, current)


def update_locked_rank(
    kind: EntityKind,
    user_id: str,
    entity_id: str,
    new_score: int,
    previous: Optional[RankState],
    tier_table: TierTable,
    source: CalculationSource,
    is_premium: bool,
    now: datetime,
) -> RankUpdate:
    """Muscle and muscle group ranks: may be frozen, otherwise move only on improvement."""
    currently_locked = getattr(previous, 'locked', None) if previous is not None else None
    if should_freeze(kind, source, is_premium, currently_locked):
        return RankUpdate(previous=previous)
    if previous is not None and new_score <= previous.leaderboard_score:
        return RankUpdate(previous=previous)

    permanent_score = max(new_score, previous.permanent_score if previous else 0)
    tracks = _resolve_tracks(tier_table, permanent_score, new_score, kind, entity_id)
    if tracks is None:
        return RankUpdate(previous=previous)

    values = _track_values(permanent_score, new_score, tracks, now)
    locked = locked_flag(source, is_premium)
    if kind is EntityKind.MUSCLE_GROUP:
        current = MuscleGroupRank(user_id=user_id, muscle_group_id=entity_id, locked=locked, **values)
    elif kind is EntityKind.MUSCLE:
        current = MuscleRank(user_id=user_id, muscle_id=entity_id, locked=locked, **values)
    else:
        raise ValueError(f"{kind!r} ranks are not lockable")
    return _finish(previous, current)


def update_exercise_rank(
    user_id: str,
    exercise_score: ExerciseScore,
    previous: Optional[ExerciseRank],
    bodyweight_kg: float,
    tier_table: TierTable,
    now: datetime,
) -> RankUpdate:
    """
    Exercise ranks are written only when the permanent score improves. The leaderboard
    track always reflects this batch's best set, the permanent track the best ever.
    """
    new_score = exercise_score.score
    previous_permanent = previous.permanent_score if previous else 0
    permanent_score = new_score if new_score > previous_permanent else previous_permanent

    tracks = _resolve_tracks(
        tier_table, permanent_score, new_score, EntityKind.EXERCISE, exercise_score.exercise_id
    )
    if tracks is None:
        return RankUpdate(previous=previous)

    improved = previous is None or permanent_score > previous.permanent_score
    if not improved:
        return RankUpdate(previous=previous)

    performance = exercise_score.performance
    estimated_1rm, swr = best_set_metrics(exercise_score, bodyweight_kg)
    current = ExerciseRank(
        user_id=user_id,
        exercise_id=exercise_score.exercise_id,
        weight_kg=performance.weight_kg,
        reps=performance.reps,
        bodyweight_kg=bodyweight_kg,
        estimated_1rm=estimated_1rm,
        swr=swr,
        session_set_id=performance.session_set_id,
        **_track_values(permanent_score, new_score, tracks, now),
    )
    # A first calculation that scored nothing is stored but not reported as a change.
    change = RankChange.between(previous, current) if new_score > 0 else None
    return RankUpdate(previous=previous, state=current, change=change)


def update_user_ranks(
    profile: UserProfile,
    reference: ReferenceData,
    states: UserRankStates,
    inputs: Sequence[PerformanceInput],
    source: CalculationSource,
    now: Optional[datetime] = None,
) -> RankingResults:
    """
    Runs one ranking pass for a user and returns what changed. Pure: nothing is
    read or written here, the caller persists RankingResults.payload.
    """
    if not profile.bodyweight_kg or profile.bodyweight_kg <= 0:
        logger.info("User %s has no bodyweight recorded; skipping rank calculation", profile.user_id)
        return RankingResults.empty()

    now = now or datetime.now(timezone.utc)
    tier_table = reference.tier_table

    sync = sync_leaderboard_scores(states, tier_table)
    initial = sync.states

    batch_scores = calculate_exercise_scores(
        inputs, reference.exercises, profile.gender, profile.bodyweight_kg
    )
    affected = find_affected_entities(batch_scores.keys(), reference.links, reference.muscles)
    combined = combine_exercise_scores(initial.exercise_ranks, batch_scores)
    aggregated = aggregate_scores(combined, reference.links, reference.muscles, reference.muscle_groups)

    user_update = update_user_rank(
        profile.user_id, aggregated.overall_score, initial.user_rank, tier_table, now
    )

    muscle_group_updates: List[RankUpdate] = [
        update_locked_rank(
            EntityKind.MUSCLE_GROUP, profile.user_id, group.id,
            aggregated.muscle_group_scores.get(group.id, 0),
            initial.muscle_group_ranks.get(group.id),
            tier_table, source, profile.is_premium, now,
        )
        for group in reference.muscle_groups
        if group.id in affected.muscle_group_ids
    ]

    muscle_updates: List[RankUpdate] = [
        update_locked_rank(
            EntityKind.MUSCLE, profile.user_id, muscle.id,
            aggregated.muscle_scores.get(muscle.id, 0),
            initial.muscle_ranks.get(muscle.id),
            tier_table, source, profile.is_premium, now,
        )
        for muscle in reference.muscles
        if muscle.id in affected.muscle_ids
    ]

    exercise_updates: List[RankUpdate] = [
        update_exercise_rank(
            profile.user_id, exercise_score, initial.exercise_ranks.get(exercise_id),
            profile.bodyweight_kg, tier_table, now,
        )
        for exercise_id, exercise_score in batch_scores.items()
    ]
    carried = [
        rank for exercise_id, rank in initial.exercise_ranks.items()
        if exercise_id not in batch_scores
    ]

    report = build_report(
        sync, user_update, muscle_group_updates, muscle_updates, exercise_updates, carried
    )
    payload = build_payload(
        sync, [user_update, *muscle_group_updates, *muscle_updates, *exercise_updates]
    )
    events = build_rank_up_events(report, tier_table, profile.is_premium, reference.entity_names)

    logger.info(
        "Ranked user %s (%s): overall=%s, %d exercise / %d muscle / %d group changes, %d rank-ups",
        profile.user_id, source.value, aggregated.overall_score,
        len(report.exercise_changes), len(report.muscle_changes),
        len(report.muscle_group_changes), len(events),
    )
    return RankingResults(report=report, payload=payload, events=events)
