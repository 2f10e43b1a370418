"""
Results of a ranking pass.

Three artifacts come out of every run:
  - a report of per-entity changes and the states passed through unchanged,
  - the rank rows to upsert (only the ones that changed or were resynced),
  - rank-up events for the feed, one per entity that moved up a whole tier.
"""

from __future__ import annotations

from dataclasses import dataclass, fields, is_dataclass
from datetime import datetime
from enum import Enum
from typing import Any, Dict, Iterable, Mapping, Optional, Sequence, Tuple

from .models import (
    EntityKind,
    ExerciseRank,
    MuscleGroupRank,
    MuscleRank,
    RankState,
    UserRank,
)
from .sync import SyncResult
from .tiers import RankProgression, TierTable, rank_progression


def to_jsonable(value: Any) -> Any:
    """Converts result dataclasses into plain JSON-serialisable structures."""
    if is_dataclass(value) and not isinstance(value, type):
        return {f.name: to_jsonable(getattr(value, f.name)) for f in fields(value)}
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, datetime):
        return value.isoformat()
    if isinstance(value, Mapping):
        return {str(k): to_jsonable(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [to_jsonable(v) for v in value]
    return value


@dataclass(frozen=True)
class RankChange:
    kind: EntityKind
    entity_id: str
    old_permanent_score: int
    new_permanent_score: int
    old_leaderboard_score: int
    new_leaderboard_score: int
    old_permanent_tier_id: Optional[int]
    new_permanent_tier_id: Optional[int]
    old_permanent_sub_tier_id: Optional[int]
    new_permanent_sub_tier_id: Optional[int]
    old_leaderboard_tier_id: Optional[int]
    new_leaderboard_tier_id: Optional[int]
    old_leaderboard_sub_tier_id: Optional[int]
    new_leaderboard_sub_tier_id: Optional[int]

    @classmethod
    def between(cls, previous: Optional[RankState], current: RankState) -> RankChange:
        return cls(
            kind=current.kind,
            entity_id=current.entity_id,
            old_permanent_score=previous.permanent_score if previous else 0,
            new_permanent_score=current.permanent_score,
            old_leaderboard_score=previous.leaderboard_score if previous else 0,
            new_leaderboard_score=current.leaderboard_score,
            old_permanent_tier_id=previous.permanent_tier_id if previous else None,
            new_permanent_tier_id=current.permanent_tier_id,
            old_permanent_sub_tier_id=previous.permanent_sub_tier_id if previous else None,
            new_permanent_sub_tier_id=current.permanent_sub_tier_id,
            old_leaderboard_tier_id=previous.leaderboard_tier_id if previous else None,
            new_leaderboard_tier_id=current.leaderboard_tier_id,
            old_leaderboard_sub_tier_id=previous.leaderboard_sub_tier_id if previous else None,
            new_leaderboard_sub_tier_id=current.leaderboard_sub_tier_id,
        )


@dataclass(frozen=True)
class RankUpdate:
    """
    Outcome of the rank updater for one entity.

    previous: effective stored state (after leaderboard sync), None for a first calculation
    state:    the row to write, None when nothing is written for this entity
    change:   set only when the permanent score or permanent sub-tier moved
    """
    previous: Optional[RankState]
    state: Optional[RankState] = None
    change: Optional[RankChange] = None

    @property
    def unchanged(self) -> bool:
        return self.change is None


@dataclass(frozen=True)
class RankUpEvent:
    entity_type: EntityKind
    entity_id: str
    entity_name: Optional[str]
    old_tier_name: Optional[str]
    new_tier_name: str
    new_tier_level: int
    progression: RankProgression

    def to_dict(self) -> Dict[str, Any]:
        return to_jsonable(self)


@dataclass(frozen=True)
class RankReport:
    user_change: Optional[RankChange] = None
    muscle_group_changes: Tuple[RankChange, ...] = ()
    muscle_changes: Tuple[RankChange, ...] = ()
    exercise_changes: Tuple[RankChange, ...] = ()
    unchanged_user_rank: Optional[UserRank] = None
    unchanged_muscle_group_ranks: Tuple[MuscleGroupRank, ...] = ()
    unchanged_muscle_ranks: Tuple[MuscleRank, ...] = ()
    unchanged_exercise_ranks: Tuple[ExerciseRank, ...] = ()
    leaderboard_scores_restored: bool = False

    def to_dict(self) -> Dict[str, Any]:
        return to_jsonable(self)


@dataclass(frozen=True)
class RankUpdatePayload:
    user_rank: Optional[UserRank] = None
    muscle_group_ranks: Tuple[MuscleGroupRank, ...] = ()
    muscle_ranks: Tuple[MuscleRank, ...] = ()
    exercise_ranks: Tuple[ExerciseRank, ...] = ()

    @property
    def is_empty(self) -> bool:
        return (
            self.user_rank is None
            and not self.muscle_group_ranks
            and not self.muscle_ranks
            and not self.exercise_ranks
        )

    def to_dict(self) -> Dict[str, Any]:
        return to_jsonable(self)


@dataclass(frozen=True)
class RankingResults:
    report: RankReport
    payload: RankUpdatePayload
    events: Tuple[RankUpEvent, ...] = ()

    @classmethod
    def empty(cls) -> RankingResults:
        return cls(report=RankReport(), payload=RankUpdatePayload())


def build_payload(sync: SyncResult, updates: Iterable[RankUpdate]) -> RankUpdatePayload:
    """
    Rows to upsert: every state the updater produced plus every state the leaderboard
    sync repaired. An updater row supersedes the synced row of the same entity.
    """
    rows: Dict[Tuple[EntityKind, str], RankState] = {}
    for state in sync.restored:
        rows[(state.kind, state.entity_id)] = state
    for update in updates:
        if update.state is not None:
            rows[(update.state.kind, update.state.entity_id)] = update.state

    by_kind: Dict[EntityKind, list] = {kind: [] for kind in EntityKind}
    for (kind, _), state in rows.items():
        by_kind[kind].append(state)

    user_rows = by_kind[EntityKind.USER]
    return RankUpdatePayload(
        user_rank=user_rows[0] if user_rows else None,
        muscle_group_ranks=tuple(by_kind[EntityKind.MUSCLE_GROUP]),
        muscle_ranks=tuple(by_kind[EntityKind.MUSCLE]),
        exercise_ranks=tuple(by_kind[EntityKind.EXERCISE]),
    )


def build_report(
    sync: SyncResult,
    user_update: Optional[RankUpdate],
    muscle_group_updates: Sequence[RankUpdate],
    muscle_updates: Sequence[RankUpdate],
    exercise_updates: Sequence[RankUpdate],
    carried_exercise_ranks: Sequence[ExerciseRank] = (),
) -> RankReport:
    def changes(updates):
        return tuple(u.change for u in updates if u.change is not None)

    def unchanged(updates):
        return tuple(u.previous for u in updates if u.unchanged and u.previous is not None)

    unchanged_user = None
    if user_update is not None and user_update.unchanged:
        unchanged_user = user_update.previous

    return RankReport(
        user_change=user_update.change if user_update is not None else None,
        muscle_group_changes=changes(muscle_group_updates),
        muscle_changes=changes(muscle_updates),
        exercise_changes=changes(exercise_updates),
        unchanged_user_rank=unchanged_user,
        unchanged_muscle_group_ranks=unchanged(muscle_group_updates),
        unchanged_muscle_ranks=unchanged(muscle_updates),
        unchanged_exercise_ranks=tuple(carried_exercise_ranks) + unchanged(exercise_updates),
        leaderboard_scores_restored=sync.leaderboard_scores_restored,
    )


def build_rank_up_events(
    report: RankReport,
    tier_table: TierTable,
    is_premium: bool,
    entity_names: Mapping[Tuple[EntityKind, str], str],
) -> Tuple[RankUpEvent, ...]:
    """
    One event per change whose permanent tier went up. The old tier is the tier of the
    old permanent score, so a first calculation starts from the base tier. Sub-tier
    moves and score-only moves are not rank-ups. Muscle and muscle group rank-ups are a
    premium feature.
    """
    candidates = []
    if report.user_change is not None:
        candidates.append(report.user_change)
    if is_premium:
        candidates.extend(report.muscle_group_changes)
        candidates.extend(report.muscle_changes)
    candidates.extend(report.exercise_changes)

    events = []
    for change in candidates:
        # scores below the lowest threshold count as the base tier
        old_tier = tier_table.tier_for_score(change.old_permanent_score) or tier_table.next_tier(None)
        new_tier = tier_table.tier(change.new_permanent_tier_id)
        old_level = tier_table.tier_level(old_tier.id) if old_tier else None
        new_level = tier_table.tier_level(new_tier.id) if new_tier else None
        if old_level is None or new_level is None or new_level <= old_level:
            continue

        events.append(RankUpEvent(
            entity_type=change.kind,
            entity_id=change.entity_id,
            entity_name=entity_names.get((change.kind, change.entity_id)),
            old_tier_name=old_tier.name if old_tier else None,
            new_tier_name=new_tier.name,
            new_tier_level=new_level,
            progression=rank_progression(change.old_permanent_score, change.new_permanent_score, tier_table),
        ))
    return tuple(events)
