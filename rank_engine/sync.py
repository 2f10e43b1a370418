"""
Leaderboard resync.

A rank whose permanent score has pulled ahead of its leaderboard score (e.g. it was
locked while permanent kept climbing) gets its leaderboard track raised back to the
permanent score before any new input is processed.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, replace
from typing import Dict, Optional, Tuple, TypeVar

from .models import RankState, UserRankStates
from .tiers import TierTable

logger = logging.getLogger(__name__)

S = TypeVar('S', bound=RankState)


@dataclass(frozen=True)
class SyncResult:
    states: UserRankStates
    restored: Tuple[RankState, ...]

    @property
    def leaderboard_scores_restored(self) -> bool:
        return bool(self.restored)


def sync_rank_state(state: S, tier_table: TierTable) -> Optional[S]:
    """Returns a synced copy, or None when the state needs no repair."""
    if state.permanent_score <= state.leaderboard_score:
        return None

    sub_tier = tier_table.resolve(state.permanent_score)
    if sub_tier is None:
        logger.warning(
            "No tier for synced leaderboard score %s (%s %s)",
            state.permanent_score, state.kind.value, state.entity_id,
        )
        return replace(state, leaderboard_score=state.permanent_score)
    return replace(
        state,
        leaderboard_score=state.permanent_score,
        leaderboard_tier_id=sub_tier.tier_id,
        leaderboard_sub_tier_id=sub_tier.id,
    )


def _sync_all(ranks: Dict[str, S], tier_table: TierTable, restored: list) -> Dict[str, S]:
    synced = {}
    for entity_id, state in ranks.items():
        repaired = sync_rank_state(state, tier_table)
        if repaired is not None:
            restored.append(repaired)
        synced[entity_id] = repaired or state
    return synced


def sync_leaderboard_scores(states: UserRankStates, tier_table: TierTable) -> SyncResult:
    restored: list = []

    user_rank = states.user_rank
    if user_rank is not None:
        repaired_user = sync_rank_state(user_rank, tier_table)
        if repaired_user is not None:
            restored.append(repaired_user)
            user_rank = repaired_user

    synced = UserRankStates(
        user_rank=user_rank,
        muscle_group_ranks=_sync_all(states.muscle_group_ranks, tier_table, restored),
        muscle_ranks=_sync_all(states.muscle_ranks, tier_table, restored),
        exercise_ranks=_sync_all(states.exercise_ranks, tier_table, restored),
    )
    if restored:
        logger.info("Restored leaderboard scores for %d ranks", len(restored))
    return SyncResult(states=synced, restored=tuple(restored))
