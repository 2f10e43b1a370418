"""Tier/sub-tier threshold table and score lookups."""

from __future__ import annotations

from bisect import bisect_right
from dataclasses import dataclass
from typing import Any, Dict, Iterable, List, Mapping, Optional

from .models import SubTier, Tier


class TierConfigurationError(ValueError):
    """The configured threshold table is contradictory (overlaps, orphan sub-tiers, ...)."""


@dataclass(frozen=True)
class RankProgression:
    initial_score: int
    final_score: int
    initial_tier: Optional[Tier]
    current_tier: Optional[Tier]
    next_tier: Optional[Tier]
    percent_to_next: float


class TierTable:
    """
    Ordered, validated view over the sub-tier thresholds.

    Sub-tiers are sorted ascending by min_score. Thresholds must be strictly
    increasing across the whole table and each tier's sub-tiers must be
    contiguous, otherwise a TierConfigurationError is raised on construction.
    """

    def __init__(self, tiers: Iterable[Tier], sub_tiers: Iterable[SubTier]):
        self._tiers: Dict[int, Tier] = {t.id: t for t in tiers}
        ordered = sorted(sub_tiers, key=lambda s: s.min_score)

        for previous, current in zip(ordered, ordered[1:]):
            if current.min_score <= previous.min_score:
                raise TierConfigurationError(
                    f"Sub-tiers {previous.id} and {current.id} overlap at min_score {current.min_score}"
                )

        tier_order: List[int] = []
        for sub_tier in ordered:
            if sub_tier.tier_id not in self._tiers:
                raise TierConfigurationError(
                    f"Sub-tier {sub_tier.id} references unknown tier {sub_tier.tier_id}"
                )
            if not tier_order or tier_order[-1] != sub_tier.tier_id:
                if sub_tier.tier_id in tier_order:
                    raise TierConfigurationError(
                        f"Sub-tiers of tier {sub_tier.tier_id} are interleaved with another tier"
                    )
                tier_order.append(sub_tier.tier_id)

        self._sub_tiers = tuple(ordered)
        self._thresholds = [s.min_score for s in ordered]
        self._tier_levels = {tier_id: level for level, tier_id in enumerate(tier_order)}
        self._tier_min_scores: Dict[int, int] = {}
        for sub_tier in ordered:
            self._tier_min_scores.setdefault(sub_tier.tier_id, sub_tier.min_score)

    @classmethod
    def from_rows(cls, tier_rows: Iterable[Mapping[str, Any]], sub_tier_rows: Iterable[Mapping[str, Any]]) -> TierTable:
        tiers = [Tier(id=int(r['id']), name=r['name']) for r in tier_rows]
        sub_tiers = [
            SubTier(id=int(r['id']), tier_id=int(r['tier_id']), name=r['name'], min_score=int(r['min_score']))
            for r in sub_tier_rows
        ]
        return cls(tiers, sub_tiers)

    def __len__(self) -> int:
        return len(self._sub_tiers)

    @property
    def sub_tiers(self) -> tuple:
        return self._sub_tiers

    def resolve(self, score: float) -> Optional[SubTier]:
        """Highest sub-tier whose min_score <= score, or None below the lowest threshold."""
        index = bisect_right(self._thresholds, score) - 1
        if index < 0:
            return None
        return self._sub_tiers[index]

    def tier(self, tier_id: Optional[int]) -> Optional[Tier]:
        if tier_id is None:
            return None
        return self._tiers.get(tier_id)

    def tier_level(self, tier_id: Optional[int]) -> Optional[int]:
        """0-based position of a tier in ascending order, None if unknown."""
        if tier_id is None:
            return None
        return self._tier_levels.get(tier_id)

    def tier_for_score(self, score: float) -> Optional[Tier]:
        sub_tier = self.resolve(score)
        return self._tiers[sub_tier.tier_id] if sub_tier else None

    def _tier_at_level(self, level: int) -> Optional[Tier]:
        for tier_id, tier_level in self._tier_levels.items():
            if tier_level == level:
                return self._tiers[tier_id]
        return None

    def next_tier(self, tier_id: Optional[int]) -> Optional[Tier]:
        if tier_id is None:
            return self._tier_at_level(0)
        level = self.tier_level(tier_id)
        if level is None:
            return None
        return self._tier_at_level(level + 1)

    def tier_min_score(self, tier_id: Optional[int]) -> int:
        if tier_id is None:
            return 0
        return self._tier_min_scores.get(tier_id, 0)


def rank_progression(initial_score: int, final_score: int, table: TierTable) -> RankProgression:
    """
    Describes how a score moved through the tiers and how far it is from the next one.
    percent_to_next is 1.0 at the top tier and always within [0, 1].
    """
    initial_tier = table.tier_for_score(initial_score)
    current_tier = table.tier_for_score(final_score)
    next_tier = table.next_tier(current_tier.id if current_tier else None)

    percent_to_next = 0.0
    current_min = table.tier_min_score(current_tier.id) if current_tier else 0
    if next_tier is not None:
        next_min = table.tier_min_score(next_tier.id)
        if next_min > current_min:
            percent_to_next = max(0, final_score - current_min) / (next_min - current_min)
    else:
        percent_to_next = 1.0

    return RankProgression(
        initial_score=initial_score,
        final_score=final_score,
        initial_tier=initial_tier,
        current_tier=current_tier,
        next_tier=next_tier,
        percent_to_next=round(min(1.0, max(0.0, percent_to_next)), 2),
    )
