import json
from datetime import datetime, timezone

from rank_engine.models import EntityKind, ExerciseRank, MuscleRank, UserRank, UserRankStates
from rank_engine.payload import (
    RankChange,
    RankReport,
    RankUpdate,
    RankUpdatePayload,
    RankingResults,
    build_payload,
    build_rank_up_events,
    build_report,
)
from rank_engine.sync import SyncResult


def _change(kind, entity_id, old_score, new_score, old_tier, new_tier, old_sub=None, new_sub=None):
    return RankChange(
        kind=kind, entity_id=entity_id,
        old_permanent_score=old_score, new_permanent_score=new_score,
        old_leaderboard_score=old_score, new_leaderboard_score=new_score,
        old_permanent_tier_id=old_tier, new_permanent_tier_id=new_tier,
        old_permanent_sub_tier_id=old_sub, new_permanent_sub_tier_id=new_sub,
        old_leaderboard_tier_id=old_tier, new_leaderboard_tier_id=new_tier,
        old_leaderboard_sub_tier_id=old_sub, new_leaderboard_sub_tier_id=new_sub,
    )


def test_change_from_nothing():
    current = UserRank(user_id="u", permanent_score=300, permanent_tier_id=1, permanent_sub_tier_id=12,
                       leaderboard_score=300, leaderboard_tier_id=1, leaderboard_sub_tier_id=12)
    change = RankChange.between(None, current)
    assert change.kind is EntityKind.USER
    assert change.old_permanent_score == 0
    assert change.old_permanent_tier_id is None
    assert change.new_permanent_sub_tier_id == 12


def test_updater_rows_supersede_synced_rows():
    synced = MuscleRank(user_id="u", muscle_id="chest", permanent_score=800, leaderboard_score=800)
    updated = MuscleRank(user_id="u", muscle_id="chest", permanent_score=900, leaderboard_score=900)
    other = MuscleRank(user_id="u", muscle_id="triceps", permanent_score=400, leaderboard_score=400)
    sync = SyncResult(states=UserRankStates(), restored=(synced, other))

    payload = build_payload(sync, [RankUpdate(previous=synced, state=updated), RankUpdate(previous=None)])

    rows = {r.muscle_id: r for r in payload.muscle_ranks}
    assert rows == {"chest": updated, "triceps": other}
    assert payload.user_rank is None


def test_report_separates_changes_and_unchanged():
    kept = ExerciseRank(user_id="u", exercise_id="squat", permanent_score=900)
    carried = ExerciseRank(user_id="u", exercise_id="deadlift", permanent_score=1100)
    change = _change(EntityKind.EXERCISE, "bench", 0, 2490, None, 3)
    sync = SyncResult(states=UserRankStates(), restored=())

    report = build_report(
        sync, None, [], [],
        [RankUpdate(previous=None, change=change), RankUpdate(previous=kept)],
        [carried],
    )

    assert report.exercise_changes == (change,)
    assert report.unchanged_exercise_ranks == (carried, kept)
    assert report.user_change is None
    assert not report.leaderboard_scores_restored


def test_only_whole_tier_increases_are_rank_ups(tier_table):
    report = RankReport(
        user_change=_change(EntityKind.USER, "u", 400, 600, 1, 2),
        exercise_changes=(
            _change(EntityKind.EXERCISE, "bench", 2100, 2490, 3, 3, 31, 31),
            _change(EntityKind.EXERCISE, "row", 0, 300, None, 1, None, 12),
        ),
    )

    events = build_rank_up_events(report, tier_table, is_premium=False, entity_names={})

    assert [(e.entity_type, e.entity_id) for e in events] == [(EntityKind.USER, "u")]
    assert events[0].entity_name is None
    assert (events[0].old_tier_name, events[0].new_tier_name, events[0].new_tier_level) == ("Bronze", "Silver", 1)


def test_new_entity_ranks_up_from_base_tier(tier_table):
    report = RankReport(exercise_changes=(_change(EntityKind.EXERCISE, "squat", 0, 900, None, 2),))

    events = build_rank_up_events(report, tier_table, is_premium=False, entity_names={})

    assert [e.entity_id for e in events] == ["squat"]
    assert (events[0].old_tier_name, events[0].new_tier_name) == ("Bronze", "Silver")
    assert events[0].progression.initial_tier.name == "Bronze"


def test_muscle_and_group_events_need_premium(tier_table):
    report = RankReport(
        muscle_group_changes=(_change(EntityKind.MUSCLE_GROUP, "upper", 100, 700, 1, 2),),
        muscle_changes=(_change(EntityKind.MUSCLE, "chest", 100, 2100, 1, 3),),
    )
    names = {(EntityKind.MUSCLE, "chest"): "Chest", (EntityKind.MUSCLE_GROUP, "upper"): "Upper Body"}

    assert build_rank_up_events(report, tier_table, is_premium=False, entity_names=names) == ()

    events = build_rank_up_events(report, tier_table, is_premium=True, entity_names=names)
    assert [e.entity_name for e in events] == ["Upper Body", "Chest"]


def test_events_and_report_serialize_to_json(tier_table):
    when = datetime(2024, 5, 1, tzinfo=timezone.utc)
    report = RankReport(
        exercise_changes=(_change(EntityKind.EXERCISE, "bench", 600, 2490, 2, 3),),
        unchanged_exercise_ranks=(ExerciseRank(user_id="u", exercise_id="squat", last_calculated_at=when),),
    )
    events = build_rank_up_events(report, tier_table, True, {(EntityKind.EXERCISE, "bench"): "Bench Press"})

    event_dict = events[0].to_dict()
    assert event_dict["entity_type"] == "exercise"
    assert event_dict["progression"]["current_tier"]["name"] == "Gold"
    json.dumps(event_dict)

    report_dict = report.to_dict()
    assert report_dict["unchanged_exercise_ranks"][0]["last_calculated_at"] == when.isoformat()
    json.dumps(report_dict)


def test_empty_results():
    results = RankingResults.empty()
    assert results.payload.is_empty
    assert results.events == ()
    assert not RankUpdatePayload(user_rank=UserRank(user_id="u")).is_empty
