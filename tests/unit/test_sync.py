from rank_engine.models import ExerciseRank, MuscleRank, SubTier, Tier, UserRank, UserRankStates
from rank_engine.sync import sync_leaderboard_scores, sync_rank_state
from rank_engine.tiers import TierTable


def test_leaderboard_is_raised_to_permanent(tier_table):
    state = MuscleRank(user_id="u", muscle_id="chest", permanent_score=1000, permanent_tier_id=2,
                       permanent_sub_tier_id=22, leaderboard_score=200, leaderboard_tier_id=1,
                       leaderboard_sub_tier_id=11, locked=True)

    synced = sync_rank_state(state, tier_table)

    assert synced.leaderboard_score == 1000
    assert (synced.leaderboard_tier_id, synced.leaderboard_sub_tier_id) == (2, 22)
    assert synced.locked is True
    assert state.leaderboard_score == 200


def test_in_sync_state_is_left_alone(tier_table):
    state = UserRank(user_id="u", permanent_score=500, leaderboard_score=500)
    assert sync_rank_state(state, tier_table) is None


def test_unresolvable_score_keeps_prior_leaderboard_tier():
    table = TierTable([Tier(1, "Gold")], [SubTier(1, 1, "Gold", 2000)])
    state = UserRank(user_id="u", permanent_score=1500, leaderboard_score=0,
                     leaderboard_tier_id=7, leaderboard_sub_tier_id=70)

    synced = sync_rank_state(state, table)

    assert synced.leaderboard_score == 1500
    assert (synced.leaderboard_tier_id, synced.leaderboard_sub_tier_id) == (7, 70)


def test_sync_all_reports_restored_states(tier_table):
    lagging = ExerciseRank(user_id="u", exercise_id="bench", permanent_score=2100, leaderboard_score=0)
    current = ExerciseRank(user_id="u", exercise_id="squat", permanent_score=900, leaderboard_score=900)
    states = UserRankStates(
        user_rank=UserRank(user_id="u", permanent_score=300, leaderboard_score=100),
        exercise_ranks={"bench": lagging, "squat": current},
    )

    result = sync_leaderboard_scores(states, tier_table)

    assert result.leaderboard_scores_restored
    assert {(s.kind.value, s.entity_id) for s in result.restored} == {("user", "u"), ("exercise", "bench")}
    assert result.states.exercise_ranks["bench"].leaderboard_score == 2100
    assert result.states.exercise_ranks["squat"] is current
    assert result.states.user_rank.leaderboard_score == 300
    # input untouched
    assert states.exercise_ranks["bench"].leaderboard_score == 0


def test_no_leaderboard_ever_below_permanent_after_sync(tier_table):
    states = UserRankStates(
        muscle_ranks={
            f"m{i}": MuscleRank(user_id="u", muscle_id=f"m{i}", permanent_score=p, leaderboard_score=l)
            for i, (p, l) in enumerate([(0, 0), (10, 5), (400, 900), (4800, 100)])
        }
    )
    result = sync_leaderboard_scores(states, tier_table)
    assert all(r.leaderboard_score >= r.permanent_score for r in result.states.muscle_ranks.values())


def test_nothing_to_restore(tier_table):
    result = sync_leaderboard_scores(UserRankStates(), tier_table)
    assert not result.leaderboard_scores_restored
    assert result.states.user_rank is None
