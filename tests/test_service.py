from dataclasses import replace
from unittest.mock import MagicMock, patch

import psycopg2
import pytest

from rank_engine import service
from rank_engine.models import CalculationSource, PerformanceInput, UserRankStates
from rank_engine.ranking import update_user_ranks
from rank_engine.service import InsufficientBalanceError, MissingBodyweightError, UserNotFoundError

BENCH_SET = PerformanceInput("bench", reps=5, weight_kg=100, session_set_id="set-1")


@pytest.fixture
def db(reference):
    """Patches the connection pool and every repository call the service makes."""
    conn = MagicMock()
    with patch('rank_engine.service.get_db_connection', return_value=conn) as get_conn, \
            patch('rank_engine.service.release_db_connection') as release, \
            patch('rank_engine.service.lock_user') as lock_user, \
            patch('rank_engine.service.fetch_user_profile') as fetch_profile, \
            patch('rank_engine.service.get_reference_data', return_value=reference), \
            patch('rank_engine.service.fetch_rank_states', return_value=UserRankStates()), \
            patch('rank_engine.service.fetch_workout_inputs', return_value=[BENCH_SET]) as fetch_inputs, \
            patch('rank_engine.service.save_rank_payload') as save, \
            patch('rank_engine.service.update_calculator_balance') as update_balance, \
            patch('rank_engine.service.insert_rank_calculation', return_value='calc-1') as insert_log, \
            patch('rank_engine.service.finish_rank_calculation') as finish_log:
        yield MagicMock(
            conn=conn, get_conn=get_conn, release=release, lock_user=lock_user, fetch_profile=fetch_profile,
            fetch_inputs=fetch_inputs, save=save, update_balance=update_balance,
            insert_log=insert_log, finish_log=finish_log,
        )


def test_calculate_ranks_commits_payload(db, premium_profile):
    db.fetch_profile.return_value = premium_profile

    results = service.calculate_ranks("user-1", [BENCH_SET], CalculationSource.WORKOUT)

    db.lock_user.assert_called_once_with(db.conn, "user-1")
    db.save.assert_called_once_with(db.conn, results.payload)
    db.conn.commit.assert_called_once()
    db.conn.rollback.assert_not_called()
    db.release.assert_called_once_with(db.conn)
    assert results.payload.exercise_ranks[0].exercise_id == "bench"


def test_unknown_user_rolls_back(db):
    db.fetch_profile.return_value = None

    with pytest.raises(UserNotFoundError):
        service.calculate_ranks("missing", [BENCH_SET])

    db.conn.commit.assert_not_called()
    db.conn.rollback.assert_called_once()
    db.release.assert_called_once_with(db.conn)


def test_database_error_is_rolled_back_and_reraised(db, premium_profile):
    db.fetch_profile.return_value = premium_profile
    db.save.side_effect = psycopg2.OperationalError("connection lost")

    with pytest.raises(psycopg2.OperationalError):
        service.calculate_ranks("user-1", [BENCH_SET])

    db.conn.commit.assert_not_called()
    db.conn.rollback.assert_called_once()
    db.release.assert_called_once_with(db.conn)


def test_onboarding_runs_as_free_account(db, premium_profile):
    db.fetch_profile.return_value = premium_profile

    with patch('rank_engine.service.update_user_ranks', wraps=update_user_ranks) as ranker:
        results = service.calculate_onboarding_ranks("user-1", [BENCH_SET])

    profile, _, _, _, source = ranker.call_args[0]
    assert profile.is_premium is False
    assert source is CalculationSource.ONBOARDING
    assert not any(r.locked for r in results.payload.muscle_ranks)


def test_workout_ranks_use_completed_sets(db, free_profile):
    db.fetch_profile.return_value = free_profile

    results = service.calculate_workout_ranks("user-1", "workout-1")

    db.fetch_inputs.assert_called_once_with(db.conn, "workout-1")
    assert all(r.locked for r in results.payload.muscle_ranks)
    db.conn.commit.assert_called_once()


# --- Rank calculator ---

def test_calculator_charges_free_account(db, free_profile):
    db.fetch_profile.return_value = free_profile

    results = service.calculate_rank_for_entry("user-1", "bench", 100, 5)

    db.update_balance.assert_called_once_with(db.conn, "user-1", 1)
    db.insert_log.assert_called_once_with(db.conn, "user-1", "bench", 100.0, 5, 80.0, 2)
    status_args = db.finish_log.call_args
    assert status_args[0][1:] == ("calc-1", "success")
    assert status_args.kwargs["new_balance"] == 1
    assert status_args.kwargs["rank_up_data"] == results.report.to_dict()
    db.conn.commit.assert_called_once()


def test_calculator_is_free_for_premium(db, premium_profile):
    db.fetch_profile.return_value = premium_profile

    service.calculate_rank_for_entry("user-1", "bench", 100, 5)

    db.update_balance.assert_not_called()
    assert db.insert_log.call_args[0][-1] is None
    assert db.finish_log.call_args.kwargs["new_balance"] is None


def test_calculator_without_balance(db, free_profile):
    db.fetch_profile.return_value = replace(free_profile, rank_calculator_balance=0)

    with pytest.raises(InsufficientBalanceError):
        service.calculate_rank_for_entry("user-1", "bench", 100, 5)

    db.update_balance.assert_not_called()
    db.insert_log.assert_not_called()
    db.save.assert_not_called()
    db.conn.rollback.assert_called_once()


def test_failed_calculation_is_logged_separately(db, free_profile):
    db.fetch_profile.return_value = free_profile
    db.save.side_effect = psycopg2.OperationalError("connection lost")

    with pytest.raises(psycopg2.OperationalError):
        service.calculate_rank_for_entry("user-1", "bench", 100, 5)

    assert db.get_conn.call_count == 2
    assert db.finish_log.call_args[0][1:] == ("calc-1", "failed")
    assert db.finish_log.call_args.kwargs["error_message"] == "connection lost"
    # ranking transaction rolled back, failure log committed
    db.conn.rollback.assert_called_once()
    db.conn.commit.assert_called_once()


@pytest.mark.parametrize("premium", [False, True])
def test_calculator_requires_bodyweight(db, free_profile, premium):
    db.fetch_profile.return_value = replace(free_profile, bodyweight_kg=None, is_premium=premium)

    with pytest.raises(MissingBodyweightError):
        service.calculate_rank_for_entry("user-1", "bench", 100, 5)

    db.update_balance.assert_not_called()
    db.insert_log.assert_not_called()
    db.finish_log.assert_not_called()
    db.save.assert_not_called()
    db.conn.commit.assert_not_called()
    db.conn.rollback.assert_called_once()
    assert db.get_conn.call_count == 1
