"""
Transactional entry points: load, lock, rank, persist, commit.

Each public function owns one database transaction. A psycopg2 error rolls the
transaction back and is re-raised; retries belong to the job layer (tasks.py).
"""

import logging
from dataclasses import replace

import psycopg2

from .constants import RANK_CALCULATOR_COST
from .db import DatabaseUnavailableError, get_db_connection, release_db_connection
from .models import CalculationSource, PerformanceInput
from .ranking import update_user_ranks
from .repository import (
    fetch_rank_states,
    fetch_user_profile,
    fetch_workout_inputs,
    finish_rank_calculation,
    get_reference_data,
    insert_rank_calculation,
    lock_user,
    save_rank_payload,
    update_calculator_balance,
)

logger = logging.getLogger(__name__)


class UserNotFoundError(LookupError):
    pass


class InsufficientBalanceError(Exception):
    """A free account has no rank calculator uses left."""


class MissingBodyweightError(Exception):
    """The user has no bodyweight measurement, so lifts cannot be scored."""


def _load_profile(conn, user_id):
    profile = fetch_user_profile(conn, user_id)
    if profile is None:
        raise UserNotFoundError(f"User {user_id} not found")
    return profile


def _rank_and_save(conn, profile, inputs, source):
    reference = get_reference_data(conn)
    states = fetch_rank_states(conn, profile.user_id)
    results = update_user_ranks(profile, reference, states, inputs, source)
    save_rank_payload(conn, results.payload)
    return results


def _run_in_transaction(user_id, work):
    conn = None
    try:
        conn = get_db_connection()
        lock_user(conn, user_id)
        result = work(conn)
        conn.commit()
        return result
    except psycopg2.Error as e:
        logger.error("Database error while ranking user %s: %s", user_id, e, exc_info=True)
        if conn:
            conn.rollback()
        raise
    except Exception:
        if conn:
            conn.rollback()
        raise
    finally:
        if conn:
            release_db_connection(conn)


def calculate_ranks(user_id, inputs, source=CalculationSource.WORKOUT):
    """Ranks a batch of performances for one user and persists the changes."""
    inputs = list(inputs)
    logger.info("Calculating ranks for user %s from %d inputs (%s)", user_id, len(inputs), source.value)

    def work(conn):
        profile = _load_profile(conn, user_id)
        return _rank_and_save(conn, profile, inputs, source)

    return _run_in_transaction(user_id, work)


def calculate_onboarding_ranks(user_id, inputs):
    """Initial ranks from self-reported lifts. Always runs as a free, unlocked calculation."""
    inputs = list(inputs)
    logger.info("Calculating onboarding ranks for user %s from %d inputs", user_id, len(inputs))

    def work(conn):
        profile = replace(_load_profile(conn, user_id), is_premium=False)
        return _rank_and_save(conn, profile, inputs, CalculationSource.ONBOARDING)

    return _run_in_transaction(user_id, work)


def calculate_workout_ranks(user_id, workout_id):
    """Ranks the completed sets of a finished workout."""
    def work(conn):
        profile = _load_profile(conn, user_id)
        inputs = fetch_workout_inputs(conn, workout_id)
        if not inputs:
            logger.info("Workout %s has no completed sets; nothing to rank", workout_id)
        return _rank_and_save(conn, profile, inputs, CalculationSource.WORKOUT)

    return _run_in_transaction(user_id, work)


def calculate_rank_for_entry(user_id, exercise_id, weight, reps):
    """
    Rank calculator: scores a single hypothetical lift as if it had been performed.

    Free accounts spend RANK_CALCULATOR_COST from their balance per use and get
    InsufficientBalanceError once it is exhausted. A user without a recorded
    bodyweight gets MissingBodyweightError and is not charged. Every use is logged in
    rank_calculations together with the resulting rank-up report.
    """
    entry = PerformanceInput(exercise_id=str(exercise_id), reps=int(reps), weight_kg=float(weight))
    logger.info("Rank calculator entry for user %s, exercise %s", user_id, exercise_id)

    def work(conn):
        profile = _load_profile(conn, user_id)
        if profile.bodyweight_kg is None:
            raise MissingBodyweightError("bodyweight_required")
        old_balance = profile.rank_calculator_balance
        new_balance = old_balance
        if not profile.is_premium:
            if old_balance <= 0:
                raise InsufficientBalanceError("insufficient_balance")
            new_balance = old_balance - RANK_CALCULATOR_COST
            update_calculator_balance(conn, user_id, new_balance)

        calculation_id = insert_rank_calculation(
            conn, user_id, exercise_id, entry.weight_kg, entry.reps, profile.bodyweight_kg,
            None if profile.is_premium else old_balance,
        )
        results = _rank_and_save(conn, profile, [entry], CalculationSource.CALCULATOR)
        finish_rank_calculation(
            conn,
            calculation_id,
            "success",
            new_balance=None if profile.is_premium else new_balance,
            rank_up_data=results.report.to_dict(),
        )
        return results

    try:
        return _run_in_transaction(user_id, work)
    except (InsufficientBalanceError, MissingBodyweightError, UserNotFoundError):
        raise
    except Exception as e:
        _record_failed_calculation(user_id, entry, str(e))
        raise


def _record_failed_calculation(user_id, entry, error_message):
    """The calculation's own transaction was rolled back; log the failure separately."""
    conn = None
    try:
        conn = get_db_connection()
        calculation_id = insert_rank_calculation(
            conn, user_id, entry.exercise_id, entry.weight_kg, entry.reps, None, None
        )
        finish_rank_calculation(conn, calculation_id, "failed", error_message=error_message)
        conn.commit()
    except (psycopg2.Error, DatabaseUnavailableError) as e:
        logger.error("Failed to record failed rank calculation for user %s: %s", user_id, e)
        if conn:
            conn.rollback()
    finally:
        if conn:
            release_db_connection(conn)
