"""
SQL access for the ranking engine.

Every function takes an open psycopg2 connection and leaves transaction control
(commit / rollback) to the caller, so one calculation pass is one transaction.
"""

import logging
import threading
import time

import psycopg2
import psycopg2.extras

from .constants import REFERENCE_CACHE_TTL_SECONDS
from .models import (
    ExerciseConfig,
    ExerciseMuscleLink,
    ExerciseRank,
    Muscle,
    MuscleGroup,
    MuscleGroupRank,
    MuscleIntensity,
    MuscleRank,
    PerformanceInput,
    UserProfile,
    UserRank,
    UserRankStates,
)
from .ranking import ReferenceData
from .tiers import TierConfigurationError, TierTable

logger = logging.getLogger(__name__)

_RANK_COLUMNS = (
    "permanent_score", "permanent_tier_id", "permanent_sub_tier_id",
    "leaderboard_score", "leaderboard_tier_id", "leaderboard_sub_tier_id",
    "last_calculated_at",
)

_reference_cache = {"data": None, "loaded_at": 0.0}
_reference_lock = threading.Lock()


def _dict_cursor(conn):
    return conn.cursor(cursor_factory=psycopg2.extras.RealDictCursor)


# --- Users ---

def lock_user(conn, user_id):
    """Serializes ranking passes for one user until the transaction ends."""
    with conn.cursor() as cur:
        cur.execute("SELECT pg_advisory_xact_lock(hashtext(%s)::bigint);", (str(user_id),))


def fetch_user_profile(conn, user_id):
    """Profile with the most recent bodyweight measurement, or None if the user does not exist."""
    with _dict_cursor(conn) as cur:
        cur.execute(
            """
            SELECT u.id, u.gender, u.is_premium, u.rank_calculator_balance,
                   (SELECT bm.weight_kg FROM body_measurements bm
                     WHERE bm.user_id = u.id
                     ORDER BY bm.measured_at DESC LIMIT 1) AS bodyweight_kg
            FROM users u
            WHERE u.id = %s;
            """,
            (user_id,),
        )
        row = cur.fetchone()
    if not row:
        return None
    return UserProfile(
        user_id=str(row['id']),
        gender=row.get('gender') or 'male',
        bodyweight_kg=float(row['bodyweight_kg']) if row.get('bodyweight_kg') is not None else None,
        is_premium=bool(row.get('is_premium')),
        rank_calculator_balance=int(row.get('rank_calculator_balance') or 0),
    )


def update_calculator_balance(conn, user_id, new_balance):
    with conn.cursor() as cur:
        cur.execute(
            "UPDATE users SET rank_calculator_balance = %s, updated_at = NOW() WHERE id = %s;",
            (new_balance, user_id),
        )


# --- Reference data ---

def load_reference_data(conn):
    """Reads every catalog the engine needs and validates the tier table."""
    with _dict_cursor(conn) as cur:
        cur.execute(
            """
            SELECT id, name, exercise_type, alpha_value,
                   elite_reps_male, elite_reps_female,
                   elite_duration_male, elite_duration_female,
                   elite_swr_male, elite_swr_female
            FROM exercises;
            """
        )
        exercises = [ExerciseConfig.from_row(r) for r in cur.fetchall()]

        cur.execute("SELECT id, name, overall_weight FROM muscle_groups ORDER BY name;")
        muscle_groups = [
            MuscleGroup(id=str(r['id']), name=r['name'], overall_weight=float(r['overall_weight'] or 0))
            for r in cur.fetchall()
        ]

        cur.execute("SELECT id, name, muscle_group_id, muscle_group_weight FROM muscles ORDER BY name;")
        muscles = [
            Muscle(
                id=str(r['id']),
                name=r['name'],
                muscle_group_id=str(r['muscle_group_id']),
                muscle_group_weight=float(r['muscle_group_weight'] or 0),
            )
            for r in cur.fetchall()
        ]

        cur.execute("SELECT exercise_id, muscle_id, muscle_intensity, exercise_muscle_weight FROM exercise_muscles;")
        links = [
            ExerciseMuscleLink(
                exercise_id=str(r['exercise_id']),
                muscle_id=str(r['muscle_id']),
                intensity=MuscleIntensity(r['muscle_intensity']),
                weight=float(r['exercise_muscle_weight'] or 0),
            )
            for r in cur.fetchall()
        ]

        cur.execute("SELECT id, name FROM rank_tiers ORDER BY tier_order;")
        tier_rows = cur.fetchall()
        cur.execute("SELECT id, tier_id, name, min_score FROM rank_sub_tiers ORDER BY min_score;")
        sub_tier_rows = cur.fetchall()

    try:
        tier_table = TierTable.from_rows(tier_rows, sub_tier_rows)
    except TierConfigurationError as e:
        logger.error("Invalid rank tier configuration: %s", e)
        raise

    logger.info(
        "Loaded reference data: %d exercises, %d muscles, %d muscle groups, %d sub-tiers",
        len(exercises), len(muscles), len(muscle_groups), len(tier_table),
    )
    return ReferenceData.build(exercises, muscles, muscle_groups, links, tier_table)


def get_reference_data(conn, ttl_seconds=REFERENCE_CACHE_TTL_SECONDS):
    """Cached load_reference_data; catalogs are shared by every pass in this process."""
    with _reference_lock:
        cached = _reference_cache["data"]
        if cached is not None and time.monotonic() - _reference_cache["loaded_at"] < ttl_seconds:
            return cached

    data = load_reference_data(conn)
    with _reference_lock:
        _reference_cache["data"] = data
        _reference_cache["loaded_at"] = time.monotonic()
    return data


def clear_reference_cache():
    with _reference_lock:
        _reference_cache["data"] = None
        _reference_cache["loaded_at"] = 0.0


# --- Rank state ---

def fetch_rank_states(conn, user_id):
    with _dict_cursor(conn) as cur:
        cur.execute("SELECT * FROM user_ranks WHERE user_id = %s;", (user_id,))
        user_row = cur.fetchone()

        cur.execute("SELECT * FROM muscle_group_ranks WHERE user_id = %s;", (user_id,))
        group_rows = cur.fetchall()

        cur.execute("SELECT * FROM muscle_ranks WHERE user_id = %s;", (user_id,))
        muscle_rows = cur.fetchall()

        cur.execute("SELECT * FROM user_exercise_ranks WHERE user_id = %s;", (user_id,))
        exercise_rows = cur.fetchall()

    group_ranks = [MuscleGroupRank.from_row(r) for r in group_rows]
    muscle_ranks = [MuscleRank.from_row(r) for r in muscle_rows]
    exercise_ranks = [ExerciseRank.from_row(r) for r in exercise_rows]
    return UserRankStates(
        user_rank=UserRank.from_row(user_row) if user_row else None,
        muscle_group_ranks={r.muscle_group_id: r for r in group_ranks},
        muscle_ranks={r.muscle_id: r for r in muscle_ranks},
        exercise_ranks={r.exercise_id: r for r in exercise_ranks},
    )


def _upsert(cur, table, key_columns, extra_columns, states):
    if not states:
        return
    columns = ("user_id",) + key_columns + _RANK_COLUMNS + extra_columns
    updates = ", ".join(f"{c} = EXCLUDED.{c}" for c in _RANK_COLUMNS + extra_columns)
    conflict = ", ".join(("user_id",) + key_columns)
    query = (
        f"INSERT INTO {table} ({', '.join(columns)}) VALUES %s "
        f"ON CONFLICT ({conflict}) DO UPDATE SET {updates};"
    )
    rows = []
    for state in states:
        row = state.to_row()
        rows.append(tuple(row[c] for c in columns))
    psycopg2.extras.execute_values(cur, query, rows)
    logger.debug("Upserted %d rows into %s", len(rows), table)


def save_rank_payload(conn, payload):
    """Writes the rank rows of a RankUpdatePayload; one batch per table."""
    if payload.is_empty:
        return
    with conn.cursor() as cur:
        if payload.user_rank is not None:
            _upsert(cur, "user_ranks", (), (), [payload.user_rank])
        _upsert(cur, "muscle_group_ranks", ("muscle_group_id",), ("locked",), payload.muscle_group_ranks)
        _upsert(cur, "muscle_ranks", ("muscle_id",), ("locked",), payload.muscle_ranks)
        _upsert(
            cur,
            "user_exercise_ranks",
            ("exercise_id",),
            ("weight_kg", "reps", "bodyweight_kg", "estimated_1rm", "swr", "session_set_id"),
            payload.exercise_ranks,
        )


# --- Calculator log ---

def insert_rank_calculation(conn, user_id, exercise_id, weight_kg, reps, bodyweight_kg, old_balance):
    with conn.cursor() as cur:
        cur.execute(
            """
            INSERT INTO rank_calculations
                (user_id, exercise_id, weight_kg, reps, bodyweight_kg, status, old_balance)
            VALUES (%s, %s, %s, %s, %s, 'pending', %s)
            RETURNING id;
            """,
            (user_id, exercise_id, weight_kg, reps, bodyweight_kg, old_balance),
        )
        return str(cur.fetchone()[0])


def finish_rank_calculation(conn, calculation_id, status, new_balance=None, rank_up_data=None, error_message=None):
    with conn.cursor() as cur:
        cur.execute(
            """
            UPDATE rank_calculations
            SET status = %s, new_balance = %s, rank_up_data = %s, error_message = %s, updated_at = NOW()
            WHERE id = %s;
            """,
            (
                status,
                new_balance,
                psycopg2.extras.Json(rank_up_data) if rank_up_data is not None else None,
                error_message,
                calculation_id,
            ),
        )


# --- Workouts ---

def fetch_workout_inputs(conn, workout_id):
    """Completed sets of a workout as performance inputs."""
    with _dict_cursor(conn) as cur:
        cur.execute(
            """
            SELECT id, exercise_id, actual_weight, actual_reps, duration_seconds
            FROM workout_sets
            WHERE workout_id = %s AND completed_at IS NOT NULL
            ORDER BY set_number;
            """,
            (workout_id,),
        )
        rows = cur.fetchall()
    return [
        PerformanceInput(
            exercise_id=str(r['exercise_id']),
            reps=int(r.get('actual_reps') or 0),
            duration=float(r.get('duration_seconds') or 0),
            weight_kg=float(r.get('actual_weight') or 0),
            session_set_id=str(r['id']),
        )
        for r in rows
    ]
