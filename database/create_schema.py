import psycopg2
import sys

from rank_engine.db import get_db_connection_params

conn_params = get_db_connection_params()
_db_connection_method = f"host '{conn_params.get('host')}'"


# SQL commands to create tables and indexes
SQL_COMMANDS = """
CREATE EXTENSION IF NOT EXISTS "pgcrypto";

-- Users Table
CREATE TABLE IF NOT EXISTS users (
    id UUID PRIMARY KEY DEFAULT gen_random_uuid(),
    email VARCHAR(255) UNIQUE NOT NULL,
    name VARCHAR(255),
    gender VARCHAR(20) CHECK (gender IN ('male', 'female', 'other')),
    is_premium BOOLEAN NOT NULL DEFAULT FALSE,
    rank_calculator_balance INTEGER NOT NULL DEFAULT 0,
    created_at TIMESTAMPTZ DEFAULT CURRENT_TIMESTAMP,
    updated_at TIMESTAMPTZ DEFAULT CURRENT_TIMESTAMP
);

-- Bodyweight history; the latest measurement is the one used for ranking
CREATE TABLE IF NOT EXISTS body_measurements (
    id UUID PRIMARY KEY DEFAULT gen_random_uuid(),
    user_id UUID NOT NULL REFERENCES users(id) ON DELETE CASCADE,
    weight_kg NUMERIC(6,2) NOT NULL CHECK (weight_kg > 0),
    measured_at TIMESTAMPTZ NOT NULL DEFAULT CURRENT_TIMESTAMP
);
CREATE INDEX IF NOT EXISTS idx_body_measurements_user_date ON body_measurements(user_id, measured_at DESC);

-- Muscle hierarchy
CREATE TABLE IF NOT EXISTS muscle_groups (
    id UUID PRIMARY KEY DEFAULT gen_random_uuid(),
    name VARCHAR(100) UNIQUE NOT NULL,
    overall_weight NUMERIC(5,4) NOT NULL DEFAULT 0
);

CREATE TABLE IF NOT EXISTS muscles (
    id UUID PRIMARY KEY DEFAULT gen_random_uuid(),
    name VARCHAR(100) UNIQUE NOT NULL,
    muscle_group_id UUID NOT NULL REFERENCES muscle_groups(id) ON DELETE CASCADE,
    muscle_group_weight NUMERIC(5,4) NOT NULL DEFAULT 0
);

-- Exercise catalog with elite reference values per gender
CREATE TABLE IF NOT EXISTS exercises (
    id UUID PRIMARY KEY DEFAULT gen_random_uuid(),
    name VARCHAR(255) UNIQUE NOT NULL,
    exercise_type VARCHAR(30) NOT NULL DEFAULT 'free_weight' CHECK (exercise_type IN (
        'free_weight', 'weighted_body_weight', 'assisted_body_weight', 'calisthenics', 'cardio'
    )),
    alpha_value NUMERIC(6,4),
    elite_reps_male NUMERIC(6,2),
    elite_reps_female NUMERIC(6,2),
    elite_duration_male NUMERIC(8,2),
    elite_duration_female NUMERIC(8,2),
    elite_swr_male NUMERIC(6,3),
    elite_swr_female NUMERIC(6,3),
    created_at TIMESTAMPTZ DEFAULT CURRENT_TIMESTAMP
);

CREATE TABLE IF NOT EXISTS exercise_muscles (
    exercise_id UUID NOT NULL REFERENCES exercises(id) ON DELETE CASCADE,
    muscle_id UUID NOT NULL REFERENCES muscles(id) ON DELETE CASCADE,
    muscle_intensity VARCHAR(10) NOT NULL CHECK (muscle_intensity IN ('primary', 'secondary')),
    exercise_muscle_weight NUMERIC(5,4) NOT NULL DEFAULT 1,
    PRIMARY KEY (exercise_id, muscle_id)
);

-- Tier thresholds
CREATE TABLE IF NOT EXISTS rank_tiers (
    id SERIAL PRIMARY KEY,
    name VARCHAR(50) UNIQUE NOT NULL,
    tier_order INTEGER UNIQUE NOT NULL
);

CREATE TABLE IF NOT EXISTS rank_sub_tiers (
    id SERIAL PRIMARY KEY,
    tier_id INTEGER NOT NULL REFERENCES rank_tiers(id) ON DELETE CASCADE,
    name VARCHAR(50) NOT NULL,
    min_score INTEGER UNIQUE NOT NULL CHECK (min_score >= 0),
    UNIQUE (tier_id, name)
);

-- Rank state, one row per (user, entity); both tracks side by side
CREATE TABLE IF NOT EXISTS user_ranks (
    user_id UUID PRIMARY KEY REFERENCES users(id) ON DELETE CASCADE,
    permanent_score INTEGER NOT NULL DEFAULT 0,
    permanent_tier_id INTEGER REFERENCES rank_tiers(id),
    permanent_sub_tier_id INTEGER REFERENCES rank_sub_tiers(id),
    leaderboard_score INTEGER NOT NULL DEFAULT 0,
    leaderboard_tier_id INTEGER REFERENCES rank_tiers(id),
    leaderboard_sub_tier_id INTEGER REFERENCES rank_sub_tiers(id),
    last_calculated_at TIMESTAMPTZ
);

CREATE TABLE IF NOT EXISTS muscle_group_ranks (
    user_id UUID NOT NULL REFERENCES users(id) ON DELETE CASCADE,
    muscle_group_id UUID NOT NULL REFERENCES muscle_groups(id) ON DELETE CASCADE,
    permanent_score INTEGER NOT NULL DEFAULT 0,
    permanent_tier_id INTEGER REFERENCES rank_tiers(id),
    permanent_sub_tier_id INTEGER REFERENCES rank_sub_tiers(id),
    leaderboard_score INTEGER NOT NULL DEFAULT 0,
    leaderboard_tier_id INTEGER REFERENCES rank_tiers(id),
    leaderboard_sub_tier_id INTEGER REFERENCES rank_sub_tiers(id),
    locked BOOLEAN NOT NULL DEFAULT FALSE,
    last_calculated_at TIMESTAMPTZ,
    PRIMARY KEY (user_id, muscle_group_id)
);

CREATE TABLE IF NOT EXISTS muscle_ranks (
    user_id UUID NOT NULL REFERENCES users(id) ON DELETE CASCADE,
    muscle_id UUID NOT NULL REFERENCES muscles(id) ON DELETE CASCADE,
    permanent_score INTEGER NOT NULL DEFAULT 0,
    permanent_tier_id INTEGER REFERENCES rank_tiers(id),
    permanent_sub_tier_id INTEGER REFERENCES rank_sub_tiers(id),
    leaderboard_score INTEGER NOT NULL DEFAULT 0,
    leaderboard_tier_id INTEGER REFERENCES rank_tiers(id),
    leaderboard_sub_tier_id INTEGER REFERENCES rank_sub_tiers(id),
    locked BOOLEAN NOT NULL DEFAULT FALSE,
    last_calculated_at TIMESTAMPTZ,
    PRIMARY KEY (user_id, muscle_id)
);

-- Workout logging (input for workout-sourced calculations)
CREATE TABLE IF NOT EXISTS workouts (
    id UUID PRIMARY KEY DEFAULT gen_random_uuid(),
    user_id UUID NOT NULL REFERENCES users(id) ON DELETE CASCADE,
    started_at TIMESTAMPTZ,
    completed_at TIMESTAMPTZ,
    created_at TIMESTAMPTZ DEFAULT CURRENT_TIMESTAMP
);

CREATE TABLE IF NOT EXISTS workout_sets (
    id UUID PRIMARY KEY DEFAULT gen_random_uuid(),
    workout_id UUID NOT NULL REFERENCES workouts(id) ON DELETE CASCADE,
    exercise_id UUID NOT NULL REFERENCES exercises(id),
    set_number INTEGER NOT NULL,
    actual_weight NUMERIC(6,2),
    actual_reps INTEGER,
    duration_seconds NUMERIC(8,2),
    completed_at TIMESTAMPTZ
);
CREATE INDEX IF NOT EXISTS idx_workout_sets_workout ON workout_sets(workout_id);

CREATE TABLE IF NOT EXISTS user_exercise_ranks (
    user_id UUID NOT NULL REFERENCES users(id) ON DELETE CASCADE,
    exercise_id UUID NOT NULL REFERENCES exercises(id) ON DELETE CASCADE,
    permanent_score INTEGER NOT NULL DEFAULT 0,
    permanent_tier_id INTEGER REFERENCES rank_tiers(id),
    permanent_sub_tier_id INTEGER REFERENCES rank_sub_tiers(id),
    leaderboard_score INTEGER NOT NULL DEFAULT 0,
    leaderboard_tier_id INTEGER REFERENCES rank_tiers(id),
    leaderboard_sub_tier_id INTEGER REFERENCES rank_sub_tiers(id),
    weight_kg NUMERIC(6,2),
    reps INTEGER,
    bodyweight_kg NUMERIC(6,2),
    estimated_1rm NUMERIC(7,2),
    swr NUMERIC(6,3),
    session_set_id UUID REFERENCES workout_sets(id) ON DELETE SET NULL,
    last_calculated_at TIMESTAMPTZ,
    PRIMARY KEY (user_id, exercise_id)
);

-- Rank calculator usage log
CREATE TABLE IF NOT EXISTS rank_calculations (
    id UUID PRIMARY KEY DEFAULT gen_random_uuid(),
    user_id UUID NOT NULL REFERENCES users(id) ON DELETE CASCADE,
    exercise_id UUID REFERENCES exercises(id),
    weight_kg NUMERIC(6,2),
    reps INTEGER,
    bodyweight_kg NUMERIC(6,2),
    status VARCHAR(20) NOT NULL DEFAULT 'pending' CHECK (status IN ('pending', 'success', 'failed')),
    old_balance INTEGER,
    new_balance INTEGER,
    rank_up_data JSONB,
    error_message TEXT,
    created_at TIMESTAMPTZ DEFAULT CURRENT_TIMESTAMP,
    updated_at TIMESTAMPTZ DEFAULT CURRENT_TIMESTAMP
);
CREATE INDEX IF NOT EXISTS idx_rank_calculations_user ON rank_calculations(user_id, created_at DESC);

-- Function to update 'updated_at' timestamp
CREATE OR REPLACE FUNCTION trigger_set_timestamp()
RETURNS TRIGGER AS $$
BEGIN
  NEW.updated_at = NOW();
  RETURN NEW;
END;
$$ LANGUAGE plpgsql;

DROP TRIGGER IF EXISTS set_timestamp_users ON users;
CREATE TRIGGER set_timestamp_users
BEFORE UPDATE ON users
FOR EACH ROW
EXECUTE FUNCTION trigger_set_timestamp();
"""

def create_schema():
    conn = None
    try:
        print(f"Attempting to connect using {_db_connection_method}.")
        conn = psycopg2.connect(**conn_params)
        print(f"Successfully connected to database '{conn_params.get('dbname')}' on host '{conn_params.get('host')}'.")
        with conn.cursor() as cur:
            cur.execute(SQL_COMMANDS)
            print("Schema creation commands executed.")
        conn.commit()
        print("Schema created successfully (or already existed).")
    except psycopg2.OperationalError as e:
        print(f"Error connecting to the database using {_db_connection_method}: {e}")
        print("Please ensure PostgreSQL is running and accessible, "
              "and that the target database exists with appropriate permissions.")
        sys.exit(1)
    except psycopg2.Error as e:
        print(f"Error during database operation (using {_db_connection_method}): {e}")
        if conn:
            conn.rollback()
        sys.exit(1)
    finally:
        if conn:
            conn.close()
            print("Database connection closed.")

if __name__ == "__main__":
    print("Attempting to create/update rank engine schema...")
    create_schema()
    print("Script finished.")
