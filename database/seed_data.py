import psycopg2
import sys

from rank_engine.db import get_db_connection_params

conn_params = get_db_connection_params()

# Tiers from lowest to highest, with the min_score of each sub-tier
RANK_TIERS_DATA = [
    ("Iron", [("Iron III", 0), ("Iron II", 150), ("Iron I", 300)]),
    ("Bronze", [("Bronze III", 450), ("Bronze II", 600), ("Bronze I", 750)]),
    ("Silver", [("Silver III", 900), ("Silver II", 1100), ("Silver I", 1300)]),
    ("Gold", [("Gold III", 1500), ("Gold II", 1750), ("Gold I", 2000)]),
    ("Platinum", [("Platinum III", 2250), ("Platinum II", 2550), ("Platinum I", 2850)]),
    ("Diamond", [("Diamond III", 3150), ("Diamond II", 3500), ("Diamond I", 3850)]),
    ("Champion", [("Champion III", 4200), ("Champion II", 4450), ("Champion I", 4700)]),
    ("Legend", [("Legend", 4900)]),
]

# overall_weight of the groups sums to 1; muscle_group_weight within a group sums to 1
MUSCLE_GROUPS_DATA = {
    "Chest": {"overall_weight": 0.20, "muscles": {"chest": 1.0}},
    "Back": {"overall_weight": 0.25, "muscles": {"lats": 0.6, "traps": 0.2, "lower_back": 0.2}},
    "Legs": {"overall_weight": 0.30, "muscles": {"quadriceps": 0.45, "hamstrings": 0.30, "glutes": 0.25}},
    "Shoulders": {"overall_weight": 0.10, "muscles": {"front_deltoids": 0.5, "side_deltoids": 0.5}},
    "Arms": {"overall_weight": 0.15, "muscles": {"biceps": 0.5, "triceps": 0.5}},
}

EXERCISES_DATA = [
    {
        "name": "Barbell Bench Press",
        "exercise_type": "free_weight",
        "alpha_value": 0.1,
        "elite_swr_male": 2.0,
        "elite_swr_female": 1.25,
        "primary_muscles": {"chest": 1.0, "triceps": 0.5, "front_deltoids": 0.4},
        "secondary_muscles": {"side_deltoids": 0.2},
    },
    {
        "name": "Barbell Squat",
        "exercise_type": "free_weight",
        "alpha_value": 0.1,
        "elite_swr_male": 2.75,
        "elite_swr_female": 2.0,
        "primary_muscles": {"quadriceps": 1.0, "glutes": 0.8},
        "secondary_muscles": {"hamstrings": 0.4, "lower_back": 0.3},
    },
    {
        "name": "Deadlift",
        "exercise_type": "free_weight",
        "alpha_value": 0.1,
        "elite_swr_male": 3.25,
        "elite_swr_female": 2.4,
        "primary_muscles": {"hamstrings": 1.0, "glutes": 0.9, "lower_back": 0.8, "traps": 0.5},
        "secondary_muscles": {"quadriceps": 0.5, "lats": 0.4},
    },
    {
        "name": "Overhead Press",
        "exercise_type": "free_weight",
        "alpha_value": 0.1,
        "elite_swr_male": 1.35,
        "elite_swr_female": 0.85,
        "primary_muscles": {"front_deltoids": 1.0, "side_deltoids": 0.5, "triceps": 0.5},
        "secondary_muscles": {"traps": 0.2},
    },
    {
        "name": "Barbell Curl",
        "exercise_type": "free_weight",
        "alpha_value": 0.15,
        "elite_swr_male": 0.9,
        "elite_swr_female": 0.55,
        "primary_muscles": {"biceps": 1.0},
        "secondary_muscles": {},
    },
    {
        "name": "Weighted Pull-Up",
        "exercise_type": "weighted_body_weight",
        "alpha_value": 0.1,
        "elite_swr_male": 1.9,
        "elite_swr_female": 1.45,
        "primary_muscles": {"lats": 1.0, "biceps": 0.6},
        "secondary_muscles": {"traps": 0.3},
    },
    {
        "name": "Assisted Dip",
        "exercise_type": "assisted_body_weight",
        "alpha_value": 0.1,
        "elite_swr_male": 1.6,
        "elite_swr_female": 1.2,
        "primary_muscles": {"triceps": 1.0, "chest": 0.7},
        "secondary_muscles": {"front_deltoids": 0.3},
    },
    {
        "name": "Push-Up",
        "exercise_type": "calisthenics",
        "alpha_value": 0.2,
        "elite_reps_male": 80,
        "elite_reps_female": 50,
        "primary_muscles": {"chest": 0.8, "triceps": 0.6},
        "secondary_muscles": {"front_deltoids": 0.3},
    },
    {
        "name": "Pull-Up",
        "exercise_type": "calisthenics",
        "alpha_value": 0.2,
        "elite_reps_male": 30,
        "elite_reps_female": 15,
        "primary_muscles": {"lats": 0.9, "biceps": 0.5},
        "secondary_muscles": {},
    },
    {
        "name": "Plank",
        "exercise_type": "cardio",
        "alpha_value": 0.1,
        "elite_duration_male": 600,
        "elite_duration_female": 600,
        "primary_muscles": {},
        "secondary_muscles": {},
    },
]


def seed_tiers(cur):
    for order, (tier_name, sub_tiers) in enumerate(RANK_TIERS_DATA):
        cur.execute(
            """
            INSERT INTO rank_tiers (name, tier_order) VALUES (%s, %s)
            ON CONFLICT (name) DO UPDATE SET tier_order = EXCLUDED.tier_order
            RETURNING id;
            """,
            (tier_name, order),
        )
        tier_id = cur.fetchone()[0]
        for sub_tier_name, min_score in sub_tiers:
            cur.execute(
                """
                INSERT INTO rank_sub_tiers (tier_id, name, min_score) VALUES (%s, %s, %s)
                ON CONFLICT (tier_id, name) DO UPDATE SET min_score = EXCLUDED.min_score;
                """,
                (tier_id, sub_tier_name, min_score),
            )
    print(f"Seeded {len(RANK_TIERS_DATA)} rank tiers.")


def seed_muscles(cur):
    muscle_ids = {}
    for group_name, group in MUSCLE_GROUPS_DATA.items():
        cur.execute(
            """
            INSERT INTO muscle_groups (name, overall_weight) VALUES (%s, %s)
            ON CONFLICT (name) DO UPDATE SET overall_weight = EXCLUDED.overall_weight
            RETURNING id;
            """,
            (group_name, group["overall_weight"]),
        )
        group_id = cur.fetchone()[0]
        for muscle_name, weight in group["muscles"].items():
            cur.execute(
                """
                INSERT INTO muscles (name, muscle_group_id, muscle_group_weight) VALUES (%s, %s, %s)
                ON CONFLICT (name) DO UPDATE SET
                    muscle_group_id = EXCLUDED.muscle_group_id,
                    muscle_group_weight = EXCLUDED.muscle_group_weight
                RETURNING id;
                """,
                (muscle_name, group_id, weight),
            )
            muscle_ids[muscle_name] = cur.fetchone()[0]
    print(f"Seeded {len(MUSCLE_GROUPS_DATA)} muscle groups and {len(muscle_ids)} muscles.")
    return muscle_ids


def seed_exercises(cur, muscle_ids):
    for exercise in EXERCISES_DATA:
        cur.execute(
            """
            INSERT INTO exercises (
                name, exercise_type, alpha_value,
                elite_reps_male, elite_reps_female,
                elite_duration_male, elite_duration_female,
                elite_swr_male, elite_swr_female
            ) VALUES (
                %(name)s, %(exercise_type)s, %(alpha_value)s,
                %(elite_reps_male)s, %(elite_reps_female)s,
                %(elite_duration_male)s, %(elite_duration_female)s,
                %(elite_swr_male)s, %(elite_swr_female)s
            ) ON CONFLICT (name) DO UPDATE SET
                exercise_type = EXCLUDED.exercise_type,
                alpha_value = EXCLUDED.alpha_value,
                elite_reps_male = EXCLUDED.elite_reps_male,
                elite_reps_female = EXCLUDED.elite_reps_female,
                elite_duration_male = EXCLUDED.elite_duration_male,
                elite_duration_female = EXCLUDED.elite_duration_female,
                elite_swr_male = EXCLUDED.elite_swr_male,
                elite_swr_female = EXCLUDED.elite_swr_female
            RETURNING id;
            """,
            {
                "name": exercise["name"],
                "exercise_type": exercise["exercise_type"],
                "alpha_value": exercise.get("alpha_value"),
                "elite_reps_male": exercise.get("elite_reps_male"),
                "elite_reps_female": exercise.get("elite_reps_female"),
                "elite_duration_male": exercise.get("elite_duration_male"),
                "elite_duration_female": exercise.get("elite_duration_female"),
                "elite_swr_male": exercise.get("elite_swr_male"),
                "elite_swr_female": exercise.get("elite_swr_female"),
            },
        )
        exercise_id = cur.fetchone()[0]

        links = [("primary", m, w) for m, w in exercise["primary_muscles"].items()]
        links += [("secondary", m, w) for m, w in exercise["secondary_muscles"].items()]
        for intensity, muscle_name, weight in links:
            if muscle_name not in muscle_ids:
                print(f"Warning: unknown muscle '{muscle_name}' for {exercise['name']}, skipping link.")
                continue
            cur.execute(
                """
                INSERT INTO exercise_muscles (exercise_id, muscle_id, muscle_intensity, exercise_muscle_weight)
                VALUES (%s, %s, %s, %s)
                ON CONFLICT (exercise_id, muscle_id) DO UPDATE SET
                    muscle_intensity = EXCLUDED.muscle_intensity,
                    exercise_muscle_weight = EXCLUDED.exercise_muscle_weight;
                """,
                (exercise_id, muscle_ids[muscle_name], intensity, weight),
            )
    print(f"Seeded {len(EXERCISES_DATA)} exercises.")


def seed_all():
    """Connects to the PostgreSQL database and seeds the ranking reference data."""
    conn = None
    try:
        conn = psycopg2.connect(**conn_params)
        print(f"Successfully connected to database '{conn_params.get('dbname')}' on host '{conn_params.get('host')}' for seeding.")
        with conn.cursor() as cur:
            seed_tiers(cur)
            muscle_ids = seed_muscles(cur)
            seed_exercises(cur, muscle_ids)
        conn.commit()
    except psycopg2.OperationalError as e:
        print(f"Error connecting to the database: {e}")
        print(f"Please ensure PostgreSQL is running and accessible on {conn_params.get('host')}:{conn_params.get('port')}.")
        sys.exit(1)
    except psycopg2.Error as e:
        print(f"Error during database operation: {e}")
        if conn:
            conn.rollback()
        sys.exit(1)
    finally:
        if conn:
            conn.close()
            print("Database connection closed after seeding.")

if __name__ == "__main__":
    print("Attempting to seed rank reference data...")
    seed_all()
    print("Seeding script finished.")
