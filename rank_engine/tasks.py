import os
import logging
import psycopg2
from redis import Redis
from rq import Queue, Retry, get_current_job

from .service import calculate_workout_ranks

logger = logging.getLogger(__name__)

# Redis connection for RQ
redis_url = os.getenv("REDIS_URL", "redis://redis:6379/0")
redis_conn = Redis.from_url(redis_url)

# Queue consumed by worker.py
queue = Queue("ranking", connection=redis_conn)

DEFAULT_RETRY = Retry(max=3, interval=[10, 30, 60])


def enqueue_workout_rank_update(user_id, workout_id):
    """Enqueue rank recalculation for a completed workout with retry strategy."""
    return queue.enqueue(
        update_ranks_for_workout,
        user_id=str(user_id),
        workout_id=str(workout_id),
        retry=DEFAULT_RETRY,
    )


def update_ranks_for_workout(user_id, workout_id):
    """Recalculates ranks from a workout's sets; returns rank-up events for the feed."""
    job = get_current_job()
    if job and job.meta.get("retry_count", 0) > 0:
        logger.info(
            "Retry attempt %s for job %s", job.meta["retry_count"], job.id
        )

    try:
        results = calculate_workout_ranks(user_id, workout_id)
    except psycopg2.Error as e:
        logger.error("Database error during rank update for workout %s: %s", workout_id, e)
        raise

    events = [event.to_dict() for event in results.events]
    logger.info(
        "Rank update for workout %s (user %s) finished with %d rank-ups",
        workout_id, user_id, len(events),
    )
    return events
