"""Celery app for Lumi's periodic housekeeping.

Nothing is enqueued from request handlers; beat drives every task:

- cleanup_expired_votes every minute
- sweep_stale_presence every five minutes

    celery -A apps.worker.main:celery_app worker --beat --loglevel=info
"""

from celery import Celery

from lumi.config import get_settings

VOTE_CLEANUP_INTERVAL_S = 60.0
PRESENCE_SWEEP_INTERVAL_S = 300.0


def create_celery_app() -> Celery:
    settings = get_settings()
    app = Celery("lumi")
    app.conf.update(
        broker_url=settings.effective_celery_broker_url,
        result_backend=settings.effective_celery_result_backend,
        task_serializer="json",
        result_serializer="json",
        accept_content=["json"],
        timezone="UTC",
        enable_utc=True,
        task_default_queue="housekeeping",
        beat_schedule={
            "cleanup-expired-votes": {
                "task": "cleanup_expired_votes",
                "schedule": VOTE_CLEANUP_INTERVAL_S,
            },
            "sweep-stale-presence": {
                "task": "sweep_stale_presence",
                "schedule": PRESENCE_SWEEP_INTERVAL_S,
            },
        },
    )
    return app


celery_app = create_celery_app()
