"""Celery worker and beat entrypoint for Lumi housekeeping.

    celery -A apps.worker.main:celery_app worker --beat --loglevel=info

Tasks are registered by importing lumi.tasks below; there is no autodiscovery.
Each task binds task_name and task_id to the log context when it starts.
"""

from celery.signals import setup_logging, worker_process_init

from lumi.celery import celery_app
from lumi.logging import configure_logging, get_logger
from lumi.tasks import cleanup_expired_votes, sweep_stale_presence  # noqa: F401


@setup_logging.connect
def use_structured_logging(**kwargs):
    """Keep Celery from installing its own handlers on the root logger."""
    configure_logging()


@worker_process_init.connect
def log_worker_start(**kwargs):
    configure_logging()
    logger = get_logger(__name__)
    logger.info("lumi_worker_started", beat_entries=len(celery_app.conf.beat_schedule))


__all__ = ["celery_app"]
