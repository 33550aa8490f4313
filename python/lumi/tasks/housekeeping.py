"""Periodic housekeeping tasks run by Celery beat.

- cleanup_expired_votes: delete skip/vibe votes whose window has closed.
  Reads already ignore expired votes; this only bounds table growth.
- sweep_stale_presence: delete presence rows older than the recent window
  and clear typing flags a client never turned off.

Each task opens its own session and returns a count for observability.
"""

from lumi.celery import celery_app
from lumi.db.session import get_session_factory, session_scope
from lumi.logging import clear_task_context, configure_task_logging, get_logger
from lumi.services import presence as presence_service
from lumi.services import votes as votes_service

logger = get_logger(__name__)


def run_cleanup_expired_votes() -> int:
    """Delete expired votes. Returns the number removed."""
    with session_scope(get_session_factory()) as db:
        removed = votes_service.cleanup_expired_votes(db)

    if removed:
        logger.info("expired_votes_cleaned", removed=removed)
    return removed


def run_sweep_stale_presence() -> dict:
    """Sweep stale presence rows and typing flags."""
    with session_scope(get_session_factory()) as db:
        deleted, cleared = presence_service.sweep_stale_presence(db)

    if deleted or cleared:
        logger.info("presence_swept", deleted=deleted, typing_cleared=cleared)
    return {"deleted": deleted, "typing_cleared": cleared}


@celery_app.task(bind=True, max_retries=0, name="cleanup_expired_votes")
def cleanup_expired_votes(self) -> int:
    configure_task_logging(task_name="cleanup_expired_votes", task_id=self.request.id)
    try:
        return run_cleanup_expired_votes()
    finally:
        clear_task_context()


@celery_app.task(bind=True, max_retries=0, name="sweep_stale_presence")
def sweep_stale_presence(self) -> dict:
    configure_task_logging(task_name="sweep_stale_presence", task_id=self.request.id)
    try:
        return run_sweep_stale_presence()
    finally:
        clear_task_context()
