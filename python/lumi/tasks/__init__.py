"""Housekeeping tasks; importing this package registers them on ``celery_app``."""

from lumi.tasks.housekeeping import cleanup_expired_votes, sweep_stale_presence

__all__ = ["cleanup_expired_votes", "sweep_stale_presence"]
