"""Worker package, so ``celery -A apps.worker`` finds the app."""

from apps.worker.main import celery_app

__all__ = ["celery_app"]
