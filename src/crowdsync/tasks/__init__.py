"""Celery tasks for background processing."""

from crowdsync.core.celery_app import celery_app

__all__ = ["celery_app"]
