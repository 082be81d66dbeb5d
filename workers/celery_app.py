"""Celery app factory."""

from celery import Celery

celery_app = Celery("talent", include=["workers.tasks.events"])
celery_app.config_from_object("workers.celery_config")
