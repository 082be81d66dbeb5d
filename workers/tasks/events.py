"""Domain event delivery tasks."""

import logging
from typing import Any, Dict, List, Optional

import httpx
from celery import Task

from core.config import settings
from workers.celery_app import celery_app

logger = logging.getLogger(__name__)


@celery_app.task(name="workers.tasks.events.dispatch_domain_event")
def dispatch_domain_event(
    envelope: Dict[str, Any],
    webhook_urls: Optional[List[str]] = None,
) -> dict:
    """Fan a domain event out to every configured webhook subscriber.

    Args:
        envelope: Event envelope with event_type, occurred_at and payload
        webhook_urls: Subscribers; defaults to EVENT_WEBHOOK_URLS

    Returns:
        Summary of queued deliveries
    """
    urls = settings.event_webhook_urls if webhook_urls is None else webhook_urls
    task_ids = []
    for url in urls:
        task = deliver_event.delay(webhook_url=url, envelope=envelope)
        task_ids.append(task.id)

    logger.info(
        f"Dispatched {envelope.get('event_type')} to {len(task_ids)} subscribers"
    )
    return {
        "status": "queued",
        "event_type": envelope.get("event_type"),
        "task_ids": task_ids,
        "total": len(task_ids),
    }


@celery_app.task(name="workers.tasks.events.deliver_event", bind=True)
def deliver_event(self: Task, webhook_url: str, envelope: Dict[str, Any]) -> dict:
    """Deliver one event to one subscriber, retrying with backoff.

    Args:
        webhook_url: Subscriber URL
        envelope: Event envelope

    Returns:
        Dictionary with delivery status
    """
    event_type = envelope.get("event_type", "unknown")
    headers = {
        "Content-Type": "application/json",
        "X-Event-Type": event_type,
    }
    try:
        with httpx.Client(timeout=settings.event_webhook_timeout) as client:
            response = client.post(webhook_url, json=envelope, headers=headers)
            response.raise_for_status()
    except httpx.HTTPError as e:
        logger.warning(f"Delivery of {event_type} to {webhook_url} failed: {e}")
        raise self.retry(
            exc=e,
            countdown=2 ** self.request.retries * 60,
            max_retries=5,
        )

    return {
        "status": "delivered",
        "status_code": response.status_code,
        "event_type": event_type,
    }
