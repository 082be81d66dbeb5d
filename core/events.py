"""
Domain event publishing.

Services publish after their transaction commits. Publishing is best effort:
failures are logged and never undo the change that triggered them.
"""

import asyncio
import logging
from abc import ABC, abstractmethod
from typing import Any, Dict, List, Tuple

from core.config import settings
from core.utils.datetime import now, to_iso

logger = logging.getLogger(__name__)

DISPATCH_TASK = "workers.tasks.events.dispatch_domain_event"


class EventType:
    APPLICATION_CREATED = "application.created"
    APPLICATION_STAGE_CHANGED = "application.stage_changed"
    APPLICATION_ACCEPTED = "application.accepted"
    CANDIDATE_SOURCED = "candidate.sourced"
    CANDIDATE_OUTREACH_SENT = "candidate.outreach_sent"
    COLLABORATION_ACCEPTED = "collaboration.accepted"
    PLACEMENT_CREATED = "placement.created"
    PLACEMENT_ACTIVATED = "placement.activated"
    PLACEMENT_COMPLETED = "placement.completed"
    PLACEMENT_FAILED = "placement.failed"


def build_envelope(event_type: str, payload: Dict[str, Any]) -> Dict[str, Any]:
    """Wrap a payload with its event type and timestamp."""
    return {
        "event_type": event_type,
        "occurred_at": to_iso(now()),
        "payload": payload,
    }


class EventPublisher(ABC):
    """Sink for domain events."""

    async def publish(self, event_type: str, payload: Dict[str, Any]) -> None:
        """
        Publish an event without ever raising.

        Args:
            event_type: Dotted event name, e.g. ``application.accepted``
            payload: JSON-serializable event data
        """
        try:
            await self._send(build_envelope(event_type, payload))
        except Exception as e:
            logger.error(
                f"Failed to publish {event_type}: {e}",
                extra={"event_type": event_type},
                exc_info=True,
            )

    @abstractmethod
    async def _send(self, envelope: Dict[str, Any]) -> None:
        """Deliver one event envelope."""


class CeleryEventPublisher(EventPublisher):
    """Hands events to the Celery worker that fans them out to webhooks."""

    async def _send(self, envelope: Dict[str, Any]) -> None:
        from workers.celery_app import celery_app

        # send_task talks to the broker synchronously
        await asyncio.to_thread(
            celery_app.send_task, DISPATCH_TASK, kwargs={"envelope": envelope}
        )
        logger.debug(f"Queued domain event {envelope['event_type']}")


class NullEventPublisher(EventPublisher):
    """Drops events. Used when EVENTS_ENABLED is false."""

    async def _send(self, envelope: Dict[str, Any]) -> None:
        logger.debug(f"Events disabled, dropping {envelope['event_type']}")


class RecordingEventPublisher(EventPublisher):
    """Keeps events in memory, for local runs and tests."""

    def __init__(self):
        self.events: List[Tuple[str, Dict[str, Any]]] = []

    async def _send(self, envelope: Dict[str, Any]) -> None:
        self.events.append((envelope["event_type"], envelope["payload"]))

    def of_type(self, event_type: str) -> List[Dict[str, Any]]:
        return [payload for kind, payload in self.events if kind == event_type]


_publisher: EventPublisher | None = None


def get_event_publisher() -> EventPublisher:
    """Return the process-wide publisher configured by EVENTS_ENABLED."""
    global _publisher
    if _publisher is None:
        _publisher = CeleryEventPublisher() if settings.events_enabled else NullEventPublisher()
    return _publisher
