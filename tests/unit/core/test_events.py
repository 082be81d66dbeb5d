"""
Tests for domain event publishing and webhook delivery.
"""

from unittest.mock import MagicMock, patch

import httpx
import pytest

from core.events import (
    CeleryEventPublisher,
    EventType,
    NullEventPublisher,
    RecordingEventPublisher,
    build_envelope,
)


class TestPublishers:
    def test_envelope(self):
        envelope = build_envelope(EventType.APPLICATION_ACCEPTED, {"application_id": 1})
        assert envelope["event_type"] == "application.accepted"
        assert envelope["payload"] == {"application_id": 1}
        assert envelope["occurred_at"].endswith("+00:00")

    async def test_recording_publisher(self):
        publisher = RecordingEventPublisher()
        await publisher.publish(EventType.CANDIDATE_SOURCED, {"candidate_id": 1})
        await publisher.publish(EventType.PLACEMENT_CREATED, {"id": 2})

        assert publisher.of_type(EventType.CANDIDATE_SOURCED) == [{"candidate_id": 1}]
        assert len(publisher.events) == 2

    async def test_null_publisher_drops_events(self):
        await NullEventPublisher().publish(EventType.PLACEMENT_FAILED, {"id": 1})

    async def test_publish_never_raises(self):
        publisher = CeleryEventPublisher()
        with patch("workers.celery_app.celery_app.send_task", side_effect=ConnectionError("down")):
            await publisher.publish(EventType.APPLICATION_CREATED, {"application_id": 1})

    async def test_celery_publisher_queues_dispatch_task(self):
        publisher = CeleryEventPublisher()
        with patch("workers.celery_app.celery_app.send_task") as send_task:
            await publisher.publish(EventType.APPLICATION_CREATED, {"application_id": 1})

        name = send_task.call_args.args[0]
        envelope = send_task.call_args.kwargs["kwargs"]["envelope"]
        assert name == "workers.tasks.events.dispatch_domain_event"
        assert envelope["event_type"] == "application.created"


class TestEventTasks:
    def test_dispatch_fans_out_to_subscribers(self):
        from workers.tasks import events as event_tasks

        envelope = build_envelope(EventType.PLACEMENT_CREATED, {"id": 1})
        with patch.object(event_tasks.deliver_event, "delay") as delay:
            delay.return_value = MagicMock(id="task-1")
            result = event_tasks.dispatch_domain_event(
                envelope, webhook_urls=["https://a.example/hook", "https://b.example/hook"]
            )

        assert result["total"] == 2
        assert delay.call_count == 2
        assert delay.call_args.kwargs["envelope"] == envelope

    def test_dispatch_without_subscribers(self):
        from workers.tasks import events as event_tasks

        result = event_tasks.dispatch_domain_event({"event_type": "x"}, webhook_urls=[])
        assert result["total"] == 0

    def test_deliver_posts_envelope(self):
        from workers.tasks import events as event_tasks

        envelope = build_envelope(EventType.PLACEMENT_CREATED, {"id": 1})
        response = MagicMock(status_code=202)
        with patch("workers.tasks.events.httpx.Client") as client_class:
            client = client_class.return_value.__enter__.return_value
            client.post.return_value = response
            result = event_tasks.deliver_event.run("https://a.example/hook", envelope)

        assert result == {
            "status": "delivered",
            "status_code": 202,
            "event_type": "placement.created",
        }
        headers = client.post.call_args.kwargs["headers"]
        assert headers["X-Event-Type"] == "placement.created"

    def test_deliver_retries_on_http_error(self):
        from workers.tasks import events as event_tasks

        error = httpx.ConnectError("refused")
        with patch("workers.tasks.events.httpx.Client") as client_class, patch.object(
            event_tasks.deliver_event, "retry", side_effect=RuntimeError("retry")
        ) as retry:
            client_class.return_value.__enter__.return_value.post.side_effect = error
            with pytest.raises(RuntimeError):
                event_tasks.deliver_event.run("https://a.example/hook", {"event_type": "x"})

        assert retry.call_args.kwargs["exc"] is error
