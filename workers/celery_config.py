"""Celery settings for domain event delivery."""

from kombu import Exchange, Queue

from core.config import settings

broker_url = settings.celery_broker_url
result_backend = settings.celery_result_backend

task_serializer = "json"
result_serializer = "json"
accept_content = ["json"]
timezone = "UTC"
enable_utc = True

# Webhook deliveries are short; a stuck subscriber must not hold a worker
task_soft_time_limit = int(settings.event_webhook_timeout * 3)
task_time_limit = task_soft_time_limit + 30
task_acks_late = True
task_reject_on_worker_lost = True

worker_prefetch_multiplier = 1
worker_max_tasks_per_child = 1000

events_exchange = Exchange("talent", type="direct")
task_default_queue = "default"
task_queues = (
    Queue("default", exchange=events_exchange, routing_key="default"),
    Queue("domain_events", exchange=events_exchange, routing_key="events"),
)
task_routes = {
    "workers.tasks.events.*": {"queue": "domain_events"},
}

# Delivery results are only inspected while debugging a subscriber
result_expires = 3600
