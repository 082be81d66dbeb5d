"""
Structured logging with PII masking.

Request logs are JSON lines. Caller tokens, candidate contact details and
outreach content are redacted before anything reaches the log stream.
"""

import json
import logging
import re
import time
import traceback
import uuid
from typing import Any, Callable, Optional

from fastapi import Request, Response
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.types import ASGIApp

logger = logging.getLogger(__name__)

REDACTED = "[REDACTED]"

# Keys whose values are replaced wholesale
SENSITIVE_FIELD_PATTERNS = [
    re.compile(r"password|secret|token|api[_-]?key", re.IGNORECASE),
    re.compile(r"authorization|cookie|session", re.IGNORECASE),
    re.compile(r"caller[_-]?id", re.IGNORECASE),
    re.compile(r"phone", re.IGNORECASE),
    re.compile(r"(linkedin|github|portfolio)_url", re.IGNORECASE),
    re.compile(r"^(email_)?body$", re.IGNORECASE),
]

# Substrings replaced inside free text
PII_PATTERNS = [
    (re.compile(r"\b[A-Za-z0-9._%+-]+@[A-Za-z0-9.-]+\.[A-Za-z]{2,}\b"), "[EMAIL]"),
    (re.compile(r"\+\d{1,3}[-.\s]?\d{1,4}[-.\s]?\d{1,4}[-.\s]?\d{1,9}"), "[PHONE]"),
    (re.compile(r"\b\d{3}[-.]?\d{3}[-.]?\d{4}\b"), "[PHONE]"),
    (re.compile(r"https?://(www\.)?(linkedin|github)\.com/\S+", re.IGNORECASE), "[PROFILE_URL]"),
]

# Record attributes lifted into the JSON line when a caller passes them in ``extra``
EXTRA_LOG_FIELDS = (
    "request_id",
    "user_id",
    "event_type",
    "entity",
    "candidate_id",
    "application_id",
    "placement_id",
)

UNLOGGED_PATHS = ("/health", "/ready")
BODY_METHODS = frozenset({"POST", "PUT", "PATCH"})


def is_sensitive_field(field_name: str) -> bool:
    return any(pattern.search(field_name) for pattern in SENSITIVE_FIELD_PATTERNS)


def mask_pii(text: str) -> str:
    """Replace emails, phone numbers and profile links in free text."""
    for pattern, replacement in PII_PATTERNS:
        text = pattern.sub(replacement, text)
    return text


def mask_sensitive_data(data: Any, depth: int = 0, max_depth: int = 10) -> Any:
    """
    Mask a JSON-like structure for logging.

    Sensitive keys lose their value entirely; other strings have PII replaced.
    Structures nested deeper than ``max_depth`` are cut off.
    """
    if depth > max_depth:
        return "[MAX_DEPTH_EXCEEDED]"
    if isinstance(data, str):
        return mask_pii(data)
    if isinstance(data, list):
        return [mask_sensitive_data(item, depth + 1, max_depth) for item in data]
    if not isinstance(data, dict):
        return data

    masked = {}
    for key, value in data.items():
        if is_sensitive_field(str(key)):
            masked[key] = REDACTED
        else:
            masked[key] = mask_sensitive_data(value, depth + 1, max_depth)
    return masked


def mask_headers(headers: dict) -> dict:
    """Redact sensitive headers. An Authorization header keeps its scheme."""
    masked = {}
    for name, value in headers.items():
        if not is_sensitive_field(name):
            masked[name] = value
            continue
        scheme, _, credentials = str(value).partition(" ")
        if name.lower() == "authorization" and credentials:
            masked[name] = f"{scheme} {REDACTED}"
        else:
            masked[name] = REDACTED
    return masked


def should_log_request(path: str) -> bool:
    """Probes are not logged."""
    return not path.startswith(UNLOGGED_PATHS)


def get_client_ip(request: Request) -> str:
    """First forwarded address (or the peer), with the last IPv4 octet hidden."""
    forwarded_for = request.headers.get("x-forwarded-for")
    if forwarded_for:
        ip = forwarded_for.split(",")[0].strip()
    elif request.client:
        ip = request.client.host
    else:
        return "unknown"

    octets = ip.split(".")
    if len(octets) != 4:
        return "unknown"
    return ".".join(octets[:3] + ["xxx"])


class StructuredLoggingMiddleware(BaseHTTPMiddleware):
    """
    Logs a ``request_started`` and a ``request_completed`` line per request.

    The ``x-request-id`` header is reused when the gateway sends one and
    generated otherwise; it is echoed on the response either way. The
    completion line carries the resolved ``user_id`` once the capability
    dependency has run.
    """

    def __init__(
        self,
        app: ASGIApp,
        log_request_body: bool = False,
        max_body_size: int = 1024,
    ):
        super().__init__(app)
        self.log_request_body = log_request_body
        self.max_body_size = max_body_size

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        request_id = request.headers.get("x-request-id") or str(uuid.uuid4())
        request.state.request_id = request_id

        if not should_log_request(request.url.path):
            response = await call_next(request)
            response.headers["x-request-id"] = request_id
            return response

        logger.info(json.dumps(await self._started(request, request_id)))

        started_at = time.perf_counter()
        response = None
        try:
            response = await call_next(request)
        finally:
            self._log_completed(
                request,
                request_id,
                status_code=response.status_code if response is not None else 500,
                elapsed=time.perf_counter() - started_at,
            )

        response.headers["x-request-id"] = request_id
        return response

    async def _started(self, request: Request, request_id: str) -> dict:
        entry = {
            "event": "request_started",
            "request_id": request_id,
            "method": request.method,
            "path": request.url.path,
            "query_params": mask_sensitive_data(dict(request.query_params)),
            "client_ip": get_client_ip(request),
            "headers": mask_headers(dict(request.headers)),
        }
        if self.log_request_body and request.method in BODY_METHODS:
            body = await self._read_json_body(request)
            if body is not None:
                entry["body"] = mask_sensitive_data(body)
        return entry

    def _log_completed(
        self, request: Request, request_id: str, status_code: int, elapsed: float
    ) -> None:
        line = json.dumps(
            {
                "event": "request_completed",
                "request_id": request_id,
                "method": request.method,
                "path": request.url.path,
                "status_code": status_code,
                "duration_ms": round(elapsed * 1000, 2),
                "user_id": getattr(request.state, "user_id", None),
            }
        )
        if status_code >= 500:
            logger.error(line)
        elif status_code >= 400:
            logger.warning(line)
        else:
            logger.info(line)

    async def _read_json_body(self, request: Request) -> Optional[Any]:
        if "application/json" not in request.headers.get("content-type", ""):
            return None
        raw = await request.body()
        if len(raw) > self.max_body_size:
            return {"_truncated": True, "_size": len(raw)}
        try:
            return json.loads(raw)
        except (UnicodeDecodeError, json.JSONDecodeError) as e:
            logger.debug(f"Unparseable request body: {e}")
            return None


class StructuredFormatter(logging.Formatter):
    """One JSON object per record."""

    def format(self, record: logging.LogRecord) -> str:
        payload = {
            "timestamp": self.formatTime(record, self.datefmt),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        payload.update(
            {name: getattr(record, name) for name in EXTRA_LOG_FIELDS if hasattr(record, name)}
        )

        if record.exc_info:
            exc_type, exc, tb = record.exc_info
            payload["exception"] = {
                "type": exc_type.__name__,
                "message": str(exc),
                "traceback": traceback.format_exception(exc_type, exc, tb),
            }
        return json.dumps(payload, default=str)


def setup_logging(log_level: str = "INFO", json_logs: bool = True):
    """
    Route all logging through a single stderr handler.

    Args:
        log_level: DEBUG, INFO, WARNING or ERROR
        json_logs: Emit JSON lines instead of plain text
    """
    level = logging.getLevelName(log_level.upper())
    handler = logging.StreamHandler()
    handler.setLevel(level)
    handler.setFormatter(
        StructuredFormatter()
        if json_logs
        else logging.Formatter("%(asctime)s %(levelname)s [%(name)s] %(message)s")
    )

    root = logging.getLogger()
    for existing in list(root.handlers):
        root.removeHandler(existing)
    root.setLevel(level)
    root.addHandler(handler)

    for noisy in ("uvicorn.access", "sqlalchemy.engine", "celery.worker.strategy"):
        logging.getLogger(noisy).setLevel(logging.WARNING)
