from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Dict, Optional, Protocol

if TYPE_CHECKING:
    from .client import RateLimitInfo

RESERVED_LOG_KEYS = {
    "name",
    "msg",
    "args",
    "levelname",
    "levelno",
    "pathname",
    "filename",
    "module",
    "exc_info",
    "exc_text",
    "stack_info",
    "lineno",
    "funcName",
    "created",
    "msecs",
    "relativeCreated",
    "thread",
    "threadName",
    "processName",
    "process",
}


def _clean_fields(fields: Dict[str, Any]) -> Dict[str, Any]:
    return {k: v for k, v in fields.items() if k not in RESERVED_LOG_KEYS}


def log_event(
    event: str,
    logger: logging.Logger | None = None,
    *,
    level: int = logging.INFO,
    **fields: Any,
) -> None:
    """
    Minimal structured logging helper.
    - Uses the logger with an extra dict so formatters can include keys.
    - Drops reserved LogRecord attributes to avoid collisions.
    """
    log = logger or logging.getLogger("trello_mcp.observability")
    extra = {"event": event, **_clean_fields(fields)}
    log.log(level, event, extra=extra)


@dataclass(frozen=True)
class AttemptRecord:
    """One physical request attempt, successful or not."""

    operation: str
    attempt: int
    method: str
    endpoint: str
    duration_ms: int
    status: Optional[int]
    outcome: str
    rate_limit: Optional["RateLimitInfo"] = None
    request_id: Optional[str] = None


class AttemptRecorder(Protocol):
    def record_attempt(self, record: AttemptRecord) -> None: ...


class LogAttemptRecorder:
    """Default recorder: one `trello_attempt` log event per attempt."""

    def __init__(self, logger: logging.Logger | None = None):
        self.log = logger or logging.getLogger("trello_mcp.observability")

    def record_attempt(self, record: AttemptRecord) -> None:
        rl = record.rate_limit
        log_event(
            "trello_attempt",
            self.log,
            tool=record.operation,
            attempt=record.attempt,
            method=record.method,
            endpoint=record.endpoint,
            duration_ms=record.duration_ms,
            status=record.status if record.status is not None else "exception",
            outcome=record.outcome,
            request_id=record.request_id,
            rate_limit_remaining=rl.remaining if rl else None,
            rate_limit_limit=rl.limit if rl else None,
        )


__all__ = [
    "log_event",
    "AttemptRecord",
    "AttemptRecorder",
    "LogAttemptRecorder",
]
