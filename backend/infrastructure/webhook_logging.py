"""
Correlation-ID aware logging for webhook handlers.

Every inbound webhook gets its own ``WebhookLogger`` bound to a fresh
correlation ID and the handler name.  Context fields passed as keyword
arguments end up under ``webhook_context`` on the log record, which the
JSON formatter emits alongside ``correlation_id`` and ``handler``.

Usage::

    logger = create_webhook_logger("revenuecatWebhook")
    elapsed = logger.start_timer()
    user_logger = logger.child(user_id=user_id)
    user_logger.info("Updating subscription", event_type=event_type)
    log_webhook_event(user_logger, "INITIAL_PURCHASE", "processed", duration_ms=elapsed())
"""

import logging
import time
from typing import Any, Callable, Optional
from uuid import uuid4

_BASE_LOGGER = logging.getLogger("webhooks")

REDACTED = "***REDACTED***"
_SENSITIVE_KEY_PARTS = ("password", "token", "secret", "apikey", "api_key", "authorization")

# Keyword arguments understood by logging.Logger._log; everything else is a context field
_LOGGING_KWARGS = frozenset({"exc_info", "stack_info", "stacklevel", "extra"})


def sanitize_for_logging(value: Any) -> Any:
    """Return a copy of *value* with sensitive-looking keys replaced by ``***REDACTED***``."""
    if isinstance(value, dict):
        cleaned = {}
        for key, item in value.items():
            key_lower = str(key).lower()
            if any(part in key_lower for part in _SENSITIVE_KEY_PARTS):
                cleaned[key] = REDACTED
            else:
                cleaned[key] = sanitize_for_logging(item)
        return cleaned
    if isinstance(value, (list, tuple)):
        return [sanitize_for_logging(item) for item in value]
    return value


class WebhookLogger(logging.LoggerAdapter):
    """LoggerAdapter carrying a correlation ID, handler name and scoped context."""

    def __init__(
        self,
        logger: logging.Logger,
        handler: str,
        correlation_id: Optional[str] = None,
        context: Optional[dict[str, Any]] = None,
    ):
        self.handler = handler
        self.correlation_id = correlation_id or str(uuid4())
        self.context = dict(context or {})
        super().__init__(logger, {"handler": handler, "correlation_id": self.correlation_id})

    def process(self, msg, kwargs):
        fields = {k: kwargs.pop(k) for k in list(kwargs) if k not in _LOGGING_KWARGS}
        merged = sanitize_for_logging({**self.context, **fields})

        extra = dict(kwargs.get("extra") or {})
        extra["handler"] = self.handler
        extra["correlation_id"] = self.correlation_id
        extra["webhook_context"] = merged
        kwargs["extra"] = extra

        prefix = f"[{self.handler} {self.correlation_id[:8]}]"
        if merged:
            rendered = " ".join(f"{k}={v}" for k, v in merged.items())
            return f"{prefix} {msg} | {rendered}", kwargs
        return f"{prefix} {msg}", kwargs

    def child(self, **context: Any) -> "WebhookLogger":
        """Return a logger sharing this correlation ID with additional context fields."""
        return WebhookLogger(
            self.logger,
            self.handler,
            correlation_id=self.correlation_id,
            context={**self.context, **context},
        )

    def start_timer(self) -> Callable[[], float]:
        """Start a timer; calling the result returns elapsed milliseconds."""
        started = time.perf_counter()

        def elapsed() -> float:
            return round((time.perf_counter() - started) * 1000, 1)

        return elapsed


def create_webhook_logger(handler: str) -> WebhookLogger:
    """Create a logger for one webhook invocation with a new correlation ID."""
    return WebhookLogger(_BASE_LOGGER.getChild(handler), handler)


def log_webhook_event(
    logger: WebhookLogger,
    event_type: str,
    status: str,
    **metadata: Any,
) -> None:
    """Log the outcome marker for a webhook: received, processed, ignored or failed."""
    level = logging.ERROR if status == "failed" else logging.INFO
    logger.log(
        level,
        f"Webhook {status}: {event_type}",
        webhook_status=status,
        event_type=event_type,
        **metadata,
    )
