"""
Logging configuration.

Production emits one JSON object per line.  Webhook handlers log through
``infrastructure.webhook_logging``, whose records carry ``correlation_id``,
``handler`` and a ``webhook_context`` dict; the JSON formatter lifts the
outcome marker (``webhook_status`` / ``event_type``) to the top level so log
queries can filter on it directly.
"""

import json
import logging
import re
import sys
from datetime import UTC, datetime

# Credentials that can show up in provider payloads, headers and review links
_SENSITIVE_PATTERNS = [
    (re.compile(r"(Authorization:\s*Bearer\s+)\S+", re.IGNORECASE), r"\1[REDACTED]"),
    (re.compile(r"(Authorization:\s*sha256=)[0-9a-f]+", re.IGNORECASE), r"\1[REDACTED]"),
    (re.compile(r"(x-rankpill-signature[\"'\s:=]+)[0-9a-f]+", re.IGNORECASE), r"\1[REDACTED]"),
    (re.compile(r"(svix-signature[\"'\s:=]+)[^\s\"']+", re.IGNORECASE), r"\1[REDACTED]"),
    (re.compile(r"whsec_[A-Za-z0-9+/=]{16,}"), "[REDACTED_SIGNING_SECRET]"),
    (re.compile(r"sk-ant-[A-Za-z0-9_-]{20,}"), "[REDACTED_API_KEY]"),
    (re.compile(r"([?&]token=)[A-Za-z0-9]+"), r"\1[REDACTED]"),
    (re.compile(r'((?:api[_-]?key|secret)["\s:=]+)[^\s&"\']+', re.IGNORECASE), r"\1[REDACTED]"),
]

_REQUEST_FIELDS = ("request_id", "method", "path", "status_code", "duration_ms")
_WEBHOOK_FIELDS = ("correlation_id", "handler")
_MARKER_FIELDS = ("webhook_status", "event_type")


def redact(value: str) -> str:
    for pattern, replacement in _SENSITIVE_PATTERNS:
        value = pattern.sub(replacement, value)
    return value


class SensitiveDataFilter(logging.Filter):
    """Scrubs webhook credentials and preview tokens from messages and arguments."""

    def filter(self, record: logging.LogRecord) -> bool:
        if isinstance(record.msg, str):
            record.msg = redact(record.msg)
        if isinstance(record.args, tuple):
            record.args = tuple(redact(a) if isinstance(a, str) else a for a in record.args)
        elif isinstance(record.args, dict):
            record.args = {k: redact(v) if isinstance(v, str) else v for k, v in record.args.items()}
        return True


class JSONFormatter(logging.Formatter):
    """One JSON object per record, including request and webhook fields when present."""

    def format(self, record: logging.LogRecord) -> str:
        entry = {
            "timestamp": datetime.fromtimestamp(record.created, UTC).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }

        for key in _REQUEST_FIELDS + _WEBHOOK_FIELDS:
            if hasattr(record, key):
                entry[key] = getattr(record, key)

        context = getattr(record, "webhook_context", None)
        if isinstance(context, dict) and context:
            entry["webhook_context"] = context
            for key in _MARKER_FIELDS:
                if key in context:
                    entry[key] = context[key]

        if record.exc_info and record.exc_info[0] is not None:
            entry["exception"] = self.formatException(record.exc_info)

        return json.dumps(entry, default=str)


def setup_logging(json_output: bool = False, level: str = "INFO") -> None:
    """
    Configure the root logger.

    Args:
        json_output: JSON lines (production) instead of human-readable lines.
        level: Log level name.
    """
    root = logging.getLogger()
    root.setLevel(getattr(logging, level.upper(), logging.INFO))
    root.handlers.clear()

    handler = logging.StreamHandler(sys.stdout)
    if json_output:
        handler.setFormatter(JSONFormatter())
    else:
        handler.setFormatter(
            logging.Formatter(
                "%(asctime)s %(levelname)-8s %(name)s: %(message)s",
                datefmt="%Y-%m-%d %H:%M:%S",
            )
        )
    # On the handler so records from every logger are scrubbed, not only root's own
    handler.addFilter(SensitiveDataFilter())
    root.addHandler(handler)

    for noisy in ("sqlalchemy.engine", "httpx", "anthropic", "aiohttp.access"):
        logging.getLogger(noisy).setLevel(logging.WARNING)
