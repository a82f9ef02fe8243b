"""
Unit tests for correlation-aware webhook logging and log redaction.
"""

import json
import logging

from infrastructure.logging_config import JSONFormatter, SensitiveDataFilter
from infrastructure.webhook_logging import (
    REDACTED,
    create_webhook_logger,
    log_webhook_event,
    sanitize_for_logging,
)


def test_sanitize_redacts_nested_sensitive_keys():
    cleaned = sanitize_for_logging({
        "user_id": "u1",
        "apiKey": "abc",
        "nested": {"previewToken": "t", "ok": 1},
        "items": [{"client_secret": "s"}],
    })
    assert cleaned == {
        "user_id": "u1",
        "apiKey": REDACTED,
        "nested": {"previewToken": REDACTED, "ok": 1},
        "items": [{"client_secret": REDACTED}],
    }


def test_child_shares_correlation_id_and_merges_context():
    logger = create_webhook_logger("vapiWebhook")
    child = logger.child(vapi_call_id="call-1")
    grandchild = child.child(session_id="s1")

    assert child.correlation_id == logger.correlation_id
    assert grandchild.context == {"vapi_call_id": "call-1", "session_id": "s1"}


def test_each_invocation_gets_a_new_correlation_id():
    assert create_webhook_logger("a").correlation_id != create_webhook_logger("a").correlation_id


def test_context_lands_on_record(caplog):
    logger = create_webhook_logger("revenuecatWebhook").child(user_id="u1")
    with caplog.at_level(logging.INFO, logger="webhooks"):
        log_webhook_event(logger, "RENEWAL", "processed", duration_ms=12.5)

    record = caplog.records[-1]
    assert record.handler == "revenuecatWebhook"
    assert record.webhook_context == {
        "user_id": "u1",
        "webhook_status": "processed",
        "event_type": "RENEWAL",
        "duration_ms": 12.5,
    }
    assert "Webhook processed: RENEWAL" in record.getMessage()


def test_failed_events_log_at_error(caplog):
    logger = create_webhook_logger("clerkWebhook")
    with caplog.at_level(logging.INFO, logger="webhooks"):
        log_webhook_event(logger, "user.created", "failed")
    assert caplog.records[-1].levelno == logging.ERROR


def test_timer_returns_milliseconds():
    elapsed = create_webhook_logger("x").start_timer()
    assert elapsed() >= 0


def test_json_formatter_includes_webhook_fields():
    record = logging.LogRecord("webhooks.x", logging.INFO, __file__, 1, "hello", None, None)
    record.handler = "blogApi"
    record.correlation_id = "abc"
    record.webhook_context = {"post_id": "p1"}

    entry = json.loads(JSONFormatter().format(record))
    assert entry["handler"] == "blogApi"
    assert entry["correlation_id"] == "abc"
    assert entry["webhook_context"] == {"post_id": "p1"}


def test_sensitive_filter_redacts_bearer_and_signing_secrets():
    record = logging.LogRecord(
        "x", logging.INFO, __file__, 1,
        "Authorization: Bearer abc.def and whsec_AAAAAAAAAAAAAAAAAAAA", None, None,
    )
    SensitiveDataFilter().filter(record)
    assert "abc.def" not in record.msg
    assert "whsec_AAAA" not in record.msg


def test_sensitive_filter_redacts_review_link_tokens():
    record = logging.LogRecord(
        "x", logging.INFO, __file__, 1, "Sent review %s", ("https://api/approve?postId=p1&token=abc123XYZ",), None,
    )
    SensitiveDataFilter().filter(record)
    assert record.getMessage() == "Sent review https://api/approve?postId=p1&token=[REDACTED]"


def test_json_formatter_lifts_outcome_marker():
    record = logging.LogRecord("webhooks.x", logging.ERROR, __file__, 1, "Webhook failed: x", None, None)
    record.webhook_context = {"webhook_status": "failed", "event_type": "RENEWAL", "user_id": "u1"}

    entry = json.loads(JSONFormatter().format(record))
    assert entry["webhook_status"] == "failed"
    assert entry["event_type"] == "RENEWAL"
    assert entry["level"] == "ERROR"
