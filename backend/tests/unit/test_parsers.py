"""
Unit tests for provider payload parsers.

Parsers never raise: every malformed payload comes back as a ParseFailure.
"""

import json
from datetime import datetime, timezone

import pytest

from api.schemas.blog import (
    CreateDraftParams,
    PublishParams,
    is_rankpill_article,
    parse_blog_operation,
    parse_button_value,
    parse_rankpill_article,
    parse_slack_interaction,
)
from api.schemas.clerk import parse_clerk_event, parse_clerk_user
from api.schemas.generation import parse_kie_callback, parse_suno_callback
from api.schemas.revenuecat import (
    RevenueCatEventType,
    parse_revenuecat_webhook,
    sanitize_raw_event,
)
from api.schemas.vapi import extract_end_of_call_report, parse_vapi_event


# ---------------------------------------------------------------------------
# Clerk
# ---------------------------------------------------------------------------

class TestClerk:

    def test_primary_email_and_display_name(self):
        parsed = parse_clerk_user({
            "id": "user_abc",
            "primary_email_address_id": "em_2",
            "email_addresses": [
                {"id": "em_1", "email_address": "old@example.com"},
                {"id": "em_2", "email_address": "primary@example.com"},
            ],
            "first_name": "Ada",
            "last_name": "Lovelace",
        })
        assert parsed.success
        assert parsed.data.primary_email == "primary@example.com"
        assert parsed.data.display_name == "Ada Lovelace"

    def test_email_falls_back_to_first_address(self):
        parsed = parse_clerk_user({
            "id": "user_abc",
            "email_addresses": [{"id": "em_1", "email_address": "only@example.com"}],
            "username": "ada",
        })
        assert parsed.data.primary_email == "only@example.com"
        assert parsed.data.display_name == "ada"

    def test_no_email_no_name(self):
        parsed = parse_clerk_user({"id": "user_abc"})
        assert parsed.data.primary_email is None
        assert parsed.data.display_name is None

    def test_missing_user_id_fails(self):
        assert not parse_clerk_user({"email_addresses": []}).success

    def test_event_requires_object(self):
        assert not parse_clerk_event([]).success
        assert not parse_clerk_event({"type": "user.created"}).success


# ---------------------------------------------------------------------------
# RevenueCat
# ---------------------------------------------------------------------------

class TestRevenueCat:

    def _event(self, **overrides):
        event = {
            "type": "INITIAL_PURCHASE",
            "app_user_id": "user-1",
            "product_id": "eveokee_premium_monthly",
            "store": "APP_STORE",
            "environment": "PRODUCTION",
            "expiration_at_ms": 1767225600000,
            "entitlement_ids": ["premium"],
        }
        event.update(overrides)
        return {"api_version": "1.0", "event": event}

    def test_valid_event(self):
        parsed = parse_revenuecat_webhook(self._event())
        assert parsed.success
        event = parsed.data.event
        assert event.type == RevenueCatEventType.INITIAL_PURCHASE
        assert event.expires_at == datetime(2026, 1, 1, tzinfo=timezone.utc)
        assert event.resolved_entitlement_ids == ["premium"]

    def test_string_millis_are_coerced(self):
        parsed = parse_revenuecat_webhook(self._event(expiration_at_ms="1767225600000"))
        assert parsed.data.event.expiration_at_ms == 1767225600000

    def test_non_numeric_timestamp_fails(self):
        assert not parse_revenuecat_webhook(self._event(expiration_at_ms="tomorrow")).success

    @pytest.mark.parametrize("field", ["expiration_at_ms", "purchased_at_ms"])
    @pytest.mark.parametrize("value", [10**20, -(10**20), "100000000000000000000", float("inf")])
    def test_out_of_range_timestamp_fails(self, field, value):
        parsed = parse_revenuecat_webhook(self._event(**{field: value}))
        assert not parsed.success

    def test_unknown_event_type_fails(self):
        assert not parse_revenuecat_webhook(self._event(type="SOMETHING_NEW")).success

    def test_invalid_environment_fails(self):
        assert not parse_revenuecat_webhook(self._event(environment="STAGING")).success

    def test_product_change_uses_new_product(self):
        parsed = parse_revenuecat_webhook(
            self._event(type="PRODUCT_CHANGE", new_product_id="eveokee_premium_annual")
        )
        assert parsed.data.event.effective_product_id == "eveokee_premium_annual"

    def test_entitlements_object_fallback(self):
        parsed = parse_revenuecat_webhook(
            self._event(entitlement_ids=None, entitlements={"premium": {}, "extra": {}})
        )
        assert parsed.data.event.resolved_entitlement_ids == ["premium", "extra"]

    def test_sanitize_raw_event_drops_internal_keys(self):
        raw = {"type": "RENEWAL", "$internal": 1, "_meta": 2, "nested": [{"_x": 1, "y": 2}]}
        assert sanitize_raw_event(raw) == {"type": "RENEWAL", "nested": [{"y": 2}]}


# ---------------------------------------------------------------------------
# VAPI
# ---------------------------------------------------------------------------

class TestVapi:

    def test_call_id_and_customer_number(self):
        parsed = parse_vapi_event({
            "message": {"type": "assistant-request", "call": {"id": "call-1"}},
            "customer": {"number": " +15550001111 "},
        })
        assert parsed.success
        assert parsed.data.call_id == "call-1"
        assert parsed.data.customer_number == "+15550001111"

    def test_missing_message_fails(self):
        assert not parse_vapi_event({"call": {"id": "x"}}).success

    def test_end_of_call_report_extraction(self):
        parsed = parse_vapi_event({
            "message": {
                "type": "end-of-call-report",
                "call": {"id": "call-1", "endedAt": "2026-05-01T10:00:00Z", "disposition": "voicemail"},
                "durationSeconds": 95.5,
                "endedReason": "customer-ended-call",
                "artifact": {
                    "transcript": "AI: Hi\nUser: Hello",
                    "messages": [{"role": "user", "message": "Hello"}],
                    "recordingUrl": "https://rec.example/1.wav",
                },
            }
        })
        report = extract_end_of_call_report(parsed.data)
        assert report.vapi_call_id == "call-1"
        assert report.ended_at == datetime(2026, 5, 1, 10, 0, tzinfo=timezone.utc)
        assert report.duration_seconds == 95.5
        assert report.disposition == "voicemail"
        assert report.recording == {"url": "https://rec.example/1.wav"}
        assert report.ended_reason == "customer-ended-call"
        assert report.has_conversation

    def test_epoch_millis_and_defaults(self):
        parsed = parse_vapi_event({
            "message": {
                "type": "end-of-call-report",
                "call": {"id": "call-2", "endedAt": 1767225600000},
                "durationSeconds": "long",
            }
        })
        report = extract_end_of_call_report(parsed.data)
        assert report.ended_at == datetime(2026, 1, 1, tzinfo=timezone.utc)
        assert report.duration_seconds is None
        assert report.disposition == "completed"
        assert not report.has_conversation

    def test_unparseable_ended_at_uses_now(self):
        parsed = parse_vapi_event({
            "message": {"type": "end-of-call-report", "call": {"id": "c", "endedAt": "not a date"}}
        })
        now = datetime(2026, 2, 2, tzinfo=timezone.utc)
        assert extract_end_of_call_report(parsed.data, now=now).ended_at == now

    @pytest.mark.parametrize("ended_at", [1e20, -1e20, 10**30])
    def test_out_of_range_epoch_uses_now(self, ended_at):
        parsed = parse_vapi_event({
            "message": {"type": "end-of-call-report", "call": {"id": "c", "endedAt": ended_at}}
        })
        now = datetime(2026, 2, 2, tzinfo=timezone.utc)
        assert extract_end_of_call_report(parsed.data, now=now).ended_at == now


# ---------------------------------------------------------------------------
# Suno / Kie
# ---------------------------------------------------------------------------

class TestSunoCallback:

    def test_complete_callback(self):
        parsed = parse_suno_callback({
            "code": 200,
            "data": {
                "callbackType": "complete",
                "task_id": "task-1",
                "data": [{"id": "audio-1", "audio_url": "https://a/1.mp3", "duration": 120.5}],
            },
        })
        assert parsed.success
        callback = parsed.data
        assert callback.is_complete
        assert callback.task_id == "task-1"
        assert callback.tracks[0].id == "audio-1"

    def test_camel_case_task_id(self):
        parsed = parse_suno_callback({"data": {"callbackType": "text", "taskId": "task-2"}})
        assert parsed.data.task_id == "task-2"
        assert not parsed.data.is_complete

    def test_missing_data_is_not_an_error(self):
        parsed = parse_suno_callback({"code": 200, "msg": "ok"})
        assert parsed.success
        assert parsed.data.has_data is False

    def test_non_object_track_fails(self):
        parsed = parse_suno_callback({"data": {"callbackType": "complete", "task_id": "t", "data": ["x"]}})
        assert not parsed.success


class TestKieCallback:

    def test_result_json_url_is_preferred(self):
        parsed = parse_kie_callback({
            "code": 200,
            "data": {
                "taskId": "kie-1",
                "state": "success",
                "resultJson": json.dumps({"resultUrls": ["https://kie/video.mp4"]}),
                "videoUrl": "https://kie/other.mp4",
            },
        })
        assert parsed.success
        assert parsed.data.video_url == "https://kie/video.mp4"
        assert parsed.data.is_complete

    def test_failure_callback_without_video_url(self):
        parsed = parse_kie_callback({
            "data": {"taskId": "kie-2", "callbackType": "failed", "failMsg": "content policy"}
        })
        assert parsed.success
        assert parsed.data.is_failure
        assert parsed.data.error_message == "content policy"

    def test_complete_requires_video_url(self):
        parsed = parse_kie_callback({"data": {"taskId": "kie-3", "callbackType": "complete"}})
        assert not parsed.success
        assert parsed.error == "Missing videoUrl"

    def test_missing_task_id(self):
        assert parse_kie_callback({"data": {"videoUrl": "https://x"}}).error == "Missing taskId"

    def test_non_object_data_fails(self):
        assert not parse_kie_callback({"data": "oops"}).success


# ---------------------------------------------------------------------------
# Blog API / Slack
# ---------------------------------------------------------------------------

class TestBlogSchemas:

    def test_rankpill_detection(self):
        assert is_rankpill_article({"title": "T", "content_html": "<p>x</p>"})
        assert not is_rankpill_article({"title": "T", "content_html": "<p>x</p>", "operation": "publish"})
        assert not is_rankpill_article({"title": "T"})

    def test_rankpill_article_normalizes_tags_and_fields(self):
        parsed = parse_rankpill_article({
            "title": "Sleep Better",
            "content_html": "<p>html</p>",
            "content_markdown": "markdown",
            "description": "summary",
            "canonicalUrl": "https://c",
            "tag": "sleep",
            "reading_time": 0,
        })
        article = parsed.data
        assert article.tags == ["sleep"]
        assert article.body_markdown == "markdown"
        assert article.summary == "summary"
        assert article.resolved_canonical_url == "https://c"
        assert article.reading_time is None

    def test_create_draft_requires_author(self):
        parsed = parse_blog_operation("createDraft", {"title": "T", "bodyMarkdown": "b"})
        assert not parsed.success
        assert "author" in parsed.error

    def test_unknown_parameters_are_rejected(self):
        parsed = parse_blog_operation("archive", {"postId": "p1", "force": True})
        assert not parsed.success

    def test_published_at_accepts_epoch_millis(self):
        parsed = parse_blog_operation("publish", {"postId": "p1", "publishedAt": 1767225600000})
        assert isinstance(parsed.data, PublishParams)
        assert parsed.data.publishedAt == datetime(2026, 1, 1, tzinfo=timezone.utc)

    def test_create_draft_params(self):
        parsed = parse_blog_operation(
            "createDraft", {"title": "T", "bodyMarkdown": "b", "author": "Sam", "tags": ["a"]}
        )
        assert isinstance(parsed.data, CreateDraftParams)
        assert parsed.data.tags == ["a"]

    @pytest.mark.parametrize(
        "raw,expected",
        [
            ("post-1:token", ("post-1", "token")),
            ("post-1:tok:en", ("post-1", "tok:en")),
            ("no-separator", None),
            (":token", None),
            ("post-1:", None),
            (None, None),
        ],
    )
    def test_button_value(self, raw, expected):
        assert parse_button_value(raw) == expected

    def test_slack_interaction(self):
        payload = json.dumps({
            "type": "block_actions",
            "actions": [{"type": "button", "action_id": "approve_draft", "value": "p:t"}],
        })
        parsed = parse_slack_interaction(payload)
        assert parsed.success
        assert parsed.data.actions[0].action_id == "approve_draft"

    def test_slack_interaction_errors(self):
        assert parse_slack_interaction(None).error == "Missing payload"
        assert parse_slack_interaction("{not json").error == "Invalid payload JSON"
