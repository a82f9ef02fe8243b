"""
RankPill blog API and Slack interaction schemas.
"""

import json
from datetime import UTC, datetime
from typing import Any, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator

from core.blog import normalize_tags

from .parsing import ParseFailure, ParseResult, parse_model

BLOG_OPERATIONS = ("createDraft", "updateDraft", "publish", "archive", "setRedirects")
SLACK_APPROVE_ACTION = "approve_draft"
SLACK_DISMISS_ACTION = "dismiss_draft"


def _millis_to_datetime(value: Any) -> Any:
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        return datetime.fromtimestamp(value / 1000, tz=UTC)
    return value


def is_rankpill_article(payload: Any) -> bool:
    """RankPill posts bare articles (title + content_html) with no ``operation`` field."""
    return (
        isinstance(payload, dict)
        and bool(payload.get("title"))
        and bool(payload.get("content_html"))
        and not payload.get("operation")
    )


class RankPillArticle(BaseModel):
    """Article pushed by RankPill for human review."""

    model_config = ConfigDict(extra="allow")

    title: str = Field(..., min_length=1)
    content_html: str = Field(..., min_length=1)
    content_markdown: Optional[str] = None
    author: Optional[str] = None
    excerpt: Optional[str] = None
    description: Optional[str] = None
    canonical_url: Optional[str] = None
    canonicalUrl: Optional[str] = None
    reading_time: Optional[int] = None
    featured_image: Optional[str] = None
    tags: list[str] = Field(default_factory=list)

    @field_validator("reading_time", mode="before")
    @classmethod
    def drop_non_positive_reading_time(cls, v: Any) -> Any:
        if v in (None, "", 0):
            return None
        return v

    @property
    def body_markdown(self) -> str:
        return self.content_markdown or self.content_html

    @property
    def summary(self) -> Optional[str]:
        return self.excerpt or self.description or None

    @property
    def resolved_canonical_url(self) -> Optional[str]:
        return self.canonical_url or self.canonicalUrl or None


def parse_rankpill_article(payload: Any) -> ParseResult[RankPillArticle]:
    if not isinstance(payload, dict):
        return ParseFailure("Invalid payload structure: expected a JSON object")
    normalized = {key: value for key, value in payload.items() if key not in ("tags", "tag")}
    normalized["tags"] = normalize_tags(payload)
    return parse_model(RankPillArticle, normalized)


class _BlogParams(BaseModel):
    model_config = ConfigDict(extra="forbid")


class CreateDraftParams(_BlogParams):
    title: str = Field(..., min_length=1)
    bodyMarkdown: str
    excerpt: Optional[str] = None
    author: str = Field(..., min_length=1)
    tags: list[str] = Field(default_factory=list)
    readingTime: Optional[int] = None
    canonicalUrl: Optional[str] = None
    slug: Optional[str] = None
    featuredImage: Optional[str] = None
    publishedAt: Optional[datetime] = None
    draftPreviewToken: Optional[str] = None

    @field_validator("publishedAt", mode="before")
    @classmethod
    def coerce_published_at(cls, v: Any) -> Any:
        return _millis_to_datetime(v)


class UpdateDraftParams(_BlogParams):
    postId: str = Field(..., min_length=1)
    title: Optional[str] = None
    bodyMarkdown: Optional[str] = None
    excerpt: Optional[str] = None
    author: Optional[str] = None
    tags: Optional[list[str]] = None
    readingTime: Optional[int] = None
    canonicalUrl: Optional[str] = None
    featuredImage: Optional[str] = None
    draftPreviewToken: Optional[str] = None


class PublishParams(_BlogParams):
    postId: str = Field(..., min_length=1)
    slug: Optional[str] = None
    publishedAt: Optional[datetime] = None

    @field_validator("publishedAt", mode="before")
    @classmethod
    def coerce_published_at(cls, v: Any) -> Any:
        return _millis_to_datetime(v)


class ArchiveParams(_BlogParams):
    postId: str = Field(..., min_length=1)


class SetRedirectsParams(_BlogParams):
    postId: str = Field(..., min_length=1)
    redirectFrom: list[str]


BlogOperationParams = Union[
    CreateDraftParams, UpdateDraftParams, PublishParams, ArchiveParams, SetRedirectsParams
]

_PARAMS_BY_OPERATION: dict[str, type[BaseModel]] = {
    "createDraft": CreateDraftParams,
    "updateDraft": UpdateDraftParams,
    "publish": PublishParams,
    "archive": ArchiveParams,
    "setRedirects": SetRedirectsParams,
}


def parse_blog_operation(operation: str, params: dict[str, Any]) -> ParseResult[BlogOperationParams]:
    model = _PARAMS_BY_OPERATION.get(operation)
    if model is None:
        return ParseFailure(f"Unknown operation: {operation}")
    return parse_model(model, params)


class SlackAction(BaseModel):
    model_config = ConfigDict(extra="allow")

    type: str
    action_id: Optional[str] = None
    value: Optional[str] = None


class SlackInteraction(BaseModel):
    model_config = ConfigDict(extra="allow")

    type: str
    actions: list[SlackAction] = Field(default_factory=list)
    user: Optional[dict[str, Any]] = None
    response_url: Optional[str] = None


def parse_slack_interaction(raw_payload: Optional[str]) -> ParseResult[SlackInteraction]:
    """Decode the form-encoded ``payload`` field Slack posts for interactive components."""
    if not raw_payload:
        return ParseFailure("Missing payload")
    try:
        decoded = json.loads(raw_payload)
    except json.JSONDecodeError:
        return ParseFailure("Invalid payload JSON")
    return parse_model(SlackInteraction, decoded)


def parse_button_value(value: Optional[str]) -> Optional[tuple[str, str]]:
    """Split a ``postId:token`` button value."""
    if not value or ":" not in value:
        return None
    post_id, _, token = value.partition(":")
    if not post_id or not token:
        return None
    return post_id, token
