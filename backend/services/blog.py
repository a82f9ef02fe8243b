"""
Blog post mutations for the RankPill automation API and the draft review flow.

Review actions are guarded by the preview token: the token must resolve to the
post named in the request.  A post that was already published or dismissed
yields ``ReviewOutcome.ALREADY_PROCESSED`` so duplicate clicks are harmless.
"""

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Any, Optional

from sqlalchemy import delete, select
from sqlalchemy.ext.asyncio import AsyncSession

from api.schemas.blog import (
    ArchiveParams,
    BlogOperationParams,
    CreateDraftParams,
    PublishParams,
    RankPillArticle,
    SetRedirectsParams,
    UpdateDraftParams,
)
from core.blog import calculate_reading_time, generate_preview_token, generate_slug
from infrastructure.config.settings import settings
from infrastructure.database.models import BlogPost, BlogPostRevision, BlogPostStatus
from infrastructure.database.models.base import utc_now

logger = logging.getLogger(__name__)


class BlogError(Exception):
    """Business-rule failure; the message is safe to return to the caller."""


class PostNotFoundError(BlogError):
    def __init__(self, post_id: str):
        super().__init__("Post not found")
        self.post_id = post_id


class ReviewAction(str, Enum):
    APPROVE = "approve"
    DISMISS = "dismiss"


class ReviewOutcome(str, Enum):
    APPROVED = "approved"
    DISMISSED = "dismissed"
    NOT_FOUND = "not_found"
    MISMATCH = "mismatch"
    ALREADY_PROCESSED = "already_processed"
    FAILED = "failed"


@dataclass
class ReviewResult:
    outcome: ReviewOutcome
    post: Optional[BlogPost] = None
    slug: Optional[str] = None
    error: Optional[str] = None

    @property
    def processed_state(self) -> str:
        """Human wording for an already-processed post."""
        if self.post is None:
            return "processed"
        if self.post.deleted_at is not None or self.post.status == BlogPostStatus.ARCHIVED.value:
            return "dismissed"
        return "published"


class BlogService:

    def __init__(self, db: AsyncSession):
        self.db = db

    async def get_post(self, post_id: str) -> BlogPost:
        result = await self.db.execute(
            select(BlogPost).where(BlogPost.id == post_id, BlogPost.deleted_at.is_(None))
        )
        post = result.scalar_one_or_none()
        if not post:
            raise PostNotFoundError(post_id)
        return post

    async def get_by_preview_token(self, token: str) -> Optional[BlogPost]:
        """Token lookup regardless of status, so used tokens can be reported as processed."""
        result = await self.db.execute(
            select(BlogPost).where(BlogPost.draft_preview_token == token).limit(1)
        )
        return result.scalar_one_or_none()

    async def _ensure_slug_available(self, slug: str, post_id: str) -> None:
        result = await self.db.execute(
            select(BlogPost.id).where(
                BlogPost.slug == slug,
                BlogPost.id != post_id,
                BlogPost.deleted_at.is_(None),
            ).limit(1)
        )
        if result.scalar_one_or_none() is not None:
            raise BlogError(f'Slug "{slug}" is already in use by another post')

    # ── API operations ──────────────────────────────────────────────────────

    async def create_draft(self, params: CreateDraftParams) -> BlogPost:
        post = BlogPost(
            slug=params.slug,
            title=params.title,
            body_markdown=params.bodyMarkdown,
            excerpt=params.excerpt,
            status=BlogPostStatus.DRAFT.value,
            published_at=params.publishedAt,
            author=params.author,
            tags=list(params.tags),
            reading_time=params.readingTime or calculate_reading_time(params.bodyMarkdown),
            canonical_url=params.canonicalUrl,
            featured_image=params.featuredImage,
            draft_preview_token=params.draftPreviewToken,
        )
        self.db.add(post)
        await self.db.flush()
        logger.info("Created blog draft %s", post.id)
        return post

    async def update_draft(self, params: UpdateDraftParams) -> BlogPost:
        post = await self.get_post(params.postId)

        fields = {
            "title": params.title,
            "body_markdown": params.bodyMarkdown,
            "excerpt": params.excerpt,
            "author": params.author,
            "tags": params.tags,
            "reading_time": params.readingTime,
            "canonical_url": params.canonicalUrl,
            "featured_image": params.featuredImage,
            "draft_preview_token": params.draftPreviewToken,
        }
        for name, value in fields.items():
            if value is not None:
                setattr(post, name, value)
        if params.bodyMarkdown is not None and params.readingTime is None:
            post.reading_time = calculate_reading_time(params.bodyMarkdown)

        self.db.add(
            BlogPostRevision(
                post_id=post.id,
                title=post.title,
                body_markdown=post.body_markdown,
                excerpt=post.excerpt,
                author=post.author,
                tags=list(post.tags or []),
            )
        )
        await self.db.flush()
        return post

    async def publish(self, params: PublishParams) -> BlogPost:
        post = await self.get_post(params.postId)
        target_slug = params.slug or post.slug
        if not target_slug:
            raise BlogError("Slug is required to publish")
        await self._ensure_slug_available(target_slug, post.id)

        post.slug = target_slug
        post.status = BlogPostStatus.PUBLISHED.value
        post.published_at = params.publishedAt or post.published_at or utc_now()
        await self.db.flush()
        logger.info("Published blog post %s as %s", post.id, target_slug)
        return post

    async def archive(self, params: ArchiveParams) -> BlogPost:
        post = await self.get_post(params.postId)
        post.status = BlogPostStatus.ARCHIVED.value
        await self.db.flush()
        return post

    async def set_redirects(self, params: SetRedirectsParams) -> BlogPost:
        post = await self.get_post(params.postId)
        post.redirect_from = list(params.redirectFrom)
        await self.db.flush()
        return post

    async def run_operation(self, operation: str, params: BlogOperationParams) -> Optional[dict[str, Any]]:
        """Dispatch a validated API operation; only createDraft returns a payload."""
        if operation == "createDraft":
            post = await self.create_draft(params)
            return {"postId": post.id}
        if operation == "updateDraft":
            await self.update_draft(params)
        elif operation == "publish":
            await self.publish(params)
        elif operation == "archive":
            await self.archive(params)
        elif operation == "setRedirects":
            await self.set_redirects(params)
        else:
            raise BlogError(f"Unknown operation: {operation}")
        return None

    async def create_rankpill_draft(self, article: RankPillArticle) -> BlogPost:
        """Stage a RankPill article as a draft with a fresh preview token."""
        params = CreateDraftParams(
            title=article.title,
            bodyMarkdown=article.body_markdown,
            excerpt=article.summary,
            author=article.author or settings.blog_default_author,
            tags=article.tags,
            readingTime=article.reading_time,
            canonicalUrl=article.resolved_canonical_url,
            featuredImage=article.featured_image,
            draftPreviewToken=generate_preview_token(),
        )
        return await self.create_draft(params)

    # ── Draft review ────────────────────────────────────────────────────────

    async def review_draft(self, post_id: str, token: str, action: ReviewAction) -> ReviewResult:
        post = await self.get_by_preview_token(token)
        if post is None:
            logger.warning("Draft not found or invalid token for post %s", post_id)
            return ReviewResult(ReviewOutcome.NOT_FOUND, error="Draft not found or invalid token")

        if post.id != post_id:
            logger.warning("Post ID mismatch: provided %s, token belongs to %s", post_id, post.id)
            return ReviewResult(ReviewOutcome.MISMATCH, error="Post ID mismatch")

        if post.status != BlogPostStatus.DRAFT.value or post.deleted_at is not None:
            logger.info("Draft %s already processed (status=%s)", post.id, post.status)
            return ReviewResult(ReviewOutcome.ALREADY_PROCESSED, post=post, slug=post.slug)

        if action == ReviewAction.APPROVE:
            return await self._approve(post)
        return await self._dismiss(post)

    async def _approve(self, post: BlogPost) -> ReviewResult:
        slug = post.slug or generate_slug(post.title)
        if not slug:
            return ReviewResult(ReviewOutcome.FAILED, post=post, error="Unable to generate valid slug from title")
        try:
            await self._ensure_slug_available(slug, post.id)
        except BlogError as e:
            return ReviewResult(ReviewOutcome.FAILED, post=post, error=str(e))

        post.slug = slug
        post.status = BlogPostStatus.PUBLISHED.value
        post.published_at = post.published_at or utc_now()
        await self.db.flush()
        logger.info("Approved draft %s as %s", post.id, slug)
        return ReviewResult(ReviewOutcome.APPROVED, post=post, slug=slug)

    async def _dismiss(self, post: BlogPost) -> ReviewResult:
        await self.db.execute(delete(BlogPostRevision).where(BlogPostRevision.post_id == post.id))
        post.status = BlogPostStatus.ARCHIVED.value
        post.deleted_at = utc_now()
        await self.db.flush()
        logger.info("Dismissed draft %s", post.id)
        return ReviewResult(ReviewOutcome.DISMISSED, post=post)
