"""Create users, billing, media, call and blog tables

Revision ID: 001
Revises:
Create Date: 2026-10-19

"""

from collections.abc import Sequence

import sqlalchemy as sa
from alembic import op

# revision identifiers, used by Alembic.
revision: str = "001"
down_revision: str | None = None
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None


def _timestamps() -> list[sa.Column]:
    return [
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            server_default=sa.text("now()"),
            nullable=False,
        ),
        sa.Column(
            "updated_at",
            sa.DateTime(timezone=True),
            server_default=sa.text("now()"),
            nullable=False,
        ),
    ]


def upgrade() -> None:
    op.create_table(
        "users",
        sa.Column("id", sa.String(length=36), nullable=False),
        sa.Column("clerk_id", sa.String(length=255), nullable=False),
        sa.Column("email", sa.String(length=255), nullable=True),
        sa.Column("name", sa.String(length=255), nullable=True),
        sa.Column("active_subscription_id", sa.String(length=36), nullable=True),
        sa.Column("tags", sa.JSON(), nullable=True),
        *_timestamps(),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("clerk_id"),
    )
    op.create_index("ix_users_clerk_id", "users", ["clerk_id"])
    op.create_index("ix_users_email", "users", ["email"])

    op.create_table(
        "subscription_statuses",
        sa.Column("id", sa.String(length=36), nullable=False),
        sa.Column("user_id", sa.String(length=36), nullable=False),
        sa.Column("platform", sa.String(length=50), nullable=True),
        sa.Column("product_id", sa.String(length=255), nullable=False),
        sa.Column("status", sa.String(length=20), nullable=False, server_default="active"),
        sa.Column("subscription_tier", sa.String(length=20), nullable=False, server_default="free"),
        sa.Column("music_generations_used", sa.Integer(), nullable=False, server_default="0"),
        sa.Column(
            "last_reset_at",
            sa.DateTime(timezone=True),
            server_default=sa.text("now()"),
            nullable=False,
        ),
        sa.Column("custom_music_limit", sa.Integer(), nullable=True),
        sa.Column(
            "last_verified_at",
            sa.DateTime(timezone=True),
            server_default=sa.text("now()"),
            nullable=False,
        ),
        sa.Column("expires_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("canceled_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("entitlement_ids", sa.JSON(), nullable=True),
        sa.Column("store", sa.String(length=50), nullable=True),
        sa.Column("environment", sa.String(length=20), nullable=True),
        *_timestamps(),
        sa.ForeignKeyConstraint(["user_id"], ["users.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_subscription_statuses_user_id", "subscription_statuses", ["user_id"])
    op.create_index("ix_subscription_statuses_status", "subscription_statuses", ["status"])
    op.create_index(
        "ix_subscription_statuses_subscription_tier", "subscription_statuses", ["subscription_tier"]
    )
    op.create_index(
        "ix_subscription_statuses_last_verified_at", "subscription_statuses", ["last_verified_at"]
    )

    op.create_table(
        "subscription_logs",
        sa.Column("id", sa.String(length=36), nullable=False),
        sa.Column("user_id", sa.String(length=36), nullable=False),
        sa.Column("event_type", sa.String(length=50), nullable=False),
        sa.Column("product_id", sa.String(length=255), nullable=False),
        sa.Column("platform", sa.String(length=50), nullable=True),
        sa.Column("subscription_tier", sa.String(length=20), nullable=False),
        sa.Column("status", sa.String(length=20), nullable=False),
        sa.Column("expires_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("purchased_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("is_trial_conversion", sa.Boolean(), nullable=True),
        sa.Column("entitlement_ids", sa.JSON(), nullable=True),
        sa.Column("store", sa.String(length=50), nullable=True),
        sa.Column("environment", sa.String(length=20), nullable=True),
        sa.Column("raw_event", sa.JSON(), nullable=True),
        sa.Column(
            "recorded_at",
            sa.DateTime(timezone=True),
            server_default=sa.text("now()"),
            nullable=False,
        ),
        sa.ForeignKeyConstraint(["user_id"], ["users.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(
        "ix_subscription_logs_user_recorded", "subscription_logs", ["user_id", "recorded_at"]
    )

    op.create_table(
        "diaries",
        sa.Column("id", sa.String(length=36), nullable=False),
        sa.Column("user_id", sa.String(length=36), nullable=False),
        sa.Column("title", sa.String(length=500), nullable=True),
        sa.Column("content", sa.Text(), nullable=False),
        sa.Column("date", sa.DateTime(timezone=True), nullable=False),
        sa.Column("primary_music_id", sa.String(length=36), nullable=True),
        *_timestamps(),
        sa.ForeignKeyConstraint(["user_id"], ["users.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_diaries_user_id", "diaries", ["user_id"])
    op.create_index("ix_diaries_primary_music_id", "diaries", ["primary_music_id"])
    op.create_index("ix_diaries_user_date", "diaries", ["user_id", "date"])

    op.create_table(
        "music",
        sa.Column("id", sa.String(length=36), nullable=False),
        sa.Column("user_id", sa.String(length=36), nullable=False),
        sa.Column("diary_id", sa.String(length=36), nullable=True),
        sa.Column("task_id", sa.String(length=255), nullable=True),
        sa.Column("music_index", sa.Integer(), nullable=True),
        sa.Column("audio_id", sa.String(length=255), nullable=True),
        sa.Column("title", sa.String(length=500), nullable=True),
        sa.Column("lyric", sa.Text(), nullable=True),
        sa.Column("lyric_with_time", sa.JSON(), nullable=True),
        sa.Column("duration", sa.Float(), nullable=True),
        sa.Column("audio_url", sa.Text(), nullable=True),
        sa.Column("image_url", sa.Text(), nullable=True),
        sa.Column("primary_video_id", sa.String(length=36), nullable=True),
        sa.Column("status", sa.String(length=20), nullable=False, server_default="pending"),
        sa.Column("metadata", sa.JSON(), nullable=True),
        sa.Column("deleted_at", sa.DateTime(timezone=True), nullable=True),
        *_timestamps(),
        sa.ForeignKeyConstraint(["user_id"], ["users.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["diary_id"], ["diaries.id"], ondelete="SET NULL"),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("task_id", "music_index", name="uq_music_task_index"),
    )
    op.create_index("ix_music_user_id", "music", ["user_id"])
    op.create_index("ix_music_diary_id", "music", ["diary_id"])
    op.create_index("ix_music_task_id", "music", ["task_id"])
    op.create_index("ix_music_audio_id", "music", ["audio_id"])
    op.create_index("ix_music_status", "music", ["status"])

    op.create_table(
        "music_videos",
        sa.Column("id", sa.String(length=36), nullable=False),
        sa.Column("music_id", sa.String(length=36), nullable=False),
        sa.Column("user_id", sa.String(length=36), nullable=False),
        sa.Column("kie_task_id", sa.String(length=255), nullable=False),
        sa.Column("script_prompt", sa.Text(), nullable=False, server_default=""),
        sa.Column("video_path", sa.String(length=500), nullable=True),
        sa.Column("duration", sa.Float(), nullable=True),
        sa.Column("status", sa.String(length=20), nullable=False, server_default="pending"),
        sa.Column("credits_charged", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("metadata", sa.JSON(), nullable=True),
        *_timestamps(),
        sa.ForeignKeyConstraint(["music_id"], ["music.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["user_id"], ["users.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_music_videos_music_id", "music_videos", ["music_id"])
    op.create_index("ix_music_videos_user_id", "music_videos", ["user_id"])
    op.create_index("ix_music_videos_kie_task_id", "music_videos", ["kie_task_id"])
    op.create_index("ix_music_videos_status", "music_videos", ["status"])

    op.create_table(
        "call_settings",
        sa.Column("id", sa.String(length=36), nullable=False),
        sa.Column("user_id", sa.String(length=36), nullable=False),
        sa.Column("phone_e164", sa.String(length=32), nullable=False),
        sa.Column("timezone", sa.String(length=64), nullable=False, server_default="UTC"),
        sa.Column("time_of_day", sa.String(length=5), nullable=False, server_default="09:00"),
        sa.Column("cadence", sa.String(length=20), nullable=False, server_default="daily"),
        sa.Column("days_of_week", sa.JSON(), nullable=True),
        sa.Column("active", sa.Boolean(), nullable=False, server_default="true"),
        *_timestamps(),
        sa.ForeignKeyConstraint(["user_id"], ["users.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_call_settings_user_id", "call_settings", ["user_id"])
    op.create_index("ix_call_settings_phone_e164", "call_settings", ["phone_e164"])
    op.create_index("ix_call_settings_active", "call_settings", ["active"])

    op.create_table(
        "call_jobs",
        sa.Column("id", sa.String(length=36), nullable=False),
        sa.Column("user_id", sa.String(length=36), nullable=False),
        sa.Column("call_settings_id", sa.String(length=36), nullable=True),
        sa.Column("scheduled_for", sa.DateTime(timezone=True), nullable=True),
        sa.Column("status", sa.String(length=20), nullable=False, server_default="queued"),
        sa.Column("vapi_call_id", sa.String(length=255), nullable=True),
        sa.Column("attempts", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("error_message", sa.Text(), nullable=True),
        *_timestamps(),
        sa.ForeignKeyConstraint(["user_id"], ["users.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["call_settings_id"], ["call_settings.id"], ondelete="SET NULL"),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_call_jobs_user_id", "call_jobs", ["user_id"])
    op.create_index("ix_call_jobs_call_settings_id", "call_jobs", ["call_settings_id"])
    op.create_index("ix_call_jobs_scheduled_for", "call_jobs", ["scheduled_for"])
    op.create_index("ix_call_jobs_status", "call_jobs", ["status"])
    op.create_index("ix_call_jobs_vapi_call_id", "call_jobs", ["vapi_call_id"])

    op.create_table(
        "call_sessions",
        sa.Column("id", sa.String(length=36), nullable=False),
        sa.Column("user_id", sa.String(length=36), nullable=False),
        sa.Column("call_job_id", sa.String(length=36), nullable=False),
        sa.Column("vapi_call_id", sa.String(length=255), nullable=False),
        sa.Column("started_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("ended_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("duration_sec", sa.Float(), nullable=True),
        sa.Column("disposition", sa.String(length=50), nullable=True),
        sa.Column("metadata", sa.JSON(), nullable=True),
        *_timestamps(),
        sa.ForeignKeyConstraint(["user_id"], ["users.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["call_job_id"], ["call_jobs.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("vapi_call_id"),
    )
    op.create_index("ix_call_sessions_user_id", "call_sessions", ["user_id"])
    op.create_index("ix_call_sessions_call_job_id", "call_sessions", ["call_job_id"])

    op.create_table(
        "blog_posts",
        sa.Column("id", sa.String(length=36), nullable=False),
        sa.Column("slug", sa.String(length=255), nullable=True),
        sa.Column("title", sa.String(length=500), nullable=False),
        sa.Column("body_markdown", sa.Text(), nullable=False, server_default=""),
        sa.Column("excerpt", sa.Text(), nullable=True),
        sa.Column("status", sa.String(length=20), nullable=False, server_default="draft"),
        sa.Column("published_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("author", sa.String(length=255), nullable=False),
        sa.Column("tags", sa.JSON(), nullable=False),
        sa.Column("reading_time", sa.Integer(), nullable=True),
        sa.Column("canonical_url", sa.String(length=1000), nullable=True),
        sa.Column("featured_image", sa.String(length=1000), nullable=True),
        sa.Column("redirect_from", sa.JSON(), nullable=True),
        sa.Column("draft_preview_token", sa.String(length=64), nullable=True),
        sa.Column("deleted_at", sa.DateTime(timezone=True), nullable=True),
        *_timestamps(),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_blog_posts_slug", "blog_posts", ["slug"])
    op.create_index("ix_blog_posts_status", "blog_posts", ["status"])
    op.create_index("ix_blog_posts_draft_preview_token", "blog_posts", ["draft_preview_token"])

    op.create_table(
        "blog_post_revisions",
        sa.Column("id", sa.String(length=36), nullable=False),
        sa.Column("post_id", sa.String(length=36), nullable=False),
        sa.Column("title", sa.String(length=500), nullable=False),
        sa.Column("body_markdown", sa.Text(), nullable=False),
        sa.Column("excerpt", sa.Text(), nullable=True),
        sa.Column("author", sa.String(length=255), nullable=False),
        sa.Column("tags", sa.JSON(), nullable=False),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            server_default=sa.text("now()"),
            nullable=False,
        ),
        sa.ForeignKeyConstraint(["post_id"], ["blog_posts.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_blog_post_revisions_post_id", "blog_post_revisions", ["post_id"])


def downgrade() -> None:
    op.drop_index("ix_blog_post_revisions_post_id", table_name="blog_post_revisions")
    op.drop_table("blog_post_revisions")

    op.drop_index("ix_blog_posts_draft_preview_token", table_name="blog_posts")
    op.drop_index("ix_blog_posts_status", table_name="blog_posts")
    op.drop_index("ix_blog_posts_slug", table_name="blog_posts")
    op.drop_table("blog_posts")

    op.drop_index("ix_call_sessions_call_job_id", table_name="call_sessions")
    op.drop_index("ix_call_sessions_user_id", table_name="call_sessions")
    op.drop_table("call_sessions")

    op.drop_index("ix_call_jobs_vapi_call_id", table_name="call_jobs")
    op.drop_index("ix_call_jobs_status", table_name="call_jobs")
    op.drop_index("ix_call_jobs_scheduled_for", table_name="call_jobs")
    op.drop_index("ix_call_jobs_call_settings_id", table_name="call_jobs")
    op.drop_index("ix_call_jobs_user_id", table_name="call_jobs")
    op.drop_table("call_jobs")

    op.drop_index("ix_call_settings_active", table_name="call_settings")
    op.drop_index("ix_call_settings_phone_e164", table_name="call_settings")
    op.drop_index("ix_call_settings_user_id", table_name="call_settings")
    op.drop_table("call_settings")

    op.drop_index("ix_music_videos_status", table_name="music_videos")
    op.drop_index("ix_music_videos_kie_task_id", table_name="music_videos")
    op.drop_index("ix_music_videos_user_id", table_name="music_videos")
    op.drop_index("ix_music_videos_music_id", table_name="music_videos")
    op.drop_table("music_videos")

    op.drop_index("ix_music_status", table_name="music")
    op.drop_index("ix_music_audio_id", table_name="music")
    op.drop_index("ix_music_task_id", table_name="music")
    op.drop_index("ix_music_diary_id", table_name="music")
    op.drop_index("ix_music_user_id", table_name="music")
    op.drop_table("music")

    op.drop_index("ix_diaries_user_date", table_name="diaries")
    op.drop_index("ix_diaries_primary_music_id", table_name="diaries")
    op.drop_index("ix_diaries_user_id", table_name="diaries")
    op.drop_table("diaries")

    op.drop_index("ix_subscription_logs_user_recorded", table_name="subscription_logs")
    op.drop_table("subscription_logs")

    op.drop_index("ix_subscription_statuses_last_verified_at", table_name="subscription_statuses")
    op.drop_index("ix_subscription_statuses_subscription_tier", table_name="subscription_statuses")
    op.drop_index("ix_subscription_statuses_status", table_name="subscription_statuses")
    op.drop_index("ix_subscription_statuses_user_id", table_name="subscription_statuses")
    op.drop_table("subscription_statuses")

    op.drop_index("ix_users_email", table_name="users")
    op.drop_index("ix_users_clerk_id", table_name="users")
    op.drop_table("users")
