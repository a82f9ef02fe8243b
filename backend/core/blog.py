"""
Blog content helpers: slugs, reading time, tag normalization, preview tokens.
"""

import math
import re
import secrets
import string
from typing import Any
from urllib.parse import urlencode

from slugify import slugify

WORDS_PER_MINUTE = 200
PREVIEW_TOKEN_LENGTH = 32
_PREVIEW_TOKEN_ALPHABET = string.ascii_letters + string.digits

# Markdown / HTML stripping, applied in order before counting words
_MARKUP_PATTERNS = [
    (re.compile(r"```.*?```", re.DOTALL), " "),  # fenced code blocks
    (re.compile(r"`[^`]*`"), " "),  # inline code
    (re.compile(r"!\[[^\]]*\]\([^)]*\)"), " "),  # images
    (re.compile(r"\[([^\]]*)\]\([^)]*\)"), r"\1"),  # links keep their text
    (re.compile(r"<[^>]+>"), " "),  # html tags
    (re.compile(r"^\s{0,3}#{1,6}\s*", re.MULTILINE), ""),  # headings
    (re.compile(r"^\s*>\s?", re.MULTILINE), ""),  # blockquotes
    (re.compile(r"^\s*([-*+]|\d+\.)\s+", re.MULTILINE), ""),  # list markers
    (re.compile(r"[*_~]+"), ""),  # emphasis
]


def generate_slug(title: str) -> str:
    """URL slug from a title; "Café & Restaurant" becomes "cafe-and-restaurant"."""
    if not title:
        return ""
    return slugify(title, replacements=[["&", " and "], ["'", ""], ["’", ""]])


def strip_markup(text: str) -> str:
    for pattern, replacement in _MARKUP_PATTERNS:
        text = pattern.sub(replacement, text)
    return text


def calculate_reading_time(content: str) -> int:
    """Reading time in whole minutes (200 words per minute, minimum 1)."""
    words = strip_markup(content or "").split()
    return max(1, math.ceil(len(words) / WORDS_PER_MINUTE))


def normalize_tags(payload: dict[str, Any]) -> list[str]:
    """Read tags sent as ``tags`` or ``tag``, as a list or a single string.

    The plural key wins over the singular one, list shape wins over string
    shape, and a bare string becomes a one-element list.  Missing keys give [].
    """
    tags = payload.get("tags")
    tag = payload.get("tag")

    if isinstance(tags, list):
        return [str(t) for t in tags]
    if isinstance(tag, list):
        return [str(t) for t in tag]
    if isinstance(tags, str) and tags:
        return [tags]
    if isinstance(tag, str) and tag:
        return [tag]
    return []


def generate_preview_token(length: int = PREVIEW_TOKEN_LENGTH) -> str:
    """Single-use draft preview token from a cryptographically secure source."""
    return "".join(secrets.choice(_PREVIEW_TOKEN_ALPHABET) for _ in range(length))


BLOG_DRAFT_APPROVE_PATH = "/api/blog/draft/approve"
BLOG_DRAFT_DISMISS_PATH = "/api/blog/draft/dismiss"


def preview_url(frontend_base_url: str, token: str) -> str:
    return f"{frontend_base_url.rstrip('/')}/blog/preview/{token}"


def published_url(frontend_base_url: str, slug: str) -> str:
    return f"{frontend_base_url.rstrip('/')}/blog/{slug}"


def review_url(site_url: str, path: str, post_id: str, token: str) -> str:
    """Approve or dismiss link carrying the post id and its preview token."""
    query = urlencode({"postId": post_id, "token": token})
    return f"{site_url.rstrip('/')}{path}?{query}"
