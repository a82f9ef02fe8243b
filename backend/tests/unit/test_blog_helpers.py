"""
Unit tests for blog content helpers (slugs, reading time, tags, tokens, links).
"""

from urllib.parse import parse_qs, urlparse

from core.blog import (
    BLOG_DRAFT_APPROVE_PATH,
    PREVIEW_TOKEN_LENGTH,
    calculate_reading_time,
    generate_preview_token,
    generate_slug,
    normalize_tags,
    preview_url,
    published_url,
    review_url,
    strip_markup,
)


class TestGenerateSlug:

    def test_basic_title(self):
        assert generate_slug("Hello World") == "hello-world"

    def test_ampersand_becomes_and(self):
        assert generate_slug("Café & Restaurant") == "cafe-and-restaurant"

    def test_apostrophes_are_dropped(self):
        assert generate_slug("Don't Stop Believing") == "dont-stop-believing"

    def test_punctuation_and_whitespace_collapse(self):
        assert generate_slug("  10 Tips -- for   Better   Sleep!!  ") == "10-tips-for-better-sleep"

    def test_empty_and_symbol_only_titles(self):
        assert generate_slug("") == ""
        assert generate_slug("!!!") == ""


class TestReadingTime:

    def test_exactly_two_hundred_words_is_one_minute(self):
        assert calculate_reading_time(" ".join(["word"] * 200)) == 1

    def test_two_hundred_and_one_words_rounds_up(self):
        assert calculate_reading_time(" ".join(["word"] * 201)) == 2

    def test_empty_content_is_at_least_one_minute(self):
        assert calculate_reading_time("") == 1
        assert calculate_reading_time(None) == 1

    def test_markup_is_not_counted(self):
        body = "# Title\n\n```python\nprint('a b c d e')\n```\n\n![alt text](img.png) <b>bold</b>"
        assert strip_markup(body).split() == ["Title", "bold"]

    def test_link_text_is_counted(self):
        assert strip_markup("[read more](https://example.com)").split() == ["read", "more"]


class TestNormalizeTags:

    def test_list_of_tags(self):
        assert normalize_tags({"tags": ["sleep", "music"]}) == ["sleep", "music"]

    def test_single_string_tag(self):
        assert normalize_tags({"tag": "journaling"}) == ["journaling"]

    def test_plural_key_wins(self):
        assert normalize_tags({"tags": ["a"], "tag": ["b"]}) == ["a"]

    def test_list_shape_wins_over_string_shape(self):
        assert normalize_tags({"tags": "a", "tag": ["b", "c"]}) == ["b", "c"]

    def test_missing_or_empty(self):
        assert normalize_tags({}) == []
        assert normalize_tags({"tags": ""}) == []


class TestPreviewToken:

    def test_length_and_alphabet(self):
        token = generate_preview_token()
        assert len(token) == PREVIEW_TOKEN_LENGTH
        assert token.isalnum()

    def test_tokens_are_unique(self):
        assert len({generate_preview_token() for _ in range(50)}) == 50


class TestLinks:

    def test_preview_and_published_urls(self):
        assert preview_url("https://eveokee.com/", "abc") == "https://eveokee.com/blog/preview/abc"
        assert published_url("https://eveokee.com", "my-post") == "https://eveokee.com/blog/my-post"

    def test_review_url_encodes_query(self):
        url = review_url("https://api.eveokee.com/", BLOG_DRAFT_APPROVE_PATH, "post 1", "tok&en")
        parsed = urlparse(url)
        assert parsed.path == "/api/blog/draft/approve"
        assert parse_qs(parsed.query) == {"postId": ["post 1"], "token": ["tok&en"]}
