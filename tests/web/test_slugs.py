"""Tests for slug generation."""

from __future__ import annotations

import re

import pytest

from coblog.web.slugs import generate_unique_slug, slugify

SLUG_PATTERN = re.compile(r"^[a-z0-9]+(-[a-z0-9]+)*$")


class TestSlugify:
    """Test cases for slugify."""

    @pytest.mark.parametrize("text,expected", [
        ("Hello World", "hello-world"),
        ("  Padded  title  ", "padded-title"),
        ("Hello, World!", "hello-world"),
        ("snake_case and dashes--here", "snake-case-and-dashes-here"),
        ("Café déjà vu", "cafe-deja-vu"),
        ("Python 3.12 released", "python-3-12-released"),
        ("---", ""),
        ("日本語", ""),
    ])
    def test_slugify(self, text, expected):
        assert slugify(text) == expected


class TestGenerateUniqueSlug:
    """Test cases for generate_unique_slug."""

    def test_unused_slug_is_returned(self):
        assert generate_unique_slug("My Post", {"other"}) == "my-post"

    def test_collisions_get_numeric_suffix(self):
        taken = {"my-post", "my-post-1", "my-post-2"}
        assert generate_unique_slug("My Post", taken) == "my-post-3"

    def test_gap_in_suffixes_is_filled(self):
        assert generate_unique_slug("My Post", {"my-post", "my-post-2"}) == "my-post-1"

    def test_empty_slug_uses_fallback(self):
        assert generate_unique_slug("!!!") == "untitled"
        assert generate_unique_slug("!!!", {"untitled"}) == "untitled-1"
        assert generate_unique_slug("", fallback="category") == "category"

    @pytest.mark.parametrize("text", ["Hello", "  A  B  ", "Ünïcödé", "?!", "x" * 50])
    def test_result_is_well_formed_and_unused(self, text):
        taken = {slugify(text) or "untitled"}

        slug = generate_unique_slug(text, taken)

        assert slug not in taken
        assert SLUG_PATTERN.match(slug)
