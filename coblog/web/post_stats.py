"""Word count, reading time and excerpt helpers for post content."""

from __future__ import annotations

import math
import re
from dataclasses import dataclass, replace

from coblog.web.rich_text import DocumentContent, resolve_content, to_plain_text

WORDS_PER_MINUTE = 200


@dataclass(frozen=True)
class PostStats:
    word_count: int
    reading_time: str
    reading_time_minutes: int
    character_count: int = 0


def strip_markdown(text: str) -> str:
    """Remove Markdown syntax so only the readable words remain."""
    text = re.sub(r"```[\s\S]*?```", "", text)
    text = re.sub(r"`[^`]*`", "", text)
    text = re.sub(r"#{1,6}\s", "", text)
    text = re.sub(r"!\[([^\]]*)\]\([^)]+\)", "", text)
    text = re.sub(r"\[([^\]]+)\]\([^)]+\)", r"\1", text)
    text = re.sub(r"[*_~`]", "", text)
    return text.strip()


def format_reading_time(minutes: int) -> str:
    """Format reading time in a human-readable form."""
    if minutes < 1:
        return "< 1 min read"
    if minutes == 1:
        return "1 min read"
    return f"{minutes} min read"


def calculate_post_stats(text: str) -> PostStats:
    """Calculate word count and reading time for plain text or Markdown."""
    plain_text = strip_markdown(text or "")
    words = len(plain_text.split())
    minutes = math.ceil(words / WORDS_PER_MINUTE)

    return PostStats(
        word_count=words,
        reading_time=format_reading_time(minutes),
        reading_time_minutes=minutes,
        character_count=len(plain_text),
    )


def content_text(raw: str) -> str:
    """Readable text of stored content, whichever format it is in."""
    content = resolve_content(raw)
    if isinstance(content, DocumentContent):
        return to_plain_text(content.tree)
    return strip_markdown(content.text)


def content_stats(raw: str) -> PostStats:
    """Stats for stored content.

    Documents are reduced to their text first; their character count is the
    length of that text, Markdown-looking characters included.
    """
    content = resolve_content(raw)
    if isinstance(content, DocumentContent):
        text = to_plain_text(content.tree)
        return replace(calculate_post_stats(text), character_count=len(text))
    return calculate_post_stats(content.text)


def make_excerpt(text: str, max_length: int = 200) -> str:
    """Build a short excerpt cut at a word boundary."""
    text = re.sub(r"\s+", " ", text).strip()
    if len(text) <= max_length:
        return text

    excerpt = text[:max_length]
    # Find the last space to avoid cutting words
    last_space = excerpt.rfind(" ")
    if last_space > max_length // 2:
        excerpt = excerpt[:last_space]

    return excerpt + "..."
