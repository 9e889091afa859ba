"""Rich-text document model for post content.

Post content is stored as text holding one of two formats:

* a serialized document tree, ``{"root": {"type": "root", "children": [...]}}``,
  whose blocks (paragraph, heading, list, quote, code) contain inline nodes
  (text runs with format flags, links, line breaks);
* legacy plain text or Markdown written before the editor existed.

``resolve_content`` decides which one a stored value is, once, at the boundary.
Everything downstream dispatches on the resulting ``PostContent`` variant.
"""

from __future__ import annotations

import html
import json
import logging
import re
from dataclasses import dataclass
from enum import IntFlag
from typing import Any, Dict, List, Optional, Union
from urllib.parse import urlsplit

import bleach
import markdown

logger = logging.getLogger(__name__)

_PARAGRAPH_BREAK = re.compile(r"\n[ \t]*\n")


class TextFormat(IntFlag):
    """Bit flags carried in a text node's ``format`` field."""

    BOLD = 1
    ITALIC = 2
    STRIKETHROUGH = 4
    UNDERLINE = 8
    CODE = 16
    SUBSCRIPT = 32
    SUPERSCRIPT = 64


# Order matters: outermost tag first
_FORMAT_TAGS = (
    (TextFormat.BOLD, "strong"),
    (TextFormat.ITALIC, "em"),
    (TextFormat.UNDERLINE, "u"),
    (TextFormat.STRIKETHROUGH, "s"),
    (TextFormat.SUBSCRIPT, "sub"),
    (TextFormat.SUPERSCRIPT, "sup"),
    (TextFormat.CODE, "code"),
)

_HEADING_TAGS = {"h1", "h2", "h3", "h4", "h5", "h6"}

# Output allow-list for rendered content
ALLOWED_TAGS = [
    'p', 'br', 'hr', 'strong', 'em', 'u', 's', 'sub', 'sup', 'code', 'pre',
    'h1', 'h2', 'h3', 'h4', 'h5', 'h6', 'ul', 'ol', 'li', 'blockquote', 'a', 'img',
    'table', 'thead', 'tbody', 'tr', 'th', 'td',
]
ALLOWED_ATTRIBUTES = {
    'a': ['href', 'title'],
    'img': ['src', 'alt', 'title'],
    'code': ['class'],
}
ALLOWED_PROTOCOLS = ['http', 'https', 'mailto']


def _is_safe_url(url: str) -> bool:
    """Link targets must be http(s) or mailto URLs."""
    scheme = urlsplit(url.strip()).scheme.lower()
    return scheme in ALLOWED_PROTOCOLS


@dataclass(frozen=True)
class DocumentContent:
    """Content stored as a document tree."""

    tree: Dict[str, Any]

    @property
    def root(self) -> Dict[str, Any]:
        return self.tree["root"]


@dataclass(frozen=True)
class LegacyContent:
    """Content stored as plain text or Markdown."""

    text: str


PostContent = Union[DocumentContent, LegacyContent]


def parse_document(value: Any) -> Optional[Dict[str, Any]]:
    """Parse ``value`` into a document tree, or return None if it is not one."""
    if isinstance(value, dict):
        parsed = value
    else:
        try:
            parsed = json.loads(value)
        except (TypeError, ValueError):
            return None

    if not isinstance(parsed, dict):
        return None
    root = parsed.get("root")
    if not isinstance(root, dict) or root.get("type") != "root":
        return None
    return parsed


def is_document(value: Any) -> bool:
    """Check whether ``value`` is a serialized document tree.

    Anything that fails to parse, or parses to something without a root node
    of type ``"root"``, is legacy plain text.
    """
    return parse_document(value) is not None


def resolve_content(raw: str) -> PostContent:
    """Classify stored post content."""
    tree = parse_document(raw)
    if tree is not None:
        return DocumentContent(tree)
    return LegacyContent(raw or "")


def _node_text(node: Any) -> str:
    if not isinstance(node, dict):
        return ""

    node_type = node.get("type")
    if node_type == "text":
        return str(node.get("text") or "")
    if node_type == "linebreak":
        return "\n"
    if node_type == "tab":
        return "\t"

    children = node.get("children")
    if not isinstance(children, list):
        return ""

    separator = "\n" if node_type == "list" else ""
    return separator.join(_node_text(child) for child in children)


def to_plain_text(value: Any) -> str:
    """Extract the text of a document tree.

    Top-level blocks are joined with newlines. Malformed input yields an empty
    string rather than an exception.
    """
    try:
        tree = parse_document(value)
        if tree is None:
            return ""
        children = tree["root"].get("children")
        if not isinstance(children, list):
            return ""
        return "\n".join(_node_text(block) for block in children)
    except Exception as e:
        logger.warning(f"Failed to extract text from document: {e}")
        return ""


def _text_node(text: str) -> Dict[str, Any]:
    return {
        "detail": 0,
        "format": 0,
        "mode": "normal",
        "style": "",
        "text": text,
        "type": "text",
        "version": 1,
    }


def build_document(paragraphs: List[str]) -> Dict[str, Any]:
    """Build a document tree with one paragraph block per entry."""
    children = [
        {
            "children": [_text_node(paragraph)],
            "direction": "ltr",
            "format": "",
            "indent": 0,
            "type": "paragraph",
            "version": 1,
        }
        for paragraph in paragraphs
    ]
    return {
        "root": {
            "children": children,
            "direction": "ltr",
            "format": "",
            "indent": 0,
            "type": "root",
            "version": 1,
        }
    }


def from_plain_text(text: str) -> str:
    """Upgrade legacy text to a serialized document tree.

    Paragraphs are separated by blank lines; inline Markdown is kept as literal
    text, so the conversion is lossy and one-way.
    """
    paragraphs = [p.strip() for p in _PARAGRAPH_BREAK.split(text or "") if p.strip()]
    return json.dumps(build_document(paragraphs))


def to_document(raw: str) -> str:
    """Return content as a serialized document, upgrading legacy text."""
    if is_document(raw):
        return raw
    return from_plain_text(raw)


def word_count(value: Any) -> int:
    """Number of whitespace-separated words in a document tree."""
    return len(to_plain_text(value).split())


def char_count(value: Any) -> int:
    """Number of characters in a document tree's text."""
    return len(to_plain_text(value))


def _render_text(node: Dict[str, Any]) -> str:
    rendered = html.escape(str(node.get("text") or ""))
    try:
        flags = TextFormat(int(node.get("format") or 0) & 0x7F)
    except (TypeError, ValueError):
        flags = TextFormat(0)

    for flag, tag in reversed(_FORMAT_TAGS):
        if flag in flags:
            rendered = f"<{tag}>{rendered}</{tag}>"
    return rendered


def _render_children(node: Dict[str, Any]) -> str:
    children = node.get("children")
    if not isinstance(children, list):
        return ""
    return "".join(_render_node(child) for child in children)


def _render_node(node: Any) -> str:
    if not isinstance(node, dict):
        return ""

    node_type = node.get("type")
    if node_type == "text":
        return _render_text(node)
    if node_type == "linebreak":
        return "<br>"
    if node_type == "tab":
        return "\t"
    if node_type == "link":
        url = str(node.get("url") or "")
        if not _is_safe_url(url):
            return _render_children(node)
        return f'<a href="{html.escape(url, quote=True)}">{_render_children(node)}</a>'

    inner = _render_children(node)
    if node_type == "paragraph":
        return f"<p>{inner}</p>"
    if node_type == "heading":
        tag = node.get("tag") if node.get("tag") in _HEADING_TAGS else "h2"
        return f"<{tag}>{inner}</{tag}>"
    if node_type == "quote":
        return f"<blockquote>{inner}</blockquote>"
    if node_type == "code":
        return f"<pre><code>{inner}</code></pre>"
    if node_type == "list":
        tag = "ol" if node.get("listType") == "number" else "ul"
        return f"<{tag}>{inner}</{tag}>"
    if node_type == "listitem":
        return f"<li>{inner}</li>"
    return inner


def sanitize_html(rendered: str) -> str:
    """Reduce rendered HTML to the allowed tags, attributes and URL schemes.

    Disallowed markup is escaped rather than dropped, so raw HTML written into
    a post shows up as text.
    """
    return bleach.clean(
        rendered,
        tags=ALLOWED_TAGS,
        attributes=ALLOWED_ATTRIBUTES,
        protocols=ALLOWED_PROTOCOLS,
    )


def render_html(raw: str) -> str:
    """Render stored content to sanitized HTML.

    Documents are rendered node by node with escaped text. Legacy content is
    treated as Markdown.
    """
    content = resolve_content(raw)
    if isinstance(content, DocumentContent):
        try:
            return sanitize_html(_render_children(content.root))
        except Exception as e:
            logger.warning(f"Failed to render document: {e}")
            return ""

    md = markdown.Markdown(extensions=['fenced_code', 'tables'])
    return sanitize_html(md.convert(content.text))
