"""
HTML sanitization for rendered code blocks.

MIT License - Copyright (c) 2025 Markdown to PDF Converter
"""

from typing import Dict, Iterable, List, Optional

import bleach
from bleach.sanitizer import ALLOWED_ATTRIBUTES, ALLOWED_TAGS

# Plain HTML profile: bleach's inline tags plus block structure
HTML_PROFILE_TAGS = frozenset(ALLOWED_TAGS) | {
    "p", "br", "hr", "div", "span",
    "h1", "h2", "h3", "h4", "h5", "h6",
    "table", "thead", "tbody", "tr", "th", "td",
    "img", "del", "s", "sup", "sub",
}

CODE_BLOCK_TAGS = ("pre", "code")


class HtmlSanitizer:
    """Allow-list sanitizer built on bleach.

    The default profile is plain HTML plus ``pre``/``code`` tags and the
    ``class`` attribute, which is what rendered code blocks need.
    """

    def __init__(self, extra_tags: Iterable[str] = CODE_BLOCK_TAGS, extra_attributes: Iterable[str] = ("class",)):
        self.tags = HTML_PROFILE_TAGS | frozenset(extra_tags)
        attributes: Dict[str, List[str]] = {k: list(v) for k, v in ALLOWED_ATTRIBUTES.items()}
        attributes.setdefault("img", []).extend(["src", "alt", "title"])
        attributes["*"] = list(extra_attributes)
        self.attributes = attributes

    def sanitize(self, html: str) -> str:
        return bleach.clean(
            html,
            tags=self.tags,
            attributes=self.attributes,
            strip=True,
            strip_comments=True,
        )


def create_sanitizer(enabled: bool = True) -> Optional[HtmlSanitizer]:
    """Return the default sanitizer, or None when sanitization is disabled."""
    return HtmlSanitizer() if enabled else None
