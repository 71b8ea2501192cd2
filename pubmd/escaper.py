"""
Minimal HTML entity escaping for text embedded into HTML/SVG templates.

MIT License - Copyright (c) 2025 Markdown to PDF Converter
"""

import re

# "&" not already starting an entity such as &amp; &#39; &#x27;
_UNENCODED_AMP = re.compile(r'&(?!#?\w+;)')


def escape_html(text: str, encode: bool = False) -> str:
    """Escape ``& < > " '`` in text.

    With ``encode=False`` ampersands that already begin an entity are left
    alone so pre-escaped input is not double-escaped. With ``encode=True``
    every ampersand is escaped.
    """
    if not text:
        return ""
    if encode:
        text = text.replace('&', '&amp;')
    else:
        text = _UNENCODED_AMP.sub('&amp;', text)
    return (
        text.replace('<', '&lt;')
        .replace('>', '&gt;')
        .replace('"', '&quot;')
        .replace("'", '&#39;')
    )
