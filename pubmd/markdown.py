"""
Markdown to HTML rendering with deferred Mermaid diagram substitution.

Fenced ``mermaid`` blocks become placeholder comments during parsing, are
rendered to SVG in a headless browser afterwards, and are spliced back into
the HTML in document order.

MIT License - Copyright (c) 2025 Markdown to PDF Converter
"""

import random
import string
import time
from typing import Any, List, Mapping, Optional, Set, Union

from markdown_it import MarkdownIt
from mdit_py_plugins.anchors import anchors_plugin
from mdit_py_plugins.tasklists import tasklists_plugin

from .console import ConsoleLogger, get_logger
from .diagram import DiagramRenderer, DiagramResult, MermaidThemeConfig
from .errors import SandboxUnavailableError
from .escaper import escape_html
from .options import DiagramPlaceholder, ParseOptions
from .sanitizer import HtmlSanitizer

DIAGRAM_LANGUAGE = "mermaid"

_BASE36 = string.digits + string.ascii_lowercase

# Distinguishes "use the default sanitizer" from an explicit None
_DEFAULT = object()


def _random_base36(length: int = 13) -> str:
    return ''.join(random.choice(_BASE36) for _ in range(length))


def new_diagram_id(taken: Set[str]) -> str:
    """Time + random derived id, regenerated on collision with ``taken``."""
    while True:
        diagram_id = f"mermaid-pw-{int(time.time() * 1000)}-{_random_base36()}"
        if diagram_id not in taken:
            taken.add(diagram_id)
            return diagram_id


def diagram_wrapper(svg: str) -> str:
    return f'<div class="mermaid">{svg}</div>'


def diagram_error_block(diagram_id: str, message: str) -> str:
    return (
        f'<pre class="diagram-error" data-diagram-id="{escape_html(diagram_id, encode=True)}">'
        f'Mermaid Error: {escape_html(message, encode=True)}</pre>'
    )


class MarkdownRenderer:
    """Parse Markdown into HTML, rendering Mermaid diagrams to inline SVG.

    Raw HTML in the Markdown body (``<script>`` included) is passed through to
    the output, which is then loaded by the browser that prints it. Set
    ``allow_raw_html=False`` (``allowRawHtml`` in request payloads) to have it
    escaped as text when the input is not trusted. Only fenced code blocks go
    through the sanitizer.
    """

    DEFAULT_OPTIONS = ParseOptions()

    def __init__(
        self,
        diagram_renderer: Optional[DiagramRenderer] = None,
        sanitizer: Any = _DEFAULT,
        logger: Optional[ConsoleLogger] = None,
        raise_on_sandbox_failure: bool = False,
    ):
        self.logger = logger or get_logger()
        self.diagram_renderer = diagram_renderer or DiagramRenderer(logger=self.logger)
        self.sanitizer: Optional[HtmlSanitizer] = HtmlSanitizer() if sanitizer is _DEFAULT else sanitizer
        self.raise_on_sandbox_failure = raise_on_sandbox_failure

    def _build_parser(self, options: ParseOptions, placeholders: List[DiagramPlaceholder]) -> MarkdownIt:
        """Create a parser instance owned by a single parse call."""
        md = MarkdownIt("commonmark", {
            "html": options.allow_raw_html,
            "breaks": options.breaks,
            "linkify": options.gfm,
        })
        if options.gfm:
            md.enable(["table", "strikethrough", "linkify"])
            md.use(tasklists_plugin)
        if options.header_ids:
            md.use(anchors_plugin, min_level=1, max_level=6, permalink=False)

        sanitizer = self.sanitizer if options.sanitize_html else None
        taken: Set[str] = set()

        def render_fence(tokens, idx, _options, _env):
            token = tokens[idx]
            info = (token.info or "").strip()
            lang = info.split()[0].lower() if info else ""

            if lang == DIAGRAM_LANGUAGE:
                placeholder = DiagramPlaceholder.create(new_diagram_id(taken), token.content)
                placeholders.append(placeholder)
                return placeholder.token + "\n"

            class_attribute = f' class="language-{escape_html(lang, encode=True)}"' if lang else ""
            code = escape_html(token.content.rstrip("\n"), encode=True)
            raw_html = f"<pre><code{class_attribute}>{code}\n</code></pre>\n"
            if sanitizer is not None:
                return sanitizer.sanitize(raw_html)
            return raw_html

        md.renderer.rules["fence"] = render_fence
        return md

    async def parse(
        self,
        markdown_text: str,
        options: Union[ParseOptions, Mapping[str, Any], None] = None,
    ) -> str:
        """Convert Markdown to an HTML fragment with diagrams rendered in place."""
        merged = self.DEFAULT_OPTIONS.merged(options)

        if merged.sanitize_html and self.sanitizer is None:
            self.logger.warning(
                "sanitize_html is enabled but no sanitizer is available. "
                "Code blocks will not be sanitized for this document."
            )

        placeholders: List[DiagramPlaceholder] = []
        md = self._build_parser(merged, placeholders)
        html = md.render(markdown_text or "")
        if not isinstance(html, str):
            html = str(html)

        if placeholders:
            html = await self._substitute_diagrams(html, placeholders, merged)
        return html

    async def _substitute_diagrams(
        self,
        html: str,
        placeholders: List[DiagramPlaceholder],
        options: ParseOptions,
    ) -> str:
        theme_config = MermaidThemeConfig.from_parse_options(options)
        self.logger.debug(
            f"Rendering {len(placeholders)} Mermaid diagram(s) "
            f"(theme: {theme_config.theme}, security: {theme_config.security_level})"
        )

        try:
            results = await self.diagram_renderer.render_batch(
                [(p.id, p.code) for p in placeholders], theme_config
            )
        except SandboxUnavailableError as e:
            if self.raise_on_sandbox_failure:
                raise
            self.logger.error(f"Failed to launch browser for Mermaid rendering: {e}")
            results = [
                DiagramResult(p.id, error=f"Could not initialize browser for rendering: {e}")
                for p in placeholders
            ]

        by_id = {result.diagram_id: result for result in results}
        for placeholder in placeholders:
            result = by_id.get(placeholder.id)
            if result is None:
                replacement = diagram_error_block(placeholder.id, "Diagram was not rendered")
            elif result.ok:
                replacement = diagram_wrapper(result.svg)
            else:
                replacement = diagram_error_block(placeholder.id, result.error or "Unknown error")
            html = placeholder.pattern.sub(lambda _m: replacement, html, count=1)
        return html
