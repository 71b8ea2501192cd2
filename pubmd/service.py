"""
Conversion orchestrator: Markdown -> HTML document -> PDF bytes.

MIT License - Copyright (c) 2025 Markdown to PDF Converter
"""

import time
from pathlib import Path
from typing import Any, Callable, Mapping, Optional, Union

from .config import Config
from .console import ConsoleLogger, get_logger
from .diagram import DiagramRenderer
from .markdown import MarkdownRenderer
from .options import ParseOptions, PdfOptions
from .pdf import PdfRenderer, PlaywrightPdfRenderer, create_pdf_renderer
from .template import build_document


class PdfService:
    """Runs the full pipeline. Errors from each stage propagate unchanged."""

    def __init__(
        self,
        markdown_renderer: Optional[MarkdownRenderer] = None,
        pdf_renderer: Optional[PdfRenderer] = None,
        template: Callable[..., str] = build_document,
        logger: Optional[ConsoleLogger] = None,
        fonts_dir: Optional[Path] = None,
    ):
        self.logger = logger or get_logger()
        self.fonts_dir = fonts_dir
        self.markdown_renderer = markdown_renderer or MarkdownRenderer(logger=self.logger)
        self.pdf_renderer = pdf_renderer or PlaywrightPdfRenderer(logger=self.logger)
        self.template = template

    async def generate_pdf_from_html(
        self,
        html: str,
        options: Union[PdfOptions, Mapping[str, Any], None] = None,
    ) -> bytes:
        options = _as_pdf_options(options)
        start = time.time()
        pdf_bytes = await self.pdf_renderer.generate(html, options)
        self.logger.debug(f"PDF generated in {(time.time() - start) * 1000:.0f}ms ({len(pdf_bytes)} bytes)")
        return pdf_bytes

    async def generate_pdf_from_markdown(
        self,
        markdown_text: str,
        options: Union[PdfOptions, Mapping[str, Any], None] = None,
        parse_options: Union[ParseOptions, Mapping[str, Any], None] = None,
        title: str = "PDF Document",
    ) -> bytes:
        """Parse Markdown, wrap it in the document template and print it.

        Theme and font given on the PDF options apply to the Markdown stage
        unless the parse options set them explicitly.
        """
        options = _as_pdf_options(options)
        parse = ParseOptions().merged(parse_options)
        passthrough = {}
        if options.mermaid_theme and parse.mermaid_theme == ParseOptions.mermaid_theme:
            passthrough["mermaid_theme"] = options.mermaid_theme
        if options.font_preference and parse.font_preference is None:
            passthrough["font_preference"] = options.font_preference
        if passthrough:
            parse = parse.merged(passthrough)

        start = time.time()
        fragment = await self.markdown_renderer.parse(markdown_text, parse)
        self.logger.debug(
            f"Markdown parsed to HTML in {(time.time() - start) * 1000:.0f}ms. HTML length: {len(fragment)}"
        )

        document = self.template(
            fragment,
            title=title,
            font_preference=parse.font_preference or "sans",
            fonts_dir=self.fonts_dir,
        )
        return await self.generate_pdf_from_html(document, options)


def _as_pdf_options(options: Union[PdfOptions, Mapping[str, Any], None]) -> PdfOptions:
    if options is None:
        return PdfOptions()
    if isinstance(options, PdfOptions):
        return options
    return PdfOptions.from_dict(options)


def create_service(config: Optional[Config] = None, logger: Optional[ConsoleLogger] = None) -> PdfService:
    """Wire a PdfService from configuration (Mermaid URL, timeouts, engine, fonts)."""
    config = config or Config()
    logger = logger or get_logger(config.is_debug())
    diagram_renderer = DiagramRenderer(
        script_url=config.get_mermaid_script_url(),
        timeout_ms=config.get_diagram_timeout_ms(),
        logger=logger,
    )
    return PdfService(
        markdown_renderer=MarkdownRenderer(diagram_renderer=diagram_renderer, logger=logger),
        pdf_renderer=create_pdf_renderer(config, logger=logger),
        logger=logger,
        fonts_dir=config.get_fonts_dir(),
    )
