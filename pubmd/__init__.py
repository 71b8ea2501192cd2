"""
PubMD: Markdown to PDF publishing pipeline
==========================================

Markdown (GFM subset) is rendered to HTML, fenced ``mermaid`` blocks are
rendered to inline SVG in headless Chromium, and the resulting document is
turned into PDF either by Chromium's print-to-PDF or by rasterizing a live
page and paginating the snapshot.

Modules:
--------
- markdown: Markdown to HTML with deferred diagram substitution
- diagram: Mermaid rendering to SVG
- pdf: PDF strategies (playwright, raster)
- service: Markdown -> HTML -> PDF orchestration
- server: HTTP API (FastAPI)
- converter: Batch directory conversion and CLI

Usage Example:
-------------
    from pubmd import PdfService, PdfOptions

    pdf_bytes = await PdfService().generate_pdf_from_markdown(
        "# Title", PdfOptions(page_format="Letter", orientation="landscape")
    )

MIT License - Copyright (c) 2025 Markdown to PDF Converter
"""

__version__ = "1.0.0"

from .config import Config, parse_margins
from .diagram import DiagramRenderer, DiagramResult, MermaidThemeConfig
from .errors import (
    PubmdError,
    SandboxUnavailableError,
    DiagramRenderError,
    PdfGenerationError,
    PdfTimeoutError,
    MissingDomError,
)
from .escaper import escape_html
from .markdown import MarkdownRenderer
from .options import DiagramPlaceholder, Margins, ParseOptions, PdfOptions
from .pdf import PdfRenderer, PlaywrightPdfRenderer, RasterPdfRenderer, create_pdf_renderer
from .sanitizer import HtmlSanitizer, create_sanitizer
from .service import PdfService, create_service

__all__ = [
    # Configuration
    'Config',
    'parse_margins',
    # Options
    'ParseOptions',
    'PdfOptions',
    'Margins',
    'DiagramPlaceholder',
    # Rendering
    'MarkdownRenderer',
    'DiagramRenderer',
    'DiagramResult',
    'MermaidThemeConfig',
    'HtmlSanitizer',
    'create_sanitizer',
    'escape_html',
    # PDF
    'PdfRenderer',
    'PlaywrightPdfRenderer',
    'RasterPdfRenderer',
    'create_pdf_renderer',
    'PdfService',
    'create_service',
    # Errors
    'PubmdError',
    'SandboxUnavailableError',
    'DiagramRenderError',
    'PdfGenerationError',
    'PdfTimeoutError',
    'MissingDomError',
]
