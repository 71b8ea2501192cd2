"""
PDF generation strategies.

MIT License - Copyright (c) 2025 Markdown to PDF Converter
"""

from typing import Optional

from playwright.async_api import Page

from ..config import Config
from ..console import ConsoleLogger, get_logger
from .base import PdfRenderer
from .playwright_engine import PlaywrightPdfRenderer, build_pdf_options
from .raster_engine import RasterPdfRenderer, find_page_breaks


def create_pdf_renderer(
    config: Optional[Config] = None,
    page: Optional[Page] = None,
    logger: Optional[ConsoleLogger] = None,
) -> PdfRenderer:
    """Select the PDF strategy named by the configuration.

    ``page`` is only used by the raster strategy, which needs a live DOM.
    """
    config = config or Config()
    logger = logger or get_logger()
    engine = config.get_engine()
    logger.debug(f"Using '{engine}' PDF engine")
    if engine == "raster":
        return RasterPdfRenderer(page=page, logger=logger)
    return PlaywrightPdfRenderer(timeout_ms=config.get_pdf_timeout_ms(), logger=logger)


__all__ = [
    "PdfRenderer",
    "PlaywrightPdfRenderer",
    "RasterPdfRenderer",
    "build_pdf_options",
    "create_pdf_renderer",
    "find_page_breaks",
]
