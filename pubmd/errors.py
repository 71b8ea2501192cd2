"""
Exception types raised by the conversion pipeline.

MIT License - Copyright (c) 2025 Markdown to PDF Converter
"""


class PubmdError(Exception):
    """Base class for all pipeline errors."""


class SandboxUnavailableError(PubmdError):
    """The headless browser could not be launched."""


class DiagramRenderError(PubmdError):
    """A single diagram failed to render (including timeouts)."""

    def __init__(self, diagram_id: str, message: str):
        super().__init__(message)
        self.diagram_id = diagram_id


class PdfGenerationError(PubmdError):
    """PDF generation failed."""


class PdfTimeoutError(PdfGenerationError):
    """PDF generation exceeded the browser timeout.

    Callers can offer a "try again / simplify the document" message.
    """


class MissingDomError(PubmdError):
    """The raster strategy was called without a live DOM page."""
