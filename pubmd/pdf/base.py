"""
The PDF renderer contract.

MIT License - Copyright (c) 2025 Markdown to PDF Converter
"""

from abc import ABC, abstractmethod
from typing import Optional

from ..options import PdfOptions


class PdfRenderer(ABC):
    """Turns a complete HTML document into PDF bytes."""

    @abstractmethod
    async def generate(self, html: str, options: Optional[PdfOptions] = None) -> bytes:
        """Render ``html`` with the page layout in ``options``.

        ``options.filename`` and ``options.path`` are output metadata only and
        never affect the PDF body.
        """
