"""
Print-to-PDF through headless Chromium (Puppeteer approach).

Layout, pagination and page breaks are left entirely to the browser engine.

MIT License - Copyright (c) 2025 Markdown to PDF Converter
"""

from pathlib import Path
from typing import Any, Dict, Optional

from playwright.async_api import TimeoutError as PlaywrightTimeoutError

from ..console import ConsoleLogger, get_logger
from ..errors import PdfGenerationError, PdfTimeoutError, SandboxUnavailableError
from ..options import PdfOptions
from ..sandbox import BrowserSandbox
from .base import PdfRenderer
from .page_sizes import canonical_format, length_to_css, parse_custom_format

DEFAULT_PDF_TIMEOUT_MS = 30000

# Mermaid occasionally emits edge labels with NaN transforms; Chromium then
# prints them at the page origin. Hide them and keep diagrams inside the page.
SVG_CORRECTION_SCRIPT = """
() => {
    let hidden = 0;
    document.querySelectorAll('.mermaid svg g.edgeLabel').forEach((group) => {
        const transform = group.getAttribute('transform');
        if (transform && transform.includes('NaN')) {
            group.setAttribute('transform', 'translate(0,0)');
            group.style.visibility = 'hidden';
            hidden += 1;
        }
    });
    document.querySelectorAll('.mermaid svg').forEach((svg) => {
        svg.style.maxWidth = '100%';
        svg.style.height = 'auto';
    });
    return hidden;
}
"""

_CRASH_KEYWORDS = ("Connection closed", "Browser has been closed", "Target closed", "crashed", "Protocol error")


def build_pdf_options(options: PdfOptions) -> Dict[str, Any]:
    """Translate PdfOptions into keyword arguments for ``page.pdf``."""
    pdf_kwargs: Dict[str, Any] = {
        "landscape": options.landscape,
        "scale": options.scale,
        "margin": options.margins.as_css(),
        "print_background": options.print_background,
        "display_header_footer": options.display_header_footer,
        "prefer_css_page_size": options.prefer_css_page_size,
    }

    page_format = canonical_format(options.page_format)
    if page_format:
        pdf_kwargs["format"] = page_format
    else:
        custom = parse_custom_format(options.page_format)
        if not custom:
            raise ValueError(f"Unknown page format '{options.page_format}'")
        width, height = custom
        if options.landscape:
            width, height = height, width
        pdf_kwargs["width"] = width
        pdf_kwargs["height"] = height

    # Explicit dimensions take priority over the named format
    if options.width is not None or options.height is not None:
        pdf_kwargs.pop("format", None)
        if options.width is not None:
            pdf_kwargs["width"] = length_to_css(options.width)
        if options.height is not None:
            pdf_kwargs["height"] = length_to_css(options.height)

    if options.display_header_footer:
        pdf_kwargs["header_template"] = options.header_template or "<div></div>"
        pdf_kwargs["footer_template"] = options.footer_template or (
            '<div style="font-size: 10px; text-align: center; width: 100%; margin: 0 auto;">'
            '<span class="pageNumber"></span></div>'
        )
    if options.path:
        pdf_kwargs["path"] = str(Path(options.path))
    return pdf_kwargs


class PlaywrightPdfRenderer(PdfRenderer):
    """PDF generation via Chromium's native print-to-PDF."""

    def __init__(
        self,
        timeout_ms: int = DEFAULT_PDF_TIMEOUT_MS,
        logger: Optional[ConsoleLogger] = None,
        sandbox_factory=BrowserSandbox,
        max_attempts: int = 2,
    ):
        self.timeout_ms = timeout_ms
        self.logger = logger or get_logger()
        self.sandbox_factory = sandbox_factory
        self.max_attempts = max_attempts

    async def generate(self, html: str, options: Optional[PdfOptions] = None) -> bytes:
        """Convert HTML to PDF bytes.

        Retries once with a fresh browser if the browser process crashes
        mid-conversion.
        """
        options = options or PdfOptions()
        pdf_kwargs = build_pdf_options(options)
        self.logger.debug(f"Generating PDF with options: {pdf_kwargs}")

        for attempt in range(1, self.max_attempts + 1):
            try:
                return await self._print(html, pdf_kwargs)
            except (SandboxUnavailableError, PdfGenerationError):
                raise
            except PlaywrightTimeoutError as e:
                self.logger.error(f"PDF generation timed out after {self.timeout_ms}ms: {e}")
                raise PdfTimeoutError(f"Playwright timed out: {e}") from e
            except Exception as e:
                is_crash = any(kw in str(e) for kw in _CRASH_KEYWORDS)
                if is_crash and attempt < self.max_attempts:
                    self.logger.warning("Browser crashed during PDF generation, restarting and retrying...")
                    continue
                self.logger.error(f"Failed to convert HTML to PDF: {e}")
                raise PdfGenerationError(f"Failed to generate PDF with Playwright: {e}") from e

        raise PdfGenerationError("Failed to generate PDF with Playwright")

    async def _print(self, html: str, pdf_kwargs: Dict[str, Any]) -> bytes:
        async with self.sandbox_factory(logger=self.logger) as sandbox:
            async with sandbox.new_page() as page:
                page.set_default_timeout(self.timeout_ms)
                # Diagrams are already static SVG, DOM-ready is enough
                await page.set_content(html, wait_until="domcontentloaded")
                hidden = await page.evaluate(SVG_CORRECTION_SCRIPT)
                if hidden:
                    self.logger.debug(f"Hid {hidden} Mermaid edge label(s) with invalid transforms")
                return await page.pdf(**pdf_kwargs)
