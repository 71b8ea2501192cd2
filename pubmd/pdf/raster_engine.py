"""
Rasterize-and-paginate PDF generation.

Used where Chromium's print-to-PDF is not available to us but a live page is:
the HTML is attached to the caller's page, snapshotted to a PNG, and the
raster is laid onto PDF pages with breaks moved to blank rows so lines of
text are never split across pages.

MIT License - Copyright (c) 2025 Markdown to PDF Converter
"""

import uuid
from io import BytesIO
from pathlib import Path
from typing import List, Optional, Tuple

from PIL import Image, ImageChops
from playwright.async_api import Page, TimeoutError as PlaywrightTimeoutError
from reportlab.lib.utils import ImageReader
from reportlab.pdfgen import canvas

from ..console import ConsoleLogger, get_logger
from ..errors import MissingDomError, PdfGenerationError, PdfTimeoutError
from ..options import PdfOptions
from .base import PdfRenderer
from .page_sizes import mm_to_pt, mm_to_px, page_size_mm

ATTACH_SCRIPT = """
async ({id, html, width, background}) => {
    const container = document.createElement('div');
    container.id = id;
    container.style.position = 'absolute';
    container.style.left = '0';
    container.style.top = '0';
    container.style.width = width + 'px';
    container.style.boxSizing = 'border-box';
    container.style.background = background ? '' : '#ffffff';
    container.innerHTML = html;
    document.body.appendChild(container);
    const images = Array.from(container.querySelectorAll('img'));
    await Promise.all(images.map((img) => img.complete ? null : new Promise((resolve) => {
        img.onload = resolve;
        img.onerror = resolve;
    })));
    if (document.fonts && document.fonts.ready) {
        await document.fonts.ready;
    }
    return container.scrollHeight;
}
"""

DETACH_SCRIPT = """
(id) => {
    const container = document.getElementById(id);
    if (container) { container.remove(); }
}
"""


def _is_blank_row(image: Image.Image, y: int, background: Tuple[int, int, int], tolerance: int) -> bool:
    row = image.crop((0, y, image.width, y + 1))
    solid = Image.new("RGB", row.size, background)
    diff = ImageChops.difference(row, solid).convert("L")
    return diff.getextrema()[1] <= tolerance


def find_page_breaks(
    image: Image.Image,
    slice_height: int,
    search_ratio: float = 0.15,
    tolerance: int = 8,
) -> List[Tuple[int, int]]:
    """Split ``image`` into vertical slices of at most ``slice_height`` rows.

    Each break is moved up to the nearest blank row (all pixels within
    ``tolerance`` of the background colour) inside the bottom ``search_ratio``
    of the slice; when no blank row exists the break falls at the full height.
    """
    if slice_height <= 0:
        raise ValueError("slice_height must be positive")

    rgb = image.convert("RGB")
    background = rgb.getpixel((0, 0)) if rgb.width and rgb.height else (255, 255, 255)
    search_rows = max(1, int(slice_height * search_ratio))

    slices: List[Tuple[int, int]] = []
    top = 0
    while top < rgb.height:
        ideal = top + slice_height
        if ideal >= rgb.height:
            slices.append((top, rgb.height))
            break

        cut = ideal
        lowest = max(top + 1, ideal - search_rows)
        for y in range(ideal, lowest - 1, -1):
            if _is_blank_row(rgb, y, background, tolerance):
                cut = y
                break
        slices.append((top, cut))
        top = cut
    return slices


class RasterPdfRenderer(PdfRenderer):
    """PDF generation by snapshotting a live page and paginating the raster.

    ``page`` is the DOM environment supplied by the caller; this renderer
    never launches a browser of its own.
    """

    def __init__(
        self,
        page: Optional[Page] = None,
        logger: Optional[ConsoleLogger] = None,
        search_ratio: float = 0.15,
        blank_tolerance: int = 8,
    ):
        self.page = page
        self.logger = logger or get_logger()
        self.search_ratio = search_ratio
        self.blank_tolerance = blank_tolerance

    def _require_page(self) -> Page:
        page = self.page
        if page is None or page.is_closed():
            raise MissingDomError(
                "Raster PDF generation needs a live page (DOM environment) supplied by the caller"
            )
        return page

    async def generate(self, html: str, options: Optional[PdfOptions] = None) -> bytes:
        options = options or PdfOptions()
        page = self._require_page()

        page_w_mm, page_h_mm = page_size_mm(options.page_format, options.landscape, options.width, options.height)
        margins = options.margins
        usable_w_mm = page_w_mm - margins.left - margins.right
        usable_h_mm = page_h_mm - margins.top - margins.bottom
        if usable_w_mm <= 0 or usable_h_mm <= 0:
            raise PdfGenerationError(
                f"Margins leave no printable area on a {page_w_mm:.1f}x{page_h_mm:.1f}mm page"
            )

        # Lay out wider when scaled down, like print scaling does
        content_width_px = max(1, round(mm_to_px(usable_w_mm) / options.scale))
        container_id = f"pubmd-raster-{uuid.uuid4().hex}"
        self.logger.debug(
            f"Rasterizing at {content_width_px}px content width for a {page_w_mm:.1f}x{page_h_mm:.1f}mm page"
        )

        try:
            await page.evaluate(ATTACH_SCRIPT, {
                "id": container_id,
                "html": html,
                "width": content_width_px,
                "background": options.print_background,
            })
            element = await page.query_selector(f"#{container_id}")
            if element is None:
                raise PdfGenerationError("Raster container was not attached to the page")
            png = await element.screenshot(type="png")
            pdf_bytes = self.paginate(png, options, (page_w_mm, page_h_mm), content_width_px)
        except PdfGenerationError:
            raise
        except PlaywrightTimeoutError as e:
            raise PdfTimeoutError(f"Timed out rasterizing HTML: {e}") from e
        except Exception as e:
            self.logger.error(f"Failed to rasterize HTML to PDF: {e}")
            raise PdfGenerationError(f"Failed to generate PDF from raster: {e}") from e
        finally:
            if not page.is_closed():
                try:
                    await page.evaluate(DETACH_SCRIPT, container_id)
                except Exception as e:
                    self.logger.warning(f"Could not remove raster container: {e}")

        if options.path:
            Path(options.path).write_bytes(pdf_bytes)
        return pdf_bytes

    def paginate(
        self,
        png: bytes,
        options: PdfOptions,
        page_size: Tuple[float, float],
        content_width_px: int,
    ) -> bytes:
        """Place a PNG snapshot onto as many PDF pages as it needs."""
        page_w_mm, page_h_mm = page_size
        margins = options.margins
        page_w_pt, page_h_pt = mm_to_pt(page_w_mm), mm_to_pt(page_h_mm)
        usable_w_pt = mm_to_pt(page_w_mm - margins.left - margins.right)
        usable_h_pt = mm_to_pt(page_h_mm - margins.top - margins.bottom)
        left_pt, top_pt = mm_to_pt(margins.left), mm_to_pt(margins.top)

        with Image.open(BytesIO(png)) as snapshot:
            if snapshot.mode in ("RGBA", "LA", "P"):
                rgba = snapshot.convert("RGBA")
                image = Image.new("RGB", rgba.size, (255, 255, 255))
                image.paste(rgba, mask=rgba.split()[3])
            else:
                image = snapshot.convert("RGB")

        buffer = BytesIO()
        pdf = canvas.Canvas(buffer, pagesize=(page_w_pt, page_h_pt))

        if image.width == 0 or image.height == 0:
            pdf.showPage()
            pdf.save()
            return buffer.getvalue()

        # Screenshot pixels per point of page width (device scale included)
        pt_per_px = usable_w_pt / image.width
        slice_height = max(1, int(usable_h_pt / pt_per_px))
        slices = find_page_breaks(image, slice_height, self.search_ratio, self.blank_tolerance)
        self.logger.debug(
            f"Paginating {image.width}x{image.height}px snapshot into {len(slices)} page(s) "
            f"(layout width {content_width_px}px)"
        )

        for top, bottom in slices:
            part = image.crop((0, top, image.width, bottom))
            draw_h_pt = part.height * pt_per_px
            pdf.drawImage(
                ImageReader(part),
                left_pt,
                page_h_pt - top_pt - draw_h_pt,
                width=usable_w_pt,
                height=draw_h_pt,
            )
            pdf.showPage()

        pdf.save()
        return buffer.getvalue()
