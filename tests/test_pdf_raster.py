import io
import re

import pytest
from PIL import Image
from playwright.async_api import TimeoutError as PlaywrightTimeoutError

from conftest import FakePage, make_png
from pubmd.errors import MissingDomError, PdfGenerationError, PdfTimeoutError
from pubmd.options import PdfOptions
from pubmd.pdf import RasterPdfRenderer, find_page_breaks

MEDIABOX = re.compile(rb"/MediaBox\s*\[\s*0\s+0\s+([\d.]+)\s+([\d.]+)\s*\]")
PAGE_OBJECT = re.compile(rb"/Type\s*/Page(?![A-Za-z])")

LETTER_LANDSCAPE_20MM = {
    "pageFormat": "letter",
    "orientation": "landscape",
    "margins": {"top": 20, "right": 20, "bottom": 20, "left": 20},
}


def _image(png: bytes) -> Image.Image:
    return Image.open(io.BytesIO(png))


def _attach_arg(page: FakePage) -> dict:
    return page.evaluated("appendChild")[0][2]


async def test_requires_a_page(logger):
    with pytest.raises(MissingDomError):
        await RasterPdfRenderer(page=None, logger=logger).generate("<p>x</p>")


async def test_closed_page_is_rejected_before_any_work(logger):
    page = FakePage()
    page.closed = True
    with pytest.raises(MissingDomError):
        await RasterPdfRenderer(page=page, logger=logger).generate("<p>x</p>")
    assert page.calls == []


async def test_letter_landscape_page_box(logger):
    page = FakePage(png=make_png(900, 1500))
    pdf = await RasterPdfRenderer(page=page, logger=logger).generate(
        "<h1>Hi</h1>", PdfOptions.from_dict(LETTER_LANDSCAPE_20MM)
    )

    assert pdf.startswith(b"%PDF-")
    width, height = (float(v) for v in MEDIABOX.search(pdf).groups())
    assert width == pytest.approx(792, abs=0.01)
    assert height == pytest.approx(612, abs=0.01)
    # (215.9 - 40) / (279.4 - 40) of the 900px width fits on each page
    assert len(PAGE_OBJECT.findall(pdf)) == 3


async def test_content_width_follows_margins_and_scale(logger):
    page = FakePage(png=make_png(100, 100))
    await RasterPdfRenderer(page=page, logger=logger).generate("<p>x</p>", PdfOptions.from_dict(LETTER_LANDSCAPE_20MM))
    # (279.4mm - 40mm) at 96 dpi
    assert _attach_arg(page)["width"] == 905
    assert _attach_arg(page)["html"] == "<p>x</p>"

    scaled = FakePage(png=make_png(100, 100))
    await RasterPdfRenderer(page=scaled, logger=logger).generate(
        "<p>x</p>", PdfOptions(page_format="Letter", scale=0.5)
    )
    # (215.9mm - 20mm) at 96 dpi, laid out twice as wide
    assert _attach_arg(scaled)["width"] == 1481


async def test_container_removed_after_success(logger, tmp_path):
    target = tmp_path / "raster.pdf"
    page = FakePage(png=make_png(200, 100))
    pdf = await RasterPdfRenderer(page=page, logger=logger).generate("<p>x</p>", PdfOptions(path=str(target)))

    container_id = _attach_arg(page)["id"]
    assert page.evaluated("remove()")[0][2] == container_id
    assert target.read_bytes() == pdf


async def test_container_removed_after_failure(logger):
    page = FakePage(screenshot_error=RuntimeError("gpu lost"))
    with pytest.raises(PdfGenerationError, match="gpu lost") as info:
        await RasterPdfRenderer(page=page, logger=logger).generate("<p>x</p>")
    assert isinstance(info.value.__cause__, RuntimeError)
    assert page.evaluated("remove()")


async def test_timeout_maps_to_pdf_timeout(logger):
    page = FakePage(screenshot_error=PlaywrightTimeoutError("Timeout 30000ms exceeded"))
    with pytest.raises(PdfTimeoutError):
        await RasterPdfRenderer(page=page, logger=logger).generate("<p>x</p>")


async def test_margins_leaving_no_room(logger):
    page = FakePage(png=make_png(10, 10))
    with pytest.raises(PdfGenerationError, match="no printable area"):
        await RasterPdfRenderer(page=page, logger=logger).generate(
            "<p>x</p>", PdfOptions(page_format="A6", margins=60)
        )


def test_breaks_move_up_to_blank_rows():
    image = _image(make_png(100, 250, bands=[(96, 104)]))
    assert find_page_breaks(image, 100) == [(0, 95), (95, 195), (195, 250)]


def test_break_falls_at_full_height_without_blank_row():
    image = _image(make_png(100, 300, bands=[(50, 250)]))
    slices = find_page_breaks(image, 100)
    assert slices[0] == (0, 100)
    assert slices[-1][1] == 300


def test_slices_cover_image_without_gaps():
    image = _image(make_png(50, 1000, bands=[(i, i + 3) for i in range(10, 1000, 12)]))
    slices = find_page_breaks(image, 130)
    assert slices[0][0] == 0
    assert slices[-1][1] == 1000
    for (_, bottom), (top, _) in zip(slices, slices[1:]):
        assert bottom == top
    assert all(0 < bottom - top <= 130 for top, bottom in slices)


def test_transparent_snapshot_is_flattened_on_white(logger):
    image = Image.new("RGBA", (40, 40), (0, 0, 0, 0))
    buffer = io.BytesIO()
    image.save(buffer, format="PNG")
    renderer = RasterPdfRenderer(page=FakePage(), logger=logger)
    pdf = renderer.paginate(buffer.getvalue(), PdfOptions(), (210.0, 297.0), 40)
    assert pdf.startswith(b"%PDF-")
    assert len(PAGE_OBJECT.findall(pdf)) == 1
