"""
Shared fakes for browser-backed components.

MIT License - Copyright (c) 2025 Markdown to PDF Converter
"""

import io
from typing import Dict, List, Optional

import pytest
from PIL import Image, ImageDraw

from pubmd.console import ConsoleLogger
from pubmd.diagram import DiagramResult
from pubmd.errors import SandboxUnavailableError


class RecordingLogger(ConsoleLogger):
    """ConsoleLogger that keeps messages instead of printing them."""

    def __init__(self):
        super().__init__(name="test", debug=True)
        self.records: List[tuple] = []

    def _emit(self, color: str, tag: str, message: str) -> None:
        self.records.append((tag, message))

    def messages(self, tag: str) -> List[str]:
        return [message for record_tag, message in self.records if record_tag == tag]


class FakeDiagramRenderer:
    """Stands in for DiagramRenderer.render_batch.

    Sources containing ``FAIL`` produce an error result; everything else a
    small SVG that echoes the diagram id.
    """

    def __init__(self, unavailable: bool = False):
        self.unavailable = unavailable
        self.calls: List[tuple] = []

    async def render_batch(self, items, theme_config=None) -> List[DiagramResult]:
        self.calls.append((list(items), theme_config))
        if self.unavailable:
            raise SandboxUnavailableError("no chromium here")
        results = []
        for diagram_id, source in items:
            if "FAIL" in source:
                results.append(DiagramResult(diagram_id, error="Parse error on line 1"))
            else:
                results.append(DiagramResult(diagram_id, svg=f'<svg id="svg-{diagram_id}"><g></g></svg>'))
        return results


class ExplodingDiagramRenderer:
    """Fails the test if the Markdown renderer ever asks for a diagram."""

    async def render_batch(self, items, theme_config=None):
        raise AssertionError("diagram renderer must not be invoked")


class FakeElement:
    def __init__(self, page: "FakePage"):
        self.page = page

    async def screenshot(self, **kwargs) -> bytes:
        self.page.calls.append(("screenshot", kwargs))
        if self.page.screenshot_error is not None:
            raise self.page.screenshot_error
        return self.page.png


class FakePage:
    """Scriptable stand-in for a Playwright Page."""

    def __init__(
        self,
        status: Optional[str] = "done",
        render_error: Optional[str] = None,
        svg: Optional[str] = "<svg><g>ok</g></svg>",
        wait_error: Optional[Exception] = None,
        pdf_result=b"%PDF-1.4 fake",
        png: bytes = b"",
        screenshot_error: Optional[Exception] = None,
    ):
        self.status = status
        self.render_error = render_error
        self.svg = svg
        self.wait_error = wait_error
        self.pdf_result = pdf_result
        self.png = png
        self.screenshot_error = screenshot_error
        self.closed = False
        self.calls: List[tuple] = []

    def is_closed(self) -> bool:
        return self.closed

    async def close(self) -> None:
        self.closed = True

    def set_default_timeout(self, timeout: float) -> None:
        self.calls.append(("set_default_timeout", timeout))

    async def set_content(self, html: str, **kwargs) -> None:
        self.calls.append(("set_content", html, kwargs))

    async def wait_for_function(self, expression: str, **kwargs) -> None:
        self.calls.append(("wait_for_function", kwargs))
        if self.wait_error is not None:
            raise self.wait_error

    async def get_attribute(self, selector: str, name: str) -> Optional[str]:
        if name == "data-render-status":
            return self.status
        if name == "data-render-error":
            return self.render_error
        return None

    async def evaluate(self, expression: str, arg=None):
        self.calls.append(("evaluate", expression, arg))
        if "outerHTML" in expression:
            return self.svg
        if "edgeLabel" in expression:
            return 0
        return None

    async def query_selector(self, selector: str):
        self.calls.append(("query_selector", selector))
        return FakeElement(self)

    async def pdf(self, **kwargs):
        self.calls.append(("pdf", kwargs))
        if isinstance(self.pdf_result, Exception):
            raise self.pdf_result
        return self.pdf_result

    def evaluated(self, needle: str) -> List[tuple]:
        return [c for c in self.calls if c[0] == "evaluate" and needle in c[1]]


class FakeContext:
    def __init__(self, page: FakePage):
        self.page = page
        self.closed = False

    async def new_page(self) -> FakePage:
        return self.page

    async def close(self) -> None:
        self.closed = True


class FakeBrowser:
    """Hands out pages from a queue (the last page is reused when it runs out)."""

    def __init__(self, pages: List[FakePage]):
        self.pages = list(pages)
        self.contexts: List[FakeContext] = []

    async def new_context(self) -> FakeContext:
        page = self.pages.pop(0) if len(self.pages) > 1 else self.pages[0]
        context = FakeContext(page)
        self.contexts.append(context)
        return context


def make_sandbox_factory(browser_for_launch, fail_launch: bool = False):
    """Build a BrowserSandbox replacement class.

    ``browser_for_launch`` is called with the launch number (1-based) and
    returns the FakeBrowser for that sandbox.
    """
    state: Dict[str, int] = {"launches": 0, "closes": 0}

    class FakeSandbox:
        launches = state

        def __init__(self, logger=None, launch_args=None):
            self.logger = logger
            self.browser = None

        async def __aenter__(self):
            if fail_launch:
                raise SandboxUnavailableError("Could not launch headless Chromium: missing binary")
            state["launches"] += 1
            self.browser = browser_for_launch(state["launches"])
            return self

        async def __aexit__(self, exc_type, exc, tb):
            state["closes"] += 1
            self.browser = None

        def new_page(self):
            browser = self.browser

            class _PageContext:
                async def __aenter__(self_inner):
                    context = await browser.new_context()
                    self_inner.context = context
                    return await context.new_page()

                async def __aexit__(self_inner, exc_type, exc, tb):
                    await self_inner.context.close()

            return _PageContext()

    return FakeSandbox


def make_png(width: int, height: int, bands=(), background=(255, 255, 255)) -> bytes:
    """PNG with black horizontal bands given as (top, bottom) inclusive rows."""
    image = Image.new("RGB", (width, height), background)
    draw = ImageDraw.Draw(image)
    for top, bottom in bands:
        draw.rectangle([0, top, width - 1, bottom], fill=(0, 0, 0))
    buffer = io.BytesIO()
    image.save(buffer, format="PNG")
    return buffer.getvalue()


@pytest.fixture
def logger() -> RecordingLogger:
    return RecordingLogger()


@pytest.fixture
def fake_diagrams() -> FakeDiagramRenderer:
    return FakeDiagramRenderer()
