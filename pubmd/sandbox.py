"""
Headless Chromium lifecycle shared by the diagram and PDF renderers.

MIT License - Copyright (c) 2025 Markdown to PDF Converter
"""

from contextlib import asynccontextmanager
from typing import AsyncIterator, Optional

from playwright.async_api import async_playwright, Browser, Page

from .console import ConsoleLogger, get_logger
from .errors import SandboxUnavailableError

CHROMIUM_ARGS = [
    '--disable-dev-shm-usage',  # Use /tmp instead of /dev/shm (prevents OOM crashes)
    '--disable-gpu',             # No GPU in headless mode
    '--no-sandbox',              # Required in some environments
]


class BrowserSandbox:
    """One Chromium process, released on every exit path.

    Usage::

        async with BrowserSandbox() as sandbox:
            async with sandbox.new_page() as page:
                ...
    """

    def __init__(self, logger: Optional[ConsoleLogger] = None, launch_args: Optional[list] = None):
        self.logger = logger or get_logger()
        self.launch_args = launch_args if launch_args is not None else list(CHROMIUM_ARGS)
        self._playwright = None
        self.browser: Optional[Browser] = None

    async def __aenter__(self) -> "BrowserSandbox":
        await self.launch()
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.close()

    async def launch(self) -> Browser:
        """Launch a fresh Chromium browser instance."""
        try:
            self._playwright = await async_playwright().start()
            self.browser = await self._playwright.chromium.launch(headless=True, args=self.launch_args)
        except Exception as e:
            await self.close()
            raise SandboxUnavailableError(f"Could not launch headless Chromium: {e}") from e
        self.logger.debug("Initialized browser instance")
        return self.browser

    async def close(self) -> None:
        """Close browser and stop Playwright."""
        # Null out first to prevent double-close on crash
        browser, pw = self.browser, self._playwright
        self.browser = None
        self._playwright = None

        try:
            if browser and browser.is_connected():
                await browser.close()
        except Exception as e:
            self.logger.warning(f"Error closing browser: {e}")
        try:
            if pw:
                await pw.stop()
        except Exception as e:
            self.logger.warning(f"Error stopping Playwright: {e}")

        if browser or pw:
            self.logger.debug("Browser instance closed and cleaned up")

    @asynccontextmanager
    async def new_page(self) -> AsyncIterator[Page]:
        """Yield a page in its own browser context; both are closed afterwards."""
        if self.browser is None:
            raise SandboxUnavailableError("Browser sandbox is not running")
        async with isolated_page(self.browser) as page:
            yield page


@asynccontextmanager
async def isolated_page(browser: Browser) -> AsyncIterator[Page]:
    """Open a page in a fresh context of ``browser`` and tear both down on exit."""
    context = await browser.new_context()
    try:
        page = await context.new_page()
        try:
            yield page
        finally:
            if not page.is_closed():
                await page.close()
    finally:
        await context.close()
