import asyncio
from typing import Optional
from playwright.async_api import Browser, Playwright, async_playwright
from cv_optimizer.core.logging import get_logger

logger = get_logger(__name__)


class PdfRenderer:
    """Renders HTML documents to PDF with one shared headless Chromium.

    The browser is launched on first use and reused; each document gets its
    own browser context, which is always closed afterwards. Call ``close`` at
    shutdown.
    """

    def __init__(self, page_format: str = "A4", timeout_ms: int = 30000):
        self.page_format = page_format
        self.timeout_ms = timeout_ms
        self._playwright: Optional[Playwright] = None
        self._browser: Optional[Browser] = None
        self._launch_lock = asyncio.Lock()

    async def _get_browser(self) -> Browser:
        async with self._launch_lock:
            if self._browser is None or not self._browser.is_connected():
                if self._playwright is None:
                    self._playwright = await async_playwright().start()
                logger.info("Launching headless Chromium for PDF rendering")
                self._browser = await self._playwright.chromium.launch(headless=True)
            return self._browser

    async def render(self, html: str) -> bytes:
        browser = await self._get_browser()
        context = await browser.new_context()
        try:
            page = await context.new_page()
            page.set_default_timeout(self.timeout_ms)
            await page.set_content(html, wait_until="networkidle")
            pdf = await page.pdf(
                format=self.page_format,
                print_background=True,
                margin={"top": "0mm", "right": "0mm", "bottom": "0mm", "left": "0mm"},
            )
        finally:
            await context.close()
        logger.info(f"PDF generated, size: {len(pdf)} bytes")
        return pdf

    async def close(self) -> None:
        async with self._launch_lock:
            if self._browser is not None:
                try:
                    await self._browser.close()
                finally:
                    self._browser = None
            if self._playwright is not None:
                try:
                    await self._playwright.stop()
                finally:
                    self._playwright = None
