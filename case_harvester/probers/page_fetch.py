import asyncio
from typing import Optional

from playwright.async_api import Error as PlaywrightError
from playwright.async_api import async_playwright

from case_harvester.extractors.html_text import HtmlTextExtractor
from case_harvester.utils.logger import get_logger

logger = get_logger(__name__)

DEFAULT_USER_AGENT = (
    "Mozilla/5.0 (Macintosh; Intel Mac OS X 10_15_7) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36"
)


class PageFetcher:
    """
    Headless Chromium page text for JavaScript-rendered articles.

    fetch_text(url) returns the normalized main text, or "" when the page
    cannot be loaded.
    """

    def __init__(self, settings=None, extractor: Optional[HtmlTextExtractor] = None):
        settings = settings or {}
        self.timeout_ms = int(float(settings.get("browser_timeout", 45)) * 1000)
        self.settle_ms = int(settings.get("settle_ms", 3000))
        self.user_agent = settings.get("browser_user_agent", DEFAULT_USER_AGENT)
        self.extractor = extractor or HtmlTextExtractor()

    async def fetch_html(self, url: str) -> str:
        async with async_playwright() as p:
            browser = await p.chromium.launch(headless=True, args=["--disable-dev-shm-usage", "--no-sandbox"])
            context = await browser.new_context(user_agent=self.user_agent)
            page = await context.new_page()
            try:
                logger.info(f"Rendering URL: {url}")
                await page.goto(url, timeout=self.timeout_ms, wait_until="domcontentloaded")
                await page.wait_for_timeout(self.settle_ms)
                # lazy-loaded sections
                await page.evaluate("window.scrollTo(0, document.body.scrollHeight)")
                await page.wait_for_timeout(1000)
                return await page.content()
            except PlaywrightError as e:
                logger.error(f"Error rendering {url}: {e}")
                return ""
            finally:
                await context.close()
                await browser.close()

    async def fetch_text(self, url: str) -> str:
        html = await self.fetch_html(url)
        return self.extractor.extract(html, url)["text"] if html else ""

    def fetch_text_sync(self, url: str) -> str:
        return asyncio.run(self.fetch_text(url))
