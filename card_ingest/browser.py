"""Headless browser session used for script-rendered catalog pages."""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import Any, AsyncIterator, Optional

from playwright.async_api import Error as PlaywrightError
from playwright.async_api import TimeoutError as PlaywrightTimeoutError
from playwright.async_api import async_playwright

from card_ingest.config import BrowserConfig
from card_ingest.errors import BrowserLaunchError, NavigationError
from card_ingest.throttle import DelayPolicy, RateLimiter

logger = logging.getLogger(__name__)


class BrowserPage:
    """One rendered page, rate-limited on every navigation."""

    def __init__(self, page: Any, policy: DelayPolicy, limiter: RateLimiter) -> None:
        self._page = page
        self._policy = policy
        self._limiter = limiter
        self._url = "about:blank"

    async def goto(self, url: str) -> None:
        await self._limiter.wait()
        logger.debug("GET %s", url)
        self._url = url
        try:
            await self._page.goto(
                url,
                wait_until="domcontentloaded",
                timeout=self._policy.navigation_timeout,
            )
        except PlaywrightTimeoutError as exc:
            raise NavigationError(url, f"timed out after {self._policy.navigation_timeout}ms") from exc
        except PlaywrightError as exc:
            raise NavigationError(url, str(exc)) from exc
        await self._limiter.pause(self._policy.page_load)

    async def content(self) -> str:
        try:
            return await self._page.content()
        except PlaywrightError as exc:
            raise NavigationError(self._url, f"could not read page content: {exc}") from exc

    async def click(self, selector: str) -> bool:
        """Click the first element matching ``selector``. False when absent."""
        element = await self._page.query_selector(selector)
        if element is None:
            return False
        try:
            await element.click()
        except PlaywrightError as exc:
            logger.debug("Click on %s failed: %s", selector, exc)
            return False
        await self._limiter.pause(self._policy.page_load)
        return True

    async def scroll_to_bottom(self) -> None:
        await self._page.evaluate("window.scrollTo(0, document.body.scrollHeight)")

    async def pause(self, ms: int) -> None:
        await self._limiter.pause(ms)


@asynccontextmanager
async def browser_session(
    config: BrowserConfig,
    policy: DelayPolicy,
    limiter: Optional[RateLimiter] = None,
) -> AsyncIterator[BrowserPage]:
    """Launch Chromium and yield a single page; everything is closed on exit."""
    limiter = limiter or RateLimiter(policy.between_pages)
    try:
        playwright = await async_playwright().start()
    except PlaywrightError as exc:
        raise BrowserLaunchError(f"Failed to start Playwright: {exc}") from exc
    browser = None
    try:
        try:
            browser = await playwright.chromium.launch(headless=config.headless)
        except PlaywrightError as exc:
            raise BrowserLaunchError(f"Failed to launch browser: {exc}") from exc
        context_args: dict[str, Any] = {
            "viewport": {"width": config.viewport_width, "height": config.viewport_height},
        }
        if config.user_agent:
            context_args["user_agent"] = config.user_agent
        context = await browser.new_context(**context_args)
        page = await context.new_page()
        logger.info("Browser ready (headless=%s)", config.headless)
        yield BrowserPage(page, policy, limiter)
    finally:
        if browser is not None:
            await browser.close()
        await playwright.stop()
        logger.debug("Browser closed")
