from __future__ import annotations

from typing import Any, Optional

from playwright.async_api import Error as PlaywrightError
from playwright.async_api import TimeoutError as PlaywrightTimeoutError
from playwright.async_api import async_playwright

from runtime.config_models import BrowserConfig
from runtime.errors import NavigationTimeoutError


class BrowserSession:
    """One browser page per task, shared by the agent (read/write) and the screenshot collector (read)."""

    def __init__(
        self,
        page: Any,
        browser: Any = None,
        playwright: Any = None,
        cdp_url: Optional[str] = None,
        debug_url: Optional[str] = None,
        session_url: Optional[str] = None,
    ) -> None:
        self.page = page
        self._browser = browser
        self._playwright = playwright
        self.cdp_url = cdp_url
        self.debug_url = debug_url
        self.session_url = session_url
        self._closed = False

    @property
    def current_url(self) -> Optional[str]:
        return getattr(self.page, "url", None)

    async def goto(self, url: str, timeout_ms: int) -> None:
        """Navigate to the task start page; a timeout is reported distinctly."""

        try:
            await self.page.goto(url, timeout=timeout_ms)
        except PlaywrightTimeoutError as exc:
            raise NavigationTimeoutError(f"Navigation to {url} exceeded {timeout_ms}ms") from exc

    async def title(self) -> str:
        try:
            return await self.page.title()
        except PlaywrightError:
            return ""

    async def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        try:
            if self._browser is not None:
                await self._browser.close()
        finally:
            if self._playwright is not None:
                await self._playwright.stop()


async def open_browser_session(config: BrowserConfig) -> BrowserSession:
    """Launch local Chromium or attach to a remote browser over CDP."""

    playwright = await async_playwright().start()
    try:
        if config.cdp_url:
            browser = await playwright.chromium.connect_over_cdp(config.cdp_url)
            context = browser.contexts[0] if browser.contexts else await browser.new_context()
            page = context.pages[0] if context.pages else await context.new_page()
            await page.set_viewport_size({"width": config.viewport_width, "height": config.viewport_height})
        else:
            browser = await playwright.chromium.launch(headless=config.headless)
            context = await browser.new_context(
                viewport={"width": config.viewport_width, "height": config.viewport_height}
            )
            page = await context.new_page()
        context.set_default_navigation_timeout(config.default_navigation_timeout_ms)
    except BaseException:
        await playwright.stop()
        raise

    return BrowserSession(
        page=page,
        browser=browser,
        playwright=playwright,
        cdp_url=config.cdp_url,
        debug_url=config.debug_url,
        session_url=config.session_url,
    )
