"""Headless browser drivers for snapshot capture.

A driver is an async context manager exposing ``capture(url, output, profile)``.
One attempt either writes the PNG or raises CaptureAttemptError; retrying is
the caller's job. Failing to start the browser at all raises CaptureError.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Dict, Optional, Protocol

from playwright.async_api import Browser, BrowserContext, Playwright, async_playwright
from playwright.async_api import Error as PlaywrightError

from .. import settings
from ..errors import CaptureAttemptError, CaptureError
from ..layout import DeviceProfile

logger = logging.getLogger("uiflow.capture.driver")


class CaptureDriver(Protocol):
    async def __aenter__(self) -> "CaptureDriver": ...

    async def __aexit__(self, exc_type, exc, tb) -> None: ...

    async def capture(self, url: str, output: Path, profile: DeviceProfile) -> None: ...


class PlaywrightDriver:
    """Playwright-backed driver: one browser, one context per device profile."""

    def __init__(
        self,
        browser: Optional[str] = None,
        timeout_ms: Optional[int] = None,
        settle_delay: Optional[float] = None,
    ):
        self.browser_name = browser or settings.CAPTURE_BROWSER
        self.timeout_ms = timeout_ms if timeout_ms is not None else settings.CAPTURE_NAV_TIMEOUT_MS
        self.settle_delay = settle_delay if settle_delay is not None else settings.CAPTURE_SETTLE_DELAY
        self._pw: Optional[Playwright] = None
        self._browser: Optional[Browser] = None
        self._contexts: Dict[str, BrowserContext] = {}

    async def __aenter__(self) -> "PlaywrightDriver":
        try:
            self._pw = await async_playwright().start()
            launcher = getattr(self._pw, self.browser_name)
            self._browser = await launcher.launch(headless=True)
        except PlaywrightError as e:
            await self._shutdown()
            raise CaptureError(
                f"Cannot start {self.browser_name}: {e}. "
                f"Run: playwright install {self.browser_name}"
            ) from e
        logger.info(f"Browser started: {self.browser_name} (headless)")
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self._shutdown()

    async def _shutdown(self) -> None:
        for ctx in self._contexts.values():
            await ctx.close()
        self._contexts = {}
        if self._browser is not None:
            await self._browser.close()
            self._browser = None
        if self._pw is not None:
            await self._pw.stop()
            self._pw = None

    async def _context(self, profile: DeviceProfile) -> BrowserContext:
        ctx = self._contexts.get(profile.name)
        if ctx is None:
            ctx = await self._browser.new_context(
                viewport={"width": profile.width, "height": profile.height},
                device_scale_factor=1,
            )
            self._contexts[profile.name] = ctx
        return ctx

    async def capture(self, url: str, output: Path, profile: DeviceProfile) -> None:
        page = None
        try:
            ctx = await self._context(profile)
            page = await ctx.new_page()
            await page.goto(url, wait_until="networkidle", timeout=self.timeout_ms)
            # Fonts and entry animations
            await page.wait_for_timeout(int(self.settle_delay * 1000))
            await page.screenshot(path=str(output), full_page=False)
        except PlaywrightError as e:
            raise CaptureAttemptError(str(e).splitlines()[0] if str(e) else e.__class__.__name__) from e
        finally:
            if page is not None:
                await page.close()
