"""Playwright implementation of the page driver."""

from __future__ import annotations

import logging
from typing import Any, Optional

from playwright.async_api import (
    Browser,
    BrowserContext,
    Error as PlaywrightError,
    Page,
    Playwright,
    TimeoutError as PlaywrightTimeoutError,
    async_playwright,
)

from visual_qa.errors import ConfigurationError, NavigationError
from visual_qa.models.check_result import RuntimeMessage
from visual_qa.models.devices import BROWSER_ENGINES, ColorScheme, DeviceProfile

from .page_driver import PageDriver, PageSession

logger = logging.getLogger(__name__)

SUPPORTED_ENGINES = BROWSER_ENGINES


async def launch_browser(playwright: Playwright, engine: str, headless: bool = True) -> Browser:
    """Launch a fresh browser process for the given engine."""
    if engine not in SUPPORTED_ENGINES:
        raise ConfigurationError(
            f"Unsupported browser engine '{engine}' (expected one of {', '.join(SUPPORTED_ENGINES)})"
        )
    browser_type = getattr(playwright, engine)
    return await browser_type.launch(headless=headless)


async def create_device_context(
    browser: Browser,
    device: DeviceProfile,
    color_scheme: ColorScheme = "light",
) -> BrowserContext:
    """Create a browser context emulating the device and color scheme."""
    context_kwargs: dict = {
        "viewport": {"width": device.viewport.width, "height": device.viewport.height},
        "device_scale_factor": device.device_scale_factor,
        "has_touch": device.has_touch,
        "color_scheme": color_scheme,
    }
    # Firefox does not support mobile emulation
    if device.is_mobile and browser.browser_type.name != "firefox":
        context_kwargs["is_mobile"] = True
    if device.user_agent:
        context_kwargs["user_agent"] = device.user_agent
    return await browser.new_context(**context_kwargs)


class PlaywrightSession(PageSession):
    """A page inside its own context and browser process."""

    def __init__(self, browser: Browser, context: BrowserContext, page: Page, label: str = ""):
        super().__init__(label)
        self.browser = browser
        self.context = context
        self.page = page
        self._attach_listeners()

    def _attach_listeners(self) -> None:
        """Record console errors, uncaught exceptions and failed network traffic."""
        self.page.on("console", self._on_console)
        self.page.on("pageerror", lambda err: self.console_messages.append(
            RuntimeMessage(kind="pageerror", text=str(err))
        ))
        self.page.on("requestfailed", lambda req: self.console_messages.append(RuntimeMessage(
            kind="requestfailed",
            text=req.failure or "Unknown error",
            url=req.url,
            extra={"method": req.method, "resource_type": req.resource_type},
        )))
        self.page.on("response", self._on_response)

    def _on_console(self, msg) -> None:
        if msg.type in ("error", "warning"):
            self.console_messages.append(
                RuntimeMessage(kind="console", level=msg.type, text=msg.text)
            )

    def _on_response(self, resp) -> None:
        if resp.status >= 400:
            self.console_messages.append(RuntimeMessage(
                kind="response",
                text=resp.status_text,
                url=resp.url,
                status=resp.status,
                extra={"resource_type": resp.request.resource_type},
            ))

    async def _navigate(self, url: str, timeout_ms: int) -> Optional[int]:
        try:
            response = await self.page.goto(url, wait_until="networkidle", timeout=timeout_ms)
        except PlaywrightTimeoutError as e:
            raise NavigationError(f"Navigation to {url} timed out after {timeout_ms}ms") from e
        except PlaywrightError as e:
            raise NavigationError(f"Navigation to {url} failed: {e.message}") from e
        return response.status if response else None

    async def _wait(self, delay_ms: int) -> None:
        await self.page.wait_for_timeout(delay_ms)

    async def _screenshot(self, full_page: bool) -> bytes:
        return await self.page.screenshot(full_page=full_page, type="png")

    async def _evaluate(self, script: str, arg: Any) -> Any:
        return await self.page.evaluate(script, arg)

    async def _title(self) -> str:
        return await self.page.title()

    async def _dispose(self) -> None:
        try:
            await self.context.close()
        finally:
            await self.browser.close()


class PlaywrightDriver(PageDriver):
    """Launches a headless browser per session.

    Usage::

        async with PlaywrightDriver() as driver:
            async with driver.session(device, "chromium", "dark") as session:
                ...
    """

    def __init__(self, headless: bool = True):
        self.headless = headless
        self._manager = None
        self._playwright: Playwright | None = None

    async def __aenter__(self) -> "PlaywrightDriver":
        self._manager = async_playwright()
        self._playwright = await self._manager.__aenter__()
        return self

    async def __aexit__(self, *exc_info) -> None:
        if self._manager is not None:
            await self._manager.__aexit__(*exc_info)
        self._manager = None
        self._playwright = None

    async def _open(
        self, device: DeviceProfile, engine: str, color_scheme: ColorScheme,
    ) -> PlaywrightSession:
        if self._playwright is None:
            raise RuntimeError("PlaywrightDriver must be used as an async context manager")

        label = f"{device.id}/{engine}/{color_scheme}"
        logger.debug("Launching %s for %s", engine, label)
        browser = await launch_browser(self._playwright, engine, headless=self.headless)
        try:
            context = await create_device_context(browser, device, color_scheme)
            page = await context.new_page()
        except Exception:
            await browser.close()
            raise
        return PlaywrightSession(browser, context, page, label=label)
