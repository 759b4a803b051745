"""Page driver interface. The only way the core talks to a browser.

A ``PageDriver`` hands out ``PageSession`` objects through an async context
manager. The session is live only inside the ``async with`` block: on exit
(normal or exceptional) it is disposed, and any further DOM call raises
``SessionClosedError``. Detection therefore has to run inside the block.
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from contextlib import asynccontextmanager
from typing import Any, AsyncIterator, Optional

from visual_qa.errors import SessionClosedError
from visual_qa.models.check_result import RuntimeMessage
from visual_qa.models.devices import ColorScheme, DeviceProfile

logger = logging.getLogger(__name__)


class PageSession(ABC):
    """An isolated, open browsing context for one check tuple."""

    def __init__(self, label: str = ""):
        self.label = label
        self.console_messages: list[RuntimeMessage] = []
        self._closed = False

    @property
    def closed(self) -> bool:
        return self._closed

    def _ensure_open(self, operation: str) -> None:
        if self._closed:
            name = f"session {self.label}" if self.label else "session"
            raise SessionClosedError(f"Cannot {operation}: {name} has been disposed")

    async def navigate(self, url: str, timeout_ms: int) -> Optional[int]:
        """Load the URL; return the HTTP status when the driver knows it."""
        self._ensure_open("navigate")
        return await self._navigate(url, timeout_ms)

    async def wait_for_stable(self, delay_ms: int) -> None:
        """Fixed grace delay for animations and lazy-loaded content."""
        self._ensure_open("wait")
        await self._wait(delay_ms)

    async def screenshot(self, full_page: bool = True) -> bytes:
        self._ensure_open("take screenshot")
        return await self._screenshot(full_page)

    async def evaluate(self, script: str, arg: Any = None) -> Any:
        self._ensure_open("evaluate script")
        return await self._evaluate(script, arg)

    async def title(self) -> str:
        self._ensure_open("read title")
        return await self._title()

    async def dispose(self) -> None:
        """Release the context (and its browser). Safe to call twice."""
        if self._closed:
            return
        self._closed = True
        await self._dispose()

    @abstractmethod
    async def _navigate(self, url: str, timeout_ms: int) -> Optional[int]: ...

    @abstractmethod
    async def _wait(self, delay_ms: int) -> None: ...

    @abstractmethod
    async def _screenshot(self, full_page: bool) -> bytes: ...

    @abstractmethod
    async def _evaluate(self, script: str, arg: Any) -> Any: ...

    @abstractmethod
    async def _title(self) -> str: ...

    @abstractmethod
    async def _dispose(self) -> None: ...


class PageDriver(ABC):
    """Factory of page sessions, one per check tuple."""

    @abstractmethod
    async def _open(
        self, device: DeviceProfile, engine: str, color_scheme: ColorScheme,
    ) -> PageSession: ...

    @asynccontextmanager
    async def session(
        self,
        device: DeviceProfile,
        engine: str = "chromium",
        color_scheme: ColorScheme = "light",
    ) -> AsyncIterator[PageSession]:
        """Open a session for the tuple and guarantee its disposal."""
        page_session = await self._open(device, engine, color_scheme)
        try:
            yield page_session
        finally:
            try:
                await page_session.dispose()
            except Exception as e:
                logger.warning("Failed to dispose session %s: %s", page_session.label, e)
