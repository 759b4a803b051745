"""Pytest configuration and shared fixtures."""

import asyncio
import io
import random
from pathlib import Path
from typing import Any, Callable, Optional

import pytest
from PIL import Image, ImageDraw

from visual_qa.devices.catalog import DEFAULT_CATALOG
from visual_qa.devices.matrix import DeviceMatrix
from visual_qa.driver.dom_accessor import (
    DOCUMENT_METRICS_SCRIPT,
    ELEMENT_SNAPSHOT_SCRIPT,
    PERFORMANCE_SCRIPT,
)
from visual_qa.driver.page_driver import PageDriver, PageSession
from visual_qa.errors import NavigationError
from visual_qa.models.check_result import RuntimeMessage
from visual_qa.models.config import FrameworkConfig
from visual_qa.models.devices import DeviceCatalog, DeviceProfile, Viewport


# ============================================================================
# DOM snapshot helpers
# ============================================================================


def el(tag: str, selector: str, x: float = 0, y: float = 0, width: float = 100,
       height: float = 20, **extra: Any) -> dict:
    """Element snapshot in the camelCase shape the accessor script returns."""
    snapshot = {
        "tag": tag,
        "selector": selector,
        "rect": {"x": x, "y": y, "width": width, "height": height},
        "visible": True,
        "domPath": extra.pop("domPath", []),
    }
    snapshot.update(extra)
    return snapshot


def metrics(scroll_width: int = 375, client_width: int = 375) -> dict:
    return {"scrollWidth": scroll_width, "clientWidth": client_width,
            "scrollHeight": 1000, "clientHeight": 667}


def timings(deprecations: Optional[list[str]] = None) -> dict:
    return {"domContentLoaded": 412.5, "loadComplete": 980.2, "firstPaint": 120.0,
            "firstContentfulPaint": 135.4, "transferSize": 20480, "encodedBodySize": 18000,
            "decodedBodySize": 54000, "deprecations": deprecations or []}


class FakeDom:
    """Canned DOM: document metrics, load timings and element snapshots keyed by selector."""

    def __init__(self, document: Optional[dict] = None,
                 elements: Optional[dict[str, list[dict]]] = None,
                 failing: tuple[str, ...] = (),
                 performance: Optional[dict] = None):
        self.document = document or metrics()
        self.elements = elements or {}
        self.failing = set(failing)  # selectors, "metrics" or "performance" whose evaluation raises
        self.performance = performance or timings()

    def evaluate(self, script: str, arg: Any) -> Any:
        if script == DOCUMENT_METRICS_SCRIPT:
            if "metrics" in self.failing:
                raise RuntimeError("Execution context was destroyed")
            return self.document
        if script == PERFORMANCE_SCRIPT:
            if "performance" in self.failing:
                raise RuntimeError("performance is not defined")
            return self.performance
        if script == ELEMENT_SNAPSHOT_SCRIPT:
            selector = arg["selector"]
            if selector in self.failing:
                raise RuntimeError(f"Evaluation failed for {selector}")
            return self.elements.get(selector, [])
        raise AssertionError(f"Unexpected script: {script[:40]}")


# ============================================================================
# Raster helpers
# ============================================================================


def make_image(width: int = 100, height: int = 80, color=(255, 255, 255),
               box: Optional[tuple[int, int, int, int]] = None,
               box_color=(0, 0, 0)) -> Image.Image:
    img = Image.new("RGB", (width, height), color)
    if box:
        ImageDraw.Draw(img).rectangle(box, fill=box_color)
    return img


def make_png(width: int = 100, height: int = 80, color=(255, 255, 255),
             box: Optional[tuple[int, int, int, int]] = None,
             box_color=(0, 0, 0)) -> bytes:
    buf = io.BytesIO()
    make_image(width, height, color, box, box_color).save(buf, format="PNG")
    return buf.getvalue()


def make_page_png(width: int = 100, height: int = 80,
                  box: Optional[tuple[int, int, int, int]] = None,
                  box_color=(0, 0, 0), seed: int = 7) -> bytes:
    """Seeded noise raster: compresses poorly, so it passes the blank-capture check."""
    rng = random.Random(seed)
    img = Image.frombytes("RGB", (width, height), bytes(rng.randrange(256) for _ in range(width * height * 3)))
    if box:
        ImageDraw.Draw(img).rectangle(box, fill=box_color)
    buf = io.BytesIO()
    img.save(buf, format="PNG")
    return buf.getvalue()


def save_png(path: Path, **kwargs: Any) -> Path:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_bytes(make_png(**kwargs))
    return path


# ============================================================================
# Fake page driver
# ============================================================================


class FakeSession(PageSession):
    """In-memory session that records calls into a shared event log."""

    def __init__(self, label: str, dom: FakeDom, events: list, status: Optional[int] = 200,
                 title: str = "Test Page", png: Optional[bytes] = None,
                 navigate_error: Optional[Exception] = None,
                 console_messages: Optional[list[RuntimeMessage]] = None,
                 wait_seconds: float = 0.0,
                 on_dispose: Optional[Callable[[], None]] = None):
        super().__init__(label)
        self.dom = dom
        self.events = events
        self.status = status
        self.page_title = title
        self.png = png if png is not None else make_page_png()
        self.navigate_error = navigate_error
        self.wait_seconds = wait_seconds
        self.on_dispose = on_dispose
        self.console_messages.extend(console_messages or [])

    async def _navigate(self, url: str, timeout_ms: int) -> Optional[int]:
        self.events.append(("navigate", self.label, url))
        if self.navigate_error:
            raise self.navigate_error
        return self.status

    async def _wait(self, delay_ms: int) -> None:
        self.events.append(("wait", self.label))
        await asyncio.sleep(self.wait_seconds)

    async def _screenshot(self, full_page: bool) -> bytes:
        self.events.append(("screenshot", self.label))
        return self.png

    async def _evaluate(self, script: str, arg: Any) -> Any:
        self.events.append(("evaluate", self.label))
        return self.dom.evaluate(script, arg)

    async def _title(self) -> str:
        return self.page_title

    async def _dispose(self) -> None:
        self.events.append(("dispose", self.label))
        if self.on_dispose:
            self.on_dispose()


class FakeDriver(PageDriver):
    """Hands out FakeSessions and tracks how many are open at once.

    ``configure(device_id, engine, scheme)`` may return a dict of FakeSession
    keyword overrides for that tuple.
    """

    def __init__(self, dom: Optional[FakeDom] = None,
                 configure: Optional[Callable[[str, str, str], dict]] = None,
                 wait_seconds: float = 0.0):
        self.dom = dom or FakeDom()
        self.configure = configure
        self.wait_seconds = wait_seconds
        self.events: list = []
        self.opened: list[tuple[str, str, str]] = []
        self.sessions: list[FakeSession] = []
        self.in_flight = 0
        self.max_in_flight = 0

    async def __aenter__(self) -> "FakeDriver":
        return self

    async def __aexit__(self, *exc_info) -> None:
        return None

    def _closed(self) -> None:
        self.in_flight -= 1

    async def _open(self, device: DeviceProfile, engine: str, color_scheme: str) -> FakeSession:
        label = f"{device.id}/{engine}/{color_scheme}"
        self.opened.append((device.id, engine, color_scheme))
        self.events.append(("open", label))
        overrides = self.configure(device.id, engine, color_scheme) if self.configure else {}
        kwargs = {"dom": self.dom, "wait_seconds": self.wait_seconds,
                  "on_dispose": self._closed, **(overrides or {})}
        session = FakeSession(label, events=self.events, **kwargs)
        self.sessions.append(session)
        self.in_flight += 1
        self.max_in_flight = max(self.max_in_flight, self.in_flight)
        return session


# ============================================================================
# Configuration Fixtures
# ============================================================================


@pytest.fixture
def framework_config(tmp_path: Path) -> FrameworkConfig:
    """Config writing every artifact under tmp_path, without stabilization delay."""
    return FrameworkConfig(
        reports_dir=str(tmp_path / "reports"),
        baselines_dir=str(tmp_path / "baselines"),
        stabilization_delay_ms=0,
        navigation_timeout_ms=5000,
    )


@pytest.fixture
def small_catalog() -> DeviceCatalog:
    return DeviceCatalog(**{
        "device_profiles": {
            "mobile": {
                "phone": {
                    "name": "Test Phone",
                    "viewport": {"width": 375, "height": 667},
                    "is_mobile": True,
                    "has_touch": True,
                },
            },
            "desktop": {
                "desk": {
                    "name": "Test Desktop",
                    "viewport": {"width": 1280, "height": 800},
                },
            },
        },
        "test_profiles": {
            "duo": {"devices": ["phone", "desk"], "browsers": ["chromium"]},
            "phone_only": {"devices": ["phone"], "browsers": ["chromium"]},
            "every": {"devices": "all", "browsers": ["chromium", "webkit"]},
        },
    })


@pytest.fixture
def matrix(small_catalog: DeviceCatalog) -> DeviceMatrix:
    return DeviceMatrix(small_catalog)


@pytest.fixture
def default_matrix() -> DeviceMatrix:
    return DeviceMatrix(DeviceCatalog(**DEFAULT_CATALOG))


@pytest.fixture
def phone() -> DeviceProfile:
    return DeviceProfile(
        id="phone", name="Test Phone", viewport=Viewport(width=375, height=667),
        is_mobile=True, has_touch=True,
    )


@pytest.fixture
def desktop() -> DeviceProfile:
    return DeviceProfile(id="desk", name="Test Desktop", viewport=Viewport(width=1280, height=800))


# ============================================================================
# Driver Fixtures
# ============================================================================


@pytest.fixture
def fake_dom() -> FakeDom:
    return FakeDom()


@pytest.fixture
def fake_driver(fake_dom: FakeDom) -> FakeDriver:
    return FakeDriver(dom=fake_dom)


@pytest.fixture
def fake_session(fake_dom: FakeDom) -> FakeSession:
    return FakeSession("phone/chromium/light", dom=fake_dom, events=[])


@pytest.fixture
def timeout_error() -> NavigationError:
    return NavigationError("Navigation to https://example.com timed out after 5000ms")
