"""Check result data structures produced by the orchestrator."""

from __future__ import annotations

from typing import Annotated, Any, Optional, Union

from pydantic import Field

from .base import CamelModel
from .devices import ColorScheme, Viewport
from .diff_result import DiffResult, DiffVerdict, SizeMismatch
from .issue import Issue


class PerformanceMetrics(CamelModel):
    """Navigation and paint timings (ms) and transfer sizes (bytes) of one page load."""
    dom_content_loaded: Optional[float] = None
    load_complete: Optional[float] = None
    first_paint: Optional[float] = None
    first_contentful_paint: Optional[float] = None
    transfer_size: Optional[int] = None
    encoded_body_size: Optional[int] = None
    decoded_body_size: Optional[int] = None
    deprecations: list[str] = Field(default_factory=list)


class CheckRecord(CamelModel):
    """Outcome of one (device, browser, color scheme) tuple."""
    device: str  # display label, "(Dark)" suffixed for the dark scheme
    device_id: str
    browser: str
    color_scheme: ColorScheme = "light"
    viewport: Optional[Viewport] = None
    is_mobile: bool = False
    screenshot_ref: Optional[str] = None  # relative to the report directory
    title: Optional[str] = None
    status: str = "passed"  # passed, warning, failed, error
    issue_count: int = 0
    error: Optional[str] = None
    comparison: Optional[
        Annotated[Union[DiffResult, SizeMismatch], Field(discriminator="outcome")]
    ] = None
    comparison_verdict: Optional[DiffVerdict] = None
    side_by_side_ref: Optional[str] = None  # relative to the report directory
    performance: Optional[PerformanceMetrics] = None
    classifier_error: Optional[str] = None


class CheckSummary(CamelModel):
    total: int = 0
    passed: int = 0
    failed: int = 0
    warnings: int = 0
    blocks_release: bool = False


class ActionSummary(CamelModel):
    total_issues: int = 0
    blocks_release: bool = False
    by_severity: dict[str, int] = Field(default_factory=dict)
    by_type: dict[str, int] = Field(default_factory=dict)
    action_required: str = ""


class CheckResult(CamelModel):
    url: str
    profile: str
    timestamp: str
    status: str = "passed"  # passed, warning, failed, blocked
    checks: list[CheckRecord] = Field(default_factory=list)
    issues: list[Issue] = Field(default_factory=list)
    summary: CheckSummary = Field(default_factory=CheckSummary)
    action_summary: Optional[ActionSummary] = None


class BatchSummary(CamelModel):
    total_checks: int = 0
    passed: int = 0
    failed: int = 0
    warnings: int = 0
    total_issues: int = 0
    blocks_release: bool = False


class BatchEntry(CamelModel):
    url: str
    status: str  # success, error
    result: Optional[CheckResult] = None
    error: Optional[str] = None


class BatchResult(CamelModel):
    total_urls: int = 0
    successful: int = 0
    failed: int = 0
    profile: str
    check_dark_mode: bool = False
    timestamp: str
    summary: BatchSummary = Field(default_factory=BatchSummary)
    pages: list[BatchEntry] = Field(default_factory=list)


class RuntimeMessage(CamelModel):
    """A console/page/network event recorded while a session was open."""
    kind: str  # console, pageerror, requestfailed, response
    text: str
    level: Optional[str] = None  # console message type
    url: Optional[str] = None
    status: Optional[int] = None
    extra: dict[str, Any] = Field(default_factory=dict)
