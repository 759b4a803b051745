"""Issue data structures produced by the detector and the AI classifier."""

from __future__ import annotations

from typing import Literal, Optional

from pydantic import Field

from .base import CamelModel
from .devices import ColorScheme, Viewport

IssueType = Literal["layout", "accessibility", "typography", "visual", "javascript", "network"]
Severity = Literal["critical", "warning", "info"]

SEVERITY_ORDER: dict[str, int] = {"critical": 0, "warning": 1, "info": 2}


class ElementRef(CamelModel):
    tag: str
    selector: str
    text: str = ""


class FixSuggestion(CamelModel):
    action: str  # css_change, html_change, review
    target: str
    suggestion: str
    css: Optional[str] = None
    html: Optional[str] = None


class Issue(CamelModel):
    id: str
    type: IssueType
    severity: Severity
    title: str
    description: str = ""
    device: str  # label of the originating device
    viewport: Optional[Viewport] = None
    element: Optional[ElementRef] = None
    fix: Optional[FixSuggestion] = None
    wcag: Optional[str] = None
    blocks_release: bool = False
    color_scheme: ColorScheme = "light"
    source: str = "detector"  # detector, runtime, diff, ai
    affected_devices: list[str] = Field(default_factory=list)

    @property
    def dedup_key(self) -> tuple[str, str]:
        """Issues with the same type and target are the same finding."""
        target = self.element.selector if self.element and self.element.selector else self.title
        return (self.type, target)


def make_issue_id(check: str, target: str, device_id: str) -> str:
    """Deterministic id from check name, target selector (or title) and device."""
    return f"{check}-{target}-{device_id}"
