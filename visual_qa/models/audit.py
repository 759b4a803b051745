"""Clickable element audit data structures."""

from __future__ import annotations

from typing import Optional

from pydantic import Field

from .base import CamelModel


class Rect(CamelModel):
    x: float = 0
    y: float = 0
    width: float = 0
    height: float = 0

    @property
    def left(self) -> float:
        return self.x

    @property
    def top(self) -> float:
        return self.y

    @property
    def right(self) -> float:
        return self.x + self.width

    @property
    def bottom(self) -> float:
        return self.y + self.height

    def intersects(self, other: "Rect") -> bool:
        """True when the two rectangles share a positive-area region."""
        return (
            self.left < other.right
            and other.left < self.right
            and self.top < other.bottom
            and other.top < self.bottom
        )


class ElementSnapshot(CamelModel):
    """Structured view of one DOM element, as returned by the DOM accessor."""
    tag: str
    selector: str
    type: Optional[str] = None
    text: str = ""
    has_text: bool = False
    rect: Rect = Field(default_factory=Rect)
    visible: bool = True
    name: str = ""  # accessible name
    alt: Optional[str] = None  # None when the attribute is absent
    role: Optional[str] = None
    src: str = ""
    color: str = ""
    background_color: str = ""
    font_size: float = 0.0
    dom_path: list[int] = Field(default_factory=list)

    def contains(self, other: "ElementSnapshot") -> bool:
        """Ancestor test based on the child-index path from the root."""
        return (
            len(self.dom_path) < len(other.dom_path)
            and other.dom_path[: len(self.dom_path)] == self.dom_path
        )


class DocumentMetrics(CamelModel):
    scroll_width: int
    client_width: int
    scroll_height: int = 0
    client_height: int = 0


class ClickableFlag(CamelModel):
    type: str  # too_small, no_label, hidden, outside_viewport, overlapping
    message: str
    severity: str


class ClickableElement(CamelModel):
    index: int
    tag: str
    type: Optional[str] = None
    selector: str
    name: str = ""
    rect: Rect
    visible: bool
    size: int
    flags: list[ClickableFlag] = Field(default_factory=list)
    overlaps_with: list[str] = Field(default_factory=list)


class AuditSummary(CamelModel):
    too_small: int = 0
    no_label: int = 0
    hidden: int = 0
    overlapping: int = 0
    outside_viewport: int = 0


class ClickableAudit(CamelModel):
    device: str
    total: int = 0
    valid: list[ClickableElement] = Field(default_factory=list)
    flagged: list[ClickableElement] = Field(default_factory=list)
    summary: AuditSummary = Field(default_factory=AuditSummary)
