"""Pure DOM heuristics over element snapshots.

Each function takes snapshots collected by the DOM accessor plus the
thresholds it needs and returns findings. No browser access happens here.
"""

from __future__ import annotations

import re
from typing import Optional

from visual_qa.models.audit import (
    AuditSummary,
    ClickableElement,
    ClickableFlag,
    DocumentMetrics,
    ElementSnapshot,
)

_RGB_RE = re.compile(r"rgba?\((\d+),\s*(\d+),\s*(\d+)")


# ---------------------------------------------------------------------------
# Color math (WCAG 2.x)
# ---------------------------------------------------------------------------

def parse_rgb(color: str) -> Optional[tuple[int, int, int]]:
    """Parse a computed ``rgb()``/``rgba()`` string into an RGB triple."""
    match = _RGB_RE.search(color or "")
    if not match:
        return None
    return int(match.group(1)), int(match.group(2)), int(match.group(3))


def _linearize(channel: int) -> float:
    c = channel / 255
    return c / 12.92 if c <= 0.03928 else ((c + 0.055) / 1.055) ** 2.4


def relative_luminance(rgb: tuple[int, int, int]) -> float:
    r, g, b = (_linearize(c) for c in rgb)
    return 0.2126 * r + 0.7152 * g + 0.0722 * b


def contrast_ratio(fg: tuple[int, int, int], bg: tuple[int, int, int]) -> float:
    l1 = relative_luminance(fg)
    l2 = relative_luminance(bg)
    lighter, darker = max(l1, l2), min(l1, l2)
    return (lighter + 0.05) / (darker + 0.05)


def is_low_contrast(ratio: float, minimum: float = 4.5) -> bool:
    """Ratios strictly between 1 and the minimum fail; the minimum itself passes."""
    return 1 < ratio < minimum


# ---------------------------------------------------------------------------
# Layout
# ---------------------------------------------------------------------------

def has_horizontal_scroll(metrics: DocumentMetrics) -> bool:
    return metrics.scroll_width > metrics.client_width


def first_overflowing_element(
    elements: list[ElementSnapshot], viewport_width: float, tolerance: float = 5,
) -> Optional[ElementSnapshot]:
    """First element, in document order, whose right edge passes the viewport."""
    for el in elements:
        if el.rect.right > viewport_width + tolerance:
            return el
    return None


def oversized_elements(
    elements: list[ElementSnapshot], viewport_width: float,
) -> list[ElementSnapshot]:
    return [el for el in elements if el.rect.width > viewport_width]


# ---------------------------------------------------------------------------
# Accessibility and typography
# ---------------------------------------------------------------------------

def small_touch_targets(
    elements: list[ElementSnapshot], min_size: float, limit: int = 10,
) -> list[ElementSnapshot]:
    found = []
    for el in elements:
        size = min(el.rect.width, el.rect.height)
        if 0 < size < min_size:
            found.append(el)
    return found[:limit]


def low_contrast_elements(
    elements: list[ElementSnapshot], min_ratio: float = 4.5, limit: int = 5,
) -> list[tuple[ElementSnapshot, float]]:
    found = []
    for el in elements:
        fg = parse_rgb(el.color)
        bg = parse_rgb(el.background_color)
        # A zero-sum background stands in for "transparent" and is skipped.
        if fg is None or bg is None or sum(bg) == 0:
            continue
        ratio = contrast_ratio(fg, bg)
        if is_low_contrast(ratio, min_ratio):
            found.append((el, ratio))
    return found[:limit]


def small_text_elements(
    elements: list[ElementSnapshot], min_size: float, limit: int = 5,
) -> list[ElementSnapshot]:
    found = [el for el in elements if el.has_text and 0 < el.font_size < min_size]
    return found[:limit]


def images_missing_alt(elements: list[ElementSnapshot], limit: int = 5) -> list[ElementSnapshot]:
    """Images with no alt attribute that are not marked decorative."""
    found = []
    for img in elements:
        decorative = img.role == "presentation" or img.alt == ""
        if img.alt is None and not decorative:
            found.append(img)
    return found[:limit]


# ---------------------------------------------------------------------------
# Clickable audit
# ---------------------------------------------------------------------------

def audit_clickables(
    elements: list[ElementSnapshot],
    *,
    min_touch_px: float,
    is_touch: bool,
    viewport_width: float,
    edge_tolerance: float = 10,
) -> tuple[list[ClickableElement], list[ClickableElement], AuditSummary]:
    """Classify every clickable element as valid or flagged.

    Returns ``(valid, flagged, summary)``. The overlap test is pairwise over
    visible elements and skips ancestor/descendant pairs.
    """
    summary = AuditSummary()
    audited: list[ClickableElement] = []

    for index, el in enumerate(elements):
        min_dimension = min(el.rect.width, el.rect.height)
        item = ClickableElement(
            index=index,
            tag=el.tag,
            type=el.type,
            selector=el.selector,
            name=el.name[:50],
            rect=el.rect,
            visible=el.visible,
            size=round(min_dimension),
        )

        if is_touch and el.visible and 0 < min_dimension < min_touch_px:
            item.flags.append(ClickableFlag(
                type="too_small",
                message=f"Size {round(min_dimension)}px < {min_touch_px}px",
                severity="warning",
            ))
            summary.too_small += 1

        if el.visible and not el.name and el.tag != "input":
            item.flags.append(ClickableFlag(
                type="no_label", message="No text or aria-label", severity="warning",
            ))
            summary.no_label += 1

        if not el.visible and el.rect.width == 0 and el.rect.height == 0:
            item.flags.append(ClickableFlag(
                type="hidden", message="Element is hidden (zero size)", severity="info",
            ))
            summary.hidden += 1

        if el.visible and (
            el.rect.right > viewport_width + edge_tolerance or el.rect.left < -edge_tolerance
        ):
            item.flags.append(ClickableFlag(
                type="outside_viewport",
                message=f"Extends outside the viewport (right: {round(el.rect.right)}px)",
                severity="critical",
            ))
            summary.outside_viewport += 1

        audited.append(item)

    visible = [i for i, el in enumerate(elements) if el.visible and el.rect.width > 0]
    for pos, i in enumerate(visible):
        for j in visible[pos + 1:]:
            a, b = elements[i], elements[j]
            if a.contains(b) or b.contains(a):
                continue
            if a.rect.intersects(b.rect):
                audited[i].overlaps_with.append(b.selector)
                audited[j].overlaps_with.append(a.selector)

    for item in audited:
        if item.overlaps_with:
            item.flags.append(ClickableFlag(
                type="overlapping",
                message=f"Overlaps {', '.join(item.overlaps_with[:3])}",
                severity="warning",
            ))
            summary.overlapping += 1

    valid = [item for item in audited if not item.flags and item.visible]
    flagged = [item for item in audited if item.flags]
    return valid, flagged, summary
