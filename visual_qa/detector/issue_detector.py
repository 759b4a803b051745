"""Issue detector: runs the DOM heuristic battery against one open page session."""

from __future__ import annotations

import logging
from typing import Awaitable, Callable, Optional

from visual_qa.driver.dom_accessor import DomAccessor
from visual_qa.driver.page_driver import PageSession
from visual_qa.errors import DetectionError
from visual_qa.models.audit import ClickableAudit, ElementSnapshot
from visual_qa.models.check_result import RuntimeMessage
from visual_qa.models.config import QualityStandards
from visual_qa.models.devices import DeviceProfile
from visual_qa.models.issue import (
    SEVERITY_ORDER,
    ElementRef,
    FixSuggestion,
    Issue,
    make_issue_id,
)

from . import heuristics

logger = logging.getLogger(__name__)

ALL_ELEMENTS = "*"
MEDIA_SELECTOR = "img, video, iframe, table, pre, code"
TOUCH_TARGET_SELECTOR = 'a, button, input, select, textarea, [onclick], [role="button"]'
CONTRAST_SELECTOR = "p, span, a, h1, h2, h3, h4, h5, h6, li, td, th, label"
FONT_SELECTOR = "p, span, a, li, td, th, label, div"
IMAGE_SELECTOR = "img"
SECURITY_MARKERS = ("security", "mixed content", "insecure")
CLICKABLE_SELECTOR = (
    'a, button, input, select, textarea, [onclick], [role="button"], '
    '[role="link"], [role="menuitem"], [role="tab"], [tabindex]:not([tabindex="-1"]), '
    "label[for], summary"
)


def _ref(el: ElementSnapshot) -> ElementRef:
    return ElementRef(tag=el.tag, selector=el.selector, text=el.text)


def prioritize_issues(issues: list[Issue]) -> list[Issue]:
    """Severity first, then accessibility ahead of other types. Stable otherwise."""
    return sorted(
        issues,
        key=lambda i: (SEVERITY_ORDER[i.severity], 0 if i.type == "accessibility" else 1),
    )


def detect_runtime_issues(
    messages: list[RuntimeMessage], device: DeviceProfile, limit: int = 10,
) -> list[Issue]:
    """Turn console and network diagnostics captured by the driver into issues."""
    issues: list[Issue] = []
    for msg in messages:
        if len(issues) >= limit:
            break

        if msg.kind == "pageerror":
            issue_type, severity, title = "javascript", "warning", "Uncaught JavaScript error"
        elif msg.kind == "console" and any(marker in msg.text.lower() for marker in SECURITY_MARKERS):
            issue_type, severity, title = "network", "warning", "Security warning"
        elif msg.kind == "console" and msg.level == "error":
            issue_type, severity, title = "javascript", "info", "Console error"
        elif msg.kind == "requestfailed":
            issue_type, severity, title = "network", "warning", "Request failed"
        elif msg.kind == "response" and msg.status is not None:
            severity = "warning" if msg.status >= 500 else "info"
            issue_type, title = "network", f"HTTP {msg.status} response"
        else:
            continue

        target = msg.url or msg.text[:60]
        issues.append(Issue(
            id=make_issue_id(msg.kind, target, device.id),
            type=issue_type,
            severity=severity,
            title=f"{title}: {target}",
            description=msg.text[:500],
            device=device.name,
            viewport=device.viewport,
            source="runtime",
        ))
    return issues


def detect_deprecation_issues(deprecations: list[str], device: DeviceProfile) -> list[Issue]:
    return [
        Issue(
            id=make_issue_id("deprecation", warning, device.id),
            type="javascript",
            severity="info",
            title=f"Deprecated API in use: {warning}",
            device=device.name,
            viewport=device.viewport,
            source="runtime",
        )
        for warning in deprecations
    ]


def check_blank_screenshot(png: bytes, device: DeviceProfile, min_bytes: int = 1000) -> list[Issue]:
    """Flag a capture so small the page most likely never rendered."""
    if len(png) >= min_bytes:
        return []
    return [Issue(
        id=make_issue_id("blank-screenshot", "page", device.id),
        type="visual",
        severity="critical",
        title=f"Screenshot too small on {device.name}, page may not have loaded",
        description=f"Captured {len(png)} bytes, expected at least {min_bytes}.",
        device=device.name,
        viewport=device.viewport,
        fix=FixSuggestion(
            action="review",
            target="page",
            suggestion="Check that the page renders content and is not blocked by a redirect or error page.",
        ),
        source="detector",
    )]


class IssueDetector:
    """Fixed, ordered battery of best-effort DOM checks.

    Every check reads the page through a ``DomAccessor`` and hands the
    snapshots to a pure function in ``heuristics``. A check that raises is
    logged and contributes no issues; the remaining checks still run.
    """

    def __init__(self, standards: QualityStandards | None = None):
        self.standards = standards or QualityStandards()

    async def detect_issues(
        self,
        session: PageSession,
        device: DeviceProfile,
        metadata: Optional[dict] = None,
    ) -> list[Issue]:
        """Run every check against the still-open session and return sorted issues."""
        accessor = DomAccessor(session)
        checks: list[tuple[str, Callable[[], Awaitable[list[Issue]]]]] = [
            ("horizontal_scroll", lambda: self.check_horizontal_scroll(accessor, device)),
            ("element_overflow", lambda: self.check_element_overflow(accessor, device)),
            ("touch_targets", lambda: self.check_touch_targets(accessor, device)),
            ("contrast", lambda: self.check_contrast(accessor, device)),
            ("font_size", lambda: self.check_font_size(accessor, device)),
            ("image_alt", lambda: self.check_image_alt(accessor, device)),
            ("overlap", lambda: self.check_overlap(accessor, device)),
        ]

        issues: list[Issue] = []
        for name, check in checks:
            issues.extend(await self._run_check(name, check, device))

        logger.debug("Detected %d issues on %s (%s)", len(issues), device.name,
                     (metadata or {}).get("url", session.label))
        return prioritize_issues(issues)

    async def _run_check(
        self,
        name: str,
        check: Callable[[], Awaitable[list[Issue]]],
        device: DeviceProfile,
    ) -> list[Issue]:
        try:
            return await check()
        except Exception as e:
            error = e if isinstance(e, DetectionError) else DetectionError(f"{name}: {e}")
            logger.warning("Check %s failed on %s: %s", name, device.id, error)
            return []

    # ------------------------------------------------------------------
    # Checks
    # ------------------------------------------------------------------

    async def check_horizontal_scroll(self, accessor: DomAccessor, device: DeviceProfile) -> list[Issue]:
        metrics = await accessor.document_metrics()
        if not heuristics.has_horizontal_scroll(metrics):
            return []

        culprit: Optional[ElementSnapshot] = None
        try:
            elements = await accessor.elements(ALL_ELEMENTS, geometry_only=True)
            culprit = heuristics.first_overflowing_element(
                elements, metrics.client_width, self.standards.overflow_tolerance_px,
            )
        except DetectionError:
            raise
        except Exception as e:
            # The scroll itself is still worth reporting without a culprit.
            logger.debug("Could not locate overflowing element on %s: %s", device.id, e)

        target = culprit.selector if culprit else "body"
        if culprit:
            suggestion = (
                f"Element {culprit.selector} extends past the viewport "
                f"({round(culprit.rect.right)}px > {metrics.client_width}px). "
                "Add overflow-x: hidden or reduce its width."
            )
        else:
            suggestion = (
                "Add overflow-x: hidden to body or html, or find the element "
                "with a fixed width larger than the viewport."
            )

        return [Issue(
            id=make_issue_id("horizontal-scroll", "page", device.id),
            type="layout",
            severity="critical",
            title="Horizontal scroll on page",
            description=(
                f"Page scrolls horizontally on {device.name} "
                f"(scrollWidth {metrics.scroll_width}px > clientWidth {metrics.client_width}px)"
            ),
            device=device.name,
            viewport=device.viewport,
            element=_ref(culprit) if culprit else None,
            fix=FixSuggestion(
                action="css_change",
                target=target,
                suggestion=suggestion,
                css=f"{target} {{\n  max-width: 100%;\n  overflow-x: hidden;\n}}",
            ),
            blocks_release=True,
        )]

    async def check_element_overflow(self, accessor: DomAccessor, device: DeviceProfile) -> list[Issue]:
        metrics = await accessor.document_metrics()
        elements = await accessor.elements(MEDIA_SELECTOR, geometry_only=True)

        issues = []
        for el in heuristics.oversized_elements(elements, metrics.client_width):
            issues.append(Issue(
                id=make_issue_id("overflow", el.selector, device.id),
                type="layout",
                severity="critical",
                title=f"Element {el.tag} extends past the screen edge",
                description=(
                    f"{el.selector} is wider than the viewport "
                    f"({round(el.rect.width)}px > {metrics.client_width}px)"
                ),
                device=device.name,
                viewport=device.viewport,
                element=_ref(el),
                fix=FixSuggestion(
                    action="css_change",
                    target=el.selector,
                    suggestion=f"Add max-width: 100% to {el.selector}",
                    css=f"{el.selector} {{\n  max-width: 100%;\n  height: auto;\n}}",
                ),
                blocks_release=True,
            ))
        return issues

    async def check_touch_targets(self, accessor: DomAccessor, device: DeviceProfile) -> list[Issue]:
        if not device.is_touch:
            return []

        min_size = self.standards.touch_target_min_px
        elements = await accessor.elements(TOUCH_TARGET_SELECTOR)
        small = heuristics.small_touch_targets(
            elements, min_size, self.standards.max_touch_target_issues,
        )

        issues = []
        for el in small:
            size = min(el.rect.width, el.rect.height)
            issues.append(Issue(
                id=make_issue_id("touch-target", el.selector, device.id),
                type="accessibility",
                severity="warning",
                title=f"Touch target too small: {el.text or el.name or el.tag}",
                description=f"{el.selector} is {round(size)}px (minimum {min_size}px)",
                device=device.name,
                viewport=device.viewport,
                element=_ref(el),
                fix=FixSuggestion(
                    action="css_change",
                    target=el.selector,
                    suggestion=f"Enlarge the clickable area to at least {min_size}x{min_size}px",
                    css=(
                        f"{el.selector} {{\n  min-width: {min_size}px;\n"
                        f"  min-height: {min_size}px;\n  padding: 12px;\n}}"
                    ),
                ),
                wcag="2.5.5",
            ))
        return issues

    async def check_contrast(self, accessor: DomAccessor, device: DeviceProfile) -> list[Issue]:
        elements = [el for el in await accessor.elements(CONTRAST_SELECTOR) if el.has_text]
        low = heuristics.low_contrast_elements(
            elements, self.standards.min_contrast_ratio, self.standards.max_contrast_issues,
        )

        issues = []
        for el, ratio in low:
            issues.append(Issue(
                id=make_issue_id("contrast", el.selector, device.id),
                type="accessibility",
                severity="warning",
                title=f'Low text contrast: "{el.text}"',
                description=(
                    f"Contrast {ratio:.2f}:1 (WCAG AA requires at least "
                    f"{self.standards.min_contrast_ratio}:1)"
                ),
                device=device.name,
                viewport=device.viewport,
                element=_ref(el),
                fix=FixSuggestion(
                    action="css_change",
                    target=el.selector,
                    suggestion="Increase contrast: darken the text or lighten the background",
                    css=f"{el.selector} {{\n  color: #333333;\n}}",
                ),
                wcag="1.4.3",
            ))
        return issues

    async def check_font_size(self, accessor: DomAccessor, device: DeviceProfile) -> list[Issue]:
        min_size = (
            self.standards.min_font_size_mobile_px
            if device.is_mobile
            else self.standards.min_font_size_desktop_px
        )
        elements = await accessor.elements(FONT_SELECTOR)
        small = heuristics.small_text_elements(elements, min_size, self.standards.max_font_size_issues)

        device_class = "mobile" if device.is_mobile else "desktop"
        issues = []
        for el in small:
            issues.append(Issue(
                id=make_issue_id("font-size", el.selector, device.id),
                type="typography",
                severity="warning",
                title=f'Text too small: "{el.text}"',
                description=f"Font size {el.font_size:g}px (minimum {min_size:g}px on {device_class})",
                device=device.name,
                viewport=device.viewport,
                element=_ref(el),
                fix=FixSuggestion(
                    action="css_change",
                    target=el.selector,
                    suggestion=f"Increase the font size to at least {min_size:g}px",
                    css=f"{el.selector} {{\n  font-size: {min_size:g}px;\n}}",
                ),
                wcag="1.4.4",
            ))
        return issues

    async def check_image_alt(self, accessor: DomAccessor, device: DeviceProfile) -> list[Issue]:
        images = await accessor.elements(IMAGE_SELECTOR)
        missing = heuristics.images_missing_alt(images, self.standards.max_missing_alt_issues)

        issues = []
        for img in missing:
            issues.append(Issue(
                id=make_issue_id("img-alt", img.selector, device.id),
                type="accessibility",
                severity="critical",
                title="Image without alt text",
                description=f"{img.selector} has no alt attribute" + (f" ({img.src})" if img.src else ""),
                device=device.name,
                viewport=device.viewport,
                element=ElementRef(tag="img", selector=img.selector, text=img.src),
                fix=FixSuggestion(
                    action="html_change",
                    target=img.selector,
                    suggestion='Add descriptive alt text, or alt="" for decorative images',
                    html='<img src="..." alt="Description of the image">',
                ),
                wcag="1.1.1",
                blocks_release=True,
            ))
        return issues

    async def check_overlap(self, accessor: DomAccessor, device: DeviceProfile) -> list[Issue]:
        """Extension point. Pairwise overlap lives in the clickable audit."""
        return []

    # ------------------------------------------------------------------
    # Clickable audit
    # ------------------------------------------------------------------

    async def audit_clickable_elements(self, session: PageSession, device: DeviceProfile) -> ClickableAudit:
        """Exhaustive, uncapped classification of every interactive element."""
        accessor = DomAccessor(session)
        try:
            metrics = await accessor.document_metrics()
            elements = await accessor.elements(CLICKABLE_SELECTOR)
        except DetectionError:
            raise
        except Exception as e:
            raise DetectionError(f"Clickable audit failed on {device.id}: {e}") from e

        valid, flagged, summary = heuristics.audit_clickables(
            elements,
            min_touch_px=self.standards.touch_target_min_px,
            is_touch=device.is_touch,
            viewport_width=metrics.client_width,
            edge_tolerance=self.standards.viewport_edge_tolerance_px,
        )
        logger.info("Audited %d clickable elements on %s: %d flagged",
                    len(elements), device.name, len(flagged))
        return ClickableAudit(
            device=device.name,
            total=len(elements),
            valid=valid,
            flagged=flagged,
            summary=summary,
        )
