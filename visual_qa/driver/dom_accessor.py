"""Structured DOM access over an open page session.

The scripts here only *collect* page data: geometry, computed styles,
attributes and load timings. All decisions about what counts as an issue
live in Python, in ``visual_qa.detector``, so they can be tested against
canned snapshots without a browser.
"""

from __future__ import annotations

from visual_qa.models.audit import DocumentMetrics, ElementSnapshot
from visual_qa.models.check_result import PerformanceMetrics

from .page_driver import PageSession

DOCUMENT_METRICS_SCRIPT = """
() => {
    const root = document.documentElement;
    return {
        scrollWidth: root.scrollWidth,
        clientWidth: root.clientWidth,
        scrollHeight: root.scrollHeight,
        clientHeight: root.clientHeight,
    };
}
"""

PERFORMANCE_SCRIPT = """
() => {
    const finite = v => (typeof v === "number" && isFinite(v)) ? v : null;
    const nav = performance.getEntriesByType("navigation")[0];
    const paint = name => {
        const entry = performance.getEntriesByType("paint").find(p => p.name === name);
        return entry ? finite(entry.startTime) : null;
    };
    const deprecations = [];
    if (typeof document.all !== "undefined") deprecations.push("document.all is deprecated");
    return {
        domContentLoaded: nav ? finite(nav.domContentLoadedEventEnd - nav.startTime) : null,
        loadComplete: nav ? finite(nav.loadEventEnd - nav.startTime) : null,
        firstPaint: paint("first-paint"),
        firstContentfulPaint: paint("first-contentful-paint"),
        transferSize: nav ? finite(nav.transferSize) : null,
        encodedBodySize: nav ? finite(nav.encodedBodySize) : null,
        decodedBodySize: nav ? finite(nav.decodedBodySize) : null,
        deprecations,
    };
}
"""

ELEMENT_SNAPSHOT_SCRIPT = """
({ selector, geometryOnly }) => {
    function getSelector(el) {
        if (el.id) return '#' + el.id;
        if (el.className && typeof el.className === 'string') {
            const classes = el.className.split(' ').filter(c => c && !c.includes(':'));
            if (classes.length > 0) return '.' + classes[0];
        }
        let selector = el.tagName.toLowerCase();
        if (el.type) selector += '[type="' + el.type + '"]';
        if (el.name) selector += '[name="' + el.name + '"]';
        return selector;
    }

    function domPath(el) {
        const path = [];
        while (el && el.parentElement) {
            path.unshift(Array.prototype.indexOf.call(el.parentElement.children, el));
            el = el.parentElement;
        }
        return path;
    }

    function accessibleName(el) {
        const labelledBy = el.getAttribute('aria-labelledby');
        const labelled = labelledBy && document.getElementById(labelledBy);
        return el.getAttribute('aria-label') ||
               (labelled && labelled.textContent.trim()) ||
               el.getAttribute('title') ||
               el.getAttribute('alt') ||
               (el.textContent || '').trim().substring(0, 50) ||
               el.getAttribute('placeholder') ||
               el.value ||
               '';
    }

    return Array.from(document.querySelectorAll(selector)).map(el => {
        const rect = el.getBoundingClientRect();
        const snapshot = {
            tag: el.tagName.toLowerCase(),
            selector: getSelector(el),
            rect: { x: rect.x, y: rect.y, width: rect.width, height: rect.height },
            domPath: domPath(el),
        };
        if (geometryOnly) return snapshot;

        const style = window.getComputedStyle(el);
        const text = (el.textContent || '').trim();
        snapshot.type = el.type || null;
        snapshot.text = text.substring(0, 30);
        snapshot.hasText = text.length > 0;
        snapshot.visible = style.display !== 'none' &&
                           style.visibility !== 'hidden' &&
                           style.opacity !== '0' &&
                           rect.width > 0 && rect.height > 0;
        snapshot.name = String(accessibleName(el)).substring(0, 50);
        snapshot.alt = el.getAttribute('alt');
        snapshot.role = el.getAttribute('role');
        snapshot.src = (el.getAttribute('src') || '').substring(0, 50);
        snapshot.color = style.color;
        snapshot.backgroundColor = style.backgroundColor;
        snapshot.fontSize = parseFloat(style.fontSize) || 0;
        return snapshot;
    });
}
"""


class DomAccessor:
    """Typed reads from a live session. Raises SessionClosedError once disposed."""

    def __init__(self, session: PageSession):
        self.session = session

    async def document_metrics(self) -> DocumentMetrics:
        raw = await self.session.evaluate(DOCUMENT_METRICS_SCRIPT)
        return DocumentMetrics(**raw)

    async def performance_metrics(self) -> PerformanceMetrics:
        raw = await self.session.evaluate(PERFORMANCE_SCRIPT)
        return PerformanceMetrics(**(raw or {}))

    async def elements(self, selector: str, geometry_only: bool = False) -> list[ElementSnapshot]:
        raw = await self.session.evaluate(
            ELEMENT_SNAPSHOT_SCRIPT, {"selector": selector, "geometryOnly": geometry_only},
        )
        return [ElementSnapshot(**item) for item in raw or []]
