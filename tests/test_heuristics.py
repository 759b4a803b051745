"""Tests for the pure DOM heuristics."""

import pytest

from conftest import el
from visual_qa.detector import heuristics
from visual_qa.models.audit import DocumentMetrics, ElementSnapshot


def snap(*args, **kwargs) -> ElementSnapshot:
    return ElementSnapshot(**el(*args, **kwargs))


class TestColorMath:
    """Tests for WCAG luminance and contrast ratio."""

    def test_parse_rgb_and_rgba(self):
        assert heuristics.parse_rgb("rgb(12, 34, 56)") == (12, 34, 56)
        assert heuristics.parse_rgb("rgba(1, 2, 3, 0.5)") == (1, 2, 3)

    def test_parse_rgb_rejects_other_formats(self):
        assert heuristics.parse_rgb("transparent") is None
        assert heuristics.parse_rgb("") is None
        assert heuristics.parse_rgb("#ffffff") is None

    def test_luminance_extremes(self):
        assert heuristics.relative_luminance((0, 0, 0)) == 0
        assert heuristics.relative_luminance((255, 255, 255)) == pytest.approx(1.0)

    def test_black_on_white_is_21(self):
        assert heuristics.contrast_ratio((0, 0, 0), (255, 255, 255)) == pytest.approx(21.0)

    def test_ratio_is_symmetric(self):
        a, b = (118, 118, 118), (255, 255, 255)
        assert heuristics.contrast_ratio(a, b) == heuristics.contrast_ratio(b, a)

    def test_grey_just_below_and_above_aa(self):
        assert heuristics.contrast_ratio((119, 119, 119), (255, 255, 255)) < 4.5
        assert heuristics.contrast_ratio((118, 118, 118), (255, 255, 255)) > 4.5

    def test_boundary_is_not_flagged(self):
        assert heuristics.is_low_contrast(4.5) is False
        assert heuristics.is_low_contrast(4.499) is True

    def test_identical_colors_not_flagged(self):
        assert heuristics.is_low_contrast(1.0) is False


class TestLayout:
    """Tests for overflow heuristics."""

    def test_horizontal_scroll(self):
        assert heuristics.has_horizontal_scroll(DocumentMetrics(scroll_width=1200, client_width=375))
        assert not heuristics.has_horizontal_scroll(DocumentMetrics(scroll_width=375, client_width=375))

    def test_first_overflowing_element_uses_tolerance(self):
        elements = [
            snap("div", ".within", width=379),   # right edge 379 <= 375 + 5
            snap("div", ".wide", width=600),
            snap("img", ".also-wide", width=800),
        ]
        culprit = heuristics.first_overflowing_element(elements, 375, tolerance=5)
        assert culprit.selector == ".wide"

    def test_first_overflowing_element_none(self):
        assert heuristics.first_overflowing_element([snap("div", ".ok", width=300)], 375) is None

    def test_oversized_elements(self):
        elements = [snap("img", ".hero", width=800), snap("table", ".t", width=375)]
        found = heuristics.oversized_elements(elements, 375)
        assert [e.selector for e in found] == [".hero"]


class TestAccessibility:
    """Tests for touch target, contrast, font and alt heuristics."""

    def test_small_touch_targets(self):
        elements = [
            snap("a", ".tiny", width=43, height=43),
            snap("a", ".ok", width=44, height=44),
            snap("a", ".hidden", width=0, height=0),
            snap("button", ".thin", width=200, height=20),
        ]
        found = heuristics.small_touch_targets(elements, 44)
        assert [e.selector for e in found] == [".tiny", ".thin"]

    def test_small_touch_targets_capped(self):
        elements = [snap("a", f".l{i}", width=10, height=10) for i in range(15)]
        assert len(heuristics.small_touch_targets(elements, 44, limit=10)) == 10

    def test_low_contrast_skips_transparent_background(self):
        elements = [
            snap("p", ".on-transparent", color="rgb(100, 100, 100)",
                 backgroundColor="rgba(0, 0, 0, 0)", hasText=True),
            snap("p", ".grey", color="rgb(150, 150, 150)",
                 backgroundColor="rgb(255, 255, 255)", hasText=True),
        ]
        found = heuristics.low_contrast_elements(elements)
        assert [e.selector for e, _ in found] == [".grey"]
        assert found[0][1] < 4.5

    def test_exact_boundary_ratio_not_flagged(self, monkeypatch):
        monkeypatch.setattr(heuristics, "contrast_ratio", lambda fg, bg: 4.5)
        elements = [snap("p", ".edge", color="rgb(1, 1, 1)",
                         backgroundColor="rgb(2, 2, 2)", hasText=True)]
        assert heuristics.low_contrast_elements(elements, 4.5) == []

    def test_greys_either_side_of_aa_minimum(self):
        # #767676 on white is the lightest grey that meets 4.5:1
        elements = [
            snap("p", ".passes", color="rgb(118, 118, 118)",
                 backgroundColor="rgb(255, 255, 255)", hasText=True),
            snap("p", ".fails", color="rgb(119, 119, 119)",
                 backgroundColor="rgb(255, 255, 255)", hasText=True),
        ]
        found = heuristics.low_contrast_elements(elements, 4.5)
        assert [e.selector for e, _ in found] == [".fails"]
        assert found[0][1] == pytest.approx(4.48, abs=0.01)
        assert heuristics.contrast_ratio((118, 118, 118), (255, 255, 255)) == pytest.approx(4.54, abs=0.01)

    def test_low_contrast_capped(self):
        elements = [
            snap("p", f".p{i}", color="rgb(200, 200, 200)", backgroundColor="rgb(255, 255, 255)")
            for i in range(8)
        ]
        assert len(heuristics.low_contrast_elements(elements, limit=5)) == 5

    def test_small_text_requires_text(self):
        elements = [
            snap("span", ".small", fontSize=10, hasText=True),
            snap("div", ".empty", fontSize=10, hasText=False),
            snap("p", ".fine", fontSize=16, hasText=True),
        ]
        found = heuristics.small_text_elements(elements, 14)
        assert [e.selector for e in found] == [".small"]

    def test_images_missing_alt(self):
        images = [
            snap("img", "img.no-alt", src="a.png"),
            snap("img", "img.decorative", alt=""),
            snap("img", "img.presentation", role="presentation"),
            snap("img", "img.described", alt="Company logo"),
        ]
        found = heuristics.images_missing_alt(images)
        assert [e.selector for e in found] == ["img.no-alt"]


class TestAuditClickables:
    """Tests for the exhaustive clickable audit."""

    def _audit(self, elements, is_touch=True, viewport_width=375):
        return heuristics.audit_clickables(
            [ElementSnapshot(**e) for e in elements],
            min_touch_px=44, is_touch=is_touch, viewport_width=viewport_width,
        )

    def _flags(self, item):
        return {f.type for f in item.flags}

    def test_valid_element(self):
        valid, flagged, summary = self._audit([
            el("button", "#ok", width=120, height=48, name="Buy", domPath=[0]),
        ])
        assert len(valid) == 1 and flagged == []
        assert summary.too_small == 0

    def test_too_small_only_on_touch(self):
        elements = [el("button", "#small", width=30, height=30, name="x", domPath=[0])]
        _, flagged, summary = self._audit(elements, is_touch=True)
        assert self._flags(flagged[0]) == {"too_small"}
        assert summary.too_small == 1

        valid, flagged, _ = self._audit(elements, is_touch=False)
        assert flagged == [] and len(valid) == 1

    def test_no_label_skips_inputs(self):
        _, flagged, summary = self._audit([
            el("a", ".icon", width=48, height=48, name="", domPath=[0]),
            el("input", "input[type=\"text\"]", y=100, width=200, height=48, name="", domPath=[1]),
        ])
        assert [f.selector for f in flagged] == [".icon"]
        assert summary.no_label == 1

    def test_hidden_zero_size(self):
        _, flagged, summary = self._audit([
            el("a", ".collapsed", width=0, height=0, visible=False, name="Menu", domPath=[0]),
        ])
        assert self._flags(flagged[0]) == {"hidden"}
        assert summary.hidden == 1

    def test_outside_viewport_both_edges(self):
        _, flagged, summary = self._audit([
            el("a", ".right", x=370, width=100, height=48, name="r", domPath=[0]),
            el("a", ".left", x=-20, y=100, width=100, height=48, name="l", domPath=[1]),
            el("a", ".edge", x=300, y=200, width=84, height=48, name="e", domPath=[2]),
        ])
        assert [f.selector for f in flagged] == [".right", ".left"]
        assert summary.outside_viewport == 2
        assert flagged[0].flags[0].severity == "critical"

    def test_overlap_flags_both_members(self):
        _, flagged, summary = self._audit([
            el("a", "#a", x=0, y=0, width=100, height=48, name="A", domPath=[0, 1]),
            el("a", "#b", x=50, y=10, width=100, height=48, name="B", domPath=[0, 2]),
        ])
        assert {f.selector for f in flagged} == {"#a", "#b"}
        assert flagged[0].overlaps_with == ["#b"]
        assert flagged[1].overlaps_with == ["#a"]
        assert summary.overlapping == 2

    def test_touching_edges_do_not_overlap(self):
        valid, flagged, _ = self._audit([
            el("a", "#a", x=0, width=50, height=48, name="A", domPath=[0]),
            el("a", "#b", x=50, width=50, height=48, name="B", domPath=[1]),
        ])
        assert flagged == [] and len(valid) == 2

    def test_ancestor_descendant_not_overlapping(self):
        valid, flagged, _ = self._audit([
            el("label", "label.wrap", width=200, height=48, name="Wrap", domPath=[0]),
            el("input", "#check", x=5, y=5, width=44, height=44, name="c", domPath=[0, 0]),
        ])
        assert flagged == []
        assert len(valid) == 2
