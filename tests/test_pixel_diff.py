"""Tests for the pixel diff engine."""

from unittest.mock import Mock

import pytest
from PIL import Image

from conftest import make_image, make_png, save_png
from visual_qa.diff.pixel_diff import (
    SIDE_BY_SIDE_BACKGROUND,
    PixelDiffEngine,
    classify_diff,
    create_side_by_side,
    load_image,
)
from visual_qa.errors import ImageDecodeError
from visual_qa.models.config import DiffSettings, DiffThresholds
from visual_qa.models.diff_result import DiffResult, Dimensions, SizeMismatch


def _result(diff_percent: float, diff_pixels: int = 1) -> DiffResult:
    return DiffResult(
        dimensions=Dimensions(width=100, height=100),
        diff_pixels=diff_pixels,
        total_pixels=10000,
        diff_percent=diff_percent,
        matched=diff_pixels == 0,
    )


class TestCompare:
    """Tests for PixelDiffEngine.compare."""

    def test_identical_800x600_matches_without_diff_file(self, tmp_path):
        a = save_png(tmp_path / "a.png", width=800, height=600)
        b = save_png(tmp_path / "b.png", width=800, height=600)
        diff_path = tmp_path / "out" / "diff.png"

        result = PixelDiffEngine().compare(a, b, diff_path)

        assert isinstance(result, DiffResult)
        assert result.matched is True
        assert result.diff_pixels == 0
        assert result.diff_percent == 0
        assert result.total_pixels == 480000
        assert result.diff_image_path is None
        assert not diff_path.exists()

    def test_identity_skips_diff_function(self):
        diff_fn = Mock(return_value=0)
        img = make_image(50, 50, box=(10, 10, 20, 20))
        result = PixelDiffEngine(diff_fn=diff_fn).compare(img, img)
        assert result.matched is True
        diff_fn.assert_not_called()

    def test_changed_region_counted_and_written(self, tmp_path):
        a = make_png(100, 100)
        b = make_png(100, 100, box=(0, 0, 9, 9))   # 10x10 black square
        diff_path = tmp_path / "diff.png"

        result = PixelDiffEngine().compare(a, b, diff_path)

        assert result.matched is False
        assert result.diff_pixels == 100
        assert result.diff_percent == 1.0
        assert result.diff_image_path == str(diff_path)
        assert diff_path.exists()

    def test_symmetric(self):
        a = make_image(60, 40, box=(5, 5, 20, 15))
        b = make_image(60, 40, box=(10, 8, 30, 25), box_color=(200, 30, 30))
        engine = PixelDiffEngine()

        ab = engine.compare(a, b)
        ba = engine.compare(b, a)

        assert ab.diff_pixels == ba.diff_pixels
        assert ab.diff_percent == ba.diff_percent

    def test_percent_rounded_to_four_decimals(self):
        engine = PixelDiffEngine(diff_fn=Mock(return_value=1))
        result = engine.compare(make_image(300, 70), make_image(300, 70, box=(0, 0, 0, 0)))
        assert result.diff_percent == round(1 / 21000 * 100, 4)

    def test_size_mismatch_is_a_result(self):
        result = PixelDiffEngine().compare(make_png(100, 80), make_png(100, 90))

        assert isinstance(result, SizeMismatch)
        assert result.image_a == Dimensions(width=100, height=80)
        assert result.image_b == Dimensions(width=100, height=90)
        assert "100x80 vs 100x90" in result.message
        assert not hasattr(result, "diff_percent")

    def test_settings_passed_to_diff_function(self):
        settings = DiffSettings(threshold=0.3, include_aa=False)
        diff_fn = Mock(return_value=5)
        engine = PixelDiffEngine(settings, diff_fn=diff_fn)

        engine.compare(make_image(10, 10), make_image(10, 10, box=(0, 0, 1, 1)))

        assert diff_fn.call_args.args[3] is settings

    def test_undecodable_input_raises(self, tmp_path):
        bad = tmp_path / "bad.png"
        bad.write_bytes(b"not a png")
        with pytest.raises(ImageDecodeError):
            PixelDiffEngine().compare(bad, make_png())

    def test_load_image_from_bytes(self):
        img = load_image(make_png(12, 7))
        assert img.size == (12, 7)
        assert img.mode == "RGBA"


class TestCompareDirectories:
    """Tests for directory-level comparison."""

    def test_classifies_union_of_files(self, tmp_path):
        base, current, out = tmp_path / "base", tmp_path / "current", tmp_path / "out"
        save_png(base / "same.png", width=40, height=40)
        save_png(current / "same.png", width=40, height=40)
        save_png(base / "changed.png", width=40, height=40)
        save_png(current / "changed.png", width=40, height=40, box=(0, 0, 9, 9))
        save_png(base / "gone.png")
        save_png(current / "added.png")
        (base / "broken.png").write_bytes(b"garbage")
        save_png(current / "broken.png")
        (base / "notes.txt").write_text("ignored")

        result = PixelDiffEngine().compare_directories(base, current, out)

        statuses = {c.file: c.status for c in result.comparisons}
        assert statuses == {
            "added.png": "new",
            "broken.png": "error",
            "changed.png": "different",
            "gone.png": "missing",
            "same.png": "matched",
        }
        assert [c.file for c in result.comparisons] == sorted(statuses)
        assert result.summary.total == 5
        assert result.summary.matched == 1
        assert result.summary.different == 1
        assert result.summary.missing == 1
        assert result.summary.new == 1
        assert result.summary.error == 1

        changed = next(c for c in result.comparisons if c.file == "changed.png")
        assert changed.diff_pixels == 100
        assert (out / "diff_changed.png").exists()
        assert not (out / "diff_same.png").exists()
        assert changed.side_by_side is None

    def test_missing_directories_are_empty(self, tmp_path):
        result = PixelDiffEngine().compare_directories(
            tmp_path / "nope", tmp_path / "nada", tmp_path / "out",
        )
        assert result.comparisons == []
        assert result.summary.total == 0


class TestSideBySide:
    """Tests for the baseline/current/diff panel image."""

    def test_two_panels_without_diff(self, tmp_path):
        out = create_side_by_side(
            make_png(width=40, height=30, color=(255, 0, 0)),
            make_png(width=40, height=30, color=(0, 0, 255)),
            tmp_path / "side" / "home.png",
        )
        with Image.open(out) as img:
            img = img.convert("RGBA")
            assert img.size == (90, 30)
            assert img.getpixel((0, 0)) == (255, 0, 0, 255)
            assert img.getpixel((45, 15)) == SIDE_BY_SIDE_BACKGROUND
            assert img.getpixel((50, 0)) == (0, 0, 255, 255)

    def test_third_panel_for_diff(self, tmp_path):
        diff = save_png(tmp_path / "diff.png", width=40, height=30, color=(0, 255, 0))
        out = create_side_by_side(
            make_image(width=40, height=30), make_image(width=40, height=30),
            tmp_path / "side.png", diff=diff,
        )
        with Image.open(out) as img:
            assert img.size == (140, 30)
            assert img.convert("RGBA").getpixel((100, 5)) == (0, 255, 0, 255)

    def test_directory_compare_writes_panels(self, tmp_path):
        base, current, out = tmp_path / "base", tmp_path / "current", tmp_path / "out"
        save_png(base / "home.png", width=40, height=40)
        save_png(current / "home.png", width=40, height=40, box=(0, 0, 9, 9))
        save_png(base / "same.png", width=40, height=40)
        save_png(current / "same.png", width=40, height=40)

        result = PixelDiffEngine().compare_directories(base, current, out, side_by_side=True)

        home = next(c for c in result.comparisons if c.file == "home.png")
        assert home.side_by_side == str(out / "side_home.png")
        with Image.open(out / "side_home.png") as img:
            assert img.size == (140, 40)
        assert not (out / "side_same.png").exists()


class TestClassifyDiff:
    """Tests for severity bucketing."""

    def test_matched_passes(self):
        verdict = classify_diff(_result(0, diff_pixels=0))
        assert verdict.status == "passed"
        assert verdict.requires_review is False

    def test_below_acceptable_passes(self):
        assert classify_diff(_result(0.05)).status == "passed"

    def test_between_thresholds_warns(self):
        verdict = classify_diff(_result(0.5))
        assert verdict.status == "warning"
        assert verdict.requires_review is True

    def test_at_warning_threshold_fails(self):
        verdict = classify_diff(_result(1.0))
        assert verdict.status == "failed"
        assert verdict.severity == "critical"

    def test_thresholds_overridable_per_call(self):
        loose = DiffThresholds(acceptable_percent=2.0, warning_percent=5.0)
        assert classify_diff(_result(1.5), loose).status == "passed"
        assert classify_diff(_result(3.0), loose).status == "warning"

    def test_size_mismatch_is_error(self):
        mismatch = SizeMismatch(
            image_a=Dimensions(width=1, height=1), image_b=Dimensions(width=2, height=2),
            message="Image sizes differ",
        )
        assert classify_diff(mismatch).status == "error"

    def test_threshold_order_validated(self):
        with pytest.raises(ValueError):
            DiffThresholds(acceptable_percent=2.0, warning_percent=1.0)
