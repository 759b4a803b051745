"""Pixel diff engine: perceptual comparison of equal-sized rasters.

The per-pixel algorithm is delegated to ``pixelmatch`` (YIQ color distance
with optional anti-aliasing detection). This module handles decoding, the
size-mismatch rule, percentages, diff raster output and directory walks.
"""

from __future__ import annotations

import io
import logging
from datetime import datetime, timezone
from pathlib import Path
from typing import Callable, Optional, Union

from PIL import Image, UnidentifiedImageError
from pixelmatch.contrib.PIL import pixelmatch

from visual_qa.errors import ImageDecodeError
from visual_qa.models.config import DiffSettings, DiffThresholds
from visual_qa.models.diff_result import (
    Comparison,
    ComparisonSummary,
    DiffResult,
    DiffVerdict,
    Dimensions,
    DirectoryComparison,
    FileComparison,
    SizeMismatch,
)

logger = logging.getLogger(__name__)

ImageSource = Union[str, Path, bytes, Image.Image]
DiffFunction = Callable[[Image.Image, Image.Image, Optional[Image.Image], DiffSettings], int]


def pixelmatch_diff(
    img_a: Image.Image,
    img_b: Image.Image,
    output: Optional[Image.Image],
    settings: DiffSettings,
) -> int:
    """Count differing pixels and paint them into ``output`` when given."""
    return pixelmatch(
        img_a,
        img_b,
        output,
        threshold=settings.threshold,
        includeAA=settings.include_aa,
        alpha=settings.alpha,
        aa_color=settings.aa_color,
        diff_color=settings.diff_color,
    )


def load_image(source: ImageSource) -> Image.Image:
    """Decode a raster from a path, raw bytes or an already-open image, as RGBA."""
    if isinstance(source, Image.Image):
        return source.convert("RGBA")
    try:
        if isinstance(source, bytes):
            img = Image.open(io.BytesIO(source))
        else:
            img = Image.open(source)
        img.load()
    except (OSError, UnidentifiedImageError) as e:
        name = "<bytes>" if isinstance(source, bytes) else str(source)
        raise ImageDecodeError(f"Could not decode image {name}: {e}") from e
    return img.convert("RGBA")


SIDE_BY_SIDE_GAP = 10
SIDE_BY_SIDE_BACKGROUND = (128, 128, 128, 255)


def create_side_by_side(
    baseline: ImageSource,
    current: ImageSource,
    output: str | Path,
    diff: ImageSource | None = None,
) -> Path:
    """Write baseline, current and (when given) diff rasters as one row of panels.

    Panels are laid out left to right on a gray background, each as wide as
    the baseline, separated by a fixed gap.
    """
    panels = [load_image(baseline), load_image(current)]
    if diff is not None:
        panels.append(load_image(diff))

    panel_width = panels[0].width
    width = panel_width * len(panels) + SIDE_BY_SIDE_GAP * (len(panels) - 1)
    height = max(panel.height for panel in panels)
    canvas = Image.new("RGBA", (width, height), SIDE_BY_SIDE_BACKGROUND)
    for index, panel in enumerate(panels):
        canvas.paste(panel, (index * (panel_width + SIDE_BY_SIDE_GAP), 0))

    path = Path(output)
    path.parent.mkdir(parents=True, exist_ok=True)
    canvas.save(path, format="PNG")
    logger.debug("Side-by-side raster saved: %s", path)
    return path


def list_png_files(directory: str | Path) -> list[str]:
    path = Path(directory)
    if not path.is_dir():
        return []
    return sorted(p.name for p in path.iterdir() if p.is_file() and p.suffix.lower() == ".png")


class PixelDiffEngine:
    """Compare two rasters of identical dimensions."""

    def __init__(self, settings: DiffSettings | None = None, diff_fn: DiffFunction = pixelmatch_diff):
        self.settings = settings or DiffSettings()
        self.diff_fn = diff_fn

    def compare(
        self,
        image_a: ImageSource,
        image_b: ImageSource,
        diff_output: str | Path | None = None,
    ) -> Comparison:
        """Return a ``DiffResult``, or ``SizeMismatch`` when dimensions differ.

        Raises ``ImageDecodeError`` when either input cannot be decoded. The
        diff raster is written to ``diff_output`` only when pixels differ.
        """
        img_a = load_image(image_a)
        img_b = load_image(image_b)

        if img_a.size != img_b.size:
            dim_a = Dimensions(width=img_a.width, height=img_a.height)
            dim_b = Dimensions(width=img_b.width, height=img_b.height)
            return SizeMismatch(
                image_a=dim_a,
                image_b=dim_b,
                message=f"Image sizes differ: {dim_a} vs {dim_b}",
            )

        width, height = img_a.size
        total_pixels = width * height

        if img_a.tobytes() == img_b.tobytes():
            diff_pixels = 0
        else:
            output = Image.new("RGBA", img_a.size) if diff_output else None
            diff_pixels = self.diff_fn(img_a, img_b, output, self.settings)
            if diff_output and diff_pixels > 0:
                path = Path(diff_output)
                path.parent.mkdir(parents=True, exist_ok=True)
                output.save(path, format="PNG")
                logger.debug("Diff raster saved: %s", path)

        diff_percent = round(diff_pixels / total_pixels * 100, 4) if total_pixels else 0.0
        return DiffResult(
            dimensions=Dimensions(width=width, height=height),
            diff_pixels=diff_pixels,
            total_pixels=total_pixels,
            diff_percent=diff_percent,
            matched=diff_pixels == 0,
            diff_image_path=str(diff_output) if diff_output and diff_pixels > 0 else None,
        )

    def compare_directories(
        self,
        baseline_dir: str | Path,
        current_dir: str | Path,
        output_dir: str | Path,
        side_by_side: bool = False,
    ) -> DirectoryComparison:
        """Compare every PNG in the union of both directories by file name.

        With ``side_by_side`` each differing pair also gets a
        ``side_<name>`` panel image next to its diff raster.
        """
        baseline_dir, current_dir, output_dir = Path(baseline_dir), Path(current_dir), Path(output_dir)
        baseline_files = set(list_png_files(baseline_dir))
        current_files = set(list_png_files(current_dir))

        summary = ComparisonSummary()
        comparisons: list[FileComparison] = []

        for name in sorted(baseline_files | current_files):
            summary.total += 1

            if name not in baseline_files:
                comparisons.append(FileComparison(
                    file=name, status="new", message="New screenshot (no baseline)",
                ))
                summary.new += 1
                continue

            if name not in current_files:
                comparisons.append(FileComparison(
                    file=name, status="missing", message="Screenshot missing (baseline exists)",
                ))
                summary.missing += 1
                continue

            diff_path = output_dir / f"diff_{name}"
            try:
                result = self.compare(baseline_dir / name, current_dir / name, diff_path)
            except ImageDecodeError as e:
                logger.warning("Could not compare %s: %s", name, e)
                comparisons.append(FileComparison(file=name, status="error", message=str(e)))
                summary.error += 1
                continue

            if isinstance(result, SizeMismatch):
                comparisons.append(FileComparison(file=name, status="error", message=result.message))
                summary.error += 1
            elif result.matched:
                comparisons.append(FileComparison(file=name, status="matched", diff_percent=0.0, diff_pixels=0))
                summary.matched += 1
            else:
                side_path = None
                if side_by_side:
                    side_path = str(create_side_by_side(
                        baseline_dir / name, current_dir / name,
                        output_dir / f"side_{name}", diff=result.diff_image_path,
                    ))
                comparisons.append(FileComparison(
                    file=name,
                    status="different",
                    diff_percent=result.diff_percent,
                    diff_pixels=result.diff_pixels,
                    diff_image=result.diff_image_path,
                    side_by_side=side_path,
                ))
                summary.different += 1

        logger.info("Compared %d files: %d matched, %d different, %d missing, %d new, %d errors",
                    summary.total, summary.matched, summary.different,
                    summary.missing, summary.new, summary.error)
        return DirectoryComparison(
            timestamp=datetime.now(timezone.utc).isoformat(),
            baseline_dir=str(baseline_dir),
            current_dir=str(current_dir),
            comparisons=comparisons,
            summary=summary,
        )


def classify_diff(result: Comparison, thresholds: DiffThresholds | None = None) -> DiffVerdict:
    """Bucket a comparison into passed / warning / failed.

    Below ``acceptable_percent`` passes; below ``warning_percent`` needs review;
    anything at or above it fails.
    """
    thresholds = thresholds or DiffThresholds()

    if isinstance(result, SizeMismatch):
        return DiffVerdict(status="error", severity="critical", message=result.message)

    if result.matched:
        return DiffVerdict(status="passed", severity="none", message="Images are identical")

    pct = result.diff_percent
    if pct < thresholds.acceptable_percent:
        return DiffVerdict(
            status="passed",
            severity="none",
            message=f"Minor differences: {pct}% (acceptable < {thresholds.acceptable_percent}%)",
        )
    if pct < thresholds.warning_percent:
        return DiffVerdict(
            status="warning",
            severity="warning",
            message=f"Small differences: {pct}%",
            requires_review=True,
        )
    return DiffVerdict(
        status="failed",
        severity="critical",
        message=f"Significant differences: {pct}%",
        requires_review=True,
    )
