"""Pixel comparison data structures."""

from __future__ import annotations

from typing import Literal, Optional, Union

from pydantic import Field

from .base import CamelModel


class Dimensions(CamelModel):
    width: int
    height: int

    def __str__(self) -> str:
        return f"{self.width}x{self.height}"


class DiffResult(CamelModel):
    outcome: Literal["compared"] = "compared"
    dimensions: Dimensions
    diff_pixels: int
    total_pixels: int
    diff_percent: float  # rounded to 4 decimals
    matched: bool
    diff_image_path: Optional[str] = None


class SizeMismatch(CamelModel):
    """Terminal outcome: rasters of different size are never partially compared."""

    outcome: Literal["size_mismatch"] = "size_mismatch"
    image_a: Dimensions
    image_b: Dimensions
    message: str = ""


Comparison = Union[DiffResult, SizeMismatch]


class DiffVerdict(CamelModel):
    status: str  # passed, warning, failed, error
    severity: str  # none, warning, critical
    message: str
    requires_review: bool = False


class FileComparison(CamelModel):
    file: str
    status: str  # matched, different, missing, new, error
    diff_percent: Optional[float] = None
    diff_pixels: Optional[int] = None
    diff_image: Optional[str] = None
    side_by_side: Optional[str] = None
    message: Optional[str] = None


class ComparisonSummary(CamelModel):
    total: int = 0
    matched: int = 0
    different: int = 0
    missing: int = 0
    new: int = 0
    error: int = 0


class DirectoryComparison(CamelModel):
    timestamp: str
    baseline_dir: str
    current_dir: str
    comparisons: list[FileComparison] = Field(default_factory=list)
    summary: ComparisonSummary = Field(default_factory=ComparisonSummary)
