"""Configuration models for the visual QA agent."""

from __future__ import annotations

import json
from pathlib import Path
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, model_validator


class QualityStandards(BaseModel):
    model_config = ConfigDict(frozen=True)

    touch_target_min_px: int = 44
    min_font_size_mobile_px: float = 14
    min_font_size_desktop_px: float = 12
    min_contrast_ratio: float = 4.5
    overflow_tolerance_px: int = 5
    viewport_edge_tolerance_px: int = 10
    # A capture smaller than this is treated as a page that never rendered
    min_screenshot_bytes: int = 1000

    # Caps per tuple, keeps one noisy page from flooding the report
    max_touch_target_issues: int = 10
    max_contrast_issues: int = 5
    max_font_size_issues: int = 5
    max_missing_alt_issues: int = 5
    max_runtime_issues: int = 10


class DiffSettings(BaseModel):
    model_config = ConfigDict(frozen=True)

    threshold: float = Field(default=0.1, ge=0.0, le=1.0)
    include_aa: bool = True
    alpha: float = Field(default=0.1, ge=0.0, le=1.0)
    diff_color: tuple[int, int, int] = (255, 0, 0)
    aa_color: tuple[int, int, int] = (255, 255, 0)


class DiffThresholds(BaseModel):
    model_config = ConfigDict(frozen=True)

    acceptable_percent: float = 0.1
    warning_percent: float = 1.0

    @model_validator(mode="after")
    def _ordered(self) -> "DiffThresholds":
        if self.acceptable_percent > self.warning_percent:
            raise ValueError("acceptable_percent must not exceed warning_percent")
        return self


class FrameworkConfig(BaseModel):
    model_config = ConfigDict(frozen=True)

    # Detection
    standards: QualityStandards = Field(default_factory=QualityStandards)
    capture_console: bool = True

    # Pixel comparison
    diff: DiffSettings = Field(default_factory=DiffSettings)
    diff_thresholds: DiffThresholds = Field(default_factory=DiffThresholds)

    # Page loading
    navigation_timeout_ms: int = 30000
    stabilization_delay_ms: int = 500

    # Batch mode
    batch_concurrency: int = Field(default=3, ge=1)
    max_batch_urls: int = Field(default=10, ge=1)

    # Artifacts
    reports_dir: str = "./reports"
    baselines_dir: str = "./baselines"
    devices_file: Optional[str] = None  # built-in catalog when unset

    # AI settings
    ai_model: str = "claude-sonnet-4-20250514"
    ai_max_tokens: int = 4096
    ai_timeout_seconds: float = 60.0
    ai_max_requests_per_minute: int = 10

    @classmethod
    def load(cls, path: str | Path) -> "FrameworkConfig":
        """Load config from a JSON file."""
        path = Path(path)
        if not path.exists():
            raise FileNotFoundError(f"Config file not found: {path}")
        with open(path) as f:
            data = json.load(f)
        return cls(**data)

    def save(self, path: str | Path) -> None:
        """Save config to a JSON file."""
        path = Path(path)
        path.parent.mkdir(parents=True, exist_ok=True)
        with open(path, "w") as f:
            json.dump(self.model_dump(mode="json"), f, indent=2)
