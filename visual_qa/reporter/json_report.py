"""JSON report output."""

from __future__ import annotations

import json
import logging
from pathlib import Path

from visual_qa.models.base import CamelModel
from visual_qa.models.check_result import BatchResult, CheckResult
from visual_qa.models.diff_result import DirectoryComparison

logger = logging.getLogger(__name__)


def _write(model: CamelModel, output_path: Path) -> Path:
    output_path.parent.mkdir(parents=True, exist_ok=True)
    with open(output_path, "w") as f:
        json.dump(model.to_json_dict(), f, indent=2, ensure_ascii=False, default=str)
    logger.info("Report written: %s", output_path)
    return output_path


def write_check_result(result: CheckResult, report_dir: Path) -> Path:
    """Write a machine-readable CheckResult as ``check_result.json``."""
    return _write(result, Path(report_dir) / "check_result.json")


def write_batch_result(result: BatchResult, report_dir: Path) -> Path:
    return _write(result, Path(report_dir) / "batch_result.json")


def write_directory_comparison(comparison: DirectoryComparison, report_dir: Path) -> Path:
    return _write(comparison, Path(report_dir) / "comparison.json")
