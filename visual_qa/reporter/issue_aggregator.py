"""Issue aggregator: dedup across device tuples and derive release verdicts."""

from __future__ import annotations

import logging
from collections import Counter

from visual_qa.models.check_result import ActionSummary, CheckRecord, CheckSummary
from visual_qa.models.issue import Issue

logger = logging.getLogger(__name__)


def dedupe(issues: list[Issue]) -> list[Issue]:
    """Collapse issues sharing ``(type, selector-or-title)`` into one.

    The first occurrence is kept; later matches only add their device label
    to ``affected_devices``. Input issues are not modified.
    """
    seen: dict[tuple[str, str], Issue] = {}
    for issue in issues:
        key = issue.dedup_key
        existing = seen.get(key)
        if existing is None:
            devices = list(dict.fromkeys([*issue.affected_devices, issue.device]))
            seen[key] = issue.model_copy(update={"affected_devices": devices})
        elif issue.device not in existing.affected_devices:
            existing.affected_devices.append(issue.device)

    logger.debug("Deduplicated %d issues into %d", len(issues), len(seen))
    return list(seen.values())


def blocks_release(issues: list[Issue]) -> bool:
    return any(issue.blocks_release for issue in issues)


def build_action_summary(issues: list[Issue]) -> ActionSummary:
    by_severity = {"critical": 0, "warning": 0, "info": 0}
    by_severity.update(Counter(issue.severity for issue in issues))
    by_type = dict(Counter(issue.type for issue in issues))

    critical = by_severity["critical"]
    warnings = by_severity["warning"]
    if critical:
        action = f"Fix {critical} critical issue{'s' if critical != 1 else ''} before release"
    elif warnings:
        action = f"Review {warnings} warning{'s' if warnings != 1 else ''} before release"
    else:
        action = "All checks passed"

    return ActionSummary(
        total_issues=len(issues),
        blocks_release=blocks_release(issues),
        by_severity=by_severity,
        by_type=by_type,
        action_required=action,
    )


def tuple_status(issues: list[Issue]) -> str:
    """``failed`` on any critical issue, else ``warning`` on any warning, else ``passed``."""
    severities = {issue.severity for issue in issues}
    if "critical" in severities:
        return "failed"
    if "warning" in severities:
        return "warning"
    return "passed"


def summarize_checks(records: list[CheckRecord], issues: list[Issue]) -> CheckSummary:
    """Count tuple outcomes. Errored tuples count as failed."""
    summary = CheckSummary(total=len(records), blocks_release=blocks_release(issues))
    for record in records:
        if record.status == "passed":
            summary.passed += 1
        elif record.status in ("failed", "error"):
            summary.failed += 1
        else:
            summary.warnings += 1
    return summary


def overall_status(summary: CheckSummary) -> str:
    """Definite page verdict: blocked, failed, warning or passed."""
    if summary.blocks_release:
        return "blocked"
    if summary.failed:
        return "failed"
    if summary.warnings:
        return "warning"
    return "passed"
