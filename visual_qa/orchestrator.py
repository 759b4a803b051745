"""Check orchestrator: walks the device matrix for a URL and builds the CheckResult."""

from __future__ import annotations

import asyncio
import logging
import time
from datetime import datetime, timezone
from pathlib import Path
from typing import Optional

from visual_qa.ai.client import set_debug_dir
from visual_qa.ai.vision_classifier import VisionClassifier
from visual_qa.baseline.baseline_store import BaselineStore
from visual_qa.detector.issue_detector import (
    IssueDetector,
    check_blank_screenshot,
    detect_deprecation_issues,
    detect_runtime_issues,
    prioritize_issues,
)
from visual_qa.devices.matrix import DeviceMatrix
from visual_qa.diff.pixel_diff import PixelDiffEngine, classify_diff, create_side_by_side
from visual_qa.driver.dom_accessor import DomAccessor
from visual_qa.driver.page_driver import PageDriver, PageSession
from visual_qa.errors import ClassifierError, ImageDecodeError, NavigationError, SessionClosedError
from visual_qa.models.audit import ClickableAudit
from visual_qa.models.check_result import (
    BatchEntry,
    BatchResult,
    BatchSummary,
    CheckRecord,
    CheckResult,
    PerformanceMetrics,
)
from visual_qa.models.config import DiffThresholds, FrameworkConfig
from visual_qa.models.devices import CheckTuple, ColorScheme
from visual_qa.models.diff_result import DiffVerdict, SizeMismatch
from visual_qa.models.issue import Issue, make_issue_id
from visual_qa.models.visual_baseline import BaselineCapture
from visual_qa.reporter.issue_aggregator import (
    build_action_summary,
    dedupe,
    overall_status,
    summarize_checks,
    tuple_status,
)
from visual_qa.url_utils import validate_url

logger = logging.getLogger(__name__)


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


class CheckOrchestrator:
    """Runs every (device, browser, color scheme) tuple of a profile against a URL.

    Tuples run sequentially within one page check. Each tuple gets its own
    session; detection always happens before that session is disposed. A
    failing tuple becomes an ``error`` record and the remaining tuples still
    run. Only configuration problems (bad URL, unknown profile) abort a call.
    """

    def __init__(
        self,
        config: FrameworkConfig,
        matrix: DeviceMatrix,
        driver: PageDriver,
        detector: Optional[IssueDetector] = None,
        classifier: Optional[VisionClassifier] = None,
        baseline_store: Optional[BaselineStore] = None,
        diff_engine: Optional[PixelDiffEngine] = None,
    ):
        self.config = config
        self.matrix = matrix
        self.driver = driver
        self.detector = detector or IssueDetector(config.standards)
        self.classifier = classifier or VisionClassifier(config)
        self.baseline_store = baseline_store or BaselineStore(config.baselines_dir)
        self.diff_engine = diff_engine or PixelDiffEngine(config.diff)
        self.reports_dir = Path(config.reports_dir)

    # ------------------------------------------------------------------
    # Single page
    # ------------------------------------------------------------------

    async def check_page(
        self,
        url: str,
        profile: str = "standard",
        check_dark_mode: bool = False,
        compare_baseline: bool = False,
        use_ai: bool = False,
        diff_thresholds: Optional[DiffThresholds] = None,
    ) -> CheckResult:
        """Check one URL on every tuple of the profile."""
        validate_url(url)
        resolved = self.matrix.resolve(profile)
        schemes: tuple[ColorScheme, ...] = ("light", "dark") if check_dark_mode else ("light",)
        tuples = resolved.tuples(schemes)

        classifier = self.classifier if use_ai else None
        if use_ai:
            set_debug_dir(self.reports_dir / "debug")

        start = time.time()
        logger.info("Checking %s with profile '%s' (%d tuples)", url, profile, len(tuples))

        records: list[CheckRecord] = []
        all_issues: list[Issue] = []
        for check in tuples:
            record, issues = await self._run_tuple(
                url, check,
                compare_baseline=compare_baseline,
                classifier=classifier,
                thresholds=diff_thresholds or self.config.diff_thresholds,
            )
            records.append(record)
            all_issues.extend(issues)

        issues = prioritize_issues(dedupe(all_issues))
        summary = summarize_checks(records, issues)
        result = CheckResult(
            url=url,
            profile=profile,
            timestamp=_now(),
            status=overall_status(summary),
            checks=records,
            issues=issues,
            summary=summary,
            action_summary=build_action_summary(issues),
        )
        logger.info("Checked %s in %.1fs: %s (%d issues, %d/%d tuples passed)",
                    url, time.time() - start, result.status.upper(),
                    len(issues), summary.passed, summary.total)
        return result

    async def _run_tuple(
        self,
        url: str,
        check: CheckTuple,
        compare_baseline: bool,
        classifier: Optional[VisionClassifier],
        thresholds: DiffThresholds,
    ) -> tuple[CheckRecord, list[Issue]]:
        device = check.device
        record = CheckRecord(
            device=check.device_label,
            device_id=device.id,
            browser=check.browser,
            color_scheme=check.color_scheme,
            viewport=device.viewport,
            is_mobile=device.is_mobile,
        )
        logger.info("  %s (%s, %s)...", device.name, check.browser, check.color_scheme)

        try:
            async with self.driver.session(device, check.browser, check.color_scheme) as session:
                png = await self._load_and_capture(session, url)
                record.title = await session.title()
                record.screenshot_ref = self._save_screenshot(check, png)
                metadata = self._metadata(url, check, record.title)

                # The session is still open here; detection must not move past the block.
                issues = check_blank_screenshot(png, device, self.config.standards.min_screenshot_bytes)
                issues.extend(await self.detector.detect_issues(session, device, metadata))
                if self.config.capture_console:
                    issues.extend(detect_runtime_issues(
                        session.console_messages, device, self.config.standards.max_runtime_issues,
                    ))
                    record.performance = await self._performance(session, check)
                    if record.performance is not None:
                        issues.extend(detect_deprecation_issues(record.performance.deprecations, device))
        except Exception as e:
            logger.error("    %s failed: %s", check.check_id, e)
            record.status = "error"
            record.error = str(e)
            return record, []

        if compare_baseline and check.color_scheme == "light":
            try:
                issues.extend(await self._compare_with_baseline(url, check, png, record, thresholds))
            except Exception as e:
                logger.warning("    Baseline comparison failed for %s: %s", check.check_id, e)
                record.comparison_verdict = DiffVerdict(status="error", severity="critical", message=str(e))

        if classifier is not None:
            try:
                issues.extend(await classifier.classify(png, metadata))
            except ClassifierError as e:
                logger.warning("    AI analysis skipped for %s (%s): %s", check.check_id, e.kind, e)
                record.classifier_error = str(e)
            except Exception as e:
                logger.error("    AI analysis failed for %s: %s", check.check_id, e)
                record.classifier_error = str(e)

        if check.color_scheme == "dark":
            issues = [self._tag_dark(issue, check.device_label) for issue in issues]

        record.status = tuple_status(issues)
        record.issue_count = len(issues)
        logger.info("    %s: %s (%d issues)", check.check_id, record.status, len(issues))
        return record, issues

    async def _load(self, session: PageSession, url: str) -> None:
        status = await session.navigate(url, self.config.navigation_timeout_ms)
        if status is not None and status >= 400:
            raise NavigationError(f"HTTP {status} for {url}")
        await session.wait_for_stable(self.config.stabilization_delay_ms)

    async def _load_and_capture(self, session: PageSession, url: str) -> bytes:
        await self._load(session, url)
        return await session.screenshot(full_page=True)

    async def _performance(self, session: PageSession, check: CheckTuple) -> Optional[PerformanceMetrics]:
        try:
            return await DomAccessor(session).performance_metrics()
        except SessionClosedError:
            raise
        except Exception as e:
            logger.warning("    Performance metrics unavailable for %s: %s", check.check_id, e)
            return None

    def _save_screenshot(self, check: CheckTuple, png: bytes) -> str:
        """Write the raster under the report directory and return its relative path."""
        rel_path = Path("screenshots") / f"{check.check_id}_{int(time.time() * 1000)}.png"
        dest = self.reports_dir / rel_path
        dest.parent.mkdir(parents=True, exist_ok=True)
        dest.write_bytes(png)
        return rel_path.as_posix()

    @staticmethod
    def _metadata(url: str, check: CheckTuple, title: str | None) -> dict:
        return {
            "url": url,
            "title": title,
            "device": check.device_label,
            "deviceId": check.device.id,
            "browser": check.browser,
            "colorScheme": check.color_scheme,
            "viewport": check.device.viewport.model_dump(),
            "isMobile": check.device.is_mobile,
        }

    @staticmethod
    def _tag_dark(issue: Issue, label: str) -> Issue:
        return issue.model_copy(update={
            "title": f"[Dark Mode] {issue.title}",
            "color_scheme": "dark",
            "device": label,
        })

    async def _compare_with_baseline(
        self,
        url: str,
        check: CheckTuple,
        png: bytes,
        record: CheckRecord,
        thresholds: DiffThresholds,
    ) -> list[Issue]:
        device = check.device
        baseline = self.baseline_store.load_image(url, device.id, check.browser)
        if baseline is None:
            logger.info("    No baseline for %s, skipping comparison", check.check_id)
            return []

        diff_path = self.reports_dir / "diffs" / f"diff_{check.check_id}.png"
        comparison = await asyncio.to_thread(self.diff_engine.compare, baseline, png, diff_path)
        verdict = classify_diff(comparison, thresholds)
        record.comparison = comparison
        record.comparison_verdict = verdict

        if isinstance(comparison, SizeMismatch):
            return [Issue(
                id=make_issue_id("visual-size", check.check_id, device.id),
                type="visual",
                severity="warning",
                title=f"Screenshot size differs from baseline on {device.name}",
                description=comparison.message,
                device=check.device_label,
                viewport=device.viewport,
                source="diff",
            )]

        if verdict.status not in ("warning", "failed"):
            return []

        rel_side = Path("diffs") / f"side_{check.check_id}.png"
        try:
            await asyncio.to_thread(
                create_side_by_side, baseline, png, self.reports_dir / rel_side, comparison.diff_image_path,
            )
            record.side_by_side_ref = rel_side.as_posix()
        except (OSError, ImageDecodeError) as e:
            logger.warning("    Side-by-side image not written for %s: %s", check.check_id, e)

        return [Issue(
            id=make_issue_id("visual-diff", check.check_id, device.id),
            type="visual",
            severity="critical" if verdict.status == "failed" else "warning",
            title=f"Visual regression on {device.name} ({check.browser}): {comparison.diff_percent}%",
            description=(
                f"{verdict.message}. {comparison.diff_pixels} of "
                f"{comparison.total_pixels} pixels differ from the baseline."
            ),
            device=check.device_label,
            viewport=device.viewport,
            source="diff",
        )]

    # ------------------------------------------------------------------
    # Batch
    # ------------------------------------------------------------------

    async def check_batch(
        self,
        urls: list[str],
        profile: str = "standard",
        check_dark_mode: bool = False,
        concurrency: Optional[int] = None,
    ) -> BatchResult:
        """Check several URLs with at most ``concurrency`` pages in flight."""
        self.matrix.resolve(profile)
        semaphore = asyncio.Semaphore(concurrency or self.config.batch_concurrency)

        async def _check_one(url: str) -> BatchEntry:
            async with semaphore:
                try:
                    result = await self.check_page(url, profile=profile, check_dark_mode=check_dark_mode)
                    return BatchEntry(url=url, status="success", result=result)
                except Exception as e:
                    logger.error("Batch check of %s failed: %s", url, e)
                    return BatchEntry(url=url, status="error", error=str(e))

        entries = list(await asyncio.gather(*(_check_one(url) for url in urls)))

        summary = BatchSummary()
        for entry in entries:
            if entry.result is None:
                continue
            summary.total_checks += entry.result.summary.total
            summary.passed += entry.result.summary.passed
            summary.failed += entry.result.summary.failed
            summary.warnings += entry.result.summary.warnings
            summary.total_issues += len(entry.result.issues)
            summary.blocks_release = summary.blocks_release or entry.result.summary.blocks_release

        successful = sum(1 for e in entries if e.status == "success")
        return BatchResult(
            total_urls=len(entries),
            successful=successful,
            failed=len(entries) - successful,
            profile=profile,
            check_dark_mode=check_dark_mode,
            timestamp=_now(),
            summary=summary,
            pages=entries,
        )

    # ------------------------------------------------------------------
    # Baselines and audit
    # ------------------------------------------------------------------

    async def save_baseline(self, url: str, profile: str = "standard") -> BaselineCapture:
        """Capture light-scheme baselines for every (browser, device) pair."""
        validate_url(url)
        resolved = self.matrix.resolve(profile)
        capture = BaselineCapture(url=url, directory=str(self.baseline_store.directory_for(url)))

        for check in resolved.tuples(("light",)):
            key = f"{check.device.id}_{check.browser}"
            try:
                async with self.driver.session(check.device, check.browser, "light") as session:
                    png = await self._load_and_capture(session, url)
                    title = await session.title()
                entry = self.baseline_store.store(
                    url, check.device.id, check.browser, check.device.viewport, png, title=title,
                )
                capture.entries.append(entry)
            except Exception as e:
                logger.error("Baseline capture failed for %s: %s", key, e)
                capture.errors[key] = str(e)

        logger.info("Saved %d baselines for %s (%d errors)",
                    len(capture.entries), url, len(capture.errors))
        return capture

    async def audit_clickables(self, url: str, device_id: str, browser: str = "chromium") -> ClickableAudit:
        """Exhaustive clickable-element audit of one URL on one device."""
        validate_url(url)
        device = self.matrix.get_device(device_id)
        async with self.driver.session(device, browser, "light") as session:
            await self._load(session, url)
            return await self.detector.audit_clickable_elements(session, device)
