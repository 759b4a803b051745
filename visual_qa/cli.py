"""CLI entry point for the visual QA agent."""

from __future__ import annotations

import asyncio
import json
import logging
import sys
from pathlib import Path
from typing import Awaitable, Callable, Optional, TypeVar

import click
from rich.console import Console
from rich.logging import RichHandler
from rich.table import Table

from visual_qa.devices.catalog import DEFAULT_CATALOG, load_catalog
from visual_qa.devices.matrix import DeviceMatrix
from visual_qa.diff.pixel_diff import PixelDiffEngine
from visual_qa.driver.playwright_driver import PlaywrightDriver
from visual_qa.errors import ConfigurationError
from visual_qa.models.check_result import CheckResult
from visual_qa.models.config import FrameworkConfig
from visual_qa.orchestrator import CheckOrchestrator
from visual_qa.reporter.json_report import (
    write_batch_result,
    write_check_result,
    write_directory_comparison,
)

console = Console()

DEFAULT_CONFIG_FILE = "visual-qa.json"
STATUS_STYLE = {
    "passed": "green", "warning": "yellow", "failed": "red",
    "blocked": "bold red", "error": "red",
}
SEVERITY_STYLE = {"critical": "red", "warning": "yellow", "info": "blue"}

T = TypeVar("T")


def setup_logging(verbose: bool = False) -> None:
    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(
        level=level,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=console, rich_tracebacks=True)],
    )


def _load_config(config: Optional[str]) -> FrameworkConfig:
    if config is None:
        if not Path(DEFAULT_CONFIG_FILE).exists():
            return FrameworkConfig()
        config = DEFAULT_CONFIG_FILE
    try:
        return FrameworkConfig.load(config)
    except FileNotFoundError:
        console.print(f"[red]Config file not found: {config}[/red]")
        console.print("Run 'visual-qa init' to create a default config.")
        sys.exit(2)


def _load_matrix(cfg: FrameworkConfig) -> DeviceMatrix:
    try:
        return DeviceMatrix(load_catalog(cfg.devices_file))
    except (ConfigurationError, FileNotFoundError) as e:
        console.print(f"[red]Invalid device catalog:[/red] {e}")
        sys.exit(2)


def _run(cfg: FrameworkConfig, action: Callable[[CheckOrchestrator], Awaitable[T]]) -> T:
    """Open a browser driver, run one orchestrator action, and close the driver."""
    matrix = _load_matrix(cfg)

    async def _main() -> T:
        async with PlaywrightDriver() as driver:
            return await action(CheckOrchestrator(cfg, matrix, driver))

    try:
        return asyncio.run(_main())
    except ConfigurationError as e:
        console.print(f"[red]{e}[/red]")
        sys.exit(2)


def _styled(status: str) -> str:
    style = STATUS_STYLE.get(status, "white")
    return f"[{style}]{status.upper()}[/{style}]"


def _print_check_result(result: CheckResult) -> None:
    table = Table(title=f"Checks for {result.url} ({result.profile})")
    table.add_column("Device", style="bold")
    table.add_column("Browser")
    table.add_column("Status")
    table.add_column("Issues", justify="right")
    table.add_column("Diff", justify="right")
    for record in result.checks:
        diff = ""
        if record.comparison is not None:
            diff = (f"{record.comparison.diff_percent}%"
                    if record.comparison.outcome == "compared" else "size mismatch")
        table.add_row(
            record.device, record.browser, _styled(record.status),
            str(record.issue_count) if record.status != "error" else (record.error or "")[:60],
            diff,
        )
    console.print(table)

    if result.issues:
        issues = Table(title="Issues")
        issues.add_column("Severity")
        issues.add_column("Type")
        issues.add_column("Title")
        issues.add_column("Devices")
        issues.add_column("WCAG")
        for issue in result.issues:
            style = SEVERITY_STYLE.get(issue.severity, "white")
            issues.add_row(
                f"[{style}]{issue.severity}[/{style}]",
                issue.type,
                issue.title,
                ", ".join(issue.affected_devices),
                issue.wcag or "",
            )
        console.print(issues)

    console.print(f"\nStatus: {_styled(result.status)}")
    if result.action_summary:
        console.print(f"[bold]{result.action_summary.action_required}[/bold]")


@click.group()
@click.option("--verbose", "-v", is_flag=True, help="Enable debug logging")
def cli(verbose: bool) -> None:
    """Visual regression and UI quality checks across a device matrix."""
    setup_logging(verbose)


@cli.command()
@click.argument("url")
@click.option("--profile", "-p", default="standard", help="Device profile")
@click.option("--dark", is_flag=True, help="Also check in dark color scheme")
@click.option("--compare", "compare_baseline", is_flag=True, help="Compare with stored baselines")
@click.option("--ai", "use_ai", is_flag=True, help="Run AI screenshot analysis")
@click.option("--output", "-o", default=None, help="Report directory")
@click.option("--config", "-c", default=None, help="Config file path")
def check(url: str, profile: str, dark: bool, compare_baseline: bool, use_ai: bool,
          output: Optional[str], config: Optional[str]) -> None:
    """Check one URL on every device of a profile."""
    cfg = _load_config(config)
    if output:
        cfg = cfg.model_copy(update={"reports_dir": output})

    result = _run(cfg, lambda orch: orch.check_page(
        url, profile=profile, check_dark_mode=dark,
        compare_baseline=compare_baseline, use_ai=use_ai,
    ))
    report_path = write_check_result(result, Path(cfg.reports_dir))

    _print_check_result(result)
    console.print(f"  JSON report: [blue]{report_path}[/blue]")
    if result.status in ("failed", "blocked"):
        sys.exit(1)


@cli.command()
@click.argument("urls", nargs=-1, required=True)
@click.option("--profile", "-p", default="standard", help="Device profile")
@click.option("--dark", is_flag=True, help="Also check in dark color scheme")
@click.option("--concurrency", type=int, default=None, help="Pages checked in parallel")
@click.option("--output", "-o", default=None, help="Report directory")
@click.option("--config", "-c", default=None, help="Config file path")
def batch(urls: tuple[str, ...], profile: str, dark: bool, concurrency: Optional[int],
          output: Optional[str], config: Optional[str]) -> None:
    """Check several URLs with bounded concurrency."""
    cfg = _load_config(config)
    if len(urls) > cfg.max_batch_urls:
        raise click.UsageError(
            f"Too many URLs: {len(urls)} given, max_batch_urls is {cfg.max_batch_urls}"
        )
    if output:
        cfg = cfg.model_copy(update={"reports_dir": output})

    result = _run(cfg, lambda orch: orch.check_batch(
        list(urls), profile=profile, check_dark_mode=dark, concurrency=concurrency,
    ))
    report_path = write_batch_result(result, Path(cfg.reports_dir))

    table = Table(title=f"Batch results ({result.successful}/{result.total_urls} pages checked)")
    table.add_column("URL", style="bold")
    table.add_column("Status")
    table.add_column("Issues", justify="right")
    for page in result.pages:
        if page.result is not None:
            table.add_row(page.url, _styled(page.result.status), str(len(page.result.issues)))
        else:
            table.add_row(page.url, _styled("error"), page.error or "")
    console.print(table)
    console.print(f"  JSON report: [blue]{report_path}[/blue]")
    if result.failed or result.summary.blocks_release:
        sys.exit(1)


@cli.command()
@click.argument("url")
@click.option("--profile", "-p", default="standard", help="Device profile")
@click.option("--config", "-c", default=None, help="Config file path")
def baseline(url: str, profile: str, config: Optional[str]) -> None:
    """Capture baseline screenshots for later comparison."""
    cfg = _load_config(config)
    capture = _run(cfg, lambda orch: orch.save_baseline(url, profile=profile))

    console.print(f"[green]Saved {len(capture.entries)} baselines[/green] to [blue]{capture.directory}[/blue]")
    for key, error in capture.errors.items():
        console.print(f"  [red]{key}:[/red] {error}")
    if capture.errors and not capture.entries:
        sys.exit(1)


@cli.command()
@click.option("--baseline", "baseline_dir", required=True, help="Directory of baseline PNGs")
@click.option("--current", "current_dir", required=True, help="Directory of current PNGs")
@click.option("--output", "-o", default="./diff-output", help="Directory for diff images")
@click.option("--side-by-side", is_flag=True, help="Also write baseline/current/diff panels for differing files")
@click.option("--config", "-c", default=None, help="Config file path")
def compare(baseline_dir: str, current_dir: str, output: str, side_by_side: bool,
            config: Optional[str]) -> None:
    """Pixel-compare two directories of screenshots."""
    cfg = _load_config(config)
    engine = PixelDiffEngine(cfg.diff)
    comparison = engine.compare_directories(baseline_dir, current_dir, output, side_by_side=side_by_side)
    report_path = write_directory_comparison(comparison, Path(output))

    summary = comparison.summary
    table = Table(title="Directory comparison")
    table.add_column("File", style="bold")
    table.add_column("Status")
    table.add_column("Diff", justify="right")
    for item in comparison.comparisons:
        style = {"matched": "green", "different": "yellow", "error": "red"}.get(item.status, "blue")
        diff = f"{item.diff_percent}%" if item.diff_percent is not None else (item.message or "")
        table.add_row(item.file, f"[{style}]{item.status}[/{style}]", diff)
    console.print(table)
    console.print(
        f"Total {summary.total}: [green]{summary.matched} matched[/green], "
        f"[yellow]{summary.different} different[/yellow], {summary.missing} missing, "
        f"{summary.new} new, [red]{summary.error} errors[/red]"
    )
    console.print(f"  JSON report: [blue]{report_path}[/blue]")
    if summary.different or summary.error:
        sys.exit(1)


@cli.command()
@click.argument("url")
@click.option("--device", "-d", "device_id", default="iphone_14", help="Device id")
@click.option("--browser", "-b", default="chromium", help="Browser engine")
@click.option("--config", "-c", default=None, help="Config file path")
def audit(url: str, device_id: str, browser: str, config: Optional[str]) -> None:
    """Audit every clickable element of a page on one device."""
    cfg = _load_config(config)
    result = _run(cfg, lambda orch: orch.audit_clickables(url, device_id, browser))

    console.print(f"[bold]{result.device}[/bold]: {result.total} clickable elements, "
                  f"[green]{len(result.valid)} valid[/green], "
                  f"[yellow]{len(result.flagged)} flagged[/yellow]")
    if result.flagged:
        table = Table(title="Flagged elements")
        table.add_column("Selector", style="bold")
        table.add_column("Name")
        table.add_column("Flags")
        for item in result.flagged:
            flags = "; ".join(f"{f.type}: {f.message}" for f in item.flags)
            table.add_row(item.selector, item.name, flags)
        console.print(table)


@cli.command()
@click.option("--config", "-c", default=None, help="Config file path")
def devices(config: Optional[str]) -> None:
    """List devices and test profiles."""
    cfg = _load_config(config)
    matrix = _load_matrix(cfg)

    table = Table(title="Devices")
    table.add_column("Category", style="bold")
    table.add_column("Id")
    table.add_column("Name")
    table.add_column("Viewport")
    table.add_column("Touch")
    for category, category_devices in matrix.catalog.device_profiles.items():
        for device in category_devices.values():
            table.add_row(
                category, device.id, device.name,
                f"{device.viewport.width}x{device.viewport.height}",
                "yes" if device.is_touch else "",
            )
    console.print(table)

    profiles = Table(title="Profiles")
    profiles.add_column("Name", style="bold")
    profiles.add_column("Devices")
    profiles.add_column("Browsers")
    for name in matrix.profile_names:
        resolved = matrix.resolve(name)
        profiles.add_row(
            name,
            ", ".join(d.id for d in resolved.devices),
            ", ".join(resolved.browsers),
        )
    console.print(profiles)


@cli.command()
@click.option("--with-devices", is_flag=True, help="Also write the built-in device catalog")
def init(with_devices: bool) -> None:
    """Create a default configuration file."""
    config_path = Path(DEFAULT_CONFIG_FILE)
    if config_path.exists():
        if not click.confirm(f"{DEFAULT_CONFIG_FILE} already exists. Overwrite?"):
            return

    cfg = FrameworkConfig()
    if with_devices:
        devices_path = Path("devices.json")
        with open(devices_path, "w") as f:
            json.dump(DEFAULT_CATALOG, f, indent=2)
        cfg = cfg.model_copy(update={"devices_file": str(devices_path)})
        console.print(f"[green]Created {devices_path}[/green]")

    cfg.save(config_path)
    console.print(f"[green]Created {config_path}[/green]")
    console.print("\nYou can now customize this file and run:")
    console.print("  [blue]visual-qa check https://example.com[/blue]")


if __name__ == "__main__":
    cli()
