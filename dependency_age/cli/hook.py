from __future__ import annotations

import asyncio
from logging import getLogger
from pathlib import Path

from rich.console import Console
from rich.markup import escape

from dependency_age.cli.project import create_service, open_cache, select_packages
from dependency_age.core.config import (
    ConfigurationError,
    DependencyAgeConfig,
    load_config,
)
from dependency_age.core.lockfile import (
    MANIFEST_FILENAME,
    LockFileError,
    load_manifest,
    parse_lockfile,
)
from dependency_age.core.registry import RegistryGateway
from dependency_age.core.report import AgeReport, build_report

logger = getLogger("dependency_age")

HOOK_OPERATIONS = ("install", "update")


def format_total_age(years: float) -> str:
    if years < 1:
        return f"{years * 12:.1f} months"
    return f"{years:.1f} years"


def summary_line(report: AgeReport) -> str:
    average = report.statistics.average_age_formatted or "0 days"
    total = format_total_age(report.total_age_years)
    return (
        f"✱ Your dependencies age is [bold]{total}[/] "
        f"(average is {average} per package)"
    )


def _load_hook_config(project_dir: Path) -> DependencyAgeConfig:
    try:
        manifest = load_manifest(project_dir / MANIFEST_FILENAME)
        return load_config(manifest, base_dir=project_dir)
    except (ConfigurationError, LockFileError) as e:
        logger.warning("Falling back to default configuration: %s", e)
        return DependencyAgeConfig()


def should_run(config: DependencyAgeConfig, operation: str) -> bool:
    return config.event_integration and operation in config.event_operations


async def _analyse(
    project_dir: Path, config: DependencyAgeConfig, gateway: RegistryGateway | None
) -> AgeReport:
    queries = select_packages(parse_lockfile(project_dir), config)
    service = create_service(config, open_cache(config, project_dir), gateway=gateway)
    packages = await service.analyse(queries, limit=config.event_analysis_limit)
    return build_report(packages, config.thresholds)


def run_hook(
    operation: str,
    working_dir: Path,
    *,
    gateway: RegistryGateway | None = None,
    console: Console | None = None,
) -> int:
    """Print the post install/update summary. Never fails the composer run."""
    console = console or Console(highlight=False)
    project_dir = working_dir.expanduser().resolve()
    config = _load_hook_config(project_dir)
    if not should_run(config, operation):
        logger.debug("Event integration disabled for %s", operation)
        return 0

    console.print()
    console.print("📊 Analyzing dependency ages...")
    try:
        report = asyncio.run(_analyse(project_dir, config, gateway))
    except Exception as e:
        console.print(f"[yellow]Dependency age analysis failed: {escape(str(e))}[/]")
        logger.debug("Hook analysis failed", exc_info=True)
        return 0

    if report.is_empty:
        console.print("No packages to analyze.")
        return 0

    console.print(summary_line(report))
    console.print("Run `dependency-age` for detailed analysis and recommendations.")
    return 0
