from __future__ import annotations

import argparse
import asyncio
from collections.abc import Sequence
import logging
from pathlib import Path
import sys
import time
from typing import Any

from rich import print as rprint
from rich.console import Console
from rich.logging import RichHandler
from rich.markup import escape

from dependency_age import __version__
from dependency_age.cli.hook import HOOK_OPERATIONS, run_hook
from dependency_age.cli.project import (
    create_gateway,
    create_service,
    open_cache,
    select_packages,
)
from dependency_age.cli.report import render_report
from dependency_age.core.cache import FileSystemReleaseCacheRepository
from dependency_age.core.config import (
    DEFAULT_IGNORE_PACKAGES,
    ConfigurationError,
    DependencyAgeConfig,
    OutputFormat,
    load_config,
)
from dependency_age.core.lockfile import (
    MANIFEST_FILENAME,
    LockFileError,
    load_manifest,
    parse_lockfile,
)
from dependency_age.core.registry import RegistryGateway
from dependency_age.core.report import build_report
from dependency_age.core.whitelist import WhitelistError, write_default_whitelist

logger = logging.getLogger("dependency_age")


def parse_arguments(argv: Sequence[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        prog="dependency-age",
        description="Analyse the age of the Composer dependencies of a PHP project",
    )
    parser.add_argument(
        "-V", "--version", action="version", version=f"%(prog)s {__version__}"
    )
    parser.add_argument(
        "--format",
        dest="output_format",
        choices=[output_format.value for output_format in OutputFormat],
        help="Output format (default: cli).",
    )
    parser.add_argument(
        "--no-colors",
        dest="show_colors",
        action="store_false",
        default=None,
        help="Disable colored output.",
    )
    parser.add_argument(
        "--no-dev",
        dest="include_dev",
        action="store_false",
        default=None,
        help="Exclude development dependencies.",
    )
    parser.add_argument(
        "--no-cache", action="store_true", help="Neither read nor write the cache."
    )
    parser.add_argument(
        "--offline",
        action="store_true",
        help="Only use cached data, never contact the registry.",
    )
    parser.add_argument(
        "--direct",
        action="store_true",
        help="Only analyse packages required directly in composer.json.",
    )
    parser.add_argument(
        "--ignore",
        metavar="PACKAGES",
        help="Comma separated list of packages to ignore (e.g. vendor/a,vendor/b).",
    )
    parser.add_argument(
        "--thresholds",
        metavar="RULES",
        help="Rating thresholds in years, e.g. current=0.5,medium=1.0,old=2.0",
    )
    parser.add_argument("--cache-file", metavar="PATH", help="Cache file location.")
    parser.add_argument(
        "--api-timeout", type=int, metavar="SECONDS", help="Registry request timeout."
    )
    parser.add_argument(
        "--cache-ttl", type=int, metavar="SECONDS", help="Cache entry lifetime."
    )
    parser.add_argument(
        "--max-concurrent",
        dest="max_concurrent_requests",
        type=int,
        metavar="N",
        help="Maximum number of concurrent registry requests.",
    )
    parser.add_argument(
        "--fail-on-critical",
        action="store_true",
        default=None,
        help="Exit with status 1 when critical packages are found.",
    )
    parser.add_argument(
        "--working-dir",
        "-d",
        type=Path,
        default=Path.cwd(),
        metavar="DIR",
        help="Project directory containing composer.json and composer.lock.",
    )
    parser.add_argument(
        "--clear-cache", action="store_true", help="Delete the cache file and exit."
    )
    parser.add_argument(
        "--cache-stats",
        action="store_true",
        help="Show the cache file location and entry counts, then exit.",
    )
    parser.add_argument(
        "--init-whitelist",
        type=Path,
        metavar="PATH",
        help="Write a whitelist file with the default ignored packages and exit.",
    )
    parser.add_argument("-v", "--verbose", action="store_true", help="Debug logging.")

    subparsers = parser.add_subparsers(dest="command")
    hook_parser = subparsers.add_parser(
        "hook", help="Print a one-line summary after composer install or update."
    )
    hook_parser.add_argument("operation", choices=HOOK_OPERATIONS)
    return parser.parse_args(argv)


def configure_logging(verbose: bool) -> None:
    log = logging.getLogger("dependency_age")
    for handler in list(log.handlers):
        handler.close()
    log.handlers.clear()

    handler = RichHandler(console=Console(stderr=True), show_path=False)
    handler.setLevel(logging.DEBUG if verbose else logging.WARNING)
    log.addHandler(handler)
    log.setLevel(logging.DEBUG if verbose else logging.WARNING)
    log.propagate = False


def build_overrides(args: argparse.Namespace) -> dict[str, Any]:
    overrides: dict[str, Any] = {
        key: getattr(args, key)
        for key in (
            "output_format",
            "show_colors",
            "include_dev",
            "thresholds",
            "cache_file",
            "api_timeout",
            "cache_ttl",
            "max_concurrent_requests",
            "fail_on_critical",
        )
    }
    if args.ignore:
        overrides["ignore"] = [
            name.strip() for name in args.ignore.split(",") if name.strip()
        ]
    return overrides


def resolve_project_dir(working_dir: Path) -> Path:
    project_dir = working_dir.expanduser().resolve()
    if not project_dir.is_dir():
        raise ConfigurationError(
            f"--working-dir does not exist or is not a directory: {project_dir}"
        )
    return project_dir


def print_cache_stats(
    cache: FileSystemReleaseCacheRepository, config: DependencyAgeConfig
) -> None:
    stats = cache.stats(config.cache_ttl, int(time.time()))
    rprint(f"Cache file: {cache.cache_file}")
    if not stats.exists:
        rprint("[yellow]No cache file yet.[/]")
        return
    rprint(f"Size: {stats.size_bytes} bytes")
    rprint(f"Entries: {stats.entries} ({stats.fresh_entries} fresh)")


def notify_offline(config: DependencyAgeConfig, console: Console) -> None:
    message = "System appears to be offline, enabling offline mode..."
    if config.output_format is OutputFormat.CLI:
        console.print(f"[yellow]{message}[/]")
    else:
        logger.warning(message)


def run(
    args: argparse.Namespace,
    *,
    gateway: RegistryGateway | None = None,
    console: Console | None = None,
) -> int:
    if args.command == "hook":
        return run_hook(
            args.operation, args.working_dir, gateway=gateway, console=console
        )

    try:
        project_dir = resolve_project_dir(args.working_dir)
        if args.init_whitelist is not None:
            whitelist_path = project_dir / args.init_whitelist.expanduser()
            write_default_whitelist(whitelist_path, DEFAULT_IGNORE_PACKAGES)
            rprint(f"[green]Whitelist written:[/] {whitelist_path}")
            return 0

        manifest = load_manifest(project_dir / MANIFEST_FILENAME)
        config = load_config(manifest, build_overrides(args), base_dir=project_dir)
        if args.offline and args.no_cache:
            raise ConfigurationError(
                "Cannot use offline mode without cache (--offline requires caching)"
            )

        if args.clear_cache:
            cache = open_cache(config, project_dir)
            cache.clear()
            rprint(f"[green]Cache cleared:[/] {cache.cache_file}")
            return 0

        if args.cache_stats:
            print_cache_stats(open_cache(config, project_dir), config)
            return 0

        queries = select_packages(
            parse_lockfile(project_dir), config, direct_only=args.direct
        )
        cache = None if args.no_cache else open_cache(config, project_dir)
    except (ConfigurationError, LockFileError, WhitelistError) as e:
        rprint(f"[red]Error: {escape(str(e))}[/]")
        return 1

    console = console or Console(
        no_color=not config.show_colors, highlight=False, soft_wrap=True
    )
    gateway = gateway if gateway is not None else create_gateway(config)
    offline = args.offline
    if cache is not None and not offline and queries:
        if not asyncio.run(gateway.is_registry_reachable()):
            notify_offline(config, console)
            offline = True

    service = create_service(config, cache, offline=offline, gateway=gateway)
    packages = asyncio.run(service.analyse(queries))
    if cache is not None and not offline:
        if pruned := cache.prune(config.cache_ttl, int(time.time())):
            logger.debug("Pruned %d stale cache entries", pruned)

    report = build_report(packages, config.thresholds)
    render_report(report, config.output_format, console)

    if config.fail_on_critical and report.summary.has_critical:
        if config.output_format is OutputFormat.CLI:
            console.print(
                f"[red]{report.summary.critical_count} critical package(s) found[/]"
            )
        return 1
    return 0


def main(argv: Sequence[str] | None = None) -> None:
    args = parse_arguments(argv)
    configure_logging(args.verbose)
    sys.exit(run(args))


if __name__ == "__main__":
    main()
