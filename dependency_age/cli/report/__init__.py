from __future__ import annotations

from rich.console import Console

from dependency_age.cli.report.github_report import render_github
from dependency_age.cli.report.json_report import render_json, report_to_dict
from dependency_age.cli.report.table_report import build_package_table, render_table
from dependency_age.core.config import OutputFormat
from dependency_age.core.report import AgeReport

__all__ = [
    "build_package_table",
    "render_github",
    "render_json",
    "render_report",
    "render_table",
    "report_to_dict",
]


def render_report(report: AgeReport, output_format: OutputFormat, console: Console) -> None:
    match output_format:
        case OutputFormat.JSON:
            console.out(render_json(report), end="", highlight=False)
        case OutputFormat.GITHUB:
            console.out(render_github(report), end="", highlight=False)
        case _:
            render_table(report, console)
