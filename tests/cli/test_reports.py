from __future__ import annotations

import io
import json

from rich.console import Console

from dependency_age.cli.report import render_github, render_json, render_report, render_table
from dependency_age.core.config import OutputFormat
from dependency_age.core.report import AgeReport, build_report
from tests.factories import REFERENCE, analysed


def _report() -> AgeReport:
    return build_report(
        [
            analysed("acme/fresh", "2.0.0", 10, latest_version="2.0.0", latest_age_days=10),
            analysed(
                "acme/old",
                "1.0|beta",
                800,
                is_dev=True,
                latest_version="3.0.0",
                latest_age_days=30,
            ),
            analysed("acme/aging", "1.5.0", 250),
            analysed("acme/ghost", "0.1.0", None),
        ],
        reference=REFERENCE,
    )


def _console() -> tuple[Console, io.StringIO]:
    output = io.StringIO()
    return Console(file=output, width=200, color_system=None), output


def test_json_report_lists_every_package_including_unknown() -> None:
    data = json.loads(render_json(_report()))

    assert [package["name"] for package in data["packages"]] == [
        "acme/fresh",
        "acme/old",
        "acme/aging",
        "acme/ghost",
    ]
    ghost = data["packages"][3]
    assert ghost["category"] == "unknown"
    assert ghost["age_days"] is None
    old = data["packages"][1]
    assert old["category"] == "old"
    assert old["age_reduction_days"] == 770
    assert old["installed_release_date"] == "2022-10-24T00:00:00+00:00"


def test_json_summary() -> None:
    summary = json.loads(render_json(_report()))["summary"]

    assert summary["total_packages"] == 4
    assert summary["distribution"] == {"current": 1, "medium": 1, "old": 1, "unknown": 1}
    assert summary["critical_count"] == 1
    assert summary["has_critical"] is True
    assert summary["health_score"] == 50.0
    assert summary["average_age_days"] == 353
    assert summary["potential_age_reduction_days"] == 385


def test_github_report_sorts_oldest_first_and_escapes_pipes() -> None:
    markdown = render_github(_report())

    assert markdown.startswith("## 🔴 Dependency Age Report\n")
    assert "| **Critical Packages** | ⚠️ 1 |" in markdown
    assert "> **⚠️ Warning:** Critical packages found!" in markdown
    rows = [line for line in markdown.splitlines() if line.startswith("| `")]
    assert [row.split("`")[1] for row in rows] == [
        "acme/old",
        "acme/aging",
        "acme/fresh",
        "acme/ghost",
    ]
    assert "`1.0\\|beta`" in rows[0]
    assert "📈 2.1 years" in rows[0]
    assert "✅ Latest" in rows[2]
    assert rows[3].endswith("| Unknown | ⚪ | — | — |")


def test_github_report_for_no_packages() -> None:
    markdown = render_github(build_report([], reference=REFERENCE))

    assert "_No packages found to analyze._" in markdown


def test_table_report_shows_packages_and_summary() -> None:
    console, output = _console()

    render_table(_report(), console)

    text = output.getvalue()
    for header in ("Package", "Installed", "Age", "Rating", "Latest", "Impact", "Notes"):
        assert header in text
    assert "acme/ghost" in text
    assert "No release data" in text
    assert "Dev, Update available, Critical" in text
    assert "Dependency Age Summary" in text
    assert "Health score: 50.0% (needs attention)" in text


def test_render_report_dispatches_on_format() -> None:
    console, output = _console()

    render_report(_report(), OutputFormat.JSON, console)

    assert json.loads(output.getvalue())["summary"]["total_packages"] == 4


def test_github_report_lists_unknown_ages_after_todays_releases() -> None:
    report = build_report(
        [analysed("acme/ghost", "0.1.0", None), analysed("acme/today", "1.0.0", 0)],
        reference=REFERENCE,
    )

    rows = [line for line in render_github(report).splitlines() if line.startswith("| `")]

    assert [row.split("`")[1] for row in rows] == ["acme/today", "acme/ghost"]
