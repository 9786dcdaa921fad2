from __future__ import annotations

from rich import box
from rich.console import Console, Group
from rich.table import Table
from rich.text import Text

from dependency_age.core.age import format_age, round_half_up
from dependency_age.core.rating import AgeCategory, PackageRating
from dependency_age.core.report import AgeReport

SUMMARY_TITLE = "Dependency Age Summary"

CATEGORY_STYLES: dict[AgeCategory, str] = {
    AgeCategory.CURRENT: "green",
    AgeCategory.MEDIUM: "yellow",
    AgeCategory.OLD: "red",
    AgeCategory.UNKNOWN: "dim",
}


def _notes(rating: PackageRating) -> str:
    notes: list[str] = []
    if rating.package.is_dev:
        notes.append("Dev")
    if rating.category is AgeCategory.UNKNOWN:
        notes.append("No release data")
    elif rating.has_update:
        notes.append("Update available")
    if rating.category is AgeCategory.OLD:
        notes.append("Critical")
    return ", ".join(notes) or "-"


def _impact(rating: PackageRating) -> str:
    if not rating.reduction_days:
        return "-"
    return f"-{format_age(rating.reduction_days)}"


def build_package_table(report: AgeReport) -> Table:
    table = Table(box=box.SIMPLE_HEAD, header_style="bold")
    for header in ("Package", "Installed", "Age", "Rating", "Latest", "Impact", "Notes"):
        table.add_column(header)

    for rating in report.ratings:
        style = CATEGORY_STYLES[rating.category]
        table.add_row(
            rating.package.name,
            rating.package.version,
            rating.age_formatted,
            Text(f"{rating.category.emoji} {rating.category.label}", style=style),
            rating.package.latest_version or "-",
            _impact(rating),
            _notes(rating),
        )
    return table


def summary_lines(report: AgeReport) -> list[Text]:
    summary = report.summary
    statistics = report.statistics
    lines = [
        Text(SUMMARY_TITLE, style="bold"),
        Text("=" * len(SUMMARY_TITLE)),
        Text(f"Total packages: {summary.total_packages}"),
    ]
    for category in (AgeCategory.CURRENT, AgeCategory.MEDIUM, AgeCategory.OLD):
        lines.append(
            Text(
                f"{category.emoji} {category.label}: "
                f"{summary.distribution[category]} "
                f"({summary.percentages[category]:.1f}%)",
                style=CATEGORY_STYLES[category],
            )
        )
    if unknown := summary.distribution[AgeCategory.UNKNOWN]:
        lines.append(
            Text(
                f"{AgeCategory.UNKNOWN.emoji} {AgeCategory.UNKNOWN.label}: {unknown} "
                f"({summary.percentages[AgeCategory.UNKNOWN]:.1f}%)",
                style=CATEGORY_STYLES[AgeCategory.UNKNOWN],
            )
        )

    lines.append(
        Text(f"Health score: {summary.health_score:.1f}% ({summary.overall_rating})")
    )
    if statistics.count:
        lines.append(Text(f"Average age: {statistics.average_age_formatted}"))
        lines.append(Text(f"Oldest package: {format_age(statistics.oldest_age_days or 0)}"))
        lines.append(Text(f"Newest package: {format_age(statistics.newest_age_days or 0)}"))
    if statistics.potential_reduction_days:
        reduction = int(round_half_up(statistics.potential_reduction_days))
        lines.append(Text(f"Potential age reduction: {format_age(reduction)} per package"))
    return lines


def render_table(report: AgeReport, console: Console) -> None:
    if report.is_empty:
        console.print("No packages found.")
        return
    console.print(build_package_table(report))
    console.print(Group(*summary_lines(report)))
