from __future__ import annotations

from dependency_age.core.age import format_age, round_half_up
from dependency_age.core.rating import AgeCategory, PackageRating
from dependency_age.core.report import AgeReport

NO_DATA = "—"


def escape_markdown(text: str) -> str:
    return text.replace("|", "\\|").replace("\r", " ").replace("\n", " ")


def health_emoji(health_score: float) -> str:
    if health_score >= 90:
        return "🟢"
    if health_score >= 70:
        return "🟡"
    return "🔴"


def _rating_cell(rating: PackageRating) -> str:
    if rating.category is AgeCategory.UNKNOWN:
        return rating.category.emoji
    return f"{rating.category.emoji} {rating.category.label}"


def _latest_cells(rating: PackageRating) -> tuple[str, str]:
    package = rating.package
    if package.latest_version is None or rating.latest_age_days is None:
        return NO_DATA, NO_DATA

    latest = f"`{escape_markdown(package.latest_version)}`"
    if rating.reduction_days:
        return latest, f"📈 {format_age(rating.reduction_days)}"
    if package.version == package.latest_version:
        return latest, "✅ Latest"
    return latest, NO_DATA


def format_package_row(rating: PackageRating) -> str:
    latest, improvement = _latest_cells(rating)
    cells = (
        f"`{escape_markdown(rating.package.name)}`",
        f"`{escape_markdown(rating.package.version)}`",
        rating.age_formatted,
        _rating_cell(rating),
        latest,
        improvement,
    )
    return f"| {' | '.join(cells)} |"


def _summary_section(report: AgeReport) -> list[str]:
    summary = report.summary
    average = report.statistics.average_age_days
    average_days = int(round_half_up(average)) if average is not None else 0

    lines = [
        "### 📊 Summary",
        "",
        "| Metric | Value |",
        "|--------|-------|",
        f"| **Total Packages** | {summary.total_packages} |",
        f"| **Health Score** | {summary.health_score:.1f}% |",
        f"| **Average Age** | {format_age(average_days) if average_days else '0 days'} |",
    ]
    if summary.critical_count:
        lines.append(f"| **Critical Packages** | ⚠️ {summary.critical_count} |")
    lines.append("")
    if summary.has_critical:
        lines.extend(
            [
                "> **⚠️ Warning:** Critical packages found! "
                "Consider updating these dependencies.",
                "",
            ]
        )
    return lines


def render_github(report: AgeReport) -> str:
    if report.is_empty:
        return "## 📦 Dependency Age Report\n\n_No packages found to analyze._\n"

    lines = [
        f"## {health_emoji(report.summary.health_score)} Dependency Age Report",
        "",
        *_summary_section(report),
        "### 📋 Package Details",
        "",
        "| Package | Installed | Age | Rating | Latest | Improvement |",
        "|---------|-----------|-----|--------|--------|-------------|",
    ]
    # oldest first, unknown ages last
    ordered = sorted(
        report.ratings,
        key=lambda rating: (rating.age_days is None, -(rating.age_days or 0)),
    )
    lines.extend(format_package_row(rating) for rating in ordered)
    lines.extend(["", "---", ""])
    return "\n".join(lines) + "\n"
