from __future__ import annotations

from datetime import datetime
import json
from typing import Any

from dependency_age.core.age import format_age, round_half_up
from dependency_age.core.rating import PackageRating
from dependency_age.core.report import AgeReport


def _iso(value: datetime | None) -> str | None:
    return value.isoformat() if value is not None else None


def _format_days(days: int | None) -> str | None:
    return format_age(days) if days is not None else None


def package_to_dict(rating: PackageRating) -> dict[str, Any]:
    package = rating.package
    return {
        "name": package.name,
        "installed_version": package.version,
        "installed_release_date": _iso(package.release_date),
        "is_dev": package.is_dev,
        "is_direct": package.query.is_direct,
        "age_days": rating.age_days,
        "age_formatted": _format_days(rating.age_days),
        "category": rating.category.value,
        "latest_version": package.latest_version,
        "latest_release_date": _iso(package.latest_release_date),
        "latest_age_days": rating.latest_age_days,
        "latest_age_formatted": _format_days(rating.latest_age_days),
        "age_reduction_days": rating.reduction_days,
        "age_reduction_formatted": (
            format_age(rating.reduction_days) if rating.reduction_days else None
        ),
    }


def summary_to_dict(report: AgeReport) -> dict[str, Any]:
    summary = report.summary
    statistics = report.statistics
    average = (
        int(round_half_up(statistics.average_age_days))
        if statistics.average_age_days is not None
        else 0
    )
    reduction = (
        int(round_half_up(statistics.potential_reduction_days))
        if statistics.potential_reduction_days is not None
        else 0
    )
    return {
        "total_packages": summary.total_packages,
        "distribution": {
            category.value: count for category, count in summary.distribution.items()
        },
        "percentages": {
            category.value: value for category, value in summary.percentages.items()
        },
        "average_age_days": average,
        "average_age_formatted": format_age(average) if average else "0 days",
        "median_age_days": statistics.median_age_days,
        "oldest_age_days": statistics.oldest_age_days,
        "newest_age_days": statistics.newest_age_days,
        "critical_count": summary.critical_count,
        "potential_age_reduction_days": reduction,
        "potential_age_reduction_formatted": format_age(reduction) if reduction else "0 days",
        "health_score": summary.health_score,
        "overall_rating": summary.overall_rating,
        "has_critical": summary.has_critical,
    }


def report_to_dict(report: AgeReport) -> dict[str, Any]:
    return {
        "generated_at": report.reference.isoformat(),
        "thresholds": {
            "current": report.thresholds.current,
            "medium": report.thresholds.medium,
            "old": report.thresholds.old,
        },
        "summary": summary_to_dict(report),
        "packages": [package_to_dict(rating) for rating in report.ratings],
    }


def render_json(report: AgeReport) -> str:
    return json.dumps(report_to_dict(report), indent=4, ensure_ascii=False) + "\n"
