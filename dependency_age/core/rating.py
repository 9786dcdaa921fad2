from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass
from datetime import datetime
from enum import StrEnum, auto

from dependency_age.core.age import (
    DAYS_PER_YEAR,
    age_reduction,
    format_age,
    latest_age,
    package_age,
    round_half_up,
    utc_now,
)
from dependency_age.core.models import AnalysedPackage


class AgeCategory(StrEnum):
    @staticmethod
    def _generate_next_value_(
        name: str, start: int, count: int, last_values: list[str]
    ) -> str:
        return name.lower()

    CURRENT = auto()
    MEDIUM = auto()
    OLD = auto()
    UNKNOWN = auto()

    @property
    def emoji(self) -> str:
        return _CATEGORY_EMOJI[self]

    @property
    def label(self) -> str:
        return _CATEGORY_LABELS[self]


_CATEGORY_EMOJI: dict[AgeCategory, str] = {
    AgeCategory.CURRENT: "🟢",
    AgeCategory.MEDIUM: "🟡",
    AgeCategory.OLD: "🔴",
    AgeCategory.UNKNOWN: "⚪",
}

_CATEGORY_LABELS: dict[AgeCategory, str] = {
    AgeCategory.CURRENT: "Current",
    AgeCategory.MEDIUM: "Outdated",
    AgeCategory.OLD: "Critical",
    AgeCategory.UNKNOWN: "Unknown",
}

KNOWN_CATEGORIES = (AgeCategory.CURRENT, AgeCategory.MEDIUM, AgeCategory.OLD)


def years_to_days(years: float) -> int:
    return int(round_half_up(years * DAYS_PER_YEAR))


@dataclass(frozen=True, slots=True)
class Thresholds:
    """Category boundaries in years. Boundaries are inclusive."""

    current: float = 0.5
    medium: float = 1.0
    old: float = 2.0

    @property
    def current_days(self) -> int:
        return years_to_days(self.current)

    @property
    def medium_days(self) -> int:
        return years_to_days(self.medium)

    @property
    def old_days(self) -> int:
        return years_to_days(self.old)

    def errors(self) -> list[str]:
        errors: list[str] = []
        for key in ("current", "medium", "old"):
            if getattr(self, key) < 0:
                errors.append(f"Threshold {key} must be a positive number")
        if self.current >= self.medium:
            errors.append("Current threshold must be less than medium threshold")
        if self.medium >= self.old:
            errors.append("Medium threshold must be less than old threshold")
        return errors


DEFAULT_THRESHOLDS = Thresholds()


def categorize(age_days: int | None, thresholds: Thresholds = DEFAULT_THRESHOLDS) -> AgeCategory:
    if age_days is None:
        return AgeCategory.UNKNOWN
    if age_days <= thresholds.current_days:
        return AgeCategory.CURRENT
    if age_days <= thresholds.medium_days:
        return AgeCategory.MEDIUM
    return AgeCategory.OLD


@dataclass(frozen=True, slots=True)
class PackageRating:
    package: AnalysedPackage
    category: AgeCategory
    age_days: int | None
    latest_age_days: int | None
    reduction_days: int | None

    @property
    def age_formatted(self) -> str:
        return format_age(self.age_days) if self.age_days is not None else "Unknown"

    @property
    def has_update(self) -> bool:
        return (
            self.package.latest_version is not None
            and self.package.latest_version != self.package.version
        )


def rate_package(
    package: AnalysedPackage,
    thresholds: Thresholds = DEFAULT_THRESHOLDS,
    reference: datetime | None = None,
) -> PackageRating:
    reference = reference or utc_now()
    age = package_age(package, reference)
    return PackageRating(
        package=package,
        category=categorize(age, thresholds),
        age_days=age,
        latest_age_days=latest_age(package, reference),
        reduction_days=age_reduction(package, reference),
    )


def rate_packages(
    packages: Sequence[AnalysedPackage],
    thresholds: Thresholds = DEFAULT_THRESHOLDS,
    reference: datetime | None = None,
) -> list[PackageRating]:
    reference = reference or utc_now()
    return [rate_package(package, thresholds, reference) for package in packages]


@dataclass(frozen=True, slots=True)
class RatingSummary:
    total_packages: int
    distribution: dict[AgeCategory, int]
    percentages: dict[AgeCategory, float]
    dominant_category: AgeCategory
    dominant_count: int
    dominant_percentage: float
    health_score: float

    @property
    def critical_count(self) -> int:
        return self.distribution[AgeCategory.OLD]

    @property
    def has_critical(self) -> bool:
        return self.critical_count > 0

    @property
    def overall_rating(self) -> str:
        if self.percentages[AgeCategory.CURRENT] >= 70:
            return "mostly current"
        if self.percentages[AgeCategory.OLD] >= 30:
            return "needs attention"
        return "moderately current"


def summarize(ratings: Sequence[PackageRating]) -> RatingSummary:
    distribution = {category: 0 for category in AgeCategory}
    for rating in ratings:
        distribution[rating.category] += 1

    total = len(ratings)
    known = total - distribution[AgeCategory.UNKNOWN]
    unknown_percentage = (
        round_half_up(distribution[AgeCategory.UNKNOWN] / total * 100, 1) if total else 0.0
    )

    if known == 0:
        return RatingSummary(
            total_packages=total,
            distribution=distribution,
            percentages={
                AgeCategory.CURRENT: 0.0,
                AgeCategory.MEDIUM: 0.0,
                AgeCategory.OLD: 0.0,
                AgeCategory.UNKNOWN: unknown_percentage,
            },
            dominant_category=AgeCategory.UNKNOWN,
            dominant_count=distribution[AgeCategory.UNKNOWN],
            dominant_percentage=unknown_percentage,
            health_score=0.0,
        )

    percentages = {
        category: round_half_up(distribution[category] / known * 100, 1)
        for category in KNOWN_CATEGORIES
    }
    percentages[AgeCategory.UNKNOWN] = unknown_percentage

    # first category wins ties
    dominant = max(KNOWN_CATEGORIES, key=lambda category: distribution[category])
    health_score = (
        distribution[AgeCategory.CURRENT] + 0.5 * distribution[AgeCategory.MEDIUM]
    ) / known * 100

    return RatingSummary(
        total_packages=total,
        distribution=distribution,
        percentages=percentages,
        dominant_category=dominant,
        dominant_count=distribution[dominant],
        dominant_percentage=percentages[dominant],
        health_score=round_half_up(health_score, 1),
    )
