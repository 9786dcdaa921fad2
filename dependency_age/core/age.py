from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass
from datetime import UTC, datetime
import math
from statistics import median

from dependency_age.core.models import AnalysedPackage

SECONDS_PER_DAY = 86_400
DAYS_PER_YEAR = 365.25
DAYS_PER_MONTH = 30.44


def round_half_up(value: float, digits: int = 0) -> float:
    factor = 10**digits
    return math.floor(value * factor + 0.5) / factor


def utc_now() -> datetime:
    return datetime.now(UTC)


def age_in_days(released: datetime, reference: datetime | None = None) -> int:
    """Whole days between ``released`` and ``reference``, floored, never negative."""
    reference = reference or utc_now()
    seconds = (reference - released).total_seconds()
    return max(0, math.floor(seconds / SECONDS_PER_DAY))


def format_age(days: int) -> str:
    if days <= 0:
        return "today"
    if days == 1:
        return "1 day"
    if days < 28:
        return f"{days} days"
    if days < 56:
        weeks = int(round_half_up(days / 7))
        return "1 week" if weeks == 1 else f"{weeks} weeks"
    if days < 365:
        months = int(round_half_up(days / DAYS_PER_MONTH))
        return "1 month" if months == 1 else f"{months} months"

    years = days / DAYS_PER_YEAR
    if years < 2:
        return f"{round_half_up(years, 1):.1f} years"
    if abs(years - round_half_up(years)) < 0.05:
        return f"{int(round_half_up(years))} years"
    return f"{round_half_up(years, 1):.1f} years"


def package_age(package: AnalysedPackage, reference: datetime | None = None) -> int | None:
    if package.release_date is None:
        return None
    return age_in_days(package.release_date, reference)


def latest_age(package: AnalysedPackage, reference: datetime | None = None) -> int | None:
    if package.latest_release_date is None:
        return None
    return age_in_days(package.latest_release_date, reference)


def age_reduction(package: AnalysedPackage, reference: datetime | None = None) -> int | None:
    """Days of age an update to the latest release would remove."""
    current = package_age(package, reference)
    latest = latest_age(package, reference)
    if current is None or latest is None:
        return None
    return max(0, current - latest)


@dataclass(frozen=True, slots=True)
class AgeStatistics:
    count: int
    average_age_days: float | None = None
    median_age_days: float | None = None
    oldest_age_days: int | None = None
    newest_age_days: int | None = None
    total_age_days: int = 0
    potential_reduction_days: float | None = None
    total_reduction_days: int | None = None

    @property
    def average_age_formatted(self) -> str | None:
        if self.average_age_days is None:
            return None
        return format_age(int(round_half_up(self.average_age_days)))


def calculate_statistics(
    packages: Sequence[AnalysedPackage], reference: datetime | None = None
) -> AgeStatistics:
    reference = reference or utc_now()
    ages: list[int] = []
    reductions: list[int] = []
    for package in packages:
        if (age := package_age(package, reference)) is None:
            continue
        ages.append(age)
        if (reduction := age_reduction(package, reference)) is not None:
            reductions.append(reduction)

    if not ages:
        return AgeStatistics(count=0)

    return AgeStatistics(
        count=len(ages),
        average_age_days=sum(ages) / len(ages),
        median_age_days=float(median(ages)),
        oldest_age_days=max(ages),
        newest_age_days=min(ages),
        total_age_days=sum(ages),
        potential_reduction_days=sum(reductions) / len(reductions) if reductions else None,
        total_reduction_days=sum(reductions) if reductions else None,
    )
