from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass
from datetime import datetime

from dependency_age.core.age import (
    DAYS_PER_YEAR,
    AgeStatistics,
    calculate_statistics,
    utc_now,
)
from dependency_age.core.models import AnalysedPackage
from dependency_age.core.rating import (
    DEFAULT_THRESHOLDS,
    PackageRating,
    RatingSummary,
    Thresholds,
    rate_packages,
    summarize,
)


@dataclass(frozen=True, slots=True)
class AgeReport:
    ratings: list[PackageRating]
    summary: RatingSummary
    statistics: AgeStatistics
    thresholds: Thresholds
    reference: datetime

    @property
    def is_empty(self) -> bool:
        return not self.ratings

    @property
    def total_age_years(self) -> float:
        return self.statistics.total_age_days / DAYS_PER_YEAR


def build_report(
    packages: Sequence[AnalysedPackage],
    thresholds: Thresholds = DEFAULT_THRESHOLDS,
    reference: datetime | None = None,
) -> AgeReport:
    reference = reference or utc_now()
    ratings = rate_packages(packages, thresholds, reference)
    return AgeReport(
        ratings=ratings,
        summary=summarize(ratings),
        statistics=calculate_statistics(packages, reference),
        thresholds=thresholds,
        reference=reference,
    )
