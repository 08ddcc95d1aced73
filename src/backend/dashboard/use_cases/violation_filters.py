"""In-memory filtering of already-fetched violations."""

from __future__ import annotations

from datetime import date, timedelta
from enum import Enum
from typing import Iterable

from src.backend.dashboard.use_cases.record_mapper import Violation, ViolationStatus


class TimeFilter(str, Enum):
    ALL = "all"
    LAST_7_DAYS = "7days"
    LAST_30_DAYS = "30days"


_WINDOW_DAYS = {TimeFilter.LAST_7_DAYS: 7, TimeFilter.LAST_30_DAYS: 30}


def filter_violations(
    violations: Iterable[Violation],
    *,
    time_filter: TimeFilter = TimeFilter.ALL,
    status: ViolationStatus | None = None,
    search: str = "",
    today: date | None = None,
) -> list[Violation]:
    """Filter by flagged-date window, exact status, and ASIN/title substring.

    Violations without a parseable flagged date fall outside any time window.
    """

    filtered = list(violations)

    if time_filter is not TimeFilter.ALL:
        cutoff = (today or date.today()) - timedelta(days=_WINDOW_DAYS[time_filter])
        filtered = [v for v in filtered if v.flagged_date is not None and v.flagged_date >= cutoff]

    if status is not None:
        filtered = [v for v in filtered if v.status == status]

    needle = search.strip().lower()
    if needle:
        filtered = [
            v
            for v in filtered
            if needle in v.product_ref.lower() or needle in v.title.lower()
        ]

    return filtered
