from __future__ import annotations

from datetime import date

from src.backend.dashboard.use_cases.record_mapper import (
    ACTIVE_SCHEMA,
    ViolationStatus,
    rows_to_violations,
)
from src.backend.dashboard.use_cases.violation_filters import TimeFilter, filter_violations
from src.backend.tests.fakes import active_row

TODAY = date(2025, 3, 31)

VIOLATIONS = rows_to_violations(
    [
        active_row("V-1", flagged="2025-03-29", asin="B0RECENT", title="Garden Hose"),
        active_row("V-2", flagged="2025-03-10", asin="B0MONTH", title="Kitchen Scale", status="Submitted"),
        active_row("V-3", flagged="2024-12-01", asin="B0OLD", title="Hose Reel"),
        active_row("V-4", flagged="", asin="B0NODATE", title="Mystery"),
    ],
    ACTIVE_SCHEMA,
)


def _ids(violations) -> list[str]:
    return [v.id for v in violations]


def test_all_returns_everything() -> None:
    assert _ids(filter_violations(VIOLATIONS, today=TODAY)) == ["V-1", "V-2", "V-3", "V-4"]


def test_time_windows_use_flagged_date() -> None:
    assert _ids(filter_violations(VIOLATIONS, time_filter=TimeFilter.LAST_7_DAYS, today=TODAY)) == ["V-1"]
    assert _ids(filter_violations(VIOLATIONS, time_filter=TimeFilter.LAST_30_DAYS, today=TODAY)) == [
        "V-1",
        "V-2",
    ]


def test_status_and_search_combine() -> None:
    assert _ids(filter_violations(VIOLATIONS, status=ViolationStatus.SUBMITTED)) == ["V-2"]
    assert _ids(filter_violations(VIOLATIONS, search="hose")) == ["V-1", "V-3"]
    assert _ids(filter_violations(VIOLATIONS, search=" b0old ")) == ["V-3"]
    assert _ids(
        filter_violations(VIOLATIONS, time_filter=TimeFilter.LAST_30_DAYS, search="hose", today=TODAY)
    ) == ["V-1"]
