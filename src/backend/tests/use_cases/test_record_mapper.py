from __future__ import annotations

from datetime import date, datetime
from decimal import Decimal

import pytest

from src.backend.dashboard.use_cases.record_mapper import (
    ACTIVE_SCHEMA,
    RESOLVED_SCHEMA,
    FieldKind,
    Impact,
    ViolationStatus,
    format_cell,
    parse_money,
    parse_status,
    remap_row,
    rows_to_violations,
    update_cells,
)
from src.backend.tests.fakes import active_row


def test_schemas_cover_expected_columns() -> None:
    assert ACTIVE_SCHEMA.read_range == "A:O"
    assert RESOLVED_SCHEMA.read_range == "A:N"
    assert ACTIVE_SCHEMA.column_for("documents_needed").letter == "O"
    assert ACTIVE_SCHEMA.column_for("resolved_date") is None
    assert RESOLVED_SCHEMA.column_for("resolved_date").letter == "N"
    assert RESOLVED_SCHEMA.column_for("documents_needed") is None
    assert ACTIVE_SCHEMA.column_for("status").letter == "L"


def test_parse_money() -> None:
    assert parse_money("$1,234.50") == Decimal("1234.50")
    assert parse_money("(12.00)") == Decimal("-12.00")
    assert parse_money("n/a") is None
    assert parse_money("") is None
    assert parse_money(None) is None


def test_parse_status_falls_back_to_table_default() -> None:
    assert parse_status("waiting on client", ViolationStatus.ASSESSING) is ViolationStatus.WAITING_ON_CLIENT
    assert parse_status("  Denied ", ViolationStatus.ASSESSING) is ViolationStatus.DENIED
    assert parse_status("", ViolationStatus.ASSESSING) is ViolationStatus.ASSESSING
    assert parse_status("???", ViolationStatus.RESOLVED) is ViolationStatus.RESOLVED


def test_format_cell() -> None:
    assert format_cell(FieldKind.MONEY, Decimal("1234.5")) == "$1,234.50"
    assert format_cell(FieldKind.DATE, date(2025, 3, 9)) == "2025-03-09"
    assert format_cell(FieldKind.DATETIME, datetime(2025, 3, 9, 8, 5)) == "2025-03-09 08:05:00"
    assert format_cell(FieldKind.STATUS, ViolationStatus.SUBMITTED) == "Submitted"
    assert format_cell(FieldKind.IMPACT, Impact.NO_IMPACT) == "No impact"
    assert format_cell(FieldKind.TEXT, ["Invoice", " ", "LOA"]) == "Invoice, LOA"
    assert format_cell(FieldKind.TEXT, None) == ""


def test_rows_to_violations_tolerates_short_rows_and_blanks() -> None:
    rows = [
        active_row("V-1", docs="Invoice, LOA"),
        [],
        ["", "", "", "", ""],
        ["V-3", "", "Policy", "01/15/2025", "B0SHORT"],
        ["", "", "No id", "", "B0NOID"],
    ]

    violations = rows_to_violations(rows, ACTIVE_SCHEMA)

    assert [v.id for v in violations] == ["V-1", "V-3", "gen-6"]
    assert [v.row_number for v in violations] == [2, 5, 6]

    first = violations[0]
    assert first.at_risk_amount == Decimal("1234.50")
    assert first.impact is Impact.HIGH
    assert first.status is ViolationStatus.WORKING
    assert first.imported_at == datetime(2025, 1, 2, 9, 30)
    assert first.documents_needed_list == ["Invoice", "LOA"]

    short = violations[1]
    assert short.flagged_date == date(2025, 1, 15)
    assert short.title == ""
    assert short.at_risk_amount == Decimal("0")
    assert short.impact is Impact.NO_IMPACT
    assert short.status is ViolationStatus.ASSESSING
    assert short.documents_needed is None


def test_update_cells_only_touches_supplied_fields() -> None:
    cells = update_cells(
        ACTIVE_SCHEMA,
        {"status": ViolationStatus.SUBMITTED, "notes": "sent POA", "at_risk_amount": Decimal("10")},
    )
    assert cells == {"L": "Submitted", "M": "sent POA", "G": "$10.00"}


def test_update_cells_rejects_field_the_table_lacks() -> None:
    with pytest.raises(KeyError):
        update_cells(ACTIVE_SCHEMA, {"resolved_date": date(2025, 1, 1)})


def test_remap_row_preserves_raw_cells() -> None:
    row = active_row("V-9", amount="1234.5", flagged="1/2/2025", docs="Invoice")

    out = remap_row(
        row,
        ACTIVE_SCHEMA,
        RESOLVED_SCHEMA,
        {"status": ViolationStatus.RESOLVED, "resolved_date": date(2025, 2, 1)},
    )

    assert len(out) == 14
    assert out[0] == "V-9"
    assert out[3] == "1/2/2025"
    assert out[6] == "1234.5"
    assert out[11] == "Resolved"
    assert out[13] == "2025-02-01"
    assert "Invoice" not in out
