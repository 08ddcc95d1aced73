"""Locate a violation's physical row by its id."""

from __future__ import annotations

from src.backend.dashboard.integrations.google_sheets_client import SheetsBackend, col_to_a1


def find_row_in(rows: list[list[str]], violation_id: str) -> int | None:
    """Return the 1-based row number of the first exact id match.

    `rows` is the id column as read from the sheet, header included. Cells are
    compared stripped, the same way ids are read when listing.
    """

    wanted = violation_id.strip()
    for offset, row in enumerate(rows[1:]):
        if row and row[0].strip() == wanted:
            return offset + 2
    return None


def find_row(
    backend: SheetsBackend,
    sheet_id: str,
    tab_name: str,
    violation_id: str,
    *,
    key_column: int = 0,
) -> int | None:
    """Scan the id column of an existing tab. Absent id is `None`, not an error."""

    if not (violation_id or "").strip():
        return None
    letter = col_to_a1(key_column)
    rows = backend.read_rows(sheet_id, tab_name, columns=f"{letter}:{letter}")
    return find_row_in(rows, violation_id)
