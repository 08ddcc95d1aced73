"""Row <-> record mapping for the violation tables.

The physical column layout of both logical tables lives here and nowhere else.
Each table is described by a `TableSchema` (an ordered list of `ColumnDef`),
so a change to a tenant sheet's layout is a single edit in this module.

No network calls here: functions accept already-fetched rows.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from datetime import date, datetime
from decimal import Decimal, InvalidOperation
from enum import Enum
from typing import Any, Iterable, Mapping

from src.backend.dashboard.integrations.google_sheets_client import col_to_a1


class ViolationTable(str, Enum):
    ACTIVE = "active"
    RESOLVED = "resolved"


class ViolationStatus(str, Enum):
    ASSESSING = "Assessing"
    WORKING = "Working"
    WAITING_ON_CLIENT = "Waiting on Client"
    SUBMITTED = "Submitted"
    REVIEW_RESOLVED = "Review Resolved"
    DENIED = "Denied"
    IGNORED = "Ignored"
    RESOLVED = "Resolved"
    ACKNOWLEDGED = "Acknowledged"


ACTIVE_STATUSES = frozenset(
    {
        ViolationStatus.ASSESSING,
        ViolationStatus.WORKING,
        ViolationStatus.WAITING_ON_CLIENT,
        ViolationStatus.SUBMITTED,
        ViolationStatus.ACKNOWLEDGED,
    }
)
RESOLVED_STATUSES = frozenset(
    {
        ViolationStatus.REVIEW_RESOLVED,
        ViolationStatus.DENIED,
        ViolationStatus.IGNORED,
        ViolationStatus.RESOLVED,
    }
)


class Impact(str, Enum):
    HIGH = "High"
    MEDIUM = "Medium"
    LOW = "Low"
    NO_IMPACT = "No impact"


class FieldKind(str, Enum):
    TEXT = "text"
    MONEY = "money"
    DATE = "date"
    DATETIME = "datetime"
    STATUS = "status"
    IMPACT = "impact"


@dataclass(frozen=True, slots=True)
class ColumnDef:
    field: str
    column: int
    kind: FieldKind = FieldKind.TEXT

    @property
    def letter(self) -> str:
        return col_to_a1(self.column)


@dataclass(frozen=True, slots=True)
class TableSchema:
    table: ViolationTable
    columns: tuple[ColumnDef, ...]
    default_status: ViolationStatus

    def column_for(self, field_name: str) -> ColumnDef | None:
        for col in self.columns:
            if col.field == field_name:
                return col
        return None

    @property
    def field_names(self) -> frozenset[str]:
        return frozenset(c.field for c in self.columns)

    @property
    def width(self) -> int:
        return max(c.column for c in self.columns) + 1

    @property
    def read_range(self) -> str:
        return f"A:{col_to_a1(self.width - 1)}"

    @property
    def key_column(self) -> ColumnDef:
        return self.columns[0]


_SHARED_COLUMNS = (
    ColumnDef("id", 0),
    ColumnDef("imported_at", 1, FieldKind.DATETIME),
    ColumnDef("reason", 2),
    ColumnDef("flagged_date", 3, FieldKind.DATE),
    ColumnDef("product_ref", 4),
    ColumnDef("title", 5),
    ColumnDef("at_risk_amount", 6, FieldKind.MONEY),
    ColumnDef("action_taken", 7),
    ColumnDef("impact", 8, FieldKind.IMPACT),
    ColumnDef("next_steps", 9),
    ColumnDef("options", 10),
    ColumnDef("status", 11, FieldKind.STATUS),
    ColumnDef("notes", 12),
)

# Column N is unused on the active tab; documents needed sit in column O.
ACTIVE_SCHEMA = TableSchema(
    table=ViolationTable.ACTIVE,
    columns=_SHARED_COLUMNS + (ColumnDef("documents_needed", 14),),
    default_status=ViolationStatus.ASSESSING,
)

RESOLVED_SCHEMA = TableSchema(
    table=ViolationTable.RESOLVED,
    columns=_SHARED_COLUMNS + (ColumnDef("resolved_date", 13, FieldKind.DATE),),
    default_status=ViolationStatus.RESOLVED,
)

SCHEMAS: dict[ViolationTable, TableSchema] = {
    ViolationTable.ACTIVE: ACTIVE_SCHEMA,
    ViolationTable.RESOLVED: RESOLVED_SCHEMA,
}


def schema_for(table: ViolationTable | str) -> TableSchema:
    return SCHEMAS[ViolationTable(table)]


@dataclass(frozen=True, slots=True)
class Violation:
    id: str
    row_number: int
    imported_at: datetime | None
    reason: str
    flagged_date: date | None
    product_ref: str
    title: str
    at_risk_amount: Decimal
    action_taken: str
    impact: Impact
    next_steps: str
    options: str
    status: ViolationStatus
    notes: str
    resolved_date: date | None = None
    documents_needed: str | None = None

    @property
    def documents_needed_list(self) -> list[str]:
        return parse_document_tags(self.documents_needed)


# ---------------------------------------------------------------------------
# Cell parsing
# ---------------------------------------------------------------------------

_STATUS_ALIASES: dict[str, ViolationStatus] = {
    "assessing": ViolationStatus.ASSESSING,
    "working": ViolationStatus.WORKING,
    "waiting on client": ViolationStatus.WAITING_ON_CLIENT,
    "waiting": ViolationStatus.WAITING_ON_CLIENT,
    "submitted": ViolationStatus.SUBMITTED,
    "review resolved": ViolationStatus.REVIEW_RESOLVED,
    "denied": ViolationStatus.DENIED,
    "ignored": ViolationStatus.IGNORED,
    "resolved": ViolationStatus.RESOLVED,
    "acknowledged": ViolationStatus.ACKNOWLEDGED,
}

_DATETIME_FORMATS = (
    "%Y-%m-%d %H:%M:%S",
    "%Y-%m-%d %H:%M",
    "%m/%d/%Y %H:%M:%S",
    "%m/%d/%Y %H:%M",
)
_DATE_FORMATS = (
    "%Y-%m-%d",
    "%m/%d/%Y",
    "%m/%d/%y",
    "%b %d, %Y",
    "%B %d, %Y",
    "%d %b %Y",
)


def parse_status(value: str | None, default: ViolationStatus) -> ViolationStatus:
    key = (value or "").strip().lower()
    return _STATUS_ALIASES.get(key, default)


def parse_impact(value: str | None) -> Impact:
    s = (value or "").strip().lower()
    if "high" in s:
        return Impact.HIGH
    if "medium" in s:
        return Impact.MEDIUM
    if "low" in s:
        return Impact.LOW
    return Impact.NO_IMPACT


def parse_money(value: str | None) -> Decimal | None:
    """Parse currency strings like "$1,234.50" or "(12.00)" into Decimal."""

    if value is None:
        return None

    s = str(value).strip()
    if s == "" or s.lower() in {"-", "n/a", "na"}:
        return None

    negative = False
    if s.startswith("(") and s.endswith(")"):
        negative = True
        s = s[1:-1].strip()

    s = re.sub(r"[^0-9.\-]", "", s)
    if s in {"", "-", "."}:
        return None

    try:
        d = Decimal(s)
    except InvalidOperation:
        return None
    return -d if negative else d


def parse_datetime(value: str | None) -> datetime | None:
    s = (value or "").strip()
    if not s:
        return None
    try:
        return datetime.fromisoformat(s.replace("Z", "+00:00"))
    except ValueError:
        pass
    for fmt in _DATETIME_FORMATS + _DATE_FORMATS:
        try:
            return datetime.strptime(s, fmt)
        except ValueError:
            continue
    return None


def parse_date(value: str | None) -> date | None:
    parsed = parse_datetime(value)
    return parsed.date() if parsed else None


def parse_document_tags(value: str | None) -> list[str]:
    if not value:
        return []
    return [tag.strip() for tag in value.split(",") if tag.strip()]


# ---------------------------------------------------------------------------
# Cell formatting (write side)
# ---------------------------------------------------------------------------


def format_money(value: Decimal) -> str:
    sign = "-" if value < 0 else ""
    return f"{sign}${abs(value):,.2f}"


def format_cell(kind: FieldKind, value: Any) -> str:
    """Render a typed value as the literal the sheet expects."""

    if value is None:
        return ""
    if kind is FieldKind.MONEY:
        return format_money(Decimal(str(value)))
    if kind is FieldKind.DATE:
        if isinstance(value, datetime):
            value = value.date()
        return value.isoformat() if isinstance(value, date) else str(value)
    if kind is FieldKind.DATETIME:
        return value.strftime("%Y-%m-%d %H:%M:%S") if isinstance(value, datetime) else str(value)
    if isinstance(value, Enum):
        return str(value.value)
    if isinstance(value, (list, tuple)):
        return ", ".join(str(v).strip() for v in value if str(v).strip())
    return str(value)


# ---------------------------------------------------------------------------
# Row <-> record
# ---------------------------------------------------------------------------


def cell(row: list[str], index: int) -> str:
    """Return the cell at `index`, treating missing trailing cells as empty."""

    if index < len(row) and row[index] is not None:
        return str(row[index])
    return ""


def is_blank_row(row: list[str], schema: TableSchema) -> bool:
    key = cell(row, schema.key_column.column).strip()
    product = cell(row, schema.column_for("product_ref").column).strip()
    return not key and not product


def row_to_violation(row: list[str], schema: TableSchema, row_number: int) -> Violation:
    values: dict[str, str] = {c.field: cell(row, c.column) for c in schema.columns}

    record_id = values["id"].strip() or f"gen-{row_number}"
    amount = parse_money(values["at_risk_amount"])
    resolved_col = schema.column_for("resolved_date")
    documents_col = schema.column_for("documents_needed")

    return Violation(
        id=record_id,
        row_number=row_number,
        imported_at=parse_datetime(values["imported_at"]),
        reason=values["reason"],
        flagged_date=parse_date(values["flagged_date"]),
        product_ref=values["product_ref"],
        title=values["title"],
        at_risk_amount=amount if amount is not None else Decimal("0"),
        action_taken=values["action_taken"],
        impact=parse_impact(values["impact"]),
        next_steps=values["next_steps"],
        options=values["options"],
        status=parse_status(values["status"], schema.default_status),
        notes=values["notes"],
        resolved_date=parse_date(values["resolved_date"]) if resolved_col else None,
        documents_needed=(values["documents_needed"] or None) if documents_col else None,
    )


def rows_to_violations(rows: Iterable[list[str]], schema: TableSchema) -> list[Violation]:
    """Map data rows (header excluded) to records, skipping blank rows.

    Row numbers are 1-based and account for the header row.
    """

    out: list[Violation] = []
    for offset, row in enumerate(rows):
        if not row or is_blank_row(row, schema):
            continue
        out.append(row_to_violation(row, schema, row_number=offset + 2))
    return out


def update_cells(schema: TableSchema, fields: Mapping[str, Any]) -> dict[str, str]:
    """Map a sparse field assignment to {column letter: literal}.

    Raises KeyError naming the first field the table does not carry.
    """

    cells: dict[str, str] = {}
    for name, value in fields.items():
        col = schema.column_for(name)
        if col is None:
            raise KeyError(name)
        cells[col.letter] = format_cell(col.kind, value)
    return cells


def remap_row(
    row: list[str],
    from_schema: TableSchema,
    to_schema: TableSchema,
    overrides: Mapping[str, Any] | None = None,
) -> list[str]:
    """Copy a raw row into another table's layout.

    Cells are copied verbatim by field name; only `overrides` are re-rendered.
    Fields the target table does not carry are dropped.
    """

    out = [""] * to_schema.width
    for col in to_schema.columns:
        src = from_schema.column_for(col.field)
        if src is not None:
            out[col.column] = cell(row, src.column)
    for name, value in (overrides or {}).items():
        col = to_schema.column_for(name)
        if col is not None:
            out[col.column] = format_cell(col.kind, value)
    return out
