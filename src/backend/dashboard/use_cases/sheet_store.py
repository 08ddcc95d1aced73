"""Tenant-scoped access to violation records stored in Google Sheets.

The store composes the tab resolver, the row locator and the record mapper.
It is the only component that turns logical fields into physical cells.

Consistency model
- No cross-row transactions. Each call reads fresh data; nothing is cached.
- A tab name resolved at the start of a call is used for the whole call.
- Moving a record between tables is copy-then-delete. A failure between the
  two phases leaves the record in both tables (duplicated, never lost), and
  both phases are idempotent by id so a retry or reconciliation pass can
  finish the move.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from datetime import date, datetime, timedelta
from decimal import Decimal
from typing import Any, Callable, Mapping

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from src.backend.common.models.errors import (
    DashboardError,
    ForbiddenError,
    InvalidRequestError,
    NotFoundError,
    TabNotFoundError,
)
from src.backend.dashboard.integrations.google_sheets_client import SheetsBackend
from src.backend.dashboard.integrations.tenant_directory import Tenant, TenantDirectory
from src.backend.dashboard.use_cases.record_mapper import (
    ACTIVE_STATUSES,
    RESOLVED_STATUSES,
    Impact,
    TableSchema,
    Violation,
    ViolationStatus,
    ViolationTable,
    cell,
    parse_date,
    parse_impact,
    parse_status,
    remap_row,
    rows_to_violations,
    schema_for,
    update_cells,
)
from src.backend.dashboard.use_cases.row_locator import find_row, find_row_in
from src.backend.dashboard.use_cases.tab_resolver import SheetLayout, TabResolution, resolve_tab

logger = logging.getLogger(__name__)

DETAILED_METRICS_CONCURRENCY = 5


class ViolationUpdate(BaseModel):
    """Sparse field assignment for one violation. Unset or null fields are untouched."""

    model_config = ConfigDict(extra="forbid")

    reason: str | None = None
    flagged_date: date | None = None
    product_ref: str | None = None
    title: str | None = None
    at_risk_amount: Decimal | None = Field(default=None, ge=0)
    action_taken: str | None = None
    impact: Impact | None = None
    next_steps: str | None = None
    options: str | None = None
    status: ViolationStatus | None = None
    notes: str | None = None
    resolved_date: date | None = None
    documents_needed: str | list[str] | None = None

    @field_validator("status", mode="before")
    @classmethod
    def _lenient_status(cls, value: Any) -> Any:
        if isinstance(value, str):
            parsed = parse_status(value, default=None)  # type: ignore[arg-type]
            if parsed is None:
                raise ValueError(f"Unknown status: {value!r}")
            return parsed
        return value

    @field_validator("impact", mode="before")
    @classmethod
    def _lenient_impact(cls, value: Any) -> Any:
        return parse_impact(value) if isinstance(value, str) else value

    def fields(self) -> dict[str, Any]:
        return self.model_dump(exclude_unset=True, exclude_none=True)


def parse_update(payload: Mapping[str, Any] | None) -> ViolationUpdate:
    try:
        return ViolationUpdate.model_validate(dict(payload or {}))
    except ValidationError as e:
        first = e.errors()[0]
        where = ".".join(str(p) for p in first.get("loc", ()))
        raise InvalidRequestError(f"Invalid update {where}: {first.get('msg')}".strip()) from e


@dataclass(frozen=True, slots=True)
class ResolveOutcome:
    violation_id: str
    from_tab: str
    to_tab: str
    copied: bool
    removed_row: int | None
    resolved_date: date | None


@dataclass(frozen=True, slots=True)
class ClientOverview:
    store_name: str
    subdomain: str
    email: str
    sheet_url: str
    violations_48h: int
    violations_72h: int
    resolved_this_month: int
    resolved_total: int
    high_impact_count: int
    at_risk_sales: Decimal

    @classmethod
    def from_tenant(cls, tenant: Tenant) -> "ClientOverview":
        # Directory snapshot: 2-day and 7-day columns stand in for 48h / 72h.
        return cls(
            store_name=tenant.store_name,
            subdomain=tenant.subdomain,
            email=tenant.email,
            sheet_url=tenant.sheet_url,
            violations_48h=tenant.violations_last_2_days,
            violations_72h=tenant.violations_last_7_days,
            resolved_this_month=0,
            resolved_total=tenant.resolved_count,
            high_impact_count=tenant.high_impact_count,
            at_risk_sales=tenant.at_risk_sales,
        )


def _as_local_naive(value: datetime) -> datetime:
    return value.astimezone().replace(tzinfo=None) if value.tzinfo else value


class SheetStore:
    def __init__(
        self,
        *,
        backend: SheetsBackend,
        layout: SheetLayout,
        directory: TenantDirectory | None = None,
        clock: Callable[[], datetime] = datetime.now,
    ) -> None:
        self._backend = backend
        self._layout = layout
        self._directory = directory
        self._clock = clock

    # ------------------------------------------------------------------
    # Tab resolution
    # ------------------------------------------------------------------

    def resolve_tab(self, sheet_id: str, table: ViolationTable) -> TabResolution:
        return resolve_tab(self._backend, sheet_id, self._layout.aliases_for(table))

    def require_tab(self, sheet_id: str, table: ViolationTable) -> str:
        resolution = self.resolve_tab(sheet_id, table)
        if not resolution.found:
            raise TabNotFoundError(
                f"Could not find {ViolationTable(table).value} violations tab. "
                f"Tried: {', '.join(resolution.aliases)}"
            )
        return resolution.tab_name

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def list_violations(self, sheet_id: str, table: ViolationTable) -> list[Violation]:
        resolution = self.resolve_tab(sheet_id, table)
        if not resolution.found:
            return []

        schema = schema_for(table)
        rows = self._backend.read_rows(sheet_id, resolution.tab_name, columns=schema.read_range)
        if len(rows) < 2:
            logger.info("Tab %r exists but has no data rows", resolution.tab_name)
            return []

        violations = rows_to_violations(rows[1:], schema)
        logger.info(
            "Returning %d %s violations from %r",
            len(violations),
            schema.table.value,
            resolution.tab_name,
        )
        return violations

    def find_by_key(self, sheet_id: str, table: ViolationTable, violation_id: str) -> int | None:
        resolution = self.resolve_tab(sheet_id, table)
        if not resolution.found:
            return None
        return find_row(self._backend, sheet_id, resolution.tab_name, violation_id)

    # ------------------------------------------------------------------
    # Field updates
    # ------------------------------------------------------------------

    def apply_update(
        self,
        sheet_id: str,
        table: ViolationTable,
        violation_id: str,
        update: ViolationUpdate | Mapping[str, Any],
    ) -> list[str]:
        """Write only the supplied fields of one violation. Returns the field names written."""

        tab_name = self.require_tab(sheet_id, table)
        return self.update_in_tab(sheet_id, tab_name, table, violation_id, update)

    def update_in_tab(
        self,
        sheet_id: str,
        tab_name: str,
        table: ViolationTable,
        violation_id: str,
        update: ViolationUpdate | Mapping[str, Any],
    ) -> list[str]:
        if not violation_id:
            raise InvalidRequestError("Missing violation id")
        if not isinstance(update, ViolationUpdate):
            update = parse_update(update)

        schema = schema_for(table)
        fields = update.fields()
        if not fields:
            raise InvalidRequestError("No updates provided")
        try:
            cells = update_cells(schema, fields)
        except KeyError as e:
            raise InvalidRequestError(
                f"Field {e.args[0]!r} is not stored in the {schema.table.value} table"
            ) from e

        if "flagged_date" in fields or "resolved_date" in fields:
            rows = self._backend.read_rows(sheet_id, tab_name, columns=schema.read_range)
            row_number = find_row_in(rows, violation_id)
            if row_number is None:
                raise NotFoundError(f"Violation not found: {violation_id}")
            self._check_resolved_after_flagged(schema, rows[row_number - 1], fields)
        else:
            row_number = find_row(self._backend, sheet_id, tab_name, violation_id)
            if row_number is None:
                raise NotFoundError(f"Violation not found: {violation_id}")

        self._backend.update_cells(sheet_id, tab_name, row_number, cells)
        logger.info(
            "Updated violation %s in %r row %s: %s",
            violation_id,
            tab_name,
            row_number,
            ", ".join(fields),
        )
        return list(fields)

    @staticmethod
    def _check_resolved_after_flagged(
        schema: TableSchema, row: list[str], fields: Mapping[str, Any]
    ) -> None:
        if schema.column_for("resolved_date") is None:
            return
        flagged = fields.get("flagged_date") or parse_date(
            cell(row, schema.column_for("flagged_date").column)
        )
        resolved = fields.get("resolved_date") or parse_date(
            cell(row, schema.column_for("resolved_date").column)
        )
        if flagged and resolved and resolved < flagged:
            raise InvalidRequestError("resolved_date must not be earlier than flagged_date")

    # ------------------------------------------------------------------
    # Table moves (status transitions)
    # ------------------------------------------------------------------

    def resolve_record(
        self,
        sheet_id: str,
        violation_id: str,
        *,
        from_table: ViolationTable = ViolationTable.ACTIVE,
        to_table: ViolationTable = ViolationTable.RESOLVED,
    ) -> ResolveOutcome:
        """Move a violation between tables: copy into `to_table`, then delete from `from_table`."""

        from_tab = self.require_tab(sheet_id, from_table)
        to_tab = self.require_tab(sheet_id, to_table)

        copied, resolved_on = self.copy_to_table(
            sheet_id,
            violation_id,
            from_tab=from_tab,
            from_table=from_table,
            to_tab=to_tab,
            to_table=to_table,
        )
        try:
            removed_row = self.remove_from_table(sheet_id, from_tab, violation_id)
        except DashboardError:
            logger.error(
                "Violation %s is in %r but could not be removed from %r; "
                "left duplicated for reconciliation",
                violation_id,
                to_tab,
                from_tab,
            )
            raise

        logger.info("Moved violation %s from %r to %r", violation_id, from_tab, to_tab)
        return ResolveOutcome(
            violation_id=violation_id,
            from_tab=from_tab,
            to_tab=to_tab,
            copied=copied,
            removed_row=removed_row,
            resolved_date=resolved_on,
        )

    def copy_to_table(
        self,
        sheet_id: str,
        violation_id: str,
        *,
        from_tab: str,
        from_table: ViolationTable,
        to_tab: str,
        to_table: ViolationTable,
    ) -> tuple[bool, date | None]:
        """Phase one of a move. Returns (appended, resolved date written).

        Skips the append when `to_tab` already holds the id, so an interrupted
        move can be re-run without creating a second copy.
        """

        from_schema = schema_for(from_table)
        to_schema = schema_for(to_table)

        rows = self._backend.read_rows(sheet_id, from_tab, columns=from_schema.read_range)
        row_number = find_row_in(rows, violation_id)
        if row_number is None:
            raise NotFoundError(
                f"Violation not found in {from_schema.table.value} violations: {violation_id}"
            )
        row = rows[row_number - 1]

        if find_row(self._backend, sheet_id, to_tab, violation_id) is not None:
            logger.warning(
                "Violation %s already present in %r; skipping copy", violation_id, to_tab
            )
            return False, None

        overrides, resolved_on = self._transition_overrides(row, from_schema, to_schema)
        values = remap_row(row, from_schema, to_schema, overrides)
        self._backend.append_row(sheet_id, to_tab, values)
        return True, resolved_on

    def _transition_overrides(
        self, row: list[str], from_schema: TableSchema, to_schema: TableSchema
    ) -> tuple[dict[str, Any], date | None]:
        overrides: dict[str, Any] = {}
        status = parse_status(
            cell(row, from_schema.column_for("status").column), from_schema.default_status
        )
        allowed = RESOLVED_STATUSES if to_schema.table is ViolationTable.RESOLVED else ACTIVE_STATUSES
        if status not in allowed:
            overrides["status"] = to_schema.default_status

        resolved_on: date | None = None
        resolved_col = to_schema.column_for("resolved_date")
        if resolved_col is not None:
            src = from_schema.column_for("resolved_date")
            existing = parse_date(cell(row, src.column)) if src else None
            if existing is None:
                resolved_on = self._clock().date()
                flagged = parse_date(cell(row, from_schema.column_for("flagged_date").column))
                if flagged and flagged > resolved_on:
                    resolved_on = flagged
                overrides["resolved_date"] = resolved_on
            else:
                resolved_on = existing
        return overrides, resolved_on

    def remove_from_table(self, sheet_id: str, tab_name: str, violation_id: str) -> int | None:
        """Phase two of a move. Re-locates the id so a shifted row is never deleted by mistake."""

        row_number = find_row(self._backend, sheet_id, tab_name, violation_id)
        if row_number is None:
            logger.info("Violation %s already absent from %r", violation_id, tab_name)
            return None
        self._backend.delete_row(sheet_id, tab_name, row_number)
        return row_number

    # ------------------------------------------------------------------
    # Client overview (team dashboard)
    # ------------------------------------------------------------------

    async def list_clients(self, *, detailed: bool) -> list[ClientOverview]:
        """Directory-only overview, or live counts read from every tenant sheet."""

        if self._directory is None:
            raise RuntimeError("SheetStore was built without a tenant directory")

        tenants = await asyncio.to_thread(self._directory.list_tenants)
        if not detailed:
            return [ClientOverview.from_tenant(t) for t in tenants]

        now = self._clock()
        out: list[ClientOverview] = []
        for i in range(0, len(tenants), DETAILED_METRICS_CONCURRENCY):
            chunk = tenants[i : i + DETAILED_METRICS_CONCURRENCY]
            out.extend(
                await asyncio.gather(
                    *(asyncio.to_thread(self._live_overview, t, now) for t in chunk)
                )
            )
        logger.info("Returning %d clients with live metrics", len(out))
        return out

    def _live_overview(self, tenant: Tenant, now: datetime) -> ClientOverview:
        overview = ClientOverview.from_tenant(tenant)
        if not tenant.sheet_id:
            logger.warning("Tenant %s has no valid sheet URL", tenant.subdomain)
            return overview

        try:
            return self._count_live(tenant, overview, now)
        except (ForbiddenError, NotFoundError) as e:
            # Unshared or deleted sheet: this client keeps its snapshot values.
            logger.warning("Live metrics unavailable for %s: %s", tenant.subdomain, e)
            return overview

    def _count_live(self, tenant: Tenant, overview: ClientOverview, now: datetime) -> ClientOverview:
        count_48h, count_72h = overview.violations_48h, overview.violations_72h
        active = self.resolve_tab(tenant.sheet_id, ViolationTable.ACTIVE)
        if active.found:
            count_48h = count_72h = 0
            for v in self._read_table(tenant.sheet_id, active.tab_name, ViolationTable.ACTIVE):
                if v.imported_at is None:
                    continue
                imported = _as_local_naive(v.imported_at)
                if imported >= now - timedelta(hours=48):
                    count_48h += 1
                if imported >= now - timedelta(hours=72):
                    count_72h += 1

        resolved_this_month = 0
        resolved = self.resolve_tab(tenant.sheet_id, ViolationTable.RESOLVED)
        if resolved.found:
            for v in self._read_table(tenant.sheet_id, resolved.tab_name, ViolationTable.RESOLVED):
                if v.resolved_date and (v.resolved_date.year, v.resolved_date.month) == (
                    now.year,
                    now.month,
                ):
                    resolved_this_month += 1

        return ClientOverview(
            store_name=overview.store_name,
            subdomain=overview.subdomain,
            email=overview.email,
            sheet_url=overview.sheet_url,
            violations_48h=count_48h,
            violations_72h=count_72h,
            resolved_this_month=resolved_this_month,
            resolved_total=overview.resolved_total,
            high_impact_count=overview.high_impact_count,
            at_risk_sales=overview.at_risk_sales,
        )

    def _read_table(self, sheet_id: str, tab_name: str, table: ViolationTable) -> list[Violation]:
        schema = schema_for(table)
        rows = self._backend.read_rows(sheet_id, tab_name, columns=schema.read_range)
        return rows_to_violations(rows[1:], schema) if len(rows) >= 2 else []
