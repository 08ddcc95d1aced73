"""Throttled bulk updates against one tenant table.

Items are split into fixed-size chunks. Items within a chunk run concurrently;
chunks run one after another with a fixed pause in between, which keeps the
call under the Sheets API per-user request quota.

One bad item never fails the batch: every item gets its own result. Only a
structurally invalid call (empty, over the cap) or a missing tab fails the
whole call, and both are detected before any row is written.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Mapping, Sequence

from src.backend.common.models.errors import DashboardError, InvalidRequestError
from src.backend.dashboard.use_cases.record_mapper import ViolationTable
from src.backend.dashboard.use_cases.sheet_store import SheetStore, parse_update

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class BatchItem:
    violation_id: str
    updates: Mapping[str, Any]


@dataclass(frozen=True, slots=True)
class ItemResult:
    violation_id: str
    ok: bool
    error: str | None = None
    error_kind: str | None = None
    fields_updated: tuple[str, ...] = ()


@dataclass(frozen=True, slots=True)
class BatchResult:
    results: list[ItemResult]
    updated_at: str = field(default_factory=lambda: datetime.now(timezone.utc).isoformat())

    @property
    def total(self) -> int:
        return len(self.results)

    @property
    def succeeded(self) -> int:
        return sum(1 for r in self.results if r.ok)

    @property
    def failed(self) -> int:
        return self.total - self.succeeded

    @property
    def ok(self) -> bool:
        return self.failed == 0


class BatchUpdateEngine:
    def __init__(
        self,
        store: SheetStore,
        *,
        chunk_size: int = 5,
        delay_seconds: float = 0.1,
        max_items: int = 50,
    ) -> None:
        if chunk_size < 1:
            raise ValueError("chunk_size must be >= 1")
        self._store = store
        self._chunk_size = chunk_size
        self._delay_seconds = delay_seconds
        self._max_items = max_items

    @property
    def max_items(self) -> int:
        return self._max_items

    def validate(self, items: Sequence[BatchItem]) -> None:
        if not items:
            raise InvalidRequestError("No violations provided for update")
        if len(items) > self._max_items:
            raise InvalidRequestError(f"Maximum {self._max_items} violations per bulk update")

    async def apply_batch(
        self,
        sheet_id: str,
        table: ViolationTable,
        items: Sequence[BatchItem],
    ) -> BatchResult:
        self.validate(items)
        tab_name = await asyncio.to_thread(self._store.require_tab, sheet_id, table)

        results: list[ItemResult] = []
        for start in range(0, len(items), self._chunk_size):
            chunk = items[start : start + self._chunk_size]
            results.extend(
                await asyncio.gather(
                    *(self._apply_item(sheet_id, tab_name, table, item) for item in chunk)
                )
            )
            if start + self._chunk_size < len(items):
                await asyncio.sleep(self._delay_seconds)

        batch = BatchResult(results=results)
        logger.info(
            "Bulk update on %r: %d total, %d succeeded, %d failed",
            tab_name,
            batch.total,
            batch.succeeded,
            batch.failed,
        )
        return batch

    async def _apply_item(
        self, sheet_id: str, tab_name: str, table: ViolationTable, item: BatchItem
    ) -> ItemResult:
        violation_id = item.violation_id or "unknown"
        if not item.violation_id or not item.updates:
            return ItemResult(
                violation_id=violation_id,
                ok=False,
                error="Invalid update item",
                error_kind="invalid",
            )

        try:
            update = parse_update(item.updates)
            fields = await asyncio.to_thread(
                self._store.update_in_tab, sheet_id, tab_name, table, item.violation_id, update
            )
        except DashboardError as e:
            logger.warning("Bulk update item %s failed: %s", violation_id, e.message)
            return ItemResult(
                violation_id=violation_id, ok=False, error=e.message, error_kind=e.kind.value
            )
        return ItemResult(violation_id=violation_id, ok=True, fields_updated=tuple(fields))
