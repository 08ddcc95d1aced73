"""Discover which tab of a tenant spreadsheet holds a logical table.

Tenant spreadsheets are provisioned by hand, so a logical table may live under
any one of several accepted tab names. Aliases are probed in priority order and
the first tab that exists wins.

Existence test: a trial read of the tab's first cell that does not raise
`TabNotFoundError`. An empty read still means the tab exists (new tenants have
no rows yet). Any other error propagates unchanged.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Sequence

import yaml

from src.backend.common.models.errors import TabNotFoundError
from src.backend.dashboard.integrations.google_sheets_client import SheetsBackend
from src.backend.dashboard.use_cases.record_mapper import ViolationTable

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class TabResolution:
    aliases: tuple[str, ...]
    tab_name: str | None

    @property
    def found(self) -> bool:
        return self.tab_name is not None

    def display_name(self) -> str:
        """Label for display only. Never use this to address a write."""

        return self.tab_name or self.aliases[0]


@dataclass(frozen=True, slots=True)
class SheetLayout:
    aliases: dict[ViolationTable, tuple[str, ...]]
    directory_tab: str

    def aliases_for(self, table: ViolationTable | str) -> tuple[str, ...]:
        return self.aliases[ViolationTable(table)]


def load_sheet_layout(path: Path) -> SheetLayout:
    """Load tab alias lists from the YAML layout file."""

    if not path.exists():
        raise FileNotFoundError(f"Sheet layout file not found: {path}")
    with open(path, "r", encoding="utf-8") as f:
        raw: dict[str, Any] = yaml.safe_load(f) or {}

    tables = raw.get("tables") or {}
    aliases: dict[ViolationTable, tuple[str, ...]] = {}
    for table in ViolationTable:
        names = tuple(str(n).strip() for n in (tables.get(table.value) or []) if str(n).strip())
        if not names:
            raise ValueError(f"No tab aliases configured for table {table.value!r} in {path}")
        aliases[table] = names

    return SheetLayout(
        aliases=aliases,
        directory_tab=str(raw.get("directory_tab") or "All Seller Information"),
    )


def tab_exists(backend: SheetsBackend, sheet_id: str, tab_name: str) -> bool:
    try:
        backend.read_rows(sheet_id, tab_name, columns="A1:A1")
    except TabNotFoundError:
        return False
    return True


def resolve_tab(backend: SheetsBackend, sheet_id: str, aliases: Sequence[str]) -> TabResolution:
    for alias in aliases:
        if tab_exists(backend, sheet_id, alias):
            logger.debug("Resolved tab %r in %s", alias, sheet_id)
            return TabResolution(aliases=tuple(aliases), tab_name=alias)
        logger.debug("Tab %r not found in %s, trying next", alias, sheet_id)

    logger.warning("No tab found in %s. Tried: %s", sheet_id, ", ".join(aliases))
    return TabResolution(aliases=tuple(aliases), tab_name=None)
