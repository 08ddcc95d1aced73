from __future__ import annotations

from pathlib import Path

import pytest

from src.backend.common.config.app_config import REPO_ROOT
from src.backend.common.models.errors import RateLimitedError
from src.backend.dashboard.use_cases.record_mapper import ViolationTable
from src.backend.dashboard.use_cases.row_locator import find_row, find_row_in
from src.backend.dashboard.use_cases.tab_resolver import load_sheet_layout, resolve_tab
from src.backend.tests.fakes import ACTIVE_HEADER, FakeSheetsBackend, active_row

SHEET = "tenant-sheet"
ALIASES = ("All Current Violations", "Current Violations", "Open Violations")


def test_resolve_tab_picks_first_existing_alias() -> None:
    backend = FakeSheetsBackend()
    backend.add_tab(SHEET, "Open Violations", [ACTIVE_HEADER])
    backend.add_tab(SHEET, "Current Violations", [])

    resolution = resolve_tab(backend, SHEET, ALIASES)

    # An empty tab still exists.
    assert resolution.found
    assert resolution.tab_name == "Current Violations"
    assert backend.calls == [
        ("read_rows", "All Current Violations"),
        ("read_rows", "Current Violations"),
    ]


def test_resolve_tab_not_found_is_a_value() -> None:
    resolution = resolve_tab(FakeSheetsBackend(), SHEET, ALIASES)
    assert not resolution.found
    assert resolution.tab_name is None
    assert resolution.display_name() == "All Current Violations"


def test_resolve_tab_propagates_rate_limits() -> None:
    backend = FakeSheetsBackend()
    backend.add_tab(SHEET, "Current Violations", [ACTIVE_HEADER])
    backend.read_errors["All Current Violations"] = RateLimitedError("quota")

    with pytest.raises(RateLimitedError):
        resolve_tab(backend, SHEET, ALIASES)


def test_load_sheet_layout_from_repo_data() -> None:
    layout = load_sheet_layout(REPO_ROOT / "data" / "sheet_tabs.yaml")
    assert layout.aliases_for(ViolationTable.ACTIVE)[0] == "All Current Violations"
    assert layout.aliases_for("resolved")[0] == "All Resolved Violations"
    assert "Closed Violations" in layout.aliases_for(ViolationTable.RESOLVED)
    assert layout.directory_tab == "All Seller Information"


def test_load_sheet_layout_requires_aliases(tmp_path: Path) -> None:
    path = tmp_path / "tabs.yaml"
    path.write_text("tables:\n  active: [Open Violations]\n", encoding="utf-8")
    with pytest.raises(ValueError):
        load_sheet_layout(path)
    with pytest.raises(FileNotFoundError):
        load_sheet_layout(tmp_path / "missing.yaml")


def test_find_row_matches_exact_id_only() -> None:
    backend = FakeSheetsBackend()
    backend.add_tab(
        SHEET,
        "Current Violations",
        [ACTIVE_HEADER, active_row("V-10"), active_row("v-1"), active_row("V-1"), active_row("V-1")],
    )

    assert find_row(backend, SHEET, "Current Violations", "V-1") == 4
    assert find_row(backend, SHEET, "Current Violations", "V-2") is None
    assert find_row(backend, SHEET, "Current Violations", "") is None


def test_find_row_in_skips_header() -> None:
    assert find_row_in([["ID"], ["ID"]], "ID") == 2
    assert find_row_in([["ID"]], "ID") is None


def test_find_row_ignores_padding_around_ids() -> None:
    rows = [["ID"], ["V-8"], [" V-9 "], ["V-9"]]

    assert find_row_in(rows, "V-9") == 3
    assert find_row_in(rows, " V-8") == 2
    assert find_row_in([["ID"], ["V-9"]], "  ") is None
