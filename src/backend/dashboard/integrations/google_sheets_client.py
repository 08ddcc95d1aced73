"""Google Sheets client (service-account based).

Goals
- Provide a small, testable integration wrapper around the Sheets API.
- Keep all network calls here; keep range building and error classification
  deterministic and unit-testable.
- Every failure leaves this module as a classified `DashboardError`:
  a missing tab is `TabNotFoundError`, throttling is `RateLimitedError`,
  everything else on the wire is `TransportError`.

This intentionally does not depend on FastAPI.
"""

from __future__ import annotations

import json
import logging
import os
import re
from typing import Any, Protocol

from src.backend.common.config.app_config import AppConfig
from src.backend.common.models.errors import (
    DashboardError,
    ForbiddenError,
    NotFoundError,
    RateLimitedError,
    TabNotFoundError,
    TransportError,
)

logger = logging.getLogger(__name__)

SHEETS_SCOPE = "https://www.googleapis.com/auth/spreadsheets"

_SHEET_URL_RE = re.compile(r"/spreadsheets/d/([a-zA-Z0-9-_]+)")
_UPDATED_RANGE_ROW_RE = re.compile(r"![A-Z]+(\d+)")


def col_to_a1(col_index_zero_based: int) -> str:
    """Convert 0-based column index to A1 column letters (0->A, 25->Z, 26->AA)."""

    if col_index_zero_based < 0:
        raise ValueError("col_index_zero_based must be >= 0")

    result = ""
    n = col_index_zero_based
    while True:
        n, rem = divmod(n, 26)
        result = chr(ord("A") + rem) + result
        if n == 0:
            break
        n -= 1

    return result


def quote_tab(tab_name: str) -> str:
    """Quote a tab title for A1 notation ("Bob's Tab" -> "'Bob''s Tab'")."""

    return "'" + tab_name.replace("'", "''") + "'"


def extract_sheet_id(url: str | None) -> str | None:
    """Pull the spreadsheet id out of a Google Sheets URL."""

    if not url:
        return None
    match = _SHEET_URL_RE.search(url)
    return match.group(1) if match else None


def classify_http_error(
    status: int, message: str, *, tab_name: str | None = None
) -> DashboardError:
    """Map a Sheets API HTTP failure onto the dashboard error kinds."""

    if status == 429:
        return RateLimitedError(f"Google Sheets rate limit exceeded: {message}")
    if status == 400 and "unable to parse range" in message.lower():
        return TabNotFoundError(f"Tab not found: {tab_name}", tab_name=tab_name)
    if status == 404:
        return NotFoundError(f"Spreadsheet not found: {message}")
    if status == 403:
        return ForbiddenError(f"Permission denied by Google Sheets: {message}")
    return TransportError(f"Google Sheets request failed (HTTP {status}): {message}")


class SheetsBackend(Protocol):
    """Row-level access to a spreadsheet by tab name and 1-based row number."""

    def list_sheet_titles(self, spreadsheet_id: str) -> list[str]: ...

    def read_rows(
        self, spreadsheet_id: str, tab_name: str, *, columns: str = "A:O"
    ) -> list[list[str]]: ...

    def append_row(self, spreadsheet_id: str, tab_name: str, values: list[str]) -> int | None: ...

    def update_cells(
        self, spreadsheet_id: str, tab_name: str, row_number: int, cells: dict[str, str]
    ) -> int: ...

    def delete_row(self, spreadsheet_id: str, tab_name: str, row_number: int) -> None: ...


class GoogleSheetsClient:
    def __init__(
        self,
        *,
        service_account_info: dict[str, Any] | None = None,
        service_account_path: str | None = None,
        timeout_seconds: int = 30,
        num_retries: int = 2,
    ) -> None:
        if service_account_info is None and not service_account_path:
            raise ValueError("Provide service_account_info or service_account_path")
        self._service_account_info = service_account_info
        self._service_account_path = (
            os.path.expanduser(service_account_path) if service_account_path else None
        )
        self._timeout_seconds = timeout_seconds
        self._num_retries = num_retries

    @classmethod
    def from_config(cls, cfg: AppConfig) -> "GoogleSheetsClient":
        info: dict[str, Any] | None = None
        if cfg.google_service_account_key:
            try:
                info = json.loads(cfg.google_service_account_key)
            except json.JSONDecodeError as e:
                raise ValueError("GOOGLE_SERVICE_ACCOUNT_KEY is not valid JSON") from e
        elif not cfg.google_sa_file:
            raise ValueError("Missing GOOGLE_SERVICE_ACCOUNT_KEY or GOOGLE_SA_FILE")

        return cls(
            service_account_info=info,
            service_account_path=cfg.google_sa_file,
            timeout_seconds=cfg.google_http_timeout_seconds,
            num_retries=cfg.sheets_num_retries,
        )

    def _load_service_account_info(self) -> dict[str, Any]:
        if self._service_account_info is not None:
            return self._service_account_info
        if not os.path.exists(self._service_account_path):
            raise FileNotFoundError(
                f"Service account file not found: {self._service_account_path}"
            )
        with open(self._service_account_path, "r", encoding="utf-8") as f:
            return json.load(f)

    def _build_sheets_service(self) -> Any:
        # Lazy import so unit tests that only use the deterministic helpers
        # do not require Google client libs. A fresh service per call keeps
        # httplib2 connections out of shared state across worker threads.
        import google_auth_httplib2
        import httplib2
        from google.oauth2 import service_account
        from googleapiclient.discovery import build

        creds = service_account.Credentials.from_service_account_info(
            self._load_service_account_info(),
            scopes=[SHEETS_SCOPE],
        )
        http = google_auth_httplib2.AuthorizedHttp(
            creds, http=httplib2.Http(timeout=self._timeout_seconds)
        )
        return build("sheets", "v4", http=http, cache_discovery=False)

    def _execute(self, request: Any, *, tab_name: str | None = None) -> dict[str, Any]:
        import httplib2
        from google.auth.exceptions import GoogleAuthError, RefreshError
        from googleapiclient.errors import HttpError

        try:
            return request.execute(num_retries=self._num_retries)
        except HttpError as e:
            raise classify_http_error(int(e.resp.status), str(e), tab_name=tab_name) from e
        except RefreshError as e:
            # Expired, revoked or malformed service-account key.
            raise TransportError(f"Google Sheets credentials rejected: {e}") from e
        except (httplib2.HttpLib2Error, GoogleAuthError, OSError) as e:
            raise TransportError(f"Google Sheets request failed: {e}") from e

    def list_sheet_titles(self, spreadsheet_id: str) -> list[str]:
        return [p["title"] for p in self._sheet_properties(spreadsheet_id)]

    def _sheet_properties(self, spreadsheet_id: str) -> list[dict[str, Any]]:
        sheets = self._build_sheets_service()
        meta = self._execute(
            sheets.spreadsheets().get(
                spreadsheetId=spreadsheet_id, fields="sheets(properties(sheetId,title))"
            )
        )
        return [s["properties"] for s in meta.get("sheets", [])]

    def read_rows(
        self, spreadsheet_id: str, tab_name: str, *, columns: str = "A:O"
    ) -> list[list[str]]:
        sheets = self._build_sheets_service()
        resp = self._execute(
            sheets.spreadsheets()
            .values()
            .get(spreadsheetId=spreadsheet_id, range=f"{quote_tab(tab_name)}!{columns}"),
            tab_name=tab_name,
        )
        rows = resp.get("values", [])
        if not isinstance(rows, list):
            return []
        return [["" if c is None else str(c) for c in r] for r in rows]

    def append_row(self, spreadsheet_id: str, tab_name: str, values: list[str]) -> int | None:
        """Append one row after the last data row; return its 1-based row number."""

        sheets = self._build_sheets_service()
        resp = self._execute(
            sheets.spreadsheets()
            .values()
            .append(
                spreadsheetId=spreadsheet_id,
                range=f"{quote_tab(tab_name)}!A:A",
                valueInputOption="USER_ENTERED",
                insertDataOption="INSERT_ROWS",
                body={"values": [values]},
            ),
            tab_name=tab_name,
        )
        updated_range = (resp.get("updates") or {}).get("updatedRange") or ""
        match = _UPDATED_RANGE_ROW_RE.search(updated_range)
        return int(match.group(1)) if match else None

    def update_cells(
        self, spreadsheet_id: str, tab_name: str, row_number: int, cells: dict[str, str]
    ) -> int:
        """Update individual cells of one row with a single API call.

        `cells` maps column letters to literal values, e.g. {"L": "Working", "M": "note"}.
        Cells not named are left untouched.
        """

        if not cells:
            return 0

        sheets = self._build_sheets_service()
        data = [
            {"range": f"{quote_tab(tab_name)}!{column}{row_number}", "values": [[value]]}
            for column, value in cells.items()
        ]
        body: dict[str, Any] = {"valueInputOption": "USER_ENTERED", "data": data}
        resp = self._execute(
            sheets.spreadsheets().values().batchUpdate(spreadsheetId=spreadsheet_id, body=body),
            tab_name=tab_name,
        )
        return int(resp.get("totalUpdatedCells") or len(data))

    def delete_row(self, spreadsheet_id: str, tab_name: str, row_number: int) -> None:
        if row_number < 2:
            raise ValueError("Refusing to delete the header row")

        grid_id: int | None = None
        for props in self._sheet_properties(spreadsheet_id):
            if props.get("title") == tab_name:
                grid_id = props.get("sheetId")
                break
        if grid_id is None:
            raise TabNotFoundError(f"Tab not found: {tab_name}", tab_name=tab_name)

        sheets = self._build_sheets_service()
        body = {
            "requests": [
                {
                    "deleteDimension": {
                        "range": {
                            "sheetId": grid_id,
                            "dimension": "ROWS",
                            "startIndex": row_number - 1,
                            "endIndex": row_number,
                        }
                    }
                }
            ]
        }
        self._execute(
            sheets.spreadsheets().batchUpdate(spreadsheetId=spreadsheet_id, body=body),
            tab_name=tab_name,
        )
        logger.info("Deleted row %s from tab %r of %s", row_number, tab_name, spreadsheet_id)
