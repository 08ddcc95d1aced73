"""Tenant directory backed by the client-mapping spreadsheet.

One row per tenant in the directory tab (columns A:N):

A store name, B merchant id, C contact email, D tenant sheet URL,
E total violations, F last 7 days, G last 2 days, H at-risk sales,
I high impact count, J resolved count, L subdomain, N document folder URL.

Counters are denormalized snapshots; live counts come from the tenant's own
sheet (see `SheetStore.list_clients`).
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from decimal import Decimal
from typing import Iterable

from src.backend.dashboard.integrations.google_sheets_client import (
    SheetsBackend,
    extract_sheet_id,
)

logger = logging.getLogger(__name__)


def _cell(row: list[str], index: int) -> str:
    return str(row[index]).strip() if index < len(row) and row[index] is not None else ""


def _int(value: str) -> int:
    try:
        return int(float(value.replace(",", "")))
    except ValueError:
        return 0


def _money(value: str) -> Decimal:
    cleaned = re.sub(r"[$,\s]", "", value)
    try:
        return Decimal(cleaned) if cleaned else Decimal("0")
    except ArithmeticError:
        return Decimal("0")


@dataclass(frozen=True, slots=True)
class Tenant:
    subdomain: str
    store_name: str
    merchant_id: str
    email: str
    sheet_url: str
    sheet_id: str | None
    total_violations: int
    violations_last_7_days: int
    violations_last_2_days: int
    at_risk_sales: Decimal
    high_impact_count: int
    resolved_count: int
    document_folder_url: str | None = None


@dataclass(frozen=True, slots=True)
class Account:
    subdomain: str
    store_name: str


class TenantDirectory:
    def __init__(
        self,
        *,
        backend: SheetsBackend,
        spreadsheet_id: str,
        tab_name: str,
        root_domain: str,
        team_emails: Iterable[str] = (),
        master_user_emails: Iterable[str] = (),
    ) -> None:
        self._backend = backend
        self._spreadsheet_id = spreadsheet_id
        self._tab_name = tab_name
        self._root_domain = root_domain.lower()
        self._team_emails = frozenset(e.strip().lower() for e in team_emails if e.strip())
        self._master_user_emails = frozenset(
            e.strip().lower() for e in master_user_emails if e.strip()
        )

    def _rows(self) -> list[list[str]]:
        if not self._spreadsheet_id:
            raise ValueError("Missing CLIENT_MAPPING_SHEET_ID")
        rows = self._backend.read_rows(self._spreadsheet_id, self._tab_name, columns="A:N")
        return rows[1:] if len(rows) >= 2 else []

    def subdomain_for_row(self, row: list[str]) -> str:
        """Derive a tenant's subdomain from column L, falling back to the store name.

        Column L holds one of: "https://acme.<root>", "acme.<root>", or "acme".
        """

        column_l = _cell(row, 11)
        suffix = f".{self._root_domain}"
        subdomain = ""
        if column_l:
            lowered = column_l.lower()
            if "://" in lowered:
                match = re.match(r"https?://([^./]+)" + re.escape(suffix), lowered)
                if match:
                    subdomain = match.group(1)
            elif lowered.endswith(suffix):
                subdomain = lowered[: -len(suffix)].strip()
            elif " " not in lowered and "." not in lowered:
                subdomain = lowered
        if not subdomain:
            subdomain = re.sub(r"\s+", "-", _cell(row, 0).lower())
        return subdomain

    def _tenant_from_row(self, row: list[str]) -> Tenant:
        sheet_url = _cell(row, 3)
        return Tenant(
            subdomain=self.subdomain_for_row(row),
            store_name=_cell(row, 0),
            merchant_id=_cell(row, 1),
            email=_cell(row, 2),
            sheet_url=sheet_url,
            sheet_id=extract_sheet_id(sheet_url),
            total_violations=_int(_cell(row, 4)),
            violations_last_7_days=_int(_cell(row, 5)),
            violations_last_2_days=_int(_cell(row, 6)),
            at_risk_sales=_money(_cell(row, 7)),
            high_impact_count=_int(_cell(row, 8)),
            resolved_count=_int(_cell(row, 9)),
            document_folder_url=_cell(row, 13) or None,
        )

    def list_tenants(self) -> list[Tenant]:
        return [self._tenant_from_row(r) for r in self._rows() if _cell(r, 0)]

    def get_tenant_by_subdomain(self, subdomain: str) -> Tenant | None:
        wanted = (subdomain or "").strip().lower()
        if not wanted:
            return None
        for row in self._rows():
            if not _cell(row, 0):
                continue
            if self.subdomain_for_row(row) == wanted or _cell(row, 0).lower() == wanted:
                return self._tenant_from_row(row)
        return None

    def get_subdomains_by_email(self, email: str) -> list[str]:
        """All subdomains mapped to `email`, in sheet order. First is primary."""

        wanted = (email or "").strip().lower()
        if not wanted:
            return []
        out: list[str] = []
        for row in self._rows():
            if _cell(row, 2).lower() != wanted or not _cell(row, 0):
                continue
            subdomain = self.subdomain_for_row(row)
            if subdomain and subdomain not in out:
                out.append(subdomain)
        return out

    def get_accounts_by_email(self, email: str) -> list[Account]:
        """Accounts for the account switcher. Master users see every account."""

        wanted = (email or "").strip().lower()
        is_master = wanted in self._master_user_emails
        accounts: list[Account] = []
        seen: set[str] = set()
        for row in self._rows():
            store_name = _cell(row, 0)
            if not store_name:
                continue
            if not is_master and _cell(row, 2).lower() != wanted:
                continue
            subdomain = self.subdomain_for_row(row)
            if subdomain and subdomain not in seen:
                seen.add(subdomain)
                accounts.append(Account(subdomain=subdomain, store_name=store_name))

        logger.info("Found %d accounts for %s (master=%s)", len(accounts), email, is_master)
        return accounts

    def is_privileged_identity(self, email: str | None) -> bool:
        if not email:
            return False
        return email.strip().lower() in self._team_emails
