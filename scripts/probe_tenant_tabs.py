"""Probe a tenant's violation tabs with the configured service account.

Usage:
    python scripts/probe_tenant_tabs.py <subdomain>
    python scripts/probe_tenant_tabs.py --sheet-id <spreadsheet id>

Prints the tabs in the spreadsheet, which alias each table resolves to, and
how many violations each table holds.
"""

import argparse
import sys
from pathlib import Path

REPO_ROOT = Path(__file__).resolve().parents[1]
if str(REPO_ROOT) not in sys.path:
    sys.path.insert(0, str(REPO_ROOT))

from src.backend.common.models.errors import DashboardError  # noqa: E402
from src.backend.dashboard.config.settings import services  # noqa: E402
from src.backend.dashboard.use_cases.record_mapper import ViolationTable  # noqa: E402


def main() -> int:
    parser = argparse.ArgumentParser(description=__doc__.splitlines()[0])
    parser.add_argument("subdomain", nargs="?", help="tenant subdomain from the directory tab")
    parser.add_argument("--sheet-id", help="probe this spreadsheet directly")
    args = parser.parse_args()

    try:
        sheet_id = args.sheet_id
        if not sheet_id:
            if not args.subdomain:
                parser.error("give a subdomain or --sheet-id")
            tenant = services.directory.get_tenant_by_subdomain(args.subdomain)
            if tenant is None:
                print(f"ERROR: no tenant with subdomain {args.subdomain!r}", file=sys.stderr)
                return 3
            if not tenant.sheet_id:
                print(f"ERROR: tenant sheet URL is not a sheet: {tenant.sheet_url!r}", file=sys.stderr)
                return 3
            print(f"Tenant: {tenant.store_name} ({tenant.subdomain})")
            sheet_id = tenant.sheet_id

        print(f"Available sheets: {services.backend.list_sheet_titles(sheet_id)}")
        for table in ViolationTable:
            resolution = services.store.resolve_tab(sheet_id, table)
            if not resolution.found:
                print(f"{table.value}: no tab found. Tried: {', '.join(resolution.aliases)}")
                continue
            count = len(services.store.list_violations(sheet_id, table))
            print(f"{table.value}: {resolution.tab_name!r} ({count} violations)")
    except DashboardError as e:
        print(f"ERROR [{e.kind.value}]: {e.message}", file=sys.stderr)
        return 1
    except ValueError as e:
        print(f"ERROR: {e}", file=sys.stderr)
        return 2
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
