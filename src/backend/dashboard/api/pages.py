"""Rewrite targets for tenant and team hosts.

The access gate rewrites `acme.<root>/<path>` to `/s/acme/<path>` and
`team.<root>/<path>` to `/team/<path>`. These handlers return the dashboard
payload the frontend renders for those pages.
"""

import asyncio
import logging
from decimal import Decimal

from fastapi import APIRouter, Depends

from src.backend.dashboard.api.deps import current_user, entitled_tenant, privileged_user
from src.backend.dashboard.api.models import client_to_dict, ok, tenant_to_dict
from src.backend.dashboard.config.settings import DashboardServices, get_services
from src.backend.dashboard.integrations.session_verifier import AuthenticatedUser
from src.backend.dashboard.use_cases.record_mapper import Impact, ViolationTable

logger = logging.getLogger(__name__)

pages_router = APIRouter(tags=["Pages"], include_in_schema=False)


@pages_router.get("/s/{subdomain}")
@pages_router.get("/s/{subdomain}/{page:path}")
async def tenant_dashboard(
    subdomain: str,
    page: str = "",
    user: AuthenticatedUser = Depends(current_user),
    services: DashboardServices = Depends(get_services),
):
    tenant = await entitled_tenant(services, user, subdomain.lower())
    active = await asyncio.to_thread(
        services.store.list_violations, tenant.sheet_id, ViolationTable.ACTIVE
    )
    resolved = await asyncio.to_thread(
        services.store.list_violations, tenant.sheet_id, ViolationTable.RESOLVED
    )
    return ok(
        {
            "page": f"/{page}",
            "user": {"email": user.email, "privileged": services.is_privileged(user.email)},
            "tenant": tenant_to_dict(tenant),
            "summary": {
                "active": len(active),
                "resolved": len(resolved),
                "high_impact": sum(1 for v in active if v.impact is Impact.HIGH),
                "at_risk_amount": sum((v.at_risk_amount for v in active), Decimal("0")),
            },
        }
    )


@pages_router.get("/team")
@pages_router.get("/team/{page:path}")
async def team_dashboard(
    page: str = "",
    user: AuthenticatedUser = Depends(privileged_user),
    services: DashboardServices = Depends(get_services),
):
    clients = await services.store.list_clients(detailed=False)
    return ok(
        {
            "page": f"/{page}",
            "user": {"email": user.email, "privileged": True},
            "clients": [client_to_dict(c) for c in clients],
        }
    )
