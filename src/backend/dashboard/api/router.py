"""Tenant-facing dashboard API.

Routes a signed-in seller uses from their own subdomain: tenant profile,
violation listing, account lookup and the post-sign-in destination.
"""

import asyncio
import logging
from typing import Optional

from fastapi import APIRouter, Depends, Query, Request

from src.backend.common.models.errors import ForbiddenError
from src.backend.dashboard.api.deps import current_user, entitled_tenant, subdomain_for
from src.backend.dashboard.api.models import (
    SignInTargetRequest,
    account_to_dict,
    ok,
    tenant_to_dict,
    violation_to_dict,
)
from src.backend.dashboard.config.settings import DashboardServices, get_services
from src.backend.dashboard.integrations.session_verifier import AuthenticatedUser
from src.backend.dashboard.use_cases.record_mapper import ViolationStatus, ViolationTable
from src.backend.dashboard.use_cases.tenant_routing import sign_in_target
from src.backend.dashboard.use_cases.violation_filters import TimeFilter, filter_violations

logger = logging.getLogger(__name__)

dashboard_router = APIRouter(prefix="/api", tags=["Dashboard"])


@dashboard_router.get("/tenant")
async def get_tenant(
    request: Request,
    subdomain: Optional[str] = Query(None),
    user: AuthenticatedUser = Depends(current_user),
    services: DashboardServices = Depends(get_services),
):
    """Directory profile and snapshot counters for one tenant."""
    tenant = await entitled_tenant(services, user, subdomain_for(request, subdomain))
    return ok(tenant_to_dict(tenant))


@dashboard_router.get("/violations")
async def list_violations(
    request: Request,
    subdomain: Optional[str] = Query(None),
    tab: ViolationTable = Query(ViolationTable.ACTIVE),
    time: TimeFilter = Query(TimeFilter.ALL),
    status: Optional[ViolationStatus] = Query(None),
    search: str = Query(""),
    user: AuthenticatedUser = Depends(current_user),
    services: DashboardServices = Depends(get_services),
):
    """Violations from the tenant's active or resolved table, filtered in memory."""
    tenant = await entitled_tenant(services, user, subdomain_for(request, subdomain))
    violations = await asyncio.to_thread(services.store.list_violations, tenant.sheet_id, tab)
    filtered = filter_violations(violations, time_filter=time, status=status, search=search)
    return ok(
        {
            "subdomain": tenant.subdomain,
            "tab": tab.value,
            "total": len(violations),
            "count": len(filtered),
            "violations": [violation_to_dict(v) for v in filtered],
        }
    )


@dashboard_router.get("/user-subdomain")
async def get_user_subdomain(
    email: Optional[str] = Query(None),
    user: AuthenticatedUser = Depends(current_user),
    services: DashboardServices = Depends(get_services),
):
    """Subdomains and switchable accounts for the signed-in user.

    Looking up another address is reserved for team members.
    """
    lookup = (email or user.email).strip().lower()
    if lookup != user.email and not services.is_privileged(user.email):
        raise ForbiddenError("You can only look up your own accounts")

    subdomains = await asyncio.to_thread(services.directory.get_subdomains_by_email, lookup)
    accounts = await asyncio.to_thread(services.directory.get_accounts_by_email, lookup)
    return ok(
        {
            "email": lookup,
            "subdomain": subdomains[0] if subdomains else None,
            "subdomains": subdomains,
            "accounts": [account_to_dict(a) for a in accounts],
        }
    )


@dashboard_router.post("/auth/sign-in-target")
async def get_sign_in_target(
    request: Request,
    body: SignInTargetRequest,
    user: AuthenticatedUser = Depends(current_user),
    services: DashboardServices = Depends(get_services),
):
    """Where the client should navigate after sign-in. `target` is null to stay on this host."""
    target = await asyncio.to_thread(
        lambda: sign_in_target(
            host=request.headers.get("host"),
            email=user.email,
            redirect_to=body.redirect,
            directory=services.directory,
            config=services.config.routing,
        )
    )
    logger.info("Sign-in target for %s: %s", user.email, target or "same origin")
    return ok({"target": target})
