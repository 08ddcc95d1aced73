"""Team API Router.

Cross-tenant endpoints for privileged team members: client overview,
violation listing and edits for any tenant, table moves and bulk updates.
"""

import asyncio
import logging

from fastapi import APIRouter, Depends, Query

from src.backend.dashboard.api.deps import load_tenant, privileged_user
from src.backend.dashboard.api.models import (
    BulkUpdateRequest,
    ResolveViolationRequest,
    ViolationUpdateRequest,
    batch_result_to_dict,
    client_to_dict,
    ok,
    resolve_outcome_to_dict,
    violation_to_dict,
)
from src.backend.dashboard.config.settings import DashboardServices, get_services
from src.backend.dashboard.integrations.session_verifier import AuthenticatedUser
from src.backend.dashboard.use_cases.batch_updates import BatchItem
from src.backend.dashboard.use_cases.record_mapper import ViolationTable
from src.backend.dashboard.use_cases.sheet_store import parse_update

logger = logging.getLogger(__name__)

team_router = APIRouter(prefix="/api/team", tags=["Team"])


@team_router.get("/clients")
async def list_clients(
    detailed: bool = Query(False),
    user: AuthenticatedUser = Depends(privileged_user),
    services: DashboardServices = Depends(get_services),
):
    clients = await services.store.list_clients(detailed=detailed)
    return ok({"detailed": detailed, "clients": [client_to_dict(c) for c in clients]})


@team_router.get("/violations")
async def list_tenant_violations(
    subdomain: str = Query(...),
    tab: ViolationTable = Query(ViolationTable.ACTIVE),
    user: AuthenticatedUser = Depends(privileged_user),
    services: DashboardServices = Depends(get_services),
):
    tenant = await load_tenant(services, subdomain.strip().lower())
    violations = await asyncio.to_thread(services.store.list_violations, tenant.sheet_id, tab)
    return ok(
        {
            "subdomain": tenant.subdomain,
            "store_name": tenant.store_name,
            "tab": tab.value,
            "count": len(violations),
            "violations": [violation_to_dict(v) for v in violations],
        }
    )


@team_router.patch("/violations/update")
async def update_violation(
    body: ViolationUpdateRequest,
    user: AuthenticatedUser = Depends(privileged_user),
    services: DashboardServices = Depends(get_services),
):
    """Write the supplied fields of one violation; other cells are left as they are."""
    update = parse_update(body.updates)
    tenant = await load_tenant(services, body.subdomain.strip().lower())
    fields = await asyncio.to_thread(
        services.store.apply_update, tenant.sheet_id, body.tab, body.violation_id, update
    )
    logger.info("%s updated %s/%s: %s", user.email, tenant.subdomain, body.violation_id, fields)
    return ok({"violation_id": body.violation_id, "fields_updated": fields})


@team_router.post("/violations/resolve")
async def resolve_violation(
    body: ResolveViolationRequest,
    user: AuthenticatedUser = Depends(privileged_user),
    services: DashboardServices = Depends(get_services),
):
    """Move a violation from the active table to the resolved table."""
    tenant = await load_tenant(services, body.subdomain.strip().lower())
    outcome = await asyncio.to_thread(
        services.store.resolve_record, tenant.sheet_id, body.violation_id
    )
    logger.info("%s resolved %s/%s", user.email, tenant.subdomain, body.violation_id)
    return ok(resolve_outcome_to_dict(outcome))


@team_router.patch("/violations/bulk-update")
async def bulk_update_violations(
    body: BulkUpdateRequest,
    user: AuthenticatedUser = Depends(privileged_user),
    services: DashboardServices = Depends(get_services),
):
    """Apply many sparse updates; each item succeeds or fails on its own."""
    items = [BatchItem(violation_id=i.violation_id, updates=i.updates) for i in body.updates]
    engine = services.batch_engine
    engine.validate(items)

    tenant = await load_tenant(services, body.subdomain.strip().lower())
    result = await engine.apply_batch(tenant.sheet_id, body.tab, items)
    return ok(batch_result_to_dict(result))
