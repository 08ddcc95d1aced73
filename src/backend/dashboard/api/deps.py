"""Authentication and entitlement dependencies for the dashboard routes.

The access gate only decides navigation. Every data route authorizes on its
own: a signed-in user, plus entitlement to the tenant being read or written.
"""

import asyncio
import logging

from fastapi import Depends, Request

from src.backend.common.models.errors import (
    ForbiddenError,
    InvalidRequestError,
    NotFoundError,
    UnauthorizedError,
)
from src.backend.dashboard.config.settings import DashboardServices, get_services
from src.backend.dashboard.integrations.session_verifier import (
    AuthenticatedUser,
    access_token_from,
)
from src.backend.dashboard.integrations.tenant_directory import Tenant

logger = logging.getLogger(__name__)


async def current_user(
    request: Request,
    services: DashboardServices = Depends(get_services),
) -> AuthenticatedUser:
    # The gate stores its verification result so a request is verified once.
    if hasattr(request.state, "user"):
        user = request.state.user
    else:
        token = access_token_from(request.headers, request.cookies)
        user = await services.verifier.get_current_user(token)
    if user is None:
        raise UnauthorizedError("Unauthorized")
    return user


async def privileged_user(
    user: AuthenticatedUser = Depends(current_user),
    services: DashboardServices = Depends(get_services),
) -> AuthenticatedUser:
    if not services.is_privileged(user.email):
        logger.info("Team endpoint refused for %s", user.email)
        raise ForbiddenError("Access denied. Team members only.")
    return user


def subdomain_for(request: Request, subdomain: str | None) -> str:
    """Explicit `subdomain` parameter, else the tenant the gate resolved from the host."""

    value = (subdomain or getattr(request.state, "tenant", None) or "").strip().lower()
    if not value:
        raise InvalidRequestError("Missing subdomain")
    return value


async def ensure_entitled(
    services: DashboardServices, user: AuthenticatedUser, subdomain: str
) -> None:
    if services.is_privileged(user.email):
        return
    subdomains = await asyncio.to_thread(services.directory.get_subdomains_by_email, user.email)
    if subdomain not in subdomains:
        logger.info("User %s is not entitled to tenant %s", user.email, subdomain)
        raise ForbiddenError("You do not have access to this account")


async def load_tenant(services: DashboardServices, subdomain: str) -> Tenant:
    tenant = await asyncio.to_thread(services.directory.get_tenant_by_subdomain, subdomain)
    if tenant is None:
        raise NotFoundError(f"Tenant not found: {subdomain}")
    if not tenant.sheet_id:
        raise NotFoundError(f"No violations sheet configured for {subdomain}")
    return tenant


async def entitled_tenant(
    services: DashboardServices, user: AuthenticatedUser, subdomain: str
) -> Tenant:
    await ensure_entitled(services, user, subdomain)
    return await load_tenant(services, subdomain)
