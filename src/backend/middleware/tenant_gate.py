"""Tenant access gate.

Runs before routing. Classifies the request host, verifies the session at most
once (only when the decision depends on it), and then redirects, denies, or
rewrites the path into the tenant / team route namespace. The browser URL is
unchanged on a rewrite.
"""

import logging
from typing import Callable

from fastapi import Request
from fastapi.responses import JSONResponse, RedirectResponse
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.types import ASGIApp

from src.backend.common.models.errors import ErrorKind
from src.backend.dashboard.config.settings import DashboardServices
from src.backend.dashboard.integrations.session_verifier import access_token_from
from src.backend.dashboard.use_cases.tenant_routing import (
    ANONYMOUS,
    AuthState,
    RouteAction,
    classify_host,
    decide_route,
    needs_session,
)

logger = logging.getLogger(__name__)


class TenantGateMiddleware(BaseHTTPMiddleware):
    def __init__(self, app: ASGIApp, services_provider: Callable[[], DashboardServices]):
        super().__init__(app)
        self._services_provider = services_provider

    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint):
        services = self._services_provider()
        routing = services.config.routing

        host = request.headers.get("host")
        path = request.url.path
        query = dict(request.query_params)
        classification = classify_host(host, query, routing)

        auth = ANONYMOUS
        if needs_session(classification, path, routing):
            token = access_token_from(request.headers, request.cookies)
            user = await services.verifier.get_current_user(token)
            request.state.user = user
            if user is not None:
                auth = AuthState(
                    authenticated=True,
                    privileged=services.is_privileged(user.email),
                    email=user.email,
                )

        decision = decide_route(
            host=host,
            path=path,
            query=query,
            auth=auth,
            config=routing,
            forwarded_proto=request.headers.get("x-forwarded-proto") or request.url.scheme,
            classification=classification,
        )
        request.state.tenant = decision.tenant

        if decision.action is RouteAction.REDIRECT:
            logger.debug("Gate redirect %s -> %s", path, decision.location)
            return RedirectResponse(decision.location, status_code=decision.status_code)

        if decision.action is RouteAction.DENY:
            logger.info("Gate denied %s on %s for %s", path, host, auth.email)
            return JSONResponse(
                status_code=403,
                content={
                    "success": False,
                    "error": {"kind": ErrorKind.FORBIDDEN.value, "message": "Access denied"},
                },
            )

        if decision.action is RouteAction.REWRITE:
            logger.debug("Gate rewrite %s -> %s", path, decision.path)
            request.scope["path"] = decision.path
            request.scope["raw_path"] = decision.path.encode("utf-8")

        return await call_next(request)
