"""Host-based tenant resolution and access gating.

Everything here is a pure function of its arguments (host, path, query,
authentication state, routing config). The ASGI middleware gathers those
inputs from the request and applies the returned decision.

Decision order for a request:
1. classify the host (override param, root domains, *.localhost, preview URLs)
2. www.<root> -> permanent redirect to <root>
3. no tenant -> pass through (landing pages)
4. tenant + API path -> pass through (handlers authorize themselves)
5. tenant + shared public path -> pass through, except signed-in users on the
   login page go to the tenant root
6. tenant + anonymous -> redirect to login with a return path
7. tenant + signed in -> internal rewrite into the tenant route namespace
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from enum import Enum
from typing import Mapping
from urllib.parse import quote

from src.backend.common.config.app_config import RoutingConfig
from src.backend.common.models.errors import DashboardError
from src.backend.dashboard.integrations.tenant_directory import TenantDirectory

logger = logging.getLogger(__name__)

_LOCAL_HOSTS = ("localhost", "127.0.0.1")


class HostKind(str, Enum):
    GENERIC = "generic"
    TENANT = "tenant"
    TEAM = "team"
    UNRECOGNIZED = "unrecognized"


@dataclass(frozen=True, slots=True)
class HostClassification:
    kind: HostKind
    subdomain: str | None = None
    root_domain: str | None = None
    is_www: bool = False

    @property
    def has_tenant(self) -> bool:
        return self.kind in {HostKind.TENANT, HostKind.TEAM}


@dataclass(frozen=True, slots=True)
class AuthState:
    authenticated: bool = False
    privileged: bool = False
    email: str | None = None


ANONYMOUS = AuthState()


class RouteAction(str, Enum):
    PASS_THROUGH = "pass_through"
    REDIRECT = "redirect"
    REWRITE = "rewrite"
    DENY = "deny"


@dataclass(frozen=True, slots=True)
class RoutingDecision:
    action: RouteAction
    location: str | None = None
    status_code: int | None = None
    path: str | None = None
    tenant: str | None = None

    @classmethod
    def pass_through(cls, tenant: str | None = None) -> "RoutingDecision":
        return cls(RouteAction.PASS_THROUGH, tenant=tenant)

    @classmethod
    def redirect(cls, location: str, status_code: int = 307) -> "RoutingDecision":
        return cls(RouteAction.REDIRECT, location=location, status_code=status_code)

    @classmethod
    def rewrite(cls, path: str, tenant: str) -> "RoutingDecision":
        return cls(RouteAction.REWRITE, path=path, tenant=tenant)

    @classmethod
    def deny(cls, tenant: str | None = None) -> "RoutingDecision":
        return cls(RouteAction.DENY, status_code=403, tenant=tenant)


def sanitize_subdomain(subdomain: str) -> str:
    return re.sub(r"[^a-z0-9-]", "", subdomain.lower())


def is_valid_subdomain(subdomain: str) -> bool:
    sanitized = sanitize_subdomain(subdomain)
    return 0 < len(sanitized) <= 63 and sanitized == subdomain


def hostname_of(host: str | None) -> str:
    return (host or "").split(":")[0].strip().lower()


def _tenant_kind(subdomain: str, config: RoutingConfig, root: str | None) -> HostClassification:
    if not is_valid_subdomain(subdomain):
        return HostClassification(HostKind.UNRECOGNIZED, root_domain=root)
    kind = HostKind.TEAM if subdomain == config.team_subdomain else HostKind.TENANT
    return HostClassification(kind, subdomain=subdomain, root_domain=root)


def classify_host(
    host: str | None,
    query: Mapping[str, str] | None,
    config: RoutingConfig,
) -> HostClassification:
    hostname = hostname_of(host)

    override = ((query or {}).get(config.tenant_override_param) or "").strip().lower()
    if override:
        return _tenant_kind(override, config, None)

    for root in config.root_domains:
        if hostname == root:
            return HostClassification(HostKind.GENERIC, root_domain=root)
        if hostname == f"www.{root}":
            return HostClassification(HostKind.GENERIC, root_domain=root, is_www=True)
        if hostname.endswith(f".{root}"):
            return _tenant_kind(hostname[: -len(root) - 1], config, root)

    if hostname in _LOCAL_HOSTS:
        return HostClassification(HostKind.GENERIC)
    if hostname.endswith(".localhost"):
        return _tenant_kind(hostname.split(".")[0], config, None)

    if "---" in hostname and hostname.endswith(config.preview_domain_suffix):
        return _tenant_kind(hostname.split("---")[0], config, None)

    return HostClassification(HostKind.UNRECOGNIZED)


def is_static_path(path: str) -> bool:
    return path.startswith("/_next") or path.startswith("/favicon") or "." in path


def _under(path: str, prefix: str) -> bool:
    return path == prefix or path.startswith(prefix.rstrip("/") + "/")


def is_api_path(path: str, config: RoutingConfig) -> bool:
    return _under(path, config.api_prefix)


def is_public_path(path: str, config: RoutingConfig) -> bool:
    return any(_under(path, p) for p in config.public_paths)


def needs_session(classification: HostClassification, path: str, config: RoutingConfig) -> bool:
    """Whether `decide_route` will look at the auth state for this request."""

    if classification.is_www or not classification.has_tenant:
        return False
    if is_static_path(path) or is_api_path(path, config):
        return False
    if is_public_path(path, config):
        return path == config.login_path
    return True


def login_redirect(path: str, config: RoutingConfig) -> str:
    return f"{config.login_path}?redirect={quote(path, safe='/')}"


def decide_route(
    *,
    host: str | None,
    path: str,
    query: Mapping[str, str] | None,
    auth: AuthState,
    config: RoutingConfig,
    forwarded_proto: str = "https",
    classification: HostClassification | None = None,
) -> RoutingDecision:
    path = path or "/"
    if is_static_path(path):
        return RoutingDecision.pass_through()

    hc = classification or classify_host(host, query, config)

    if hc.is_www:
        return RoutingDecision.redirect(
            f"{forwarded_proto}://{hc.root_domain}{path}", status_code=301
        )

    if not hc.has_tenant:
        return RoutingDecision.pass_through()

    tenant = hc.subdomain
    if is_api_path(path, config):
        return RoutingDecision.pass_through(tenant=tenant)

    if is_public_path(path, config):
        if auth.authenticated and path == config.login_path:
            return RoutingDecision.redirect("/")
        return RoutingDecision.pass_through(tenant=tenant)

    if not auth.authenticated:
        return RoutingDecision.redirect(login_redirect(path, config))

    if hc.kind is HostKind.TEAM:
        if not auth.privileged:
            return RoutingDecision.deny(tenant=tenant)
        return RoutingDecision.rewrite(f"{config.team_route_prefix}{path}", tenant=tenant)

    return RoutingDecision.rewrite(f"{config.tenant_route_prefix}/{tenant}{path}", tenant=tenant)


def _safe_return_path(redirect_to: str | None) -> str:
    if not redirect_to or not redirect_to.startswith("/") or redirect_to.startswith("//"):
        return "/"
    return redirect_to


def sign_in_target(
    *,
    host: str | None,
    email: str,
    redirect_to: str | None,
    directory: TenantDirectory,
    config: RoutingConfig,
) -> str | None:
    """Cross-host destination after sign-in, or None to stay on this host.

    Only a generic host sends users elsewhere. Privileged identities go to the
    team host ahead of any tenant mapping; everyone else goes to their primary
    tenant. The caller navigates client-side, since this crosses origins.
    """

    hc = classify_host(host, None, config)
    if hc.kind is not HostKind.GENERIC:
        return None

    root = config.primary_root_domain
    next_path = _safe_return_path(redirect_to)

    if directory.is_privileged_identity(email):
        return f"https://{config.team_subdomain}.{root}{next_path}"

    try:
        subdomains = directory.get_subdomains_by_email(email)
    except DashboardError as e:
        logger.error("Error looking up subdomains for %s: %s", email, e.message)
        return None

    if not subdomains:
        return None
    return f"https://{subdomains[0]}.{root}{next_path}"
