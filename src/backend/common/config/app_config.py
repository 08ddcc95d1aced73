"""Application configuration loaded from the environment.

Values come from process env after `.env` is loaded. Blank placeholders in
`.env.example` never override real values.
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path

from dotenv import dotenv_values, load_dotenv

load_dotenv(override=False)

if not os.environ.get("CLIENT_MAPPING_SHEET_ID"):
    example_path = os.path.abspath(".env.example")
    if os.path.exists(example_path):
        for k, v in (dotenv_values(example_path) or {}).items():
            if not k or v is None or v == "":
                continue
            if not os.environ.get(k):
                os.environ[k] = v


REPO_ROOT = Path(__file__).resolve().parents[4]

DEFAULT_ROOT_DOMAINS = ("sellercentry.com", "seller-centry-platform.vercel.app")
# Privileged identities come from the environment only; unset means nobody.
DEFAULT_TEAM_EMAILS: tuple[str, ...] = ()
DEFAULT_MASTER_USER_EMAILS: tuple[str, ...] = ()


def _csv(value: str | None, default: tuple[str, ...]) -> tuple[str, ...]:
    if not value:
        return default
    items = tuple(v.strip().lower() for v in value.split(",") if v.strip())
    return items or default


def _int(name: str, default: int) -> int:
    raw = os.environ.get(name, "").strip()
    return int(raw) if raw else default


@dataclass(frozen=True, slots=True)
class RoutingConfig:
    """Inputs to host classification. Kept separate so routing stays pure."""

    root_domains: tuple[str, ...] = DEFAULT_ROOT_DOMAINS
    preview_domain_suffix: str = ".vercel.app"
    team_subdomain: str = "team"
    tenant_override_param: str = "tenant"
    login_path: str = "/login"
    public_paths: tuple[str, ...] = ("/login", "/auth/callback", "/forgot-password")
    api_prefix: str = "/api"
    tenant_route_prefix: str = "/s"
    team_route_prefix: str = "/team"

    @property
    def primary_root_domain(self) -> str:
        return self.root_domains[0]


@dataclass(frozen=True, slots=True)
class AppConfig:
    client_mapping_sheet_id: str = ""
    google_service_account_key: str | None = None
    google_sa_file: str | None = None
    google_http_timeout_seconds: int = 30
    sheets_num_retries: int = 2
    sheet_tabs_path: Path = REPO_ROOT / "data" / "sheet_tabs.yaml"
    team_emails: tuple[str, ...] = DEFAULT_TEAM_EMAILS
    master_user_emails: tuple[str, ...] = DEFAULT_MASTER_USER_EMAILS
    auth_url: str = ""
    auth_anon_key: str = ""
    auth_http_timeout_seconds: float = 10.0
    batch_chunk_size: int = 5
    batch_delay_ms: int = 100
    batch_max_items: int = 50
    basic_logging_level: str = "INFO"
    package_logging_level: str = "WARNING"
    logging_packages: str = "googleapiclient.discovery_cache,httpx"
    routing: RoutingConfig = field(default_factory=RoutingConfig)

    @classmethod
    def from_env(cls) -> "AppConfig":
        routing = RoutingConfig(
            root_domains=_csv(os.environ.get("ROOT_DOMAINS"), DEFAULT_ROOT_DOMAINS),
            preview_domain_suffix=os.environ.get("PREVIEW_DOMAIN_SUFFIX", ".vercel.app"),
            team_subdomain=os.environ.get("TEAM_SUBDOMAIN", "team").strip().lower() or "team",
        )
        tabs_path = os.environ.get("SHEET_TABS_PATH")
        return cls(
            client_mapping_sheet_id=os.environ.get("CLIENT_MAPPING_SHEET_ID", ""),
            google_service_account_key=os.environ.get("GOOGLE_SERVICE_ACCOUNT_KEY") or None,
            google_sa_file=os.environ.get("GOOGLE_SA_FILE") or None,
            google_http_timeout_seconds=_int("GOOGLE_HTTP_TIMEOUT_SECONDS", 30),
            sheets_num_retries=_int("SHEETS_NUM_RETRIES", 2),
            sheet_tabs_path=Path(tabs_path) if tabs_path else REPO_ROOT / "data" / "sheet_tabs.yaml",
            team_emails=_csv(os.environ.get("TEAM_EMAILS"), DEFAULT_TEAM_EMAILS),
            master_user_emails=_csv(
                os.environ.get("MASTER_USER_EMAILS"), DEFAULT_MASTER_USER_EMAILS
            ),
            auth_url=os.environ.get("AUTH_URL", "").rstrip("/"),
            auth_anon_key=os.environ.get("AUTH_ANON_KEY", ""),
            auth_http_timeout_seconds=float(os.environ.get("AUTH_HTTP_TIMEOUT_SECONDS", "10")),
            batch_chunk_size=_int("BATCH_CHUNK_SIZE", 5),
            batch_delay_ms=_int("BATCH_DELAY_MS", 100),
            batch_max_items=_int("BATCH_MAX_ITEMS", 50),
            basic_logging_level=os.environ.get("BASIC_LOGGING_LEVEL", "INFO"),
            package_logging_level=os.environ.get("PACKAGE_LOGGING_LEVEL", "WARNING"),
            logging_packages=os.environ.get(
                "LOGGING_PACKAGES", "googleapiclient.discovery_cache,httpx"
            ),
            routing=routing,
        )


config = AppConfig.from_env()
