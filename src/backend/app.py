import logging

from contextlib import asynccontextmanager

from src.backend.common.config.app_config import config

# FastAPI imports
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

# Local imports
from src.backend.dashboard.api.errors import register_exception_handlers
from src.backend.dashboard.api.pages import pages_router
from src.backend.dashboard.api.router import dashboard_router
from src.backend.dashboard.api.team_router import team_router
from src.backend.dashboard.config.settings import get_services
from src.backend.middleware.tenant_gate import TenantGateMiddleware


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Manage FastAPI application lifecycle - startup and shutdown."""
    logger = logging.getLogger(__name__)

    # Startup
    logger.info("🚀 Starting seller dashboard application...")
    if not config.client_mapping_sheet_id:
        logger.warning("CLIENT_MAPPING_SHEET_ID is not set; tenant lookups will fail")
    if not config.auth_url:
        logger.warning("AUTH_URL is not set; every request will be treated as anonymous")
    if not config.team_emails:
        logger.warning("TEAM_EMAILS is not set; the team dashboard is closed to everyone")
    yield

    # Shutdown
    logger.info("👋 Seller dashboard application shutdown complete")


# Configure logging levels from environment variables
logging.basicConfig(level=getattr(logging, config.basic_logging_level.upper(), logging.INFO))

# Configure third-party package logging levels
package_level = getattr(logging, config.package_logging_level.upper(), logging.WARNING)
# Parse comma-separated logging packages
if config.logging_packages:
    packages = [pkg.strip() for pkg in config.logging_packages.split(",") if pkg.strip()]
    for logger_name in packages:
        logging.getLogger(logger_name).setLevel(package_level)

# Initialize the FastAPI app
app = FastAPI(lifespan=lifespan)


def _current_services():
    # Middleware sits outside dependency injection; honour test overrides here too.
    return app.dependency_overrides.get(get_services, get_services)()


# Tenant resolution + access gate (runs before routing)
app.add_middleware(TenantGateMiddleware, services_provider=_current_services)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],  # Allow all origins for development; restrict in production
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

register_exception_handlers(app)

app.include_router(dashboard_router)
app.include_router(team_router)
app.include_router(pages_router)
logging.info("Added tenant gate middleware and dashboard routers")


@app.get("/health")
async def health():
    return {"status": "ok"}


# Run the app
if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "src.backend.app:app",
        host="127.0.0.1",
        port=8000,
        reload=True,
        log_level="info",
        access_log=False,
    )
