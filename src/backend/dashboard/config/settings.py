"""Service wiring for the dashboard.

Builds the sheets backend, tab layout, tenant directory, record store, batch
engine and session verifier from `AppConfig`. Everything is created on first
use so importing the app never touches Google credentials.
"""

import logging
from datetime import datetime
from typing import Callable, Optional

from src.backend.common.config.app_config import AppConfig, config
from src.backend.dashboard.integrations.google_sheets_client import (
    GoogleSheetsClient,
    SheetsBackend,
)
from src.backend.dashboard.integrations.session_verifier import SessionVerifier
from src.backend.dashboard.integrations.tenant_directory import TenantDirectory
from src.backend.dashboard.use_cases.batch_updates import BatchUpdateEngine
from src.backend.dashboard.use_cases.sheet_store import SheetStore
from src.backend.dashboard.use_cases.tab_resolver import SheetLayout, load_sheet_layout

logger = logging.getLogger(__name__)


class DashboardServices:
    def __init__(
        self,
        cfg: AppConfig,
        *,
        backend: Optional[SheetsBackend] = None,
        layout: Optional[SheetLayout] = None,
        verifier: Optional[SessionVerifier] = None,
        clock: Callable[[], datetime] = datetime.now,
    ):
        self.config = cfg
        self._backend = backend
        self._layout = layout
        self._verifier = verifier
        self._clock = clock
        self._directory: Optional[TenantDirectory] = None
        self._store: Optional[SheetStore] = None
        self._batch_engine: Optional[BatchUpdateEngine] = None

    @property
    def backend(self) -> SheetsBackend:
        if self._backend is None:
            self._backend = GoogleSheetsClient.from_config(self.config)
            logger.info("Google Sheets client initialized")
        return self._backend

    @property
    def layout(self) -> SheetLayout:
        if self._layout is None:
            self._layout = load_sheet_layout(self.config.sheet_tabs_path)
        return self._layout

    @property
    def directory(self) -> TenantDirectory:
        if self._directory is None:
            self._directory = TenantDirectory(
                backend=self.backend,
                spreadsheet_id=self.config.client_mapping_sheet_id,
                tab_name=self.layout.directory_tab,
                root_domain=self.config.routing.primary_root_domain,
                team_emails=self.config.team_emails,
                master_user_emails=self.config.master_user_emails,
            )
        return self._directory

    @property
    def store(self) -> SheetStore:
        if self._store is None:
            self._store = SheetStore(
                backend=self.backend,
                layout=self.layout,
                directory=self.directory,
                clock=self._clock,
            )
        return self._store

    @property
    def batch_engine(self) -> BatchUpdateEngine:
        if self._batch_engine is None:
            self._batch_engine = BatchUpdateEngine(
                self.store,
                chunk_size=self.config.batch_chunk_size,
                delay_seconds=self.config.batch_delay_ms / 1000,
                max_items=self.config.batch_max_items,
            )
        return self._batch_engine

    @property
    def verifier(self) -> SessionVerifier:
        if self._verifier is None:
            self._verifier = SessionVerifier.from_config(self.config)
        return self._verifier

    def is_privileged(self, email: Optional[str]) -> bool:
        """Team check from config alone, so the gate never needs sheet credentials."""
        return bool(email) and email.strip().lower() in self.config.team_emails


services = DashboardServices(config)


def get_services() -> DashboardServices:
    """FastAPI dependency; tests override it with a container over fakes."""
    return services
