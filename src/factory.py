"""
factory - Composition root for the order taker.

ALL dependency wiring happens here. No other module constructs its own
dependencies. Adapters (CLI, tests) call this factory to get fully
configured services.

Usage:
    from factory import ServiceFactory
    from infrastructure.config import Settings

    config = Settings.from_env()
    factory = ServiceFactory(config)
    await factory.initialize()  # one-time startup

    session = factory.create_session_controller()
    session.start()
    transfer = factory.create_transfer_service(session)
"""

from __future__ import annotations

import logging

from infrastructure.auth.local_provider import LocalAuthProvider
from infrastructure.config import Settings
from infrastructure.persistence.connection import AsyncSQLiteConnection
from infrastructure.persistence.document_store import SQLiteDocumentStore
from infrastructure.persistence.migrations import run_migrations
from application.repositories.menu import MenuRepository
from application.repositories.orders import OrderRepository
from application.services.authentication import AuthenticationService
from application.services.profile import ProfileService
from application.services.reports import ReportService
from application.services.session import SessionController
from application.services.transfer import TransferService

logger = logging.getLogger(__name__)


class ServiceFactory:
    """Wires the document store, auth provider and services together.

    Call initialize() once at startup, then create services as needed.
    The document store and auth provider are shared by everything this
    factory builds; repositories are new per session controller.
    """

    def __init__(self, config: Settings):
        self._config = config
        self._connection = AsyncSQLiteConnection(config.db_path)
        self._store = SQLiteDocumentStore(self._connection)
        self._auth_provider = LocalAuthProvider(
            self._connection,
            jwt_secret=config.jwt_secret,
            jwt_expiry_hours=config.jwt_expiry_hours,
            federated_secret=config.federated_secret,
            min_password_length=config.min_password_length,
            max_failed_sign_ins=config.max_failed_sign_ins,
            require_email_verification=config.require_email_verification,
        )
        self._initialized = False

    async def initialize(self) -> None:
        """One-time startup: create tables. Must run before anything else."""
        await run_migrations(self._connection)
        self._initialized = True
        logger.info("ServiceFactory ready (db=%s)", self._config.db_path)

    @property
    def config(self) -> Settings:
        return self._config

    @property
    def store(self) -> SQLiteDocumentStore:
        return self._store

    @property
    def auth_provider(self) -> LocalAuthProvider:
        return self._auth_provider

    # ------------------------------------------------------------------
    # Service creation
    # ------------------------------------------------------------------

    def create_order_repository(self) -> OrderRepository:
        return OrderRepository(self._store, self._config.sync_policy)

    def create_menu_repository(self) -> MenuRepository:
        return MenuRepository(self._store, self._config.sync_policy)

    def create_profile_service(self) -> ProfileService:
        return ProfileService(self._store)

    def create_authentication_service(self) -> AuthenticationService:
        self._ensure_initialized()
        return AuthenticationService(self._auth_provider, self.create_profile_service())

    def create_session_controller(self) -> SessionController:
        """A controller with fresh repositories; call start() on a running loop."""
        self._ensure_initialized()
        return SessionController(
            auth=self._auth_provider,
            orders=self.create_order_repository(),
            menu=self.create_menu_repository(),
            profiles=self.create_profile_service(),
        )

    @staticmethod
    def create_transfer_service(session: SessionController) -> TransferService:
        return TransferService(session.orders, session.menu)

    @staticmethod
    def create_report_service(session: SessionController) -> ReportService:
        return ReportService(session.orders, session.menu)

    # ------------------------------------------------------------------
    # Private helpers
    # ------------------------------------------------------------------

    def _ensure_initialized(self) -> None:
        if not self._initialized:
            raise RuntimeError(
                "ServiceFactory not initialized. Call await factory.initialize() first."
            )
