"""Wiring: one backend, the auth context and the stores built on them."""

import logging
from typing import Optional, Union

from .api_client import ShopApiClient
from .auth import AuthManager
from .cart_store import CartStore
from .catalog_store import CatalogStore
from .checkout import CheckoutProjection, ShippingPolicy, free_shipping
from .config import Settings
from .database import LocalDatabase
from .models import AuthCredentials
from .review_store import ReviewStore
from .sample_data import SAMPLE_DATA
from .selection import Selection

logger = logging.getLogger(__name__)

Backend = Union[ShopApiClient, LocalDatabase]


class Shop:
    """Everything the MCP and HTTP servers need, built from Settings."""

    def __init__(
        self,
        settings: Settings,
        backend: Optional[Backend] = None,
        auth_manager: Optional[AuthManager] = None,
        shipping: ShippingPolicy = free_shipping,
    ) -> None:
        self.settings = settings
        self.auth_manager = auth_manager or AuthManager(session_file=settings.session_file)
        self.backend = backend or self._make_backend()

        self.catalog = CatalogStore(self.backend, settings)
        self.cart = CartStore(self.backend, self.backend, self.auth_manager, settings)
        self.reviews = ReviewStore(self.backend, self.auth_manager)
        self.selection = Selection()
        self.selection.attach(self.cart)
        self.checkout = CheckoutProjection(self.cart, self.selection, settings, shipping=shipping)

    def _make_backend(self) -> Backend:
        if self.settings.backend == "local":
            logger.info(f"Using local database at {self.settings.database_path}")
            database = LocalDatabase(self.settings.database_path, self.auth_manager)
            database.init()
            database.seed(SAMPLE_DATA)
            return database

        logger.info(f"Using REST API at {self.settings.api_base_url}")
        return ShopApiClient(
            self.auth_manager,
            self.settings.api_base_url,
            timeout=self.settings.request_timeout,
        )

    async def login(self, credentials: AuthCredentials) -> bool:
        success = await self.backend.login(credentials)
        if success:
            self.cart.reset()
        return success

    def logout(self) -> None:
        self.backend.logout()
        self.cart.reset()

    async def ensure_authenticated(self) -> bool:
        """Ensure a session exists, auto-login with configured credentials if needed."""
        if self.auth_manager.is_authenticated():
            return True

        credentials = self.settings.credentials
        if credentials:
            logger.info("Auto-logging in with configured credentials...")
            if await self.login(credentials):
                logger.info("Auto-login successful")
                return True
            logger.warning("Auto-login failed")

        return False

    async def close(self) -> None:
        if isinstance(self.backend, ShopApiClient):
            await self.backend.close()
        else:
            self.backend.close()
