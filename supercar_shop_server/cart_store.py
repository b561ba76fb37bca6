"""Cart store: the client's view of the user's cart."""

import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator, Callable, Optional

from .auth import AuthManager
from .config import Settings
from .errors import (
    InvalidQuantity,
    MutationInProgress,
    NotFound,
    OutOfStock,
    QuantityLimitExceeded,
    RemovalConfirmationRequired,
    ShopError,
    Unauthenticated,
)
from .models import Cart
from .sources import CartSource, CatalogSource

logger = logging.getLogger(__name__)

CartListener = Callable[[Optional[Cart], Optional[Cart]], None]


class CartStore:
    """
    Holds the canonical cart snapshot and mediates every cart mutation.

    Write-then-read-back: each successful mutation is followed by a full
    fetch_cart(), and the snapshot is only ever replaced whole with what the
    source returned. There is no optimistic local merge, so a failed mutation
    leaves the previous snapshot untouched.

    Only one mutation runs at a time; a second one started while the first is
    pending is rejected with MutationInProgress rather than queued.
    """

    def __init__(
        self,
        cart_source: CartSource,
        catalog_source: CatalogSource,
        auth_manager: AuthManager,
        settings: Optional[Settings] = None,
    ) -> None:
        self.cart_source = cart_source
        self.catalog_source = catalog_source
        self.auth_manager = auth_manager
        self.settings = settings or Settings()
        self.snapshot: Optional[Cart] = None
        self.error: Optional[ShopError] = None
        self._pending: Optional[str] = None
        self._listeners: list[CartListener] = []

    @property
    def max_quantity(self) -> int:
        return self.settings.max_quantity_per_product

    @property
    def is_busy(self) -> bool:
        return self._pending is not None

    def subscribe(self, listener: CartListener) -> Callable[[], None]:
        """
        Call listener(new_snapshot, previous_snapshot) after every snapshot swap.

        Returns:
            A function that unsubscribes the listener
        """
        self._listeners.append(listener)
        return lambda: self._listeners.remove(listener)

    def _require_user(self) -> str:
        user_id = self.auth_manager.current_user_id
        if not user_id:
            raise Unauthenticated()
        return user_id

    def _swap(self, cart: Optional[Cart]) -> None:
        previous = self.snapshot
        self.snapshot = cart
        for listener in list(self._listeners):
            listener(cart, previous)

    @asynccontextmanager
    async def _mutation(self, operation: str) -> AsyncIterator[str]:
        """In-flight guard around one mutation. Yields the user id."""
        user_id = self._require_user()
        if self._pending is not None:
            logger.warning(f"Rejecting {operation}: {self._pending} still in flight")
            raise MutationInProgress(operation)
        self._pending = operation
        try:
            yield user_id
        except ShopError as e:
            self.error = e
            raise
        finally:
            self._pending = None

    async def fetch_cart(self) -> Cart:
        """
        Load the canonical cart for the signed-in user.

        Raises:
            Unauthenticated: No user session
            TransportError: The source failed; the cached snapshot is kept
        """
        user_id = self._require_user()
        try:
            cart = await self.cart_source.get_cart(user_id)
        except ShopError as e:
            logger.error(f"Fetching cart failed, keeping previous snapshot: {e}")
            self.error = e
            raise

        self.error = None
        self._swap(cart)
        logger.info(f"Cart synced: {len(cart.lines)} line(s), {cart.item_count} unit(s)")
        return cart

    async def _current(self) -> Cart:
        if self.snapshot is None or self.snapshot.user_id != self.auth_manager.current_user_id:
            return await self.fetch_cart()
        return self.snapshot

    async def add_item(self, product_id: str, quantity: int = 1) -> Cart:
        """
        Add units of a product, then re-sync.

        Raises:
            Unauthenticated: No user session
            InvalidQuantity: quantity < 1
            QuantityLimitExceeded: The line would go above the per-product cap
            OutOfStock: Not enough stock (or the product is discontinued)
            NotFound: Unknown product
            MutationInProgress: Another cart mutation is pending
        """
        self._require_user()
        if quantity < 1:
            raise InvalidQuantity(quantity)

        async with self._mutation("add_item") as user_id:
            cart = await self._current()
            line = cart.line_for(product_id)
            existing = line.quantity if line else 0
            resulting = existing + quantity

            if resulting > self.max_quantity:
                raise QuantityLimitExceeded(product_id, self.max_quantity, resulting, applied_quantity=existing)

            product = await self.catalog_source.get_product(product_id)
            available = product.stock_quantity if product.status else 0
            if resulting > available:
                raise OutOfStock(product_id, available, resulting, applied_quantity=existing)

            logger.info(f"Adding {quantity} x {product_id} (line {existing} -> {resulting})")
            await self.cart_source.add_item(user_id, product_id, quantity)
            return await self.fetch_cart()

    async def update_item_quantity(
        self, product_id: str, new_quantity: int, confirm_removal: bool = False
    ) -> Cart:
        """
        Set a line's quantity, then re-sync.

        A quantity below 1 is a removal and needs confirm_removal=True;
        otherwise RemovalConfirmationRequired is raised and nothing changes.

        Quantities above the cap or the available stock are clamped: the
        clamped value is written, the cart re-synced, and then
        QuantityLimitExceeded (above the cap) or OutOfStock (above stock) is
        raised with applied_quantity set to what was stored.

        Raises:
            Unauthenticated: No user session
            RemovalConfirmationRequired: new_quantity < 1 without confirmation
            NotFound: The product has no line in the cart
            QuantityLimitExceeded: Clamped to the per-product cap
            OutOfStock: Clamped to stock, or no stock at all (nothing written)
            MutationInProgress: Another cart mutation is pending
        """
        self._require_user()
        if new_quantity < 1:
            if not confirm_removal:
                raise RemovalConfirmationRequired(product_id)
            return await self.remove_item(product_id)

        async with self._mutation("update_item_quantity") as user_id:
            cart = await self._current()
            line = cart.line_for(product_id)
            if line is None:
                raise NotFound("cart_line", product_id)

            product = await self.catalog_source.get_product(product_id)
            available = product.stock_quantity if product.status else 0
            allowed = min(new_quantity, self.max_quantity, available)
            if allowed < 1:
                raise OutOfStock(product_id, available, new_quantity, applied_quantity=line.quantity)

            if allowed != line.quantity:
                logger.info(f"Updating {product_id}: {line.quantity} -> {allowed} (requested {new_quantity})")
                await self.cart_source.update_item(user_id, product_id, allowed)
                cart = await self.fetch_cart()

            if new_quantity > self.max_quantity:
                raise QuantityLimitExceeded(product_id, self.max_quantity, new_quantity, applied_quantity=allowed)
            if new_quantity > allowed:
                raise OutOfStock(product_id, available, new_quantity, applied_quantity=allowed)
            return cart

    async def _remove_many(self, user_id: str, product_ids: list[str]) -> None:
        for product_id in product_ids:
            try:
                await self.cart_source.remove_item(user_id, product_id)
            except NotFound:
                logger.info(f"Product {product_id} was not in cart")

    async def remove_item(self, product_id: str) -> Cart:
        """
        Remove a product's line, then re-sync. Removing an absent product is a no-op.
        """
        async with self._mutation("remove_item") as user_id:
            logger.info(f"Removing {product_id} from cart")
            await self._remove_many(user_id, [product_id])
            return await self.fetch_cart()

    async def remove_items(self, product_ids: list[str]) -> Cart:
        """Remove several lines under one guard and re-sync once."""
        async with self._mutation("remove_items") as user_id:
            logger.info(f"Removing {len(product_ids)} product(s) from cart")
            await self._remove_many(user_id, list(product_ids))
            return await self.fetch_cart()

    async def clear_cart(self) -> Cart:
        """Remove every line. Confirmation is the caller's job."""
        async with self._mutation("clear_cart") as user_id:
            cart = await self._current()
            await self._remove_many(user_id, [line.product_id for line in cart.lines])
            return await self.fetch_cart()

    def reset(self) -> None:
        """Forget the snapshot (e.g. on logout)."""
        self.error = None
        self._swap(None)
