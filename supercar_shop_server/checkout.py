"""Checkout projection: totals and pre-checkout validation over the selection."""

import logging
from typing import Callable, Iterable, Optional

from .cart_store import CartStore
from .config import Settings
from .errors import EmptySelection, UnavailableItemSelected
from .models import CartLine, CheckoutSummary, LowStockWarning
from .selection import Selection

logger = logging.getLogger(__name__)

ShippingPolicy = Callable[[list[CartLine]], int]


def free_shipping(lines: list[CartLine]) -> int:
    return 0


def flat_shipping(fee: int) -> ShippingPolicy:
    """Charge `fee` whenever at least one line is shipped."""
    if fee < 0:
        raise ValueError("Shipping fee must be >= 0")

    def policy(lines: list[CartLine]) -> int:
        return fee if lines else 0

    return policy


class CheckoutProjection:
    """Derives the purchasable subset of the cart for the checkout handoff."""

    def __init__(
        self,
        cart_store: CartStore,
        selection: Selection,
        settings: Optional[Settings] = None,
        shipping: ShippingPolicy = free_shipping,
    ) -> None:
        self.cart_store = cart_store
        self.selection = selection
        self.settings = settings or Settings()
        self.shipping = shipping

    def low_stock_warnings(self, lines: Iterable[CartLine]) -> list[LowStockWarning]:
        threshold = self.settings.low_stock_threshold
        return [
            LowStockWarning(line_id=line.id, product_id=line.product_id, name=line.name, in_stock=line.in_stock)
            for line in lines
            if 0 < line.in_stock <= threshold
        ]

    def compute_totals(self, lines: Optional[list[CartLine]] = None) -> CheckoutSummary:
        """
        Subtotal, shipping and total for the given lines (default: the selection).
        """
        if lines is None:
            lines = self.selection.selected_lines
        subtotal = sum(line.price * line.quantity for line in lines)
        shipping = self.shipping(lines)
        return CheckoutSummary(
            line_ids=[line.id for line in lines],
            lines=lines,
            subtotal=subtotal,
            shipping=shipping,
            total=subtotal + shipping,
            warnings=self.low_stock_warnings(lines),
        )

    async def prepare_checkout(self, refresh: bool = True) -> CheckoutSummary:
        """
        Validate the selection at submit time and return the checkout summary.

        With refresh (the default) the cart is re-read first and the lines
        that were selected are checked against the fresh snapshot, so a line
        that sold out or was discontinued since it was selected is caught.
        Low stock is reported in summary.warnings and does not block.

        Raises:
            EmptySelection: Nothing selected
            UnavailableItemSelected: A selected line is gone or unavailable
            TransportError: The refresh failed
        """
        chosen = self.selection.selected_ids
        if not chosen:
            raise EmptySelection()

        if refresh:
            await self.cart_store.fetch_cart()

        cart = self.cart_store.snapshot
        lines = []
        unavailable = []
        for line_id in chosen:
            line = cart.line_by_id(line_id) if cart is not None else None
            if line is None or not line.is_available:
                unavailable.append(line_id)
            else:
                lines.append(line)

        if unavailable:
            logger.warning(f"Checkout blocked, {len(unavailable)} selected line(s) unavailable")
            raise UnavailableItemSelected(unavailable)

        summary = self.compute_totals(lines)
        if summary.warnings:
            logger.info(f"Checkout has {len(summary.warnings)} low-stock line(s)")
        return summary
