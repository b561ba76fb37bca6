"""Error taxonomy.

Errors classify what went wrong; turning them into messages is left to the
caller (MCP tool handlers, HTTP routes).
"""

from typing import Optional


class ShopError(Exception):
    """Base class for all shop errors."""

    kind = "shop_error"

    def to_dict(self) -> dict:
        """Machine-readable form, used by the outer surfaces."""
        data = {"kind": self.kind}
        data.update({k: v for k, v in vars(self).items() if not k.startswith("_")})
        return data


class Unauthenticated(ShopError):
    """No user session."""

    kind = "unauthenticated"

    def __init__(self) -> None:
        super().__init__("unauthenticated")


class OutOfStock(ShopError):
    """Not enough stock for the requested quantity."""

    kind = "out_of_stock"

    def __init__(
        self,
        product_id: str,
        available: int,
        requested: int,
        applied_quantity: Optional[int] = None,
    ) -> None:
        super().__init__(f"out_of_stock: {product_id} (available={available}, requested={requested})")
        self.product_id = product_id
        self.available = available
        self.requested = requested
        self.applied_quantity = applied_quantity


class QuantityLimitExceeded(ShopError):
    """Requested quantity is above the per-product cap."""

    kind = "quantity_limit_exceeded"

    def __init__(
        self,
        product_id: str,
        limit: int,
        requested: int,
        applied_quantity: Optional[int] = None,
    ) -> None:
        super().__init__(f"quantity_limit_exceeded: {product_id} (limit={limit}, requested={requested})")
        self.product_id = product_id
        self.limit = limit
        self.requested = requested
        self.applied_quantity = applied_quantity


class InvalidQuantity(ShopError):
    kind = "invalid_quantity"

    def __init__(self, quantity: int) -> None:
        super().__init__(f"invalid_quantity: {quantity}")
        self.quantity = quantity


class RemovalConfirmationRequired(ShopError):
    """A quantity below 1 was requested; the caller must confirm removal."""

    kind = "removal_confirmation_required"

    def __init__(self, product_id: str) -> None:
        super().__init__(f"removal_confirmation_required: {product_id}")
        self.product_id = product_id


class EmptySelection(ShopError):
    kind = "empty_selection"

    def __init__(self) -> None:
        super().__init__("empty_selection")


class UnavailableItemSelected(ShopError):
    """Selected lines became unavailable before checkout."""

    kind = "unavailable_item_selected"

    def __init__(self, line_ids: list[str]) -> None:
        super().__init__(f"unavailable_item_selected: {', '.join(line_ids)}")
        self.line_ids = line_ids


class TransportError(ShopError):
    """The backing API or database call failed."""

    kind = "transport_error"

    def __init__(self, operation: str, detail: Optional[str] = None) -> None:
        super().__init__(f"transport_error: {operation}" + (f" ({detail})" if detail else ""))
        self.operation = operation
        self.detail = detail


class NotFound(ShopError):
    kind = "not_found"

    def __init__(self, resource: str, identifier: str) -> None:
        super().__init__(f"not_found: {resource} {identifier}")
        self.resource = resource
        self.identifier = identifier


class MutationInProgress(ShopError):
    """Another cart mutation is still pending."""

    kind = "mutation_in_progress"

    def __init__(self, operation: str) -> None:
        super().__init__(f"mutation_in_progress: {operation}")
        self.operation = operation
