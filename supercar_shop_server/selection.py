"""Selection of cart lines for checkout."""

import logging
from enum import Enum
from typing import Optional

from .models import Cart, CartLine

logger = logging.getLogger(__name__)


class ToggleResult(str, Enum):
    SELECTED = "selected"
    DESELECTED = "deselected"
    UNAVAILABLE = "unavailable"
    UNKNOWN_LINE = "unknown_line"


class Selection:
    """
    The set of cart line ids marked for checkout.

    Only available lines (in stock and not discontinued) can ever be
    selected. The selection follows the cart snapshot: attach it to a
    CartStore (or call reconcile() directly) and after every refresh it is
    intersected with the new snapshot's selectable lines. The first snapshot
    selects every selectable line, and lines that appear in a later snapshot
    start out selected too.
    """

    def __init__(self) -> None:
        self.cart: Optional[Cart] = None
        self._selected: set[str] = set()

    def attach(self, cart_store) -> None:
        """Follow a CartStore's snapshot swaps."""
        cart_store.subscribe(self.reconcile)
        if cart_store.snapshot is not None:
            self.reconcile(cart_store.snapshot, None)

    @property
    def selected_ids(self) -> list[str]:
        """Selected ids, in cart order."""
        if self.cart is None:
            return []
        return [line.id for line in self.cart.lines if line.id in self._selected]

    @property
    def selected_lines(self) -> list[CartLine]:
        if self.cart is None:
            return []
        return [line for line in self.cart.lines if line.id in self._selected]

    def selectable_ids(self) -> list[str]:
        if self.cart is None:
            return []
        return [line.id for line in self.cart.lines if line.is_available]

    @property
    def all_selected(self) -> bool:
        selectable = self.selectable_ids()
        return bool(selectable) and set(selectable) == self._selected

    def is_selected(self, line_id: str) -> bool:
        return line_id in self._selected

    def reconcile(self, cart: Optional[Cart], previous: Optional[Cart] = None) -> None:
        """Recompute the selection for a new snapshot."""
        if cart is None:
            self.cart = None
            self._selected = set()
            return

        selectable = {line.id for line in cart.lines if line.is_available}
        if self.cart is None or self.cart.user_id != cart.user_id:
            self._selected = selectable
        else:
            known = {line.id for line in self.cart.lines}
            added = {line_id for line_id in selectable if line_id not in known}
            dropped = self._selected - selectable
            if dropped:
                logger.debug(f"Dropping {len(dropped)} line(s) from selection")
            self._selected = (self._selected & selectable) | added
        self.cart = cart

    def toggle(self, line_id: str) -> ToggleResult:
        """
        Flip one line's selection.

        Unavailable or unknown lines are left alone and reported as such.
        """
        line = self.cart.line_by_id(line_id) if self.cart is not None else None
        if line is None:
            return ToggleResult.UNKNOWN_LINE
        if not line.is_available:
            return ToggleResult.UNAVAILABLE

        if line_id in self._selected:
            self._selected.discard(line_id)
            return ToggleResult.DESELECTED
        self._selected.add(line_id)
        return ToggleResult.SELECTED

    def toggle_select_all(self) -> list[str]:
        """Select every selectable line, or clear the selection if they all are."""
        if self.all_selected:
            self._selected = set()
        else:
            self._selected = set(self.selectable_ids())
        return self.selected_ids

    def clear(self) -> None:
        self._selected = set()
