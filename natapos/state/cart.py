"""Cart - client-local basket, one per operator, discarded after checkout."""
import threading
from collections import OrderedDict
from dataclasses import dataclass, asdict
from decimal import Decimal
from typing import Any, Dict, List, Optional

from natapos.exceptions import ValidationError, NotFoundError
from natapos.services.pricing import calculate_checkout_totals, to_decimal, to_quantity
from natapos.state.events import EventBus, CART_CHANGED


def make_line_key(item_id, notes: str = '') -> str:
    """Lines are keyed by (item, notes): same dish with other notes is another line."""
    return f"{item_id}|{(notes or '').strip()}"


@dataclass
class CartLine:
    """One menu item in the cart."""

    key: str
    item_id: Any
    name: str
    price: Decimal
    quantity: int
    notes: str = ''

    @property
    def line_total(self) -> Decimal:
        return self.price * self.quantity

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        data['line_total'] = self.line_total
        return data


class Cart:
    """Cart lines, quantity always > 0."""

    def __init__(self, owner=None, bus: Optional[EventBus] = None):
        self.owner = owner
        self.bus = bus
        self._lines: "OrderedDict[str, CartLine]" = OrderedDict()

    def _changed(self):
        if self.bus is not None:
            self.bus.publish(CART_CHANGED, {'owner': self.owner, 'item_count': self.item_count})

    def add(self, item: Dict[str, Any], quantity: int = 1, notes: str = '') -> CartLine:
        """Add a menu item; an existing (item, notes) line is incremented."""
        if not isinstance(item, dict):
            raise ValidationError('Menu item must be an object')
        item_id = item.get('id', item.get('product_id'))
        if item_id is None or not isinstance(item.get('name'), str) or not item['name'].strip():
            raise ValidationError('Menu item needs an id and a name')
        quantity = to_quantity(quantity)
        if quantity < 1:
            raise ValidationError('Quantity must be at least 1')
        price = to_decimal(item.get('price', 0), 'Price')
        if price < 0:
            raise ValidationError('Price cannot be negative')

        notes = str(notes or '').strip()
        key = make_line_key(item_id, notes)
        line = self._lines.get(key)
        if line is None:
            line = CartLine(key=key, item_id=item_id, name=item['name'], price=price, quantity=quantity, notes=notes)
            self._lines[key] = line
        else:
            line.quantity += quantity
        self._changed()
        return line

    def update_quantity(self, key: str, quantity: int) -> Optional[CartLine]:
        """Set a line's quantity. Zero or less removes the line and returns None."""
        if not isinstance(key, str) or key not in self._lines:
            raise NotFoundError(f'Cart line {key} not found')
        quantity = to_quantity(quantity)
        if quantity <= 0:
            del self._lines[key]
            self._changed()
            return None
        self._lines[key].quantity = quantity
        self._changed()
        return self._lines[key]

    def remove(self, key: str) -> bool:
        if not isinstance(key, str) or self._lines.pop(key, None) is None:
            return False
        self._changed()
        return True

    def clear(self) -> None:
        self._lines.clear()
        self._changed()

    @property
    def lines(self) -> List[CartLine]:
        return list(self._lines.values())

    @property
    def is_empty(self) -> bool:
        return not self._lines

    @property
    def item_count(self) -> int:
        return sum(line.quantity for line in self._lines.values())

    @property
    def subtotal(self) -> Decimal:
        return sum((line.line_total for line in self._lines.values()), Decimal('0'))

    def order_items(self) -> List[Dict[str, Any]]:
        """Lines in the shape create_order() takes."""
        return [
            {
                'product_id': line.item_id if str(line.item_id).isdigit() else None,
                'name': line.name,
                'price': line.price,
                'quantity': line.quantity,
                'notes': line.notes or None,
            }
            for line in self._lines.values()
        ]

    def totals(self, tax_rate=None) -> Dict[str, Decimal]:
        return calculate_checkout_totals(self.order_items(), tax_rate=tax_rate)

    def to_dict(self) -> Dict[str, Any]:
        return {
            'owner': self.owner,
            'lines': [line.to_dict() for line in self._lines.values()],
            'item_count': self.item_count,
            'subtotal': self.subtotal,
        }


class CartRegistry:
    """One cart per operator, kept in memory by this process."""

    def __init__(self, bus: Optional[EventBus] = None):
        self.bus = bus
        self._carts: Dict[Any, Cart] = {}
        self._lock = threading.Lock()

    def get(self, owner) -> Cart:
        with self._lock:
            cart = self._carts.get(owner)
            if cart is None:
                cart = Cart(owner=owner, bus=self.bus)
                self._carts[owner] = cart
            return cart

    def discard(self, owner) -> None:
        with self._lock:
            self._carts.pop(owner, None)
