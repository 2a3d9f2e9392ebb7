"""
Shared pricing calculator.

Two tax rates exist on purpose and must not be merged silently:
- POS_TAX_RATE (default 8%) prices orders created through the table-service path.
- POS_CHECKOUT_TAX_RATE (default 10%) is what the counter checkout charges.
"""
from decimal import Decimal, InvalidOperation, ROUND_HALF_UP
from typing import Any, Dict, Iterable, Optional

from natapos.exceptions import ValidationError

UNIT = Decimal('1')
DEFAULT_TAX_RATE = Decimal('0.08')
DEFAULT_CHECKOUT_TAX_RATE = Decimal('0.10')


def round_amount(value) -> Decimal:
    """Round half-up to whole Rupiah."""
    return Decimal(value).quantize(UNIT, rounding=ROUND_HALF_UP)


def _config_rate(key: str, default: Decimal) -> Decimal:
    try:
        from flask import current_app
        return Decimal(str(current_app.config.get(key, default)))
    except RuntimeError:
        # Outside an application context
        return default


def get_tax_rate() -> Decimal:
    return _config_rate('POS_TAX_RATE', DEFAULT_TAX_RATE)


def get_checkout_tax_rate() -> Decimal:
    return _config_rate('POS_CHECKOUT_TAX_RATE', DEFAULT_CHECKOUT_TAX_RATE)


def to_decimal(value, label: str) -> Decimal:
    """Decimal from user input. Non-numbers, NaN and Infinity are validation errors."""
    if isinstance(value, bool):
        raise ValidationError(f'{label} must be a number')
    try:
        result = Decimal(str(value))
    except (InvalidOperation, ValueError, TypeError):
        raise ValidationError(f'{label} must be a number, got {value!r}')
    if not result.is_finite():
        raise ValidationError(f'{label} must be a finite number')
    return result


def to_quantity(value, label: str = 'Quantity') -> int:
    if isinstance(value, bool) or (isinstance(value, float) and not value.is_integer()):
        raise ValidationError(f'{label} must be a whole number')
    try:
        return int(value)
    except (ValueError, TypeError, OverflowError):
        raise ValidationError(f'{label} must be a whole number, got {value!r}')


def line_values(item: Dict[str, Any]):
    """(name, price, quantity) of one line, checked before anything is written."""
    if not isinstance(item, dict):
        raise ValidationError('Each item must be an object')
    name = item.get('name')
    if not isinstance(name, str) or not name.strip():
        raise ValidationError('Each item needs a name')
    name = name.strip()

    price = item.get('price', item.get('unit_price'))
    quantity = item.get('quantity', item.get('qty'))
    if price is None or quantity is None:
        raise ValidationError(f"'{name}' needs a price and a quantity")

    price = to_decimal(price, f"Price for '{name}'")
    quantity = to_quantity(quantity, f"Quantity for '{name}'")
    if quantity < 1:
        raise ValidationError(f"Quantity for '{name}' must be at least 1")
    if price < 0:
        raise ValidationError(f"Price for '{name}' cannot be negative")
    return name, price, quantity


def calculate_subtotal(items: Iterable[Dict[str, Any]]) -> Decimal:
    subtotal = Decimal('0')
    for item in items:
        _, price, quantity = line_values(item)
        subtotal += price * quantity
    return subtotal


def calculate_order_totals(items, discount_percent=0, tax_rate: Optional[Decimal] = None) -> Dict[str, Decimal]:
    """
    Price an order.

    tax = round((subtotal - discount) * tax_rate)
    total = subtotal - discount + tax

    Example (8%): subtotal 81000, 10% discount -> discount 8100, tax 5832, total 78732.
    """
    rate = get_tax_rate() if tax_rate is None else Decimal(str(tax_rate))
    percent = to_decimal(discount_percent or 0, 'Discount')
    if not Decimal('0') <= percent <= Decimal('1'):
        raise ValidationError('Discount must be between 0% and 100%')

    subtotal = calculate_subtotal(items)
    discount = round_amount(subtotal * percent)
    tax = round_amount((subtotal - discount) * rate)
    total = subtotal - discount + tax

    return {
        'subtotal': subtotal,
        'discount': discount,
        'tax': tax,
        'total': total,
    }


def calculate_checkout_totals(items, tax_rate: Optional[Decimal] = None) -> Dict[str, Decimal]:
    """
    Counter checkout totals: flat tax on the cart subtotal, no discount.

    [25000 x 2, 5000 x 2] at 10% -> subtotal 60000, tax 6000, grand total 66000.
    """
    rate = get_checkout_tax_rate() if tax_rate is None else Decimal(str(tax_rate))
    subtotal = calculate_subtotal(items)
    tax = round_amount(subtotal * rate)
    return {
        'subtotal': subtotal,
        'tax': tax,
        'grand_total': subtotal + tax,
        'tax_rate': rate,
    }
