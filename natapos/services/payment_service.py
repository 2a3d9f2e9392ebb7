"""Payment validation for the counter checkout (local simulation, no gateway)."""
import time
from decimal import Decimal
from typing import Any, Dict, Optional

from natapos.exceptions import ValidationError, InsufficientCashError
from natapos.models import PaymentMethod, PaymentStatus, normalize_payment_method
from natapos.services.pricing import to_decimal


def validate_payment(method, cash_received, grand_total) -> Dict[str, Any]:
    """
    Check that a payment settles `grand_total`.

    Cash must cover the bill; change = received - total. QRIS is confirmed by
    the wallet provider so no amount is checked here.

    Returns:
        dict with method, amount, amount_received and change (None when not cash).

    Raises:
        ValidationError: unknown method or unreadable amount
        InsufficientCashError: cash received < grand total
    """
    try:
        method = normalize_payment_method(method)
    except ValueError as e:
        raise ValidationError(str(e))

    grand_total = Decimal(str(grand_total))
    result = {
        'method': method,
        'amount': grand_total,
        'amount_received': None,
        'change': None,
    }

    if method != PaymentMethod.CASH.value:
        return result

    if cash_received is None or cash_received == '':
        raise ValidationError('Cash received is required for cash payments')
    received = to_decimal(cash_received, 'Cash received')

    if received < grand_total:
        raise InsufficientCashError(received, grand_total)

    result['amount_received'] = received
    result['change'] = received - grand_total
    return result


def new_transaction_id(now_ms: Optional[int] = None) -> str:
    """Local transaction reference, TX_<epoch millis>."""
    return f"TX_{now_ms if now_ms is not None else int(time.time() * 1000)}"


def build_payment_record(validated: Dict[str, Any], transaction_id: Optional[str] = None) -> Dict[str, Any]:
    """Turn a validated payment into the payload create_order() persists."""
    return {
        'method': validated['method'],
        'amount': validated['amount'],
        'transaction_id': transaction_id or new_transaction_id(),
        'status': PaymentStatus.APPROVED.value,
        'amount_received': validated.get('amount_received'),
        'change': validated.get('change'),
    }
