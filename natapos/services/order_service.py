"""
Order service - persistence of the order lifecycle.
Handles order creation, daily numbering, status transitions and queries.
"""
import logging
from datetime import datetime, date
from decimal import Decimal
from typing import Any, Dict, Iterable, List, Optional

from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import selectinload
from sqlalchemy.orm.exc import StaleDataError

from natapos.models import (
    Order, OrderItem, OrderPayment, OrderSequence, OrderStatus, OrderType,
    PaymentStatus, ACTIVE_STATUSES, TERMINAL_STATUSES, can_transition, normalize_payment_method
)
from natapos.exceptions import (
    PosError, ValidationError, NotFoundError, InvalidTransitionError,
    ConcurrentUpdateError, PersistenceError
)
from natapos.services.pricing import calculate_order_totals, line_values, to_decimal, to_quantity
from natapos.services.realtime_service import publish_change, INSERT, UPDATE
from natapos.services.cache_service import invalidate_summaries

logger = logging.getLogger(__name__)

NUMBER_ATTEMPTS = 3


def _order_number_prefix() -> str:
    try:
        from flask import current_app
        return current_app.config.get('ORDER_NUMBER_PREFIX', 'NF')
    except RuntimeError:
        return 'NF'


def format_order_number(day: date, sequence: int, prefix: str = 'NF') -> str:
    """NF-YYMMDD-### (grows past three digits after 999 orders in a day)."""
    return f"{prefix}-{day.strftime('%y%m%d')}-{sequence:03d}"


def next_order_number(session, when: Optional[datetime] = None, prefix: Optional[str] = None) -> str:
    """
    Issue the next order number of the day.

    The day's counter row is locked (SELECT ... FOR UPDATE) and incremented
    inside the caller's transaction, so two terminals can never read the same
    value. Must be followed by a commit or rollback of that transaction.
    """
    day = (when or datetime.now()).date()
    seq = (
        session.query(OrderSequence)
        .filter(OrderSequence.business_day == day)
        .with_for_update()
        .first()
    )
    if seq is None:
        seq = OrderSequence(business_day=day, last_value=0)
        session.add(seq)
    seq.last_value += 1
    session.flush()
    return format_order_number(day, seq.last_value, prefix or _order_number_prefix())


def _customer_initials(name: str) -> str:
    parts = [p for p in (name or '').split() if p]
    return ''.join(p[0] for p in parts[:2]).upper()


def _optional_amount(payment, field):
    value = payment.get(field)
    return None if value is None else to_decimal(value, f'Payment {field}')


def _build_order(items, order_type, meta, payment, status, totals, staff_id, number) -> Order:
    meta = meta or {}
    customer = meta.get('customer') or {}

    order = Order(
        order_number=number,
        type=OrderType(order_type),
        status=OrderStatus(status),
        table_label=meta.get('table'),
        server_name=meta.get('server'),
        guest_count=meta.get('guest_count'),
        platform=meta.get('platform'),
        kitchen_notes=meta.get('kitchen_notes'),
        customer_name=customer.get('name'),
        customer_phone=customer.get('phone'),
        customer_initials=customer.get('initials') or (_customer_initials(customer['name']) if customer.get('name') else None),
        subtotal=totals['subtotal'],
        discount=totals['discount'],
        discount_label=meta.get('discount_label'),
        tax=totals['tax'],
        total=totals['total'],
        staff_id=staff_id,
        created_at=datetime.now(),
    )

    for item in items:
        name, price, quantity = line_values(item)
        order.items.append(OrderItem(
            product_id=item.get('product_id') or item.get('id'),
            name=name,
            quantity=quantity,
            unit_price=price,
            line_total=price * quantity,
            notes=item.get('notes') or None,
        ))

    if payment:
        method = normalize_payment_method(payment.get('method'))
        order.payment = OrderPayment(
            method=method,
            amount=to_decimal(payment.get('amount', totals['total']), 'Payment amount'),
            transaction_id=payment.get('transaction_id'),
            status=payment.get('status', PaymentStatus.APPROVED.value),
            amount_received=_optional_amount(payment, 'amount_received'),
            change_amount=_optional_amount(payment, 'change'),
        )
    return order


def create_order(
    session,
    items: List[Dict[str, Any]],
    order_type: str = OrderType.DINE_IN.value,
    meta: Optional[Dict[str, Any]] = None,
    payment: Optional[Dict[str, Any]] = None,
    status: str = OrderStatus.WAITING.value,
    discount_percent=0,
    tax_rate=None,
    staff_id: Optional[int] = None,
) -> Order:
    """
    Persist an order header, its lines and payment as one transaction.

    Totals are always recomputed here from the lines; callers cannot
    inject their own figures.

    Raises:
        ValidationError: empty item list, bad quantities/prices, unknown type
        PersistenceError: the database rejected the write (nothing was created)
    """
    if not items:
        raise ValidationError('Order must contain at least one item')
    if not isinstance(items, list):
        raise ValidationError('Items must be a list')
    try:
        OrderType(order_type)
        OrderStatus(status)
    except ValueError as e:
        raise ValidationError(str(e))
    if payment:
        if not isinstance(payment, dict):
            raise ValidationError('Payment must be an object')
        try:
            normalize_payment_method(payment.get('method'))
        except ValueError as e:
            raise ValidationError(str(e))
        for field in ('amount', 'amount_received', 'change'):
            _optional_amount(payment, field)

    if meta:
        if meta.get('customer') is not None and not isinstance(meta['customer'], dict):
            raise ValidationError('Customer must be an object')
        if meta.get('guest_count') is not None:
            meta = dict(meta, guest_count=to_quantity(meta['guest_count'], 'Guest count'))

    totals = calculate_order_totals(items, discount_percent=discount_percent, tax_rate=tax_rate)

    for attempt in range(1, NUMBER_ATTEMPTS + 1):
        try:
            number = next_order_number(session)
            order = _build_order(items, order_type, meta, payment, status, totals, staff_id, number)
            session.add(order)
            session.commit()
            break
        except IntegrityError as e:
            # Two terminals inserted the first counter row of the day at once
            session.rollback()
            logger.warning(f"[ORDERS] Order number collision (attempt {attempt}): {e}")
            if attempt == NUMBER_ATTEMPTS:
                raise PersistenceError('Could not allocate an order number, please retry')
        except PosError:
            session.rollback()
            raise
        except SQLAlchemyError as e:
            session.rollback()
            logger.error(f"[ORDERS] Error creating order: {e}")
            raise PersistenceError(f'Could not save the order: {e.__class__.__name__}')

    logger.info(f"[ORDERS] Created {order.order_number} ({order.status.value}) total={order.total}")
    _record_created(order)
    snapshot = order.to_dict()
    publish_change('orders', INSERT, snapshot)
    invalidate_summaries()
    return order


def _record_created(order: Order) -> None:
    from natapos.blueprints.metrics import orders_created_total
    orders_created_total.labels(status=order.status.value).inc()


def get_order(session, order_id: int) -> Order:
    order = (
        session.query(Order)
        .options(selectinload(Order.items), selectinload(Order.payment))
        .filter(Order.id == order_id)
        .first()
    )
    if not order:
        raise NotFoundError(f'Order {order_id} not found')
    return order


def update_order_status(session, order_id: int, new_status, expected_version: Optional[int] = None) -> Order:
    """
    Move an order along the workflow.

    Setting the current status again is a no-op and writes nothing.
    When `expected_version` is given the write is refused if the stored
    order has moved on since the caller last saw it.

    Raises:
        NotFoundError, InvalidTransitionError, ConcurrentUpdateError, PersistenceError
    """
    try:
        target = OrderStatus(new_status)
    except ValueError:
        raise ValidationError(f'Unknown order status: {new_status}')

    try:
        order = get_order(session, order_id)
        current = order.status

        if current == target:
            return order
        if expected_version is not None and order.version != expected_version:
            raise ConcurrentUpdateError()
        if not can_transition(current, target):
            raise InvalidTransitionError(current, target)

        order.status = target
        if target == OrderStatus.REFUNDED and order.payment is not None:
            order.payment.status = PaymentStatus.REFUNDED.value
        session.commit()
    except PosError:
        session.rollback()
        raise
    except StaleDataError:
        session.rollback()
        raise ConcurrentUpdateError()
    except SQLAlchemyError as e:
        session.rollback()
        logger.error(f"[ORDERS] Error updating order {order_id} to {target.value}: {e}")
        raise PersistenceError(f'Could not update the order: {e.__class__.__name__}')

    logger.info(f"[ORDERS] {order.order_number}: {current.value} -> {target.value}")
    from natapos.blueprints.metrics import order_transitions_total
    order_transitions_total.labels(status=target.value).inc()
    publish_change('orders', UPDATE, order.to_dict())
    if target in TERMINAL_STATUSES:
        invalidate_summaries()
    return order


def list_orders(
    session,
    statuses: Optional[Iterable] = None,
    since: Optional[datetime] = None,
    until: Optional[datetime] = None,
    limit: Optional[int] = None,
) -> List[Order]:
    """Orders with embedded lines and payment, newest first, capped at `limit`."""
    query = session.query(Order).options(selectinload(Order.items), selectinload(Order.payment))

    if statuses:
        query = query.filter(Order.status.in_([OrderStatus(s) for s in statuses]))
    if since is not None:
        query = query.filter(Order.created_at >= since)
    if until is not None:
        query = query.filter(Order.created_at <= until)

    query = query.order_by(Order.created_at.desc(), Order.id.desc())
    if limit:
        query = query.limit(limit)
    return query.all()


def list_active_orders(session, limit: Optional[int] = None) -> List[Order]:
    return list_orders(session, statuses=ACTIVE_STATUSES, limit=limit)


def list_completed_orders(session, limit: Optional[int] = None) -> List[Order]:
    return list_orders(session, statuses=TERMINAL_STATUSES, limit=limit)
