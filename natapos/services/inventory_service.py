"""
Inventory service - read access to the stock mirror and manual adjustments.

Deductions for sold items are done by the database when an order
completes; this module only writes stock for manual counts.
"""
from datetime import datetime
from decimal import Decimal
from typing import Any, Dict, List, Optional
import logging

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm.exc import StaleDataError

from natapos.models import StockItem, InventoryAdjustment, InventoryAdjustmentItem
from natapos.exceptions import PosError, ValidationError, NotFoundError, ConcurrentUpdateError, PersistenceError
from natapos.services.pricing import to_decimal, to_quantity
from natapos.services.realtime_service import publish_change, UPDATE

logger = logging.getLogger(__name__)

MOVEMENT_DIRECTIONS = ('all', 'in', 'out')


def list_stock_items(session) -> List[StockItem]:
    return session.query(StockItem).order_by(StockItem.name.asc()).all()


def get_stock_item(session, item_id: int) -> StockItem:
    item = session.query(StockItem).filter(StockItem.id == item_id).first()
    if not item:
        raise NotFoundError(f'Stock item {item_id} not found')
    return item


def update_stock(session, item_id: int, new_quantity) -> StockItem:
    """
    Set the counted stock of an item. Negative counts are clamped to 0.

    Raises:
        ValidationError, NotFoundError, ConcurrentUpdateError, PersistenceError
    """
    quantity = to_decimal(new_quantity, 'Stock quantity')
    quantity = max(Decimal('0'), quantity)

    item = get_stock_item(session, item_id)
    try:
        item.current_stock = quantity
        session.commit()
    except StaleDataError:
        session.rollback()
        raise ConcurrentUpdateError('Stock item was changed by another terminal, reload and retry')
    except SQLAlchemyError as e:
        session.rollback()
        logger.error(f"[INVENTORY] Error updating stock item {item_id}: {e}")
        raise PersistenceError(f'Could not update stock: {e.__class__.__name__}')

    logger.info(f"[INVENTORY] {item.name}: stock set to {quantity}")
    publish_change('stock_item', UPDATE, item.to_dict())
    return item


def _adjustment_line(line):
    if not isinstance(line, dict):
        raise ValidationError('Each counted line must be an object')
    item_id = line.get('stock_item_id', line.get('id'))
    if item_id is None:
        raise ValidationError('Counted line needs a stock_item_id')
    item_id = to_quantity(item_id, 'Stock item id')
    if line.get('physical_qty') is None:
        raise ValidationError('Counted line needs a physical_qty')
    physical = to_decimal(line['physical_qty'], 'Physical quantity')
    if physical < 0:
        raise ValidationError('Physical quantity cannot be negative')
    reason = str(line.get('reason') or '').strip() or None
    return item_id, physical, reason


def create_adjustment(session, lines: List[Dict[str, Any]], notes: str = '',
                      created_by: Optional[int] = None) -> InventoryAdjustment:
    """
    Save a physical count (stock opname) and set each counted item to it.

    Every line records the system quantity seen at save time next to the
    counted one. The header, its lines and the new stock levels are written
    in one transaction: either all of them land or none do.

    Raises:
        ValidationError, NotFoundError, ConcurrentUpdateError, PersistenceError
    """
    if not lines or not isinstance(lines, list):
        raise ValidationError('A stock count needs at least one counted item')
    parsed = [_adjustment_line(line) for line in lines]
    if len({item_id for item_id, _, _ in parsed}) != len(parsed):
        raise ValidationError('Each stock item can be counted only once per adjustment')

    adjustment = InventoryAdjustment(notes=(notes or '').strip() or 'Routine check', created_by=created_by)
    changed = []
    try:
        for item_id, physical, reason in parsed:
            item = get_stock_item(session, item_id)
            system = Decimal(str(item.current_stock or 0))
            adjustment.items.append(InventoryAdjustmentItem(
                stock_item_id=item.id,
                system_qty=system,
                physical_qty=physical,
                difference=physical - system,
                reason=reason,
            ))
            if physical != system:
                item.current_stock = physical
                changed.append(item)
        session.add(adjustment)
        session.commit()
    except PosError:
        session.rollback()
        raise
    except StaleDataError:
        session.rollback()
        raise ConcurrentUpdateError('Stock was changed by another terminal while counting, reload and retry')
    except SQLAlchemyError as e:
        session.rollback()
        logger.error(f"[INVENTORY] Error saving stock count: {e}")
        raise PersistenceError(f'Could not save the stock count: {e.__class__.__name__}')

    logger.info(f"[INVENTORY] Stock count {adjustment.id}: {len(parsed)} counted, {len(changed)} changed")
    for item in changed:
        publish_change('stock_item', UPDATE, item.to_dict())
    return adjustment


def list_stock_movements(session, since: Optional[datetime] = None, until: Optional[datetime] = None,
                         item_id: Optional[int] = None, direction: str = 'all') -> Dict[str, Any]:
    """
    Stock movements recorded by counts, newest first.

    `direction` keeps only stock found ('in') or lost ('out'); lines where
    the count matched are listed under 'all' only. Totals always cover
    every movement in the date range.
    """
    if direction not in MOVEMENT_DIRECTIONS:
        raise ValidationError(f"direction must be one of {', '.join(MOVEMENT_DIRECTIONS)}")

    query = (
        session.query(InventoryAdjustmentItem, InventoryAdjustment, StockItem)
        .join(InventoryAdjustment, InventoryAdjustmentItem.adjustment_id == InventoryAdjustment.id)
        .join(StockItem, InventoryAdjustmentItem.stock_item_id == StockItem.id)
    )
    if since is not None:
        query = query.filter(InventoryAdjustment.created_at >= since)
    if until is not None:
        query = query.filter(InventoryAdjustment.created_at <= until)
    if item_id is not None:
        query = query.filter(InventoryAdjustmentItem.stock_item_id == item_id)
    rows = query.order_by(InventoryAdjustment.created_at.desc(), InventoryAdjustmentItem.id.desc()).all()

    movements = []
    total_in = total_out = Decimal('0')
    for line, adjustment, item in rows:
        change = Decimal(str(line.difference))
        if change > 0:
            total_in += change
        elif change < 0:
            total_out += -change
        movements.append({
            'id': line.id,
            'adjustment_id': adjustment.id,
            'created_at': adjustment.created_at,
            'stock_item_id': item.id,
            'name': item.name,
            'unit': item.unit,
            'type': 'in' if change > 0 else 'out' if change < 0 else 'neutral',
            'system_qty': line.system_qty,
            'physical_qty': line.physical_qty,
            'change_qty': change,
            'reason': line.reason or adjustment.notes,
        })

    if direction != 'all':
        movements = [m for m in movements if m['type'] == direction]
    return {'movements': movements, 'total_in': total_in, 'total_out': total_out}
