"""Inventory Adjustment models - physical stock counts (stock opname)."""
from datetime import datetime

from sqlalchemy import Column, String, Numeric, DateTime, Text, ForeignKey
from sqlalchemy.orm import relationship
from natapos.database import Base, IdType


class InventoryAdjustment(Base):
    """One counting session. Append-only, like the cash log."""

    __tablename__ = 'inventory_adjustment'

    id = Column(IdType, primary_key=True, autoincrement=True)
    notes = Column(Text, nullable=True)
    created_by = Column(IdType, ForeignKey('staff.id'), nullable=True)
    created_at = Column(DateTime, nullable=False, default=datetime.now, index=True)

    items = relationship('InventoryAdjustmentItem', back_populates='adjustment',
                         cascade='all, delete-orphan', order_by='InventoryAdjustmentItem.id')

    def to_dict(self, include_items=True):
        data = {
            'id': self.id,
            'notes': self.notes,
            'created_by': self.created_by,
            'created_at': self.created_at,
        }
        if include_items:
            data['items'] = [i.to_dict() for i in self.items]
        return data

    def __repr__(self):
        return f"<InventoryAdjustment(id={self.id}, lines={len(self.items)})>"


class InventoryAdjustmentItem(Base):
    """
    Counted quantity of one stock item.

    `system_qty` is what the mirror showed when the count was saved;
    `difference` is physical minus system (positive means stock found).
    """

    __tablename__ = 'inventory_adjustment_item'

    id = Column(IdType, primary_key=True, autoincrement=True)
    adjustment_id = Column(IdType, ForeignKey('inventory_adjustment.id', ondelete='CASCADE'),
                           nullable=False, index=True)
    stock_item_id = Column(IdType, ForeignKey('stock_item.id'), nullable=False, index=True)
    system_qty = Column(Numeric(12, 3), nullable=False)
    physical_qty = Column(Numeric(12, 3), nullable=False)
    difference = Column(Numeric(12, 3), nullable=False)
    reason = Column(String(200), nullable=True)

    adjustment = relationship('InventoryAdjustment', back_populates='items')
    stock_item = relationship('StockItem')

    def to_dict(self):
        return {
            'id': self.id,
            'adjustment_id': self.adjustment_id,
            'stock_item_id': self.stock_item_id,
            'system_qty': self.system_qty,
            'physical_qty': self.physical_qty,
            'difference': self.difference,
            'reason': self.reason,
        }

    def __repr__(self):
        return f"<InventoryAdjustmentItem(item={self.stock_item_id}, diff={self.difference})>"
