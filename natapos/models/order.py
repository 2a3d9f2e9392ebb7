"""Order model and the order workflow (state machine)."""
from datetime import datetime
import enum

from sqlalchemy import Column, String, Integer, Numeric, DateTime, Text, ForeignKey, CheckConstraint
from sqlalchemy.orm import relationship
from natapos.database import Base, IdType, value_enum


class OrderType(str, enum.Enum):
    """How the order is served."""
    DINE_IN = 'dine-in'
    TAKEAWAY = 'takeaway'
    DELIVERY = 'delivery'


class OrderStatus(str, enum.Enum):
    """Order status enum."""
    WAITING = 'waiting'
    COOKING = 'cooking'
    READY = 'ready'
    COMPLETED = 'completed'
    REFUNDED = 'refunded'
    CANCELLED = 'cancelled'


ACTIVE_STATUSES = (OrderStatus.WAITING, OrderStatus.COOKING, OrderStatus.READY)
TERMINAL_STATUSES = (OrderStatus.COMPLETED, OrderStatus.REFUNDED, OrderStatus.CANCELLED)

# Forward kitchen flow, side exits from every live status, and the
# ready -> waiting recall used to undo a premature "done".
ORDER_TRANSITIONS = {
    OrderStatus.WAITING: {OrderStatus.COOKING, OrderStatus.REFUNDED, OrderStatus.CANCELLED},
    OrderStatus.COOKING: {OrderStatus.READY, OrderStatus.REFUNDED, OrderStatus.CANCELLED},
    OrderStatus.READY: {OrderStatus.COMPLETED, OrderStatus.WAITING, OrderStatus.REFUNDED, OrderStatus.CANCELLED},
    OrderStatus.COMPLETED: set(),
    OrderStatus.REFUNDED: set(),
    OrderStatus.CANCELLED: set(),
}


def can_transition(current, target) -> bool:
    """True if `target` is reachable from `current` in one step."""
    return OrderStatus(target) in ORDER_TRANSITIONS[OrderStatus(current)]


def is_terminal(status) -> bool:
    return OrderStatus(status) in TERMINAL_STATUSES


class Order(Base):
    """Order header. Never deleted: it ends in a terminal status instead."""

    __tablename__ = 'orders'
    __table_args__ = (
        CheckConstraint('total >= 0', name='ck_orders_total_non_negative'),
        CheckConstraint('discount >= 0 AND discount <= subtotal', name='ck_orders_discount_range'),
        CheckConstraint('tax >= 0', name='ck_orders_tax_non_negative'),
    )

    id = Column(IdType, primary_key=True, autoincrement=True)
    order_number = Column(String(32), nullable=False, unique=True, index=True)
    type = Column(value_enum(OrderType, 'order_type'), nullable=False, default=OrderType.DINE_IN)
    status = Column(value_enum(OrderStatus, 'order_status'), nullable=False, default=OrderStatus.WAITING, index=True)

    table_label = Column(String(50), nullable=True)
    server_name = Column(String(100), nullable=True)
    guest_count = Column(Integer, nullable=True)
    platform = Column(String(50), nullable=True)  # delivery platform
    kitchen_notes = Column(Text, nullable=True)

    # Customer snapshot taken at creation, not a live reference
    customer_name = Column(String(200), nullable=True)
    customer_phone = Column(String(50), nullable=True)
    customer_initials = Column(String(4), nullable=True)

    # Pricing
    subtotal = Column(Numeric(12, 2), nullable=False, default=0)
    discount = Column(Numeric(12, 2), nullable=False, default=0)
    discount_label = Column(String(100), nullable=True)
    tax = Column(Numeric(12, 2), nullable=False, default=0)
    total = Column(Numeric(12, 2), nullable=False, default=0)

    staff_id = Column(IdType, ForeignKey('staff.id'), nullable=True)
    created_at = Column(DateTime, nullable=False, default=datetime.now, index=True)
    updated_at = Column(DateTime, nullable=False, default=datetime.now, onupdate=datetime.now)

    # Bumped on every flush; realtime merges compare it
    version = Column(Integer, nullable=False)

    __mapper_args__ = {'version_id_col': version}

    # Relationships
    items = relationship('OrderItem', back_populates='order', cascade='all, delete-orphan', order_by='OrderItem.id')
    payment = relationship('OrderPayment', back_populates='order', uselist=False, cascade='all, delete-orphan')
    staff = relationship('Staff')

    @property
    def is_terminal(self):
        return is_terminal(self.status)

    def to_dict(self):
        """Snapshot used by the in-memory stores, realtime payloads and the API."""
        return {
            'id': self.id,
            'order_number': self.order_number,
            'type': self.type.value,
            'status': self.status.value,
            'table': self.table_label,
            'server': self.server_name,
            'guest_count': self.guest_count,
            'platform': self.platform,
            'kitchen_notes': self.kitchen_notes,
            'customer': {
                'name': self.customer_name,
                'phone': self.customer_phone,
                'initials': self.customer_initials,
            } if self.customer_name else None,
            'items': [item.to_dict() for item in self.items],
            'subtotal': self.subtotal,
            'discount': self.discount,
            'discount_label': self.discount_label,
            'tax': self.tax,
            'total': self.total,
            'payment': self.payment.to_dict() if self.payment else None,
            'staff_id': self.staff_id,
            'created_at': self.created_at,
            'updated_at': self.updated_at,
            'version': self.version,
        }

    def __repr__(self):
        return f"<Order(id={self.id}, number={self.order_number}, status={self.status})>"


class OrderItem(Base):
    """Order line."""

    __tablename__ = 'order_item'
    __table_args__ = (
        CheckConstraint('quantity >= 1', name='ck_order_item_quantity'),
        CheckConstraint('unit_price >= 0', name='ck_order_item_price'),
    )

    id = Column(IdType, primary_key=True, autoincrement=True)
    order_id = Column(IdType, ForeignKey('orders.id', ondelete='CASCADE'), nullable=False, index=True)
    product_id = Column(IdType, nullable=True)  # menu product, owned by the catalogue
    name = Column(String(200), nullable=False)
    quantity = Column(Integer, nullable=False)
    unit_price = Column(Numeric(12, 2), nullable=False)
    line_total = Column(Numeric(12, 2), nullable=False)
    notes = Column(String(255), nullable=True)

    order = relationship('Order', back_populates='items')

    def to_dict(self):
        return {
            'product_id': self.product_id,
            'name': self.name,
            'quantity': self.quantity,
            'price': self.unit_price,
            'line_total': self.line_total,
            'notes': self.notes,
        }

    def __repr__(self):
        return f"<OrderItem(id={self.id}, name='{self.name}', qty={self.quantity})>"
