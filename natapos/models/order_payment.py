"""Order Payment model."""
import enum

from sqlalchemy import Column, String, Numeric, ForeignKey
from sqlalchemy.orm import relationship
from natapos.database import Base, IdType


class PaymentMethod(str, enum.Enum):
    """Payment method enum. QRIS is verified by the wallet provider, not here."""
    CASH = 'cash'
    QRIS = 'qris'
    CARD = 'card'
    TRANSFER = 'transfer'


class PaymentStatus(str, enum.Enum):
    APPROVED = 'approved'
    PENDING = 'pending'
    REFUNDED = 'refunded'


def normalize_payment_method(value) -> str:
    """
    Normalize payment method value to string for DB storage.

    Args:
        value: Can be None, PaymentMethod enum, or string (any case)

    Returns:
        str: one of 'cash', 'qris', 'card', 'transfer'

    Raises:
        ValueError: If value is invalid
    """
    if value is None:
        return PaymentMethod.CASH.value

    if isinstance(value, PaymentMethod):
        return value.value

    normalized = str(value).lower().strip()
    try:
        return PaymentMethod(normalized).value
    except ValueError:
        raise ValueError(
            f"Invalid payment method: {value}. Must be one of "
            f"{', '.join(m.value for m in PaymentMethod)}."
        )


class OrderPayment(Base):
    """
    Payment record of an order (one per order).

    amount_received / change_amount are only filled for cash.
    """

    __tablename__ = 'order_payment'

    id = Column(IdType, primary_key=True, autoincrement=True)
    order_id = Column(IdType, ForeignKey('orders.id', ondelete='CASCADE'), nullable=False, unique=True, index=True)

    method = Column(String(20), nullable=False, index=True)
    amount = Column(Numeric(12, 2), nullable=False)
    transaction_id = Column(String(64), nullable=True)
    status = Column(String(20), nullable=False, default=PaymentStatus.APPROVED.value)

    # Only for CASH payments
    amount_received = Column(Numeric(12, 2))
    change_amount = Column(Numeric(12, 2))

    order = relationship('Order', back_populates='payment')

    def to_dict(self):
        return {
            'method': self.method,
            'amount': self.amount,
            'transaction_id': self.transaction_id,
            'status': self.status,
            'amount_received': self.amount_received,
            'change': self.change_amount,
        }

    def __repr__(self):
        return f"<OrderPayment(order_id={self.order_id}, method={self.method}, amount={self.amount})>"
