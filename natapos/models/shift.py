"""Shift model."""
from datetime import datetime
import enum

from sqlalchemy import Column, Numeric, DateTime, Text, ForeignKey, CheckConstraint
from sqlalchemy.orm import relationship
from natapos.database import Base, IdType, value_enum


class ShiftStatus(str, enum.Enum):
    OPEN = 'open'
    CLOSED = 'closed'


class Shift(Base):
    """
    Cashier shift, bracketed by an opening float and a closing count.

    Closing figures are filled once, by the single open -> closed update.
    """

    __tablename__ = 'shift'
    __table_args__ = (
        CheckConstraint('start_cash >= 0', name='ck_shift_start_cash'),
    )

    id = Column(IdType, primary_key=True, autoincrement=True)
    staff_id = Column(IdType, ForeignKey('staff.id'), nullable=False, index=True)
    start_cash = Column(Numeric(12, 2), nullable=False, default=0)
    status = Column(value_enum(ShiftStatus, 'shift_status'), nullable=False, default=ShiftStatus.OPEN, index=True)
    opened_at = Column(DateTime, nullable=False, default=datetime.now)
    closed_at = Column(DateTime, nullable=True)

    end_cash_actual = Column(Numeric(12, 2), nullable=True)
    end_cash_expected = Column(Numeric(12, 2), nullable=True)
    difference = Column(Numeric(12, 2), nullable=True)
    notes = Column(Text, nullable=True)

    # Relationships
    staff = relationship('Staff', back_populates='shifts')
    cash_logs = relationship('CashLog', back_populates='shift', order_by='CashLog.id')

    @property
    def is_open(self):
        return self.status == ShiftStatus.OPEN

    def to_dict(self):
        return {
            'id': self.id,
            'staff_id': self.staff_id,
            'start_cash': self.start_cash,
            'status': self.status.value,
            'opened_at': self.opened_at,
            'closed_at': self.closed_at,
            'end_cash_actual': self.end_cash_actual,
            'end_cash_expected': self.end_cash_expected,
            'difference': self.difference,
            'notes': self.notes,
        }

    def __repr__(self):
        return f"<Shift(id={self.id}, staff_id={self.staff_id}, status={self.status})>"
