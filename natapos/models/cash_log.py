"""Cash Log model - manual drawer movements during a shift."""
from datetime import datetime
import enum

from sqlalchemy import Column, Numeric, DateTime, Text, ForeignKey, CheckConstraint
from sqlalchemy.orm import relationship
from natapos.database import Base, IdType, value_enum


class CashDirection(str, enum.Enum):
    IN = 'in'
    OUT = 'out'


class CashLog(Base):
    """Cash Log entry. Append-only: never updated or deleted."""

    __tablename__ = 'cash_log'
    __table_args__ = (
        CheckConstraint('amount > 0', name='ck_cash_log_amount_positive'),
    )

    id = Column(IdType, primary_key=True, autoincrement=True)
    shift_id = Column(IdType, ForeignKey('shift.id'), nullable=False, index=True)
    direction = Column(value_enum(CashDirection, 'cash_direction'), nullable=False)
    amount = Column(Numeric(12, 2), nullable=False)
    description = Column(Text, nullable=True)
    created_by = Column(IdType, ForeignKey('staff.id'), nullable=True)
    created_at = Column(DateTime, nullable=False, default=datetime.now)

    shift = relationship('Shift', back_populates='cash_logs')

    def to_dict(self):
        return {
            'id': self.id,
            'shift_id': self.shift_id,
            'direction': self.direction.value,
            'amount': self.amount,
            'description': self.description,
            'created_by': self.created_by,
            'created_at': self.created_at,
        }

    def __repr__(self):
        return f"<CashLog(id={self.id}, shift_id={self.shift_id}, {self.direction}={self.amount})>"
