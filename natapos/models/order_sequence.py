"""Daily order number counter."""
from sqlalchemy import Column, Date, Integer
from natapos.database import Base


class OrderSequence(Base):
    """Last order number issued for a business day (row locked while incremented)."""

    __tablename__ = 'order_sequence'

    business_day = Column(Date, primary_key=True)
    last_value = Column(Integer, nullable=False, default=0)

    def __repr__(self):
        return f"<OrderSequence(day={self.business_day}, last={self.last_value})>"
