"""Stock Item model (inventory mirror)."""
from datetime import datetime

from sqlalchemy import Column, String, Integer, Numeric, DateTime
from natapos.database import Base, IdType


class StockItem(Base):
    """Ingredient / packaging stock level. Deductions on sale happen in the database."""

    __tablename__ = 'stock_item'

    id = Column(IdType, primary_key=True, autoincrement=True)
    name = Column(String(200), nullable=False)
    sku = Column(String(50), nullable=True, unique=True)
    category = Column(String(100), nullable=True)
    unit = Column(String(20), nullable=True)
    current_stock = Column(Numeric(12, 3), nullable=False, default=0)
    min_stock = Column(Numeric(12, 3), nullable=False, default=0)
    updated_at = Column(DateTime, nullable=False, default=datetime.now, onupdate=datetime.now)
    version = Column(Integer, nullable=False)

    __mapper_args__ = {'version_id_col': version}

    @property
    def is_low(self):
        return (self.current_stock or 0) <= (self.min_stock or 0)

    def to_dict(self):
        return {
            'id': self.id,
            'name': self.name,
            'sku': self.sku,
            'category': self.category,
            'unit': self.unit,
            'current_stock': self.current_stock,
            'min_stock': self.min_stock,
            'updated_at': self.updated_at,
            'version': self.version,
        }

    def __repr__(self):
        return f"<StockItem(id={self.id}, sku={self.sku}, stock={self.current_stock})>"
