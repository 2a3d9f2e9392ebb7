"""Staff model - operator identity for shifts, orders and cash logs."""
from datetime import datetime
import enum

from sqlalchemy import Column, String, Boolean, DateTime
from sqlalchemy.orm import relationship
from natapos.database import Base, IdType, value_enum


class StaffRole(str, enum.Enum):
    """Stored role. Roles are recorded but not used for authorization."""
    OWNER = 'owner'
    CASHIER = 'cashier'
    KITCHEN = 'kitchen'


class Staff(Base):
    """Staff member operating a terminal (login is handled elsewhere)."""

    __tablename__ = 'staff'

    id = Column(IdType, primary_key=True, autoincrement=True)
    full_name = Column(String(200), nullable=False)
    email = Column(String(255), nullable=True, unique=True)
    role = Column(value_enum(StaffRole, 'staff_role'), nullable=False, default=StaffRole.CASHIER)
    active = Column(Boolean, nullable=False, default=True)
    created_at = Column(DateTime, nullable=False, default=datetime.now)

    # Relationships
    shifts = relationship('Shift', back_populates='staff')

    @property
    def initials(self):
        """Two-letter initials used on receipts and order cards."""
        parts = [p for p in (self.full_name or '').split() if p]
        return ''.join(p[0] for p in parts[:2]).upper()

    def to_dict(self):
        return {
            'id': self.id,
            'full_name': self.full_name,
            'email': self.email,
            'role': self.role.value if self.role else None,
            'active': self.active,
        }

    def __repr__(self):
        return f"<Staff(id={self.id}, name='{self.full_name}', role={self.role})>"
