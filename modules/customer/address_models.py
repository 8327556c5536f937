"""
Customer Module - Address Model
================================
Saved shipping/billing addresses. user_id is NULL for guest checkout
addresses, which exist only as part of an order snapshot.
"""

from sqlalchemy import (
    Column, Integer, String, Boolean, ForeignKey, DateTime,
)
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from config.database import Base


class Address(Base):
    __tablename__ = "addresses"

    id = Column(Integer, primary_key=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=True, index=True)
    name = Column(String, nullable=False)
    phone = Column(String(20), nullable=False)
    address_line1 = Column(String, nullable=False)
    address_line2 = Column(String, nullable=True)
    city = Column(String, nullable=False)
    state = Column(String, nullable=False, default="Unknown")
    pincode = Column(String(10), nullable=False)
    country = Column(String, nullable=False, default="India")
    is_default = Column(Boolean, default=False, nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    user = relationship("User")

    @property
    def full_address(self) -> str:
        parts = [self.address_line1, self.address_line2, self.city, self.state, self.pincode, self.country]
        return ", ".join(p for p in parts if p)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "userId": self.user_id,
            "name": self.name,
            "phone": self.phone,
            "addressLine1": self.address_line1,
            "addressLine2": self.address_line2,
            "city": self.city,
            "state": self.state,
            "pincode": self.pincode,
            "country": self.country,
            "isDefault": self.is_default,
        }
