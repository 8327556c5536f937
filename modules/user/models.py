"""
User Module - User Model
=========================
Local mirror of identity-provider accounts, keyed by clerk_id.
Role drives admin access (USER < ADMIN < SUPER_ADMIN).
"""

import enum

from sqlalchemy import Column, Integer, String, DateTime
from sqlalchemy.sql import func
from config.database import Base


class UserRole(str, enum.Enum):
    USER = "USER"
    ADMIN = "ADMIN"
    SUPER_ADMIN = "SUPER_ADMIN"


class User(Base):
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, index=True)

    # === Identity ===
    clerk_id = Column(String, unique=True, nullable=False, index=True)
    email = Column(String, unique=True, nullable=False, index=True)

    # === Profile ===
    name = Column(String, nullable=True)
    phone = Column(String, nullable=True)
    image_url = Column(String, nullable=True)

    role = Column(String, default=UserRole.USER.value, server_default=UserRole.USER.value, nullable=False)

    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    @property
    def is_admin(self) -> bool:
        return self.role in (UserRole.ADMIN.value, UserRole.SUPER_ADMIN.value)

    @property
    def is_super_admin(self) -> bool:
        return self.role == UserRole.SUPER_ADMIN.value

    def to_dict(self) -> dict:
        from common.helpers import iso
        return {
            "id": self.id,
            "clerkId": self.clerk_id,
            "email": self.email,
            "name": self.name,
            "phone": self.phone,
            "imageUrl": self.image_url,
            "role": self.role,
            "createdAt": iso(self.created_at),
        }

    def __repr__(self):
        return f"<User {self.email} ({self.role})>"
