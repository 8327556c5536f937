"""
Customer Module - Address Service
==================================
Saved addresses for signed-in users and ownerless snapshots for guest orders.
"""

from typing import Any, Dict, List, Optional

from sqlalchemy.orm import Session

from common.exceptions import ValidationError
from modules.customer.address_models import Address

_REQUIRED = {
    "name": "name",
    "phone": "phone",
    "addressLine1": "address line",
    "city": "city",
    "pincode": "pincode",
}


class AddressService:

    def list_for_user(self, db: Session, user_id: int) -> List[Address]:
        return (
            db.query(Address)
            .filter(Address.user_id == user_id)
            .order_by(Address.is_default.desc(), Address.id.desc())
            .all()
        )

    def create(self, db: Session, user_id: Optional[int], data: Dict[str, Any]) -> Address:
        """Create an address; user_id=None makes a guest (ownerless) address."""
        values = {key: str(data.get(key) or "").strip() for key in _REQUIRED}
        missing = [label for key, label in _REQUIRED.items() if not values[key]]
        if missing:
            raise ValidationError(f"Missing required fields: {', '.join(missing)}")

        is_default = bool(data.get("isDefault")) and user_id is not None
        if is_default:
            db.query(Address).filter(Address.user_id == user_id).update(
                {Address.is_default: False}, synchronize_session=False,
            )

        address = Address(
            user_id=user_id,
            name=values["name"],
            phone=values["phone"],
            address_line1=values["addressLine1"],
            address_line2=(data.get("addressLine2") or None),
            city=values["city"],
            state=(data.get("state") or "Unknown"),
            pincode=values["pincode"],
            country=(data.get("country") or "India"),
            is_default=is_default,
        )
        db.add(address)
        db.flush()
        return address

    def get_owned(self, db: Session, user_id: int, address_id: Optional[int]) -> Optional[Address]:
        if address_id is None:
            return None
        return db.query(Address).filter(Address.id == address_id, Address.user_id == user_id).first()


# Singleton
address_service = AddressService()
