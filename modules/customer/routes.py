"""
Customer Routes
================
Saved addresses of the signed-in user.
"""

from typing import Any, Dict

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse
from sqlalchemy.orm import Session

from config.database import get_db
from modules.auth.deps import require_login
from modules.customer.service import address_service

router = APIRouter(prefix="/api/addresses", tags=["customer"])


@router.get("")
async def list_addresses(db: Session = Depends(get_db), me=Depends(require_login)):
    return [a.to_dict() for a in address_service.list_for_user(db, me.id)]


@router.post("")
async def create_address(data: Dict[str, Any], db: Session = Depends(get_db), me=Depends(require_login)):
    address = address_service.create(db, me.id, data)
    db.commit()
    db.refresh(address)
    return JSONResponse(address.to_dict(), status_code=201)
