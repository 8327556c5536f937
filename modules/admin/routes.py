"""
Admin Module - Users & Dashboard Routes
========================================
User listing, role changes, cascading user deletion (SUPER_ADMIN only),
and the dashboard statistics endpoint.
"""

from typing import Any, Dict, Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from config.database import get_db
from common.exceptions import AuthorizationError, ValidationError
from modules.auth.deps import require_admin, require_super_admin
from modules.admin.dashboard_service import dashboard_service
from modules.admin.permissions import can_assign_role, role_options
from modules.user.service import user_service

router = APIRouter(prefix="/api/admin", tags=["admin"])


# ==========================================
# 👥 Users
# ==========================================

@router.get("/users")
async def list_users(
    page: int = 1,
    limit: int = 20,
    search: str = "",
    role: Optional[str] = Query(None),
    db: Session = Depends(get_db),
    user=Depends(require_admin),
):
    page, limit = max(page, 1), min(max(limit, 1), 100)
    users, total = user_service.list_users(db, page=page, per_page=limit, search=search, role=role or "")
    return {
        "users": [u.to_dict() for u in users],
        "roles": role_options(),
        "pagination": {"page": page, "limit": limit, "totalCount": total, "totalPages": (total + limit - 1) // limit},
    }


@router.get("/users/{user_id}")
async def get_user(user_id: int, db: Session = Depends(get_db), user=Depends(require_admin)):
    return user_service.get(db, user_id).to_dict()


@router.patch("/users/{user_id}")
async def update_user_role(
    user_id: int, data: Dict[str, Any],
    db: Session = Depends(get_db), user=Depends(require_admin),
):
    new_role = data.get("role")
    if not new_role:
        raise ValidationError("role is required")

    target = user_service.get(db, user_id)
    if not can_assign_role(user.role, target.role, new_role):
        raise AuthorizationError("Only a super admin can grant or revoke this role")

    updated = user_service.set_role(db, user_id, new_role)
    db.commit()
    db.refresh(updated)
    return updated.to_dict()


@router.delete("/users/{user_id}")
async def delete_user(user_id: int, db: Session = Depends(get_db), user=Depends(require_super_admin)):
    target = user_service.get(db, user_id)
    if target.id == user.id:
        raise ValidationError("You cannot delete your own account")

    user_service.delete_user(db, target)
    db.commit()
    return {"message": "User deleted successfully"}


# ==========================================
# 📊 Dashboard
# ==========================================

@router.get("/dashboard")
async def dashboard_stats(db: Session = Depends(get_db), user=Depends(require_admin)):
    return dashboard_service.get_overview_stats(db)
