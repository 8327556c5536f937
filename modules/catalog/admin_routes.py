"""
Catalog Module - Admin Routes
===============================
CRUD for Products and Categories.
All routes require ADMIN or SUPER_ADMIN.
"""

from typing import Any, Dict, Optional

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse
from sqlalchemy.orm import Session

from config.database import get_db
from modules.auth.deps import require_admin
from modules.catalog.service import (
    product_service, category_service, product_admin_dict, category_dict,
)

router = APIRouter(prefix="/api/admin", tags=["catalog-admin"])


# ==========================================
# 👗 Products
# ==========================================

@router.get("/products")
async def list_products(
    page: int = 1,
    limit: int = 20,
    search: str = "",
    categoryId: Optional[int] = None,
    db: Session = Depends(get_db),
    user=Depends(require_admin),
):
    page, limit = max(page, 1), min(max(limit, 1), 100)
    products, total = product_service.list_admin(db, page=page, per_page=limit, search=search, category_id=categoryId)
    return {
        "products": [product_admin_dict(p) for p in products],
        "pagination": {"page": page, "limit": limit, "totalCount": total, "totalPages": (total + limit - 1) // limit},
    }


@router.post("/products")
async def create_product(data: Dict[str, Any], db: Session = Depends(get_db), user=Depends(require_admin)):
    product = product_service.create(db, data)
    db.commit()
    db.refresh(product)
    return JSONResponse(product_admin_dict(product), status_code=201)


@router.patch("/products/{product_id}")
async def update_product(
    product_id: int, data: Dict[str, Any],
    db: Session = Depends(get_db), user=Depends(require_admin),
):
    product = product_service.update(db, product_id, data)
    db.commit()
    db.refresh(product)
    return product_admin_dict(product)


@router.delete("/products/{product_id}")
async def delete_product(product_id: int, db: Session = Depends(get_db), user=Depends(require_admin)):
    outcome = product_service.delete(db, product_id)
    db.commit()
    return {"success": True, "result": outcome}


# ==========================================
# 🗂️ Categories
# ==========================================

@router.get("/categories")
async def list_categories(db: Session = Depends(get_db), user=Depends(require_admin)):
    return category_service.list_all(db)


@router.post("/categories")
async def create_category(data: Dict[str, Any], db: Session = Depends(get_db), user=Depends(require_admin)):
    category = category_service.create(db, data)
    db.commit()
    db.refresh(category)
    return JSONResponse(category_dict(category), status_code=201)


@router.patch("/categories/{category_id}")
async def update_category(
    category_id: int, data: Dict[str, Any],
    db: Session = Depends(get_db), user=Depends(require_admin),
):
    category = category_service.update(db, category_id, data)
    db.commit()
    db.refresh(category)
    return category_dict(category)


@router.delete("/categories/{category_id}")
async def delete_category(category_id: int, db: Session = Depends(get_db), user=Depends(require_admin)):
    category_service.delete(db, category_id)
    db.commit()
    return {"success": True}
