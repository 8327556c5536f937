"""
Catalog Module - Storefront Routes
===================================
Public product listing, featured products, product detail, categories.
"""

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from config.database import get_db
from modules.catalog.service import product_service, category_service

router = APIRouter(prefix="/api", tags=["catalog"])


@router.get("/products")
async def list_products(
    page: int = 1,
    limit: int = 12,
    category: str = "",
    search: str = "",
    sort: str = "newest",
    db: Session = Depends(get_db),
):
    products, pagination = product_service.list_products(
        db, page=page, limit=limit, category=category, search=search, sort=sort,
    )
    return {"products": products, "pagination": pagination}


@router.get("/products/featured")
async def featured_products(db: Session = Depends(get_db)):
    return {"products": product_service.featured(db)}


@router.get("/products/{slug}")
async def product_detail(slug: str, db: Session = Depends(get_db)):
    return product_service.get_detail(db, slug)


@router.get("/categories")
async def list_categories(db: Session = Depends(get_db)):
    return category_service.list_active(db)


@router.get("/categories/{slug}")
async def category_detail(slug: str, db: Session = Depends(get_db)):
    return category_service.get_by_slug(db, slug)
