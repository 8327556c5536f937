"""
Catalog Module - Service Layer
================================
Storefront reads (listing, detail, featured, categories) and admin CRUD
for Products and Categories.
"""

import logging
from datetime import timedelta
from decimal import Decimal
from typing import Any, Dict, List, Optional, Tuple

from sqlalchemy.orm import Session
from sqlalchemy import func

from common.exceptions import NotFoundError, ValidationError, DuplicateError
from common.helpers import now_utc, as_utc, money, iso, safe_int, to_decimal, slugify
from modules.cart.models import CartItem
from modules.catalog.models import Category, Product, ProductImage, Review
from modules.order.models import OrderItem

logger = logging.getLogger("saakie.catalog")

NEW_PRODUCT_DAYS = 30
BESTSELLER_MIN_SALES = 50
BESTSELLER_MIN_RATING = 4.5
DEFAULT_COMPARE_MARKUP = Decimal("1.3")

SORT_OPTIONS = {
    "newest": (Product.created_at.desc(), Product.id.desc()),
    "price_asc": (Product.price.asc(), Product.id.asc()),
    "price_desc": (Product.price.desc(), Product.id.desc()),
}


# ==========================================
# Serializers
# ==========================================

def compare_price_of(product: Product) -> float:
    if product.compare_price is not None:
        return money(product.compare_price)
    return money(to_decimal(product.price) * DEFAULT_COMPARE_MARKUP)


def is_new(product: Product) -> bool:
    created = as_utc(product.created_at)
    return bool(created and created > now_utc() - timedelta(days=NEW_PRODUCT_DAYS))


def product_summary(product: Product, rating: float = 0.0, review_count: int = 0) -> Dict[str, Any]:
    image = product.primary_image
    return {
        "id": product.id,
        "name": product.name,
        "slug": product.slug,
        "price": money(product.price),
        "comparePrice": compare_price_of(product),
        "image": image.url if image else None,
        "category": {"name": product.category.name, "slug": product.category.slug} if product.category else None,
        "colors": [c.get("hexCode") for c in product.colors if c.get("hexCode")],
        "stock": product.stock,
        "rating": rating,
        "reviews": review_count,
        "isNew": is_new(product),
        "isFeatured": product.is_featured,
        "inStock": product.stock > 0,
    }


def product_admin_dict(product: Product) -> Dict[str, Any]:
    data = product_summary(product)
    data.update({
        "description": product.description,
        "categoryId": product.category_id,
        "lowStockAlert": product.low_stock_alert,
        "isLowStock": product.is_low_stock,
        "isActive": product.is_active,
        "material": product.material,
        "pattern": product.pattern,
        "fabric": product.fabric,
        "workType": product.work_type,
        "occasions": product.occasions,
        "images": [{"id": i.id, "url": i.url, "alt": i.alt, "isPrimary": i.is_primary} for i in product.images],
        "createdAt": iso(product.created_at),
    })
    return data


def category_dict(category: Category, count: Optional[int] = None) -> Dict[str, Any]:
    data = {
        "id": category.id,
        "name": category.name,
        "slug": category.slug,
        "description": category.description,
        "image": category.image,
        "parentId": category.parent_id,
        "isActive": category.is_active,
    }
    if count is not None:
        data["count"] = count
    return data


# ==========================================
# Product Service
# ==========================================

_PRODUCT_FIELDS = {
    "name": "name", "description": "description", "material": "material",
    "pattern": "pattern", "fabric": "fabric", "workType": "work_type",
    "careInstructions": "care_instructions",
}


class ProductService:

    # ---------- storefront ----------

    def list_products(self, db: Session, page: int = 1, limit: int = 12, category: str = "",
                      search: str = "", sort: str = "newest") -> Tuple[List[dict], Dict[str, Any]]:
        page = max(page, 1)
        limit = min(max(limit, 1), 100)

        q = db.query(Product).filter(Product.is_active == True)
        if category:
            q = q.join(Category, Product.category_id == Category.id).filter(Category.slug == category)
        if search:
            like = f"%{search}%"
            q = q.filter((Product.name.ilike(like)) | (Product.description.ilike(like)))

        total = q.count()
        products = q.order_by(*SORT_OPTIONS.get(sort, SORT_OPTIONS["newest"])).offset((page - 1) * limit).limit(limit).all()
        ratings = self._ratings(db, [p.id for p in products])

        total_pages = (total + limit - 1) // limit
        pagination = {
            "page": page,
            "limit": limit,
            "totalCount": total,
            "totalPages": total_pages,
            "hasNext": page < total_pages,
            "hasPrev": page > 1,
        }
        return [product_summary(p, *ratings.get(p.id, (0.0, 0))) for p in products], pagination

    def featured(self, db: Session, limit: int = 8) -> List[dict]:
        products = (
            db.query(Product)
            .filter(Product.is_active == True, Product.is_featured == True)
            .order_by(Product.created_at.desc(), Product.id.desc())
            .limit(limit)
            .all()
        )
        ratings = self._ratings(db, [p.id for p in products])
        return [product_summary(p, *ratings.get(p.id, (0.0, 0))) for p in products]

    def get_detail(self, db: Session, slug: str) -> Dict[str, Any]:
        product = db.query(Product).filter(Product.slug == slug, Product.is_active == True).first()
        if not product:
            raise NotFoundError("Product not found")

        rating, review_count = self._ratings(db, [product.id]).get(product.id, (0.0, 0))
        sales_count = db.query(func.count(OrderItem.id)).filter(OrderItem.product_id == product.id).scalar() or 0

        latest_reviews = (
            db.query(Review)
            .filter(Review.product_id == product.id)
            .order_by(Review.created_at.desc(), Review.id.desc())
            .limit(10)
            .all()
        )

        related = (
            db.query(Product)
            .filter(
                Product.category_id == product.category_id,
                Product.id != product.id,
                Product.is_active == True,
            )
            .order_by(Product.created_at.desc())
            .limit(4)
            .all()
        )

        data = product_admin_dict(product)
        data.pop("isActive", None)
        data.pop("lowStockAlert", None)
        data.pop("isLowStock", None)
        data.update({
            "careInstructions": product.care_instructions,
            "weight": float(product.weight) if product.weight is not None else None,
            "blouseIncluded": product.blouse_included,
            "colors": product.colors,
            "category": {"id": product.category.id, "name": product.category.name, "slug": product.category.slug},
            "reviews": [
                {
                    "id": r.id,
                    "rating": r.rating,
                    "title": r.title,
                    "comment": r.comment,
                    "isVerified": r.is_verified,
                    "createdAt": iso(r.created_at),
                    "user": {"name": r.user.name if r.user else None, "imageUrl": r.user.image_url if r.user else None},
                }
                for r in latest_reviews
            ],
            "rating": rating,
            "reviewCount": review_count,
            "salesCount": sales_count,
            "isBestseller": sales_count > BESTSELLER_MIN_SALES and rating > BESTSELLER_MIN_RATING,
            "relatedProducts": [product_summary(p) for p in related],
        })
        return data

    # ---------- admin ----------

    def list_admin(self, db: Session, page: int = 1, per_page: int = 20, search: str = "",
                   category_id: Optional[int] = None) -> Tuple[List[Product], int]:
        q = db.query(Product)
        if search:
            q = q.filter(Product.name.ilike(f"%{search}%"))
        if category_id:
            q = q.filter(Product.category_id == category_id)
        total = q.count()
        products = q.order_by(Product.created_at.desc(), Product.id.desc()).offset((page - 1) * per_page).limit(per_page).all()
        return products, total

    def get(self, db: Session, product_id: int) -> Product:
        product = db.query(Product).filter(Product.id == product_id).first()
        if not product:
            raise NotFoundError("Product not found")
        return product

    def create(self, db: Session, data: Dict[str, Any]) -> Product:
        name = (data.get("name") or "").strip()
        if not name:
            raise ValidationError("Name is required")
        price = self._parse_price(data.get("price"), "price")
        if price is None:
            raise ValidationError("Price is required")
        category_id = safe_int(data.get("categoryId"))
        if not category_id or not db.query(Category.id).filter(Category.id == category_id).first():
            raise ValidationError("Valid categoryId is required")

        slug = data.get("slug") or slugify(name)
        if db.query(Product.id).filter(Product.slug == slug).first():
            raise DuplicateError("A product with this slug already exists")

        product = Product(name=name, slug=slug, price=price, category_id=category_id)
        self._apply(db, product, data, creating=True)
        db.add(product)
        db.flush()
        logger.info(f"Product #{product.id} created: {product.slug}")
        return product

    def update(self, db: Session, product_id: int, data: Dict[str, Any]) -> Product:
        product = self.get(db, product_id)
        if "name" in data and not (data.get("name") or "").strip():
            raise ValidationError("Name cannot be empty")
        if "price" in data:
            price = self._parse_price(data.get("price"), "price")
            if price is None:
                raise ValidationError("Price is required")
            product.price = price
        if "categoryId" in data:
            category_id = safe_int(data.get("categoryId"))
            if not category_id or not db.query(Category.id).filter(Category.id == category_id).first():
                raise ValidationError("Valid categoryId is required")
            product.category_id = category_id
        if "slug" in data and data["slug"] != product.slug:
            if db.query(Product.id).filter(Product.slug == data["slug"], Product.id != product.id).first():
                raise DuplicateError("A product with this slug already exists")
            product.slug = data["slug"]
        self._apply(db, product, data, creating=False)
        db.flush()
        return product

    def delete(self, db: Session, product_id: int) -> str:
        """Hard delete, or deactivate when orders still reference the product."""
        product = self.get(db, product_id)
        referenced = db.query(OrderItem.id).filter(OrderItem.product_id == product.id).first()
        if referenced:
            product.is_active = False
            db.flush()
            logger.info(f"Product #{product.id} deactivated (referenced by orders)")
            return "deactivated"

        db.query(CartItem).filter(CartItem.product_id == product.id).delete(synchronize_session=False)
        db.delete(product)
        db.flush()
        logger.info(f"Product #{product_id} deleted")
        return "deleted"

    # ---------- helpers ----------

    def _apply(self, db: Session, product: Product, data: Dict[str, Any], creating: bool):
        for key, attr in _PRODUCT_FIELDS.items():
            if key in data:
                setattr(product, attr, data[key])
        if "comparePrice" in data:
            product.compare_price = self._parse_price(data.get("comparePrice"), "comparePrice")
        if "stock" in data or creating:
            stock = safe_int(data.get("stock", 0))
            if stock is None or stock < 0:
                raise ValidationError("Stock must be a non-negative integer")
            product.stock = stock
        if "lowStockAlert" in data:
            alert = safe_int(data.get("lowStockAlert"))
            if alert is None or alert < 0:
                raise ValidationError("lowStockAlert must be a non-negative integer")
            product.low_stock_alert = alert
        if "weight" in data:
            product.weight = self._parse_price(data.get("weight"), "weight")
        for key, attr in (("isActive", "is_active"), ("isFeatured", "is_featured"), ("blouseIncluded", "blouse_included")):
            if key in data:
                setattr(product, attr, bool(data[key]))
            elif creating:
                setattr(product, attr, key == "isActive")
        if "occasions" in data:
            product.occasions = data.get("occasions") or []
        if "colors" in data:
            product.colors = data.get("colors") or []
        if "images" in data:
            product.images = [
                ProductImage(
                    url=img["url"] if isinstance(img, dict) else img,
                    alt=img.get("alt") if isinstance(img, dict) else None,
                    is_primary=(img.get("isPrimary", idx == 0) if isinstance(img, dict) else idx == 0),
                    sort_order=idx,
                )
                for idx, img in enumerate(data.get("images") or [])
            ]

    @staticmethod
    def _parse_price(value, field: str) -> Optional[Decimal]:
        if value is None or value == "":
            return None
        try:
            d = Decimal(str(value))
        except (ArithmeticError, ValueError):
            raise ValidationError(f"Invalid {field}")
        if d < 0:
            raise ValidationError(f"{field} cannot be negative")
        return d

    @staticmethod
    def _ratings(db: Session, product_ids: List[int]) -> Dict[int, Tuple[float, int]]:
        """Batch {product_id: (avg rating rounded to 1dp, review count)}."""
        if not product_ids:
            return {}
        rows = (
            db.query(Review.product_id, func.avg(Review.rating), func.count(Review.id))
            .filter(Review.product_id.in_(product_ids))
            .group_by(Review.product_id)
            .all()
        )
        return {pid: (round(float(avg or 0), 1), int(cnt)) for pid, avg, cnt in rows}


# ==========================================
# Category Service
# ==========================================

class CategoryService:

    def list_active(self, db: Session) -> List[dict]:
        rows = (
            db.query(Category, func.count(Product.id))
            .outerjoin(Product, (Product.category_id == Category.id) & (Product.is_active == True))
            .filter(Category.is_active == True)
            .group_by(Category.id)
            .order_by(Category.name.asc())
            .all()
        )
        return [category_dict(c, count) for c, count in rows]

    def get_by_slug(self, db: Session, slug: str) -> dict:
        category = db.query(Category).filter(Category.slug == slug).first()
        if not category:
            raise NotFoundError("Category not found")
        count = db.query(func.count(Product.id)).filter(
            Product.category_id == category.id, Product.is_active == True,
        ).scalar() or 0
        return category_dict(category, count)

    def list_all(self, db: Session) -> List[dict]:
        rows = (
            db.query(Category, func.count(Product.id))
            .outerjoin(Product, Product.category_id == Category.id)
            .group_by(Category.id)
            .order_by(Category.name.asc())
            .all()
        )
        return [category_dict(c, count) for c, count in rows]

    def get(self, db: Session, category_id: int) -> Category:
        category = db.query(Category).filter(Category.id == category_id).first()
        if not category:
            raise NotFoundError("Category not found")
        return category

    def create(self, db: Session, data: Dict[str, Any]) -> Category:
        name = (data.get("name") or "").strip()
        if not name:
            raise ValidationError("Name is required")
        slug = data.get("slug") or slugify(name)
        if db.query(Category.id).filter(Category.slug == slug).first():
            raise DuplicateError("A category with this slug already exists")
        category = Category(name=name, slug=slug)
        self._apply(db, category, data)
        db.add(category)
        db.flush()
        logger.info(f"Category #{category.id} created: {category.slug}")
        return category

    def update(self, db: Session, category_id: int, data: Dict[str, Any]) -> Category:
        category = self.get(db, category_id)
        if "name" in data:
            name = (data.get("name") or "").strip()
            if not name:
                raise ValidationError("Name cannot be empty")
            category.name = name
        if "slug" in data and data["slug"] != category.slug:
            if db.query(Category.id).filter(Category.slug == data["slug"], Category.id != category.id).first():
                raise DuplicateError("A category with this slug already exists")
            category.slug = data["slug"]
        self._apply(db, category, data)
        db.flush()
        return category

    def delete(self, db: Session, category_id: int):
        category = self.get(db, category_id)
        if db.query(Product.id).filter(Product.category_id == category.id).first():
            raise ValidationError("Category has products; move or delete them first")
        db.query(Category).filter(Category.parent_id == category.id).update(
            {Category.parent_id: None}, synchronize_session=False,
        )
        db.delete(category)
        db.flush()

    @staticmethod
    def _apply(db: Session, category: Category, data: Dict[str, Any]):
        if "description" in data:
            category.description = data["description"]
        if "image" in data:
            category.image = data["image"]
        if "isActive" in data:
            category.is_active = bool(data["isActive"])
        if "parentId" in data:
            parent_id = safe_int(data.get("parentId"))
            if parent_id is not None:
                if parent_id == category.id or not db.query(Category.id).filter(Category.id == parent_id).first():
                    raise ValidationError("Invalid parentId")
            category.parent_id = parent_id


# Singletons
product_service = ProductService()
category_service = CategoryService()
