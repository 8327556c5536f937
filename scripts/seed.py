"""
Saakie - Demo Data Seeder
===========================
Seeds categories, products with images, and an admin account.
Idempotent: existing rows (matched by slug / email) are left alone.

Usage:
    python scripts/seed.py          # Seed
    python scripts/seed.py --reset  # Drop all tables and reseed

Sections seeded:
  1. Admin user (SUPER_ADMIN, identity id from SEED_ADMIN_CLERK_ID)
  2. Categories
  3. Products + images
"""

import sys
import os
from decimal import Decimal

sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from config.database import SessionLocal, Base, engine
from common.helpers import slugify
from modules.user.models import User, UserRole
from modules.user.service import user_service
from modules.customer.address_models import Address  # noqa: F401
from modules.catalog.models import Category, Product, ProductImage
from modules.cart.models import Cart, CartItem  # noqa: F401
from modules.wishlist.models import Wishlist, WishlistItem  # noqa: F401
from modules.order.models import Order, OrderItem, OrderStatusLog  # noqa: F401
from modules.webhook_log.models import WebhookLog  # noqa: F401

ADMIN_EMAIL = os.getenv("SEED_ADMIN_EMAIL", "admin@saakie.in")
ADMIN_CLERK_ID = os.getenv("SEED_ADMIN_CLERK_ID", "user_seed_admin")

CATEGORIES = [
    {"name": "Silk Sarees", "slug": "silk-sarees", "description": "Kanjivaram, Banarasi and pure silk weaves"},
    {"name": "Cotton Sarees", "slug": "cotton-sarees", "description": "Breathable handloom cottons for everyday wear"},
    {"name": "Designer Sarees", "slug": "designer-sarees", "description": "Embellished drapes for parties and receptions"},
    {"name": "Lehengas", "slug": "lehengas", "description": "Bridal and festive lehenga sets"},
]

PRODUCTS = [
    {
        "name": "Kanjivaram Temple Border Silk Saree", "category": "silk-sarees",
        "price": "12499", "compare_price": "15999", "stock": 12, "featured": True,
        "material": "Pure Silk", "pattern": "Temple Border", "fabric": "Mulberry Silk", "work_type": "Zari",
        "occasions": ["Wedding", "Festive"],
        "colors": [{"name": "Maroon", "hexCode": "#800000"}, {"name": "Gold", "hexCode": "#D4AF37"}],
        "blouse_included": True,
    },
    {
        "name": "Banarasi Brocade Silk Saree", "category": "silk-sarees",
        "price": "8999", "compare_price": None, "stock": 8, "featured": True,
        "material": "Silk", "pattern": "Brocade", "fabric": "Katan Silk", "work_type": "Woven",
        "occasions": ["Wedding", "Party"],
        "colors": [{"name": "Royal Blue", "hexCode": "#1F3A93"}],
        "blouse_included": True,
    },
    {
        "name": "Handloom Chanderi Cotton Saree", "category": "cotton-sarees",
        "price": "1899", "compare_price": "2499", "stock": 30, "featured": False,
        "material": "Cotton", "pattern": "Butta", "fabric": "Chanderi", "work_type": "Handloom",
        "occasions": ["Casual", "Office"],
        "colors": [{"name": "Mint", "hexCode": "#98FF98"}],
        "blouse_included": False,
    },
    {
        "name": "Jamdani Cotton Saree", "category": "cotton-sarees",
        "price": "3499", "compare_price": None, "stock": 4, "featured": False,
        "material": "Cotton", "pattern": "Jamdani", "fabric": "Muslin", "work_type": "Handwoven",
        "occasions": ["Festive", "Casual"],
        "colors": [{"name": "Off White", "hexCode": "#FAF9F6"}, {"name": "Red", "hexCode": "#C0392B"}],
        "blouse_included": False,
    },
    {
        "name": "Sequin Georgette Party Saree", "category": "designer-sarees",
        "price": "5499", "compare_price": "6999", "stock": 15, "featured": True,
        "material": "Georgette", "pattern": "Solid", "fabric": "Georgette", "work_type": "Sequin",
        "occasions": ["Party", "Reception"],
        "colors": [{"name": "Black", "hexCode": "#000000"}],
        "blouse_included": True,
    },
    {
        "name": "Bridal Velvet Lehenga Set", "category": "lehengas",
        "price": "24999", "compare_price": None, "stock": 3, "featured": False,
        "material": "Velvet", "pattern": "Floral", "fabric": "Velvet", "work_type": "Zardozi",
        "occasions": ["Wedding"],
        "colors": [{"name": "Crimson", "hexCode": "#DC143C"}],
        "blouse_included": True,
    },
]


def seed_admin(db):
    print("\n[1/3] Admin User")
    existing = db.query(User).filter(User.email == ADMIN_EMAIL).first()
    if existing:
        if existing.role != UserRole.SUPER_ADMIN.value:
            existing.role = UserRole.SUPER_ADMIN.value
            print(f"  ~ promoted: {ADMIN_EMAIL}")
        else:
            print(f"  = exists: {ADMIN_EMAIL}")
        return existing

    admin = User(clerk_id=ADMIN_CLERK_ID, email=ADMIN_EMAIL, name="Store Admin", role=UserRole.SUPER_ADMIN.value)
    db.add(admin)
    db.flush()
    user_service.ensure_cart_and_wishlist(db, admin)
    print(f"  + SUPER_ADMIN: {ADMIN_EMAIL} ({ADMIN_CLERK_ID})")
    return admin


def seed_categories(db):
    print("\n[2/3] Categories")
    by_slug = {}
    for data in CATEGORIES:
        cat = db.query(Category).filter(Category.slug == data["slug"]).first()
        if cat:
            print(f"  = exists: {data['slug']}")
        else:
            cat = Category(**data, is_active=True)
            db.add(cat)
            print(f"  + {data['name']}")
        by_slug[data["slug"]] = cat
    db.flush()
    return by_slug


def seed_products(db, categories):
    print("\n[3/3] Products")

    for data in PRODUCTS:
        slug = slugify(data["name"])
        if db.query(Product.id).filter(Product.slug == slug).first():
            print(f"  = exists: {slug}")
            continue

        product = Product(
            name=data["name"],
            slug=slug,
            description=f"{data['name']} in {data['fabric']} with {data['work_type'].lower()} work.",
            price=Decimal(data["price"]),
            compare_price=Decimal(data["compare_price"]) if data["compare_price"] else None,
            stock=data["stock"],
            category_id=categories[data["category"]].id,
            material=data["material"],
            pattern=data["pattern"],
            fabric=data["fabric"],
            work_type=data["work_type"],
            blouse_included=data["blouse_included"],
            is_featured=data["featured"],
            is_active=True,
        )
        product.occasions = data["occasions"]
        product.colors = data["colors"]
        product.images = [
            ProductImage(url=f"https://images.saakie.in/products/{slug}/{n}.jpg",
                         alt=data["name"], is_primary=(n == 1), sort_order=n)
            for n in (1, 2)
        ]
        db.add(product)
        print(f"  + {data['name']} (₹{data['price']}, stock {data['stock']})")
    db.flush()


def seed(reset=False):
    if reset:
        print("Dropping all tables...")
        Base.metadata.drop_all(bind=engine)
    Base.metadata.create_all(bind=engine)

    db = SessionLocal()
    try:
        print("=" * 50)
        print("  Saakie - Demo Seeder")
        print("=" * 50)

        seed_admin(db)
        categories = seed_categories(db)
        seed_products(db, categories)

        db.commit()
        print("\nSeed complete.")
    except Exception as e:
        db.rollback()
        print(f"\nSeed failed: {e}")
        raise
    finally:
        db.close()


if __name__ == "__main__":
    seed(reset="--reset" in sys.argv)
