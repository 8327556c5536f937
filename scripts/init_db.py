"""
Saakie - Database Initialization
==================================
Creates any missing tables. Alembic owns schema changes after the first
deploy; this script is for fresh databases and local development.

Usage:
    python scripts/init_db.py
    python scripts/init_db.py --drop   # Drop and recreate all tables
    python scripts/init_db.py --seed   # Also load demo catalog + admin
"""

import sys
import os

sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from sqlalchemy import inspect

from config.database import Base, engine

# Every model must be imported before create_all
from modules.user.models import User  # noqa
from modules.customer.address_models import Address  # noqa
from modules.catalog.models import Category, Product, ProductImage, Review  # noqa
from modules.cart.models import Cart, CartItem  # noqa
from modules.wishlist.models import Wishlist, WishlistItem  # noqa
from modules.order.models import Order, OrderItem, OrderStatusLog  # noqa
from modules.webhook_log.models import WebhookLog  # noqa


def init_db(drop_first=False):
    existing = set(inspect(engine).get_table_names())
    if drop_first and existing:
        print(f"Dropping {len(existing)} tables...")
        Base.metadata.drop_all(bind=engine)
        existing = set()

    Base.metadata.create_all(bind=engine)

    tables = sorted(inspect(engine).get_table_names())
    print(f"Tables ({len(tables)}):")
    for t in tables:
        marker = " " if t in existing else "+"
        print(f"  {marker} {t}")


if __name__ == "__main__":
    drop = "--drop" in sys.argv
    if drop:
        confirm = input("This will DROP all tables. Type 'yes': ")
        if confirm.strip().lower() != "yes":
            print("Aborted.")
            sys.exit(0)
    init_db(drop_first=drop)

    if "--seed" in sys.argv:
        from scripts.seed import seed
        seed()
