"""
Catalog Module - Models
========================
Category, Product (with fashion attributes), ProductImage and Review.
"""

import json

from sqlalchemy import (
    Column, Integer, String, Numeric, Boolean, Text,
    ForeignKey, DateTime, CheckConstraint,
)
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from config.database import Base


# ==========================================
# 🗂️ Category
# ==========================================

class Category(Base):
    __tablename__ = "categories"

    id = Column(Integer, primary_key=True)
    name = Column(String, nullable=False)
    slug = Column(String, nullable=False, unique=True, index=True)
    description = Column(Text, nullable=True)
    image = Column(String, nullable=True)
    parent_id = Column(Integer, ForeignKey("categories.id", ondelete="SET NULL"), nullable=True)
    is_active = Column(Boolean, default=True, nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)

    parent = relationship("Category", remote_side=[id], backref="children")
    products = relationship("Product", back_populates="category")

    def __repr__(self):
        return f"<Category {self.slug}>"


# ==========================================
# 👗 Product
# ==========================================

class Product(Base):
    __tablename__ = "products"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String, nullable=False)
    slug = Column(String, nullable=False, unique=True, index=True)
    description = Column(Text, nullable=True)

    price = Column(Numeric(12, 2), nullable=False)
    compare_price = Column(Numeric(12, 2), nullable=True)
    stock = Column(Integer, default=0, nullable=False)
    low_stock_alert = Column(Integer, default=5, nullable=False)

    category_id = Column(Integer, ForeignKey("categories.id", ondelete="RESTRICT"), nullable=False, index=True)

    # Fashion attributes
    material = Column(String, nullable=True)
    pattern = Column(String, nullable=True)
    fabric = Column(String, nullable=True)
    work_type = Column(String, nullable=True)
    occasions_json = Column("occasions", Text, nullable=True)   # JSON list of strings
    colors_json = Column("colors", Text, nullable=True)         # JSON list of {name, hexCode}
    care_instructions = Column(Text, nullable=True)
    weight = Column(Numeric(8, 2), nullable=True)               # grams
    blouse_included = Column(Boolean, default=False, nullable=False)

    is_active = Column(Boolean, default=True, nullable=False, index=True)
    is_featured = Column(Boolean, default=False, nullable=False)

    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    category = relationship("Category", back_populates="products")
    images = relationship(
        "ProductImage", back_populates="product",
        cascade="all, delete-orphan", order_by="ProductImage.sort_order",
    )
    reviews = relationship("Review", back_populates="product", cascade="all, delete-orphan")

    __table_args__ = (
        CheckConstraint("stock >= 0", name="ck_product_stock_non_negative"),
    )

    @property
    def occasions(self) -> list:
        return json.loads(self.occasions_json) if self.occasions_json else []

    @occasions.setter
    def occasions(self, value):
        self.occasions_json = json.dumps(list(value or []))

    @property
    def colors(self) -> list:
        return json.loads(self.colors_json) if self.colors_json else []

    @colors.setter
    def colors(self, value):
        self.colors_json = json.dumps(list(value or []))

    @property
    def primary_image(self):
        """Primary image if flagged, else first by sort order."""
        if not self.images:
            return None
        for img in self.images:
            if img.is_primary:
                return img
        return self.images[0]

    @property
    def is_low_stock(self) -> bool:
        return self.stock <= (self.low_stock_alert or 0)

    def __repr__(self):
        return f"<Product {self.slug}>"


class ProductImage(Base):
    __tablename__ = "product_images"

    id = Column(Integer, primary_key=True)
    product_id = Column(Integer, ForeignKey("products.id", ondelete="CASCADE"), nullable=False)
    url = Column(String, nullable=False)
    alt = Column(String, nullable=True)
    is_primary = Column(Boolean, default=False, nullable=False)
    sort_order = Column(Integer, default=0, nullable=False)

    product = relationship("Product", back_populates="images")


# ==========================================
# ⭐ Review (read-only in this service)
# ==========================================

class Review(Base):
    __tablename__ = "reviews"

    id = Column(Integer, primary_key=True)
    product_id = Column(Integer, ForeignKey("products.id", ondelete="CASCADE"), nullable=False, index=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    rating = Column(Integer, nullable=False)
    title = Column(String, nullable=True)
    comment = Column(Text, nullable=True)
    is_verified = Column(Boolean, default=False, nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)

    product = relationship("Product", back_populates="reviews")
    user = relationship("User")

    __table_args__ = (
        CheckConstraint("rating >= 1 AND rating <= 5", name="ck_review_rating"),
    )
