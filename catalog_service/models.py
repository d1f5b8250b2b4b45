# catalog_service/models.py

"""
SQLAlchemy database models for the Catalog Service.
These classes define the structure of tables in the database.
"""
from datetime import datetime, timezone

from sqlalchemy import JSON, Column, DateTime, ForeignKey, Integer, Numeric, String
from sqlalchemy.orm import relationship

from .db import Base

# Largest value an Integer column holds on every supported database
MAX_INTEGER = 2**31 - 1


def utcnow():
    return datetime.now(timezone.utc)


class Category(Base):
    """
    SQLAlchemy model for the 'categories' table.
    Categories are managed elsewhere; products only reference them.
    """

    __tablename__ = "categories"

    category_id = Column(Integer, primary_key=True, index=True, autoincrement=True)
    name = Column(String(255), nullable=False, unique=True)
    created_at = Column(DateTime(timezone=True), default=utcnow)

    products = relationship("Product", back_populates="category")

    def __repr__(self):
        return f"<Category(id={self.category_id}, name='{self.name}')>"


class Product(Base):
    """
    SQLAlchemy model for the 'products' table.
    Represents a catalog product, its weight/price variants and the hosted
    image that belongs to it.
    """

    __tablename__ = "products"

    # Primary Key: Unique identifier for each product, auto-incrementing.
    product_id = Column(Integer, primary_key=True, index=True, autoincrement=True)

    # Product name: Required, max 255 chars, indexed for faster lookups.
    name = Column(String(255), nullable=False, index=True)

    # Unit price: numeric with 10 total digits and 2 decimal places.
    rate = Column(Numeric(10, 2, asdecimal=False), nullable=False)

    # Units in stock.
    stocks = Column(Integer, nullable=False, default=0)

    category_id = Column(
        Integer, ForeignKey("categories.category_id"), nullable=False, index=True
    )

    # Ordered list of {"kilogram": ..., "price": ...} variants.
    kilogram_option = Column(JSON, nullable=False)

    # Reference to the hosted image returned by the asset store.
    public_id = Column(String(512), nullable=False)
    url = Column(String(2048), nullable=False)

    # Set client side so recency ordering keeps sub-second precision.
    created_at = Column(DateTime(timezone=True), default=utcnow, index=True)
    updated_at = Column(DateTime(timezone=True), onupdate=utcnow)

    category = relationship("Category", back_populates="products")

    def __repr__(self):
        return f"<Product(id={self.product_id}, name='{self.name}', stocks={self.stocks})>"
