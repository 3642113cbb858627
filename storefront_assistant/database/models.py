"""SQLAlchemy database models."""

from sqlalchemy import Column, Integer, String, Float, Text, DateTime, Boolean
from sqlalchemy.sql import func
from storefront_assistant.database.db import Base


class Category(Base):
    """Catalog category."""

    __tablename__ = "categories"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String, unique=True, index=True, nullable=False)
    slug = Column(String, unique=True, index=True, nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now())


class Product(Base):
    """Catalog product.

    Prices are whole forints. ``category`` holds the category name, the same
    way the storefront filters on it.
    """

    __tablename__ = "products"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String, nullable=False)
    slug = Column(String, unique=True, index=True, nullable=False)
    description = Column(Text, default="")
    price = Column(Integer, nullable=False)
    sale_price = Column(Integer, nullable=True)
    stock = Column(Integer, default=0, index=True)
    category = Column(String, index=True)
    image = Column(String, nullable=True)
    rating = Column(Float, default=0.0, index=True)
    is_archived = Column(Boolean, default=False, index=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    @property
    def effective_price(self) -> int:
        return self.sale_price if self.sale_price is not None else self.price

    @property
    def sale_percentage(self) -> int:
        if self.sale_price is None or not self.price:
            return 0
        return round((self.price - self.sale_price) * 100 / self.price)
