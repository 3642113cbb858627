"""Read-only catalog queries used by the assistant.

All queries are capped and filter on indexed columns so they stay cheap
enough to run at the start of every assistant request.
"""
import re
from dataclasses import dataclass
from typing import List, Optional, Sequence

from sqlalchemy import case, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from storefront_assistant.analytics.logger import logger
from storefront_assistant.database.models import Category, Product


# Words that mark a question as a product search
PRODUCT_KEYWORDS = [
    "keresek", "mutasd", "mutass", "ajánl", "termék", "telefon", "laptop", "tablet",
    "gaming", "tv", "fejhallgató", "fülhallgató", "akció", "olcsó", "drága", "legjobb",
    "top", "népszerű", "új", "készlet", "ár", "ft", "forint", "vásárol",
    "összehasonlít", "különbség", "ajándék", "csomag",
]

# Keyword -> category name, first match wins
CATEGORY_KEYWORDS = [
    ("telefon", "Okostelefonok"),
    ("mobil", "Okostelefonok"),
    ("laptop", "Laptopok"),
    ("notebook", "Laptopok"),
    ("tablet", "Tabletek"),
    ("okosóra", "Okosórák"),
    ("fejhallgató", "Fülhallgatók"),
    ("fülhallgató", "Fülhallgatók"),
    ("gaming", "Konzolok"),
    ("konzol", "Konzolok"),
    ("játék", "Konzolok"),
    ("kamera", "Kamerák"),
    ("hangszóró", "TV & Audio"),
    ("tévé", "TV & Audio"),
    ("tv", "TV & Audio"),
]

SALE_KEYWORDS = ["akció", "leárazás", "kedvezmény", "olcsó"]

_PRICE_PATTERN = re.compile(r"(\d+)\s*(ezer|ft|forint)", re.IGNORECASE)


@dataclass(frozen=True)
class SearchFilters:
    """Filters derived from a free-text shopping question."""

    is_product_query: bool = False
    category: Optional[str] = None
    max_price: Optional[int] = None
    wants_sale: bool = False


def extract_search_filters(question: str) -> SearchFilters:
    """Derive catalog filters from a shopping question.

    >>> extract_search_filters("Milyen telefont ajánlasz 100 ezer alatt?").max_price
    100000
    """
    text = (question or "").lower()
    is_product_query = any(keyword in text for keyword in PRODUCT_KEYWORDS)

    max_price = None
    match = _PRICE_PATTERN.search(text)
    if match:
        amount = int(match.group(1))
        max_price = amount * 1000 if match.group(2).lower() == "ezer" else amount

    category = None
    for keyword, name in CATEGORY_KEYWORDS:
        if keyword in text:
            category = name
            break

    wants_sale = any(keyword in text for keyword in SALE_KEYWORDS)

    return SearchFilters(
        is_product_query=is_product_query or category is not None,
        category=category,
        max_price=max_price,
        wants_sale=wants_sale,
    )


class CatalogService:
    """Catalog query service bound to one database session."""

    def __init__(self, db: Session):
        self.db = db

    def rollback(self):
        """Discard a failed read so the session can be queried again."""
        try:
            self.db.rollback()
        except SQLAlchemyError as e:
            logger.warning(f"Catalog session rollback failed: {e}")

    def list_categories(self, limit: int) -> List[Category]:
        """Return up to ``limit`` categories ordered by name."""
        if limit <= 0:
            return []
        stmt = select(Category).order_by(Category.name.asc()).limit(limit)
        return list(self.db.scalars(stmt))

    def list_top_products(self, limit: int, in_stock: bool = True) -> List[Product]:
        """Return the best rated products, in stock ones only by default."""
        if limit <= 0:
            return []
        stmt = select(Product).where(Product.is_archived.is_(False))
        if in_stock:
            stmt = stmt.where(Product.stock > 0)
        stmt = stmt.order_by(Product.rating.desc(), Product.stock.desc(), Product.id.asc()).limit(limit)
        return list(self.db.scalars(stmt))

    def find_products_by_ids(self, ids: Sequence[int]) -> List[Product]:
        """Look up live (not archived) products, preserving the order of ``ids``."""
        wanted = []
        for product_id in ids:
            if product_id not in wanted:
                wanted.append(product_id)
        if not wanted:
            return []

        stmt = select(Product).where(Product.id.in_(wanted), Product.is_archived.is_(False))
        found = {product.id: product for product in self.db.scalars(stmt)}
        return [found[product_id] for product_id in wanted if product_id in found]

    def search_products(self, filters: SearchFilters, limit: int = 5) -> List[Product]:
        """Return in-stock candidates matching ``filters``."""
        if limit <= 0:
            return []

        stmt = select(Product).where(Product.is_archived.is_(False), Product.stock > 0)
        if filters.category:
            stmt = stmt.where(Product.category == filters.category)
        if filters.max_price is not None:
            stmt = stmt.where(Product.price <= filters.max_price)

        order_by = []
        if filters.wants_sale:
            stmt = stmt.where(Product.sale_price.is_not(None))
            discount = case(
                (Product.price > 0, (Product.price - Product.sale_price) * 1.0 / Product.price),
                else_=0,
            )
            order_by.append(discount.desc())
        order_by.extend([Product.rating.desc(), Product.stock.desc(), Product.id.asc()])

        stmt = stmt.order_by(*order_by).limit(limit)
        return list(self.db.scalars(stmt))
