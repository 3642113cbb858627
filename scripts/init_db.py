"""Database initialization script: create tables and seed a demo catalog."""
import sys
from pathlib import Path

# Add project root to path
project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))

from sqlalchemy import inspect, select

from storefront_assistant.database.db import init_db, engine, SessionLocal
from storefront_assistant.database.models import Category, Product
from storefront_assistant.analytics.logger import logger

CATEGORIES = [
    ("Okostelefonok", "okostelefonok"),
    ("Laptopok", "laptopok"),
    ("Tabletek", "tabletek"),
    ("Okosórák", "okosorak"),
    ("Fülhallgatók", "fulhallgatok"),
    ("Konzolok", "konzolok"),
    ("Kamerák", "kamerak"),
    ("TV & Audio", "tv-audio"),
    ("Okosotthon", "okosotthon"),
    ("Kiegészítők", "kiegeszitok"),
]

# name, slug, price, sale_price, stock, category, rating
PRODUCTS = [
    ("Samsung Galaxy S24 Ultra", "samsung-galaxy-s24-ultra", 599990, None, 15, "Okostelefonok", 4.9),
    ("iPhone 15 Pro Max", "iphone-15-pro-max", 649990, None, 20, "Okostelefonok", 4.8),
    ("iPhone 15", "iphone-15", 389990, 359990, 25, "Okostelefonok", 4.7),
    ("Google Pixel 8 Pro", "google-pixel-8-pro", 419990, None, 8, "Okostelefonok", 4.7),
    ("Xiaomi 14 Ultra", "xiaomi-14-ultra", 549990, None, 5, "Okostelefonok", 4.6),
    ("Samsung Galaxy A55", "samsung-galaxy-a55", 159990, 139990, 30, "Okostelefonok", 4.4),
    ("MacBook Pro 14 M3", "macbook-pro-14-m3", 899990, None, 10, "Laptopok", 4.9),
    ("Dell XPS 15", "dell-xps-15", 789990, None, 7, "Laptopok", 4.5),
    ("ASUS ROG Zephyrus G14", "asus-rog-zephyrus-g14", 659990, None, 12, "Laptopok", 4.8),
    ("iPad Pro 12.9 M2", "ipad-pro-12-9-m2", 549990, None, 15, "Tabletek", 4.9),
    ("Apple Watch Series 9", "apple-watch-series-9", 179990, None, 14, "Okosórák", 4.7),
    ("AirPods Pro", "airpods-pro", 99990, 89990, 40, "Fülhallgatók", 4.8),
    ("Sony WH-1000XM5", "sony-wh-1000xm5", 149990, None, 0, "Fülhallgatók", 4.9),
    ("PlayStation 5 Slim", "playstation-5-slim", 219990, None, 9, "Konzolok", 4.9),
    ("LG OLED C3 55", "lg-oled-c3-55", 499990, 449990, 4, "TV & Audio", 4.8),
]


def check_table_exists(table_name: str) -> bool:
    """Check if a table exists in the database."""
    inspector = inspect(engine)
    return table_name in inspector.get_table_names()


def seed_catalog() -> int:
    """Insert the demo catalog into empty tables; returns inserted product count."""
    db = SessionLocal()
    try:
        if db.scalar(select(Product.id).limit(1)) is not None:
            logger.info("Catalog already seeded, skipping")
            return 0

        for name, slug in CATEGORIES:
            db.add(Category(name=name, slug=slug))
        for name, slug, price, sale_price, stock, category, rating in PRODUCTS:
            db.add(Product(
                name=name,
                slug=slug,
                price=price,
                sale_price=sale_price,
                stock=stock,
                category=category,
                rating=rating,
                image=f"https://placehold.co/600x400/png?text={slug}",
            ))
        db.commit()
        return len(PRODUCTS)
    except Exception:
        db.rollback()
        raise
    finally:
        db.close()


def initialize_database() -> bool:
    """Initialize database with all tables and the demo catalog."""
    try:
        logger.info("Initializing database...")
        init_db()

        for table in ("categories", "products"):
            if check_table_exists(table):
                logger.info(f"  [OK] {table}")
            else:
                logger.warning(f"  [WARN] {table} (missing)")

        inserted = seed_catalog()
        logger.info(f"[SUCCESS] Database initialization complete ({inserted} products seeded)")
        return True
    except Exception as e:
        logger.error(f"Database initialization failed: {e}", exc_info=True)
        return False


if __name__ == "__main__":
    success = initialize_database()
    sys.exit(0 if success else 1)
