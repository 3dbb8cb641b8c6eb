"""
Promise Atelier - Demo Data Seeder
====================================
Inserts a small made-to-order catalog so the cart and checkout can be tried
locally. Existing products (matched by name) are left alone.

Usage:
    python scripts/seed.py          # Seed missing products
    python scripts/seed.py --reset  # Drop all tables, recreate and seed
"""

import sys
import os
from decimal import Decimal

sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from config.database import SessionLocal, Base, engine
from modules.catalog.models import Product
from modules.inventory.models import StockMovement  # noqa: F401
from modules.cart.models import Cart, CartItem  # noqa: F401
from modules.order.models import Order, OrderItem, OrderStatusLog  # noqa: F401


PRODUCTS = [
    # (name, price, stock)
    ("Ivory Silk A-Line Gown", Decimal("2450.00"), 4),
    ("Champagne Lace Mermaid Gown", Decimal("3180.00"), 3),
    ("Blush Tulle Ball Gown", Decimal("2890.00"), 2),
    ("Cathedral Veil, Hand-Beaded", Decimal("640.00"), 10),
    ("Pearl Bridal Belt", Decimal("185.00"), 25),
    ("Bridesmaid Chiffon Dress", Decimal("320.00"), 40),
    ("Custom Alteration Package", Decimal("150.00"), 100),
]


def seed():
    Base.metadata.create_all(bind=engine)
    db = SessionLocal()
    try:
        print("[1/1] Products...")
        added = 0
        for name, price, stock in PRODUCTS:
            if db.query(Product).filter(Product.name == name).first():
                print(f"  = {name} (exists)")
                continue
            db.add(Product(name=name, price=price, stock=stock, is_active=True))
            added += 1
            print(f"  + {name}  price={price}  stock={stock}")
        db.commit()

        print(f"\nSeed complete: {added} new products, {db.query(Product).count()} total")
    except Exception as e:
        db.rollback()
        print(f"\nSeed failed: {e}")
        raise
    finally:
        db.close()


def reset_and_seed():
    """Drop all tables and recreate + seed."""
    Base.metadata.drop_all(bind=engine)
    Base.metadata.create_all(bind=engine)
    print("All tables recreated")
    seed()


if __name__ == "__main__":
    if "--reset" in sys.argv:
        confirm = input("This will DELETE ALL DATA. Type 'yes' to confirm: ")
        if confirm.strip().lower() == "yes":
            reset_and_seed()
        else:
            print("Aborted.")
    else:
        seed()
