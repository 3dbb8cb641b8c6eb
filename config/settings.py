"""
Promise Atelier - Centralized Configuration
============================================
All environment variables and constants are loaded here.
No other module should call os.getenv() directly.
"""

import os
import sys
from dotenv import load_dotenv

load_dotenv()


# ==========================================
# 🗄️ Database
# ==========================================
DATABASE_URL = os.getenv("DATABASE_URL")

if not DATABASE_URL:
    DB_USER = os.getenv("DB_USER")
    DB_PASSWORD = os.getenv("DB_PASSWORD")
    DB_HOST = os.getenv("DB_HOST", "localhost")
    DB_PORT = os.getenv("DB_PORT", "5432")
    DB_NAME = os.getenv("DB_NAME")

    if not all([DB_USER, DB_PASSWORD, DB_HOST, DB_NAME]):
        print("[ERROR] Critical: Database config missing in .env (DATABASE_URL or DB_USER, DB_PASSWORD, DB_HOST, DB_NAME)")
        sys.exit(1)

    DATABASE_URL = f"postgresql://{DB_USER}:{DB_PASSWORD}@{DB_HOST}:{DB_PORT}/{DB_NAME}"


# ==========================================
# 🔐 Security
# ==========================================
SECRET_KEY = os.getenv("SECRET_KEY")

if not SECRET_KEY:
    print("[ERROR] Critical: SECRET_KEY missing in .env")
    sys.exit(1)

ALGORITHM = "HS256"
ACCESS_TOKEN_EXPIRE_MINUTES = int(os.getenv("ACCESS_TOKEN_EXPIRE_MINUTES") or 60 * 24 * 7)  # 7 days

COOKIE_SECURE = os.getenv("COOKIE_SECURE", "false").lower() == "true"
COOKIE_SAMESITE = os.getenv("COOKIE_SAMESITE", "lax")
CSRF_ENABLED = os.getenv("CSRF_ENABLED", "true").lower() == "true"

# Anonymous shoppers get a random id in this cookie; their cart is keyed on it.
GUEST_COOKIE = "guest_id"
GUEST_COOKIE_MAX_AGE_DAYS = int(os.getenv("GUEST_COOKIE_MAX_AGE_DAYS") or 90)


# ==========================================
# 🛒 Cart
# ==========================================
DEFAULT_SIZE = os.getenv("DEFAULT_SIZE", "one-size")

# 0 disables the abandoned-cart sweep (stock stays held until checkout).
CART_EXPIRY_HOURS = int(os.getenv("CART_EXPIRY_HOURS") or 0)
CART_SWEEP_INTERVAL_MINUTES = int(os.getenv("CART_SWEEP_INTERVAL_MINUTES") or 30)


# ==========================================
# 📦 Orders
# ==========================================
ORDER_STRICT_TRANSITIONS = os.getenv("ORDER_STRICT_TRANSITIONS", "false").lower() == "true"
ORDER_IDEMPOTENCY_WINDOW_MINUTES = int(os.getenv("ORDER_IDEMPOTENCY_WINDOW_MINUTES") or 10)


# ==========================================
# 🔧 App
# ==========================================
DEBUG = os.getenv("DEBUG", "false").lower() == "true"
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()
