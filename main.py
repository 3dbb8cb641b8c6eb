"""
Promise Atelier - Application Entry Point
==========================================
FastAPI app initialization, error mapping, middleware, scheduler, and router registration.
"""

import logging
import time as _time
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from sqlalchemy.exc import DBAPIError, OperationalError
from apscheduler.schedulers.background import BackgroundScheduler

from config import settings
from config.database import SessionLocal, Base, engine
from common.exceptions import ShopError

logging.basicConfig(
    level=getattr(logging, settings.LOG_LEVEL, logging.INFO),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
scheduler_logger = logging.getLogger("atelier.scheduler")
request_logger = logging.getLogger("atelier.request")


# ==========================================
# Import ALL models so Alembic/Base can see them
# ==========================================
from modules.catalog.models import Product  # noqa: F401
from modules.inventory.models import StockMovement  # noqa: F401
from modules.cart.models import Cart, CartItem  # noqa: F401
from modules.order.models import Order, OrderItem, OrderStatusLog  # noqa: F401

# ==========================================
# Import routers
# ==========================================
from modules.auth.routes import router as auth_router
from modules.cart.routes import router as cart_router
from modules.order.routes import router as order_router
from modules.order.admin_routes import router as order_admin_router


# ==========================================
# Background Scheduler: Abandoned Cart Sweep
# ==========================================
def _sweep_abandoned_carts():
    """Background job: drop idle cart lines and give their held stock back."""
    db = SessionLocal()
    try:
        from modules.cart.service import cart_service
        count = cart_service.sweep_abandoned(db, settings.CART_EXPIRY_HOURS)
        db.commit()
        if count:
            scheduler_logger.info(f"Swept {count} abandoned cart lines")
    except Exception as e:
        db.rollback()
        scheduler_logger.error(f"Cart sweep error: {e}")
    finally:
        db.close()


scheduler = BackgroundScheduler()


@asynccontextmanager
async def lifespan(app):
    # Auto-create any missing tables (safe for existing tables)
    Base.metadata.create_all(bind=engine)

    if settings.CART_EXPIRY_HOURS > 0:
        scheduler.add_job(
            _sweep_abandoned_carts, 'interval',
            minutes=settings.CART_SWEEP_INTERVAL_MINUTES, id='cart_sweep',
        )
        scheduler.start()
        scheduler_logger.info(
            f"Background scheduler started (cart sweep every {settings.CART_SWEEP_INTERVAL_MINUTES}m, "
            f"expiry {settings.CART_EXPIRY_HOURS}h)"
        )
    yield
    if scheduler.running:
        scheduler.shutdown()
        scheduler_logger.info("Background scheduler stopped")


# ==========================================
# Create App
# ==========================================
app = FastAPI(
    title="Promise Atelier",
    description="Cart, checkout and order lifecycle for made-to-order bridal wear",
    version="1.0.0",
    docs_url="/docs" if settings.DEBUG else None,
    redoc_url=None,
    lifespan=lifespan,
)


# ==========================================
# Exception handlers
# ==========================================
async def shop_error_handler(request: Request, exc: ShopError):
    """Business errors → JSON with the error's own status code."""
    body = {"detail": exc.message}
    conflicts = getattr(exc, "conflicts", None)
    if conflicts is not None:
        body["conflicts"] = conflicts
    return JSONResponse(body, status_code=exc.status_code)


async def database_error_handler(request: Request, exc: DBAPIError):
    """Persistence / connectivity failures: generic and retryable, nothing partial was committed."""
    request_logger.error(f"Database error on {request.method} {request.url.path}: {exc.__class__.__name__}")
    return JSONResponse(
        {"detail": "Service temporarily unavailable. Please try again.", "retryable": True},
        status_code=503,
    )


app.add_exception_handler(ShopError, shop_error_handler)
app.add_exception_handler(OperationalError, database_error_handler)
app.add_exception_handler(DBAPIError, database_error_handler)


# ==========================================
# Middleware: Request Access Log
# ==========================================
_SKIP_PATHS = ("/health", "/favicon.ico")


@app.middleware("http")
async def access_log(request: Request, call_next):
    """Log every API request with status and elapsed time."""
    path = request.url.path
    if path.startswith(_SKIP_PATHS):
        return await call_next(request)

    start = _time.time()
    response = await call_next(request)
    elapsed_ms = int((_time.time() - start) * 1000)
    request_logger.info(f"{request.method} {path} -> {response.status_code} ({elapsed_ms}ms)")
    return response


# ==========================================
# Register Routers
# ==========================================
app.include_router(auth_router)
app.include_router(cart_router)
app.include_router(order_router)
app.include_router(order_admin_router)


# ==========================================
# Health check
# ==========================================
@app.get("/health")
async def health():
    return {"status": "ok", "version": "1.0.0"}
