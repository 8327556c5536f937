"""
Saakie - Application Entry Point
==================================
FastAPI app initialization, error handling, background jobs, and router registration.
"""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from apscheduler.schedulers.background import BackgroundScheduler

from config import settings
from config.database import SessionLocal, Base, engine
from common.exceptions import StoreError

logging.basicConfig(
    level=getattr(logging, settings.LOG_LEVEL, logging.INFO),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger("saakie.app")
scheduler_logger = logging.getLogger("saakie.scheduler")


# ==========================================
# Import ALL models so Alembic/Base can see them
# ==========================================
from modules.user.models import User  # noqa: F401
from modules.customer.address_models import Address  # noqa: F401
from modules.catalog.models import Category, Product, ProductImage, Review  # noqa: F401
from modules.cart.models import Cart, CartItem  # noqa: F401
from modules.wishlist.models import Wishlist, WishlistItem  # noqa: F401
from modules.order.models import Order, OrderItem, OrderStatusLog  # noqa: F401
from modules.webhook_log.models import WebhookLog  # noqa: F401

# ==========================================
# Import routers
# ==========================================
from modules.auth.routes import router as auth_router
from modules.catalog.routes import router as catalog_router
from modules.catalog.admin_routes import router as catalog_admin_router
from modules.cart.routes import router as cart_router
from modules.wishlist.routes import router as wishlist_router
from modules.customer.routes import router as address_router
from modules.order.routes import router as order_router
from modules.order.admin_routes import router as order_admin_router
from modules.payment.routes import router as payment_router
from modules.payment.webhook_routes import router as payment_webhook_router
from modules.admin.routes import router as admin_router
from modules.webhook_log.routes import router as webhook_log_router
from modules.chat.routes import router as chat_router


# ==========================================
# Background Scheduler
# ==========================================
def _cleanup_expired_orders():
    """Background job: cancel unpaid prepaid orders past the payment window."""
    db = SessionLocal()
    try:
        from modules.order.service import order_service
        count = order_service.release_expired_orders(db, settings.ORDER_PAYMENT_TIMEOUT_MINUTES)
        if count:
            db.commit()
            scheduler_logger.info(f"Released {count} expired orders")
    except Exception as e:
        db.rollback()
        scheduler_logger.error(f"Cleanup error: {e}")
    finally:
        db.close()


def _prune_cart_items():
    """Background job: drop unavailable cart lines and clamp to stock."""
    db = SessionLocal()
    try:
        from modules.cart.service import cart_service
        removed, clamped = cart_service.prune_unavailable_items(db)
        if removed or clamped:
            db.commit()
            scheduler_logger.info(f"Cart prune: {removed} removed, {clamped} clamped")
    except Exception as e:
        db.rollback()
        scheduler_logger.error(f"Cart prune error: {e}")
    finally:
        db.close()


def _cleanup_old_webhook_logs():
    """Background job: delete webhook logs past the retention window."""
    db = SessionLocal()
    try:
        from modules.webhook_log.service import prune_webhook_logs
        deleted = prune_webhook_logs(db, settings.WEBHOOK_LOG_RETENTION_DAYS)
        if deleted:
            db.commit()
            scheduler_logger.info(f"Deleted {deleted} old webhook logs (>{settings.WEBHOOK_LOG_RETENTION_DAYS} days)")
    except Exception as e:
        db.rollback()
        scheduler_logger.error(f"Webhook log cleanup error: {e}")
    finally:
        db.close()


scheduler = BackgroundScheduler()


@asynccontextmanager
async def lifespan(app):
    # Auto-create any missing tables (safe for existing tables)
    Base.metadata.create_all(bind=engine)

    if settings.SCHEDULER_ENABLED:
        scheduler.add_job(_cleanup_expired_orders, 'interval', seconds=60, id='expired_orders')
        scheduler.add_job(_prune_cart_items, 'interval', hours=1, id='cart_prune')
        scheduler.add_job(_cleanup_old_webhook_logs, 'interval', hours=6, id='webhook_log_cleanup')
        scheduler.start()
        scheduler_logger.info("Background scheduler started (orders: 60s, carts: 1h, webhook logs: 6h)")
    yield
    if scheduler.running:
        scheduler.shutdown()
        scheduler_logger.info("Background scheduler stopped")


# ==========================================
# Create App
# ==========================================
app = FastAPI(
    title="Saakie",
    description="Saree & fashion storefront API",
    version="1.0.0",
    docs_url="/docs" if settings.DEBUG else None,
    redoc_url=None,
    lifespan=lifespan,
)


# ==========================================
# Exception handlers
# ==========================================
@app.exception_handler(StoreError)
async def store_error_handler(request: Request, exc: StoreError):
    if exc.status_code >= 500:
        logger.error(f"{request.method} {request.url.path} -> {exc.status_code}: {exc.message}")
    return JSONResponse(exc.to_dict(), status_code=exc.status_code)


@app.exception_handler(RequestValidationError)
async def request_validation_handler(request: Request, exc: RequestValidationError):
    return JSONResponse({"error": "Invalid request body"}, status_code=400)


@app.exception_handler(Exception)
async def unhandled_error_handler(request: Request, exc: Exception):
    logger.exception(f"Unhandled error on {request.method} {request.url.path}")
    return JSONResponse({"error": "Internal server error"}, status_code=500)


# ==========================================
# Register Routers
# ==========================================
app.include_router(auth_router)
app.include_router(catalog_router)
app.include_router(catalog_admin_router)
app.include_router(cart_router)
app.include_router(wishlist_router)
app.include_router(address_router)
app.include_router(order_router)
app.include_router(order_admin_router)
app.include_router(payment_router)
app.include_router(payment_webhook_router)
app.include_router(admin_router)
app.include_router(webhook_log_router)
app.include_router(chat_router)


# ==========================================
# Health check
# ==========================================
@app.get("/health")
async def health():
    return {"status": "ok", "version": "1.0.0"}
