from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from contextlib import asynccontextmanager
import logging

from app.config import get_settings
from app.database import engine, Base
from app.api import alerts, health, inventory, offers, product_offers, products, sales
from app.api.errors import register_exception_handlers
from app.models import alert, inventory as inventory_models, offer, product, sale  # noqa: F401

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
)
logger = logging.getLogger(__name__)

settings = get_settings()


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Lifespan context manager for startup and shutdown events.
    """
    logger.info(f"Starting up {settings.APP_NAME} ({settings.ENVIRONMENT})...")

    logger.info("Creating database tables...")
    Base.metadata.create_all(bind=engine)
    logger.info("Database tables created successfully")

    yield

    logger.info("Shutting down application...")


# Create FastAPI application
app = FastAPI(
    title=settings.APP_NAME,
    description="""
    Point-of-sale back office API.

    - **Sales**: Atomic sale registration with stock decrement and audit trail
    - **Inventory**: Manual stock adjustments and inventory history
    - **Offers**: Percentage discount campaigns and product assignment
    - **Alerts**: Low-stock alerts on every stock change, expiry alerts on a schedule

    ## Stock consistency
    Every stock change locks the product row (`SELECT ... FOR UPDATE`), refuses to
    take stock below zero and appends an inventory history row in the same
    transaction. A failed sale leaves no trace: no sale, no lines, no stock change,
    no history and no alert.

    ## Errors
    Failures are returned as `{"success": false, "message": ...}` with status
    400 (validation), 404 (not found), 409 (conflict / insufficient stock) or 500.
    """,
    version="1.0.0",
    lifespan=lifespan
)

register_exception_handlers(app)

# Add CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Include API routers
app.include_router(health.router, prefix="/api/v1")
app.include_router(products.router, prefix="/api/v1")
app.include_router(sales.router, prefix="/api/v1")
app.include_router(inventory.router, prefix="/api/v1")
app.include_router(offers.router, prefix="/api/v1")
app.include_router(product_offers.router, prefix="/api/v1")
app.include_router(alerts.router, prefix="/api/v1")


@app.get("/", tags=["Root"])
def root():
    """Root endpoint with API information."""
    return {
        "name": settings.APP_NAME,
        "version": "1.0.0",
        "docs": "/docs",
        "redoc": "/redoc",
        "health": "/api/v1/health"
    }
