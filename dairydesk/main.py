from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.middleware.gzip import GZipMiddleware
import logging

# Import database components
from dairydesk.database.database import engine, Base

# Import middleware
from dairydesk.common.middleware import TenantMiddleware, SecurityHeadersMiddleware

# Import routers
from dairydesk.modules.products.router import product_router
from dairydesk.modules.parties.router import router as parties_router
from dairydesk.modules.pricing.router import router as pricing_router
from dairydesk.modules.taxes.router import taxes_router
from dairydesk.modules.billing.router import orders_router, invoices_router
from dairydesk.modules.receipts.router import router as receipts_router

# Import models for table creation
import dairydesk.modules.products.models
import dairydesk.modules.parties.models
import dairydesk.modules.pricing.models
import dairydesk.modules.billing.models
import dairydesk.modules.receipts.models

from dairydesk.core.config import settings

# Configure logging
logging.basicConfig(
    level=logging.INFO if settings.ENVIRONMENT == "production" else logging.DEBUG,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
)
logger = logging.getLogger(__name__)

app = FastAPI(
    title="DairyDesk API",
    description="Multi-tenant dairy distribution back office: pricing, billing and receipts ledger",
    version="1.0.0",
    docs_url="/docs" if settings.ENVIRONMENT != "production" else None,
    redoc_url="/redoc" if settings.ENVIRONMENT != "production" else None
)

# Add middleware (order matters!)
app.add_middleware(GZipMiddleware, minimum_size=1000)
app.add_middleware(SecurityHeadersMiddleware)
app.add_middleware(TenantMiddleware)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(product_router)
app.include_router(parties_router)
app.include_router(pricing_router)
app.include_router(taxes_router)
app.include_router(orders_router)
app.include_router(invoices_router)
app.include_router(receipts_router)

# Create database tables (only for development)
if settings.ENVIRONMENT == "development":
    Base.metadata.create_all(bind=engine)


@app.get("/")
async def read_root():
    return {
        "message": "DairyDesk API is running",
        "version": "1.0.0",
        "environment": settings.ENVIRONMENT
    }


@app.get("/health")
async def health_check():
    return {"status": "healthy", "environment": settings.ENVIRONMENT}


@app.on_event("startup")
async def startup_event():
    logger.info("DairyDesk API starting up...")
    logger.info(f"Environment: {settings.ENVIRONMENT}")
    logger.info(f"Allow overpayment: {settings.ALLOW_OVERPAYMENT}")
    logger.info(f"Enforce credit limit: {settings.ENFORCE_CREDIT_LIMIT}")


@app.on_event("shutdown")
async def shutdown_event():
    logger.info("DairyDesk API shutting down...")
