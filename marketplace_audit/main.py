"""
Marketplace Audit - bol.com Seller Health
Main FastAPI application
"""
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from contextlib import asynccontextmanager

from marketplace_audit.config import get_settings
from marketplace_audit.utils.logger import log
from marketplace_audit import __version__

# Import routers
from marketplace_audit.api import health, sync, marketplace

settings = get_settings()


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Startup and shutdown events"""
    # Startup
    log.info(f"Starting {settings.app_name} v{__version__}")
    log.info(f"Environment: {settings.environment}")

    # Initialize database
    try:
        from marketplace_audit.models.base import init_db
        init_db()
        log.info("Database initialized")
    except Exception as e:
        log.error(f"Database initialization error: {str(e)}")

    # Start the scheduler for automated marketplace syncs
    from marketplace_audit.scheduler import start_scheduler, stop_scheduler
    if settings.enable_scheduler:
        try:
            start_scheduler()
        except Exception as e:
            log.error(f"Scheduler startup error: {str(e)}")

    yield

    # Shutdown
    stop_scheduler()
    log.info("Shutting down application")


# Create FastAPI app
app = FastAPI(
    title=settings.app_name,
    version=__version__,
    description="""
    bol.com marketplace seller health

    Syncs seller data from the bol.com Retailer and Advertising APIs and
    scores six categories:
    - Content (titles, prices, offer insights)
    - Inventory (stock levels, FBB vs FBR)
    - Orders (cancellations, fulfilment mix)
    - Advertising (ROAS, ACOS, budget caps)
    - Returns (volume, top reasons)
    - Performance (seller KPIs vs bol.com norms)

    Sync types:
    - main: export submit, inventory, orders, advertising, returns, performance
    - complete: polls pending offers exports and scores content
    - extended: competitors, search ranks, catalog + sales forecasts
    """,
    lifespan=lifespan
)

# CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],  # Configure appropriately for production
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Include routers
app.include_router(health.router, tags=["health"])
app.include_router(sync.router)
app.include_router(marketplace.router)


@app.get("/")
async def root():
    """Root endpoint with API information"""
    return {
        "app": settings.app_name,
        "version": __version__,
        "docs": "/docs",
        "health": "/health",
        "status": "/status",
        "endpoints": {
            "trigger_sync": "POST /sync/trigger",
            "scheduled_sync": "POST /sync/scheduled",
            "customers": "GET /marketplace/customers",
            "summary": "GET /marketplace/customers/{id}/summary",
            "analyses": "GET /marketplace/customers/{id}/analyses",
            "campaigns": "GET /marketplace/customers/{id}/campaigns",
            "rankings": "GET /marketplace/customers/{id}/rankings",
            "competitors": "GET /marketplace/customers/{id}/competitors",
            "sync_runs": "GET /marketplace/customers/{id}/sync-runs"
        }
    }


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(
        "marketplace_audit.main:app",
        host=settings.api_host,
        port=settings.api_port,
        reload=settings.debug
    )
