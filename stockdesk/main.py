from fastapi import FastAPI, Request, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.middleware.gzip import GZipMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy.exc import SQLAlchemyError
import logging

from stockdesk.database.database import DatabaseConfigurationError, db_manager

# Import routers
from stockdesk.modules.customers.router import router as customers_router
from stockdesk.modules.files.router import router as files_router
from stockdesk.modules.products.router import router as products_router
from stockdesk.modules.suppliers.router import router as suppliers_router
from stockdesk.modules.system.router import router as system_router

from stockdesk.core.config import settings

# Configure logging
logging.basicConfig(
    level=logging.INFO if settings.ENVIRONMENT == "production" else logging.DEBUG,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
)
logger = logging.getLogger(__name__)

# FastAPI app
app = FastAPI(
    title="Stockdesk API",
    description="Read-only inventory and customer reporting over PostgreSQL",
    version="1.0.0",
    docs_url="/docs" if settings.ENVIRONMENT != "production" else None,
    redoc_url="/redoc" if settings.ENVIRONMENT != "production" else None
)

app.add_middleware(GZipMiddleware, minimum_size=1000)

# The desktop renderer calls from its own origin
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Include routers
app.include_router(system_router)
app.include_router(customers_router)
app.include_router(products_router)
app.include_router(suppliers_router)
app.include_router(files_router)


@app.exception_handler(DatabaseConfigurationError)
async def database_configuration_error_handler(request: Request, exc: DatabaseConfigurationError):
    return JSONResponse(
        status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
        content={"detail": str(exc)},
    )


@app.exception_handler(SQLAlchemyError)
async def database_error_handler(request: Request, exc: SQLAlchemyError):
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={"detail": f"Database error: {exc}"},
    )


@app.get("/health")
async def health_check():
    return {
        "status": "healthy",
        "environment": settings.ENVIRONMENT,
        "database": "initialized" if db_manager.is_initialized else "idle",
    }


@app.on_event("startup")
async def startup_event():
    logger.info("Stockdesk API starting up...")
    logger.info(f"Environment: {settings.ENVIRONMENT}")
    logger.info(f"Debug mode: {settings.DEBUG}")
    if not settings.async_database_url:
        logger.warning("No database connection string configured; data endpoints will return 503")


@app.on_event("shutdown")
async def shutdown_event():
    logger.info("Stockdesk API shutting down...")
    await db_manager.close()
