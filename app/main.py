from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.middleware.gzip import GZipMiddleware
from contextlib import asynccontextmanager
import logging
from app.config import get_settings
from app.database import init_db
from app.core.exceptions import register_exception_handlers
from app.middleware.request_logger import RequestLoggerMiddleware

settings = get_settings()

logging.basicConfig(
    level=getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO),
    format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Lifespan context manager for startup and shutdown events"""
    # Startup
    await init_db()
    logger.info(f"Fuel price analytics API started ({settings.ENVIRONMENT})")
    yield
    # Shutdown
    logger.info("Fuel price analytics API stopped")


app = FastAPI(
    title="Fuel Price Analytics API",
    description="Nigerian fuel price (PMS, AGO, DPK, LPG) tracking and analysis by state and region",
    version="1.0.0",
    docs_url="/docs",
    redoc_url="/redoc",
    lifespan=lifespan,
)

register_exception_handlers(app)

if settings.ENVIRONMENT == "development":
    logger.info(f"CORS allowed origins: {settings.cors_origins}")

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["GET", "POST", "PUT", "DELETE", "OPTIONS"],
    allow_headers=["*"],
    expose_headers=["Content-Disposition"],
)

# Add Gzip compression
app.add_middleware(GZipMiddleware, minimum_size=1000)
app.add_middleware(RequestLoggerMiddleware)


@app.get("/")
async def root():
    """Root endpoint"""
    return {
        "message": "Fuel Price Analytics API",
        "version": "1.0.0",
        "docs": "/docs",
        "status": "operational"
    }


@app.get("/health")
async def health_check():
    """Health check endpoint"""
    return {
        "status": "healthy",
        "environment": settings.ENVIRONMENT
    }


# Import and include routers
from app.api.v1 import auth, fuel_prices, fuel_analysis

app.include_router(auth.router, prefix="/api/auth", tags=["Authentication"])
app.include_router(fuel_prices.router, prefix="/api/fuel", tags=["Fuel Prices"])
app.include_router(fuel_analysis.router, prefix="/api/fuel-analysis", tags=["Fuel Analysis"])
