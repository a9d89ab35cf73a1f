"""
GBV Case Tracker Backend API
FastAPI REST server
"""
from dotenv import load_dotenv
load_dotenv()  # Load .env file before any other imports

from fastapi import FastAPI, Depends, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from datetime import datetime
import logging
import os

from database import init_db, close_db, get_db
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy import text
from api import auth, users, cases, tasks, analytics, audit
from middleware.rate_limit import RateLimitMiddleware
from security.headers import SecurityHeadersMiddleware, SecurityHeadersConfig
from services.errors import GBVError, Unauthenticated

logging.basicConfig(
    level=os.getenv("LOG_LEVEL", "INFO").upper(),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)

FRONTEND_URL = os.getenv("FRONTEND_URL", "http://localhost:5173")
ENVIRONMENT = os.getenv("ENVIRONMENT", "development")

app = FastAPI(
    title="GBV Case Tracker API",
    description="Case and task tracking for gender-based violence support services",
    version="1.0.0",
    docs_url="/api/docs",
    redoc_url="/api/redoc",
    openapi_url="/api/openapi.json"
)

# CORS Middleware - must be first
app.add_middleware(
    CORSMiddleware,
    allow_origins=[origin.strip() for origin in FRONTEND_URL.split(",") if origin.strip()],
    allow_credentials=True,
    allow_methods=["GET", "POST", "PATCH", "DELETE", "OPTIONS"],
    allow_headers=["Authorization", "Content-Type", "Accept", "Accept-Language"],
)

# Security Middlewares
app.add_middleware(RateLimitMiddleware)
app.add_middleware(SecurityHeadersMiddleware, config=SecurityHeadersConfig(environment=ENVIRONMENT))


# Exception handlers
@app.exception_handler(GBVError)
async def gbv_error_handler(request: Request, exc: GBVError):
    headers = {"WWW-Authenticate": "Bearer"} if isinstance(exc, Unauthenticated) else None
    if exc.status_code >= 500:
        logger.error(f"{request.method} {request.url.path} failed: {exc.message}")
    return JSONResponse(status_code=exc.status_code, content=exc.to_payload(), headers=headers)


@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError):
    details = []
    for error in exc.errors():
        location = ".".join(str(part) for part in error.get("loc", ()) if part not in ("body", "query", "path"))
        details.append(f"{location}: {error.get('msg')}" if location else error.get("msg"))
    return JSONResponse(status_code=422, content={"error": "Invalid data", "details": details})


@app.exception_handler(SQLAlchemyError)
async def database_error_handler(request: Request, exc: SQLAlchemyError):
    logger.error(f"Database error on {request.method} {request.url.path}: {exc}")
    return JSONResponse(status_code=500, content={"error": "Internal server error"})


# Startup/Shutdown Events
@app.on_event("startup")
async def startup():
    """Initialize database connection on startup"""
    await init_db()
    logger.info("Database connection pool initialized")


@app.on_event("shutdown")
async def shutdown():
    """Close database connections on shutdown"""
    await close_db()
    logger.info("Database connections closed")


# Include API routers
app.include_router(auth.router, prefix="/api")
app.include_router(users.router, prefix="/api")
app.include_router(cases.router, prefix="/api")
app.include_router(tasks.router, prefix="/api")
app.include_router(analytics.router, prefix="/api")
app.include_router(audit.router, prefix="/api")


# Root endpoints
@app.get("/")
async def root():
    """API root endpoint"""
    return {
        "service": "GBV Case Tracker API",
        "version": "1.0.0",
        "documentation": "/api/docs",
        "status": "operational"
    }


@app.get("/health")
async def health_check(db: AsyncSession = Depends(get_db)):
    """
    Public health check endpoint for external monitoring.
    Returns minimal information to avoid information disclosure.
    """
    try:
        await db.execute(text("SELECT 1"))
        db_status = "ok"
    except SQLAlchemyError as e:
        logger.error(f"Health check database error: {e}")
        db_status = "error"

    return {
        "status": "healthy" if db_status == "ok" else "degraded",
        "service": "backend-api",
        "timestamp": datetime.utcnow().isoformat()
    }
