from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.middleware.trustedhost import TrustedHostMiddleware
from fastapi.responses import JSONResponse, RedirectResponse
from starlette.exceptions import HTTPException as StarletteHTTPException
from contextlib import asynccontextmanager
import logging
import time

from app.core.config import settings, is_production
from app.core.db import create_tables, check_database_connection, health_check
from app.core.redis_client import get_redis_client, close_redis_client
from app.core.security import extract_client_ip
from app.utils.exceptions import CustomException, PageRedirect
from app.utils.logger import setup_logging, request_logger
from app.utils.response_helper import error_response, exception_response

# Setup logging
setup_logging()
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Application lifespan manager.
    Handles startup and shutdown events.
    """
    # Startup
    logger.info(f"Starting {settings.app_name}...")

    try:
        if not check_database_connection():
            logger.error("Failed to connect to database")
            raise RuntimeError("Database connection failed")

        create_tables()
        logger.info("Database tables created/verified")

        redis_client = await get_redis_client()
        if redis_client:
            logger.info("Redis connection successful")
        else:
            logger.warning("Redis unavailable - rate limiting disabled")

        logger.info("Application startup completed successfully")

    except Exception as e:
        logger.error(f"Application startup failed: {e}")
        raise

    yield

    # Shutdown
    logger.info(f"Shutting down {settings.app_name}...")
    await close_redis_client()


# Create FastAPI application
app = FastAPI(
    title=settings.app_name,
    version=settings.app_version,
    description="Polls with authenticated and anonymous voting, plus an admin dashboard",
    docs_url="/docs" if settings.debug else None,
    redoc_url="/redoc" if settings.debug else None,
    lifespan=lifespan
)

# Add CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.allowed_origins,
    allow_credentials=True,
    allow_methods=["GET", "POST", "PUT", "DELETE", "OPTIONS"],
    allow_headers=["*"],
)

# Add trusted host middleware for production
if is_production():
    app.add_middleware(
        TrustedHostMiddleware,
        allowed_hosts=[host.split("://", 1)[-1].split(":")[0] for host in settings.allowed_origins]
    )


# Request timing middleware
@app.middleware("http")
async def add_process_time_header(request: Request, call_next):
    """Add processing time to response headers and log the request."""
    start_time = time.time()
    response = await call_next(request)
    process_time = time.time() - start_time
    response.headers["X-Process-Time"] = str(process_time)
    request_logger.log_request(
        request.method,
        request.url.path,
        response.status_code,
        process_time,
        extract_client_ip(request)
    )
    return response


# Global exception handlers
@app.exception_handler(CustomException)
async def custom_exception_handler(request: Request, exc: CustomException):
    """Handle custom exceptions."""
    return exception_response(exc)


@app.exception_handler(PageRedirect)
async def page_redirect_handler(request: Request, exc: PageRedirect):
    return RedirectResponse(exc.location, status_code=303)


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    """Report request body and query errors as 400 with the first problem as the message."""
    errors = exc.errors()
    first = errors[0] if errors else {}
    message = str(first.get("msg", "Invalid request")).removeprefix("Value error, ")
    field = ".".join(str(part) for part in first.get("loc", ()) if part != "body")
    return error_response(
        message=message,
        status_code=400,
        error="validation_error",
        details={"field": field or None}
    )


@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(request: Request, exc: StarletteHTTPException):
    """Handle HTTP exceptions."""
    return error_response(
        message=str(exc.detail),
        status_code=exc.status_code,
        error="http_error"
    )


@app.exception_handler(Exception)
async def general_exception_handler(request: Request, exc: Exception):
    """Handle general exceptions."""
    logger.error(f"Unhandled exception: {exc}", exc_info=True)
    return error_response(
        message="An internal server error occurred",
        status_code=500,
        error="internal_error",
        details={"exception": str(exc)} if settings.debug else None
    )


# Health check endpoint
@app.get("/health", tags=["Health"])
async def health_check_endpoint():
    """
    Health check endpoint for monitoring.
    """
    try:
        db_health = health_check()
        redis_health = {"status": "disabled"}

        if settings.redis_enabled:
            redis_client = await get_redis_client()
            if redis_client:
                try:
                    await redis_client.ping()
                    redis_health = {"status": "healthy"}
                except Exception as e:
                    redis_health = {"status": "unhealthy", "error": str(e)}
            else:
                redis_health = {"status": "unavailable"}

        overall_status = "healthy" if db_health["status"] == "healthy" else "unhealthy"

        return JSONResponse(
            status_code=200 if overall_status == "healthy" else 503,
            content={
                "status": overall_status,
                "timestamp": time.time(),
                "version": settings.app_version,
                "environment": settings.environment,
                "services": {
                    "database": db_health,
                    "redis": redis_health
                }
            }
        )
    except Exception as e:
        logger.error(f"Health check failed: {e}")
        return JSONResponse(
            status_code=503,
            content={
                "status": "unhealthy",
                "error": str(e),
                "timestamp": time.time()
            }
        )


# Include API routes
from app.routes import auth_routes, poll_routes, vote_routes, admin_routes, settings_routes, page_routes

app.include_router(auth_routes.router, prefix="/api/auth", tags=["Auth"])
app.include_router(poll_routes.router, prefix="/api/polls", tags=["Polls"])
app.include_router(vote_routes.router, prefix="/api/polls", tags=["Votes"])
app.include_router(admin_routes.router, prefix="/api/admin", tags=["Admin"])
app.include_router(settings_routes.router, prefix="/api/settings", tags=["Settings"])
app.include_router(page_routes.router)


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "app.main:app",
        host="0.0.0.0",
        port=8000,
        reload=settings.debug,
        log_level="info" if settings.debug else "warning"
    )
