from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from contextlib import asynccontextmanager
from datetime import datetime
from slowapi.middleware import SlowAPIMiddleware
import time

from infinitiflow.core.config import settings
from infinitiflow.core.database import init_db, close_db
from infinitiflow.core.error_handlers import register_exception_handlers
from infinitiflow.core.logging_config import logger, setup_logging
from infinitiflow.core.middleware import (
    RequestLoggingMiddleware,
    SecurityHeadersMiddleware,
    RequestSizeLimitMiddleware,
)
from infinitiflow.core.rate_limiter import limiter
from infinitiflow.api.router import api_router
from infinitiflow.modules.auth.rate_limit import UserRateLimiter
from infinitiflow.services.email_service import EmailService


_started_at = time.monotonic()


def validate_critical_config():
    """Validate critical configuration at startup - fail fast if missing"""
    errors = []
    warnings = []

    if not settings.DATABASE_URL:
        errors.append("DATABASE_URL is not set")

    if not settings.JWT_SECRET:
        errors.append("JWT_SECRET is not set")

    if not settings.JWT_REFRESH_SECRET:
        errors.append("JWT_REFRESH_SECRET is not set")
    elif settings.JWT_REFRESH_SECRET == settings.JWT_SECRET:
        errors.append("JWT_REFRESH_SECRET must differ from JWT_SECRET")

    if not settings.SENDGRID_API_KEY and not settings.SMTP_USER:
        warnings.append("No email transport configured - verification and reset emails will fail")

    if errors:
        for err in errors:
            logger.critical(f"[Startup] CRITICAL: {err}")
        raise RuntimeError(f"Missing critical configuration: {', '.join(errors)}")

    for warn in warnings:
        logger.warning(f"[Startup] WARNING: {warn}")

    logger.info("[Startup] ✓ Critical configuration validated")
    return True


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan events"""
    logger.info(f"Starting {settings.APP_NAME} ({settings.ENVIRONMENT})")

    validate_critical_config()
    await init_db()
    logger.info("[Startup] ✓ Database tables ready")

    yield

    logger.info(f"Shutting down {settings.APP_NAME}...")
    await close_db()


def create_app() -> FastAPI:
    setup_logging()

    app = FastAPI(
        title=settings.APP_NAME,
        description="AI content generator backend: accounts, subscriptions and content",
        version=settings.APP_VERSION,
        docs_url="/docs",
        redoc_url="/redoc",
        openapi_url="/openapi.json",
        lifespan=lifespan,
        redirect_slashes=False
    )

    # Process-wide state
    app.state.limiter = limiter
    app.state.user_rate_limiter = UserRateLimiter(max_size=settings.USER_RATE_LIMIT_MAX_TRACKED_USERS)
    app.state.email_service = EmailService()

    register_exception_handlers(app)

    # Middleware (last added runs first)
    app.add_middleware(SlowAPIMiddleware)
    app.add_middleware(RequestLoggingMiddleware)
    app.add_middleware(SecurityHeadersMiddleware)
    app.add_middleware(RequestSizeLimitMiddleware, max_size=settings.MAX_REQUEST_SIZE)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.CORS_ORIGINS,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
        expose_headers=["X-Request-ID", "X-Response-Time"],
    )

    @app.get("/health", tags=["Health"])
    async def health_check():
        """Health check endpoint"""
        return {
            "status": "OK",
            "timestamp": datetime.utcnow().isoformat() + "Z",
            "uptime": round(time.monotonic() - _started_at, 3),
            "environment": settings.ENVIRONMENT,
        }

    app.include_router(api_router, prefix="/api")

    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(
        "infinitiflow.main:app",
        host=settings.SERVER_HOST,
        port=settings.SERVER_PORT,
        reload=settings.DEBUG
    )
