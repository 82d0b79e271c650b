import logging
import uuid

from fastapi import Depends, FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.middleware.trustedhost import TrustedHostMiddleware
from fastapi.responses import JSONResponse
from redis.asyncio import Redis
from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.v1.router import router as v1_router
from app.core.config import settings
from app.core.deps import get_redis
from app.core.exceptions import (
    ConflictError,
    InvalidTransitionError,
    NotFoundError,
    StorageUnavailableError,
    ValidationError,
    WindowExpiredError,
)
from app.core.limiter import init_limiter
from app.core.logging import request_id_var, setup_logging
from app.db.sessions import get_async_session

# LOGGING
setup_logging(settings.log_level)
logger = logging.getLogger(__name__)

# APP INITIALIZATION
allowed_hosts = settings.allowed_hosts.split(",")

app = FastAPI(
    title=settings.app_name,
    version="1.0.0",
)


@app.exception_handler(ValidationError)
@app.exception_handler(InvalidTransitionError)
@app.exception_handler(WindowExpiredError)
async def bad_request_handler(request: Request, exc: Exception):
    return JSONResponse(
        status_code=400,
        content={"detail": str(exc)},
    )


@app.exception_handler(NotFoundError)
async def not_found_handler(request: Request, exc: NotFoundError):
    return JSONResponse(
        status_code=404,
        content={"detail": str(exc)},
    )


@app.exception_handler(ConflictError)
async def conflict_handler(request: Request, exc: ConflictError):
    logger.warning(f"Conflict: {str(exc)} | RequestID: {request_id_var.get()}")
    return JSONResponse(
        status_code=409,
        content={"detail": str(exc)},
    )


@app.exception_handler(StorageUnavailableError)
async def storage_unavailable_handler(request: Request, exc: StorageUnavailableError):
    logger.error(f"Storage unavailable: {str(exc)} | RequestID: {request_id_var.get()}")
    return JSONResponse(
        status_code=503,
        content={"detail": "Storage temporarily unavailable. Please retry."},
        headers={"Retry-After": "1"},
    )


# ROUTERS
app.include_router(v1_router, prefix="/api/v1")


@app.exception_handler(Exception)
async def universal_exception_handler(request: Request, exc: Exception):
    # Log the real error for the developer
    logger.error(f"Unhandled error: {str(exc)}", exc_info=True)

    # Send a polite message to the user
    return JSONResponse(
        status_code=500, content={"detail": "An unexpected error occurred."}
    )


# RATE LIMITING
init_limiter(app)


# SECURITY MIDDLEWARES
app.add_middleware(
    TrustedHostMiddleware,
    allowed_hosts=allowed_hosts,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=[
        "http://localhost:5173",
        "http://localhost:3000",
    ],
    allow_credentials=True,
    allow_methods=["GET", "POST", "PATCH", "DELETE"],
    allow_headers=["Content-Type", "Authorization"],
)


# REQUEST TRACING & SECURITY HEADERS
@app.middleware("http")
async def security_and_tracing_middleware(request: Request, call_next):
    request_id = str(uuid.uuid4())
    request.state.request_id = request_id
    token = request_id_var.set(request_id)

    try:
        response = await call_next(request)

        response.headers["X-Request-Id"] = request_id
        response.headers["X-Content-Type-Options"] = "nosniff"
        response.headers["X-Frame-Options"] = "DENY"

        if settings.environment == "production":
            response.headers["Strict-Transport-Security"] = (
                "max-age=63072000; includeSubDomains"
            )

        return response

    except Exception as e:
        # Ensure we still reset the context var even if the app crashes
        logger.error(f"Middleware caught crash: {e}", exc_info=True)
        return JSONResponse(
            status_code=500, content={"detail": "Internal Server Error"}
        )

    finally:
        request_id_var.reset(token)


# HEALTH CHECKS
@app.get("/health")
async def health_check(
    db: AsyncSession = Depends(get_async_session),
    redis: Redis = Depends(get_redis),
):
    health_status = {"status": "healthy", "dependencies": {}}

    # 1. Check the database
    try:
        await db.execute(text("SELECT 1"))
        health_status["dependencies"]["database"] = "ok"
    except Exception as e:
        health_status["status"] = "unhealthy"
        health_status["dependencies"]["database"] = str(e)

    # 2. Check Redis (event stream)
    try:
        await redis.ping()
        health_status["dependencies"]["redis"] = "ok"
    except Exception as e:
        health_status["status"] = "unhealthy"
        health_status["dependencies"]["redis"] = str(e)

    return health_status
