import logging
from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from slowapi import Limiter
from slowapi.errors import RateLimitExceeded
from slowapi.util import get_remote_address
from app.core.config import settings

logger = logging.getLogger(__name__)

# Limits are per client IP. Redis-backed outside tests so every worker
# shares one counter.
IS_TESTING = settings.environment == "testing"

limiter = Limiter(
    key_func=get_remote_address,
    storage_uri="memory://" if IS_TESTING else settings.redis_url,
    strategy="fixed-window",
    enabled=not IS_TESTING,
)

# Writes that move stock
MANUAL_ORDER_LIMIT = settings.manual_order_rate_limit
STOCK_ADJUST_LIMIT = settings.stock_adjust_rate_limit


def init_limiter(app: FastAPI) -> None:
    """Attach the limiter and answer 429s in the same JSON shape as other errors."""
    app.state.limiter = limiter

    @app.exception_handler(RateLimitExceeded)
    async def rate_limited(request: Request, exc: RateLimitExceeded):
        ip = request.client.host if request.client else "unknown"
        logger.warning(f"Rate limit {exc.detail} hit on {request.url.path} by {ip}")
        return JSONResponse(
            status_code=429,
            content={"detail": f"Too many requests ({exc.detail}). Slow down."},
            headers={"Retry-After": "60"},
        )
