"""
Inbound rate limiting for the enchantment API.

SlowAPI, in-memory, keyed on the caller's IP. Lookup routes use
RATE_LIMIT_SCRAPING because a cold id turns into a WotLKDB request; the
outbound side has its own throttle in the dispatch scheduler.
"""
import logging

from slowapi import Limiter
from slowapi.errors import RateLimitExceeded
from slowapi.util import get_remote_address
from starlette.requests import Request
from starlette.responses import JSONResponse

from armory.core.config import settings

logger = logging.getLogger(__name__)

RETRY_AFTER_SECONDS = 60


def client_key(request: Request) -> str:
    """Left-most X-Forwarded-For hop when behind the CMS proxy, else the socket peer."""
    forwarded = request.headers.get("X-Forwarded-For", "")
    first_hop = forwarded.split(",")[0].strip()
    return first_hop or get_remote_address(request)


limiter = Limiter(
    key_func=client_key,
    enabled=settings.RATE_LIMIT_ENABLED,
    default_limits=[settings.RATE_LIMIT_DEFAULT],
)


def rate_limit_exceeded_handler(request: Request, exc: RateLimitExceeded) -> JSONResponse:
    logger.warning(f"[RATE_LIMIT] {client_key(request)} exceeded {exc.detail} on {request.url.path}")
    return JSONResponse(
        status_code=429,
        content={
            "success": False,
            "error": "rate_limit_exceeded",
            "limit": exc.detail,
            "message": "Too many enchantment lookups. Cached results stay available; retry shortly.",
        },
        headers={"Retry-After": str(RETRY_AFTER_SECONDS)},
    )
