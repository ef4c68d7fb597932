"""
Rate limiting using slowapi.

Login and share link resolution are the two unauthenticated entry points.
Login is limited per client. Share links are limited per client, which slows
token guessing, and per link, which caps a leaked URL passed around from many
addresses. Decorated endpoints must accept a ``request: Request`` parameter.
"""
import hashlib
import logging
from slowapi import Limiter, _rate_limit_exceeded_handler
from slowapi.util import get_remote_address
from slowapi.errors import RateLimitExceeded
from slowapi.middleware import SlowAPIMiddleware
from fastapi import FastAPI, Request
from dossier.config import settings
from dossier.core.logging_utils import get_request_id, mask_share_path, sanitize_log_message

logger = logging.getLogger(__name__)


def get_client_ip(request: Request) -> str:
    """Client IP, honouring the first hop of X-Forwarded-For behind a proxy."""
    forwarded = request.headers.get("X-Forwarded-For")
    if forwarded:
        return forwarded.split(",")[0].strip()
    return get_remote_address(request)


def share_link_key(request: Request) -> str:
    """
    Bucket key for one share link.

    The storage backend only ever sees a digest of the token, never the
    capability itself.
    """
    token = request.path_params.get("token", "")
    return "share:" + hashlib.sha256(token.encode("utf-8")).hexdigest()[:16]


limiter = Limiter(
    key_func=get_client_ip,
    default_limits=[settings.RATE_LIMIT_DEFAULT],
    storage_uri=settings.RATE_LIMIT_STORAGE_URI,
    enabled=settings.RATE_LIMIT_ENABLED
)


def rate_limit_exceeded_handler(request: Request, exc: RateLimitExceeded):
    """Log the throttled request with share tokens masked, then answer 429 with Retry-After."""
    logger.warning(
        sanitize_log_message(
            f"Rate limit exceeded: {request.method} {mask_share_path(request.url.path)}",
            Limit=str(exc.detail),
            IP=get_client_ip(request),
            RequestID=get_request_id(request)
        )
    )
    return _rate_limit_exceeded_handler(request, exc)


def setup_rate_limiting(app: FastAPI) -> None:
    if not settings.RATE_LIMIT_ENABLED:
        logger.info("Rate limiting is disabled")
        return

    app.state.limiter = limiter
    app.add_exception_handler(RateLimitExceeded, rate_limit_exceeded_handler)
    app.add_middleware(SlowAPIMiddleware)

    logger.info(
        f"Rate limiting enabled: default={settings.RATE_LIMIT_DEFAULT}, login={settings.RATE_LIMIT_AUTH}, "
        f"share_client={settings.RATE_LIMIT_SHARE_ACCESS}, share_link={settings.RATE_LIMIT_SHARE_LINK}"
    )


def rate_limit_auth():
    return limiter.limit(settings.RATE_LIMIT_AUTH)


def rate_limit_share_access():
    """Per-client and per-link limits for the viewer endpoint."""
    per_client = limiter.limit(settings.RATE_LIMIT_SHARE_ACCESS)
    per_link = limiter.limit(settings.RATE_LIMIT_SHARE_LINK, key_func=share_link_key)

    def decorator(func):
        return per_client(per_link(func))

    return decorator
