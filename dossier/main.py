import logging
from fastapi import FastAPI, Request, status
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from dossier.api.v1.router import api_router
from dossier.config import settings
from dossier.database import init_db, close_db
from dossier.core.exceptions import (
    ValidationFailedException,
    AuthenticationException,
    InvalidCredentialsException,
    OperatorDisabledException,
    PermissionDeniedException,
    ResourceNotFoundException,
    ConflictException,
    ShareLinkGoneException,
    LocationRequiredException,
    ServiceMisconfiguredException,
)
from dossier.core.logging_config import setup_logging, cleanup_old_logs
from dossier.core.logging_utils import sanitize_log_message, get_request_id
from dossier.middleware.logging_middleware import LoggingMiddleware
from dossier.middleware.rate_limit import setup_rate_limiting
from dossier.middleware.security import setup_security_middleware

logger = logging.getLogger(__name__)

app = FastAPI(
    title=settings.PROJECT_NAME,
    version=settings.VERSION,
    openapi_url=f"{settings.API_V1_STR}/openapi.json",
    docs_url=f"{settings.API_V1_STR}/docs",
    redoc_url=f"{settings.API_V1_STR}/redoc",
)


@app.on_event("startup")
async def startup_event():
    """Configure logging, prune old log files and create the schema."""
    setup_logging()
    cleanup_old_logs()
    await init_db()
    if not settings.SECRET_KEY:
        logger.warning("SECRET_KEY is not set; operator login is disabled")
    logger.info("Application startup complete")


@app.on_event("shutdown")
async def shutdown_event():
    await close_db()


app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.BACKEND_CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["GET", "POST", "DELETE", "OPTIONS", "PATCH"],
    allow_headers=["Authorization", "Content-Type", "X-Request-ID", "Accept", "Origin"],
)

# Security middleware (request size limit + security headers)
setup_security_middleware(app, max_request_size=settings.MAX_REQUEST_SIZE)

# Logging middleware (after CORS, before routes)
if settings.LOG_ENABLE_REQUEST_LOGGING:
    app.add_middleware(LoggingMiddleware)

setup_rate_limiting(app)

app.include_router(api_router, prefix=settings.API_V1_STR)


def _log_context(request: Request) -> dict:
    return {
        "Path": request.url.path,
        "Method": request.method,
        "IP": request.client.host if request.client else None,
        "RequestID": get_request_id(request),
    }


def _detail_response(exc) -> JSONResponse:
    return JSONResponse(
        status_code=exc.status_code,
        content={"detail": exc.detail},
        headers=getattr(exc, "headers", None)
    )


@app.exception_handler(RequestValidationError)
async def request_validation_handler(request: Request, exc: RequestValidationError):
    logger.info(sanitize_log_message("Request validation failed", Errors=len(exc.errors()), **_log_context(request)))
    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content={"detail": jsonable_encoder(exc.errors())}
    )


@app.exception_handler(ValidationFailedException)
async def validation_failed_handler(request: Request, exc: ValidationFailedException):
    logger.info(sanitize_log_message("Invalid request", Detail=exc.detail, **_log_context(request)))
    return _detail_response(exc)


@app.exception_handler(AuthenticationException)
async def authentication_handler(request: Request, exc: AuthenticationException):
    # No diagnostic detail: token failures are indistinguishable to the caller
    logger.info(sanitize_log_message("Unauthenticated request", **_log_context(request)))
    return _detail_response(exc)


@app.exception_handler(InvalidCredentialsException)
async def invalid_credentials_handler(request: Request, exc: InvalidCredentialsException):
    logger.warning(sanitize_log_message("Login failed", **_log_context(request)))
    return _detail_response(exc)


@app.exception_handler(OperatorDisabledException)
async def operator_disabled_handler(request: Request, exc: OperatorDisabledException):
    logger.warning(sanitize_log_message("Disabled operator login attempt", **_log_context(request)))
    return _detail_response(exc)


@app.exception_handler(PermissionDeniedException)
async def permission_denied_handler(request: Request, exc: PermissionDeniedException):
    logger.warning(sanitize_log_message("Permission denied", Detail=exc.detail, **_log_context(request)))
    return _detail_response(exc)


@app.exception_handler(ResourceNotFoundException)
async def not_found_handler(request: Request, exc: ResourceNotFoundException):
    logger.info(sanitize_log_message("Not found", Detail=exc.detail, **_log_context(request)))
    return _detail_response(exc)


@app.exception_handler(ConflictException)
async def conflict_handler(request: Request, exc: ConflictException):
    logger.info(sanitize_log_message("Conflict", Detail=exc.detail, **_log_context(request)))
    return _detail_response(exc)


@app.exception_handler(ShareLinkGoneException)
async def share_link_gone_handler(request: Request, exc: ShareLinkGoneException):
    logger.info(sanitize_log_message("Share link gone", Detail=exc.detail, **_log_context(request)))
    return _detail_response(exc)


@app.exception_handler(LocationRequiredException)
async def location_required_handler(request: Request, exc: LocationRequiredException):
    logger.info(sanitize_log_message("Share link requires location", **_log_context(request)))
    return JSONResponse(
        status_code=exc.status_code,
        content={"error": "LOCATION_REQUIRED", "detail": exc.detail, "partial": exc.partial}
    )


@app.exception_handler(ServiceMisconfiguredException)
async def service_misconfigured_handler(request: Request, exc: ServiceMisconfiguredException):
    logger.error(sanitize_log_message("Service misconfigured: SECRET_KEY is not set", **_log_context(request)))
    return _detail_response(exc)


# Generic exception handler for unhandled exceptions
@app.exception_handler(Exception)
async def general_exception_handler(request: Request, exc: Exception):
    logger.exception(
        sanitize_log_message(
            f"Unhandled exception: {type(exc).__name__}",
            ExceptionMessage=str(exc),
            **_log_context(request)
        )
    )
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={
            "detail": "Internal server error" if settings.ENVIRONMENT == "production" else str(exc)
        }
    )


@app.get("/health")
async def health_check():
    """Health check endpoint."""
    return {"status": "healthy", "version": settings.VERSION}


@app.get("/")
async def root():
    """Root endpoint."""
    return {
        "message": settings.PROJECT_NAME,
        "version": settings.VERSION,
        "docs": f"{settings.API_V1_STR}/docs"
    }
