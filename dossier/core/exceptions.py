from typing import Any, Dict, Optional
from fastapi import HTTPException, status


class ValidationFailedException(HTTPException):
    """Raised for malformed or missing input the schema layer cannot catch."""

    def __init__(self, detail: str = "Invalid request"):
        super().__init__(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=detail
        )


class AuthenticationException(HTTPException):
    """Raised when a bearer token is missing, malformed, forged, expired or revoked."""

    def __init__(self, detail: str = "Unauthorized"):
        super().__init__(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=detail,
            headers={"WWW-Authenticate": "Bearer"}
        )


class InvalidCredentialsException(HTTPException):
    """Raised when login fails. Unknown email and wrong password look the same."""

    def __init__(self, detail: str = "Invalid credentials"):
        super().__init__(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=detail
        )


class OperatorDisabledException(HTTPException):
    """Raised when a disabled operator tries to log in."""

    def __init__(self, detail: str = "Account disabled"):
        super().__init__(
            status_code=status.HTTP_403_FORBIDDEN,
            detail=detail
        )


class PermissionDeniedException(HTTPException):
    """Raised when an operator lacks a section, capability or ownership."""

    def __init__(self, detail: str = "Permission denied"):
        super().__init__(
            status_code=status.HTTP_403_FORBIDDEN,
            detail=detail
        )


class ResourceNotFoundException(HTTPException):
    """Raised when a profile, operator or share link does not exist for the caller."""

    def __init__(self, detail: str = "Not found"):
        super().__init__(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=detail
        )


class ConflictException(HTTPException):
    """Raised on a uniqueness conflict (e.g. duplicate operator email)."""

    def __init__(self, detail: str = "Conflict"):
        super().__init__(
            status_code=status.HTTP_409_CONFLICT,
            detail=detail
        )


class ShareLinkGoneException(HTTPException):
    """Raised when a share link is revoked or its window has elapsed."""

    def __init__(self, detail: str = "Link expired"):
        super().__init__(
            status_code=status.HTTP_410_GONE,
            detail=detail
        )


class LocationRequiredException(HTTPException):
    """
    Raised when a location-gated share link is opened without coordinates.

    Carries the teaser (name and avatar only) the viewer may see before
    granting location.
    """

    def __init__(self, partial: Optional[Dict[str, Any]] = None, detail: str = "Location required"):
        super().__init__(
            status_code=status.HTTP_428_PRECONDITION_REQUIRED,
            detail=detail
        )
        self.partial = partial or {}


class ServiceMisconfiguredException(HTTPException):
    """Raised when the signing secret is not configured."""

    def __init__(self, detail: str = "Service misconfigured"):
        super().__init__(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=detail
        )
