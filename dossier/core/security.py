import json
import logging
import secrets
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Optional
from jose import jws
from jose.exceptions import JWSError
from jose.utils import base64url_decode, base64url_encode
from passlib.context import CryptContext
from dossier.config import settings

logger = logging.getLogger(__name__)

# Credential hashing context.
# hex_sha256 is an unsalted, fast digest kept for compatibility with stored
# operator credentials; see DESIGN.md before changing the scheme list.
pwd_context = CryptContext(schemes=["hex_sha256"])

SHARE_TOKEN_BYTES = 16


def hash_secret(secret: str) -> str:
    """Return the hex SHA-256 digest of a secret."""
    return pwd_context.hash(secret)


def verify_secret(secret: str, digest: Optional[str]) -> bool:
    """Compare a secret against a stored digest in constant time."""
    if not secret or not digest:
        return False
    try:
        return pwd_context.verify(secret, digest)
    except (ValueError, TypeError):
        # Stored digest is not a recognizable hex_sha256 hash
        return False


def issue_token(claims: Dict[str, Any], secret: str) -> str:
    """
    Sign a claims map as a compact header.payload.signature token (HS256).

    The codec treats claims as opaque; expiry is enforced by the caller.
    """
    return jws.sign(claims, secret, algorithm=settings.ALGORITHM)


def verify_token(token: str, secret: str) -> Optional[Dict[str, Any]]:
    """
    Verify a compact signed token and return its claims.

    Fails closed: returns None for anything other than a well-formed,
    correctly signed token whose payload is a JSON object. Never raises.
    """
    if not token or not secret or not isinstance(token, str):
        return None

    segments = token.split(".")
    if len(segments) != 3 or not all(segments):
        return None

    try:
        payload = jws.verify(token, secret, algorithms=[settings.ALGORITHM])
        # Reject alternate encodings of the same signature bytes
        signature = segments[2].encode("ascii")
        if base64url_encode(base64url_decode(signature)) != signature:
            return None
        claims = json.loads(payload)
    except (JWSError, ValueError, TypeError, UnicodeError):
        logger.debug("Signed token rejected")
        return None

    if not isinstance(claims, dict):
        return None
    return claims


def create_access_token(
    operator_id: int,
    email: str,
    token_version: int,
    expires_delta: Optional[timedelta] = None
) -> str:
    """Issue an operator bearer token."""
    now = datetime.now(timezone.utc)
    claims: Dict[str, Any] = {
        "sub": str(operator_id),
        "email": email,
        "ver": token_version,
        "iat": int(now.timestamp()),
    }
    if expires_delta is None and settings.ACCESS_TOKEN_EXPIRE_MINUTES > 0:
        expires_delta = timedelta(minutes=settings.ACCESS_TOKEN_EXPIRE_MINUTES)
    if expires_delta is not None:
        claims["exp"] = int((now + expires_delta).timestamp())
    return issue_token(claims, settings.SECRET_KEY)


def decode_access_token(token: str) -> Optional[Dict[str, Any]]:
    """Verify an operator bearer token and enforce its exp claim if present."""
    claims = verify_token(token, settings.SECRET_KEY)
    if claims is None:
        return None

    exp = claims.get("exp")
    if exp is not None:
        if not isinstance(exp, (int, float)) or isinstance(exp, bool):
            return None
        if exp <= datetime.now(timezone.utc).timestamp():
            return None

    return claims


def generate_share_token() -> str:
    """Generate an unguessable share link handle (32 hex characters)."""
    return secrets.token_hex(SHARE_TOKEN_BYTES)
