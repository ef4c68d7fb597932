import re
from typing import Any, Dict, Optional
from fastapi import Request

MASK = "***MASKED***"

# Share tokens are 32 lowercase hex characters
SHARE_TOKEN_PATTERN = re.compile(r'\b[a-f0-9]{32}\b')
SHARE_PATH_PATTERN = re.compile(r'(/share/)([^/?#]+)')

_TOKEN_KEYS = ("token", "jwt", "authorization", "bearer")
_SECRET_KEYS = ("password", "secret", "private_key", "password_hash")
_COORDINATE_KEYS = ("lat", "lng", "latitude", "longitude")


def mask_share_token(token: Optional[str]) -> str:
    """Keep the first 8 characters of a share token for correlation."""
    if not token:
        return MASK
    return f"{token[:8]}..."


def mask_share_path(path: str) -> str:
    """Mask the token segment of a /share/{token} path."""
    return SHARE_PATH_PATTERN.sub(lambda m: m.group(1) + mask_share_token(m.group(2)), path)


def _round_coordinate(value: Any, mask_string: str) -> Any:
    if value is None:
        return None
    try:
        return round(float(value), 2)
    except (TypeError, ValueError):
        return mask_string


def mask_sensitive_data(data: Any, mask_string: str = MASK) -> Any:
    """
    Recursively mask sensitive data in dictionaries, lists, and strings.

    Tokens, passwords and digests are replaced entirely, emails keep a short
    prefix, and coordinates are rounded to roughly a kilometre.

    Args:
        data: Data structure to mask (dict, list, str, or other)
        mask_string: String to use for masking

    Returns:
        Masked data structure
    """
    if isinstance(data, dict):
        masked = {}
        for key, value in data.items():
            key_lower = str(key).lower()

            # request_id is needed for traceability
            if key_lower in ("requestid", "request_id"):
                masked[key] = value
            elif key_lower in ("share_token", "token") and isinstance(value, str) and SHARE_TOKEN_PATTERN.fullmatch(value):
                masked[key] = mask_share_token(value)
            elif any(term in key_lower for term in _TOKEN_KEYS):
                masked[key] = mask_string
            elif any(term in key_lower for term in _SECRET_KEYS):
                masked[key] = mask_string
            elif key_lower in _COORDINATE_KEYS:
                masked[key] = _round_coordinate(value, mask_string)
            elif key_lower == "email" and isinstance(value, str):
                local, _, domain = value.partition("@")
                if domain and len(local) > 3:
                    masked[key] = local[:3] + "***@" + domain
                else:
                    masked[key] = mask_string
            else:
                masked[key] = mask_sensitive_data(value, mask_string)

        return masked

    elif isinstance(data, list):
        return [mask_sensitive_data(item, mask_string) for item in data]

    elif isinstance(data, str):
        # Signed operator tokens start with a base64url JSON header
        if data.startswith("eyJ") and data.count(".") == 2:
            return mask_string
        if SHARE_TOKEN_PATTERN.fullmatch(data):
            return mask_share_token(data)
        return mask_share_path(data) if "/share/" in data else data

    return data


def mask_headers(headers: Dict[str, str]) -> Dict[str, str]:
    """Mask sensitive HTTP headers."""
    sensitive_headers = ("authorization", "x-auth-token", "cookie", "set-cookie")
    return {
        key: MASK if any(s in key.lower() for s in sensitive_headers) else value
        for key, value in headers.items()
    }


def get_request_id(request: Optional[Request]) -> Optional[str]:
    """Return the request ID assigned by the logging middleware, if any."""
    if request is not None and hasattr(request.state, "request_id"):
        return request.state.request_id
    return None


def sanitize_log_message(message: str, **kwargs: Any) -> str:
    """
    Build a log line with masked keyword context.

    RequestID is appended last so RequestIDFormatter can lift it into the prefix.

    Args:
        message: Base log message
        **kwargs: Additional context to include (will be masked)

    Returns:
        Sanitized log message with context
    """
    request_id = kwargs.pop('RequestID', None) or kwargs.pop('request_id', None)

    masked_kwargs = mask_sensitive_data(kwargs)
    context_parts = []
    for key, value in masked_kwargs.items():
        if isinstance(value, (dict, list)):
            context_parts.append(f"{key}: {str(value)[:200]}")
        else:
            context_parts.append(f"{key}: {value}")

    formatted_message = mask_share_path(message) if "/share/" in message else message
    if context_parts:
        formatted_message = f"{formatted_message} | {' | '.join(context_parts)}"

    if request_id:
        formatted_message = f"{formatted_message} | RequestID: {request_id}"

    return formatted_message
