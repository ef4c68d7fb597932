from typing import Optional, Dict, Any
from pydantic import BaseModel


class LoginRequest(BaseModel):
    """Request schema for operator login. Missing fields are reported as 400 by the service."""
    email: Optional[str] = None
    password: Optional[str] = None


class LoginResponse(BaseModel):
    """Response schema for operator login."""
    token: str
    token_type: str = "bearer"
    operator_id: int
    email: str
    is_master: bool


class CurrentOperatorResponse(BaseModel):
    """Response schema for the authenticated operator."""
    id: int
    email: str
    name: Optional[str] = None
    is_master: bool
    allowed_sections: Dict[str, Any]
