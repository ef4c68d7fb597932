from typing import Optional, Dict, Any
from datetime import datetime
from pydantic import BaseModel, EmailStr, Field
from dossier.core.permissions import describe_policy


class OperatorCreateRequest(BaseModel):
    """Request schema for creating an operator."""
    email: EmailStr
    password: str = Field(min_length=1)
    name: Optional[str] = None
    allowed_sections: Optional[Dict[str, Any]] = None
    is_master: bool = False


class OperatorUpdateRequest(BaseModel):
    """Request schema for updating an operator. Omitted fields are left unchanged."""
    allowed_sections: Optional[Dict[str, Any]] = None
    is_disabled: Optional[bool] = None
    password: Optional[str] = Field(default=None, min_length=1)
    force_logout: bool = False
    is_master: Optional[bool] = None


class OperatorResponse(BaseModel):
    """Response schema for operator (never includes the password digest)."""
    id: int
    email: str
    name: Optional[str] = None
    is_master: bool
    is_disabled: bool
    allowed_sections: Dict[str, Any]
    created_at: Optional[datetime] = None
    last_login_at: Optional[datetime] = None

    @classmethod
    def from_operator(cls, operator) -> "OperatorResponse":
        return cls(
            id=operator.id,
            email=operator.email,
            name=operator.name,
            is_master=operator.is_master,
            is_disabled=operator.is_disabled,
            allowed_sections=describe_policy(operator),
            created_at=operator.created_at,
            last_login_at=operator.last_login_at,
        )
