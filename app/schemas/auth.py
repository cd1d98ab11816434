"""
BettsTax Practice - Authentication Schemas

Pydantic schemas for authentication requests and responses.
"""

from typing import Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict, EmailStr, Field

from app.models.user import UserRole


# ===========================================
# REQUEST SCHEMAS
# ===========================================

class UserLoginRequest(BaseModel):
    """Schema for user login request."""
    email: EmailStr
    password: str = Field(..., min_length=1)


# ===========================================
# RESPONSE SCHEMAS
# ===========================================

class UserResponse(BaseModel):
    """Schema for user response."""
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    email: str
    first_name: str
    last_name: str
    full_name: str
    role: UserRole
    client_id: Optional[UUID] = None
    is_active: bool


class TokenResponse(BaseModel):
    """Schema for token response."""
    access_token: str
    token_type: str = "bearer"
    expires_in: int


class UserWithTokenResponse(BaseModel):
    """Schema for login response with user and tokens."""
    user: UserResponse
    tokens: TokenResponse
