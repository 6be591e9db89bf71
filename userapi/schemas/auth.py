"""
User API — Authentication Schemas
==================================
"""

from pydantic import Field

from userapi.schemas.common import CamelModel


class LoginRequest(CamelModel):
    """Body of POST /api/v1/auth/login."""

    email: str = Field(min_length=3, max_length=255)
    password: str = Field(min_length=1)


class TokenResponse(CamelModel):
    token: str
    token_type: str = "Bearer"
    expires_in: int = Field(description="Token lifetime in seconds")
