"""
User API — User Request/Response Schemas
=========================================

What:  Validation models for the user routes (body, query and path sections)
       and the public user representation.
Why:   The validation stage runs these per section and collects every field
       error; the handler only ever sees typed, validated values.

Design Decision:
    UserResponse is separate from the ORM model so the password hash can
    never leak: it simply has no such field.
"""

import re
from datetime import datetime
from typing import Optional

from pydantic import Field, field_validator

from userapi.schemas.common import CamelModel

EMAIL_PATTERN = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")
ID_PATTERN = re.compile(r"^\d+$")

# Upper bound of a PostgreSQL INTEGER primary key
MAX_ID = 2_147_483_647


def _check_email(v: str) -> str:
    if not EMAIL_PATTERN.match(v):
        raise ValueError("Invalid email address")
    return v


class UserCreate(CamelModel):
    """Body of POST /api/v1/users."""

    name: str = Field(min_length=2, max_length=255)
    email: str = Field(max_length=255)
    password: str = Field(min_length=6)

    @field_validator("email")
    @classmethod
    def validate_email(cls, v: str) -> str:
        return _check_email(v)


class UserUpdate(CamelModel):
    """Body of PATCH /api/v1/users/{id}. Every field is optional."""

    name: Optional[str] = Field(default=None, min_length=2, max_length=255)
    email: Optional[str] = Field(default=None, max_length=255)
    password: Optional[str] = Field(default=None, min_length=6)
    is_active: Optional[bool] = None

    @field_validator("email")
    @classmethod
    def validate_email(cls, v: Optional[str]) -> Optional[str]:
        if v is None:
            return v
        return _check_email(v)


class UserIdParams(CamelModel):
    """Path parameters of /api/v1/users/{id}."""

    id: int = Field(le=MAX_ID)

    @field_validator("id", mode="before")
    @classmethod
    def validate_digits(cls, v):
        if isinstance(v, int) and not isinstance(v, bool):
            return v
        if not isinstance(v, str) or not ID_PATTERN.match(v):
            raise ValueError("ID must be a number")
        return int(v)


class UserListQuery(CamelModel):
    """
    Query string of GET /api/v1/users.

    Values are never rejected here except an over-long search: page/limit are
    clamped and unknown sort fields fall back to createdAt in
    `userapi.utils.pagination.parse_pagination` and the repository.
    """

    page: Optional[str] = None
    limit: Optional[str] = None
    sort: Optional[str] = None
    search: Optional[str] = Field(default=None, max_length=255)


class UserResponse(CamelModel):
    """Public representation of a user. Never includes the password."""

    id: int
    name: str
    email: str
    is_active: bool
    created_at: datetime
    updated_at: datetime
