"""Pydantic schemas for the auth endpoints.

Learn: The dashboard client speaks camelCase JSON (accessToken,
refreshToken, createdAt). The Python side stays snake_case; the alias
generator maps between the two, and populate_by_name lets tests and
internal callers use either spelling.
"""

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class CamelModel(BaseModel):
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        from_attributes=True,
    )


# ─── Requests ─────────────────────────────────────────────


class RegisterRequest(CamelModel):
    email: str = Field(min_length=1, max_length=255)
    username: str = Field(min_length=1, max_length=100)
    password: str = Field(min_length=1)


class LoginRequest(CamelModel):
    email: str = Field(min_length=1)
    password: str = Field(min_length=1)


class RefreshRequest(CamelModel):
    # Optional so a missing token is a 401, not a validation error
    refresh_token: Optional[str] = None


class LogoutRequest(CamelModel):
    refresh_token: Optional[str] = None


# ─── Responses ────────────────────────────────────────────


class AccountRead(CamelModel):
    """An account as returned to clients. Never includes the password."""
    id: int
    email: str
    username: str
    role: str
    created_at: Optional[datetime] = None


class AuthResponse(CamelModel):
    user: AccountRead
    access_token: str
    refresh_token: str


class AccessTokenResponse(CamelModel):
    access_token: str


class SessionRead(CamelModel):
    """A live session. The token itself is never echoed back."""
    id: int
    created_at: Optional[datetime] = None
    expires_at: datetime


class RevokedResponse(CamelModel):
    revoked: int


class ProtectedResponse(CamelModel):
    message: str
    user: AccountRead
