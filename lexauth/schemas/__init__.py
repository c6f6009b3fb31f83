"""Pydantic request/response schemas."""

from lexauth.schemas.auth import (
    AccountProfile,
    ApiResponse,
    AuthResult,
    PublicIdentity,
    TokenClaims,
    TokenIdentity,
)
from lexauth.schemas.health import HealthResponse

__all__ = [
    "AccountProfile",
    "ApiResponse",
    "AuthResult",
    "HealthResponse",
    "PublicIdentity",
    "TokenClaims",
    "TokenIdentity",
]
