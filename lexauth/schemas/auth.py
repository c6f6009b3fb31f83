"""Request/response schemas and token claims for auth endpoints."""

from datetime import datetime
from typing import Generic, Literal, TypeVar

from pydantic import BaseModel, ConfigDict, Field

Role = Literal["user", "admin", "moderator", "super_admin"]
AccountStatus = Literal["active", "inactive", "suspended", "deleted"]
Gender = Literal["male", "female", "other"]
CodePurpose = Literal["email-verification", "forget-password"]

T = TypeVar("T")


class TokenIdentity(BaseModel):
    """Identity and role data a token is minted for."""

    model_config = ConfigDict(populate_by_name=True)

    user_id: int = Field(..., alias="userId")
    username: str
    gender: Gender | None = None
    role: Role


class TokenClaims(TokenIdentity):
    """Decoded token payload: identity plus issued-at and expiry (epoch seconds)."""

    iat: int
    exp: int

    def identity(self) -> TokenIdentity:
        return TokenIdentity(
            user_id=self.user_id, username=self.username, gender=self.gender, role=self.role
        )


# -- Requests --------------------------------------------------------------


class RegisterRequest(BaseModel):
    """New account. Lengths and email syntax are checked by the auth service."""

    username: str = Field(..., description="3-50 characters, case-sensitive")
    email: str = Field(..., description="Stored lowercased")
    password: str = Field(..., description="6-100 characters")
    first_name: str | None = None
    last_name: str | None = None
    display_name: str | None = None
    gender: str | None = None
    phone: str | None = None


class LoginRequest(BaseModel):
    """Credentials for login; ``username`` may also be the account email."""

    username: str = Field(..., description="Username or email")
    password: str = Field(..., description="Password")


class ChangePasswordRequest(BaseModel):
    old_password: str
    new_password: str


class VerifyTokenRequest(BaseModel):
    token: str = ""


class SendCodeRequest(BaseModel):
    email: str
    purpose: CodePurpose = "email-verification"


class VerifyEmailRequest(BaseModel):
    email: str
    code: str


class ResetPasswordRequest(BaseModel):
    email: str
    code: str
    new_password: str


# -- Responses -------------------------------------------------------------


class PublicIdentity(BaseModel):
    """Redacted account view returned to clients (never hash or salt)."""

    model_config = ConfigDict(from_attributes=True)

    id: int
    username: str
    email: str
    gender: Gender | None = None
    role: Role


class AccountProfile(PublicIdentity):
    """Identity of the current user as returned by /auth/me."""

    display_name: str | None = None
    first_name: str | None = None
    last_name: str | None = None
    status: AccountStatus
    email_verified: bool
    last_login_at: datetime | None = None
    login_count: int = 0


class AuthResult(BaseModel):
    """Token plus public identity, returned by register and login."""

    token: str
    user: PublicIdentity


class TokenResult(BaseModel):
    token: str


class VerifiedToken(BaseModel):
    user_id: int
    username: str
    gender: Gender | None = None
    role: Role
    exp: int


class ApiResponse(BaseModel, Generic[T]):
    """Success envelope shared by every endpoint."""

    success: bool = True
    message: str
    data: T | None = None
