"""Auth endpoints: register, login, refresh, me, change-password, verify-token, logout, email codes."""

import logging
from typing import Annotated

from fastapi import APIRouter, Depends, Request, status

from lexauth.api.guard import AuthContext, get_client_ip, optional_auth, require_auth
from lexauth.schemas.auth import (
    AccountProfile,
    ApiResponse,
    AuthResult,
    ChangePasswordRequest,
    LoginRequest,
    RegisterRequest,
    ResetPasswordRequest,
    SendCodeRequest,
    TokenResult,
    VerifiedToken,
    VerifyEmailRequest,
    VerifyTokenRequest,
)
from lexauth.services.container import ServiceContainer, get_services

logger = logging.getLogger(__name__)

router = APIRouter()

Services = Annotated[ServiceContainer, Depends(get_services)]


@router.post(
    "/register",
    response_model=ApiResponse[AuthResult],
    status_code=status.HTTP_201_CREATED,
)
def register(body: RegisterRequest, services: Services) -> ApiResponse[AuthResult]:
    """Create an account and return a token for it."""
    token, user = services.auth.register(
        body.username,
        body.email,
        body.password,
        first_name=body.first_name,
        last_name=body.last_name,
        display_name=body.display_name,
        gender=body.gender,
        phone=body.phone,
    )
    return ApiResponse(message="Registration successful", data=AuthResult(token=token, user=user))


@router.post("/login", response_model=ApiResponse[AuthResult])
def login(body: LoginRequest, request: Request, services: Services) -> ApiResponse[AuthResult]:
    """
    Authenticate with username (or email) and password; returns a bearer token.
    Include the token in the Authorization header as: Bearer <token>
    """
    token, user = services.auth.login(
        body.username, body.password, client_ip=get_client_ip(request)
    )
    return ApiResponse(message="Login successful", data=AuthResult(token=token, user=user))


@router.post("/refresh", response_model=ApiResponse[TokenResult])
def refresh(
    context: Annotated[AuthContext, Depends(require_auth)],
    services: Services,
) -> ApiResponse[TokenResult]:
    """Exchange a valid token for a new one built from the current account state."""
    token = services.auth.refresh_token(context.token)
    return ApiResponse(message="Token refreshed successfully", data=TokenResult(token=token))


@router.get("/me", response_model=ApiResponse[AccountProfile])
def me(
    context: Annotated[AuthContext, Depends(require_auth)],
    services: Services,
) -> ApiResponse[AccountProfile]:
    """Return the authenticated user's profile (no secrets)."""
    profile = services.auth.get_profile(context.user_id)
    return ApiResponse(message="Current user", data=profile)


@router.get("/session", response_model=ApiResponse[VerifiedToken])
def session(
    context: Annotated[AuthContext | None, Depends(optional_auth)],
) -> ApiResponse[VerifiedToken]:
    """Describe the caller: claims when a valid token was sent, otherwise anonymous."""
    if context is None:
        return ApiResponse(message="Anonymous", data=None)
    claims = context.claims
    return ApiResponse(
        message="Authenticated",
        data=VerifiedToken(
            user_id=claims.user_id,
            username=claims.username,
            gender=claims.gender,
            role=claims.role,
            exp=claims.exp,
        ),
    )


@router.post("/change-password", response_model=ApiResponse[None])
def change_password(
    body: ChangePasswordRequest,
    context: Annotated[AuthContext, Depends(require_auth)],
    services: Services,
) -> ApiResponse[None]:
    """Change the authenticated user's password; the old password must match."""
    services.auth.change_password(context.user_id, body.old_password, body.new_password)
    return ApiResponse(message="Password changed successfully")


@router.post("/verify-token", response_model=ApiResponse[VerifiedToken])
def verify_token(body: VerifyTokenRequest, services: Services) -> ApiResponse[VerifiedToken]:
    """Check a token, including that its account still exists and is active."""
    claims = services.auth.verify_token(body.token.strip())
    return ApiResponse(
        message="Token is valid",
        data=VerifiedToken(
            user_id=claims.user_id,
            username=claims.username,
            gender=claims.gender,
            role=claims.role,
            exp=claims.exp,
        ),
    )


@router.post("/logout", response_model=ApiResponse[None])
def logout(context: Annotated[AuthContext, Depends(require_auth)]) -> ApiResponse[None]:
    """
    Tokens are stateless: logout only tells the client to discard its token.
    The token itself stays valid until it expires.
    """
    logger.info("Logout for account id=%s", context.user_id)
    return ApiResponse(message="Logout successful")


@router.post(
    "/email/send-code",
    response_model=ApiResponse[None],
    status_code=status.HTTP_202_ACCEPTED,
)
def send_code(body: SendCodeRequest, services: Services) -> ApiResponse[None]:
    """Email a one-time code. Same response whether or not the email is registered."""
    services.codes.send_code(body.email, body.purpose)
    return ApiResponse(message="If the address is registered, a code has been sent")


@router.post("/email/verify", response_model=ApiResponse[None])
def verify_email(body: VerifyEmailRequest, services: Services) -> ApiResponse[None]:
    services.codes.verify_email(body.email, body.code)
    return ApiResponse(message="Email verified")


@router.post("/password/reset", response_model=ApiResponse[None])
def reset_password(body: ResetPasswordRequest, services: Services) -> ApiResponse[None]:
    services.codes.reset_password(body.email, body.code, body.new_password)
    return ApiResponse(message="Password reset successfully")
