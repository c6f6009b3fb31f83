"""
Access guard: FastAPI dependencies that turn the Authorization header into a principal.

Three policies:

* ``optional_auth``   - anonymous (None) when the token is missing or bad; never rejects.
* ``require_auth``    - 401 when the token is missing, malformed, expired or badly signed.
* ``require_roles``   - ``require_auth`` first, then 403 when the role is not allowed.

The principal is returned as an ``AuthContext`` value and passed to handlers
as a parameter; nothing is stashed on the request.
"""

import re
from collections.abc import Callable
from dataclasses import dataclass
from typing import Annotated

from fastapi import Depends, Header, Request

from lexauth.core.errors import AuthenticationError, AuthFailure, AuthorizationError
from lexauth.schemas.auth import TokenClaims
from lexauth.services.container import ServiceContainer, get_services

_BEARER_PREFIX = re.compile(r"^bearer(?:\s+|$)", re.IGNORECASE)


@dataclass(frozen=True)
class AuthContext:
    """Authenticated principal for one request."""

    claims: TokenClaims
    token: str

    @property
    def user_id(self) -> int:
        return self.claims.user_id

    @property
    def role(self) -> str:
        return self.claims.role


def extract_bearer_token(authorization: str | None) -> str | None:
    """
    Strip an optional, case-insensitive ``Bearer `` prefix.

    Returns None when the header is absent or nothing is left after the prefix.
    """
    if authorization is None:
        return None
    token = _BEARER_PREFIX.sub("", authorization.strip(), count=1).strip()
    return token or None


def get_bearer_token(
    authorization: Annotated[str | None, Header()] = None,
) -> str | None:
    return extract_bearer_token(authorization)


def optional_auth(
    token: Annotated[str | None, Depends(get_bearer_token)],
    services: Annotated[ServiceContainer, Depends(get_services)],
) -> AuthContext | None:
    """Dependency: principal if the token verifies, otherwise None."""
    if token is None:
        return None
    try:
        claims = services.codec.verify(token)
    except AuthenticationError:
        return None
    return AuthContext(claims=claims, token=token)


def require_auth(
    token: Annotated[str | None, Depends(get_bearer_token)],
    services: Annotated[ServiceContainer, Depends(get_services)],
) -> AuthContext:
    """Dependency: require a valid bearer token. Raises 401 with a reason-specific message."""
    if token is None:
        raise AuthenticationError(
            "Authentication token must be provided", AuthFailure.MISSING_TOKEN
        )
    claims = services.codec.verify(token)
    return AuthContext(claims=claims, token=token)


def require_roles(*roles: str) -> Callable[..., AuthContext]:
    """
    Dependency factory: authenticated principal whose role is in *roles*.

    Authentication runs first, so an anonymous caller always gets 401, never 403.
    """
    allowed = frozenset(roles)

    def _require_role(
        context: Annotated[AuthContext, Depends(require_auth)],
    ) -> AuthContext:
        if context.role not in allowed:
            raise AuthorizationError(
                f"One of the following roles is required: {', '.join(sorted(allowed))}"
            )
        return context

    return _require_role


require_admin = require_roles("admin", "super_admin")


def get_client_ip(request: Request) -> str | None:
    """Client address: first X-Forwarded-For hop when behind a proxy, else the peer host."""
    forwarded = request.headers.get("X-Forwarded-For")
    if forwarded:
        return forwarded.split(",")[0].strip()
    if request.client:
        return request.client.host
    return None
