"""Password hashing and bearer-token signing/verification.

Nothing in here touches storage; both primitives are pure apart from reading
entropy (salts) and the wall clock (``iat`` / ``exp``).
"""

import base64
import hashlib
import re
from datetime import UTC, datetime, timedelta
from typing import TYPE_CHECKING, Any

import bcrypt
import jwt
from pydantic import ValidationError as PydanticValidationError

from lexauth.core.errors import AuthenticationError, AuthFailure, ConfigurationError
from lexauth.schemas.auth import TokenClaims, TokenIdentity

if TYPE_CHECKING:
    from lexauth.core.config import Settings

# Bcrypt cost (rounds); 12 is a good default for security vs speed.
BCRYPT_ROUNDS = 12

# Claims every token must carry; anything missing is a malformed token.
REQUIRED_CLAIMS = ["userId", "username", "role", "iat", "exp"]

_DURATION_RE = re.compile(r"(\d+)([dhms])")
_UNIT_SECONDS = {"s": 1, "m": 60, "h": 60 * 60, "d": 60 * 60 * 24}


def parse_duration(value: str) -> timedelta:
    """
    Parse a duration such as ``30s``, ``15m``, ``12h`` or ``7d``.

    Raises ConfigurationError for anything else, including zero-length
    durations (a token must expire strictly after it was issued).
    """
    if not isinstance(value, str):
        raise ConfigurationError("Invalid expiration time format")
    match = _DURATION_RE.fullmatch(value.strip())
    if match is None:
        raise ConfigurationError(
            f"Invalid expiration time format {value!r} (expected e.g. 30s, 15m, 12h, 7d)"
        )
    seconds = int(match.group(1)) * _UNIT_SECONDS[match.group(2)]
    if seconds <= 0:
        raise ConfigurationError("Expiration time must be greater than zero")
    try:
        return timedelta(seconds=seconds)
    except OverflowError:
        raise ConfigurationError(f"Expiration time {value!r} is too large") from None


def _password_bytes(plain_password: str) -> bytes:
    # bcrypt ignores input past 72 bytes; the SHA-256 pre-hash keeps every character significant.
    digest = hashlib.sha256(plain_password.encode("utf-8")).digest()
    return base64.b64encode(digest)


class PasswordHasher:
    """Salted bcrypt hashing with a configurable work factor."""

    def __init__(self, rounds: int = BCRYPT_ROUNDS) -> None:
        if rounds < 4 or rounds > 31:
            raise ConfigurationError("bcrypt rounds must be between 4 and 31")
        self.rounds = rounds

    def hash(self, plain_password: str) -> tuple[str, str]:
        """Return ``(password_hash, salt)``. A fresh random salt is drawn on every call."""
        salt = bcrypt.gensalt(rounds=self.rounds)
        hashed = bcrypt.hashpw(_password_bytes(plain_password), salt)
        return hashed.decode("utf-8"), salt.decode("utf-8")

    def verify(self, plain_password: str, hashed: str) -> bool:
        """
        Verify a plain password against a stored hash.

        Malformed or empty stored hashes return False rather than raising, so
        callers cannot tell a broken hash apart from a wrong password.
        """
        if not hashed or not isinstance(plain_password, str):
            return False
        try:
            return bcrypt.checkpw(_password_bytes(plain_password), hashed.encode("utf-8"))
        except (ValueError, TypeError):
            return False

    def needs_rehash(self, hashed: str) -> bool:
        """True when *hashed* was produced with a lower work factor than the current one."""
        parts = (hashed or "").split("$")
        if len(parts) < 4:
            return False
        try:
            return int(parts[2]) < self.rounds
        except ValueError:
            return False


class TokenCodec:
    """Issue and verify compact HMAC-signed JWTs carrying identity and role claims."""

    def __init__(
        self,
        secret: str,
        expires_in: timedelta,
        algorithm: str = "HS256",
    ) -> None:
        if not secret or not secret.strip():
            raise ConfigurationError("JWT secret must be set and non-empty")
        if expires_in <= timedelta(0):
            raise ConfigurationError("Expiration time must be greater than zero")
        self._secret = secret
        self.expires_in = expires_in
        self.algorithm = algorithm

    @classmethod
    def from_settings(cls, settings: "Settings") -> "TokenCodec":
        return cls(
            secret=settings.JWT_SECRET.get_secret_value(),
            expires_in=parse_duration(settings.JWT_EXPIRES_IN),
            algorithm=settings.JWT_ALGORITHM,
        )

    def issue(self, identity: TokenIdentity, *, now: int | None = None) -> str:
        """Sign a token for *identity*; ``iat`` is now and ``exp`` is now + the configured lifetime."""
        iat = int(datetime.now(UTC).timestamp()) if now is None else now
        claims = TokenClaims(
            **identity.model_dump(),
            iat=iat,
            exp=iat + int(self.expires_in.total_seconds()),
        )
        payload: dict[str, Any] = claims.model_dump(by_alias=True, exclude_none=True)
        return jwt.encode(payload, self._secret, algorithm=self.algorithm)

    def verify(self, token: str) -> TokenClaims:
        """
        Check structure, signature and expiry; return the claims.

        Raises AuthenticationError whose ``failure`` tells expired tokens apart
        from bad signatures and malformed input.
        """
        if not token:
            raise AuthenticationError(
                "Authentication token must be provided", AuthFailure.MISSING_TOKEN
            )
        try:
            payload = jwt.decode(
                token,
                self._secret,
                algorithms=[self.algorithm],
                options={"require": REQUIRED_CLAIMS},
            )
        except jwt.ExpiredSignatureError:
            raise AuthenticationError("Token has expired", AuthFailure.EXPIRED_TOKEN)
        except jwt.InvalidSignatureError:
            raise AuthenticationError(
                "Invalid token signature", AuthFailure.INVALID_SIGNATURE
            )
        except (jwt.DecodeError, jwt.MissingRequiredClaimError):
            raise AuthenticationError("Malformed token", AuthFailure.MALFORMED_TOKEN)
        except jwt.PyJWTError:
            raise AuthenticationError("Invalid token", AuthFailure.INVALID_TOKEN)

        try:
            claims = TokenClaims.model_validate(payload)
        except PydanticValidationError:
            raise AuthenticationError("Malformed token", AuthFailure.MALFORMED_TOKEN)
        if claims.exp <= claims.iat:
            raise AuthenticationError("Malformed token", AuthFailure.MALFORMED_TOKEN)
        return claims
