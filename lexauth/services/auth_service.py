"""
Auth service: registration, login, token verification/refresh and password change.

This is the only component with business rules. It validates input, talks to
the credential store, hashes with PasswordHasher and mints tokens with
TokenCodec. Errors are raised from lexauth.core.errors with client-safe messages.

Security notes
--------------
* Login returns the *same* error whether the account doesn't exist or the
  password is wrong, so the endpoint cannot be used to enumerate accounts.
  An unknown account is still verified against a dummy hash, so response
  time does not give it away either. The disabled-account message is only reached after the password matched.
* verify_token re-reads the account on every call: a token for a deleted or
  suspended account is rejected even while its signature and expiry are fine.
* Registration checks username/email availability before inserting, in two
  separate store calls. Two concurrent registrations can both pass the checks;
  the unique indexes on ``accounts`` reject the second insert (ConflictError).
"""

import logging
import re
import secrets

from lexauth.core.errors import (
    AuthenticationError,
    AuthFailure,
    ConflictError,
    NotFoundError,
    ValidationError,
)
from lexauth.core.security import PasswordHasher, TokenCodec
from lexauth.models.account import GENDERS
from lexauth.schemas.auth import AccountProfile, PublicIdentity, TokenClaims, TokenIdentity
from lexauth.services.credential_store import AccountRecord, CredentialStore, NewAccount

logger = logging.getLogger(__name__)

USERNAME_MIN_LEN = 3
USERNAME_MAX_LEN = 50
PASSWORD_MIN_LEN = 6
PASSWORD_MAX_LEN = 100

_EMAIL_RE = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")

# Generic message used for both "no such account" and "wrong password"
LOGIN_FAILED = "Incorrect username or password"
ACCOUNT_DISABLED = "Account is disabled"
ACCOUNT_UNAVAILABLE = "User not found or is disabled"


def is_valid_email(email: str) -> bool:
    return bool(email) and _EMAIL_RE.match(email) is not None


def validate_password(password: str, *, label: str = "Password") -> None:
    """Raise ValidationError unless 6 <= len(password) <= 100."""
    if not password or len(password) < PASSWORD_MIN_LEN:
        raise ValidationError(f"{label} must be at least {PASSWORD_MIN_LEN} characters long")
    if len(password) > PASSWORD_MAX_LEN:
        raise ValidationError(f"{label} must not exceed {PASSWORD_MAX_LEN} characters")


def _clean(value: str | None) -> str | None:
    if value is None:
        return None
    value = value.strip()
    return value or None


def public_identity(account: AccountRecord) -> PublicIdentity:
    return PublicIdentity(
        id=account.id,
        username=account.username,
        email=account.email,
        gender=account.gender,
        role=account.role,
    )


def token_identity(account: AccountRecord) -> TokenIdentity:
    return TokenIdentity(
        user_id=account.id,
        username=account.username,
        gender=account.gender,
        role=account.role,
    )


class AuthService:
    def __init__(
        self,
        *,
        store: CredentialStore,
        hasher: PasswordHasher,
        codec: TokenCodec,
    ) -> None:
        self.store = store
        self.hasher = hasher
        # Hash of a throwaway password; unknown accounts are verified against it.
        self._dummy_hash, _ = hasher.hash(secrets.token_urlsafe(16))
        self.codec = codec

    # --------- Registration ----------

    def register(
        self,
        username: str,
        email: str,
        password: str,
        *,
        first_name: str | None = None,
        last_name: str | None = None,
        display_name: str | None = None,
        gender: str | None = None,
        phone: str | None = None,
    ) -> tuple[str, PublicIdentity]:
        """Create an account and return ``(token, public identity)``."""
        username = (username or "").strip()
        email = (email or "").strip().lower()
        self._validate_registration(username, email, password, gender)

        if self.store.username_exists(username):
            raise ConflictError("Username already exists")
        if self.store.email_exists(email):
            raise ConflictError("Email already exists")

        password_hash, salt = self.hasher.hash(password)
        account = self.store.insert(
            NewAccount(
                username=username,
                email=email,
                password_hash=password_hash,
                salt=salt,
                display_name=_clean(display_name) or username,
                first_name=_clean(first_name),
                last_name=_clean(last_name),
                gender=gender,
                phone=_clean(phone),
            )
        )
        logger.info("Registered account id=%s username=%s", account.id, account.username)
        return self.codec.issue(token_identity(account)), public_identity(account)

    def _validate_registration(
        self, username: str, email: str, password: str, gender: str | None
    ) -> None:
        if not username:
            raise ValidationError("Username cannot be empty")
        if len(username) < USERNAME_MIN_LEN:
            raise ValidationError(
                f"Username must be at least {USERNAME_MIN_LEN} characters long"
            )
        if len(username) > USERNAME_MAX_LEN:
            raise ValidationError(f"Username must not exceed {USERNAME_MAX_LEN} characters")
        if not is_valid_email(email):
            raise ValidationError("Please enter a valid email address")
        validate_password(password)
        if gender is not None and gender not in GENDERS:
            raise ValidationError("Invalid value for gender field")

    # --------- Login ----------

    def login(
        self, identifier: str, password: str, *, client_ip: str | None = None
    ) -> tuple[str, PublicIdentity]:
        """Authenticate by username or email; record the login and return a fresh token."""
        identifier = (identifier or "").strip()
        if not identifier:
            raise ValidationError("Username cannot be empty")
        if not password:
            raise ValidationError("Password cannot be empty")

        account = self.store.find_by_username(identifier)
        if account is None and "@" in identifier:
            account = self.store.find_by_email(identifier.lower())

        # Unified failure path: an unknown account costs the same bcrypt check as a wrong password
        stored_hash = account.password_hash if account is not None else self._dummy_hash
        if not self.hasher.verify(password, stored_hash) or account is None:
            logger.warning("Login failed for identifier=%s", identifier)
            raise AuthenticationError(LOGIN_FAILED, AuthFailure.BAD_CREDENTIALS)

        if not account.is_active:
            logger.warning("Login refused for account id=%s status=%s", account.id, account.status)
            raise AuthenticationError(ACCOUNT_DISABLED, AuthFailure.ACCOUNT_DISABLED)

        if self.hasher.needs_rehash(account.password_hash):
            new_hash, new_salt = self.hasher.hash(password)
            self.store.update_password_hash(account.id, new_hash, new_salt)
            logger.info("Upgraded password hash work factor for account id=%s", account.id)

        self.store.update_last_login(account.id, client_ip)
        logger.info("Login succeeded for account id=%s", account.id)
        return self.codec.issue(token_identity(account)), public_identity(account)

    # --------- Tokens ----------

    def _live_account(self, token: str) -> tuple[TokenClaims, AccountRecord]:
        claims = self.codec.verify(token)
        account = self.store.find_by_id(claims.user_id)
        if account is None or not account.is_active:
            raise AuthenticationError(ACCOUNT_UNAVAILABLE, AuthFailure.ACCOUNT_DISABLED)
        return claims, account

    def verify_token(self, token: str) -> TokenClaims:
        """Codec verification plus a liveness check of the referenced account."""
        claims, _ = self._live_account(token)
        return claims

    def refresh_token(self, old_token: str) -> str:
        """Issue a new token from the *current* account state (picks up role changes)."""
        _, account = self._live_account(old_token)
        return self.codec.issue(token_identity(account))

    # --------- Account ----------

    def _existing_account(self, account_id: int) -> AccountRecord:
        account = self.store.find_by_id(account_id)
        if account is None or account.status == "deleted":
            raise NotFoundError("User not found")
        return account

    def get_profile(self, account_id: int) -> AccountProfile:
        account = self._existing_account(account_id)
        return AccountProfile(
            id=account.id,
            username=account.username,
            email=account.email,
            gender=account.gender,
            role=account.role,
            display_name=account.display_name,
            first_name=account.first_name,
            last_name=account.last_name,
            status=account.status,
            email_verified=account.email_verified,
            last_login_at=account.last_login_at,
            login_count=account.login_count,
        )

    def change_password(self, account_id: int, old_password: str, new_password: str) -> bool:
        """
        Verify the old password, then store a hash of the new one.

        The old password is required so a stolen (unexpired) token alone
        cannot take over the account.
        """
        account = self._existing_account(account_id)
        if not self.hasher.verify(old_password or "", account.password_hash):
            raise AuthenticationError("Incorrect old password", AuthFailure.BAD_CREDENTIALS)
        validate_password(new_password, label="New password")

        new_hash, new_salt = self.hasher.hash(new_password)
        changed = self.store.update_password_hash(account.id, new_hash, new_salt)
        logger.info("Password changed for account id=%s", account.id)
        return changed

    def soft_delete(self, account_id: int) -> None:
        """Mark an account deleted; the row is kept and every later auth call on it fails."""
        self._existing_account(account_id)
        self.store.soft_delete(account_id)
        logger.info("Soft-deleted account id=%s", account_id)
