"""Emailed one-time codes: email verification and password reset."""

import hashlib
import hmac
import logging
import secrets
from datetime import UTC, datetime, timedelta

from lexauth.core.errors import ValidationError
from lexauth.core.security import PasswordHasher
from lexauth.services.auth_service import is_valid_email, validate_password
from lexauth.services.credential_store import CredentialStore, OneTimeCodeRecord
from lexauth.services.email import EmailSender

logger = logging.getLogger(__name__)

PURPOSES = ("email-verification", "forget-password")

INVALID_CODE = "Invalid or expired verification code"


def _digest(code: str) -> str:
    return hashlib.sha256(code.encode("utf-8")).hexdigest()


class OneTimeCodeService:
    """
    Issue and redeem short numeric codes delivered by email.

    A code is single-use, expires after ``ttl`` and dies after ``max_attempts``
    wrong guesses. Issuing a new code retires the previous one for the same
    email and purpose.
    """

    def __init__(
        self,
        *,
        store: CredentialStore,
        hasher: PasswordHasher,
        sender: EmailSender,
        length: int = 6,
        ttl: timedelta = timedelta(minutes=5),
        max_attempts: int = 3,
    ) -> None:
        self.store = store
        self.hasher = hasher
        self.sender = sender
        self.length = length
        self.ttl = ttl
        self.max_attempts = max_attempts

    def _generate(self) -> str:
        return "".join(secrets.choice("0123456789") for _ in range(self.length))

    def send_code(self, email: str, purpose: str) -> bool:
        """
        Store and email a new code. Returns False (silently) for unknown or
        deleted accounts so callers cannot probe which emails are registered.
        """
        if purpose not in PURPOSES:
            raise ValidationError("Invalid code purpose")
        email = (email or "").strip().lower()
        if not is_valid_email(email):
            raise ValidationError("Please enter a valid email address")

        account = self.store.find_by_email(email)
        if account is None or account.status == "deleted":
            logger.info("Code requested for unknown email; nothing sent (purpose=%s)", purpose)
            return False

        code = self._generate()
        self.store.save_one_time_code(
            email, purpose, _digest(code), datetime.now(UTC) + self.ttl
        )
        # Delivery is fire-and-forget: the stored code stays valid if the sender fails.
        try:
            self.sender.send_one_time_code(email, code, purpose)
        except Exception:
            logger.exception("Failed to deliver %s code to %s", purpose, email)
        return True

    def _redeem(self, email: str, purpose: str, code: str) -> OneTimeCodeRecord:
        record = self.store.find_live_code(email, purpose)
        if record is None:
            raise ValidationError(INVALID_CODE)
        if record.expires_at <= datetime.now(UTC) or record.attempts >= self.max_attempts:
            self.store.consume_code(record.id)
            raise ValidationError(INVALID_CODE)
        if not hmac.compare_digest(record.code_digest, _digest((code or "").strip())):
            attempts = self.store.record_code_attempt(record.id)
            logger.warning(
                "Wrong %s code for %s (attempt %d/%d)", purpose, email, attempts, self.max_attempts
            )
            raise ValidationError(INVALID_CODE)
        if not self.store.consume_code(record.id):
            raise ValidationError(INVALID_CODE)
        return record

    def verify_email(self, email: str, code: str) -> None:
        """Redeem an email-verification code; an inactive account becomes active."""
        email = (email or "").strip().lower()
        account = self.store.find_by_email(email)
        if account is None or account.status == "deleted":
            raise ValidationError(INVALID_CODE)
        self._redeem(email, "email-verification", code)
        self.store.mark_email_verified(account.id)
        logger.info("Email verified for account id=%s", account.id)

    def reset_password(self, email: str, code: str, new_password: str) -> None:
        """Redeem a forget-password code and replace the password hash."""
        email = (email or "").strip().lower()
        validate_password(new_password, label="New password")
        account = self.store.find_by_email(email)
        if account is None or account.status == "deleted":
            raise ValidationError(INVALID_CODE)
        self._redeem(email, "forget-password", code)
        new_hash, new_salt = self.hasher.hash(new_password)
        self.store.update_password_hash(account.id, new_hash, new_salt)
        logger.info("Password reset for account id=%s", account.id)
