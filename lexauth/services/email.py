"""Email delivery collaborator for one-time codes."""

import logging
from typing import Protocol

logger = logging.getLogger(__name__)

SUBJECTS = {
    "email-verification": "Your email verification code",
    "forget-password": "Your password reset code",
}


class EmailSender(Protocol):
    def send_one_time_code(self, address: str, code: str, purpose: str) -> None: ...


class LoggingEmailSender:
    """
    Development sender: records the delivery in the log instead of sending mail.

    The code itself is never logged outside DEBUG level.
    """

    def __init__(self, ttl_seconds: int = 300) -> None:
        self.ttl_seconds = ttl_seconds

    def send_one_time_code(self, address: str, code: str, purpose: str) -> None:
        subject = SUBJECTS.get(purpose, "Your verification code")
        logger.info("Email queued: to=%s purpose=%s subject=%r", address, purpose, subject)
        logger.debug(
            "Email body for %s: code %s, valid for %d minutes",
            address,
            code,
            max(1, self.ttl_seconds // 60),
        )
