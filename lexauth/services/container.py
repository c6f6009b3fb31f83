"""
Process-wide service container.

Built once during application startup and handed to every request through the
``get_services`` dependency. ``init_services`` is idempotent: when concurrent
callers race, exactly one container is stored and every caller gets it back.
"""

import logging
import threading
from dataclasses import dataclass
from datetime import timedelta
from typing import Any

from fastapi import Request
from sqlalchemy.orm import Session, sessionmaker

from lexauth.core.config import Settings
from lexauth.core.security import PasswordHasher, TokenCodec
from lexauth.models import Base
from lexauth.services.auth_service import AuthService
from lexauth.services.credential_store import CredentialStore, SqlAlchemyCredentialStore
from lexauth.services.email import EmailSender, LoggingEmailSender
from lexauth.services.one_time_codes import OneTimeCodeService

logger = logging.getLogger(__name__)

_init_lock = threading.Lock()


@dataclass(frozen=True)
class ServiceContainer:
    settings: Settings
    session_factory: sessionmaker[Session]
    store: CredentialStore
    hasher: PasswordHasher
    codec: TokenCodec
    email_sender: EmailSender
    auth: AuthService
    codes: OneTimeCodeService

    @classmethod
    def build(
        cls,
        settings: Settings,
        session_factory: sessionmaker[Session],
        *,
        email_sender: EmailSender | None = None,
    ) -> "ServiceContainer":
        """Wire every collaborator. Raises ConfigurationError on bad token settings."""
        codec = TokenCodec.from_settings(settings)
        hasher = PasswordHasher(rounds=settings.BCRYPT_ROUNDS)
        store = SqlAlchemyCredentialStore(session_factory)
        sender = email_sender or LoggingEmailSender(ttl_seconds=settings.ONE_TIME_CODE_TTL_SECONDS)
        return cls(
            settings=settings,
            session_factory=session_factory,
            store=store,
            hasher=hasher,
            codec=codec,
            email_sender=sender,
            auth=AuthService(store=store, hasher=hasher, codec=codec),
            codes=OneTimeCodeService(
                store=store,
                hasher=hasher,
                sender=sender,
                length=settings.ONE_TIME_CODE_LENGTH,
                ttl=timedelta(seconds=settings.ONE_TIME_CODE_TTL_SECONDS),
                max_attempts=settings.ONE_TIME_CODE_MAX_ATTEMPTS,
            ),
        )


def init_services(
    state: Any,
    settings: Settings,
    session_factory: sessionmaker[Session],
    *,
    email_sender: EmailSender | None = None,
) -> ServiceContainer:
    """
    Build the container once and store it on *state* (``app.state``).

    A second call is a no-op returning the existing container.
    """
    existing = getattr(state, "services", None)
    if existing is not None:
        return existing
    with _init_lock:
        existing = getattr(state, "services", None)
        if existing is not None:
            return existing
        container = ServiceContainer.build(settings, session_factory, email_sender=email_sender)
        if settings.AUTO_CREATE_TABLES:
            Base.metadata.create_all(bind=session_factory.kw["bind"])
            logger.info("Created database tables (AUTO_CREATE_TABLES=true)")
        state.services = container
        logger.info(
            "Services initialized: env=%s token_ttl=%s bcrypt_rounds=%d",
            settings.APP_ENV,
            settings.JWT_EXPIRES_IN,
            settings.BCRYPT_ROUNDS,
        )
        return container


def get_services(request: Request) -> ServiceContainer:
    """Dependency: the container built at startup."""
    services = getattr(request.app.state, "services", None)
    if services is None:
        raise RuntimeError("Services not initialized; application startup has not run")
    return services
