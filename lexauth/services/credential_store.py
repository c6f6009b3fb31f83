"""
Credential store: the persistence contract the auth core consumes, and its SQLAlchemy adapter.

Each adapter method opens its own session and commits before returning, so
every call is atomic on its own and no call spans another. Uniqueness of
username and email is guaranteed by unique indexes on the ``accounts`` table;
the existence checks the auth service performs beforehand are only a fast path.
"""

import logging
from dataclasses import dataclass
from datetime import UTC, datetime
from typing import Protocol

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session, sessionmaker

from lexauth.core.errors import ConflictError
from lexauth.models import Account, OneTimeCode

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class AccountRecord:
    """Detached, immutable snapshot of an ``accounts`` row."""

    id: int
    username: str
    email: str
    password_hash: str
    salt: str
    role: str
    status: str
    email_verified: bool
    display_name: str | None = None
    first_name: str | None = None
    last_name: str | None = None
    gender: str | None = None
    phone: str | None = None
    last_login_at: datetime | None = None
    last_login_ip: str | None = None
    login_count: int = 0

    @property
    def is_active(self) -> bool:
        return self.status == "active"


@dataclass(frozen=True)
class NewAccount:
    """Already-normalized fields for an account about to be inserted."""

    username: str
    email: str
    password_hash: str
    salt: str
    role: str = "user"
    status: str = "active"
    display_name: str | None = None
    first_name: str | None = None
    last_name: str | None = None
    gender: str | None = None
    phone: str | None = None


@dataclass(frozen=True)
class OneTimeCodeRecord:
    id: int
    email: str
    purpose: str
    code_digest: str
    attempts: int
    expires_at: datetime


class CredentialStore(Protocol):
    """Persistence operations the auth core relies on."""

    def find_by_id(self, account_id: int) -> AccountRecord | None: ...
    def find_by_username(self, username: str) -> AccountRecord | None: ...
    def find_by_email(self, email: str) -> AccountRecord | None: ...
    def username_exists(self, username: str) -> bool: ...
    def email_exists(self, email: str) -> bool: ...
    def insert(self, account: NewAccount) -> AccountRecord: ...
    def update_password_hash(self, account_id: int, password_hash: str, salt: str) -> bool: ...
    def update_last_login(self, account_id: int, ip_address: str | None) -> bool: ...
    def soft_delete(self, account_id: int) -> bool: ...
    def mark_email_verified(self, account_id: int) -> bool: ...
    def set_role(self, account_id: int, role: str) -> bool: ...
    def save_one_time_code(
        self, email: str, purpose: str, code_digest: str, expires_at: datetime
    ) -> OneTimeCodeRecord: ...
    def find_live_code(self, email: str, purpose: str) -> OneTimeCodeRecord | None: ...
    def record_code_attempt(self, code_id: int) -> int: ...
    def consume_code(self, code_id: int) -> bool: ...


def _to_record(row: Account) -> AccountRecord:
    return AccountRecord(
        id=row.id,
        username=row.username,
        email=row.email,
        password_hash=row.password_hash,
        salt=row.salt,
        role=row.role,
        status=row.status,
        email_verified=bool(row.email_verified),
        display_name=row.display_name,
        first_name=row.first_name,
        last_name=row.last_name,
        gender=row.gender,
        phone=row.phone,
        last_login_at=row.last_login_at,
        last_login_ip=row.last_login_ip,
        login_count=row.login_count or 0,
    )


def _to_code_record(row: OneTimeCode) -> OneTimeCodeRecord:
    expires_at = row.expires_at
    # SQLite hands back naive datetimes; everything stored here is UTC.
    if expires_at.tzinfo is None:
        expires_at = expires_at.replace(tzinfo=UTC)
    return OneTimeCodeRecord(
        id=row.id,
        email=row.email,
        purpose=row.purpose,
        code_digest=row.code_digest,
        attempts=row.attempts,
        expires_at=expires_at,
    )


class SqlAlchemyCredentialStore:
    """CredentialStore over a SQLAlchemy session factory."""

    def __init__(self, session_factory: sessionmaker[Session]) -> None:
        self._sessions = session_factory

    # -- Lookups -------------------------------------------------------------

    def find_by_id(self, account_id: int) -> AccountRecord | None:
        with self._sessions() as db:
            row = db.query(Account).filter(Account.id == account_id).first()
            return _to_record(row) if row else None

    def find_by_username(self, username: str) -> AccountRecord | None:
        with self._sessions() as db:
            row = db.query(Account).filter(Account.username == username).first()
            return _to_record(row) if row else None

    def find_by_email(self, email: str) -> AccountRecord | None:
        with self._sessions() as db:
            row = db.query(Account).filter(Account.email == email.lower()).first()
            return _to_record(row) if row else None

    def username_exists(self, username: str) -> bool:
        with self._sessions() as db:
            return db.query(Account.id).filter(Account.username == username).first() is not None

    def email_exists(self, email: str) -> bool:
        with self._sessions() as db:
            return (
                db.query(Account.id).filter(Account.email == email.lower()).first() is not None
            )

    # -- Writes --------------------------------------------------------------

    def insert(self, account: NewAccount) -> AccountRecord:
        """Insert a new account. Raises ConflictError if username or email is taken."""
        try:
            with self._sessions.begin() as db:
                row = Account(
                    username=account.username,
                    email=account.email,
                    password_hash=account.password_hash,
                    salt=account.salt,
                    role=account.role,
                    status=account.status,
                    email_verified=False,
                    display_name=account.display_name,
                    first_name=account.first_name,
                    last_name=account.last_name,
                    gender=account.gender,
                    phone=account.phone,
                    login_count=0,
                )
                db.add(row)
                db.flush()
                return _to_record(row)
        except IntegrityError as e:
            logger.warning("Account insert rejected by unique constraint: %s", e.orig)
            raise ConflictError("Username or email already exists") from e

    def _update(self, account_id: int, values: dict) -> bool:
        with self._sessions.begin() as db:
            updated = (
                db.query(Account)
                .filter(Account.id == account_id)
                .update(values, synchronize_session=False)
            )
        return updated > 0

    def update_password_hash(self, account_id: int, password_hash: str, salt: str) -> bool:
        return self._update(
            account_id, {Account.password_hash: password_hash, Account.salt: salt}
        )

    def update_last_login(self, account_id: int, ip_address: str | None) -> bool:
        return self._update(
            account_id,
            {
                Account.last_login_at: datetime.now(UTC),
                Account.last_login_ip: ip_address,
                Account.login_count: Account.login_count + 1,
            },
        )

    def soft_delete(self, account_id: int) -> bool:
        return self._update(account_id, {Account.status: "deleted"})

    def mark_email_verified(self, account_id: int) -> bool:
        """Set email_verified; an 'inactive' account becomes 'active'."""
        with self._sessions.begin() as db:
            row = db.query(Account).filter(Account.id == account_id).first()
            if row is None:
                return False
            row.email_verified = True
            if row.status == "inactive":
                row.status = "active"
        return True

    def set_role(self, account_id: int, role: str) -> bool:
        return self._update(account_id, {Account.role: role})

    # -- One-time codes ------------------------------------------------------

    def save_one_time_code(
        self, email: str, purpose: str, code_digest: str, expires_at: datetime
    ) -> OneTimeCodeRecord:
        """Store a new code, retiring any earlier unconsumed code for the same email and purpose."""
        with self._sessions.begin() as db:
            db.query(OneTimeCode).filter(
                OneTimeCode.email == email,
                OneTimeCode.purpose == purpose,
                OneTimeCode.consumed.is_(False),
            ).update({OneTimeCode.consumed: True}, synchronize_session=False)
            row = OneTimeCode(
                email=email,
                purpose=purpose,
                code_digest=code_digest,
                attempts=0,
                consumed=False,
                expires_at=expires_at,
            )
            db.add(row)
            db.flush()
            return _to_code_record(row)

    def find_live_code(self, email: str, purpose: str) -> OneTimeCodeRecord | None:
        """Latest unconsumed code; expiry and attempt limits are checked by the caller."""
        with self._sessions() as db:
            row = (
                db.query(OneTimeCode)
                .filter(
                    OneTimeCode.email == email,
                    OneTimeCode.purpose == purpose,
                    OneTimeCode.consumed.is_(False),
                )
                .order_by(OneTimeCode.id.desc())
                .first()
            )
            return _to_code_record(row) if row else None

    def record_code_attempt(self, code_id: int) -> int:
        """Increment the failed-attempt counter and return its new value."""
        with self._sessions.begin() as db:
            db.query(OneTimeCode).filter(OneTimeCode.id == code_id).update(
                {OneTimeCode.attempts: OneTimeCode.attempts + 1}, synchronize_session=False
            )
            attempts = db.query(OneTimeCode.attempts).filter(OneTimeCode.id == code_id).scalar()
        return attempts or 0

    def consume_code(self, code_id: int) -> bool:
        """Mark a code used. False if it was already consumed (lost a race)."""
        with self._sessions.begin() as db:
            updated = (
                db.query(OneTimeCode)
                .filter(OneTimeCode.id == code_id, OneTimeCode.consumed.is_(False))
                .update({OneTimeCode.consumed: True}, synchronize_session=False)
            )
        return updated > 0
