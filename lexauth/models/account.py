"""ORM model for user accounts (credentials, role, lifecycle status)."""

from sqlalchemy import Boolean, Column, DateTime, Integer, String
from sqlalchemy.sql import func

from lexauth.models.base import Base

ROLES = ("user", "admin", "moderator", "super_admin")
STATUSES = ("active", "inactive", "suspended", "deleted")
GENDERS = ("male", "female", "other")


class Account(Base):
    """
    User account for bearer-token authentication and role-based access control.

    username and email are unique across every row, deleted ones included:
    soft delete only flips ``status`` to 'deleted' and keeps the record.
    """

    __tablename__ = "accounts"

    id = Column(Integer, primary_key=True, autoincrement=True)
    username = Column(String(50), nullable=False, unique=True, index=True)
    email = Column(String(255), nullable=False, unique=True, index=True)
    password_hash = Column(String(255), nullable=False)
    # bcrypt embeds the salt in the hash string; kept as its own column as well.
    salt = Column(String(64), nullable=False)
    role = Column(String(32), nullable=False, default="user")
    status = Column(String(16), nullable=False, default="active")
    email_verified = Column(Boolean, nullable=False, default=False)

    display_name = Column(String(100), nullable=True)
    first_name = Column(String(100), nullable=True)
    last_name = Column(String(100), nullable=True)
    gender = Column(String(16), nullable=True)
    phone = Column(String(32), nullable=True)

    last_login_at = Column(DateTime(timezone=True), nullable=True)
    last_login_ip = Column(String(64), nullable=True)
    login_count = Column(Integer, nullable=False, default=0)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(
        DateTime(timezone=True),
        server_default=func.now(),
        onupdate=func.now(),
        nullable=False,
    )
