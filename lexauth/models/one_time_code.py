"""ORM model for emailed one-time codes (email verification, password reset)."""

from sqlalchemy import Boolean, Column, DateTime, Index, Integer, String
from sqlalchemy.sql import func

from lexauth.models.base import Base


class OneTimeCode(Base):
    """Only the SHA-256 digest of a code is stored, never the code itself."""

    __tablename__ = "one_time_codes"
    __table_args__ = (Index("ix_one_time_codes_email_purpose", "email", "purpose"),)

    id = Column(Integer, primary_key=True, autoincrement=True)
    email = Column(String(255), nullable=False)
    purpose = Column(String(32), nullable=False)
    code_digest = Column(String(64), nullable=False)
    attempts = Column(Integer, nullable=False, default=0)
    consumed = Column(Boolean, nullable=False, default=False)
    expires_at = Column(DateTime(timezone=True), nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
