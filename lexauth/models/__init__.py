"""SQLAlchemy ORM models."""

from lexauth.models.account import Account
from lexauth.models.base import Base
from lexauth.models.one_time_code import OneTimeCode

__all__ = ["Account", "Base", "OneTimeCode"]
