"""Shared helpers: test settings, a throwaway SQLite database and a recording email sender."""

import tempfile
from pathlib import Path

from lexauth.core.config import Settings
from lexauth.core.database import create_db_engine, create_session_factory
from lexauth.models import Base

TEST_SECRET = "lexauth-test-secret-0123456789abcdef0123456789"


def make_settings(**overrides: object) -> Settings:
    """Settings isolated from the environment's .env file; bcrypt at minimum cost for speed."""
    values: dict[str, object] = {
        "APP_ENV": "dev",
        "DATABASE_URL": "sqlite://",
        "JWT_SECRET": TEST_SECRET,
        "JWT_EXPIRES_IN": "1h",
        "BCRYPT_ROUNDS": 4,
    }
    values.update(overrides)
    return Settings(_env_file=None, **values)


class TempDatabase:
    """File-backed SQLite database with the schema created; call close() when done."""

    def __init__(self) -> None:
        self._dir = tempfile.TemporaryDirectory()
        url = f"sqlite:///{Path(self._dir.name) / 'lexauth-test.db'}"
        self.engine = create_db_engine(url)
        Base.metadata.create_all(self.engine)
        self.session_factory = create_session_factory(self.engine)

    def close(self) -> None:
        self.engine.dispose()
        self._dir.cleanup()


class RecordingEmailSender:
    """Captures one-time codes instead of sending them."""

    def __init__(self) -> None:
        self.sent: list[tuple[str, str, str]] = []

    def send_one_time_code(self, address: str, code: str, purpose: str) -> None:
        self.sent.append((address, code, purpose))

    def last_code(self) -> str:
        return self.sent[-1][1]
