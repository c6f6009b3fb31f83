"""SQLAlchemy engine and session factory construction."""

from sqlalchemy import create_engine, text
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker

from lexauth.core.config import Settings


def create_db_engine(database_url: str, *, echo: bool = False) -> Engine:
    """Build an engine; SQLite connections may be shared across request threads."""
    connect_args = {}
    if database_url.startswith("sqlite"):
        connect_args["check_same_thread"] = False
    return create_engine(
        database_url,
        pool_pre_ping=True,
        echo=echo,
        connect_args=connect_args,
    )


def create_session_factory(engine: Engine) -> sessionmaker[Session]:
    return sessionmaker(autocommit=False, autoflush=False, expire_on_commit=False, bind=engine)


def session_factory_from_settings(settings: Settings) -> sessionmaker[Session]:
    """Engine and session factory for the configured DATABASE_URL."""
    engine = create_db_engine(settings.DATABASE_URL, echo=settings.DEBUG)
    return create_session_factory(engine)


def check_db_connected(db: Session) -> bool:
    """Run a trivial query to verify the database is reachable."""
    try:
        db.execute(text("SELECT 1"))
        return True
    except Exception:
        return False
