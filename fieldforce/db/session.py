"""Database engine, session factory, and dependency injection."""

from typing import Generator

from fastapi import Request
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker, Session
from sqlalchemy.pool import StaticPool

from fieldforce.core.config import Settings
from fieldforce.db.base import Base


class Database:
    """Owns the engine and session factory for one application instance."""

    def __init__(self, url: str, echo: bool = False):
        if url.startswith("sqlite"):
            kwargs = {"connect_args": {"check_same_thread": False}}
            if ":memory:" in url or url.rstrip("/") == "sqlite:":
                kwargs["poolclass"] = StaticPool
        else:
            kwargs = {
                "pool_size": 20,
                "max_overflow": 80,
                "pool_timeout": 30,
                "pool_recycle": 1800,
                "pool_pre_ping": True,
            }
        self.engine = create_engine(url, echo=echo, **kwargs)
        self.SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=self.engine)

    @classmethod
    def from_settings(cls, settings: Settings) -> "Database":
        return cls(settings.DATABASE_URL, echo=settings.DB_ECHO)

    def create_all(self) -> None:
        """Create every table known to the models package."""
        import fieldforce.models  # noqa: F401  (registers tables on Base)

        Base.metadata.create_all(bind=self.engine)

    def session(self) -> Session:
        return self.SessionLocal()

    def dispose(self) -> None:
        self.engine.dispose()


def get_db(request: Request) -> Generator[Session, None, None]:
    """FastAPI dependency that provides a DB session per request."""
    db = request.app.state.database.session()
    try:
        yield db
    finally:
        db.close()
