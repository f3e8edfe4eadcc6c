from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import DeclarativeBase, sessionmaker

from envkeys.config import settings


class Base(DeclarativeBase):
    pass


_engine: Engine | None = None


def _engine_kwargs(url: str) -> dict:
    if url.startswith("sqlite"):
        return {"connect_args": {"check_same_thread": False}}
    return {
        "pool_pre_ping": True,
        "pool_size": settings.db_pool_size,
        "max_overflow": settings.db_max_overflow,
        "pool_timeout": settings.db_pool_timeout,
        "pool_recycle": settings.db_pool_recycle,
    }


def get_engine() -> Engine:
    global _engine
    if _engine is None:
        url = settings.database_url or "sqlite+pysqlite:///:memory:"
        _engine = create_engine(url, **_engine_kwargs(url))
    return _engine


SessionLocal = sessionmaker(autoflush=False, autocommit=False)


def get_session():
    """Return a new session bound to the configured engine."""
    return SessionLocal(bind=get_engine())


def init_db() -> None:
    """Create any missing tables."""
    import envkeys.models  # noqa: F401

    Base.metadata.create_all(get_engine())
