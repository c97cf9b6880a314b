from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from cancellation_engine.core.config import settings

DATABASE_URL = settings.database_url


def _build_engine(url: str):
    if url.startswith("sqlite"):
        connect_args = {"check_same_thread": False}
        if url in ("sqlite://", "sqlite:///:memory:"):
            # One shared connection so every session sees the same in-memory database
            return create_engine(url, echo=settings.DB_ECHO, connect_args=connect_args, poolclass=StaticPool)
        return create_engine(url, echo=settings.DB_ECHO, connect_args=connect_args)

    return create_engine(
        url,
        echo=settings.DB_ECHO,
        pool_pre_ping=True,  # Verify connections before using
        pool_size=5,
        max_overflow=10
    )


engine = _build_engine(DATABASE_URL)

# Create session factory
SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)


def get_db_session():
    """
    Returns a new database session.
    Every engine operation is one unit of work on its own session;
    close it when the operation returns.
    """
    return SessionLocal()
