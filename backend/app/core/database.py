from fastapi import Request
from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import declarative_base, sessionmaker
from sqlalchemy.pool import StaticPool

# Base class for all database models
# All models inherit from this to get SQLAlchemy ORM functionality
Base = declarative_base()


def build_engine(database_url: str) -> Engine:
    """
    Create database engine - manages connection pool.

    SQLite URLs (used by tests and local runs) need the same-thread check
    disabled because FastAPI serves sync dependencies from a threadpool.
    An in-memory SQLite database must share one connection or every session
    would see an empty schema.
    """
    if database_url.startswith("sqlite"):
        kwargs = {"connect_args": {"check_same_thread": False}}
        if database_url in ("sqlite://", "sqlite:///:memory:"):
            kwargs["poolclass"] = StaticPool
        return create_engine(database_url, **kwargs)
    return create_engine(database_url, pool_pre_ping=True)


def build_session_factory(engine: Engine) -> sessionmaker:
    # autocommit=False: Changes require explicit commit
    # expire_on_commit=False: response models read attributes after commit
    return sessionmaker(autocommit=False, autoflush=False, expire_on_commit=False, bind=engine)


def get_db(request: Request):
    """
    Dependency for getting database session.

    The session factory lives on app.state (set up by create_app), so tests
    can run the whole app against their own engine.
    The session is automatically closed after the request completes.
    """
    db = request.app.state.session_factory()
    try:
        yield db
    finally:
        # Always close session, even if request raises an exception
        db.close()
