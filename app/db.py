"""
Database connection and setup
SQLAlchemy engine and session factory, built once by the app factory
"""
from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool
from fastapi import Request
from app.models import Base


def make_engine(database_url: str) -> Engine:
    """
    Create the engine for database_url
    SQLite needs check_same_thread=False for the threadpool, and an in-memory
    database must share one connection
    """
    kwargs = {"echo": False}  # Set to True to see SQL queries
    if database_url.startswith("sqlite"):
        kwargs["connect_args"] = {"check_same_thread": False}
        if database_url in ("sqlite://", "sqlite:///:memory:"):
            kwargs["poolclass"] = StaticPool
    return create_engine(database_url, **kwargs)


def make_session_factory(engine: Engine) -> sessionmaker:
    return sessionmaker(autocommit=False, autoflush=False, bind=engine)


def init_db(engine: Engine) -> None:
    """
    Initialize database - create all tables
    Safe to call multiple times (won't recreate existing tables)
    """
    Base.metadata.create_all(bind=engine)


def get_db(request: Request):
    """
    Get database session - use in FastAPI dependencies
    Yields a session and closes it when done
    """
    db: Session = request.app.state.session_factory()
    try:
        yield db
    finally:
        db.close()
