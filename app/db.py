"""
Database connection and setup
SQLite (or any SQLAlchemy URL) backing store for persisted named caches
"""
from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import sessionmaker
from app.models import Base


def make_engine(database_url: str) -> Engine:
    """
    Create an engine for the cache database
    check_same_thread is disabled so background refresh threads can share it
    """
    connect_args = {}
    if database_url.startswith("sqlite"):
        connect_args["check_same_thread"] = False  # Needed for SQLite
    return create_engine(
        database_url,
        connect_args=connect_args,
        echo=False  # Set to True to see SQL queries
    )


def make_session_factory(engine: Engine) -> sessionmaker:
    """Session factory bound to an engine"""
    return sessionmaker(autocommit=False, autoflush=False, expire_on_commit=False, bind=engine)


def init_db(engine: Engine):
    """
    Initialize database - create all tables
    Safe to call multiple times (won't recreate existing tables)
    """
    Base.metadata.create_all(bind=engine)
