"""
SQLAlchemy engine and session wiring for the relational storage backend.
"""

from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import declarative_base, sessionmaker


Base = declarative_base()


def create_db_engine(database_url: str, pool_size: int = 5, max_overflow: int = 10) -> Engine:
    """
    Create an engine with a bounded connection pool.

    SQLite gets its default pool (and cross-thread access, since queries run
    in worker threads); every other database gets ``pool_size`` persistent
    connections plus up to ``max_overflow`` extra ones.
    """
    if database_url.startswith("sqlite"):
        return create_engine(database_url, connect_args={"check_same_thread": False})

    return create_engine(
        database_url,
        pool_size=pool_size,
        max_overflow=max_overflow,
        pool_pre_ping=True,
    )


def create_session_factory(engine: Engine) -> sessionmaker:
    return sessionmaker(autocommit=False, autoflush=False, expire_on_commit=False, bind=engine)
