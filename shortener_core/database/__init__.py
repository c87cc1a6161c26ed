from .connection import Base, create_db_engine, create_session_factory
from .tables import URLRow

__all__ = ["Base", "create_db_engine", "create_session_factory", "URLRow"]
