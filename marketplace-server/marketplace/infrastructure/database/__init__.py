"""Database infrastructure helpers (engine, sessions, migrations)."""

from .base import Base
from .session import build_engine, build_session_factory, get_engine, get_session, init_db

__all__ = ["Base", "build_engine", "build_session_factory", "get_engine", "get_session", "init_db"]
