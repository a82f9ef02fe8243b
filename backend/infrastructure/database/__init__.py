"""Persistence: ORM models plus the engine and session helpers."""
from .connection import async_session_maker, close_db, get_db, init_db
from .models import Base

__all__ = ["Base", "async_session_maker", "close_db", "get_db", "init_db"]
