"""Database module for entities and local SQLite storage."""

from .models import LocalEntry
from .schemas import Book, Collection, Snapshot, User, UserRole, generate_id
from .sqlite import Database, get_db

__all__ = [
    "LocalEntry",
    "Book",
    "Collection",
    "Snapshot",
    "User",
    "UserRole",
    "generate_id",
    "Database",
    "get_db",
]
