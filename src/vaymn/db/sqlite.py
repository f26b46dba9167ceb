"""SQLite storage for the local mirror.

Each mirror key (``vaymn_books``, ``vaymn_users``, ``vaymn_admins``,
``vaymn_session``) is one row whose value is a JSON document, so a whole
collection is replaced in a single write.
"""

import os
from contextlib import contextmanager
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Generator, Optional

from sqlalchemy import create_engine, delete, select
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from .models import Base, LocalEntry


class Database:
    """Local mirror storage backed by SQLite."""

    def __init__(self, db_path: Optional[str] = None):
        """Initialize database connection.

        Args:
            db_path: Path to SQLite database file. If None, uses
                     VAYMN_DB_PATH env var or default location.
        """
        if db_path is None:
            db_path = os.environ.get(
                "VAYMN_DB_PATH",
                str(Path.home() / ".vaymn" / "vaymn.db"),
            )

        self.db_path = Path(db_path)
        self._is_memory = str(db_path) == ":memory:"

        if not self._is_memory:
            self._ensure_directory()

        # For in-memory databases, use StaticPool to reuse the same connection
        # This ensures all sessions share the same in-memory database
        if self._is_memory:
            self.engine = create_engine(
                "sqlite:///:memory:",
                echo=False,
                connect_args={"check_same_thread": False},
                poolclass=StaticPool,
            )
        else:
            self.engine = create_engine(
                f"sqlite:///{self.db_path}",
                echo=False,
                connect_args={"check_same_thread": False},
            )
        self.SessionLocal = sessionmaker(bind=self.engine, autocommit=False, autoflush=False)

    def _ensure_directory(self) -> None:
        """Ensure the database directory exists."""
        self.db_path.parent.mkdir(parents=True, exist_ok=True)

    def create_tables(self) -> None:
        """Create all database tables."""
        Base.metadata.create_all(self.engine)

    @contextmanager
    def get_session(self) -> Generator[Session, None, None]:
        """Get a database session context manager."""
        session = self.SessionLocal()
        try:
            yield session
            session.commit()
        except Exception:
            session.rollback()
            raise
        finally:
            session.close()

    # ========================================================================
    # Key Operations
    # ========================================================================

    def read_key(self, key: str, session: Optional[Session] = None) -> Any:
        """Read a key's decoded value, or None if it was never written."""

        def _read(s: Session) -> Any:
            entry = s.get(LocalEntry, key)
            return entry.get_value() if entry else None

        if session:
            return _read(session)
        else:
            with self.get_session() as s:
                return _read(s)

    def write_key(self, key: str, value: Any, session: Optional[Session] = None) -> None:
        """Create or overwrite a key."""

        def _write(s: Session) -> None:
            entry = s.get(LocalEntry, key)
            if entry is None:
                entry = LocalEntry(key=key)
                s.add(entry)
            entry.set_value(value)
            entry.updated_at = datetime.now(timezone.utc).isoformat()

        if session:
            _write(session)
        else:
            with self.get_session() as s:
                _write(s)

    def write_keys(self, values: dict[str, Any]) -> None:
        """Overwrite several keys in one transaction."""
        with self.get_session() as s:
            for key, value in values.items():
                self.write_key(key, value, session=s)

    def delete_key(self, key: str, session: Optional[Session] = None) -> bool:
        """Delete a key. Returns False if it did not exist."""

        def _delete(s: Session) -> bool:
            entry = s.get(LocalEntry, key)
            if not entry:
                return False
            s.delete(entry)
            return True

        if session:
            return _delete(session)
        else:
            with self.get_session() as s:
                return _delete(s)

    def keys(self, session: Optional[Session] = None) -> list[str]:
        """List every stored key."""

        def _keys(s: Session) -> list[str]:
            stmt = select(LocalEntry.key).order_by(LocalEntry.key)
            return list(s.execute(stmt).scalars().all())

        if session:
            return _keys(session)
        else:
            with self.get_session() as s:
                return _keys(s)

    def clear(self) -> None:
        """Remove every key."""
        with self.get_session() as s:
            s.execute(delete(LocalEntry))


# Global database instance
_db: Optional[Database] = None


def get_db(db_path: Optional[str] = None) -> Database:
    """Get or create the global database instance."""
    global _db
    if _db is None:
        _db = Database(db_path)
        _db.create_tables()
    return _db


def reset_db() -> None:
    """Reset the global database instance. Used for testing."""
    global _db
    _db = None
