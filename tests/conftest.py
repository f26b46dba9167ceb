"""Pytest configuration and shared fixtures.

This module provides fixtures for testing vaymn, including in-memory
databases, sample entities and a fake remote store.
"""

import tempfile
from pathlib import Path
from typing import Generator, Optional

import pytest

from vaymn.config import reset_config
from vaymn.db.schemas import Book, User, UserRole
from vaymn.db.sqlite import Database, reset_db
from vaymn.sync.mirror import PersistenceMirror
from vaymn.sync.remote import RemoteStoreError


# ============================================================================
# Fake Remote Store
# ============================================================================


class FakeRemoteStore:
    """In-memory stand-in for RemoteStore.

    Tables hold rows keyed by id. Upserts merge the columns sent into any
    existing row, and bulk writes reject rows with differing key sets, as
    PostgREST does. Setting ``reachable = False`` makes every
    call fail the way a network outage does.
    """

    def __init__(self):
        self.tables: dict[str, dict[str, dict]] = {"books": {}, "users": {}, "admins": {}}
        self.reachable = True
        self.calls: list[tuple] = []

    def _check(self, *call) -> None:
        self.calls.append(call)
        if not self.reachable:
            raise RemoteStoreError("Request failed: connection refused")

    def rows(self, table: str) -> list[dict]:
        return list(self.tables[table].values())

    def select(self, table: str, order: Optional[str] = None) -> list[dict]:
        self._check("select", table)
        rows = self.rows(table)
        if order:
            rows.sort(key=lambda row: row.get(order, ""))
        return rows

    def count(self, table: str) -> int:
        self._check("count", table)
        return len(self.tables[table])

    def ping(self) -> bool:
        self.calls.append(("ping",))
        return self.reachable

    @staticmethod
    def _check_keys(rows: list[dict]) -> None:
        if len({frozenset(row) for row in rows}) > 1:
            raise RemoteStoreError("HTTP 400: All object keys must match")

    def insert(self, table: str, rows: list[dict]) -> None:
        self._check("insert", table, len(rows))
        self._check_keys(rows)
        for row in rows:
            self.tables[table][row["id"]] = dict(row)

    def upsert(self, table: str, rows: list[dict]) -> None:
        """Merge rows by id, updating only the columns sent."""
        self._check("upsert", table, len(rows))
        self._check_keys(rows)
        for row in rows:
            self.tables[table].setdefault(row["id"], {}).update(row)

    def delete(self, table: str, row_id: str) -> None:
        self._check("delete", table, row_id)
        self.tables[table].pop(row_id, None)


# ============================================================================
# Database Fixtures
# ============================================================================


@pytest.fixture(scope="function")
def temp_db_path() -> Generator[Path, None, None]:
    """Create a temporary database file path."""
    with tempfile.NamedTemporaryFile(suffix=".db", delete=False) as f:
        db_path = Path(f.name)
    yield db_path
    # Cleanup
    if db_path.exists():
        db_path.unlink()


@pytest.fixture(scope="function")
def db() -> Generator[Database, None, None]:
    """Create an in-memory database."""
    reset_db()
    reset_config()

    database = Database(":memory:")
    database.create_tables()
    yield database

    reset_db()


@pytest.fixture
def remote() -> FakeRemoteStore:
    """Create a reachable, empty fake remote store."""
    return FakeRemoteStore()


@pytest.fixture
def local_mirror(db: Database) -> PersistenceMirror:
    """Mirror with no remote store configured."""
    return PersistenceMirror(db)


@pytest.fixture
def cloud_mirror(db: Database, remote: FakeRemoteStore) -> PersistenceMirror:
    """Mirror backed by the fake remote store."""
    return PersistenceMirror(db, remote)


# ============================================================================
# Sample Data Fixtures
# ============================================================================


@pytest.fixture
def sample_book() -> Book:
    """Create an available sample book."""
    return Book(
        id="bk-gatsby",
        title="The Great Gatsby",
        author="F. Scott Fitzgerald",
        genre="Classic",
        cover_image="https://covers.example.org/gatsby.jpg",
        stand_number="C-12",
        description="A novel of the Jazz Age.",
    )


@pytest.fixture
def sample_user() -> User:
    """Create a sample student account."""
    return User(
        id="usr-ria",
        name="Ria Kulkarni",
        library_id="STU100",
        password="secret",
        email="ria@example.edu",
        role=UserRole.USER,
        xp=10,
    )


@pytest.fixture
def sample_admin() -> User:
    """Create a sample admin account."""
    return User(
        id="adm-om",
        name="Om Joshi",
        library_id="ADM100",
        password="root",
        email="om@example.edu",
        role=UserRole.ADMIN,
    )


# ============================================================================
# CLI Testing Fixtures
# ============================================================================


@pytest.fixture
def cli_runner():
    """Create a Typer CLI test runner."""
    from typer.testing import CliRunner
    return CliRunner()
