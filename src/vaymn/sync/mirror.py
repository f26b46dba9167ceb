"""Persistence mirror between the remote store and the local database.

Reads are remote-first: a successful remote fetch overwrites the local copy
(remote wins), and any remote failure falls back to the local copy, then to
the bootstrap data set. Writes land locally first and are then pushed to the
remote store on a best-effort basis (local wins until the next successful
read). Remote failures are logged and never raised.

Each collection has its own lock, so mutations and read-refreshes of the
same collection run one at a time.
"""

import asyncio
import logging
from contextlib import AsyncExitStack, asynccontextmanager
from pathlib import Path
from typing import AsyncIterator, Callable, Optional, Union

from ..backup.snapshot import build_snapshot, parse_snapshot, write_snapshot
from ..db.bootstrap import initial_admins, initial_books, initial_users
from ..db.schemas import Book, Collection, Entity, User
from ..db.sqlite import Database
from .remote import RemoteStore, RemoteStoreError

logger = logging.getLogger(__name__)

SESSION_KEY = "vaymn_session"

LOCAL_KEYS = {
    Collection.BOOKS: "vaymn_books",
    Collection.USERS: "vaymn_users",
    Collection.ADMINS: "vaymn_admins",
}

ORDER_BY = {
    Collection.BOOKS: "title",
    Collection.USERS: "name",
    Collection.ADMINS: "name",
}

MODELS: dict[Collection, type[Entity]] = {
    Collection.BOOKS: Book,
    Collection.USERS: User,
    Collection.ADMINS: User,
}

BOOTSTRAP: dict[Collection, Callable[[], list]] = {
    Collection.BOOKS: initial_books,
    Collection.USERS: initial_users,
    Collection.ADMINS: initial_admins,
}

# Errors a remote round-trip may end with. ValueError covers undecodable
# bodies and rows that fail model validation.
REMOTE_ERRORS = (RemoteStoreError, ValueError)


def upsert_row(rows: list[Entity], entity: Entity) -> list[Entity]:
    """Replace the row with the same id in place, or append."""
    updated = [entity if row.id == entity.id else row for row in rows]
    if not any(row.id == entity.id for row in rows):
        updated.append(entity)
    return updated


def remove_row(rows: list[Entity], entity_id: str) -> list[Entity]:
    """Drop every row with the given id."""
    return [row for row in rows if row.id != entity_id]


class PersistenceMirror:
    """Keeps a local mirror of books, users and admins plus the session."""

    def __init__(self, db: Database, remote: Optional[RemoteStore] = None):
        """Initialize the mirror.

        Args:
            db: Local database holding the mirror keys
            remote: Remote store, or None to run purely locally
        """
        self.db = db
        self.remote = remote
        self._locks = {collection: asyncio.Lock() for collection in Collection}

    def is_cloud_enabled(self) -> bool:
        """Whether a remote store is configured (not whether it is reachable)."""
        return self.remote is not None

    async def test_cloud_connection(self) -> bool:
        """Probe the remote store. Never raises."""
        if self.remote is None:
            return False
        try:
            return await asyncio.to_thread(self.remote.ping)
        except REMOTE_ERRORS as e:
            logger.warning("Remote connection test failed: %s", e)
            return False

    # ========================================================================
    # Local Helpers
    # ========================================================================

    def _read_local(self, collection: Collection) -> list[Entity]:
        """Local copy of a collection, or bootstrap data if never written."""
        data = self.db.read_key(LOCAL_KEYS[collection])
        if data is None:
            return BOOTSTRAP[collection]()
        model = MODELS[collection]
        return [model.model_validate(row) for row in data]

    def _write_local(self, collection: Collection, rows: list[Entity]) -> None:
        self.db.write_key(LOCAL_KEYS[collection], [row.to_row() for row in rows])

    @asynccontextmanager
    async def _all_locks(self) -> AsyncIterator[None]:
        """Hold every collection lock, acquired in a fixed order."""
        async with AsyncExitStack() as stack:
            for collection in Collection:
                await stack.enter_async_context(self._locks[collection])
            yield

    async def _best_effort(self, description: str, func: Callable, *args) -> bool:
        """Run a blocking remote call in a worker thread, swallowing failures."""
        if self.remote is None:
            return False
        try:
            await asyncio.to_thread(func, *args)
            return True
        except REMOTE_ERRORS as e:
            logger.warning("Remote %s failed, keeping local copy: %s", description, e)
            return False

    # ========================================================================
    # Seeding
    # ========================================================================

    async def seed_if_empty(self) -> None:
        """Populate an empty remote store with the bootstrap data set."""
        if self.remote is None:
            return
        try:
            count = await asyncio.to_thread(self.remote.count, Collection.BOOKS.value)
            if count != 0:
                logger.debug("Remote store has %d books, not seeding", count)
                return
            for collection, factory in BOOTSTRAP.items():
                rows = [row.to_remote_row() for row in factory()]
                await asyncio.to_thread(self.remote.insert, collection.value, rows)
            logger.info("Seeded remote store with bootstrap data")
        except REMOTE_ERRORS as e:
            logger.warning("Database seeding skipped, tables likely not created yet: %s", e)

    async def force_seed(self) -> dict[str, list[Entity]]:
        """Repopulate both stores with the bootstrap data set.

        Returns:
            The seeded collections keyed by name
        """
        seeded = {collection: factory() for collection, factory in BOOTSTRAP.items()}
        async with self._all_locks():
            self.db.write_keys({
                LOCAL_KEYS[collection]: [row.to_row() for row in rows]
                for collection, rows in seeded.items()
            })
            if self.remote is not None:
                for collection, rows in seeded.items():
                    await self._best_effort(
                        f"seed of {collection.value}",
                        self.remote.upsert,
                        collection.value,
                        [row.to_remote_row() for row in rows],
                    )
        logger.info("Force-seeded local mirror%s", " and remote store" if self.remote else "")
        return {collection.value: rows for collection, rows in seeded.items()}

    # ========================================================================
    # Collection Operations
    # ========================================================================

    async def get_collection(self, collection: Union[Collection, str]) -> list[Entity]:
        """Read a collection, remote first, refreshing the local mirror."""
        collection = Collection(collection)
        async with self._locks[collection]:
            if self.remote is not None:
                try:
                    data = await asyncio.to_thread(
                        self.remote.select, collection.value, ORDER_BY[collection]
                    )
                    model = MODELS[collection]
                    rows = [model.model_validate(row) for row in data]
                except REMOTE_ERRORS as e:
                    logger.warning(
                        "Remote read of %s failed, using local mirror: %s",
                        collection.value,
                        e,
                    )
                else:
                    self._write_local(collection, rows)
                    logger.debug("Refreshed %s from remote (%d rows)", collection.value, len(rows))
                    return rows
            return self._read_local(collection)

    async def upsert(self, collection: Union[Collection, str], entity: Entity) -> None:
        """Insert or replace an entity by id."""
        collection = Collection(collection)
        entity = MODELS[collection].model_validate(entity)
        async with self._locks[collection]:
            self._write_local(collection, upsert_row(self._read_local(collection), entity))
            if self.remote is not None:
                await self._best_effort(
                    f"upsert of {collection.value}/{entity.id}",
                    self.remote.upsert,
                    collection.value,
                    [entity.to_remote_row()],
                )

    async def delete(self, collection: Union[Collection, str], entity_id: str) -> None:
        """Remove an entity by id. Missing ids are ignored."""
        collection = Collection(collection)
        async with self._locks[collection]:
            self._write_local(collection, remove_row(self._read_local(collection), entity_id))
            if self.remote is not None:
                await self._best_effort(
                    f"delete of {collection.value}/{entity_id}",
                    self.remote.delete,
                    collection.value,
                    entity_id,
                )

    async def get_books(self) -> list[Book]:
        return await self.get_collection(Collection.BOOKS)

    async def get_users(self) -> list[User]:
        return await self.get_collection(Collection.USERS)

    async def get_admins(self) -> list[User]:
        return await self.get_collection(Collection.ADMINS)

    async def update_book(self, book: Book) -> None:
        await self.upsert(Collection.BOOKS, book)

    async def update_user(self, user: User) -> None:
        await self.upsert(Collection.USERS, user)

    async def update_admin(self, admin: User) -> None:
        await self.upsert(Collection.ADMINS, admin)

    async def delete_book(self, book_id: str) -> None:
        await self.delete(Collection.BOOKS, book_id)

    async def delete_user(self, user_id: str) -> None:
        await self.delete(Collection.USERS, user_id)

    async def delete_admin(self, admin_id: str) -> None:
        await self.delete(Collection.ADMINS, admin_id)

    async def save_all_books(self, books: list[Book]) -> None:
        """Replace the whole book collection with one write each side."""
        books = [Book.model_validate(book) for book in books]
        async with self._locks[Collection.BOOKS]:
            self._write_local(Collection.BOOKS, books)
            if self.remote is not None:
                await self._best_effort(
                    "bulk upsert of books",
                    self.remote.upsert,
                    Collection.BOOKS.value,
                    [book.to_remote_row() for book in books],
                )

    # ========================================================================
    # Session (device-local, never synced)
    # ========================================================================

    async def get_current_user(self) -> Optional[User]:
        data = self.db.read_key(SESSION_KEY)
        return User.model_validate(data) if data else None

    async def save_session(self, user: Optional[User]) -> None:
        self.db.write_key(SESSION_KEY, user.to_row() if user else None)

    # ========================================================================
    # Export / Import / Reset
    # ========================================================================

    async def export_full_database(self, output_path: Optional[Path] = None) -> Path:
        """Write a snapshot of all three collections and return its path."""
        snapshot = build_snapshot(
            books=await self.get_books(),
            users=await self.get_users(),
            admins=await self.get_admins(),
        )
        path = write_snapshot(snapshot, output_path)
        logger.info("Exported %d books to %s", len(snapshot.books), path)
        return path

    async def import_database(self, content: str) -> bool:
        """Replace the local mirror with a snapshot.

        Nothing is written unless the whole snapshot validates. The three
        collections are written in one transaction.
        """
        snapshot = parse_snapshot(content)
        if snapshot is None:
            return False
        async with self._all_locks():
            self.db.write_keys({
                LOCAL_KEYS[Collection.BOOKS]: [book.to_row() for book in snapshot.books],
                LOCAL_KEYS[Collection.USERS]: [user.to_row() for user in snapshot.users],
                LOCAL_KEYS[Collection.ADMINS]: [admin.to_row() for admin in snapshot.admins],
            })
        logger.info("Imported snapshot with %d books", len(snapshot.books))
        return True

    async def factory_reset(self) -> None:
        """Clear every local key, session included."""
        async with self._all_locks():
            self.db.clear()
        logger.info("Local mirror cleared")
