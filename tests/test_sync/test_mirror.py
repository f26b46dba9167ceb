"""Tests for the persistence mirror."""

import asyncio
import json

import pytest

from vaymn.db.bootstrap import initial_admins, initial_books, initial_users
from vaymn.db.schemas import Book, Collection, User
from vaymn.sync.mirror import LOCAL_KEYS, SESSION_KEY, PersistenceMirror, remove_row, upsert_row


def local_rows(mirror: PersistenceMirror, collection: Collection):
    """Raw rows stored in the local mirror for a collection."""
    return mirror.db.read_key(LOCAL_KEYS[collection])


def make_book(book_id: str, title: str) -> Book:
    return Book(id=book_id, title=title, author="Test Author", genre="Test", stand_number="Z-1")


class TestRowHelpers:
    """Tests for the pure upsert/remove helpers."""

    def test_upsert_replaces_in_place(self):
        """Test that a matching id is replaced at the same position."""
        rows = [make_book("a", "A"), make_book("b", "B"), make_book("c", "C")]
        result = upsert_row(rows, make_book("b", "B2"))

        assert [row.id for row in result] == ["a", "b", "c"]
        assert result[1].title == "B2"

    def test_upsert_appends_new_id(self):
        """Test that an unknown id is appended."""
        rows = [make_book("a", "A")]
        result = upsert_row(rows, make_book("z", "Z"))

        assert [row.id for row in result] == ["a", "z"]

    def test_remove_missing_id_is_noop(self):
        """Test removing an id that is not present."""
        rows = [make_book("a", "A")]
        assert remove_row(rows, "nope") == rows


class TestCloudEnabled:
    """Tests for the capability query and connection probe."""

    def test_local_mirror_not_cloud_enabled(self, local_mirror):
        assert local_mirror.is_cloud_enabled() is False

    def test_unreachable_remote_still_enabled(self, cloud_mirror, remote):
        """Test that the flag reflects configuration, not connectivity."""
        remote.reachable = False
        assert cloud_mirror.is_cloud_enabled() is True

    @pytest.mark.asyncio
    async def test_connection_probe(self, cloud_mirror, remote):
        assert await cloud_mirror.test_cloud_connection() is True
        remote.reachable = False
        assert await cloud_mirror.test_cloud_connection() is False

    @pytest.mark.asyncio
    async def test_connection_probe_without_remote(self, local_mirror):
        assert await local_mirror.test_cloud_connection() is False


class TestSeeding:
    """Tests for implicit and forced seeding."""

    @pytest.mark.asyncio
    async def test_seed_if_empty_is_idempotent(self, cloud_mirror, remote):
        """Test that seeding twice produces one set of bootstrap rows."""
        await cloud_mirror.seed_if_empty()
        await cloud_mirror.seed_if_empty()

        assert len(remote.rows("books")) == len(initial_books())
        assert len(remote.rows("users")) == len(initial_users())
        assert len(remote.rows("admins")) == len(initial_admins())
        inserts = [call for call in remote.calls if call[0] == "insert"]
        assert len(inserts) == 3

    @pytest.mark.asyncio
    async def test_seed_skips_non_empty_remote(self, cloud_mirror, remote, sample_book):
        """Test that an existing catalog is left alone."""
        remote.tables["books"][sample_book.id] = sample_book.to_row()

        await cloud_mirror.seed_if_empty()

        assert remote.rows("books") == [sample_book.to_row()]
        assert remote.rows("users") == []

    @pytest.mark.asyncio
    async def test_seed_without_remote_is_noop(self, local_mirror):
        await local_mirror.seed_if_empty()
        assert local_rows(local_mirror, Collection.BOOKS) is None

    @pytest.mark.asyncio
    async def test_seed_unreachable_remote_does_not_raise(self, cloud_mirror, remote):
        remote.reachable = False
        await cloud_mirror.seed_if_empty()
        assert remote.rows("books") == []

    @pytest.mark.asyncio
    async def test_force_seed_populates_both_stores(self, cloud_mirror, remote, sample_book):
        """Test that force seeding overwrites local data and pushes remotely."""
        await cloud_mirror.update_book(sample_book)

        seeded = await cloud_mirror.force_seed()

        assert set(seeded) == {"books", "users", "admins"}
        assert seeded["books"] == initial_books()
        assert local_rows(cloud_mirror, Collection.BOOKS) == [b.to_row() for b in initial_books()]
        assert local_rows(cloud_mirror, Collection.ADMINS) == [a.to_row() for a in initial_admins()]
        remote_ids = {row["id"] for row in remote.rows("books")}
        assert {b.id for b in initial_books()} <= remote_ids

    @pytest.mark.asyncio
    async def test_force_seed_with_unreachable_remote(self, cloud_mirror, remote):
        """Test that force seeding still succeeds locally."""
        remote.reachable = False

        seeded = await cloud_mirror.force_seed()

        assert len(seeded["users"]) == len(initial_users())
        assert local_rows(cloud_mirror, Collection.USERS) == [u.to_row() for u in initial_users()]


class TestReadFallback:
    """Tests for remote-first reads and their fallbacks."""

    @pytest.mark.asyncio
    async def test_no_remote_no_local_returns_bootstrap(self, local_mirror):
        assert await local_mirror.get_books() == initial_books()
        assert await local_mirror.get_users() == initial_users()
        assert await local_mirror.get_admins() == initial_admins()

    @pytest.mark.asyncio
    async def test_unreachable_remote_returns_local(self, cloud_mirror, remote, sample_book):
        """Test that the local copy is returned unchanged during an outage."""
        remote.reachable = False
        await cloud_mirror.save_all_books([sample_book])

        books = await cloud_mirror.get_books()

        assert books == [sample_book]

    @pytest.mark.asyncio
    async def test_unreachable_remote_empty_local_returns_bootstrap(self, cloud_mirror, remote):
        remote.reachable = False
        assert await cloud_mirror.get_books() == initial_books()

    @pytest.mark.asyncio
    async def test_empty_local_list_is_not_bootstrapped(self, local_mirror):
        """Test that an emptied collection stays empty."""
        await local_mirror.save_all_books([])
        assert await local_mirror.get_books() == []

    @pytest.mark.asyncio
    async def test_remote_wins_on_read(self, cloud_mirror, remote, sample_book):
        """Test that a successful read overwrites the local mirror."""
        remote.reachable = False
        await cloud_mirror.update_book(make_book("local-only", "Local Book"))
        remote.reachable = True
        remote.tables["books"][sample_book.id] = sample_book.to_row()

        books = await cloud_mirror.get_books()

        assert books == [sample_book]
        assert local_rows(cloud_mirror, Collection.BOOKS) == [sample_book.to_row()]

    @pytest.mark.asyncio
    async def test_remote_read_is_ordered(self, cloud_mirror, remote):
        for book in [make_book("1", "Zebra"), make_book("2", "Apple"), make_book("3", "Mango")]:
            remote.tables["books"][book.id] = book.to_row()

        books = await cloud_mirror.get_books()

        assert [b.title for b in books] == ["Apple", "Mango", "Zebra"]

    @pytest.mark.asyncio
    async def test_invalid_remote_rows_fall_back_to_local(self, cloud_mirror, remote, sample_user):
        """Test that rows failing validation are treated as a remote failure."""
        remote.reachable = False
        await cloud_mirror.update_user(sample_user)
        remote.reachable = True
        remote.tables["users"]["broken"] = {"id": "broken"}

        users = await cloud_mirror.get_users()

        assert sample_user in users
        assert all(u.id != "broken" for u in users)


class TestWrites:
    """Tests for upsert and delete."""

    @pytest.mark.asyncio
    async def test_write_survives_remote_outage(self, cloud_mirror, remote, sample_book):
        """Test that local durability does not depend on the remote store."""
        await cloud_mirror.update_book(sample_book)
        remote.reachable = False
        remote.tables["books"].clear()

        books = await cloud_mirror.get_books()

        assert sample_book in books

    @pytest.mark.asyncio
    async def test_failed_remote_write_keeps_local(self, cloud_mirror, remote, sample_book):
        remote.reachable = False

        await cloud_mirror.update_book(sample_book)

        assert sample_book.to_row() in local_rows(cloud_mirror, Collection.BOOKS)
        assert remote.rows("books") == []

    @pytest.mark.asyncio
    async def test_write_pushes_to_remote(self, cloud_mirror, remote, sample_book):
        await cloud_mirror.update_book(sample_book)
        assert remote.tables["books"][sample_book.id] == sample_book.to_remote_row()

    @pytest.mark.asyncio
    async def test_update_user_replaces_in_place(self, local_mirror, sample_user):
        """Test that a matching id keeps the collection length."""
        await local_mirror.update_user(sample_user)
        before = await local_mirror.get_users()

        renamed = sample_user.model_copy(update={"name": "Ria K."})
        await local_mirror.update_user(renamed)
        after = await local_mirror.get_users()

        assert len(after) == len(before)
        assert [u.id for u in after] == [u.id for u in before]
        assert next(u for u in after if u.id == sample_user.id).name == "Ria K."

    @pytest.mark.asyncio
    async def test_update_user_appends_new(self, local_mirror, sample_user):
        before = await local_mirror.get_users()

        await local_mirror.update_user(sample_user)
        after = await local_mirror.get_users()

        assert len(after) == len(before) + 1
        assert after[-1] == sample_user

    @pytest.mark.asyncio
    async def test_update_admin(self, cloud_mirror, remote, sample_admin):
        await cloud_mirror.update_admin(sample_admin)

        assert sample_admin in await cloud_mirror.get_admins()
        assert sample_admin.id in remote.tables["admins"]

    @pytest.mark.asyncio
    async def test_delete_book(self, cloud_mirror, remote, sample_book):
        await cloud_mirror.update_book(sample_book)

        await cloud_mirror.delete_book(sample_book.id)

        assert sample_book.id not in remote.tables["books"]
        assert all(b.id != sample_book.id for b in await cloud_mirror.get_books())

    @pytest.mark.asyncio
    async def test_delete_missing_is_noop(self, local_mirror):
        await local_mirror.delete_user("does-not-exist")
        assert await local_mirror.get_users() == initial_users()

    @pytest.mark.asyncio
    async def test_delete_user_and_admin(self, local_mirror, sample_user, sample_admin):
        await local_mirror.update_user(sample_user)
        await local_mirror.update_admin(sample_admin)

        await local_mirror.delete_user(sample_user.id)
        await local_mirror.delete_admin(sample_admin.id)

        assert sample_user not in await local_mirror.get_users()
        assert sample_admin not in await local_mirror.get_admins()

    @pytest.mark.asyncio
    async def test_delete_survives_remote_outage(self, cloud_mirror, remote, sample_book):
        await cloud_mirror.update_book(sample_book)
        remote.reachable = False

        await cloud_mirror.delete_book(sample_book.id)

        assert all(row["id"] != sample_book.id for row in local_rows(cloud_mirror, Collection.BOOKS))

    @pytest.mark.asyncio
    async def test_update_accepts_camel_case_dict(self, local_mirror):
        await local_mirror.upsert(
            Collection.BOOKS,
            {"id": "d1", "title": "Dict Book", "author": "A", "standNumber": "D-1"},
        )
        books = await local_mirror.get_books()
        assert next(b for b in books if b.id == "d1").stand_number == "D-1"

    @pytest.mark.asyncio
    async def test_concurrent_writes_are_not_lost(self, cloud_mirror):
        """Test that parallel upserts on one collection all land."""
        await cloud_mirror.save_all_books([])
        books = [make_book(f"c{i}", f"Concurrent {i}") for i in range(10)]

        await asyncio.gather(*(cloud_mirror.update_book(book) for book in books))

        stored = {row["id"] for row in local_rows(cloud_mirror, Collection.BOOKS)}
        assert stored == {book.id for book in books}


class TestSaveAllBooks:
    """Tests for bulk replacement."""

    @pytest.mark.asyncio
    async def test_save_all_books_replaces_collection(self, cloud_mirror, remote):
        books = [make_book("x", "X"), make_book("y", "Y")]

        await cloud_mirror.save_all_books(books)

        assert local_rows(cloud_mirror, Collection.BOOKS) == [b.to_row() for b in books]
        bulk = [call for call in remote.calls if call[0] == "upsert"]
        assert bulk == [("upsert", "books", 2)]

    @pytest.mark.asyncio
    async def test_mixed_loan_states_reach_remote(self, cloud_mirror, remote, sample_book):
        issued = make_book("x", "X").model_copy(
            update={"is_available": False, "issued_to": "STU001", "waitlist": ["STU002"]}
        )

        await cloud_mirror.save_all_books([sample_book, issued])

        assert set(remote.tables["books"]) == {sample_book.id, "x"}
        assert remote.tables["books"][sample_book.id]["issuedTo"] is None

    @pytest.mark.asyncio
    async def test_cleared_field_is_cleared_remotely(self, cloud_mirror, remote, sample_book):
        await cloud_mirror.update_book(sample_book)

        await cloud_mirror.update_book(sample_book.model_copy(update={"description": None}))

        assert remote.tables["books"][sample_book.id]["description"] is None
        assert (await cloud_mirror.get_books())[0].description is None


class TestSession:
    """Tests for the device-local session."""

    @pytest.mark.asyncio
    async def test_no_session_by_default(self, local_mirror):
        assert await local_mirror.get_current_user() is None

    @pytest.mark.asyncio
    async def test_save_and_clear_session(self, cloud_mirror, remote, sample_user):
        await cloud_mirror.save_session(sample_user)
        assert await cloud_mirror.get_current_user() == sample_user

        await cloud_mirror.save_session(None)
        assert await cloud_mirror.get_current_user() is None
        assert remote.calls == []

    @pytest.mark.asyncio
    async def test_session_stored_under_its_own_key(self, local_mirror, sample_user):
        await local_mirror.save_session(sample_user)
        assert local_mirror.db.read_key(SESSION_KEY)["libraryId"] == "STU100"


class TestExportImport:
    """Tests for full-database export, import and reset."""

    @pytest.mark.asyncio
    async def test_export_writes_snapshot(self, local_mirror, tmp_path):
        path = await local_mirror.export_full_database(tmp_path / "backup.json")

        data = json.loads(path.read_text(encoding="utf-8"))
        assert set(data) == {"books", "users", "admins", "timestamp"}
        assert len(data["books"]) == len(initial_books())
        assert data["timestamp"]

    @pytest.mark.asyncio
    async def test_export_to_directory_uses_default_name(self, local_mirror, tmp_path):
        path = await local_mirror.export_full_database(tmp_path)
        assert path == tmp_path / "vaymn_backup.json"

    @pytest.mark.asyncio
    async def test_import_without_books_is_rejected(self, local_mirror, sample_book):
        """Test that a snapshot without books leaves local state untouched."""
        await local_mirror.save_all_books([sample_book])

        assert await local_mirror.import_database('{"users":[]}') is False

        assert local_rows(local_mirror, Collection.BOOKS) == [sample_book.to_row()]

    @pytest.mark.asyncio
    async def test_import_empty_snapshot_clears_collections(self, local_mirror, sample_book):
        await local_mirror.save_all_books([sample_book])

        ok = await local_mirror.import_database('{"books":[],"users":[],"admins":[]}')

        assert ok is True
        assert await local_mirror.get_books() == []
        assert await local_mirror.get_users() == []
        assert await local_mirror.get_admins() == []

    @pytest.mark.asyncio
    async def test_import_defaults_missing_collections(self, local_mirror, sample_book):
        content = json.dumps({"books": [sample_book.to_row()]})

        assert await local_mirror.import_database(content) is True

        assert await local_mirror.get_books() == [sample_book]
        assert await local_mirror.get_users() == []

    @pytest.mark.asyncio
    async def test_import_malformed_json(self, local_mirror):
        assert await local_mirror.import_database("{not json") is False
        assert local_rows(local_mirror, Collection.BOOKS) is None

    @pytest.mark.asyncio
    async def test_import_invalid_row_writes_nothing(self, local_mirror, sample_book):
        """Test that one bad row rejects the whole snapshot."""
        content = json.dumps({
            "books": [sample_book.to_row(), {"id": "bad", "isAvailable": False}],
            "users": [],
        })

        assert await local_mirror.import_database(content) is False
        assert local_rows(local_mirror, Collection.BOOKS) is None

    @pytest.mark.asyncio
    async def test_export_import_round_trip(self, db, tmp_path, sample_book, sample_user, sample_admin):
        """Test that importing an export reproduces the same collections."""
        source = PersistenceMirror(db)
        await source.update_book(sample_book)
        await source.update_user(sample_user)
        await source.update_admin(sample_admin)
        path = await source.export_full_database(tmp_path / "snap.json")
        expected = {
            "books": {b.id: b for b in await source.get_books()},
            "users": {u.id: u for u in await source.get_users()},
            "admins": {a.id: a for a in await source.get_admins()},
        }

        await source.factory_reset()
        assert await source.import_database(path.read_text(encoding="utf-8")) is True

        assert {b.id: b for b in await source.get_books()} == expected["books"]
        assert {u.id: u for u in await source.get_users()} == expected["users"]
        assert {a.id: a for a in await source.get_admins()} == expected["admins"]

    @pytest.mark.asyncio
    async def test_factory_reset_clears_everything(self, local_mirror, sample_book, sample_user):
        await local_mirror.save_all_books([sample_book])
        await local_mirror.save_session(sample_user)

        await local_mirror.factory_reset()

        assert local_mirror.db.keys() == []
        assert await local_mirror.get_current_user() is None
        assert await local_mirror.get_books() == initial_books()
