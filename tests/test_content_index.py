"""
Test the content index.

Verifies path and hash lookups, upsert conflict handling and re-keying.
"""

import sqlite3
import threading

import pytest

from registry_store import ContentIndexError
from registry_store.storage.content_index import ContentIndex


class TestContentIndex:
    """Test the SQLite-backed path -> hash index."""

    @pytest.fixture
    def index(self, tmp_path):
        """Create a fresh index for testing."""
        index = ContentIndex(tmp_path / "pindb")
        yield index
        index.close()

    def test_lookup_missing_path(self, index):
        """A path that was never published is a miss, not an error."""
        assert index.lookup("/never/written") is None
        assert index.lookup_by_hash("nohash") is None

    def test_upsert_then_lookup(self, index):
        """Upserted entries are found by path and by hash."""
        index.upsert("/repo/a", "hash-a", "repo")

        entry = index.lookup("/repo/a")
        assert entry.path == "/repo/a"
        assert entry.content_hash == "hash-a"
        assert entry.collection == "repo"
        assert entry.timestamp

        by_hash = index.lookup_by_hash("hash-a")
        assert by_hash == entry

    def test_upsert_replaces_hash(self, index):
        """Re-publishing a path replaces its hash; one entry per path."""
        index.upsert("/repo/a", "hash-1", "repo")
        index.upsert("/repo/a", "hash-2", "repo")

        assert index.lookup("/repo/a").content_hash == "hash-2"
        assert len(index.entries()) == 1

    def test_upsert_preserves_collection(self, index):
        """The collection from the first publication is kept on conflict."""
        index.upsert("/repo/a", "hash-1", "first")
        index.upsert("/repo/a", "hash-2", "second")

        assert index.lookup("/repo/a").collection == "first"

    def test_upsert_rejects_empty_hash(self, index):
        """An entry never holds an empty hash."""
        with pytest.raises(ContentIndexError):
            index.upsert("/repo/a", "", "repo")
        assert index.lookup("/repo/a") is None

    def test_schema_layout(self, index, tmp_path):
        """The table layout is readable by other tools."""
        index.upsert("/repo/a", "hash-a", "repo")

        conn = sqlite3.connect(str(tmp_path / "pindb"))
        try:
            row = conn.execute(
                "SELECT hash, time, filename, image FROM pinlist WHERE filename = ?",
                ("/repo/a",),
            ).fetchone()
        finally:
            conn.close()

        assert row[0] == "hash-a"
        assert row[2] == "/repo/a"
        assert row[3] == "repo"

    def test_hash_column_indexed(self, index, tmp_path):
        """Lookups by hash use an index instead of scanning the table."""
        conn = sqlite3.connect(str(tmp_path / "pindb"))
        try:
            names = [
                row[0] for row in conn.execute(
                    "SELECT name FROM sqlite_master WHERE type = 'index' AND tbl_name = 'pinlist'"
                )
            ]
            plan = conn.execute(
                "EXPLAIN QUERY PLAN SELECT hash, time, filename, image "
                "FROM pinlist WHERE hash = ? LIMIT 1",
                ("hash-a",),
            ).fetchall()
        finally:
            conn.close()

        assert "pinlist_hash" in names
        assert any("pinlist_hash" in str(row[-1]) for row in plan)

    def test_rename_file_entry(self, index):
        """Renaming moves the entry and replaces one at the destination."""
        index.upsert("/uploads/data", "hash-new", "")
        index.upsert("/blobs/data", "hash-old", "")

        moved = index.rename("/uploads/data", "/blobs/data")

        assert moved == 1
        assert index.lookup("/uploads/data") is None
        assert index.lookup("/blobs/data").content_hash == "hash-new"

    def test_rename_subtree(self, index):
        """Renaming a directory re-keys every entry below it, and only those."""
        index.upsert("/dir/a", "hash-a", "")
        index.upsert("/dir/sub/b", "hash-b", "")
        index.upsert("/dirty/c", "hash-c", "")

        moved = index.rename("/dir", "/moved")

        assert moved == 2
        assert index.lookup("/moved/a").content_hash == "hash-a"
        assert index.lookup("/moved/sub/b").content_hash == "hash-b"
        assert index.lookup("/dirty/c").content_hash == "hash-c"

    def test_persists_across_reopen(self, tmp_path):
        """Entries survive closing and reopening the database."""
        index = ContentIndex(tmp_path / "pindb")
        index.upsert("/repo/a", "hash-a", "repo")
        index.close()

        reopened = ContentIndex(tmp_path / "pindb")
        try:
            assert reopened.lookup("/repo/a").content_hash == "hash-a"
        finally:
            reopened.close()

    def test_concurrent_upserts(self, index):
        """Concurrent callers each get their entry recorded."""
        def publish(n):
            for i in range(20):
                index.upsert(f"/t{n}/f{i}", f"hash-{n}-{i}", f"t{n}")

        threads = [threading.Thread(target=publish, args=(n,)) for n in range(4)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

        assert len(index.entries()) == 80

    def test_closed_index_raises(self, tmp_path):
        """Queries against a closed index surface as ContentIndexError."""
        index = ContentIndex(tmp_path / "pindb")
        index.close()

        with pytest.raises(ContentIndexError):
            index.lookup("/repo/a")
