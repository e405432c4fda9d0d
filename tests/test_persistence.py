"""Tests for JSON document storage."""

from __future__ import annotations

import json
import os
from pathlib import Path
import tempfile
import unittest

from codebase_chat.exceptions import StorageError
from codebase_chat.persistence import (
    THREADS_KEY,
    JsonDocumentStore,
    MemoryDocumentStore,
)


class JsonDocumentStoreTests(unittest.TestCase):
    """Validate read, write, delete, and failure behavior."""

    def test_read_missing_key_returns_none(self) -> None:
        with tempfile.TemporaryDirectory() as temp_dir:
            store = JsonDocumentStore(Path(temp_dir) / "data")
            self.assertIsNone(store.read(THREADS_KEY))

    def test_write_then_read_document(self) -> None:
        with tempfile.TemporaryDirectory() as temp_dir:
            store = JsonDocumentStore(Path(temp_dir) / "data")
            document = [{"id": "a", "title": "Grüße", "messages": []}]
            store.write(THREADS_KEY, document)

            target = store.path_for(THREADS_KEY)
            self.assertEqual(target.name, "chat_threads.json")
            self.assertEqual(json.loads(target.read_text(encoding="utf-8")), document)
            self.assertEqual(store.read(THREADS_KEY), document)
            leftovers = [p for p in target.parent.iterdir() if p.name.endswith(".tmp")]
            self.assertEqual(leftovers, [])

    @unittest.skipUnless(os.name == "posix", "POSIX permissions only")
    def test_written_file_is_private(self) -> None:
        with tempfile.TemporaryDirectory() as temp_dir:
            store = JsonDocumentStore(Path(temp_dir) / "data")
            store.write(THREADS_KEY, [])
            mode = store.path_for(THREADS_KEY).stat().st_mode & 0o777
            self.assertEqual(mode, 0o600)

    def test_invalid_json_raises_storage_error(self) -> None:
        with tempfile.TemporaryDirectory() as temp_dir:
            store = JsonDocumentStore(temp_dir)
            store.path_for(THREADS_KEY).write_text("{not json", encoding="utf-8")
            with self.assertRaises(StorageError):
                store.read(THREADS_KEY)

    def test_non_utf8_file_raises_storage_error(self) -> None:
        with tempfile.TemporaryDirectory() as temp_dir:
            store = JsonDocumentStore(temp_dir)
            store.path_for(THREADS_KEY).write_bytes(b"\xff\xfe[garbage")
            with self.assertRaises(StorageError):
                store.read(THREADS_KEY)

    def test_unserialisable_document_raises_storage_error(self) -> None:
        with tempfile.TemporaryDirectory() as temp_dir:
            store = JsonDocumentStore(temp_dir)
            with self.assertRaises(StorageError):
                store.write(THREADS_KEY, {"bad": object()})
            self.assertIsNone(store.read(THREADS_KEY))

    def test_write_failure_raises_storage_error(self) -> None:
        with tempfile.TemporaryDirectory() as temp_dir:
            blocker = Path(temp_dir) / "blocker"
            blocker.write_text("a file, not a directory", encoding="utf-8")
            store = JsonDocumentStore(blocker)
            with self.assertRaises(StorageError):
                store.write(THREADS_KEY, [])

    def test_delete_is_idempotent(self) -> None:
        with tempfile.TemporaryDirectory() as temp_dir:
            store = JsonDocumentStore(temp_dir)
            store.write(THREADS_KEY, [])
            store.delete(THREADS_KEY)
            store.delete(THREADS_KEY)
            self.assertIsNone(store.read(THREADS_KEY))

    def test_rejects_path_like_keys(self) -> None:
        store = JsonDocumentStore("/tmp")
        with self.assertRaises(ValueError):
            store.path_for("../escape")


class MemoryDocumentStoreTests(unittest.TestCase):
    def test_reads_return_independent_copies(self) -> None:
        store = MemoryDocumentStore()
        store.write(THREADS_KEY, [{"id": "a"}])
        first = store.read(THREADS_KEY)
        first.append({"id": "b"})
        self.assertEqual(store.read(THREADS_KEY), [{"id": "a"}])

    def test_missing_key_returns_none(self) -> None:
        self.assertIsNone(MemoryDocumentStore().read(THREADS_KEY))


if __name__ == "__main__":
    unittest.main()
