"""Thread repository: the only writer of persisted conversation threads."""

from __future__ import annotations

import copy
import logging
from typing import Any

from .exceptions import StorageError
from .models import (
    DEFAULT_THREAD_TITLE,
    Message,
    Role,
    Thread,
    generate_id,
    utc_now_iso,
)
from .persistence import THREADS_KEY, DocumentStore

LOGGER = logging.getLogger(__name__)

TITLE_MAX_CHARS = 50
TITLE_ELLIPSIS = "..."


def derive_title(content: str) -> str:
    """Build a thread title from the first user message."""
    if len(content) > TITLE_MAX_CHARS:
        return content[:TITLE_MAX_CHARS] + TITLE_ELLIPSIS
    return content


class ThreadRepository:
    """Create, mutate, and look up threads held in a document store.

    The collection is loaded once by :meth:`load` (or lazily on first use) and
    every mutation rewrites the whole collection.  Callers always receive
    copies, so mutating a returned :class:`Thread` never changes stored state.
    Storage failures are logged and absorbed: reads degrade to an empty
    collection and writes are dropped while the in-memory result is still
    returned.
    """

    def __init__(self, store: DocumentStore, key: str = THREADS_KEY) -> None:
        self.store = store
        self.key = key
        self._threads: list[Thread] | None = None

    def load(self) -> list[Thread]:
        """(Re)read the collection from storage and return a snapshot."""
        self._threads = self._read()
        return self._snapshot(self._threads)

    def _read(self) -> list[Thread]:
        try:
            document = self.store.read(self.key)
        except StorageError as exc:
            LOGGER.error(
                "repository.load_failed",
                extra={"event": "repository.load_failed", "reason": str(exc)},
            )
            return []
        if document is None:
            return []
        if not isinstance(document, list):
            LOGGER.warning(
                "repository.load_invalid",
                extra={
                    "event": "repository.load_invalid",
                    "document_type": type(document).__name__,
                },
            )
            return []

        threads: list[Thread] = []
        seen: set[str] = set()
        for item in document:
            thread = Thread.from_dict(item)
            if thread is None or thread.id in seen:
                continue
            seen.add(thread.id)
            threads.append(thread)
        return threads

    def _collection(self) -> list[Thread]:
        if self._threads is None:
            self._threads = self._read()
        return self._threads

    def _save(self) -> None:
        payload: list[dict[str, Any]] = [t.to_dict() for t in self._collection()]
        try:
            self.store.write(self.key, payload)
        except StorageError as exc:
            LOGGER.error(
                "repository.save_failed",
                extra={"event": "repository.save_failed", "reason": str(exc)},
            )

    @staticmethod
    def _snapshot(threads: list[Thread]) -> list[Thread]:
        return copy.deepcopy(threads)

    def _find(self, thread_id: str) -> Thread | None:
        for thread in self._collection():
            if thread.id == thread_id:
                return thread
        return None

    def list_threads(self) -> list[Thread]:
        """Return all threads, most recently created first."""
        return self._snapshot(self._collection())

    def get_thread(self, thread_id: str) -> Thread | None:
        thread = self._find(thread_id)
        return copy.deepcopy(thread) if thread is not None else None

    def create_thread(self, title: str = DEFAULT_THREAD_TITLE) -> Thread:
        """Create an empty thread and prepend it to the collection."""
        threads = self._collection()
        existing = {thread.id for thread in threads}
        thread_id = generate_id()
        while thread_id in existing:
            thread_id = generate_id()

        now = utc_now_iso()
        thread = Thread(id=thread_id, title=title, created_at=now, updated_at=now)
        threads.insert(0, thread)
        self._save()
        LOGGER.info(
            "repository.thread_created",
            extra={"event": "repository.thread_created", "thread_id": thread_id},
        )
        return copy.deepcopy(thread)

    def delete_thread(self, thread_id: str) -> list[Thread]:
        """Remove a thread if present and return the remaining collection."""
        threads = self._collection()
        threads[:] = [thread for thread in threads if thread.id != thread_id]
        self._save()
        return self._snapshot(threads)

    def update_thread(self, thread_id: str, *, title: str | None = None) -> Thread | None:
        """Apply explicit updates to a thread; ``None`` if it does not exist."""
        thread = self._find(thread_id)
        if thread is None:
            return None
        if title is not None:
            normalized = title.strip()
            if not normalized:
                raise ValueError("Thread title must not be empty.")
            thread.title = normalized
        thread.updated_at = utc_now_iso()
        self._save()
        return copy.deepcopy(thread)

    def rename_thread(self, thread_id: str, title: str) -> Thread | None:
        return self.update_thread(thread_id, title=title)

    def append_message(
        self,
        thread_id: str,
        role: Role,
        content: str,
        model: str | None = None,
        usage: Any | None = None,
        time_taken: float | None = None,
    ) -> Thread | None:
        """Append a message to a thread and persist the collection.

        Returns ``None`` without touching storage when the thread is unknown.
        The first message of a thread, when written by the user, also becomes
        the thread title.
        """
        thread = self._find(thread_id)
        if thread is None:
            LOGGER.info(
                "repository.thread_missing",
                extra={"event": "repository.thread_missing", "thread_id": thread_id},
            )
            return None

        existing = {message.id for message in thread.messages}
        message_id = generate_id()
        while message_id in existing:
            message_id = generate_id()

        now = utc_now_iso()
        message = Message(
            id=message_id,
            role=Role(role),
            content=content,
            timestamp=now,
            model=model,
            usage=usage,
            time_taken=time_taken,
        )
        thread.messages.append(message)
        thread.updated_at = now

        if len(thread.messages) == 1 and message.role is Role.USER:
            thread.title = derive_title(content)

        self._save()
        return copy.deepcopy(thread)
