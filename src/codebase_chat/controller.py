"""Conversation controller: one user-visible send and the session around it."""

from __future__ import annotations

import asyncio
from collections.abc import Iterable, Mapping
import logging
from typing import Any, Protocol

from .exceptions import ChatClientError
from .models import CompletionResult, Role, SearchResult, Thread
from .repository import ThreadRepository
from .search import filter_threads, search_messages
from .state import PendingRequest, PendingRequestTracker, ThreadState
from .task_manager import TaskManager

LOGGER = logging.getLogger(__name__)

DEFAULT_MODEL = "gpt-4.1"
EMPTY_RESPONSE_TEXT = "No response received"
FALLBACK_ERROR_TEXT = "Failed to get response from Lambda"


class Gateway(Protocol):
    """What the controller needs from a completion gateway."""

    def build_payload(
        self, history: Iterable[Mapping[str, Any]], model_id: str
    ) -> dict[str, Any]: ...

    async def complete(
        self, history: Iterable[Mapping[str, Any]], model_id: str
    ) -> CompletionResult: ...


class ConversationController:
    """Orchestrate sends, per-thread pending state, and the active thread.

    Each thread is either IDLE or PENDING.  A send on an IDLE thread appends
    the user message, awaits the gateway, then appends the assistant reply or
    records an error for that thread.  The pending entry is always cleared,
    whatever the outcome.  Different threads may be pending at the same time.
    """

    def __init__(
        self,
        repository: ThreadRepository,
        gateway: Gateway,
        selected_model: str = DEFAULT_MODEL,
    ) -> None:
        self.repository = repository
        self.gateway = gateway
        self.selected_model = selected_model
        self.tracker = PendingRequestTracker()
        self.tasks = TaskManager()
        self.threads: list[Thread] = []
        self.active_thread_id: str | None = None
        self._errors: dict[str, str] = {}

    # -- session -----------------------------------------------------------

    def load(self) -> list[Thread]:
        """Load stored threads and activate the most recent one."""
        self.threads = self.repository.load()
        self.active_thread_id = self.threads[0].id if self.threads else None
        return self.threads

    def _refresh(self) -> None:
        self.threads = self.repository.list_threads()

    @property
    def active_thread(self) -> Thread | None:
        if self.active_thread_id is None:
            return None
        for thread in self.threads:
            if thread.id == self.active_thread_id:
                return thread
        return None

    @property
    def error(self) -> str | None:
        """The error visible for the active thread, if any."""
        if self.active_thread_id is None:
            return None
        return self._errors.get(self.active_thread_id)

    def error_for(self, thread_id: str) -> str | None:
        return self._errors.get(thread_id)

    def clear_error(self, thread_id: str | None = None) -> None:
        """Clear one thread's error, or every error when no id is given."""
        if thread_id is None:
            self._errors.clear()
        else:
            self._errors.pop(thread_id, None)

    def new_thread(self) -> Thread:
        thread = self.repository.create_thread()
        self._refresh()
        self.active_thread_id = thread.id
        self.clear_error()
        return thread

    def select_thread(self, thread_id: str) -> Thread | None:
        thread = self.repository.get_thread(thread_id)
        if thread is None:
            return None
        self.active_thread_id = thread_id
        self.clear_error()
        return thread

    def rename_thread(self, thread_id: str, title: str) -> Thread | None:
        thread = self.repository.rename_thread(thread_id, title)
        self._refresh()
        return thread

    def delete_thread(self, thread_id: str) -> list[Thread]:
        """Delete a thread; an in-flight send to it keeps running but is dropped."""
        self.threads = self.repository.delete_thread(thread_id)
        self._errors.pop(thread_id, None)
        if self.active_thread_id == thread_id:
            self.active_thread_id = self.threads[0].id if self.threads else None
        return self.threads

    def filter_threads(self, query: str) -> list[Thread]:
        return filter_threads(self.threads, query)

    def search(self, query: str) -> list[SearchResult] | None:
        return search_messages(self.repository.list_threads(), query)

    def open_search_result(self, result: SearchResult) -> Thread | None:
        return self.select_thread(result.thread_id)

    # -- request lifecycle -------------------------------------------------

    def state(self, thread_id: str) -> ThreadState:
        return self.tracker.state(thread_id)

    def is_pending(self, thread_id: str) -> bool:
        return self.tracker.is_pending(thread_id)

    def pending_request(self, thread_id: str) -> PendingRequest | None:
        return self.tracker.get(thread_id)

    def _is_busy(self, thread_id: str) -> bool:
        running = self.tasks.get(thread_id)
        return self.tracker.is_pending(thread_id) or (
            running is not None and not running.done()
        )

    def _resolve_thread(self, thread_id: str | None) -> Thread:
        thread = self.repository.get_thread(thread_id) if thread_id else None
        if thread is None:
            thread = self.repository.create_thread()
            self._refresh()
            self.active_thread_id = thread.id
        return thread

    def start_send(
        self, thread_id: str | None, text: str, model_id: str | None = None
    ) -> asyncio.Task[Thread | None] | None:
        """Schedule :meth:`send` as a background task for its thread.

        Returns ``None`` when the send would be a no-op.
        """
        if not text.strip():
            return None
        if thread_id is not None and self._is_busy(thread_id):
            return None
        thread = self._resolve_thread(thread_id)
        task = asyncio.create_task(self.send(thread.id, text, model_id))
        self.tasks.add(thread.id, task)
        return task

    async def send(
        self, thread_id: str | None, text: str, model_id: str | None = None
    ) -> Thread | None:
        """Send ``text`` on a thread and wait for the assistant reply.

        Returns the updated thread on success; ``None`` when the send was a
        no-op, failed, or its thread was deleted while the call was running.
        """
        content = text.strip()
        if not content:
            return None
        if thread_id is not None and self.tracker.is_pending(thread_id):
            LOGGER.info(
                "controller.send.ignored_pending",
                extra={"event": "controller.send.ignored_pending", "thread_id": thread_id},
            )
            return None

        model = model_id or self.selected_model
        thread = self._resolve_thread(thread_id)
        thread_id = thread.id
        self.clear_error(thread_id)

        updated = self.repository.append_message(thread_id, Role.USER, content, model=model)
        if updated is None:
            return None
        self._refresh()

        context = updated.context()
        payload = self.gateway.build_payload(context, model)
        self.tracker.begin(
            thread_id,
            PendingRequest(model=model, message_count=len(context), payload=payload),
        )
        LOGGER.info(
            "controller.send.start",
            extra={
                "event": "controller.send.start",
                "thread_id": thread_id,
                "model": model,
                "message_count": len(context),
            },
        )

        try:
            result = await self.gateway.complete(context, model)
        except ChatClientError as exc:
            if self.repository.get_thread(thread_id) is not None:
                self._errors[thread_id] = str(exc) or FALLBACK_ERROR_TEXT
            LOGGER.warning(
                "controller.send.failed",
                extra={
                    "event": "controller.send.failed",
                    "thread_id": thread_id,
                    "error_type": type(exc).__name__,
                    "error": str(exc),
                },
            )
            return None
        finally:
            self.tracker.finish(thread_id)

        final = self.repository.append_message(
            thread_id,
            Role.ASSISTANT,
            result.text or EMPTY_RESPONSE_TEXT,
            model=model,
            usage=result.usage,
            time_taken=result.elapsed_seconds,
        )
        self._refresh()
        LOGGER.info(
            "controller.send.done",
            extra={
                "event": "controller.send.done",
                "thread_id": thread_id,
                "time_taken_seconds": result.elapsed_seconds,
                "dropped": final is None,
            },
        )
        return final

    async def aclose(self) -> None:
        """Let in-flight sends finish."""
        await self.tasks.await_all()
