"""Per-thread request lifecycle: IDLE while no call is in flight, PENDING otherwise."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
import time
from typing import Any


class ThreadState(str, Enum):
    """Request lifecycle of a single thread."""

    IDLE = "IDLE"
    PENDING = "PENDING"


@dataclass(frozen=True)
class PendingRequest:
    """Bookkeeping for one in-flight completion call."""

    model: str
    message_count: int
    payload: dict[str, Any]
    started_at: float = field(default_factory=time.monotonic)

    def elapsed_seconds(self, now: float | None = None) -> float:
        current = time.monotonic() if now is None else now
        return max(0.0, current - self.started_at)

    def format_elapsed(self, now: float | None = None) -> str:
        """Render elapsed time as whole seconds, e.g. ``"12s"``."""
        return f"{int(self.elapsed_seconds(now))}s"


class PendingRequestTracker:
    """Map of thread id to its in-flight request.

    All transitions run synchronously on the event loop, so a check followed
    by :meth:`begin` cannot interleave with another send.
    """

    def __init__(self) -> None:
        self._pending: dict[str, PendingRequest] = {}

    def state(self, thread_id: str) -> ThreadState:
        if thread_id in self._pending:
            return ThreadState.PENDING
        return ThreadState.IDLE

    def is_pending(self, thread_id: str) -> bool:
        return thread_id in self._pending

    def get(self, thread_id: str) -> PendingRequest | None:
        return self._pending.get(thread_id)

    def begin(self, thread_id: str, request: PendingRequest) -> bool:
        """Move a thread from IDLE to PENDING; False when already pending."""
        if thread_id in self._pending:
            return False
        self._pending[thread_id] = request
        return True

    def finish(self, thread_id: str) -> PendingRequest | None:
        """Return a thread to IDLE, yielding the request it was holding."""
        return self._pending.pop(thread_id, None)

    def pending_thread_ids(self) -> list[str]:
        return list(self._pending)

    def __len__(self) -> int:
        return len(self._pending)
