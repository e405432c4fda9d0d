"""Typed thread, message, and search records shared across the client."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import UTC, datetime
from enum import Enum
import random
import string
import time
from typing import Any

DEFAULT_THREAD_TITLE = "New Chat"

_BASE36_DIGITS = string.digits + string.ascii_lowercase


class Role(str, Enum):
    """Author of a conversation turn.

    ``SYSTEM`` only ever appears in outbound payloads; stored messages are
    always ``USER`` or ``ASSISTANT``.
    """

    USER = "user"
    ASSISTANT = "assistant"
    SYSTEM = "system"


STORED_ROLES = frozenset({Role.USER, Role.ASSISTANT})


def _to_base36(value: int) -> str:
    if value <= 0:
        return "0"
    digits: list[str] = []
    while value:
        value, remainder = divmod(value, 36)
        digits.append(_BASE36_DIGITS[remainder])
    return "".join(reversed(digits))


def generate_id() -> str:
    """Return an opaque id: base-36 epoch millis followed by a random suffix."""
    millis = time.time_ns() // 1_000_000
    suffix = _to_base36(random.getrandbits(52))
    return f"{_to_base36(millis)}{suffix}"


def utc_now_iso() -> str:
    """Return the current UTC time as an ISO-8601 string."""
    return datetime.now(UTC).isoformat()


@dataclass(frozen=True)
class Message:
    """One persisted turn of a thread."""

    id: str
    role: Role
    content: str
    timestamp: str
    model: str | None = None
    usage: Any | None = None
    time_taken: float | None = None

    def __post_init__(self) -> None:
        if self.role not in STORED_ROLES:
            raise ValueError(f"Role {self.role!r} cannot be stored in a thread.")

    def to_dict(self) -> dict[str, Any]:
        payload: dict[str, Any] = {
            "id": self.id,
            "role": self.role.value,
            "content": self.content,
        }
        if self.model is not None:
            payload["model"] = self.model
        if self.usage is not None:
            payload["usage"] = self.usage
        if self.time_taken is not None:
            payload["timeTaken"] = self.time_taken
        payload["timestamp"] = self.timestamp
        return payload

    @classmethod
    def from_dict(cls, data: Any) -> Message | None:
        """Decode a stored message, returning ``None`` for malformed entries."""
        if not isinstance(data, dict):
            return None
        message_id = data.get("id")
        content = data.get("content")
        if not isinstance(message_id, str) or not isinstance(content, str):
            return None
        try:
            role = Role(data.get("role"))
        except ValueError:
            return None
        if role not in STORED_ROLES:
            return None
        model = data.get("model")
        time_taken = data.get("timeTaken")
        if isinstance(time_taken, bool) or not isinstance(time_taken, (int, float)):
            time_taken = None
        return cls(
            id=message_id,
            role=role,
            content=content,
            timestamp=str(data.get("timestamp", "")),
            model=model if isinstance(model, str) else None,
            usage=data.get("usage"),
            time_taken=time_taken,
        )

    def as_context(self) -> dict[str, str]:
        """Return the ``{role, content}`` pair sent to the completion endpoint."""
        return {"role": self.role.value, "content": self.content}


@dataclass
class Thread:
    """A persisted conversation: an ordered, append-only list of messages."""

    id: str
    title: str = DEFAULT_THREAD_TITLE
    messages: list[Message] = field(default_factory=list)
    created_at: str = ""
    updated_at: str = ""

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "title": self.title,
            "messages": [message.to_dict() for message in self.messages],
            "createdAt": self.created_at,
            "updatedAt": self.updated_at,
        }

    @classmethod
    def from_dict(cls, data: Any) -> Thread | None:
        """Decode a stored thread, returning ``None`` when it has no usable id."""
        if not isinstance(data, dict):
            return None
        thread_id = data.get("id")
        if not isinstance(thread_id, str) or not thread_id:
            return None
        title = data.get("title")
        raw_messages = data.get("messages")
        messages: list[Message] = []
        if isinstance(raw_messages, list):
            for item in raw_messages:
                message = Message.from_dict(item)
                if message is not None:
                    messages.append(message)
        return cls(
            id=thread_id,
            title=title if isinstance(title, str) else DEFAULT_THREAD_TITLE,
            messages=messages,
            created_at=str(data.get("createdAt", "")),
            updated_at=str(data.get("updatedAt", "")),
        )

    def context(self) -> list[dict[str, str]]:
        """Return the full history as ``{role, content}`` pairs in thread order."""
        return [message.as_context() for message in self.messages]


@dataclass(frozen=True)
class SearchResult:
    """A single message matched by a free-text search."""

    thread_id: str
    thread_title: str
    message_id: str
    role: Role
    content: str
    preview: str


@dataclass(frozen=True)
class CompletionResult:
    """Decoded completion endpoint response."""

    text: str | None
    usage: Any | None
    elapsed_seconds: float | None
    raw: dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class ModelOption:
    """A model the user can pick for a send."""

    id: str
    name: str
