"""Top-level package for codebase-chat."""

from __future__ import annotations

from importlib import import_module
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from .config import ensure_config_dir, load_config
    from .controller import ConversationController
    from .exceptions import (
        ChatClientError,
        ConfigValidationError,
        NetworkError,
        StorageError,
        TransportError,
    )
    from .gateway import CompletionGateway
    from .models import Message, Role, SearchResult, Thread
    from .persistence import JsonDocumentStore, MemoryDocumentStore
    from .repository import ThreadRepository
    from .search import search_messages
    from .state import PendingRequest, ThreadState

_EXPORTS: dict[str, str] = {
    "ChatClientError": ".exceptions",
    "CompletionGateway": ".gateway",
    "ConfigValidationError": ".exceptions",
    "ConversationController": ".controller",
    "JsonDocumentStore": ".persistence",
    "MemoryDocumentStore": ".persistence",
    "Message": ".models",
    "NetworkError": ".exceptions",
    "PendingRequest": ".state",
    "Role": ".models",
    "SearchResult": ".models",
    "StorageError": ".exceptions",
    "Thread": ".models",
    "ThreadRepository": ".repository",
    "ThreadState": ".state",
    "TransportError": ".exceptions",
    "ensure_config_dir": ".config",
    "load_config": ".config",
    "search_messages": ".search",
}

__all__ = sorted(_EXPORTS)


def __getattr__(name: str) -> Any:
    """Lazily import symbols so importing the package does not pull in httpx."""
    module_name = _EXPORTS.get(name)
    if module_name is None:
        raise AttributeError(f"module {__name__!r} has no attribute {name!r}")
    return getattr(import_module(module_name, __name__), name)
