"""Ad hoc full scan search over stored threads."""

from __future__ import annotations

from collections.abc import Iterable

from .models import SearchResult, Thread

PREVIEW_CHARS_BEFORE = 30
PREVIEW_CHARS_AFTER = 50
PREVIEW_ELLIPSIS = "..."


def match_preview(content: str, query: str) -> str:
    """Return a window of ``content`` around the first match of ``query``.

    The match is case-insensitive.  An ellipsis marks each side where the
    window does not reach the content bounds.
    """
    index = content.lower().find(query.lower())
    if index < 0:
        index = 0
    start = max(0, index - PREVIEW_CHARS_BEFORE)
    end = min(len(content), index + len(query) + PREVIEW_CHARS_AFTER)
    preview = content[start:end]
    if start > 0:
        preview = PREVIEW_ELLIPSIS + preview
    if end < len(content):
        preview = preview + PREVIEW_ELLIPSIS
    return preview


def search_messages(threads: Iterable[Thread], query: str) -> list[SearchResult] | None:
    """Find every message containing ``query``, in thread then message order.

    Returns ``None`` when the query is blank, meaning no search is active.
    """
    if not query.strip():
        return None

    needle = query.lower()
    results: list[SearchResult] = []
    for thread in threads:
        for message in thread.messages:
            if needle in message.content.lower():
                results.append(
                    SearchResult(
                        thread_id=thread.id,
                        thread_title=thread.title,
                        message_id=message.id,
                        role=message.role,
                        content=message.content,
                        preview=match_preview(message.content, needle),
                    )
                )
    return results


def filter_threads(threads: Iterable[Thread], query: str) -> list[Thread]:
    """Keep threads whose title contains ``query``, ignoring case."""
    needle = query.lower()
    return [thread for thread in threads if needle in thread.title.lower()]
