"""Tests for free-text message search and title filtering."""

from __future__ import annotations

import unittest

from codebase_chat.models import Message, Role, Thread
from codebase_chat.search import filter_threads, match_preview, search_messages


def _thread(thread_id: str, title: str, *contents: str) -> Thread:
    messages = [
        Message(
            id=f"{thread_id}-m{index}",
            role=Role.USER if index % 2 == 0 else Role.ASSISTANT,
            content=content,
            timestamp="2026-01-01T00:00:00+00:00",
        )
        for index, content in enumerate(contents)
    ]
    return Thread(id=thread_id, title=title, messages=messages)


class SearchMessagesTests(unittest.TestCase):
    """Validate matching, ordering, and preview windows."""

    def test_blank_query_means_no_active_search(self) -> None:
        threads = [_thread("t1", "T", "hello")]
        self.assertIsNone(search_messages(threads, ""))
        self.assertIsNone(search_messages(threads, "   "))

    def test_no_matches_is_an_empty_list(self) -> None:
        self.assertEqual(search_messages([_thread("t1", "T", "hello")], "absent"), [])

    def test_match_not_at_start_gets_leading_ellipsis(self) -> None:
        results = search_messages([_thread("t1", "Greeting", "say hello world")], "hello")
        assert results is not None
        self.assertEqual(len(results), 1)
        result = results[0]
        self.assertEqual(result.thread_id, "t1")
        self.assertEqual(result.thread_title, "Greeting")
        self.assertEqual(result.message_id, "t1-m0")
        self.assertEqual(result.role, Role.USER)
        self.assertEqual(result.content, "say hello world")
        self.assertIn("hello", result.preview)
        self.assertEqual(result.preview, "say hello world")

    def test_match_at_start_has_no_leading_ellipsis(self) -> None:
        results = search_messages([_thread("t1", "T", "hello there")], "hello")
        assert results is not None
        self.assertFalse(results[0].preview.startswith("..."))

    def test_case_insensitive_across_threads_in_order(self) -> None:
        threads = [
            _thread("t1", "A", "Python tips", "nothing", "more PYTHON"),
            _thread("t2", "B", "no match"),
            _thread("t3", "C", "python again"),
        ]
        results = search_messages(threads, "PyThOn")
        assert results is not None
        self.assertEqual(
            [(r.thread_id, r.message_id) for r in results],
            [("t1", "t1-m0"), ("t1", "t1-m2"), ("t3", "t3-m0")],
        )


class MatchPreviewTests(unittest.TestCase):
    def test_window_is_clipped_with_ellipses(self) -> None:
        content = "a" * 40 + "needle" + "b" * 60
        preview = match_preview(content, "needle")
        self.assertEqual(preview, "..." + "a" * 30 + "needle" + "b" * 50 + "...")

    def test_window_reaching_both_bounds_has_no_markers(self) -> None:
        self.assertEqual(match_preview("short needle text", "needle"), "short needle text")

    def test_trailing_marker_only(self) -> None:
        content = "needle" + "c" * 80
        self.assertEqual(match_preview(content, "NEEDLE"), "needle" + "c" * 50 + "...")


class FilterThreadsTests(unittest.TestCase):
    def test_title_filter_ignores_case(self) -> None:
        threads = [_thread("t1", "Build errors"), _thread("t2", "Deploy")]
        self.assertEqual([t.id for t in filter_threads(threads, "BUILD")], ["t1"])
        self.assertEqual(len(filter_threads(threads, "")), 2)


if __name__ == "__main__":
    unittest.main()
