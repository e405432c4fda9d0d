"""Tests for thread and message records."""

from __future__ import annotations

import unittest

from codebase_chat.models import Message, Role, Thread, generate_id


class IdGenerationTests(unittest.TestCase):
    def test_ids_are_lowercase_base36_and_unique(self) -> None:
        ids = {generate_id() for _ in range(500)}
        self.assertEqual(len(ids), 500)
        for value in ids:
            self.assertRegex(value, r"^[0-9a-z]+$")


class MessageTests(unittest.TestCase):
    """Validate role restrictions and the persisted message shape."""

    def test_system_role_cannot_be_stored(self) -> None:
        with self.assertRaises(ValueError):
            Message(id="m1", role=Role.SYSTEM, content="x", timestamp="t")

    def test_to_dict_omits_unset_optional_fields(self) -> None:
        message = Message(id="m1", role=Role.USER, content="hi", timestamp="t", model="gpt-4.1")
        self.assertEqual(
            message.to_dict(),
            {"id": "m1", "role": "user", "content": "hi", "model": "gpt-4.1", "timestamp": "t"},
        )

    def test_assistant_fields_use_stored_names(self) -> None:
        message = Message(
            id="m2",
            role=Role.ASSISTANT,
            content="answer",
            timestamp="t",
            usage={"input_tokens": 3},
            time_taken=1.5,
        )
        payload = message.to_dict()
        self.assertEqual(payload["usage"], {"input_tokens": 3})
        self.assertEqual(payload["timeTaken"], 1.5)
        self.assertEqual(Message.from_dict(payload), message)

    def test_from_dict_rejects_unknown_and_system_roles(self) -> None:
        self.assertIsNone(Message.from_dict({"id": "m", "role": "tool", "content": "x"}))
        self.assertIsNone(Message.from_dict({"id": "m", "role": "system", "content": "x"}))
        self.assertIsNone(Message.from_dict({"id": "m", "role": "user"}))
        self.assertIsNone(Message.from_dict("not a message"))

    def test_as_context_has_only_role_and_content(self) -> None:
        message = Message(id="m1", role=Role.USER, content="hi", timestamp="t", model="gpt-5")
        self.assertEqual(message.as_context(), {"role": "user", "content": "hi"})


class ThreadTests(unittest.TestCase):
    def test_from_dict_skips_malformed_messages(self) -> None:
        thread = Thread.from_dict(
            {
                "id": "t1",
                "title": "Title",
                "messages": [
                    {"id": "m1", "role": "user", "content": "ok", "timestamp": "a"},
                    {"id": "m2", "role": "bogus", "content": "dropped"},
                    42,
                ],
                "createdAt": "c",
                "updatedAt": "u",
            }
        )
        assert thread is not None
        self.assertEqual([m.id for m in thread.messages], ["m1"])
        self.assertEqual(thread.created_at, "c")
        self.assertEqual(thread.updated_at, "u")

    def test_from_dict_requires_id(self) -> None:
        self.assertIsNone(Thread.from_dict({"title": "no id"}))
        self.assertIsNone(Thread.from_dict({"id": ""}))

    def test_to_dict_uses_camel_case_timestamps(self) -> None:
        thread = Thread(id="t1", created_at="c", updated_at="u")
        self.assertEqual(
            thread.to_dict(),
            {"id": "t1", "title": "New Chat", "messages": [], "createdAt": "c", "updatedAt": "u"},
        )


if __name__ == "__main__":
    unittest.main()
