"""Durable key-value storage for JSON documents."""

from __future__ import annotations

import json
import os
from pathlib import Path
import re
import tempfile
from typing import Any, Protocol

from .exceptions import StorageError

THREADS_KEY = "chat_threads"

_KEY_PATTERN = re.compile(r"^[A-Za-z0-9_.-]+$")


class DocumentStore(Protocol):
    """Minimal interface the thread repository needs from storage."""

    def read(self, key: str) -> Any | None: ...

    def write(self, key: str, document: Any) -> None: ...

    def delete(self, key: str) -> None: ...


def _validate_key(key: str) -> str:
    if not _KEY_PATTERN.match(key) or key in {".", ".."}:
        raise ValueError(f"Invalid storage key {key!r}.")
    return key


class JsonDocumentStore:
    """Store one JSON document per key as ``<directory>/<key>.json``."""

    def __init__(self, directory: str | Path) -> None:
        self.directory = Path(directory).expanduser()

    def _enforce_permissions(self, path: Path, mode: int = 0o600) -> None:
        """Set POSIX permissions on a file or directory; silently ignores failures."""
        if os.name != "posix":
            return
        try:
            path.chmod(mode)
        except OSError:
            pass

    def _ensure_directory(self) -> None:
        self.directory.mkdir(parents=True, exist_ok=True)
        self._enforce_permissions(self.directory, 0o700)

    def path_for(self, key: str) -> Path:
        return self.directory / f"{_validate_key(key)}.json"

    def read(self, key: str) -> Any | None:
        """Return the decoded document, or ``None`` when nothing is stored."""
        target = self.path_for(key)
        try:
            raw = target.read_text(encoding="utf-8")
        except FileNotFoundError:
            return None
        except UnicodeDecodeError as exc:
            raise StorageError(f"Stored document {target} is not valid UTF-8: {exc}") from exc
        except OSError as exc:
            raise StorageError(f"Unable to read {target}: {exc}") from exc
        try:
            return json.loads(raw)
        except json.JSONDecodeError as exc:
            raise StorageError(f"Stored document {target} is not valid JSON: {exc}") from exc

    def write(self, key: str, document: Any) -> None:
        """Replace the whole document atomically."""
        target = self.path_for(key)
        try:
            encoded = json.dumps(document, ensure_ascii=False, indent=2)
        except (TypeError, ValueError) as exc:
            raise StorageError(f"Document for {key!r} is not serialisable: {exc}") from exc
        try:
            self._ensure_directory()
            fd, temp_name = tempfile.mkstemp(
                dir=self.directory, prefix=f".{key}.", suffix=".tmp"
            )
            temp_path = Path(temp_name)
            try:
                with os.fdopen(fd, "w", encoding="utf-8") as handle:
                    handle.write(encoded)
                self._enforce_permissions(temp_path)
                os.replace(temp_path, target)
            except BaseException:
                temp_path.unlink(missing_ok=True)
                raise
        except OSError as exc:
            raise StorageError(f"Unable to write {target}: {exc}") from exc

    def delete(self, key: str) -> None:
        target = self.path_for(key)
        try:
            target.unlink(missing_ok=True)
        except OSError as exc:
            raise StorageError(f"Unable to delete {target}: {exc}") from exc


class MemoryDocumentStore:
    """In-process store with the same serialisation semantics as the file store."""

    def __init__(self) -> None:
        self._documents: dict[str, str] = {}

    def read(self, key: str) -> Any | None:
        raw = self._documents.get(_validate_key(key))
        if raw is None:
            return None
        return json.loads(raw)

    def write(self, key: str, document: Any) -> None:
        try:
            self._documents[_validate_key(key)] = json.dumps(document, ensure_ascii=False)
        except (TypeError, ValueError) as exc:
            raise StorageError(f"Document for {key!r} is not serialisable: {exc}") from exc

    def delete(self, key: str) -> None:
        self._documents.pop(_validate_key(key), None)
