"""Small JSON key-value store for values that persist between sessions."""

from __future__ import annotations

import json
from contextlib import contextmanager
from pathlib import Path
from threading import Lock
from typing import Iterator, Optional

TOKEN_KEY = "reporting_token"


def mask_token(token: str) -> str:
    """Hide all but the last four characters of a stored token."""
    if len(token) <= 4:
        return "*" * len(token)
    return f"{'*' * (len(token) - 4)}{token[-4:]}"


_LOCKS: dict[str, Lock] = {}
_LOCKS_GUARD = Lock()


def _lock_for(path: Path) -> Lock:
    key = str(path.resolve())
    with _LOCKS_GUARD:
        lock = _LOCKS.get(key)
        if lock is None:
            lock = Lock()
            _LOCKS[key] = lock
    return lock


@contextmanager
def locked_path(path: Path) -> Iterator[None]:
    """Serialize reads and writes of one store file within this process."""
    lock = _lock_for(path)
    lock.acquire()
    try:
        yield
    finally:
        lock.release()


class KeyValueStore:
    """String values keyed by name, kept in a single JSON file."""

    def __init__(self, path: Path | str):
        self.path = Path(path).expanduser()

    def _read(self) -> dict[str, str]:
        if not self.path.exists():
            return {}
        text = self.path.read_text(encoding="utf-8")
        if not text.strip():
            return {}
        try:
            data = json.loads(text)
        except json.JSONDecodeError as exc:
            raise ValueError(f"Store file {self.path} is not valid JSON.") from exc
        if not isinstance(data, dict):
            raise ValueError(f"Store file {self.path} must hold a JSON object.")
        return {str(k): str(v) for k, v in data.items()}

    def _write(self, data: dict[str, str]) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        self.path.write_text(json.dumps(data, ensure_ascii=False, indent=2), encoding="utf-8")

    def get(self, key: str) -> Optional[str]:
        with locked_path(self.path):
            return self._read().get(key)

    def set(self, key: str, value: str) -> None:
        with locked_path(self.path):
            data = self._read()
            data[key] = value
            self._write(data)

    def delete(self, key: str) -> bool:
        """Remove a key; return True when something was removed."""
        with locked_path(self.path):
            data = self._read()
            if key not in data:
                return False
            del data[key]
            self._write(data)
            return True
