from __future__ import annotations

import threading
from typing import Protocol

from app.backbone.modules.captcha.entity import CaptchaEntity
from app.backbone.utils import now_millis


class CaptchaCache(Protocol):
    def set(self, key: str, value: str, expires_in_seconds: int) -> None: ...

    def exists(self, key: str) -> bool: ...

    def get(self, key: str) -> str | None: ...

    def pop_entry(self, key: str) -> CaptchaEntity | None: ...

    def delete(self, key: str) -> None: ...

    def take(self, key: str) -> str | None: ...

    def type(self) -> str: ...


class MemorizedCaptchaCache:
    """Process-local captcha store. Expired entries are invisible and purged on access."""

    def __init__(self) -> None:
        self._entries: dict[str, CaptchaEntity] = {}
        self._lock = threading.Lock()

    def set(self, key: str, value: str, expires_in_seconds: int) -> None:
        entity = CaptchaEntity(created_at=now_millis(), expires_in_seconds=expires_in_seconds, value=value)
        with self._lock:
            self._entries[key] = entity

    def pop_entry(self, key: str) -> CaptchaEntity | None:
        """Remove and return the raw entry, expired or not."""
        with self._lock:
            return self._entries.pop(key, None)

    def exists(self, key: str) -> bool:
        return self.get(key) is not None

    def get(self, key: str) -> str | None:
        with self._lock:
            entity = self._entries.get(key)
            if entity is None:
                return None
            if not entity.is_not_expired():
                del self._entries[key]
                return None
            return entity.value

    def delete(self, key: str) -> None:
        with self._lock:
            self._entries.pop(key, None)

    def take(self, key: str) -> str | None:
        """Atomically read and remove a live entry."""
        entity = self.pop_entry(key)
        if entity is None or not entity.is_not_expired():
            return None
        return entity.value

    def purge_expired(self) -> int:
        now = now_millis()
        with self._lock:
            expired = [k for k, e in self._entries.items() if not e.is_not_expired(now)]
            for k in expired:
                del self._entries[k]
        return len(expired)

    def type(self) -> str:
        return "local"
