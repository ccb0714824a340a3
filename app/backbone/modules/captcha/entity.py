from __future__ import annotations

from dataclasses import dataclass

from app.backbone.utils import now_millis


@dataclass(frozen=True)
class CaptchaEntity:
    created_at: int  # epoch millis
    expires_in_seconds: int
    value: str | None = None

    @property
    def expires_at(self) -> int:
        return self.created_at + self.expires_in_seconds * 1000

    def is_not_expired(self, now: int | None = None) -> bool:
        """Valid strictly before ``expires_at``; the boundary millisecond is already expired."""
        if now is None:
            now = now_millis()
        return now < self.expires_at
