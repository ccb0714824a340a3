from __future__ import annotations

import re
import time
from datetime import datetime, timezone

_CAMEL_BOUNDARY = re.compile(r"(?<=[a-z0-9])([A-Z])")


def utcnow() -> datetime:
    """Naive UTC timestamp, matching the ``DateTime(timezone=False)`` columns."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def now_millis() -> int:
    return int(time.time() * 1000)


def camel_to_snake(name: str) -> str:
    return _CAMEL_BOUNDARY.sub(r"_\1", name).lower()


def clean(value: str | None) -> str | None:
    """Strip a form-ish string; blank becomes None."""
    if value is None:
        return None
    value = value.strip()
    return value or None
