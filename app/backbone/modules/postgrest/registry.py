"""
Tables open to PostgREST-style queries.

Names and aliases are matched case-insensitively. Columns listed as excluded
stay invisible: they are left out of ``*`` projections and cannot be named in
select, where, order or data.
"""
from __future__ import annotations

import logging
import threading
from collections.abc import Iterable
from dataclasses import dataclass

from sqlalchemy import Column, Table

from app.backbone.utils import camel_to_snake

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RegisteredTable:
    name: str
    table: Table
    excluded_columns: frozenset[str]

    @property
    def columns(self) -> list[Column]:
        return [c for c in self.table.columns if c.name.lower() not in self.excluded_columns]


class TableRegistry:
    def __init__(self) -> None:
        self._lock = threading.RLock()
        self._tables: dict[str, RegisteredTable] = {}
        self._aliases: dict[str, str] = {}

    def register(
        self,
        name: str,
        table: Table,
        *,
        aliases: Iterable[str] = (),
        excluded_columns: Iterable[str] = (),
    ) -> RegisteredTable:
        key = name.strip().lower()
        entry = RegisteredTable(
            name=name.strip(),
            table=table,
            excluded_columns=frozenset(c.strip().lower() for c in excluded_columns if c and c.strip()),
        )
        with self._lock:
            self._tables[key] = entry
            for alias in aliases:
                alias_key = alias.strip().lower()
                if alias_key and alias_key != key:
                    self._aliases[alias_key] = key
        logger.debug("Registered query table %s (%s)", entry.name, table.name)
        return entry

    def unregister(self, name: str) -> bool:
        key = self._resolve(name)
        with self._lock:
            if key is None or self._tables.pop(key, None) is None:
                return False
            for alias in [a for a, target in self._aliases.items() if target == key]:
                del self._aliases[alias]
        return True

    def _resolve(self, name: str) -> str | None:
        key = (name or "").strip().lower()
        with self._lock:
            if key in self._tables:
                return key
            return self._aliases.get(key)

    def get(self, name: str) -> RegisteredTable | None:
        key = self._resolve(name)
        if key is None:
            return None
        with self._lock:
            return self._tables.get(key)

    def is_registered(self, name: str) -> bool:
        return self.get(name) is not None

    def registered_names(self) -> list[str]:
        with self._lock:
            return sorted(entry.name for entry in self._tables.values())

    def get_columns(self, name: str) -> list[Column]:
        entry = self.get(name)
        return entry.columns if entry else []

    def find_column(self, name: str, column: str) -> Column | None:
        """Exact name first, then lower case, then camelCase spelled as snake_case."""
        entry = self.get(name)
        if entry is None or not column:
            return None
        by_name = {c.name: c for c in entry.columns}
        for candidate in (column, column.lower(), camel_to_snake(column)):
            if candidate in by_name:
                return by_name[candidate]
        return None

    def clear(self) -> None:
        with self._lock:
            self._tables.clear()
            self._aliases.clear()
