"""
Runtime registration of database tables that have no mapped model.

Tables are reflected from the live database and published to the query
``TableRegistry`` under their alias (or their own name). Excluded columns,
global or per table, are hidden from the published view and re-applied
whenever exclusions change or a table is refreshed.
"""
from __future__ import annotations

import logging
import threading
from collections.abc import Iterable

from sqlalchemy import Engine, MetaData, Table, inspect
from sqlalchemy.exc import NoSuchTableError

from app.backbone.errors import NotFoundException
from app.backbone.modules.dynamic_table.dto import ColumnInfo, DiscoveredTable, TableMetadata
from app.backbone.modules.dynamic_table.errors import DynamicTableErrorCode
from app.backbone.modules.postgrest.registry import TableRegistry
from app.backbone.utils import now_millis

logger = logging.getLogger(__name__)


def _normalize(columns: Iterable[str]) -> set[str]:
    return {c.strip().lower() for c in columns if c and c.strip()}


class DynamicTableManager:
    def __init__(self, engine: Engine, table_registry: TableRegistry, global_excluded_columns: Iterable[str] = ()) -> None:
        self._engine = engine
        self._registry = table_registry
        self._lock = threading.RLock()
        self._tables: dict[str, TableMetadata] = {}
        self._global_excluded = _normalize(global_excluded_columns)
        self._table_excluded: dict[str, set[str]] = {}

    # -- reflection ------------------------------------------------------

    def _reflect(self, name: str, schema: str | None) -> Table | None:
        try:
            return Table(name, MetaData(), schema=schema, autoload_with=self._engine)
        except NoSuchTableError:
            logger.warning("Table %s does not exist%s", name, f" in schema {schema}" if schema else "")
            return None

    def _publish(self, meta: TableMetadata) -> None:
        self._registry.register(
            meta.registration_name,
            meta.table,
            excluded_columns=self.get_excluded_columns(meta.registration_name),
        )

    def register_table(self, name: str, schema: str | None = None, alias: str | None = None) -> Table | None:
        """Reflect ``name`` and publish it; an already registered table is returned as is."""
        alias = (alias or "").strip() or None
        key = (alias or name).strip().lower()
        with self._lock:
            existing = self._tables.get(key)
            if existing is not None:
                return existing.table
            table = self._reflect(name.strip(), schema)
            if table is None:
                return None
            meta = TableMetadata(name=name.strip(), alias=alias, schema=schema, table=table, registered_at=now_millis())
            self._tables[key] = meta
            self._publish(meta)
        logger.info("Registered dynamic table %s with %d columns", meta.registration_name, meta.column_count)
        return table

    def register_tables(self, names: Iterable[str], schema: str | None = None) -> dict[str, Table | None]:
        return {name: self.register_table(name, schema) for name in names}

    def register_all_tables(self, schema: str | None = None, exclude: Iterable[str] = ()) -> list[Table]:
        skip = _normalize(exclude)
        registered = []
        for found in self.discover_tables(schema):
            if found.is_registered or found.name.lower() in skip:
                continue
            table = self.register_table(found.name, schema)
            if table is not None:
                registered.append(table)
        return registered

    def unregister_table(self, name: str) -> bool:
        key = name.strip().lower()
        with self._lock:
            if self._tables.pop(key, None) is None:
                return False
            self._registry.unregister(key)
        logger.info("Unregistered dynamic table %s", name)
        return True

    def refresh_table(self, name: str) -> Table | None:
        """Re-read the table's columns from the database."""
        key = name.strip().lower()
        with self._lock:
            meta = self._tables.get(key)
            if meta is None:
                return None
            table = self._reflect(meta.name, meta.schema)
            if table is None:
                self._tables.pop(key, None)
                self._registry.unregister(key)
                return None
            meta = TableMetadata(
                name=meta.name, alias=meta.alias, schema=meta.schema, table=table, registered_at=meta.registered_at
            )
            self._tables[key] = meta
            self._publish(meta)
        return table

    def is_registered(self, name: str) -> bool:
        with self._lock:
            return name.strip().lower() in self._tables

    def get_table(self, name: str) -> TableMetadata | None:
        with self._lock:
            return self._tables.get(name.strip().lower())

    def get_registered_tables(self) -> list[TableMetadata]:
        with self._lock:
            return sorted(self._tables.values(), key=lambda m: m.registration_name)

    def discover_tables(self, schema: str | None = None) -> list[DiscoveredTable]:
        inspector = inspect(self._engine)
        with self._lock:
            physical = {(m.name.lower(), m.schema) for m in self._tables.values()}
        return [
            DiscoveredTable(
                name=name,
                schema=schema,
                is_registered=(name.lower(), schema) in physical,
                column_count=len(inspector.get_columns(name, schema=schema)),
            )
            for name in sorted(inspector.get_table_names(schema=schema))
        ]

    def get_table_columns(self, name: str, schema: str | None = None) -> list[ColumnInfo]:
        meta = self.get_table(name)
        if meta is not None:
            return meta.columns
        inspector = inspect(self._engine)
        if not inspector.has_table(name, schema=schema):
            raise NotFoundException(
                f"Table {name} not found",
                error_code=DynamicTableErrorCode.DYNAMIC_TABLE_NOT_FOUND,
                details={"table": name},
            )
        pk = set(inspector.get_pk_constraint(name, schema=schema).get("constrained_columns") or ())
        return [
            ColumnInfo(
                name=col["name"],
                type_name=str(col["type"]),
                nullable=bool(col.get("nullable", True)),
                is_primary_key=col["name"] in pk,
                default_value=col.get("default"),
                remarks=col.get("comment"),
            )
            for col in inspector.get_columns(name, schema=schema)
        ]

    # -- excluded columns ------------------------------------------------

    def _republish(self, keys: Iterable[str]) -> None:
        for key in keys:
            meta = self._tables.get(key)
            if meta is not None:
                self._publish(meta)

    def get_global_excluded_columns(self) -> set[str]:
        with self._lock:
            return set(self._global_excluded)

    def add_global_excluded_columns(self, columns: Iterable[str]) -> None:
        with self._lock:
            self._global_excluded |= _normalize(columns)
            self._republish(list(self._tables))

    def remove_global_excluded_columns(self, columns: Iterable[str]) -> None:
        with self._lock:
            self._global_excluded -= _normalize(columns)
            self._republish(list(self._tables))

    def set_global_excluded_columns(self, columns: Iterable[str]) -> None:
        with self._lock:
            self._global_excluded = _normalize(columns)
            self._republish(list(self._tables))

    def add_table_excluded_columns(self, name: str, columns: Iterable[str]) -> None:
        key = name.strip().lower()
        with self._lock:
            self._table_excluded.setdefault(key, set()).update(_normalize(columns))
            self._republish([key])

    def remove_table_excluded_columns(self, name: str, columns: Iterable[str]) -> None:
        key = name.strip().lower()
        with self._lock:
            self._table_excluded.get(key, set()).difference_update(_normalize(columns))
            self._republish([key])

    def get_excluded_columns(self, name: str) -> set[str]:
        """Global exclusions plus those configured for this table."""
        with self._lock:
            return self._global_excluded | self._table_excluded.get(name.strip().lower(), set())

    def is_column_excluded(self, name: str, column: str) -> bool:
        return column.strip().lower() in self.get_excluded_columns(name)

    def clear_all(self) -> None:
        with self._lock:
            for key in list(self._tables):
                self._registry.unregister(key)
            self._tables.clear()
            self._table_excluded.clear()
