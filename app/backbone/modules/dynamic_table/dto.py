from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

from sqlalchemy import Table


@dataclass(frozen=True)
class ColumnInfo:
    name: str
    type_name: str
    nullable: bool
    is_primary_key: bool
    default_value: str | None = None
    remarks: str | None = None


@dataclass(frozen=True)
class TableMetadata:
    """A reflected table as held by the manager."""

    name: str
    alias: str | None
    schema: str | None
    table: Table
    registered_at: int

    @property
    def registration_name(self) -> str:
        return self.alias or self.name

    @property
    def columns(self) -> list[ColumnInfo]:
        return [
            ColumnInfo(
                name=c.name,
                type_name=str(c.type),
                nullable=bool(c.nullable),
                is_primary_key=bool(c.primary_key),
                default_value=str(c.server_default.arg) if c.server_default is not None else None,
                remarks=c.comment,
            )
            for c in self.table.columns
        ]

    @property
    def column_count(self) -> int:
        return len(self.table.columns)

    @property
    def primary_keys(self) -> list[str]:
        return [c.name for c in self.table.primary_key.columns]


@dataclass(frozen=True)
class DiscoveredTable:
    name: str
    schema: str | None
    is_registered: bool
    column_count: int


@dataclass(frozen=True)
class TableInfo:
    name: str
    schema: str | None
    is_registered: bool
    column_count: int


@dataclass(frozen=True)
class RegisteredTableInfo:
    name: str
    alias: str | None
    schema: str | None
    column_count: int
    primary_keys: list[str]
    registered_at: int
    excluded_columns: frozenset[str]


@dataclass(frozen=True)
class TableColumnInfo:
    name: str
    type: str
    nullable: bool
    is_primary_key: bool
    default_value: str | None
    is_excluded: bool


@dataclass(frozen=True)
class TableRegistrationRequest:
    table_name: str
    schema: str | None = None
    alias: str | None = None
    excluded_columns: frozenset[str] | None = None

    @classmethod
    def from_dict(cls, payload: dict[str, Any]) -> TableRegistrationRequest:
        excluded = payload.get("excludedColumns")
        return cls(
            table_name=(payload.get("tableName") or "").strip(),
            schema=payload.get("schema"),
            alias=payload.get("alias"),
            excluded_columns=frozenset(excluded) if excluded else None,
        )


@dataclass(frozen=True)
class TableRegistrationResult:
    success: bool
    table_name: str
    alias: str | None = None
    column_count: int | None = None
    message: str | None = None


@dataclass(frozen=True)
class BatchTableRegistrationRequest:
    tables: list[TableRegistrationRequest] | None = None
    register_all: bool = False
    schema: str | None = None
    exclude_tables: frozenset[str] | None = None


@dataclass(frozen=True)
class BatchTableRegistrationResult:
    total_requested: int
    success_count: int
    failed_count: int
    results: list[TableRegistrationResult] = field(default_factory=list)
