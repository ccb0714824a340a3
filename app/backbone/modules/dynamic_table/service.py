from __future__ import annotations

import logging
from collections.abc import Iterable

from app.backbone.errors import ValidationException
from app.backbone.modules.dynamic_table.dto import (
    BatchTableRegistrationRequest,
    BatchTableRegistrationResult,
    RegisteredTableInfo,
    TableColumnInfo,
    TableInfo,
    TableRegistrationRequest,
    TableRegistrationResult,
)
from app.backbone.modules.dynamic_table.errors import DynamicTableErrorCode
from app.backbone.modules.dynamic_table.manager import DynamicTableManager

logger = logging.getLogger(__name__)


class DynamicTableManagementService:
    def __init__(self, manager: DynamicTableManager) -> None:
        self._manager = manager

    def discover_tables(self, schema: str | None = None) -> list[TableInfo]:
        return [
            TableInfo(name=t.name, schema=t.schema, is_registered=t.is_registered, column_count=t.column_count)
            for t in self._manager.discover_tables(schema)
        ]

    def get_registered_tables(self) -> list[RegisteredTableInfo]:
        return [
            RegisteredTableInfo(
                name=m.name,
                alias=m.alias,
                schema=m.schema,
                column_count=m.column_count,
                primary_keys=m.primary_keys,
                registered_at=m.registered_at,
                excluded_columns=frozenset(self._manager.get_excluded_columns(m.registration_name)),
            )
            for m in self._manager.get_registered_tables()
        ]

    def register_table(self, request: TableRegistrationRequest) -> TableRegistrationResult:
        if not (request.table_name or "").strip():
            raise ValidationException(
                "tableName is required.", field="tableName", error_code=DynamicTableErrorCode.DYNAMIC_TABLE_ERROR
            )
        logger.info("Registering table: %s", request.table_name)
        registration_name = request.alias or request.table_name
        if request.excluded_columns:
            self._manager.add_table_excluded_columns(registration_name, request.excluded_columns)

        table = self._manager.register_table(request.table_name, request.schema, request.alias)
        if table is None:
            return TableRegistrationResult(
                success=False,
                table_name=request.table_name,
                alias=request.alias,
                message="Failed to read table metadata from database",
            )
        return TableRegistrationResult(
            success=True,
            table_name=request.table_name,
            alias=request.alias,
            column_count=len(table.columns),
            message="Table registered successfully",
        )

    def register_tables(self, request: BatchTableRegistrationRequest) -> BatchTableRegistrationResult:
        results: list[TableRegistrationResult] = []
        if request.register_all:
            skip = {t.lower() for t in request.exclude_tables or ()}
            for found in self._manager.discover_tables(request.schema):
                if found.is_registered or found.name.lower() in skip:
                    continue
                results.append(self.register_table(TableRegistrationRequest(table_name=found.name, schema=request.schema)))
        elif request.tables:
            results = [self.register_table(r) for r in request.tables]

        succeeded = sum(1 for r in results if r.success)
        return BatchTableRegistrationResult(
            total_requested=len(results),
            success_count=succeeded,
            failed_count=len(results) - succeeded,
            results=results,
        )

    def unregister_table(self, table_name: str) -> bool:
        logger.info("Unregistering table: %s", table_name)
        return self._manager.unregister_table(table_name)

    def get_table_columns(self, table_name: str, schema: str | None = None) -> list[TableColumnInfo]:
        excluded = self._manager.get_excluded_columns(table_name)
        return [
            TableColumnInfo(
                name=c.name,
                type=c.type_name,
                nullable=c.nullable,
                is_primary_key=c.is_primary_key,
                default_value=c.default_value,
                is_excluded=c.name.lower() in excluded,
            )
            for c in self._manager.get_table_columns(table_name, schema)
        ]

    def refresh_table(self, table_name: str) -> bool:
        logger.info("Refreshing table: %s", table_name)
        return self._manager.refresh_table(table_name) is not None

    def set_excluded_columns(self, table_name: str, columns: Iterable[str]) -> None:
        columns = list(columns)
        self._manager.add_table_excluded_columns(table_name, columns)
        logger.info("Set excluded columns for %s: %s", table_name, sorted(columns))

    def get_excluded_columns(self, table_name: str) -> set[str]:
        return self._manager.get_excluded_columns(table_name)

    def set_global_excluded_columns(self, columns: Iterable[str]) -> None:
        columns = list(columns)
        self._manager.set_global_excluded_columns(columns)
        logger.info("Set global excluded columns: %s", sorted(columns))

    def get_global_excluded_columns(self) -> set[str]:
        return self._manager.get_global_excluded_columns()
