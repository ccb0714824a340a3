"""
Turns a ``QueryRequest`` into SQLAlchemy Core statements and runs them.

Every request runs in a single transaction. Row-level security conditions are
ANDed onto the caller's where clause; a condition naming a column the table
does not have is skipped. Tables with an ``is_deleted`` column never expose
deleted rows, and DELETE on them flags rows instead of removing them.
"""
from __future__ import annotations

import logging
from collections.abc import Sequence
from typing import Any

from sqlalchemy import Column, and_, delete, false, func, insert, or_, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.sql.elements import ColumnElement

from app.backbone.db import transaction
from app.backbone.errors import BusinessException, ConstraintViolation, ValidationException
from app.backbone.modules.postgrest.dto import CountType, QueryOperation, QueryRequest, QueryResult, RlsCondition
from app.backbone.modules.postgrest.errors import PostgrestQueryErrorCode
from app.backbone.modules.postgrest.registry import RegisteredTable, TableRegistry
from app.backbone.utils import utcnow

logger = logging.getLogger(__name__)

OPERATORS = frozenset({"eq", "neq", "gt", "gte", "lt", "lte", "like", "ilike", "is", "in"})
CONNECTIVES = frozenset({"and", "or"})


def _fail(error_code: PostgrestQueryErrorCode, message: str | None = None, **details: Any) -> BusinessException:
    return BusinessException(message, error_code=error_code, details=details or None)


def _is_condition(item: Any) -> bool:
    return isinstance(item, (list, tuple)) and len(item) >= 3 and isinstance(item[0], str) and isinstance(item[1], str)


def apply_operator(column: Column, op: str, value: Any) -> ColumnElement | None:
    op = op.strip().lower()
    if op == "eq":
        return column == value
    if op == "neq":
        return column != value
    if op == "gt":
        return column > value
    if op == "gte":
        return column >= value
    if op == "lt":
        return column < value
    if op == "lte":
        return column <= value
    if op == "like":
        return column.like(value)
    if op == "ilike":
        return column.ilike(value)
    if op == "is":
        if value is None or (isinstance(value, str) and value.lower() == "null"):
            return column.is_(None)
        if isinstance(value, bool):
            return column.is_(value)
        return column.is_not(None)
    if op == "in":
        if isinstance(value, (list, tuple, set)):
            return column.in_(list(value))
        return column == value
    logger.warning("Ignoring unsupported operator %r on column %s", op, column.name)
    return None


class QueryBuilder:
    def __init__(self, sessions: sessionmaker[Session], registry: TableRegistry) -> None:
        self._sessions = sessions
        self.registry = registry

    def resolve(self, name: str) -> RegisteredTable:
        entry = self.registry.get(name)
        if entry is None:
            raise _fail(
                PostgrestQueryErrorCode.POSTGREST_QUERY_TABLE_NOT_REGISTERED,
                f"Table {name!r} is not registered for querying",
                table=name,
            )
        return entry

    def build_and_execute(self, request: QueryRequest, rls_conditions: Sequence[RlsCondition] = ()) -> QueryResult:
        entry = self.resolve(request.from_)
        logger.debug("Executing %s on %s", request.operation.value, entry.name)
        handlers = {
            QueryOperation.SELECT: self._select,
            QueryOperation.INSERT: self._insert,
            QueryOperation.UPDATE: self._update,
            QueryOperation.DELETE: self._delete,
            QueryOperation.UPSERT: self._upsert,
        }
        try:
            with transaction(self._sessions) as s:
                return handlers[request.operation](s, entry, request, list(rls_conditions))
        except IntegrityError as e:
            logger.warning("Constraint violation on %s: %s", entry.name, e.orig)
            raise ConstraintViolation(
                f"Constraint violated on {entry.name}", details={"table": entry.name, "reason": str(e.orig)}
            ) from e

    # -- clause building -------------------------------------------------

    def _column(self, entry: RegisteredTable, name: str) -> Column:
        column = self.registry.find_column(entry.name, name)
        if column is None:
            raise ValidationException(
                f"Column {name!r} does not exist on table {entry.name}",
                field=name,
                error_code=PostgrestQueryErrorCode.POSTGREST_QUERY_COLUMN_NOT_FOUND,
            )
        return column

    def parse_where(self, entry: RegisteredTable, where: Sequence[Any] | None) -> ColumnElement | None:
        if not where:
            return None
        if _is_condition(where) and where[1].strip().lower() in OPERATORS:
            return apply_operator(self._column(entry, where[0]), where[1], where[2])

        result = None
        connective = "and"
        for item in where:
            if isinstance(item, str):
                word = item.strip().lower()
                if word in CONNECTIVES:
                    connective = word
                else:
                    logger.warning("Ignoring unknown where token %r", item)
                continue
            if _is_condition(item):
                clause = apply_operator(self._column(entry, item[0]), item[1], item[2])
            elif isinstance(item, (list, tuple)):
                clause = self.parse_where(entry, item)
            else:
                logger.warning("Ignoring unsupported where item %r", item)
                continue
            if clause is None:
                continue
            if result is None:
                result = clause
            elif connective == "or":
                result = or_(result, clause)
            else:
                result = and_(result, clause)
        return result

    def _rls_clauses(self, entry: RegisteredTable, conditions: Sequence[RlsCondition]) -> list[ColumnElement]:
        clauses = []
        for cond in conditions:
            if cond.operator == "false":
                clauses.append(false())
                continue
            column = entry.table.c.get(cond.column)
            if column is None:
                logger.debug("Skipping RLS condition on %s: no column %s", entry.name, cond.column)
                continue
            clause = apply_operator(column, cond.operator, cond.value)
            if clause is not None:
                clauses.append(clause)
        return clauses

    def _live_clauses(self, entry: RegisteredTable) -> list[ColumnElement]:
        flag = entry.table.c.get("is_deleted")
        return [flag.is_(False)] if flag is not None else []

    def _filters(
        self, entry: RegisteredTable, request: QueryRequest, conditions: Sequence[RlsCondition]
    ) -> tuple[ColumnElement | None, list[ColumnElement]]:
        user_where = self.parse_where(entry, request.where)
        clauses = self._rls_clauses(entry, conditions) + self._live_clauses(entry)
        if user_where is not None:
            clauses.append(user_where)
        return user_where, clauses

    def _assignments(self, entry: RegisteredTable, row: Any) -> dict[str, Any]:
        if not isinstance(row, dict):
            return {}
        values: dict[str, Any] = {}
        for key, value in row.items():
            column = self.registry.find_column(entry.name, key)
            if column is None:
                logger.warning("Skipping unknown column %r for table %s", key, entry.name)
                continue
            values[column.name] = value
        return values

    def _rows(self, data: Any, required: PostgrestQueryErrorCode) -> list[Any]:
        if data is None:
            raise _fail(required)
        if isinstance(data, dict):
            rows = [data]
        elif isinstance(data, (list, tuple)):
            rows = list(data)
        else:
            raise _fail(required)
        if not rows or all(not r for r in rows):
            raise _fail(PostgrestQueryErrorCode.POSTGREST_QUERY_INSERT_DATA_EMPTY)
        return rows

    def _touch(self, entry: RegisteredTable, values: dict[str, Any]) -> dict[str, Any]:
        if "updated_at" in entry.table.c and "updated_at" not in values:
            values["updated_at"] = utcnow()
        return values

    # -- operations ------------------------------------------------------

    def _select(self, s: Session, entry: RegisteredTable, request: QueryRequest, rls: list[RlsCondition]) -> QueryResult:
        columns = self._projection(entry, request.select)
        _, clauses = self._filters(entry, request, rls)

        total = None
        if request.count is CountType.EXACT:
            total = s.scalar(select(func.count()).select_from(entry.table).where(*clauses)) or 0
        if request.head:
            return QueryResult(data=[], count=total, head_only=True)

        stmt = select(*columns).where(*clauses)
        for name, cfg in (request.order or {}).items():
            column = self.registry.find_column(entry.name, name)
            if column is None:
                logger.warning("Ignoring order on unknown column %r of %s", name, entry.name)
                continue
            expr = column.asc() if cfg.ascending else column.desc()
            if cfg.nulls_first is True:
                expr = expr.nulls_first()
            elif cfg.nulls_first is False:
                expr = expr.nulls_last()
            stmt = stmt.order_by(expr)
        if request.range is not None:
            start, end = request.range
            stmt = stmt.offset(max(start, 0)).limit(max(end - start + 1, 0))
        elif request.limit is not None:
            stmt = stmt.limit(request.limit)

        rows = [dict(row._mapping) for row in s.execute(stmt)]
        return QueryResult(data=rows, count=total)

    def _projection(self, entry: RegisteredTable, wanted: Sequence[str] | None) -> list[Column]:
        if not wanted or any(name.strip() == "*" for name in wanted):
            return entry.columns
        columns = []
        for name in wanted:
            name = name.strip()
            if ":" in name or "(" in name:
                logger.warning("Ignoring unsupported select expression %r", name)
                continue
            columns.append(self._column(entry, name))
        return columns or entry.columns

    def _insert(self, s: Session, entry: RegisteredTable, request: QueryRequest, rls: list[RlsCondition]) -> QueryResult:
        rows = self._rows(request.data, PostgrestQueryErrorCode.POSTGREST_QUERY_INSERT_DATA_REQUIRED)
        inserted = []
        for row in rows:
            values = self._assignments(entry, row)
            if not values:
                raise _fail(PostgrestQueryErrorCode.POSTGREST_QUERY_INSERT_DATA_EMPTY)
            if "is_deleted" in entry.table.c:
                values.setdefault("is_deleted", False)
            result = s.execute(insert(entry.table).values(values))
            pk = result.inserted_primary_key
            if pk is not None:
                values.update(pk._mapping)
            inserted.append(values)
        return QueryResult(data=inserted if request.select else [], count=len(inserted))

    def _update(self, s: Session, entry: RegisteredTable, request: QueryRequest, rls: list[RlsCondition]) -> QueryResult:
        if not isinstance(request.data, dict) or not request.data:
            raise _fail(PostgrestQueryErrorCode.POSTGREST_QUERY_UPDATE_DATA_REQUIRED)
        user_where, clauses = self._filters(entry, request, rls)
        if user_where is None:
            raise _fail(PostgrestQueryErrorCode.POSTGREST_QUERY_UPDATE_WHERE_REQUIRED)
        values = self._assignments(entry, request.data)
        if not values:
            raise _fail(PostgrestQueryErrorCode.POSTGREST_QUERY_UPDATE_DATA_REQUIRED)
        stmt = update(entry.table).where(*clauses).values(self._touch(entry, values))
        return QueryResult(count=s.execute(stmt).rowcount)

    def _delete(self, s: Session, entry: RegisteredTable, request: QueryRequest, rls: list[RlsCondition]) -> QueryResult:
        user_where, clauses = self._filters(entry, request, rls)
        if user_where is None:
            raise _fail(PostgrestQueryErrorCode.POSTGREST_QUERY_DELETE_WHERE_REQUIRED)
        if "is_deleted" in entry.table.c:
            stmt = update(entry.table).where(*clauses).values(self._touch(entry, {"is_deleted": True}))
        else:
            stmt = delete(entry.table).where(*clauses)
        return QueryResult(count=s.execute(stmt).rowcount)

    def _upsert(self, s: Session, entry: RegisteredTable, request: QueryRequest, rls: list[RlsCondition]) -> QueryResult:
        """Update the row whose conflict column matches, else insert. A soft-deleted match is revived."""
        rows = self._rows(request.data, PostgrestQueryErrorCode.POSTGREST_QUERY_UPSERT_DATA_REQUIRED)
        conflict = (request.on_conflict or "").strip()
        if not conflict:
            raise _fail(PostgrestQueryErrorCode.POSTGREST_QUERY_UPSERT_CONFLICT_REQUIRED)
        key = self.registry.find_column(entry.name, conflict)
        if key is None:
            raise _fail(PostgrestQueryErrorCode.POSTGREST_QUERY_UPSERT_CONFLICT_FIELD_NOT_FOUND, column=conflict)

        written = []
        for row in rows:
            values = self._assignments(entry, row)
            if values.get(key.name) is None:
                raise _fail(PostgrestQueryErrorCode.POSTGREST_QUERY_UPSERT_CONFLICT_FIELD_EMPTY, column=key.name)
            if "is_deleted" in entry.table.c:
                values["is_deleted"] = False
            changes = {k: v for k, v in values.items() if k != key.name}
            if changes:
                stmt = update(entry.table).where(key == values[key.name]).values(self._touch(entry, changes))
                matched = s.execute(stmt).rowcount
            else:
                matched = s.scalar(select(func.count()).select_from(entry.table).where(key == values[key.name])) or 0
            if not matched:
                result = s.execute(insert(entry.table).values(values))
                if result.inserted_primary_key is not None:
                    values.update(result.inserted_primary_key._mapping)
            written.append(values)
        return QueryResult(data=written if request.select else [], count=len(written))
