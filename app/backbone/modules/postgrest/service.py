from __future__ import annotations

import logging

from sqlalchemy.exc import SQLAlchemyError

from app.backbone.errors import BusinessException, ForbiddenException
from app.backbone.modules.postgrest.builder import QueryBuilder
from app.backbone.modules.postgrest.dto import QueryRequest, QueryResponse
from app.backbone.modules.postgrest.errors import PostgrestQueryErrorCode
from app.backbone.modules.postgrest.rls import RowLevelSecurityProvider

logger = logging.getLogger(__name__)


class PostgrestQueryService:
    def __init__(self, query_builder: QueryBuilder, rls_provider: RowLevelSecurityProvider) -> None:
        self._builder = query_builder
        self._rls = rls_provider

    def execute_query(self, request: QueryRequest, user_id: int, tenant_id: int | None = None) -> QueryResponse:
        operation = request.operation.value
        logger.info(
            "Executing query: table=%s operation=%s user=%s tenant=%s", request.from_, operation, user_id, tenant_id
        )
        table = self._builder.resolve(request.from_).name

        if not self._rls.has_permission(table, user_id, tenant_id, operation):
            raise ForbiddenException(
                f"Not allowed to {operation} on table {table}",
                error_code=PostgrestQueryErrorCode.POSTGREST_QUERY_FORBIDDEN,
                details={"table": table, "operation": operation},
            )
        conditions = self._rls.get_rls_conditions(table, user_id, tenant_id, operation)

        try:
            result = self._builder.build_and_execute(request, conditions)
        except BusinessException:
            raise
        except SQLAlchemyError as e:
            logger.exception("Query on %s failed", table)
            raise BusinessException(
                f"Query execution failed: {e}", error_code=PostgrestQueryErrorCode.POSTGREST_QUERY_EXECUTION_FAILED
            ) from e
        return QueryResponse(data=result.data, count=result.count, head=result.head_only)
