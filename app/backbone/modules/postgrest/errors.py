from app.backbone.errors import ErrorCode


class PostgrestQueryErrorCode(ErrorCode):
    POSTGREST_QUERY_ERROR = (800000, "Query error")
    POSTGREST_QUERY_PARAM_INVALID = (800100, "Invalid query parameters")
    POSTGREST_QUERY_TABLE_NOT_REGISTERED = (800101, "Table is not registered for querying")
    POSTGREST_QUERY_INSERT_DATA_REQUIRED = (800102, "INSERT requires data")
    POSTGREST_QUERY_INSERT_DATA_EMPTY = (800103, "INSERT data must not be empty")
    POSTGREST_QUERY_UPDATE_DATA_REQUIRED = (800104, "UPDATE requires a data object")
    POSTGREST_QUERY_UPDATE_WHERE_REQUIRED = (800105, "UPDATE requires a where condition")
    POSTGREST_QUERY_DELETE_WHERE_REQUIRED = (800106, "DELETE requires a where condition")
    POSTGREST_QUERY_UPSERT_DATA_REQUIRED = (800107, "UPSERT requires data")
    POSTGREST_QUERY_UPSERT_CONFLICT_REQUIRED = (800108, "UPSERT requires onConflict")
    POSTGREST_QUERY_UPSERT_CONFLICT_FIELD_NOT_FOUND = (800109, "Conflict column does not exist")
    POSTGREST_QUERY_UPSERT_CONFLICT_FIELD_EMPTY = (800110, "Conflict column value must not be empty")
    POSTGREST_QUERY_COLUMN_NOT_FOUND = (800112, "Column does not exist on table")
    POSTGREST_QUERY_FORBIDDEN = (800400, "Not allowed to perform this operation", 403)
    POSTGREST_QUERY_EXECUTION_FAILED = (800600, "Query execution failed", 500)
