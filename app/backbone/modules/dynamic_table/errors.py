from app.backbone.errors import ErrorCode


class DynamicTableErrorCode(ErrorCode):
    DYNAMIC_TABLE_ERROR = (700000, "Dynamic table error")
    DYNAMIC_TABLE_NOT_FOUND = (700200, "Table not found", 404)
