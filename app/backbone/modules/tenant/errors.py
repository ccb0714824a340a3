from app.backbone.errors import ErrorCode


class TenantErrorCode(ErrorCode):
    TENANT_ERROR = (400000, "Tenant error")
    TENANT_PARAM_INVALID = (400100, "Invalid tenant parameters")
    TENANT_EMAIL_REQUIRED = (400101, "Email is required")
    TENANT_NOT_FOUND = (400200, "Tenant not found", 404)
    TENANT_NOT_FOUND_BY_EMAIL = (400201, "No tenant matches this email", 404)
    TENANT_CONFLICT = (400300, "Tenant conflict", 409)
    TENANT_CODE_EXISTS = (400301, "Tenant code already exists", 409)
