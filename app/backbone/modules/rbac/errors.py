from app.backbone.errors import ErrorCode


class AuthorizationErrorCode(ErrorCode):
    AUTHORIZATION_ERROR = (500000, "Authorization error")
    AUTHORIZATION_PARAM_INVALID = (500100, "Invalid authorization parameters")
    AUTHORIZATION_ROLE_NOT_FOUND = (500200, "Role not found", 404)
    AUTHORIZATION_PERMISSION_NOT_FOUND = (500201, "Permission not found", 404)
    AUTHORIZATION_ROLE_EXISTS = (500300, "Role code already exists", 409)
    AUTHORIZATION_PERMISSION_EXISTS = (500301, "Permission code already exists", 409)
    AUTHORIZATION_USER_ROLE_EXISTS = (500302, "User already has this role", 409)
    AUTHORIZATION_ROLE_PERMISSION_EXISTS = (500303, "Role already has this permission", 409)
    AUTHORIZATION_FORBIDDEN = (500400, "Permission denied", 403)
