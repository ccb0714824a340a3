from app.backbone.errors import ErrorCode


class UserErrorCode(ErrorCode):
    USER_PARAM_INVALID = (300100, "Invalid user parameters")
    USER_NOT_FOUND = (300200, "User not found", 404)
    USER_EXISTS = (300300, "User already exists", 409)
    USER_EMAIL_EXISTS = (300301, "Email is already registered", 409)
    USER_USERNAME_EXISTS = (300303, "Username is already taken", 409)
