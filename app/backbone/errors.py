"""
Error taxonomy shared by every module.

Business codes are six digits, ``XXYYZZ``:
  XX  module (10 common, 30 user, 40 tenant, 50 authorization, 60 dict,
      70 dynamic table, 80 query, 90 captcha)
  YY  type (00 general, 01 parameter, 02 not found, 03 conflict,
      04 forbidden, 05 unauthenticated, 06 business rule)
  ZZ  detail
"""
from __future__ import annotations

from enum import Enum
from typing import Any


class ErrorCode(Enum):
    """Base for module error enums; members are ``(code, message[, http_status])``."""

    def __init__(self, code: int, message: str, http_status: int = 400) -> None:
        self.code = code
        self.message = message
        self.http_status = http_status


class CommonErrorCode(ErrorCode):
    COMMON_INTERNAL_ERROR = (100000, "Internal server error", 500)
    COMMON_UNKNOWN_ERROR = (100001, "Unknown error", 500)
    COMMON_SERVICE_UNAVAILABLE = (100002, "Service temporarily unavailable", 503)

    COMMON_PARAM_INVALID = (100100, "Parameter validation failed")
    COMMON_PARAM_MISSING = (100101, "Required parameter is missing")
    COMMON_PARAM_FORMAT_ERROR = (100103, "Parameter format is invalid")
    COMMON_REQUEST_BODY_INVALID = (100104, "Request body is invalid")

    COMMON_RESOURCE_NOT_FOUND = (100200, "Resource not found", 404)
    COMMON_ENDPOINT_NOT_FOUND = (100201, "Requested endpoint does not exist", 404)

    COMMON_RESOURCE_CONFLICT = (100300, "Resource conflict", 409)
    COMMON_RESOURCE_DUPLICATE = (100301, "Resource already exists", 409)

    COMMON_FORBIDDEN = (100400, "Insufficient permission to access this resource", 403)
    COMMON_OPERATION_NOT_ALLOWED = (100401, "Operation not allowed", 403)

    COMMON_UNAUTHORIZED = (100500, "Unauthorized", 401)

    COMMON_BUSINESS_ERROR = (100600, "Business rule violated")
    COMMON_STATE_ERROR = (100601, "Resource is in an invalid state")

    COMMON_METHOD_NOT_ALLOWED = (100900, "Method not allowed", 405)


class BusinessException(Exception):
    default_error_code: ErrorCode = CommonErrorCode.COMMON_BUSINESS_ERROR

    def __init__(
        self,
        message: str | None = None,
        *,
        error_code: ErrorCode | None = None,
        details: dict[str, Any] | None = None,
        status: int | None = None,
    ) -> None:
        self.error_code = error_code or self.default_error_code
        self.message = message or self.error_code.message
        self.status = status or self.error_code.http_status
        self.details = details
        super().__init__(self.message)

    @property
    def business_code(self) -> int:
        return self.error_code.code

    def to_dict(self) -> dict[str, Any]:
        return {"code": self.business_code, "message": self.message, "details": self.details}


class ValidationException(BusinessException):
    default_error_code = CommonErrorCode.COMMON_PARAM_INVALID

    def __init__(self, message: str | None = None, *, field: str | None = None, **kwargs: Any) -> None:
        if field and kwargs.get("details") is None:
            kwargs["details"] = {"field": field}
        super().__init__(message, **kwargs)
        self.field = field


class NotFoundException(BusinessException):
    default_error_code = CommonErrorCode.COMMON_RESOURCE_NOT_FOUND


class ConflictException(BusinessException):
    default_error_code = CommonErrorCode.COMMON_RESOURCE_CONFLICT


class ConstraintViolation(ConflictException):
    """A uniqueness or foreign-key rule was broken by a write."""

    default_error_code = CommonErrorCode.COMMON_RESOURCE_DUPLICATE


class UnauthorizedException(BusinessException):
    default_error_code = CommonErrorCode.COMMON_UNAUTHORIZED


class ForbiddenException(BusinessException):
    default_error_code = CommonErrorCode.COMMON_FORBIDDEN
