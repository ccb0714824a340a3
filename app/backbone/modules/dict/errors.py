from __future__ import annotations

from typing import Any

from app.backbone.errors import ErrorCode, ValidationException


class DictErrorCode(ErrorCode):
    DICT_ERROR = (600000, "Dictionary error")
    DICT_PARAM_INVALID = (600100, "Invalid dictionary parameters")
    DICT_VALIDATION_ERROR = (600101, "Dictionary value failed validation")
    DICT_TYPE_NOT_FOUND = (600200, "Dictionary type not found", 404)
    DICT_DATA_NOT_FOUND = (600201, "Dictionary data not found", 404)
    DICT_DEFAULT_NOT_FOUND = (600202, "Dictionary has no default value", 404)
    DICT_TYPE_CODE_EXISTS = (600300, "Dictionary type code already exists", 409)
    DICT_DATA_VALUE_EXISTS = (600301, "Dictionary value already exists", 409)


class DictValidationException(ValidationException):
    default_error_code = DictErrorCode.DICT_VALIDATION_ERROR

    def __init__(self, message: str | None = None, *, dict_code: str | None = None, value: str | None = None, **kwargs: Any) -> None:
        if kwargs.get("details") is None:
            kwargs["details"] = {"dict_code": dict_code, "value": value}
        super().__init__(message, field="data_value", **kwargs)
        self.dict_code = dict_code
        self.value = value
