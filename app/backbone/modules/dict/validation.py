"""
Value rules attached to a dictionary type.

A rule is stored as JSON with a ``type`` discriminator, for example::

    {"type": "range", "min": 0, "max": 100}
    {"type": "enum", "values": ["S", "M", "L"]}
    {"type": "dateRange", "format": "yyyy-MM-dd", "minDate": "2020-01-01"}
"""
from __future__ import annotations

import json
import logging
import re
from dataclasses import dataclass, field
from datetime import datetime
from typing import TYPE_CHECKING, Any, ClassVar

from app.backbone.modules.dict.errors import DictValidationException

if TYPE_CHECKING:
    from app.backbone.modules.dict.models import DictType

logger = logging.getLogger(__name__)

_INTEGER_RE = re.compile(r"^[+-]?\d+$")
_FLOAT_RE = re.compile(r"^[+-]?(\d+\.?\d*|\.\d+)([eE][+-]?\d+)?$")

# Java-style date patterns to strptime directives, longest first
_DATE_TOKENS = (("yyyy", "%Y"), ("MM", "%m"), ("dd", "%d"), ("HH", "%H"), ("mm", "%M"), ("ss", "%S"))


def _to_float(value: str) -> float | None:
    value = value.strip()
    return float(value) if _FLOAT_RE.match(value) else None


def _strptime_format(java_format: str) -> str:
    fmt = java_format
    for token, directive in _DATE_TOKENS:
        fmt = fmt.replace(token, directive)
    return fmt


class ValidationRule:
    type_name: ClassVar[str]

    def validate(self, value: str) -> bool:
        raise NotImplementedError

    def default_message(self) -> str:
        raise NotImplementedError


@dataclass(frozen=True)
class RegexRule(ValidationRule):
    type_name: ClassVar[str] = "regex"
    pattern: str = ""

    def validate(self, value: str) -> bool:
        return re.fullmatch(self.pattern, value) is not None

    def default_message(self) -> str:
        return f"Value does not match pattern: {self.pattern}"


@dataclass(frozen=True)
class RangeRule(ValidationRule):
    type_name: ClassVar[str] = "range"
    min: float | None = None
    max: float | None = None

    def validate(self, value: str) -> bool:
        number = _to_float(value)
        if number is None:
            return False
        return (self.min is None or number >= self.min) and (self.max is None or number <= self.max)

    def default_message(self) -> str:
        if self.min is not None and self.max is not None:
            return f"Value must be between {self.min} and {self.max}"
        if self.min is not None:
            return f"Value must be greater than or equal to {self.min}"
        if self.max is not None:
            return f"Value must be less than or equal to {self.max}"
        return "Invalid number"


@dataclass(frozen=True)
class LengthRule(ValidationRule):
    type_name: ClassVar[str] = "length"
    min_length: int | None = None
    max_length: int | None = None

    def validate(self, value: str) -> bool:
        n = len(value)
        return (self.min_length is None or n >= self.min_length) and (self.max_length is None or n <= self.max_length)

    def default_message(self) -> str:
        if self.min_length is not None and self.max_length is not None:
            return f"Length must be between {self.min_length} and {self.max_length}"
        if self.min_length is not None:
            return f"Length must be at least {self.min_length}"
        if self.max_length is not None:
            return f"Length must be at most {self.max_length}"
        return "Invalid length"


@dataclass(frozen=True)
class EnumRule(ValidationRule):
    type_name: ClassVar[str] = "enum"
    values: tuple[str, ...] = field(default_factory=tuple)

    def validate(self, value: str) -> bool:
        return value in self.values

    def default_message(self) -> str:
        return f"Value must be one of: {', '.join(self.values)}"


@dataclass(frozen=True)
class NumberRule(ValidationRule):
    type_name: ClassVar[str] = "number"
    integer_only: bool = False
    positive: bool = False
    negative: bool = False

    def validate(self, value: str) -> bool:
        if self.integer_only:
            number = float(int(value.strip())) if _INTEGER_RE.match(value.strip()) else None
        else:
            number = _to_float(value)
        if number is None:
            return False
        if self.positive:
            return number > 0
        if self.negative:
            return number < 0
        return True

    def default_message(self) -> str:
        kind = "an integer" if self.integer_only else "a number"
        if self.positive:
            return f"Value must be a positive {kind.split()[-1]}"
        if self.negative:
            return f"Value must be a negative {kind.split()[-1]}"
        return f"Value must be {kind}"


@dataclass(frozen=True)
class DateRangeRule(ValidationRule):
    type_name: ClassVar[str] = "dateRange"
    format: str = "yyyy-MM-dd"
    min_date: str | None = None
    max_date: str | None = None

    def validate(self, value: str) -> bool:
        fmt = _strptime_format(self.format)
        try:
            date = datetime.strptime(value, fmt)
            lower = datetime.strptime(self.min_date, fmt) if self.min_date else None
            upper = datetime.strptime(self.max_date, fmt) if self.max_date else None
        except ValueError:
            return False
        return (lower is None or date >= lower) and (upper is None or date <= upper)

    def default_message(self) -> str:
        message = f"Date must use format {self.format}"
        if self.min_date and self.max_date:
            return f"{message}, between {self.min_date} and {self.max_date}"
        if self.min_date:
            return f"{message}, not before {self.min_date}"
        if self.max_date:
            return f"{message}, not after {self.max_date}"
        return message


@dataclass(frozen=True)
class EmailRule(ValidationRule):
    type_name: ClassVar[str] = "email"
    PATTERN: ClassVar[re.Pattern[str]] = re.compile(r"^[A-Za-z0-9+_.-]+@[A-Za-z0-9.-]+\.[A-Za-z]{2,}$")

    def validate(self, value: str) -> bool:
        return self.PATTERN.fullmatch(value) is not None

    def default_message(self) -> str:
        return "Value must be a valid email address"


@dataclass(frozen=True)
class PhoneRule(ValidationRule):
    """Mainland China mobile numbers."""

    type_name: ClassVar[str] = "phone"
    PATTERN: ClassVar[re.Pattern[str]] = re.compile(r"^1[3-9]\d{9}$")

    def validate(self, value: str) -> bool:
        return self.PATTERN.fullmatch(value) is not None

    def default_message(self) -> str:
        return "Value must be a valid mobile phone number"


@dataclass(frozen=True)
class UrlRule(ValidationRule):
    type_name: ClassVar[str] = "url"
    PATTERN: ClassVar[re.Pattern[str]] = re.compile(r"^(https?|ftp)://[^\s/$.?#].[^\s]*$")

    def validate(self, value: str) -> bool:
        return self.PATTERN.fullmatch(value) is not None

    def default_message(self) -> str:
        return "Value must be a valid URL"


def _build_regex(d: dict[str, Any]) -> ValidationRule:
    pattern = d["pattern"]
    re.compile(pattern)
    return RegexRule(pattern=pattern)


def _optional_float(d: dict[str, Any], key: str) -> float | None:
    return None if d.get(key) is None else float(d[key])


def _optional_int(d: dict[str, Any], key: str) -> int | None:
    return None if d.get(key) is None else int(d[key])


_BUILDERS = {
    "regex": _build_regex,
    "range": lambda d: RangeRule(min=_optional_float(d, "min"), max=_optional_float(d, "max")),
    "length": lambda d: LengthRule(min_length=_optional_int(d, "minLength"), max_length=_optional_int(d, "maxLength")),
    "enum": lambda d: EnumRule(values=tuple(str(v) for v in d["values"])),
    "number": lambda d: NumberRule(
        integer_only=bool(d.get("integerOnly", False)),
        positive=bool(d.get("positive", False)),
        negative=bool(d.get("negative", False)),
    ),
    "dateRange": lambda d: DateRangeRule(
        format=d.get("format") or "yyyy-MM-dd", min_date=d.get("minDate"), max_date=d.get("maxDate")
    ),
    "email": lambda d: EmailRule(),
    "phone": lambda d: PhoneRule(),
    "url": lambda d: UrlRule(),
}

RULE_TYPES = tuple(_BUILDERS)


def parse_rule(raw: str | dict[str, Any]) -> ValidationRule:
    """Raise ValueError for malformed JSON, an unknown ``type`` or bad parameters."""
    try:
        data = json.loads(raw) if isinstance(raw, str) else raw
    except json.JSONDecodeError as e:
        raise ValueError(f"Validation rule is not valid JSON: {e}") from e
    if not isinstance(data, dict):
        raise ValueError("Validation rule must be a JSON object.")
    rule_type = data.get("type")
    builder = _BUILDERS.get(rule_type) if isinstance(rule_type, str) else None
    if builder is None:
        raise ValueError(f"Unknown validation rule type: {data.get('type')!r}")
    try:
        return builder(data)
    except (KeyError, TypeError, ValueError, re.error) as e:
        raise ValueError(f"Invalid {rule_type} rule: {e}") from e


@dataclass(frozen=True)
class ValidationResult:
    is_valid: bool
    message: str | None = None

    @classmethod
    def success(cls) -> "ValidationResult":
        return cls(True)

    @classmethod
    def failure(cls, message: str) -> "ValidationResult":
        return cls(False, message)


class DictValidator:
    """Checks a candidate ``data_value`` against its type's rule. Types without a rule accept anything."""

    def validate(self, dict_type: "DictType", value: str) -> ValidationResult:
        if not dict_type.validation_rule or not dict_type.validation_rule.strip():
            return ValidationResult.success()
        try:
            rule = parse_rule(dict_type.validation_rule)
        except ValueError as e:
            logger.warning("Dict type %s has an unusable validation rule: %s", dict_type.dict_code, e)
            return ValidationResult.failure(f"Validation rule could not be parsed: {e}")
        if rule.validate(value):
            return ValidationResult.success()
        return ValidationResult.failure(dict_type.validation_message or rule.default_message())

    def validate_or_throw(self, dict_type: "DictType", value: str) -> None:
        result = self.validate(dict_type, value)
        if not result.is_valid:
            raise DictValidationException(result.message, dict_code=dict_type.dict_code, value=value)
