"""Core types for the formrules rule compiler.

This module defines the data model shared by the resolver, the compiler
and the loaders:
- FieldRule: one field's resolved validation contract
- ValidationFailure / ValidationOutcome: per-value results
- CompileDiagnostic: a non-fatal anomaly found while compiling a document
- RuleDocument: field rules plus the definitions they may reference
"""

from dataclasses import dataclass, field
from decimal import Decimal
from enum import Enum
from typing import Any


class ValueKind(Enum):
    """Declared value kind of a field.

    UNSUPPORTED is the fallback variant for missing or unknown kinds.
    """

    STRING = "string"
    NUMBER = "number"
    DATE = "date"
    BOOLEAN = "boolean"
    UNSUPPORTED = "unsupported"

    @classmethod
    def from_declared(cls, declared: Any) -> "ValueKind":
        for kind in cls:
            if kind is not cls.UNSUPPORTED and kind.value == declared:
                return kind
        return cls.UNSUPPORTED


class FailureKind(Enum):
    """Which constraint rejected a value."""

    REQUIRED = "required"
    TYPE = "type"
    MIN_LENGTH = "minLength"
    MAX_LENGTH = "maxLength"
    PATTERN = "pattern"
    ALLOWED_VALUES = "allowedValues"
    MIN_VALUE = "minValue"
    MAX_VALUE = "maxValue"
    MIN_DATE = "minDate"
    CUSTOM_RULE = "customRule"


class DiagnosticCode(Enum):
    """Codes for anomalies reported while compiling a rule document."""

    MISSING_DEFINITION = "MISSING_DEFINITION"
    INVALID_PATTERN = "INVALID_PATTERN"
    UNSUPPORTED_KIND = "UNSUPPORTED_KIND"
    UNKNOWN_CUSTOM_RULE = "UNKNOWN_CUSTOM_RULE"
    INVALID_MIN_DATE = "INVALID_MIN_DATE"
    INVALID_RULE = "INVALID_RULE"


# Rule document key for each constraint's message template
MESSAGE_PREFIX = "errorMessage"

REF_KEY = "$ref"


def _optional_int(data: dict[str, Any], key: str) -> int | None:
    value = data.get(key)
    if value is None:
        return None
    if isinstance(value, bool) or not isinstance(value, int):
        raise ValueError(f"'{key}' must be an integer, got {value!r}")
    return value


def _optional_number(data: dict[str, Any], key: str) -> float | int | None:
    value = data.get(key)
    if value is None:
        return None
    if isinstance(value, bool) or not isinstance(value, (int, float, Decimal)):
        raise ValueError(f"'{key}' must be a number, got {value!r}")
    return value


def _optional_str(data: dict[str, Any], key: str) -> str | None:
    value = data.get(key)
    if value is None:
        return None
    if not isinstance(value, str):
        raise ValueError(f"'{key}' must be a string, got {value!r}")
    return value


@dataclass(frozen=True)
class FieldRule:
    """A field's validation contract after reference resolution.

    Attributes:
        name: Field name the rule applies to
        declared_type: The raw "type" value from the document (may be None)
        required: Absent values fail when True
        min_length / max_length: Bounds on the trimmed string length
        pattern: Regular expression the trimmed string must match
        allowed_values: Case-sensitive set of accepted strings
        min_value / max_value: Inclusive numeric bounds
        min_date: "today" or an ISO date literal (inclusive lower bound)
        custom_rule: Identifier of a registered custom rule
        messages: Constraint name -> message template (e.g. "maxLength")
    """

    name: str
    declared_type: str | None = None
    required: bool = False
    min_length: int | None = None
    max_length: int | None = None
    pattern: str | None = None
    allowed_values: tuple[Any, ...] | None = None
    min_value: float | int | None = None
    max_value: float | int | None = None
    min_date: str | None = None
    custom_rule: str | None = None
    messages: dict[str, str] = field(default_factory=dict)

    @property
    def kind(self) -> ValueKind:
        return ValueKind.from_declared(self.declared_type)

    def message_for(self, constraint: str) -> str | None:
        """Return the configured template for a constraint, if any."""
        return self.messages.get(constraint)

    @classmethod
    def from_dict(cls, name: str, data: dict[str, Any]) -> "FieldRule":
        """Create a FieldRule from a resolved JSON/YAML rule dict.

        Raises:
            ValueError: If a constraint has the wrong type
        """
        if REF_KEY in data:
            raise ValueError(f"Rule for '{name}' still carries a {REF_KEY}")

        declared = data.get("type")
        if declared is not None and not isinstance(declared, str):
            raise ValueError(f"'type' must be a string, got {declared!r}")

        required = data.get("required", False)
        if not isinstance(required, bool):
            raise ValueError(f"'required' must be a boolean, got {required!r}")

        allowed = data.get("allowedValues")
        if allowed is not None:
            if not isinstance(allowed, (list, tuple)):
                raise ValueError(f"'allowedValues' must be a list, got {allowed!r}")
            allowed = tuple(allowed)

        messages: dict[str, str] = {}
        for key, value in data.items():
            if not key.startswith(MESSAGE_PREFIX) or key == MESSAGE_PREFIX:
                continue
            suffix = key[len(MESSAGE_PREFIX):]
            if not isinstance(value, str):
                raise ValueError(f"'{key}' must be a string, got {value!r}")
            messages[suffix[0].lower() + suffix[1:]] = value

        return cls(
            name=name,
            declared_type=declared,
            required=required,
            min_length=_optional_int(data, "minLength"),
            max_length=_optional_int(data, "maxLength"),
            pattern=_optional_str(data, "pattern"),
            allowed_values=allowed,
            min_value=_optional_number(data, "minValue"),
            max_value=_optional_number(data, "maxValue"),
            min_date=_optional_str(data, "minDate"),
            custom_rule=_optional_str(data, "customRule"),
            messages=messages,
        )


@dataclass(frozen=True)
class ValidationFailure:
    """A rejected value.

    Attributes:
        kind: Which constraint failed
        message: Fully rendered, human-readable message
        field: Field name this failure relates to
    """

    kind: FailureKind
    message: str
    field: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "kind": self.kind.value,
            "message": self.message,
            "field": self.field,
        }


@dataclass(frozen=True)
class ValidationOutcome:
    """Result of running one compiled validator over one candidate value."""

    ok: bool
    failure: ValidationFailure | None = None

    @property
    def kind(self) -> FailureKind | None:
        return self.failure.kind if self.failure else None

    @property
    def message(self) -> str | None:
        return self.failure.message if self.failure else None

    @classmethod
    def success(cls) -> "ValidationOutcome":
        return cls(ok=True)

    @classmethod
    def fail(cls, failure: ValidationFailure) -> "ValidationOutcome":
        return cls(ok=False, failure=failure)

    def to_dict(self) -> dict[str, Any]:
        if self.failure is None:
            return {"ok": True}
        return {
            "ok": False,
            "kind": self.failure.kind.value,
            "message": self.failure.message,
        }


@dataclass(frozen=True)
class CompileDiagnostic:
    """A non-fatal finding produced while compiling a rule document."""

    field: str
    code: DiagnosticCode
    message: str

    def __str__(self) -> str:
        return f"[{self.code.value}] {self.field}: {self.message}"

    def to_dict(self) -> dict[str, Any]:
        return {
            "field": self.field,
            "code": self.code.value,
            "message": self.message,
        }


@dataclass
class RuleDocument:
    """Raw rules for one form plus the definitions they may reference.

    Attributes:
        fields: Field name -> raw rule dict, in declared field order
        definitions: Definition name -> raw rule dict
        form_id: Identifier the document was fetched for, if any
    """

    fields: dict[str, dict[str, Any]]
    definitions: dict[str, dict[str, Any]] = field(default_factory=dict)
    form_id: str | None = None
