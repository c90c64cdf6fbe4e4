"""Compile rule documents into per-field validators.

Each field rule is resolved against the document's definitions and then
compiled by the strategy for its declared value kind:

    string  -> type, minLength, maxLength, pattern, allowedValues, customRule
    number  -> type, minValue, maxValue, customRule
    date    -> type, minDate, customRule
    other   -> required/absence only (reported as UNSUPPORTED_KIND)

A compiled validator maps one candidate value to a ValidationOutcome. An
absent value fails only when the field is required; a present value is
type-checked and then run through the constraint chain, where the first
failing constraint wins.

Problems with a single field never abort compilation: a missing
definition or malformed rule drops the field, an invalid pattern or
unknown custom rule drops that one check. Each problem is logged and
recorded on the returned ValidatorSet as a CompileDiagnostic.
"""

import logging
import math
import re
from collections.abc import Callable, Iterator, Mapping
from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal
from typing import Any

from formrules.custom_rules import CustomRuleRegistry, register_builtin_rules
from formrules.errors import InvalidPattern, MissingDefinition
from formrules.messages import (
    DEFAULT_TEMPLATES,
    DEFAULT_TYPE_MESSAGES,
    default_required_message,
    render_message,
)
from formrules.resolver import resolve_rule
from formrules.types import (
    CompileDiagnostic,
    DiagnosticCode,
    FailureKind,
    FieldRule,
    RuleDocument,
    ValidationFailure,
    ValidationOutcome,
    ValueKind,
)

logger = logging.getLogger(__name__)

ISO_DATE_PATTERN = re.compile(r"^\d{4}-\d{2}-\d{2}$")

MIN_DATE_TODAY = "today"

Today = Callable[[], date]

# A constraint check takes the parsed value and returns a failure or None
Check = Callable[[Any], ValidationFailure | None]


class _TypeMismatch(Exception):
    """The raw value cannot be read as the field's value kind."""


# =============================================================================
# Field Validator
# =============================================================================


@dataclass(frozen=True)
class FieldValidator:
    """Compiled validator for one field.

    Attributes:
        rule: The resolved rule this validator enforces
        is_absent: Decides whether a raw value counts as "no value"
        coerce: Turns a present raw value into the parsed value
        checks: Constraint chain, run in order on the parsed value
        required_message: Rendered message for a missing required value
        type_message: Rendered message for a value of the wrong type
    """

    rule: FieldRule
    is_absent: Callable[[Any], bool]
    coerce: Callable[[Any], Any]
    checks: tuple[Check, ...] = ()
    required_message: str = ""
    type_message: str = ""

    def __call__(self, value: Any = None) -> ValidationOutcome:
        return self.validate(value)

    def validate(self, value: Any = None) -> ValidationOutcome:
        """Validate one candidate value."""
        if self.is_absent(value):
            if self.rule.required:
                return self._fail(FailureKind.REQUIRED, self.required_message)
            return ValidationOutcome.success()

        try:
            parsed = self.coerce(value)
        except _TypeMismatch:
            return self._fail(FailureKind.TYPE, self.type_message)

        for check in self.checks:
            failure = check(parsed)
            if failure is not None:
                return ValidationOutcome.fail(failure)

        return ValidationOutcome.success()

    def _fail(self, kind: FailureKind, message: str) -> ValidationOutcome:
        return ValidationOutcome.fail(
            ValidationFailure(kind=kind, message=message, field=self.rule.name)
        )


# =============================================================================
# Absence and coercion
# =============================================================================


def _is_blank(value: Any) -> bool:
    """None, or a string that is empty after trimming."""
    if value is None:
        return True
    return isinstance(value, str) and value.strip() == ""


def _is_empty(value: Any) -> bool:
    """None or the empty string."""
    return value is None or value == ""


def _coerce_string(value: Any) -> str:
    if not isinstance(value, str):
        raise _TypeMismatch()
    return value.strip()


def _coerce_number(value: Any) -> float | int | Decimal:
    if isinstance(value, bool):
        raise _TypeMismatch()
    if isinstance(value, int):
        return value
    if isinstance(value, (float, Decimal)):
        number = value
    elif isinstance(value, str):
        # float() also accepts digit separators such as "1_000"
        if "_" in value:
            raise _TypeMismatch()
        try:
            number = float(value.strip())
        except ValueError:
            raise _TypeMismatch() from None
    else:
        raise _TypeMismatch()

    if not math.isfinite(number):
        raise _TypeMismatch()
    return number


def parse_iso_date(value: str) -> date | None:
    """Parse a strict ``YYYY-MM-DD`` string, or return None."""
    text = value.strip()
    if not ISO_DATE_PATTERN.match(text):
        return None
    try:
        return date.fromisoformat(text)
    except ValueError:
        return None


def _coerce_date(value: Any) -> date:
    if not isinstance(value, str):
        raise _TypeMismatch()
    parsed = parse_iso_date(value)
    if parsed is None:
        raise _TypeMismatch()
    return parsed


def _identity(value: Any) -> Any:
    return value


# =============================================================================
# Constraint checks
# =============================================================================


def _message(rule: FieldRule, kind: FailureKind, values: dict[str, Any], default: str) -> str:
    template = rule.message_for(kind.value) or default
    return render_message(template, kind, {**values, "field": rule.name})


def _failure_check(
    rule: FieldRule,
    kind: FailureKind,
    values: dict[str, Any],
    passes: Callable[[Any], bool],
    default: str | None = None,
) -> Check:
    """Build a check whose message is rendered once, at compile time."""
    failure = ValidationFailure(
        kind=kind,
        message=_message(rule, kind, values, default or DEFAULT_TEMPLATES[kind]),
        field=rule.name,
    )

    def check(value: Any) -> ValidationFailure | None:
        return None if passes(value) else failure

    return check


def _compile_pattern(rule: FieldRule) -> re.Pattern:
    """Compile the rule's pattern.

    Raises:
        InvalidPattern: If the pattern is not a valid regular expression
    """
    try:
        return re.compile(rule.pattern or "")
    except re.error as exc:
        raise InvalidPattern(rule.name, rule.pattern or "", str(exc)) from exc


class _Compilation:
    """Collects diagnostics while compiling one document."""

    def __init__(self, today: Today):
        self.today = today
        self.diagnostics: list[CompileDiagnostic] = []

    def report(self, field_name: str, code: DiagnosticCode, message: str) -> None:
        diagnostic = CompileDiagnostic(field=field_name, code=code, message=message)
        logger.warning("Rule compilation: %s", diagnostic)
        self.diagnostics.append(diagnostic)

    # -------------------------------------------------------------------------
    # Shared pieces
    # -------------------------------------------------------------------------

    def custom_rule_check(self, rule: FieldRule) -> Check | None:
        """Build the customRule check, or None if absent or unusable."""
        name = rule.custom_rule
        if not name:
            return None

        if not CustomRuleRegistry.is_registered(name):
            self.report(
                rule.name,
                DiagnosticCode.UNKNOWN_CUSTOM_RULE,
                f"Custom rule '{name}' is not registered; check skipped",
            )
            return None

        definition = CustomRuleRegistry.get(name)
        if not definition.supports(rule.kind):
            self.report(
                rule.name,
                DiagnosticCode.UNKNOWN_CUSTOM_RULE,
                f"Custom rule '{name}' does not apply to {rule.kind.value} fields; check skipped",
            )
            return None

        return _failure_check(
            rule,
            FailureKind.CUSTOM_RULE,
            {"customRule": name},
            definition.predicate,
            default=definition.message or None,
        )

    def _build(
        self,
        rule: FieldRule,
        is_absent: Callable[[Any], bool],
        coerce: Callable[[Any], Any],
        checks: list[Check | None],
    ) -> FieldValidator:
        return FieldValidator(
            rule=rule,
            is_absent=is_absent,
            coerce=coerce,
            checks=tuple(c for c in checks if c is not None),
            required_message=rule.message_for("required") or default_required_message(rule.name),
            type_message=rule.message_for("type") or DEFAULT_TYPE_MESSAGES.get(rule.kind, ""),
        )

    # -------------------------------------------------------------------------
    # Per-kind strategies
    # -------------------------------------------------------------------------

    def compile_string(self, rule: FieldRule) -> FieldValidator:
        checks: list[Check | None] = []

        if rule.min_length is not None:
            min_length = rule.min_length
            checks.append(_failure_check(
                rule, FailureKind.MIN_LENGTH, {"minLength": min_length},
                lambda v: len(v) >= min_length,
            ))

        if rule.max_length is not None:
            max_length = rule.max_length
            checks.append(_failure_check(
                rule, FailureKind.MAX_LENGTH, {"maxLength": max_length},
                lambda v: len(v) <= max_length,
            ))

        if rule.pattern:
            try:
                regex = _compile_pattern(rule)
            except InvalidPattern as exc:
                self.report(rule.name, DiagnosticCode.INVALID_PATTERN, f"{exc}; check skipped")
            else:
                checks.append(_failure_check(
                    rule, FailureKind.PATTERN, {"pattern": rule.pattern},
                    lambda v: regex.search(v) is not None,
                ))

        if rule.allowed_values is not None:
            allowed = rule.allowed_values
            checks.append(_failure_check(
                rule, FailureKind.ALLOWED_VALUES, {"allowedValues": list(allowed)},
                lambda v: v in allowed,
            ))

        checks.append(self.custom_rule_check(rule))
        return self._build(rule, _is_blank, _coerce_string, checks)

    def compile_number(self, rule: FieldRule) -> FieldValidator:
        checks: list[Check | None] = []

        if rule.min_value is not None:
            min_value = rule.min_value
            checks.append(_failure_check(
                rule, FailureKind.MIN_VALUE, {"minValue": min_value},
                lambda v: v >= min_value,
            ))

        if rule.max_value is not None:
            max_value = rule.max_value
            checks.append(_failure_check(
                rule, FailureKind.MAX_VALUE, {"maxValue": max_value},
                lambda v: v <= max_value,
            ))

        checks.append(self.custom_rule_check(rule))
        return self._build(rule, _is_empty, _coerce_number, checks)

    def compile_date(self, rule: FieldRule) -> FieldValidator:
        checks: list[Check | None] = [self.min_date_check(rule), self.custom_rule_check(rule)]
        return self._build(rule, _is_empty, _coerce_date, checks)

    def min_date_check(self, rule: FieldRule) -> Check | None:
        if rule.min_date is None:
            return None

        if rule.min_date == MIN_DATE_TODAY:
            today = self.today
            return _failure_check(
                rule, FailureKind.MIN_DATE, {"minDate": MIN_DATE_TODAY},
                lambda v: v >= today(),
            )

        bound = parse_iso_date(rule.min_date)
        if bound is None:
            self.report(
                rule.name,
                DiagnosticCode.INVALID_MIN_DATE,
                f"minDate {rule.min_date!r} is neither 'today' nor a YYYY-MM-DD date; check skipped",
            )
            return None

        return _failure_check(
            rule, FailureKind.MIN_DATE, {"minDate": rule.min_date},
            lambda v: v >= bound,
        )

    def compile_fallback(self, rule: FieldRule) -> FieldValidator:
        declared = rule.declared_type if rule.declared_type is not None else "<missing>"
        self.report(
            rule.name,
            DiagnosticCode.UNSUPPORTED_KIND,
            f"Unsupported validation type '{declared}'; only required is enforced",
        )
        return self._build(rule, _is_empty, _identity, [])

    def compile_field(self, rule: FieldRule) -> FieldValidator:
        strategy = {
            ValueKind.STRING: self.compile_string,
            ValueKind.NUMBER: self.compile_number,
            ValueKind.DATE: self.compile_date,
        }.get(rule.kind, self.compile_fallback)
        logger.debug("Compiling field '%s' as %s", rule.name, rule.kind.value)
        return strategy(rule)


# =============================================================================
# Validator Set
# =============================================================================


@dataclass
class FormValidationResult:
    """Result of validating every field of a form.

    Attributes:
        valid: True if no field failed
        errors: Field name -> failure, in declared field order
    """

    valid: bool
    errors: dict[str, ValidationFailure] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        return {
            "valid": self.valid,
            "errors": {name: e.to_dict() for name, e in self.errors.items()},
        }


class ValidatorSet(Mapping[str, FieldValidator]):
    """The compiled validators for one rule document.

    Behaves as a read-only mapping of field name -> FieldValidator, in
    declared field order. Fields dropped during compilation are absent; the
    reasons are listed in ``diagnostics``.
    """

    def __init__(
        self,
        validators: dict[str, FieldValidator],
        diagnostics: list[CompileDiagnostic] | None = None,
    ):
        self._validators = dict(validators)
        self.diagnostics: tuple[CompileDiagnostic, ...] = tuple(diagnostics or ())

    def __getitem__(self, name: str) -> FieldValidator:
        return self._validators[name]

    def __iter__(self) -> Iterator[str]:
        return iter(self._validators)

    def __len__(self) -> int:
        return len(self._validators)

    @property
    def rules(self) -> dict[str, FieldRule]:
        """Resolved rule of every compiled field."""
        return {name: v.rule for name, v in self._validators.items()}

    def validate_field(self, name: str, value: Any = None) -> ValidationOutcome:
        """Validate one field's value.

        Raises:
            KeyError: If the field has no compiled validator
        """
        return self._validators[name](value)

    def validate_form(self, values: Mapping[str, Any]) -> FormValidationResult:
        """Validate all fields at once; missing keys count as absent values."""
        errors: dict[str, ValidationFailure] = {}
        for name, validator in self._validators.items():
            outcome = validator(values.get(name))
            if outcome.failure is not None:
                errors[name] = outcome.failure
        return FormValidationResult(valid=not errors, errors=errors)

    def allowed_values(self, name: str) -> list[Any]:
        """Allowed values of a field, e.g. to populate a select box."""
        validator = self._validators.get(name)
        if validator is None or validator.rule.allowed_values is None:
            return []
        return list(validator.rule.allowed_values)


# =============================================================================
# Entry points
# =============================================================================


def compile_field(
    rule: FieldRule,
    *,
    today: Today | None = None,
    diagnostics: list[CompileDiagnostic] | None = None,
) -> FieldValidator:
    """Compile a single resolved rule.

    Args:
        rule: The resolved field rule
        today: Returns the current date for ``minDate: "today"``
        diagnostics: If given, non-fatal findings are appended to it
    """
    register_builtin_rules()
    compilation = _Compilation(today or date.today)
    validator = compilation.compile_field(rule)
    if diagnostics is not None:
        diagnostics.extend(compilation.diagnostics)
    return validator


def compile_rules(
    rule_document: Mapping[str, Any],
    definitions: Mapping[str, dict[str, Any]] | None = None,
    *,
    today: Today | None = None,
) -> ValidatorSet:
    """Compile every field of a rule document.

    Never raises for per-field problems; see the module docstring.

    Args:
        rule_document: Field name -> raw rule dict (may use ``$ref``)
        definitions: Definition name -> raw rule dict
        today: Returns the current date for ``minDate: "today"``.
            Defaults to ``datetime.date.today``.

    Returns:
        A ValidatorSet with one validator per compiled field
    """
    register_builtin_rules()
    compilation = _Compilation(today or date.today)
    defs = dict(definitions or {})
    validators: dict[str, FieldValidator] = {}

    for field_name, raw_rule in rule_document.items():
        if not isinstance(raw_rule, dict):
            compilation.report(
                field_name,
                DiagnosticCode.INVALID_RULE,
                f"Rule must be an object, got {type(raw_rule).__name__}; field skipped",
            )
            continue

        try:
            rule = resolve_rule(field_name, raw_rule, defs)
        except MissingDefinition:
            compilation.report(
                field_name,
                DiagnosticCode.MISSING_DEFINITION,
                f"Validation definition not found for $ref: {raw_rule.get('$ref')}; field skipped",
            )
            continue
        except (ValueError, TypeError) as exc:
            compilation.report(
                field_name,
                DiagnosticCode.INVALID_RULE,
                f"{exc}; field skipped",
            )
            continue

        validators[field_name] = compilation.compile_field(rule)

    return ValidatorSet(validators, compilation.diagnostics)


def compile_document(document: RuleDocument, *, today: Today | None = None) -> ValidatorSet:
    """Compile a RuleDocument fetched from a rule source."""
    return compile_rules(document.fields, document.definitions, today=today)
