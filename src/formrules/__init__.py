"""formrules: compile declarative field rules into validators.

A rule document maps field names to JSON rules; rules may reference
reusable definitions with ``$ref``. The compiler resolves each rule and
builds a validator per field that returns a structured outcome with a
rendered error message.

Usage:
    from formrules import FileRuleSource, compile_rules, load_validator_set

    validators = compile_rules(
        {"routingNumber": {"type": "string", "required": True, "pattern": "^[0-9]{9}$"}},
    )
    validators["routingNumber"]("12345678").kind   # FailureKind.PATTERN

    # Or fetch from a rule source
    validators = await load_validator_set(FileRuleSource(), "wireTransferRequest")
"""

from formrules.calendar_rules import (
    US_FEDERAL_2025,
    HolidayCalendar,
    is_business_day,
    is_holiday,
    is_weekend,
)
from formrules.compiler import (
    FieldValidator,
    FormValidationResult,
    ValidatorSet,
    compile_document,
    compile_field,
    compile_rules,
)
from formrules.config import RulesConfig
from formrules.custom_rules import (
    CustomRuleDefinition,
    CustomRuleRegistry,
    custom_rule,
    register_builtin_rules,
)
from formrules.errors import (
    ConfigurationError,
    FormRulesError,
    InvalidPattern,
    MissingDefinition,
)
from formrules.loader import (
    FileRuleSource,
    InMemoryRuleSource,
    RuleDocumentSource,
    load_definitions,
    load_validator_set,
)
from formrules.messages import render_message
from formrules.resolver import parse_ref, resolve_document, resolve_rule
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

__all__ = [
    # Types
    "CompileDiagnostic",
    "DiagnosticCode",
    "FailureKind",
    "FieldRule",
    "RuleDocument",
    "ValidationFailure",
    "ValidationOutcome",
    "ValueKind",
    # Errors
    "ConfigurationError",
    "FormRulesError",
    "InvalidPattern",
    "MissingDefinition",
    # Calendar
    "HolidayCalendar",
    "US_FEDERAL_2025",
    "is_business_day",
    "is_holiday",
    "is_weekend",
    # Resolution and compilation
    "parse_ref",
    "resolve_document",
    "resolve_rule",
    "render_message",
    "FieldValidator",
    "FormValidationResult",
    "ValidatorSet",
    "compile_document",
    "compile_field",
    "compile_rules",
    # Custom rules
    "CustomRuleDefinition",
    "CustomRuleRegistry",
    "custom_rule",
    "register_builtin_rules",
    # Sources
    "FileRuleSource",
    "InMemoryRuleSource",
    "RuleDocumentSource",
    "RulesConfig",
    "load_definitions",
    "load_validator_set",
]
