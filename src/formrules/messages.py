"""Error message templates and placeholder substitution.

Templates use ``{name}`` placeholders. Each failure kind may only
substitute its own constraint value (plus ``{field}``); unknown
placeholders are left in the message literally.
"""

import re
from decimal import Decimal
from typing import Any

from formrules.types import FailureKind, ValueKind

PLACEHOLDER_PATTERN = re.compile(r"\{(?P<name>\w+)\}")

# Placeholders each failure kind may fill in, besides {field}
PLACEHOLDERS: dict[FailureKind, tuple[str, ...]] = {
    FailureKind.REQUIRED: (),
    FailureKind.TYPE: (),
    FailureKind.MIN_LENGTH: ("minLength",),
    FailureKind.MAX_LENGTH: ("maxLength",),
    FailureKind.PATTERN: ("pattern",),
    FailureKind.ALLOWED_VALUES: ("allowedValues",),
    FailureKind.MIN_VALUE: ("minValue",),
    FailureKind.MAX_VALUE: ("maxValue",),
    FailureKind.MIN_DATE: ("minDate",),
    FailureKind.CUSTOM_RULE: ("customRule",),
}

DEFAULT_TEMPLATES: dict[FailureKind, str] = {
    FailureKind.MIN_LENGTH: "Minimum length is {minLength}",
    FailureKind.MAX_LENGTH: "Maximum length is {maxLength}",
    FailureKind.PATTERN: "Invalid format",
    FailureKind.ALLOWED_VALUES: "Must be one of: {allowedValues}",
    FailureKind.MIN_VALUE: "Minimum value is {minValue}",
    FailureKind.MAX_VALUE: "Maximum value is {maxValue}",
    FailureKind.MIN_DATE: "Date cannot be in the past.",
    FailureKind.CUSTOM_RULE: "Value does not satisfy {customRule}.",
}

DEFAULT_TYPE_MESSAGES: dict[ValueKind, str] = {
    ValueKind.STRING: "Invalid value, must be a string.",
    ValueKind.NUMBER: "Must be a valid number",
    ValueKind.DATE: "Please enter a valid date.",
}


def format_literal(value: Any) -> str:
    """Render a constraint value the way it reads in the rule document.

    Integral floats drop their ".0" and lists are joined with ", ".
    """
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    if isinstance(value, Decimal):
        return format(value, "f")
    if isinstance(value, (list, tuple)):
        return ", ".join(format_literal(v) for v in value)
    return str(value)


def render_message(
    template: str,
    kind: FailureKind,
    values: dict[str, Any],
) -> str:
    """Substitute whitelisted placeholders in a template.

    Args:
        template: Message template with {placeholder} tokens
        kind: Failure kind, which decides the allowed placeholders
        values: Placeholder name -> raw constraint value

    Returns:
        The rendered message. Placeholders outside the whitelist, or
        without a value, are kept verbatim.
    """
    allowed = set(PLACEHOLDERS.get(kind, ())) | {"field"}

    def replace(match: re.Match) -> str:
        name = match.group("name")
        if name not in allowed or values.get(name) is None:
            return match.group(0)
        return format_literal(values[name])

    return PLACEHOLDER_PATTERN.sub(replace, template)


def default_required_message(field_name: str) -> str:
    """Build the fallback required message from a camelCase field name.

    >>> default_required_message("beneficiaryName")
    'beneficiary name is required'
    """
    words = re.sub(r"([A-Z])", r" \1", field_name).strip().lower()
    return f"{words} is required"
