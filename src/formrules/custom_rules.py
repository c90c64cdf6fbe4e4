"""Registry of named business rules referenced by ``customRule``.

A custom rule is a predicate over the already-parsed field value (a
stripped string, a number, or a datetime.date) that returns True when the
value is acceptable. Rules declare which value kinds they support.

Example:
    @custom_rule("evenAmount", kinds=(ValueKind.NUMBER,))
    def even_amount(value) -> bool:
        return value % 2 == 0
"""

from collections.abc import Callable, Iterable
from dataclasses import dataclass
from typing import Any

from formrules.calendar_rules import US_FEDERAL_2025
from formrules.types import ValueKind

RulePredicate = Callable[[Any], bool]

NO_WEEKEND_OR_HOLIDAY = "noWeekendOrHoliday"


@dataclass(frozen=True)
class CustomRuleDefinition:
    """A registered custom rule.

    Attributes:
        name: Identifier used in rule documents
        predicate: Returns True when the parsed value passes
        kinds: Value kinds the rule can be attached to
        message: Fallback message when the field has no template
    """

    name: str
    predicate: RulePredicate
    kinds: frozenset[ValueKind]
    message: str = ""

    def supports(self, kind: ValueKind) -> bool:
        return kind in self.kinds


class CustomRuleRegistry:
    """Registry for custom rules.

    Rules must be registered before a document can reference them; the
    built-in rules are registered by register_builtin_rules().
    """

    _rules: dict[str, CustomRuleDefinition] = {}

    @classmethod
    def register(cls, definition: CustomRuleDefinition) -> None:
        """Register a custom rule.

        Idempotent - re-registering the same name is a no-op.
        """
        if definition.name in cls._rules:
            return
        cls._rules[definition.name] = definition

    @classmethod
    def get(cls, name: str) -> CustomRuleDefinition:
        """Get a registered rule by name.

        Raises:
            ValueError: If the rule is not registered
        """
        if name not in cls._rules:
            raise ValueError(
                f"Custom rule '{name}' is not registered. "
                "Available rules: " + ", ".join(cls.list_registered())
            )
        return cls._rules[name]

    @classmethod
    def is_registered(cls, name: str) -> bool:
        return name in cls._rules

    @classmethod
    def list_registered(cls) -> list[str]:
        return sorted(cls._rules.keys())

    @classmethod
    def clear(cls) -> None:
        """Clear all registrations. Primarily for testing."""
        cls._rules.clear()


def custom_rule(
    name: str,
    kinds: Iterable[ValueKind] = (ValueKind.STRING, ValueKind.NUMBER, ValueKind.DATE),
    message: str = "",
) -> Callable[[RulePredicate], RulePredicate]:
    """Decorator to register a predicate as a custom rule."""

    def decorator(fn: RulePredicate) -> RulePredicate:
        CustomRuleRegistry.register(
            CustomRuleDefinition(
                name=name,
                predicate=fn,
                kinds=frozenset(kinds),
                message=message,
            )
        )
        return fn

    return decorator


def no_weekend_or_holiday(value: Any) -> bool:
    """Reject Saturdays, Sundays and holidays from the reference calendar."""
    return not (US_FEDERAL_2025.is_weekend(value) or US_FEDERAL_2025.is_holiday(value))


def register_builtin_rules() -> None:
    """Register the rules that ship with formrules. Safe to call repeatedly."""
    CustomRuleRegistry.register(
        CustomRuleDefinition(
            name=NO_WEEKEND_OR_HOLIDAY,
            predicate=no_weekend_or_holiday,
            kinds=frozenset({ValueKind.DATE}),
            message="Date cannot be a weekend or public holiday.",
        )
    )
