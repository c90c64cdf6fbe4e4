"""Tests for rule compilation.

Covers:
- string, number, date and fallback strategies
- required/absence semantics
- first-failure-wins ordering and message templating
- per-field degradation (missing definition, invalid pattern, bad rules)
- ValidatorSet form-level validation
"""

import logging
from datetime import date
from decimal import Decimal

import pytest

from formrules.compiler import ValidatorSet, compile_document, compile_field, compile_rules
from formrules.custom_rules import CustomRuleRegistry, custom_rule
from formrules.resolver import resolve_rule
from formrules.types import DiagnosticCode, FailureKind, RuleDocument, ValueKind


TODAY = date(2025, 6, 2)  # Monday


def fixed_today() -> date:
    return TODAY


def make_rule(**attrs) -> dict:
    """Helper to build a raw rule dict from keyword attributes."""
    return dict(attrs)


def compile_one(rule: dict, name: str = "field", definitions: dict | None = None):
    """Compile a single-field document and return its validator."""
    validators = compile_rules({name: rule}, definitions, today=fixed_today)
    return validators[name]


@pytest.fixture(autouse=True)
def reset_custom_rules():
    CustomRuleRegistry.clear()
    yield
    CustomRuleRegistry.clear()


# =============================================================================
# String Fields
# =============================================================================


class TestStringRequired:
    @pytest.mark.parametrize("value", ["", "   ", None])
    def test_required_absent_values(self, value):
        validator = compile_one(make_rule(type="string", required=True))
        outcome = validator(value)
        assert not outcome.ok
        assert outcome.kind is FailureKind.REQUIRED

    def test_required_called_without_value(self):
        validator = compile_one(make_rule(type="string", required=True))
        assert validator().kind is FailureKind.REQUIRED

    def test_required_uses_configured_message(self):
        validator = compile_one(make_rule(
            type="string", required=True, errorMessageRequired="Routing number is required.",
        ))
        assert validator("").message == "Routing number is required."

    def test_required_default_message_names_field(self):
        validator = compile_one(make_rule(type="string", required=True), name="beneficiaryName")
        assert validator(None).message == "beneficiary name is required"

    def test_optional_absent_skips_other_constraints(self):
        validator = compile_one(make_rule(
            type="string", required=False, minLength=5, pattern="^x$", allowedValues=["a"],
        ))
        for value in ("", "  ", None):
            assert validator(value).ok


class TestStringConstraints:
    def test_type_must_be_string(self):
        validator = compile_one(make_rule(type="string"))
        outcome = validator(12345)
        assert outcome.kind is FailureKind.TYPE
        assert outcome.message == "Invalid value, must be a string."

    def test_type_message_template(self):
        validator = compile_one(make_rule(type="string", errorMessageType="Text please"))
        assert validator(["a"]).message == "Text please"

    def test_min_length_on_trimmed_value(self):
        validator = compile_one(make_rule(type="string", minLength=3))
        assert validator("  ab  ").kind is FailureKind.MIN_LENGTH
        assert validator("  abc  ").ok

    def test_max_length_on_trimmed_value(self):
        validator = compile_one(make_rule(type="string", maxLength=3))
        assert validator("  abc   ").ok
        assert validator("abcd").kind is FailureKind.MAX_LENGTH

    def test_max_length_message_round_trip(self):
        validator = compile_one(make_rule(
            type="string",
            maxLength=100,
            errorMessageMaxLength="cannot exceed {maxLength} characters",
        ))
        outcome = validator("x" * 101)
        assert outcome.kind is FailureKind.MAX_LENGTH
        assert outcome.message == "cannot exceed 100 characters"

    def test_default_length_messages(self):
        validator = compile_one(make_rule(type="string", minLength=2, maxLength=4))
        assert validator("a").message == "Minimum length is 2"
        assert validator("abcde").message == "Maximum length is 4"

    def test_pattern(self):
        validator = compile_one(make_rule(
            type="string",
            pattern="^[0-9]{9}$",
            errorMessagePattern="Routing number must be exactly 9 digits.",
        ))
        outcome = validator("12345678")
        assert outcome.kind is FailureKind.PATTERN
        assert outcome.message == "Routing number must be exactly 9 digits."
        assert validator("123456789").ok

    def test_pattern_matches_trimmed_value(self):
        validator = compile_one(make_rule(type="string", pattern="^[0-9]{9}$"))
        assert validator(" 123456789 ").ok

    def test_unanchored_pattern_searches(self):
        validator = compile_one(make_rule(type="string", pattern="[0-9]"))
        assert validator("abc1").ok
        assert validator("abc").message == "Invalid format"

    def test_allowed_values_case_sensitive(self):
        validator = compile_one(make_rule(
            type="string",
            allowedValues=["USD", "CAD", "EUR", "GBP"],
            errorMessageAllowedValues="Invalid currency. Allowed: {allowedValues}.",
        ))
        assert validator(" USD ").ok
        outcome = validator("usd")
        assert outcome.kind is FailureKind.ALLOWED_VALUES
        assert outcome.message == "Invalid currency. Allowed: USD, CAD, EUR, GBP."

    def test_default_allowed_values_message(self):
        validator = compile_one(make_rule(type="string", allowedValues=["a", "b"]))
        assert validator("c").message == "Must be one of: a, b"

    def test_first_failure_wins(self):
        validator = compile_one(make_rule(
            type="string", minLength=2, maxLength=3, pattern="^[a-z]+$", allowedValues=["abc"],
        ))
        assert validator("a").kind is FailureKind.MIN_LENGTH
        assert validator("abcd").kind is FailureKind.MAX_LENGTH
        assert validator("A1").kind is FailureKind.PATTERN
        assert validator("xyz").kind is FailureKind.ALLOWED_VALUES
        assert validator("abc").ok


# =============================================================================
# Number Fields
# =============================================================================


class TestNumberFields:
    AMOUNT = make_rule(
        type="number",
        required=True,
        minValue=0.01,
        maxValue=1000000,
        errorMessageMinValue="Amount must be at least {minValue}.",
        errorMessageMaxValue="Amount cannot exceed {maxValue}.",
    )

    @pytest.mark.parametrize("value", ["", None])
    def test_required_absent(self, value):
        assert compile_one(self.AMOUNT)(value).kind is FailureKind.REQUIRED

    def test_optional_absent(self):
        validator = compile_one(make_rule(type="number", minValue=10))
        assert validator("").ok
        assert validator(None).ok

    def test_zero_fails_min_value(self):
        outcome = compile_one(self.AMOUNT)(0.00)
        assert outcome.kind is FailureKind.MIN_VALUE
        assert outcome.message == "Amount must be at least 0.01."

    def test_max_value_is_inclusive(self):
        validator = compile_one(self.AMOUNT)
        assert validator(1000000).ok
        outcome = validator(1000000.01)
        assert outcome.kind is FailureKind.MAX_VALUE
        assert outcome.message == "Amount cannot exceed 1000000."

    def test_min_value_is_inclusive(self):
        assert compile_one(self.AMOUNT)(0.01).ok

    def test_numeric_strings_are_coerced(self):
        validator = compile_one(self.AMOUNT)
        assert validator("250.75").ok
        assert validator(" 42 ").ok
        assert validator("0.00").kind is FailureKind.MIN_VALUE

    def test_decimal_input(self):
        assert compile_one(self.AMOUNT)(Decimal("10.50")).ok

    @pytest.mark.parametrize("value", ["abc", "12abc", "nan", "inf", "1_000", True, [1], "   "])
    def test_non_numbers_fail_type(self, value):
        outcome = compile_one(self.AMOUNT)(value)
        assert outcome.kind is FailureKind.TYPE
        assert outcome.message == "Must be a valid number"

    def test_default_bound_messages(self):
        validator = compile_one(make_rule(type="number", minValue=1, maxValue=10))
        assert validator(0).message == "Minimum value is 1"
        assert validator(11).message == "Maximum value is 10"


# =============================================================================
# Date Fields
# =============================================================================


class TestDateFields:
    TRANSFER_DATE = make_rule(
        type="date",
        required=True,
        minDate="today",
        customRule="noWeekendOrHoliday",
        errorMessageCustomRule="Date cannot be a weekend or public holiday.",
    )

    @pytest.mark.parametrize("value", ["", None])
    def test_required_absent(self, value):
        assert compile_one(self.TRANSFER_DATE)(value).kind is FailureKind.REQUIRED

    @pytest.mark.parametrize("value", ["2025-02-30", "06/10/2025", "2025-6-10", "tomorrow", 20250610])
    def test_invalid_dates_fail_type(self, value):
        outcome = compile_one(self.TRANSFER_DATE)(value)
        assert outcome.kind is FailureKind.TYPE
        assert outcome.message == "Please enter a valid date."

    def test_past_date_fails_min_date(self):
        outcome = compile_one(self.TRANSFER_DATE)("2025-05-30")
        assert outcome.kind is FailureKind.MIN_DATE
        assert outcome.message == "Date cannot be in the past."

    def test_today_is_allowed(self):
        assert compile_one(self.TRANSFER_DATE)(TODAY.isoformat()).ok

    def test_today_is_evaluated_per_validation(self):
        current = {"day": date(2025, 6, 2)}
        validators = compile_rules(
            {"d": make_rule(type="date", minDate="today")},
            today=lambda: current["day"],
        )
        assert validators["d"]("2025-06-03").ok
        current["day"] = date(2025, 6, 4)
        assert validators["d"]("2025-06-03").kind is FailureKind.MIN_DATE

    def test_saturday_fails_custom_rule(self):
        outcome = compile_one(self.TRANSFER_DATE)("2025-06-07")
        assert outcome.kind is FailureKind.CUSTOM_RULE
        assert outcome.message == "Date cannot be a weekend or public holiday."

    def test_saturday_passes_without_custom_rule(self):
        validator = compile_one(make_rule(type="date", required=True, minDate="today"))
        assert validator("2025-06-07").ok

    def test_holiday_fails_custom_rule(self):
        assert compile_one(self.TRANSFER_DATE)("2025-07-04").kind is FailureKind.CUSTOM_RULE

    def test_business_day_passes(self):
        assert compile_one(self.TRANSFER_DATE)("2025-06-10").ok

    def test_builtin_custom_rule_default_message(self):
        validator = compile_one(make_rule(type="date", customRule="noWeekendOrHoliday"))
        assert validator("2025-06-08").message == "Date cannot be a weekend or public holiday."

    def test_min_date_before_custom_rule(self):
        # A past Saturday reports minDate, not customRule
        assert compile_one(self.TRANSFER_DATE)("2025-05-31").kind is FailureKind.MIN_DATE

    def test_literal_min_date(self):
        validator = compile_one(make_rule(
            type="date", minDate="2025-09-01", errorMessageMinDate="Not before {minDate}",
        ))
        assert validator("2025-09-01").ok
        outcome = validator("2025-08-29")
        assert outcome.kind is FailureKind.MIN_DATE
        assert outcome.message == "Not before 2025-09-01"

    def test_invalid_literal_min_date_is_skipped(self):
        validators = compile_rules(
            {"d": make_rule(type="date", minDate="next week")}, today=fixed_today,
        )
        assert validators["d"]("2000-01-01").ok
        assert [d.code for d in validators.diagnostics] == [DiagnosticCode.INVALID_MIN_DATE]


# =============================================================================
# Fallback Kind
# =============================================================================


class TestFallbackKind:
    def test_boolean_enforces_required_only(self):
        validators = compile_rules({"agree": make_rule(type="boolean", required=True)})
        validator = validators["agree"]
        assert validator(None).kind is FailureKind.REQUIRED
        assert validator("").kind is FailureKind.REQUIRED
        assert validator(False).ok
        assert validator("anything").ok

    def test_unknown_kind_is_permissive_and_reported(self, caplog):
        with caplog.at_level(logging.WARNING, logger="formrules.compiler"):
            validators = compile_rules({"blob": make_rule(type="binary", maxLength=1)})

        assert validators["blob"]("far too long").ok
        assert validators["blob"](None).ok
        assert [d.code for d in validators.diagnostics] == [DiagnosticCode.UNSUPPORTED_KIND]
        assert "binary" in caplog.text

    def test_missing_type_uses_fallback(self):
        validators = compile_rules({"x": make_rule(required=True)})
        assert validators["x"](None).kind is FailureKind.REQUIRED
        assert validators.diagnostics[0].code is DiagnosticCode.UNSUPPORTED_KIND


# =============================================================================
# Per-field Degradation
# =============================================================================


class TestDegradation:
    def test_missing_definition_drops_only_that_field(self, caplog):
        with caplog.at_level(logging.WARNING, logger="formrules.compiler"):
            validators = compile_rules(
                {
                    "ghost": {"$ref": "#/definitions/doesNotExist"},
                    "memo": make_rule(type="string", maxLength=5),
                },
                {},
            )

        assert "ghost" not in validators
        assert list(validators) == ["memo"]
        assert validators["memo"]("abcdef").kind is FailureKind.MAX_LENGTH
        assert validators.diagnostics[0].code is DiagnosticCode.MISSING_DEFINITION
        assert validators.diagnostics[0].field == "ghost"
        assert "#/definitions/doesNotExist" in caplog.text

    def test_invalid_pattern_keeps_other_constraints(self):
        validators = compile_rules({"code": make_rule(type="string", pattern="([a-z", maxLength=3)})

        validator = validators["code"]
        assert validator("ab").ok
        assert validator("abcd").kind is FailureKind.MAX_LENGTH
        assert [d.code for d in validators.diagnostics] == [DiagnosticCode.INVALID_PATTERN]

    def test_malformed_rule_is_dropped(self):
        validators = compile_rules({
            "bad": make_rule(type="string", minLength="three"),
            "notARule": "string",
            "good": make_rule(type="number"),
        })
        assert list(validators) == ["good"]
        codes = {d.field: d.code for d in validators.diagnostics}
        assert codes == {"bad": DiagnosticCode.INVALID_RULE, "notARule": DiagnosticCode.INVALID_RULE}

    def test_unknown_custom_rule_is_skipped(self):
        validators = compile_rules({"d": make_rule(type="date", customRule="noFullMoon")})
        assert validators["d"]("2025-06-07").ok
        assert validators.diagnostics[0].code is DiagnosticCode.UNKNOWN_CUSTOM_RULE

    def test_custom_rule_for_wrong_kind_is_skipped(self):
        validators = compile_rules({"n": make_rule(type="number", customRule="noWeekendOrHoliday")})
        assert validators["n"](5).ok
        assert validators.diagnostics[0].code is DiagnosticCode.UNKNOWN_CUSTOM_RULE

    def test_clean_document_has_no_diagnostics(self):
        validators = compile_rules({"memo": make_rule(type="string")})
        assert validators.diagnostics == ()


# =============================================================================
# Custom Rules
# =============================================================================


class TestCustomRules:
    def test_registered_rule_runs_last_for_strings(self):
        @custom_rule("noSpaces", kinds=(ValueKind.STRING,), message="No spaces allowed")
        def no_spaces(value):
            return " " not in value

        validator = compile_one(make_rule(type="string", maxLength=5, customRule="noSpaces"))
        assert validator("a b").kind is FailureKind.CUSTOM_RULE
        assert validator("a b").message == "No spaces allowed"
        assert validator("a b c d").kind is FailureKind.MAX_LENGTH
        assert validator("ab").ok

    def test_custom_rule_on_numbers_with_template(self):
        @custom_rule("wholeDollars", kinds=(ValueKind.NUMBER,))
        def whole_dollars(value):
            return float(value).is_integer()

        validator = compile_one(make_rule(
            type="number", customRule="wholeDollars", errorMessageCustomRule="Fails {customRule}",
        ))
        assert validator("10").ok
        assert validator(10.5).message == "Fails wholeDollars"


# =============================================================================
# Validator Set
# =============================================================================


class TestValidatorSet:
    def make_set(self) -> ValidatorSet:
        return compile_rules(
            {
                "name": make_rule(type="string", required=True),
                "currency": make_rule(type="string", allowedValues=["USD", "EUR"]),
                "amount": make_rule(type="number", minValue=1),
            },
            today=fixed_today,
        )

    def test_mapping_interface(self):
        validators = self.make_set()
        assert len(validators) == 3
        assert list(validators) == ["name", "currency", "amount"]
        assert "currency" in validators

    def test_validate_form_collects_failures_in_field_order(self):
        result = self.make_set().validate_form({"currency": "GBP", "amount": 0})
        assert not result.valid
        assert list(result.errors) == ["name", "currency", "amount"]
        assert result.errors["name"].kind is FailureKind.REQUIRED

    def test_validate_form_success(self):
        result = self.make_set().validate_form({"name": "Ada"})
        assert result.valid
        assert result.to_dict() == {"valid": True, "errors": {}}

    def test_validate_form_to_dict(self):
        result = self.make_set().validate_form({"name": "Ada", "amount": "x"})
        assert result.to_dict()["errors"]["amount"] == {
            "kind": "type",
            "message": "Must be a valid number",
            "field": "amount",
        }

    def test_validate_field(self):
        validators = self.make_set()
        assert validators.validate_field("amount", 5).ok
        with pytest.raises(KeyError):
            validators.validate_field("missing", 1)

    def test_allowed_values(self):
        validators = self.make_set()
        assert validators.allowed_values("currency") == ["USD", "EUR"]
        assert validators.allowed_values("name") == []
        assert validators.allowed_values("nope") == []

    def test_outcome_to_dict(self):
        validators = self.make_set()
        assert validators["amount"](5).to_dict() == {"ok": True}
        assert validators["amount"](0).to_dict() == {
            "ok": False,
            "kind": "minValue",
            "message": "Minimum value is 1",
        }


# =============================================================================
# Idempotence and Entry Points
# =============================================================================


class TestEntryPoints:
    def test_compiling_twice_gives_same_outcomes(self):
        document = {
            "account": {"$ref": "#/definitions/accountNumber", "maxLength": 10},
            "when": make_rule(type="date", minDate="today", customRule="noWeekendOrHoliday"),
        }
        definitions = {"accountNumber": make_rule(type="string", required=True, pattern="^[0-9]{8,17}$")}
        first = compile_rules(document, definitions, today=fixed_today)
        second = compile_rules(document, definitions, today=fixed_today)

        samples = ["", None, "1234567", "12345678", "12345678901", "2025-06-07", "2025-06-10", 7]
        for name in document:
            for value in samples:
                assert first[name](value) == second[name](value)

    def test_ref_with_added_max_length_enforces_both(self):
        definitions = {"accountNumber": make_rule(type="string", required=True, pattern="^[0-9]{8,17}$")}
        validators = compile_rules(
            {
                "plain": {"$ref": "#/definitions/accountNumber"},
                "short": {"$ref": "#/definitions/accountNumber", "maxLength": 10},
            },
            definitions,
        )
        assert validators["plain"]("1234567").kind is FailureKind.PATTERN
        assert validators["plain"]("12345678901234567").ok
        assert validators["short"]("12345678901").kind is FailureKind.MAX_LENGTH
        assert validators["short"]("1234567").kind is FailureKind.PATTERN
        assert validators["short"]("1234567890").ok

    def test_compile_document(self):
        document = RuleDocument(
            fields={"amount": {"$ref": "#/definitions/positiveAmount"}},
            definitions={"positiveAmount": make_rule(type="number", minValue=0.01)},
        )
        validators = compile_document(document)
        assert validators["amount"](0).kind is FailureKind.MIN_VALUE

    def test_compile_field(self):
        diagnostics = []
        rule = resolve_rule("code", make_rule(type="string", pattern="(", required=True))
        validator = compile_field(rule, diagnostics=diagnostics)
        assert validator("").kind is FailureKind.REQUIRED
        assert validator("x").ok
        assert diagnostics[0].code is DiagnosticCode.INVALID_PATTERN

    def test_does_not_mutate_document(self):
        document = {"a": {"$ref": "#/definitions/d", "maxLength": 3}}
        definitions = {"d": make_rule(type="string")}
        compile_rules(document, definitions)
        assert document == {"a": {"$ref": "#/definitions/d", "maxLength": 3}}
        assert definitions == {"d": {"type": "string"}}
