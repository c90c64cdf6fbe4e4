"""Exceptions raised by the formrules rule compiler and loaders.

Only ConfigurationError is allowed to abort compiling a document. The
others are raised at field granularity and caught by the compiler, which
turns them into diagnostics.
"""


class FormRulesError(Exception):
    """Base error for the formrules package."""
    pass


class ConfigurationError(FormRulesError):
    """A rule document could not be fetched, parsed, or is malformed."""

    def __init__(self, message: str, form_id: str | None = None):
        super().__init__(message)
        self.form_id = form_id


class MissingDefinition(FormRulesError):
    """A field's $ref names a definition that does not exist."""

    def __init__(self, field_name: str, ref_name: str):
        super().__init__(
            f"Field '{field_name}' references unknown definition '{ref_name}'"
        )
        self.field_name = field_name
        self.ref_name = ref_name


class InvalidPattern(FormRulesError):
    """A pattern constraint is not a valid regular expression."""

    def __init__(self, field_name: str, pattern: str, reason: str):
        super().__init__(
            f"Invalid regex pattern for field '{field_name}': {pattern!r} ({reason})"
        )
        self.field_name = field_name
        self.pattern = pattern
        self.reason = reason
