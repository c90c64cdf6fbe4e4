"""
schema.py — JSON Schema shape checks for rule and definitions documents.

Checks only the document shape (objects where objects belong, booleans,
integers and strings in the right places). Semantic problems such as an
unknown ``$ref`` or a bad regex are left to the compiler, which degrades
per field instead of rejecting the document.

Usage:
    from formrules.schema import check_rule_document

    issues = check_rule_document(doc)
    for issue in issues:
        print(issue)
"""
from __future__ import annotations

import json
from dataclasses import dataclass
from functools import lru_cache
from pathlib import Path
from typing import Any

from jsonschema import Draft202012Validator
from jsonschema.exceptions import ValidationError
from referencing import Registry, Resource
from referencing.jsonschema import DRAFT202012

_SCHEMAS_DIR = Path(__file__).parent / "schemas"

RULE_DOCUMENT_SCHEMA = "rule_document.schema.json"
DEFINITIONS_SCHEMA = "definitions.schema.json"

_SCHEMA_NAMES = (
    "_defs.schema.json",
    RULE_DOCUMENT_SCHEMA,
    DEFINITIONS_SCHEMA,
)


@dataclass
class SchemaIssue:
    """A single shape problem found in a document."""

    source: str
    message: str
    path: str = ""  # e.g. "amount/minValue"

    def __str__(self) -> str:
        loc = f" at {self.path}" if self.path else ""
        return f"{self.source}{loc}: {self.message}"


def _load_schema(name: str) -> dict[str, Any]:
    with (_SCHEMAS_DIR / name).open() as fh:
        return json.load(fh)


@lru_cache(maxsize=1)
def _load_registry() -> Registry:
    """Build a Registry holding all formrules schemas."""
    resources = []
    for name in _SCHEMA_NAMES:
        schema = _load_schema(name)
        resources.append(
            (schema["$id"], Resource(contents=schema, specification=DRAFT202012))
        )
    return Registry().with_resources(resources)


@lru_cache(maxsize=None)
def _validator(schema_name: str) -> Draft202012Validator:
    return Draft202012Validator(_load_schema(schema_name), registry=_load_registry())


def _json_path(error: ValidationError) -> str:
    """Convert a jsonschema error path to a readable string."""
    parts = []
    for p in error.absolute_path:
        if isinstance(p, int):
            parts.append(f"[{p}]")
        else:
            parts.append(str(p))
    return "/".join(parts).replace("/[", "[")


def check_document(doc: Any, schema_name: str, source: str = "<document>") -> list[SchemaIssue]:
    """
    Check a parsed document against the named schema.

    Args:
        doc:         Parsed JSON/YAML content.
        schema_name: Schema filename, e.g. ``"rule_document.schema.json"``.
        source:      Label used in issue messages (file path or form id).

    Returns:
        A list of :class:`SchemaIssue` objects (empty when the shape is valid).
    """
    validator = _validator(schema_name)
    return [
        SchemaIssue(source=source, message=error.message, path=_json_path(error))
        for error in sorted(validator.iter_errors(doc), key=lambda e: [str(p) for p in e.path])
    ]


def check_rule_document(doc: Any, source: str = "<document>") -> list[SchemaIssue]:
    return check_document(doc, RULE_DOCUMENT_SCHEMA, source)


def check_definitions_document(doc: Any, source: str = "<definitions>") -> list[SchemaIssue]:
    return check_document(doc, DEFINITIONS_SCHEMA, source)
