"""Resolve field rules that reference reusable definitions.

A field rule may point at a named definition with ``$ref``. Resolution
copies the definition's attributes, overlays every attribute set on the
field rule itself, and drops the reference marker:

    definitions = {"accountNumber": {"type": "string", "pattern": "^[0-9]{8,17}$"}}
    rule = {"$ref": "#/definitions/accountNumber", "maxLength": 100}

    resolve_rule("account", rule, definitions)
    # FieldRule(name="account", declared_type="string",
    #           pattern="^[0-9]{8,17}$", max_length=100, ...)
"""

from typing import Any

from formrules.errors import MissingDefinition
from formrules.types import REF_KEY, FieldRule

DEFINITIONS_PREFIX = "#/definitions/"


def parse_ref(ref: str) -> str:
    """Extract the definition name from a ``$ref`` pointer.

    Values without the ``#/definitions/`` prefix are used as the bare name.
    """
    if ref.startswith(DEFINITIONS_PREFIX):
        return ref[len(DEFINITIONS_PREFIX):]
    return ref


def merge_rule(
    field_name: str,
    raw_rule: dict[str, Any],
    definitions: dict[str, dict[str, Any]],
) -> dict[str, Any]:
    """Expand a raw rule dict against the definitions, without parsing it.

    Raises:
        MissingDefinition: If the rule references an unknown definition
    """
    ref = raw_rule.get(REF_KEY)
    if ref is None:
        return dict(raw_rule)

    ref_name = parse_ref(str(ref))
    definition = definitions.get(ref_name)
    if definition is None:
        raise MissingDefinition(field_name, ref_name)

    # Field attributes win over the definition's
    merged = {**definition, **raw_rule}
    merged.pop(REF_KEY, None)
    return merged


def resolve_rule(
    field_name: str,
    raw_rule: dict[str, Any],
    definitions: dict[str, dict[str, Any]] | None = None,
) -> FieldRule:
    """Resolve one field's raw rule into a FieldRule.

    Inputs are never mutated; the same arguments always give an equal result.

    Args:
        field_name: Name of the field the rule belongs to
        raw_rule: The field's rule dict, possibly carrying ``$ref``
        definitions: Definition name -> rule dict

    Returns:
        The resolved FieldRule

    Raises:
        MissingDefinition: If ``$ref`` names an unknown definition
        ValueError: If a constraint value has the wrong type
    """
    merged = merge_rule(field_name, raw_rule, definitions or {})
    return FieldRule.from_dict(field_name, merged)


def resolve_document(
    fields: dict[str, dict[str, Any]],
    definitions: dict[str, dict[str, Any]] | None = None,
) -> dict[str, FieldRule]:
    """Resolve every field of a document, failing on the first bad field.

    The compiler resolves field by field so it can skip bad ones; this is
    for callers that want all-or-nothing resolution.
    """
    return {
        name: resolve_rule(name, raw, definitions)
        for name, raw in fields.items()
    }
