"""Rule document sources.

A rule source is the asynchronous boundary of formrules: given a form
identifier it eventually yields a RuleDocument, or fails with a
ConfigurationError. The compiler itself never does I/O.

Sources:
- InMemoryRuleSource: documents held in memory (tests, fixtures, embedding)
- FileRuleSource: ``<rules_dir>/<formId>.json|.yaml|.yml`` plus a
  definitions document read once and cached
"""

import asyncio
import copy
import json
import logging
from pathlib import Path
from typing import Any, Protocol, runtime_checkable

import yaml

from formrules.compiler import Today, ValidatorSet, compile_document
from formrules.errors import ConfigurationError
from formrules.schema import check_definitions_document, check_rule_document
from formrules.types import RuleDocument

logger = logging.getLogger(__name__)

DATA_DIR = Path(__file__).parent / "data"
DEFAULT_RULES_DIR = DATA_DIR / "forms"
DEFAULT_DEFINITIONS_PATH = DATA_DIR / "validation_definitions.json"

RULE_FILE_SUFFIXES = (".json", ".yaml", ".yml")


@runtime_checkable
class RuleDocumentSource(Protocol):
    """Supplies the raw rule document for a named form."""

    async def fetch_rule_document(self, form_id: str) -> RuleDocument:
        """Fetch the rules for one form.

        Args:
            form_id: Form identifier (e.g. "wireTransferRequest")

        Returns:
            The form's RuleDocument

        Raises:
            ConfigurationError: If the form is unknown or the fetch fails
        """
        ...


def _raise_on_issues(issues: list, form_id: str | None = None) -> None:
    if issues:
        details = "; ".join(str(issue) for issue in issues)
        raise ConfigurationError(f"Malformed rule document: {details}", form_id=form_id)


def read_document(path: Path) -> Any:
    """Parse a JSON or YAML file, choosing the parser by suffix.

    ``.json`` files use the json module, everything else PyYAML.

    Raises:
        ConfigurationError: If the file cannot be read or parsed
    """
    try:
        with path.open() as fh:
            if path.suffix.lower() == ".json":
                return json.load(fh)
            return yaml.safe_load(fh)
    except OSError as exc:
        raise ConfigurationError(f"Cannot read {path}: {exc}") from exc
    except (json.JSONDecodeError, yaml.YAMLError) as exc:
        raise ConfigurationError(f"Cannot parse {path}: {exc}") from exc


def parse_definitions(data: Any, source: str = "<definitions>", check_schema: bool = True) -> dict[str, dict[str, Any]]:
    """Extract the definitions mapping from a parsed definitions document.

    Raises:
        ConfigurationError: If the ``definitions`` key is missing or malformed
    """
    if not isinstance(data, dict) or "definitions" not in data:
        raise ConfigurationError(f"'definitions' not found in {source}")
    if check_schema:
        _raise_on_issues(check_definitions_document(data, source))
    return data["definitions"]


def load_definitions(path: Path = DEFAULT_DEFINITIONS_PATH, check_schema: bool = True) -> dict[str, dict[str, Any]]:
    """Load a ``{"definitions": {...}}`` document from disk."""
    return parse_definitions(read_document(path), str(path), check_schema)


def parse_rule_document(data: Any, form_id: str, check_schema: bool = True) -> dict[str, dict[str, Any]]:
    """Validate the shape of a parsed field-rule mapping.

    Raises:
        ConfigurationError: If the document is not a mapping of rule objects
    """
    if not isinstance(data, dict):
        raise ConfigurationError(
            f"Rule document for '{form_id}' must be an object", form_id=form_id
        )
    if check_schema:
        _raise_on_issues(check_rule_document(data, form_id), form_id)
    return data


# =============================================================================
# Sources
# =============================================================================


class InMemoryRuleSource:
    """Rule source backed by dicts.

    Documents are deep-copied on fetch so callers cannot alter the source.
    """

    def __init__(
        self,
        forms: dict[str, dict[str, Any]],
        definitions: dict[str, dict[str, Any]] | None = None,
        check_schema: bool = True,
    ):
        self.forms = forms
        self.definitions = definitions or {}
        self.check_schema = check_schema

    async def fetch_rule_document(self, form_id: str) -> RuleDocument:
        if form_id not in self.forms:
            raise ConfigurationError(
                f"No validation config found for key: {form_id}", form_id=form_id
            )
        fields = parse_rule_document(
            copy.deepcopy(self.forms[form_id]), form_id, self.check_schema
        )
        return RuleDocument(
            fields=fields,
            definitions=copy.deepcopy(self.definitions),
            form_id=form_id,
        )


class FileRuleSource:
    """Rule source reading one file per form from a directory.

    The definitions document is read on first use and cached until
    reload_definitions() is called.
    """

    def __init__(
        self,
        rules_dir: Path = DEFAULT_RULES_DIR,
        definitions_path: Path = DEFAULT_DEFINITIONS_PATH,
        check_schema: bool = True,
    ):
        self.rules_dir = Path(rules_dir)
        self.definitions_path = Path(definitions_path)
        self.check_schema = check_schema
        self._definitions: dict[str, dict[str, Any]] | None = None

    def definitions(self) -> dict[str, dict[str, Any]]:
        if self._definitions is None:
            self._definitions = load_definitions(self.definitions_path, self.check_schema)
        return self._definitions

    def reload_definitions(self) -> None:
        """Drop the cached definitions; the next fetch re-reads them."""
        self._definitions = None

    def list_forms(self) -> list[str]:
        """Form identifiers available in the rules directory."""
        if not self.rules_dir.is_dir():
            return []
        return sorted(
            p.stem for p in self.rules_dir.iterdir()
            if p.suffix in RULE_FILE_SUFFIXES
        )

    def _find_file(self, form_id: str) -> Path:
        if not form_id or "/" in form_id or "\\" in form_id or form_id.startswith("."):
            raise ConfigurationError(f"Invalid form identifier: {form_id!r}", form_id=form_id)
        for suffix in RULE_FILE_SUFFIXES:
            candidate = self.rules_dir / f"{form_id}{suffix}"
            if candidate.is_file():
                return candidate
        raise ConfigurationError(
            f"No validation config found for key: {form_id}", form_id=form_id
        )

    def _load(self, form_id: str) -> RuleDocument:
        path = self._find_file(form_id)
        fields = parse_rule_document(read_document(path), form_id, self.check_schema)
        return RuleDocument(
            fields=fields,
            definitions=copy.deepcopy(self.definitions()),
            form_id=form_id,
        )

    async def fetch_rule_document(self, form_id: str) -> RuleDocument:
        return await asyncio.to_thread(self._load, form_id)


# =============================================================================
# Fetch and compile
# =============================================================================


async def load_validator_set(
    source: RuleDocumentSource,
    form_id: str,
    *,
    today: Today | None = None,
) -> ValidatorSet:
    """Fetch a form's rule document and compile it.

    Fetch failures are logged and re-raised unchanged; they are not retried.
    """
    logger.info("Fetching validation config for: %s", form_id)
    try:
        document = await source.fetch_rule_document(form_id)
    except Exception as exc:
        logger.error("Error fetching validation config for %s: %s", form_id, exc)
        raise

    validator_set = compile_document(document, today=today)
    if validator_set.diagnostics:
        logger.info(
            "Compiled %d fields for %s with %d diagnostics",
            len(validator_set), form_id, len(validator_set.diagnostics),
        )
    return validator_set
