"""Rule source configuration."""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path

from formrules.loader import DEFAULT_DEFINITIONS_PATH, DEFAULT_RULES_DIR, FileRuleSource

_FALSE_VALUES = {"0", "false", "no", "off"}


@dataclass
class RulesConfig:
    """Where rule documents and definitions are read from."""

    rules_dir: Path = DEFAULT_RULES_DIR
    definitions_path: Path = DEFAULT_DEFINITIONS_PATH
    check_schema: bool = True

    @classmethod
    def from_env(cls) -> RulesConfig:
        """Create config from environment variables.

        - FORMRULES_RULES_DIR: directory of <formId>.json|.yaml files
        - FORMRULES_DEFINITIONS_PATH: definitions document
        - FORMRULES_CHECK_SCHEMA: "0", "false", "no" or "off" disables shape checks

        Unset variables fall back to the documents packaged with formrules.
        """
        rules_dir = os.environ.get("FORMRULES_RULES_DIR")
        definitions_path = os.environ.get("FORMRULES_DEFINITIONS_PATH")
        check_schema = os.environ.get("FORMRULES_CHECK_SCHEMA", "true")

        return cls(
            rules_dir=Path(rules_dir) if rules_dir else DEFAULT_RULES_DIR,
            definitions_path=Path(definitions_path) if definitions_path else DEFAULT_DEFINITIONS_PATH,
            check_schema=check_schema.strip().lower() not in _FALSE_VALUES,
        )

    def create_source(self) -> FileRuleSource:
        return FileRuleSource(
            rules_dir=self.rules_dir,
            definitions_path=self.definitions_path,
            check_schema=self.check_schema,
        )
