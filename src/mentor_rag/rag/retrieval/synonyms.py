# retrieval/synonyms.py
"""
Bidirectional synonym table loaded from data.

Names inside one group are interchangeable: every name expands to every
other name of each group it belongs to. Keys and values are stored
normalized so lookups match query terms directly.
"""

import logging
from pathlib import Path
from typing import Iterable, Mapping

import yaml

from ..text import normalize

logger = logging.getLogger(__name__)


class SynonymTable:
    """
    Immutable lookup of alternate names.

    Example:
        table = SynonymTable.from_groups([["körömvirág", "calendula", "marigold"]])
        table.lookup("koromvirag")
        # Returns: ("calendula", "marigold")
    """

    def __init__(self, mapping: Mapping[str, tuple[str, ...]] | None = None):
        self._mapping: dict[str, tuple[str, ...]] = dict(mapping or {})

    @classmethod
    def empty(cls) -> "SynonymTable":
        return cls()

    @classmethod
    def from_groups(cls, groups: Iterable[Iterable[str]]) -> "SynonymTable":
        """
        Build a table from groups of equivalent names.

        Args:
            groups: Iterable of name groups; blank names are ignored

        Returns:
            Initialized SynonymTable
        """
        merged: dict[str, dict[str, None]] = {}

        for group in groups:
            names = list(dict.fromkeys(n for n in (normalize(g).strip() for g in group) if n))
            for name in names:
                bucket = merged.setdefault(name, {})
                for other in names:
                    if other != name:
                        bucket[other] = None

        return cls({name: tuple(others) for name, others in merged.items() if others})

    @classmethod
    def from_yaml(cls, yaml_path: str | Path) -> "SynonymTable":
        """
        Load a table from a YAML file of the form ``{"groups": [[name, ...], ...]}``.

        Args:
            yaml_path: Path to the synonyms file

        Returns:
            Initialized SynonymTable

        Raises:
            FileNotFoundError: If the file doesn't exist
            ValueError: If the structure is invalid
            yaml.YAMLError: If YAML is malformed
        """
        yaml_file = Path(yaml_path)
        if not yaml_file.exists():
            raise FileNotFoundError(f"Synonyms YAML not found: {yaml_path}")

        with open(yaml_file, encoding="utf-8") as f:
            data = yaml.safe_load(f)

        if data is None:
            return cls.empty()

        if not isinstance(data, dict):
            raise ValueError(f"Invalid YAML structure: expected dict, got {type(data).__name__}")

        groups = data.get("groups", [])
        if not isinstance(groups, list):
            raise ValueError("'groups' must be a list")

        for position, group in enumerate(groups):
            if not isinstance(group, list) or not all(isinstance(n, str) for n in group):
                raise ValueError(f"Synonym group {position} must be a list of strings")

        table = cls.from_groups(groups)
        logger.info(f"Loaded {len(groups)} synonym groups ({len(table)} names) from {yaml_file}")
        return table

    def lookup(self, term: str) -> tuple[str, ...]:
        """Return the synonyms of a normalized term, or an empty tuple."""
        return self._mapping.get(term, ())

    def __contains__(self, term: str) -> bool:
        return term in self._mapping

    def __len__(self) -> int:
        return len(self._mapping)
