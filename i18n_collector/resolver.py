"""Classify extracted text and resolve lookup keys against translation stores."""

import logging
import re
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Any

from i18n_collector.errors import UnresolvedKeyError
from i18n_collector.models import FileType
from i18n_collector.stores import SEPARATOR, read_flat, read_namespace

logger = logging.getLogger(__name__)

# Two or more ASCII identifiers joined by dots, e.g. "user.login.success".
_LOOKUP_KEY_PATTERN = re.compile(
    r"[A-Za-z][A-Za-z0-9_]*(?:\.[A-Za-z][A-Za-z0-9_]*)+"
)


class TextKind(str, Enum):
    LITERAL = "literal"
    LOOKUP_KEY = "lookup_key"


def classify(text: str) -> TextKind:
    """Decide whether extracted text is a lookup key or literal text."""
    if _LOOKUP_KEY_PATTERN.fullmatch(text):
        return TextKind.LOOKUP_KEY
    return TextKind.LITERAL


@dataclass(frozen=True)
class Resolution:
    key: str
    value: str
    file_type: FileType
    is_direct_text: bool


class Resolver:
    """Resolve extracted text to a translation value for the default language.

    Lookup keys are searched in the nested store first (first segment names
    the namespace file) and then in the flat store. Store files are read at
    most once per resolver.
    """

    def __init__(self, lang_path: Path, default_language: str) -> None:
        self.lang_path = Path(lang_path)
        self.default_language = default_language
        self._namespaces: dict[str, dict[str, Any] | None] = {}
        self._flat: dict[str, str] | None = None

    def _namespace_tree(self, namespace: str) -> dict[str, Any] | None:
        if namespace not in self._namespaces:
            store = read_namespace(self.lang_path, self.default_language, namespace)
            self._namespaces[namespace] = store.tree if store is not None else None
        return self._namespaces[namespace]

    def _flat_entries(self) -> dict[str, str]:
        if self._flat is None:
            self._flat = read_flat(self.lang_path, self.default_language).entries
        return self._flat

    def lookup_nested(self, key: str) -> str | None:
        namespace, *path = key.split(SEPARATOR)
        node: Any = self._namespace_tree(namespace)
        for part in path:
            if not isinstance(node, dict) or part not in node:
                return None
            node = node[part]
        return node if isinstance(node, str) else None

    def lookup_flat(self, key: str) -> str | None:
        value = self._flat_entries().get(key)
        return value if isinstance(value, str) else None

    def resolve(self, text: str) -> Resolution:
        """Resolve extracted text.

        Args:
            text: Text captured by an extraction pattern.

        Returns:
            The resolved key, value and originating file type.

        Raises:
            UnresolvedKeyError: If a lookup key is in neither store.
        """
        if classify(text) is TextKind.LITERAL:
            return Resolution(
                key=text, value=text, file_type=FileType.FLAT, is_direct_text=True
            )

        value = self.lookup_nested(text)
        if value is not None:
            return Resolution(
                key=text, value=value, file_type=FileType.NESTED, is_direct_text=False
            )

        value = self.lookup_flat(text)
        if value is not None:
            return Resolution(
                key=text, value=value, file_type=FileType.FLAT, is_direct_text=False
            )

        raise UnresolvedKeyError(text)
