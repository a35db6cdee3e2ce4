"""Reader and writer for flat and nested per-language translation stores.

On disk, under a language root (``lang_path``):

- flat store: ``<lang_path>/<language>.json``, a single key -> value object;
- nested store: ``<lang_path>/<language>/<namespace>.json``, one object tree
  per namespace whose leaves are strings.

Nested trees are only ever compared with flat data through `flatten` and
`unflatten`, which are exact inverses for a single namespace.
"""

import json
import logging
from collections.abc import Callable, Iterable, Mapping
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any

from i18n_collector.errors import KeyConflictError, StoreParseError
from i18n_collector.models import FileType, SourceType, TranslationRecord

logger = logging.getLogger(__name__)

SEPARATOR = "."
STORE_SUFFIX = ".json"


@dataclass
class FlatStore:
    language: str
    entries: dict[str, str] = field(default_factory=dict)
    path: Path | None = None


@dataclass
class NestedStore:
    language: str
    namespace: str
    tree: dict[str, Any] = field(default_factory=dict)
    path: Path | None = None

    def entries(self) -> dict[str, str]:
        return flatten(self.tree, self.namespace)


TranslationStore = FlatStore | NestedStore


def flat_path(lang_path: Path, language: str) -> Path:
    return Path(lang_path) / f"{language}{STORE_SUFFIX}"


def nested_path(lang_path: Path, language: str, namespace: str) -> Path:
    return Path(lang_path) / language / f"{namespace}{STORE_SUFFIX}"


def _load_json_object(path: Path) -> dict[str, Any]:
    """Load a store file that must contain a JSON object.

    Raises:
        StoreParseError: If the file cannot be read or is not a JSON object.
    """
    try:
        with open(path, "r", encoding="utf-8") as f:
            data = json.load(f)
    except (OSError, UnicodeDecodeError, json.JSONDecodeError) as e:
        raise StoreParseError(f"Failed to parse translation file {path}: {e}") from e

    if not isinstance(data, dict):
        raise StoreParseError(
            f"Translation file {path} must contain an object, got {type(data).__name__}"
        )
    return data


def _save_json_object(path: Path, data: Mapping[str, Any]) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    with open(path, "w", encoding="utf-8") as f:
        json.dump(data, f, indent=4, ensure_ascii=False)
        f.write("\n")


def flatten(tree: Mapping[str, Any], namespace: str) -> dict[str, str]:
    """Flatten a nested tree into dot-joined keys prefixed by the namespace.

    Leaves that are neither strings nor mappings are ignored.

    Args:
        tree: Nested string-keyed tree.
        namespace: Prefix for every produced key.

    Returns:
        Mapping of "namespace.seg.seg" to string value.
    """
    entries: dict[str, str] = {}
    for key, value in tree.items():
        full_key = f"{namespace}{SEPARATOR}{key}"
        if isinstance(value, Mapping):
            entries.update(flatten(value, full_key))
        elif isinstance(value, str):
            entries[full_key] = value
    return entries


def _insert(tree: dict[str, Any], parts: list[str], key: str, value: str) -> None:
    """Set ``value`` at the path ``parts`` of ``tree``.

    Raises:
        KeyConflictError: If the path runs through a value or ends on a group.
    """
    node = tree
    for part in parts[:-1]:
        child = node.setdefault(part, {})
        if not isinstance(child, dict):
            raise KeyConflictError(f"Key {key!r} nests under the value at {part!r}")
        node = child

    leaf = parts[-1]
    if isinstance(node.get(leaf), dict):
        raise KeyConflictError(f"Key {key!r} would replace a nested group")
    node[leaf] = value


def _relative_parts(key: str, namespace: str) -> list[str]:
    prefix = f"{namespace}{SEPARATOR}"
    if not key.startswith(prefix) or len(key) == len(prefix):
        raise ValueError(f"Key {key!r} does not belong to namespace {namespace!r}")
    return key[len(prefix):].split(SEPARATOR)


def unflatten(entries: Mapping[str, str], namespace: str) -> dict[str, Any]:
    """Rebuild a nested tree from flat entries belonging to one namespace.

    Args:
        entries: Mapping of "namespace.seg.seg" to value.
        namespace: Namespace prefix to strip from every key.

    Returns:
        Nested tree without the namespace level.

    Raises:
        ValueError: If a key is outside the namespace.
        KeyConflictError: If a key is both a leaf and a branch.
    """
    tree: dict[str, Any] = {}
    for key, value in entries.items():
        _insert(tree, _relative_parts(key, namespace), key, value)
    return tree


def _count_leaves(tree: Mapping[str, Any]) -> int:
    return sum(
        _count_leaves(value) if isinstance(value, Mapping) else 1
        for value in tree.values()
    )


def split_namespace(key: str) -> tuple[str, str] | None:
    """Split "ns.rest" into (ns, rest), or None if the key has no namespace."""
    namespace, sep, rest = key.partition(SEPARATOR)
    if not sep or not namespace or not rest:
        return None
    return namespace, rest


def read_flat(lang_path: Path, language: str) -> FlatStore:
    """Load the flat store of a language.

    Missing or malformed files give an empty store; non-string values are
    dropped.
    """
    path = flat_path(lang_path, language)
    store = FlatStore(language=language, path=path)
    if not path.is_file():
        return store

    try:
        data = _load_json_object(path)
    except StoreParseError as e:
        logger.error("%s", e)
        return store

    store.entries = {k: v for k, v in data.items() if isinstance(v, str)}
    return store


def read_namespace(lang_path: Path, language: str, namespace: str) -> NestedStore | None:
    """Load one namespace file of a language, or None if absent or broken."""
    path = nested_path(lang_path, language, namespace)
    if not path.is_file():
        return None

    try:
        tree = _load_json_object(path)
    except StoreParseError as e:
        logger.error("%s", e)
        return None

    return NestedStore(language=language, namespace=namespace, tree=tree, path=path)


def read_nested(lang_path: Path, language: str) -> list[NestedStore]:
    """Load every namespace file under the language directory.

    Each file is parsed on its own; a broken file is logged and skipped.
    """
    language_dir = Path(lang_path) / language
    if not language_dir.is_dir():
        return []

    stores: list[NestedStore] = []
    for path in sorted(language_dir.glob(f"*{STORE_SUFFIX}")):
        store = read_namespace(lang_path, language, path.stem)
        if store is not None:
            stores.append(store)
    return stores


def scan_existing(lang_path: Path, language: str) -> list[TranslationRecord]:
    """Turn a language's stores into translation-file records."""
    records: list[TranslationRecord] = []

    flat = read_flat(lang_path, language)
    for key, value in flat.entries.items():
        if not key:
            continue
        records.append(
            TranslationRecord(
                key=key,
                value=value,
                source_file=str(flat.path),
                context=json.dumps({key: value}, ensure_ascii=False),
                file_type=FileType.FLAT,
                source_type=SourceType.TRANSLATION_FILE,
                language=language,
            )
        )

    for store in read_nested(lang_path, language):
        for key, value in store.entries().items():
            leaf = key.rsplit(SEPARATOR, 1)[-1]
            records.append(
                TranslationRecord(
                    key=key,
                    value=value,
                    source_file=str(store.path),
                    context=json.dumps({leaf: value}, ensure_ascii=False),
                    file_type=FileType.NESTED,
                    source_type=SourceType.TRANSLATION_FILE,
                    language=language,
                )
            )

    logger.debug("Loaded %d existing translations for %s", len(records), language)
    return records


class WriteMode(str, Enum):
    MERGE = "merge"
    OVERWRITE = "overwrite"
    PREVIEW = "preview"


@dataclass
class WriteOutcome:
    """What a store write did, or would do in preview mode."""

    path: Path
    mode: WriteMode
    entries: int
    written: bool
    reason: str = ""
    skipped: list[tuple[str, str]] = field(default_factory=list)

    def describe(self) -> str:
        if self.written:
            return f"wrote {self.entries} entries to {self.path} ({self.mode.value})"
        if self.mode is WriteMode.PREVIEW:
            return f"would write {self.entries} entries to {self.path}"
        return f"skipped {self.path}: {self.reason}"


class StoreWriter:
    """Persist entries into flat or nested stores of one language root.

    Each call reads the target file fully, merges or replaces its content and
    writes it back whole. There is no cross-process locking: two processes
    writing the same store file at once can lose each other's changes.
    """

    def __init__(
        self,
        lang_path: Path,
        confirm: Callable[[Path], bool] | None = None,
        default_namespace: str = "messages",
    ) -> None:
        self.lang_path = Path(lang_path)
        self.confirm = confirm
        self.default_namespace = default_namespace

    def _allowed(self, path: Path, mode: WriteMode, force: bool) -> bool:
        if mode is not WriteMode.OVERWRITE or force or not path.exists():
            return True
        return bool(self.confirm and self.confirm(path))

    def _existing(self, path: Path) -> dict[str, Any]:
        if not path.is_file():
            return {}
        try:
            return _load_json_object(path)
        except StoreParseError as e:
            logger.error("%s", e)
            return {}

    def write_flat(
        self,
        language: str,
        entries: Mapping[str, str],
        mode: WriteMode = WriteMode.MERGE,
        force: bool = False,
    ) -> WriteOutcome:
        path = flat_path(self.lang_path, language)

        content: dict[str, Any] = {}
        if mode is not WriteMode.OVERWRITE:
            content.update(self._existing(path))
        content.update(entries)

        return self._commit(path, content, len(content), mode, force)

    def write_nested(
        self,
        language: str,
        namespace: str,
        entries: Mapping[str, str],
        mode: WriteMode = WriteMode.MERGE,
        force: bool = False,
    ) -> WriteOutcome:
        """Write entries into one namespace file.

        In merge mode the entries go into the existing tree, so keys not
        named in ``entries`` survive whatever their value type. An entry that
        would turn a value into a group, or a group into a value, is left out
        and reported in ``WriteOutcome.skipped``.
        """
        path = nested_path(self.lang_path, language, namespace)

        tree: dict[str, Any] = {}
        if mode is not WriteMode.OVERWRITE:
            tree = self._existing(path)

        skipped: list[tuple[str, str]] = []
        for key, value in entries.items():
            try:
                _insert(tree, _relative_parts(key, namespace), key, value)
            except KeyConflictError as e:
                logger.warning("Skipping %s in %s: %s", key, path, e)
                skipped.append((key, f"key conflict: {e}"))

        outcome = self._commit(path, tree, _count_leaves(tree), mode, force)
        outcome.skipped = skipped
        return outcome

    def _commit(
        self,
        path: Path,
        content: Mapping[str, Any],
        count: int,
        mode: WriteMode,
        force: bool,
    ) -> WriteOutcome:
        if mode is WriteMode.PREVIEW:
            logger.info("Preview: would write %d entries to %s", count, path)
            return WriteOutcome(path=path, mode=mode, entries=count, written=False)

        if not self._allowed(path, mode, force):
            logger.info("Not overwriting %s without confirmation", path)
            return WriteOutcome(
                path=path, mode=mode, entries=count, written=False,
                reason="overwrite not confirmed",
            )

        _save_json_object(path, content)
        logger.info("Wrote %d entries to %s", count, path)
        return WriteOutcome(path=path, mode=mode, entries=count, written=True)

    def group_records(
        self,
        records: Iterable[TranslationRecord],
        default_format: FileType = FileType.FLAT,
    ) -> tuple[dict[str, str], dict[str, dict[str, str]]]:
        """Group records by destination file.

        Returns:
            (flat entries, namespace -> nested entries). Nested keys without
            a namespace go to the default namespace.
        """
        flat: dict[str, str] = {}
        nested: dict[str, dict[str, str]] = {}

        for record in records:
            target = record.file_type
            if target is FileType.OTHER:
                target = default_format

            if target is FileType.NESTED:
                parts = split_namespace(record.key)
                if parts is None:
                    namespace = self.default_namespace
                    key = f"{namespace}{SEPARATOR}{record.key}"
                else:
                    namespace, key = parts[0], record.key
                nested.setdefault(namespace, {})[key] = record.value
            else:
                flat[record.key] = record.value

        return flat, nested

    def write_records(
        self,
        language: str,
        records: Iterable[TranslationRecord],
        mode: WriteMode = WriteMode.MERGE,
        force: bool = False,
        default_format: FileType = FileType.FLAT,
    ) -> list[WriteOutcome]:
        """Write records of one language, one file per destination."""
        flat, nested = self.group_records(records, default_format)

        outcomes: list[WriteOutcome] = []
        if flat:
            outcomes.append(self.write_flat(language, flat, mode, force))
        for namespace in sorted(nested):
            outcomes.append(
                self.write_nested(language, namespace, nested[namespace], mode, force)
            )
        return outcomes
