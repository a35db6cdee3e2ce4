"""Regex-driven extraction of translation references from source trees."""

import fnmatch
import logging
import os
import re
from collections.abc import Iterator, Mapping, Sequence
from pathlib import Path

from i18n_collector.cache import ScanCache
from i18n_collector.errors import ScanIOError, UnresolvedKeyError
from i18n_collector.models import FileType, ScanResult, SourceType, TranslationRecord
from i18n_collector.resolver import Resolver

logger = logging.getLogger(__name__)

CONTEXT_RADIUS = 100


def _compile(file_type: str, pattern: str) -> re.Pattern[str]:
    compiled = re.compile(pattern)
    if compiled.groups < 1:
        raise ValueError(f"Pattern {pattern!r} for '{file_type}' has no capture group")
    return compiled


class PatternTable:
    """Ordered extraction patterns per file type.

    A file type is a (possibly compound) extension such as ``py`` or
    ``blade.php``. Types listed in ``extends`` get their base type's
    patterns first, then their own.
    """

    def __init__(
        self,
        patterns: Mapping[str, Sequence[str]],
        extends: Mapping[str, str] | None = None,
    ) -> None:
        self._patterns = {
            file_type: [_compile(file_type, p) for p in regexes]
            for file_type, regexes in patterns.items()
        }
        self._extends = dict(extends or {})
        # Longest first so "blade.php" wins over "php".
        self._types = sorted(
            set(self._patterns) | set(self._extends), key=len, reverse=True
        )

    @property
    def file_types(self) -> list[str]:
        return list(self._types)

    def detect_file_type(self, path: Path) -> str | None:
        name = path.name
        for file_type in self._types:
            if name.endswith(f".{file_type}"):
                return file_type
        return None

    def patterns_for(self, file_type: str | None) -> list[re.Pattern[str]]:
        if file_type is None:
            return []

        chain: list[str] = []
        current: str | None = file_type
        while current is not None and current not in chain:
            chain.append(current)
            current = self._extends.get(current)

        compiled: list[re.Pattern[str]] = []
        for name in reversed(chain):
            compiled.extend(self._patterns.get(name, []))
        return compiled


def line_number_at(content: str, offset: int) -> int:
    """1-based line number of the character at ``offset``."""
    return content.count("\n", 0, offset) + 1


def context_window(content: str, start: int, end: int, radius: int = CONTEXT_RADIUS) -> str:
    """Text around a match, clipped to the content bounds."""
    return content[max(0, start - radius):min(len(content), end + radius)]


class Extractor:
    """Walk source trees and turn pattern matches into translation records."""

    def __init__(
        self,
        patterns: PatternTable,
        resolver: Resolver,
        exclude: Sequence[str] = (),
        extensions: Sequence[str] = (),
        modules_root: Path | None = None,
        collect_unresolved: bool = False,
        cache: ScanCache | None = None,
    ) -> None:
        self.patterns = patterns
        self.resolver = resolver
        self.exclude = list(exclude)
        self.extensions = [ext.lstrip(".") for ext in extensions]
        self.modules_root = Path(modules_root).resolve() if modules_root else None
        self.collect_unresolved = collect_unresolved
        self.cache = cache

    def _is_excluded(self, relative: str, name: str) -> bool:
        return any(
            fnmatch.fnmatch(relative, pattern.rstrip("/"))
            or fnmatch.fnmatch(name, pattern.rstrip("/"))
            for pattern in self.exclude
        )

    def _has_extension(self, name: str) -> bool:
        if not self.extensions:
            return True
        return any(name.endswith(f".{ext}") for ext in self.extensions)

    def iter_files(self, root: Path) -> Iterator[Path]:
        """Yield source files under ``root`` in a stable order.

        Raises:
            ScanIOError: If ``root`` does not exist.
        """
        root = Path(root)
        if not root.exists():
            raise ScanIOError(f"Scan path does not exist: {root}")
        if root.is_file():
            yield root
            return

        for dirpath, dirnames, filenames in os.walk(root):
            relative_dir = Path(dirpath).relative_to(root)
            dirnames[:] = sorted(
                d for d in dirnames
                if not self._is_excluded((relative_dir / d).as_posix(), d)
            )
            for filename in sorted(filenames):
                relative = (relative_dir / filename).as_posix()
                if self._is_excluded(relative, filename):
                    continue
                if self._has_extension(filename):
                    yield Path(dirpath) / filename

    def detect_module(self, path: Path) -> str | None:
        if self.modules_root is None:
            return None
        try:
            parts = path.resolve().relative_to(self.modules_root).parts
        except ValueError:
            return None
        return parts[0] if len(parts) > 1 else None

    def scan_file(self, path: Path, module: str | None = None) -> list[TranslationRecord]:
        """Extract records from one source file.

        Unreadable files are logged and give no records.
        """
        path = Path(path).resolve()
        try:
            content = path.read_text(encoding="utf-8")
        except (OSError, UnicodeDecodeError) as e:
            logger.warning("%s", ScanIOError(f"Cannot read {path}: {e}"))
            return []

        if module is None:
            module = self.detect_module(path)

        digest = None
        if self.cache is not None:
            digest = self.cache.digest(content)
            cached = self.cache.lookup(path, digest)
            if cached is not None:
                for record in cached:
                    record.module = module
                return cached

        records: list[TranslationRecord] = []
        for pattern in self.patterns.patterns_for(self.patterns.detect_file_type(path)):
            for match in pattern.finditer(content):
                record = self._build_record(path, content, match, module)
                if record is not None:
                    records.append(record)

        if self.cache is not None:
            self.cache.store(path, digest, records)
        return records

    def _build_record(
        self,
        path: Path,
        content: str,
        match: re.Match[str],
        module: str | None,
    ) -> TranslationRecord | None:
        text = match.group(1)
        line = line_number_at(content, match.start())
        if not text:
            logger.warning("File: %s line: %d empty translation text", path, line)
            return None
        context = context_window(content, match.start(), match.end())

        try:
            resolution = self.resolver.resolve(text)
        except UnresolvedKeyError:
            if not self.collect_unresolved:
                logger.warning(
                    "File: %s line: %d no translation value for: %s", path, line, text
                )
                return None
            logger.debug("Keeping unresolved key %s (%s:%d)", text, path, line)
            return TranslationRecord(
                key=text,
                value=text,
                source_file=str(path),
                line_number=line,
                context=context,
                module=module,
                file_type=FileType.OTHER,
                is_direct_text=False,
                source_type=SourceType.CODE_SCAN,
            )

        return TranslationRecord(
            key=resolution.key,
            value=resolution.value,
            source_file=str(path),
            line_number=line,
            context=context,
            module=module,
            file_type=resolution.file_type,
            is_direct_text=resolution.is_direct_text,
            source_type=SourceType.CODE_SCAN,
        )

    def scan_directory(self, root: Path, module: str | None = None) -> ScanResult:
        """Scan every matching file under ``root``.

        Raises:
            ScanIOError: If ``root`` does not exist.
        """
        result = ScanResult()
        for path in self.iter_files(root):
            result.files_scanned += 1
            result.records.extend(self.scan_file(path, module))
        logger.debug(
            "Scanned %d files under %s, %d records",
            result.files_scanned, root, len(result.records),
        )
        return result
