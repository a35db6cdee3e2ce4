"""Content-hash keyed cache of per-file scan results."""

import hashlib
import json
import logging
from collections.abc import Iterable
from pathlib import Path

from i18n_collector.models import TranslationRecord

logger = logging.getLogger(__name__)

CACHE_VERSION = 1


def store_fingerprint(lang_path: Path, *extra: str) -> str:
    """Hash the paths, sizes and mtimes of every store file plus extra settings.

    Any change to a store invalidates cached resolutions.
    """
    digest = hashlib.sha256()
    root = Path(lang_path)
    if root.is_dir():
        for path in sorted(p for p in root.rglob("*") if p.is_file()):
            stat = path.stat()
            name = path.relative_to(root).as_posix()
            digest.update(f"{name}:{stat.st_size}:{stat.st_mtime_ns}\n".encode())
    for item in extra:
        digest.update(item.encode("utf-8"))
    return digest.hexdigest()


class ScanCache:
    """Remember the records scanned from each file.

    An entry is reused only when the file path, the sha256 of its content and
    the store fingerprint all match. The cache never changes scan output, it
    only skips rescans.
    """

    def __init__(self, path: Path, fingerprint: str) -> None:
        self.path = Path(path)
        self.fingerprint = fingerprint
        self.hits = 0
        self._entries: dict[str, dict] = {}
        self._dirty = False
        self._load()

    def _load(self) -> None:
        if not self.path.is_file():
            return
        try:
            with open(self.path, "r", encoding="utf-8") as f:
                data = json.load(f)
        except (OSError, json.JSONDecodeError) as e:
            logger.warning("Ignoring unreadable scan cache %s: %s", self.path, e)
            return

        if (
            not isinstance(data, dict)
            or data.get("version") != CACHE_VERSION
            or data.get("fingerprint") != self.fingerprint
        ):
            logger.debug("Scan cache %s is stale, starting empty", self.path)
            return
        self._entries = data.get("files", {})

    @staticmethod
    def digest(content: str) -> str:
        return hashlib.sha256(content.encode("utf-8")).hexdigest()

    def lookup(self, path: Path, digest: str) -> list[TranslationRecord] | None:
        entry = self._entries.get(str(path))
        if not entry or entry.get("sha256") != digest:
            return None
        try:
            records = [TranslationRecord.from_dict(r) for r in entry["records"]]
        except (KeyError, TypeError, ValueError) as e:
            logger.debug("Discarding bad cache entry for %s: %s", path, e)
            return None
        self.hits += 1
        return records

    def store(self, path: Path, digest: str, records: Iterable[TranslationRecord]) -> None:
        self._entries[str(path)] = {
            "sha256": digest,
            "records": [r.to_dict() for r in records],
        }
        self._dirty = True

    def save(self) -> None:
        if not self._dirty:
            return
        self.path.parent.mkdir(parents=True, exist_ok=True)
        with open(self.path, "w", encoding="utf-8") as f:
            json.dump(
                {
                    "version": CACHE_VERSION,
                    "fingerprint": self.fingerprint,
                    "files": self._entries,
                },
                f,
                ensure_ascii=False,
            )
        self._dirty = False
        logger.debug("Saved scan cache with %d files to %s", len(self._entries), self.path)
