"""Data types shared by the extractor, stores, diff engine and sync client."""

from dataclasses import asdict, dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any


class FileType(str, Enum):
    """Store format a record's value comes from (or is written to)."""

    FLAT = "flat"
    NESTED = "nested"
    OTHER = "other"

    @classmethod
    def parse(cls, tag: str) -> "FileType":
        """Parse a file type tag, accepting the legacy wire aliases.

        Args:
            tag: Tag as sent by the remote service or read from config.

        Returns:
            The matching FileType.

        Raises:
            ValueError: If the tag is not a known file type.
        """
        normalized = str(tag).strip().lower()
        normalized = _FILE_TYPE_ALIASES.get(normalized, normalized)
        return cls(normalized)


_FILE_TYPE_ALIASES: dict[str, str] = {
    "json": "flat",
    "php": "nested",
}


class SourceType(str, Enum):
    CODE_SCAN = "code_scan"
    TRANSLATION_FILE = "translation_file"


def utc_now() -> str:
    """Current UTC time as an ISO-8601 string."""
    return datetime.now(timezone.utc).isoformat()


@dataclass
class TranslationRecord:
    """A single translation reference found in code or in a store file."""

    key: str
    value: str
    source_file: str
    line_number: int = 1
    context: str = ""
    module: str | None = None
    file_type: FileType = FileType.FLAT
    is_direct_text: bool = False
    source_type: SourceType = SourceType.CODE_SCAN
    created_at: str = field(default_factory=utc_now)
    language: str | None = None

    def __post_init__(self) -> None:
        if not self.key:
            raise ValueError("Translation key must not be empty.")
        if self.is_direct_text and self.value != self.key:
            raise ValueError(
                f"Direct text record must use its key as value: {self.key!r}"
            )
        if self.line_number < 1:
            raise ValueError(f"Line number must be positive: {self.line_number}")

    @property
    def composite_key(self) -> tuple[str | None, str]:
        """Identity used by the difference engine."""
        return (self.module, self.key)

    def to_dict(self) -> dict[str, Any]:
        """Serialize to plain JSON types."""
        data = asdict(self)
        data["file_type"] = self.file_type.value
        data["source_type"] = self.source_type.value
        return data

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "TranslationRecord":
        """Rebuild a record from the output of `to_dict`."""
        return cls(
            key=data["key"],
            value=data["value"],
            source_file=data.get("source_file", ""),
            line_number=int(data.get("line_number") or 1),
            context=data.get("context", ""),
            module=data.get("module"),
            file_type=FileType.parse(data.get("file_type") or FileType.FLAT.value),
            is_direct_text=bool(data.get("is_direct_text", False)),
            source_type=SourceType(data.get("source_type", SourceType.CODE_SCAN.value)),
            created_at=data.get("created_at") or utc_now(),
            language=data.get("language"),
        )


@dataclass
class ScanResult:
    """Records found by a scan together with the number of files it read."""

    records: list[TranslationRecord] = field(default_factory=list)
    files_scanned: int = 0

    def extend(self, other: "ScanResult") -> None:
        self.records.extend(other.records)
        self.files_scanned += other.files_scanned


class CollectionPhase(str, Enum):
    IDLE = "idle"
    SCANNING_PATHS = "scanning_paths"
    SCANNING_MODULES = "scanning_modules"
    DEDUPLICATING = "deduplicating"
    DONE = "done"


@dataclass
class PhaseStatistics:
    phase: CollectionPhase
    elapsed: float
    files_scanned: int
    records_found: int


@dataclass
class CollectionStatistics:
    """Counters for one `collect` call."""

    total_files_scanned: int = 0
    total_translations_found: int = 0
    duplicates_dropped: int = 0
    scan_duration: float = 0.0
    phases: list[PhaseStatistics] = field(default_factory=list)

    def as_dict(self) -> dict[str, Any]:
        data = asdict(self)
        data["phases"] = [
            {**asdict(p), "phase": p.phase.value} for p in self.phases
        ]
        return data


@dataclass
class CollectionResult:
    records: list[TranslationRecord]
    statistics: CollectionStatistics


@dataclass
class DifferenceSet:
    """Partition of two record collections by (module, key)."""

    new: list[TranslationRecord] = field(default_factory=list)
    updated: list[TranslationRecord] = field(default_factory=list)
    deleted: list[TranslationRecord] = field(default_factory=list)
    unchanged: list[TranslationRecord] = field(default_factory=list)

    def counts(self) -> dict[str, int]:
        return {
            "new": len(self.new),
            "updated": len(self.updated),
            "deleted": len(self.deleted),
            "unchanged": len(self.unchanged),
        }
