"""Sync workflows between local stores, scanned code and the remote service."""

import logging
from collections.abc import Mapping, Sequence
from dataclasses import dataclass, field
from typing import Any

from i18n_collector.client import TranslationApiClient
from i18n_collector.collector import TranslationCollector
from i18n_collector.diff import analyze_differences
from i18n_collector.errors import CollectorError, ValidationError
from i18n_collector.models import (
    DifferenceSet,
    FileType,
    SourceType,
    TranslationRecord,
    utc_now,
)
from i18n_collector.stores import StoreWriter, WriteMode, WriteOutcome, split_namespace

logger = logging.getLogger(__name__)


def validate_remote_item(
    item: Mapping[str, Any],
    language: str,
    default_format: FileType = FileType.FLAT,
) -> TranslationRecord:
    """Turn a remote list item into a record bound for a local store.

    Raises:
        ValidationError: If the item cannot be written to a store.
    """
    if not isinstance(item, Mapping):
        raise ValidationError("item is not an object")

    key = item.get("key")
    value = item.get("value")
    if not isinstance(key, str) or not key:
        raise ValidationError("missing key")
    if not isinstance(value, str) or not value:
        raise ValidationError("missing value")

    tag = item.get("file_type")
    if tag:
        try:
            file_type = FileType.parse(tag)
        except ValueError:
            raise ValidationError(f"unknown file type {tag!r}") from None
    else:
        file_type = default_format

    if file_type is FileType.OTHER:
        file_type = default_format

    if file_type is FileType.NESTED and split_namespace(key) is None:
        raise ValidationError("nested key has no namespace")

    module = item.get("module") or None
    return TranslationRecord(
        key=key,
        value=value,
        source_file="",
        module=module,
        file_type=file_type,
        source_type=SourceType.TRANSLATION_FILE,
        created_at=item.get("updated_at") or utc_now(),
        language=item.get("language") or language,
    )


def remote_item_to_record(item: Mapping[str, Any]) -> TranslationRecord | None:
    """Lenient conversion used for comparisons; returns None for unusable items."""
    key = item.get("key") if isinstance(item, Mapping) else None
    if not isinstance(key, str) or not key:
        return None

    value = item.get("value") or item.get("default_text") or ""
    try:
        file_type = FileType.parse(item.get("file_type") or FileType.OTHER.value)
    except ValueError:
        file_type = FileType.OTHER
    try:
        line_number = max(1, int(item.get("line_number") or 1))
    except (TypeError, ValueError):
        line_number = 1

    return TranslationRecord(
        key=key,
        value=value if isinstance(value, str) else str(value),
        source_file=item.get("source_file") or "",
        line_number=line_number,
        context=item.get("context") or "",
        module=item.get("module") or None,
        file_type=file_type,
        source_type=SourceType.TRANSLATION_FILE,
        created_at=item.get("updated_at") or item.get("created_at") or utc_now(),
        language=item.get("language"),
    )


@dataclass
class LanguageSyncResult:
    """Outcome of pulling one language."""

    language: str
    fetched: int = 0
    valid: int = 0
    skipped: list[tuple[str, str]] = field(default_factory=list)
    outcomes: list[WriteOutcome] = field(default_factory=list)
    error: str | None = None

    @property
    def ok(self) -> bool:
        return self.error is None


def pull_language(
    client: TranslationApiClient,
    writer: StoreWriter,
    language: str,
    mode: WriteMode = WriteMode.MERGE,
    force: bool = False,
    default_format: FileType = FileType.FLAT,
) -> LanguageSyncResult:
    """Fetch one language from the remote service and write it locally."""
    result = LanguageSyncResult(language=language)
    items = client.get_translations(language=language)
    result.fetched = len(items)

    records: list[TranslationRecord] = []
    for item in items:
        try:
            records.append(validate_remote_item(item, language, default_format))
        except ValidationError as e:
            key = item.get("key") if isinstance(item, Mapping) else None
            result.skipped.append((str(key or "<no key>"), str(e)))
            logger.warning("Skipping remote translation %r for %s: %s", key, language, e)

    if records:
        result.outcomes = writer.write_records(
            language, records, mode=mode, force=force, default_format=default_format
        )
    for outcome in result.outcomes:
        result.skipped.extend(outcome.skipped)
    result.valid = len(records) - sum(len(o.skipped) for o in result.outcomes)
    return result


def pull_translations(
    client: TranslationApiClient,
    writer: StoreWriter,
    languages: Sequence[str],
    mode: WriteMode = WriteMode.MERGE,
    force: bool = False,
    default_format: FileType = FileType.FLAT,
) -> list[LanguageSyncResult]:
    """Pull every language; a failing language is reported and the rest go on."""
    results: list[LanguageSyncResult] = []
    for language in languages:
        logger.info("Pulling translations for %s", language)
        try:
            result = pull_language(client, writer, language, mode, force, default_format)
        except (CollectorError, ValueError, OSError) as e:
            logger.error("Pulling %s failed: %s", language, e)
            result = LanguageSyncResult(language=language, error=str(e))
        results.append(result)
    return results


@dataclass
class PushSummary:
    differences: DifferenceSet
    uploaded: int = 0
    batches: list[Any] = field(default_factory=list)

    @property
    def failed_batches(self) -> list[dict]:
        return [
            b for b in self.batches
            if isinstance(b, dict) and b.get("success") is False
        ]


def push_collected(
    client: TranslationApiClient,
    records: Sequence[TranslationRecord],
    batch_size: int = 100,
    dry_run: bool = False,
) -> PushSummary:
    """Upload new and updated records compared to what the service has.

    List items usually carry no location. A key whose remote record has no
    ``source_file`` counts as unchanged, so known keys are not re-uploaded
    on every run.
    """
    existing = [
        record
        for record in map(remote_item_to_record, client.get_translations())
        if record is not None
    ]
    differences = analyze_differences(records, existing)

    latest = {r.composite_key: r for r in existing}
    unlocated = {key for key, r in latest.items() if not r.source_file}
    moved = [r for r in differences.updated if r.composite_key not in unlocated]
    differences.unchanged.extend(
        r for r in differences.updated if r.composite_key in unlocated
    )
    differences.updated = moved
    pending = differences.new + differences.updated
    summary = PushSummary(differences=differences)

    logger.info(
        "Remote comparison: %d new, %d updated, %d unchanged, %d only remote",
        len(differences.new), len(differences.updated),
        len(differences.unchanged), len(differences.deleted),
    )
    if not pending or dry_run:
        return summary

    summary.batches = client.batch_upload(pending, batch_size)
    summary.uploaded = len(pending) - sum(
        min(batch_size, len(pending) - b["batch_index"] * batch_size)
        for b in summary.failed_batches
    )
    return summary


def initialize_remote(
    client: TranslationApiClient,
    collector: TranslationCollector,
    languages: Sequence[str] | None = None,
    batch_size: int = 100,
    dry_run: bool = False,
) -> tuple[list[TranslationRecord], list[Any]]:
    """Push the existing local stores to the service for first-time setup.

    Raises:
        ValueError: If a language is not in ``supported_languages``.
    """
    supported = list(collector.config.collector.supported_languages)
    languages = list(languages or supported)
    invalid = [lang for lang in languages if lang not in supported]
    if invalid:
        raise ValueError(
            f"Unsupported language(s): {', '.join(invalid)}. "
            f"Supported: {', '.join(supported)}"
        )

    records = collector.scan_existing_translations(languages)
    if not records or dry_run:
        return records, []
    return records, client.batch_init(records, batch_size)
