"""Difference engine between collected and existing translation records."""

from collections.abc import Iterable

from i18n_collector.models import DifferenceSet, TranslationRecord

CompositeKey = tuple[str | None, str]


def _index(records: Iterable[TranslationRecord]) -> dict[CompositeKey, TranslationRecord]:
    # None and "" modules stay distinct keys.
    return {record.composite_key: record for record in records}


def has_changed(collected: TranslationRecord, existing: TranslationRecord) -> bool:
    """Compare location metadata only; values are not compared."""
    return (
        collected.source_file != existing.source_file
        or collected.line_number != existing.line_number
        or collected.context != existing.context
    )


def analyze_differences(
    collected: Iterable[TranslationRecord],
    existing: Iterable[TranslationRecord],
) -> DifferenceSet:
    """Partition two record collections by (module, key).

    Args:
        collected: Records from the current scan.
        existing: Records known before (remote or a previous snapshot).

    Returns:
        DifferenceSet where new/updated/unchanged hold collected records and
        deleted holds existing ones.
    """
    collected_map = _index(collected)
    existing_map = _index(existing)

    result = DifferenceSet()
    for key, record in collected_map.items():
        previous = existing_map.get(key)
        if previous is None:
            result.new.append(record)
        elif has_changed(record, previous):
            result.updated.append(record)
        else:
            result.unchanged.append(record)

    result.deleted = [
        record for key, record in existing_map.items() if key not in collected_map
    ]
    return result
