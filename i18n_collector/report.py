"""Coverage report comparing scanned keys with local and remote translations."""

from collections import Counter
from collections.abc import Mapping, Sequence
from typing import Any

from i18n_collector.models import CollectionStatistics, TranslationRecord, utc_now

CORE_MODULE = "Core"


def coverage_status(percent: float) -> str:
    if percent >= 100:
        return "complete"
    if percent >= 80:
        return "good"
    if percent >= 50:
        return "partial"
    return "poor"


def _percent(part: int, total: int) -> float:
    return round(part / total * 100, 2) if total else 0.0


def build_report(
    collected: Sequence[TranslationRecord],
    local: Mapping[str, Sequence[TranslationRecord]],
    external: Sequence[Mapping[str, Any]],
    supported_languages: Mapping[str, str],
    statistics: CollectionStatistics | None = None,
) -> dict[str, Any]:
    """Build a translation coverage report.

    Args:
        collected: Records found in source code.
        local: Existing store records per language.
        external: Items fetched from the remote service (may be empty).
        supported_languages: Language code to display name.
        statistics: Counts from the collection run, if any.

    Returns:
        JSON-serializable report.
    """
    collected_keys = {r.key for r in collected}
    first_by_key: dict[str, TranslationRecord] = {}
    for record in collected:
        first_by_key.setdefault(record.key, record)

    missing: dict[str, list[dict[str, Any]]] = {}
    unused: dict[str, list[dict[str, Any]]] = {}
    coverage: dict[str, dict[str, Any]] = {}

    for language, name in supported_languages.items():
        local_values = {r.key: r.value for r in local.get(language, [])}
        missing_keys = sorted(collected_keys - set(local_values))
        unused_keys = sorted(set(local_values) - collected_keys)

        if missing_keys:
            missing[language] = [
                {
                    "key": key,
                    "source_file": first_by_key[key].source_file,
                    "module": first_by_key[key].module or "",
                }
                for key in missing_keys
            ]
        if unused_keys:
            unused[language] = [
                {"key": key, "value": local_values[key]} for key in unused_keys
            ]

        translated = len(collected_keys) - len(missing_keys)
        percent = _percent(translated, len(collected_keys))
        coverage[language] = {
            "name": name,
            "translated": translated,
            "total": len(collected_keys),
            "coverage_percent": percent,
            "status": coverage_status(percent),
        }

    return {
        "generated_at": utc_now(),
        "summary": {
            "total_collected_keys": len(collected_keys),
            "total_local_translations": sum(len(v) for v in local.values()),
            "total_external_translations": len(external),
            "supported_languages": list(supported_languages),
            "collection_statistics": statistics.as_dict() if statistics else {},
        },
        "statistics": {
            "by_module": dict(Counter(r.module or CORE_MODULE for r in collected)),
            "by_file_type": dict(Counter(r.file_type.value for r in collected)),
        },
        "missing_translations": missing,
        "unused_translations": unused,
        "language_coverage": coverage,
    }
