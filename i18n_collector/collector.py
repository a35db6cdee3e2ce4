"""Collection workflows: scan paths and modules, deduplicate, report counts."""

import logging
import time
from collections.abc import Callable, Iterable, Sequence
from pathlib import Path

from i18n_collector.cache import ScanCache, store_fingerprint
from i18n_collector.config import AppConfig
from i18n_collector.diff import analyze_differences
from i18n_collector.errors import CollectionError, ScanIOError
from i18n_collector.extractor import Extractor, PatternTable
from i18n_collector.models import (
    CollectionPhase,
    CollectionResult,
    CollectionStatistics,
    DifferenceSet,
    PhaseStatistics,
    ScanResult,
    TranslationRecord,
)
from i18n_collector.resolver import Resolver
from i18n_collector.stores import scan_existing

logger = logging.getLogger(__name__)


def deduplicate(records: Iterable[TranslationRecord]) -> list[TranslationRecord]:
    """Keep the first record of every key, drop later ones."""
    seen: set[str] = set()
    unique: list[TranslationRecord] = []
    for record in records:
        if record.key in seen:
            continue
        seen.add(record.key)
        unique.append(record)
    return unique


class TranslationCollector:
    """Scan a project for translation references.

    Each public call builds its own resolver and returns its counts as part of
    the result; the collector keeps no state between calls.
    """

    def __init__(self, config: AppConfig, clock: Callable[[], float] = time.perf_counter) -> None:
        self.config = config
        self.clock = clock
        self.patterns = PatternTable(
            config.collector.regex_patterns, config.collector.pattern_extends
        )

    def _make_extractor(self, use_cache: bool = False) -> Extractor:
        collector = self.config.collector
        cache = None
        if use_cache and self.config.cache.enabled:
            fingerprint = store_fingerprint(
                self.config.lang_path,
                collector.default_language,
                str(collector.collect_unresolved),
                repr(sorted(collector.regex_patterns.items())),
                repr(sorted(collector.pattern_extends.items())),
            )
            cache = ScanCache(self.config.resolve_path(self.config.cache.path), fingerprint)

        return Extractor(
            patterns=self.patterns,
            resolver=Resolver(self.config.lang_path, collector.default_language),
            exclude=collector.exclude_paths,
            extensions=collector.scan_file_extensions,
            modules_root=self.config.modules_path if self.config.modules.enabled else None,
            collect_unresolved=collector.collect_unresolved,
            cache=cache,
        )

    def _scan_roots(self, extractor: Extractor, roots: Iterable[Path], module: str | None = None) -> ScanResult:
        result = ScanResult()
        for root in roots:
            try:
                result.extend(extractor.scan_directory(root, module))
            except ScanIOError as e:
                logger.warning("%s", e)
        return result

    def _paths_scan(self, extractor: Extractor, paths: Sequence[str]) -> ScanResult:
        return self._scan_roots(extractor, [self.config.resolve_path(p) for p in paths])

    def available_modules(self) -> list[str]:
        root = self.config.modules_path
        if not root.is_dir():
            return []
        return sorted(p.name for p in root.iterdir() if p.is_dir())

    def _modules_scan(self, extractor: Extractor, names: Sequence[str] | None) -> ScanResult:
        modules = self.config.modules
        root = self.config.modules_path
        if not root.is_dir():
            logger.warning("Modules path does not exist: %s", root)
            return ScanResult()

        result = ScanResult()
        for name in names if names is not None else self.available_modules():
            module_dir = root / name
            if not module_dir.is_dir():
                logger.warning("Module does not exist: %s", name)
                continue
            subpaths = modules.manifest.get(name) or modules.scan_subpaths
            existing = [module_dir / sub for sub in subpaths if (module_dir / sub).exists()]
            result.extend(self._scan_roots(extractor, existing, module=name))
        return result

    def scan_paths(self, paths: Sequence[str] | str) -> ScanResult:
        """Scan the given roots; missing roots are logged and skipped."""
        if isinstance(paths, str):
            paths = [paths]
        return self._paths_scan(self._make_extractor(), paths)

    def scan_modules(self, names: Sequence[str] | str | None = None) -> ScanResult:
        """Scan modules by name, or every module when ``names`` is None.

        Returns an empty result when module support is disabled.
        """
        if not self.config.modules.enabled:
            return ScanResult()
        if isinstance(names, str):
            names = [names]
        return self._modules_scan(self._make_extractor(), names)

    def collect(
        self,
        paths: Sequence[str] | None = None,
        modules: Sequence[str] | None = None,
        use_cache: bool = True,
    ) -> CollectionResult:
        """Run the full collection pipeline.

        Args:
            paths: Roots to scan instead of the configured ``scan_paths``.
            modules: Module names to scan when module support is enabled;
                all modules when None.
            use_cache: Reuse the scan cache if it is enabled in config.

        Returns:
            Deduplicated records and the statistics of this run.

        Raises:
            CollectionError: If the pipeline fails as a whole.
        """
        started = self.clock()
        stats = CollectionStatistics()
        logger.info("Collecting translations")

        def record_phase(phase: CollectionPhase, since: float, scan: ScanResult) -> float:
            now = self.clock()
            stats.phases.append(
                PhaseStatistics(
                    phase=phase,
                    elapsed=now - since,
                    files_scanned=scan.files_scanned,
                    records_found=len(scan.records),
                )
            )
            return now

        try:
            extractor = self._make_extractor(use_cache)
            scanned = ScanResult()
            mark = started

            paths_scan = self._paths_scan(extractor, paths or self.config.collector.scan_paths)
            scanned.extend(paths_scan)
            mark = record_phase(CollectionPhase.SCANNING_PATHS, mark, paths_scan)

            if self.config.modules.enabled:
                modules_scan = self._modules_scan(extractor, modules)
                scanned.extend(modules_scan)
                mark = record_phase(CollectionPhase.SCANNING_MODULES, mark, modules_scan)

            records = deduplicate(scanned.records)
            record_phase(
                CollectionPhase.DEDUPLICATING, mark, ScanResult(records, 0)
            )

            if extractor.cache is not None:
                extractor.cache.save()
                logger.debug("Scan cache hits: %d", extractor.cache.hits)
        except Exception as e:
            logger.error("Translation collection failed: %s", e)
            raise CollectionError(f"Translation collection failed: {e}") from e

        stats.total_files_scanned = scanned.files_scanned
        stats.total_translations_found = len(records)
        stats.duplicates_dropped = len(scanned.records) - len(records)
        stats.scan_duration = self.clock() - started
        stats.phases.append(
            PhaseStatistics(
                phase=CollectionPhase.DONE,
                elapsed=stats.scan_duration,
                files_scanned=stats.total_files_scanned,
                records_found=stats.total_translations_found,
            )
        )

        logger.info(
            "Collected %d translations from %d files in %.2fs",
            len(records), scanned.files_scanned, stats.scan_duration,
        )
        return CollectionResult(records=records, statistics=stats)

    def scan_existing_translations(
        self, languages: Sequence[str] | str | None = None
    ) -> list[TranslationRecord]:
        """Load the records of existing store files for the given languages."""
        lang_path = self.config.lang_path
        if not lang_path.is_dir():
            logger.warning("Translation path does not exist: %s", lang_path)
            return []

        if languages is None:
            languages = list(self.config.collector.supported_languages)
        elif isinstance(languages, str):
            languages = [languages]

        records: list[TranslationRecord] = []
        for language in languages:
            records.extend(scan_existing(lang_path, language))

        logger.info(
            "Scanned existing translations for %s: %d found",
            ", ".join(languages), len(records),
        )
        return records

    @staticmethod
    def analyze_differences(
        collected: Iterable[TranslationRecord],
        existing: Iterable[TranslationRecord],
    ) -> DifferenceSet:
        return analyze_differences(collected, existing)
