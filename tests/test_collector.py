"""End-to-end tests for the collection workflows."""

import dataclasses
import logging

import pytest

from i18n_collector.collector import TranslationCollector, deduplicate
from i18n_collector.errors import CollectionError
from i18n_collector.models import CollectionPhase, FileType, TranslationRecord


def _without_timestamps(records):
    return [{**r.to_dict(), "created_at": None} for r in records]


def test_collect_workflow(config):
    result = TranslationCollector(config).collect()
    by_key = {r.key: r for r in result.records}

    assert by_key["this is a title"].is_direct_text
    assert by_key["this is a title"].value == "this is a title"

    login = by_key["user.login.success"]
    assert (login.value, login.is_direct_text, login.file_type) == (
        "Login successful", False, FileType.FLAT,
    )

    assert by_key["nested.user.profile.name"].module == "User"
    assert by_key["nested.user.profile.name"].file_type is FileType.NESTED
    assert by_key["Text with space"].module == "User"
    assert "user.not.there" not in by_key

    for record in result.records:
        assert record.key
        assert record.source_file
        assert record.line_number > 0


def test_first_occurrence_wins(config):
    result = TranslationCollector(config).collect()

    logout = [r for r in result.records if r.key == "user.logout"]
    assert len(logout) == 1
    # Found in app/ before the module controller.
    assert logout[0].module is None
    assert logout[0].source_file.endswith("TestController.php")
    assert result.statistics.duplicates_dropped == 2


def test_deduplicate_keeps_order():
    records = [
        TranslationRecord(key="a", value="1", source_file="x"),
        TranslationRecord(key="b", value="2", source_file="x"),
        TranslationRecord(key="a", value="3", source_file="y"),
    ]
    assert [(r.key, r.value) for r in deduplicate(records)] == [("a", "1"), ("b", "2")]


def test_statistics_phases(config):
    ticks = iter(range(100))
    collector = TranslationCollector(config, clock=lambda: float(next(ticks)))

    stats = collector.collect().statistics

    assert [p.phase for p in stats.phases] == [
        CollectionPhase.SCANNING_PATHS,
        CollectionPhase.SCANNING_MODULES,
        CollectionPhase.DEDUPLICATING,
        CollectionPhase.DONE,
    ]
    assert stats.phases[0].files_scanned == 1
    assert stats.phases[1].files_scanned == 2
    assert stats.total_files_scanned == 3
    assert stats.total_translations_found == 5
    assert all(p.elapsed >= 0 for p in stats.phases)
    assert stats.as_dict()["phases"][0]["phase"] == "scanning_paths"


def test_results_do_not_share_statistics(config):
    collector = TranslationCollector(config)
    first = collector.collect()
    second = collector.collect()

    assert first.statistics is not second.statistics
    assert first.statistics.total_files_scanned == second.statistics.total_files_scanned


def test_scan_is_idempotent(config):
    collector = TranslationCollector(config)
    assert _without_timestamps(collector.collect().records) == _without_timestamps(
        collector.collect().records
    )


def test_missing_scan_root_is_not_fatal(config, caplog):
    collector = TranslationCollector(config)
    with caplog.at_level(logging.WARNING):
        result = collector.scan_paths(["does-not-exist", "app"])

    assert "does-not-exist" in caplog.text
    assert result.files_scanned == 1
    assert {r.key for r in result.records} == {
        "user.login.success", "user.logout", "this is a title"
    }


def test_scan_modules(config):
    result = TranslationCollector(config).scan_modules("User")

    assert result.files_scanned == 2
    assert {r.module for r in result.records} == {"User"}


def test_scan_modules_uses_manifest(config):
    config.modules.manifest = {"User": ["Http"]}
    result = TranslationCollector(config).scan_modules()

    assert result.files_scanned == 1
    assert [r.key for r in result.records] == ["user.logout"]


def test_scan_unknown_module(config, caplog):
    with caplog.at_level(logging.WARNING):
        result = TranslationCollector(config).scan_modules(["Billing"])
    assert result.records == []
    assert "Billing" in caplog.text


def test_modules_disabled(config):
    config.modules.enabled = False
    collector = TranslationCollector(config)

    assert collector.scan_modules().records == []
    stats = collector.collect().statistics
    assert CollectionPhase.SCANNING_MODULES not in [p.phase for p in stats.phases]


def test_collect_with_explicit_paths(config):
    config.modules.enabled = False
    result = TranslationCollector(config).collect(paths=["Modules/User/Http"])
    assert [r.key for r in result.records] == ["user.logout"]


def test_collect_wraps_unexpected_failures(config, monkeypatch):
    collector = TranslationCollector(config)

    def explode(*args, **kwargs):
        raise RuntimeError("disk on fire")

    monkeypatch.setattr(collector, "_paths_scan", explode)
    with pytest.raises(CollectionError) as excinfo:
        collector.collect()
    assert isinstance(excinfo.value.__cause__, RuntimeError)


def test_scan_existing_translations(config):
    records = TranslationCollector(config).scan_existing_translations("en")

    assert {"key": "nested.user.profile.name", "value": "Name"} in [
        {"key": r.key, "value": r.value} for r in records
    ]
    assert {r.language for r in records} == {"en"}


def test_scan_existing_all_languages(config):
    records = TranslationCollector(config).scan_existing_translations()
    assert {r.language for r in records} == {"en", "zh_CN"}


def test_cache_reuses_results(config, monkeypatch):
    config.cache = dataclasses.replace(config.cache, enabled=True)
    collector = TranslationCollector(config)
    first = collector.collect()
    assert (config.lang_path.parent / ".i18n-collector" / "scan-cache.json").is_file()

    def fail(*args, **kwargs):
        raise AssertionError("resolver should not run on a cache hit")

    monkeypatch.setattr("i18n_collector.resolver.Resolver.resolve", fail)
    second = collector.collect()

    assert _without_timestamps(first.records) == _without_timestamps(second.records)


def test_cache_invalidated_by_store_change(config, project):
    config.cache = dataclasses.replace(config.cache, enabled=True)
    collector = TranslationCollector(config)
    collector.collect()

    (project / "lang" / "en.json").write_text(
        '{"user.login.success": "Welcome back", "user.logout": "Logout"}', encoding="utf-8"
    )
    records = {r.key: r for r in collector.collect().records}
    assert records["user.login.success"].value == "Welcome back"


def test_collect_without_cache_flag(config, project):
    config.cache = dataclasses.replace(config.cache, enabled=True)
    TranslationCollector(config).collect(use_cache=False)
    assert not (project / ".i18n-collector").exists()
