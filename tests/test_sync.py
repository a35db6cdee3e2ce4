"""Tests for pull / push / init workflows against a mocked API client."""

import json
from unittest import mock

import pytest

from i18n_collector.client import TranslationApiClient
from i18n_collector.collector import TranslationCollector
from i18n_collector.errors import RemoteTransportError, ValidationError
from i18n_collector.models import FileType, TranslationRecord
from i18n_collector.stores import StoreWriter, WriteMode
from i18n_collector.sync import (
    initialize_remote,
    pull_translations,
    push_collected,
    remote_item_to_record,
    validate_remote_item,
)


@pytest.fixture
def api():
    return mock.create_autospec(TranslationApiClient, instance=True)


def _load(path):
    return json.loads(path.read_text(encoding="utf-8"))


class TestValidateRemoteItem:
    def test_valid_flat_item(self):
        record = validate_remote_item({"key": "Hello", "value": "Hallo"}, "de")
        assert record.file_type is FileType.FLAT
        assert record.language == "de"

    def test_valid_nested_item(self):
        record = validate_remote_item(
            {"key": "auth.login", "value": "Anmelden", "file_type": "nested", "language": "de"}, "de"
        )
        assert record.file_type is FileType.NESTED

    def test_legacy_tags(self):
        assert validate_remote_item({"key": "a", "value": "b", "file_type": "json"}, "en").file_type is FileType.FLAT
        assert validate_remote_item({"key": "a.b", "value": "c", "file_type": "php"}, "en").file_type is FileType.NESTED

    @pytest.mark.parametrize("item,reason", [
        ({"value": "X"}, "missing key"),
        ({"key": "", "value": "X"}, "missing key"),
        ({"key": "a", "value": ""}, "missing value"),
        ({"key": "a", "value": None}, "missing value"),
        ({"key": "a", "value": "X", "file_type": "xml"}, "unknown file type"),
        ({"key": "simple_key", "value": "X", "file_type": "nested"}, "no namespace"),
        ("not a dict", "not an object"),
    ])
    def test_invalid_items(self, item, reason):
        with pytest.raises(ValidationError, match=reason):
            validate_remote_item(item, "en")

    def test_untagged_key_needs_namespace_for_nested_default(self):
        with pytest.raises(ValidationError):
            validate_remote_item({"key": "plain", "value": "X"}, "en", default_format=FileType.NESTED)


class TestPull:
    def test_pull_writes_valid_and_reports_skipped(self, api, project):
        api.get_translations.return_value = [
            {"key": "user.logout", "value": "Sign out", "language": "en", "file_type": "flat"},
            {"key": "auth.login", "value": "Log in", "language": "en", "file_type": "nested"},
            {"key": "simple_key", "value": "X", "language": "en", "file_type": "nested"},
            {"key": "empty", "value": "", "language": "en"},
        ]
        writer = StoreWriter(project / "lang")

        [result] = pull_translations(api, writer, ["en"])

        api.get_translations.assert_called_once_with(language="en")
        assert result.ok
        assert (result.fetched, result.valid) == (4, 2)
        assert [key for key, _ in result.skipped] == ["simple_key", "empty"]
        assert all(o.written for o in result.outcomes)

        flat = _load(project / "lang" / "en.json")
        assert flat["user.logout"] == "Sign out"
        assert flat["user.login.success"] == "Login successful"
        assert "simple_key" not in flat
        assert _load(project / "lang" / "en" / "auth.json") == {"login": "Log in"}
        assert not any((project / "lang" / "en").glob("simple_key*"))

    def test_failed_language_does_not_stop_others(self, api, project):
        api.get_translations.side_effect = [
            RemoteTransportError("down", attempts=3),
            [{"key": "user.logout", "value": "退出", "file_type": "flat"}],
        ]

        results = pull_translations(api, StoreWriter(project / "lang"), ["en", "zh_CN"])

        assert not results[0].ok
        assert "down" in results[0].error
        assert results[1].ok
        assert _load(project / "lang" / "zh_CN.json")["user.logout"] == "退出"

    def test_preview_mode_writes_nothing(self, api, project):
        before = (project / "lang" / "en.json").read_text(encoding="utf-8")
        api.get_translations.return_value = [{"key": "user.logout", "value": "Sign out"}]

        [result] = pull_translations(api, StoreWriter(project / "lang"), ["en"], mode=WriteMode.PREVIEW)

        assert not result.outcomes[0].written
        assert (project / "lang" / "en.json").read_text(encoding="utf-8") == before

    def test_overwrite_with_force(self, api, project):
        api.get_translations.return_value = [{"key": "user.logout", "value": "Sign out"}]

        pull_translations(
            api, StoreWriter(project / "lang"), ["en"], mode=WriteMode.OVERWRITE, force=True
        )

        assert _load(project / "lang" / "en.json") == {"user.logout": "Sign out"}

    def test_key_conflict_skips_record_not_language(self, api, tmp_path):
        api.get_translations.return_value = [
            {"key": "Hello", "value": "Hallo", "file_type": "flat"},
            {"key": "auth.login", "value": "Anmelden", "file_type": "nested"},
            {"key": "auth.login.title", "value": "Titel", "file_type": "nested"},
            {"key": "menu.home", "value": "Start", "file_type": "nested"},
        ]

        [result] = pull_translations(api, StoreWriter(tmp_path), ["de"])

        assert result.ok
        assert result.valid == 3
        assert [key for key, _ in result.skipped] == ["auth.login.title"]
        assert "key conflict" in result.skipped[0][1]
        assert _load(tmp_path / "de.json") == {"Hello": "Hallo"}
        assert _load(tmp_path / "de" / "auth.json") == {"login": "Anmelden"}
        assert _load(tmp_path / "de" / "menu.json") == {"home": "Start"}

    def test_empty_remote(self, api, project):
        api.get_translations.return_value = []
        [result] = pull_translations(api, StoreWriter(project / "lang"), ["en"])
        assert result.ok
        assert result.outcomes == []


def _record(key, line=1):
    return TranslationRecord(key=key, value=key, source_file="app/a.php", line_number=line, context="c")


class TestPush:
    def test_uploads_new_and_updated(self, api):
        api.get_translations.return_value = [
            {"key": "same", "value": "same", "source_file": "app/a.php", "line_number": 1, "context": "c"},
            {"key": "moved", "value": "moved", "source_file": "app/a.php", "line_number": 9, "context": "c"},
            {"key": "remote.only", "value": "x"},
            {"value": "no key"},
        ]
        api.batch_upload.return_value = [{"ok": True}]
        collected = [_record("same"), _record("moved"), _record("brand.new")]

        summary = push_collected(api, collected, batch_size=50)

        uploaded = api.batch_upload.call_args.args[0]
        assert [r.key for r in uploaded] == ["brand.new", "moved"]
        assert api.batch_upload.call_args.args[1] == 50
        assert summary.uploaded == 2
        assert summary.differences.counts() == {"new": 1, "updated": 1, "deleted": 1, "unchanged": 1}

    def test_counts_failed_batches(self, api):
        api.get_translations.return_value = []
        api.batch_upload.return_value = [
            {"ok": True},
            {"success": False, "error": "down", "batch_index": 1},
            {"ok": True},
        ]
        summary = push_collected(api, [_record(f"k{i}") for i in range(5)], batch_size=2)

        assert summary.uploaded == 3
        assert len(summary.failed_batches) == 1

    def test_known_keys_without_location_are_not_reuploaded(self, api):
        api.get_translations.return_value = [
            {
                "key": f"k{i}", "value": f"k{i}", "language": "en",
                "file_type": "flat", "updated_at": "2024-01-01T00:00:00Z",
            }
            for i in range(5)
        ]
        summary = push_collected(api, [_record(f"k{i}") for i in range(5)])

        api.batch_upload.assert_not_called()
        assert summary.uploaded == 0
        assert summary.differences.counts() == {"new": 0, "updated": 0, "deleted": 0, "unchanged": 5}

    def test_dry_run(self, api):
        api.get_translations.return_value = []
        summary = push_collected(api, [_record("k")], dry_run=True)
        api.batch_upload.assert_not_called()
        assert len(summary.differences.new) == 1

    def test_remote_item_conversion(self):
        assert remote_item_to_record({"value": "x"}) is None
        record = remote_item_to_record({"key": "a", "value": "b", "file_type": "bogus", "line_number": "x"})
        assert record.file_type is FileType.OTHER
        assert record.line_number == 1


class TestInit:
    def test_pushes_existing_stores(self, api, config):
        api.batch_init.return_value = [{"success": True}]

        records, batches = initialize_remote(api, TranslationCollector(config), ["en"], batch_size=10)

        assert batches == [{"success": True}]
        sent = api.batch_init.call_args.args[0]
        assert {r.key for r in sent} == {"user.login.success", "user.logout", "nested.user.profile.name"}
        assert all(r.language == "en" for r in sent)
        assert records == sent

    def test_rejects_unsupported_language(self, api, config):
        with pytest.raises(ValueError, match="fr"):
            initialize_remote(api, TranslationCollector(config), ["fr"])
        api.batch_init.assert_not_called()

    def test_dry_run(self, api, config):
        records, batches = initialize_remote(api, TranslationCollector(config), dry_run=True)
        assert len(records) == 4
        assert batches == []
        api.batch_init.assert_not_called()
