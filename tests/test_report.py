import pytest

from i18n_collector.models import CollectionStatistics, FileType, TranslationRecord
from i18n_collector.report import build_report, coverage_status


def rec(key, module=None, language=None, value=None, file_type=FileType.FLAT):
    return TranslationRecord(
        key=key,
        value=value or key,
        source_file=f"{key}.php",
        module=module,
        language=language,
        file_type=file_type,
    )


@pytest.mark.parametrize("percent,status", [
    (100, "complete"), (80, "good"), (79.99, "partial"), (50, "partial"), (0, "poor"),
])
def test_coverage_status(percent, status):
    assert coverage_status(percent) == status


def test_build_report():
    collected = [rec("a"), rec("b", module="User", file_type=FileType.NESTED), rec("c")]
    local = {
        "en": [rec("a", language="en"), rec("b", language="en"), rec("c", language="en")],
        "de": [rec("a", language="de", value="A"), rec("old", language="de", value="Alt")],
    }

    report = build_report(
        collected, local, [{"key": "a"}], {"en": "English", "de": "German", "fr": "French"},
        CollectionStatistics(total_files_scanned=3),
    )

    assert report["summary"]["total_collected_keys"] == 3
    assert report["summary"]["total_local_translations"] == 5
    assert report["summary"]["total_external_translations"] == 1
    assert report["summary"]["collection_statistics"]["total_files_scanned"] == 3
    assert report["statistics"]["by_module"] == {"Core": 2, "User": 1}
    assert report["statistics"]["by_file_type"] == {"flat": 2, "nested": 1}

    assert "en" not in report["missing_translations"]
    assert [m["key"] for m in report["missing_translations"]["de"]] == ["b", "c"]
    assert report["missing_translations"]["de"][0]["module"] == "User"
    assert report["unused_translations"]["de"] == [{"key": "old", "value": "Alt"}]

    coverage = report["language_coverage"]
    assert coverage["en"]["status"] == "complete"
    assert coverage["de"]["coverage_percent"] == 33.33
    assert coverage["fr"]["translated"] == 0
    assert coverage["fr"]["status"] == "poor"


def test_empty_collection():
    report = build_report([], {}, [], {"en": "English"})
    assert report["language_coverage"]["en"]["coverage_percent"] == 0.0
    assert report["summary"]["collection_statistics"] == {}
