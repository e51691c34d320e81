import json
from datetime import datetime, timedelta, timezone

import pytest

from analysis_engine.core.errors import ResultStoreError
from analysis_engine.domain.models import AnalysisResult, Category, Severity
from analysis_engine.services.result_store import ResultStore
from conftest import make_issue


def _result(tool="ruff"):
    return AnalysisResult(
        tool_name=tool,
        timestamp=datetime(2025, 3, 1, 8, 30, 15, 987000, tzinfo=timezone.utc),
        issues=[
            make_issue(tool=tool, severity=Severity.CRITICAL, category=Category.SECURITY),
            make_issue(tool=tool, line=7),
        ],
        files_analyzed=5,
        execution_time=timedelta(milliseconds=1234),
        success=True,
    )


def test_save_and_load_single(tmp_path):
    original = _result()
    path = ResultStore.save_result(original, tmp_path / "nested" / "r.json")

    assert path.exists()
    loaded = ResultStore.load_result(path)

    assert loaded.tool_name == original.tool_name
    assert loaded.analysis_id == original.analysis_id
    assert loaded.issues == original.issues
    assert loaded.files_analyzed == 5
    assert loaded.execution_time == timedelta(milliseconds=1234)
    assert loaded.success
    # timestamps keep second precision
    assert loaded.timestamp == original.timestamp.replace(microsecond=0)
    assert loaded.issue_counts_by_severity == original.issue_counts_by_severity


def test_saved_document_is_readable_json(tmp_path):
    path = ResultStore.save_result(_result(), tmp_path / "r.json")
    doc = json.loads(path.read_text(encoding="utf-8"))
    assert doc["timestamp"] == "2025-03-01T08:30:15Z"
    assert doc["issue_counts_by_severity"] == {"critical": 1, "warning": 1}


def test_save_and_load_list(tmp_path):
    results = [_result("ruff"), _result("bandit")]
    path = ResultStore.save_results(results, tmp_path / "all.json")

    loaded = ResultStore.load_results(path)
    assert [r.tool_name for r in loaded] == ["ruff", "bandit"]


def test_load_results_accepts_single_document(tmp_path):
    path = ResultStore.save_result(_result(), tmp_path / "one.json")
    assert len(ResultStore.load_results(path)) == 1


def test_load_result_accepts_one_element_list(tmp_path):
    path = ResultStore.save_results([_result()], tmp_path / "one.json")
    assert ResultStore.load_result(path).tool_name == "ruff"

    path = ResultStore.save_results([_result(), _result()], tmp_path / "two.json")
    with pytest.raises(ResultStoreError):
        ResultStore.load_result(path)


def test_load_rebuilds_counts_from_issues(tmp_path):
    path = tmp_path / "r.json"
    doc = _result().to_dict()
    doc["issue_counts_by_severity"] = {"info": 99}
    path.write_text(json.dumps(doc), encoding="utf-8")

    assert ResultStore.load_result(path).issue_counts_by_severity == {Severity.CRITICAL: 1, Severity.WARNING: 1}


def test_load_errors(tmp_path):
    with pytest.raises(ResultStoreError):
        ResultStore.load_results(tmp_path / "missing.json")

    bad = tmp_path / "bad.json"
    bad.write_text("{not json", encoding="utf-8")
    with pytest.raises(ResultStoreError):
        ResultStore.load_results(bad)

    scalar = tmp_path / "scalar.json"
    scalar.write_text("42", encoding="utf-8")
    with pytest.raises(ResultStoreError):
        ResultStore.load_result(scalar)


def test_save_error(tmp_path):
    blocker = tmp_path / "file"
    blocker.write_text("x", encoding="utf-8")
    with pytest.raises(ResultStoreError):
        ResultStore.save_result(_result(), blocker / "r.json")


@pytest.mark.parametrize(
    "payload",
    [
        {"tool_name": "ruff", "timestamp": "not-a-date"},
        {"tool_name": "ruff", "issues": [{"message": "m", "line_number": "abc"}]},
        [1, 2],
        {"tool_name": "ruff", "issues": [3]},
    ],
)
def test_malformed_documents_raise_store_error(tmp_path, payload):
    path = tmp_path / "bad.json"
    path.write_text(json.dumps(payload), encoding="utf-8")
    with pytest.raises(ResultStoreError):
        ResultStore.load_results(path)


def test_from_documents_rejects_non_objects():
    with pytest.raises(ResultStoreError, match="entry 1"):
        ResultStore.from_documents([_result().to_dict(), "oops"])
