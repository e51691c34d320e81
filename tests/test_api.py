"""Tests for the tool and analysis HTTP endpoints."""

import json

from analysis_engine.api import analysis_routes
from analysis_engine.domain.models import AnalysisResult, Severity
from analysis_engine.tools.ruff import RuffTool
from conftest import FakeTool, make_issue


def _body(request_obj, tools, **extra):
    return {"tools": tools, "request": {"source_path": request_obj.source_path}, **extra}


def test_list_tools(client, orchestrator):
    orchestrator.register(FakeTool("alpha"))
    orchestrator.register(FakeTool("gamma", available=False))

    tools = {t["name"]: t for t in client.get("/api/tools").json()}
    assert set(tools) == {"alpha", "gamma"}
    assert tools["alpha"]["available"] is True
    assert tools["alpha"]["version"] == "1.0"
    assert tools["gamma"]["executable_path"] == ""

    assert client.get("/api/tools/available").json() == ["alpha"]


def test_unknown_tool_is_404(client):
    assert client.get("/api/tools/nope/config").status_code == 404
    assert client.post("/api/tools/nope/validate").status_code == 404
    assert client.put("/api/tools/nope/config", json={}).status_code == 404


def test_put_config_returns_validation(client, orchestrator, tmp_path):
    orchestrator.register(RuffTool())

    assert client.get("/api/tools/ruff/config").json() is None
    assert client.post("/api/tools/ruff/validate").json()["is_valid"] is False

    res = client.put("/api/tools/ruff/config", json={"source_path": str(tmp_path), "line_length": 88})
    assert res.status_code == 200
    assert res.json()["is_valid"] is True

    cfg = client.get("/api/tools/ruff/config").json()
    assert cfg["tool_name"] == "ruff"
    assert cfg["line_length"] == 88

    res = client.put("/api/tools/ruff/config", json={"source_path": str(tmp_path), "line_length": 0})
    assert res.json()["is_valid"] is False
    assert any("Line length" in e for e in res.json()["errors"])


def test_put_config_rejects_malformed_body(client, orchestrator):
    orchestrator.register(RuffTool())
    assert client.put("/api/tools/ruff/config", json={"line_length": "long"}).status_code == 400


def test_command_preview(client, orchestrator, monkeypatch):
    monkeypatch.setattr("analysis_engine.tools.external.shutil.which", lambda _: "/usr/bin/ruff")
    orchestrator.register(RuffTool())

    assert client.post("/api/tools/ruff/command", json={"source_path": "src"}).status_code == 400

    client.put("/api/tools/ruff/config", json={"select": ["E"]})
    cmd = client.post("/api/tools/ruff/command", json={"source_path": "src"}).json()
    assert cmd[:3] == ["/usr/bin/ruff", "check", "src"]
    assert cmd[-2:] == ["--select", "E"]


def test_analyse_runs_and_merges(client, orchestrator, request_obj, tmp_path):
    orchestrator.register(FakeTool("alpha", files_analyzed=3, issues=[make_issue(tool="alpha", severity=Severity.ERROR)]))
    orchestrator.register(FakeTool("beta", files_analyzed=1, issues=[make_issue(tool="beta")]))
    save_to = tmp_path / "saved" / "results.json"

    res = client.post("/api/analyse", json=_body(request_obj, ["alpha", "beta"], save_to=str(save_to)))

    assert res.status_code == 200
    data = res.json()
    assert [r["tool_name"] for r in data["results"]] == ["alpha", "beta"]
    assert data["aggregated"]["files_analyzed"] == 4
    # same file, line and rule: only the first is kept
    assert len(data["aggregated"]["issues"]) == 1
    assert data["statistics"]["total_issues"] == 2
    assert data["statistics"]["issues_per_tool"] == {"alpha": 1, "beta": 1}
    assert len(json.loads(save_to.read_text(encoding="utf-8"))) == 2


def test_analyse_rejects_unknown_tools(client, orchestrator, request_obj):
    orchestrator.register(FakeTool("alpha"))
    assert client.post("/api/analyse", json=_body(request_obj, ["alpha", "nope"])).status_code == 400
    assert client.post("/api/analyse", json=_body(request_obj, [])).status_code == 400


def test_background_job(client, orchestrator, request_obj):
    orchestrator.register(FakeTool("alpha", files_analyzed=2))

    res = client.post("/api/analyse/jobs", json=_body(request_obj, ["alpha"]))
    assert res.status_code == 200
    job_id = res.json()["job_id"]
    analysis_routes._jobs[job_id].future.result(timeout=10)

    data = client.get(f"/api/analyse/jobs/{job_id}").json()
    assert data["status"] == "done"
    assert data["results"][0]["tool_name"] == "alpha"
    assert data["progress"]["alpha"]["processed_files"] == 2
    # a finished job is handed out once and then forgotten
    assert job_id not in analysis_routes._jobs
    assert client.get(f"/api/analyse/jobs/{job_id}").status_code == 404


def test_background_job_failure(client, orchestrator, request_obj):
    res = client.post("/api/analyse/jobs", json=_body(request_obj, ["nope"]))
    job_id = res.json()["job_id"]
    analysis_routes._jobs[job_id].future.exception(timeout=10)

    data = client.get(f"/api/analyse/jobs/{job_id}").json()
    assert data["status"] == "failed"
    assert "nope" in data["error"]
    assert job_id not in analysis_routes._jobs


def test_unknown_job_is_404(client):
    assert client.get("/api/analyse/jobs/missing").status_code == 404


def test_cancel(client):
    assert client.post("/api/analyse/cancel").json() == {"cancelled": True}


def test_aggregate_statistics_and_compare(client):
    baseline = AnalysisResult(tool_name="alpha", success=True, issues=[make_issue(line=1), make_issue(line=2)])
    current = AnalysisResult(tool_name="alpha", success=True, issues=[make_issue(line=2), make_issue(line=3)])
    docs = [baseline.to_dict(), current.to_dict()]

    merged = client.post("/api/aggregate", json={"results": docs}).json()
    assert merged["tool_name"] == "aggregated"
    assert len(merged["issues"]) == 3

    stats = client.post("/api/statistics?top_n=1", json={"results": docs}).json()
    assert stats["total_issues"] == 4
    assert stats["most_problematic_files"] == ["src/app.py"]

    report = client.post("/api/compare", json={"baseline": [docs[0]], "current": [docs[1]]}).json()
    assert [i["line_number"] for i in report["new_issues"]] == [3]
    assert [i["line_number"] for i in report["resolved_issues"]] == [1]
    assert [i["line_number"] for i in report["persistent_issues"]] == [2]
    assert report["issue_count_delta"] == 0


def test_malformed_result_documents_are_400(client):
    bad = [{"tool_name": "alpha", "timestamp": "not-a-date"}]
    assert client.post("/api/aggregate", json={"results": bad}).status_code == 400
    assert client.post("/api/statistics", json={"results": [{"issues": [{"line_number": "abc"}]}]}).status_code == 400
    assert client.post("/api/compare", json={"baseline": bad, "current": []}).status_code == 400
