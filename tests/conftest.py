from __future__ import annotations

from concurrent.futures import Future

import pytest
from fastapi.testclient import TestClient

from analysis_engine.core import containers
from analysis_engine.core.config import settings
from analysis_engine.domain.models import (
    AnalysisRequest,
    AnalysisResult,
    Category,
    Issue,
    Progress,
    Severity,
    ValidationResult,
)
from analysis_engine.services.orchestrator import AnalysisOrchestrator
from analysis_engine.tools.base import AnalysisTool, ToolConfig


def make_issue(
    file_path: str = "src/app.py",
    line: int = 1,
    rule_id: str = "R1",
    tool: str = "fake",
    severity: Severity = Severity.WARNING,
    category: Category = Category.STYLE,
    message: str = "something is off",
    column: int = 0,
) -> Issue:
    return Issue(
        id=f"{tool}-{file_path}-{line}-{rule_id}",
        message=message,
        file_path=file_path,
        line_number=line,
        column_number=column,
        severity=severity,
        category=category,
        rule_id=rule_id,
        tool_name=tool,
    )


class FakeTool(AnalysisTool):
    """In-memory tool returning canned issues; records every request it sees."""

    def __init__(
        self,
        name: str = "fake",
        available: bool = True,
        issues: list[Issue] | None = None,
        files_analyzed: int = 1,
        raises: Exception | None = None,
        success: bool = True,
        error_message: str = "",
        validation: ValidationResult | None = None,
    ):
        self._name = name
        self._available = available
        self._issues = issues or []
        self._files = files_analyzed
        self._raises = raises
        self._success = success
        self._error = error_message
        self._validation = validation or ValidationResult()
        self._config: ToolConfig | None = None
        self.requests: list[AnalysisRequest] = []
        self.running = False
        self.cancelled = False

    def name(self):
        return self._name

    def version(self):
        return "1.0"

    def description(self):
        return "fake tool"

    def supported_extensions(self):
        return [".py"]

    def supported_output_formats(self):
        return ["json"]

    def help_text(self):
        return "no options"

    def set_configuration(self, config):
        self._config = config

    def get_configuration(self):
        return self._config

    def create_default_config(self):
        return ToolConfig(tool_name=self._name)

    def validate_configuration(self):
        return self._validation

    def is_available(self):
        return self._available

    def executable_path(self):
        return f"/usr/bin/{self._name}" if self._available else ""

    def system_requirements(self):
        return "none"

    def execute(self, request):
        self.requests.append(request)
        if self._raises is not None:
            raise self._raises
        return AnalysisResult(
            tool_name=self._name,
            issues=list(self._issues),
            files_analyzed=self._files,
            success=self._success,
            error_message=self._error,
        )

    def execute_async(self, request, progress_callback=None, output_callback=None):
        future: Future = Future()
        if progress_callback:
            progress_callback(Progress(self._files, 0, "", "start"))
        try:
            result = self.execute(request)
        except Exception as e:
            future.set_exception(e)
            return future
        if progress_callback:
            progress_callback(Progress(self._files, self._files, "", "done"))
        future.set_result(result)
        return future

    def cancel_analysis(self):
        self.cancelled = True
        return self.running

    def is_analysis_running(self):
        return self.running

    def parse_results_file(self, output_file, source_path=""):
        return AnalysisResult(tool_name=self._name, success=True)

    def build_command_line(self, request):
        return [self._name, request.source_path]


@pytest.fixture(autouse=True)
def _use_tmp_data(tmp_path, monkeypatch):
    """Redirect all result data to a temp directory so tests never touch real data."""
    monkeypatch.setattr(settings, "DATA_DIR", str(tmp_path / "data"))
    monkeypatch.setattr(settings, "RESULTS_DIR", str(tmp_path / "data" / "results"))


@pytest.fixture
def request_obj(tmp_path) -> AnalysisRequest:
    src = tmp_path / "src"
    src.mkdir()
    (src / "app.py").write_text("x = 1\n", encoding="utf-8")
    return AnalysisRequest(source_path=str(src), output_file=str(tmp_path / "out" / "report.json"))


@pytest.fixture
def orchestrator() -> AnalysisOrchestrator:
    orch = AnalysisOrchestrator()
    yield orch
    orch.shutdown()


@pytest.fixture
def client(monkeypatch, orchestrator):
    monkeypatch.setattr(containers, "get_orchestrator", lambda: orchestrator)
    from analysis_engine.main import app

    return TestClient(app)
