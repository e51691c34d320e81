from typing import Any

from pydantic import BaseModel, Field

from analysis_engine.domain.models import AnalysisRequest


class AnalysisRequestModel(BaseModel):
    """What to analyse and where to put the raw tool output."""

    source_path: str = Field(..., description="File or directory to analyse.")
    output_file: str = Field(
        "",
        description="Output target. In a batch each tool writes `<stem>_<tool><ext>` next to it.",
    )
    include_paths: list[str] = []
    definitions: list[str] = []
    tool_specific_options: dict[str, Any] = Field(
        default_factory=dict,
        description="Per-tool options keyed by tool name, e.g. `{'ruff': {'extra_args': ['--unsafe-fixes']}}`.",
    )

    def to_domain(self) -> AnalysisRequest:
        return AnalysisRequest.from_dict(self.model_dump())


class ToolInfo(BaseModel):
    name: str
    available: bool
    version: str
    description: str
    supported_extensions: list[str]
    executable_path: str


class ValidationResponse(BaseModel):
    is_valid: bool
    errors: list[str]
    warnings: list[str]


class AnalyseRequest(BaseModel):
    """Request body for a synchronous or background batch run."""

    tools: list[str] = Field(
        ...,
        description="Tool names to run, in order.",
        json_schema_extra={"examples": [["ruff", "bandit"]]},
    )
    request: AnalysisRequestModel
    save_to: str | None = Field(None, description="Optional path to persist the per-tool results.")


class AnalyseResponse(BaseModel):
    results: list[dict[str, Any]]
    aggregated: dict[str, Any]
    statistics: dict[str, Any]


class JobResponse(BaseModel):
    job_id: str
    status: str
    progress: dict[str, dict[str, Any]] = {}
    results: list[dict[str, Any]] | None = None
    error: str | None = None


class ResultsBody(BaseModel):
    results: list[dict[str, Any]]


class CompareRequest(BaseModel):
    baseline: list[dict[str, Any]]
    current: list[dict[str, Any]]
