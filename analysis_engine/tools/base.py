"""Abstract base for analysis tool adapters.

An adapter wraps one external static-analysis program. The orchestrator
only ever talks to this interface, so adding a tool is a one-file +
one-register operation (see ``analysis_engine.tools.registry``).
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from concurrent.futures import Future
from pathlib import Path
from typing import Any, Callable

from pydantic import BaseModel, Field

from analysis_engine.core.config import settings
from analysis_engine.domain.models import AnalysisRequest, AnalysisResult, Progress, ValidationResult

ProgressCallback = Callable[[Progress], None]
OutputCallback = Callable[[str], None]


# ── Configuration ────────────────────────────────────────────────


class ToolConfig(BaseModel):
    """Settings shared by every tool; subclasses add tool-specific options."""

    tool_name: str = ""
    source_path: str = ""
    output_file: str = ""
    include_paths: list[str] = Field(default_factory=list)
    definitions: list[str] = Field(default_factory=list)
    custom_options: dict[str, Any] = Field(default_factory=dict)
    timeout_sec: int = Field(default_factory=lambda: settings.DEFAULT_TOOL_TIMEOUT_SEC)

    def display_name(self) -> str:
        return self.tool_name

    def clone(self) -> ToolConfig:
        return self.model_copy(deep=True)

    def validate_config(self) -> ValidationResult:
        """Check the settings without touching any state. Subclasses extend this."""
        result = ValidationResult()
        self._validate_common(result)
        return result

    def _validate_common(self, result: ValidationResult) -> None:
        if not self.tool_name:
            result.add_error("Tool name cannot be empty")

        if not self.source_path:
            result.add_error("Source path cannot be empty")
        elif not Path(self.source_path).exists():
            result.add_error(f"Source path does not exist: {self.source_path}")

        if not self.output_file:
            result.add_warning("Output file not specified, results may not be saved")
        else:
            out_dir = Path(self.output_file).parent
            if str(out_dir) not in ("", ".") and not out_dir.exists():
                result.add_error(f"Output directory does not exist: {out_dir}")

        for include in self.include_paths:
            if not Path(include).exists():
                result.add_warning(f"Include path does not exist: {include}")

        for definition in self.definitions:
            if not definition:
                result.add_warning("Empty definition found")
            elif " " in definition:
                result.add_warning(f"Definition contains spaces: {definition}")

        if self.timeout_sec <= 0:
            result.add_error("Timeout must be a positive number of seconds")


# ── Adapter interface ────────────────────────────────────────────


class AnalysisTool(ABC):
    """Interface every analysis tool adapter must implement."""

    # Metadata

    @abstractmethod
    def name(self) -> str:
        """Short identifier used for registration, e.g. ``"ruff"``."""

    @abstractmethod
    def version(self) -> str: ...

    @abstractmethod
    def description(self) -> str: ...

    @abstractmethod
    def supported_extensions(self) -> list[str]: ...

    @abstractmethod
    def supported_output_formats(self) -> list[str]: ...

    @abstractmethod
    def help_text(self) -> str: ...

    # Configuration

    @abstractmethod
    def set_configuration(self, config: ToolConfig) -> None:
        """Replace the settings wholesale.

        Raises ``InvalidConfigTypeError`` when ``config`` is not this tool's
        configuration type.
        """

    @abstractmethod
    def get_configuration(self) -> ToolConfig | None: ...

    @abstractmethod
    def create_default_config(self) -> ToolConfig: ...

    @abstractmethod
    def validate_configuration(self) -> ValidationResult: ...

    # Availability

    @abstractmethod
    def is_available(self) -> bool:
        """Return True if the external program can be located and invoked."""

    @abstractmethod
    def executable_path(self) -> str:
        """Resolved executable path, or ``""`` when not found."""

    @abstractmethod
    def system_requirements(self) -> str: ...

    # Execution

    @abstractmethod
    def execute(self, request: AnalysisRequest) -> AnalysisResult:
        """Run to completion and return the result.

        Ordinary tool failures come back as ``success=False`` results; only
        programmer errors such as a missing configuration are raised.
        """

    @abstractmethod
    def execute_async(
        self,
        request: AnalysisRequest,
        progress_callback: ProgressCallback | None = None,
        output_callback: OutputCallback | None = None,
    ) -> Future[AnalysisResult]:
        """Run in the background; the future resolves like ``execute``."""

    @abstractmethod
    def cancel_analysis(self) -> bool:
        """Request a cooperative stop. An already spawned process may still run to completion."""

    @abstractmethod
    def is_analysis_running(self) -> bool: ...

    def shutdown(self, wait: bool = True) -> None:
        """Release background workers. Adapters without any have nothing to do."""

    # Results / commands

    @abstractmethod
    def parse_results_file(self, output_file: str, source_path: str = "") -> AnalysisResult:
        """Rebuild a result from a previously written output artifact.

        File paths are reported relative to ``source_path`` (default: the
        configured source), the same way a live run reports them.
        """

    @abstractmethod
    def build_command_line(self, request: AnalysisRequest) -> list[str]: ...
