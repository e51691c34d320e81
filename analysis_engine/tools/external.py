from __future__ import annotations

import logging
import re
import shutil
import subprocess
import threading
import time
from abc import abstractmethod
from concurrent.futures import Future, ThreadPoolExecutor
from datetime import timedelta
from pathlib import Path

from analysis_engine.core.config import settings
from analysis_engine.core.errors import ConfigurationMissingError, InvalidConfigTypeError
from analysis_engine.core.util import CmdResult, collect_source_files, run_cmd
from analysis_engine.domain.models import AnalysisRequest, AnalysisResult, Issue, Progress, ValidationResult, utc_now

from .base import AnalysisTool, OutputCallback, ProgressCallback, ToolConfig

logger = logging.getLogger(__name__)

_VERSION_RE = re.compile(r"(\d+\.\d+(?:\.\d+)?)")


class ExternalTool(AnalysisTool):
    """
    Lifecycle shared by adapters that shell out to a command-line analyzer:
    cached availability/version probes, the one-run-at-a-time flag,
    cooperative cancellation and background execution.

    Subclasses provide the command line and the output parser.
    """

    tool_id: str = ""
    executable: str = ""
    executable_setting: str = ""
    config_class: type[ToolConfig] = ToolConfig
    # Linters commonly exit 1 when they found something
    accepted_exit_codes: tuple[int, ...] = (0, 1)

    def __init__(self, config: ToolConfig | None = None):
        self._config: ToolConfig | None = None
        self._state_lock = threading.Lock()
        self._running = False
        self._cancel = threading.Event()
        self._executor: ThreadPoolExecutor | None = None
        self._cached_path: str | None = None
        self._cached_version: str | None = None
        if config is not None:
            self.set_configuration(config)

    # ── Metadata ──────────────────────────────────────────────────

    def name(self) -> str:
        return self.tool_id

    def version(self) -> str:
        if self._cached_version is None:
            self._cached_version = self._probe_version()
        return self._cached_version

    def supported_output_formats(self) -> list[str]:
        return ["json"]

    def _probe_version(self) -> str:
        exe = self.executable_path()
        if not exe:
            return "unknown"
        try:
            r = run_cmd([exe, "--version"], timeout_sec=15)
        except (OSError, subprocess.SubprocessError):
            logger.warning("Version probe failed", extra={"tool": self.tool_id})
            return "unknown"
        m = _VERSION_RE.search(r.stdout or r.stderr)
        return m.group(1) if m else "unknown"

    # ── Configuration ─────────────────────────────────────────────

    def set_configuration(self, config: ToolConfig) -> None:
        if not isinstance(config, self.config_class):
            raise InvalidConfigTypeError(self.tool_id, self.config_class, config)
        self._config = config.clone()

    def get_configuration(self) -> ToolConfig | None:
        return self._config

    def create_default_config(self) -> ToolConfig:
        return self.config_class(tool_name=self.tool_id)

    def validate_configuration(self) -> ValidationResult:
        if self._config is None:
            result = ValidationResult()
            result.add_error(f"Tool is not configured: {self.tool_id}")
            return result
        return self._config.validate_config()

    def _require_config(self) -> ToolConfig:
        if self._config is None:
            raise ConfigurationMissingError(self.tool_id)
        return self._config

    # ── Availability ──────────────────────────────────────────────

    def is_available(self) -> bool:
        return bool(self.executable_path())

    def executable_path(self) -> str:
        if self._cached_path is None:
            override = getattr(settings, self.executable_setting, "") if self.executable_setting else ""
            if override and Path(override).is_file():
                self._cached_path = override
            else:
                self._cached_path = shutil.which(override or self.executable) or ""
        return self._cached_path

    def system_requirements(self) -> str:
        return f"{self.executable} must be installed and available in PATH."

    # ── Execution ─────────────────────────────────────────────────

    def execute(self, request: AnalysisRequest) -> AnalysisResult:
        config = self._require_config()
        if not self._try_start():
            return AnalysisResult.failure(self.tool_id, "Analysis already running")
        try:
            return self._run(config, request)
        finally:
            self._finish()

    def execute_async(
        self,
        request: AnalysisRequest,
        progress_callback: ProgressCallback | None = None,
        output_callback: OutputCallback | None = None,
    ) -> Future[AnalysisResult]:
        config = self._require_config()
        if not self._try_start():
            done: Future[AnalysisResult] = Future()
            done.set_result(AnalysisResult.failure(self.tool_id, "Analysis already running"))
            return done

        def task() -> AnalysisResult:
            try:
                return self._run(config, request, progress_callback, output_callback)
            finally:
                self._finish()

        return self._get_executor().submit(task)

    def cancel_analysis(self) -> bool:
        with self._state_lock:
            if not self._running:
                return False
            self._cancel.set()
        logger.info("Cancellation requested", extra={"tool": self.tool_id})
        return True

    def is_analysis_running(self) -> bool:
        return self._running

    def _try_start(self) -> bool:
        with self._state_lock:
            if self._running:
                return False
            self._running = True
            self._cancel.clear()
            return True

    def _finish(self) -> None:
        with self._state_lock:
            self._running = False

    def _get_executor(self) -> ThreadPoolExecutor:
        with self._state_lock:
            if self._executor is None:
                self._executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix=self.tool_id or "tool")
            return self._executor

    def shutdown(self, wait: bool = True) -> None:
        with self._state_lock:
            executor, self._executor = self._executor, None
        if executor is not None:
            executor.shutdown(wait=wait)

    def _run(
        self,
        config: ToolConfig,
        request: AnalysisRequest,
        progress_callback: ProgressCallback | None = None,
        output_callback: OutputCallback | None = None,
    ) -> AnalysisResult:
        started = time.monotonic()
        ts = utc_now()

        def failed(message: str) -> AnalysisResult:
            logger.warning("%s", message, extra={"tool": self.tool_id})
            return AnalysisResult.failure(
                self.tool_id,
                message,
                timestamp=ts,
                execution_time=timedelta(seconds=time.monotonic() - started),
            )

        if not self.is_available():
            return failed(f"{self.executable} not installed. {self.system_requirements()}")

        source = Path(request.source_path or config.source_path)
        files = collect_source_files(source, self.supported_extensions())
        self._emit(progress_callback, Progress(len(files), 0, "", f"Starting {self.tool_id}"))

        if self._cancel.is_set():
            return failed("Analysis cancelled")

        cmd = self.build_command_line(request)
        logger.info("Running %s", " ".join(cmd), extra={"tool": self.tool_id})
        try:
            r = run_cmd(cmd, timeout_sec=config.timeout_sec)
        except subprocess.TimeoutExpired:
            return failed(f"{self.tool_id} timed out after {config.timeout_sec}s")
        except OSError as e:
            return failed(f"Failed to start {self.executable}: {e}")

        if output_callback:
            for line in [*r.stdout.splitlines(), *r.stderr.splitlines()]:
                output_callback(line)

        if r.exit_code not in self.accepted_exit_codes:
            stderr = (r.stderr or "").strip()[-2000:]
            return failed(f"{self.tool_id} exited with code {r.exit_code}: {stderr or 'no output'}")

        try:
            report = self._report_text(r, request, config)
            issues, files_analyzed = self.parse_output(report, source)
        except (OSError, ValueError, KeyError, TypeError, AttributeError) as e:
            return failed(f"Could not parse {self.tool_id} output: {e}")

        self._emit(progress_callback, Progress(len(files), len(files), "", f"{self.tool_id} completed"))
        logger.info("%s found %d issues", self.tool_id, len(issues), extra={"tool": self.tool_id})
        return AnalysisResult(
            tool_name=self.tool_id,
            timestamp=ts,
            issues=issues,
            files_analyzed=files_analyzed if files_analyzed is not None else len(files),
            execution_time=timedelta(seconds=time.monotonic() - started),
            success=True,
        )

    def _emit(self, callback: ProgressCallback | None, progress: Progress) -> None:
        if callback is None:
            return
        try:
            callback(progress)
        except Exception:
            logger.exception("Progress callback failed", extra={"tool": self.tool_id})

    # ── Results ───────────────────────────────────────────────────

    def parse_results_file(self, output_file: str, source_path: str = "") -> AnalysisResult:
        # Paths are made relative to the analysed source, as in a live run
        source = source_path or (self._config.source_path if self._config is not None else "")
        root = Path(source) if source else None
        p = Path(output_file)
        try:
            text = p.read_text(encoding="utf-8")
            issues, files_analyzed = self.parse_output(text, root)
        except (OSError, ValueError, KeyError, TypeError, AttributeError) as e:
            return AnalysisResult.failure(self.tool_id, f"Could not parse {output_file}: {e}")
        return AnalysisResult(
            tool_name=self.tool_id,
            issues=issues,
            files_analyzed=files_analyzed or 0,
            success=True,
        )

    def _report_text(self, r: CmdResult, request: AnalysisRequest, config: ToolConfig) -> str:
        """Raw report for a finished run; persisted to the output file when one is set."""
        output_file = request.output_file or config.output_file
        if output_file:
            Path(output_file).write_text(r.stdout, encoding="utf-8")
        return r.stdout

    @abstractmethod
    def parse_output(self, text: str, root: Path | None) -> tuple[list[Issue], int | None]:
        """Issues in ``text`` plus the number of analyzed files when the report states it."""

    def _effective(self, request: AnalysisRequest) -> tuple[ToolConfig, str, str]:
        config = self._require_config()
        source = request.source_path or config.source_path
        output = request.output_file or config.output_file
        return config, source, output
