from __future__ import annotations

import logging
import threading
from concurrent.futures import Future, ThreadPoolExecutor
from dataclasses import replace
from pathlib import Path
from typing import Callable, Iterable, Sequence

from analysis_engine.core.config import settings
from analysis_engine.core.errors import InvalidArgumentError, ToolNotFoundError, ToolUnavailableError
from analysis_engine.domain.models import (
    AnalysisRequest,
    AnalysisResult,
    AnalysisStatistics,
    ComparisonReport,
    Progress,
    UNKNOWN_FAILURE,
    ValidationResult,
)
from analysis_engine.services import reporting
from analysis_engine.services.result_store import ResultStore
from analysis_engine.tools.base import AnalysisTool, ToolConfig
from analysis_engine.tools.registry import ToolRegistry, tool_registry

logger = logging.getLogger(__name__)

BatchProgressCallback = Callable[[str, Progress], None]
CompletionCallback = Callable[[list[AnalysisResult]], None]


def tool_output_path(output_file: str, tool_name: str) -> str:
    """``reports/out.json`` → ``reports/out_<tool>.json``; empty stays empty."""
    if not output_file:
        return output_file
    p = Path(output_file)
    return str(p.with_name(f"{p.stem}_{tool_name}{p.suffix}"))


def validate_for_request(tool: AnalysisTool, request: AnalysisRequest) -> ValidationResult:
    """
    Validate the tool configuration as it will be used for ``request``:
    paths given on the request take precedence over the configured ones.
    """
    config = tool.get_configuration()
    if config is None:
        return tool.validate_configuration()
    effective = config.model_copy(
        update={
            "source_path": request.source_path or config.source_path,
            "output_file": request.output_file or config.output_file,
            "include_paths": list(request.include_paths) or config.include_paths,
            "definitions": list(request.definitions) or config.definitions,
        }
    )
    return effective.validate_config()


class AnalysisOrchestrator:
    """
    Orchestrates: validate → run selected tools → merge / compare results.

    The running flag is coarse: it is set while any run call is
    in progress on this instance. Callers sharing one orchestrator across
    threads must serialize their calls if they rely on it.
    """

    def __init__(self, tools: Iterable[AnalysisTool] = (), max_workers: int | None = None):
        self._tools: dict[str, AnalysisTool] = {}
        self._lock = threading.RLock()
        self._running = False
        self._cancel_requested = threading.Event()
        self._max_workers = max_workers or settings.ASYNC_WORKERS
        self._executor: ThreadPoolExecutor | None = None
        for tool in tools:
            self.register(tool)

    @classmethod
    def from_registry(cls, names: Iterable[str] | None = None, registry: ToolRegistry | None = None) -> AnalysisOrchestrator:
        """Build an orchestrator from registered factories; unknown names are skipped."""
        registry = registry or tool_registry
        orchestrator = cls()
        for name in names if names is not None else registry.list():
            tool = registry.create(name)
            if tool is None:
                logger.warning("No tool registered as %s", name, extra={"tool": name})
                continue
            orchestrator.register(tool)
        return orchestrator

    # ── Registration ──────────────────────────────────────────────

    def register(self, tool: AnalysisTool) -> None:
        if tool is None:
            raise InvalidArgumentError("Cannot register null tool")
        name = tool.name()
        if not name:
            raise InvalidArgumentError("Tool must have a non-empty name")
        with self._lock:
            self._tools[name] = tool
        logger.info("Registered tool %s", name, extra={"tool": name})

    def list_registered(self) -> list[str]:
        with self._lock:
            return list(self._tools)

    def list_available(self) -> list[str]:
        """Registered tools whose program can be run right now (probed on every call)."""
        with self._lock:
            tools = list(self._tools.items())
        return [name for name, tool in tools if tool.is_available()]

    def get_tool(self, name: str) -> AnalysisTool | None:
        with self._lock:
            return self._tools.get(name)

    def is_tool_available(self, name: str) -> bool:
        tool = self.get_tool(name)
        return tool is not None and tool.is_available()

    def _require_tool(self, name: str) -> AnalysisTool:
        tool = self.get_tool(name)
        if tool is None:
            raise ToolNotFoundError(name)
        return tool

    # ── Configuration ─────────────────────────────────────────────

    def set_configuration(self, name: str, config: ToolConfig) -> None:
        self._require_tool(name).set_configuration(config)

    def get_configuration(self, name: str) -> ToolConfig | None:
        return self._require_tool(name).get_configuration()

    def validate_configuration(self, name: str) -> ValidationResult:
        return self._require_tool(name).validate_configuration()

    def validate_configurations(self, names: Sequence[str]) -> dict[str, ValidationResult]:
        return {name: self.validate_configuration(name) for name in names}

    # ── Execution ─────────────────────────────────────────────────

    def is_analysis_running(self) -> bool:
        return self._running

    def run_single(self, name: str, request: AnalysisRequest) -> AnalysisResult:
        tool = self._require_tool(name)
        if not tool.is_available():
            raise ToolUnavailableError(name)

        self._running = True
        self._cancel_requested.clear()
        try:
            logger.info("Running %s ...", name, extra={"tool": name})
            return tool.execute(request)
        finally:
            self._running = False

    def run_batch(self, names: Sequence[str], request: AnalysisRequest) -> list[AnalysisResult]:
        """
        Run ``names`` one after another, results in the same order.

        Unknown names fail the whole call before anything runs. Unavailable
        tools are skipped; a tool that blows up becomes a failed result.
        """
        self._validate_names(names)
        self._cancel_requested.clear()
        return self._execute_batch(names, request)

    def run_batch_async(
        self,
        names: Sequence[str],
        request: AnalysisRequest,
        progress_callback: BatchProgressCallback | None = None,
        completion_callback: CompletionCallback | None = None,
    ) -> Future[list[AnalysisResult]]:
        """
        Run the batch on a background worker and return immediately.

        Callbacks are invoked from worker threads. ``completion_callback``
        fires exactly once, with ``[]`` when the batch itself failed (the
        returned future then carries the exception).
        """
        names = list(names)
        self._cancel_requested.clear()

        def task() -> list[AnalysisResult]:
            try:
                self._validate_names(names)
                results = self._execute_batch(names, request, progress_callback)
            except Exception:
                logger.exception("Batch analysis failed")
                if completion_callback:
                    completion_callback([])
                raise
            if completion_callback:
                completion_callback(results)
            return results

        return self._get_executor().submit(task)

    def cancel(self) -> bool:
        """Best-effort stop: flag checked between tools plus each running tool's own cancel."""
        self._cancel_requested.set()
        with self._lock:
            tools = list(self._tools.items())
        for name, tool in tools:
            if tool.is_analysis_running():
                logger.info("Cancelling %s", name, extra={"tool": name})
                tool.cancel_analysis()
        return True

    def _validate_names(self, names: Sequence[str]) -> None:
        if not names:
            raise InvalidArgumentError("At least one tool name must be specified")
        for name in names:
            if self.get_tool(name) is None:
                raise InvalidArgumentError(f"Tool not found: {name}")

    def _execute_batch(
        self,
        names: Sequence[str],
        request: AnalysisRequest,
        progress_callback: BatchProgressCallback | None = None,
    ) -> list[AnalysisResult]:
        results: list[AnalysisResult] = []
        self._running = True
        try:
            for name in names:
                if self._cancel_requested.is_set():
                    logger.info("Batch cancelled before %s", name, extra={"tool": name})
                    break

                tool = self.get_tool(name)
                if tool is None or not tool.is_available():
                    logger.info("Skipping unavailable tool %s", name, extra={"tool": name})
                    continue

                tool_request = replace(request, output_file=tool_output_path(request.output_file, name))
                results.append(self._run_tool(name, tool, tool_request, progress_callback))
        finally:
            self._running = False
        return results

    def _run_tool(
        self,
        name: str,
        tool: AnalysisTool,
        request: AnalysisRequest,
        progress_callback: BatchProgressCallback | None,
    ) -> AnalysisResult:
        try:
            validation = validate_for_request(tool, request)
            for warning in validation.warnings:
                logger.warning("%s", warning, extra={"tool": name})
            if not validation.is_valid:
                return AnalysisResult.failure(name, "Invalid configuration: " + "; ".join(validation.errors))

            logger.info("Running %s ...", name, extra={"tool": name})
            if progress_callback is None:
                result = tool.execute(request)
            else:
                future = tool.execute_async(request, lambda progress: progress_callback(name, progress))
                result = future.result()
        except Exception as e:
            logger.exception("Tool %s failed", name, extra={"tool": name})
            return AnalysisResult.failure(name, f"Tool execution failed: {str(e) or type(e).__name__}")

        if not result.success and not result.error_message:
            result.error_message = UNKNOWN_FAILURE
        return result

    def _get_executor(self) -> ThreadPoolExecutor:
        with self._lock:
            if self._executor is None:
                self._executor = ThreadPoolExecutor(max_workers=self._max_workers, thread_name_prefix="analysis")
            return self._executor

    def shutdown(self, wait: bool = True) -> None:
        """Stop the batch worker pool and every registered tool's own workers."""
        with self._lock:
            executor, self._executor = self._executor, None
            tools = list(self._tools.values())
        if executor is not None:
            executor.shutdown(wait=wait)
        for tool in tools:
            tool.shutdown(wait=wait)

    # ── Results ───────────────────────────────────────────────────

    def aggregate(self, results: Sequence[AnalysisResult]) -> AnalysisResult:
        return reporting.aggregate_results(results)

    def statistics(self, results: Sequence[AnalysisResult], top_n: int | None = None) -> AnalysisStatistics:
        return reporting.compute_statistics(results, top_n if top_n is not None else settings.TOP_FILES_LIMIT)

    def compare(self, baseline: Sequence[AnalysisResult], current: Sequence[AnalysisResult]) -> ComparisonReport:
        return reporting.compare_results(baseline, current)

    def save_result(self, result: AnalysisResult, path: str | Path) -> Path:
        return ResultStore.save_result(result, path)

    def save_results(self, results: Sequence[AnalysisResult], path: str | Path) -> Path:
        return ResultStore.save_results(results, path)

    def load_results(self, path: str | Path) -> list[AnalysisResult]:
        return ResultStore.load_results(path)

    def load_result(self, path: str | Path) -> AnalysisResult:
        return ResultStore.load_result(path)
