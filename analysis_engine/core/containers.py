from __future__ import annotations

from typing import Iterable

# Importing the adapters registers them with the process-wide registry
from analysis_engine.tools import bandit as _bandit  # noqa: F401
from analysis_engine.tools import ruff as _ruff  # noqa: F401
from analysis_engine.services.orchestrator import AnalysisOrchestrator
from analysis_engine.tools.registry import tool_registry

BUILTIN_TOOLS = ("ruff", "bandit")

_orchestrator: AnalysisOrchestrator | None = None


def build_default_orchestrator() -> AnalysisOrchestrator:
    """Orchestrator with every built-in tool, each holding its default configuration."""
    return build_orchestrator_with_tools(BUILTIN_TOOLS)


def build_orchestrator_with_tools(names: Iterable[str]) -> AnalysisOrchestrator:
    """Orchestrator with the named built-in tools. Unknown names are ignored."""
    orchestrator = AnalysisOrchestrator.from_registry(
        [n for n in names if n in BUILTIN_TOOLS],
        tool_registry,
    )
    for name in orchestrator.list_registered():
        tool = orchestrator.get_tool(name)
        tool.set_configuration(tool.create_default_config())
    return orchestrator


def get_orchestrator() -> AnalysisOrchestrator:
    """Shared orchestrator used by the HTTP API (built on first use)."""
    global _orchestrator
    if _orchestrator is None:
        _orchestrator = build_default_orchestrator()
    return _orchestrator
