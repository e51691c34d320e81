"""Process-wide registry of tool factories.

Adapters register themselves at import time::

    @register_tool("ruff")
    class RuffTool(ExternalTool):
        ...

    tool = tool_registry.create("ruff")     # new instance, or None
    names = tool_registry.list()            # ["bandit", "ruff"]

The registry only knows which tool kinds exist. Whether a tool's program is
actually installed is the adapter's own ``is_available()``.
"""

from __future__ import annotations

import logging
import threading
from typing import Callable, TypeVar

from analysis_engine.tools.base import AnalysisTool

logger = logging.getLogger(__name__)

ToolFactory = Callable[[], AnalysisTool]
T = TypeVar("T", bound=type)


class ToolRegistry:
    """Name → factory table."""

    def __init__(self) -> None:
        self._factories: dict[str, ToolFactory] = {}
        self._lock = threading.Lock()

    def register(self, name: str, factory: ToolFactory) -> None:
        if not name:
            raise ValueError("Tool name cannot be empty")
        if not callable(factory):
            raise ValueError(f"Tool factory for '{name}' must be callable")
        with self._lock:
            self._factories[name] = factory

    def create(self, name: str) -> AnalysisTool | None:
        with self._lock:
            factory = self._factories.get(name)
        if factory is None:
            return None
        try:
            return factory()
        except Exception:
            logger.exception("Failed to create tool %s", name, extra={"tool": name})
            return None

    def list(self) -> list[str]:
        """All registered tool names."""
        with self._lock:
            return sorted(self._factories)

    def is_registered(self, name: str) -> bool:
        with self._lock:
            return name in self._factories

    def clear(self) -> None:
        """Drop every registration (test isolation)."""
        with self._lock:
            self._factories.clear()


tool_registry = ToolRegistry()


def register_tool(name: str, registry: ToolRegistry | None = None) -> Callable[[T], T]:
    """Class decorator registering the class itself as the factory for ``name``."""

    def decorator(cls: T) -> T:
        (registry or tool_registry).register(name, cls)
        return cls

    return decorator
