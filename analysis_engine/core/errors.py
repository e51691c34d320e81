"""Exceptions raised by the analysis engine.

Only programmer errors are raised. A tool that fails at runtime (missing
binary, non-zero exit, unparsable output) is reported inside the returned
``AnalysisResult`` instead.
"""

from __future__ import annotations


class AnalysisEngineError(Exception):
    """Base class for all engine errors."""


class ToolNotFoundError(AnalysisEngineError, LookupError):
    def __init__(self, tool_name: str):
        super().__init__(f"Tool not found: {tool_name}")
        self.tool_name = tool_name


class ToolUnavailableError(AnalysisEngineError, RuntimeError):
    def __init__(self, tool_name: str):
        super().__init__(f"Tool not available: {tool_name}")
        self.tool_name = tool_name


class InvalidArgumentError(AnalysisEngineError, ValueError):
    pass


class InvalidConfigTypeError(AnalysisEngineError, TypeError):
    def __init__(self, tool_name: str, expected: type, got: object):
        super().__init__(
            f"Invalid configuration type for {tool_name}: "
            f"expected {expected.__name__}, got {type(got).__name__}"
        )
        self.tool_name = tool_name


class ConfigurationMissingError(AnalysisEngineError, RuntimeError):
    def __init__(self, tool_name: str):
        super().__init__(f"Tool is not configured: {tool_name}")
        self.tool_name = tool_name


class ResultStoreError(AnalysisEngineError, OSError):
    pass
