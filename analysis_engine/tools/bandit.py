from __future__ import annotations

import json
import logging
import re
from pathlib import Path
from typing import cast

from pydantic import Field

from analysis_engine.core.util import CmdResult, to_relative_path
from analysis_engine.domain.models import AnalysisRequest, Category, Issue, Severity, ValidationResult, issue_id

from .base import ToolConfig
from .external import ExternalTool
from .registry import register_tool

logger = logging.getLogger(__name__)

LEVELS = ("all", "low", "medium", "high")
_TEST_ID_RE = re.compile(r"^B\d{3}$")

_SEVERITY_MAP = {
    "LOW": Severity.WARNING,
    "MEDIUM": Severity.ERROR,
    "HIGH": Severity.CRITICAL,
}


class BanditConfig(ToolConfig):
    tool_name: str = "bandit"
    severity_level: str = "all"
    confidence_level: str = "all"
    skips: list[str] = Field(default_factory=list)
    tests: list[str] = Field(default_factory=list)
    exclude: list[str] = Field(default_factory=list)

    def display_name(self) -> str:
        return "Bandit"

    def validate_config(self) -> ValidationResult:
        result = super().validate_config()

        if self.severity_level not in LEVELS:
            result.add_error(f"Invalid severity level: {self.severity_level}")
        if self.confidence_level not in LEVELS:
            result.add_error(f"Invalid confidence level: {self.confidence_level}")

        for test in [*self.skips, *self.tests]:
            if not _TEST_ID_RE.match(test):
                result.add_warning(f"Unknown bandit test id: {test}")

        both = sorted(set(self.skips) & set(self.tests))
        if both:
            result.add_warning(f"Tests both selected and skipped: {', '.join(both)}")

        return result


@register_tool("bandit")
class BanditTool(ExternalTool):
    tool_id = "bandit"
    executable = "bandit"
    executable_setting = "BANDIT_BIN"
    config_class = BanditConfig

    def description(self) -> str:
        return "Bandit: finds common security issues in Python code."

    def supported_extensions(self) -> list[str]:
        return [".py"]

    def help_text(self) -> str:
        return (
            "Bandit options:\n"
            "- severity_level / confidence_level: all, low, medium or high\n"
            "- skips: test ids to skip (e.g. B101)\n"
            "- tests: only run these test ids\n"
            "- exclude: paths to exclude from the scan\n"
            "Include paths and definitions do not apply to Python sources and are ignored."
        )

    def build_command_line(self, request: AnalysisRequest) -> list[str]:
        config, source, output = self._effective(request)
        config = cast(BanditConfig, config)

        args = [self.executable_path() or self.executable, "-r", source, "-f", "json"]
        if output:
            # bandit writes the report itself; stdout is then mostly empty
            args += ["-o", str(Path(output).resolve())]
        if config.severity_level != "all":
            args += ["--severity-level", config.severity_level]
        if config.confidence_level != "all":
            args += ["--confidence-level", config.confidence_level]
        if config.skips:
            args += ["--skip", ",".join(config.skips)]
        if config.tests:
            args += ["--tests", ",".join(config.tests)]
        if config.exclude:
            args += ["--exclude", ",".join(config.exclude)]

        args += [str(a) for a in config.custom_options.get("extra_args", [])]
        args += [str(a) for a in request.options_for(self.tool_id).get("extra_args", [])]
        return args

    def _report_text(self, r: CmdResult, request: AnalysisRequest, config: ToolConfig) -> str:
        output = request.output_file or config.output_file
        if output and Path(output).exists():
            return Path(output).read_text(encoding="utf-8")
        return r.stdout

    def parse_output(self, text: str, root: Path | None) -> tuple[list[Issue], int | None]:
        data = json.loads(text or "{}")

        for err in data.get("errors") or []:
            logger.warning(
                "bandit could not scan %s: %s",
                err.get("filename"),
                err.get("reason"),
                extra={"tool": self.tool_id},
            )

        out: list[Issue] = []
        for r in data.get("results") or []:
            file_path = to_relative_path(str(r.get("filename") or ""), root)
            line = int(r.get("line_number") or 0)
            # bandit columns are 0-based
            column = int(r["col_offset"]) + 1 if r.get("col_offset") is not None else 0
            message = r.get("issue_text") or "Bandit finding"
            rule = str(r.get("test_id") or r.get("test_name") or "")
            more_info = r.get("more_info")

            out.append(
                Issue(
                    id=issue_id(self.tool_id, file_path, line, rule, message),
                    message=message,
                    file_path=file_path,
                    line_number=line,
                    column_number=column,
                    severity=_SEVERITY_MAP.get((r.get("issue_severity") or "").upper(), Severity.WARNING),
                    category=Category.SECURITY,
                    rule_id=rule,
                    tool_name=self.tool_id,
                    fix_suggestion=f"See {more_info}" if more_info else None,
                )
            )

        metrics = data.get("metrics") or {}
        files = [k for k in metrics if k != "_totals"]
        return out, (len(files) if metrics else None)
