from __future__ import annotations

import json
import re
from pathlib import Path
from typing import cast

from pydantic import Field

from analysis_engine.core.util import to_relative_path
from analysis_engine.domain.models import AnalysisRequest, Category, Issue, Severity, ValidationResult, issue_id

from .base import ToolConfig
from .external import ExternalTool
from .registry import register_tool

_RULE_CODE_RE = re.compile(r"^[A-Z]+[0-9]*$")
_TARGET_VERSION_RE = re.compile(r"^py3\d{1,2}$")

# Rule families by letter prefix of the code (E501 → "E")
_FAMILIES: dict[str, tuple[Severity, Category]] = {
    "E": (Severity.INFO, Category.STYLE),
    "W": (Severity.INFO, Category.STYLE),
    "I": (Severity.INFO, Category.STYLE),
    "D": (Severity.INFO, Category.STYLE),
    "N": (Severity.INFO, Category.STYLE),
    "Q": (Severity.INFO, Category.STYLE),
    "F": (Severity.WARNING, Category.BUG),
    "B": (Severity.WARNING, Category.BUG),
    "PLE": (Severity.ERROR, Category.BUG),
    "PLW": (Severity.WARNING, Category.BUG),
    "PLR": (Severity.INFO, Category.MAINTAINABILITY),
    "PLC": (Severity.INFO, Category.STYLE),
    "S": (Severity.WARNING, Category.SECURITY),
    "PERF": (Severity.INFO, Category.PERFORMANCE),
    "C": (Severity.INFO, Category.PERFORMANCE),
    "UP": (Severity.INFO, Category.MODERNIZATION),
    "PTH": (Severity.INFO, Category.MODERNIZATION),
    "FURB": (Severity.INFO, Category.MODERNIZATION),
    "FA": (Severity.INFO, Category.MODERNIZATION),
    "SIM": (Severity.INFO, Category.MAINTAINABILITY),
    "RET": (Severity.INFO, Category.MAINTAINABILITY),
    "ERA": (Severity.INFO, Category.MAINTAINABILITY),
}

# Code prefixes that are more specific than their family
_OVERRIDES: tuple[tuple[str, tuple[Severity, Category]], ...] = (
    ("E9", (Severity.ERROR, Category.BUG)),
    ("F8", (Severity.ERROR, Category.BUG)),
    ("C90", (Severity.WARNING, Category.MAINTAINABILITY)),
)


def classify_rule(code: str) -> tuple[Severity, Category]:
    for prefix, mapping in _OVERRIDES:
        if code.startswith(prefix):
            return mapping
    letters = re.match(r"^[A-Z]+", code)
    if letters and letters.group(0) in _FAMILIES:
        return _FAMILIES[letters.group(0)]
    return Severity.WARNING, Category.STYLE


class RuffConfig(ToolConfig):
    tool_name: str = "ruff"
    select: list[str] = Field(default_factory=list)
    extend_select: list[str] = Field(default_factory=list)
    ignore: list[str] = Field(default_factory=list)
    line_length: int | None = None
    target_version: str | None = None
    preview: bool = False
    extend_exclude: list[str] = Field(default_factory=list)

    def display_name(self) -> str:
        return "Ruff"

    def validate_config(self) -> ValidationResult:
        result = super().validate_config()

        if self.line_length is not None and not 1 <= self.line_length <= 320:
            result.add_error(f"Line length must be between 1 and 320: {self.line_length}")

        if self.target_version and not _TARGET_VERSION_RE.match(self.target_version):
            result.add_error(f"Unknown target version: {self.target_version}")

        for code in [*self.select, *self.extend_select, *self.ignore]:
            if not _RULE_CODE_RE.match(code):
                result.add_warning(f"Suspicious rule selector: {code}")

        overlap = sorted(set(self.select) & set(self.ignore))
        if overlap:
            result.add_warning(f"Rules both selected and ignored: {', '.join(overlap)}")

        return result


@register_tool("ruff")
class RuffTool(ExternalTool):
    tool_id = "ruff"
    executable = "ruff"
    executable_setting = "RUFF_BIN"
    config_class = RuffConfig

    def description(self) -> str:
        return "Ruff: fast Python linter covering pyflakes, pycodestyle, bugbear and more."

    def supported_extensions(self) -> list[str]:
        return [".py", ".pyi"]

    def help_text(self) -> str:
        return (
            "Ruff options:\n"
            "- select / extend_select: rule codes or prefixes to enable (e.g. E, F, B)\n"
            "- ignore: rule codes to disable\n"
            "- line_length: maximum line length (1-320)\n"
            "- target_version: minimum Python version, e.g. py311\n"
            "- preview: enable preview rules\n"
            "- extend_exclude: extra glob patterns to skip\n"
            "Include paths and definitions do not apply to Python sources and are ignored."
        )

    def build_command_line(self, request: AnalysisRequest) -> list[str]:
        config, source, _ = self._effective(request)
        config = cast(RuffConfig, config)

        args = [self.executable_path() or self.executable, "check", source, "--output-format", "json", "--no-cache"]
        if config.select:
            args += ["--select", ",".join(config.select)]
        if config.extend_select:
            args += ["--extend-select", ",".join(config.extend_select)]
        if config.ignore:
            args += ["--ignore", ",".join(config.ignore)]
        if config.line_length is not None:
            args += ["--line-length", str(config.line_length)]
        if config.target_version:
            args += ["--target-version", config.target_version]
        if config.preview:
            args.append("--preview")
        if config.extend_exclude:
            args += ["--extend-exclude", ",".join(config.extend_exclude)]

        args += [str(a) for a in config.custom_options.get("extra_args", [])]
        args += [str(a) for a in request.options_for(self.tool_id).get("extra_args", [])]
        return args

    def parse_output(self, text: str, root: Path | None) -> tuple[list[Issue], int | None]:
        data = json.loads(text or "[]")
        if not isinstance(data, list):
            raise ValueError("expected a JSON array of diagnostics")

        out: list[Issue] = []
        for it in data:
            loc = it.get("location") or {}
            file_path = to_relative_path(it.get("filename") or "", root)
            line = int(loc.get("row") or 0)
            column = int(loc.get("column") or 0)
            message = it.get("message") or "Ruff finding"

            # Syntax errors come without a rule code
            code = it.get("code") or "syntax-error"
            if code == "syntax-error":
                severity, category = Severity.ERROR, Category.BUG
            else:
                severity, category = classify_rule(code)

            fix = it.get("fix") or {}
            out.append(
                Issue(
                    id=issue_id(self.tool_id, file_path, line, code, message),
                    message=message,
                    file_path=file_path,
                    line_number=line,
                    column_number=column,
                    severity=severity,
                    category=category,
                    rule_id=code,
                    tool_name=self.tool_id,
                    fix_suggestion=fix.get("message") or None,
                )
            )
        return out, None
