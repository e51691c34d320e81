from __future__ import annotations

import uuid
from collections import Counter
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from enum import Enum, IntEnum
from hashlib import sha1
from typing import Any

TIMESTAMP_FORMAT = "%Y-%m-%dT%H:%M:%SZ"

# Message for a failed result that did not say why
UNKNOWN_FAILURE = "Tool execution failed"


class Severity(IntEnum):
    """Issue severity; the integer value gives the ordering."""

    INFO = 0
    WARNING = 1
    ERROR = 2
    CRITICAL = 3

    def __str__(self) -> str:
        return self.name.lower()

    @classmethod
    def from_string(cls, value: str | None) -> Severity:
        try:
            return cls[(value or "").strip().upper()]
        except KeyError:
            return cls.WARNING


class Category(str, Enum):
    STYLE = "style"
    PERFORMANCE = "performance"
    SECURITY = "security"
    BUG = "bug"
    PORTABILITY = "portability"
    MODERNIZATION = "modernization"
    MAINTAINABILITY = "maintainability"

    def __str__(self) -> str:
        return self.value

    @classmethod
    def from_string(cls, value: str | None) -> Category:
        try:
            return cls((value or "").strip().lower())
        except ValueError:
            return cls.STYLE


def issue_id(tool: str, file_path: str, line: int, rule_id: str, message: str) -> str:
    base = f"{tool}|{file_path}|{line}|{rule_id}|{message}"
    return sha1(base.encode("utf-8")).hexdigest()


def new_analysis_id() -> str:
    return f"analysis_{uuid.uuid4().hex}"


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def format_timestamp(ts: datetime) -> str:
    if ts.tzinfo is not None:
        ts = ts.astimezone(timezone.utc)
    return ts.strftime(TIMESTAMP_FORMAT)


def parse_timestamp(value: str | None) -> datetime:
    if not value:
        return utc_now()
    try:
        return datetime.strptime(value, TIMESTAMP_FORMAT).replace(tzinfo=timezone.utc)
    except ValueError:
        ts = datetime.fromisoformat(value)
        return ts if ts.tzinfo else ts.replace(tzinfo=timezone.utc)


@dataclass(frozen=True)
class Issue:
    id: str
    message: str
    file_path: str
    line_number: int = 0
    column_number: int = 0
    severity: Severity = Severity.WARNING
    category: Category = Category.STYLE
    rule_id: str = ""
    tool_name: str = ""
    fix_suggestion: str | None = None

    @property
    def dedup_key(self) -> tuple[str, int, str]:
        return (self.file_path, self.line_number, self.rule_id)

    def to_dict(self) -> dict[str, Any]:
        d: dict[str, Any] = {
            "id": self.id,
            "message": self.message,
            "file_path": self.file_path,
            "line_number": self.line_number,
            "column_number": self.column_number,
            "severity": str(self.severity),
            "category": str(self.category),
            "rule_id": self.rule_id,
            "tool_name": self.tool_name,
        }
        if self.fix_suggestion is not None:
            d["fix_suggestion"] = self.fix_suggestion
        return d

    @classmethod
    def from_dict(cls, d: dict[str, Any]) -> Issue:
        return cls(
            id=d.get("id") or "",
            message=d.get("message") or "",
            file_path=d.get("file_path") or "",
            line_number=int(d.get("line_number") or 0),
            column_number=int(d.get("column_number") or 0),
            severity=Severity.from_string(d.get("severity", "warning")),
            category=Category.from_string(d.get("category", "style")),
            rule_id=d.get("rule_id") or "",
            tool_name=d.get("tool_name") or "",
            fix_suggestion=d.get("fix_suggestion"),
        )


@dataclass
class AnalysisResult:
    tool_name: str
    analysis_id: str = field(default_factory=new_analysis_id)
    timestamp: datetime = field(default_factory=utc_now)
    issues: list[Issue] = field(default_factory=list)
    files_analyzed: int = 0
    execution_time: timedelta = field(default_factory=timedelta)
    success: bool = True
    error_message: str = ""

    @classmethod
    def failure(cls, tool_name: str, message: str, **kwargs: Any) -> AnalysisResult:
        if not message:
            raise ValueError("A failed result needs an error message")
        return cls(tool_name=tool_name, success=False, error_message=message, **kwargs)

    # Counts are derived from ``issues`` on every access so they never go stale.
    @property
    def issue_counts_by_severity(self) -> dict[Severity, int]:
        return dict(Counter(i.severity for i in self.issues))

    @property
    def issue_counts_by_category(self) -> dict[Category, int]:
        return dict(Counter(i.category for i in self.issues))

    @property
    def total_issue_count(self) -> int:
        return len(self.issues)

    @property
    def execution_time_ms(self) -> int:
        return int(self.execution_time / timedelta(milliseconds=1))

    def add_issue(self, issue: Issue) -> None:
        self.issues.append(issue)

    def issues_at_least(self, min_severity: Severity) -> list[Issue]:
        return [i for i in self.issues if i.severity >= min_severity]

    def issues_in_category(self, category: Category) -> list[Issue]:
        return [i for i in self.issues if i.category == category]

    def to_dict(self) -> dict[str, Any]:
        return {
            "tool_name": self.tool_name,
            "analysis_id": self.analysis_id,
            "timestamp": format_timestamp(self.timestamp),
            "files_analyzed": self.files_analyzed,
            "execution_time_ms": self.execution_time_ms,
            "success": self.success,
            "error_message": self.error_message,
            "issues": [i.to_dict() for i in self.issues],
            "issue_counts_by_severity": {str(k): v for k, v in self.issue_counts_by_severity.items()},
            "issue_counts_by_category": {str(k): v for k, v in self.issue_counts_by_category.items()},
        }

    @classmethod
    def from_dict(cls, d: dict[str, Any]) -> AnalysisResult:
        # The stored count maps are derived data; they are rebuilt from the issues.
        success = bool(d.get("success", True))
        return cls(
            tool_name=d.get("tool_name") or "",
            analysis_id=d.get("analysis_id") or "",
            timestamp=parse_timestamp(d.get("timestamp")),
            issues=[Issue.from_dict(i) for i in d.get("issues") or []],
            files_analyzed=int(d.get("files_analyzed") or 0),
            execution_time=timedelta(milliseconds=int(d.get("execution_time_ms") or 0)),
            success=success,
            error_message=d.get("error_message") or ("" if success else UNKNOWN_FAILURE),
        )


@dataclass(frozen=True)
class AnalysisRequest:
    source_path: str
    output_file: str = ""
    include_paths: tuple[str, ...] = ()
    definitions: tuple[str, ...] = ()
    tool_specific_options: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        return {
            "source_path": self.source_path,
            "output_file": self.output_file,
            "include_paths": list(self.include_paths),
            "definitions": list(self.definitions),
            "tool_specific_options": dict(self.tool_specific_options),
        }

    @classmethod
    def from_dict(cls, d: dict[str, Any]) -> AnalysisRequest:
        return cls(
            source_path=d.get("source_path") or "",
            output_file=d.get("output_file") or "",
            include_paths=tuple(d.get("include_paths") or ()),
            definitions=tuple(d.get("definitions") or ()),
            tool_specific_options=dict(d.get("tool_specific_options") or {}),
        )

    def options_for(self, tool_name: str) -> dict[str, Any]:
        """Options nested under the tool's own name in the option bag."""
        opts = self.tool_specific_options.get(tool_name)
        return dict(opts) if isinstance(opts, dict) else {}


@dataclass
class Progress:
    total_files: int = 0
    processed_files: int = 0
    current_file: str = ""
    status_message: str = ""

    @property
    def ratio(self) -> float:
        if self.total_files <= 0:
            return 0.0
        return min(1.0, self.processed_files / self.total_files)


@dataclass
class ValidationResult:
    errors: list[str] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)

    @property
    def is_valid(self) -> bool:
        return not self.errors

    @property
    def is_clean(self) -> bool:
        return not self.errors and not self.warnings

    def add_error(self, error: str) -> None:
        self.errors.append(error)

    def add_warning(self, warning: str) -> None:
        self.warnings.append(warning)

    def merge(self, other: ValidationResult) -> None:
        self.errors.extend(other.errors)
        self.warnings.extend(other.warnings)

    def to_dict(self) -> dict[str, Any]:
        return {"is_valid": self.is_valid, "errors": list(self.errors), "warnings": list(self.warnings)}


@dataclass
class AnalysisStatistics:
    total_issues: int = 0
    total_files_analyzed: int = 0
    total_execution_time: timedelta = field(default_factory=timedelta)
    issues_per_tool: dict[str, int] = field(default_factory=dict)
    issues_by_severity: dict[Severity, int] = field(default_factory=dict)
    issues_by_category: dict[Category, int] = field(default_factory=dict)
    most_problematic_files: list[str] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "total_issues": self.total_issues,
            "total_files_analyzed": self.total_files_analyzed,
            "total_execution_time_ms": int(self.total_execution_time / timedelta(milliseconds=1)),
            "issues_per_tool": dict(self.issues_per_tool),
            "issues_by_severity": {str(k): v for k, v in self.issues_by_severity.items()},
            "issues_by_category": {str(k): v for k, v in self.issues_by_category.items()},
            "most_problematic_files": list(self.most_problematic_files),
        }


@dataclass
class ComparisonReport:
    new_issues: list[Issue] = field(default_factory=list)
    resolved_issues: list[Issue] = field(default_factory=list)
    persistent_issues: list[Issue] = field(default_factory=list)
    severity_deltas: dict[Severity, int] = field(default_factory=dict)
    issue_count_delta: int = 0

    def to_dict(self) -> dict[str, Any]:
        return {
            "new_issues": [i.to_dict() for i in self.new_issues],
            "resolved_issues": [i.to_dict() for i in self.resolved_issues],
            "persistent_issues": [i.to_dict() for i in self.persistent_issues],
            "severity_deltas": {str(k): v for k, v in self.severity_deltas.items()},
            "issue_count_delta": self.issue_count_delta,
        }
