"""Merging, statistics and run-to-run comparison of analysis results.

Issues are considered the same when they share the dedup key
``(file_path, line_number, rule_id)``. Column and message are ignored, so
two tools reporting the same rule id on the same line collapse into one
issue (the first one seen wins).
"""

from __future__ import annotations

from collections import Counter
from typing import Iterable, Sequence

from analysis_engine.domain.models import (
    AnalysisResult,
    AnalysisStatistics,
    ComparisonReport,
    Issue,
    Severity,
)

AGGREGATED_TOOL_NAME = "aggregated"


def deduplicate_issues(issues: Iterable[Issue]) -> list[Issue]:
    seen: set[tuple[str, int, str]] = set()
    unique: list[Issue] = []
    for issue in issues:
        if issue.dedup_key in seen:
            continue
        seen.add(issue.dedup_key)
        unique.append(issue)
    return unique


def aggregate_results(results: Sequence[AnalysisResult]) -> AnalysisResult:
    aggregated = AnalysisResult(tool_name=AGGREGATED_TOOL_NAME, success=True)

    all_issues: list[Issue] = []
    errors: list[str] = []
    for result in results:
        all_issues.extend(result.issues)
        aggregated.files_analyzed += result.files_analyzed
        aggregated.execution_time += result.execution_time
        if not result.success:
            errors.append(f"{result.tool_name}: {result.error_message}")

    if errors:
        aggregated.success = False
        aggregated.error_message = "; ".join(errors)

    # Issues keep their own tool_name for provenance
    aggregated.issues = deduplicate_issues(all_issues)
    return aggregated


def most_problematic_files(results: Sequence[AnalysisResult], max_files: int = 10) -> list[str]:
    counts: Counter[str] = Counter()
    for result in results:
        for issue in result.issues:
            counts[issue.file_path] += 1
    # Counter keeps first-seen order and sorted() is stable, so ties stay in that order
    ranked = sorted(counts.items(), key=lambda kv: kv[1], reverse=True)
    return [path for path, _ in ranked[:max_files]]


def compute_statistics(results: Sequence[AnalysisResult], top_n: int = 10) -> AnalysisStatistics:
    stats = AnalysisStatistics()
    by_severity: Counter[Severity] = Counter()
    by_category: Counter = Counter()

    for result in results:
        stats.total_issues += len(result.issues)
        stats.total_files_analyzed += result.files_analyzed
        stats.total_execution_time += result.execution_time
        stats.issues_per_tool[result.tool_name] = stats.issues_per_tool.get(result.tool_name, 0) + len(result.issues)
        for issue in result.issues:
            by_severity[issue.severity] += 1
            by_category[issue.category] += 1

    stats.issues_by_severity = dict(by_severity)
    stats.issues_by_category = dict(by_category)
    stats.most_problematic_files = most_problematic_files(results, top_n)
    return stats


def compare_results(
    baseline: Sequence[AnalysisResult],
    current: Sequence[AnalysisResult],
) -> ComparisonReport:
    before = aggregate_results(baseline)
    after = aggregate_results(current)

    before_keys = {i.dedup_key for i in before.issues}
    after_keys = {i.dedup_key for i in after.issues}

    report = ComparisonReport(
        new_issues=[i for i in after.issues if i.dedup_key not in before_keys],
        resolved_issues=[i for i in before.issues if i.dedup_key not in after_keys],
        persistent_issues=[i for i in after.issues if i.dedup_key in before_keys],
        issue_count_delta=len(after.issues) - len(before.issues),
    )

    before_counts = before.issue_counts_by_severity
    after_counts = after.issue_counts_by_severity
    report.severity_deltas = {s: after_counts.get(s, 0) - before_counts.get(s, 0) for s in Severity}
    return report

