#!/usr/bin/env python3
"""Fail a CI step when a saved analysis report is over budget.

    python scripts/quality_gate.py reports/results.json --fail-on error --max-issues 0
"""
import argparse
import sys

from analysis_engine.core.errors import ResultStoreError
from analysis_engine.domain.models import Severity
from analysis_engine.services.reporting import aggregate_results
from analysis_engine.services.result_store import ResultStore


def main(argv=None):
    ap = argparse.ArgumentParser()
    ap.add_argument("report", help="Result document or list written by the orchestrator")
    ap.add_argument("--fail-on", default="error", choices=[str(s) for s in Severity])
    ap.add_argument("--max-issues", type=int, default=0)
    ap.add_argument("--allow-tool-failures", action="store_true")
    args = ap.parse_args(argv)

    try:
        merged = aggregate_results(ResultStore.load_results(args.report))
    except ResultStoreError as e:
        print(f"[gate] cannot read report: {e}")
        return 2

    blocking = merged.issues_at_least(Severity.from_string(args.fail_on))

    print(f"[gate] issues={merged.total_issue_count} files={merged.files_analyzed}")
    print(f"[gate] at_least_{args.fail_on}={len(blocking)} (max {args.max_issues})")
    if not merged.success:
        print(f"[gate] tool failures: {merged.error_message}")

    failed = len(blocking) > args.max_issues or (not merged.success and not args.allow_tool_failures)
    if failed:
        print("[gate] FAILED")
        return 1
    print("[gate] PASSED")
    return 0


if __name__ == "__main__":
    sys.exit(main())
