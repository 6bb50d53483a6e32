"""Repeated-run flakiness metrics."""

from .report import MetricsReport, RunRecord, parse_junit_report, write_report
from .runner import ExecutionRequest, ExecutionResult, PytestExecutor, run_metrics

__all__ = [
    "ExecutionRequest",
    "ExecutionResult",
    "MetricsReport",
    "PytestExecutor",
    "RunRecord",
    "parse_junit_report",
    "run_metrics",
    "write_report",
]
