"""Metrics report model, JUnit report reading and persistence."""

from __future__ import annotations

import xml.etree.ElementTree as ET
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from ..utils import now_utc_iso, write_json

REPORT_SCHEMA = "visual_judge.metrics"
REPORT_SCHEMA_VERSION = 1
TAIL_CHARS = 600
FALLBACK_REASON = "Failure"


@dataclass(frozen=True)
class RunRecord:
    run_index: int
    duration_ms: int
    failing_test_count: int
    reasoning_summary: list[str]
    raw_tail: str

    @property
    def reasoning(self) -> str:
        return " | ".join(self.reasoning_summary) or FALLBACK_REASON

    def to_dict(self) -> dict[str, Any]:
        return {
            "run": self.run_index,
            "duration_ms": self.duration_ms,
            "failing_tests": self.failing_test_count,
            "reasoning": self.reasoning,
            "reasoning_summary": list(self.reasoning_summary),
            "tail": self.raw_tail,
        }


@dataclass
class MetricsReport:
    spec_id: str
    browser: str
    requested_runs: int
    pass_runs: int = 0
    fail_runs: int = 0
    durations_ms: list[int] = field(default_factory=list)
    failures: list[RunRecord] = field(default_factory=list)
    aborted: bool = False

    @property
    def total_runs(self) -> int:
        return len(self.durations_ms)

    @property
    def exit_code(self) -> int:
        return 1 if self.fail_runs else 0

    def record_pass(self, duration_ms: int) -> None:
        self.durations_ms.append(duration_ms)
        self.pass_runs += 1

    def record_failure(self, record: RunRecord) -> None:
        self.durations_ms.append(record.duration_ms)
        self.fail_runs += 1
        self.failures.append(record)

    def stats(self) -> dict[str, float | int]:
        if not self.durations_ms:
            return {"total_ms": 0, "avg_ms": 0.0, "min_ms": 0, "max_ms": 0}
        total = sum(self.durations_ms)
        return {
            "total_ms": total,
            "avg_ms": round(total / len(self.durations_ms), 1),
            "min_ms": min(self.durations_ms),
            "max_ms": max(self.durations_ms),
        }

    def to_dict(self) -> dict[str, Any]:
        return {
            "schema": REPORT_SCHEMA,
            "schema_version": REPORT_SCHEMA_VERSION,
            "spec": self.spec_id,
            "browser": self.browser,
            "requested_runs": self.requested_runs,
            "total_runs": self.total_runs,
            "pass_runs": self.pass_runs,
            "fail_runs": self.fail_runs,
            "aborted": self.aborted,
            "durations_ms": list(self.durations_ms),
            "stats": self.stats(),
            "failures": [record.to_dict() for record in self.failures],
            "ts": now_utc_iso(),
        }


@dataclass(frozen=True)
class JUnitSummary:
    failing_tests: int
    reasons: list[str]


def parse_junit_report(text: str | None) -> JUnitSummary | None:
    """Count failed/errored testcases and collect first-line messages.

    Returns None when there is no parseable report.
    """
    if not text or not text.strip():
        return None
    try:
        root = ET.fromstring(text)
    except ET.ParseError:
        return None
    if root.tag not in {"testsuites", "testsuite"}:
        return None
    failing = 0
    reasons: list[str] = []
    for case in root.iter("testcase"):
        problem = case.find("failure")
        if problem is None:
            problem = case.find("error")
        if problem is None:
            continue
        failing += 1
        reasons.append(_first_line(problem.get("message") or problem.text or "") or FALLBACK_REASON)
    return JUnitSummary(failing_tests=failing, reasons=reasons)


def tail(text: str | None, limit: int = TAIL_CHARS) -> str:
    if not text:
        return ""
    return text[-limit:]


def report_path(out_dir: Path, spec: str) -> Path:
    return out_dir / f"metrics-{Path(spec).name}.json"


def write_report(out_dir: Path, report: MetricsReport) -> Path:
    path = report_path(out_dir, report.spec_id)
    write_json(path, report.to_dict())
    return path


def _first_line(message: str) -> str:
    for line in str(message).splitlines():
        if line.strip():
            return line.strip()
    return ""
