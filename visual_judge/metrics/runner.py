"""Repeated out-of-process scenario runs for flakiness measurement.

Runs are strictly sequential: the scene under test is a single browser
target and cannot serve concurrent automated sessions.
"""

from __future__ import annotations

import os
import subprocess
import sys
import tempfile
import time
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, Protocol, TextIO

from .report import FALLBACK_REASON, MetricsReport, RunRecord, parse_junit_report, tail, write_report

DEFAULT_RUNS = 20
DEFAULT_OUT_DIR = Path("test-results") / "metrics"
FAILURE_SAMPLES = 5


@dataclass(frozen=True)
class ExecutionRequest:
    spec: str
    browser: str
    grep: str | None
    run_index: int


@dataclass(frozen=True)
class ExecutionResult:
    returncode: int
    stdout: str
    report_text: str | None = None


class Executor(Protocol):
    def __call__(self, request: ExecutionRequest) -> ExecutionResult:
        ...


class PytestExecutor:
    """Runs one scenario file in a fresh pytest process with a JUnit report."""

    def __init__(self, *, python: str | None = None, timeout_s: float | None = None) -> None:
        self.python = python or sys.executable
        self.timeout_s = timeout_s

    def command(self, request: ExecutionRequest, report_file: Path) -> list[str]:
        cmd = [
            self.python,
            "-m",
            "pytest",
            request.spec,
            "-q",
            "-p",
            "no:cacheprovider",
            f"--junitxml={report_file}",
        ]
        if request.grep:
            cmd.extend(["-k", request.grep])
        return cmd

    def __call__(self, request: ExecutionRequest) -> ExecutionResult:
        with tempfile.TemporaryDirectory(prefix="visual-judge-run-") as tmp:
            report_file = Path(tmp) / "report.xml"
            env = dict(os.environ)
            env["VISUAL_JUDGE_BROWSER"] = request.browser
            try:
                proc = subprocess.run(
                    self.command(request, report_file),
                    capture_output=True,
                    text=True,
                    env=env,
                    timeout=self.timeout_s,
                    check=False,
                )
            except subprocess.TimeoutExpired as exc:
                stdout = exc.stdout.decode("utf-8", "replace") if isinstance(exc.stdout, bytes) else (exc.stdout or "")
                return ExecutionResult(returncode=124, stdout=f"{stdout}\nRun timeout after {self.timeout_s}s.")
            report_text = report_file.read_text(encoding="utf-8") if report_file.exists() else None
            return ExecutionResult(returncode=proc.returncode, stdout=proc.stdout or "", report_text=report_text)


def run_metrics(
    spec: str,
    *,
    runs: int = DEFAULT_RUNS,
    browser: str = "chromium",
    grep: str | None = None,
    delay_ms: int = 0,
    abort_on_fails: int | None = None,
    executor: Executor | None = None,
    out_dir: Path | None = DEFAULT_OUT_DIR,
    out: TextIO | None = None,
    sleep: Callable[[float], None] = time.sleep,
) -> MetricsReport:
    execute = executor or PytestExecutor()
    stream = out or sys.stdout
    report = MetricsReport(spec_id=spec, browser=browser, requested_runs=runs)
    _print_header(stream, spec, runs, browser, grep, delay_ms, abort_on_fails)

    for run_index in range(1, runs + 1):
        if delay_ms:
            sleep(delay_ms / 1000.0)
        started = time.monotonic()
        result = execute(ExecutionRequest(spec=spec, browser=browser, grep=grep, run_index=run_index))
        duration_ms = int((time.monotonic() - started) * 1000)

        summary = parse_junit_report(result.report_text)
        if summary is None:
            failing = 0 if result.returncode == 0 else 1
            reasons: list[str] = []
        else:
            failing = summary.failing_tests
            reasons = summary.reasons

        if failing == 0:
            report.record_pass(duration_ms)
        else:
            report.record_failure(
                RunRecord(
                    run_index=run_index,
                    duration_ms=duration_ms,
                    failing_test_count=failing,
                    reasoning_summary=reasons or [FALLBACK_REASON],
                    raw_tail=tail(result.stdout),
                )
            )
        status = "PASS" if failing == 0 else "FAIL"
        stream.write(f"Run {run_index:02d}: {status} - {duration_ms} ms (failed tests: {failing})\n")

        if abort_on_fails and report.fail_runs >= abort_on_fails:
            report.aborted = True
            stream.write(f"Abort threshold reached ({abort_on_fails} fails). Stopping early.\n")
            break

    _print_summary(stream, report)
    if out_dir is not None:
        path = write_report(Path(out_dir), report)
        stream.write(f"\nReport: {path}\n")
    return report


def _print_header(
    stream: TextIO,
    spec: str,
    runs: int,
    browser: str,
    grep: str | None,
    delay_ms: int,
    abort_on_fails: int | None,
) -> None:
    stream.write("=== Metrics Runner ===\n")
    stream.write(f"Spec: {spec}\n")
    stream.write(f"Runs: {runs}\n")
    stream.write(f"Browser: {browser}\n")
    stream.write(f"Grep: {grep or '(none)'}\n")
    stream.write(f"Delay per run: {delay_ms} ms\n")
    stream.write(f"Abort threshold: {abort_on_fails or 'none'}\n")
    stream.write("-" * 25 + "\n")


def _print_summary(stream: TextIO, report: MetricsReport) -> None:
    stats = report.stats()
    stream.write("\n=== Summary ===\n")
    rows = [
        ("Spec", report.spec_id),
        ("Browser", report.browser),
        ("Total runs", report.total_runs),
        ("Pass runs", report.pass_runs),
        ("Fail runs", report.fail_runs),
        ("Total time (ms)", stats["total_ms"]),
        ("Avg per run (ms)", f"{stats['avg_ms']:.1f}"),
        ("Min run (ms)", stats["min_ms"]),
        ("Max run (ms)", stats["max_ms"]),
    ]
    for label, value in rows:
        stream.write(f"{label + ':':<19}{value}\n")
    if report.failures:
        stream.write(f"\nFailure samples (up to {FAILURE_SAMPLES}):\n")
        for record in report.failures[:FAILURE_SAMPLES]:
            stream.write(f"  Run {record.run_index}: {record.reasoning}\n")
