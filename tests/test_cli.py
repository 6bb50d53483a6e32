from __future__ import annotations

from pathlib import Path

import pytest

from visual_judge import cli
from visual_judge.metrics.report import MetricsReport


def _fake_run_metrics(calls: list[dict], fail_runs: int):
    def _run(spec, **kwargs):
        calls.append({"spec": spec, **kwargs})
        return MetricsReport(spec_id=spec, browser=kwargs["browser"], requested_runs=kwargs["runs"], fail_runs=fail_runs)

    return _run


def test_defaults(monkeypatch: pytest.MonkeyPatch) -> None:
    calls: list[dict] = []
    monkeypatch.setattr(cli, "run_metrics", _fake_run_metrics(calls, fail_runs=0))
    assert cli.main(["--spec", "scenarios/test_box_visual_ai.py"]) == 0
    call = calls[0]
    assert call["runs"] == 20
    assert call["browser"] == "chromium"
    assert call["grep"] is None
    assert call["delay_ms"] == 0
    assert call["abort_on_fails"] is None
    assert call["out_dir"] == Path("test-results/metrics")


def test_flags_and_failing_exit_code(monkeypatch: pytest.MonkeyPatch) -> None:
    calls: list[dict] = []
    monkeypatch.setattr(cli, "run_metrics", _fake_run_metrics(calls, fail_runs=2))
    code = cli.main(
        [
            "--spec",
            "s.py",
            "--runs",
            "5",
            "--browser",
            "webkit",
            "--grep",
            "rotate",
            "--delay",
            "100",
            "--abortOnFails",
            "2",
        ]
    )
    assert code == 1
    assert calls[0]["runs"] == 5
    assert calls[0]["browser"] == "webkit"
    assert calls[0]["abort_on_fails"] == 2


def test_missing_spec_is_usage_error() -> None:
    with pytest.raises(SystemExit) as excinfo:
        cli.main([])
    assert excinfo.value.code == 2


def test_unknown_browser_rejected() -> None:
    with pytest.raises(SystemExit):
        cli.main(["--spec", "s.py", "--browser", "safari"])
