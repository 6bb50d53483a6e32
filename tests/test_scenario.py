from __future__ import annotations

import asyncio
import json
from pathlib import Path

import pytest

from visual_judge.config import JudgeSettings
from visual_judge.contract import TestContext
from visual_judge.errors import CaptureError, ConfigurationError
from visual_judge.events import EventWriter
from visual_judge.evidence import FramePair, FrameSequence
from visual_judge.gateway import DryRunJudgeGateway
from visual_judge.scenario import ScenarioRunner, run_scenario

CONTEXT = TestContext(
    subject="Blue wireframe box",
    action="'d' pressed",
    expectation="Box shifts right",
    pass_condition="Box ends further right",
)

PASS_HIGH = json.dumps({"status": "PASS", "certainty": 0.95, "reasoning": "box moved right"})
PASS_LOW = json.dumps({"status": "PASS", "certainty": 0.5, "reasoning": "maybe moved"})
FAIL_TEXT = json.dumps({"status": "FAIL", "certainty": 0.9, "reasoning": "box did not move"})


class _Log:
    def __init__(self) -> None:
        self.calls: list[str] = []

    def capture(self, evidence=None):
        async def _capture():
            self.calls.append("capture")
            return evidence or FramePair(b"before", b"after")

        return _capture

    async def reset(self) -> None:
        self.calls.append("reset")


def test_short_circuits_on_first_pass(tmp_path: Path) -> None:
    log = _Log()
    gateway = DryRunJudgeGateway([FAIL_TEXT, PASS_HIGH])
    result = asyncio.run(
        run_scenario(
            "move-right",
            capture=log.capture(),
            context=CONTEXT,
            gateway=gateway,
            threshold=0.85,
            retries=3,
            reset=log.reset,
        )
    )
    assert result.passed
    assert [a.attempt for a in result.attempts] == [1, 2]
    assert log.calls == ["reset", "capture", "reset", "capture"]
    assert len(gateway.requests) == 2
    result.assert_passed()


def test_exhausts_attempts_and_reports_reasoning() -> None:
    log = _Log()
    gateway = DryRunJudgeGateway([PASS_LOW])
    result = asyncio.run(
        run_scenario("move-right", capture=log.capture(), context=CONTEXT, gateway=gateway, threshold=0.85, retries=3)
    )
    assert not result.passed
    assert len(result.attempts) == 4
    assert log.calls.count("capture") == 4
    with pytest.raises(AssertionError, match=r"Low certainty \(0.50 < 0.85\). Reason: maybe moved"):
        result.assert_passed()


def test_zero_retries_means_one_attempt() -> None:
    result = asyncio.run(
        run_scenario(
            "s",
            capture=_Log().capture(),
            context=CONTEXT,
            gateway=DryRunJudgeGateway([FAIL_TEXT]),
            retries=0,
        )
    )
    assert len(result.attempts) == 1
    with pytest.raises(AssertionError, match="AI failed. Reason: box did not move"):
        result.assert_passed()


def test_capture_error_aborts_scenario() -> None:
    gateway = DryRunJudgeGateway()

    async def _broken():
        raise CaptureError("MainBox never became ready")

    with pytest.raises(CaptureError):
        asyncio.run(run_scenario("s", capture=_broken, context=CONTEXT, gateway=gateway))
    assert gateway.requests == []


def test_capture_timeout_is_capture_error() -> None:
    async def _hang():
        await asyncio.sleep(1)
        return FramePair(b"a", b"b")

    with pytest.raises(CaptureError, match="timeout"):
        asyncio.run(
            run_scenario("s", capture=_hang, context=CONTEXT, gateway=DryRunJudgeGateway(), capture_timeout_s=0.01)
        )


def test_configuration_error_from_gateway_aborts() -> None:
    class _Unconfigured:
        name = "stub"

        async def invoke(self, request):
            raise ConfigurationError("GEMINI_API_KEY or GOOGLE_API_KEY not set.")

    with pytest.raises(ConfigurationError):
        asyncio.run(run_scenario("s", capture=_Log().capture(), context=CONTEXT, gateway=_Unconfigured()))


def test_artifacts_and_events_are_written(tmp_path: Path) -> None:
    events = EventWriter(tmp_path / "events.jsonl", "run-1")
    gateway = DryRunJudgeGateway([PASS_HIGH], usage={"prompt": 9, "candidates": 3, "total": 12})
    frames = FrameSequence((b"f0", b"f1", b"f2"))
    result = asyncio.run(
        run_scenario(
            "Frames: move right",
            capture=_Log().capture(frames),
            context=CONTEXT,
            gateway=gateway,
            artifact_dir=tmp_path / "artifacts",
            events=events,
            model="gemini-test",
        )
    )
    attempt_dir = tmp_path / "artifacts" / "frames-move-right" / "attempt-01"
    assert result.attempts[0].artifacts["verdict"] == str(attempt_dir / "verdict.json")
    verdict = json.loads((attempt_dir / "verdict.json").read_text(encoding="utf-8"))
    assert verdict["decision"] == "PASS"
    assert verdict["threshold"] == 0.85
    usage = json.loads((attempt_dir / "token-usage.json").read_text(encoding="utf-8"))
    assert usage == {"prompt": 9, "candidates": 3, "total": 12}
    manifest = json.loads((attempt_dir / "request.json").read_text(encoding="utf-8"))
    assert manifest["evidence_kind"] == "sequence"
    assert manifest["model"] == "gemini-test"
    assert sorted(p.name for p in (attempt_dir / "evidence").iterdir()) == ["frame-0.png", "frame-1.png", "frame-2.png"]

    lines = [json.loads(line) for line in (tmp_path / "events.jsonl").read_text(encoding="utf-8").splitlines()]
    assert all(line["scenario"] == "Frames: move right" for line in lines)
    assert [line.get("attempt") for line in lines] == [None, 1, 1, 1, 1, None]
    assert [line["type"] for line in lines] == [
        "scenario_started",
        "attempt_started",
        "evidence_captured",
        "judge_completed",
        "attempt_finished",
        "scenario_finished",
    ]


def test_runner_uses_settings(tmp_path: Path) -> None:
    settings = JudgeSettings(threshold=0.99, retries=1, artifact_dir=tmp_path, dryrun=True)
    runner = ScenarioRunner(settings, diff="+ const STEP = 1")
    result = asyncio.run(runner.run("dry", capture=_Log().capture(), context=CONTEXT))
    assert result.passed
    assert result.threshold == 0.99
    assert "+ const STEP = 1" in runner.gateway.requests[0].instructions
    assert (tmp_path / "events.jsonl").exists()


def test_runner_without_credential_fails_fast(tmp_path: Path) -> None:
    with pytest.raises(ConfigurationError):
        ScenarioRunner(JudgeSettings(api_key=None, artifact_dir=tmp_path))
