"""Scenario driver: capture, judge and decide, with bounded retries.

Each attempt runs the whole pipeline from scratch (reset, capture, build,
judge, decide) because capture itself can be noisy. The loop stops at the
first PASS decision or after ``1 + retries`` attempts. Capture and
configuration errors abort the scenario; judge-side failures arrive here as
FAIL verdicts and simply consume an attempt.
"""

from __future__ import annotations

import asyncio
import time
import uuid
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Awaitable, Callable

from . import context_builder
from .artifacts import write_attempt_artifacts
from .config import DEFAULT_CAPTURE_TIMEOUT_S, DEFAULT_RETRIES, DEFAULT_THRESHOLD, JudgeSettings
from .context_builder import Intent
from .contract import TestContext
from .decision import ScenarioOutcome, decide
from .diff import git_diff
from .errors import CaptureError
from .events import EventWriter, NullEventWriter
from .evidence import Evidence
from .gateway import JudgeGateway, build_gateway, judge
from .utils import safe_slug

CaptureFn = Callable[[], Awaitable[Evidence]]
ResetFn = Callable[[], Awaitable[Any]]
DiffSource = str | Callable[[], str] | None


@dataclass(frozen=True)
class AttemptRecord:
    attempt: int
    outcome: ScenarioOutcome
    evidence_kind: str
    duration_ms: int
    artifacts: dict[str, str] = field(default_factory=dict)


@dataclass
class ScenarioResult:
    name: str
    threshold: float
    attempts: list[AttemptRecord] = field(default_factory=list)

    @property
    def final(self) -> AttemptRecord | None:
        return self.attempts[-1] if self.attempts else None

    @property
    def passed(self) -> bool:
        final = self.final
        return bool(final and final.outcome.passed)

    def assert_passed(self) -> None:
        final = self.final
        if final is None:
            raise AssertionError(f"Scenario '{self.name}' made no attempts.")
        if not final.outcome.passed:
            raise AssertionError(
                f"{final.outcome.failure_message()} "
                f"(scenario '{self.name}', {len(self.attempts)} attempt(s))"
            )


async def run_scenario(
    name: str,
    *,
    capture: CaptureFn,
    context: TestContext,
    gateway: JudgeGateway,
    threshold: float = DEFAULT_THRESHOLD,
    retries: int = DEFAULT_RETRIES,
    diff: DiffSource = None,
    reset: ResetFn | None = None,
    intent: Intent | None = None,
    capture_timeout_s: float = DEFAULT_CAPTURE_TIMEOUT_S,
    artifact_dir: Path | None = None,
    events: EventWriter | NullEventWriter | None = None,
    model: str | None = None,
) -> ScenarioResult:
    log = (events or NullEventWriter()).scoped(scenario=name)
    diff_text = diff() if callable(diff) else (diff or "")
    result = ScenarioResult(name=name, threshold=threshold)
    max_attempts = 1 + max(0, int(retries))
    scenario_dir = artifact_dir / safe_slug(name, "scenario") if artifact_dir else None

    log.emit("scenario_started", threshold=threshold, max_attempts=max_attempts)
    for attempt in range(1, max_attempts + 1):
        started = time.monotonic()
        step = log.scoped(attempt=attempt)
        step.emit("attempt_started")

        evidence = await _capture(capture, reset, capture_timeout_s)
        step.emit("evidence_captured", kind=evidence.kind)

        request = context_builder.build(evidence, context, diff_text, intent=intent)
        verdict = await judge(gateway, request)
        step.emit(
            "judge_completed",
            gateway=getattr(gateway, "name", "unknown"),
            status=verdict.status,
            certainty=verdict.certainty,
            tokens=verdict.usage.to_sidecar(),
        )

        outcome = decide(verdict, threshold)
        artifacts: dict[str, str] = {}
        if scenario_dir is not None:
            artifacts = write_attempt_artifacts(scenario_dir / f"attempt-{attempt:02d}", request, outcome, model=model)
        record = AttemptRecord(
            attempt=attempt,
            outcome=outcome,
            evidence_kind=evidence.kind,
            duration_ms=int((time.monotonic() - started) * 1000),
            artifacts=artifacts,
        )
        result.attempts.append(record)
        step.emit(
            "attempt_finished",
            decision=outcome.decision,
            threshold_met=outcome.threshold_met,
            reasoning=outcome.reasoning,
            duration_ms=record.duration_ms,
        )
        if outcome.passed:
            break

    final = result.final
    log.emit(
        "scenario_finished",
        passed=result.passed,
        attempts=len(result.attempts),
        reasoning=final.outcome.reasoning if final else None,
    )
    return result


async def _capture(capture: CaptureFn, reset: ResetFn | None, timeout_s: float) -> Evidence:
    async def _reset_then_capture() -> Evidence:
        if reset is not None:
            await reset()
        return await capture()

    try:
        return await asyncio.wait_for(_reset_then_capture(), timeout=timeout_s)
    except asyncio.TimeoutError as exc:
        raise CaptureError(f"Evidence capture timeout after {timeout_s:g}s.") from exc


class ScenarioRunner:
    """Binds settings, gateway, diff source and telemetry for a suite of scenarios."""

    def __init__(
        self,
        settings: JudgeSettings,
        *,
        gateway: JudgeGateway | None = None,
        diff: DiffSource = None,
        events: EventWriter | None = None,
    ) -> None:
        self.settings = settings
        self.gateway = gateway or build_gateway(settings)
        self._diff = diff if diff is not None else (lambda: git_diff(settings.diff_path))
        self.events = events or EventWriter(settings.artifact_dir / "events.jsonl", str(uuid.uuid4()))

    async def run(
        self,
        name: str,
        *,
        capture: CaptureFn,
        context: TestContext,
        reset: ResetFn | None = None,
        intent: Intent | None = None,
        threshold: float | None = None,
    ) -> ScenarioResult:
        return await run_scenario(
            name,
            capture=capture,
            context=context,
            gateway=self.gateway,
            threshold=self.settings.threshold if threshold is None else threshold,
            retries=self.settings.retries,
            diff=self._diff,
            reset=reset,
            intent=intent,
            capture_timeout_s=self.settings.capture_timeout_s,
            artifact_dir=self.settings.artifact_dir,
            events=self.events,
            model=self.settings.model if self.gateway.name != "dryrun" else "dryrun",
        )
