"""Certainty-gated pass/fail decision."""

from __future__ import annotations

from dataclasses import dataclass

from .verdict import FAIL, PASS, Verdict


@dataclass(frozen=True)
class ScenarioOutcome:
    verdict: Verdict
    threshold: float
    threshold_met: bool
    decision: str

    @property
    def passed(self) -> bool:
        return self.decision == PASS

    @property
    def reasoning(self) -> str:
        return self.verdict.reasoning

    def failure_message(self) -> str:
        if self.verdict.status != PASS:
            return f"AI failed. Reason: {self.reasoning}"
        if not self.threshold_met:
            return (
                f"Low certainty ({self.verdict.certainty:.2f} < {self.threshold:.2f}). "
                f"Reason: {self.reasoning}"
            )
        return ""


def decide(verdict: Verdict, threshold: float) -> ScenarioOutcome:
    # A confident FAIL is still a FAIL; a PASS below threshold is downgraded.
    threshold_met = verdict.certainty >= threshold
    decision = PASS if verdict.status == PASS and threshold_met else FAIL
    return ScenarioOutcome(
        verdict=verdict,
        threshold=threshold,
        threshold_met=threshold_met,
        decision=decision,
    )
