"""Canonical judge verdict and the parser that produces it."""

from __future__ import annotations

import json
import math
import re
from dataclasses import dataclass
from typing import Any, Mapping

PASS = "PASS"
FAIL = "FAIL"
STATUSES = (PASS, FAIL)

_FENCE_RE = re.compile(r"^\s*```(?:json)?\s*(.*?)\s*```\s*$", re.DOTALL | re.IGNORECASE)


@dataclass(frozen=True)
class TokenUsage:
    prompt_tokens: int = 0
    candidate_tokens: int = 0
    total_tokens: int = 0

    def to_sidecar(self) -> dict[str, int]:
        return {
            "prompt": self.prompt_tokens,
            "candidates": self.candidate_tokens,
            "total": self.total_tokens,
        }


ZERO_USAGE = TokenUsage()


@dataclass(frozen=True)
class Verdict:
    status: str
    certainty: float
    reasoning: str
    usage: TokenUsage = ZERO_USAGE

    @property
    def passed(self) -> bool:
        return self.status == PASS

    def to_dict(self) -> dict[str, Any]:
        return {
            "status": self.status,
            "certainty": self.certainty,
            "reasoning": self.reasoning,
            "tokens": self.usage.to_sidecar(),
        }


def failure_verdict(reason: str) -> Verdict:
    return Verdict(status=FAIL, certainty=0.0, reasoning=reason.strip() or "Judge failure.", usage=ZERO_USAGE)


def transport_failure(error: str) -> Verdict:
    return failure_verdict(f"Error during AI analysis: {error}")


def parse_verdict(raw_text: str, usage: TokenUsage | None = None) -> Verdict:
    """Parse the judge's raw JSON answer into a Verdict.

    Anything that does not satisfy the wire contract (a single object with a
    PASS/FAIL ``status``, a numeric ``certainty`` in [0, 1] and a non-empty
    ``reasoning``) becomes a synthetic FAIL with certainty 0.0 and zero usage.
    """
    try:
        payload = json.loads(_strip_fence(raw_text))
    except (TypeError, ValueError) as exc:
        return failure_verdict(f"Could not parse judge response as JSON: {exc}")
    problem = validation_problem(payload)
    if problem:
        return failure_verdict(problem)
    return Verdict(
        status=payload["status"],
        certainty=float(payload["certainty"]),
        reasoning=payload["reasoning"].strip(),
        usage=usage or ZERO_USAGE,
    )


def validation_problem(payload: Any) -> str | None:
    if not isinstance(payload, dict):
        return f"Judge response is not a JSON object (got {type(payload).__name__})."
    for key in ("status", "certainty", "reasoning"):
        if key not in payload or payload[key] is None:
            return f"Judge response missing required field '{key}'."
    status = payload["status"]
    if not isinstance(status, str) or status not in STATUSES:
        return f"Judge status is invalid (must be PASS or FAIL, got {status!r})."
    certainty = payload["certainty"]
    if isinstance(certainty, bool) or not isinstance(certainty, (int, float)):
        return f"Judge field 'certainty' must be a number (got {type(certainty).__name__})."
    try:
        value = float(certainty)
    except OverflowError:
        return f"Judge field 'certainty' out of range [0, 1] (got {certainty})."
    if math.isnan(value) or not 0.0 <= value <= 1.0:
        return f"Judge field 'certainty' out of range [0, 1] (got {certainty})."
    reasoning = payload["reasoning"]
    if not isinstance(reasoning, str) or not reasoning.strip():
        return "Judge field 'reasoning' must be a non-empty string."
    return None


def parse_usage(raw: Mapping[str, Any] | None) -> TokenUsage:
    """Accept both the sidecar shape and Gemini's usage_metadata names."""
    if not isinstance(raw, Mapping):
        return ZERO_USAGE
    prompt = _count(raw, "prompt", "prompt_token_count", "promptTokenCount", "prompt_tokens")
    candidates = _count(raw, "candidates", "candidates_token_count", "candidatesTokenCount", "candidate_tokens")
    total = _count(raw, "total", "total_token_count", "totalTokenCount", "total_tokens")
    if total is None:
        total = (prompt or 0) + (candidates or 0)
    return TokenUsage(prompt_tokens=prompt or 0, candidate_tokens=candidates or 0, total_tokens=total)


def _count(raw: Mapping[str, Any], *keys: str) -> int | None:
    for key in keys:
        value = raw.get(key)
        if isinstance(value, bool):
            continue
        if isinstance(value, (int, float)):
            return int(value)
    return None


def _strip_fence(text: Any) -> Any:
    if not isinstance(text, str):
        return text
    match = _FENCE_RE.match(text)
    return match.group(1) if match else text
