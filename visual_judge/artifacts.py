"""Per-attempt artifacts for post-hoc inspection of a judged scenario."""

from __future__ import annotations

from pathlib import Path
from typing import Any

from .context_builder import JudgeRequest
from .decision import ScenarioOutcome
from .evidence import FrameSequence, describe, filmstrip, write_evidence
from .utils import now_utc_iso, write_json

REQUEST_MANIFEST_SCHEMA = "visual_judge.request.v1"


def build_request_manifest(request: JudgeRequest, *, model: str | None = None) -> dict[str, Any]:
    return {
        "schema": REQUEST_MANIFEST_SCHEMA,
        "ts_utc": now_utc_iso(),
        "model": model,
        "evidence_kind": request.evidence.kind,
        "parts": describe(request.evidence),
        "instructions_chars": len(request.instructions),
        "instructions": request.instructions,
        "diff_chars": len(request.diff_text),
    }


def write_attempt_artifacts(
    attempt_dir: Path,
    request: JudgeRequest,
    outcome: ScenarioOutcome,
    *,
    model: str | None = None,
) -> dict[str, str]:
    """Write evidence, request manifest, verdict and token usage; return their paths."""
    attempt_dir.mkdir(parents=True, exist_ok=True)
    paths: dict[str, str] = {}
    evidence_paths = write_evidence(request.evidence, attempt_dir / "evidence")
    paths["evidence"] = str(attempt_dir / "evidence")
    if isinstance(request.evidence, FrameSequence) and len(evidence_paths) > 1:
        strip = filmstrip(request.evidence.frames)
        if strip:
            strip_path = attempt_dir / "filmstrip.png"
            strip_path.write_bytes(strip)
            paths["filmstrip"] = str(strip_path)

    manifest_path = attempt_dir / "request.json"
    write_json(manifest_path, build_request_manifest(request, model=model))
    paths["request"] = str(manifest_path)

    verdict_path = attempt_dir / "verdict.json"
    verdict_payload = outcome.verdict.to_dict()
    verdict_payload.update(
        {
            "threshold": outcome.threshold,
            "threshold_met": outcome.threshold_met,
            "decision": outcome.decision,
        }
    )
    write_json(verdict_path, verdict_payload)
    paths["verdict"] = str(verdict_path)

    usage_path = attempt_dir / "token-usage.json"
    write_json(usage_path, outcome.verdict.usage.to_sidecar())
    paths["token_usage"] = str(usage_path)
    return paths
