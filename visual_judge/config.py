"""Environment-driven settings for judged scenarios."""

from __future__ import annotations

import os
from dataclasses import dataclass, replace
from pathlib import Path

from .utils import getenv_flag, getenv_float, getenv_int, load_dotenv

DEFAULT_MODEL = "gemini-2.5-pro"
DEFAULT_THRESHOLD = 0.85
DEFAULT_RETRIES = 3
DEFAULT_JUDGE_TIMEOUT_S = 60.0
DEFAULT_CAPTURE_TIMEOUT_S = 15.0
DEFAULT_ARTIFACT_DIR = "test-results/ai-judge"
DEFAULT_APP_URL = "http://localhost:5173"
DEFAULT_DIFF_PATH = "src/App.tsx"
DEFAULT_BROWSER = "chromium"
BROWSERS = ("chromium", "firefox", "webkit")


@dataclass(frozen=True)
class JudgeSettings:
    api_key: str | None = None
    model: str = DEFAULT_MODEL
    threshold: float = DEFAULT_THRESHOLD
    retries: int = DEFAULT_RETRIES
    judge_timeout_s: float = DEFAULT_JUDGE_TIMEOUT_S
    capture_timeout_s: float = DEFAULT_CAPTURE_TIMEOUT_S
    artifact_dir: Path = Path(DEFAULT_ARTIFACT_DIR)
    app_url: str = DEFAULT_APP_URL
    diff_path: str = DEFAULT_DIFF_PATH
    browser: str = DEFAULT_BROWSER
    dryrun: bool = False

    @classmethod
    def from_env(cls, *, dotenv: bool = True) -> "JudgeSettings":
        if dotenv:
            load_dotenv()
        api_key = os.getenv("GEMINI_API_KEY") or os.getenv("GOOGLE_API_KEY")
        threshold = getenv_float("VISUAL_JUDGE_THRESHOLD", DEFAULT_THRESHOLD)
        if not 0.0 <= threshold <= 1.0:
            threshold = DEFAULT_THRESHOLD
        return cls(
            api_key=api_key.strip() if api_key and api_key.strip() else None,
            model=str(os.getenv("VISUAL_JUDGE_MODEL") or "").strip() or DEFAULT_MODEL,
            threshold=threshold,
            retries=max(0, getenv_int("VISUAL_JUDGE_RETRIES", DEFAULT_RETRIES)),
            judge_timeout_s=getenv_float("VISUAL_JUDGE_TIMEOUT_S", DEFAULT_JUDGE_TIMEOUT_S),
            capture_timeout_s=getenv_float("VISUAL_JUDGE_CAPTURE_TIMEOUT_S", DEFAULT_CAPTURE_TIMEOUT_S),
            artifact_dir=Path(os.getenv("VISUAL_JUDGE_ARTIFACT_DIR") or DEFAULT_ARTIFACT_DIR),
            app_url=str(os.getenv("VISUAL_JUDGE_APP_URL") or "").strip() or DEFAULT_APP_URL,
            diff_path=str(os.getenv("VISUAL_JUDGE_DIFF_PATH") or "").strip() or DEFAULT_DIFF_PATH,
            browser=str(os.getenv("VISUAL_JUDGE_BROWSER") or "").strip().lower() or DEFAULT_BROWSER,
            dryrun=getenv_flag("VISUAL_JUDGE_DRYRUN"),
        )

    def with_threshold(self, threshold: float) -> "JudgeSettings":
        return replace(self, threshold=threshold)
