from __future__ import annotations

from pathlib import Path

import pytest

from visual_judge.config import DEFAULT_THRESHOLD, JudgeSettings

_KEYS = [
    "GEMINI_API_KEY",
    "GOOGLE_API_KEY",
    "VISUAL_JUDGE_MODEL",
    "VISUAL_JUDGE_THRESHOLD",
    "VISUAL_JUDGE_RETRIES",
    "VISUAL_JUDGE_TIMEOUT_S",
    "VISUAL_JUDGE_CAPTURE_TIMEOUT_S",
    "VISUAL_JUDGE_ARTIFACT_DIR",
    "VISUAL_JUDGE_APP_URL",
    "VISUAL_JUDGE_DIFF_PATH",
    "VISUAL_JUDGE_BROWSER",
    "VISUAL_JUDGE_DRYRUN",
]


@pytest.fixture(autouse=True)
def _clean_env(monkeypatch: pytest.MonkeyPatch) -> None:
    for key in _KEYS:
        monkeypatch.delenv(key, raising=False)


def test_defaults() -> None:
    settings = JudgeSettings.from_env(dotenv=False)
    assert settings.api_key is None
    assert settings.model == "gemini-2.5-pro"
    assert settings.threshold == 0.85
    assert settings.retries == 3
    assert settings.artifact_dir == Path("test-results/ai-judge")
    assert settings.browser == "chromium"
    assert settings.dryrun is False


def test_overrides(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("GEMINI_API_KEY", "  key-1  ")
    monkeypatch.setenv("VISUAL_JUDGE_THRESHOLD", "0.95")
    monkeypatch.setenv("VISUAL_JUDGE_RETRIES", "1")
    monkeypatch.setenv("VISUAL_JUDGE_BROWSER", "Firefox")
    monkeypatch.setenv("VISUAL_JUDGE_DRYRUN", "1")
    settings = JudgeSettings.from_env(dotenv=False)
    assert settings.api_key == "key-1"
    assert settings.threshold == 0.95
    assert settings.retries == 1
    assert settings.browser == "firefox"
    assert settings.dryrun is True


def test_google_key_fallback(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("GOOGLE_API_KEY", "g-key")
    assert JudgeSettings.from_env(dotenv=False).api_key == "g-key"


def test_bad_numbers_fall_back(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("VISUAL_JUDGE_THRESHOLD", "1.5")
    monkeypatch.setenv("VISUAL_JUDGE_RETRIES", "many")
    monkeypatch.setenv("VISUAL_JUDGE_TIMEOUT_S", "")
    settings = JudgeSettings.from_env(dotenv=False)
    assert settings.threshold == DEFAULT_THRESHOLD
    assert settings.retries == 3
    assert settings.judge_timeout_s == 60.0


def test_with_threshold() -> None:
    settings = JudgeSettings().with_threshold(0.9)
    assert settings.threshold == 0.9
