"""Shared fixtures for live judged scenarios.

These suites drive a running scene (``VISUAL_JUDGE_APP_URL``) through
Playwright and call the real judge, so they are not part of the default test
run. Point the metrics runner or pytest at a file here explicitly.
"""

from __future__ import annotations

import asyncio
from typing import Any, Awaitable, Callable

import pytest

from visual_judge.capture import PlaywrightCapture, open_scene
from visual_judge.config import JudgeSettings
from visual_judge.scenario import ScenarioResult, ScenarioRunner

SceneBody = Callable[[Any, PlaywrightCapture, ScenarioRunner], Awaitable[ScenarioResult]]


@pytest.fixture(scope="session")
def settings() -> JudgeSettings:
    return JudgeSettings.from_env()


@pytest.fixture(scope="session")
def runner(settings: JudgeSettings) -> ScenarioRunner:
    return ScenarioRunner(settings)


@pytest.fixture
def run_in_scene(settings: JudgeSettings, runner: ScenarioRunner) -> Callable[..., ScenarioResult]:
    def _run(body: SceneBody, *, viewport: tuple[int, int] = (1280, 720)) -> ScenarioResult:
        async def _main() -> ScenarioResult:
            async with open_scene(settings.app_url, browser=settings.browser, viewport=viewport) as page:
                return await body(page, PlaywrightCapture(page), runner)

        return asyncio.run(_main())

    return _run

