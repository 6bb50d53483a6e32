"""Deterministic transform checks through the scene query interface.

No judge involved: these read the entity transform directly and are the
baseline the judged suites are compared against.
"""

from __future__ import annotations

import asyncio

import pytest

from visual_judge.capture import PlaywrightCapture, SceneQuery, open_scene

STEP = 0.5


@pytest.mark.parametrize(
    ("key", "delta"),
    [
        ("d", (STEP, 0.0, 0.0)),
        ("a", (-STEP, 0.0, 0.0)),
        ("w", (0.0, 0.0, -STEP)),
        ("s", (0.0, 0.0, STEP)),
    ],
)
def test_key_moves_box_one_step(settings, key, delta) -> None:
    async def _main():
        async with open_scene(settings.app_url, browser=settings.browser) as page:
            query = SceneQuery(page)
            capture = PlaywrightCapture(page)
            before = await query.entity_transform("MainBox")
            await capture.press(key, 1, 100)
            after = await query.entity_transform("MainBox")
            return before, after

    before, after = asyncio.run(_main())
    for axis in range(3):
        assert after.position[axis] == pytest.approx(before.position[axis] + delta[axis])
