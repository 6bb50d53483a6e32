"""Evidence capture over a live Playwright page.

Scene inspection goes through ``SceneQuery`` only: one named-entity lookup on
the page, no other globals. All driver failures surface as ``CaptureError``.
"""

from __future__ import annotations

import base64
from contextlib import asynccontextmanager
from dataclasses import dataclass
from typing import Any, AsyncIterator, Awaitable, Callable

from playwright.async_api import Error as PlaywrightError
from playwright.async_api import async_playwright

from .config import BROWSERS
from .errors import CaptureError
from .evidence import FramePair, FrameSequence, SingleImage, Video

DEFAULT_VIEWPORT = (1280, 720)
DEFAULT_ENTITY = "MainBox"

Action = Callable[[], Awaitable[Any]]

_NEXT_FRAME_JS = "() => new Promise(r => requestAnimationFrame(() => r(true)))"

_ENTITY_READY_JS = "(name) => !!(window.scene && window.scene.getObjectByName(name))"

_ENTITY_TRANSFORM_JS = """(name) => {
  const o = window.scene && window.scene.getObjectByName(name);
  if (!o) return null;
  return {
    position: [o.position.x, o.position.y, o.position.z],
    rotation: [o.rotation.x, o.rotation.y, o.rotation.z],
  };
}"""

_RESET_ROTATION_JS = """(name) => {
  const o = window.scene && window.scene.getObjectByName(name);
  if (!o) return false;
  o.rotation.set(0, 0, 0);
  return true;
}"""

_START_RECORDING_JS = """([selector, fps]) => {
  const canvas = document.querySelector(selector);
  if (!canvas) throw new Error('Canvas not found for recording');
  const stream = canvas.captureStream(fps);
  const candidates = ['video/webm;codecs=vp9', 'video/webm;codecs=vp8', 'video/webm'];
  const mime = candidates.find(t => MediaRecorder.isTypeSupported(t));
  if (!mime) throw new Error('No supported MediaRecorder MIME type');
  const recorder = new MediaRecorder(stream, { mimeType: mime });
  const chunks = [];
  window.__judgeRecordingDone = new Promise((resolve, reject) => {
    recorder.ondataavailable = e => { if (e.data.size) chunks.push(e.data); };
    recorder.onerror = e => reject(e.error);
    recorder.onstop = () => {
      const reader = new FileReader();
      reader.onloadend = () => resolve(reader.result);
      reader.readAsDataURL(new Blob(chunks, { type: 'video/webm' }));
    };
  });
  window.__judgeRecorderStop = () => recorder.stop();
  recorder.start();
  return mime;
}"""

_STOP_RECORDING_JS = """async () => {
  window.__judgeRecorderStop();
  return await window.__judgeRecordingDone;
}"""


@dataclass(frozen=True)
class EntityTransform:
    position: tuple[float, float, float]
    rotation: tuple[float, float, float]


class SceneQuery:
    def __init__(self, page: Any, *, timeout_ms: int = 5000) -> None:
        self._page = page
        self._timeout_ms = timeout_ms

    async def wait_for_entity(self, name: str) -> None:
        try:
            await self._page.wait_for_function(_ENTITY_READY_JS, arg=name, timeout=self._timeout_ms)
        except PlaywrightError as exc:
            raise CaptureError(f"Scene entity '{name}' never became ready: {exc}") from exc

    async def entity_transform(self, name: str) -> EntityTransform:
        try:
            raw = await self._page.evaluate(_ENTITY_TRANSFORM_JS, name)
        except PlaywrightError as exc:
            raise CaptureError(f"Could not read transform of '{name}': {exc}") from exc
        if not isinstance(raw, dict):
            raise CaptureError(f"Scene entity '{name}' not found.")
        return EntityTransform(
            position=tuple(float(v) for v in raw.get("position") or (0, 0, 0)),  # type: ignore[arg-type]
            rotation=tuple(float(v) for v in raw.get("rotation") or (0, 0, 0)),  # type: ignore[arg-type]
        )

    async def reset_rotation(self, name: str) -> None:
        try:
            found = await self._page.evaluate(_RESET_ROTATION_JS, name)
        except PlaywrightError as exc:
            raise CaptureError(f"Could not reset rotation of '{name}': {exc}") from exc
        if not found:
            raise CaptureError(f"Scene entity '{name}' not found.")


class PlaywrightCapture:
    """Frames, pairs, sequences and clips of one element on a page."""

    def __init__(
        self,
        page: Any,
        *,
        selector: str = "canvas",
        settle_ms: int = 100,
        frame_wait_ms: int = 60,
    ) -> None:
        self.page = page
        self.selector = selector
        self.settle_ms = settle_ms
        self.frame_wait_ms = frame_wait_ms

    async def next_frame(self) -> None:
        try:
            await self.page.evaluate(_NEXT_FRAME_JS)
        except PlaywrightError as exc:
            raise CaptureError(f"Render frame never arrived: {exc}") from exc

    async def settle(self, ms: int | None = None) -> None:
        await self.next_frame()
        try:
            await self.page.wait_for_timeout(self.settle_ms if ms is None else ms)
        except PlaywrightError as exc:
            raise CaptureError(f"Page closed while settling: {exc}") from exc

    async def frame(self) -> bytes:
        try:
            await self.next_frame()
            return await self.page.locator(self.selector).screenshot()
        except PlaywrightError as exc:
            raise CaptureError(f"Screenshot of '{self.selector}' failed: {exc}") from exc

    async def focus(self) -> None:
        try:
            await self.page.locator(self.selector).click()
            await self.settle()
        except PlaywrightError as exc:
            raise CaptureError(f"Could not focus '{self.selector}': {exc}") from exc

    async def press(self, key: str, times: int = 1, interval_ms: int | None = None) -> None:
        wait_ms = self.frame_wait_ms if interval_ms is None else interval_ms
        try:
            for _ in range(max(0, times)):
                await self.page.keyboard.press(key)
                await self.next_frame()
                await self.page.wait_for_timeout(wait_ms)
        except PlaywrightError as exc:
            raise CaptureError(f"Key press '{key}' failed: {exc}") from exc

    async def single(self, action: Action) -> SingleImage:
        await _run_action(action)
        await self.settle()
        return SingleImage(await self.frame())

    async def pair(self, action: Action) -> FramePair:
        before = await self.frame()
        await _run_action(action)
        await self.settle()
        after = await self.frame()
        return FramePair(before=before, after=after)

    async def sequence(self, key: str, presses: int, *, interval_ms: int | None = None) -> FrameSequence:
        frames = [await self.frame()]
        for _ in range(max(0, presses)):
            await self.press(key, 1, interval_ms)
            frames.append(await self.frame())
        # One extra settled frame so the final state is not mid-transition.
        await self.settle()
        frames.append(await self.frame())
        return FrameSequence(tuple(frames))

    async def video(self, action: Action, *, fps: int = 24, record_fps: int = 30) -> Video:
        try:
            await self.page.evaluate(_START_RECORDING_JS, [self.selector, record_fps])
        except PlaywrightError as exc:
            raise CaptureError(f"Could not start canvas recording: {exc}") from exc
        await _run_action(action)
        try:
            data_url = await self.page.evaluate(_STOP_RECORDING_JS)
        except PlaywrightError as exc:
            raise CaptureError(f"Could not stop canvas recording: {exc}") from exc
        return Video(data=decode_data_url(data_url), container_format="webm", fps=fps)


def decode_data_url(data_url: Any) -> bytes:
    if not isinstance(data_url, str) or "," not in data_url:
        raise CaptureError("Recording did not produce a data URL.")
    _, encoded = data_url.split(",", 1)
    try:
        data = base64.b64decode(encoded, validate=False)
    except ValueError as exc:
        raise CaptureError(f"Recording data URL is not valid base64: {exc}") from exc
    if not data:
        raise CaptureError("Recording is empty.")
    return data


@asynccontextmanager
async def open_scene(
    url: str,
    *,
    browser: str = "chromium",
    viewport: tuple[int, int] = DEFAULT_VIEWPORT,
    selector: str = "canvas",
    entity: str | None = DEFAULT_ENTITY,
    headless: bool = True,
    timeout_ms: int = 5000,
) -> AsyncIterator[Any]:
    """Launch a browser on the scene and yield the page once it has rendered."""
    if browser not in BROWSERS:
        raise CaptureError(f"Unknown browser '{browser}' (expected one of {', '.join(BROWSERS)}).")
    async with async_playwright() as pw:
        try:
            instance = await getattr(pw, browser).launch(headless=headless)
        except PlaywrightError as exc:
            raise CaptureError(f"Could not launch {browser}: {exc}") from exc
        try:
            page = await instance.new_page(viewport={"width": viewport[0], "height": viewport[1]})
            try:
                await page.goto(url)
            except PlaywrightError as exc:
                raise CaptureError(f"Could not open scene at {url}: {exc}") from exc
            await prepare_scene(page, selector=selector, entity=entity, timeout_ms=timeout_ms)
            yield page
        finally:
            await instance.close()


async def prepare_scene(
    page: Any,
    *,
    selector: str = "canvas",
    entity: str | None = DEFAULT_ENTITY,
    reload: bool = False,
    timeout_ms: int = 5000,
) -> None:
    """Bring the scene to its initial state: rendered, entity present, rotation zeroed."""
    try:
        if reload:
            await page.reload()
        await page.wait_for_selector(selector, timeout=timeout_ms)
    except PlaywrightError as exc:
        raise CaptureError(f"Scene did not render '{selector}': {exc}") from exc
    if entity:
        query = SceneQuery(page, timeout_ms=timeout_ms)
        await query.wait_for_entity(entity)
        await query.reset_rotation(entity)
    try:
        await page.evaluate(_NEXT_FRAME_JS)
    except PlaywrightError as exc:
        raise CaptureError(f"Render frame never arrived: {exc}") from exc


async def _run_action(action: Action) -> None:
    try:
        await action()
    except PlaywrightError as exc:
        raise CaptureError(f"Scene action failed: {exc}") from exc


def attempt_reset(page: Any, capture: PlaywrightCapture, *, focus_key: str | None = "f") -> Callable[[], Awaitable[None]]:
    """Reload to the initial state before every attempt so attempts stay comparable."""

    async def _reset() -> None:
        await prepare_scene(page, reload=True)
        if focus_key:
            await capture.press(focus_key)

    return _reset
