"""Captured visual evidence.

Evidence is a closed set of immutable variants. Every variant knows how to
present itself as ordered media parts for the judge request and how to
describe itself for debug manifests; nothing downstream of the context
builder needs to know which variant it is holding.
"""

from __future__ import annotations

import io
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Union

from PIL import Image, UnidentifiedImageError

from .utils import sha256_hex

PNG_MIME = "image/png"


@dataclass(frozen=True)
class SingleImage:
    data: bytes
    mime_type: str = PNG_MIME

    kind = "single"

    def media_parts(self) -> list[tuple[bytes, str]]:
        return [(self.data, self.mime_type)]

    def labels(self) -> list[str]:
        return ["frame"]


@dataclass(frozen=True)
class FramePair:
    before: bytes
    after: bytes
    mime_type: str = PNG_MIME

    kind = "pair"

    def media_parts(self) -> list[tuple[bytes, str]]:
        return [(self.before, self.mime_type), (self.after, self.mime_type)]

    def labels(self) -> list[str]:
        return ["before", "after"]


@dataclass(frozen=True)
class FrameSequence:
    frames: tuple[bytes, ...]
    mime_type: str = PNG_MIME

    kind = "sequence"

    def __post_init__(self) -> None:
        if not isinstance(self.frames, tuple):
            object.__setattr__(self, "frames", tuple(self.frames))

    @property
    def initial(self) -> bytes | None:
        return self.frames[0] if self.frames else None

    @property
    def final(self) -> bytes | None:
        return self.frames[-1] if self.frames else None

    def media_parts(self) -> list[tuple[bytes, str]]:
        return [(frame, self.mime_type) for frame in self.frames]

    def labels(self) -> list[str]:
        return [f"frame-{idx}" for idx in range(len(self.frames))]


@dataclass(frozen=True)
class Video:
    data: bytes
    container_format: str = "webm"
    fps: int = 24

    kind = "video"

    @property
    def mime_type(self) -> str:
        return f"video/{self.container_format}"

    def media_parts(self) -> list[tuple[bytes, str]]:
        return [(self.data, self.mime_type)]

    def labels(self) -> list[str]:
        return ["clip"]


Evidence = Union[SingleImage, FramePair, FrameSequence, Video]

EVIDENCE_KINDS = ("single", "pair", "sequence", "video")


def describe(evidence: Evidence) -> list[dict[str, Any]]:
    """Byte counts, hashes and (for images) pixel dimensions of each part."""
    entries: list[dict[str, Any]] = []
    for part_index, ((data, mime_type), label) in enumerate(zip(evidence.media_parts(), evidence.labels())):
        payload: dict[str, Any] = {
            "part_index": part_index,
            "label": label,
            "mime_type": mime_type,
            "byte_count": len(data),
            "sha256": sha256_hex(data),
        }
        if mime_type.startswith("image/"):
            dims = image_dims(data)
            if dims:
                payload["width"], payload["height"] = dims
        if isinstance(evidence, Video):
            payload["fps"] = evidence.fps
        entries.append(payload)
    return entries


def image_dims(data: bytes) -> tuple[int, int] | None:
    try:
        with Image.open(io.BytesIO(data)) as img:
            return int(img.width), int(img.height)
    except (UnidentifiedImageError, OSError, ValueError):
        return None


def write_evidence(evidence: Evidence, out_dir: Path) -> list[Path]:
    out_dir.mkdir(parents=True, exist_ok=True)
    paths: list[Path] = []
    for (data, mime_type), label in zip(evidence.media_parts(), evidence.labels()):
        path = out_dir / f"{label}.{_ext_for_mime(mime_type)}"
        path.write_bytes(data)
        paths.append(path)
    return paths


def filmstrip(frames: tuple[bytes, ...] | list[bytes], *, max_height: int = 240) -> bytes | None:
    """Stitch frames side by side into one PNG for quick human review."""
    images: list[Image.Image] = []
    try:
        for frame in frames:
            img = Image.open(io.BytesIO(frame)).convert("RGB")
            if img.height > max_height:
                width = max(1, int(img.width * max_height / img.height))
                img = img.resize((width, max_height))
            images.append(img)
    except (UnidentifiedImageError, OSError, ValueError):
        return None
    if not images:
        return None
    total_width = sum(img.width for img in images)
    height = max(img.height for img in images)
    strip = Image.new("RGB", (total_width, height), (0, 0, 0))
    x = 0
    for img in images:
        strip.paste(img, (x, 0))
        x += img.width
    buffer = io.BytesIO()
    strip.save(buffer, format="PNG")
    return buffer.getvalue()


def _ext_for_mime(mime_type: str) -> str:
    lowered = str(mime_type or "").lower()
    if lowered == "image/png":
        return "png"
    if lowered in {"image/jpeg", "image/jpg"}:
        return "jpg"
    if lowered == "image/webp":
        return "webp"
    if lowered.startswith("video/"):
        return lowered.split("/", 1)[1].split(";", 1)[0] or "bin"
    return "bin"
