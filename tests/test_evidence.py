from __future__ import annotations

import io
from pathlib import Path

from PIL import Image

from visual_judge.evidence import FramePair, FrameSequence, SingleImage, Video, describe, filmstrip, write_evidence


def _png(width: int, height: int, color: tuple[int, int, int] = (10, 20, 200)) -> bytes:
    buffer = io.BytesIO()
    Image.new("RGB", (width, height), color).save(buffer, format="PNG")
    return buffer.getvalue()


def test_media_parts_are_ordered() -> None:
    pair = FramePair(before=b"before", after=b"after")
    assert pair.media_parts() == [(b"before", "image/png"), (b"after", "image/png")]
    seq = FrameSequence([b"0", b"1", b"2"])
    assert seq.frames == (b"0", b"1", b"2")
    assert seq.initial == b"0" and seq.final == b"2"
    assert Video(b"v", container_format="webm", fps=24).media_parts() == [(b"v", "video/webm")]
    assert SingleImage(b"x").kind == "single"


def test_describe_reads_image_dimensions() -> None:
    entries = describe(FramePair(before=_png(32, 16), after=b"not-an-image"))
    assert entries[0]["label"] == "before"
    assert (entries[0]["width"], entries[0]["height"]) == (32, 16)
    assert "width" not in entries[1]
    assert len(entries[1]["sha256"]) == 64


def test_write_evidence_and_filmstrip(tmp_path: Path) -> None:
    frames = (_png(40, 20), _png(40, 20, (200, 0, 0)), _png(40, 20, (0, 200, 0)))
    paths = write_evidence(FrameSequence(frames), tmp_path / "evidence")
    assert [p.name for p in paths] == ["frame-0.png", "frame-1.png", "frame-2.png"]
    video_paths = write_evidence(Video(b"webm-bytes"), tmp_path / "clip")
    assert video_paths[0].name == "clip.webm"

    strip = filmstrip(frames)
    assert strip is not None
    with Image.open(io.BytesIO(strip)) as img:
        assert img.size == (120, 20)
    assert filmstrip([b"garbage"]) is None
