"""Code-change context for the judge."""

from __future__ import annotations

import subprocess
from pathlib import Path
from typing import Sequence


def git_diff(paths: str | Sequence[str] | None = None, *, cwd: str | Path | None = None, timeout_s: float = 10.0) -> str:
    """Return ``git diff -- <paths>`` output, or "" when git is unavailable.

    The diff is optional context, so an unreadable working tree yields an
    empty string and the prompt falls back to its no-diff placeholder.
    """
    if isinstance(paths, str):
        paths = [paths]
    cmd = ["git", "diff", "--no-color"]
    if paths:
        cmd.extend(["--", *[str(p) for p in paths]])
    try:
        proc = subprocess.run(
            cmd,
            cwd=str(cwd) if cwd else None,
            capture_output=True,
            text=True,
            timeout=timeout_s,
            check=False,
        )
    except (OSError, subprocess.TimeoutExpired):
        return ""
    if proc.returncode != 0:
        return ""
    return proc.stdout
