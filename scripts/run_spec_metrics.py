#!/usr/bin/env python3
"""Run a judged scenario file N times and collect metrics.

A run fails when any test in it fails. Examples:
  python scripts/run_spec_metrics.py --spec scenarios/test_box_visual_ai_frames.py --runs 20
  python scripts/run_spec_metrics.py --spec scenarios/test_box_visual_ai.py --runs 10 \\
    --browser firefox --grep "move_right" --delay 500 --abortOnFails 3
"""

from __future__ import annotations

from visual_judge.cli import main

if __name__ == "__main__":
    raise SystemExit(main())
