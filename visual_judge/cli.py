"""Command-line entrypoint for the metrics runner."""

from __future__ import annotations

import argparse
from pathlib import Path

from .config import BROWSERS
from .metrics.runner import DEFAULT_OUT_DIR, DEFAULT_RUNS, run_metrics
from .utils import load_dotenv


def _positive_int(value: str) -> int:
    parsed = int(value)
    if parsed < 1:
        raise argparse.ArgumentTypeError("must be >= 1")
    return parsed


def _non_negative_int(value: str) -> int:
    parsed = int(value)
    if parsed < 0:
        raise argparse.ArgumentTypeError("must be >= 0")
    return parsed


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="visual-judge-metrics",
        description="Run a judged scenario file N times and collect pass-rate and latency metrics.",
    )
    parser.add_argument("--spec", required=True, help="Scenario test file to run")
    parser.add_argument("--runs", type=_positive_int, default=DEFAULT_RUNS, help="Number of runs (default: 20)")
    parser.add_argument("--browser", choices=BROWSERS, default="chromium")
    parser.add_argument("--grep", default=None, help="Only run tests matching this pytest -k expression")
    parser.add_argument("--delay", type=_non_negative_int, default=0, help="Delay before each run, in ms")
    parser.add_argument(
        "--abortOnFails",
        "--abort-on-fails",
        dest="abort_on_fails",
        type=_non_negative_int,
        default=0,
        help="Stop once this many runs have failed (default: disabled)",
    )
    parser.add_argument("--out", default=str(DEFAULT_OUT_DIR), help="Metrics output directory")
    return parser


def main(argv: list[str] | None = None) -> int:
    load_dotenv()
    args = build_parser().parse_args(argv)
    report = run_metrics(
        args.spec,
        runs=args.runs,
        browser=args.browser,
        grep=args.grep,
        delay_ms=args.delay,
        abort_on_fails=args.abort_on_fails or None,
        out_dir=Path(args.out),
    )
    return report.exit_code


if __name__ == "__main__":
    raise SystemExit(main())
