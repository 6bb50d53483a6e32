"""Append-only JSONL telemetry for judged scenarios.

One file per suite run. Every line carries the run id, a per-run sequence
number and a UTC timestamp, so interleaved scenarios can be reordered and
grouped after the fact.
"""

from __future__ import annotations

import itertools
import json
import threading
from pathlib import Path
from typing import Any, Protocol

from .utils import now_utc_iso, serialize


class EventSink(Protocol):
    def emit(self, event_type: str, **payload: Any) -> dict[str, Any]:
        ...


class EventWriter:
    def __init__(self, path: Path, run_id: str) -> None:
        self.path = path
        self.run_id = run_id
        self._seq = itertools.count(1)
        self._lock = threading.Lock()

    def emit(self, event_type: str, **payload: Any) -> dict[str, Any]:
        with self._lock:
            event = {"type": event_type, "run_id": self.run_id, "seq": next(self._seq), "ts": now_utc_iso()}
            event.update(serialize(payload))
            self.path.parent.mkdir(parents=True, exist_ok=True)
            with self.path.open("a", encoding="utf-8") as handle:
                handle.write(json.dumps(event) + "\n")
        return event

    def scoped(self, **fields: Any) -> "ScopedEvents":
        return ScopedEvents(self, fields)


class ScopedEvents:
    """Stamps fixed fields (scenario name, browser) onto every event."""

    def __init__(self, sink: EventSink, fields: dict[str, Any]) -> None:
        self._sink = sink
        self._fields = dict(fields)

    def emit(self, event_type: str, **payload: Any) -> dict[str, Any]:
        return self._sink.emit(event_type, **{**self._fields, **payload})

    def scoped(self, **fields: Any) -> "ScopedEvents":
        return ScopedEvents(self._sink, {**self._fields, **fields})


class NullEventWriter:
    run_id = ""

    def emit(self, event_type: str, **payload: Any) -> dict[str, Any]:
        return {"type": event_type, **payload}

    def scoped(self, **fields: Any) -> ScopedEvents:
        return ScopedEvents(self, fields)
