from __future__ import annotations

import json
import re
import time
from dataclasses import asdict, dataclass, field
from pathlib import Path
from typing import Any

TRACE_ID_PATTERN = r"^[A-Za-z0-9_-]+$"
_TRACE_ID_RE = re.compile(TRACE_ID_PATTERN)


@dataclass(slots=True)
class TraceEvent:
    ts: float
    kind: str
    data: dict[str, Any] = field(default_factory=dict)


class TraceWriter:
    """Append-only JSONL sink for extraction events, one file per trace id."""

    def __init__(self, trace_id: str, base_dir: Path | None = None) -> None:
        if not _TRACE_ID_RE.fullmatch(trace_id):
            raise ValueError(f"Invalid trace id '{trace_id}'")
        self.trace_id = trace_id
        self.base_dir = base_dir or Path("data") / "traces"

    @property
    def path(self) -> Path:
        return self.base_dir / f"{self.trace_id}.jsonl"

    def write(self, event: TraceEvent) -> Path:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        payload = json.dumps(asdict(event), ensure_ascii=False)
        with self.path.open("a", encoding="utf-8") as handle:
            handle.write(payload + "\n")
        return self.path

    def read_events(self) -> list[TraceEvent]:
        if not self.path.exists():
            return []
        events: list[TraceEvent] = []
        for line in self.path.read_text(encoding="utf-8").splitlines():
            if not line.strip():
                continue
            try:
                payload = json.loads(line)
            except json.JSONDecodeError:
                continue
            if not isinstance(payload, dict):
                continue
            data = payload.get("data")
            events.append(
                TraceEvent(
                    ts=float(payload.get("ts", 0.0)),
                    kind=str(payload.get("kind", "")),
                    data=data if isinstance(data, dict) else {},
                )
            )
        return events


def emit(tracer: TraceWriter | None, kind: str, data: dict[str, Any]) -> None:
    if tracer is None:
        return
    tracer.write(TraceEvent(ts=time.time(), kind=kind, data=dict(data)))
