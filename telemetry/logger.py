from __future__ import annotations

import json
import os
import threading
import time
from typing import Any, Dict, Optional, TextIO


class TelemetryLogger:
    """Structured JSONL logger for collision-geometry telemetry.

    Thread-safe, append-only logging of dict records, one JSON object per line.
    Every record carries an `event` tag and a unix timestamp `ts`.
    """

    def __init__(self, path: str) -> None:
        self.path = path
        os.makedirs(os.path.dirname(self.path) or ".", exist_ok=True)
        self._lock = threading.Lock()
        self._fp: Optional[TextIO] = open(self.path, "a", encoding="utf-8")

    def log_record(self, event: str, record: Dict[str, Any]) -> None:
        """Append a single tagged record to the JSONL file."""
        if self._fp is None:
            return
        payload = {"event": event, "ts": time.time(), **record}
        line = json.dumps(payload, separators=(",", ":"))
        with self._lock:
            self._fp.write(line + "\n")
            self._fp.flush()

    def log_load(self, summary: Dict[str, Any]) -> None:
        """Record the outcome of a geometry load."""
        self.log_record("load", summary)

    def log_probe(self, x: float, y: float, walkable: bool, label: Optional[str] = None) -> None:
        """Record one walkability probe."""
        record: Dict[str, Any] = {"x": float(x), "y": float(y), "walkable": bool(walkable)}
        if label is not None:
            record["label"] = label
        self.log_record("probe", record)

    def close(self) -> None:
        if self._fp is not None:
            self._fp.close()
            self._fp = None

    def __enter__(self) -> "TelemetryLogger":
        return self

    def __exit__(self, *exc_info: Any) -> None:
        self.close()
