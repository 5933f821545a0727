"""
Structured JSON event log: append-only, one object per line (.jsonl).

Usage:
    from modules.observability.logger import StructuredLogger

    events = StructuredLogger()
    events.log("itinerary_42", "TRAVEL_FETCH", {"requested": 3, "applied": 3})

Records go to  <LOGS_DIR>/<stream>.jsonl, with characters outside
[A-Za-z0-9_.-] in the stream name replaced by "_".  Nothing is written unless
STRUCTURED_LOGS_ENABLED is set (or ``enabled=True`` is passed), so the
engine stays side-effect free in tests and the CLI by default.
"""

from __future__ import annotations

import json
import os
import re
import threading
from datetime import datetime, timezone
from pathlib import Path
from typing import IO

import config

# anything outside this set would escape or break the log file name
_UNSAFE_STREAM_CHARS = re.compile(r"[^A-Za-z0-9_.-]")


class StructuredLogger:
    """Thread-safe, append-only JSONL event log keyed by stream name."""

    def __init__(
        self,
        logs_dir: Path | str | None = None,
        enabled: bool | None = None,
    ) -> None:
        self._logs_dir = Path(logs_dir or config.LOGS_DIR)
        self.enabled = config.STRUCTURED_LOGS_ENABLED if enabled is None else enabled
        self._lock = threading.Lock()
        self._handles: dict[str, IO[str]] = {}

    def log(self, stream: str, event_type: str, payload: dict) -> None:
        """Append one record to ``<stream>.jsonl``; no-op when disabled."""
        if not self.enabled:
            return
        record = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "stream": stream,
            "event_type": event_type,
            "payload": payload,
        }
        line = json.dumps(record, default=str, ensure_ascii=False) + "\n"

        with self._lock:
            fh = self._handles.get(stream) or self._open(stream)
            fh.write(line)
            fh.flush()

    def close(self, stream: str | None = None) -> None:
        """Close one or all open streams."""
        with self._lock:
            if stream:
                fh = self._handles.pop(stream, None)
                if fh:
                    fh.close()
            else:
                for fh in self._handles.values():
                    fh.close()
                self._handles.clear()

    def path_for(self, stream: str) -> Path:
        safe = _UNSAFE_STREAM_CHARS.sub("_", stream).lstrip(".") or "_"
        return self._logs_dir / f"{safe}.jsonl"

    def _open(self, stream: str) -> IO[str]:
        os.makedirs(self._logs_dir, exist_ok=True)
        fh = open(self.path_for(stream), "a", encoding="utf-8")  # noqa: SIM115
        self._handles[stream] = fh
        return fh
