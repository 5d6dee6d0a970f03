from __future__ import annotations

import json
import sys
import threading
from typing import IO, Optional, Protocol, runtime_checkable

from cloudasset.shared.assets.record import AssetRecord


@runtime_checkable
class Publisher(Protocol):
    """Sink for built records. Fire-and-forget: the return value is ignored."""

    def publish(self, record: AssetRecord) -> None:
        ...


class JsonLinesPublisher:
    """Writes one JSON document per record to a stream (stdout by default)."""

    def __init__(self, stream: Optional[IO[str]] = None):
        self.stream = stream or sys.stdout
        self._lock = threading.Lock()

    def publish(self, record: AssetRecord) -> None:
        line = json.dumps(record.to_event(), default=str, sort_keys=True)
        with self._lock:
            self.stream.write(line + "\n")
            self.stream.flush()
