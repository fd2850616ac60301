"""JSONL event logger - durable trail of every creation attempt"""

from __future__ import annotations

import json
import threading
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

from ..config import get


class EventLogger:
    """Append-only JSONL event log.

    Every line carries a UTC ``timestamp``, a monotonic ``sequence`` and an
    ``event_type``. Writes are serialized so concurrent creators never
    interleave lines.
    """

    output_path: Path
    _sequence: int

    def __init__(self, output_file: str | None = None) -> None:
        """Initialize the event logger.

        Args:
            output_file: JSONL file path (default: logging.output_file from config)
        """
        resolved_file = output_file or get("logging.output_file") or "factory.jsonl"
        if not isinstance(resolved_file, str):
            resolved_file = "factory.jsonl"
        self.output_path = Path(resolved_file)
        self.output_path.parent.mkdir(parents=True, exist_ok=True)
        # Clear existing log on init (new run)
        self.output_path.write_text("")
        self._sequence = 0
        self._lock = threading.Lock()

    def log(self, event_type: str, data: dict[str, Any]) -> None:
        """Log an event to the JSONL file."""
        with self._lock:
            self._sequence += 1
            event: dict[str, Any] = {
                "timestamp": datetime.now(timezone.utc).isoformat(),
                "sequence": self._sequence,
                "event_type": event_type,
                **data,
            }
            with open(self.output_path, "a") as f:
                f.write(json.dumps(event) + "\n")

    def log_proposal_created(
        self,
        identifier: str,
        creator: str,
        created_at_sequence: int,
    ) -> None:
        """Log a successful creation (the ``Created`` notification)."""
        self.log("proposal_created", {
            "identifier": identifier,
            "creator": creator,
            "created_at_sequence": created_at_sequence,
        })

    def log_proposal_rejected(
        self,
        identifier: str | None,
        creator: str,
        code: str,
        reason: str,
    ) -> None:
        """Log a rejected creation attempt.

        Args:
            identifier: Predicted identifier, None if validation failed first
            creator: Requesting address
            code: Machine-readable error code
            reason: Human-readable message
        """
        data: dict[str, Any] = {
            "creator": creator,
            "code": code,
            "reason": reason,
        }
        if identifier is not None:
            data["identifier"] = identifier
        self.log("proposal_rejected", data)

    def read_recent(self, n: int | None = None) -> list[dict[str, Any]]:
        """Read the last N events from the log.

        N defaults to logging.default_recent from config.
        """
        if n is None:
            default_recent = get("logging.default_recent")
            if isinstance(default_recent, int):
                n = default_recent
            else:
                n = 50
        if not self.output_path.exists():
            return []
        lines = self.output_path.read_text().strip().split("\n")
        lines = [line for line in lines if line]  # filter empty
        recent = lines[-n:] if len(lines) > n else lines
        return [json.loads(line) for line in recent]
