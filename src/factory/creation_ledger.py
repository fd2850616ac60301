"""Creation Ledger - append-only record of created proposals

This module is the factory's only mutable state. It remembers which
identifiers have been created, by whom, and at which sequence position.

Records are created exactly once per identifier and never updated or
removed: there is no update or delete operation.

Usage:
    ledger = CreationLedger()

    # Insert (raises AlreadyExistsError on a second insert)
    ledger.insert(CreationRecord(identifier, creator, created_at_sequence=1))

    # Check existence / look up
    ledger.exists(identifier)  # True
    ledger.get(identifier)     # CreationRecord
"""

from __future__ import annotations

import threading
from contextlib import contextmanager
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Iterator, Protocol

from .deriver import Identifier
from .errors import AlreadyExistsError


def _utc_now() -> str:
    return datetime.now(timezone.utc).isoformat()


@dataclass(frozen=True)
class CreationRecord:
    """One created proposal."""

    identifier: Identifier
    creator: str
    created_at_sequence: int
    created_at: str = field(default_factory=_utc_now)

    def to_dict(self) -> dict[str, Any]:
        return {
            "identifier": str(self.identifier),
            "creator": self.creator,
            "created_at_sequence": self.created_at_sequence,
            "created_at": self.created_at,
        }


class SequenceSource(Protocol):
    """Anything that hands out increasing ordinals."""

    def next(self) -> int:
        ...


class SequenceCounter:
    """Thread-safe monotonically increasing counter."""

    def __init__(self, start: int = 1) -> None:
        self._next = start
        self._lock = threading.Lock()

    def next(self) -> int:
        with self._lock:
            value = self._next
            self._next += 1
            return value

    def peek(self) -> int:
        """The value the next call to ``next()`` will return."""
        with self._lock:
            return self._next


class CreationLedger:
    """Append-only store of CreationRecords keyed by identifier.

    Thread-safety: ``insert`` checks and writes under one lock, so of two
    concurrent inserts for the same identifier exactly one succeeds.
    ``transaction()`` holds that lock across a caller's whole
    check-then-insert sequence, serializing every writer that shares
    this ledger.
    """

    _records: dict[Identifier, CreationRecord]
    _lock: threading.RLock

    def __init__(self) -> None:
        self._records = {}
        self._lock = threading.RLock()

    @contextmanager
    def transaction(self) -> Iterator["CreationLedger"]:
        """Hold the ledger lock for a multi-step check-then-insert.

        Reentrant: ``exists`` and ``insert`` may be called inside.
        """
        with self._lock:
            yield self

    def exists(self, identifier: Identifier) -> bool:
        with self._lock:
            return identifier in self._records

    def insert(self, record: CreationRecord) -> None:
        """Append a record.

        Raises:
            AlreadyExistsError: If the identifier is already recorded
        """
        with self._lock:
            if record.identifier in self._records:
                raise AlreadyExistsError(record.identifier)
            self._records[record.identifier] = record

    def get(self, identifier: Identifier) -> CreationRecord | None:
        with self._lock:
            return self._records.get(identifier)

    def count(self) -> int:
        """Total number of created proposals."""
        with self._lock:
            return len(self._records)

    def records(self) -> list[CreationRecord]:
        """All records in creation order."""
        with self._lock:
            return sorted(self._records.values(), key=lambda r: r.created_at_sequence)
