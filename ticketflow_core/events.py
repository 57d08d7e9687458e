"""
Emitted event log for TicketFlow collections.

Each committed operation appends one entry describing what changed.
Entries from an operation that is rolled back are truncated away, so the
log only ever reflects committed state.
"""

from __future__ import annotations

import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Iterator


class EventKind(Enum):
    TICKET_MINTED = "TicketMinted"
    TICKET_RESOLD = "TicketResold"
    TICKET_REFUNDED = "TicketRefunded"
    TICKET_CANCEL_REFUNDED = "TicketCancelRefunded"
    TICKET_CHECKED_IN = "TicketCheckedIn"
    EVENT_CANCELLED = "EventCancelled"
    METADATA_LOCATOR_UPDATED = "MetadataLocatorUpdated"


@dataclass
class CollectionEvent:
    """A single log entry."""
    sequence: int
    kind: EventKind
    fields: dict = field(default_factory=dict)
    timestamp: float = field(default_factory=time.time)

    def to_dict(self) -> dict:
        return {
            "sequence": self.sequence,
            "kind": self.kind.value,
            "fields": dict(self.fields),
            "timestamp": self.timestamp,
        }


class EventLog:
    """Append-only (except for rollback) list of collection events."""

    def __init__(self):
        self._entries: list[CollectionEvent] = []

    def emit(self, kind: EventKind, **fields) -> CollectionEvent:
        entry = CollectionEvent(sequence=len(self._entries), kind=kind, fields=fields)
        self._entries.append(entry)
        return entry

    def append(self, entry: CollectionEvent) -> None:
        """Re-insert a persisted entry."""
        self._entries.append(entry)

    def truncate(self, length: int) -> None:
        del self._entries[length:]

    def filter(self, kind: EventKind) -> list[CollectionEvent]:
        return [e for e in self._entries if e.kind is kind]

    def last(self) -> CollectionEvent | None:
        return self._entries[-1] if self._entries else None

    def to_list(self) -> list[dict]:
        return [e.to_dict() for e in self._entries]

    def __len__(self) -> int:
        return len(self._entries)

    def __iter__(self) -> Iterator[CollectionEvent]:
        return iter(self._entries)
