"""Audit event log — the append-only record of every committed operation.

Parents review the family economy through this log, and the notifier
collaborator receives the same records. Each record is sealed with a
SHA-256 hash over its canonical JSON body (member included); a JSONL
file written by one process is re-sealed and checked on load, so an
edited or replayed line stops recovery instead of silently rewriting
history.
"""

from __future__ import annotations

import enum
import hashlib
import json
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Iterable, Optional


TIMESTAMP_FORMAT = "%Y-%m-%dT%H:%M:%SZ"


class EventKind(str, enum.Enum):
    """What happened to an account."""
    ACCOUNT_CREATED = "account_created"
    COINS_EARNED = "coins_earned"
    TRANSFER_COMPLETED = "transfer_completed"
    PURCHASE_REQUESTED = "purchase_requested"
    PURCHASE_APPROVED = "purchase_approved"
    PURCHASE_DENIED = "purchase_denied"
    WITHDRAWAL_COMPLETED = "withdrawal_completed"
    DEPOSIT_COMPLETED = "deposit_completed"
    INTEREST_APPLIED = "interest_applied"
    SETTINGS_UPDATED = "settings_updated"


def seal(
    event_id: str,
    event_kind: str,
    timestamp_utc: str,
    actor_id: str,
    member_id: str,
    payload: dict[str, Any],
) -> str:
    """Hash the canonical form of an event body."""
    body = {
        "event_id": event_id,
        "event_kind": event_kind,
        "timestamp_utc": timestamp_utc,
        "actor_id": actor_id,
        "payload": dict(payload, member_id=member_id),
    }
    canonical = json.dumps(body, sort_keys=True, ensure_ascii=False)
    return "sha256:" + hashlib.sha256(canonical.encode("utf-8")).hexdigest()


@dataclass(frozen=True)
class EventRecord:
    """One sealed audit entry.

    ``actor_id`` is whoever caused the event: the member for their own
    earnings and requests, the parent for approvals, denials, deposits
    and settings changes. ``payload`` must be JSON-serialisable and
    always ends with the account's post-operation balances.
    """
    event_id: str
    event_kind: EventKind
    timestamp_utc: str
    actor_id: str
    member_id: str
    payload: dict[str, Any]
    event_hash: str

    @staticmethod
    def create(
        event_id: str,
        event_kind: EventKind,
        actor_id: str,
        member_id: str,
        payload: dict[str, Any],
        timestamp_utc: Optional[datetime] = None,
    ) -> EventRecord:
        stamp = (timestamp_utc or datetime.now(timezone.utc)).strftime(TIMESTAMP_FORMAT)
        return EventRecord(
            event_id=event_id,
            event_kind=event_kind,
            timestamp_utc=stamp,
            actor_id=actor_id,
            member_id=member_id,
            payload=payload,
            event_hash=seal(event_id, event_kind.value, stamp, actor_id, member_id, payload),
        )

    @property
    def is_intact(self) -> bool:
        return self.event_hash == seal(
            self.event_id, self.event_kind.value, self.timestamp_utc,
            self.actor_id, self.member_id, self.payload,
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "event_id": self.event_id,
            "event_kind": self.event_kind.value,
            "timestamp_utc": self.timestamp_utc,
            "actor_id": self.actor_id,
            "member_id": self.member_id,
            "payload": self.payload,
            "event_hash": self.event_hash,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> EventRecord:
        return cls(
            event_id=data["event_id"],
            event_kind=EventKind(data["event_kind"]),
            timestamp_utc=data["timestamp_utc"],
            actor_id=data["actor_id"],
            member_id=data["member_id"],
            payload=data["payload"],
            event_hash=data["event_hash"],
        )


class EventLog:
    """Append-only audit log, in memory or backed by a JSONL file.

    Usage:
        log = EventLog(storage_path=data_dir / "events.jsonl")
        log.append(record)
        log.events(EventKind.PURCHASE_APPROVED, member_id="liam")
    """

    def __init__(self, storage_path: Optional[Path] = None) -> None:
        self._storage_path = storage_path
        self._records: list[EventRecord] = []
        self._seen: set[str] = set()

        if storage_path and storage_path.exists():
            self._recover(storage_path)

    def append(self, event: EventRecord) -> None:
        """Add a record. A reused event_id raises ValueError."""
        if event.event_id in self._seen:
            raise ValueError(f"Duplicate event ID: {event.event_id}")
        self._remember(event)
        if self._storage_path:
            with self._storage_path.open("a", encoding="utf-8") as handle:
                handle.write(json.dumps(event.to_dict(), sort_keys=True, ensure_ascii=False))
                handle.write("\n")

    def events(
        self,
        kind: Optional[EventKind] = None,
        member_id: Optional[str] = None,
    ) -> list[EventRecord]:
        """Records in append order, optionally narrowed by kind and member."""
        return list(_select(self._records, kind, member_id))

    def events_since(
        self,
        since_utc: str,
        kind: Optional[EventKind] = None,
    ) -> list[EventRecord]:
        """Records stamped at or after ``since_utc`` (same ISO format)."""
        recent = (e for e in self._records if e.timestamp_utc >= since_utc)
        return list(_select(recent, kind, None))

    @property
    def count(self) -> int:
        return len(self._records)

    @property
    def last_event(self) -> Optional[EventRecord]:
        if not self._records:
            return None
        return self._records[-1]

    def _remember(self, event: EventRecord) -> None:
        self._records.append(event)
        self._seen.add(event.event_id)

    def _recover(self, path: Path) -> None:
        """Reload a JSONL log, refusing replayed or altered lines."""
        with path.open("r", encoding="utf-8") as handle:
            for line_num, raw in enumerate(handle, 1):
                if not raw.strip():
                    continue
                event = EventRecord.from_dict(json.loads(raw))
                if event.event_id in self._seen:
                    raise ValueError(
                        f"Duplicate event ID on recovery (line {line_num}): {event.event_id}"
                    )
                if not event.is_intact:
                    raise ValueError(
                        f"Integrity check failed (line {line_num}): event {event.event_id} "
                        f"does not match its hash {event.event_hash}"
                    )
                self._remember(event)


def _select(
    records: Iterable[EventRecord],
    kind: Optional[EventKind],
    member_id: Optional[str],
) -> Iterable[EventRecord]:
    for record in records:
        if kind is not None and record.event_kind != kind:
            continue
        if member_id is not None and record.member_id != member_id:
            continue
        yield record
