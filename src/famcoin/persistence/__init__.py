"""Persistence — audit event log and account state store."""

from famcoin.persistence.event_log import EventKind, EventLog, EventRecord
from famcoin.persistence.state_store import StateStore

__all__ = ["EventKind", "EventLog", "EventRecord", "StateStore"]
