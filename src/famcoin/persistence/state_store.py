"""State store — owns member accounts and the shared pending-purchase queue.

The store is injected into the service; nothing in the engine keeps a
process-wide registry. Without a storage path the store is purely
in-memory. With one, ``flush()`` writes a JSON snapshot atomically
(temp file + rename) and construction reloads it.

Expected wrapper pattern for callers: load-or-create the account, run
the operation, save (the service does this on every mutation).
"""

from __future__ import annotations

import json
import logging
import os
from pathlib import Path
from typing import Any, Iterator, Optional

from famcoin.economy.approval import PendingPurchases
from famcoin.models.account import Account

logger = logging.getLogger(__name__)

SCHEMA_VERSION = 1


class StateStore:
    """Account and pending-purchase storage with optional JSON persistence."""

    def __init__(self, storage_path: Optional[Path] = None) -> None:
        self._storage_path = storage_path
        self._accounts: dict[str, Account] = {}
        self._pending = PendingPurchases()

        if storage_path and storage_path.exists():
            self._load_from_file(storage_path)

    @property
    def pending(self) -> PendingPurchases:
        return self._pending

    @property
    def is_durable(self) -> bool:
        return self._storage_path is not None

    def get_account(self, member_id: str) -> Optional[Account]:
        return self._accounts.get(member_id)

    def save_account(self, account: Account) -> None:
        self._accounts[account.member_id] = account

    def accounts(self) -> Iterator[Account]:
        return iter(list(self._accounts.values()))

    def __contains__(self, member_id: object) -> bool:
        return member_id in self._accounts

    def __len__(self) -> int:
        return len(self._accounts)

    def flush(self) -> None:
        """Write the current state to disk (no-op for in-memory stores)."""
        if self._storage_path is None:
            return
        snapshot = {
            "schema_version": SCHEMA_VERSION,
            "accounts": [a.to_dict() for a in self._accounts.values()],
            "purchases": self._pending.to_records(),
        }
        self._storage_path.parent.mkdir(parents=True, exist_ok=True)
        tmp_path = self._storage_path.with_suffix(self._storage_path.suffix + ".tmp")
        try:
            with tmp_path.open("w", encoding="utf-8") as handle:
                json.dump(snapshot, handle, indent=2, sort_keys=False)
            os.replace(tmp_path, self._storage_path)
        finally:
            if tmp_path.exists():
                tmp_path.unlink()

    def _load_from_file(self, path: Path) -> None:
        with path.open("r", encoding="utf-8") as handle:
            data: dict[str, Any] = json.load(handle)
        version = data.get("schema_version")
        if version != SCHEMA_VERSION:
            raise ValueError(
                f"Unsupported state schema version {version} in {path}"
            )
        for record in data.get("accounts", []):
            account = Account.from_dict(record)
            errors = account.invariant_errors()
            if errors:
                raise ValueError(
                    f"Corrupt account {account.member_id} in {path}: {'; '.join(errors)}"
                )
            self._accounts[account.member_id] = account
        self._pending = PendingPurchases.from_records(data.get("purchases", {}))
        logger.info(
            "Loaded %d accounts and %d pending purchases from %s",
            len(self._accounts), len(self._pending), path,
        )
