"""Transaction ledger — append-only per-account history with receipts.

Every committed transaction is prepended to ``account.transactions`` and
paired with a receipt that snapshots the account's balances at that
moment. Nothing here ever edits or removes an existing entry.

Receipt ids come from the injected id generator, so two receipts
recorded in the same instant never collide.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Generic, Optional, Sequence, TypeVar

from famcoin.errors import InvalidRequest, NotFound
from famcoin.ids import IdGenerator, random_id
from famcoin.models.account import Account
from famcoin.models.ledger import Receipt, Transaction, TransactionType


T = TypeVar("T")


@dataclass(frozen=True)
class LedgerPage(Generic[T]):
    """One most-recent-first page of ledger entries."""
    items: list[T]
    total: int
    limit: int
    offset: int

    @property
    def has_more(self) -> bool:
        return self.offset + len(self.items) < self.total


class TransactionLedger:
    """Records transactions and derives receipts.

    Usage:
        ledger = TransactionLedger()
        txn = ledger.new_transaction(account, TransactionType.DEPOSIT, 100)
        receipt = ledger.record(account, txn)
        page = ledger.transactions(account, limit=20)
    """

    def __init__(self, id_generator: IdGenerator = random_id) -> None:
        self._ids = id_generator

    def new_transaction(
        self,
        account: Account,
        transaction_type: TransactionType,
        amount: int,
        details: Optional[dict] = None,
        metadata: Optional[dict] = None,
        transaction_id: Optional[str] = None,
        now: Optional[datetime] = None,
    ) -> Transaction:
        """Build (but do not record) a transaction for ``account``."""
        if now is None:
            now = datetime.now(timezone.utc)
        return Transaction(
            transaction_id=transaction_id or self._ids("txn"),
            transaction_type=transaction_type,
            member_id=account.member_id,
            amount=amount,
            timestamp_utc=now,
            details=dict(details or {}),
            metadata=dict(metadata or {}),
        )

    def record(
        self,
        account: Account,
        transaction: Transaction,
        now: Optional[datetime] = None,
    ) -> Receipt:
        """Append a transaction and its receipt to the account history.

        Must be called after the balances have been mutated so the
        receipt captures the post-transaction state.
        """
        if transaction.member_id != account.member_id:
            raise InvalidRequest(
                f"Transaction {transaction.transaction_id} belongs to "
                f"{transaction.member_id}, not {account.member_id}"
            )
        if now is None:
            now = transaction.timestamp_utc
        receipt = Receipt(
            receipt_id=self._ids("rct"),
            transaction_id=transaction.transaction_id,
            transaction_type=transaction.transaction_type,
            member_id=account.member_id,
            member_name=account.member_name,
            balances=dict(account.balances),
            total_balance=account.total_balance,
            timestamp_utc=now,
        )
        account.transactions.insert(0, transaction)
        account.receipts.insert(0, receipt)
        return receipt

    def transactions(
        self,
        account: Account,
        limit: int = 50,
        offset: int = 0,
        transaction_type: Optional[TransactionType] = None,
    ) -> LedgerPage[Transaction]:
        entries: Sequence[Transaction] = account.transactions
        if transaction_type is not None:
            entries = [t for t in entries if t.transaction_type == transaction_type]
        return _page(entries, limit, offset)

    def receipts(
        self,
        account: Account,
        limit: int = 50,
        offset: int = 0,
    ) -> LedgerPage[Receipt]:
        return _page(account.receipts, limit, offset)

    def find_transaction(self, account: Account, transaction_id: str) -> Transaction:
        for txn in account.transactions:
            if txn.transaction_id == transaction_id:
                return txn
        raise NotFound(f"Unknown transaction {transaction_id} for {account.member_id}")

    def receipt_for(self, account: Account, transaction_id: str) -> Receipt:
        for receipt in account.receipts:
            if receipt.transaction_id == transaction_id:
                return receipt
        raise NotFound(f"No receipt for transaction {transaction_id}")


def _page(entries: Sequence[T], limit: int, offset: int) -> LedgerPage[T]:
    if limit <= 0:
        raise InvalidRequest(f"limit must be positive, got {limit}")
    if offset < 0:
        raise InvalidRequest(f"offset must be non-negative, got {offset}")
    return LedgerPage(
        items=list(entries[offset:offset + limit]),
        total=len(entries),
        limit=limit,
        offset=offset,
    )
