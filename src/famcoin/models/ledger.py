"""Ledger models — transactions and receipts.

Both records are immutable once created. Transactions are the source of
truth for what happened to an account; receipts are derived snapshots of
the account at the moment a transaction was recorded, kept for audit
display only.
"""

from __future__ import annotations

import enum
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any


class TransactionType(str, enum.Enum):
    """Classification of ledger transactions."""
    EARNING = "earning"
    TRANSFER = "transfer"
    PURCHASE = "purchase"
    WITHDRAWAL = "withdrawal"
    DEPOSIT = "deposit"
    INTEREST = "interest"


@dataclass(frozen=True)
class Transaction:
    """A single immutable ledger entry.

    ``amount`` is the headline value in minor units (net credit for an
    earning, moved value for a transfer, debit for a purchase or
    withdrawal). ``details`` carries the type-specific breakdown
    (gross/tax/distribution, from/to, approver, and so on).
    """
    transaction_id: str
    transaction_type: TransactionType
    member_id: str
    amount: int
    timestamp_utc: datetime
    details: dict[str, Any] = field(default_factory=dict)
    metadata: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        return {
            "transaction_id": self.transaction_id,
            "transaction_type": self.transaction_type.value,
            "member_id": self.member_id,
            "amount": self.amount,
            "timestamp_utc": self.timestamp_utc.isoformat(),
            "details": dict(self.details),
            "metadata": dict(self.metadata),
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Transaction:
        return cls(
            transaction_id=data["transaction_id"],
            transaction_type=TransactionType(data["transaction_type"]),
            member_id=data["member_id"],
            amount=int(data["amount"]),
            timestamp_utc=datetime.fromisoformat(data["timestamp_utc"]),
            details=dict(data.get("details", {})),
            metadata=dict(data.get("metadata", {})),
        )


@dataclass(frozen=True)
class Receipt:
    """Snapshot of an account taken when a transaction was recorded."""
    receipt_id: str
    transaction_id: str
    transaction_type: TransactionType
    member_id: str
    member_name: str
    balances: dict[str, int]
    total_balance: int
    timestamp_utc: datetime

    def to_dict(self) -> dict[str, Any]:
        return {
            "receipt_id": self.receipt_id,
            "transaction_id": self.transaction_id,
            "transaction_type": self.transaction_type.value,
            "member_id": self.member_id,
            "member_name": self.member_name,
            "balances": dict(self.balances),
            "total_balance": self.total_balance,
            "timestamp_utc": self.timestamp_utc.isoformat(),
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Receipt:
        return cls(
            receipt_id=data["receipt_id"],
            transaction_id=data["transaction_id"],
            transaction_type=TransactionType(data["transaction_type"]),
            member_id=data["member_id"],
            member_name=data["member_name"],
            balances={k: int(v) for k, v in data["balances"].items()},
            total_balance=int(data["total_balance"]),
            timestamp_utc=datetime.fromisoformat(data["timestamp_utc"]),
        )
