"""Account models — a member's balances, settings and running stats.

Balances are integers in virtual-currency minor units. Fractional units
never exist.

Invariants maintained by the engines (verified by the service layer):
- total_balance == sum(balances.values())
- every balance >= 0
- sum(settings.auto_split.values()) == 100 for non-simple accounts
"""

from __future__ import annotations

import enum
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Optional

from famcoin.models.ledger import Receipt, Transaction


SPENDING = "spending"
SAVINGS = "savings"
INVESTING = "investing"
CHARITY = "charity"


class AccountMode(str, enum.Enum):
    """Age-appropriate account complexity.

    SIMPLE accounts collapse to a single spending sub-account.
    """
    SIMPLE = "simple"
    STANDARD = "standard"
    ADVANCED = "advanced"


@dataclass
class AccountSettings:
    """Per-account policy knobs, editable by a parent."""
    auto_split: dict[str, int]
    interest_rate_percent: int = 5
    tax_rate_percent: int = 0
    spending_limit: Optional[int] = None
    require_approval: bool = True
    auto_approve_under_amount: int = 500

    def to_dict(self) -> dict[str, Any]:
        return {
            "auto_split": dict(self.auto_split),
            "interest_rate_percent": self.interest_rate_percent,
            "tax_rate_percent": self.tax_rate_percent,
            "spending_limit": self.spending_limit,
            "require_approval": self.require_approval,
            "auto_approve_under_amount": self.auto_approve_under_amount,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> AccountSettings:
        return cls(
            auto_split={k: int(v) for k, v in data["auto_split"].items()},
            interest_rate_percent=int(data["interest_rate_percent"]),
            tax_rate_percent=int(data["tax_rate_percent"]),
            spending_limit=data.get("spending_limit"),
            require_approval=bool(data["require_approval"]),
            auto_approve_under_amount=int(data["auto_approve_under_amount"]),
        )


@dataclass
class AccountStats:
    """Lifetime counters. Informational; not part of the balance invariant."""
    total_earned: int = 0
    total_spent: int = 0
    total_saved: int = 0
    total_donated: int = 0
    total_taxes_paid: int = 0

    def record_credit(self, sub_account: str, amount: int) -> None:
        """Bump saved/donated counters for a credit landing in a sub-account."""
        if sub_account == SAVINGS:
            self.total_saved += amount
        elif sub_account == CHARITY:
            self.total_donated += amount

    def to_dict(self) -> dict[str, int]:
        return {
            "total_earned": self.total_earned,
            "total_spent": self.total_spent,
            "total_saved": self.total_saved,
            "total_donated": self.total_donated,
            "total_taxes_paid": self.total_taxes_paid,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> AccountStats:
        return cls(**{k: int(v) for k, v in data.items()})


@dataclass
class Account:
    """A member's banking account.

    Mutable — changed exclusively by the economy engines. ``transactions``
    and ``receipts`` are most-recent-first and append-only.
    """
    member_id: str
    member_name: str
    age: int
    mode: AccountMode
    balances: dict[str, int]
    settings: AccountSettings
    total_balance: int = 0
    transactions: list[Transaction] = field(default_factory=list)
    receipts: list[Receipt] = field(default_factory=list)
    stats: AccountStats = field(default_factory=AccountStats)
    created_utc: Optional[datetime] = None

    def has_sub_account(self, name: str) -> bool:
        return name in self.balances

    def balance_of(self, name: str) -> int:
        """Balance of a sub-account; absent sub-accounts read as zero."""
        return self.balances.get(name, 0)

    def invariant_errors(self) -> list[str]:
        """Return balance-invariant violations (empty = books balance)."""
        errors: list[str] = []
        total = sum(self.balances.values())
        if total != self.total_balance:
            errors.append(
                f"total_balance {self.total_balance} != sum(balances) {total} "
                f"for {self.member_id}"
            )
        for name, value in self.balances.items():
            if value < 0:
                errors.append(f"Negative balance in {name}: {value}")
        split = self.settings.auto_split
        if set(split) != set(self.balances):
            errors.append(f"auto_split keys {sorted(split)} do not match balances")
        elif sum(split.values()) != 100:
            errors.append(f"auto_split sums to {sum(split.values())}, not 100")
        return errors

    def to_dict(self) -> dict[str, Any]:
        return {
            "member_id": self.member_id,
            "member_name": self.member_name,
            "age": self.age,
            "mode": self.mode.value,
            "total_balance": self.total_balance,
            "balances": dict(self.balances),
            "settings": self.settings.to_dict(),
            "transactions": [t.to_dict() for t in self.transactions],
            "receipts": [r.to_dict() for r in self.receipts],
            "stats": self.stats.to_dict(),
            "created_utc": self.created_utc.isoformat() if self.created_utc else None,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Account:
        return cls(
            member_id=data["member_id"],
            member_name=data["member_name"],
            age=int(data["age"]),
            mode=AccountMode(data["mode"]),
            # JSON objects keep insertion order, so allocation order survives a round trip
            balances={k: int(v) for k, v in data["balances"].items()},
            settings=AccountSettings.from_dict(data["settings"]),
            total_balance=int(data["total_balance"]),
            transactions=[Transaction.from_dict(t) for t in data.get("transactions", [])],
            receipts=[Receipt.from_dict(r) for r in data.get("receipts", [])],
            stats=AccountStats.from_dict(data.get("stats", {})),
            created_utc=(
                datetime.fromisoformat(data["created_utc"])
                if data.get("created_utc") else None
            ),
        )
