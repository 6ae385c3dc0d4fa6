"""Allocation engine — tax withholding and proportional split of earnings.

For a gross earning:

    tax   = gross * tax_rate_percent // 100
    net   = gross - tax
    share = net * percentage // 100        (per sub-account, balances order)

Flooring each share can leave a residual ``net - sum(shares)`` of up to
(number of sub-accounts - 1) units. The residual policy decides where it
goes:

- ``largest_remainder``: one unit each to the sub-accounts with the
  largest fractional remainders, ties broken by balances order. The
  distribution sums exactly to net.
- ``drop``: the residual is never credited. The account is credited with
  sum(shares) and the residual is recorded on the transaction.

Either way total_balance stays equal to sum(balances). All arithmetic is
integer; there is no floating point in this module.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Any, Optional

from famcoin.economy.checks import (
    require_metadata,
    require_positive_amount,
    validate_split,
)
from famcoin.economy.ledger import TransactionLedger
from famcoin.models.account import Account, AccountSettings
from famcoin.models.ledger import Receipt, Transaction, TransactionType
from famcoin.policy.resolver import RESIDUAL_LARGEST_REMAINDER, PolicyResolver


@dataclass(frozen=True)
class Allocation:
    """Result of splitting one gross earning.

    Invariant: credited == sum(distribution.values()) == net - residual
    """
    gross: int
    tax: int
    net: int
    distribution: dict[str, int]
    residual: int
    residual_policy: str

    @property
    def credited(self) -> int:
        return self.net - self.residual


@dataclass(frozen=True)
class EarningOutcome:
    allocation: Allocation
    transaction: Transaction
    receipt: Receipt


class AllocationEngine:
    """Splits earnings across sub-accounts.

    Usage:
        engine = AllocationEngine(resolver, ledger)
        outcome = engine.earn(account, action="task_complete")
        outcome.allocation.distribution   # {"spending": 25, ...}
    """

    def __init__(self, resolver: PolicyResolver, ledger: TransactionLedger) -> None:
        self._resolver = resolver
        self._ledger = ledger

    def resolve_gross(
        self,
        action: Optional[str],
        custom_amount: Optional[int] = None,
    ) -> int:
        """Gross amount for an earning: custom amount, else the action's rate."""
        if custom_amount is not None:
            return require_positive_amount(custom_amount, "custom_amount")
        return self._resolver.earning_rate(action or "")

    def allocate(
        self,
        settings: AccountSettings,
        sub_accounts: list[str],
        gross: int,
    ) -> Allocation:
        """Compute tax, net and the per-sub-account distribution. Pure."""
        require_positive_amount(gross, "gross")
        validate_split(settings.auto_split, sub_accounts)

        tax = gross * settings.tax_rate_percent // 100
        net = gross - tax

        distribution: dict[str, int] = {}
        remainders: list[tuple[int, int, str]] = []
        for order, name in enumerate(sub_accounts):
            scaled = net * settings.auto_split[name]
            distribution[name] = scaled // 100
            remainders.append((scaled % 100, order, name))

        residual = net - sum(distribution.values())
        policy = self._resolver.residual_policy()
        if policy == RESIDUAL_LARGEST_REMAINDER and residual > 0:
            remainders.sort(key=lambda r: (-r[0], r[1]))
            for _, _, name in remainders[:residual]:
                distribution[name] += 1
            residual = 0

        return Allocation(
            gross=gross,
            tax=tax,
            net=net,
            distribution=distribution,
            residual=residual,
            residual_policy=policy,
        )

    def apply(self, account: Account, allocation: Allocation) -> None:
        """Credit an allocation to the account. Purely additive."""
        for name, share in allocation.distribution.items():
            account.balances[name] += share
            account.stats.record_credit(name, share)
        account.total_balance += allocation.credited
        account.stats.total_earned += allocation.credited
        account.stats.total_taxes_paid += allocation.tax

    def earn(
        self,
        account: Account,
        action: Optional[str] = None,
        custom_amount: Optional[int] = None,
        metadata: Optional[dict[str, Any]] = None,
        now: Optional[datetime] = None,
    ) -> EarningOutcome:
        """Award coins for an action (or a custom amount) and log an earning."""
        require_metadata(metadata)
        gross = self.resolve_gross(action, custom_amount)
        allocation = self.allocate(account.settings, list(account.balances), gross)
        self.apply(account, allocation)

        txn = self._ledger.new_transaction(
            account,
            TransactionType.EARNING,
            allocation.credited,
            details={
                "action": action,
                "gross_amount": allocation.gross,
                "tax_amount": allocation.tax,
                "net_amount": allocation.net,
                "distribution": dict(allocation.distribution),
                "residual": allocation.residual,
                "residual_policy": allocation.residual_policy,
            },
            metadata=metadata,
            now=now,
        )
        receipt = self._ledger.record(account, txn)
        return EarningOutcome(allocation=allocation, transaction=txn, receipt=receipt)
