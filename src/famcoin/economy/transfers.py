"""Transfer engine — moves, withdrawals, deposits and savings interest.

Every operation checks all of its preconditions before touching the
account, so a failure (insufficient funds, unknown sub-account,
non-positive amount) leaves balances exactly as they were.

Conservation:
- transfer: total unchanged, value moves between two sub-accounts
- withdraw: spending and total both drop by amount
- deposit: target sub-account and total both rise by amount
- interest: savings and total both rise by the earned amount
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from typing import Optional

from famcoin.economy.checks import require_positive_amount, require_sub_account
from famcoin.economy.currency import CurrencyConverter
from famcoin.economy.ledger import TransactionLedger
from famcoin.errors import InsufficientFunds, InvalidRequest
from famcoin.models.account import SAVINGS, SPENDING, Account
from famcoin.models.ledger import Receipt, Transaction, TransactionType


@dataclass(frozen=True)
class LedgerOutcome:
    """A committed transaction and its receipt."""
    transaction: Transaction
    receipt: Receipt


@dataclass(frozen=True)
class WithdrawalOutcome(LedgerOutcome):
    display_amount: Decimal


@dataclass(frozen=True)
class InterestOutcome:
    """Result of an interest run. ``transaction`` is None for a no-op."""
    interest_earned: int
    new_savings_balance: int
    transaction: Optional[Transaction] = None
    receipt: Optional[Receipt] = None

    @property
    def is_noop(self) -> bool:
        return self.interest_earned == 0


class TransferEngine:
    """Value movements within a single account.

    Usage:
        engine = TransferEngine(converter, ledger)
        engine.transfer(account, "spending", "savings", 100)
        engine.withdraw(account, 250, method="cash")
        engine.apply_interest(account)
    """

    def __init__(self, converter: CurrencyConverter, ledger: TransactionLedger) -> None:
        self._converter = converter
        self._ledger = ledger

    def transfer(
        self,
        account: Account,
        from_sub_account: str,
        to_sub_account: str,
        amount: int,
        now: Optional[datetime] = None,
    ) -> LedgerOutcome:
        require_positive_amount(amount)
        require_sub_account(account, from_sub_account)
        require_sub_account(account, to_sub_account)
        if from_sub_account == to_sub_account:
            raise InvalidRequest("Cannot transfer a sub-account into itself")
        self._require_funds(account, from_sub_account, amount)

        account.balances[from_sub_account] -= amount
        account.balances[to_sub_account] += amount
        account.stats.record_credit(to_sub_account, amount)

        txn = self._ledger.new_transaction(
            account,
            TransactionType.TRANSFER,
            amount,
            details={"from": from_sub_account, "to": to_sub_account},
            now=now,
        )
        return LedgerOutcome(transaction=txn, receipt=self._ledger.record(account, txn))

    def withdraw(
        self,
        account: Account,
        amount: int,
        method: str = "cash",
        purpose: Optional[str] = None,
        now: Optional[datetime] = None,
    ) -> WithdrawalOutcome:
        """Cash out from the spending sub-account into real money."""
        require_positive_amount(amount)
        self._require_funds(account, SPENDING, amount)

        account.balances[SPENDING] -= amount
        account.total_balance -= amount
        display_amount = self._converter.to_display(amount)

        txn = self._ledger.new_transaction(
            account,
            TransactionType.WITHDRAWAL,
            amount,
            details={
                "display_amount": str(display_amount),
                "method": method or "cash",
                "purpose": purpose,
            },
            now=now,
        )
        receipt = self._ledger.record(account, txn)
        return WithdrawalOutcome(
            transaction=txn, receipt=receipt, display_amount=display_amount,
        )

    def deposit(
        self,
        account: Account,
        amount: int,
        to_sub_account: str = SPENDING,
        reason: Optional[str] = None,
        deposited_by: Optional[str] = None,
        now: Optional[datetime] = None,
    ) -> LedgerOutcome:
        """External credit (e.g. a parent top-up). No sufficiency check."""
        require_positive_amount(amount)
        require_sub_account(account, to_sub_account)

        account.balances[to_sub_account] += amount
        account.total_balance += amount
        account.stats.record_credit(to_sub_account, amount)

        txn = self._ledger.new_transaction(
            account,
            TransactionType.DEPOSIT,
            amount,
            details={
                "to": to_sub_account,
                "display_amount": str(self._converter.to_display(amount)),
                "reason": reason,
                "deposited_by": deposited_by,
            },
            now=now,
        )
        return LedgerOutcome(transaction=txn, receipt=self._ledger.record(account, txn))

    def apply_interest(
        self,
        account: Account,
        now: Optional[datetime] = None,
    ) -> InterestOutcome:
        """Credit floor(savings * rate / 100) to savings.

        Zero interest (empty savings, zero rate, simple-mode account) is a
        no-op outcome, not an error.
        """
        principal = account.balance_of(SAVINGS)
        rate = account.settings.interest_rate_percent
        earned = principal * rate // 100
        if earned <= 0:
            return InterestOutcome(interest_earned=0, new_savings_balance=principal)

        account.balances[SAVINGS] += earned
        account.total_balance += earned
        account.stats.total_earned += earned
        account.stats.record_credit(SAVINGS, earned)

        txn = self._ledger.new_transaction(
            account,
            TransactionType.INTEREST,
            earned,
            details={"rate_percent": rate, "principal": principal},
            now=now,
        )
        receipt = self._ledger.record(account, txn)
        return InterestOutcome(
            interest_earned=earned,
            new_savings_balance=account.balances[SAVINGS],
            transaction=txn,
            receipt=receipt,
        )

    @staticmethod
    def _require_funds(account: Account, sub_account: str, amount: int) -> None:
        balance = account.balance_of(sub_account)
        if balance < amount:
            raise InsufficientFunds(sub_account, balance, amount)
