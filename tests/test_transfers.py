"""Tests for the transfer engine — proves failed movements leave balances untouched."""

import pytest
from datetime import datetime, timezone
from decimal import Decimal
from pathlib import Path

from famcoin.economy.currency import CurrencyConverter
from famcoin.economy.ledger import TransactionLedger
from famcoin.economy.transfers import TransferEngine
from famcoin.errors import InsufficientFunds, InvalidRequest
from famcoin.ids import SequentialIds
from famcoin.models.account import Account, AccountMode, AccountSettings
from famcoin.models.ledger import TransactionType
from famcoin.policy.resolver import PolicyResolver


CONFIG_DIR = Path(__file__).resolve().parents[1] / "config"


def _now() -> datetime:
    return datetime(2026, 3, 1, 9, 0, 0, tzinfo=timezone.utc)


def _account(spending: int = 500, savings: int = 200, rate: int = 5) -> Account:
    return Account(
        member_id="liam",
        member_name="Liam",
        age=10,
        mode=AccountMode.STANDARD,
        balances={"spending": spending, "savings": savings, "investing": 0, "charity": 0},
        settings=AccountSettings(
            auto_split={"spending": 50, "savings": 30, "investing": 10, "charity": 10},
            interest_rate_percent=rate,
        ),
        total_balance=spending + savings,
    )


@pytest.fixture
def engine() -> TransferEngine:
    resolver = PolicyResolver.from_config_dir(CONFIG_DIR)
    return TransferEngine(CurrencyConverter(resolver), TransactionLedger(SequentialIds()))


class TestTransfer:
    def test_moves_value_total_unchanged(self, engine: TransferEngine) -> None:
        account = _account()
        outcome = engine.transfer(account, "spending", "savings", 100, now=_now())
        assert account.balances["spending"] == 400
        assert account.balances["savings"] == 300
        assert account.total_balance == 700
        assert outcome.transaction.transaction_type == TransactionType.TRANSFER
        assert outcome.transaction.details == {"from": "spending", "to": "savings"}
        assert account.stats.total_saved == 100

    def test_exact_balance_allowed(self, engine: TransferEngine) -> None:
        account = _account()
        engine.transfer(account, "savings", "charity", 200)
        assert account.balances["savings"] == 0
        assert account.stats.total_donated == 200

    def test_insufficient_funds_is_atomic(self, engine: TransferEngine) -> None:
        account = _account()
        before = dict(account.balances)
        with pytest.raises(InsufficientFunds) as exc:
            engine.transfer(account, "savings", "spending", 201)
        assert exc.value.balance == 200
        assert exc.value.needed == 201
        assert account.balances == before
        assert account.transactions == []

    def test_self_transfer_rejected(self, engine: TransferEngine) -> None:
        with pytest.raises(InvalidRequest, match="itself"):
            engine.transfer(_account(), "spending", "spending", 10)

    def test_unknown_sub_account(self, engine: TransferEngine) -> None:
        with pytest.raises(InvalidRequest, match="Unknown sub-account"):
            engine.transfer(_account(), "spending", "college_fund", 10)

    @pytest.mark.parametrize("amount", [0, -5, True, "10"])
    def test_bad_amount(self, engine: TransferEngine, amount) -> None:
        with pytest.raises(InvalidRequest):
            engine.transfer(_account(), "spending", "savings", amount)


class TestWithdraw:
    def test_withdraw_from_spending(self, engine: TransferEngine) -> None:
        account = _account()
        outcome = engine.withdraw(account, 250, method="cash", purpose="ice cream", now=_now())
        assert account.balances["spending"] == 250
        assert account.total_balance == 450
        assert outcome.display_amount == Decimal("2.50")
        assert outcome.transaction.details["purpose"] == "ice cream"

    def test_cannot_withdraw_savings(self, engine: TransferEngine) -> None:
        account = _account(spending=0, savings=900)
        with pytest.raises(InsufficientFunds, match="spending"):
            engine.withdraw(account, 100)
        assert account.total_balance == 900


class TestDeposit:
    def test_deposit_default_spending(self, engine: TransferEngine) -> None:
        account = _account(spending=0, savings=0)
        outcome = engine.deposit(account, 300, reason="birthday", deposited_by="Grandma")
        assert account.balances["spending"] == 300
        assert account.total_balance == 300
        assert outcome.transaction.details["deposited_by"] == "Grandma"

    def test_deposit_to_savings(self, engine: TransferEngine) -> None:
        account = _account(spending=0, savings=0)
        engine.deposit(account, 300, to_sub_account="savings")
        assert account.balances["savings"] == 300
        assert account.stats.total_saved == 300

    def test_deposit_unknown_target(self, engine: TransferEngine) -> None:
        account = _account()
        with pytest.raises(InvalidRequest):
            engine.deposit(account, 100, to_sub_account="piggy")
        assert account.total_balance == 700


class TestInterest:
    def test_interest_floors(self, engine: TransferEngine) -> None:
        account = _account(spending=0, savings=1000, rate=5)
        outcome = engine.apply_interest(account, now=_now())
        assert outcome.interest_earned == 50
        assert outcome.new_savings_balance == 1050
        assert account.total_balance == 1050
        assert outcome.transaction.transaction_type == TransactionType.INTEREST
        assert outcome.transaction.details == {"rate_percent": 5, "principal": 1000}

    def test_small_savings_is_noop(self, engine: TransferEngine) -> None:
        account = _account(spending=0, savings=19, rate=5)
        outcome = engine.apply_interest(account)
        assert outcome.is_noop
        assert outcome.transaction is None
        assert account.balances["savings"] == 19
        assert account.transactions == []

    def test_zero_rate_is_noop(self, engine: TransferEngine) -> None:
        outcome = engine.apply_interest(_account(savings=10_000, rate=0))
        assert outcome.is_noop

    def test_simple_account_without_savings(self, engine: TransferEngine) -> None:
        account = Account(
            member_id="mia", member_name="Mia", age=5, mode=AccountMode.SIMPLE,
            balances={"spending": 100},
            settings=AccountSettings(auto_split={"spending": 100}),
            total_balance=100,
        )
        outcome = engine.apply_interest(account)
        assert outcome.is_noop
        assert outcome.new_savings_balance == 0
