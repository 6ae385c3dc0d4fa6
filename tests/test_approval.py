"""Tests for the approval workflow — proves purchases resolve at most once."""

import threading

import pytest
from datetime import datetime, timezone

from famcoin.economy.approval import AUTO_APPROVER, ApprovalWorkflow, PendingPurchases
from famcoin.economy.ledger import TransactionLedger
from famcoin.errors import AlreadyResolved, InsufficientFunds, InvalidRequest, NotFound
from famcoin.ids import SequentialIds
from famcoin.models.account import Account, AccountMode, AccountSettings
from famcoin.models.ledger import TransactionType
from famcoin.models.purchase import PurchaseRequest, PurchaseStatus


def _now() -> datetime:
    return datetime(2026, 3, 1, 9, 0, 0, tzinfo=timezone.utc)


def _account(
    member_id: str = "liam",
    spending: int = 2000,
    require_approval: bool = True,
    auto_under: int = 500,
) -> Account:
    return Account(
        member_id=member_id,
        member_name=member_id.title(),
        age=10,
        mode=AccountMode.STANDARD,
        balances={"spending": spending, "savings": 0, "investing": 0, "charity": 0},
        settings=AccountSettings(
            auto_split={"spending": 50, "savings": 30, "investing": 10, "charity": 10},
            require_approval=require_approval,
            auto_approve_under_amount=auto_under,
        ),
        total_balance=spending,
    )


def _workflow() -> ApprovalWorkflow:
    ids = SequentialIds()
    return ApprovalWorkflow(TransactionLedger(ids), PendingPurchases(), ids)


class TestRequest:
    def test_small_purchase_auto_approved(self) -> None:
        workflow = _workflow()
        account = _account()
        outcome = workflow.request_purchase(account, "Sticker", 500, now=_now())
        assert outcome.needs_approval is False
        assert outcome.purchase.status == PurchaseStatus.APPROVED
        assert outcome.purchase.auto_approved is True
        assert outcome.purchase.resolved_by == AUTO_APPROVER
        assert account.balances["spending"] == 1500
        assert account.stats.total_spent == 500
        assert outcome.transaction.transaction_type == TransactionType.PURCHASE
        assert len(workflow.queue) == 0

    def test_large_purchase_pending(self) -> None:
        workflow = _workflow()
        account = _account()
        outcome = workflow.request_purchase(account, "Lego set", 1200, category="toys")
        assert outcome.needs_approval is True
        assert outcome.purchase.status == PurchaseStatus.PENDING
        assert outcome.transaction is None
        assert account.balances["spending"] == 2000
        assert outcome.purchase.purchase_id in workflow.queue
        assert workflow.pending("liam") == [outcome.purchase]
        assert workflow.pending("mia") == []

    def test_approval_disabled_always_auto(self) -> None:
        workflow = _workflow()
        account = _account(require_approval=False, auto_under=0)
        outcome = workflow.request_purchase(account, "Bike", 1900)
        assert outcome.needs_approval is False
        assert account.balances["spending"] == 100

    def test_insufficient_funds_creates_nothing(self) -> None:
        workflow = _workflow()
        account = _account(spending=100)
        with pytest.raises(InsufficientFunds):
            workflow.request_purchase(account, "Lego set", 1200)
        assert len(workflow.queue) == 0
        assert account.transactions == []

    def test_item_required(self) -> None:
        with pytest.raises(InvalidRequest, match="item"):
            _workflow().request_purchase(_account(), "  ", 10)

    def test_from_other_sub_account(self) -> None:
        workflow = _workflow()
        account = _account()
        account.balances["charity"] = 300
        account.total_balance += 300
        outcome = workflow.request_purchase(account, "Donation", 300, from_sub_account="charity")
        assert outcome.transaction.details["from"] == "charity"
        assert account.balances["charity"] == 0


class TestApprove:
    def test_approve_debits_once(self) -> None:
        workflow = _workflow()
        account = _account()
        pid = workflow.request_purchase(account, "Lego set", 1200).purchase.purchase_id

        outcome = workflow.approve_purchase(account, pid, "Mum", now=_now())
        assert outcome.purchase.status == PurchaseStatus.APPROVED
        assert outcome.purchase.resolved_by == "Mum"
        assert outcome.transaction.details["approved_by"] == "Mum"
        assert account.balances["spending"] == 800
        assert pid not in workflow.queue
        assert workflow.queue.status_of(pid) == PurchaseStatus.APPROVED

        with pytest.raises(AlreadyResolved):
            workflow.approve_purchase(account, pid, "Dad")
        assert account.balances["spending"] == 800

    def test_approval_rechecks_funds(self) -> None:
        workflow = _workflow()
        account = _account()
        pid = workflow.request_purchase(account, "Lego set", 1200).purchase.purchase_id
        account.balances["spending"] = 1000
        account.total_balance = 1000

        with pytest.raises(InsufficientFunds):
            workflow.approve_purchase(account, pid, "Mum")
        assert workflow.queue.status_of(pid) == PurchaseStatus.PENDING
        assert account.balances["spending"] == 1000

        account.balances["spending"] = 1500
        account.total_balance = 1500
        workflow.approve_purchase(account, pid, "Mum")
        assert account.balances["spending"] == 300

    def test_wrong_member(self) -> None:
        workflow = _workflow()
        liam = _account("liam")
        pid = workflow.request_purchase(liam, "Lego set", 1200).purchase.purchase_id
        with pytest.raises(NotFound, match="does not belong"):
            workflow.approve_purchase(_account("mia"), pid, "Mum")
        assert pid in workflow.queue

    def test_unknown_purchase(self) -> None:
        with pytest.raises(NotFound):
            _workflow().approve_purchase(_account(), "pur_missing", "Mum")

    def test_approver_required(self) -> None:
        with pytest.raises(InvalidRequest, match="Approver"):
            _workflow().approve_purchase(_account(), "pur_x", "")


class TestDeny:
    def test_deny_moves_nothing(self) -> None:
        workflow = _workflow()
        account = _account()
        pid = workflow.request_purchase(account, "Lego set", 1200).purchase.purchase_id
        purchase = workflow.deny_purchase(pid, "Too expensive", denied_by="Dad", now=_now())
        assert purchase.status == PurchaseStatus.DENIED
        assert purchase.denied_reason == "Too expensive"
        assert purchase.resolved_utc == _now()
        assert account.balances["spending"] == 2000
        assert account.transactions == []

    def test_cannot_approve_after_deny(self) -> None:
        workflow = _workflow()
        account = _account()
        pid = workflow.request_purchase(account, "Lego set", 1200).purchase.purchase_id
        workflow.deny_purchase(pid)
        with pytest.raises(AlreadyResolved, match="denied"):
            workflow.approve_purchase(account, pid, "Mum")

    def test_cannot_deny_twice(self) -> None:
        workflow = _workflow()
        pid = workflow.request_purchase(_account(), "Lego set", 1200).purchase.purchase_id
        workflow.deny_purchase(pid)
        with pytest.raises(AlreadyResolved):
            workflow.deny_purchase(pid)


class TestPendingPurchases:
    def _request(self, pid: str, member_id: str = "liam") -> PurchaseRequest:
        return PurchaseRequest(
            purchase_id=pid, member_id=member_id, member_name=member_id.title(),
            item="Book", amount=700, from_sub_account="spending",
        )

    def test_list_oldest_first_and_filter(self) -> None:
        queue = PendingPurchases()
        queue.enqueue(self._request("pur_1", "liam"))
        queue.enqueue(self._request("pur_2", "mia"))
        queue.enqueue(self._request("pur_3", "liam"))
        assert [r.purchase_id for r in queue.list_pending()] == ["pur_1", "pur_2", "pur_3"]
        assert [r.purchase_id for r in queue.list_pending("liam")] == ["pur_1", "pur_3"]

    def test_duplicate_rejected(self) -> None:
        queue = PendingPurchases()
        queue.enqueue(self._request("pur_1"))
        with pytest.raises(InvalidRequest, match="Duplicate"):
            queue.enqueue(self._request("pur_1"))

    def test_only_pending_enqueued(self) -> None:
        request = self._request("pur_1")
        request.status = PurchaseStatus.APPROVED
        with pytest.raises(InvalidRequest):
            PendingPurchases().enqueue(request)

    def test_records_round_trip_keeps_resolution_history(self) -> None:
        queue = PendingPurchases()
        queue.enqueue(self._request("pur_1"))
        queue.enqueue(self._request("pur_2"))
        with queue.resolving("pur_1") as request:
            request.transition_to(PurchaseStatus.DENIED)

        restored = PendingPurchases.from_records(queue.to_records())
        assert "pur_2" in restored
        assert restored.status_of("pur_1") == PurchaseStatus.DENIED
        with pytest.raises(AlreadyResolved):
            restored.get("pur_1")

    def test_concurrent_resolvers_exactly_one_wins(self) -> None:
        workflow = _workflow()
        account = _account()
        pid = workflow.request_purchase(account, "Lego set", 1200).purchase.purchase_id

        barrier = threading.Barrier(8)
        outcomes: list[str] = []
        outcomes_lock = threading.Lock()

        def resolve(i: int) -> None:
            barrier.wait()
            try:
                if i % 2:
                    workflow.approve_purchase(account, pid, f"parent{i}")
                    result = "approved"
                else:
                    workflow.deny_purchase(pid, denied_by=f"parent{i}")
                    result = "denied"
            except AlreadyResolved:
                result = "already_resolved"
            with outcomes_lock:
                outcomes.append(result)

        threads = [threading.Thread(target=resolve, args=(i,)) for i in range(8)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        winners = [o for o in outcomes if o != "already_resolved"]
        assert len(winners) == 1
        assert outcomes.count("already_resolved") == 7
        expected_spending = 800 if winners[0] == "approved" else 2000
        assert account.balances["spending"] == expected_spending
        assert len(account.transactions) == (1 if winners[0] == "approved" else 0)
