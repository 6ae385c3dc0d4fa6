"""Approval workflow — purchase requests, auto-approval and parent review.

Flow:
    request_purchase
        ├── sufficiency check fails      → InsufficientFunds, nothing created
        ├── auto-approve                 → APPROVED synchronously, never pending
        └── manual approval required     → PENDING, enqueued in PendingPurchases
    approve_purchase (PENDING → APPROVED)  funds re-checked, debited, logged
    deny_purchase    (PENDING → DENIED)    nothing moves, nothing logged

Auto-approval applies when the account does not require approval, or the
amount is at or under ``auto_approve_under_amount``.

The pending collection is shared across accounts and is the only
cross-account state in the engine, so it carries its own lock. Resolution
happens under that lock: of two racing resolvers exactly one wins, and the
other gets AlreadyResolved. A resolver that fails part way (for example,
funds drifted below the amount since the request) leaves the request
pending.
"""

from __future__ import annotations

import logging
import threading
from contextlib import contextmanager
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Iterator, Optional

from famcoin.economy.checks import require_positive_amount, require_sub_account
from famcoin.economy.ledger import TransactionLedger
from famcoin.errors import (
    AlreadyResolved,
    InsufficientFunds,
    InvalidRequest,
    NotFound,
)
from famcoin.ids import IdGenerator, random_id
from famcoin.models.account import SPENDING, Account
from famcoin.models.ledger import Receipt, Transaction, TransactionType
from famcoin.models.purchase import PurchaseRequest, PurchaseStatus

logger = logging.getLogger(__name__)

AUTO_APPROVER = "auto"


class PendingPurchases:
    """Thread-safe collection of purchase requests awaiting a parent.

    Remembers the final status of every request it has resolved so a late
    second resolver is told AlreadyResolved rather than NotFound.
    """

    def __init__(self) -> None:
        self._pending: dict[str, PurchaseRequest] = {}
        self._resolved: dict[str, PurchaseStatus] = {}
        self._lock = threading.RLock()

    def enqueue(self, request: PurchaseRequest) -> None:
        if request.status != PurchaseStatus.PENDING:
            raise InvalidRequest(f"Only pending requests can be queued: {request.purchase_id}")
        with self._lock:
            if request.purchase_id in self._pending or request.purchase_id in self._resolved:
                raise InvalidRequest(f"Duplicate purchase ID: {request.purchase_id}")
            self._pending[request.purchase_id] = request

    def get(self, purchase_id: str) -> PurchaseRequest:
        with self._lock:
            return self._lookup(purchase_id)

    def list_pending(self, member_id: Optional[str] = None) -> list[PurchaseRequest]:
        """Pending requests, oldest first, optionally for one member."""
        with self._lock:
            requests = list(self._pending.values())
        if member_id is not None:
            requests = [r for r in requests if r.member_id == member_id]
        return requests

    def status_of(self, purchase_id: str) -> Optional[PurchaseStatus]:
        with self._lock:
            if purchase_id in self._pending:
                return PurchaseStatus.PENDING
            return self._resolved.get(purchase_id)

    @contextmanager
    def resolving(self, purchase_id: str) -> Iterator[PurchaseRequest]:
        """Hold the lock while a resolver works on a pending request.

        The request leaves the collection only if the body finishes with
        the request in a terminal state. If the body raises, the request
        stays pending and the error propagates.
        """
        with self._lock:
            request = self._lookup(purchase_id)
            yield request
            if request.is_resolved:
                del self._pending[purchase_id]
                self._resolved[purchase_id] = request.status

    def __len__(self) -> int:
        with self._lock:
            return len(self._pending)

    def __contains__(self, purchase_id: object) -> bool:
        with self._lock:
            return purchase_id in self._pending

    def to_records(self) -> dict[str, Any]:
        """Serialise pending requests and resolution history."""
        with self._lock:
            return {
                "pending": [r.to_dict() for r in self._pending.values()],
                "resolved": {pid: s.value for pid, s in self._resolved.items()},
            }

    @classmethod
    def from_records(cls, records: dict[str, Any]) -> PendingPurchases:
        queue = cls()
        for data in records.get("pending", []):
            queue.enqueue(PurchaseRequest.from_dict(data))
        for pid, status in records.get("resolved", {}).items():
            queue._resolved[pid] = PurchaseStatus(status)
        return queue

    def _lookup(self, purchase_id: str) -> PurchaseRequest:
        if purchase_id in self._resolved:
            raise AlreadyResolved(
                f"Purchase {purchase_id} already {self._resolved[purchase_id].value}"
            )
        request = self._pending.get(purchase_id)
        if request is None:
            raise NotFound(f"Purchase not found: {purchase_id}")
        return request


@dataclass(frozen=True)
class PurchaseOutcome:
    """Result of a request or approval.

    ``transaction`` and ``receipt`` are set once funds have moved, i.e. for
    auto-approved requests and explicit approvals.
    """
    purchase: PurchaseRequest
    needs_approval: bool
    transaction: Optional[Transaction] = None
    receipt: Optional[Receipt] = None


class ApprovalWorkflow:
    """Gates spending behind parent approval.

    Usage:
        workflow = ApprovalWorkflow(ledger, pending)
        outcome = workflow.request_purchase(account, "Lego set", 1200)
        if outcome.needs_approval:
            workflow.approve_purchase(account, outcome.purchase.purchase_id, "Mum")
    """

    def __init__(
        self,
        ledger: TransactionLedger,
        pending: PendingPurchases,
        id_generator: IdGenerator = random_id,
    ) -> None:
        self._ledger = ledger
        self._pending = pending
        self._ids = id_generator

    @property
    def queue(self) -> PendingPurchases:
        return self._pending

    def pending(self, member_id: Optional[str] = None) -> list[PurchaseRequest]:
        """Requests awaiting a parent, oldest first."""
        return self._pending.list_pending(member_id)

    def should_auto_approve(self, account: Account, amount: int) -> bool:
        settings = account.settings
        return (
            not settings.require_approval
            or amount <= settings.auto_approve_under_amount
        )

    def request_purchase(
        self,
        account: Account,
        item: str,
        amount: int,
        from_sub_account: str = SPENDING,
        category: Optional[str] = None,
        now: Optional[datetime] = None,
    ) -> PurchaseOutcome:
        if not item or not str(item).strip():
            raise InvalidRequest("Purchase item is required")
        require_positive_amount(amount)
        require_sub_account(account, from_sub_account)
        self._require_funds(account, from_sub_account, amount)
        if now is None:
            now = datetime.now(timezone.utc)

        purchase = PurchaseRequest(
            purchase_id=self._ids("pur"),
            member_id=account.member_id,
            member_name=account.member_name,
            item=str(item).strip(),
            amount=amount,
            from_sub_account=from_sub_account,
            category=category,
            requested_utc=now,
        )

        if self.should_auto_approve(account, amount):
            purchase.auto_approved = True
            txn, receipt = self._execute(account, purchase, AUTO_APPROVER, now)
            logger.info(
                "Auto-approved purchase %s for %s: %s (%d)",
                purchase.purchase_id, account.member_id, purchase.item, amount,
            )
            return PurchaseOutcome(
                purchase=purchase, needs_approval=False,
                transaction=txn, receipt=receipt,
            )

        self._pending.enqueue(purchase)
        logger.info(
            "Purchase %s for %s pending approval: %s (%d)",
            purchase.purchase_id, account.member_id, purchase.item, amount,
        )
        return PurchaseOutcome(purchase=purchase, needs_approval=True)

    def approve_purchase(
        self,
        account: Account,
        purchase_id: str,
        approver: str,
        now: Optional[datetime] = None,
    ) -> PurchaseOutcome:
        """Approve a pending request and debit the account.

        Funds are re-checked here: the balance may have dropped since the
        request was queued. On InsufficientFunds the request stays pending.
        """
        if not approver:
            raise InvalidRequest("Approver identity is required")
        if now is None:
            now = datetime.now(timezone.utc)
        with self._pending.resolving(purchase_id) as purchase:
            if purchase.member_id != account.member_id:
                raise NotFound(
                    f"Purchase {purchase_id} does not belong to {account.member_id}"
                )
            txn, receipt = self._execute(account, purchase, approver, now)
        logger.info(
            "Purchase %s approved by %s for %s", purchase_id, approver, account.member_id,
        )
        return PurchaseOutcome(
            purchase=purchase, needs_approval=False,
            transaction=txn, receipt=receipt,
        )

    def deny_purchase(
        self,
        purchase_id: str,
        reason: Optional[str] = None,
        denied_by: Optional[str] = None,
        now: Optional[datetime] = None,
    ) -> PurchaseRequest:
        """Deny a pending request. No balance change, no transaction."""
        if now is None:
            now = datetime.now(timezone.utc)
        with self._pending.resolving(purchase_id) as purchase:
            purchase.transition_to(PurchaseStatus.DENIED)
            purchase.denied_reason = reason
            purchase.resolved_by = denied_by
            purchase.resolved_utc = now
        logger.info("Purchase %s denied: %s", purchase_id, reason)
        return purchase

    def _execute(
        self,
        account: Account,
        purchase: PurchaseRequest,
        approver: str,
        now: datetime,
    ) -> tuple[Transaction, Receipt]:
        """The approval path shared by auto and manual approval."""
        require_sub_account(account, purchase.from_sub_account)
        self._require_funds(account, purchase.from_sub_account, purchase.amount)
        purchase.transition_to(PurchaseStatus.APPROVED)

        account.balances[purchase.from_sub_account] -= purchase.amount
        account.total_balance -= purchase.amount
        account.stats.total_spent += purchase.amount

        purchase.resolved_by = approver
        purchase.resolved_utc = now

        txn = self._ledger.new_transaction(
            account,
            TransactionType.PURCHASE,
            purchase.amount,
            details={
                "purchase_id": purchase.purchase_id,
                "item": purchase.item,
                "from": purchase.from_sub_account,
                "category": purchase.category,
                "approved_by": approver,
                "auto_approved": purchase.auto_approved,
            },
            now=now,
        )
        return txn, self._ledger.record(account, txn)

    @staticmethod
    def _require_funds(account: Account, sub_account: str, amount: int) -> None:
        balance = account.balance_of(sub_account)
        if balance < amount:
            raise InsufficientFunds(sub_account, balance, amount)
