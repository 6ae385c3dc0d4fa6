"""FamCoin service — the account registry and public operation set.

This is the primary interface for programmatic access to the economy
(the HTTP layer, the CLI, tests). It composes the engines:
- CurrencyConverter (display conversion)
- AllocationEngine (earnings, tax, split)
- TransactionLedger (history, receipts)
- TransferEngine (transfers, withdrawals, deposits, interest)
- ApprovalWorkflow (purchase requests and parent review)

Every operation returns a ServiceResult. Expected business failures
(insufficient funds, unknown ids, double resolution, bad settings) come
back as failed results with a ResultKind; they are never raised. A broken
balance invariant after a mutation raises InvariantViolation and is never
patched over.

Each committed mutation is saved through the StateStore, appended to the
audit EventLog (if one is configured) and offered to the notifier (if one
is configured). Notifier failures are logged; they never fail the
operation.

Mutual exclusion per account is the caller's responsibility: at most one
mutating call per member may run at a time. Only the shared pending
purchase queue is internally locked.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Callable, Optional

from famcoin.economy.allocation import AllocationEngine
from famcoin.economy.approval import ApprovalWorkflow
from famcoin.economy.checks import validate_split
from famcoin.economy.currency import CurrencyConverter
from famcoin.economy.ledger import TransactionLedger
from famcoin.economy.transfers import TransferEngine
from famcoin.errors import (
    EconomyError,
    InvalidRequest,
    InvariantViolation,
    NotFound,
    ResultKind,
)
from famcoin.ids import IdGenerator, random_id
from famcoin.models.account import (
    SAVINGS,
    SPENDING,
    Account,
    AccountMode,
    AccountSettings,
)
from famcoin.models.purchase import PurchaseRequest
from famcoin.persistence.event_log import EventKind, EventLog, EventRecord
from famcoin.persistence.state_store import StateStore
from famcoin.policy.resolver import PolicyResolver

logger = logging.getLogger(__name__)

Notifier = Callable[[EventRecord], None]

SETTING_KEYS = frozenset({
    "auto_split",
    "interest_rate_percent",
    "tax_rate_percent",
    "spending_limit",
    "require_approval",
    "auto_approve_under_amount",
})


@dataclass(frozen=True)
class ServiceResult:
    """Result of a service operation.

    ``kind`` discriminates failures (and the interest no-op); ``data``
    holds the operation's payload on success.
    """
    success: bool
    kind: ResultKind = ResultKind.OK
    errors: list[str] = field(default_factory=list)
    data: dict[str, Any] = field(default_factory=dict)

    @property
    def is_noop(self) -> bool:
        return self.kind == ResultKind.NO_INTEREST_EARNED

    @staticmethod
    def failure(error: EconomyError) -> ServiceResult:
        return ServiceResult(success=False, kind=error.kind, errors=[str(error)])


class AccountRegistry:
    """Owns member accounts and exposes the economy's operations.

    Usage:
        resolver = PolicyResolver.from_config_dir(config_dir)
        registry = AccountRegistry(resolver)

        registry.create_account("liam", {"name": "Liam", "age": 8})
        registry.earn("liam", action="task_complete")
        result = registry.request_purchase("liam", item="Book", amount=300)
        if result.data["needs_approval"]:
            registry.approve_purchase("liam", result.data["purchase"].purchase_id, "Mum")

    Persistence (optional):
        store = StateStore(storage_path=data_dir / "state.json")
        registry = AccountRegistry(resolver, store=store, event_log=log)
    """

    def __init__(
        self,
        resolver: PolicyResolver,
        store: Optional[StateStore] = None,
        event_log: Optional[EventLog] = None,
        notifier: Optional[Notifier] = None,
        id_generator: IdGenerator = random_id,
        clock: Optional[Callable[[], datetime]] = None,
    ) -> None:
        self._resolver = resolver
        self._store = store if store is not None else StateStore()
        self._event_log = event_log
        self._notifier = notifier
        self._ids = id_generator
        self._clock = clock or (lambda: datetime.now(timezone.utc))

        self._converter = CurrencyConverter(resolver)
        self._ledger = TransactionLedger(id_generator)
        self._allocation = AllocationEngine(resolver, self._ledger)
        self._transfers = TransferEngine(self._converter, self._ledger)
        self._approvals = ApprovalWorkflow(
            self._ledger, self._store.pending, id_generator,
        )

        # Set when a state write fails after the audit event was committed.
        # In-memory state is still correct; the on-disk snapshot is stale.
        self._persistence_degraded: bool = False

    @property
    def converter(self) -> CurrencyConverter:
        return self._converter

    @property
    def persistence_degraded(self) -> bool:
        return self._persistence_degraded

    # ------------------------------------------------------------------
    # Accounts
    # ------------------------------------------------------------------

    def create_account(self, member_id: str, profile: dict[str, Any]) -> ServiceResult:
        """Create a member account from explicit profile data.

        ``profile`` requires ``name`` and ``age``; the optional settings
        keys default from the economy policy.
        """
        try:
            account = self._build_account(member_id, profile)
        except EconomyError as e:
            logger.warning("create_account %s failed: %s", member_id, e)
            return ServiceResult.failure(e)

        payload = {
            "member_name": account.member_name,
            "age": account.age,
            "mode": account.mode.value,
            "balances": dict(account.balances),
            "total_balance": account.total_balance,
        }
        self._commit(account, EventKind.ACCOUNT_CREATED, account.member_id, payload)
        logger.info(
            "Created %s account for %s (%s)",
            account.mode.value, account.member_id, account.member_name,
        )
        return ServiceResult(success=True, data={"account": account})

    def get_or_create_account(
        self,
        member_id: str,
        profile: dict[str, Any],
    ) -> ServiceResult:
        account = self._store.get_account(member_id)
        if account is not None:
            return ServiceResult(success=True, data={"account": account, "created": False})
        result = self.create_account(member_id, profile)
        if result.success:
            result.data["created"] = True
        return result

    def get_account(self, member_id: str) -> Optional[Account]:
        """Look up an account."""
        return self._store.get_account(member_id)

    def update_settings(
        self,
        member_id: str,
        changes: dict[str, Any],
        updated_by: Optional[str] = None,
    ) -> ServiceResult:
        """Apply a validated partial settings update."""
        def _op(account: Account) -> tuple[dict[str, Any], dict[str, Any]]:
            unknown = set(changes) - SETTING_KEYS
            if unknown:
                raise InvalidRequest(f"Unknown settings: {', '.join(sorted(unknown))}")
            merged = dict(account.settings.to_dict(), **changes)
            settings = _settings_from(merged)
            validate_split(settings.auto_split, list(account.balances))
            account.settings = settings
            data = {"settings": settings}
            payload = {"changes": sorted(changes), "settings": settings.to_dict()}
            return data, payload

        return self._mutate(
            member_id, "update_settings", _op,
            EventKind.SETTINGS_UPDATED, actor_id=updated_by,
        )

    # ------------------------------------------------------------------
    # Earning and movement
    # ------------------------------------------------------------------

    def earn(
        self,
        member_id: str,
        action: Optional[str] = None,
        custom_amount: Optional[int] = None,
        metadata: Optional[dict[str, Any]] = None,
    ) -> ServiceResult:
        """Award coins for an action (rate table) or a custom amount."""
        def _op(account: Account) -> tuple[dict[str, Any], dict[str, Any]]:
            outcome = self._allocation.earn(
                account, action, custom_amount, metadata, now=self._clock(),
            )
            allocation = outcome.allocation
            data = {
                "transaction": outcome.transaction,
                "receipt": outcome.receipt,
                "new_total_balance": account.total_balance,
                "distribution": dict(allocation.distribution),
            }
            payload = {
                "action": action,
                "gross_amount": allocation.gross,
                "tax_amount": allocation.tax,
                "amount": allocation.credited,
                "display_amount": str(self._converter.to_display(allocation.credited)),
                "distribution": dict(allocation.distribution),
                "receipt_id": outcome.receipt.receipt_id,
            }
            return data, payload

        return self._mutate(member_id, "earn", _op, EventKind.COINS_EARNED)

    def transfer(
        self,
        member_id: str,
        from_sub_account: str,
        to_sub_account: str,
        amount: int,
    ) -> ServiceResult:
        """Move coins between two of a member's sub-accounts."""
        def _op(account: Account) -> tuple[dict[str, Any], dict[str, Any]]:
            outcome = self._transfers.transfer(
                account, from_sub_account, to_sub_account, amount, now=self._clock(),
            )
            data = {
                "transaction": outcome.transaction,
                "receipt": outcome.receipt,
                "new_balances": dict(account.balances),
            }
            payload = {
                "from": from_sub_account,
                "to": to_sub_account,
                "amount": amount,
                "receipt_id": outcome.receipt.receipt_id,
            }
            return data, payload

        return self._mutate(member_id, "transfer", _op, EventKind.TRANSFER_COMPLETED)

    def withdraw(
        self,
        member_id: str,
        amount: int,
        method: str = "cash",
        purpose: Optional[str] = None,
    ) -> ServiceResult:
        """Cash coins out of the spending sub-account."""
        def _op(account: Account) -> tuple[dict[str, Any], dict[str, Any]]:
            outcome = self._transfers.withdraw(
                account, amount, method=method, purpose=purpose, now=self._clock(),
            )
            data = {
                "transaction": outcome.transaction,
                "receipt": outcome.receipt,
                "display_amount": outcome.display_amount,
                "new_total_balance": account.total_balance,
            }
            payload = {
                "amount": amount,
                "display_amount": str(outcome.display_amount),
                "method": method,
                "purpose": purpose,
                "receipt_id": outcome.receipt.receipt_id,
            }
            return data, payload

        return self._mutate(member_id, "withdraw", _op, EventKind.WITHDRAWAL_COMPLETED)

    def deposit(
        self,
        member_id: str,
        amount: int,
        to_sub_account: str = SPENDING,
        reason: Optional[str] = None,
        deposited_by: Optional[str] = None,
    ) -> ServiceResult:
        """Credit coins from outside the economy (e.g. a parent top-up)."""
        def _op(account: Account) -> tuple[dict[str, Any], dict[str, Any]]:
            outcome = self._transfers.deposit(
                account, amount, to_sub_account=to_sub_account,
                reason=reason, deposited_by=deposited_by, now=self._clock(),
            )
            data = {
                "transaction": outcome.transaction,
                "receipt": outcome.receipt,
                "new_total_balance": account.total_balance,
            }
            payload = {
                "amount": amount,
                "to": to_sub_account,
                "reason": reason,
                "receipt_id": outcome.receipt.receipt_id,
            }
            return data, payload

        return self._mutate(
            member_id, "deposit", _op,
            EventKind.DEPOSIT_COMPLETED, actor_id=deposited_by,
        )

    def apply_interest(self, member_id: str) -> ServiceResult:
        """Accrue savings interest. Zero interest is a successful no-op."""
        account = self._store.get_account(member_id)
        if account is None:
            return ServiceResult.failure(NotFound(f"Account not found: {member_id}"))

        outcome = self._transfers.apply_interest(account, now=self._clock())
        if outcome.is_noop:
            return ServiceResult(
                success=True,
                kind=ResultKind.NO_INTEREST_EARNED,
                errors=["No interest earned"],
                data={
                    "interest_earned": 0,
                    "new_savings_balance": outcome.new_savings_balance,
                },
            )

        self._verify(account)
        payload = {
            "amount": outcome.interest_earned,
            "rate_percent": account.settings.interest_rate_percent,
            "receipt_id": outcome.receipt.receipt_id,
        }
        self._commit(account, EventKind.INTEREST_APPLIED, member_id, payload)
        logger.info("%s earned %d interest", member_id, outcome.interest_earned)
        return ServiceResult(
            success=True,
            data={
                "interest_earned": outcome.interest_earned,
                "new_savings_balance": account.balances[SAVINGS],
                "transaction": outcome.transaction,
                "receipt": outcome.receipt,
            },
        )

    # ------------------------------------------------------------------
    # Purchases
    # ------------------------------------------------------------------

    def request_purchase(
        self,
        member_id: str,
        item: str,
        amount: int,
        from_sub_account: str = SPENDING,
        category: Optional[str] = None,
    ) -> ServiceResult:
        """Request a purchase; small amounts are approved on the spot."""
        def _op(account: Account) -> tuple[dict[str, Any], dict[str, Any]]:
            outcome = self._approvals.request_purchase(
                account, item, amount,
                from_sub_account=from_sub_account, category=category,
                now=self._clock(),
            )
            data: dict[str, Any] = {
                "purchase": outcome.purchase,
                "needs_approval": outcome.needs_approval,
            }
            payload: dict[str, Any] = {
                "purchase": outcome.purchase.to_dict(),
                "amount": amount,
                "needs_approval": outcome.needs_approval,
            }
            if outcome.transaction is not None:
                data["transaction"] = outcome.transaction
                data["receipt"] = outcome.receipt
                payload["receipt_id"] = outcome.receipt.receipt_id
            return data, payload

        return self._mutate(
            member_id, "request_purchase", _op, EventKind.PURCHASE_REQUESTED,
        )

    def approve_purchase(
        self,
        member_id: str,
        purchase_id: str,
        approver: str,
    ) -> ServiceResult:
        """Approve a pending purchase for ``member_id`` and debit the account."""
        def _op(account: Account) -> tuple[dict[str, Any], dict[str, Any]]:
            outcome = self._approvals.approve_purchase(
                account, purchase_id, approver, now=self._clock(),
            )
            data = {
                "purchase": outcome.purchase,
                "transaction": outcome.transaction,
                "receipt": outcome.receipt,
            }
            payload = {
                "purchase": outcome.purchase.to_dict(),
                "amount": outcome.purchase.amount,
                "receipt_id": outcome.receipt.receipt_id,
            }
            return data, payload

        return self._mutate(
            member_id, "approve_purchase", _op,
            EventKind.PURCHASE_APPROVED, actor_id=approver,
        )

    def deny_purchase(
        self,
        purchase_id: str,
        reason: Optional[str] = None,
        denied_by: Optional[str] = None,
    ) -> ServiceResult:
        """Deny a pending purchase. No coins move."""
        try:
            purchase = self._approvals.deny_purchase(
                purchase_id, reason, denied_by=denied_by, now=self._clock(),
            )
        except EconomyError as e:
            logger.warning("deny_purchase %s failed: %s", purchase_id, e)
            return ServiceResult.failure(e)

        account = self._store.get_account(purchase.member_id)
        if account is not None:
            self._commit(
                account, EventKind.PURCHASE_DENIED,
                denied_by or purchase.member_id,
                {"purchase": purchase.to_dict(), "amount": purchase.amount},
            )
        return ServiceResult(success=True, data={"purchase": purchase})

    def pending_purchases(self, member_id: Optional[str] = None) -> list[PurchaseRequest]:
        """Purchases awaiting a parent, oldest first."""
        return self._approvals.pending(member_id)

    # ------------------------------------------------------------------
    # History and summaries
    # ------------------------------------------------------------------

    def transactions(
        self,
        member_id: str,
        limit: Optional[int] = None,
        offset: int = 0,
    ) -> ServiceResult:
        """Most-recent-first page of a member's transactions."""
        account = self._store.get_account(member_id)
        if account is None:
            return ServiceResult.failure(NotFound(f"Account not found: {member_id}"))
        try:
            page = self._ledger.transactions(
                account, limit if limit is not None else self._resolver.default_page_size(), offset,
            )
        except EconomyError as e:
            return ServiceResult.failure(e)
        return ServiceResult(
            success=True,
            data={"transactions": page.items, "total": page.total, "has_more": page.has_more},
        )

    def receipts(
        self,
        member_id: str,
        limit: Optional[int] = None,
        offset: int = 0,
    ) -> ServiceResult:
        """Most-recent-first page of a member's receipts."""
        account = self._store.get_account(member_id)
        if account is None:
            return ServiceResult.failure(NotFound(f"Account not found: {member_id}"))
        try:
            page = self._ledger.receipts(
                account, limit if limit is not None else self._resolver.default_page_size(), offset,
            )
        except EconomyError as e:
            return ServiceResult.failure(e)
        return ServiceResult(
            success=True,
            data={"receipts": page.items, "total": page.total, "has_more": page.has_more},
        )

    def family_summary(self) -> dict[str, Any]:
        """Combined view across every account in the store."""
        accounts = list(self._store.accounts())
        total = sum(a.total_balance for a in accounts)
        return {
            "total_members": len(accounts),
            "total_balance": total,
            "total_balance_display": self._converter.to_display(total),
            "pending_purchases": len(self._store.pending),
            "members": [
                {
                    "member_id": a.member_id,
                    "member_name": a.member_name,
                    "mode": a.mode.value,
                    "total_balance": a.total_balance,
                    "display": self._converter.format(a.total_balance),
                }
                for a in accounts
            ],
        }

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    def _build_account(self, member_id: str, profile: dict[str, Any]) -> Account:
        if not isinstance(member_id, str) or not member_id.strip():
            raise InvalidRequest("member_id is required")
        if member_id != member_id.strip():
            raise InvalidRequest(f"member_id must not have surrounding whitespace: {member_id!r}")
        if member_id in self._store:
            raise InvalidRequest(f"Account already exists: {member_id}")
        if not isinstance(profile, dict):
            raise InvalidRequest("profile must be a mapping")

        name = profile.get("name")
        if not isinstance(name, str) or not name.strip():
            raise InvalidRequest("profile.name is required")
        age = profile.get("age")
        if isinstance(age, bool) or not isinstance(age, int) or age < 0:
            raise InvalidRequest(f"profile.age must be a non-negative integer, got {age!r}")

        mode = self._resolver.mode_for_age(age)
        if mode == AccountMode.SIMPLE:
            split = {SPENDING: 100}
        else:
            split = self._resolver.default_split()
            split = {sub: split[sub] for sub in self._resolver.sub_accounts()}

        values = self._resolver.account_defaults()
        for key in SETTING_KEYS - {"auto_split"}:
            if profile.get(key) is not None:
                values[key] = profile[key]
        values["auto_split"] = split
        settings = _settings_from(values)

        return Account(
            member_id=member_id,
            member_name=name.strip(),
            age=age,
            mode=mode,
            balances={k: 0 for k in split},
            settings=settings,
            created_utc=self._clock(),
        )

    def _mutate(
        self,
        member_id: str,
        operation: str,
        op: Callable[[Account], tuple[dict[str, Any], dict[str, Any]]],
        event_kind: EventKind,
        actor_id: Optional[str] = None,
    ) -> ServiceResult:
        """Load the account, run ``op``, verify, save and emit.

        ``op`` returns (result data, event payload). Engines check their
        preconditions before mutating, so an EconomyError leaves the
        account untouched.
        """
        account = self._store.get_account(member_id)
        if account is None:
            return ServiceResult.failure(NotFound(f"Account not found: {member_id}"))
        try:
            data, payload = op(account)
        except EconomyError as e:
            logger.warning("%s for %s failed: %s", operation, member_id, e)
            return ServiceResult.failure(e)

        self._verify(account)
        self._commit(account, event_kind, actor_id or member_id, payload)
        logger.info("%s committed for %s", operation, member_id)
        return ServiceResult(success=True, data=data)

    def _verify(self, account: Account) -> None:
        errors = account.invariant_errors()
        if errors:
            logger.error("Invariant violation for %s: %s", account.member_id, errors)
            raise InvariantViolation("; ".join(errors))

    def _commit(
        self,
        account: Account,
        event_kind: EventKind,
        actor_id: str,
        payload: dict[str, Any],
    ) -> EventRecord:
        event = EventRecord.create(
            event_id=self._ids("evt"),
            event_kind=event_kind,
            actor_id=actor_id,
            member_id=account.member_id,
            payload=dict(
                payload,
                balances=dict(account.balances),
                total_balance=account.total_balance,
            ),
            timestamp_utc=self._clock(),
        )
        if self._event_log is not None:
            self._event_log.append(event)

        self._store.save_account(account)
        try:
            self._store.flush()
        except OSError:
            self._persistence_degraded = True
            logger.exception("State flush failed after %s for %s", event_kind.value, account.member_id)

        if self._notifier is not None:
            try:
                self._notifier(event)
            except Exception:
                logger.exception("Notifier failed for event %s", event.event_id)
        return event


def _settings_from(values: dict[str, Any]) -> AccountSettings:
    """Build validated AccountSettings from a plain mapping."""
    def _int(key: str, low: int = 0, high: Optional[int] = None) -> int:
        value = values.get(key)
        if isinstance(value, bool) or not isinstance(value, int) or value < low:
            raise InvalidRequest(f"{key} must be an integer >= {low}, got {value!r}")
        if high is not None and value > high:
            raise InvalidRequest(f"{key} must be <= {high}, got {value}")
        return value

    spending_limit = values.get("spending_limit")
    if spending_limit is not None:
        spending_limit = _int("spending_limit", low=1)
    require_approval = values.get("require_approval")
    if not isinstance(require_approval, bool):
        raise InvalidRequest(f"require_approval must be a boolean, got {require_approval!r}")
    split = values.get("auto_split")
    if not isinstance(split, dict):
        raise InvalidRequest("auto_split must be a mapping of sub-account to percentage")

    return AccountSettings(
        auto_split=dict(split),
        interest_rate_percent=_int("interest_rate_percent"),
        tax_rate_percent=_int("tax_rate_percent", high=100),
        spending_limit=spending_limit,
        require_approval=require_approval,
        auto_approve_under_amount=_int("auto_approve_under_amount"),
    )
