"""Purchase request models — the approval state machine.

State machine:
    PENDING → APPROVED      (parent approves, funds debited)
    PENDING → DENIED        (parent denies, nothing moves)

Auto-approved purchases are APPROVED without ever being PENDING; they are
created directly in the approved state by the workflow.
"""

from __future__ import annotations

import enum
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Dict, Optional

from famcoin.errors import AlreadyResolved


class PurchaseStatus(str, enum.Enum):
    """Lifecycle state of a purchase request."""
    PENDING = "pending"
    APPROVED = "approved"
    DENIED = "denied"


PURCHASE_TRANSITIONS: Dict[PurchaseStatus, frozenset] = {
    PurchaseStatus.PENDING: frozenset({
        PurchaseStatus.APPROVED,
        PurchaseStatus.DENIED,
    }),
    PurchaseStatus.APPROVED: frozenset(),
    PurchaseStatus.DENIED: frozenset(),
}


@dataclass
class PurchaseRequest:
    """A member's request to spend from a sub-account.

    Mutable until resolved. Resolution happens at most once; a second
    transition attempt raises AlreadyResolved.
    """
    purchase_id: str
    member_id: str
    member_name: str
    item: str
    amount: int
    from_sub_account: str
    category: Optional[str] = None
    status: PurchaseStatus = PurchaseStatus.PENDING
    auto_approved: bool = False
    requested_utc: Optional[datetime] = None
    resolved_utc: Optional[datetime] = None
    resolved_by: Optional[str] = None
    denied_reason: Optional[str] = None

    @property
    def is_resolved(self) -> bool:
        return self.status != PurchaseStatus.PENDING

    def transition_to(self, new_state: PurchaseStatus) -> None:
        """Transition to a new state, validating the transition is legal."""
        allowed = PURCHASE_TRANSITIONS.get(self.status, frozenset())
        if new_state not in allowed:
            raise AlreadyResolved(
                f"Purchase {self.purchase_id} already {self.status.value}; "
                f"cannot move to {new_state.value}"
            )
        self.status = new_state

    def to_dict(self) -> dict[str, Any]:
        return {
            "purchase_id": self.purchase_id,
            "member_id": self.member_id,
            "member_name": self.member_name,
            "item": self.item,
            "amount": self.amount,
            "from_sub_account": self.from_sub_account,
            "category": self.category,
            "status": self.status.value,
            "auto_approved": self.auto_approved,
            "requested_utc": self.requested_utc.isoformat() if self.requested_utc else None,
            "resolved_utc": self.resolved_utc.isoformat() if self.resolved_utc else None,
            "resolved_by": self.resolved_by,
            "denied_reason": self.denied_reason,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> PurchaseRequest:
        return cls(
            purchase_id=data["purchase_id"],
            member_id=data["member_id"],
            member_name=data["member_name"],
            item=data["item"],
            amount=int(data["amount"]),
            from_sub_account=data["from_sub_account"],
            category=data.get("category"),
            status=PurchaseStatus(data["status"]),
            auto_approved=bool(data.get("auto_approved", False)),
            requested_utc=(
                datetime.fromisoformat(data["requested_utc"])
                if data.get("requested_utc") else None
            ),
            resolved_utc=(
                datetime.fromisoformat(data["resolved_utc"])
                if data.get("resolved_utc") else None
            ),
            resolved_by=data.get("resolved_by"),
            denied_reason=data.get("denied_reason"),
        )
