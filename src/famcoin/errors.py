"""Error taxonomy for the economy engine.

Engines raise these; the service layer converts every EconomyError into
a failed ServiceResult carrying the matching ResultKind. Business
failures (insufficient funds, double resolution) are routine and are
never surfaced to callers as exceptions.

InvariantViolation sits outside the hierarchy: a broken conservation
invariant is a bug and propagates.
"""

from __future__ import annotations

import enum


class ResultKind(str, enum.Enum):
    """Discriminator for service results."""
    OK = "ok"
    NO_INTEREST_EARNED = "no_interest_earned"
    INSUFFICIENT_FUNDS = "insufficient_funds"
    INVALID_REQUEST = "invalid_request"
    NOT_FOUND = "not_found"
    ALREADY_RESOLVED = "already_resolved"
    CONFIGURATION_ERROR = "configuration_error"


class EconomyError(ValueError):
    """Base class for expected business failures."""
    kind: ResultKind = ResultKind.INVALID_REQUEST


class InsufficientFunds(EconomyError):
    kind = ResultKind.INSUFFICIENT_FUNDS

    def __init__(self, sub_account: str, balance: int, needed: int) -> None:
        super().__init__(
            f"Insufficient funds in {sub_account}: balance {balance}, needed {needed}"
        )
        self.sub_account = sub_account
        self.balance = balance
        self.needed = needed


class InvalidRequest(EconomyError):
    kind = ResultKind.INVALID_REQUEST


class NotFound(EconomyError):
    kind = ResultKind.NOT_FOUND


class AlreadyResolved(EconomyError):
    kind = ResultKind.ALREADY_RESOLVED


class ConfigurationError(EconomyError):
    kind = ResultKind.CONFIGURATION_ERROR


class InvariantViolation(RuntimeError):
    """Raised when an account's books no longer balance."""
