"""Shared argument checks for the economy engines."""

from __future__ import annotations

import json
from typing import Any, Optional

from famcoin.errors import ConfigurationError, InvalidRequest
from famcoin.models.account import Account


def require_positive_amount(amount: Any, name: str = "amount") -> int:
    """Return ``amount`` if it is a positive integer, else raise InvalidRequest."""
    # bool is an int subclass; True is not an amount
    if isinstance(amount, bool) or not isinstance(amount, int):
        raise InvalidRequest(f"{name} must be an integer number of units, got {amount!r}")
    if amount <= 0:
        raise InvalidRequest(f"{name} must be positive, got {amount}")
    return amount


def require_metadata(metadata: Any) -> Optional[dict[str, Any]]:
    """Return ``metadata`` if it is None or a JSON-serialisable mapping."""
    if metadata is None:
        return None
    if not isinstance(metadata, dict):
        raise InvalidRequest(f"metadata must be a mapping, got {type(metadata).__name__}")
    try:
        json.dumps(metadata)
    except (TypeError, ValueError) as e:
        raise InvalidRequest(f"metadata must be JSON-serialisable: {e}") from None
    return metadata


def require_sub_account(account: Account, name: str) -> str:
    if not name or not account.has_sub_account(name):
        raise InvalidRequest(
            f"Unknown sub-account {name!r} for {account.member_id}; "
            f"available: {', '.join(account.balances)}"
        )
    return name


def validate_split(split: dict[str, int], sub_accounts: list[str]) -> None:
    """Raise ConfigurationError unless ``split`` covers ``sub_accounts`` and sums to 100."""
    if set(split) != set(sub_accounts):
        raise ConfigurationError(
            f"auto_split keys {sorted(split)} do not match sub-accounts {sorted(sub_accounts)}"
        )
    for name, pct in split.items():
        if isinstance(pct, bool) or not isinstance(pct, int) or pct < 0:
            raise ConfigurationError(f"auto_split.{name} must be a non-negative integer")
    total = sum(split.values())
    if total != 100:
        raise ConfigurationError(f"auto_split must sum to 100, got {total}")
