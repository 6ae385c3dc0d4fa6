"""Policy resolver — loads and validates the economy configuration.

All tunable economy parameters (conversion rate, default split, age
bands, account defaults, the per-action earning table, the allocation
residual policy) live in ``config/economy_policy.json``. Engines never
hardcode them; they ask the resolver.

Validation is fail-closed: a config whose default split does not sum to
100, or that names an unknown residual policy, is rejected at load time
rather than producing a lossy economy later.
"""

from __future__ import annotations

import json
from decimal import Decimal, InvalidOperation
from pathlib import Path
from typing import Any

from famcoin.errors import ConfigurationError
from famcoin.models.account import AccountMode


POLICY_FILENAME = "economy_policy.json"
DEFAULT_CONFIG_DIR = Path(__file__).resolve().parents[3] / "config"

RESIDUAL_LARGEST_REMAINDER = "largest_remainder"
RESIDUAL_DROP = "drop"
RESIDUAL_POLICIES = frozenset({RESIDUAL_LARGEST_REMAINDER, RESIDUAL_DROP})


class PolicyResolver:
    """Read-only view over the economy policy.

    Usage:
        resolver = PolicyResolver.from_config_dir(config_dir)
        rate = resolver.earning_rate("task_complete")
        mode = resolver.mode_for_age(10)
    """

    def __init__(self, policy: dict[str, Any]) -> None:
        self._policy = policy
        errors = self._validate(policy)
        if errors:
            raise ConfigurationError("; ".join(errors))

    @classmethod
    def from_config_dir(cls, config_dir: Path) -> PolicyResolver:
        """Load the policy JSON from a config directory."""
        path = Path(config_dir) / POLICY_FILENAME
        if not path.exists():
            raise ConfigurationError(f"Economy policy not found: {path}")
        with path.open("r", encoding="utf-8") as handle:
            return cls(json.load(handle))

    @classmethod
    def default(cls) -> PolicyResolver:
        """Load the policy shipped in the repository's config directory."""
        return cls.from_config_dir(DEFAULT_CONFIG_DIR)

    # ------------------------------------------------------------------
    # Currency
    # ------------------------------------------------------------------

    def unit_value(self) -> Decimal:
        """Display-currency value of one virtual unit."""
        return Decimal(str(self._policy["currency"]["unit_value"]))

    def display_symbol(self) -> str:
        return self._policy["currency"].get("display_symbol", "$")

    def unit_suffix(self) -> str:
        return self._policy["currency"].get("unit_suffix", "FC")

    # ------------------------------------------------------------------
    # Accounts
    # ------------------------------------------------------------------

    def sub_accounts(self) -> list[str]:
        """Sub-account names in allocation order."""
        return list(self._policy["sub_accounts"])

    def default_split(self) -> dict[str, int]:
        return {k: int(v) for k, v in self._policy["default_split"].items()}

    def mode_for_age(self, age: int) -> AccountMode:
        bands = self._policy["age_modes"]
        if age >= bands["advanced_min_age"]:
            return AccountMode.ADVANCED
        if age >= bands["standard_min_age"]:
            return AccountMode.STANDARD
        return AccountMode.SIMPLE

    def account_defaults(self) -> dict[str, Any]:
        return dict(self._policy["account_defaults"])

    # ------------------------------------------------------------------
    # Earning
    # ------------------------------------------------------------------

    def earning_rates(self) -> dict[str, int]:
        return {k: int(v) for k, v in self._policy["earning_rates"].items()}

    def earning_rate(self, action: str) -> int:
        """Rate for an action; unknown actions earn the default rate."""
        rates = self._policy["earning_rates"]
        if action in rates:
            return int(rates[action])
        return int(self._policy.get("default_earning_rate", 10))

    def residual_policy(self) -> str:
        return self._policy.get("allocation", {}).get(
            "residual_policy", RESIDUAL_LARGEST_REMAINDER,
        )

    # ------------------------------------------------------------------
    # Ledger
    # ------------------------------------------------------------------

    def default_page_size(self) -> int:
        return int(self._policy.get("ledger", {}).get("default_page_size", 50))

    # ------------------------------------------------------------------
    # Validation
    # ------------------------------------------------------------------

    @staticmethod
    def _validate(policy: dict[str, Any]) -> list[str]:
        errors: list[str] = []
        for key in ("currency", "sub_accounts", "default_split",
                    "age_modes", "account_defaults", "earning_rates"):
            if key not in policy:
                errors.append(f"Missing policy section: {key}")
        if errors:
            return errors

        try:
            unit = Decimal(str(policy["currency"]["unit_value"]))
            if unit <= 0:
                errors.append("currency.unit_value must be positive")
        except (KeyError, InvalidOperation):
            errors.append("currency.unit_value must be a decimal string")

        sub_accounts = policy["sub_accounts"]
        if "spending" not in sub_accounts:
            errors.append("sub_accounts must include 'spending'")

        split = policy["default_split"]
        if set(split) != set(sub_accounts):
            errors.append("default_split keys must match sub_accounts")
        if sum(split.values()) != 100:
            errors.append(
                f"default_split must sum to 100, got {sum(split.values())}"
            )

        bands = policy["age_modes"]
        if bands.get("advanced_min_age", 0) < bands.get("standard_min_age", 0):
            errors.append("advanced_min_age must be >= standard_min_age")

        for action, rate in policy["earning_rates"].items():
            if not isinstance(rate, int) or rate <= 0:
                errors.append(f"earning_rates.{action} must be a positive integer")

        residual = policy.get("allocation", {}).get(
            "residual_policy", RESIDUAL_LARGEST_REMAINDER,
        )
        if residual not in RESIDUAL_POLICIES:
            errors.append(f"Unknown allocation.residual_policy: {residual}")
        return errors
