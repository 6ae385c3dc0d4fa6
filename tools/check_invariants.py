#!/usr/bin/env python3
"""FamCoin invariant checks against the economy policy artifact."""

import json
import sys
from decimal import Decimal, InvalidOperation
from pathlib import Path


ROOT = Path(__file__).resolve().parents[1]
POLICY_PATH = ROOT / "config" / "economy_policy.json"

REQUIRED_SUB_ACCOUNTS = ("spending", "savings")
RESIDUAL_POLICIES = ("largest_remainder", "drop")


def load_json(path: Path) -> dict:
    with path.open("r", encoding="utf-8") as handle:
        return json.load(handle)


def _is_count(value) -> bool:
    return isinstance(value, int) and not isinstance(value, bool)


def check_percent(value, label: str, errors: list[str]) -> None:
    if not _is_count(value) or not (0 <= value <= 100):
        errors.append(f"{label} must be an integer in [0, 100], got {value!r}")


def check(policy_path: Path = POLICY_PATH) -> int:
    policy = load_json(policy_path)
    errors: list[str] = []

    # --- Currency invariants ---
    currency = policy["currency"]
    try:
        unit_value = Decimal(str(currency["unit_value"]))
        if unit_value <= 0:
            errors.append(f"currency.unit_value must be > 0, got {unit_value}")
    except InvalidOperation:
        errors.append(f"currency.unit_value is not a decimal: {currency['unit_value']!r}")
    if isinstance(currency["unit_value"], float):
        errors.append("currency.unit_value must be a string, not a float")

    # --- Sub-account and split invariants ---
    sub_accounts = policy["sub_accounts"]
    if len(set(sub_accounts)) != len(sub_accounts):
        errors.append("sub_accounts must be unique")
    for required in REQUIRED_SUB_ACCOUNTS:
        if required not in sub_accounts:
            errors.append(f"sub_accounts must include {required!r}")
    split = policy["default_split"]
    if set(split) != set(sub_accounts):
        errors.append(
            f"default_split keys {sorted(split)} must match sub_accounts {sorted(sub_accounts)}"
        )
    for name, pct in split.items():
        check_percent(pct, f"default_split.{name}", errors)
    if sum(split.values()) != 100:
        errors.append(f"default_split must sum to 100, got {sum(split.values())}")

    # --- Age band invariants ---
    bands = policy["age_modes"]
    if bands["standard_min_age"] < 0:
        errors.append("standard_min_age must be >= 0")
    if bands["advanced_min_age"] <= bands["standard_min_age"]:
        errors.append("advanced_min_age must be greater than standard_min_age")

    # --- Account default invariants ---
    defaults = policy["account_defaults"]
    check_percent(defaults["tax_rate_percent"], "tax_rate_percent", errors)
    if not _is_count(defaults["interest_rate_percent"]) or defaults["interest_rate_percent"] < 0:
        errors.append("interest_rate_percent must be a non-negative integer")
    if not _is_count(defaults["auto_approve_under_amount"]) or defaults["auto_approve_under_amount"] < 0:
        errors.append("auto_approve_under_amount must be a non-negative integer")
    if not isinstance(defaults["require_approval"], bool):
        errors.append("require_approval must be a boolean")
    limit = defaults.get("spending_limit")
    if limit is not None and (not _is_count(limit) or limit < 1):
        errors.append("spending_limit must be null or a positive integer")

    # --- Earning table invariants ---
    rates = policy["earning_rates"]
    if not rates:
        errors.append("earning_rates must not be empty")
    for action, rate in rates.items():
        if not _is_count(rate) or rate <= 0:
            errors.append(f"earning_rates.{action} must be a positive integer, got {rate!r}")
    default_rate = policy.get("default_earning_rate", 10)
    if not _is_count(default_rate) or default_rate <= 0:
        errors.append("default_earning_rate must be a positive integer")

    # --- Allocation and ledger invariants ---
    residual = policy.get("allocation", {}).get("residual_policy", "largest_remainder")
    if residual not in RESIDUAL_POLICIES:
        errors.append(f"residual_policy must be one of {list(RESIDUAL_POLICIES)}, got {residual!r}")
    page_size = policy.get("ledger", {}).get("default_page_size", 50)
    if not _is_count(page_size) or page_size <= 0:
        errors.append("ledger.default_page_size must be > 0")

    if errors:
        print("Invariant check failed:")
        for err in errors:
            print(f"- {err}")
        return 1

    print("Invariant check passed.")
    return 0


if __name__ == "__main__":
    path = Path(sys.argv[1]) if len(sys.argv) > 1 else POLICY_PATH
    raise SystemExit(check(path))
