"""Tests for the policy resolver — proves it loads and validates the economy config."""

import json
import pytest
from decimal import Decimal
from pathlib import Path

from famcoin.errors import ConfigurationError
from famcoin.models.account import AccountMode
from famcoin.policy.resolver import PolicyResolver


CONFIG_DIR = Path(__file__).resolve().parents[1] / "config"


@pytest.fixture
def resolver() -> PolicyResolver:
    return PolicyResolver.from_config_dir(CONFIG_DIR)


def _policy() -> dict:
    with (CONFIG_DIR / "economy_policy.json").open("r", encoding="utf-8") as handle:
        return json.load(handle)


class TestCurrency:
    def test_unit_value_is_decimal(self, resolver: PolicyResolver) -> None:
        assert resolver.unit_value() == Decimal("0.01")

    def test_display_markers(self, resolver: PolicyResolver) -> None:
        assert resolver.display_symbol() == "$"
        assert resolver.unit_suffix() == "FC"


class TestAccounts:
    def test_sub_account_order(self, resolver: PolicyResolver) -> None:
        assert resolver.sub_accounts() == ["spending", "savings", "investing", "charity"]

    def test_default_split_sums_to_100(self, resolver: PolicyResolver) -> None:
        split = resolver.default_split()
        assert split == {"spending": 50, "savings": 30, "investing": 10, "charity": 10}
        assert sum(split.values()) == 100

    def test_age_bands(self, resolver: PolicyResolver) -> None:
        assert resolver.mode_for_age(5) == AccountMode.SIMPLE
        assert resolver.mode_for_age(8) == AccountMode.STANDARD
        assert resolver.mode_for_age(12) == AccountMode.STANDARD
        assert resolver.mode_for_age(13) == AccountMode.ADVANCED

    def test_account_defaults_are_a_copy(self, resolver: PolicyResolver) -> None:
        defaults = resolver.account_defaults()
        defaults["tax_rate_percent"] = 99
        assert resolver.account_defaults()["tax_rate_percent"] == 0


class TestEarningRates:
    def test_known_action(self, resolver: PolicyResolver) -> None:
        assert resolver.earning_rate("task_complete") == 50
        assert resolver.earning_rate("weekly_allowance") == 1000

    def test_unknown_action_uses_default_rate(self, resolver: PolicyResolver) -> None:
        assert resolver.earning_rate("juggling") == 10

    def test_rate_table_size(self, resolver: PolicyResolver) -> None:
        assert len(resolver.earning_rates()) == 17

    def test_residual_policy_default(self, resolver: PolicyResolver) -> None:
        assert resolver.residual_policy() == "largest_remainder"

    def test_page_size(self, resolver: PolicyResolver) -> None:
        assert resolver.default_page_size() == 50


class TestValidation:
    def test_default_loads(self) -> None:
        assert PolicyResolver.default().sub_accounts()[0] == "spending"

    def test_missing_config_dir(self, tmp_path: Path) -> None:
        with pytest.raises(ConfigurationError, match="not found"):
            PolicyResolver.from_config_dir(tmp_path)

    def test_split_must_sum_to_100(self) -> None:
        policy = _policy()
        policy["default_split"]["spending"] = 60
        with pytest.raises(ConfigurationError, match="sum to 100"):
            PolicyResolver(policy)

    def test_split_keys_must_match(self) -> None:
        policy = _policy()
        del policy["default_split"]["charity"]
        policy["default_split"]["spending"] = 60
        with pytest.raises(ConfigurationError, match="keys"):
            PolicyResolver(policy)

    def test_unknown_residual_policy(self) -> None:
        policy = _policy()
        policy["allocation"]["residual_policy"] = "round_up"
        with pytest.raises(ConfigurationError, match="residual_policy"):
            PolicyResolver(policy)

    def test_non_positive_rate_rejected(self) -> None:
        policy = _policy()
        policy["earning_rates"]["task_complete"] = 0
        with pytest.raises(ConfigurationError, match="task_complete"):
            PolicyResolver(policy)

    def test_missing_section(self) -> None:
        policy = _policy()
        del policy["currency"]
        with pytest.raises(ConfigurationError, match="currency"):
            PolicyResolver(policy)

    def test_bad_unit_value(self) -> None:
        policy = _policy()
        policy["currency"]["unit_value"] = "zero"
        with pytest.raises(ConfigurationError, match="unit_value"):
            PolicyResolver(policy)
