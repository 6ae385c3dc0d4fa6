"""Tests for the currency converter — proves display math never leaks into units."""

import pytest
from decimal import Decimal
from pathlib import Path

from famcoin.economy.currency import CurrencyConverter
from famcoin.errors import InvalidRequest
from famcoin.policy.resolver import PolicyResolver


CONFIG_DIR = Path(__file__).resolve().parents[1] / "config"


@pytest.fixture
def converter() -> CurrencyConverter:
    return CurrencyConverter(PolicyResolver.from_config_dir(CONFIG_DIR))


class TestToDisplay:
    def test_hundred_units_is_one_dollar(self, converter: CurrencyConverter) -> None:
        assert converter.to_display(100) == Decimal("1.00")

    def test_single_unit(self, converter: CurrencyConverter) -> None:
        assert converter.to_display(1) == Decimal("0.01")

    def test_zero(self, converter: CurrencyConverter) -> None:
        assert converter.to_display(0) == Decimal("0.00")

    def test_result_is_decimal(self, converter: CurrencyConverter) -> None:
        assert isinstance(converter.to_display(250), Decimal)


class TestFromDisplay:
    def test_exact(self, converter: CurrencyConverter) -> None:
        assert converter.from_display("2.50") == 250

    def test_floors_fractional_units(self, converter: CurrencyConverter) -> None:
        assert converter.from_display("2.509") == 250
        assert converter.from_display(Decimal("0.009")) == 0

    def test_int_input(self, converter: CurrencyConverter) -> None:
        assert converter.from_display(3) == 300

    def test_float_rejected(self, converter: CurrencyConverter) -> None:
        with pytest.raises(InvalidRequest, match="float"):
            converter.from_display(2.5)

    def test_garbage_rejected(self, converter: CurrencyConverter) -> None:
        with pytest.raises(InvalidRequest, match="Not a number"):
            converter.from_display("two dollars")

    @pytest.mark.parametrize("raw", ["NaN", "Infinity", "-Infinity", "sNaN"])
    def test_non_finite_rejected(self, converter: CurrencyConverter, raw: str) -> None:
        with pytest.raises(InvalidRequest, match="finite"):
            converter.from_display(raw)


class TestFormat:
    def test_format(self, converter: CurrencyConverter) -> None:
        assert converter.format(1234) == "1,234 FC ($12.34)"

    def test_unit_value_exposed(self, converter: CurrencyConverter) -> None:
        assert converter.unit_value == Decimal("0.01")
