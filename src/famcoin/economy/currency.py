"""Currency converter — virtual units to display currency and back.

Display values are Decimal and are never fed back into balance math.
Conversion into units floors, so a display amount can never mint a
fractional unit.
"""

from __future__ import annotations

from decimal import Decimal, ROUND_FLOOR, ROUND_HALF_UP
from typing import Union

from famcoin.errors import InvalidRequest
from famcoin.policy.resolver import PolicyResolver


DisplayAmount = Union[Decimal, int, str]

_CENTS = Decimal("0.01")


class CurrencyConverter:
    """Fixed-rate converter.

    Usage:
        converter = CurrencyConverter(resolver)
        converter.to_display(250)          # Decimal("2.50")
        converter.from_display("2.509")    # 250
    """

    def __init__(self, resolver: PolicyResolver) -> None:
        self._unit_value = resolver.unit_value()
        self._symbol = resolver.display_symbol()
        self._suffix = resolver.unit_suffix()

    @property
    def unit_value(self) -> Decimal:
        return self._unit_value

    def to_display(self, amount: int) -> Decimal:
        return (Decimal(amount) * self._unit_value).quantize(
            _CENTS, rounding=ROUND_HALF_UP,
        )

    def from_display(self, display_amount: DisplayAmount) -> int:
        if isinstance(display_amount, float):
            raise InvalidRequest("Display amounts must be Decimal, int or str, not float")
        try:
            value = Decimal(str(display_amount))
        except ArithmeticError:
            raise InvalidRequest(f"Not a number: {display_amount!r}") from None
        if not value.is_finite():
            raise InvalidRequest(f"Not a finite amount: {display_amount!r}")
        units = (value / self._unit_value).to_integral_value(rounding=ROUND_FLOOR)
        return int(units)

    def format(self, amount: int) -> str:
        """Human-readable form, e.g. ``1,234 FC ($12.34)``."""
        return f"{amount:,} {self._suffix} ({self._symbol}{self.to_display(amount)})"
