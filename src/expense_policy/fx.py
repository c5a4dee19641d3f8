"""Exchange-rate snapshots and currency conversion."""

from __future__ import annotations

from decimal import Decimal
from typing import Annotated

from pydantic import BaseModel, ConfigDict, Field, field_validator


class CurrencyNotFoundError(KeyError):
    """Raised when a currency is missing from an exchange-rate table."""

    def __init__(self, currency: str) -> None:
        super().__init__(currency)
        self.currency = currency

    def __str__(self) -> str:
        return f"Currency '{self.currency}' not found in exchange rates"


class ExchangeRates(BaseModel):
    """Rates for each currency relative to one base currency."""

    base: str = Field(default="USD", min_length=1, description="Base currency code")
    rates: dict[str, Annotated[Decimal, Field(gt=0)]] = Field(
        default_factory=dict,
        description="Units of each currency per one unit of the base currency",
    )

    model_config = ConfigDict(frozen=True)

    @field_validator("base", mode="before")
    @classmethod
    def _normalize_base(cls, value: object) -> object:
        if isinstance(value, str):
            return value.strip().upper()
        return value

    def rate_for(self, currency: str) -> Decimal:
        """Return the rate for a currency; the base currency is always 1."""

        if currency == self.base:
            return Decimal("1")
        try:
            return self.rates[currency]
        except KeyError:
            raise CurrencyNotFoundError(currency) from None


def convert_currency(
    amount: Decimal,
    from_currency: str,
    to_currency: str,
    rates: ExchangeRates,
) -> Decimal:
    """Convert an amount between two currencies through the table's base.

    Raises:
        CurrencyNotFoundError: If either currency is missing from ``rates``.
    """

    if from_currency == to_currency:
        return amount

    from_rate = rates.rate_for(from_currency)
    to_rate = rates.rate_for(to_currency)
    if from_rate == to_rate:
        return amount

    return (amount / from_rate) * to_rate
