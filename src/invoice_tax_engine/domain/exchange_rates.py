"""Exchange rate domain model for currency conversion."""

from dataclasses import dataclass
from datetime import date
from decimal import Decimal

from invoice_tax_engine.domain.value_objects import ExchangeRateSource


@dataclass(frozen=True, slots=True)
class PublishedRate:
    """A reference rate as published by the central bank."""

    currency: str
    rate: Decimal
    published_date: date

    def __post_init__(self) -> None:
        """Validate and coerce rate to Decimal."""
        if not isinstance(self.rate, Decimal):
            object.__setattr__(self, "rate", Decimal(str(self.rate)))
        if self.rate <= 0:
            raise ValueError(f"Exchange rate must be positive, got {self.rate}")


@dataclass(frozen=True, slots=True)
class RateResolution:
    """Immutable outcome of resolving a document's exchange rate.

    A resolution with a warning is the fallback produced when the
    rate provider could not be reached; callers should show the warning
    and let the user type the rate in.
    """

    currency: str
    rate: Decimal
    rate_date: date
    source: ExchangeRateSource = ExchangeRateSource.EXTERNAL
    warning: str | None = None

    def __post_init__(self) -> None:
        """Validate and coerce rate to Decimal."""
        if not isinstance(self.rate, Decimal):
            object.__setattr__(self, "rate", Decimal(str(self.rate)))
        if self.rate <= 0:
            raise ValueError(f"Exchange rate must be positive, got {self.rate}")

    @property
    def is_fallback(self) -> bool:
        return self.warning is not None

    @property
    def pair(self) -> str:
        """Return currency pair string like 'EUR/PLN'."""
        return f"{self.currency}/PLN"
