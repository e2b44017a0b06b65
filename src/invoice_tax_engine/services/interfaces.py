from __future__ import annotations

from abc import ABC, abstractmethod
from datetime import date

from invoice_tax_engine.domain.exchange_rates import PublishedRate


class ExchangeRateProvider(ABC):
    @abstractmethod
    async def fetch_rate(self, currency: str, on_or_before: date) -> PublishedRate:
        """Return the last reference rate published on or before the date.

        Implementations raise ExchangeRateUnavailableError when no rate
        can be obtained, whatever the underlying cause.
        """
        pass

    async def aclose(self) -> None:
        """Release network resources held by the provider."""
        return None
