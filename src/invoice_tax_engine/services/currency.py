"""Exchange rate resolution for foreign-currency documents.

Documents issued in a foreign currency are converted at the NBP table A
mid rate from the last publication before the issue date. The lookup is
the only network call in the engine: it is bounded by a timeout and on
any failure degrades to a manual rate of 1 with a warning, so document
creation is never blocked.
"""

import asyncio
import dataclasses
from datetime import date, timedelta
from decimal import Decimal, InvalidOperation
from typing import Any, TypeVar

import httpx

from invoice_tax_engine.config import Settings, get_settings
from invoice_tax_engine.domain.documents import MonetaryDocument
from invoice_tax_engine.domain.exchange_rates import PublishedRate, RateResolution
from invoice_tax_engine.domain.value_objects import (
    ExchangeRateSource,
    normalize_currency,
    to_decimal,
)
from invoice_tax_engine.exceptions import (
    ExchangeRateUnavailableError,
    ExternalServiceError,
    ValidationError,
)
from invoice_tax_engine.logging_config import get_logger
from invoice_tax_engine.services.interfaces import ExchangeRateProvider

logger = get_logger(__name__)

DocumentT = TypeVar("DocumentT", bound=MonetaryDocument)


class NbpRateProvider(ExchangeRateProvider):
    """Reads table A mid rates from the National Bank of Poland API.

    NBP publishes nothing on weekends and holidays, so the provider asks
    for a window of days ending at the requested date and takes the
    latest quote in it.
    """

    def __init__(
        self,
        base_url: str | None = None,
        client: httpx.AsyncClient | None = None,
        timeout: float | None = None,
        lookback_days: int | None = None,
        settings: Settings | None = None,
    ) -> None:
        settings = settings or get_settings()
        self._base_url = (base_url or settings.nbp_api_url).rstrip("/")
        self._timeout = timeout or settings.rate_lookup_timeout
        self._lookback_days = (
            settings.rate_lookback_days if lookback_days is None else lookback_days
        )
        self._client = client

    def _url(self, currency: str, start: date, end: date) -> str:
        return (
            f"{self._base_url}/exchangerates/rates/a/{currency.lower()}/"
            f"{start.isoformat()}/{end.isoformat()}/"
        )

    async def _get(self, url: str) -> httpx.Response:
        params = {"format": "json"}
        if self._client is not None:
            return await self._client.get(url, params=params)
        async with httpx.AsyncClient(timeout=self._timeout) as client:
            return await client.get(url, params=params)

    async def fetch_rate(self, currency: str, on_or_before: date) -> PublishedRate:
        start = on_or_before - timedelta(days=self._lookback_days)
        url = self._url(currency, start, on_or_before)

        try:
            r = await self._get(url)
        except httpx.HTTPError as e:
            raise ExchangeRateUnavailableError(
                currency, on_or_before, f"request failed ({e.__class__.__name__})"
            ) from e

        if r.status_code == 404:
            raise ExchangeRateUnavailableError(
                currency, on_or_before, "no rate published in the lookup window"
            )
        if r.status_code != 200:
            raise ExchangeRateUnavailableError(
                currency, on_or_before, f"rate service answered HTTP {r.status_code}"
            )

        try:
            payload: dict[str, Any] = r.json(parse_float=Decimal)
            entry = payload["rates"][-1]
            return PublishedRate(
                currency=currency,
                rate=Decimal(str(entry["mid"])),
                published_date=date.fromisoformat(entry["effectiveDate"]),
            )
        except (ValueError, KeyError, IndexError, TypeError, InvalidOperation) as e:
            raise ExchangeRateUnavailableError(
                currency, on_or_before, "malformed response from the rate service"
            ) from e

    async def aclose(self) -> None:
        if self._client is not None:
            await self._client.aclose()


class CurrencyConversionService:
    """Resolves exchange rates for documents.

    Resolutions are memoised per (currency, lookup date) for the lifetime
    of the instance; create one service per generation run or call
    clear_cache() between runs.
    """

    def __init__(
        self,
        provider: ExchangeRateProvider | None = None,
        *,
        local_currency: str | None = None,
        timeout: float | None = None,
        settings: Settings | None = None,
    ) -> None:
        settings = settings or get_settings()
        self._provider = provider if provider is not None else NbpRateProvider(settings=settings)
        self._local_currency = normalize_currency(local_currency or settings.local_currency)
        self._timeout = timeout or settings.rate_lookup_timeout
        self._cache: dict[tuple[str, date], RateResolution] = {}

    @property
    def local_currency(self) -> str:
        return self._local_currency

    def clear_cache(self) -> None:
        self._cache.clear()

    async def resolve_rate(
        self,
        currency: str,
        issue_date: date,
        *,
        override: Decimal | str | None = None,
    ) -> RateResolution:
        """Resolve the rate for a document issued on issue_date.

        Args:
            currency: ISO 4217 code of the document.
            issue_date: Document issue date.
            override: Rate typed in by the user; always wins.

        Returns:
            RateResolution. For the local currency the rate is 1 and no
            request is made. A failed lookup yields rate 1 dated the
            preceding day, tagged MANUAL, with a warning.

        Raises:
            InvalidCurrencyError: If the currency code is malformed.
            ValidationError: If the override is not a positive number.
        """
        code = normalize_currency(currency)
        if code == self._local_currency:
            return RateResolution(
                currency=code,
                rate=Decimal("1"),
                rate_date=issue_date,
                source=ExchangeRateSource.EXTERNAL,
            )

        preceding_day = issue_date - timedelta(days=1)
        if override is not None:
            return RateResolution(
                currency=code,
                rate=_manual_rate(override),
                rate_date=preceding_day,
                source=ExchangeRateSource.MANUAL,
            )

        key = (code, preceding_day)
        cached = self._cache.get(key)
        if cached is not None:
            return cached

        resolution = await self._lookup(code, preceding_day)
        self._cache[key] = resolution
        return resolution

    async def _lookup(self, currency: str, preceding_day: date) -> RateResolution:
        try:
            published = await asyncio.wait_for(
                self._provider.fetch_rate(currency, preceding_day), timeout=self._timeout
            )
            resolution = RateResolution(
                currency=currency,
                rate=published.rate,
                rate_date=published.published_date,
                source=ExchangeRateSource.EXTERNAL,
            )
        except TimeoutError:
            return self._fallback(
                currency, preceding_day, f"rate lookup timed out after {self._timeout:g}s"
            )
        except (ExternalServiceError, httpx.HTTPError) as e:
            return self._fallback(currency, preceding_day, str(e))
        except (ValueError, TypeError, ArithmeticError) as e:
            # the provider answered, but not with a usable rate
            return self._fallback(currency, preceding_day, f"unusable rate ({e})")

        logger.debug(
            "exchange_rate_resolved",
            currency=currency,
            rate=str(resolution.rate),
            rate_date=resolution.rate_date.isoformat(),
        )
        return resolution

    def _fallback(self, currency: str, preceding_day: date, reason: str) -> RateResolution:
        warning = (
            f"Could not fetch the {currency} exchange rate for {preceding_day.isoformat()}: "
            f"{reason}. Enter the rate manually."
        )
        logger.warning(
            "exchange_rate_fallback",
            currency=currency,
            rate_date=preceding_day.isoformat(),
            reason=reason,
        )
        return RateResolution(
            currency=currency,
            rate=Decimal("1"),
            rate_date=preceding_day,
            source=ExchangeRateSource.MANUAL,
            warning=warning,
        )

    async def refresh_document_rate(
        self, document: DocumentT, previous: MonetaryDocument | None = None
    ) -> DocumentT:
        """Re-resolve a document's rate unless the user set it by hand.

        A MANUAL rate is kept as long as the currency and issue date are
        unchanged relative to previous.
        """
        if document.exchange_rate_source == ExchangeRateSource.MANUAL and not _rate_inputs_changed(
            document, previous
        ):
            return document
        resolution = await self.resolve_rate(document.currency, document.issue_date)
        return apply_resolution(document, resolution)


def _manual_rate(value: Decimal | str) -> Decimal:
    try:
        rate = to_decimal(value)
    except ValueError:
        raise ValidationError(f"Exchange rate '{value}' is not a number") from None
    if rate <= 0:
        raise ValidationError(f"Exchange rate must be positive, got {value}")
    return rate


def _rate_inputs_changed(document: MonetaryDocument, previous: MonetaryDocument | None) -> bool:
    if previous is None:
        return False
    return (
        document.currency != previous.currency
        or document.issue_date != previous.issue_date
    )


def apply_resolution(document: DocumentT, resolution: RateResolution) -> DocumentT:
    """Return a copy of the document carrying the resolved rate."""
    return dataclasses.replace(
        document,
        exchange_rate=resolution.rate,
        exchange_rate_date=resolution.rate_date,
        exchange_rate_source=resolution.source,
    )
