"""Dependency container for the invoice tax engine.

Wires the services from one Settings instance. Create one container per
generation run: the currency service it holds memoises rates for the
lifetime of the container.

Usage:
    from invoice_tax_engine.container import Container

    async with Container() as container:
        assembled = await container.assembly_service.assemble_invoice(...)
        periods = container.period_aggregator.build_periods(docs, profile, today)
"""

from functools import cached_property
from typing import TYPE_CHECKING

from invoice_tax_engine.config import Settings, get_settings
from invoice_tax_engine.logging_config import get_logger

if TYPE_CHECKING:
    from invoice_tax_engine.services.currency import CurrencyConversionService
    from invoice_tax_engine.services.documents import DocumentAssemblyService
    from invoice_tax_engine.services.events import EventDispatcher
    from invoice_tax_engine.services.interfaces import ExchangeRateProvider
    from invoice_tax_engine.services.jpk_builder import JpkDeclarationBuilder
    from invoice_tax_engine.services.jpk_serializer import JpkXmlSerializer
    from invoice_tax_engine.services.tax_estimator import TaxEstimator
    from invoice_tax_engine.services.tax_periods import TaxPeriodAggregator

logger = get_logger(__name__)


class Container:
    """Lazily built services sharing one settings object and one dispatcher.

    Tests can swap the rate provider; the caller keeps ownership of it:

        container = Container(settings=Settings(), rate_provider=FakeProvider())
    """

    def __init__(
        self,
        settings: Settings | None = None,
        rate_provider: "ExchangeRateProvider | None" = None,
    ) -> None:
        self._settings = settings or get_settings()
        self._rate_provider_override = rate_provider
        logger.debug(
            "container_created",
            environment=self._settings.environment.value,
            local_currency=self._settings.local_currency,
        )

    @property
    def settings(self) -> Settings:
        return self._settings

    @cached_property
    def dispatcher(self) -> "EventDispatcher":
        from invoice_tax_engine.services.events import EventDispatcher

        return EventDispatcher()

    @cached_property
    def rate_provider(self) -> "ExchangeRateProvider":
        """The injected provider, or the NBP API client."""
        if self._rate_provider_override is not None:
            return self._rate_provider_override

        from invoice_tax_engine.services.currency import NbpRateProvider

        logger.debug("creating_nbp_rate_provider", base_url=self._settings.nbp_api_url)
        return NbpRateProvider(settings=self._settings)

    @cached_property
    def currency_service(self) -> "CurrencyConversionService":
        from invoice_tax_engine.services.currency import CurrencyConversionService

        return CurrencyConversionService(self.rate_provider, settings=self._settings)

    @cached_property
    def tax_estimator(self) -> "TaxEstimator":
        from invoice_tax_engine.services.tax_estimator import TaxEstimator

        return TaxEstimator(settings=self._settings)

    @cached_property
    def period_aggregator(self) -> "TaxPeriodAggregator":
        from invoice_tax_engine.services.tax_periods import TaxPeriodAggregator

        return TaxPeriodAggregator(self.tax_estimator, settings=self._settings)

    @cached_property
    def assembly_service(self) -> "DocumentAssemblyService":
        from invoice_tax_engine.services.documents import DocumentAssemblyService

        return DocumentAssemblyService(self.currency_service, self.dispatcher)

    @cached_property
    def jpk_builder(self) -> "JpkDeclarationBuilder":
        from invoice_tax_engine.services.jpk_builder import JpkDeclarationBuilder

        return JpkDeclarationBuilder(dispatcher=self.dispatcher, settings=self._settings)

    @cached_property
    def jpk_serializer(self) -> "JpkXmlSerializer":
        from invoice_tax_engine.services.jpk_serializer import JpkXmlSerializer

        return JpkXmlSerializer()

    async def aclose(self) -> None:
        """Close the NBP provider if this container created it.

        An injected provider belongs to the caller and is left open.
        """
        if self._rate_provider_override is None and "rate_provider" in self.__dict__:
            logger.debug("closing_rate_provider")
            await self.rate_provider.aclose()

    async def __aenter__(self) -> "Container":
        return self

    async def __aexit__(self, *args: object) -> None:
        await self.aclose()
