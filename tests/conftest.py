"""Shared fixtures for the invoice tax engine tests."""

from datetime import date

import pytest

from invoice_tax_engine.config import Environment, Settings
from invoice_tax_engine.domain.profiles import BusinessProfile
from invoice_tax_engine.domain.value_objects import TaxRegime
from invoice_tax_engine.exceptions import ExchangeRateUnavailableError
from invoice_tax_engine.logging_config import configure_logging

from factories import VALID_NIP, FakeRateProvider


@pytest.fixture(autouse=True, scope="session")
def structured_logging() -> None:
    """Route structlog through stdlib logging so caplog sees engine events."""
    configure_logging(Settings(environment=Environment.TESTING, log_format="console"))


@pytest.fixture
def settings() -> Settings:
    return Settings(
        environment=Environment.TESTING,
        rate_lookup_timeout=1.0,
        default_tax_office_code=None,
        tax_card_amount=None,
    )


@pytest.fixture
def fake_provider() -> FakeRateProvider:
    return FakeRateProvider()


@pytest.fixture
def failing_provider() -> FakeRateProvider:
    return FakeRateProvider(
        error=ExchangeRateUnavailableError("EUR", date(2024, 3, 14), "connection refused")
    )


@pytest.fixture
def flat_profile() -> BusinessProfile:
    return BusinessProfile(
        name="Jan Kowalski Uslugi IT",
        tax_id=VALID_NIP,
        tax_regime=TaxRegime.FLAT,
        tax_office_code="1471",
        email="jan@example.com",
    )


@pytest.fixture
def exempt_profile() -> BusinessProfile:
    return BusinessProfile(
        name="Mala Firma",
        tax_id=VALID_NIP,
        tax_regime=TaxRegime.FLAT,
        vat_exempt=True,
        tax_office_code="1471",
    )
