"""Events published to callers after a successful calculation."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import UTC, datetime
from uuid import UUID

from invoice_tax_engine.domain.documents import DocumentTotals
from invoice_tax_engine.domain.exchange_rates import RateResolution
from invoice_tax_engine.domain.periods import PeriodKey


def _utc_now() -> datetime:
    return datetime.now(UTC)


@dataclass(frozen=True, slots=True)
class DocumentTotalsCalculated:
    document_id: UUID
    document_number: str
    totals: DocumentTotals
    occurred_at: datetime = field(default_factory=_utc_now)


@dataclass(frozen=True, slots=True)
class ExchangeRateResolved:
    document_id: UUID
    resolution: RateResolution
    occurred_at: datetime = field(default_factory=_utc_now)


@dataclass(frozen=True, slots=True)
class DeclarationGenerated:
    period: PeriodKey
    tax_id: str
    sales_count: int
    purchase_count: int
    occurred_at: datetime = field(default_factory=_utc_now)


EngineEvent = DocumentTotalsCalculated | ExchangeRateResolved | DeclarationGenerated
