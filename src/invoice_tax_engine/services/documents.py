"""Assembly of invoices and expenses from raw item input.

Runs the whole pipeline for one document: item values, totals, then the
exchange rate. Subscribers of the dispatcher are told about each
successful step.
"""

import dataclasses
from collections.abc import Iterable
from dataclasses import dataclass
from datetime import date
from typing import Any, TypeVar

from invoice_tax_engine.domain.documents import (
    Counterparty,
    Expense,
    Invoice,
    LineItem,
    MonetaryDocument,
)
from invoice_tax_engine.domain.events import DocumentTotalsCalculated, ExchangeRateResolved
from invoice_tax_engine.domain.exchange_rates import RateResolution
from invoice_tax_engine.domain.value_objects import (
    GtuCode,
    ProcedureMarker,
    SupplyType,
    VatExemptionReason,
    VatRate,
)
from invoice_tax_engine.logging_config import get_logger
from invoice_tax_engine.services.calculation import aggregate, build_line_item
from invoice_tax_engine.services.currency import CurrencyConversionService, apply_resolution
from invoice_tax_engine.services.events import EventDispatcher

logger = get_logger(__name__)

DocumentT = TypeVar("DocumentT", bound=MonetaryDocument)


@dataclass(frozen=True, slots=True)
class ItemInput:
    description: str
    quantity: Any
    unit_price: Any
    vat_rate: Any
    unit: str = "szt."


@dataclass(frozen=True, slots=True)
class AssembledDocument:
    document: MonetaryDocument
    rate: RateResolution

    @property
    def warning(self) -> str | None:
        return self.rate.warning


class DocumentAssemblyService:
    def __init__(
        self,
        currency_service: CurrencyConversionService,
        dispatcher: EventDispatcher | None = None,
        default_exemption_reason: VatExemptionReason = VatExemptionReason.ART_113_1,
    ) -> None:
        self._currency = currency_service
        self._dispatcher = dispatcher
        self._default_exemption_reason = default_exemption_reason

    def build_items(self, items: Iterable[ItemInput], *, vat_exempt: bool = False) -> tuple[LineItem, ...]:
        """Compute line items; a VAT-exempt document puts every item in the exempt bracket."""
        return tuple(
            build_line_item(
                item.description,
                item.quantity,
                item.unit_price,
                VatRate.EXEMPT if vat_exempt else item.vat_rate,
                unit=item.unit,
            )
            for item in items
        )

    def recalculate(self, document: DocumentT) -> DocumentT:
        """Return a copy of the document with totals summed from its items."""
        totals = aggregate(document.items)
        updated = dataclasses.replace(document, totals=totals)
        self._publish(
            DocumentTotalsCalculated(
                document_id=updated.id, document_number=updated.number, totals=totals
            )
        )
        return updated

    async def assemble_invoice(
        self,
        *,
        number: str,
        issue_date: date,
        items: Iterable[ItemInput],
        buyer: Counterparty | None = None,
        sale_date: date | None = None,
        currency: str = "PLN",
        manual_rate: Any = None,
        vat_exempt: bool = False,
        vat_exemption_reason: VatExemptionReason | None = None,
        gtu_codes: Iterable[GtuCode | str] = (),
        procedures: Iterable[ProcedureMarker | str] = (),
        supply_type: SupplyType = SupplyType.DOMESTIC,
    ) -> AssembledDocument:
        invoice = Invoice(
            number=number,
            issue_date=issue_date,
            items=self.build_items(items, vat_exempt=vat_exempt),
            currency=currency,
            vat_exempt=vat_exempt,
            vat_exemption_reason=self._exemption_reason(vat_exempt, vat_exemption_reason),
            sale_date=sale_date or issue_date,
            buyer=buyer,
            gtu_codes=frozenset(gtu_codes),
            procedures=frozenset(procedures),
            supply_type=supply_type,
        )
        return await self._finish(invoice, manual_rate)

    async def assemble_expense(
        self,
        *,
        number: str,
        issue_date: date,
        items: Iterable[ItemInput],
        supplier: Counterparty | None = None,
        receipt_date: date | None = None,
        currency: str = "PLN",
        manual_rate: Any = None,
        vat_exempt: bool = False,
        vat_exemption_reason: VatExemptionReason | None = None,
    ) -> AssembledDocument:
        expense = Expense(
            number=number,
            issue_date=issue_date,
            items=self.build_items(items, vat_exempt=vat_exempt),
            currency=currency,
            vat_exempt=vat_exempt,
            vat_exemption_reason=self._exemption_reason(vat_exempt, vat_exemption_reason),
            supplier=supplier,
            receipt_date=receipt_date or issue_date,
        )
        return await self._finish(expense, manual_rate)

    def _exemption_reason(
        self, vat_exempt: bool, reason: VatExemptionReason | None
    ) -> VatExemptionReason | None:
        if not vat_exempt:
            return None
        return reason or self._default_exemption_reason

    async def _finish(self, document: MonetaryDocument, manual_rate: Any) -> AssembledDocument:
        document = self.recalculate(document)
        resolution = await self._currency.resolve_rate(
            document.currency, document.issue_date, override=manual_rate
        )
        document = apply_resolution(document, resolution)
        self._publish(ExchangeRateResolved(document_id=document.id, resolution=resolution))
        logger.info(
            "document_assembled",
            document_number=document.number,
            currency=document.currency,
            total_gross=str(document.totals.total_gross),
            rate_source=resolution.source.value,
        )
        return AssembledDocument(document=document, rate=resolution)

    def _publish(self, event: Any) -> None:
        if self._dispatcher is not None:
            self._dispatcher.publish(event)
