"""JPK_V7M declaration data model.

Amounts are in PLN and already rounded to two decimals. A declaration
is built fresh per generation request and never changed afterwards.
"""

from dataclasses import dataclass
from datetime import date, datetime
from decimal import Decimal

from invoice_tax_engine.domain.periods import PeriodKey
from invoice_tax_engine.domain.value_objects import (
    ZERO,
    DeclarationPurpose,
    GtuCode,
    ProcedureMarker,
    SupplyType,
    VatRate,
)


@dataclass(frozen=True, slots=True)
class BracketAmount:
    vat_rate: VatRate
    net: Decimal
    vat: Decimal


@dataclass(frozen=True, slots=True)
class SalesRecord:
    line_number: int
    document_number: str
    issue_date: date
    sale_date: date
    counterparty_name: str
    counterparty_tax_id: str | None
    country_code: str
    amounts: tuple[BracketAmount, ...]
    gtu_codes: frozenset[GtuCode] = frozenset()
    procedures: frozenset[ProcedureMarker] = frozenset()
    supply_type: SupplyType = SupplyType.DOMESTIC

    @property
    def total_net(self) -> Decimal:
        return sum((a.net for a in self.amounts), ZERO)

    @property
    def total_vat(self) -> Decimal:
        return sum((a.vat for a in self.amounts), ZERO)

    @property
    def zero_rated_net(self) -> Decimal:
        return sum((a.net for a in self.amounts if a.vat_rate is VatRate.RATE_0), ZERO)


@dataclass(frozen=True, slots=True)
class PurchaseRecord:
    line_number: int
    document_number: str
    issue_date: date
    receipt_date: date
    counterparty_name: str
    counterparty_tax_id: str | None
    country_code: str
    amounts: tuple[BracketAmount, ...]

    @property
    def total_net(self) -> Decimal:
        return sum((a.net for a in self.amounts), ZERO)

    @property
    def total_vat(self) -> Decimal:
        return sum((a.vat for a in self.amounts), ZERO)


@dataclass(frozen=True, slots=True)
class BracketSubtotal:
    vat_rate: VatRate
    net: Decimal
    vat: Decimal
    document_count: int

    @property
    def gross(self) -> Decimal:
        return self.net + self.vat


@dataclass(frozen=True, slots=True)
class DeclarationSummary:
    total_net: Decimal
    total_vat: Decimal
    total_gross: Decimal
    output_vat: Decimal
    input_vat: Decimal
    vat_payable: Decimal
    vat_surplus: Decimal


@dataclass(frozen=True, slots=True)
class DeclarationHeader:
    period: PeriodKey
    date_from: date
    date_to: date
    generated_at: datetime
    purpose: DeclarationPurpose
    system_name: str
    tax_office_code: str | None


@dataclass(frozen=True, slots=True)
class DeclarationSubject:
    """The submitting entity (Podmiot1)."""

    tax_id: str
    full_name: str
    regon: str | None = None
    email: str | None = None


@dataclass(frozen=True, slots=True)
class JpkDeclaration:
    header: DeclarationHeader
    subject: DeclarationSubject
    sales: tuple[SalesRecord, ...]
    purchases: tuple[PurchaseRecord, ...]
    sales_subtotals: tuple[BracketSubtotal, ...]
    purchase_subtotals: tuple[BracketSubtotal, ...]
    summary: DeclarationSummary

    def sales_subtotal(self, vat_rate: VatRate) -> BracketSubtotal | None:
        for subtotal in self.sales_subtotals:
            if subtotal.vat_rate == vat_rate:
                return subtotal
        return None

    def purchase_subtotal(self, vat_rate: VatRate) -> BracketSubtotal | None:
        for subtotal in self.purchase_subtotals:
            if subtotal.vat_rate == vat_rate:
                return subtotal
        return None

    def zero_rated_net(self, supply_type: SupplyType) -> Decimal:
        """Net of 0% sales of one supply type."""
        return sum(
            (r.zero_rated_net for r in self.sales if r.supply_type is supply_type), ZERO
        )
