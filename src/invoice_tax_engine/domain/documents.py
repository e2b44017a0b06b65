"""Invoice and expense document models.

Documents are immutable snapshots handed to the engine by the caller.
Anything the engine recalculates comes back as a new record built with
dataclasses.replace.
"""

from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal
from uuid import UUID, uuid4

from invoice_tax_engine.domain.value_objects import (
    LOCAL_CURRENCY,
    ZERO,
    ExchangeRateSource,
    GtuCode,
    ProcedureMarker,
    SupplyType,
    VatExemptionReason,
    VatRate,
    normalize_currency,
    round2,
    to_decimal,
)
from invoice_tax_engine.exceptions import InvalidLineItemError


@dataclass(frozen=True, slots=True)
class LineItem:
    """A priced line with its computed net, VAT and gross values.

    Build one with services.calculation.build_line_item, which computes
    the values; the constructor only checks that they are consistent.
    """

    description: str
    quantity: Decimal
    unit_price: Decimal
    vat_rate: VatRate
    net_value: Decimal
    vat_value: Decimal
    gross_value: Decimal
    unit: str = "szt."

    def __post_init__(self) -> None:
        for name in ("quantity", "unit_price", "net_value", "vat_value", "gross_value"):
            object.__setattr__(self, name, to_decimal(getattr(self, name)))
        object.__setattr__(self, "vat_rate", VatRate.parse(self.vat_rate))
        if self.quantity < 0:
            raise InvalidLineItemError("quantity", self.quantity, "must not be negative")
        if self.unit_price < 0:
            raise InvalidLineItemError("unit price", self.unit_price, "must not be negative")
        if self.gross_value != self.net_value + self.vat_value:
            raise ValueError(
                f"Gross {self.gross_value} != net {self.net_value} + vat {self.vat_value}"
            )
        if self.vat_rate.is_exempt and self.vat_value != 0:
            raise ValueError(f"Exempt item carries VAT {self.vat_value}")


@dataclass(frozen=True, slots=True)
class DocumentTotals:
    total_net: Decimal
    total_vat: Decimal
    total_gross: Decimal

    @classmethod
    def zero(cls) -> "DocumentTotals":
        return cls(ZERO, ZERO, ZERO)

    def converted(self, rate: Decimal) -> "DocumentTotals":
        """Totals in the local currency at the given exchange rate."""
        return DocumentTotals(
            total_net=round2(self.total_net * rate),
            total_vat=round2(self.total_vat * rate),
            total_gross=round2(self.total_gross * rate),
        )


@dataclass(frozen=True, slots=True)
class Counterparty:
    name: str
    tax_id: str | None = None
    country_code: str = "PL"
    address: str | None = None

    @property
    def is_domestic(self) -> bool:
        return self.country_code.upper() == "PL"


@dataclass(frozen=True, slots=True)
class MonetaryDocument:
    """Shape shared by sales invoices and purchase expenses."""

    number: str
    issue_date: date
    items: tuple[LineItem, ...] = ()
    totals: DocumentTotals = field(default_factory=DocumentTotals.zero)
    currency: str = "PLN"
    exchange_rate: Decimal = Decimal("1")
    exchange_rate_date: date | None = None
    exchange_rate_source: ExchangeRateSource = ExchangeRateSource.EXTERNAL
    vat_exempt: bool = False
    vat_exemption_reason: VatExemptionReason | None = None
    id: UUID = field(default_factory=uuid4)

    def __post_init__(self) -> None:
        object.__setattr__(self, "currency", normalize_currency(self.currency))
        object.__setattr__(self, "items", tuple(self.items))
        if not isinstance(self.exchange_rate, Decimal):
            object.__setattr__(self, "exchange_rate", to_decimal(self.exchange_rate))
        if self.exchange_rate <= 0:
            raise ValueError(f"Exchange rate must be positive, got {self.exchange_rate}")
        if self.currency == LOCAL_CURRENCY and self.exchange_rate != 1:
            raise ValueError(
                f"A {LOCAL_CURRENCY} document must have exchange rate 1, got {self.exchange_rate}"
            )

    @property
    def local_totals(self) -> DocumentTotals:
        if self.exchange_rate == 1:
            return self.totals
        return self.totals.converted(self.exchange_rate)

    @property
    def sort_key(self) -> tuple[date, str]:
        return (self.issue_date, self.number)

    @property
    def counterparty(self) -> Counterparty | None:
        return None


@dataclass(frozen=True, slots=True)
class Invoice(MonetaryDocument):
    """Sales invoice; counts as income.

    gtu_codes and procedures are the register flags of the sale, and
    supply_type tells domestic 0% sales apart from intra-community
    supplies and exports.
    """

    sale_date: date | None = None
    buyer: Counterparty | None = None
    gtu_codes: frozenset[GtuCode] = frozenset()
    procedures: frozenset[ProcedureMarker] = frozenset()
    supply_type: SupplyType = SupplyType.DOMESTIC

    def __post_init__(self) -> None:
        MonetaryDocument.__post_init__(self)
        object.__setattr__(self, "gtu_codes", frozenset(GtuCode(c) for c in self.gtu_codes))
        object.__setattr__(
            self, "procedures", frozenset(ProcedureMarker(p) for p in self.procedures)
        )
        object.__setattr__(self, "supply_type", SupplyType(self.supply_type))

    @property
    def counterparty(self) -> Counterparty | None:
        return self.buyer


@dataclass(frozen=True, slots=True)
class Expense(MonetaryDocument):
    """Purchase document; counts as a deductible expense."""

    supplier: Counterparty | None = None
    receipt_date: date | None = None

    @property
    def counterparty(self) -> Counterparty | None:
        return self.supplier
