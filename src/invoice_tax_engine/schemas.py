"""Pydantic v2 schemas for documents and profiles entering the engine.

Raw JSON is validated here and converted into the immutable domain
dataclasses, so the services never see loosely-typed input.
"""

from datetime import date
from decimal import Decimal
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, model_validator

from invoice_tax_engine.domain.documents import Counterparty, Expense, Invoice, LineItem
from invoice_tax_engine.domain.profiles import BusinessProfile
from invoice_tax_engine.domain.value_objects import (
    LOCAL_CURRENCY,
    ExchangeRateSource,
    GtuCode,
    LegalForm,
    ProcedureMarker,
    SupplyType,
    TaxRegime,
    VatExemptionReason,
    VatRate,
)
from invoice_tax_engine.services.calculation import aggregate, build_line_item


class LineItemInput(BaseModel):
    """Schema for one invoice line."""

    model_config = ConfigDict(str_strip_whitespace=True)

    description: str = Field(default="", max_length=512)
    quantity: Decimal = Field(..., ge=0)
    unit_price: Decimal = Field(..., ge=0)
    vat_rate: str | int = Field(..., description="23, 8, 5, 0 or zw")
    unit: str = Field(default="szt.", max_length=16)

    def to_domain(self, vat_exempt: bool = False) -> LineItem:
        return build_line_item(
            self.description,
            self.quantity,
            self.unit_price,
            VatRate.EXEMPT if vat_exempt else self.vat_rate,
            unit=self.unit,
        )


class CounterpartyInput(BaseModel):
    """Schema for a buyer or supplier."""

    model_config = ConfigDict(str_strip_whitespace=True)

    name: str = Field(..., min_length=1, max_length=512)
    tax_id: str | None = Field(default=None, max_length=32)
    country_code: str = Field(default="PL", pattern=r"^[A-Z]{2}$")
    address: str | None = None

    def to_domain(self) -> Counterparty:
        return Counterparty(
            name=self.name,
            tax_id=self.tax_id or None,
            country_code=self.country_code,
            address=self.address,
        )


class DocumentInput(BaseModel):
    """Fields shared by invoices and expenses."""

    model_config = ConfigDict(str_strip_whitespace=True)

    number: str = Field(..., min_length=1, max_length=256)
    issue_date: date
    currency: str = Field(default="PLN", pattern=r"^[A-Za-z]{3}$")
    exchange_rate: Decimal | None = Field(default=None, gt=0)
    exchange_rate_date: date | None = None
    exchange_rate_source: ExchangeRateSource = ExchangeRateSource.EXTERNAL
    vat_exempt: bool = False
    vat_exemption_reason: VatExemptionReason | None = None
    items: list[LineItemInput] = Field(default_factory=list)

    @model_validator(mode="after")
    def local_currency_rate_is_one(self) -> "DocumentInput":
        if (
            self.currency.upper() == LOCAL_CURRENCY
            and self.exchange_rate is not None
            and self.exchange_rate != 1
        ):
            raise ValueError(f"exchange_rate must be 1 for {LOCAL_CURRENCY} documents")
        return self

    def needs_rate(self, local_currency: str = LOCAL_CURRENCY) -> bool:
        """True for a foreign-currency document without a stored rate."""
        return self.currency.upper() != local_currency and self.exchange_rate is None

    def _common_fields(self) -> dict[str, Any]:
        items = tuple(item.to_domain(self.vat_exempt) for item in self.items)
        reason = self.vat_exemption_reason
        if self.vat_exempt and reason is None:
            reason = VatExemptionReason.ART_113_1
        return {
            "number": self.number,
            "issue_date": self.issue_date,
            "items": items,
            "totals": aggregate(items),
            "currency": self.currency,
            "exchange_rate": self.exchange_rate or Decimal("1"),
            "exchange_rate_date": self.exchange_rate_date,
            "exchange_rate_source": self.exchange_rate_source,
            "vat_exempt": self.vat_exempt,
            "vat_exemption_reason": reason if self.vat_exempt else None,
        }


class InvoiceInput(DocumentInput):
    """Schema for a sales invoice."""

    sale_date: date | None = None
    buyer: CounterpartyInput | None = None
    gtu_codes: set[GtuCode] = Field(default_factory=set)
    procedures: set[ProcedureMarker] = Field(default_factory=set)
    supply_type: SupplyType = SupplyType.DOMESTIC

    def to_domain(self) -> Invoice:
        return Invoice(
            **self._common_fields(),
            sale_date=self.sale_date or self.issue_date,
            buyer=self.buyer.to_domain() if self.buyer else None,
            gtu_codes=frozenset(self.gtu_codes),
            procedures=frozenset(self.procedures),
            supply_type=self.supply_type,
        )


class ExpenseInput(DocumentInput):
    """Schema for a purchase document."""

    receipt_date: date | None = None
    supplier: CounterpartyInput | None = None

    def to_domain(self) -> Expense:
        return Expense(
            **self._common_fields(),
            receipt_date=self.receipt_date or self.issue_date,
            supplier=self.supplier.to_domain() if self.supplier else None,
        )


class BusinessProfileInput(BaseModel):
    """Schema for the taxpayer's business profile."""

    model_config = ConfigDict(str_strip_whitespace=True)

    name: str = Field(default="", max_length=512)
    tax_id: str = Field(default="", max_length=32)
    tax_regime: TaxRegime
    legal_form: LegalForm = LegalForm.SOLE_PROPRIETORSHIP
    vat_exempt: bool = False
    vat_exemption_reason: VatExemptionReason | None = None
    lump_sum_rate: Decimal | None = Field(default=None, ge=0, le=100)
    tax_card_amount: Decimal | None = Field(default=None, ge=0)
    tax_office_code: str | None = Field(default=None, pattern=r"^\d{4}$")
    regon: str | None = Field(default=None, pattern=r"^\d{9}(\d{5})?$")
    email: str | None = Field(default=None, max_length=255)

    @model_validator(mode="after")
    def require_lump_sum_rate(self) -> "BusinessProfileInput":
        if self.tax_regime == TaxRegime.LUMP_SUM and self.lump_sum_rate is None:
            raise ValueError("lump_sum_rate is required for the lump_sum regime")
        return self

    def to_domain(self) -> BusinessProfile:
        return BusinessProfile(
            name=self.name,
            tax_id=self.tax_id,
            tax_regime=self.tax_regime,
            legal_form=self.legal_form,
            vat_exempt=self.vat_exempt,
            vat_exemption_reason=self.vat_exemption_reason,
            lump_sum_rate=self.lump_sum_rate,
            tax_card_amount=self.tax_card_amount,
            tax_office_code=self.tax_office_code,
            regon=self.regon,
            email=self.email,
        )


class WorkloadInput(BaseModel):
    """A profile with the invoices and expenses of one or more months."""

    profile: BusinessProfileInput | None = None
    invoices: list[InvoiceInput] = Field(default_factory=list)
    expenses: list[ExpenseInput] = Field(default_factory=list)
