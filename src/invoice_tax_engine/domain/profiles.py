"""Business profile model."""

from dataclasses import dataclass, field
from decimal import Decimal
from uuid import UUID, uuid4

from invoice_tax_engine.domain.value_objects import (
    LegalForm,
    TaxRegime,
    VatExemptionReason,
)


@dataclass(frozen=True, slots=True)
class BusinessProfile:
    """Read-only description of the taxpayer the engine calculates for.

    lump_sum_rate is a percentage (e.g. 8.5) and is required for the
    LUMP_SUM regime. tax_card_amount is the monthly amount for TAX_CARD.
    """

    name: str
    tax_id: str
    tax_regime: TaxRegime
    legal_form: LegalForm = LegalForm.SOLE_PROPRIETORSHIP
    vat_exempt: bool = False
    vat_exemption_reason: VatExemptionReason | None = None
    lump_sum_rate: Decimal | None = None
    tax_card_amount: Decimal | None = None
    tax_office_code: str | None = None
    regon: str | None = None
    email: str | None = None
    id: UUID = field(default_factory=uuid4)

    def __post_init__(self) -> None:
        for name in ("lump_sum_rate", "tax_card_amount"):
            value = getattr(self, name)
            if value is not None and not isinstance(value, Decimal):
                object.__setattr__(self, name, Decimal(str(value)))

    @property
    def is_vat_registered(self) -> bool:
        return not self.vat_exempt
