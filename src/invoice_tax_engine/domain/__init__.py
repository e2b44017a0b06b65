from invoice_tax_engine.domain.declarations import (
    BracketAmount,
    BracketSubtotal,
    DeclarationHeader,
    DeclarationSubject,
    DeclarationSummary,
    JpkDeclaration,
    PurchaseRecord,
    SalesRecord,
)
from invoice_tax_engine.domain.documents import (
    Counterparty,
    DocumentTotals,
    Expense,
    Invoice,
    LineItem,
    MonetaryDocument,
)
from invoice_tax_engine.domain.events import (
    DeclarationGenerated,
    DocumentTotalsCalculated,
    ExchangeRateResolved,
)
from invoice_tax_engine.domain.exchange_rates import PublishedRate, RateResolution
from invoice_tax_engine.domain.periods import FilingObligation, FiscalPeriod, PeriodKey
from invoice_tax_engine.domain.profiles import BusinessProfile
from invoice_tax_engine.domain.value_objects import (
    DeclarationPurpose,
    ExchangeRateSource,
    FilingStatus,
    LegalForm,
    ObligationKind,
    TaxRegime,
    VatExemptionReason,
    VatRate,
)

__all__ = [
    "BracketAmount",
    "BracketSubtotal",
    "BusinessProfile",
    "Counterparty",
    "DeclarationGenerated",
    "DeclarationHeader",
    "DeclarationPurpose",
    "DeclarationSubject",
    "DeclarationSummary",
    "DocumentTotals",
    "DocumentTotalsCalculated",
    "ExchangeRateResolved",
    "ExchangeRateSource",
    "Expense",
    "FilingObligation",
    "FilingStatus",
    "FiscalPeriod",
    "Invoice",
    "JpkDeclaration",
    "LegalForm",
    "LineItem",
    "MonetaryDocument",
    "ObligationKind",
    "PeriodKey",
    "PublishedRate",
    "PurchaseRecord",
    "RateResolution",
    "SalesRecord",
    "TaxRegime",
    "VatExemptionReason",
    "VatRate",
]
