from invoice_tax_engine.domain.documents import (
    Counterparty,
    DocumentTotals,
    Expense,
    Invoice,
    LineItem,
)
from invoice_tax_engine.domain.profiles import BusinessProfile
from invoice_tax_engine.domain.value_objects import TaxRegime, VatRate

__all__ = [
    "BusinessProfile",
    "Counterparty",
    "DocumentTotals",
    "Expense",
    "Invoice",
    "LineItem",
    "TaxRegime",
    "VatRate",
]

__version__ = "0.1.0"
