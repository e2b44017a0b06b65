from invoice_tax_engine.services.calculation import (
    ItemValues,
    aggregate,
    aggregate_by_rate,
    build_line_item,
    compute_item,
)
from invoice_tax_engine.services.currency import (
    CurrencyConversionService,
    NbpRateProvider,
)
from invoice_tax_engine.services.documents import (
    AssembledDocument,
    DocumentAssemblyService,
    ItemInput,
)
from invoice_tax_engine.services.events import EventDispatcher
from invoice_tax_engine.services.interfaces import ExchangeRateProvider
from invoice_tax_engine.services.jpk_builder import JpkDeclarationBuilder
from invoice_tax_engine.services.jpk_serializer import JpkXmlSerializer
from invoice_tax_engine.services.jpk_validator import (
    ValidationIssue,
    ValidationResult,
    validate_declaration,
)
from invoice_tax_engine.services.tax_estimator import (
    DEFAULT_PROGRESSIVE_SCHEDULE,
    ProgressiveSchedule,
    TaxBracket,
    TaxEstimator,
)
from invoice_tax_engine.services.tax_periods import TaxPeriodAggregator, filing_status

__all__ = [
    "AssembledDocument",
    "CurrencyConversionService",
    "DEFAULT_PROGRESSIVE_SCHEDULE",
    "DocumentAssemblyService",
    "EventDispatcher",
    "ExchangeRateProvider",
    "ItemInput",
    "ItemValues",
    "JpkDeclarationBuilder",
    "JpkXmlSerializer",
    "NbpRateProvider",
    "ProgressiveSchedule",
    "TaxBracket",
    "TaxEstimator",
    "TaxPeriodAggregator",
    "ValidationIssue",
    "ValidationResult",
    "aggregate",
    "aggregate_by_rate",
    "build_line_item",
    "compute_item",
    "filing_status",
    "validate_declaration",
]
