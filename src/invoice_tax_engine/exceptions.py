"""Domain exception hierarchy for the invoice tax engine.

All engine-specific exceptions inherit from InvoiceEngineError.
This allows catching all application errors with a single base class
while preserving specificity for individual error types. Every message
is meant to be shown to the user as-is.
"""

from typing import Any


class InvoiceEngineError(Exception):
    """Base exception for all invoice tax engine errors.

    Includes an error_code for callers that map errors to responses
    and extra context for logging.
    """

    error_code: str = "ENGINE_ERROR"

    def __init__(
        self,
        message: str,
        *,
        error_code: str | None = None,
        context: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        if error_code:
            self.error_code = error_code
        self.context = context or {}

    def to_dict(self) -> dict[str, Any]:
        """Convert exception to dictionary for API responses."""
        return {
            "error": self.error_code,
            "message": self.message,
            "context": self.context,
        }


# =============================================================================
# Validation Errors
# =============================================================================


class ValidationError(InvoiceEngineError):
    """Base exception for rejected input."""

    error_code = "VALIDATION_ERROR"


class InvalidLineItemError(ValidationError):
    """Raised when a line item quantity or unit price is unusable."""

    error_code = "INVALID_LINE_ITEM"

    def __init__(self, field_name: str, value: Any, reason: str) -> None:
        super().__init__(
            f"Invalid {field_name} '{value}': {reason}",
            context={"field": field_name, "value": str(value)},
        )


class InvalidVatRateError(ValidationError):
    """Raised when a VAT rate is not one of the statutory brackets."""

    error_code = "INVALID_VAT_RATE"

    def __init__(self, value: Any) -> None:
        super().__init__(
            f"Unsupported VAT rate '{value}'. Use one of: 23, 8, 5, 0, zw",
            context={"vat_rate": str(value)},
        )


class InvalidCurrencyError(ValidationError):
    """Raised when a currency code is invalid."""

    error_code = "INVALID_CURRENCY"

    def __init__(self, currency: str) -> None:
        super().__init__(
            f"Invalid currency code: {currency}",
            context={"currency": currency},
        )


class InvalidPeriodError(ValidationError):
    """Raised when a fiscal period key cannot be parsed."""

    error_code = "INVALID_PERIOD"

    def __init__(self, value: str) -> None:
        super().__init__(
            f"Invalid period '{value}', expected YYYY-MM",
            context={"period": value},
        )


# =============================================================================
# External Service Errors
# =============================================================================


class ExternalServiceError(InvoiceEngineError):
    """Base exception for failures of remote services."""

    error_code = "EXTERNAL_SERVICE_ERROR"


class ExchangeRateUnavailableError(ExternalServiceError):
    """Raised by rate providers when no usable rate could be fetched."""

    error_code = "EXCHANGE_RATE_UNAVAILABLE"

    def __init__(self, currency: str, on_date: Any, reason: str) -> None:
        super().__init__(
            f"No exchange rate for {currency} on {on_date}: {reason}",
            context={"currency": currency, "date": str(on_date)},
        )


# =============================================================================
# Generation Errors
# =============================================================================


class GenerationError(InvoiceEngineError):
    """Base exception for declaration generation failures."""

    error_code = "GENERATION_ERROR"


class MissingProfileError(GenerationError):
    """Raised when no business profile is selected."""

    error_code = "MISSING_PROFILE"

    def __init__(self) -> None:
        super().__init__(
            "No business profile selected. Select a business profile before "
            "generating the declaration."
        )


class VatExemptProfileError(GenerationError):
    """Raised when a VAT-exempt business asks for a VAT declaration."""

    error_code = "VAT_EXEMPT_PROFILE"

    def __init__(self, tax_id: str | None) -> None:
        super().__init__(
            "The business is exempt from VAT and does not file JPK_V7M. "
            "Disable the VAT exemption in the business profile first.",
            context={"tax_id": tax_id or ""},
        )


class IncompleteDeclarationError(GenerationError):
    """Raised when a declaration lacks a mandatory field."""

    error_code = "INCOMPLETE_DECLARATION"

    def __init__(self, field_name: str, reason: str) -> None:
        super().__init__(
            f"Cannot generate the declaration: {field_name} {reason}",
            context={"field": field_name},
        )


# =============================================================================
# Calculation Errors
# =============================================================================


class CalculationError(InvoiceEngineError):
    """Base exception for tax calculation failures."""

    error_code = "CALCULATION_ERROR"


class UnsupportedTaxRegimeError(CalculationError):
    """Raised when a tax regime is unknown or missing its parameters."""

    error_code = "UNSUPPORTED_TAX_REGIME"

    def __init__(self, regime: Any, reason: str = "is not supported") -> None:
        super().__init__(
            f"Tax regime '{regime}' {reason}",
            context={"regime": str(regime)},
        )
