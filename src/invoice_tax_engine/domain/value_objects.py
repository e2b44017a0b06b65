from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from enum import Enum
from typing import Any

from invoice_tax_engine.exceptions import InvalidCurrencyError, InvalidVatRateError

CENT = Decimal("0.01")
ZERO = Decimal("0.00")

# Currency every declaration and tax amount is reported in
LOCAL_CURRENCY = "PLN"


def round2(value: Decimal) -> Decimal:
    """Round half-up to the smallest currency subunit."""
    return value.quantize(CENT, rounding=ROUND_HALF_UP)


def to_decimal(value: Any) -> Decimal:
    """Coerce ints, floats and numeric strings to Decimal.

    Floats go through str() so 0.1 stays 0.1. Raises ValueError for
    anything that is not a finite number.
    """
    if isinstance(value, bool):
        raise ValueError(f"Not a number: {value!r}")
    if isinstance(value, Decimal):
        result = value
    else:
        try:
            result = Decimal(str(value).strip().replace(",", "."))
        except InvalidOperation as e:
            raise ValueError(f"Not a number: {value!r}") from e
    if not result.is_finite():
        raise ValueError(f"Not a finite number: {value!r}")
    return result


def normalize_currency(code: str) -> str:
    """Return an upper-case ISO 4217 code or raise InvalidCurrencyError."""
    if not isinstance(code, str):
        raise InvalidCurrencyError(str(code))
    cleaned = code.strip().upper()
    if len(cleaned) != 3 or not cleaned.isalpha():
        raise InvalidCurrencyError(code)
    return cleaned


class VatRate(str, Enum):
    """Statutory Polish VAT brackets.

    Member order is the canonical bracket order used for subtotals.
    """

    RATE_23 = "23"
    RATE_8 = "8"
    RATE_5 = "5"
    RATE_0 = "0"
    EXEMPT = "zw"

    @property
    def is_exempt(self) -> bool:
        return self is VatRate.EXEMPT

    @property
    def percentage(self) -> Decimal | None:
        if self.is_exempt:
            return None
        return Decimal(self.value)

    @property
    def label(self) -> str:
        return "zw" if self.is_exempt else f"{self.value}%"

    @classmethod
    def parse(cls, value: Any) -> "VatRate":
        """Parse user input such as 23, "8", "8%", "zw" or the legacy -1."""
        if isinstance(value, cls):
            return value
        if isinstance(value, bool) or value is None:
            raise InvalidVatRateError(value)

        text = str(value).strip().lower().rstrip("%").strip()
        if text in ("zw", "exempt", "-1"):
            return cls.EXEMPT
        try:
            number = Decimal(text)
        except InvalidOperation:
            raise InvalidVatRateError(value) from None
        if not number.is_finite() or number != number.to_integral_value():
            raise InvalidVatRateError(value)
        if number == -1:
            return cls.EXEMPT
        try:
            return cls(str(int(number)))
        except ValueError:
            raise InvalidVatRateError(value) from None


class VatExemptionReason(str, Enum):
    """Legal basis of a VAT exemption, keyed by article of the VAT act."""

    ART_113_1 = "113_1"
    ART_43_1 = "43_1"
    ART_41_4 = "41_4"
    ART_42 = "42"
    ART_28B = "28b"
    ART_17 = "17"
    OTHER = "other"

    @property
    def description(self) -> str:
        return _EXEMPTION_DESCRIPTIONS[self]


_EXEMPTION_DESCRIPTIONS = {
    VatExemptionReason.ART_113_1: "Subjective exemption (art. 113 sec. 1)",
    VatExemptionReason.ART_43_1: "Objective exemption (art. 43 sec. 1)",
    VatExemptionReason.ART_41_4: "Export of goods (art. 41 sec. 4)",
    VatExemptionReason.ART_42: "Intra-community supply of goods (art. 42)",
    VatExemptionReason.ART_28B: "Services supplied abroad (art. 28b)",
    VatExemptionReason.ART_17: "Reverse charge (art. 17)",
    VatExemptionReason.OTHER: "Other legal basis",
}


class ExchangeRateSource(str, Enum):
    """Where a document's exchange rate came from."""

    EXTERNAL = "external"
    MANUAL = "manual"


class TaxRegime(str, Enum):
    PROGRESSIVE = "progressive"
    FLAT = "flat"
    LUMP_SUM = "lump_sum"
    TAX_CARD = "tax_card"


class LegalForm(str, Enum):
    SOLE_PROPRIETORSHIP = "sole_proprietorship"
    CIVIL_PARTNERSHIP = "civil_partnership"
    LIMITED_COMPANY = "limited_company"
    OTHER = "other"


class FilingStatus(str, Enum):
    NOT_DUE = "not_due"
    DUE_SOON = "due_soon"
    OVERDUE = "overdue"


class ObligationKind(str, Enum):
    """Monthly filings tracked per fiscal period."""

    INCOME_TAX = "income_tax"
    JPK_V7M = "jpk_v7m"


class DeclarationPurpose(str, Enum):
    """CelZlozenia: first submission or correction."""

    SUBMISSION = "1"
    CORRECTION = "2"


class SupplyType(str, Enum):
    """Where a sale is supplied; decides the register column of 0% amounts."""

    DOMESTIC = "domestic"
    INTRA_COMMUNITY = "intra_community"
    EXPORT = "export"


class GtuCode(str, Enum):
    """Goods and services group flags of a sales row (GTU_01 to GTU_13).

    Member order is the order of the flags in the sales register.
    """

    GTU_01 = "GTU_01"
    GTU_02 = "GTU_02"
    GTU_03 = "GTU_03"
    GTU_04 = "GTU_04"
    GTU_05 = "GTU_05"
    GTU_06 = "GTU_06"
    GTU_07 = "GTU_07"
    GTU_08 = "GTU_08"
    GTU_09 = "GTU_09"
    GTU_10 = "GTU_10"
    GTU_11 = "GTU_11"
    GTU_12 = "GTU_12"
    GTU_13 = "GTU_13"


class ProcedureMarker(str, Enum):
    """Procedure flags of a sales row, in register order."""

    SW = "SW"  # distance selling from Poland
    EE = "EE"  # telecommunication and electronic services abroad
    TP = "TP"  # related parties
    TT_WNT = "TT_WNT"
    TT_D = "TT_D"
    MR_T = "MR_T"  # margin scheme, tourist services
    MR_UZ = "MR_UZ"  # margin scheme, used goods
    I_42 = "I_42"
    I_63 = "I_63"
    B_SPV = "B_SPV"
    B_SPV_DOSTAWA = "B_SPV_DOSTAWA"
    B_MPV_PROWIZJA = "B_MPV_PROWIZJA"
    MPP = "MPP"  # split payment
