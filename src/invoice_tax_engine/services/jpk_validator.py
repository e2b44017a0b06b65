"""Business-rule checks run on a declaration before it is serialized.

Errors make the declaration unfit for submission; warnings are
reported but do not stop generation.
"""

import re
from dataclasses import dataclass, field
from enum import Enum

from invoice_tax_engine.domain.declarations import JpkDeclaration
from invoice_tax_engine.domain.validators import is_valid_nip
from invoice_tax_engine.domain.value_objects import ZERO, ProcedureMarker

_TAX_OFFICE_CODE = re.compile(r"^\d{4}$")
_MAX_GTU_CODES = 3


class Severity(str, Enum):
    ERROR = "error"
    WARNING = "warning"


@dataclass(frozen=True, slots=True)
class ValidationIssue:
    code: str
    field: str
    reason: str
    severity: Severity = Severity.ERROR

    @property
    def message(self) -> str:
        return f"{self.field} {self.reason}"


@dataclass
class ValidationResult:
    errors: list[ValidationIssue] = field(default_factory=list)
    warnings: list[ValidationIssue] = field(default_factory=list)

    @property
    def is_valid(self) -> bool:
        return not self.errors

    def error(self, code: str, field_name: str, reason: str) -> None:
        self.errors.append(ValidationIssue(code, field_name, reason))

    def warn(self, code: str, field_name: str, reason: str) -> None:
        self.warnings.append(ValidationIssue(code, field_name, reason, Severity.WARNING))


def validate_declaration(declaration: JpkDeclaration) -> ValidationResult:
    result = ValidationResult()
    _check_subject(declaration, result)
    _check_sales(declaration, result)
    _check_purchases(declaration, result)
    _check_settlement(declaration, result)
    return result


def _check_subject(declaration: JpkDeclaration, result: ValidationResult) -> None:
    subject = declaration.subject
    if not subject.tax_id:
        result.error("MISSING_NIP", "tax ID (NIP)", "is missing in the business profile")
    elif not is_valid_nip(subject.tax_id):
        result.error("INVALID_NIP", "tax ID (NIP)", f"'{subject.tax_id}' is not a valid NIP")

    if not subject.full_name:
        result.error("MISSING_COMPANY_NAME", "full name", "is missing in the business profile")

    code = declaration.header.tax_office_code
    if not code:
        result.error("MISSING_TAX_OFFICE", "tax office code", "is missing in the business profile")
    elif not _TAX_OFFICE_CODE.match(code):
        result.error("INVALID_TAX_OFFICE", "tax office code", f"'{code}' must be four digits")


def _check_sales(declaration: JpkDeclaration, result: ValidationResult) -> None:
    for record in declaration.sales:
        where = f"sales row {record.line_number}"
        if not record.document_number:
            result.error("MISSING_INVOICE_NUMBER", where, "has no document number")
        if not record.amounts:
            result.error("MISSING_AMOUNTS", where, "has no amounts")
        if not record.counterparty_name:
            result.warn("MISSING_COUNTERPARTY_NAME", where, "has no buyer name")
        if (
            record.counterparty_tax_id
            and record.country_code == "PL"
            and not is_valid_nip(record.counterparty_tax_id)
        ):
            result.warn(
                "INVALID_CUSTOMER_NIP",
                where,
                f"has an invalid buyer NIP '{record.counterparty_tax_id}'",
            )
        if len(record.gtu_codes) > _MAX_GTU_CODES:
            flags = ", ".join(sorted(code.value for code in record.gtu_codes))
            result.warn("MULTIPLE_GTU_CODES", where, f"has many GTU codes ({flags})")
        if {ProcedureMarker.SW, ProcedureMarker.EE} <= record.procedures:
            result.warn("CONFLICTING_MARKERS", where, "has both SW and EE markers")


def _check_purchases(declaration: JpkDeclaration, result: ValidationResult) -> None:
    for record in declaration.purchases:
        where = f"purchase row {record.line_number}"
        if not record.document_number:
            result.error("MISSING_PURCHASE_NUMBER", where, "has no document number")
        if not record.amounts:
            result.error("MISSING_AMOUNTS", where, "has no amounts")
        if not record.counterparty_name:
            result.warn("MISSING_COUNTERPARTY_NAME", where, "has no supplier name")


def _check_settlement(declaration: JpkDeclaration, result: ValidationResult) -> None:
    summary = declaration.summary
    output_vat = sum((r.total_vat for r in declaration.sales), ZERO)
    input_vat = sum((r.total_vat for r in declaration.purchases), ZERO)

    if output_vat != summary.output_vat:
        result.error(
            "OUTPUT_VAT_MISMATCH",
            "output VAT",
            f"{summary.output_vat} does not match the sales rows ({output_vat})",
        )
    if input_vat != summary.input_vat:
        result.error(
            "INPUT_VAT_MISMATCH",
            "input VAT",
            f"{summary.input_vat} does not match the purchase rows ({input_vat})",
        )

    balance = summary.output_vat - summary.input_vat
    if summary.vat_payable - summary.vat_surplus != balance:
        result.error(
            "SETTLEMENT_MISMATCH",
            "VAT settlement",
            f"payable {summary.vat_payable} / surplus {summary.vat_surplus} "
            f"does not match the VAT balance {balance}",
        )
