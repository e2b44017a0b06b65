"""Maps a period's documents and the business profile to a JPK_V7M declaration."""

from collections.abc import Callable, Iterable
from datetime import UTC, datetime
from decimal import Decimal

from invoice_tax_engine.config import Settings, get_settings
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
from invoice_tax_engine.domain.documents import Expense, Invoice, MonetaryDocument
from invoice_tax_engine.domain.events import DeclarationGenerated
from invoice_tax_engine.domain.periods import FiscalPeriod, PeriodKey
from invoice_tax_engine.domain.profiles import BusinessProfile
from invoice_tax_engine.domain.validators import normalize_nip
from invoice_tax_engine.domain.value_objects import (
    ZERO,
    DeclarationPurpose,
    VatRate,
    round2,
)
from invoice_tax_engine.exceptions import MissingProfileError, VatExemptProfileError
from invoice_tax_engine.logging_config import get_logger
from invoice_tax_engine.services.calculation import aggregate_by_rate
from invoice_tax_engine.services.events import EventDispatcher

logger = get_logger(__name__)


def _utc_now() -> datetime:
    return datetime.now(UTC).replace(microsecond=0)


def _bracket_amounts(document: MonetaryDocument) -> tuple[BracketAmount, ...]:
    """Per-bracket amounts of a document in PLN."""
    rate = document.exchange_rate
    return tuple(
        BracketAmount(
            vat_rate=totals.vat_rate,
            net=round2(totals.net * rate),
            vat=round2(totals.vat * rate),
        )
        for totals in aggregate_by_rate(document.items)
    )


def _subtotals(records: Iterable[SalesRecord | PurchaseRecord]) -> tuple[BracketSubtotal, ...]:
    nets: dict[VatRate, Decimal] = {}
    vats: dict[VatRate, Decimal] = {}
    counts: dict[VatRate, int] = {}
    for record in records:
        for amount in record.amounts:
            nets[amount.vat_rate] = nets.get(amount.vat_rate, ZERO) + amount.net
            vats[amount.vat_rate] = vats.get(amount.vat_rate, ZERO) + amount.vat
            counts[amount.vat_rate] = counts.get(amount.vat_rate, 0) + 1
    return tuple(
        BracketSubtotal(vat_rate=rate, net=nets[rate], vat=vats[rate], document_count=counts[rate])
        for rate in VatRate
        if rate in nets
    )


class JpkDeclarationBuilder:
    """Builds immutable JpkDeclaration values.

    Records are ordered by issue date, then document number, so the same
    input always yields the same declaration.
    """

    def __init__(
        self,
        *,
        dispatcher: EventDispatcher | None = None,
        clock: Callable[[], datetime] = _utc_now,
        settings: Settings | None = None,
    ) -> None:
        settings = settings or get_settings()
        self._dispatcher = dispatcher
        self._clock = clock
        self._system_name = settings.jpk_system_name
        self._default_tax_office_code = settings.default_tax_office_code

    def build(
        self,
        period: FiscalPeriod | PeriodKey,
        invoices: Iterable[Invoice],
        expenses: Iterable[Expense],
        profile: BusinessProfile | None,
        purpose: DeclarationPurpose = DeclarationPurpose.SUBMISSION,
    ) -> JpkDeclaration | None:
        """Build the declaration, or return None when no profile is selected.

        The missing profile is logged with the user-facing message so the
        caller can show "select a business profile" instead of failing.
        """
        try:
            return self.build_declaration(period, invoices, expenses, profile, purpose)
        except MissingProfileError as e:
            logger.warning("declaration_not_built", reason=e.error_code, message=e.message)
            return None

    def build_declaration(
        self,
        period: FiscalPeriod | PeriodKey,
        invoices: Iterable[Invoice],
        expenses: Iterable[Expense],
        profile: BusinessProfile | None,
        purpose: DeclarationPurpose = DeclarationPurpose.SUBMISSION,
    ) -> JpkDeclaration:
        """Build the declaration.

        Args:
            period: Fiscal period or its key; documents outside its date
                range are left out.
            invoices: Sales invoices.
            expenses: Purchase documents.
            profile: Business profile of the declarant.
            purpose: First submission or correction.

        Raises:
            MissingProfileError: If no profile is given.
            VatExemptProfileError: If the business is exempt from VAT.
        """
        if profile is None:
            raise MissingProfileError()
        if profile.vat_exempt:
            raise VatExemptProfileError(profile.tax_id)

        key = period if isinstance(period, PeriodKey) else period.key
        date_from, date_to = key.start, key.end

        in_period_invoices = sorted(
            (i for i in invoices if date_from <= i.issue_date <= date_to),
            key=lambda d: d.sort_key,
        )
        in_period_expenses = sorted(
            (e for e in expenses if date_from <= e.issue_date <= date_to),
            key=lambda d: d.sort_key,
        )

        sales = tuple(
            self._sales_record(n, invoice)
            for n, invoice in enumerate(in_period_invoices, start=1)
        )
        purchases = tuple(
            self._purchase_record(n, expense)
            for n, expense in enumerate(in_period_expenses, start=1)
        )
        sales_subtotals = _subtotals(sales)
        purchase_subtotals = _subtotals(purchases)

        declaration = JpkDeclaration(
            header=DeclarationHeader(
                period=key,
                date_from=date_from,
                date_to=date_to,
                generated_at=self._clock(),
                purpose=purpose,
                system_name=self._system_name,
                tax_office_code=profile.tax_office_code or self._default_tax_office_code,
            ),
            subject=DeclarationSubject(
                tax_id=normalize_nip(profile.tax_id),
                full_name=profile.name.strip(),
                regon=profile.regon,
                email=profile.email,
            ),
            sales=sales,
            purchases=purchases,
            sales_subtotals=sales_subtotals,
            purchase_subtotals=purchase_subtotals,
            summary=self._summary(sales_subtotals, purchase_subtotals),
        )

        logger.info(
            "declaration_built",
            period=str(key),
            sales_count=len(sales),
            purchase_count=len(purchases),
            vat_payable=str(declaration.summary.vat_payable),
        )
        if self._dispatcher is not None:
            self._dispatcher.publish(
                DeclarationGenerated(
                    period=key,
                    tax_id=declaration.subject.tax_id,
                    sales_count=len(sales),
                    purchase_count=len(purchases),
                )
            )
        return declaration

    def _sales_record(self, line_number: int, invoice: Invoice) -> SalesRecord:
        buyer = invoice.buyer
        return SalesRecord(
            line_number=line_number,
            document_number=invoice.number.strip(),
            issue_date=invoice.issue_date,
            sale_date=invoice.sale_date or invoice.issue_date,
            counterparty_name=buyer.name if buyer else "",
            counterparty_tax_id=normalize_nip(buyer.tax_id) or None if buyer else None,
            country_code=buyer.country_code.upper() if buyer else "PL",
            amounts=_bracket_amounts(invoice),
            gtu_codes=invoice.gtu_codes,
            procedures=invoice.procedures,
            supply_type=invoice.supply_type,
        )

    def _purchase_record(self, line_number: int, expense: Expense) -> PurchaseRecord:
        supplier = expense.supplier
        return PurchaseRecord(
            line_number=line_number,
            document_number=expense.number.strip(),
            issue_date=expense.issue_date,
            receipt_date=expense.receipt_date or expense.issue_date,
            counterparty_name=supplier.name if supplier else "",
            counterparty_tax_id=normalize_nip(supplier.tax_id) or None if supplier else None,
            country_code=supplier.country_code.upper() if supplier else "PL",
            amounts=_bracket_amounts(expense),
        )

    @staticmethod
    def _summary(
        sales_subtotals: tuple[BracketSubtotal, ...],
        purchase_subtotals: tuple[BracketSubtotal, ...],
    ) -> DeclarationSummary:
        output_vat = sum((s.vat for s in sales_subtotals), ZERO)
        input_vat = sum((s.vat for s in purchase_subtotals), ZERO)
        total_net = sum((s.net for s in sales_subtotals + purchase_subtotals), ZERO)
        total_vat = output_vat + input_vat
        balance = output_vat - input_vat
        return DeclarationSummary(
            total_net=total_net,
            total_vat=total_vat,
            total_gross=total_net + total_vat,
            output_vat=output_vat,
            input_vat=input_vat,
            vat_payable=max(balance, ZERO),
            vat_surplus=max(-balance, ZERO),
        )
