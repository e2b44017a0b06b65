"""Monthly fiscal periods with estimated tax and filing deadlines."""

from collections import defaultdict
from collections.abc import Iterable
from datetime import date
from decimal import Decimal

from invoice_tax_engine.config import Settings, get_settings
from invoice_tax_engine.domain.documents import Expense, Invoice, MonetaryDocument
from invoice_tax_engine.domain.periods import FilingObligation, FiscalPeriod, PeriodKey
from invoice_tax_engine.domain.profiles import BusinessProfile
from invoice_tax_engine.domain.value_objects import (
    ZERO,
    FilingStatus,
    ObligationKind,
    TaxRegime,
)
from invoice_tax_engine.exceptions import MissingProfileError
from invoice_tax_engine.logging_config import get_logger
from invoice_tax_engine.services.tax_estimator import TaxEstimator

logger = get_logger(__name__)


def filing_status(deadline: date, as_of: date, due_soon_days: int = 7) -> FilingStatus:
    """OVERDUE after the deadline, DUE_SOON within due_soon_days before it."""
    days_left = (deadline - as_of).days
    if days_left < 0:
        return FilingStatus.OVERDUE
    if days_left <= due_soon_days:
        return FilingStatus.DUE_SOON
    return FilingStatus.NOT_DUE


def deadline_for(period: PeriodKey, day: int) -> date:
    """The given day of the month following the period.

    Weekends and public holidays do not move the deadline.
    """
    return period.next().start.replace(day=day)


class TaxPeriodAggregator:
    def __init__(
        self,
        estimator: TaxEstimator | None = None,
        *,
        income_tax_deadline_day: int | None = None,
        vat_deadline_day: int | None = None,
        due_soon_days: int | None = None,
        settings: Settings | None = None,
    ) -> None:
        settings = settings or get_settings()
        self._estimator = estimator or TaxEstimator(settings=settings)
        self._income_tax_day = income_tax_deadline_day or settings.income_tax_deadline_day
        self._vat_day = vat_deadline_day or settings.vat_deadline_day
        self._due_soon_days = (
            settings.due_soon_days if due_soon_days is None else due_soon_days
        )

    def build_periods(
        self,
        documents: Iterable[MonetaryDocument],
        profile: BusinessProfile | None,
        as_of: date,
    ) -> list[FiscalPeriod]:
        """Build one period per month up to the month containing as_of.

        The first period is the month of the earliest document, or the
        as_of month when there are no earlier documents. Amounts are
        gross values converted to PLN at each document's rate.

        Raises:
            MissingProfileError: If no business profile is given.
        """
        if profile is None:
            raise MissingProfileError()

        last = PeriodKey.of(as_of)
        income: dict[PeriodKey, Decimal] = defaultdict(lambda: ZERO)
        expenses: dict[PeriodKey, Decimal] = defaultdict(lambda: ZERO)
        first = last

        for document in documents:
            key = PeriodKey.of(document.issue_date)
            if key > last:
                continue
            first = min(first, key)
            if isinstance(document, Invoice):
                income[key] += document.local_totals.total_gross
            elif isinstance(document, Expense):
                expenses[key] += document.local_totals.total_gross

        periods = []
        key = first
        while key <= last:
            periods.append(self._build_period(key, income[key], expenses[key], profile, as_of))
            key = key.next()

        logger.info(
            "periods_built",
            period_count=len(periods),
            first_period=str(first),
            last_period=str(last),
            tax_regime=profile.tax_regime.value,
        )
        return periods

    def _build_period(
        self,
        key: PeriodKey,
        total_income: Decimal,
        total_expenses: Decimal,
        profile: BusinessProfile,
        as_of: date,
    ) -> FiscalPeriod:
        if profile.tax_regime == TaxRegime.LUMP_SUM:
            base = total_income
        else:
            base = total_income - total_expenses
        estimated_tax = self._estimator.estimate_for_profile(base, profile)

        income_tax = self._obligation(ObligationKind.INCOME_TAX, key, self._income_tax_day, as_of)
        obligations = [income_tax]
        if profile.is_vat_registered:
            obligations.append(self._obligation(ObligationKind.JPK_V7M, key, self._vat_day, as_of))

        return FiscalPeriod(
            key=key,
            start=key.start,
            end=key.end,
            total_income=total_income,
            total_expenses=total_expenses,
            estimated_tax=estimated_tax,
            deadline_date=income_tax.deadline_date,
            status=income_tax.status,
            obligations=tuple(obligations),
        )

    def _obligation(
        self, kind: ObligationKind, key: PeriodKey, day: int, as_of: date
    ) -> FilingObligation:
        deadline = deadline_for(key, day)
        return FilingObligation(
            kind=kind,
            deadline_date=deadline,
            status=filing_status(deadline, as_of, self._due_soon_days),
        )
