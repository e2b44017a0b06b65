"""Fiscal period models."""

import re
from dataclasses import dataclass
from datetime import date, timedelta
from decimal import Decimal

from dateutil.relativedelta import relativedelta

from invoice_tax_engine.domain.value_objects import FilingStatus, ObligationKind
from invoice_tax_engine.exceptions import InvalidPeriodError

_PERIOD_PATTERN = re.compile(r"^(\d{4})-(\d{2})$")


@dataclass(frozen=True, slots=True, order=True)
class PeriodKey:
    """A calendar month, rendered as YYYY-MM."""

    year: int
    month: int

    def __post_init__(self) -> None:
        if not 1 <= self.month <= 12:
            raise InvalidPeriodError(f"{self.year}-{self.month}")

    @classmethod
    def parse(cls, value: str) -> "PeriodKey":
        match = _PERIOD_PATTERN.match(value.strip()) if isinstance(value, str) else None
        if match is None:
            raise InvalidPeriodError(str(value))
        return cls(int(match.group(1)), int(match.group(2)))

    @classmethod
    def of(cls, day: date) -> "PeriodKey":
        return cls(day.year, day.month)

    @property
    def start(self) -> date:
        return date(self.year, self.month, 1)

    @property
    def end(self) -> date:
        """Last day of the month, inclusive."""
        return self.start + relativedelta(months=1) - timedelta(days=1)

    def next(self) -> "PeriodKey":
        return PeriodKey.of(self.start + relativedelta(months=1))

    def contains(self, day: date) -> bool:
        return self.start <= day <= self.end

    def __str__(self) -> str:
        return f"{self.year:04d}-{self.month:02d}"


@dataclass(frozen=True, slots=True)
class FilingObligation:
    kind: ObligationKind
    deadline_date: date
    status: FilingStatus


@dataclass(frozen=True, slots=True)
class FiscalPeriod:
    """One month of income, expenses and the estimated advance tax.

    deadline_date and status describe the income tax advance; every
    tracked filing, the JPK_V7M one included, is listed in obligations.
    """

    key: PeriodKey
    start: date
    end: date
    total_income: Decimal
    total_expenses: Decimal
    estimated_tax: Decimal
    deadline_date: date
    status: FilingStatus
    obligations: tuple[FilingObligation, ...] = ()

    @property
    def profit(self) -> Decimal:
        return self.total_income - self.total_expenses

    def contains(self, day: date) -> bool:
        return self.start <= day <= self.end

    def obligation(self, kind: ObligationKind) -> FilingObligation | None:
        for obligation in self.obligations:
            if obligation.kind == kind:
                return obligation
        return None
