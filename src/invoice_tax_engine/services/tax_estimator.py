"""Income tax estimates for the four Polish taxation regimes."""

from dataclasses import dataclass
from decimal import Decimal
from typing import Any

from invoice_tax_engine.config import Settings, get_settings
from invoice_tax_engine.domain.profiles import BusinessProfile
from invoice_tax_engine.domain.value_objects import ZERO, TaxRegime, round2, to_decimal
from invoice_tax_engine.exceptions import UnsupportedTaxRegimeError

HUNDRED = Decimal("100")


@dataclass(frozen=True, slots=True)
class TaxBracket:
    """Rate (percent) applied to the part of the base up to upper_bound.

    upper_bound None marks the open-ended top bracket.
    """

    upper_bound: Decimal | None
    rate: Decimal


@dataclass(frozen=True, slots=True)
class ProgressiveSchedule:
    brackets: tuple[TaxBracket, ...]
    reducing_amount: Decimal = ZERO

    def __post_init__(self) -> None:
        if not self.brackets or self.brackets[-1].upper_bound is not None:
            raise ValueError("The last bracket must be open-ended")
        bounds = [b.upper_bound for b in self.brackets[:-1]]
        if any(b is None for b in bounds) or bounds != sorted(bounds):
            raise ValueError("Bracket bounds must be ascending")

    def tax_for(self, base: Decimal) -> Decimal:
        tax = ZERO
        lower = ZERO
        for bracket in self.brackets:
            if base <= lower:
                break
            upper = base if bracket.upper_bound is None else min(base, bracket.upper_bound)
            tax += (upper - lower) * bracket.rate / HUNDRED
            if bracket.upper_bound is None:
                break
            lower = bracket.upper_bound
        return tax - self.reducing_amount


# 12% up to 120 000 PLN, 32% above, less the 3 600 PLN reducing amount
# that corresponds to the 30 000 PLN tax-free allowance.
DEFAULT_PROGRESSIVE_SCHEDULE = ProgressiveSchedule(
    brackets=(
        TaxBracket(upper_bound=Decimal("120000"), rate=Decimal("12")),
        TaxBracket(upper_bound=None, rate=Decimal("32")),
    ),
    reducing_amount=Decimal("3600"),
)


class TaxEstimator:
    def __init__(
        self,
        schedule: ProgressiveSchedule | None = None,
        flat_rate: Decimal | None = None,
        default_tax_card_amount: Decimal | None = None,
        settings: Settings | None = None,
    ) -> None:
        settings = settings or get_settings()
        self._schedule = schedule or DEFAULT_PROGRESSIVE_SCHEDULE
        self._flat_rate = flat_rate if flat_rate is not None else settings.flat_tax_rate
        self._default_tax_card_amount = (
            default_tax_card_amount
            if default_tax_card_amount is not None
            else settings.tax_card_amount
        )

    @property
    def schedule(self) -> ProgressiveSchedule:
        return self._schedule

    def estimate_tax(
        self,
        taxable_base: Decimal,
        regime: TaxRegime | str,
        *,
        lump_sum_rate: Decimal | None = None,
        tax_card_amount: Decimal | None = None,
    ) -> Decimal:
        """Estimate income tax for a taxable base.

        Args:
            taxable_base: Profit for FLAT and PROGRESSIVE, revenue for
                LUMP_SUM; ignored for TAX_CARD.
            regime: Taxation regime.
            lump_sum_rate: Percentage for LUMP_SUM (depends on the activity).
            tax_card_amount: Fixed amount for TAX_CARD.

        Returns:
            Tax rounded to 0.01, never negative. A zero or negative base
            gives 0 except under TAX_CARD, which is due regardless.

        Raises:
            UnsupportedTaxRegimeError: For an unknown regime or a missing
                regime parameter.
        """
        regime = _parse_regime(regime)
        base = to_decimal(taxable_base)

        if regime == TaxRegime.TAX_CARD:
            amount = tax_card_amount if tax_card_amount is not None else self._default_tax_card_amount
            if amount is None:
                raise UnsupportedTaxRegimeError(regime.value, "requires a tax card amount")
            return max(round2(to_decimal(amount)), ZERO)

        if base <= 0:
            return ZERO

        if regime == TaxRegime.FLAT:
            tax = base * self._flat_rate / HUNDRED
        elif regime == TaxRegime.LUMP_SUM:
            if lump_sum_rate is None:
                raise UnsupportedTaxRegimeError(regime.value, "requires a lump-sum rate")
            tax = base * to_decimal(lump_sum_rate) / HUNDRED
        else:
            tax = self._schedule.tax_for(base)

        return max(round2(tax), ZERO)

    def estimate_for_profile(self, taxable_base: Decimal, profile: BusinessProfile) -> Decimal:
        return self.estimate_tax(
            taxable_base,
            profile.tax_regime,
            lump_sum_rate=profile.lump_sum_rate,
            tax_card_amount=profile.tax_card_amount,
        )


def _parse_regime(regime: Any) -> TaxRegime:
    if isinstance(regime, TaxRegime):
        return regime
    try:
        return TaxRegime(str(regime).strip().lower())
    except ValueError:
        raise UnsupportedTaxRegimeError(regime) from None
