"""Line item values and document totals.

Everything here is pure and synchronous. Totals are always the sum of
the items' own rounded values; they are never recomputed from raw
quantities, so the reported totals match the printed lines exactly.
"""

from collections.abc import Iterable
from dataclasses import dataclass
from decimal import Decimal
from typing import Any

from invoice_tax_engine.domain.documents import DocumentTotals, LineItem
from invoice_tax_engine.domain.value_objects import ZERO, VatRate, round2, to_decimal
from invoice_tax_engine.exceptions import InvalidLineItemError


@dataclass(frozen=True, slots=True)
class ItemValues:
    net: Decimal
    vat: Decimal
    gross: Decimal


@dataclass(frozen=True, slots=True)
class RateTotals:
    """Sums for one VAT bracket within a document."""

    vat_rate: VatRate
    net: Decimal
    vat: Decimal

    @property
    def gross(self) -> Decimal:
        return self.net + self.vat


def _non_negative(field_name: str, value: Any) -> Decimal:
    try:
        number = to_decimal(value)
    except ValueError:
        raise InvalidLineItemError(field_name, value, "not a number") from None
    if number < 0:
        raise InvalidLineItemError(field_name, value, "must not be negative")
    return number


def compute_item(quantity: Any, unit_price: Any, vat_rate: VatRate | str | int) -> ItemValues:
    """Compute net, VAT and gross for one line.

    Args:
        quantity: Non-negative quantity.
        unit_price: Non-negative net unit price.
        vat_rate: A VatRate or anything VatRate.parse accepts.

    Returns:
        ItemValues with net = round2(quantity * unit_price),
        vat = round2(net * rate / 100) and gross = net + vat.

    Raises:
        InvalidLineItemError: If quantity or unit price is negative or not numeric.
        InvalidVatRateError: If the rate is not a statutory bracket.
    """
    qty = _non_negative("quantity", quantity)
    price = _non_negative("unit price", unit_price)
    rate = VatRate.parse(vat_rate)

    net = round2(qty * price)
    if rate.is_exempt:
        return ItemValues(net=net, vat=ZERO, gross=net)

    assert rate.percentage is not None
    vat = round2(net * rate.percentage / Decimal("100"))
    return ItemValues(net=net, vat=vat, gross=net + vat)


def build_line_item(
    description: str,
    quantity: Any,
    unit_price: Any,
    vat_rate: VatRate | str | int,
    unit: str = "szt.",
) -> LineItem:
    """Create a LineItem with its values computed by compute_item."""
    values = compute_item(quantity, unit_price, vat_rate)
    return LineItem(
        description=description,
        quantity=to_decimal(quantity),
        unit_price=to_decimal(unit_price),
        vat_rate=VatRate.parse(vat_rate),
        net_value=values.net,
        vat_value=values.vat,
        gross_value=values.gross,
        unit=unit,
    )


def aggregate(items: Iterable[LineItem]) -> DocumentTotals:
    """Sum the items' own net, VAT and gross values."""
    total_net = ZERO
    total_vat = ZERO
    total_gross = ZERO
    for item in items:
        total_net += item.net_value
        total_vat += item.vat_value
        total_gross += item.gross_value
    return DocumentTotals(total_net=total_net, total_vat=total_vat, total_gross=total_gross)


def aggregate_by_rate(items: Iterable[LineItem]) -> list[RateTotals]:
    """Per-bracket sums in canonical bracket order, only for brackets present."""
    nets: dict[VatRate, Decimal] = {}
    vats: dict[VatRate, Decimal] = {}
    for item in items:
        nets[item.vat_rate] = nets.get(item.vat_rate, ZERO) + item.net_value
        vats[item.vat_rate] = vats.get(item.vat_rate, ZERO) + item.vat_value
    return [
        RateTotals(vat_rate=rate, net=nets[rate], vat=vats[rate])
        for rate in VatRate
        if rate in nets
    ]
