"""Tests for line item values and document totals."""

from decimal import Decimal

import pytest

from invoice_tax_engine.domain.value_objects import VatRate
from invoice_tax_engine.exceptions import InvalidLineItemError, InvalidVatRateError
from invoice_tax_engine.services.calculation import (
    aggregate,
    aggregate_by_rate,
    build_line_item,
    compute_item,
)


class TestComputeItem:
    def test_standard_rate_item(self):
        """Two units at 100.00 with 23% VAT."""
        values = compute_item(2, Decimal("100.00"), VatRate.RATE_23)

        assert values.net == Decimal("200.00")
        assert values.vat == Decimal("46.00")
        assert values.gross == Decimal("246.00")

    def test_exempt_item_carries_no_vat(self):
        values = compute_item(1, "999.99", "zw")

        assert values.net == Decimal("999.99")
        assert values.vat == Decimal("0.00")
        assert values.gross == Decimal("999.99")

    def test_zero_rate_item(self):
        values = compute_item(3, "10.00", 0)

        assert values.net == Decimal("30.00")
        assert values.vat == Decimal("0.00")
        assert values.gross == Decimal("30.00")

    def test_net_rounds_half_up(self):
        values = compute_item("1", "0.125", 23)

        assert values.net == Decimal("0.13")

    def test_vat_rounds_half_up(self):
        """10.10 * 5% = 0.505 rounds to 0.51."""
        values = compute_item(1, "10.10", 5)

        assert values.vat == Decimal("0.51")
        assert values.gross == Decimal("10.61")

    def test_gross_is_sum_of_rounded_parts(self):
        values = compute_item("3", "33.333", 8)

        assert values.gross == values.net + values.vat

    def test_same_input_same_output(self):
        assert compute_item(7, "12.34", 8) == compute_item(7, "12.34", 8)

    def test_float_input_is_not_binary_noise(self):
        values = compute_item(3, 0.1, 23)

        assert values.net == Decimal("0.30")

    def test_comma_decimal_separator(self):
        values = compute_item("1,5", "10,00", 23)

        assert values.net == Decimal("15.00")

    def test_negative_quantity_rejected(self):
        with pytest.raises(InvalidLineItemError) as exc_info:
            compute_item(-1, "10.00", 23)

        assert exc_info.value.context["field"] == "quantity"
        assert "must not be negative" in exc_info.value.message

    def test_negative_unit_price_rejected(self):
        with pytest.raises(InvalidLineItemError) as exc_info:
            compute_item(1, "-0.01", 23)

        assert exc_info.value.context["field"] == "unit price"

    def test_non_numeric_quantity_rejected(self):
        with pytest.raises(InvalidLineItemError) as exc_info:
            compute_item("two", "10.00", 23)

        assert "not a number" in exc_info.value.message

    def test_unknown_vat_rate_rejected(self):
        with pytest.raises(InvalidVatRateError):
            compute_item(1, "10.00", 7)

    def test_zero_quantity_is_allowed(self):
        values = compute_item(0, "10.00", 23)

        assert values.gross == Decimal("0.00")


class TestBuildLineItem:
    def test_builds_item_with_computed_values(self):
        item = build_line_item("Consulting", 2, "100.00", "23", unit="h")

        assert item.description == "Consulting"
        assert item.unit == "h"
        assert item.vat_rate is VatRate.RATE_23
        assert item.net_value == Decimal("200.00")
        assert item.vat_value == Decimal("46.00")
        assert item.gross_value == Decimal("246.00")

    def test_legacy_exempt_sentinel(self):
        item = build_line_item("Training", 1, "500.00", -1)

        assert item.vat_rate is VatRate.EXEMPT
        assert item.vat_value == Decimal("0.00")


class TestAggregate:
    def test_empty_document_has_zero_totals(self):
        totals = aggregate([])

        assert totals.total_net == Decimal("0.00")
        assert totals.total_vat == Decimal("0.00")
        assert totals.total_gross == Decimal("0.00")

    def test_sums_item_values(self):
        items = [
            build_line_item("A", 2, "100.00", 23),
            build_line_item("B", 1, "999.99", "zw"),
        ]

        totals = aggregate(items)

        assert totals.total_net == Decimal("1199.99")
        assert totals.total_vat == Decimal("46.00")
        assert totals.total_gross == Decimal("1245.99")

    def test_totals_keep_per_item_rounding(self):
        """Three items of 0.10 at 5% each round their VAT to 0.01."""
        items = [build_line_item(f"Pen {n}", 1, "0.10", 5) for n in range(3)]

        totals = aggregate(items)

        # 0.30 * 5% would round to 0.02; the items' own values sum to 0.03
        assert totals.total_vat == Decimal("0.03")
        assert totals.total_gross == Decimal("0.33")

    def test_gross_equals_net_plus_vat(self):
        items = [
            build_line_item("A", "1.5", "19.99", 8),
            build_line_item("B", 4, "2.49", 5),
            build_line_item("C", 1, "1000", 23),
        ]

        totals = aggregate(items)

        assert totals.total_gross == totals.total_net + totals.total_vat


class TestAggregateByRate:
    def test_groups_in_canonical_order(self):
        items = [
            build_line_item("A", 1, "100.00", "zw"),
            build_line_item("B", 1, "100.00", 8),
            build_line_item("C", 1, "50.00", 23),
            build_line_item("D", 1, "50.00", 23),
        ]

        groups = aggregate_by_rate(items)

        assert [g.vat_rate for g in groups] == [VatRate.RATE_23, VatRate.RATE_8, VatRate.EXEMPT]
        assert groups[0].net == Decimal("100.00")
        assert groups[0].vat == Decimal("23.00")
        assert groups[0].gross == Decimal("123.00")
        assert groups[2].vat == Decimal("0.00")

    def test_empty_items(self):
        assert aggregate_by_rate([]) == []
