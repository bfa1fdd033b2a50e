"""
Tests for sales_engine.aggregation module.
"""
import copy

import pytest
from datetime import date

from sales_engine.aggregation import (
    aggregate,
    daily_product_sales,
    payment_breakdown,
    product_sales_series,
)
from sales_engine.calendar_keys import Granularity, window_keys
from sales_engine.models import SaleChannel, SalesFilter


def _by_key(buckets):
    return {bucket.key: bucket for bucket in buckets}


class TestAggregate:

    def test_weekly_buckets(self, sample_orders, fixed_clock):
        keys = window_keys(Granularity.WEEKLY, 8, fixed_clock)
        buckets = _by_key(aggregate(sample_orders, Granularity.WEEKLY, SalesFilter.ALL, keys))

        # Sunday 14th (pay later) and Wednesday 17th (online) share W3
        assert buckets["2026-06-W3"].total_sales == 15000
        assert buckets["2026-06-W3"].units_sold == 3
        assert buckets["2026-06-W1"].total_sales == 450.5
        assert buckets["2026-05-W4"].total_sales == 900
        assert buckets["2026-06-W2"].total_sales == 0
        assert buckets["2026-06-W3"].label == "W3 Jun"

    def test_output_length_matches_window(self, sample_orders, fixed_clock):
        keys = window_keys(Granularity.WEEKLY, 8, fixed_clock)
        buckets = aggregate(sample_orders, Granularity.WEEKLY, SalesFilter.ALL, keys)
        assert [bucket.key for bucket in buckets] == keys

    def test_monthly_buckets(self, sample_orders, fixed_clock):
        keys = window_keys(Granularity.MONTHLY, 6, fixed_clock)
        buckets = _by_key(aggregate(sample_orders, Granularity.MONTHLY, SalesFilter.ALL, keys))
        assert buckets["2026-06"].total_sales == 15450.5
        assert buckets["2026-06"].units_sold == 6
        assert buckets["2026-05"].total_sales == 900
        assert buckets["2026-01"].total_sales == 0

    @pytest.mark.parametrize("sales_filter,expected_w3,expected_w1", [
        (SalesFilter.ONLINE, 3000, 450.5),
        (SalesFilter.PAY_LATER, 12000, 0),
    ])
    def test_filters(self, sample_orders, fixed_clock, sales_filter, expected_w3, expected_w1):
        keys = window_keys(Granularity.WEEKLY, 8, fixed_clock)
        buckets = _by_key(aggregate(sample_orders, Granularity.WEEKLY, sales_filter, keys))
        assert buckets["2026-06-W3"].total_sales == expected_w3
        assert buckets["2026-06-W1"].total_sales == expected_w1

    def test_sales_outside_window_dropped(self, sample_orders, fixed_clock):
        keys = window_keys(Granularity.WEEKLY, 2, fixed_clock)
        buckets = aggregate(sample_orders, Granularity.WEEKLY, SalesFilter.ALL, keys)
        assert sum(bucket.total_sales for bucket in buckets) == 15000

    def test_idempotent_and_pure(self, sample_orders, fixed_clock):
        snapshot = copy.deepcopy(sample_orders)
        keys = window_keys(Granularity.WEEKLY, 8, fixed_clock)
        first = aggregate(sample_orders, Granularity.WEEKLY, SalesFilter.ALL, keys)
        second = aggregate(sample_orders, Granularity.WEEKLY, SalesFilter.ALL, keys)
        assert first == second
        assert sample_orders == snapshot

    def test_empty_input(self, fixed_clock):
        keys = window_keys(Granularity.MONTHLY, 3, fixed_clock)
        buckets = aggregate([], Granularity.MONTHLY, SalesFilter.ALL, keys)
        assert [bucket.total_sales for bucket in buckets] == [0, 0, 0]

    def test_undated_sales_skipped(self, fixed_clock):
        keys = window_keys(Granularity.WEEKLY, 1, fixed_clock)
        orders = [{"_id": "x", "status": "confirmed", "paymentMethod": "pay later", "totalAmount": 99}]
        assert aggregate(orders, Granularity.WEEKLY, SalesFilter.ALL, keys)[0].total_sales == 0


class TestPaymentBreakdown:

    def test_split(self, sample_orders):
        breakdown = payment_breakdown(sample_orders)
        entries = {entry.channel: entry for entry in breakdown.entries}

        assert entries[SaleChannel.ONLINE].value == 3450.5
        assert entries[SaleChannel.PAY_LATER].value == 12900
        assert breakdown.total_amount == 16350.5
        assert entries[SaleChannel.ONLINE].percent == 21.1
        assert entries[SaleChannel.PAY_LATER].percent == 78.9

    def test_small_share_two_decimals(self):
        orders = [
            {"_id": "a", "status": "confirmed", "paymentMethod": "pay later", "totalAmount": 9950},
            {"_id": "b", "status": "confirmed", "totalAmount": 50,
             "paymentInfo": {"method": "stripe", "paymentStatus": "paid"}},
        ]
        entries = {entry.channel: entry for entry in payment_breakdown(orders).entries}
        assert entries[SaleChannel.ONLINE].percent == 0.5
        assert entries[SaleChannel.PAY_LATER].percent == 99.5

    def test_empty(self):
        breakdown = payment_breakdown([])
        assert breakdown.total_amount == 0
        assert all(entry.percent == 0 for entry in breakdown.entries)

    def test_to_dict(self, sample_orders):
        data = payment_breakdown(sample_orders).to_dict()
        assert data["entries"][0]["key"] == "online"
        assert data["entries"][1]["label"] == "Pay at shop"


class TestDailyProductSales:

    def test_products_for_day(self, sample_orders):
        products = daily_product_sales(sample_orders, date(2026, 6, 17))
        assert len(products) == 1
        assert products[0].key == "p-hammer"
        assert products[0].label == "Claw Hammer"
        assert products[0].total_sales == 3000
        assert products[0].units_sold == 2

    def test_filter_applies(self, sample_orders):
        assert daily_product_sales(sample_orders, date(2026, 6, 14), SalesFilter.ONLINE) == []
        drills = daily_product_sales(sample_orders, date(2026, 6, 14), SalesFilter.PAY_LATER)
        assert drills[0].total_sales == 12000

    def test_merges_same_product(self, online_order):
        second = copy.deepcopy(online_order)
        second["_id"] = "ord-online-9"
        products = daily_product_sales([online_order, second], date(2026, 6, 17))
        assert products[0].units_sold == 4
        assert products[0].total_sales == 6000


class TestProductSalesSeries:

    def test_weekly_series_for_one_product(self, sample_orders, fixed_clock):
        keys = window_keys(Granularity.WEEKLY, 8, fixed_clock)
        buckets = product_sales_series(sample_orders, "p-hammer", Granularity.WEEKLY, SalesFilter.ALL, keys)

        assert [bucket.key for bucket in buckets] == keys
        assert buckets[-1].total_sales == 3000
        assert buckets[-1].units_sold == 2
        assert sum(bucket.total_sales for bucket in buckets) == 3000

    def test_uses_line_total_not_order_total(self, sample_orders, fixed_clock):
        """ord-online-2 charged 450.50 overall, but its tape lines total 600."""
        keys = window_keys(Granularity.WEEKLY, 8, fixed_clock)
        buckets = _by_key(product_sales_series(sample_orders, "p-tape", "weekly", "all", keys))
        assert buckets["2026-06-W1"].total_sales == 600
        assert buckets["2026-06-W1"].units_sold == 3

    def test_channel_filter(self, sample_orders, fixed_clock):
        keys = window_keys(Granularity.WEEKLY, 8, fixed_clock)
        pay_later = product_sales_series(sample_orders, "p-drill", Granularity.WEEKLY, SalesFilter.PAY_LATER, keys)
        online = product_sales_series(sample_orders, "p-drill", Granularity.WEEKLY, SalesFilter.ONLINE, keys)

        assert pay_later[-1].total_sales == 12000
        assert all(bucket.total_sales == 0 for bucket in online)

    def test_monthly_series(self, sample_orders, fixed_clock):
        keys = window_keys(Granularity.MONTHLY, 6, fixed_clock)
        buckets = _by_key(product_sales_series(sample_orders, "p-glue", Granularity.MONTHLY, SalesFilter.ALL, keys))

        assert buckets["2026-05"].total_sales == 900
        assert buckets["2026-05"].label == "2026-05"
        assert buckets["2026-06"].total_sales == 0

    @pytest.mark.parametrize("product_key", ["p-unknown", "", None])
    def test_unknown_product_zero_filled(self, sample_orders, fixed_clock, product_key):
        keys = window_keys(Granularity.WEEKLY, 4, fixed_clock)
        buckets = product_sales_series(sample_orders, product_key, Granularity.WEEKLY, SalesFilter.ALL, keys)
        assert len(buckets) == 4
        assert all(bucket.total_sales == 0 and bucket.units_sold == 0 for bucket in buckets)

    def test_idempotent_and_input_untouched(self, sample_orders, fixed_clock):
        snapshot = copy.deepcopy(sample_orders)
        keys = window_keys(Granularity.WEEKLY, 8, fixed_clock)

        first = product_sales_series(sample_orders, "p-hammer", Granularity.WEEKLY, SalesFilter.ALL, keys)
        second = product_sales_series(sample_orders, "p-hammer", Granularity.WEEKLY, SalesFilter.ALL, keys)

        assert first == second
        assert sample_orders == snapshot
