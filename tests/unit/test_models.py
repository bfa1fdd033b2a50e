"""
Tests for sales_engine.models module.
"""
import logging

import pytest

from sales_engine.models import (
    AttendanceCounts,
    Employee,
    OrderLineItem,
    OrderRecord,
    SaleChannel,
    SalesFilter,
    normalize_id_value,
    normalize_order,
    normalize_orders,
    resolve_product_key,
    round2,
    to_number,
)


class TestFieldHelpers:

    def test_normalize_id_value(self):
        assert normalize_id_value("abc") == "abc"
        assert normalize_id_value(42) == "42"
        assert normalize_id_value({"_id": "x1"}) == "x1"
        assert normalize_id_value({"id": 7}) == "7"
        assert normalize_id_value(None) == ""
        assert normalize_id_value({}) == ""

    @pytest.mark.parametrize("value,expected", [
        ("12.5", 12.5),
        (3, 3.0),
        ("abc", 0.0),
        (None, 0.0),
        (True, 0.0),
        (float("inf"), 0.0),
        (float("nan"), 0.0),
    ])
    def test_to_number(self, value, expected):
        assert to_number(value) == expected

    def test_round2_collapses_negative_zero(self):
        assert str(round2(-0.001)) == "0.0"
        assert round2(1.005 + 0.0001) == 1.01

    def test_product_key_precedence(self):
        assert resolve_product_key({"productId": "a", "_id": "b"}) == "a"
        assert resolve_product_key({"_id": "b", "sku": "c"}) == "b"
        assert resolve_product_key({"product": {"_id": "p"}, "sku": "c"}) == "p"
        assert resolve_product_key({"sku": "c", "id": 9}) == "c"
        assert resolve_product_key({"id": 9}) == "9"
        assert resolve_product_key({"productId": "  ", "sku": "c"}) == "c"
        assert resolve_product_key({}) == ""


class TestOrderLineItem:

    def test_from_api(self):
        item = OrderLineItem.from_api({"productId": "p1", "title": "Saw", "quantity": "2", "price": "350"})
        assert item.product_key == "p1"
        assert item.name == "Saw"
        assert item.quantity == 2
        assert item.price == 350
        assert item.total == 700
        assert item.is_sellable

    def test_negative_quantity_clamped(self):
        item = OrderLineItem.from_api({"productId": "p1", "quantity": -3, "price": 10})
        assert item.quantity == 0
        assert not item.is_sellable

    def test_fractional_quantity_truncated_and_logged(self, caplog):
        with caplog.at_level(logging.DEBUG, logger="sales_engine.models"):
            item = OrderLineItem.from_api({"productId": "p-rope", "quantity": 1.5, "price": 100})

        assert item.quantity == 1
        assert item.total == 100
        assert "Fractional quantity 1.5 truncated" in caplog.text

    def test_invalid_price_not_sellable(self):
        assert not OrderLineItem.from_api({"quantity": 1, "price": -5}).is_sellable
        assert not OrderLineItem.from_api({"quantity": 1, "price": float("nan")}).is_sellable

    def test_label_fallbacks(self):
        assert OrderLineItem.from_api({"productId": "p1"}).label == "p1"
        assert OrderLineItem.from_api({}).label == "Unknown product"


class TestOrderRecord:

    def test_top_level_method_wins(self):
        record = OrderRecord.from_api({
            "_id": "o1",
            "paymentMethod": "Pay Later",
            "paymentInfo": {"method": "stripe"},
        })
        assert record.payment_method == "pay later"
        assert record.payment_info.method == "stripe"

    def test_nested_method_used_when_missing(self):
        record = OrderRecord.from_api({"_id": "o1", "paymentInfo": {"method": "Stripe"}})
        assert record.payment_method == "stripe"

    def test_items_skip_non_objects(self):
        record = OrderRecord.from_api({"_id": "o1", "items": [{"quantity": 2}, "junk", None, {"quantity": 1}]})
        assert len(record.items) == 2
        assert record.units == 3

    def test_items_not_a_list(self):
        assert OrderRecord.from_api({"_id": "o1", "items": "nope"}).items == ()

    def test_supplier_id_from_populated_object(self):
        record = OrderRecord.from_api({"paymentInfo": {"supplierId": {"_id": "s1"}}})
        assert record.payment_info.supplier_id == "s1"

    def test_normalize_order_passthrough(self):
        record = OrderRecord.from_api({"_id": "o1"})
        assert normalize_order(record) is record
        assert normalize_order("o1") is None

    def test_normalize_orders_drops_garbage(self):
        assert [o.id for o in normalize_orders([{"_id": "a"}, None, 5, {"id": "b"}])] == ["a", "b"]
        assert normalize_orders(None) == []


class TestEnums:

    def test_filter_labels(self):
        assert SalesFilter.ALL.label == "All payments"
        assert SalesFilter.ONLINE.label == "Online payments"
        assert SalesFilter.PAY_LATER.label == "Pay at shop"

    def test_channel_color(self):
        assert SaleChannel.ONLINE.color.startswith("#")


class TestAttendanceModels:

    def test_counts_from_api(self):
        counts = AttendanceCounts.from_api({"present": "4", "late": -1, "leave": 2})
        assert counts.present == 4
        assert counts.late == 0
        assert counts.absent == 0
        assert counts.total_days == 6
        assert counts.worked_days == 4

    def test_employee_requires_id(self):
        assert Employee.from_api({"name": "x"}) is None
        employee = Employee.from_api({"userId": "u1", "role": " Technician "})
        assert employee.role == "Technician"
        assert employee.counts == AttendanceCounts()
