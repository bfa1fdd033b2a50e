"""
Pytest configuration and shared fixtures.

All timestamps are built in the reporting timezone and every report runs
against a fixed clock: Wednesday 2026-06-17 15:00 local time.
"""
import pytest
from datetime import datetime
from typing import Dict, List, Any

from sales_engine.calendar_keys import local_timezone


def local_dt(year: int, month: int, day: int, hour: int = 12, minute: int = 0) -> datetime:
    """Aware datetime in the reporting timezone."""
    return datetime(year, month, day, hour, minute, tzinfo=local_timezone())


def local_iso(year: int, month: int, day: int, hour: int = 12, minute: int = 0) -> str:
    return local_dt(year, month, day, hour, minute).isoformat()


NOW = local_dt(2026, 6, 17, 15, 0)


@pytest.fixture
def fixed_clock():
    """Clock frozen at 2026-06-17 15:00 local time."""
    return lambda: NOW


@pytest.fixture
def online_order() -> Dict[str, Any]:
    """Confirmed Stripe order paid today."""
    return {
        "_id": "ord-online-1",
        "status": "confirmed",
        "createdAt": local_iso(2026, 6, 16, 18),
        "totalAmount": 3000,
        "paymentInfo": {
            "method": "stripe",
            "paymentStatus": "paid",
            "amount": 3000,
            "updatedAt": local_iso(2026, 6, 17, 10),
        },
        "items": [
            {"productId": "p-hammer", "productName": "Claw Hammer", "quantity": 2, "price": 1500},
        ],
    }


@pytest.fixture
def pay_later_order() -> Dict[str, Any]:
    """Pay-at-shop order confirmed on Sunday 2026-06-14."""
    return {
        "_id": "ord-shop-1",
        "status": "confirmed",
        "paymentMethod": "pay later",
        "createdAt": local_iso(2026, 6, 13, 9),
        "updatedAt": local_iso(2026, 6, 14, 12),
        "totalAmount": 12000,
        "items": [
            {"productId": "p-drill", "name": "Cordless Drill", "quantity": 1, "price": 12000},
        ],
    }


@pytest.fixture
def missing_cost_order() -> Dict[str, Any]:
    """Pay-later order for a product without a supplier cost."""
    return {
        "_id": "ord-shop-2",
        "status": "confirmed",
        "paymentMethod": "Pay Later",
        "createdAt": local_iso(2026, 5, 20, 9),
        "totalAmount": 900,
        "items": [
            {"productId": "p-glue", "productName": "Wood Glue", "quantity": 3, "price": 300},
        ],
    }


@pytest.fixture
def supplier_stripe_order() -> Dict[str, Any]:
    """Stripe payment linked to a supplier (B2B settlement, never a sale)."""
    return {
        "_id": "ord-supplier-1",
        "status": "confirmed",
        "createdAt": local_iso(2026, 6, 17, 9),
        "totalAmount": 50000,
        "paymentInfo": {
            "method": "stripe",
            "paymentStatus": "paid",
            "supplierId": "sup-1",
            "updatedAt": local_iso(2026, 6, 17, 9),
        },
        "items": [
            {"productId": "p-hammer", "productName": "Claw Hammer", "quantity": 10, "price": 5000},
        ],
    }


@pytest.fixture
def sample_orders(online_order, pay_later_order, missing_cost_order, supplier_stripe_order) -> List[Dict[str, Any]]:
    """Mixed snapshot: four recognized sales plus orders that never count."""
    return [
        online_order,
        pay_later_order,
        missing_cost_order,
        supplier_stripe_order,
        {
            "_id": "ord-pending",
            "status": "pending",
            "paymentMethod": "pay later",
            "createdAt": local_iso(2026, 6, 17, 8),
            "totalAmount": 700,
            "items": [{"productId": "p-hammer", "quantity": 1, "price": 700}],
        },
        {
            "_id": "ord-unpaid",
            "status": "confirmed",
            "createdAt": local_iso(2026, 6, 17, 8),
            "totalAmount": 2500,
            "paymentInfo": {"method": "stripe", "paymentStatus": "pending"},
            "items": [{"productId": "p-drill", "quantity": 1, "price": 2500}],
        },
        {
            "_id": "ord-online-2",
            "status": "confirmed",
            "createdAt": local_iso(2026, 6, 2, 16),
            "totalAmount": "450.50",
            "paymentInfo": {
                "method": "stripe",
                "paymentStatus": "paid",
                "createdAt": local_iso(2026, 6, 3, 11),
            },
            "items": [
                {"product": {"_id": "p-tape"}, "name": "Duct Tape", "quantity": 3, "price": 200},
            ],
        },
    ]


@pytest.fixture
def products() -> List[Dict[str, Any]]:
    """Store catalog covering every cost-resolution path."""
    return [
        {"_id": "p-hammer", "name": "Claw Hammer", "supplierProductId": "sp-hammer"},
        {"_id": "p-drill", "name": "Cordless Drill", "supplierProductId": {"_id": "sp-drill", "price": 9000}},
        {"_id": "p-tape", "name": "Duct Tape"},
        {"_id": "p-glue", "name": "Wood Glue"},
    ]


@pytest.fixture
def supplier_products() -> List[Dict[str, Any]]:
    return [
        {"_id": "sp-hammer", "name": "Steel Hammer 16oz", "price": 800},
        {"_id": "sp-tape", "name": "duct tape", "price": 150},
    ]


@pytest.fixture
def attendance_summary() -> Dict[str, Any]:
    """Attendance summary as served by the attendance endpoint."""
    return {
        "range": {"from": "2026-06-01", "to": "2026-06-30"},
        "users": [
            {
                "userId": "u-tech",
                "name": "Nimal Perera",
                "email": "nimal@example.com",
                "role": "Technician",
                "counts": {"present": 20, "late": 2, "absent": 1, "leave": 1},
            },
            {
                "userId": "u-acct",
                "name": "Kumari Silva",
                "email": "kumari@example.com",
                "role": "accountant",
                "counts": {"present": 10, "late": 0, "absent": 0, "leave": 0},
            },
            {
                "userId": "u-supp",
                "name": "Supplier Desk",
                "email": "supplier@example.com",
                "role": "supplier manager",
                "counts": {"present": 5},
            },
            {
                "userId": "u-cust",
                "name": "Walk-in",
                "email": "walkin@example.com",
                "role": "customer",
                "counts": {},
            },
            {"name": "No id", "role": "technician", "counts": {"present": 3}},
        ],
    }
