"""Pytest fixtures for the wash ledger tests."""

from decimal import Decimal

import pytest

import customers
import ledger
from catalog import get_service
from db import Store
from models import MembershipTier, ServiceCategory, ServiceItem, Transaction


@pytest.fixture
def store(tmp_path):
    """Fresh, initialized store with the default catalog."""
    s = Store(tmp_path / "wash.db")
    s.init_db()
    return s


def make_customer(store, tier=MembershipTier.BASIC, points=0, plate="34 ABC 123", name="Test Customer"):
    c = customers.create(store, name, plate, "Toyota Corolla", "05320000000", tier)
    if points:
        # Opening balance written directly, as a migrated account would be
        with store.transaction() as conn:
            customers.apply_points(conn, c.id, 0, points)
        c = customers.get(store, c.id)
    return c


def make_item(service_id="x1", price="100", name=None, category=ServiceCategory.EXTERIOR):
    return ServiceItem(
        id=service_id,
        name=name or f"Service {service_id}",
        price=Decimal(price),
        category=category,
        points_awarded=0,
    )


def write_transaction(store, customer, final_amount, timestamp, items=None):
    """Append a ledger entry with a fixed timestamp (points untouched)."""
    final_amount = Decimal(final_amount)
    tx = Transaction(
        id=f"tx-{timestamp}-{final_amount}",
        customer_id=customer.id,
        customer_name=customer.name,
        items=tuple(items or [make_item(price=str(final_amount))]),
        subtotal=final_amount,
        discount_amount=Decimal("0.00"),
        points_redeemed=0,
        points_earned=0,
        final_amount=final_amount,
        timestamp=timestamp if isinstance(timestamp, str) else timestamp.isoformat(timespec="seconds"),
    )
    with store.transaction() as conn:
        ledger.append(conn, tx)
    return tx


@pytest.fixture
def basic_customer(store):
    return make_customer(store, MembershipTier.BASIC, plate="34 BAS 001", name="Basic Bob")


@pytest.fixture
def premium_customer(store):
    return make_customer(store, MembershipTier.PREMIUM, plate="34 PRE 002", name="Premium Pia")


@pytest.fixture
def vip_customer(store):
    return make_customer(store, MembershipTier.VIP, points=300, plate="34 VIP 003", name="Vip Vera")


@pytest.fixture
def express_wash(store):
    return get_service(store, "s1")


@pytest.fixture
def deluxe_wash(store):
    return get_service(store, "s2")


@pytest.fixture
def interior_detailing(store):
    return get_service(store, "s3")


@pytest.fixture
def tire_shine(store):
    return get_service(store, "s5")
