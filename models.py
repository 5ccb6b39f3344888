"""
models.py
Domain types (tiers, categories, dataclasses) and record converters.
"""

from __future__ import annotations

import json
from dataclasses import dataclass
from decimal import Decimal, ROUND_HALF_UP
from enum import Enum

CENT = Decimal("0.01")


class MembershipTier(str, Enum):
    BASIC = "Basic"
    PREMIUM = "Premium"
    VIP = "VIP"


class ServiceCategory(str, Enum):
    EXTERIOR = "Exterior"
    INTERIOR = "Interior"
    FULL = "Full"
    DETAILING = "Detailing"


def to_money(value) -> Decimal:
    """Coerce a number/str to a 2-place Decimal (floats go through str to avoid binary noise)."""
    if isinstance(value, float):
        value = str(value)
    return Decimal(value).quantize(CENT, rounding=ROUND_HALF_UP)


def normalize_plate(plate: str) -> str:
    """Upper-case with runs of whitespace collapsed: " 34  abc 1" -> "34 ABC 1"."""
    return " ".join((plate or "").split()).upper()


@dataclass(frozen=True)
class ServiceItem:
    id: str
    name: str
    price: Decimal
    category: ServiceCategory
    points_awarded: int


@dataclass(frozen=True)
class Customer:
    id: str
    name: str
    license_plate: str
    vehicle_model: str
    phone: str
    membership_tier: MembershipTier
    points: int
    join_date: str  # ISO timestamp


@dataclass(frozen=True)
class Transaction:
    id: str
    customer_id: str
    customer_name: str  # snapshot at checkout time
    items: tuple[ServiceItem, ...]  # snapshot at checkout time
    subtotal: Decimal
    discount_amount: Decimal
    points_redeemed: int
    points_earned: int
    final_amount: Decimal
    timestamp: str  # ISO timestamp


@dataclass(frozen=True)
class Quote:
    """Checkout math for a proposed sale (nothing persisted)."""

    subtotal: Decimal
    discount_rate: Decimal
    membership_discount: Decimal
    points_discount: Decimal
    points_redeemed: int
    final_amount: Decimal
    points_earned: int

    @property
    def discount_amount(self) -> Decimal:
        return self.membership_discount + self.points_discount


@dataclass(frozen=True)
class DashboardStats:
    daily_revenue: Decimal
    monthly_revenue: Decimal
    total_customers: int
    todays_washes: int


# ---------- Row / record conversion ----------

def service_from_record(rec) -> ServiceItem:
    return ServiceItem(
        id=str(rec["id"]),
        name=str(rec["name"]),
        price=to_money(rec["price"]),
        category=ServiceCategory(rec["category"]),
        points_awarded=int(rec["points_awarded"]),
    )


def service_to_record(item: ServiceItem) -> dict:
    return {
        "id": item.id,
        "name": item.name,
        "price": float(item.price),
        "category": item.category.value,
        "points_awarded": item.points_awarded,
    }


def customer_from_record(rec) -> Customer:
    return Customer(
        id=str(rec["id"]),
        name=str(rec["name"]),
        license_plate=normalize_plate(str(rec["license_plate"])),
        vehicle_model=str(rec["vehicle_model"] or ""),
        phone=str(rec["phone"] or ""),
        membership_tier=MembershipTier(rec["membership_tier"]),
        points=int(rec["points"]),
        join_date=str(rec["join_date"]),
    )


def customer_to_record(c: Customer) -> dict:
    return {
        "id": c.id,
        "name": c.name,
        "license_plate": c.license_plate,
        "vehicle_model": c.vehicle_model,
        "phone": c.phone,
        "membership_tier": c.membership_tier.value,
        "points": c.points,
        "join_date": c.join_date,
    }


def transaction_from_record(rec) -> Transaction:
    items = rec["items"]
    if isinstance(items, str):
        items = json.loads(items)
    final_amount = to_money(rec["final_amount"])
    # Older backups do not carry points_earned; it is always floor(final / 10).
    if "points_earned" in rec.keys():
        points_earned = int(rec["points_earned"])
    else:
        points_earned = int(final_amount // 10)
    return Transaction(
        id=str(rec["id"]),
        customer_id=str(rec["customer_id"]),
        customer_name=str(rec["customer_name"]),
        items=tuple(service_from_record(i) for i in items),
        subtotal=to_money(rec["subtotal"]),
        discount_amount=to_money(rec["discount_amount"]),
        points_redeemed=int(rec["points_redeemed"]),
        points_earned=points_earned,
        final_amount=final_amount,
        timestamp=str(rec["timestamp"]),
    )


def transaction_to_record(t: Transaction) -> dict:
    return {
        "id": t.id,
        "customer_id": t.customer_id,
        "customer_name": t.customer_name,
        "items": [service_to_record(i) for i in t.items],
        "subtotal": float(t.subtotal),
        "discount_amount": float(t.discount_amount),
        "points_redeemed": t.points_redeemed,
        "points_earned": t.points_earned,
        "final_amount": float(t.final_amount),
        "timestamp": t.timestamp,
    }
