"""
utils.py
Dates, CSV exports, sample data.
"""

from __future__ import annotations

from datetime import date

import pandas as pd

import customers
import settlement
from catalog import get_services
from db import Store
from models import MembershipTier


def today_iso() -> str:
    return date.today().isoformat()


def customers_frame(rows) -> pd.DataFrame:
    columns = ["id", "name", "license_plate", "vehicle_model", "phone", "membership_tier", "points", "join_date"]
    df = pd.DataFrame(
        [
            {
                "id": c.id,
                "name": c.name,
                "license_plate": c.license_plate,
                "vehicle_model": c.vehicle_model,
                "phone": c.phone,
                "membership_tier": c.membership_tier.value,
                "points": c.points,
                "join_date": c.join_date,
            }
            for c in rows
        ],
        columns=columns,
    )
    return df


def transactions_frame(rows) -> pd.DataFrame:
    columns = [
        "id", "timestamp", "customer_id", "customer_name", "services",
        "subtotal", "discount_amount", "points_redeemed", "points_earned", "final_amount",
    ]
    df = pd.DataFrame(
        [
            {
                "id": t.id,
                "timestamp": t.timestamp,
                "customer_id": t.customer_id,
                "customer_name": t.customer_name,
                "services": ", ".join(i.name for i in t.items),
                "subtotal": float(t.subtotal),
                "discount_amount": float(t.discount_amount),
                "points_redeemed": t.points_redeemed,
                "points_earned": t.points_earned,
                "final_amount": float(t.final_amount),
            }
            for t in rows
        ],
        columns=columns,
    )
    return df


def customers_to_csv_bytes(rows) -> bytes:
    return customers_frame(rows).to_csv(index=False).encode("utf-8")


def transactions_to_csv_bytes(rows) -> bytes:
    return transactions_frame(rows).to_csv(index=False).encode("utf-8")


def insert_sample_data(store: Store) -> None:
    """
    Register 3 customers and settle a few washes for them
    (safe to run multiple times: adds new rows each time).
    """
    ayse = customers.create(store, "Ayse Demir", "34 ABC 123", "Toyota Corolla", "05320000001", MembershipTier.BASIC)
    mehmet = customers.create(store, "Mehmet Kaya", "06 XYZ 789", "VW Passat", "05320000002", MembershipTier.PREMIUM)
    elif_ = customers.create(store, "Elif Yildiz", "35 VIP 001", "BMW X5", "05320000003", MembershipTier.VIP)

    settlement.settle(store, ayse.id, get_services(store, ["s1", "s2"]))
    settlement.settle(store, mehmet.id, get_services(store, ["s3"]))
    settlement.settle(store, elif_.id, get_services(store, ["s4", "s5"]))
    # Elif now has enough points for a redemption
    settlement.settle(store, elif_.id, get_services(store, ["s2"]), points_to_redeem=100)

