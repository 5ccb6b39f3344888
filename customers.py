"""
customers.py
Customer store: registration, lookup by plate, profile edits, point balance writes.
"""

from __future__ import annotations

import logging
import sqlite3
import uuid
from datetime import datetime

from db import Store
from exceptions import WashError
from models import Customer, MembershipTier, customer_from_record, normalize_plate

logger = logging.getLogger(__name__)

_EDITABLE_FIELDS = ("name", "license_plate", "vehicle_model", "phone", "membership_tier")


def validate_profile(name: str, license_plate: str, membership_tier) -> list[str]:
    errors: list[str] = []
    if not (name or "").strip():
        errors.append("Name is required.")
    if not (license_plate or "").strip():
        errors.append("License plate is required.")
    try:
        MembershipTier(membership_tier)
    except ValueError:
        errors.append("Membership tier must be Basic, Premium or VIP.")
    return errors


def create(
    store: Store,
    name: str,
    license_plate: str,
    vehicle_model: str = "",
    phone: str = "",
    membership_tier: MembershipTier | str = MembershipTier.BASIC,
) -> Customer:
    """
    Register a customer with zero points and the current timestamp.

    Plate uniqueness is not enforced; a duplicate plate is logged and accepted.
    """
    errors = validate_profile(name, license_plate, membership_tier)
    if errors:
        raise WashError("INVALID_CUSTOMER", message=" ".join(errors))

    plate = normalize_plate(license_plate)
    if find_by_plate(store, plate) is not None:
        logger.warning("Registering duplicate license plate %s", plate)

    customer = Customer(
        id=uuid.uuid4().hex,
        name=name.strip(),
        license_plate=plate,
        vehicle_model=(vehicle_model or "").strip(),
        phone=(phone or "").strip(),
        membership_tier=MembershipTier(membership_tier),
        points=0,
        join_date=datetime.now().isoformat(timespec="seconds"),
    )
    store.execute(
        """
        INSERT INTO customers(id, name, license_plate, vehicle_model, phone, membership_tier, points, join_date)
        VALUES(?,?,?,?,?,?,?,?)
        """,
        (
            customer.id,
            customer.name,
            customer.license_plate,
            customer.vehicle_model,
            customer.phone,
            customer.membership_tier.value,
            customer.points,
            customer.join_date,
        ),
    )
    logger.info("Registered customer %s (%s)", customer.id, customer.license_plate)
    return customer


def get(store: Store, customer_id: str) -> Customer | None:
    row = store.fetch_one("SELECT * FROM customers WHERE id = ?", (customer_id,))
    return customer_from_record(row) if row else None


def require(store: Store, customer_id: str) -> Customer:
    customer = get(store, customer_id)
    if customer is None:
        raise WashError("CUSTOMER_NOT_FOUND", customer_id=customer_id)
    return customer


def find_by_plate(store: Store, plate: str) -> Customer | None:
    """Case-insensitive exact match; with duplicate plates the earliest registration wins."""
    plate = normalize_plate(plate)
    if not plate:
        return None
    row = store.fetch_one(
        "SELECT * FROM customers WHERE UPPER(license_plate) = ? ORDER BY rowid ASC LIMIT 1",
        (plate,),
    )
    return customer_from_record(row) if row else None


def list_all(store: Store) -> list[Customer]:
    rows = store.fetch_all("SELECT * FROM customers ORDER BY rowid ASC")
    return [customer_from_record(r) for r in rows]


def search(store: Store, text: str = "") -> list[Customer]:
    """Plate or name substring, newest registrations first."""
    sql = "SELECT * FROM customers"
    params: list = []
    if text.strip():
        like = f"%{text.strip()}%"
        sql += " WHERE license_plate LIKE ? OR name LIKE ?"
        params.extend([like, like])
    sql += " ORDER BY rowid DESC"
    return [customer_from_record(r) for r in store.fetch_all(sql, tuple(params))]


def count(store: Store) -> int:
    return int(store.fetch_one("SELECT COUNT(*) AS c FROM customers")["c"])


def update(store: Store, customer_id: str, **fields) -> Customer:
    """
    Merge profile fields into the customer record and return the result.

    The point balance is not a profile field; it only moves through settlement.
    """
    unknown = set(fields) - set(_EDITABLE_FIELDS)
    if unknown:
        raise ValueError(f"Cannot update customer field(s): {', '.join(sorted(unknown))}")

    current = require(store, customer_id)
    merged = {
        "name": current.name,
        "license_plate": current.license_plate,
        "membership_tier": current.membership_tier,
        **fields,
    }
    errors = validate_profile(merged["name"], merged["license_plate"], merged["membership_tier"])
    if errors:
        raise WashError("INVALID_CUSTOMER", message=" ".join(errors), customer_id=customer_id)

    values = dict(fields)
    if "name" in values:
        values["name"] = values["name"].strip()
    if "license_plate" in values:
        values["license_plate"] = normalize_plate(values["license_plate"])
    if "membership_tier" in values:
        values["membership_tier"] = MembershipTier(values["membership_tier"]).value

    if values:
        assignments = ", ".join(f"{k}=?" for k in values)
        store.execute(
            f"UPDATE customers SET {assignments} WHERE id = ?",
            (*values.values(), customer_id),
        )
    return require(store, customer_id)


def apply_points(conn: sqlite3.Connection, customer_id: str, expected: int, new_balance: int) -> None:
    """
    Compare-and-set the point balance on an open connection.

    Fails with STALE_BALANCE if the stored balance is no longer ``expected``,
    so a concurrent redemption can never be silently overwritten.
    """
    if new_balance < 0:
        raise WashError("INSUFFICIENT_POINTS", available=expected, requested=expected - new_balance)
    cur = conn.execute(
        "UPDATE customers SET points = ? WHERE id = ? AND points = ?",
        (new_balance, customer_id, expected),
    )
    if cur.rowcount != 1:
        raise WashError("STALE_BALANCE", customer_id=customer_id, expected=expected)
