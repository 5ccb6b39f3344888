"""
backup.py
Whole-store backup and restore as one JSON document: {customers, transactions, services}.
"""

from __future__ import annotations

import json
import logging
import sqlite3
from datetime import date

import customers
import ledger
from catalog import list_services
from db import Store
from exceptions import WashError
from models import (
    customer_from_record,
    customer_to_record,
    service_from_record,
    service_to_record,
    transaction_from_record,
    transaction_to_record,
)

logger = logging.getLogger(__name__)

SECTIONS = ("customers", "transactions", "services")


def backup_filename(today: date | None = None) -> str:
    return f"sparklewash_backup_{(today or date.today()).isoformat()}.json"


def export_document(store: Store) -> str:
    data = {
        "customers": [customer_to_record(c) for c in customers.list_all(store)],
        "transactions": [transaction_to_record(t) for t in ledger.list_all(store)],
        "services": [service_to_record(s) for s in list_services(store)],
    }
    return json.dumps(data, ensure_ascii=False, indent=2)


def _parse(text: str | bytes) -> dict:
    """Decode and validate every record up front; nothing is written if this fails."""
    try:
        if isinstance(text, bytes):
            text = text.decode("utf-8")
        data = json.loads(text)
    except (UnicodeDecodeError, json.JSONDecodeError) as e:
        raise WashError("RESTORE_INVALID", message=f"Backup is not valid JSON: {e}") from e

    if not isinstance(data, dict) or not any(k in data for k in SECTIONS):
        raise WashError("RESTORE_INVALID", message="Backup has none of: customers, transactions, services")

    converters = {
        "customers": customer_from_record,
        "transactions": transaction_from_record,
        "services": service_from_record,
    }
    parsed = {}
    for key in SECTIONS:
        if key not in data or data[key] is None:
            continue
        if not isinstance(data[key], list):
            raise WashError("RESTORE_INVALID", message=f"'{key}' must be a list")
        try:
            parsed[key] = [converters[key](rec) for rec in data[key]]
        except (KeyError, TypeError, ValueError, ArithmeticError, AttributeError) as e:
            raise WashError("RESTORE_INVALID", message=f"Bad record in '{key}': {e!r}") from e
    return parsed


def restore_document(store: Store, text: str | bytes) -> dict[str, int]:
    """
    Replace each store present in the document, all in one SQLite transaction.

    Sections missing from the document are left untouched. On any parse or
    integrity failure the database is exactly as it was before the call.

    Returns:
        Number of records restored per section.
    """
    try:
        parsed = _parse(text)
    except WashError:
        logger.exception("Restore rejected")
        raise

    try:
        with store.transaction() as conn:
            if "transactions" in parsed:
                conn.execute("DELETE FROM transactions")
            if "customers" in parsed:
                conn.execute("DELETE FROM customers")
                conn.executemany(
                    """
                    INSERT INTO customers(id, name, license_plate, vehicle_model, phone, membership_tier, points, join_date)
                    VALUES(?,?,?,?,?,?,?,?)
                    """,
                    [
                        (c.id, c.name, c.license_plate, c.vehicle_model, c.phone, c.membership_tier.value, c.points, c.join_date)
                        for c in parsed["customers"]
                    ],
                )
            if "services" in parsed:
                conn.execute("DELETE FROM services")
                conn.executemany(
                    "INSERT INTO services(id, name, price, category, points_awarded) VALUES(?,?,?,?,?)",
                    [(s.id, s.name, str(s.price), s.category.value, s.points_awarded) for s in parsed["services"]],
                )
            for tx in parsed.get("transactions", []):
                ledger.append(conn, tx)
    except sqlite3.IntegrityError as e:
        logger.exception("Restore rolled back")
        raise WashError("RESTORE_INVALID", message=f"Backup is inconsistent: {e}") from e

    counts = {k: len(v) for k, v in parsed.items()}
    logger.info("Restored backup: %s", counts)
    return counts
