"""
ledger.py
Append-only transaction ledger. There is deliberately no update or delete.
"""

from __future__ import annotations

import json
import sqlite3

from db import Store
from models import Transaction, service_to_record, transaction_from_record


def append(conn: sqlite3.Connection, tx: Transaction) -> None:
    """
    Write one ledger entry on an open connection.

    Takes the connection (not the Store) so the caller can put the append
    and the matching balance update in the same SQLite transaction.
    """
    conn.execute(
        """
        INSERT INTO transactions(id, customer_id, customer_name, items, subtotal, discount_amount,
                                 points_redeemed, points_earned, final_amount, timestamp)
        VALUES(?,?,?,?,?,?,?,?,?,?)
        """,
        (
            tx.id,
            tx.customer_id,
            tx.customer_name,
            json.dumps([service_to_record(i) for i in tx.items]),
            str(tx.subtotal),
            str(tx.discount_amount),
            tx.points_redeemed,
            tx.points_earned,
            str(tx.final_amount),
            tx.timestamp,
        ),
    )


def list_all(store: Store) -> list[Transaction]:
    rows = store.fetch_all("SELECT * FROM transactions ORDER BY rowid ASC")
    return [transaction_from_record(r) for r in rows]


def list_for_customer(store: Store, customer_id: str) -> list[Transaction]:
    rows = store.fetch_all(
        "SELECT * FROM transactions WHERE customer_id = ? ORDER BY rowid ASC",
        (customer_id,),
    )
    return [transaction_from_record(r) for r in rows]


def get(store: Store, transaction_id: str) -> Transaction | None:
    row = store.fetch_one("SELECT * FROM transactions WHERE id = ?", (transaction_id,))
    return transaction_from_record(row) if row else None


def count(store: Store) -> int:
    return int(store.fetch_one("SELECT COUNT(*) AS c FROM transactions")["c"])
