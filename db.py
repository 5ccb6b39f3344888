"""
db.py
SQLite store + initialization (creates DB/tables, seeds the service catalog, default admin).
"""

from __future__ import annotations

import logging
import sqlite3
from contextlib import contextmanager
from datetime import datetime
from pathlib import Path

logger = logging.getLogger(__name__)

# Seeded on first run only; ids are fixed so old receipts stay readable.
DEFAULT_SERVICES = [
    ("s1", "Express Wash", "150.00", "Exterior", 15),
    ("s2", "Deluxe Wash", "250.00", "Full", 25),
    ("s3", "Interior Detailing", "600.00", "Interior", 60),
    ("s4", "Ceramic Coating", "1500.00", "Detailing", 150),
    ("s5", "Tire Shine", "50.00", "Exterior", 5),
]


class Store:
    """
    Handle on one SQLite file.

    Built once at startup and passed to every data-access function.
    Each helper opens a short-lived connection; use ``transaction()``
    when several statements must commit or fail together.
    """

    def __init__(self, db_file: str | Path):
        self.db_file = Path(db_file)

    def __repr__(self) -> str:
        return f"Store({str(self.db_file)!r})"

    @contextmanager
    def get_conn(self):
        conn = sqlite3.connect(self.db_file, check_same_thread=False)
        conn.row_factory = sqlite3.Row
        conn.execute("PRAGMA foreign_keys = ON")
        try:
            yield conn
            conn.commit()
        except BaseException:
            conn.rollback()
            raise
        finally:
            conn.close()

    # Same connection semantics; the name states intent at call sites.
    transaction = get_conn

    def execute(self, sql: str, params: tuple = ()) -> int:
        with self.get_conn() as conn:
            cur = conn.execute(sql, params)
            return cur.lastrowid

    def executemany(self, sql: str, seq_of_params: list[tuple]) -> None:
        with self.get_conn() as conn:
            conn.executemany(sql, seq_of_params)

    def fetch_one(self, sql: str, params: tuple = ()):
        with self.get_conn() as conn:
            cur = conn.execute(sql, params)
            return cur.fetchone()

    def fetch_all(self, sql: str, params: tuple = ()) -> list[sqlite3.Row]:
        with self.get_conn() as conn:
            cur = conn.execute(sql, params)
            return cur.fetchall()

    # ---------- Schema ----------

    def _create_tables(self) -> None:
        with self.get_conn() as conn:
            conn.execute(
                """
                CREATE TABLE IF NOT EXISTS admin_users (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    username TEXT NOT NULL UNIQUE,
                    password_hash TEXT NOT NULL,
                    created_at TEXT NOT NULL
                )
                """
            )
            conn.execute(
                """
                CREATE TABLE IF NOT EXISTS services (
                    id TEXT PRIMARY KEY,
                    name TEXT NOT NULL,
                    price TEXT NOT NULL,
                    category TEXT NOT NULL
                        CHECK(category IN ('Exterior','Interior','Full','Detailing')),
                    points_awarded INTEGER NOT NULL DEFAULT 0
                )
                """
            )
            # license_plate is intentionally not UNIQUE: duplicates are a known gap
            conn.execute(
                """
                CREATE TABLE IF NOT EXISTS customers (
                    id TEXT PRIMARY KEY,
                    name TEXT NOT NULL,
                    license_plate TEXT NOT NULL,
                    vehicle_model TEXT NOT NULL DEFAULT '',
                    phone TEXT NOT NULL DEFAULT '',
                    membership_tier TEXT NOT NULL CHECK(membership_tier IN ('Basic','Premium','VIP')),
                    points INTEGER NOT NULL DEFAULT 0 CHECK(points >= 0),
                    join_date TEXT NOT NULL
                )
                """
            )
            conn.execute(
                """
                CREATE TABLE IF NOT EXISTS transactions (
                    id TEXT PRIMARY KEY,
                    customer_id TEXT NOT NULL,
                    customer_name TEXT NOT NULL,
                    items TEXT NOT NULL,
                    subtotal TEXT NOT NULL,
                    discount_amount TEXT NOT NULL,
                    points_redeemed INTEGER NOT NULL CHECK(points_redeemed >= 0),
                    points_earned INTEGER NOT NULL CHECK(points_earned >= 0),
                    final_amount TEXT NOT NULL,
                    timestamp TEXT NOT NULL,
                    FOREIGN KEY(customer_id) REFERENCES customers(id)
                )
                """
            )
            conn.execute("CREATE INDEX IF NOT EXISTS ix_customers_plate ON customers(UPPER(license_plate))")
            conn.execute("CREATE INDEX IF NOT EXISTS ix_transactions_customer ON transactions(customer_id)")
            conn.execute(
                """
                CREATE TABLE IF NOT EXISTS app_settings (
                    key TEXT PRIMARY KEY,
                    value TEXT NOT NULL
                )
                """
            )

    def _seed_catalog(self) -> None:
        row = self.fetch_one("SELECT COUNT(*) AS c FROM services")
        if row["c"]:
            return
        self.executemany(
            "INSERT INTO services(id, name, price, category, points_awarded) VALUES(?,?,?,?,?)",
            DEFAULT_SERVICES,
        )
        logger.info("Seeded default service catalog (%d items) into %s", len(DEFAULT_SERVICES), self.db_file)

    def get_setting(self, key: str, default: str | None = None) -> str | None:
        row = self.fetch_one("SELECT value FROM app_settings WHERE key = ?", (key,))
        if row:
            return str(row["value"])
        return default

    def set_setting(self, key: str, value: str) -> None:
        self.execute(
            """
            INSERT INTO app_settings(key, value) VALUES(?, ?)
            ON CONFLICT(key) DO UPDATE SET value=excluded.value
            """,
            (key, value),
        )

    def init_db(self, default_admin_hash: str | None = None) -> None:
        """
        Initialize the database.
        - Create tables
        - Seed the default service catalog if it is empty
        - Insert default admin (admin/admin123) if no admin exists, and force a password change
        """
        self._create_tables()
        self._seed_catalog()

        if default_admin_hash is None:
            return

        admin = self.fetch_one("SELECT id FROM admin_users LIMIT 1")
        if not admin:
            now = datetime.now().isoformat(timespec="seconds")
            self.execute(
                "INSERT INTO admin_users(username, password_hash, created_at) VALUES(?,?,?)",
                ("admin", default_admin_hash, now),
            )
            self.set_setting("force_password_change", "1")
        elif self.get_setting("force_password_change") is None:
            self.set_setting("force_password_change", "0")

    def is_force_password_change(self) -> bool:
        return self.get_setting("force_password_change") == "1"

    def clear_force_password_change(self) -> None:
        self.set_setting("force_password_change", "0")
