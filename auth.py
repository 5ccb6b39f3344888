"""
auth.py
Owner login (bcrypt hashing, verify, login, change password).
"""

from __future__ import annotations

import bcrypt

from db import Store

DEFAULT_ADMIN_PASSWORD = "admin123"
MIN_PASSWORD_LENGTH = 6


def _to_bcrypt_secret(password: str) -> bytes:
    # bcrypt reads at most 72 bytes; newer releases raise on anything longer
    return password.encode("utf-8")[:72]


def hash_password(password: str, rounds: int = 12) -> str:
    secret = _to_bcrypt_secret(password)
    return bcrypt.hashpw(secret, bcrypt.gensalt(rounds=rounds)).decode("utf-8")


def verify_password(password: str, password_hash: str) -> bool:
    return bcrypt.checkpw(_to_bcrypt_secret(password), password_hash.encode("utf-8"))


def ensure_default_admin(store: Store) -> None:
    """Create tables, seed the catalog and the admin/admin123 owner on an empty database."""
    store.init_db()
    if not store.fetch_one("SELECT id FROM admin_users LIMIT 1"):
        store.init_db(hash_password(DEFAULT_ADMIN_PASSWORD))


def get_admin_by_username(store: Store, username: str):
    return store.fetch_one("SELECT * FROM admin_users WHERE username = ?", (username,))


def login(store: Store, username: str, password: str) -> bool:
    admin = get_admin_by_username(store, username)
    if not admin:
        return False
    return verify_password(password, admin["password_hash"])


def validate_new_password(new1: str, new2: str) -> str | None:
    if len(new1) < MIN_PASSWORD_LENGTH:
        return f"Password must be at least {MIN_PASSWORD_LENGTH} characters."
    if new1 != new2:
        return "Passwords do not match."
    return None


def change_password(store: Store, username: str, new_password: str) -> None:
    store.execute(
        "UPDATE admin_users SET password_hash = ? WHERE username = ?",
        (hash_password(new_password), username),
    )
    store.clear_force_password_change()
