"""
catalog.py
Read-only access to the service catalog.
"""

from __future__ import annotations

from db import Store
from exceptions import WashError
from models import ServiceItem, service_from_record


def list_services(store: Store) -> list[ServiceItem]:
    rows = store.fetch_all("SELECT * FROM services ORDER BY rowid ASC")
    return [service_from_record(r) for r in rows]


def get_service(store: Store, service_id: str) -> ServiceItem:
    row = store.fetch_one("SELECT * FROM services WHERE id = ?", (service_id,))
    if not row:
        raise WashError("SERVICE_NOT_FOUND", service_id=service_id)
    return service_from_record(row)


def get_services(store: Store, service_ids) -> list[ServiceItem]:
    """Resolve ids in the given order; unknown ids raise SERVICE_NOT_FOUND."""
    by_id = {s.id: s for s in list_services(store)}
    missing = [sid for sid in service_ids if sid not in by_id]
    if missing:
        raise WashError("SERVICE_NOT_FOUND", service_id=", ".join(missing))
    return [by_id[sid] for sid in service_ids]
