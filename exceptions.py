"""
exceptions.py
Structured errors for the wash ledger.

Usage:
    try:
        settlement.settle(store, customer_id, items, 200)
    except WashError as e:
        if e.code == "INSUFFICIENT_POINTS":
            show(e.context["available"])
"""

from __future__ import annotations


class WashError(Exception):
    """Error with a machine-readable code and extra context."""

    _default_messages = {
        "EMPTY_SELECTION": "Select at least one service before checkout",
        "INVALID_REDEMPTION": "Points must be redeemed in multiples of 100",
        "INSUFFICIENT_POINTS": "Insufficient points for redemption",
        "CUSTOMER_NOT_FOUND": "Customer not found",
        "SERVICE_NOT_FOUND": "Service not found",
        "STALE_BALANCE": "Customer balance changed during checkout",
        "INVALID_CUSTOMER": "Invalid customer data",
        "RESTORE_INVALID": "Backup file is not valid",
    }

    def __init__(self, code: str, message: str | None = None, **context):
        self.code = code
        self.message = message or self._default_messages.get(code, code)
        self.context = context
        super().__init__(self.message)

    def __str__(self) -> str:
        if self.context:
            details = ", ".join(f"{k}={v}" for k, v in self.context.items())
            return f"{self.message} ({details})"
        return self.message

    def as_dict(self) -> dict:
        return {"code": self.code, "message": self.message, "context": dict(self.context)}
