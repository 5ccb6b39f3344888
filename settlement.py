"""
settlement.py
Checkout math and settlement: discounts, redemption, ledger write, point balance update.

Discount order: the membership discount and the points discount are both taken
off the original subtotal and added together (not compounded), then the charge
is clamped at zero. Redemption value above the subtotal is simply lost.
"""

from __future__ import annotations

import logging
import uuid
from datetime import datetime
from decimal import Decimal, ROUND_CEILING, ROUND_FLOOR

import customers
import ledger
from db import Store
from exceptions import WashError
from models import (
    CENT,
    Customer,
    MembershipTier,
    Quote,
    ServiceItem,
    Transaction,
)

logger = logging.getLogger(__name__)

DISCOUNT_RATES = {
    MembershipTier.BASIC: Decimal("0.00"),
    MembershipTier.PREMIUM: Decimal("0.10"),
    MembershipTier.VIP: Decimal("0.20"),
}

REDEEM_STEP = 100  # points per redemption unit
REDEEM_VALUE = Decimal("50")  # currency per redemption unit
EARN_UNIT = Decimal("10")  # currency paid per point earned


def discount_rate(tier: MembershipTier | str) -> Decimal:
    return DISCOUNT_RATES[MembershipTier(tier)]


def redemption_options(balance: int) -> list[int]:
    """Redeemable amounts (100, 200, ...) up to the balance; empty below 100 points."""
    if balance < REDEEM_STEP:
        return []
    return list(range(REDEEM_STEP, (balance // REDEEM_STEP) * REDEEM_STEP + 1, REDEEM_STEP))


def validate_redemption(points_to_redeem: int, balance: int) -> None:
    if isinstance(points_to_redeem, bool) or not isinstance(points_to_redeem, int):
        raise WashError("INVALID_REDEMPTION", requested=points_to_redeem)
    if points_to_redeem < 0 or points_to_redeem % REDEEM_STEP:
        raise WashError("INVALID_REDEMPTION", requested=points_to_redeem)
    if points_to_redeem > balance:
        raise WashError("INSUFFICIENT_POINTS", available=balance, requested=points_to_redeem)


def quote(customer: Customer, items, points_to_redeem: int = 0) -> Quote:
    """
    Price a proposed sale for ``customer`` without persisting anything.

    Raises WashError for an invalid or unaffordable redemption. An empty
    selection is allowed here (the POS shows a zero preview); ``settle``
    rejects it.
    """
    validate_redemption(points_to_redeem, customer.points)

    subtotal = sum((item.price for item in items), Decimal("0.00"))
    rate = discount_rate(customer.membership_tier)
    raw_membership = subtotal * rate
    points_discount = (Decimal(points_to_redeem) / REDEEM_STEP * REDEEM_VALUE).quantize(CENT)

    # Charge from the unrounded discounts, floored to the cent; points come from
    # the stored charge. Rounding the discount up keeps subtotal - discount == final.
    final_amount = max(Decimal("0"), subtotal - raw_membership - points_discount)
    final_amount = final_amount.quantize(CENT, rounding=ROUND_FLOOR)
    membership_discount = raw_membership.quantize(CENT, rounding=ROUND_CEILING)
    points_earned = int(final_amount // EARN_UNIT)

    return Quote(
        subtotal=subtotal.quantize(CENT),
        discount_rate=rate,
        membership_discount=membership_discount,
        points_discount=points_discount,
        points_redeemed=points_to_redeem,
        final_amount=final_amount,
        points_earned=points_earned,
    )


class ServiceSelection:
    """
    Set of chosen service items for one checkout.

    Selecting an item that is already chosen removes it, so toggling twice
    leaves the selection unchanged. Insertion order is kept for receipts.
    """

    def __init__(self, items=()):
        self._items: dict[str, ServiceItem] = {}
        for item in items:
            self._items.setdefault(item.id, item)

    def toggle(self, item: ServiceItem) -> bool:
        """Flip ``item``; returns True if it is selected afterwards."""
        if item.id in self._items:
            del self._items[item.id]
            return False
        self._items[item.id] = item
        return True

    def is_selected(self, item: ServiceItem | str) -> bool:
        key = item if isinstance(item, str) else item.id
        return key in self._items

    def clear(self) -> None:
        self._items.clear()

    @property
    def items(self) -> list[ServiceItem]:
        return list(self._items.values())

    @property
    def ids(self) -> list[str]:
        return list(self._items)

    def __len__(self) -> int:
        return len(self._items)

    def __iter__(self):
        return iter(self.items)

    def __bool__(self) -> bool:
        return bool(self._items)


def settle(store: Store, customer_id: str, items, points_to_redeem: int = 0) -> Transaction:
    """
    Finalize a sale: write the ledger entry and move the point balance in one SQLite transaction.

    Args:
        store: Open Store
        customer_id: Customer being charged (current tier and balance are re-read here)
        items: Selected ServiceItems; duplicates by id are collapsed
        points_to_redeem: Non-negative multiple of 100, at most the current balance

    Returns:
        The persisted Transaction (for the receipt)

    Raises:
        WashError: EMPTY_SELECTION, CUSTOMER_NOT_FOUND, INVALID_REDEMPTION,
            INSUFFICIENT_POINTS or STALE_BALANCE. Nothing is written in any of these cases.
        sqlite3.Error: Storage failure; the whole settlement is rolled back.
    """
    selection = items if isinstance(items, ServiceSelection) else ServiceSelection(items)
    if not selection:
        logger.warning("Rejected checkout for customer %s: no services selected", customer_id)
        raise WashError("EMPTY_SELECTION", customer_id=customer_id)

    customer = customers.require(store, customer_id)
    try:
        q = quote(customer, selection.items, points_to_redeem)
    except WashError as e:
        logger.warning("Rejected checkout for customer %s: %s", customer_id, e)
        raise

    tx = Transaction(
        id=uuid.uuid4().hex,
        customer_id=customer.id,
        customer_name=customer.name,
        items=tuple(selection.items),
        subtotal=q.subtotal,
        discount_amount=q.discount_amount,
        points_redeemed=q.points_redeemed,
        points_earned=q.points_earned,
        final_amount=q.final_amount,
        timestamp=datetime.now().isoformat(timespec="seconds"),
    )
    new_balance = customer.points - q.points_redeemed + q.points_earned

    with store.transaction() as conn:
        ledger.append(conn, tx)
        customers.apply_points(conn, customer.id, customer.points, new_balance)

    logger.info(
        "Settled %s for customer %s: final=%s redeemed=%d earned=%d balance %d -> %d",
        tx.id,
        customer.id,
        tx.final_amount,
        tx.points_redeemed,
        tx.points_earned,
        customer.points,
        new_balance,
    )
    return tx
