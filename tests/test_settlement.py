"""Tests for checkout math and settlement."""

from decimal import Decimal

import pytest

import customers
import ledger
import settlement
from exceptions import WashError
from models import Customer, MembershipTier
from tests.conftest import make_customer, make_item


class TestDiscountRate:
    def test_rates_by_tier(self):
        assert settlement.discount_rate(MembershipTier.BASIC) == Decimal("0")
        assert settlement.discount_rate(MembershipTier.PREMIUM) == Decimal("0.10")
        assert settlement.discount_rate("VIP") == Decimal("0.20")


class TestRedemptionOptions:
    def test_below_step_offers_nothing(self):
        assert settlement.redemption_options(0) == []
        assert settlement.redemption_options(50) == []
        assert settlement.redemption_options(99) == []

    def test_multiples_up_to_balance(self):
        assert settlement.redemption_options(100) == [100]
        assert settlement.redemption_options(350) == [100, 200, 300]


class TestQuote:
    """Pure pricing, nothing persisted."""

    @pytest.mark.parametrize(
        "tier,points,redeem,prices,expected_final",
        [
            (MembershipTier.BASIC, 0, 0, ["150", "250"], Decimal("400")),
            (MembershipTier.PREMIUM, 0, 0, ["250"], Decimal("225")),
            (MembershipTier.VIP, 300, 200, ["600"], Decimal("380")),
            (MembershipTier.PREMIUM, 500, 500, ["150", "50"], Decimal("0")),
            (MembershipTier.BASIC, 1000, 100, ["49.99"], Decimal("0")),
        ],
    )
    def test_final_amount_formula(self, tier, points, redeem, prices, expected_final):
        customer = _customer(tier, points)
        items = [make_item(f"x{i}", p) for i, p in enumerate(prices)]
        q = settlement.quote(customer, items, redeem)

        subtotal = sum(Decimal(p) for p in prices)
        formula = max(
            Decimal("0"),
            subtotal - subtotal * settlement.discount_rate(tier) - Decimal(redeem) / 100 * 50,
        )
        assert q.final_amount == expected_final == formula
        assert q.points_earned == int(q.final_amount // 10)
        assert q.points_earned >= 0

    def test_discounts_are_additive_off_subtotal(self):
        """Points value is not applied to the membership-discounted base."""
        q = settlement.quote(_customer(MembershipTier.VIP, 200), [make_item(price="1000")], 200)
        assert q.membership_discount == Decimal("200.00")
        assert q.points_discount == Decimal("100.00")
        assert q.discount_amount == Decimal("300.00")
        assert q.final_amount == Decimal("700.00")

    def test_excess_redemption_is_clamped_not_refunded(self):
        q = settlement.quote(_customer(MembershipTier.BASIC, 400), [make_item(price="50")], 400)
        assert q.final_amount == Decimal("0.00")
        assert q.points_earned == 0
        assert q.points_redeemed == 400

    def test_points_earned_floor(self):
        q = settlement.quote(_customer(MembershipTier.PREMIUM, 0), [make_item(price="99")], 0)
        # 99 - 9.90 = 89.10
        assert q.final_amount == Decimal("89.10")
        assert q.points_earned == 8

    def test_charge_is_floored_to_the_cent_before_points(self):
        """11.11 - 1.111 = 9.999: pays 9.99 and earns nothing."""
        q = settlement.quote(_customer(MembershipTier.PREMIUM, 0), [make_item(price="11.11")], 0)

        assert q.final_amount == Decimal("9.99")
        assert q.points_earned == 0
        assert q.membership_discount == Decimal("1.12")
        assert q.subtotal - q.discount_amount == q.final_amount

    def test_empty_selection_quotes_zero(self):
        q = settlement.quote(_customer(MembershipTier.VIP, 0), [], 0)
        assert q.subtotal == Decimal("0.00")
        assert q.final_amount == Decimal("0.00")

    @pytest.mark.parametrize("redeem", [50, 150, -100, 1.5, "100", True])
    def test_invalid_redemption_rejected(self, redeem):
        with pytest.raises(WashError) as exc:
            settlement.quote(_customer(MembershipTier.BASIC, 1000), [make_item()], redeem)
        assert exc.value.code == "INVALID_REDEMPTION"

    def test_redemption_over_balance_rejected(self):
        with pytest.raises(WashError) as exc:
            settlement.quote(_customer(MembershipTier.BASIC, 300), [make_item()], 500)
        assert exc.value.code == "INSUFFICIENT_POINTS"
        assert exc.value.context == {"available": 300, "requested": 500}


class TestServiceSelection:
    def test_toggle_twice_restores_prior_state(self, express_wash, deluxe_wash):
        selection = settlement.ServiceSelection([express_wash])
        before = selection.ids

        assert selection.toggle(deluxe_wash) is True
        assert selection.toggle(deluxe_wash) is False
        assert selection.ids == before

    def test_reselecting_removes(self, express_wash):
        selection = settlement.ServiceSelection()
        selection.toggle(express_wash)
        selection.toggle(express_wash)
        assert not selection
        assert len(selection) == 0

    def test_duplicates_collapse(self, express_wash):
        selection = settlement.ServiceSelection([express_wash, express_wash])
        assert selection.items == [express_wash]

    def test_keeps_selection_order(self, express_wash, deluxe_wash, tire_shine):
        selection = settlement.ServiceSelection()
        for item in (tire_shine, express_wash, deluxe_wash):
            selection.toggle(item)
        assert selection.ids == ["s5", "s1", "s2"]
        assert selection.is_selected("s1")
        assert selection.is_selected(deluxe_wash)


class TestSettle:
    def test_scenario_basic_no_redemption(self, store, basic_customer, express_wash, deluxe_wash):
        tx = settlement.settle(store, basic_customer.id, [express_wash, deluxe_wash], 0)

        assert tx.subtotal == Decimal("400")
        assert tx.discount_amount == Decimal("0")
        assert tx.final_amount == Decimal("400")
        assert tx.points_earned == 40
        assert customers.get(store, basic_customer.id).points == 40

    def test_scenario_vip_with_redemption(self, store, vip_customer, interior_detailing):
        tx = settlement.settle(store, vip_customer.id, [interior_detailing], 200)

        assert tx.subtotal == Decimal("600")
        assert tx.discount_amount == Decimal("220")  # 120 membership + 100 points
        assert tx.points_redeemed == 200
        assert tx.final_amount == Decimal("380")
        assert tx.points_earned == 38
        assert customers.get(store, vip_customer.id).points == 138

    def test_scenario_premium_below_redemption_threshold(self, store, tire_shine):
        customer = make_customer(store, MembershipTier.PREMIUM, points=50)
        assert settlement.redemption_options(customer.points) == []

        tx = settlement.settle(store, customer.id, [tire_shine])
        assert tx.final_amount == Decimal("45")
        assert customers.get(store, customer.id).points == 54

    def test_scenario_over_redemption_changes_nothing(self, store, vip_customer, interior_detailing):
        with pytest.raises(WashError) as exc:
            settlement.settle(store, vip_customer.id, [interior_detailing], 500)

        assert exc.value.code == "INSUFFICIENT_POINTS"
        assert ledger.list_all(store) == []
        assert customers.get(store, vip_customer.id).points == 300

    def test_cent_boundary_earns_no_point(self, store, premium_customer):
        tx = settlement.settle(store, premium_customer.id, [make_item("x1", "11.11")])

        assert tx.final_amount == Decimal("9.99")
        assert tx.discount_amount == Decimal("1.12")
        assert tx.points_earned == 0
        assert customers.get(store, premium_customer.id).points == 0

    def test_empty_selection_rejected(self, store, basic_customer):
        with pytest.raises(WashError) as exc:
            settlement.settle(store, basic_customer.id, [])
        assert exc.value.code == "EMPTY_SELECTION"
        assert ledger.count(store) == 0

    def test_unknown_customer_rejected(self, store, express_wash):
        with pytest.raises(WashError) as exc:
            settlement.settle(store, "missing", [express_wash])
        assert exc.value.code == "CUSTOMER_NOT_FOUND"
        assert ledger.count(store) == 0

    def test_not_multiple_of_step_rejected(self, store, vip_customer, express_wash):
        with pytest.raises(WashError) as exc:
            settlement.settle(store, vip_customer.id, [express_wash], 150)
        assert exc.value.code == "INVALID_REDEMPTION"
        assert customers.get(store, vip_customer.id).points == 300

    def test_accepts_selection_object(self, store, basic_customer, express_wash):
        selection = settlement.ServiceSelection()
        selection.toggle(express_wash)
        tx = settlement.settle(store, basic_customer.id, selection)
        assert [i.id for i in tx.items] == ["s1"]

    def test_uses_current_balance_not_callers_copy(self, store, vip_customer, express_wash):
        """The engine re-reads the customer, so a stale snapshot cannot over-redeem."""
        settlement.settle(store, vip_customer.id, [express_wash], 300)
        # vip_customer still says 300 points; the charge was clamped to 0 so the store now has 0
        with pytest.raises(WashError) as exc:
            settlement.settle(store, vip_customer.id, [express_wash], 100)
        assert exc.value.code == "INSUFFICIENT_POINTS"
        assert customers.get(store, vip_customer.id).points == 0

    def test_balance_is_conserved_over_many_sales(self, store, express_wash, interior_detailing):
        customer = make_customer(store, MembershipTier.VIP)
        expected = 0
        for redeem in (0, 0, 100, 0, 100):
            before = customers.get(store, customer.id).points
            tx = settlement.settle(store, customer.id, [express_wash, interior_detailing], redeem)
            expected = before - redeem + tx.points_earned
            assert customers.get(store, customer.id).points == expected
            assert expected >= 0
        assert len(ledger.list_for_customer(store, customer.id)) == 5

    def test_customer_name_is_snapshotted(self, store, basic_customer, express_wash):
        tx = settlement.settle(store, basic_customer.id, [express_wash])
        customers.update(store, basic_customer.id, name="Renamed")

        assert ledger.get(store, tx.id).customer_name == "Basic Bob"

    def test_stale_balance_rolls_back_ledger_write(self, store, basic_customer, express_wash, monkeypatch):
        """A failed balance write must not leave an orphan ledger entry."""

        def stale(conn, customer_id, expected, new_balance):
            raise WashError("STALE_BALANCE", customer_id=customer_id, expected=expected)

        monkeypatch.setattr(customers, "apply_points", stale)
        with pytest.raises(WashError) as exc:
            settlement.settle(store, basic_customer.id, [express_wash])

        assert exc.value.code == "STALE_BALANCE"
        assert ledger.count(store) == 0
        assert customers.get(store, basic_customer.id).points == 0


def _customer(tier, points):
    return Customer(
        id="c1",
        name="Quote Only",
        license_plate="00 QQ 00",
        vehicle_model="",
        phone="",
        membership_tier=tier,
        points=points,
        join_date="2026-01-01T00:00:00",
    )
