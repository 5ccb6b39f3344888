"""
app.py
Streamlit car wash POS + loyalty ledger (owner-only).
Run: streamlit run app.py
"""

from __future__ import annotations

import logging

import pandas as pd
import streamlit as st

import advisor
import auth
import backup
import customers
import ledger
import reports
import settlement
import utils
from catalog import list_services
from config import get_settings
from db import Store
from exceptions import WashError
from models import MembershipTier

st.set_page_config(page_title="SparkleWash POS", layout="wide")

TIERS = [t.value for t in MembershipTier]


@st.cache_resource
def get_store() -> Store:
    # Built once per server process
    settings = get_settings()
    logging.basicConfig(
        level=settings.log_level,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    store = Store(settings.db_file)
    auth.ensure_default_admin(store)
    return store


def money(value) -> str:
    return f"{float(value):,.2f} {get_settings().currency}"


SESSION_DEFAULTS = {"logged_in": False, "username": None}


def init_session():
    for key, value in SESSION_DEFAULTS.items():
        st.session_state.setdefault(key, value)


def sign_out():
    # Drop the open sale too so the next owner starts clean
    _reset_sale()
    st.session_state.last_transaction = None
    st.session_state.update(SESSION_DEFAULTS)


def login_screen(store: Store):
    st.title("🔐 SparkleWash owner sign-in")

    form_col, hint_col = st.columns(2)
    with form_col:
        with st.form("sign_in"):
            username = st.text_input("Username", value="admin").strip()
            password = st.text_input("Password", type="password")
            submitted = st.form_submit_button("Sign in", type="primary")
        if submitted:
            if not auth.login(store, username, password):
                st.error("Wrong username or password.")
                return
            st.session_state.update(logged_in=True, username=username)
            st.rerun()

    with hint_col:
        st.info(
            "First run creates a default admin:\n\n"
            "- username: **admin**\n"
            f"- password: **{auth.DEFAULT_ADMIN_PASSWORD}**\n\n"
            "You will be forced to change it on first login."
        )


def password_form(store: Store, key: str):
    p1 = st.text_input("New password", type="password", key=f"{key}_p1")
    p2 = st.text_input("Confirm new password", type="password", key=f"{key}_p2")
    if st.button("Update password", type="primary", key=f"{key}_btn"):
        error = auth.validate_new_password(p1, p2)
        if error:
            st.error(error)
            return False
        auth.change_password(store, st.session_state.username, p1)
        st.success("Password updated.")
        return True
    return False


def force_change_password_screen(store: Store):
    st.title("⚠️ Change Password (Required)")
    st.warning("You must change the default password before using the app.")
    if password_form(store, "force"):
        st.rerun()


# ---------- Pages ----------

def dashboard_page(store: Store):
    st.header("📊 Dashboard")

    stats = reports.dashboard_stats(store)
    c1, c2, c3, c4 = st.columns(4)
    c1.metric("Today's revenue", money(stats.daily_revenue))
    c2.metric("Monthly revenue", money(stats.monthly_revenue))
    c3.metric("Customers", stats.total_customers)
    c4.metric("Today's washes", stats.todays_washes)

    st.divider()

    st.subheader("Recent transactions")
    recent = ledger.list_all(store)[-10:][::-1]
    if recent:
        st.dataframe(utils.transactions_frame(recent), use_container_width=True, hide_index=True)
    else:
        st.caption("No transactions yet.")


def customer_form(store: Store, existing=None):
    if existing:
        st.subheader(f"✏️ Edit Customer ({existing.license_plate})")
    else:
        st.subheader("➕ Add Customer")

    key = existing.id if existing else "new"
    col1, col2 = st.columns(2)
    with col1:
        name = st.text_input("Full name", value=(existing.name if existing else ""), key=f"name_{key}")
        plate = st.text_input("License plate", value=(existing.license_plate if existing else ""), key=f"plate_{key}")
        phone = st.text_input("Phone", value=(existing.phone if existing else ""), key=f"phone_{key}")
    with col2:
        model = st.text_input("Vehicle model", value=(existing.vehicle_model if existing else ""), key=f"model_{key}")
        tier = st.selectbox(
            "Membership tier",
            options=TIERS,
            index=(TIERS.index(existing.membership_tier.value) if existing else 0),
            format_func=lambda t: f"{t} ({int(settlement.discount_rate(t) * 100)}% off)",
            key=f"tier_{key}",
        )

    errors = customers.validate_profile(name, plate, tier)
    for e in errors:
        st.error(e)

    if st.button("Save", type="primary", disabled=bool(errors), key=f"save_{key}"):
        try:
            if existing:
                customers.update(
                    store, existing.id,
                    name=name, license_plate=plate, vehicle_model=model, phone=phone, membership_tier=tier,
                )
                st.success("Customer updated.")
            else:
                duplicate = customers.find_by_plate(store, plate)
                customers.create(store, name, plate, model, phone, tier)
                if duplicate:
                    st.warning(f"Plate {duplicate.license_plate} is already registered to {duplicate.name}.")
                st.success("Customer added.")
        except WashError as e:
            st.error(str(e))
            return
        st.session_state.edit_customer_id = None
        st.rerun()


def customers_page(store: Store):
    st.header("👥 Customers")

    search = st.text_input("Search (plate or name)")
    rows = customers.search(store, search)
    st.dataframe(utils.customers_frame(rows), use_container_width=True, hide_index=True)

    st.divider()

    if rows:
        options = {f"{c.license_plate} - {c.name}": c.id for c in rows}
        chosen = st.selectbox("Select customer", ["(none)"] + list(options))
        if chosen != "(none)":
            c1, c2 = st.columns(2)
            with c1:
                if st.button("Edit"):
                    st.session_state.edit_customer_id = options[chosen]
                    st.rerun()
            with c2:
                if st.button("Start sale"):
                    st.session_state.pos_customer_id = options[chosen]
                    st.session_state.page = "POS"
                    st.rerun()

    st.divider()

    edit_id = st.session_state.get("edit_customer_id")
    existing = customers.get(store, edit_id) if edit_id else None
    if existing:
        customer_form(store, existing)
        if st.button("Cancel edit"):
            st.session_state.edit_customer_id = None
            st.rerun()
    else:
        customer_form(store)


def _selection() -> settlement.ServiceSelection:
    if "pos_selection" not in st.session_state:
        st.session_state.pos_selection = settlement.ServiceSelection()
    return st.session_state.pos_selection


def _reset_sale():
    st.session_state.pos_customer_id = None
    # Widget-owned keys must be dropped, not assigned
    for key in [k for k in st.session_state if k == "pos_redeem" or k.startswith("svc_")]:
        del st.session_state[key]
    _selection().clear()


def receipt_view(tx):
    st.header("🧾 Receipt")
    st.success(f"Payment completed for **{tx.customer_name}**.")
    st.dataframe(
        pd.DataFrame([{"service": i.name, "price": float(i.price)} for i in tx.items]),
        use_container_width=True,
        hide_index=True,
    )
    c1, c2, c3, c4 = st.columns(4)
    c1.metric("Subtotal", money(tx.subtotal))
    c2.metric("Discount", money(tx.discount_amount))
    c3.metric("Paid", money(tx.final_amount))
    c4.metric("Points", f"+{tx.points_earned} / -{tx.points_redeemed}")
    st.caption(f"Transaction {tx.id} at {tx.timestamp}")
    if st.button("Next customer", type="primary"):
        st.session_state.last_transaction = None
        st.rerun()


def pos_page(store: Store):
    last = st.session_state.get("last_transaction")
    if last:
        receipt_view(last)
        return

    st.header("🚗 Point of Sale")
    selection = _selection()
    left, right = st.columns([3, 2])

    with left:
        st.subheader("Services")
        for item in list_services(store):
            label = f"{item.name} ({item.category.value}) - {money(item.price)}"
            checked = st.checkbox(label, value=selection.is_selected(item), key=f"svc_{item.id}")
            if checked != selection.is_selected(item):
                selection.toggle(item)

    with right:
        customer = None
        customer_id = st.session_state.get("pos_customer_id")
        if customer_id:
            customer = customers.get(store, customer_id)

        if customer is None:
            st.subheader("Customer")
            plate = st.text_input("License plate").upper()
            if st.button("Find"):
                found = customers.find_by_plate(store, plate)
                if found:
                    st.session_state.pos_customer_id = found.id
                    st.rerun()
                else:
                    st.error("Customer not found. Please register first.")
        else:
            st.subheader(f"{customer.name} ({customer.membership_tier.value})")
            st.caption(f"{customer.license_plate} · {customer.vehicle_model} · {customer.points} points")
            if st.button("Change customer"):
                _reset_sale()
                st.rerun()

        st.divider()

        for item in selection:
            st.write(f"{item.name}: {money(item.price)}")

        redeem = 0
        if customer is not None:
            options = settlement.redemption_options(customer.points)
            if options:
                redeem = st.selectbox(
                    f"Redeem points ({settlement.REDEEM_STEP}p = {money(settlement.REDEEM_VALUE)})",
                    options=[0] + options,
                    format_func=lambda p: "None" if p == 0 else f"{p} p (-{money(p // settlement.REDEEM_STEP * settlement.REDEEM_VALUE)})",
                    key="pos_redeem",
                )

            q = settlement.quote(customer, selection.items, redeem)
            st.write(f"Subtotal: **{money(q.subtotal)}**")
            if q.membership_discount:
                st.write(f"{customer.membership_tier.value} discount: -{money(q.membership_discount)}")
            if q.points_discount:
                st.write(f"Points discount: -{money(q.points_discount)}")
            st.subheader(f"Total: {money(q.final_amount)}")

        if st.button("Complete payment", type="primary", disabled=customer is None or not selection):
            try:
                tx = settlement.settle(store, customer.id, selection, redeem)
            except WashError as e:
                st.error(str(e))
                return
            _reset_sale()
            st.session_state.last_transaction = tx
            st.rerun()


def reports_page(store: Store):
    st.header("📈 Reports")

    st.subheader("Revenue, last 7 days")
    df = reports.revenue_by_day(store)
    st.bar_chart(df, x="day", y="revenue")

    st.subheader("Revenue by month")
    st.dataframe(reports.revenue_summary_by_month(store), use_container_width=True, hide_index=True)

    st.subheader("Popular services")
    st.dataframe(reports.popular_services(store), use_container_width=True, hide_index=True)

    st.subheader("Points audit")
    audit = reports.points_audit(store)
    if audit.empty:
        st.caption("All point balances match the ledger.")
    else:
        st.warning("Some balances do not match the ledger.")
        st.dataframe(audit, use_container_width=True, hide_index=True)

    st.divider()

    st.subheader("Exports")
    c1, c2 = st.columns(2)
    with c1:
        st.download_button(
            "Download customers.csv",
            data=utils.customers_to_csv_bytes(customers.list_all(store)),
            file_name="customers.csv",
            mime="text/csv",
        )
    with c2:
        st.download_button(
            "Download transactions.csv",
            data=utils.transactions_to_csv_bytes(ledger.list_all(store)),
            file_name="transactions.csv",
            mime="text/csv",
        )

    st.divider()

    st.subheader("✨ AI business advisor")
    if st.button("Generate insights"):
        with st.spinner("Analyzing..."):
            st.session_state.ai_analysis = advisor.analyze_business(
                ledger.list_all(store), customers.list_all(store)
            )
    if st.session_state.get("ai_analysis"):
        st.markdown(st.session_state.ai_analysis)
    else:
        st.caption('Click "Generate insights" for a revenue and loyalty summary.')


def settings_page(store: Store):
    st.header("⚙️ Settings")

    st.subheader("Backup")
    st.caption("All data lives in a local SQLite file. Download a backup regularly.")
    st.download_button(
        "Download backup",
        data=backup.export_document(store),
        file_name=backup.backup_filename(),
        mime="application/json",
    )

    st.subheader("Restore")
    uploaded = st.file_uploader("Backup file", type=["json"])
    if uploaded is not None and st.button("Restore backup", type="primary"):
        try:
            counts = backup.restore_document(store, uploaded.getvalue())
        except WashError as e:
            st.error(f"Restore failed. {e.message}")
        else:
            st.success(f"Restored: {counts}")

    st.divider()

    st.subheader("Change password")
    password_form(store, "settings")

    st.divider()

    st.subheader("Sample data")
    st.caption("Register 3 sample customers and a few washes (adds new rows each run).")
    if st.button("Insert sample data"):
        utils.insert_sample_data(store)
        st.success("Sample data inserted.")
        st.rerun()


PAGES = {
    "Dashboard": dashboard_page,
    "Customers": customers_page,
    "POS": pos_page,
    "Reports": reports_page,
    "Settings": settings_page,
}


def main_app(store: Store):
    st.sidebar.title("🚿 SparkleWash")
    st.sidebar.caption(f"Logged in as: {st.session_state.username}")

    pages = list(PAGES)
    if "page" not in st.session_state:
        st.session_state.page = "Dashboard"
    st.session_state.page = st.sidebar.radio("Navigate", pages, index=pages.index(st.session_state.page))

    if st.sidebar.button("Sign out"):
        sign_out()
        st.rerun()

    PAGES[st.session_state.page](store)


# --------- App entry ---------

def run():
    store = get_store()
    init_session()

    if not st.session_state.logged_in:
        login_screen(store)
        return

    # Force password change on first login after DB creation
    if store.is_force_password_change():
        force_change_password_screen(store)
        return

    main_app(store)


if __name__ == "__main__":
    run()
