import sys
import os
sys.path.append(os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

import asyncio
import logging

import streamlit as st
import pandas as pd
import plotly.express as px

from core.config import get_settings, configure_logging
from core.domain import OPERATION_TYPES
from core.errors import LedgerError
from core.events import EventBus, BALANCE_ALERT, check_balance_handler
from core.functional import safe_category, validate_operation_refs
from core.ledger import Ledger, IdAllocator
from core.transforms import JsonDataImporter, DictExportVisitor, export_ledger, to_dataframe
from core.async_reports import differences_by_month

settings = get_settings()
configure_logging(settings)
logger = logging.getLogger("app")
CUR = settings.currency

st.set_page_config(page_title="Ledger", layout="wide")


def build_ledger():
    alerts = []

    def collect_alert(event, payload):
        result = check_balance_handler(event, payload)
        if result:
            alerts.append(result["alert"])
        return result

    bus = EventBus()
    bus.subscribe(BALANCE_ALERT, collect_alert)
    ledger = Ledger.from_settings(settings, bus=bus)
    ids = IdAllocator()
    if os.path.exists(settings.seed_path):
        try:
            JsonDataImporter(ledger).import_from(settings.seed_path)
        except ValueError as e:
            # covers LedgerError rows and broken JSON; nothing was saved
            logger.error("Seed file %s rejected: %s", settings.seed_path, e)
            alerts.append(f"Seed file not loaded: {e}")
        for a in ledger.list_accounts():
            ids.reserve("account", a.id)
        for c in ledger.list_categories():
            ids.reserve("category", c.id)
        for o in ledger.list_operations():
            ids.reserve("operation", o.id)
    else:
        logger.warning("Seed file %s not found, starting empty", settings.seed_path)
    return ledger, ids, alerts


if "ledger" not in st.session_state:
    st.session_state.ledger, st.session_state.ids, st.session_state.alerts = build_ledger()

ledger: Ledger = st.session_state.ledger
ids: IdAllocator = st.session_state.ids

menu = st.sidebar.radio(
    "Menu",
    ["🏦 Accounts", "🏷️ Categories", "🧾 Operations", "📊 Analytics"]
)

visitor = export_ledger(ledger, DictExportVisitor())
st.sidebar.download_button(
    "⬇️ Export JSON",
    visitor.to_json(),
    file_name="ledger.json",
    mime="application/json"
)


def fmt(amount: int) -> str:
    return f"{amount:,} {CUR}"


if menu == "🏦 Accounts":
    st.title("🏦 Accounts")

    accounts = ledger.list_accounts()
    total = sum(a.balance for a in accounts)
    k1, k2 = st.columns(2)
    with k1:
        st.metric("Accounts", len(accounts))
    with k2:
        st.metric("Total Balance", fmt(total))

    if accounts:
        df_acc = pd.DataFrame([{"ID": a.id, "Name": a.name, "Balance": a.balance} for a in accounts])
        st.dataframe(df_acc, use_container_width=True, hide_index=True)
        fig_bal = px.bar(
            df_acc, x="Name", y="Balance",
            title="Account Balances",
            template="plotly_dark"
        )
        st.plotly_chart(fig_bal, use_container_width=True)

    col_add, col_edit = st.columns(2)
    with col_add:
        with st.form("add_account"):
            name = st.text_input("Account name")
            if st.form_submit_button("Add account") and name:
                acc = ledger.create_account(ids.next_id("account"), name)
                st.success(f"Account {acc.name} created. ID: {acc.id}")
                st.rerun()
    with col_edit:
        with st.form("edit_account"):
            acc_id = st.number_input("Account ID", min_value=0, step=1)
            new_name = st.text_input("New name")
            rename, delete = st.columns(2)
            if rename.form_submit_button("Rename") and new_name:
                ledger.update_account(int(acc_id), new_name)
                st.rerun()
            if delete.form_submit_button("Delete"):
                ledger.delete_account(int(acc_id))
                st.rerun()

elif menu == "🏷️ Categories":
    st.title("🏷️ Categories")

    categories = ledger.list_categories()
    if categories:
        st.dataframe(
            pd.DataFrame([{"ID": c.id, "Type": c.type, "Name": c.name} for c in categories]),
            use_container_width=True,
            hide_index=True
        )
    else:
        st.info("No categories defined")

    col_add, col_edit = st.columns(2)
    with col_add:
        with st.form("add_category"):
            cat_type = st.selectbox("Type", OPERATION_TYPES)
            name = st.text_input("Category name")
            if st.form_submit_button("Add category") and name:
                try:
                    cat = ledger.create_category(ids.next_id("category"), cat_type, name)
                    st.success(f"Category {cat.name} created. ID: {cat.id}")
                    st.rerun()
                except LedgerError as e:
                    st.error(str(e))
    with col_edit:
        with st.form("edit_category"):
            cat_id = st.number_input("Category ID", min_value=0, step=1)
            new_name = st.text_input("New name")
            rename, delete = st.columns(2)
            if rename.form_submit_button("Rename") and new_name:
                ledger.update_category(int(cat_id), new_name)
                st.rerun()
            if delete.form_submit_button("Delete"):
                ledger.delete_category(int(cat_id))
                st.rerun()

elif menu == "🧾 Operations":
    st.title("🧾 Operations")

    with st.form("add_operation"):
        c1, c2, c3 = st.columns(3)
        with c1:
            op_type = st.selectbox("Type", OPERATION_TYPES)
            amount = st.number_input(f"Amount ({CUR})", min_value=0, step=100)
        with c2:
            acc_id = st.number_input("Account ID", min_value=0, step=1)
            cat_id = st.number_input("Category ID", min_value=0, step=1)
        with c3:
            op_date = st.date_input("Date")
            description = st.text_input("Description")
        strict = st.checkbox("Require existing account and category", value=True)

        if st.form_submit_button("Record operation"):
            checked = validate_operation_refs(
                op_type, int(acc_id), int(cat_id),
                ledger.list_accounts(), ledger.list_categories()
            )
            if strict and not checked.is_right():
                st.error(checked.get_error()["message"])
            else:
                try:
                    op = ledger.create_operation(
                        ids.next_id("operation"), op_type, int(acc_id), int(amount),
                        op_date, description, int(cat_id)
                    )
                    st.success(f"Operation recorded. ID: {op.id}")
                except LedgerError as e:
                    st.error(str(e))

    for msg in st.session_state.alerts[-3:]:
        st.warning(msg)

    df = to_dataframe(ledger.list_operations())
    if not df.empty:
        cat_names = {c.id: c.name for c in ledger.list_categories()}
        display_df = (
            df.sort_values("date")
            .assign(
                date=lambda x: x["date"].dt.strftime("%Y-%m-%d"),
                category=lambda x: x["category_id"].map(lambda cid: cat_names.get(cid, f"#{cid}")),
            )
            [["id", "date", "type", "amount", "account_id", "category", "description"]]
        )
        st.dataframe(display_df, use_container_width=True, hide_index=True)
        st.download_button(
            "⬇️ Download CSV",
            df.to_csv(index=False),
            file_name="operations.csv",
            mime="text/csv"
        )
    else:
        st.info("No operations recorded")

    with st.form("delete_operation"):
        del_id = st.number_input("Operation ID to delete", min_value=0, step=1)
        if st.form_submit_button("Delete operation"):
            ledger.delete_operation(int(del_id))
            st.rerun()

elif menu == "📊 Analytics":
    st.title("📊 Analytics")

    ops = ledger.list_operations()
    if ops:
        default_start = min(o.date for o in ops)
        default_end = max(o.date for o in ops)
    else:
        default_start = default_end = pd.Timestamp.today().date()

    window = st.date_input("Window", value=(default_start, default_end), key="analytics_window")
    if len(window) == 2:
        start, end = window
        diff = ledger.income_expense_difference(start, end)
        st.metric("Income − Expense", fmt(diff))

        groups = ledger.group_by_category(start, end)
        if groups:
            cats = ledger.list_categories()
            df_groups = pd.DataFrame([
                {
                    "Category": safe_category(cats, cid).map(lambda c: c.name).get_or_else(f"#{cid}"),
                    "Total": total,
                }
                for cid, total in groups.items()
            ])
            fig_groups = px.bar(
                df_groups, x="Category", y="Total",
                color=df_groups["Total"] > 0,
                title="Net by Category",
                template="plotly_dark"
            )
            fig_groups.update_layout(showlegend=False)
            st.plotly_chart(fig_groups, use_container_width=True)
        else:
            st.info("No operations in this window")

        months = [p.strftime("%Y-%m") for p in pd.period_range(start, end, freq="M")]
        if months:
            monthly = asyncio.run(differences_by_month(ops, months))
            df_month = pd.DataFrame({"Month": list(monthly.keys()), "Difference": list(monthly.values())})
            fig_month = px.line(df_month, x="Month", y="Difference", markers=True, title="Monthly Income − Expense")
            st.plotly_chart(fig_month, use_container_width=True)

        top = ledger.analytics.top_categories(start, end, k=5)
        if top:
            st.subheader("Top expense categories")
            for cid, total in top:
                name = safe_category(ledger.list_categories(), cid).map(lambda c: c.name).get_or_else(f"#{cid}")
                st.markdown(f"- **{name}**: {fmt(total)}")
