"""
Streamlit Frontend for Balance Updater

The screen an operator uses to record today's balance.

DESIGN PRINCIPLES:
1. Show the current balance before asking for a new one
2. Accept the amount the way people type it ($12,345.67, 12345.67, 12 345)
3. Clear error messages, shown verbatim
4. One successful update ends the session

Pressing Enter in the amount field submits the form.
"""

import asyncio

import streamlit as st

from src.audit import create_correlation_id
from src.config import get_settings
from src.orchestrator import BalanceReadFlow, BalanceUpdateFlow, create_app_components
from src.services.storage import ConnectionError, DuplicateEntryForDayError, StorageError
from src.validation import BalanceInputValidator, InvalidInputError


settings = get_settings().app

st.set_page_config(
    page_title=f"Update {settings.account_name} Balance",
    page_icon="💵",
    layout="centered",
)


def run_async(coro):
    """Helper to run async functions in Streamlit."""
    loop = asyncio.new_event_loop()
    asyncio.set_event_loop(loop)
    try:
        return loop.run_until_complete(coro)
    finally:
        loop.close()


@st.cache_resource
def get_components():
    """Get or create application components (cached)."""
    return create_app_components(use_storage=True)


def main():
    """Main application entry point."""
    read_flow, update_flow, _ = get_components()

    if "update_state" not in st.session_state:
        st.session_state.update_state = "idle"  # idle, saved
    if "saved_record" not in st.session_state:
        st.session_state.saved_record = None

    st.title(f"Update {settings.account_name} Balance")

    if st.session_state.update_state == "saved":
        render_saved_page()
        st.stop()

    render_current_balance(read_flow)
    render_update_form(update_flow)
    render_history(read_flow)


def render_current_balance(read_flow: BalanceReadFlow):
    """Show the latest balance, or an error indicator in its place."""
    current = run_async(read_flow.get_current_balance())

    st.markdown(f"### {current.display_text}")
    if current.record_date:
        st.caption(f"Recorded on {current.record_date.strftime('%d %B %Y')}")
    if current.is_error:
        st.caption(f"Could not read the balance: {current.error_message}")


def render_update_form(update_flow: BalanceUpdateFlow):
    """Accept a new balance and write it."""
    with st.form("update_balance", clear_on_submit=False):
        raw_input = st.text_input(
            "Enter NEW Balance:",
            placeholder="$12,345.67",
            help="Currency symbols, commas and spaces are ignored",
        )
        submitted = st.form_submit_button("UPDATE", type="primary", use_container_width=True)

    if not submitted:
        return

    if not raw_input.strip():
        st.warning("Please enter a balance.")
        return

    try:
        record = run_async(
            update_flow.submit_balance(
                raw_input=raw_input.strip(),
                correlation_id=create_correlation_id(),
            )
        )
    except InvalidInputError as e:
        st.error(BalanceInputValidator.get_user_friendly_message(e))
        return
    except DuplicateEntryForDayError as e:
        st.error(f"Error updating database:\n{e}")
        return
    except ConnectionError as e:
        st.error(f"Could not reach the database:\n{e}")
        return
    except StorageError as e:
        st.error(f"Error updating database:\n{e}")
        return

    st.session_state.update_state = "saved"
    st.session_state.saved_record = record
    st.rerun()


def render_saved_page():
    """Terminal state: the balance is in, nothing else to do."""
    record = st.session_state.saved_record

    st.success("Balance updated successfully!")
    st.markdown(f"**Amount:** {record.display_amount(settings.currency_symbol)}")
    st.markdown(f"**Date:** {record.record_date.strftime('%d %B %Y')}")
    st.info("You can close this window.")


def render_history(read_flow: BalanceReadFlow):
    """Recent entries, newest first."""
    records = run_async(read_flow.list_recent_balances(limit=10))
    if not records:
        return

    with st.expander("📊 Recent Balances"):
        st.table([
            {
                "Date": r.record_date.isoformat(),
                "Balance": r.display_amount(settings.currency_symbol),
            }
            for r in records
        ])


if __name__ == "__main__":
    main()
