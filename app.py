"""Streamlit front-end for the portfolio ledger replay."""
from __future__ import annotations

from datetime import date, datetime, timedelta
from typing import Any, Sequence

import streamlit as st

from portfolio_ledger import (
    CachedPriceService,
    JsonPriceCache,
    LedgerReplayContext,
    ReplayLedgerUseCase,
)
from portfolio_ledger.application.archive.use_cases import ArchiveReplayUseCase
from portfolio_ledger.config import SETTINGS
from portfolio_ledger.domain.archive.entities import ArchiveFile
from portfolio_ledger.domain.results import LedgerError, ReplayReport
from portfolio_ledger.infrastructure.archive.file_repository import FileSystemArchiveRepository
from portfolio_ledger.infrastructure.pricing.providers import default_providers
from portfolio_ledger.infrastructure.storage.ledger_store import load_ledger
from portfolio_ledger.presentation.tables import (
    history_rows,
    ledger_rows,
    render_csv,
    render_html,
    rows_to_frame,
    summary_rows,
)


st.set_page_config(page_title="Portfolio Ledger", layout="wide")
st.title("Portfolio Ledger Replay")


def run_replay(ledger_bytes: bytes, as_of: date, offline: bool) -> tuple[ReplayReport, Sequence[Any]]:
    entries = load_ledger(ledger_bytes)
    price_lookup = None
    if not offline:
        price_lookup = CachedPriceService(
            cache=JsonPriceCache(SETTINGS.price_cache_path),
            providers=default_providers(),
            max_age=timedelta(minutes=SETTINGS.price_max_age_minutes),
        )
    use_case = ReplayLedgerUseCase(LedgerReplayContext(price_lookup=price_lookup, as_of=as_of))
    return use_case.execute(entries), entries


if "view" not in st.session_state:
    st.session_state["view"] = "upload"
if "result" not in st.session_state:
    st.session_state["result"] = None


if st.session_state["view"] == "upload":
    ledger_file = st.file_uploader("Upload ledger", type=["json"])
    col1, col2 = st.columns(2)
    with col1:
        as_of = st.date_input("Valuation date", value=date.today())
    with col2:
        offline = st.checkbox("Offline (no price lookup)", value=False)

    run_btn = st.button("Replay ledger", disabled=ledger_file is None)
    if run_btn and ledger_file is not None:
        ledger_bytes = ledger_file.read()
        try:
            with st.spinner("Replaying..."):
                report, entries = run_replay(ledger_bytes, as_of, offline)
        except LedgerError as error:
            st.error(f"Critical error occurred, further processing stopped: {error}")
        else:
            summary = summary_rows(report.portfolio)
            st.session_state["result"] = {
                "report": report,
                "entries": entries,
                "ledger_name": ledger_file.name,
                "ledger_bytes": ledger_bytes,
                "summary_csv": render_csv(summary),
                "report_html": render_html(report, entries),
            }
            st.session_state["view"] = "results"
            st.rerun()
else:
    back_clicked = st.button("← Back", key="back_to_upload")
    if back_clicked:
        st.session_state["view"] = "upload"
        st.session_state["result"] = None
        st.rerun()

    result = st.session_state.get("result")
    if not result:
        st.info("No results available. Upload a ledger and replay it first.")
    else:
        report: ReplayReport = result["report"]
        entries: Sequence[Any] = result["entries"]

        status = report.status_message()
        if report.fatal:
            st.error(status)
        elif report.has_issues():
            st.warning(status)
        else:
            st.success(status)

        col1, col2, col3 = st.columns(3)
        col1.metric("Entries", len(entries))
        col2.metric("Processed", report.processed)
        col3.metric("Issues", len(report.issues))

        tabs = st.tabs(["Log", "Summary", "History"])
        with tabs[0]:
            st.dataframe(rows_to_frame(ledger_rows(entries, report.issues)), hide_index=True)
        with tabs[1]:
            st.dataframe(rows_to_frame(summary_rows(report.portfolio)), hide_index=True)
            st.download_button(
                "Download summary CSV",
                data=result["summary_csv"],
                file_name="portfolio_summary.csv",
                mime="text/csv",
            )
            st.download_button(
                "Download report HTML",
                data=result["report_html"].encode("utf-8"),
                file_name="portfolio_report.html",
                mime="text/html",
            )
            if st.button("Archive this run", key="archive_run_btn"):
                receipt = ArchiveReplayUseCase(FileSystemArchiveRepository(SETTINGS.history_dir)).archive_report(
                    report,
                    inputs=[ArchiveFile(name=result["ledger_name"], content=result["ledger_bytes"])],
                    outputs=[
                        ArchiveFile(name="summary.csv", content=result["summary_csv"]),
                        ArchiveFile(name="report.html", content=result["report_html"].encode("utf-8")),
                    ],
                    run_id=datetime.now().strftime("%Y%m%d_%H%M%S"),
                )
                st.success(f"Archived run {receipt.run_id} to {receipt.location}")
        with tabs[2]:
            holdings = list(report.portfolio.iter_holdings())
            if not holdings:
                st.info("No holdings.")
            for platform, holding in holdings:
                with st.expander(f"{platform.name} / {holding.kind.label} / {holding.friendly_name}"):
                    frame = rows_to_frame(history_rows(holding))
                    if frame.empty:
                        st.caption("No changes recorded.")
                    else:
                        st.dataframe(frame, hide_index=True)
