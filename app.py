import logging
from contextlib import contextmanager
from typing import Optional

import altair as alt
import pandas as pd
import streamlit as st

from core.accounts import AccountStore
from core.charts import build_chart, prepare_chart
from core.config import (
    ALL_ROWS_WARNING,
    DEFAULT_RANGE,
    SAMPLE_SIZE_CHOICES,
    TABLE_PAGE_SIZE,
    setup_logging,
)
from core.dashboards import DashboardRecord, DashboardStore
from core.dataset import numeric_columns
from core.errors import DashboardError, DataUnavailable
from core.registry import CHART_TYPE_LABELS, CHART_TYPES, ChartSpec
from core.session import DashboardSession
from core.settings import AGGREGATE_FUNCTIONS, VIEW_MODES, ViewSettings
from core.sources import DEMO_SALES_ID, default_source
from core.table import next_sort_order, table_page

alt.data_transformers.disable_max_rows()
setup_logging()
logger = logging.getLogger(__name__)

DEMO_SOURCES = {
    "Sales demo": DEMO_SALES_ID,
    "Users demo": "demo-users",
    "Finance demo": "demo-finance",
}


# ---------- UI / layout helpers ----------
def inject_base_styles():
    if st.session_state.get("_base_css_injected"):
        return
    st.markdown(
        """
        <style>
        .app-top-bar {padding: 6px 0 4px;border-bottom: 1px solid #e5e7eb;margin-bottom: 10px;}
        .app-top-bar .breadcrumb {color: #6b7280;font-size: 0.9rem;margin-bottom: 2px;}
        .app-top-bar .page-title {font-size: 1.4rem;font-weight: 700;color: #111827;}
        .card {border: 1px solid #e5e7eb;border-radius: 12px;padding: 16px;background: #ffffff;
               box-shadow: 0 1px 2px rgba(0,0,0,0.04); margin-bottom: 12px;}
        .card-header {display: flex;justify-content: space-between;align-items: center;margin-bottom: 8px;}
        .card-title {font-weight: 600;font-size: 1.0rem;color: #111827;}
        .card-actions {font-size: 0.85rem;color: #6b7280;}
        .chip-row {display: flex;flex-wrap: wrap;gap: 6px;margin-top: 6px;}
        .chip {background: #f3f4f6;border: 1px solid #e5e7eb;border-radius: 14px;padding: 4px 10px;font-size: 0.85rem;color: #374151;}
        </style>
        """,
        unsafe_allow_html=True,
    )
    st.session_state["_base_css_injected"] = True


@contextmanager
def card(title: str, actions: Optional[str] = None):
    container = st.container()
    container.markdown(
        f"""
        <div class="card">
          <div class="card-header">
            <div class="card-title">{title}</div>
            <div class="card-actions">{actions or ""}</div>
          </div>
        """,
        unsafe_allow_html=True,
    )
    body = container.container()
    with body:
        yield body
    container.markdown("</div>", unsafe_allow_html=True)


def render_page_header(title: str, breadcrumb: str, chips: Optional[list] = None):
    inject_base_styles()
    st.markdown(
        f"<div class='app-top-bar'><div class='breadcrumb'>{breadcrumb}</div><div class='page-title'>{title}</div></div>",
        unsafe_allow_html=True,
    )
    if chips:
        html = "".join(f"<span class='chip'>{c}</span>" for c in chips)
        st.markdown(f"<div class='chip-row'>{html}</div>", unsafe_allow_html=True)


# ---------- shared state ----------
@st.cache_resource
def get_services():
    return AccountStore(), DashboardStore(), default_source()


accounts, dashboards, source = get_services()


def get_session() -> DashboardSession:
    if "session" not in st.session_state:
        st.session_state["session"] = DashboardSession()
    return st.session_state["session"]


def load_source(session: DashboardSession, source_id: str, sheet_name: Optional[str], range_: Optional[str]):
    ticket = session.begin_fetch(source_id, sheet_name, range_)
    with st.spinner("Loading sheet data..."):
        if session.load(source, ticket) and session.dataset is not None:
            session.registry.seed_defaults()


def retry_load(session: DashboardSession):
    with st.spinner("Retrying..."):
        if session.retry(source) and session.dataset is not None:
            session.registry.seed_defaults()


def open_dashboard(session: DashboardSession, record: DashboardRecord):
    session.select_dashboard(record)
    st.session_state["source_id"] = record.source_id
    load_source(session, record.source_id, record.tab_name, None)


# ---------- auth ----------
def render_auth(session: DashboardSession):
    render_page_header("Sheet Dashboard", "Sign in")
    login_tab, register_tab = st.tabs(["Sign in", "Create account"])
    with login_tab:
        with st.form("login"):
            email = st.text_input("Email")
            password = st.text_input("Password", type="password")
            if st.form_submit_button("Sign in"):
                try:
                    principal, token = accounts.login(email, password)
                except DashboardError as exc:
                    st.error(str(exc))
                else:
                    session.sign_in(principal, token)
                    st.rerun()
    with register_tab:
        with st.form("register"):
            name = st.text_input("Name")
            email = st.text_input("Email", key="register_email")
            password = st.text_input("Password", type="password", key="register_password")
            if st.form_submit_button("Create account"):
                try:
                    principal, token = accounts.register(email, password, name)
                except DashboardError as exc:
                    st.error(str(exc))
                else:
                    session.sign_in(principal, token)
                    st.rerun()


# ---------- sidebar ----------
def render_sidebar(session: DashboardSession):
    with st.sidebar:
        st.markdown(f"**{session.principal.name}**  \n{session.principal.email}")
        if st.button("Sign out"):
            accounts.logout(session.token or "")
            session.sign_out()
            st.rerun()

        st.markdown("---")
        st.markdown("### Dashboards")
        records = dashboards.list(session.principal.id)
        for record in records:
            cols = st.columns([5, 1])
            selected = session.dashboard is not None and session.dashboard.id == record.id
            label = f"▶ {record.title}" if selected else record.title
            if cols[0].button(label, key=f"open-{record.id}", use_container_width=True):
                open_dashboard(session, record)
                st.rerun()
            if cols[1].button("✕", key=f"delete-{record.id}"):
                dashboards.delete(session.principal.id, record.id)
                if selected:
                    session.select_dashboard(None)
                    st.session_state.pop("source_id", None)
                st.rerun()
        if not records:
            st.caption("No dashboards yet.")

        with st.expander("New dashboard", expanded=not records):
            with st.form("new_dashboard"):
                title = st.text_input("Title")
                description = st.text_area("Description", height=68)
                source_id = st.text_input("Sheet ID or file name", value=DEMO_SALES_ID)
                if st.form_submit_button("Create"):
                    try:
                        record = dashboards.create(session.principal.id, title=title, source_id=source_id, description=description)
                    except DashboardError as exc:
                        st.error(str(exc))
                    else:
                        open_dashboard(session, record)
                        st.rerun()


# ---------- data source ----------
def render_source_picker(session: DashboardSession):
    with card("Data source"):
        demo_cols = st.columns(len(DEMO_SOURCES))
        for col, (label, demo_id) in zip(demo_cols, DEMO_SOURCES.items()):
            if col.button(label, use_container_width=True):
                st.session_state["source_id"] = demo_id

        cols = st.columns([4, 2, 2, 1])
        default_id = session.dashboard.source_id if session.dashboard else DEMO_SALES_ID
        st.session_state.setdefault("source_id", default_id)
        source_id = cols[0].text_input("Sheet ID or file name", key="source_id")
        tab_names = []
        try:
            tab_names = [t.title for t in source.list_tabs(source_id).tabs] if source_id else []
        except DataUnavailable as exc:
            cols[1].caption(f"Tabs unavailable: {exc}")
        sheet_name = cols[1].selectbox("Tab", options=tab_names or [None], format_func=lambda t: t or "Default")
        range_ = cols[2].text_input("Range", value=DEFAULT_RANGE)
        cols[3].markdown("&nbsp;")
        if cols[3].button("Load", type="primary"):
            load_source(session, source_id, sheet_name, range_)
            st.rerun()

    if session.error:
        st.error(f"Could not load data: {session.error}")
        if session.can_retry and st.button("Retry"):
            retry_load(session)
            st.rerun()


def render_stats(session: DashboardSession):
    dataset = session.dataset
    cols = st.columns(4)
    cols[0].metric("Rows", f"{dataset.row_count:,}")
    cols[1].metric("Columns", f"{len(dataset.headers):,}")
    cols[2].metric("Numeric columns", f"{len(numeric_columns(dataset)):,}")
    cols[3].metric("Charts", f"{len(session.registry):,}")


# ---------- chart configuration ----------
def render_configurator(session: DashboardSession):
    headers = list(session.dataset.headers)
    with st.expander("Add chart", expanded=False):
        with st.form("add_chart"):
            cols = st.columns(2)
            title = cols[0].text_input("Title")
            chart_type = cols[1].selectbox("Type", CHART_TYPES, format_func=lambda t: CHART_TYPE_LABELS[t][0])
            cols = st.columns(3)
            x_key = cols[0].selectbox("X axis", headers)
            y_key = cols[1].selectbox("Y axis", headers, index=min(1, len(headers) - 1))
            z_key = cols[2].selectbox("Size (bubble)", [None] + headers, format_func=lambda h: h or "None")
            if st.form_submit_button("Add chart"):
                session.registry.add(title=title or None, type=chart_type, x_key=x_key, y_key=y_key, z_key=z_key)
                st.rerun()


def render_chart_editor(session: DashboardSession, spec: ChartSpec):
    headers = list(session.dataset.headers)
    with st.form(f"edit-{spec.id}"):
        title = st.text_input("Title", value=spec.title, key=f"{spec.id}-title")
        chart_type = st.selectbox(
            "Type",
            CHART_TYPES,
            index=CHART_TYPES.index(spec.type),
            format_func=lambda t: CHART_TYPE_LABELS[t][0],
            key=f"{spec.id}-type",
        )
        x_key = st.selectbox("X axis", headers, index=headers.index(spec.x_key) if spec.x_key in headers else 0, key=f"{spec.id}-x")
        y_key = st.selectbox("Y axis", headers, index=headers.index(spec.y_key) if spec.y_key in headers else 0, key=f"{spec.id}-y")
        z_options = [None] + headers
        z_key = st.selectbox(
            "Size (bubble)",
            z_options,
            index=z_options.index(spec.z_key) if spec.z_key in z_options else 0,
            format_func=lambda h: h or "None",
            key=f"{spec.id}-z",
        )
        save_col, delete_col = st.columns(2)
        if save_col.form_submit_button("Save"):
            session.registry.update(spec.id, title=title, type=chart_type, x_key=x_key, y_key=y_key, z_key=z_key)
            st.rerun()
        if delete_col.form_submit_button("Delete"):
            session.registry.remove(spec.id)
            session.settings.pop(spec.id, None)
            st.rerun()


def render_chart_controls(session: DashboardSession, spec: ChartSpec) -> ViewSettings:
    current = session.settings_for(spec.id)
    headers = list(session.dataset.headers)
    row_count = session.dataset.row_count
    key = spec.id

    cols = st.columns(3)
    view_mode = cols[0].selectbox("View", VIEW_MODES, index=VIEW_MODES.index(current.view_mode), key=f"{key}-mode")
    sample_size = current.sample_size
    aggregate_by = current.aggregate_by
    aggregate_function = current.aggregate_function
    if view_mode == "sample":
        choices = list(SAMPLE_SIZE_CHOICES)
        sample_size = cols[1].selectbox(
            "Sample size",
            choices,
            index=choices.index(current.sample_size) if current.sample_size in choices else 1,
            key=f"{key}-sample",
        )
    elif view_mode == "aggregate":
        aggregate_by = cols[1].selectbox(
            "Group by",
            headers,
            index=headers.index(current.aggregate_by) if current.aggregate_by in headers else 0,
            key=f"{key}-group",
        )
        aggregate_function = cols[2].selectbox(
            "Function",
            AGGREGATE_FUNCTIONS,
            index=AGGREGATE_FUNCTIONS.index(current.aggregate_function),
            key=f"{key}-fn",
        )
    toggles = st.columns(2)
    show_trendline = toggles[0].checkbox("Trend line", value=current.show_trendline, key=f"{key}-trend", disabled=spec.type == "pie")
    enable_zoom = toggles[1].checkbox("Zoom", value=current.enable_zoom, key=f"{key}-zoom")
    if view_mode == "all" and row_count > ALL_ROWS_WARNING:
        st.warning(f"Showing all {row_count:,} rows may slow down rendering.")

    settings = ViewSettings(
        view_mode=view_mode,
        sample_size=int(sample_size),
        aggregate_by=aggregate_by,
        aggregate_function=aggregate_function,
        show_trendline=show_trendline,
        enable_zoom=enable_zoom,
    )
    session.set_settings(spec.id, settings)
    return settings


def render_chart_card(session: DashboardSession, spec: ChartSpec):
    label, description = CHART_TYPE_LABELS.get(spec.type, (spec.type, ""))
    with card(spec.title, actions=label):
        try:
            with st.popover("Edit chart"):
                render_chart_editor(session, spec)
            settings = render_chart_controls(session, spec)
            chart = build_chart(session.dataset, spec, settings)
            if chart is None:
                st.info("No data to display.")
            else:
                st.altair_chart(chart, use_container_width=not spec.is_geometric)
            prepared = prepare_chart(session.dataset, spec, settings)
            st.caption(f"{description} · {len(prepared['rows']):,} points")
        except Exception as exc:
            logger.exception("chart %s failed", spec.id)
            st.error(f"This chart could not be rendered: {exc}")


def render_chart_grid(session: DashboardSession):
    specs = session.registry.list()
    if not specs:
        st.info("No charts yet. Add one above.")
        return
    for start in range(0, len(specs), 2):
        cols = st.columns(2)
        for col, spec in zip(cols, specs[start : start + 2]):
            with col:
                render_chart_card(session, spec)


# ---------- table ----------
def render_table(session: DashboardSession):
    state = st.session_state.setdefault("table", {"column": None, "order": None, "page": 1})
    with card("Data", actions=f"{session.dataset.row_count:,} rows"):
        cols = st.columns([3, 2, 1])
        filter_text = cols[0].text_input("Search", key="table_filter")
        sort_options = [None] + list(session.dataset.headers)
        clicked = cols[1].selectbox("Sort by", sort_options, format_func=lambda h: h or "None", key="table_sort")
        if clicked and cols[2].button("Toggle order"):
            state["column"], state["order"] = next_sort_order(state["column"], state["order"], clicked)
        elif not clicked:
            state["column"], state["order"] = None, None

        payload = table_page(
            session.dataset,
            filter_text=filter_text,
            sort_column=state["column"],
            sort_order=state["order"],
            page=state["page"],
            per_page=TABLE_PAGE_SIZE,
        )
        state["page"] = payload["page"]
        st.dataframe(pd.DataFrame(payload["rows"], columns=payload["headers"]), hide_index=True, use_container_width=True)

        if payload["total_pages"] > 1:
            page_cols = st.columns(len(payload["page_numbers"]) + 2)
            if page_cols[0].button("‹", disabled=payload["page"] <= 1):
                state["page"] -= 1
                st.rerun()
            for col, number in zip(page_cols[1:-1], payload["page_numbers"]):
                if number == "...":
                    col.markdown("…")
                elif col.button(str(number), key=f"page-{number}", type="primary" if number == payload["page"] else "secondary"):
                    state["page"] = number
                    st.rerun()
            if page_cols[-1].button("›", disabled=payload["page"] >= payload["total_pages"]):
                state["page"] += 1
                st.rerun()
        order = f" ({state['order']})" if state["order"] else ""
        st.caption(f"Page {payload['page']} of {max(payload['total_pages'], 1)} · {payload['total_rows']:,} matching rows{order}")


# ---------- page ----------
st.set_page_config(page_title="Sheet Dashboard", layout="wide")
inject_base_styles()
session = get_session()

if not session.authenticated:
    render_auth(session)
    st.stop()

render_sidebar(session)
title = session.dashboard.title if session.dashboard else "Sheet Dashboard"
chips = [session.dashboard.source_id] if session.dashboard else None
render_page_header(title, "Home / Dashboard", chips)
if session.dashboard and session.dashboard.description:
    st.caption(session.dashboard.description)

render_source_picker(session)

if session.dataset is None:
    st.info("Pick a sheet and press Load to get started.")
    st.stop()
if session.dataset.is_empty:
    st.info("The selected range has no data.")
    st.stop()

render_stats(session)
render_configurator(session)
render_chart_grid(session)
render_table(session)
