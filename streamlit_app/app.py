from __future__ import annotations

import pandas as pd
import streamlit as st
import altair as alt

from gym_analytics.config import get_settings
from gym_analytics.db import get_client, get_db
from gym_analytics.logging_config import configure_logging
from gym_analytics.source.fetch import (
    DataSourceError,
    fetch_package_members,
    fetch_revenue_rows,
    fetch_roles,
    fetch_staff,
    load_snapshot,
)
from gym_analytics.source.time_range import resolve_window
from gym_analytics.clean.normalize import normalize_memberships
from gym_analytics.aggregate.analytics import compute_analytics, package_distribution
from gym_analytics.aggregate.breakdowns import (
    compute_revenue_breakdown,
    compute_staff_breakdown,
    fill_growth_gaps,
    fill_revenue_gaps,
    revenue_transactions,
)
from gym_analytics.export import SERIES_FILES, series_to_frame

# =====================================================
# Page config
# =====================================================
st.set_page_config(page_title="Gym Analytics & Reports", layout="wide")
st.title("📊 Analytics & Reports")

configure_logging(None)

try:
    settings = get_settings()
except RuntimeError as exc:
    st.error(str(exc))
    st.stop()


@st.cache_resource
def _client():
    return get_client(settings.mongo_uri, tls=settings.mongo_tls)


try:
    client = _client()
    # fail fast: ensure the client can reach the server
    client.admin.command("ping")
    db = get_db(client, settings.mongo_db)
except Exception as exc:  # pragma: no cover - runtime failure handling
    st.error(f"Unable to connect to MongoDB: {exc}")
    st.stop()

# =====================================================
# Controls
# =====================================================
RANGE_LABELS = {
    "7d": "Last 7 days",
    "30d": "Last 30 days",
    "90d": "Last 90 days",
    "custom": "Custom",
    "all": "All time",
}

with st.sidebar:
    gym_id = st.text_input("Gym", value=settings.gym_id or "")
    time_range = st.selectbox(
        "Time range",
        list(RANGE_LABELS),
        index=1,
        format_func=RANGE_LABELS.get,
    )
    custom_from = custom_to = None
    if time_range == "custom":
        custom_from = st.date_input("From", value=None)
        custom_to = st.date_input("To", value=None)
    st.button("Refresh")

if not gym_id:
    st.info("Select a gym to see its reports.")
    st.stop()

try:
    window = resolve_window(time_range, custom_from, custom_to, tz=settings.report_tz)
except ValueError as exc:
    st.error(str(exc))
    st.stop()

# =====================================================
# Load (both record sets) → aggregate
# =====================================================
with st.spinner("Loading analytics..."):
    try:
        snapshot = load_snapshot(db, gym_id, window)
    except DataSourceError as exc:
        st.error(f"Error: {exc}")
        st.stop()
    result = compute_analytics(
        snapshot.signups,
        snapshot.memberships,
        top_n=settings.top_n,
        tz=settings.report_tz,
    )

if result.data_quality.has_issues:
    dq = result.data_quality
    st.warning(
        f"Some rows were left out of the monthly charts: "
        f"{dq.signups_bad_created_at} signups without a valid date, "
        f"{dq.memberships_excluded_from_revenue} memberships left out of revenue "
        f"({dq.memberships_bad_created_at} without a valid date, "
        f"{dq.memberships_bad_price} with a non-numeric price)."
    )


def download(points, attr: str) -> None:
    """Render a CSV download button for one series.

    Args:
        points: Series points.
        attr: `AnalyticsResult` attribute name (selects file name and columns).
    """
    file_name, model = SERIES_FILES[attr]
    csv = series_to_frame(points, model).to_csv(index=False)
    st.download_button("Export CSV", csv, file_name=file_name, mime="text/csv", key=attr)


def pie(df: pd.DataFrame, title: str) -> alt.Chart:
    return (
        alt.Chart(df)
        .mark_arc()
        .encode(
            theta=alt.Theta("value:Q"),
            color=alt.Color("name:N", title=title, sort=None),
            tooltip=["name:N", "value:Q"],
        )
        .properties(height=300)
    )


growth = result.growth
revenue = result.revenue
if window is not None:
    growth = fill_growth_gaps(growth, window.start, window.end, tz=settings.report_tz)
    revenue = fill_revenue_gaps(revenue, window.start, window.end, tz=settings.report_tz)

col1, col2 = st.columns(2)

# =====================================================
# SECTION 1 — USER GROWTH
# =====================================================
with col1:
    st.subheader("User Growth")
    df_growth = series_to_frame(growth, SERIES_FILES["growth"][1])
    if df_growth.empty:
        st.info("No signups in this range.")
    else:
        st.altair_chart(
            alt.Chart(df_growth)
            .mark_line(point=True)
            .encode(
                x=alt.X("month_label:N", sort=None, title="Month"),
                y=alt.Y("count:Q", title="Signups"),
                tooltip=["month_label:N", "count:Q"],
            )
            .properties(height=300),
            width="stretch",
        )
    download(result.growth, "growth")

# =====================================================
# SECTION 2 — PACKAGE DISTRIBUTION
# =====================================================
with col2:
    st.subheader("Package Distribution")
    df_pkg = series_to_frame(result.package_distribution, SERIES_FILES["package_distribution"][1])
    if df_pkg.empty:
        st.info("No memberships in this range.")
    else:
        st.altair_chart(pie(df_pkg, "Package"), width="stretch")
    download(result.package_distribution, "package_distribution")

col3, col4 = st.columns(2)

# =====================================================
# SECTION 3 — REVENUE
# =====================================================
with col3:
    st.subheader("Revenue")
    df_rev = series_to_frame(revenue, SERIES_FILES["revenue"][1])
    if df_rev.empty:
        st.info("No revenue in this range.")
    else:
        st.altair_chart(
            alt.Chart(df_rev)
            .mark_line(point=True)
            .encode(
                x=alt.X("month_label:N", sort=None, title="Month"),
                y=alt.Y("revenue:Q", title="Revenue"),
                tooltip=["month_label:N", "revenue:Q"],
            )
            .properties(height=300),
            width="stretch",
        )
    download(result.revenue, "revenue")

# =====================================================
# SECTION 4 — MEMBER STATUS
# =====================================================
with col4:
    st.subheader("Member Status")
    df_status = series_to_frame(result.status_distribution, SERIES_FILES["status_distribution"][1])
    if df_status.empty:
        st.info("No memberships in this range.")
    else:
        st.altair_chart(pie(df_status, "Status"), width="stretch")
    download(result.status_distribution, "status_distribution")

st.divider()

# =====================================================
# SECTION 5 — TOP PACKAGES (+ drill-down)
# =====================================================
st.header("🏆 Top Packages")

df_top = series_to_frame(result.top_packages, SERIES_FILES["top_packages"][1])
if df_top.empty:
    st.info("Top package data not available.")
else:
    st.altair_chart(
        alt.Chart(df_top)
        .mark_bar()
        .encode(
            x=alt.X("name:N", sort=None, title=None),
            y=alt.Y("value:Q", title="Members"),
            tooltip=["name:N", "value:Q"],
        )
        .properties(height=320),
        width="stretch",
    )
    drill = st.selectbox("Show members of", ["—"] + df_top["name"].tolist())
    if drill != "—":
        try:
            members = fetch_package_members(db, gym_id, drill)
        except DataSourceError as exc:
            st.error(f"Error: {exc}")
        else:
            df_members = pd.DataFrame(members)
            st.dataframe(df_members, width="stretch")
            st.download_button(
                "Export members CSV",
                df_members.to_csv(index=False),
                file_name=f"package-{drill}-users.csv",
                mime="text/csv",
                key="drill_members",
            )
download(result.top_packages, "top_packages")

st.divider()

# =====================================================
# SECTION 6 — REVENUE BREAKDOWN
# =====================================================
st.header("💰 Revenue Breakdown")

st.caption("All memberships of the gym; not limited to the selected time range.")

try:
    revenue_rows = fetch_revenue_rows(db, gym_id)
except DataSourceError as exc:
    st.error(f"Error: {exc}")
    revenue_rows = []

package_names = [p.name for p in package_distribution(normalize_memberships(revenue_rows))]
revenue_package = st.selectbox("Revenue package", ["All packages"] + package_names)
selected_package = None if revenue_package == "All packages" else revenue_package
breakdown = compute_revenue_breakdown(revenue_rows, package=selected_package)
st.altair_chart(
    alt.Chart(series_to_frame(breakdown))
    .mark_bar()
    .encode(
        x=alt.X("name:N", sort=None, title=None),
        y=alt.Y("value:Q", title="Amount"),
        tooltip=["name:N", "value:Q"],
    )
    .properties(height=280),
    width="stretch",
)

with st.expander("Revenue transactions"):
    df_tx = revenue_transactions(revenue_rows, package=selected_package)
    st.dataframe(df_tx, width="stretch")
    st.download_button(
        "Export transactions CSV",
        df_tx.to_csv(index=False),
        file_name="revenue-transactions.csv",
        mime="text/csv",
        key="drill_revenue",
    )

st.divider()

# =====================================================
# SECTION 7 — STAFF
# =====================================================
st.header("🧑‍🏫 Staff")

try:
    staff = compute_staff_breakdown(fetch_staff(db, gym_id), fetch_roles(db))
except DataSourceError as exc:
    st.error(f"Error: {exc}")
else:
    c1, c2 = st.columns(2)
    c1.metric("Total Staff", staff.total)
    c2.metric("Active Staff", staff.active)
    if staff.roles:
        st.dataframe(series_to_frame(staff.roles), width="stretch")

st.caption("Gym Analytics • MongoDB • Streamlit")
