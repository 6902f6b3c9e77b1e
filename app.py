import logging
from datetime import datetime, timedelta, timezone

import streamlit as st

from fuel_schedule.config import REPORTING_OFFSET, DashboardSettings, load_settings
from fuel_schedule.exceptions import MissingSecretError
from fuel_schedule.export import (
    export_csv_bytes,
    filter_sites,
    map_frame,
    records_to_frame,
    summarize,
)
from fuel_schedule.models import Snapshot
from fuel_schedule.refresh import SnapshotRefresher
from fuel_schedule.sources import build_source
from fuel_schedule.status import Status

logger = logging.getLogger(__name__)
logging.basicConfig(level=logging.INFO)

st.set_page_config(page_title="Fueling Schedule", layout="wide", page_icon="⛽")

REPORTING_TZ = timezone(REPORTING_OFFSET)
STATUS_ICONS = {
    Status.OVERDUE: "🔴",
    Status.TODAY: "🟡",
    Status.TOMORROW: "🟢",
    Status.INCOMING: "🟢",
    Status.COMING: "🟢",
}


@st.cache_resource
def get_refresher(settings: DashboardSettings) -> SnapshotRefresher:
    refresher = SnapshotRefresher(
        build_source(settings),
        layout=settings.layout,
        refresh_interval_seconds=settings.refresh_interval_seconds,
    )
    refresher.refresh_now()
    refresher.start()
    return refresher


def render_status_list(title: str, records, empty_message: str, priority_sentinel: str) -> None:
    st.subheader(title)
    if not records:
        st.caption(empty_message)
        return

    for record in records:
        icon = STATUS_ICONS[record.status]
        flag = " ⭐" if record.is_high_priority(priority_sentinel) else ""
        st.write(
            f"{icon} **{record.site_name}**{flag} | "
            f"{record.status.label} | {record.next_fueling_date:%d/%m/%Y}"
        )


def render_snapshot(snapshot: Snapshot, search_term: str, priority_sentinel: str) -> None:
    if snapshot.is_stale:
        st.warning(f"Showing last good data. Latest refresh failed: {snapshot.last_error}")

    counts = summarize(snapshot.records, priority_sentinel)
    kpi1, kpi2, kpi3, kpi4 = st.columns(4)
    kpi1.metric("Overdue", counts[Status.OVERDUE.value])
    kpi2.metric("Today", counts[Status.TODAY.value])
    kpi3.metric("Coming", counts["upcoming"])
    kpi4.metric("Total Sites", counts["total"])

    sites = filter_sites(snapshot.records, search_term)

    column_left, column_middle, column_right = st.columns(3)
    with column_left:
        render_status_list(
            "Overdue",
            [site for site in sites if site.status == Status.OVERDUE],
            "No overdue sites.",
            priority_sentinel,
        )
    with column_middle:
        render_status_list(
            "Today",
            [site for site in sites if site.status == Status.TODAY],
            "Nothing due today.",
            priority_sentinel,
        )
    with column_right:
        render_status_list(
            "Coming",
            [site for site in sites if site.status not in (Status.OVERDUE, Status.TODAY)],
            "No upcoming fuelings.",
            priority_sentinel,
        )

    st.markdown("---")
    st.subheader("Site Map")
    located = map_frame(sites)
    if located.empty:
        st.info("No sites with coordinates to display.")
    else:
        st.map(located, latitude="lat", longitude="lon", color="color")

    with st.expander("All sites", expanded=False):
        st.dataframe(records_to_frame(sites), use_container_width=True)

    missing = counts["without_location"]
    if missing:
        st.caption(f"{missing} site(s) have no coordinates and are not shown on the map.")

    if snapshot.last_updated is not None:
        local_time = snapshot.last_updated.astimezone(REPORTING_TZ)
        st.caption(f"Last updated: {local_time:%H:%M:%S}")


def main():
    try:
        settings = load_settings(st.secrets)
    except MissingSecretError as error:
        st.error(error)
        st.stop()
    except ValueError as error:
        st.error(f"Invalid dashboard configuration: {error}")
        st.stop()

    refresher = get_refresher(settings)

    st.sidebar.title("⛽ Fueling Schedule")
    st.sidebar.caption("Live fueling status for all sites.")
    now = datetime.now(timezone.utc).astimezone(REPORTING_TZ)
    st.sidebar.write(f"{now:%a, %d %b %Y %H:%M}")

    if st.sidebar.button("🔄 Refresh data", type="secondary"):
        refresher.refresh_now()

    search_term = st.sidebar.text_input("Search sites")

    st.sidebar.download_button(
        "Download schedule",
        data=export_csv_bytes(refresher.current_view().records),
        file_name=f"fueling_schedule_{now:%Y%m%d}.csv",
        mime="text/csv",
    )

    st.title("Fueling Dashboard")

    @st.fragment(run_every=timedelta(seconds=settings.refresh_interval_seconds))
    def live_view():
        render_snapshot(refresher.current_view(), search_term, settings.priority_sentinel)

    live_view()


if __name__ == "__main__":
    main()
