from typing import Dict, Iterable, List

import pandas as pd

from .config import HIGH_PRIORITY_SENTINEL
from .dates import format_display_date
from .models import SiteRecord
from .status import UPCOMING_STATUSES, Status

STATUS_COLORS = {
    Status.OVERDUE: "#EF4444",
    Status.TODAY: "#EACC00",
    Status.TOMORROW: "#22C55E",
    Status.INCOMING: "#22C55E",
    Status.COMING: "#22C55E",
}

RECORD_COLUMNS = [
    "id",
    "site_name",
    "location",
    "latitude",
    "longitude",
    "next_fueling_date",
    "status",
    "priority",
    "date_defaulted",
]

EXPORT_HEADERS = [
    "Site Name",
    "Location",
    "Status",
    "Priority",
    "Next Fueling",
    "Latitude",
    "Longitude",
]


def records_to_frame(records: Iterable[SiteRecord]) -> pd.DataFrame:
    rows = [
        {
            "id": record.id,
            "site_name": record.site_name,
            "location": record.location,
            "latitude": record.latitude,
            "longitude": record.longitude,
            "next_fueling_date": record.next_fueling_date,
            "status": record.status.value,
            "priority": record.priority,
            "date_defaulted": record.date_defaulted,
        }
        for record in records
    ]
    return pd.DataFrame(rows, columns=RECORD_COLUMNS)


def build_export_frame(records: Iterable[SiteRecord]) -> pd.DataFrame:
    rows = [
        [
            record.site_name,
            record.location,
            record.status.label,
            record.priority,
            format_display_date(record.next_fueling_date),
            record.latitude,
            record.longitude,
        ]
        for record in records
    ]
    return pd.DataFrame(rows, columns=EXPORT_HEADERS)


def export_csv_bytes(records: Iterable[SiteRecord]) -> bytes:
    return build_export_frame(records).to_csv(index=False).encode("utf-8")


def summarize(
    records: Iterable[SiteRecord], priority_sentinel: str = HIGH_PRIORITY_SENTINEL
) -> Dict[str, int]:
    """KPI counters for the dashboard header."""

    records = list(records)
    counts = {status.value: 0 for status in Status}
    for record in records:
        counts[record.status.value] += 1

    counts["upcoming"] = sum(1 for record in records if record.status in UPCOMING_STATUSES)
    counts["total"] = len(records)
    counts["high_priority"] = sum(1 for record in records if record.is_high_priority(priority_sentinel))
    counts["without_location"] = sum(1 for record in records if not record.has_location)
    return counts


def filter_sites(records: Iterable[SiteRecord], term: str) -> List[SiteRecord]:
    needle = (term or "").strip().lower()
    if not needle:
        return list(records)

    return [
        record
        for record in records
        if needle in record.site_name.lower() or needle in record.location.lower()
    ]


def map_frame(records: Iterable[SiteRecord]) -> pd.DataFrame:
    located = [record for record in records if record.has_location]
    frame = pd.DataFrame(
        {
            "site_name": [record.site_name for record in located],
            "lat": [record.latitude for record in located],
            "lon": [record.longitude for record in located],
            "status": [record.status.value for record in located],
            "color": [STATUS_COLORS[record.status] for record in located],
        },
        columns=["site_name", "lat", "lon", "status", "color"],
    )
    return frame
