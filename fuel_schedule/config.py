import json
from dataclasses import dataclass
from datetime import timedelta
from enum import Enum
from typing import Mapping, Optional

from .exceptions import MissingSecretError

REPORTING_OFFSET = timedelta(hours=3)

DEFAULT_REFRESH_INTERVAL_SECONDS = 120
DEFAULT_FETCH_TIMEOUT_SECONDS = 20
MIN_FETCH_TIMEOUT_SECONDS = 15
MAX_FETCH_TIMEOUT_SECONDS = 30

DEFAULT_WORKSHEET_NAME = "Fueling Schedule"
HIGH_PRIORITY_SENTINEL = "VVVIP"

GOOGLE_SCOPES = [
    "https://www.googleapis.com/auth/spreadsheets.readonly",
    "https://www.googleapis.com/auth/drive.readonly",
]


class DateOrder(str, Enum):
    MONTH_FIRST = "month_first"
    DAY_FIRST = "day_first"


@dataclass(frozen=True)
class ColumnLayout:
    """Positional column indices of the published fueling sheet."""

    name: int = 0
    latitude: int = 5
    longitude: int = 6
    priority: int = 12
    next_fueling_date: int = 13
    date_order: DateOrder = DateOrder.MONTH_FIRST

    @property
    def width(self) -> int:
        return max(self.name, self.latitude, self.longitude, self.priority, self.next_fueling_date) + 1


DEFAULT_LAYOUT = ColumnLayout()


@dataclass(frozen=True)
class DashboardSettings:
    sheet_csv_url: str
    service_account_json: Optional[str] = None
    sheet_url: Optional[str] = None
    worksheet_name: str = DEFAULT_WORKSHEET_NAME
    refresh_interval_seconds: int = DEFAULT_REFRESH_INTERVAL_SECONDS
    fetch_timeout_seconds: int = DEFAULT_FETCH_TIMEOUT_SECONDS
    layout: ColumnLayout = DEFAULT_LAYOUT
    priority_sentinel: str = HIGH_PRIORITY_SENTINEL

    @property
    def has_service_account(self) -> bool:
        return bool(self.service_account_json and self.sheet_url)


def _serialize_service_account(service_account_info) -> str:
    """Return a stable JSON string for caching client resources."""

    if isinstance(service_account_info, str):
        return json.dumps(json.loads(service_account_info), sort_keys=True)

    try:
        service_account_dict = dict(service_account_info)
    except TypeError:
        service_account_dict = service_account_info

    return json.dumps(service_account_dict, sort_keys=True)


def clamp_timeout(seconds) -> int:
    return max(MIN_FETCH_TIMEOUT_SECONDS, min(MAX_FETCH_TIMEOUT_SECONDS, int(seconds)))


def parse_date_order(value) -> DateOrder:
    if isinstance(value, DateOrder):
        return value

    normalized = str(value).strip().lower().replace("-", "_")
    try:
        return DateOrder(normalized)
    except ValueError:
        valid = [order.value for order in DateOrder]
        raise ValueError(f"Unknown date_order '{value}'. Expected one of {valid}") from None


def load_settings(secrets: Mapping) -> DashboardSettings:
    """
    Build dashboard settings from a secrets mapping.

    In the app this is ``st.secrets``; tests pass a plain dict. Only
    ``sheet_csv_url`` is required, the service account pair enables the
    gspread fallback source.
    """

    secrets_keys = list(secrets.keys())
    sheet_csv_url = secrets.get("sheet_csv_url")
    if not sheet_csv_url:
        raise MissingSecretError(
            f"Missing 'sheet_csv_url' secret. Visible keys: {secrets_keys}"
        )

    service_account_info = secrets.get("gcp_service_account")
    service_account_json = None
    if service_account_info:
        service_account_json = _serialize_service_account(service_account_info)

    layout = ColumnLayout(
        priority=int(secrets.get("priority_column", DEFAULT_LAYOUT.priority)),
        next_fueling_date=int(secrets.get("date_column", DEFAULT_LAYOUT.next_fueling_date)),
        date_order=parse_date_order(secrets.get("date_order", DEFAULT_LAYOUT.date_order)),
    )

    return DashboardSettings(
        sheet_csv_url=str(sheet_csv_url),
        service_account_json=service_account_json,
        sheet_url=secrets.get("sheet_url"),
        worksheet_name=secrets.get("worksheet_name", DEFAULT_WORKSHEET_NAME),
        refresh_interval_seconds=int(
            secrets.get("refresh_interval_seconds", DEFAULT_REFRESH_INTERVAL_SECONDS)
        ),
        fetch_timeout_seconds=clamp_timeout(
            secrets.get("fetch_timeout_seconds", DEFAULT_FETCH_TIMEOUT_SECONDS)
        ),
        layout=layout,
        priority_sentinel=secrets.get("priority_sentinel", HIGH_PRIORITY_SENTINEL),
    )
