from dataclasses import dataclass, replace
from datetime import date, datetime
from typing import Iterable, List, Optional, Tuple

from .config import HIGH_PRIORITY_SENTINEL
from .status import Status, status_for


@dataclass(frozen=True)
class SiteRecord:
    id: str
    site_name: str
    location: str
    latitude: float
    longitude: float
    next_fueling_date: date
    status: Status
    priority: str = ""
    date_defaulted: bool = False

    @property
    def has_location(self) -> bool:
        return not (self.latitude == 0.0 and self.longitude == 0.0)

    def is_high_priority(self, sentinel: str = HIGH_PRIORITY_SENTINEL) -> bool:
        return bool(self.priority) and self.priority.strip().casefold() == sentinel.casefold()


@dataclass(frozen=True)
class Snapshot:
    records: Tuple[SiteRecord, ...] = ()
    last_updated: Optional[datetime] = None
    last_error: Optional[str] = None

    @property
    def is_stale(self) -> bool:
        return self.last_error is not None


def reclassify(records: Iterable[SiteRecord], evaluated_at: datetime) -> List[SiteRecord]:
    """Return copies of ``records`` with status recomputed for ``evaluated_at``."""

    return [
        replace(record, status=status_for(record.next_fueling_date, evaluated_at))
        for record in records
    ]
