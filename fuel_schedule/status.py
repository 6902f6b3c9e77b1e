from datetime import date, datetime
from enum import Enum

from .dates import days_until

INCOMING_MAX_DAYS = 4


class Status(str, Enum):
    OVERDUE = "overdue"
    TODAY = "today"
    TOMORROW = "tomorrow"
    INCOMING = "incoming"
    COMING = "coming"

    @property
    def label(self) -> str:
        return STATUS_LABELS[self]


STATUS_LABELS = {
    Status.OVERDUE: "DUE",
    Status.TODAY: "TODAY",
    Status.TOMORROW: "TOMORROW",
    Status.INCOMING: "INCOMING",
    Status.COMING: "COMING",
}

UPCOMING_STATUSES = {Status.TOMORROW, Status.INCOMING, Status.COMING}


def classify(days_offset: int) -> Status:
    if days_offset < 0:
        return Status.OVERDUE
    if days_offset == 0:
        return Status.TODAY
    if days_offset == 1:
        return Status.TOMORROW
    if days_offset <= INCOMING_MAX_DAYS:
        return Status.INCOMING
    return Status.COMING


def status_for(target: date, evaluated_at: datetime) -> Status:
    return classify(days_until(target, evaluated_at))
