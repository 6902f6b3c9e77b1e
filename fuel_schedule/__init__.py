"""Fueling schedule ingestion and status classification."""

from .models import SiteRecord, Snapshot
from .parser import parse_sites
from .refresh import SnapshotRefresher
from .status import Status, classify

__all__ = [
    "SiteRecord",
    "Snapshot",
    "SnapshotRefresher",
    "Status",
    "classify",
    "parse_sites",
]
