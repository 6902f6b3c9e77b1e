import logging
import threading
import time
from dataclasses import replace
from datetime import datetime, timezone
from typing import Callable, Optional

from apscheduler.schedulers.background import BackgroundScheduler

from .config import DEFAULT_LAYOUT, DEFAULT_REFRESH_INTERVAL_SECONDS, ColumnLayout
from .exceptions import SheetFetchError
from .models import Snapshot, reclassify
from .parser import parse_sites
from .sources import SheetSource

logger = logging.getLogger(__name__)

REFRESH_JOB_ID = "fuel-schedule-refresh"


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


class SnapshotRefresher:
    """
    Keeps the latest classified snapshot of the fueling sheet.

    Readers call ``current_snapshot()`` and always get a complete Snapshot;
    refreshes build the replacement off to the side and swap the reference.
    Refreshes are serialized, so a manual refresh issued while the timer is
    fetching runs after it and its result is the one that sticks.
    """

    def __init__(
        self,
        source: SheetSource,
        layout: ColumnLayout = DEFAULT_LAYOUT,
        refresh_interval_seconds: float = DEFAULT_REFRESH_INTERVAL_SECONDS,
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        self.source = source
        self.layout = layout
        self.refresh_interval_seconds = refresh_interval_seconds
        self._clock = clock
        self._snapshot = Snapshot()
        self._refresh_lock = threading.Lock()
        self._scheduler: Optional[BackgroundScheduler] = None

    def current_snapshot(self) -> Snapshot:
        return self._snapshot

    def refresh_now(self) -> Snapshot:
        with self._refresh_lock:
            previous = self._snapshot
            started = time.monotonic()

            try:
                csv_text = self.source.fetch_csv()
            except SheetFetchError as error:
                logger.warning("Refresh failed, keeping previous snapshot: %s", error)
                self._snapshot = Snapshot(
                    records=previous.records,
                    last_updated=previous.last_updated,
                    last_error=str(error),
                )
                return self._snapshot

            evaluated_at = self._clock()
            records = parse_sites(csv_text, evaluated_at, self.layout)
            self._snapshot = Snapshot(records=tuple(records), last_updated=evaluated_at)

            logger.info(
                "Loaded %s sites from %s in %.2fs",
                len(records),
                self.source.name,
                time.monotonic() - started,
            )
            return self._snapshot

    def current_view(self, evaluated_at: Optional[datetime] = None) -> Snapshot:
        """
        Current snapshot with statuses recomputed for ``evaluated_at``.

        A snapshot retained across failed refreshes would otherwise keep the
        buckets of the day it was fetched.
        """

        snapshot = self._snapshot
        evaluated_at = evaluated_at or self._clock()
        return replace(snapshot, records=tuple(reclassify(snapshot.records, evaluated_at)))

    @property
    def is_running(self) -> bool:
        return self._scheduler is not None and self._scheduler.running

    def start(self) -> None:
        if self.is_running:
            return

        scheduler = BackgroundScheduler(timezone=timezone.utc)
        scheduler.add_job(
            self.refresh_now,
            "interval",
            seconds=self.refresh_interval_seconds,
            id=REFRESH_JOB_ID,
            max_instances=1,
            coalesce=True,
        )
        scheduler.start()
        self._scheduler = scheduler
        logger.info("Scheduled sheet refresh every %ss", self.refresh_interval_seconds)

    def stop(self) -> None:
        if self._scheduler is not None:
            self._scheduler.shutdown(wait=True)
            self._scheduler = None
