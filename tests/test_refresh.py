"""Tests for the snapshot refresher."""

from __future__ import annotations

import threading
import time
from datetime import datetime, timedelta, timezone

from fuel_schedule.exceptions import SheetFetchError
from fuel_schedule.refresh import REFRESH_JOB_ID, SnapshotRefresher
from fuel_schedule.status import Status

HEADER = "Name,_,_,_,_,Lat,Lon,_,_,_,_,_,Priority,NextFuel"


def sheet(*rows: str) -> str:
    return "\n".join((HEADER,) + rows)


class ScriptedSource:
    name = "scripted"

    def __init__(self, responses) -> None:
        self.responses = list(responses)
        self.calls = 0

    def fetch_csv(self) -> str:
        self.calls += 1
        response = self.responses.pop(0)
        if isinstance(response, Exception):
            raise response
        return response


class FixedClock:
    def __init__(self, instant: datetime) -> None:
        self.instant = instant

    def __call__(self) -> datetime:
        return self.instant


def test_initial_snapshot_is_empty() -> None:
    refresher = SnapshotRefresher(ScriptedSource([]))
    snapshot = refresher.current_snapshot()
    assert snapshot.records == ()
    assert snapshot.last_updated is None
    assert not snapshot.is_stale


def test_refresh_now_swaps_in_parsed_snapshot(evaluated_at) -> None:
    source = ScriptedSource([sheet("Site A,,,,,24.5,46.7,,,,,,,01/15/2025")])
    refresher = SnapshotRefresher(source, clock=FixedClock(evaluated_at))

    snapshot = refresher.refresh_now()

    assert refresher.current_snapshot() is snapshot
    assert [site.site_name for site in snapshot.records] == ["Site A"]
    assert snapshot.records[0].status == Status.TODAY
    assert snapshot.last_updated == evaluated_at


def test_failed_refresh_keeps_previous_snapshot(evaluated_at) -> None:
    source = ScriptedSource(
        [sheet("Site A,,,,,1,2,,,,,,,01/15/2025"), SheetFetchError("HTTP 503")]
    )
    refresher = SnapshotRefresher(source, clock=FixedClock(evaluated_at))

    first = refresher.refresh_now()
    second = refresher.refresh_now()

    assert second.records is first.records
    assert second.last_updated == first.last_updated
    assert second.is_stale
    assert "HTTP 503" in second.last_error


def test_successful_refresh_clears_stale_flag(evaluated_at) -> None:
    source = ScriptedSource([SheetFetchError("timed out"), sheet("Site B")])
    refresher = SnapshotRefresher(source, clock=FixedClock(evaluated_at))

    assert refresher.refresh_now().is_stale
    recovered = refresher.refresh_now()

    assert not recovered.is_stale
    assert [site.site_name for site in recovered.records] == ["Site B"]


def test_each_refresh_uses_its_own_evaluation_instant(evaluated_at) -> None:
    clock = FixedClock(evaluated_at)
    row = "Site A,,,,,,,,,,,,,01/16/2025"
    refresher = SnapshotRefresher(ScriptedSource([sheet(row), sheet(row)]), clock=clock)

    assert refresher.refresh_now().records[0].status == Status.TOMORROW
    clock.instant = evaluated_at + timedelta(days=1)
    assert refresher.refresh_now().records[0].status == Status.TODAY


def test_empty_sheet_yields_empty_snapshot(evaluated_at) -> None:
    refresher = SnapshotRefresher(ScriptedSource([""]), clock=FixedClock(evaluated_at))
    snapshot = refresher.refresh_now()
    assert snapshot.records == ()
    assert snapshot.last_updated == evaluated_at


class BlockingSource:
    name = "blocking"

    def __init__(self) -> None:
        self.entered = threading.Event()
        self.release = threading.Event()
        self.calls = 0
        self.active = 0
        self.max_active = 0
        self._lock = threading.Lock()

    def fetch_csv(self) -> str:
        with self._lock:
            self.calls += 1
            call = self.calls
            self.active += 1
            self.max_active = max(self.max_active, self.active)
        try:
            if call == 1:
                self.entered.set()
                self.release.wait(5)
            return sheet(f"Fetch {call}")
        finally:
            with self._lock:
                self.active -= 1


def test_refreshes_never_overlap_and_later_request_wins() -> None:
    source = BlockingSource()
    refresher = SnapshotRefresher(source, clock=lambda: datetime(2025, 1, 15, tzinfo=timezone.utc))

    timer_refresh = threading.Thread(target=refresher.refresh_now)
    timer_refresh.start()
    assert source.entered.wait(5)

    manual_refresh = threading.Thread(target=refresher.refresh_now)
    manual_refresh.start()
    time.sleep(0.05)
    assert source.calls == 1

    source.release.set()
    timer_refresh.join(5)
    manual_refresh.join(5)

    assert source.calls == 2
    assert source.max_active == 1
    assert refresher.current_snapshot().records[0].site_name == "Fetch 2"


def test_scheduler_refreshes_until_stopped() -> None:
    source = ScriptedSource([sheet("Site A")] * 200)
    refresher = SnapshotRefresher(source, refresh_interval_seconds=0.05)

    refresher.start()
    refresher.start()
    try:
        job = refresher._scheduler.get_job(REFRESH_JOB_ID)
        assert job.max_instances == 1
        assert job.coalesce is True

        deadline = time.monotonic() + 5
        while source.calls < 2 and time.monotonic() < deadline:
            time.sleep(0.01)
    finally:
        refresher.stop()

    assert source.calls >= 2
    assert not refresher.is_running
    calls_after_stop = source.calls
    time.sleep(0.15)
    assert source.calls == calls_after_stop


def test_current_view_reclassifies_stale_snapshot_after_day_change(evaluated_at) -> None:
    clock = FixedClock(evaluated_at)
    source = ScriptedSource(
        [sheet("Site A,,,,,,,,,,,,,01/16/2025"), SheetFetchError("HTTP 503")]
    )
    refresher = SnapshotRefresher(source, clock=clock)

    assert refresher.refresh_now().records[0].status == Status.TOMORROW

    clock.instant = evaluated_at + timedelta(days=2)
    stale = refresher.refresh_now()
    view = refresher.current_view()

    assert stale.records[0].status == Status.TOMORROW
    assert view.records[0].status == Status.OVERDUE
    assert view.is_stale
    assert view.last_updated == evaluated_at


def test_current_view_accepts_explicit_instant(evaluated_at) -> None:
    refresher = SnapshotRefresher(
        ScriptedSource([sheet("Site A,,,,,,,,,,,,,01/16/2025")]), clock=FixedClock(evaluated_at)
    )
    refresher.refresh_now()

    view = refresher.current_view(evaluated_at + timedelta(days=1))
    assert view.records[0].status == Status.TODAY
