# tests/test_scheduler.py
import threading
import time

import pytest

from dashboard_sync.db_sync.scheduler import SyncScheduler


def wait_for(predicate, timeout=2.0):
    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        if predicate():
            return True
        time.sleep(0.01)
    return predicate()


@pytest.fixture
def scheduler_factory():
    created = []

    def _create(job, interval=0.02, overlap_policy='allow'):
        scheduler = SyncScheduler(job, interval, overlap_policy=overlap_policy)
        created.append(scheduler)
        return scheduler

    yield _create
    for scheduler in created:
        scheduler.stop()


def test_fires_repeatedly(scheduler_factory):
    calls = []
    scheduler = scheduler_factory(lambda: calls.append(time.monotonic()))

    scheduler.start()

    assert wait_for(lambda: len(calls) >= 3)
    assert scheduler.is_running


def test_failing_tick_does_not_stop_timer(scheduler_factory):
    calls = []

    def job():
        calls.append(1)
        raise RuntimeError("Connection is closed")

    scheduler = scheduler_factory(job)
    scheduler.start()

    assert wait_for(lambda: len(calls) >= 3)


def test_skip_policy_drops_firings_while_busy(scheduler_factory):
    release = threading.Event()
    calls = []

    def slow_job():
        calls.append(1)
        release.wait(2.0)

    scheduler = scheduler_factory(slow_job, overlap_policy='skip')
    scheduler.start()

    assert wait_for(lambda: scheduler.ticks_skipped >= 2)
    assert len(calls) == 1
    release.set()


def test_allow_policy_overlaps_slow_ticks(scheduler_factory):
    release = threading.Event()
    calls = []

    def slow_job():
        calls.append(1)
        release.wait(2.0)

    scheduler = scheduler_factory(slow_job, overlap_policy='allow')
    scheduler.start()

    assert wait_for(lambda: len(calls) >= 2)
    assert scheduler.ticks_skipped == 0
    release.set()


def test_stop_halts_firing(scheduler_factory):
    calls = []
    scheduler = scheduler_factory(lambda: calls.append(1))
    scheduler.start()
    assert wait_for(lambda: len(calls) >= 1)

    scheduler.stop()
    count = len(calls)
    time.sleep(0.1)

    assert not scheduler.is_running
    assert len(calls) <= count + 1


def test_rejects_bad_settings():
    with pytest.raises(ValueError):
        SyncScheduler(lambda: None, 0)
    with pytest.raises(ValueError):
        SyncScheduler(lambda: None, 1, overlap_policy='queue')
