"""Tests for the failsafe watchdog.

The real ``os._exit`` is replaced by a recorder; an event signals when the
watchdog would have ended the process.
"""

import datetime as dt
import threading
import time

from iptvrec.recorder.context import RecorderContext
from iptvrec.recorder.watchdog import EXIT_WATCHDOG, FailsafeWatchdog

from fakes import TZ, FakeClock, at


class ExitRecorder:
    def __init__(self):
        self.codes = []
        self.called = threading.Event()

    def __call__(self, code):
        self.codes.append(code)
        self.called.set()


def test_deadline_same_day_when_in_future():
    clock = FakeClock(at(20, 0))
    watchdog = FailsafeWatchdog(dt.time(21, 0), TZ, poll_interval=0.01, now=clock, exit_func=ExitRecorder())
    watchdog.start()
    watchdog.stop()
    watchdog.join(1)

    assert watchdog.deadline == at(21, 0)


def test_deadline_rolls_to_next_day_when_past():
    clock = FakeClock(at(22, 0))
    watchdog = FailsafeWatchdog(dt.time(21, 0), TZ, poll_interval=0.01, now=clock, exit_func=ExitRecorder())
    watchdog.start()
    watchdog.stop()
    watchdog.join(1)

    assert watchdog.deadline == at(21, 0) + dt.timedelta(days=1)


def test_does_not_fire_before_deadline():
    clock = FakeClock(at(20, 59, 58))
    exits = ExitRecorder()
    watchdog = FailsafeWatchdog(dt.time(21, 0), TZ, poll_interval=0.01, now=clock, exit_func=exits)
    watchdog.start()

    assert not exits.called.wait(0.2)
    assert watchdog.fired is False
    watchdog.stop()
    watchdog.join(1)


def test_fires_once_deadline_passes_and_runs_cleanup():
    clock = FakeClock(at(20, 59, 58))
    exits = ExitRecorder()
    cleaned = []
    watchdog = FailsafeWatchdog(dt.time(21, 0), TZ, poll_interval=0.01, now=clock,
                                on_expire=lambda: cleaned.append(True), exit_func=exits)
    watchdog.start()
    clock.advance(2)

    assert exits.called.wait(1)
    assert exits.codes == [EXIT_WATCHDOG]
    assert cleaned == [True]
    assert watchdog.fired is True


def test_stopped_watchdog_never_fires():
    clock = FakeClock(at(20, 59, 59))
    exits = ExitRecorder()
    watchdog = FailsafeWatchdog(dt.time(21, 0), TZ, poll_interval=0.01, now=clock, exit_func=exits)
    watchdog.start()
    watchdog.stop()
    watchdog.join(1)
    clock.advance(5)

    assert not exits.called.wait(0.1)


def test_forces_exit_with_hung_worker():
    clock = FakeClock(at(20, 59, 59))
    exits = ExitRecorder()
    hang = threading.Event()
    poll = 0.05
    with RecorderContext() as context:
        context.submit(lambda: hang.wait(10), name="hung-worker")
        watchdog = FailsafeWatchdog(dt.time(21, 0), TZ, poll_interval=poll, now=clock,
                                    on_expire=context.run_cleanups, exit_func=exits)
        context.add_cleanup(hang.set)
        context.start_watchdog(watchdog)

        clock.advance(1)
        fired_at = time.monotonic()
        assert exits.called.wait(1)
        assert time.monotonic() - fired_at <= poll + 0.5
        assert hang.is_set()
