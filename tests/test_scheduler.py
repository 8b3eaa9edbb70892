from __future__ import annotations

import threading

from scheduler import ThreadingScheduler


def test_callback_runs_after_delay() -> None:
    fired = threading.Event()
    ThreadingScheduler().call_later(0.01, fired.set)
    assert fired.wait(2.0)


def test_cancelled_callback_never_runs() -> None:
    fired = threading.Event()
    handle = ThreadingScheduler().call_later(0.2, fired.set)
    handle.cancel()
    assert not fired.wait(0.4)


def test_failing_callback_is_logged(caplog) -> None:  # noqa: ANN001
    done = threading.Event()

    def boom() -> None:
        done.set()
        raise ValueError("boom")

    handle = ThreadingScheduler().call_later(0.0, boom)
    assert done.wait(2.0)
    handle.join(2.0)
    assert any("scheduled callback" in r.getMessage() for r in caplog.records)
