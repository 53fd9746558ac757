import threading

from src.ccat.adapters.ticker import ThreadingTicker


def test_ticker_calls_back_until_stopped():
    fired = threading.Event()
    calls = []

    def callback():
        calls.append(1)
        fired.set()

    ticker = ThreadingTicker(interval=0.01)
    ticker.start(callback)

    assert fired.wait(timeout=2.0)
    ticker.stop()
    assert ticker.is_running is False
    assert calls


def test_restart_replaces_previous_schedule():
    ticker = ThreadingTicker(interval=0.01)
    second_fired = threading.Event()

    ticker.start(lambda: None)
    ticker.start(second_fired.set)

    assert second_fired.wait(timeout=2.0)
    ticker.stop()


def test_failing_callback_keeps_ticking():
    ticker = ThreadingTicker(interval=0.01)
    calls = []
    done = threading.Event()

    def callback():
        calls.append(1)
        if len(calls) >= 2:
            done.set()
        raise RuntimeError("boom")

    ticker.start(callback)

    assert done.wait(timeout=2.0)
    ticker.stop()


def test_stop_without_start_is_harmless():
    ThreadingTicker().stop()
