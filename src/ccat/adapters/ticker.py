import threading
from collections.abc import Callable

from src.config import ExamConfig
from src.ccat.domain.ports import ITicker
from src.shared.telemetry import Telemetry


class ThreadingTicker(ITicker):
    """
    Calls `callback` every `interval` seconds on a daemon thread.

    `stop` only signals; it never joins, because the callback may be waiting
    on a lock held by the thread calling `stop`. A late callback from a
    stopped schedule is possible and must be tolerated by the receiver.
    """

    def __init__(self, interval: float = ExamConfig.TICK_SECONDS) -> None:
        self.interval = interval
        self.telemetry = Telemetry("ThreadingTicker")
        self._stop_event: threading.Event | None = None
        self._thread: threading.Thread | None = None

    @property
    def is_running(self) -> bool:
        return self._stop_event is not None and not self._stop_event.is_set()

    def start(self, callback: Callable[[], None]) -> None:
        self.stop()
        stop_event = threading.Event()
        self._stop_event = stop_event
        self._thread = threading.Thread(
            target=self._run, args=(callback, stop_event), daemon=True, name="exam-ticker"
        )
        self._thread.start()

    def stop(self) -> None:
        if self._stop_event is not None:
            self._stop_event.set()
            self._stop_event = None

    def _run(self, callback: Callable[[], None], stop_event: threading.Event) -> None:
        # wait() returns True once the event is set
        while not stop_event.wait(self.interval):
            try:
                callback()
            except Exception as e:
                self.telemetry.log_error("Tick callback failed", e)
