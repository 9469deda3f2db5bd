import logging
import threading
from typing import Callable, Optional

from redis.exceptions import RedisError

from .errors import JobManagerTerminatedError, NoContextError
from .store import Store

logger = logging.getLogger(__name__)


class ReadinessMonitor:
    """
    Tracks whether the backing store is reachable.

    Responsibilities:
    - Probe the store on a fixed interval
    - Block callers until the store is reachable
    - Close the store and signal `done` once on shutdown
    """

    def __init__(
        self,
        store: Store,
        interval: float = 1.0,
        log: Optional[logging.Logger] = None,
    ):
        self.store = store
        self.interval = interval
        self.log = log or logger

        self._ready = False
        self._stopped = False
        self._cond = threading.Condition()
        self._stop_lock = threading.Lock()

        # Called by stop() after readiness is revoked, before the store closes
        self.before_close: Optional[Callable[[], None]] = None

        self._shutdown: Optional[threading.Event] = None
        self._done: Optional[Callable[[], None]] = None

    def start(
        self, shutdown: threading.Event, done: Optional[Callable[[], None]] = None
    ) -> None:
        """
        Launch the probe loop and a watcher that stops the monitor once
        `shutdown` is set.

        Raises:
            NoContextError: If no shutdown event is given.
        """
        if shutdown is None:
            raise NoContextError()

        self._shutdown = shutdown
        self._done = done

        threading.Thread(
            target=self._watch_shutdown, name="job-manager-shutdown", daemon=True
        ).start()
        threading.Thread(
            target=self._run, name="job-manager-readiness", daemon=True
        ).start()

    def stop(self) -> None:
        """
        Release waiters, run `before_close`, close the store and call
        `done`. Safe to call more than once, from the shutdown watcher and
        from callers alike.
        """
        with self._stop_lock:
            if self._stopped:
                return
            self._stopped = True

        self.log.info("stopping job-manager")

        if self._shutdown is not None:
            self._shutdown.set()

        with self._cond:
            self._ready = False
            self._cond.notify_all()

        try:
            if self.before_close is not None:
                self.before_close()
            self.store.close()
        finally:
            if self._done is not None:
                self._done()

    @property
    def stopped(self) -> bool:
        return self._stopped

    def is_ready(self) -> bool:
        return self._ready

    def wait_until_ready(self) -> None:
        """
        Block until the store is reachable.

        Raises:
            JobManagerTerminatedError: If the monitor is stopped while waiting.
        """
        with self._cond:
            while not self._ready:
                if self._stopped:
                    raise JobManagerTerminatedError()
                self._cond.wait()

    def set_ready(self, ready: bool) -> None:
        with self._cond:
            if self._stopped:
                return
            if ready != self._ready:
                self.log.info(
                    "job-manager store is reachable"
                    if ready
                    else "job-manager store became unreachable"
                )
            self._ready = ready
            self._cond.notify_all()

    def _watch_shutdown(self) -> None:
        self._shutdown.wait()
        self.stop()

    def _run(self) -> None:
        while not self._shutdown.is_set():
            try:
                self.store.ping()
            except (RedisError, OSError) as e:
                self.set_ready(False)
                self.log.warning(f"job-manager failed to ping store: {e}")
            else:
                self.set_ready(True)
                self.log.debug("job-manager successfully pinged store")

            if self._shutdown.wait(self.interval):
                break
