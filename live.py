# Periodic capture -> embed -> predict loop run on a background worker.
import logging
import threading
import time
from typing import Callable, Optional

logger = logging.getLogger(__name__)

PERIOD_SECONDS = 0.3


class LivePredictor:
    """
    Runs `cycle()` every `period` seconds on a daemon thread.

    Each cycle's return value is handed to `on_result`. The loop is
    single-flight: a cycle that overruns the period makes the worker skip
    the firings it missed instead of queueing them. Exceptions raised by a
    cycle are logged and passed unchanged to `on_error`; the loop keeps
    running.

    Args:
        cycle: Callable doing one unit of work; its result goes to on_result.
        on_result: Receives each cycle's result.
        period: Seconds between cycle starts.
        on_error: Optional, receives exceptions raised by cycle.
    """

    def __init__(self, cycle: Callable[[], object], on_result: Callable[[object], None],
                 period: float = PERIOD_SECONDS, on_error: Optional[Callable[[Exception], None]] = None):
        if period <= 0:
            raise ValueError(f'Prediction period must be positive, got {period}')
        self._cycle = cycle
        self._on_result = on_result
        self._on_error = on_error
        self.period = period
        self._stop_event: Optional[threading.Event] = None
        self._thread: Optional[threading.Thread] = None
        self.cycles = 0
        self.skipped = 0

    @property
    def running(self) -> bool:
        return self.busy and not self._stop_event.is_set()

    @property
    def busy(self) -> bool:
        """True while a worker thread exists, including one finishing after stop()."""
        return self._thread is not None and self._thread.is_alive()

    def start(self) -> bool:
        """
        Idle -> Running. Returns False (and does nothing) if already running,
        or if the worker of the previous run has not finished its last cycle.
        """
        if self.running:
            logger.warning('Live prediction is already running.')
            return False
        if self.busy:
            logger.warning('Previous live prediction cycle is still finishing.')
            return False
        # one event per run so a late worker can never be woken by a restart
        self._stop_event = threading.Event()
        self.cycles = 0
        self.skipped = 0
        self._thread = threading.Thread(target=self._loop, args=(self._stop_event,),
                                        name='live-predictor', daemon=True)
        self._thread.start()
        return True

    def stop(self, timeout: float = 5.0) -> None:
        """Running -> Idle. The in-flight cycle finishes; no new one starts."""
        if self._stop_event is not None:
            self._stop_event.set()
        thread = self._thread
        if thread is not None and thread is not threading.current_thread():
            thread.join(timeout=timeout)
            if thread.is_alive():
                logger.warning('Live prediction cycle still running after %.2fs', timeout)
            logger.info('Live prediction stopped after %d cycles (%d skipped).', self.cycles, self.skipped)

    def _loop(self, stop_event):
        logger.info('Live prediction started (period=%.3fs)', self.period)
        next_fire = time.monotonic()
        while not stop_event.is_set():
            self._run_cycle()
            next_fire += self.period
            now = time.monotonic()
            if now > next_fire:
                missed = int((now - next_fire) // self.period) + 1
                self.skipped += missed
                next_fire += missed * self.period
                logger.debug('Cycle overran, skipping %d firing(s)', missed)
            stop_event.wait(timeout=next_fire - now)

    def _run_cycle(self):
        try:
            result = self._cycle()
            self.cycles += 1
            # delivered even if stop() landed mid-cycle
            self._on_result(result)
        except Exception as e:
            logger.exception('Live prediction cycle failed')
            if self._on_error is not None:
                self._on_error(e)
