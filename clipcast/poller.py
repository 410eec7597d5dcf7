"""Source poller — watches sources for new items and hands them off.

The loop is a chain of one-shot timers: each tick scans every source, and
the next timer is only armed once that scan has finished, so ticks never
overlap. All loop state lives in a :class:`PollerContext` owned by the
:class:`Poller`.

Failure handling:

* quota exceeded: logged (at most once per five minutes) and the loop halts
  for good; further calls would only burn more quota.
* source not found: logged and skipped; the tick still counts as a success.
* anything else: the failing source is skipped, the scan carries on with
  the remaining sources and the tick counts as one consecutive failure
  however many sources failed. From the configured
  threshold on, each failure doubles the interval up to the maximum. The
  next successful tick restores the base interval.
"""

import logging
import threading
import time
from dataclasses import dataclass
from enum import Enum
from typing import Callable

from clipcast.config import YouTubeConfig
from clipcast.errors import QuotaExceededError, ScanError, SourceNotFoundError
from clipcast.watch_state import WatchState

logger = logging.getLogger(__name__)

QUOTA_LOG_WINDOW = 300.0


class PollerStatus(str, Enum):
    IDLE = "idle"
    SCHEDULED = "scheduled"
    CHECKING = "checking"
    BACKOFF = "backoff"
    FATAL = "fatal"
    STOPPED = "stopped"


@dataclass
class PollerContext:
    base_interval: float
    max_interval: float
    interval: float
    failure_threshold: int = 3
    min_call_spacing: float = 1.0
    consecutive_failures: int = 0
    last_call: float | None = None
    last_quota_log: float | None = None
    running: bool = False
    status: PollerStatus = PollerStatus.IDLE
    timer: threading.Timer | None = None


class Poller:
    """Periodically checks sources and calls *on_new_item* for new items.

    *source* must provide ``latest_item(source_id) -> str | None`` and raise
    :class:`~clipcast.errors.SourceError` subclasses on failure.
    """

    def __init__(
        self,
        source,
        source_ids: list[str],
        state: WatchState,
        on_new_item: Callable[[str, str], None],
        *,
        interval: float,
        max_interval: float,
        failure_threshold: int = 3,
        min_call_spacing: float = 1.0,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], None] = time.sleep,
    ):
        self.source = source
        self.source_ids = list(source_ids)
        self.state = state
        self.on_new_item = on_new_item
        self.context = PollerContext(
            base_interval=interval,
            max_interval=max(max_interval, interval),
            interval=interval,
            failure_threshold=failure_threshold,
            min_call_spacing=min_call_spacing,
        )
        self._clock = clock
        self._sleep = sleep
        self._lock = threading.Lock()
        self._stopped = threading.Event()

    @classmethod
    def from_config(
        cls,
        config: YouTubeConfig,
        source,
        state: WatchState,
        on_new_item: Callable[[str, str], None],
    ) -> "Poller":
        return cls(
            source,
            config.channels,
            state,
            on_new_item,
            interval=config.monitoring_interval_minutes * 60,
            max_interval=config.max_interval_minutes * 60,
            failure_threshold=config.failure_threshold,
            min_call_spacing=config.min_api_interval,
        )

    @property
    def running(self) -> bool:
        return self.context.running

    def start(self, initial_delay: float = 1.0) -> Callable[[], None]:
        """Begin polling; returns a handle that stops the loop."""
        ctx = self.context
        with self._lock:
            if ctx.running:
                logger.warning("Monitoring already running, skipping start request")
                return lambda: None
            ctx.running = True
            ctx.status = PollerStatus.IDLE
            self._stopped.clear()
            logger.info(
                "Starting monitoring of %d sources every %.1f minutes",
                len(self.source_ids), ctx.interval / 60,
            )
            self._schedule(initial_delay)
        return self.stop

    def stop(self) -> None:
        """Stop scheduling ticks; a tick already running is left to finish."""
        ctx = self.context
        with self._lock:
            was_running = ctx.running
            ctx.running = False
            if ctx.timer is not None:
                ctx.timer.cancel()
                ctx.timer = None
            if ctx.status is not PollerStatus.FATAL:
                ctx.status = PollerStatus.STOPPED
        if was_running:
            logger.info("Monitoring stopped")
        self._stopped.set()

    def wait(self, timeout: float | None = None) -> bool:
        """Block until the loop is stopped or halts; False on timeout."""
        return self._stopped.wait(timeout)

    def tick(self) -> list[tuple[str, str]]:
        """Scan every source once and process any new items.

        A failing source is logged and skipped so the remaining sources are
        still checked; the failures are raised together as a
        :class:`ScanError` once the scan is done. Quota errors end the scan
        immediately.

        Returns the ``(source_id, item_id)`` pairs that were processed.
        """
        processed: list[tuple[str, str]] = []
        failures: list[tuple[str, Exception]] = []
        for source_id in self.source_ids:
            try:
                item = self._check(source_id)
            except QuotaExceededError:
                raise
            except SourceNotFoundError as exc:
                logger.error("Source %s not found, skipping: %s", source_id, exc)
                continue
            except Exception as exc:
                logger.error("Error checking %s: %s", source_id, exc)
                failures.append((source_id, exc))
                continue
            if item is not None:
                processed.append((source_id, item))

        if failures:
            raise ScanError(failures) from failures[0][1]
        return processed

    def _check(self, source_id: str) -> str | None:
        """Process *source_id*'s latest item if it is new; return its id."""
        self._throttle()
        latest = self.source.latest_item(source_id)
        if latest is None:
            logger.debug("No items found for %s", source_id)
            return None
        if latest == self.state.get(source_id):
            logger.debug("No new items for %s", source_id)
            return None

        logger.info("New item detected on %s: %s", source_id, latest)
        self.on_new_item(source_id, latest)
        self.state.commit(source_id, latest)
        return latest

    def run_tick(self) -> None:
        """One scheduled tick: scan, classify the outcome, arm the next timer."""
        ctx = self.context
        if not ctx.running:
            return
        ctx.status = PollerStatus.CHECKING
        try:
            self.tick()
        except QuotaExceededError as exc:
            self._halt_on_quota(exc)
            return
        except Exception as exc:
            self._record_failure(exc)
        else:
            self._record_success()

        with self._lock:
            if ctx.running:
                self._schedule(ctx.interval)
            else:
                ctx.status = PollerStatus.STOPPED

    def _throttle(self) -> None:
        ctx = self.context
        if ctx.last_call is not None:
            wait = ctx.min_call_spacing - (self._clock() - ctx.last_call)
            if wait > 0:
                logger.debug("Rate limiting: waiting %.2fs before API call", wait)
                self._sleep(wait)
        ctx.last_call = self._clock()

    def _schedule(self, delay: float) -> None:
        ctx = self.context
        timer = threading.Timer(delay, self.run_tick)
        timer.name = "clipcast-poller"
        ctx.timer = timer
        if ctx.status is not PollerStatus.BACKOFF:
            ctx.status = PollerStatus.SCHEDULED
        timer.start()

    def _record_success(self) -> None:
        ctx = self.context
        if ctx.consecutive_failures or ctx.interval != ctx.base_interval:
            logger.info(
                "Source check recovered; interval back to %.1f minutes",
                ctx.base_interval / 60,
            )
        ctx.consecutive_failures = 0
        ctx.interval = ctx.base_interval
        ctx.status = PollerStatus.IDLE

    def _record_failure(self, exc: Exception) -> None:
        ctx = self.context
        ctx.consecutive_failures += 1
        logger.error("Error in monitoring: %s", exc)
        if ctx.consecutive_failures >= ctx.failure_threshold:
            ctx.interval = min(ctx.interval * 2, ctx.max_interval)
            ctx.status = PollerStatus.BACKOFF
            logger.warning(
                "Multiple consecutive errors (%d). Check interval is now %.1f minutes",
                ctx.consecutive_failures, ctx.interval / 60,
            )
        else:
            ctx.status = PollerStatus.IDLE

    def _halt_on_quota(self, exc: QuotaExceededError) -> None:
        ctx = self.context
        now = self._clock()
        if ctx.last_quota_log is None or now - ctx.last_quota_log >= QUOTA_LOG_WINDOW:
            logger.error("Quota exceeded - stopping monitoring to prevent further API calls: %s", exc)
            ctx.last_quota_log = now
        with self._lock:
            ctx.running = False
            ctx.status = PollerStatus.FATAL
            if ctx.timer is not None:
                ctx.timer.cancel()
                ctx.timer = None
        self._stopped.set()
