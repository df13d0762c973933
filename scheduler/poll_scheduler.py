"""Repeating poll, estimate and publish cycle."""
import enum
import logging
import threading
from datetime import datetime, timedelta, timezone
from typing import Callable, Optional

from processor.event_builder import CalendarEventBuilder
from processor.expiry_estimator import compute_extra_info
from processor.models import PublishResult
from registry.namecoin_client import RegistryError

MIN_POLL_INTERVAL = timedelta(seconds=1)
DEFAULT_POLL_INTERVAL = timedelta(minutes=10)


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


class SchedulerState(enum.Enum):
    IDLE = "idle"
    RUNNING = "running"
    STOPPING = "stopping"
    STOPPED = "stopped"


class PollScheduler:
    """
    Worker that polls the name registry and publishes expiry calendars.
    
    A single background thread performs the first cycle immediately after
    start() and then one cycle per interval until stop() is called. Cycles
    never overlap; a slow cycle delays the next one.
    """
    
    def __init__(
        self,
        registry,
        publisher,
        margin: timedelta,
        quantum: timedelta,
        interval: timedelta = DEFAULT_POLL_INTERVAL,
        builder: Optional[CalendarEventBuilder] = None,
        clock: Callable[[], datetime] = utc_now,
        logger: Optional[logging.Logger] = None
    ):
        """
        Initialize the scheduler.
        
        Args:
            registry: Object exposing list_names() -> list of NameRecord
            publisher: Object exposing publish_events(now, events)
            margin: Safety margin subtracted from expiry estimates
            quantum: Rounding granularity for expiry estimates
            interval: Time between poll cycles; values under one second
                fall back to ten minutes
            builder: Calendar event builder (default: CalendarEventBuilder())
            clock: Returns the current timezone-aware time
            logger: Logger to report through (default: module logger)
        """
        self.logger = logger or logging.getLogger(__name__)
        
        if interval < MIN_POLL_INTERVAL:
            self.logger.warning(
                f"Poll interval {interval} too short, using {DEFAULT_POLL_INTERVAL}"
            )
            interval = DEFAULT_POLL_INTERVAL
        
        self.registry = registry
        self.publisher = publisher
        self.margin = margin
        self.quantum = quantum
        self.interval = interval
        self.builder = builder or CalendarEventBuilder()
        self.clock = clock
        
        self.state = SchedulerState.IDLE
        self._state_lock = threading.Lock()
        self._stop_event = threading.Event()
        self._first_poll_done = threading.Event()
        self._thread: Optional[threading.Thread] = None
        
        self.logger.debug("Scheduler instantiated")
    
    def start(self) -> None:
        """
        Start the poll loop in a background thread.
        
        Raises:
            RuntimeError: If the scheduler has already been started
        """
        with self._state_lock:
            if self.state is not SchedulerState.IDLE:
                raise RuntimeError(f"Cannot start scheduler in state {self.state.value}")
            self.state = SchedulerState.RUNNING
        
        self.logger.info(
            "Starting scheduler",
            extra={'interval_seconds': self.interval.total_seconds()}
        )
        self._thread = threading.Thread(
            target=self._poll_loop,
            name="nccald-poll",
            daemon=True
        )
        self._thread.start()
    
    def stop(self) -> None:
        """
        Ask the poll loop to exit after its current cycle.
        
        Raises:
            RuntimeError: If the scheduler is not running, including when
                stop() has already been called
        """
        with self._state_lock:
            if self.state is not SchedulerState.RUNNING:
                raise RuntimeError(f"Cannot stop scheduler in state {self.state.value}")
            self.state = SchedulerState.STOPPING
        
        self.logger.info("Stopping scheduler")
        self._stop_event.set()
    
    def wait_first_poll(self, timeout: Optional[float] = None) -> bool:
        """
        Block until the first poll cycle has completed.
        
        Returns:
            True once the first cycle is done, False on timeout
        """
        return self._first_poll_done.wait(timeout)
    
    def join(self, timeout: Optional[float] = None) -> None:
        if self._thread is not None:
            self._thread.join(timeout)
    
    def is_alive(self) -> bool:
        return self._thread is not None and self._thread.is_alive()
    
    def _poll_loop(self) -> None:
        self.logger.debug("Performing initial poll")
        self._safe_poll()
        self._first_poll_done.set()
        
        while not self._stop_event.wait(self.interval.total_seconds()):
            self.logger.debug("Poll interval expired, polling")
            self._safe_poll()
        
        with self._state_lock:
            self.state = SchedulerState.STOPPED
        self.logger.info("Poll loop stopped")
    
    def _safe_poll(self) -> None:
        try:
            self.poll()
        except Exception as e:
            self.logger.error(
                f"Poll cycle failed: {e}",
                extra={'error_type': type(e).__name__},
                exc_info=True
            )
    
    def poll(self) -> Optional[PublishResult]:
        """
        Run one poll cycle: query, estimate, build and publish.
        
        Query failures skip the rest of the cycle. Publish failures are
        logged and never raised.
        
        Returns:
            PublishResult of the cycle, or None if the query failed
        """
        self.logger.debug("Polling: retrieving names")
        try:
            records = self.registry.list_names()
        except RegistryError as e:
            self.logger.error(
                f"Could not list names: {e}",
                extra={'error_type': type(e).__name__}
            )
            return None
        
        now = self.clock()
        extra_info = compute_extra_info(now, records, self.margin, self.quantum)
        events = self.builder.build_events(now, records, extra_info)
        
        result = self.publisher.publish_events(now, events)
        for error in result.errors:
            self.logger.error(f"Error when publishing calendar: {error}")
        
        self.logger.info(
            "Polling completed",
            extra={
                'names': len(records),
                'events': len(events),
                'errors': len(result.errors)
            }
        )
        return result


def run_once(scheduler: PollScheduler, timeout: Optional[float] = None) -> None:
    """
    Run exactly one poll cycle through the regular poll loop.
    
    Starts the scheduler, waits for its first cycle to complete, then stops
    it and waits for the worker thread to exit.
    
    Args:
        scheduler: Scheduler that has not been started yet
        timeout: Maximum seconds to wait for the first cycle
        
    Raises:
        TimeoutError: If the first cycle did not complete in time
    """
    scheduler.logger.debug("Running one time only")
    scheduler.start()
    
    scheduler.logger.debug("Waiting for first poll to be completed")
    completed = scheduler.wait_first_poll(timeout)
    
    scheduler.stop()
    scheduler.join()
    
    if not completed:
        raise TimeoutError("First poll did not complete in time")
