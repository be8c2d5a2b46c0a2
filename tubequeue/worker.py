import logging
import signal
import threading
import time
from typing import Callable, Optional

from .client import DownstreamClient
from .config import RetryPolicy, Settings
from .models import DONE, FAILED
from .notifier import Notifier, SUCCESS
from .repository import complete, due_jobs, find_pending, schedule_retry
from .store import JobStore, StoreError
from .utils import epoch_now, iso_from_epoch

logger = logging.getLogger("tubequeue.worker")

_stop = threading.Event()


def setup_signal_handlers(stop: threading.Event = _stop):
    def _handler(signum, frame):
        logger.info("Received signal %s. Stopping timer ticks", signum)
        stop.set()

    for sig in (signal.SIGINT, signal.SIGTERM):
        try:
            signal.signal(sig, _handler)
        except ValueError:
            # signal handlers can only be installed from the main thread
            logger.debug("Not installing handler for %s outside the main thread", sig)


class DrainScheduler:
    def __init__(self, store: JobStore, client: DownstreamClient, notifier: Notifier,
                 policy: Optional[RetryPolicy] = None, health_gate: bool = True,
                 cycle_budget: float = 0, clock: Callable[[], float] = epoch_now):
        self.store = store
        self.client = client
        self.notifier = notifier
        self.policy = policy or RetryPolicy()
        self.health_gate = health_gate
        self.cycle_budget = cycle_budget
        self.clock = clock
        self._running = threading.Lock()

    @classmethod
    def from_settings(cls, settings: Settings, notifier: Notifier) -> "DrainScheduler":
        return cls(
            JobStore(settings.store_path),
            DownstreamClient.from_settings(settings),
            notifier,
            policy=settings.retry,
            health_gate=settings.health_gate,
            cycle_budget=settings.cycle_budget_seconds,
        )

    @property
    def running(self) -> bool:
        return self._running.locked()

    def run_cycle(self) -> Optional[int]:
        """
        One drain pass. Returns the number of delivery attempts made, or None
        when the tick was skipped because a previous cycle is still running.
        """
        if not self._running.acquire(blocking=False):
            logger.debug("Previous drain cycle still running; skipping tick")
            return None
        try:
            return self._drain()
        finally:
            self._running.release()

    def _drain(self) -> int:
        if self.health_gate and not self.client.is_alive():
            logger.warning("Downstream API is down; skipping drain cycle")
            return 0

        started = time.monotonic()
        jobs = due_jobs(self.store, self.clock())
        if jobs:
            logger.info("Draining %d due job(s)", len(jobs))

        attempts = 0
        for i, job in enumerate(jobs):
            if self.cycle_budget and time.monotonic() - started >= self.cycle_budget:
                logger.warning("Cycle budget of %ss used up; %d job(s) left for the next tick",
                               self.cycle_budget, len(jobs) - i)
                break
            if self._attempt(job.id):
                attempts += 1
        return attempts

    def _attempt(self, job_id: str) -> bool:
        if find_pending(self.store, job_id) is None:
            logger.debug("Job %s is no longer pending; skipping", job_id)
            return False
        result = self.client.deliver(job_id)
        if result.ok:
            job = complete(self.store, job_id)
            if job is not None and job.status == DONE:
                logger.info("Job %s done after %d attempt(s)", job_id, job.attempts)
                self.notifier.notify(job.origin, SUCCESS, job_id)
            return True

        job = schedule_retry(self.store, job_id, result.detail, self.policy, now=self.clock())
        if job is None:
            return True
        if job.status == FAILED:
            logger.error("Job %s failed permanently after %d attempt(s): %s",
                         job_id, job.attempts, job.last_error)
        else:
            logger.info("Job %s attempt %d failed, retrying at %s",
                        job_id, job.attempts, iso_from_epoch(job.next_attempt_at))
        return True

    def run_forever(self, interval: float, stop: threading.Event = _stop):
        """Tick every `interval` seconds until `stop` is set. Store errors are logged, never raised."""
        logger.info("Drain scheduler started (every %.1fs)", interval)
        while not stop.is_set():
            try:
                self.run_cycle()
            except StoreError:
                logger.exception("Store error during drain cycle")
            except Exception:
                logger.exception("Unexpected error during drain cycle")
            stop.wait(interval)
        logger.info("Drain scheduler stopped.")


def start_scheduler(settings: Settings, notifier: Notifier) -> threading.Thread:
    """Run the drain loop on a daemon thread; stop it with the module stop event."""
    scheduler = DrainScheduler.from_settings(settings, notifier)
    t = threading.Thread(
        target=scheduler.run_forever,
        args=(settings.poll_interval_seconds,),
        name="drain-scheduler",
        daemon=True,
    )
    t.start()
    return t
