import logging
import time
from datetime import datetime, timezone

LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"


def setup_logging(level: str = "INFO"):
    logging.basicConfig(level=getattr(logging, level.upper(), logging.INFO), format=LOG_FORMAT)


def backoff_delay(attempts: int, base: float = 5, growth: float = 3, cap: float = 300) -> float:
    """
    Seconds to wait before the next attempt of a job that has already been
    tried `attempts` times: 0, 5, 15, 45, 135, 300, 300, ... with the defaults.
    """
    if attempts <= 0:
        return 0
    # Stop growing once past the cap so large attempt counts never overflow.
    delay = base
    for _ in range(attempts - 1):
        delay *= growth
        if delay >= cap:
            return cap
    return min(cap, delay)


def truncate(text: str, limit: int = 400) -> str:
    return text if len(text) <= limit else text[:limit]


def now_iso() -> str:
    """UTC timestamp like '2025-11-06T09:12:34.123456Z'."""
    return datetime.now(timezone.utc).isoformat().replace("+00:00", "Z")


def epoch_now() -> float:
    return time.time()


def iso_from_epoch(ts: float) -> str:
    if not ts:
        return "now"
    return datetime.fromtimestamp(ts, timezone.utc).isoformat(timespec="seconds").replace("+00:00", "Z")
