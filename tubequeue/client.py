import logging
import time
from dataclasses import dataclass
from typing import Optional

import requests

from .config import Settings

logger = logging.getLogger("tubequeue.client")

# Outcomes
SUCCESS = "success"
DUPLICATE = "duplicate"
RETRY = "retry"

DUPLICATE_STATUS = 409


@dataclass
class DeliveryResult:
    outcome: str
    status_code: Optional[int] = None
    detail: str = ""
    elapsed_ms: int = 0

    @property
    def ok(self) -> bool:
        return self.outcome in (SUCCESS, DUPLICATE)


def classify(status_code: int) -> str:
    if 200 <= status_code < 300:
        return SUCCESS
    if status_code == DUPLICATE_STATUS:
        return DUPLICATE
    return RETRY


class DownstreamClient:
    """Delivers video ids to the archive API and probes whether it is reachable."""

    def __init__(self, api_url: str, token: Optional[str] = None, health_url: Optional[str] = None,
                 timeout: float = 15, session: Optional[requests.Session] = None):
        self.api_url = api_url
        self.health_url = health_url
        self.timeout = timeout
        self.session = session or requests.Session()
        self.headers = {"Content-Type": "application/json", "Accept": "application/json"}
        if token:
            self.headers["Authorization"] = f"Token {token}"

    @classmethod
    def from_settings(cls, settings: Settings) -> "DownstreamClient":
        return cls(
            settings.api_url,
            token=settings.api_token,
            health_url=settings.health_url,
            timeout=settings.timeout_seconds,
        )

    def deliver(self, video_id: str) -> DeliveryResult:
        payload = {"data": [{"youtube_id": video_id, "status": "pending"}]}
        started = time.monotonic()
        try:
            res = self.session.post(self.api_url, json=payload, headers=self.headers, timeout=self.timeout)
        except requests.RequestException as e:
            ms = int((time.monotonic() - started) * 1000)
            logger.warning("Delivery of %s failed after %dms: %s", video_id, ms, e)
            return DeliveryResult(RETRY, detail=f"{type(e).__name__}: {e}", elapsed_ms=ms)

        ms = int((time.monotonic() - started) * 1000)
        outcome = classify(res.status_code)
        if outcome == RETRY:
            logger.warning("Delivery of %s returned HTTP %s in %dms", video_id, res.status_code, ms)
            return DeliveryResult(RETRY, res.status_code, f"HTTP {res.status_code}: {res.text}", ms)
        logger.info("Delivery of %s succeeded (HTTP %s%s) in %dms", video_id, res.status_code,
                    ", already present" if outcome == DUPLICATE else "", ms)
        return DeliveryResult(outcome, res.status_code, elapsed_ms=ms)

    def is_alive(self) -> bool:
        """Any HTTP response counts as up, even 4xx; connection errors and timeouts count as down."""
        if not self.health_url:
            return True
        try:
            res = self.session.get(self.health_url, headers=self.headers, timeout=self.timeout)
        except requests.RequestException as e:
            logger.warning("Liveness probe %s failed: %s", self.health_url, e)
            return False
        logger.debug("Liveness probe %s -> HTTP %s", self.health_url, res.status_code)
        return True
