"""
Telegram front end: every text message is an enqueue request from its chat.
The drain scheduler runs beside the poller and reports back when a download
has been started.
"""
import logging
import threading
from typing import Optional

import requests

from .extract import extract_video_id
from .notifier import ALREADY_QUEUED, INVALID, QUEUED, START, TELEGRAM_API, TelegramNotifier
from .repository import enqueue_job
from .store import JobStore

logger = logging.getLogger("tubequeue.bot")


def _who(message: dict) -> str:
    sender = message.get("from") or {}
    if sender.get("username"):
        return f"@{sender['username']} ({sender.get('id')})"
    return f"{sender.get('first_name') or 'User'} ({sender.get('id', 'id?')})"


def handle_message(store: JobStore, notifier: TelegramNotifier, message: dict) -> Optional[str]:
    """Handle one incoming message. Returns the notifier outcome, or None if ignored."""
    chat_id = (message.get("chat") or {}).get("id")
    text = (message.get("text") or "").strip()
    if not text or chat_id is None:
        return None

    logger.info("Message received from %s in chat %s: %r", _who(message), chat_id, text)

    if text == "/start":
        notifier.notify(chat_id, START)
        return None

    video_id = extract_video_id(text)
    if not video_id:
        logger.warning("Could not parse a YouTube ID from message.")
        notifier.notify(chat_id, INVALID)
        return INVALID

    outcome = QUEUED if enqueue_job(store, job_id=video_id, origin=chat_id) else ALREADY_QUEUED
    logger.info("YouTube ID %s from chat %s: %s", video_id, chat_id, outcome)
    notifier.notify(chat_id, outcome, video_id)
    return outcome


class TelegramPoller:
    def __init__(self, token: str, store: JobStore, notifier: TelegramNotifier,
                 poll_timeout: int = 30, session: Optional[requests.Session] = None):
        self.url = f"{TELEGRAM_API}/bot{token}/getUpdates"
        self.store = store
        self.notifier = notifier
        self.poll_timeout = poll_timeout
        self.session = session or requests.Session()
        self.offset: Optional[int] = None

    def poll_once(self) -> int:
        """Fetch one batch of updates and handle them. Returns how many were received."""
        params = {"timeout": self.poll_timeout, "allowed_updates": '["message"]'}
        if self.offset is not None:
            params["offset"] = self.offset
        res = self.session.get(self.url, params=params, timeout=self.poll_timeout + 10)
        res.raise_for_status()
        updates = res.json().get("result", [])
        for update in updates:
            self.offset = update["update_id"] + 1
            message = update.get("message")
            if message:
                handle_message(self.store, self.notifier, message)
        return len(updates)

    def run_forever(self, stop: threading.Event, error_pause: float = 5):
        logger.info("Starting bot with polling…")
        while not stop.is_set():
            try:
                self.poll_once()
            except requests.RequestException as e:
                logger.error("Polling error: %s", e)
                stop.wait(error_pause)
        logger.info("Polling stopped. Bye!")
