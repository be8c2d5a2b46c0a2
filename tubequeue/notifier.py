import logging

import click
import requests

logger = logging.getLogger("tubequeue.notifier")

# Outcomes
QUEUED = "queued"
ALREADY_QUEUED = "already_queued"
INVALID = "invalid"
SUCCESS = "success"
START = "start"

MESSAGES = {
    START: "Send me a YouTube link or 11-char video ID to start a download.",
    QUEUED: "📥 Queued YouTube ID: {job_id}. I'll let you know once the download has started.",
    ALREADY_QUEUED: "ℹ️ YouTube ID {job_id} is already queued.",
    INVALID: "⚠️ Please send a valid YouTube video link or 11-char ID.",
    SUCCESS: "✅ Download started for YouTube ID: {job_id}",
}

TELEGRAM_API = "https://api.telegram.org"


def render(outcome: str, job_id=None) -> str:
    return MESSAGES[outcome].format(job_id=job_id)


class Notifier:
    """Fire-and-forget: notify() never raises."""

    def notify(self, origin, outcome: str, job_id=None):
        try:
            self.send(origin, render(outcome, job_id))
        except Exception:
            logger.exception("Could not notify %s about %s (%s)", origin, job_id, outcome)

    def send(self, origin, text: str):
        raise NotImplementedError


class EchoNotifier(Notifier):
    """Prints notifications; used when jobs come from the CLI."""

    def send(self, origin, text: str):
        prefix = f"[{origin}] " if origin is not None else ""
        click.echo(f"{prefix}{text}")


class TelegramNotifier(Notifier):
    def __init__(self, token: str, timeout: float = 10, session=None):
        self.url = f"{TELEGRAM_API}/bot{token}/sendMessage"
        self.timeout = timeout
        self.session = session or requests.Session()

    def send(self, origin, text: str):
        if origin is None:
            logger.info("No chat to notify: %s", text)
            return
        res = self.session.post(self.url, json={"chat_id": origin, "text": text}, timeout=self.timeout)
        res.raise_for_status()
