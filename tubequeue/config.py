import os
from dataclasses import dataclass, field
from typing import Dict, Optional
from urllib.parse import urlsplit, urlunsplit

from dotenv import load_dotenv

DEFAULT_CONFIG = {
    "backoff_base": "5",
    "backoff_growth": "3",
    "backoff_cap": "300",
    "timeout_seconds": "15",
    "error_max_chars": "400",
    "max_attempts": "0",           # 0 = retry forever
    "cycle_budget_seconds": "120",
}

ALLOWED_CONFIG_KEYS = set(DEFAULT_CONFIG.keys())

DEFAULT_STORE = "queue.jsonl"


class ConfigError(ValueError):
    pass


def _env_flag(value: Optional[str], default: bool) -> bool:
    if value is None or not value.strip():
        return default
    return value.strip().lower() in ("1", "true", "yes", "on")


def _number(key: str, raw: str, kind=float, minimum: float = 0):
    try:
        value = kind(raw)
    except ValueError:
        raise ConfigError(f"{key} must be a number, got {raw!r}")
    if value < minimum:
        raise ConfigError(f"{key} must be >= {minimum}")
    return value


@dataclass
class RetryPolicy:
    backoff_base: float = 5
    backoff_growth: float = 3
    backoff_cap: float = 300
    error_max_chars: int = 400
    max_attempts: int = 0

    @classmethod
    def from_config(cls, cfg: Dict[str, str]) -> "RetryPolicy":
        return cls(
            backoff_base=_number("backoff_base", cfg["backoff_base"]),
            backoff_growth=_number("backoff_growth", cfg["backoff_growth"], minimum=1),
            backoff_cap=_number("backoff_cap", cfg["backoff_cap"]),
            error_max_chars=_number("error_max_chars", cfg["error_max_chars"], int, 1),
            max_attempts=_number("max_attempts", cfg["max_attempts"], int),
        )


@dataclass
class Settings:
    store_path: str = DEFAULT_STORE
    api_url: Optional[str] = None
    api_token: Optional[str] = None
    poll_interval_ms: Optional[int] = None
    health_path: Optional[str] = None
    health_gate: bool = True
    telegram_token: Optional[str] = None
    timeout_seconds: float = 15
    cycle_budget_seconds: float = 120
    retry: RetryPolicy = field(default_factory=RetryPolicy)
    tunables: Dict[str, str] = field(default_factory=lambda: dict(DEFAULT_CONFIG))

    @property
    def health_url(self) -> Optional[str]:
        if not self.api_url or not self.health_path:
            return None
        parts = urlsplit(self.api_url)
        return urlunsplit((parts.scheme, parts.netloc, "/" + self.health_path.lstrip("/"), "", ""))

    @property
    def poll_interval_seconds(self) -> float:
        return (self.poll_interval_ms or 0) / 1000.0

    def require_downstream(self):
        """Raise ConfigError unless everything the drain scheduler needs is set."""
        missing = [
            name for name, value in (
                ("TUBE_API_URL", self.api_url),
                ("POLL_INTERVAL_MS", self.poll_interval_ms),
                ("HEALTH_PATH", self.health_path),
            ) if not value
        ]
        if missing:
            raise ConfigError(f"Missing env vars: {', '.join(missing)}")

    def require_telegram(self):
        if not self.telegram_token:
            raise ConfigError("Missing env vars: TELEGRAM_TOKEN")

    def as_dict(self) -> Dict[str, object]:
        """Effective configuration with secrets masked."""
        return {
            "store_path": self.store_path,
            "api_url": self.api_url,
            "api_token": "***" if self.api_token else None,
            "poll_interval_ms": self.poll_interval_ms,
            "health_path": self.health_path,
            "health_gate": self.health_gate,
            "telegram_token": "***" if self.telegram_token else None,
            **self.tunables,
        }


def load_settings(env: Optional[Dict[str, str]] = None, dotenv: bool = True) -> Settings:
    """
    Build Settings from the environment (after loading `.env` when `dotenv`).
    Only value errors are raised here; presence checks for the downstream API
    and Telegram happen in the commands that need them.
    """
    if env is None:
        if dotenv:
            load_dotenv()
        env = dict(os.environ)

    def get(key: str) -> Optional[str]:
        value = env.get(key)
        return value.strip() if value and value.strip() else None

    tunables = dict(DEFAULT_CONFIG)
    for key in ALLOWED_CONFIG_KEYS:
        override = get(f"TUBEQUEUE_{key.upper()}")
        if override is not None:
            tunables[key] = override

    poll = get("POLL_INTERVAL_MS")
    poll_ms = _number("POLL_INTERVAL_MS", poll, int, 1) if poll is not None else None

    return Settings(
        store_path=get("TUBEQUEUE_STORE") or DEFAULT_STORE,
        api_url=get("TUBE_API_URL"),
        api_token=get("API_TOKEN"),
        poll_interval_ms=poll_ms,
        health_path=get("HEALTH_PATH"),
        health_gate=_env_flag(env.get("TUBEQUEUE_HEALTH_GATE"), True),
        telegram_token=get("TELEGRAM_TOKEN"),
        timeout_seconds=_number("timeout_seconds", tunables["timeout_seconds"], minimum=0.1),
        cycle_budget_seconds=_number("cycle_budget_seconds", tunables["cycle_budget_seconds"]),
        retry=RetryPolicy.from_config(tunables),
        tunables=tunables,
    )
