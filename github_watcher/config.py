"""Configuration settings module."""
import os
from dataclasses import dataclass
from typing import Optional

from dotenv import load_dotenv

from .exceptions import InvalidConfig

# Load environment variables from .env file if present
load_dotenv()

# GitHub API access
GITHUB_TOKEN = os.environ.get("GITHUB_TOKEN", "")
GITHUB_API_URL = os.environ.get("GITHUB_API_URL", "https://api.github.com")
GITHUB_USER_AGENT = os.environ.get("GITHUB_USER_AGENT", "GitHubWatcher/1.0")
GITHUB_MAX_PAGES = int(os.environ.get("GITHUB_MAX_PAGES", "10"))
REQUEST_TIMEOUT = int(os.environ.get("REQUEST_TIMEOUT", "10"))

# Watcher behaviour
POLLING_INTERVAL = os.environ.get("POLLING_INTERVAL", "60")
WATCH_STARS = os.environ.get("WATCH_STARS", "false")
DELEGATE_APP_TOKEN = os.environ.get("DELEGATE_APP_TOKEN", "")
WATCHER_INSTANCE_ID = os.environ.get("WATCHER_INSTANCE_ID", "github-watcher")

# Alert priorities (ntfy scale, 1-5)
NOTIFICATION_PRIORITY = int(os.environ.get("NOTIFICATION_PRIORITY", "4"))
STAR_PRIORITY = int(os.environ.get("STAR_PRIORITY", "3"))

# Alert delivery (ntfy.sh)
NTFY_URL = os.environ.get("NTFY_URL", "https://ntfy.sh")
NTFY_TAGS = os.environ.get("NTFY_TAGS", "octopus")
NTFY_USERNAME = os.environ.get("NTFY_USERNAME")
NTFY_PASSWORD = os.environ.get("NTFY_PASSWORD")

# Logging
LOG_DIR = os.environ.get("LOG_DIR", "logs")
DEBUG = os.environ.get("DEBUG", "false").lower() == "true"

DEFAULT_INTERVAL = 60

INSTRUCTIONS = (
    "Enter your GitHub token, polling interval (in seconds), an optional "
    "application token to deliver alerts through, and whether to watch "
    "your repositories for new stars"
)

DISPLAY_TEXT = (
    "Configure your GitHub token and polling interval below to receive "
    "notifications and new star alerts"
)

_TRUE_STRINGS = {"true", "1", "yes", "on"}
_FALSE_STRINGS = {"false", "0", "no", "off", ""}


@dataclass(frozen=True)
class WatcherConfig:
    """Validated settings for one watcher instance."""

    access_token: str
    poll_interval_seconds: int = DEFAULT_INTERVAL
    delegate_app_token: Optional[str] = None
    watch_stars: bool = False

    def __repr__(self):
        # Keep credentials out of logs
        return (
            f"WatcherConfig(access_token='***', "
            f"poll_interval_seconds={self.poll_interval_seconds}, "
            f"delegate_app_token={'***' if self.delegate_app_token else None}, "
            f"watch_stars={self.watch_stars})"
        )


def default_config():
    """Template the host persists and shows on its settings page."""
    return {
        "token": "",
        "interval": DEFAULT_INTERVAL,
        "apptoken": "",
        "watchstars": False,
        "description": INSTRUCTIONS,
    }


def _normalize_interval(value):
    if value is None:
        return DEFAULT_INTERVAL
    # bool is an int subclass; reject it explicitly
    if isinstance(value, bool):
        raise InvalidConfig(f"Polling interval must be a number, got {value!r}")
    if isinstance(value, float):
        if not value.is_integer():
            raise InvalidConfig(f"Polling interval must be whole seconds, got {value!r}")
        value = int(value)
    elif isinstance(value, str):
        stripped = value.strip()
        if not stripped.lstrip("-").isdigit():
            raise InvalidConfig(f"Polling interval must be a number, got {value!r}")
        value = int(stripped)
    elif not isinstance(value, int):
        raise InvalidConfig(f"Polling interval must be a number, got {value!r}")

    if value <= 0:
        raise InvalidConfig(f"Polling interval must be greater than zero, got {value}")
    return value


def _normalize_flag(value):
    if value is None:
        return False
    if isinstance(value, bool):
        return value
    if isinstance(value, str):
        lowered = value.strip().lower()
        if lowered in _TRUE_STRINGS:
            return True
        if lowered in _FALSE_STRINGS:
            return False
    raise InvalidConfig(f"watchstars must be true or false, got {value!r}")


def validate(raw):
    """Turn a loosely-typed settings payload into a WatcherConfig.

    Accepts the host's JSON mapping (keys ``token``, ``interval``, ``apptoken``,
    ``watchstars``) or an existing WatcherConfig, which is re-checked.
    Raises InvalidConfig when the token is missing or the interval is not a
    positive number of seconds.
    """
    if isinstance(raw, WatcherConfig):
        raw = {
            "token": raw.access_token,
            "interval": raw.poll_interval_seconds,
            "apptoken": raw.delegate_app_token,
            "watchstars": raw.watch_stars,
        }
    if not isinstance(raw, dict):
        raise InvalidConfig(f"Configuration must be a mapping, got {type(raw).__name__}")

    token = raw.get("token")
    if not isinstance(token, str) or not token.strip():
        raise InvalidConfig("GitHub token is required")

    app_token = raw.get("apptoken")
    if app_token is not None and not isinstance(app_token, str):
        raise InvalidConfig("Application token must be a string")

    return WatcherConfig(
        access_token=token.strip(),
        poll_interval_seconds=_normalize_interval(raw.get("interval")),
        delegate_app_token=(app_token or "").strip() or None,
        watch_stars=_normalize_flag(raw.get("watchstars")),
    )


def raw_config_from_env():
    """Build the settings payload from environment variables."""
    return {
        "token": GITHUB_TOKEN,
        "interval": POLLING_INTERVAL,
        "apptoken": DELEGATE_APP_TOKEN,
        "watchstars": WATCH_STARS,
    }
