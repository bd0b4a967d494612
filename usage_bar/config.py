"""User preferences persisted to a JSON file."""

import json
import logging
import os
from dataclasses import asdict, dataclass, fields

log = logging.getLogger(__name__)

CONFIG_FILE = os.path.expanduser("~/.usage_bar_config.json")

REFRESH_INTERVALS = {
    60:  "1 min",
    120: "2 min",
    300: "5 min",
    600: "10 min",
    900: "15 min",
}
DEFAULT_REFRESH = 300

NOTIFY_THRESHOLDS = (70, 80, 90, 95)
DEFAULT_THRESHOLD = 80

CLAUDE_SOURCES = ("desktop", "chrome")


@dataclass
class Settings:
    refresh_interval_secs: int = DEFAULT_REFRESH
    notify_threshold: int = DEFAULT_THRESHOLD   # 0 = off
    notifications_enabled: bool = True
    claude_source: str = "desktop"
    cookie_str: str | None = None               # manual override, skips the cookie DB

    def __post_init__(self):
        if (not isinstance(self.refresh_interval_secs, int)
                or self.refresh_interval_secs not in REFRESH_INTERVALS):
            log.warning("unsupported refresh interval %r, using %d",
                        self.refresh_interval_secs, DEFAULT_REFRESH)
            self.refresh_interval_secs = DEFAULT_REFRESH
        if self.notify_threshold != 0 and self.notify_threshold not in NOTIFY_THRESHOLDS:
            log.warning("unsupported notify threshold %r, using %d",
                        self.notify_threshold, DEFAULT_THRESHOLD)
            self.notify_threshold = DEFAULT_THRESHOLD
        if self.claude_source not in CLAUDE_SOURCES:
            log.warning("unsupported claude source %r, using desktop", self.claude_source)
            self.claude_source = "desktop"
        if not isinstance(self.notifications_enabled, bool):
            log.warning("notifications_enabled %r is not a bool, using true",
                        self.notifications_enabled)
            self.notifications_enabled = True
        if self.cookie_str is not None and not isinstance(self.cookie_str, str):
            log.warning("ignoring non-string cookie_str of type %s",
                        type(self.cookie_str).__name__)
            self.cookie_str = None


def _from_raw(raw: dict) -> Settings:
    known = {f.name for f in fields(Settings)}
    return Settings(**{k: v for k, v in raw.items() if k in known})


def load_settings(path: str = CONFIG_FILE) -> Settings:
    if os.path.exists(path):
        try:
            with open(path) as f:
                raw = json.load(f)
            if not isinstance(raw, dict):
                raise ValueError("top level is not an object")
            return _from_raw(raw)
        except (ValueError, TypeError, OSError) as e:
            corrupt = path + ".bak"
            log.warning("Config file corrupt (%s), resetting. Backup at %s", e, corrupt)
            try:
                os.replace(path, corrupt)
            except OSError as e2:
                log.warning("Could not back up config: %s", e2)
    return Settings()


def save_settings(settings: Settings, path: str = CONFIG_FILE):
    tmp = path + ".tmp"
    with open(tmp, "w") as f:
        json.dump(asdict(settings), f, indent=2)
    os.replace(tmp, path)


def apply_threshold_choice(settings: Settings, pct: int):
    """'Notify At' menu semantics: 0 turns notifications off."""
    if pct == 0:
        settings.notifications_enabled = False
    else:
        settings.notifications_enabled = True
        settings.notify_threshold = pct
