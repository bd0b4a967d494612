"""Threshold-crossing notifications.

A metric notifies once when it reaches the threshold and stays quiet until it
has dropped back below it, so a refresh every minute at 85% does not spam the
user.
"""

import logging
import sys
import threading
from dataclasses import dataclass
from typing import Callable

from usage_bar.models import UsageData

log = logging.getLogger(__name__)

APP_NAME = "Usage Bar"

NotificationSink = Callable[[str, str], None]


@dataclass(frozen=True)
class Notification:
    key: str
    title: str
    body: str


class NotificationState:
    """metric key → already notified for the current crossing."""

    def __init__(self):
        self.lock = threading.Lock()
        self.notified: dict[str, bool] = {}

    def is_notified(self, key: str) -> bool:
        with self.lock:
            return self.notified.get(key, False)


def rumps_sink(title: str, body: str):
    """rumps.notification wrapper. Logs instead off macOS."""
    if sys.platform != "darwin":
        log.info("notification: %s: %s", title, body)
        return
    import rumps
    rumps.notification(APP_NAME, title, body)


def _metrics(provider: str, data: UsageData) -> list[tuple[str, str, float, str]]:
    return [
        (f"{provider}_session", f"{provider} session",
         data.session.percent_used, data.session.reset_info),
        (f"{provider}_weekly", f"{provider} weekly",
         data.weekly_all.percent_used, data.weekly_all.reset_info),
        (f"{provider}_sonnet", data.weekly_sonnet.label,
         data.weekly_sonnet.percent_used, data.weekly_sonnet.reset_info),
        (f"{provider}_extra", f"{provider} extra usage",
         data.extra.percent_used, data.extra.reset_date),
    ]


class ThresholdNotifier:
    def __init__(self, sink: NotificationSink = rumps_sink,
                 state: NotificationState | None = None):
        self.sink = sink
        self.state = state or NotificationState()

    def _send(self, n: Notification):
        try:
            self.sink(n.title, n.body)
        except Exception as e:
            log.debug("notification suppressed: %s", e)

    def check(self, provider: str, data: UsageData, threshold: float,
              enabled: bool) -> list[Notification]:
        """Evaluate every metric of one successful fetch.

        Returns the notifications that fired.
        """
        if not enabled or threshold <= 0:
            return []

        fired: list[Notification] = []
        with self.state.lock:
            notified = self.state.notified
            for key, label, pct, reset in _metrics(provider, data):
                was = notified.get(key, False)
                if pct >= threshold and not was:
                    fired.append(Notification(key, f"{label} at {pct:.0f}%", reset))
                    notified[key] = True
                elif pct < threshold and was:
                    notified[key] = False

        for n in fired:
            log.info("threshold crossed: %s", n.title)
            self._send(n)
        return fired
