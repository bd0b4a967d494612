"""Provider-neutral usage model and the formatting rules every client shares."""

import math
from dataclasses import asdict, dataclass
from datetime import datetime, timezone

NO_DATA = "No data"
NO_RESET = "---"
RESETS_SOON = "Resets soon"
LIMIT_REACHED_PREFIX = "LIMIT REACHED - "


# ── data models ───────────────────────────────────────────────────────────────

@dataclass(frozen=True)
class UsageMetric:
    label: str
    percent_used: float   # as reported upstream, may exceed 100
    reset_info: str       # e.g. "Resets in 1h 23m", never empty

    @property
    def display_percent(self) -> float:
        """percent_used clamped to 0–100 for bars and tray text."""
        return max(0.0, min(100.0, self.percent_used))

    @classmethod
    def missing(cls, label: str) -> "UsageMetric":
        return cls(label, 0.0, NO_DATA)


@dataclass(frozen=True)
class ExtraUsage:
    dollars_spent: float = 0.0
    percent_used: float = 0.0
    reset_date: str = NO_RESET
    enabled: bool = False


@dataclass(frozen=True)
class UsageData:
    session: UsageMetric
    weekly_all: UsageMetric
    weekly_sonnet: UsageMetric    # model-specific window
    extra: ExtraUsage
    fetched_at: str

    def to_dict(self) -> dict:
        return asdict(self)


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def now_iso() -> str:
    return utc_now().isoformat()


# ── time helpers ──────────────────────────────────────────────────────────────

def format_reset_seconds(secs: float) -> str:
    """0 → 'Resets soon', 5400 → 'Resets in 1h 30m', 300 → 'Resets in 5m'."""
    secs = int(secs)
    if secs <= 0:
        return RESETS_SOON
    h, rem = divmod(secs, 3600)
    m = rem // 60
    if h > 0:
        return f"Resets in {h}h {m}m"
    return f"Resets in {m}m"


def _parse_timestamp(val: str) -> datetime:
    s = val.strip()
    if s.endswith("Z"):
        s = s[:-1] + "+00:00"
    dt = datetime.fromisoformat(s)
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt


def format_reset_at(val, now: datetime | None = None) -> str:
    """Format an ISO-8601 reset timestamp relative to *now*.

    Unparsable values are passed through as-is.
    """
    if val is None or val == "":
        return NO_RESET
    if not isinstance(val, str):
        return str(val)
    try:
        dt = _parse_timestamp(val)
    except ValueError:
        return val
    now = now or utc_now()
    remaining = int((dt - now).total_seconds()) // 60 * 60
    return format_reset_seconds(remaining)


def window_label(secs: float, fallback: str) -> str:
    """18000 → '5-hour window', 604800 → '7-day window'."""
    hours = int(secs) // 3600
    if hours <= 0:
        return fallback
    if hours >= 24 and hours % 24 == 0:
        return f"{hours // 24}-day window"
    return f"{hours}-hour window"


def mark_limit_reached(metric: UsageMetric) -> UsageMetric:
    return UsageMetric(metric.label, metric.percent_used,
                       LIMIT_REACHED_PREFIX + metric.reset_info)


# ── tolerant field access ─────────────────────────────────────────────────────

def as_dict(val) -> dict | None:
    return val if isinstance(val, dict) else None


def as_float(val, default: float = 0.0) -> float:
    if val is None or isinstance(val, bool):
        return default
    try:
        f = float(val)
    except (TypeError, ValueError):
        return default
    # nan/inf (e.g. 1e999 from json, "NaN" strings) are treated as missing
    return f if math.isfinite(f) else default


def as_bool(val, default: bool = False) -> bool:
    return val if isinstance(val, bool) else default


# ── tray text ─────────────────────────────────────────────────────────────────

def format_tray_title(claude: UsageData | None, codex: UsageData | None) -> str:
    """'C:42/17%  X:5/60%' for whatever providers have data."""
    parts = []
    for prefix, data in (("C", claude), ("X", codex)):
        if data is not None:
            s = round(data.session.display_percent)
            w = round(data.weekly_all.display_percent)
            parts.append(f"{prefix}:{s}/{w}%")
    return "  ".join(parts) if parts else "Usage: --%"
