"""Codex / ChatGPT rate limits via /backend-api/wham/usage.

Confirmed shape:
  plan_type
  rate_limit.limit_reached
  rate_limit.primary_window      used_percent, limit_window_seconds, reset_after_seconds
  rate_limit.secondary_window    same
  additional_rate_limits[]       limit_name, rate_limit{primary_window}
  credits                        has_credits, unlimited, balance (string)

The bearer token comes from the Codex CLI's ~/.codex/auth.json.
"""

import json
import logging
from pathlib import Path

from usage_bar.errors import ParseError, StoreNotFound, TokenMissing
from usage_bar.http import get_json
from usage_bar.models import (
    NO_RESET,
    ExtraUsage,
    UsageData,
    UsageMetric,
    as_bool,
    as_dict,
    as_float,
    format_reset_seconds,
    mark_limit_reached,
    now_iso,
    window_label,
)

log = logging.getLogger(__name__)

USAGE_URL = "https://chatgpt.com/backend-api/wham/usage"
AUTH_FILE = ".codex/auth.json"

HEADERS = {
    "Accept": "application/json",
    "User-Agent": "codex-cli",
}


def read_codex_token(home: str | Path | None = None) -> str:
    """Return tokens.access_token from the Codex CLI auth file."""
    home = Path(home) if home is not None else Path.home()
    auth_path = home / AUTH_FILE
    if not auth_path.is_file():
        raise StoreNotFound(f"Codex CLI not configured ({auth_path} not found)")
    try:
        auth = json.loads(auth_path.read_text())
    except OSError as e:
        raise StoreNotFound(f"Failed to read {auth_path}: {e}") from e
    except ValueError as e:
        raise ParseError(f"Failed to parse {auth_path}: {e}") from e

    tokens = as_dict(auth.get("tokens")) if isinstance(auth, dict) else None
    token = (tokens or {}).get("access_token")
    if not isinstance(token, str) or not token:
        raise TokenMissing("No access token found in Codex auth.json")
    return token


def _window_metric(window: dict | None, fallback: str) -> UsageMetric:
    if window is None:
        return UsageMetric.missing(fallback)
    return UsageMetric(
        window_label(as_float(window.get("limit_window_seconds")), fallback),
        as_float(window.get("used_percent")),
        format_reset_seconds(as_float(window.get("reset_after_seconds"))),
    )


def _model_metric(extra_limits, plan: str) -> UsageMetric:
    """First additional rate limit (e.g. a Codex-Spark model) if any."""
    if isinstance(extra_limits, list) and extra_limits:
        first = as_dict(extra_limits[0]) or {}
        rl = as_dict(first.get("rate_limit")) or {}
        pw = as_dict(rl.get("primary_window"))
        if pw is not None:
            name = first.get("limit_name")
            return UsageMetric(
                name if isinstance(name, str) and name else "Model limit",
                as_float(pw.get("used_percent")),
                format_reset_seconds(as_float(pw.get("reset_after_seconds"))),
            )
    return UsageMetric(f"Plan: {plan}", 0.0, NO_RESET)


def _credits(credits: dict | None) -> ExtraUsage:
    if credits is None:
        return ExtraUsage()
    unlimited = as_bool(credits.get("unlimited"))
    return ExtraUsage(
        dollars_spent=as_float(credits.get("balance")),
        percent_used=0.0,
        reset_date="Unlimited" if unlimited else NO_RESET,
        enabled=as_bool(credits.get("has_credits")) or unlimited,
    )


def parse_usage(data: dict) -> UsageData:
    plan = data.get("plan_type")
    plan = plan if isinstance(plan, str) and plan else "unknown"
    rl = as_dict(data.get("rate_limit")) or {}

    session = _window_metric(as_dict(rl.get("primary_window")), "Session")
    if as_bool(rl.get("limit_reached")):
        session = mark_limit_reached(session)

    return UsageData(
        session=session,
        weekly_all=_window_metric(as_dict(rl.get("secondary_window")), "Weekly"),
        weekly_sonnet=_model_metric(data.get("additional_rate_limits"), plan),
        extra=_credits(as_dict(data.get("credits"))),
        fetched_at=now_iso(),
    )


async def fetch_codex_usage(token: str, session) -> UsageData:
    headers = {**HEADERS, "Authorization": f"Bearer {token}"}
    data = await get_json(session, USAGE_URL, headers, provider="Codex API")
    usage = parse_usage(data)
    log.debug("parsed codex usage: session=%.1f weekly=%.1f",
              usage.session.percent_used, usage.weekly_all.percent_used)
    return usage
