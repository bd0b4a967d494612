"""claude.ai usage endpoint.

Response shape (all keys optional):
  five_hour        → Current session
  seven_day        → All models
  seven_day_sonnet → Sonnet only
  extra_usage      → pay-as-you-go credits (null = off)

Windows carry ``utilization`` (0–100) and ``resets_at`` (ISO-8601).
"""

import logging

from usage_bar.cookie_reader import CredentialBundle
from usage_bar.http import USER_AGENT, get_json
from usage_bar.models import (
    ExtraUsage,
    UsageData,
    UsageMetric,
    as_bool,
    as_dict,
    as_float,
    format_reset_at,
    now_iso,
)

log = logging.getLogger(__name__)

BASE_URL = "https://claude.ai"

HEADERS = {
    "Accept": "application/json",
    "Content-Type": "application/json",
    "Referer": "https://claude.ai/settings/usage",
    "Origin": "https://claude.ai",
    "User-Agent": USER_AGENT,
}
# Cloudflare-bound cookies are tied to the real browser fingerprint;
# sending them from a different TLS stack causes a mismatch → 403.
_CF_COOKIE_KEYS = frozenset({"cf_clearance", "__cf_bm", "_cfuvid"})


def _cookie_header(bundle: CredentialBundle) -> str:
    if not bundle.cookies:
        return bundle.cookie_header
    return "; ".join(
        f"{k}={v}" for k, v in bundle.cookies.items() if k not in _CF_COOKIE_KEYS
    )


def _window(data: dict, key: str, label: str) -> UsageMetric:
    bucket = as_dict(data.get(key))
    if bucket is None:
        return UsageMetric.missing(label)
    return UsageMetric(
        label,
        as_float(bucket.get("utilization")),
        format_reset_at(bucket.get("resets_at")),
    )


def _extra(data: dict) -> ExtraUsage:
    eu = as_dict(data.get("extra_usage"))
    if eu is None:
        return ExtraUsage()
    used = as_float(eu.get("used_credits"))
    limit = as_float(eu.get("monthly_limit"))
    fallback_pct = used / limit * 100 if limit > 0 else 0.0
    return ExtraUsage(
        dollars_spent=used,
        percent_used=as_float(eu.get("utilization"), fallback_pct),
        reset_date="Monthly",
        enabled=as_bool(eu.get("is_enabled")),
    )


def parse_usage(data: dict) -> UsageData:
    return UsageData(
        session=_window(data, "five_hour", "Current session"),
        weekly_all=_window(data, "seven_day", "All models"),
        weekly_sonnet=_window(data, "seven_day_sonnet", "Sonnet only"),
        extra=_extra(data),
        fetched_at=now_iso(),
    )


async def fetch_claude_usage(bundle: CredentialBundle, session) -> UsageData:
    """GET /api/organizations/{org_id}/usage with the session cookies."""
    url = f"{BASE_URL}/api/organizations/{bundle.org_id}/usage"
    headers = {**HEADERS, "Cookie": _cookie_header(bundle)}
    data = await get_json(session, url, headers, provider="Claude API")
    usage = parse_usage(data)
    log.debug("parsed claude usage: session=%.1f weekly=%.1f extra=%s",
              usage.session.percent_used, usage.weekly_all.percent_used,
              usage.extra.enabled)
    return usage
