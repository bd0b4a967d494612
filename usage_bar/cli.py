"""Command-line entry point.

  usage-bar                       fetch everything once and print it
  usage-bar --provider codex      one provider
  usage-bar --json                machine-readable output
  usage-bar --watch               keep refreshing at the configured interval
  usage-bar --set-openrouter-key  store the OpenRouter key in the secret store
  usage-bar --notify-at 90        save settings (also --interval, --claude-source)
"""

import argparse
import asyncio
import getpass
import json
import logging
import os
import sys

from usage_bar import openrouter
from usage_bar.config import (
    CLAUDE_SOURCES,
    NOTIFY_THRESHOLDS,
    REFRESH_INTERVALS,
    apply_threshold_choice,
    load_settings,
    save_settings,
)
from usage_bar.errors import UsageBarError
from usage_bar.http import new_session
from usage_bar.models import UsageData, format_tray_title
from usage_bar.monitor import CLAUDE, CODEX, OPENROUTER, IntervalTicker, UsageMonitor
from usage_bar.openrouter import OpenRouterCredits
from usage_bar.secret_store import default_secret_store

LOG_FILE = os.path.expanduser("~/.usage_bar.log")
LOG_FORMAT = "%(asctime)s %(levelname)s %(message)s"

_PROVIDERS = {"claude": CLAUDE, "codex": CODEX, "openrouter": OPENROUTER}


def configure_logging(verbose: bool = False):
    logging.basicConfig(filename=LOG_FILE, level=logging.DEBUG, format=LOG_FORMAT)
    if verbose:
        stderr = logging.StreamHandler()
        stderr.setFormatter(logging.Formatter(LOG_FORMAT))
        logging.getLogger().addHandler(stderr)


def _bar(pct: float, width: int = 14) -> str:
    filled = round(max(0.0, min(100.0, pct)) / 100 * width)
    return "█" * filled + "░" * (width - filled)


def render_usage(name: str, data: UsageData) -> list[str]:
    lines = [name]
    for m in (data.session, data.weekly_all, data.weekly_sonnet):
        lines.append(f"  {m.label:<22} {_bar(m.display_percent)} "
                     f"{m.percent_used:5.1f}%  {m.reset_info}")
    extra = data.extra
    state = "on" if extra.enabled else "off"
    lines.append(f"  {'Extra usage (' + state + ')':<22} ${extra.dollars_spent:.2f}  "
                 f"{extra.percent_used:.1f}%  {extra.reset_date}")
    return lines


def render_credits(data: OpenRouterCredits) -> list[str]:
    return [
        OPENROUTER,
        f"  Remaining ${data.remaining_credits:.2f} "
        f"(used ${data.total_usage:.2f} of ${data.total_credits:.2f})",
    ]


def render(results: dict) -> str:
    lines = []
    for name, result in results.items():
        if isinstance(result, str):
            lines += [name, f"  error: {result}"]
        elif isinstance(result, OpenRouterCredits):
            lines += render_credits(result)
        else:
            lines += render_usage(name, result)
    lines.append("")
    lines.append(format_tray_title(
        results.get(CLAUDE) if isinstance(results.get(CLAUDE), UsageData) else None,
        results.get(CODEX) if isinstance(results.get(CODEX), UsageData) else None,
    ))
    return "\n".join(lines)


def to_json(results: dict) -> str:
    out = {}
    for name, result in results.items():
        out[name] = {"error": result} if isinstance(result, str) else result.to_dict()
    return json.dumps(out, indent=2)


def update_settings(args) -> bool:
    """Apply the settings flags and persist them. Returns True if any was given."""
    if args.notify_at is None and args.interval is None and args.claude_source is None:
        return False
    settings = load_settings()
    if args.notify_at is not None:
        apply_threshold_choice(settings, args.notify_at)
    if args.interval is not None:
        settings.refresh_interval_secs = args.interval
    if args.claude_source is not None:
        settings.claude_source = args.claude_source
    save_settings(settings)
    notify = f"{settings.notify_threshold}%" if settings.notifications_enabled else "off"
    print(f"Refresh every {REFRESH_INTERVALS[settings.refresh_interval_secs]}, "
          f"notify at {notify}, Claude source {settings.claude_source}")
    return True


async def _run(args) -> int:
    settings = load_settings()
    providers = list(_PROVIDERS.values()) if args.provider == "all" else [_PROVIDERS[args.provider]]

    async with new_session() as session:
        monitor = UsageMonitor(settings, default_secret_store(), session)

        async def refresh():
            results = await monitor.refresh_all(providers)
            print(to_json(results) if args.json else render(results), flush=True)
            return results

        if args.watch:
            ticker = IntervalTicker(refresh, lambda: settings.refresh_interval_secs)
            await ticker.run()
            return 0

        results = await refresh()
    return 0 if all(not isinstance(r, str) for r in results.values()) else 1


def main(argv: list[str] | None = None) -> int:
    p = argparse.ArgumentParser(prog="usage-bar",
                                description="Claude / Codex usage monitor")
    p.add_argument("--provider", choices=["all", *_PROVIDERS], default="all")
    p.add_argument("--json", action="store_true", help="print JSON")
    p.add_argument("--watch", action="store_true", help="refresh periodically")
    p.add_argument("--verbose", "-v", action="store_true", help="log to stderr too")
    p.add_argument("--set-openrouter-key", action="store_true",
                   help="prompt for an OpenRouter API key and store it")
    p.add_argument("--clear-openrouter-key", action="store_true")
    p.add_argument("--notify-at", type=int, choices=[0, *NOTIFY_THRESHOLDS],
                   help="save the notification threshold in percent (0 = off)")
    p.add_argument("--interval", type=int, choices=list(REFRESH_INTERVALS),
                   help="save the refresh interval in seconds ("
                        + ", ".join(f"{s} = {label}" for s, label in REFRESH_INTERVALS.items())
                        + ")")
    p.add_argument("--claude-source", choices=CLAUDE_SOURCES,
                   help="save which cookie store Claude credentials come from")
    args = p.parse_args(argv)

    configure_logging(args.verbose)

    try:
        if args.set_openrouter_key:
            store = default_secret_store()
            openrouter.set_api_key(store, getpass.getpass("OpenRouter API key: "))
            print(f"Stored {openrouter.key_status(store)['masked_key']}")
            return 0
        if args.clear_openrouter_key:
            openrouter.clear_api_key(default_secret_store())
            print("OpenRouter key cleared")
            return 0
        if update_settings(args):
            return 0
        return asyncio.run(_run(args))
    except (UsageBarError, ValueError, OSError) as e:
        print(f"error: {e}", file=sys.stderr)
        return 1
    except KeyboardInterrupt:
        return 130
