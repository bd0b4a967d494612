"""
usage_bar — Claude / Codex usage monitor

Reads the local session cookie (or Codex CLI token), fetches usage from the
provider APIs, normalizes it into one model and raises a notification when a
limit crosses the configured threshold.
"""

__version__ = "0.3.0"
