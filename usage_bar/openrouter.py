"""OpenRouter credit balance.

The API key lives in the OS secret store (set from the CLI); the
``OPENROUTER_API_KEY`` environment variable is used when nothing is stored.
"""

import logging
import os
from dataclasses import asdict, dataclass

from usage_bar.errors import SecretNotFound, TokenMissing
from usage_bar.http import get_json
from usage_bar.models import as_dict, as_float, now_iso
from usage_bar.secret_store import SecretStore

log = logging.getLogger(__name__)

CREDITS_URL = "https://openrouter.ai/api/v1/credits"
KEYCHAIN_SERVICE = "com.usage-bar.openrouter"
KEYCHAIN_ACCOUNT = "openrouter_api_key"
ENV_VAR = "OPENROUTER_API_KEY"


@dataclass(frozen=True)
class OpenRouterCredits:
    total_credits: float
    total_usage: float
    remaining_credits: float
    fetched_at: str

    def to_dict(self) -> dict:
        return asdict(self)


def mask_key(key: str) -> str:
    """'sk-or-v1-abcdef…1234' → 'sk-or-...1234'."""
    key = key.strip()
    if len(key) <= 10:
        return "********"
    return f"{key[:6]}...{key[-4:]}"


def read_api_key(secret_store: SecretStore) -> str:
    try:
        key = secret_store.get_secret(KEYCHAIN_SERVICE, KEYCHAIN_ACCOUNT).decode().strip()
        if key:
            return key
    except SecretNotFound:
        log.debug("no OpenRouter key in secret store, trying $%s", ENV_VAR)

    key = os.environ.get(ENV_VAR, "").strip()
    if not key:
        raise TokenMissing(f"{ENV_VAR} is not set and no key is stored")
    return key


def set_api_key(secret_store: SecretStore, key: str):
    key = key.strip()
    if not key:
        raise ValueError("API key cannot be empty")
    secret_store.set_secret(KEYCHAIN_SERVICE, KEYCHAIN_ACCOUNT, key)


def clear_api_key(secret_store: SecretStore):
    secret_store.delete_secret(KEYCHAIN_SERVICE, KEYCHAIN_ACCOUNT)


def key_status(secret_store: SecretStore) -> dict:
    try:
        key = secret_store.get_secret(KEYCHAIN_SERVICE, KEYCHAIN_ACCOUNT).decode().strip()
    except SecretNotFound:
        key = ""
    return {"configured": bool(key), "masked_key": mask_key(key) if key else None}


def parse_credits(data: dict) -> OpenRouterCredits:
    payload = as_dict(data.get("data")) or {}
    total = as_float(payload.get("total_credits"))
    used = as_float(payload.get("total_usage"))
    return OpenRouterCredits(
        total_credits=total,
        total_usage=used,
        remaining_credits=max(0.0, total - used),
        fetched_at=now_iso(),
    )


async def fetch_openrouter_credits(key: str, session) -> OpenRouterCredits:
    headers = {"Accept": "application/json", "Authorization": f"Bearer {key}"}
    data = await get_json(session, CREDITS_URL, headers, provider="OpenRouter API")
    return parse_credits(data)
