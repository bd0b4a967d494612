"""Read the claude.ai session out of a local Chromium cookie store.

Two stores are supported: Google Chrome's profile DB and the Claude desktop
app's (Electron) DB. The live file may be locked by its owner, so each read
works on a private temporary copy that is removed afterwards.
"""

import asyncio
import logging
import os
import shutil
import sqlite3
import tempfile
from dataclasses import dataclass, field
from pathlib import Path

from usage_bar.cookie_cipher import CipherFormat, decrypt, derive_key
from usage_bar.errors import (
    AccessDenied,
    RequiredCookieMissing,
    SecretNotFound,
    StoreNotFound,
)
from usage_bar.secret_store import SecretStore

log = logging.getLogger(__name__)

SESSION_COOKIE = "sessionKey"
ORG_COOKIE = "lastActiveOrg"
_ORG_FALLBACK_COOKIE = "routingHint"


# ── data models ───────────────────────────────────────────────────────────────

@dataclass(frozen=True)
class StoreVariant:
    name: str
    db_path: str            # relative to the home directory
    keychain_service: str
    keychain_account: str
    cipher: CipherFormat
    host_pattern: str       # SQL LIKE pattern on host_key
    plaintext_fallback: bool


CHROME = StoreVariant(
    name="chrome",
    db_path="Library/Application Support/Google/Chrome/Default/Cookies",
    keychain_service="Chrome Safe Storage",
    keychain_account="Chrome",
    cipher=CipherFormat.LEGACY_BROWSER,
    host_pattern="%claude.ai",
    plaintext_fallback=True,
)

CLAUDE_DESKTOP = StoreVariant(
    name="desktop",
    db_path="Library/Application Support/Claude/Cookies",
    keychain_service="Claude Safe Storage",
    keychain_account="Claude Key",
    cipher=CipherFormat.DESKTOP_APP,
    host_pattern="%claude.ai%",
    plaintext_fallback=False,
)

VARIANTS = {v.name: v for v in (CHROME, CLAUDE_DESKTOP)}


@dataclass(frozen=True)
class EncryptedCookieRecord:
    name: str
    encrypted_value: bytes
    value: str = ""


@dataclass(frozen=True)
class CredentialBundle:
    session_key: str
    org_id: str
    cookie_header: str
    cookies: dict = field(default_factory=dict, compare=False)

    def __repr__(self) -> str:
        # never let the session key end up in a log line
        return (f"CredentialBundle(org_id={self.org_id!r}, "
                f"cookies={list(self.cookies)!r})")


# ── helpers ───────────────────────────────────────────────────────────────────

def _join_cookies(cookies: dict) -> str:
    return "; ".join(f"{k}={v}" for k, v in cookies.items())


def _bundle(cookies: dict, org_keys: tuple[str, ...]) -> CredentialBundle:
    session = cookies.get(SESSION_COOKIE)
    if not session:
        raise RequiredCookieMissing(SESSION_COOKIE)
    org_id = next((cookies[k] for k in org_keys if cookies.get(k)), None)
    if not org_id:
        raise RequiredCookieMissing(ORG_COOKIE)
    return CredentialBundle(session, org_id, _join_cookies(cookies), dict(cookies))


def parse_cookie_string(raw: str) -> dict:
    """Parse 'key=val; key2=val2' or just a bare sessionKey value."""
    raw = raw.strip()
    if "=" not in raw:
        return {SESSION_COOKIE: raw}
    cookies = {}
    for part in raw.split(";"):
        part = part.strip()
        if "=" in part:
            k, _, v = part.partition("=")
            cookies.setdefault(k.strip(), v.strip())
    return cookies


def bundle_from_cookie_string(raw: str) -> CredentialBundle:
    """Build a bundle from a cookie string pasted by the user."""
    cookies = parse_cookie_string(raw)
    log.debug("using cookies keys: %s", list(cookies.keys()))
    return _bundle(cookies, (ORG_COOKIE, _ORG_FALLBACK_COOKIE))


def _fetch_key(variant: StoreVariant, secret_store: SecretStore) -> bytes:
    try:
        secret = secret_store.get_secret(
            variant.keychain_service, variant.keychain_account
        )
    except SecretNotFound as e:
        raise AccessDenied(str(e)) from e
    return derive_key(secret)


def _query_rows(conn: sqlite3.Connection, variant: StoreVariant) -> list[EncryptedCookieRecord]:
    rows = conn.execute(
        "SELECT name, encrypted_value, value FROM cookies "
        "WHERE host_key LIKE ? ORDER BY name, rowid",
        (variant.host_pattern,),
    ).fetchall()
    return [
        EncryptedCookieRecord(
            name, enc.encode() if isinstance(enc, str) else bytes(enc or b""), plain or ""
        )
        for name, enc, plain in rows
    ]


def _decrypt_rows(records: list[EncryptedCookieRecord], variant: StoreVariant,
                  key: bytes) -> dict:
    cookies: dict[str, str] = {}
    for rec in records:
        if rec.name in cookies:
            continue
        if rec.encrypted_value:
            value = decrypt(variant.cipher, rec.encrypted_value, key)
        elif variant.plaintext_fallback:
            value = rec.value
        else:
            value = ""
        if value:
            cookies[rec.name] = value
    return cookies


def _remove_quietly(path: str):
    try:
        os.remove(path)
    except OSError as e:
        log.warning("could not remove temp cookie copy %s: %s", path, e)


# ── public API ────────────────────────────────────────────────────────────────

def read_credentials(variant: StoreVariant, secret_store: SecretStore,
                     home: str | Path | None = None) -> CredentialBundle:
    """Snapshot the cookie DB of *variant* and rebuild the claude.ai session."""
    home = Path(home) if home is not None else Path.home()
    db_path = home / variant.db_path
    if not db_path.is_file():
        raise StoreNotFound(f"{variant.name} cookies database not found at {db_path}")

    fd, tmp = tempfile.mkstemp(prefix="usage_bar_cookies_", suffix=".db")
    os.close(fd)
    try:
        try:
            shutil.copyfile(db_path, tmp)
        except OSError as e:
            raise StoreNotFound(f"Cannot copy {db_path}: {e}") from e

        key = _fetch_key(variant, secret_store)
        conn = sqlite3.connect(tmp)
        try:
            records = _query_rows(conn, variant)
        except sqlite3.DatabaseError as e:
            raise StoreNotFound(f"{db_path} is not a cookie database: {e}") from e
        finally:
            conn.close()

        cookies = _decrypt_rows(records, variant, key)
        log.debug("%s store: %d rows, cookie names %s",
                  variant.name, len(records), list(cookies))
    finally:
        _remove_quietly(tmp)

    return _bundle(cookies, (ORG_COOKIE,))


async def read_credentials_async(variant: StoreVariant, secret_store: SecretStore,
                                 home: str | Path | None = None) -> CredentialBundle:
    return await asyncio.to_thread(read_credentials, variant, secret_store, home)
