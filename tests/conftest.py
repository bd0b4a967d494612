"""Shared test fixtures."""

import sqlite3
from pathlib import Path
from unittest.mock import AsyncMock, MagicMock

import pytest
from Cryptodome.Cipher import AES
from Cryptodome.Util.Padding import pad

from usage_bar.cookie_cipher import LEGACY_IV, derive_key
from usage_bar.errors import SecretNotFound
from usage_bar.secret_store import SecretStore

PASSWORD = b"peanuts-and-cashews"


def encrypt_legacy(plain: str, key: bytes) -> bytes:
    cipher = AES.new(key, AES.MODE_CBC, iv=LEGACY_IV)
    return b"v10" + cipher.encrypt(pad(plain.encode(), 16))


def encrypt_desktop(plain: str, key: bytes, iv: bytes = b"\x07" * 16) -> bytes:
    cipher = AES.new(key, AES.MODE_CBC, iv=iv)
    return b"v10" + b"\xaa" * 16 + iv + cipher.encrypt(pad(plain.encode(), 16))


class FakeSecretStore(SecretStore):
    def __init__(self, secrets: dict | None = None):
        self.secrets = dict(secrets or {})
        self.calls: list[tuple] = []

    def get_secret(self, service, account=None):
        self.calls.append((service, account))
        if service not in self.secrets:
            raise SecretNotFound(f"Keychain item {service!r} not found")
        return self.secrets[service]

    def set_secret(self, service, account, secret):
        self.secrets[service] = secret.encode()

    def delete_secret(self, service, account):
        self.secrets.pop(service, None)


def make_cookie_db(path: Path, rows: list[tuple[str, str, bytes, str]]) -> Path:
    """rows: (host_key, name, encrypted_value, value)."""
    path.parent.mkdir(parents=True, exist_ok=True)
    conn = sqlite3.connect(path)
    conn.execute(
        "CREATE TABLE cookies (host_key TEXT, name TEXT, encrypted_value BLOB, value TEXT)"
    )
    conn.executemany("INSERT INTO cookies VALUES (?, ?, ?, ?)", rows)
    conn.commit()
    conn.close()
    return path


def fake_response(status: int = 200, text: str = "{}") -> MagicMock:
    r = MagicMock()
    r.status_code = status
    r.text = text
    return r


def fake_session(status: int = 200, text: str = "{}") -> MagicMock:
    session = MagicMock()
    session.get = AsyncMock(return_value=fake_response(status, text))
    return session


@pytest.fixture
def key() -> bytes:
    return derive_key(PASSWORD)
