"""Chromium-style cookie decryption.

Both stores protect values with a key derived from an OS-held password
(PBKDF2-SHA1, salt ``saltysalt``). They differ in how the ciphertext is laid
out after the ``v10`` marker:

  LEGACY_BROWSER  v10 | ciphertext                  fixed IV of 16 spaces, PKCS#7
  DESKTOP_APP     v10 | nonce(16) | iv(16) | ct     padding stripped leniently
"""

import enum

from Cryptodome.Cipher import AES
from Cryptodome.Hash import SHA1
from Cryptodome.Protocol.KDF import PBKDF2
from Cryptodome.Util.Padding import unpad

from usage_bar.errors import DecryptionError

MAGIC = b"v10"
SALT = b"saltysalt"
ITERATIONS = 1003
KEY_LENGTH = 16
LEGACY_IV = b" " * 16

_BLOCK = AES.block_size
_DESKTOP_MIN_PAYLOAD = 48  # nonce + iv + one block


class CipherFormat(enum.Enum):
    LEGACY_BROWSER = "legacy_browser"
    DESKTOP_APP = "desktop_app"


def derive_key(secret: bytes | str) -> bytes:
    """Derive the 16-byte AES key from the Keychain password."""
    if isinstance(secret, str):
        secret = secret.encode()
    return PBKDF2(secret, SALT, dkLen=KEY_LENGTH, count=ITERATIONS,
                  hmac_hash_module=SHA1)


def strip_pkcs7(buf: bytes) -> bytes:
    """Remove PKCS#7 padding if the last byte looks like a pad length.

    Out-of-range pad bytes leave the buffer untouched.
    """
    if not buf:
        return buf
    pad = buf[-1]
    if 1 <= pad <= _BLOCK and pad <= len(buf):
        return buf[:-pad]
    return buf


def _decrypt_legacy(payload: bytes, key: bytes) -> bytes:
    try:
        cipher = AES.new(key, AES.MODE_CBC, iv=LEGACY_IV)
        return unpad(cipher.decrypt(payload), _BLOCK)
    except ValueError as e:
        raise DecryptionError(f"Decryption failed: {e}") from e


def _decrypt_desktop(payload: bytes, key: bytes) -> bytes:
    if len(payload) < _DESKTOP_MIN_PAYLOAD or len(payload) % _BLOCK:
        raise DecryptionError(
            f"Decryption failed: bad payload length {len(payload)}"
        )
    iv, ciphertext = payload[16:32], payload[32:]
    try:
        cipher = AES.new(key, AES.MODE_CBC, iv=iv)
        plain = cipher.decrypt(ciphertext)
    except ValueError as e:
        raise DecryptionError(f"Decryption failed: {e}") from e
    return strip_pkcs7(plain)


_DECRYPTORS = {
    CipherFormat.LEGACY_BROWSER: _decrypt_legacy,
    CipherFormat.DESKTOP_APP: _decrypt_desktop,
}


def decrypt(fmt: CipherFormat, raw: bytes, key: bytes) -> str:
    """Decrypt one ``encrypted_value`` blob.

    Values without the ``v10`` marker are stored in the clear and come back
    decoded but otherwise unchanged.
    """
    if len(raw) < len(MAGIC) or raw[: len(MAGIC)] != MAGIC:
        return raw.decode("utf-8", errors="replace")
    plain = _DECRYPTORS[fmt](raw[len(MAGIC):], key)
    return plain.decode("utf-8", errors="replace")
