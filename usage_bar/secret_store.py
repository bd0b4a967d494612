"""OS secret storage (macOS Keychain, libsecret on Linux).

Only this module shells out to the platform tools; everything else talks to
the ``SecretStore`` interface.
"""

import logging
import subprocess
import sys

from usage_bar.errors import AccessDenied, SecretNotFound

log = logging.getLogger(__name__)

_TIMEOUT = 60  # the Keychain prompt blocks until the user answers


class SecretStore:
    """Given a service/account name, return a secret or fail."""

    def get_secret(self, service: str, account: str | None = None) -> bytes:
        raise NotImplementedError

    def set_secret(self, service: str, account: str, secret: str):
        raise NotImplementedError

    def delete_secret(self, service: str, account: str):
        raise NotImplementedError


def _run(args: list[str], stdin: str | None = None) -> subprocess.CompletedProcess:
    try:
        return subprocess.run(
            args, input=stdin, capture_output=True, text=True, timeout=_TIMEOUT,
        )
    except (OSError, subprocess.TimeoutExpired) as e:
        raise AccessDenied(f"Failed to query secret store: {e}") from e


class MacKeychain(SecretStore):
    """Wraps the ``security`` CLI."""

    def get_secret(self, service: str, account: str | None = None) -> bytes:
        args = ["security", "find-generic-password", "-s", service, "-w"]
        if account:
            args[2:2] = ["-a", account]
        r = _run(args)
        if r.returncode == 0:
            return r.stdout.strip().encode()
        stderr = r.stderr.strip()
        log.debug("security find-generic-password %r rc=%d err=%r",
                  service, r.returncode, stderr)
        if "could not be found" in stderr.lower():
            raise SecretNotFound(f"Keychain item {service!r} not found")
        raise AccessDenied(f"Keychain access to {service!r} denied: {stderr}")

    def set_secret(self, service: str, account: str, secret: str):
        r = _run(["security", "add-generic-password",
                  "-a", account, "-s", service, "-w", secret, "-U"])
        if r.returncode != 0:
            raise AccessDenied(
                f"Failed to save {service!r} to Keychain: {r.stderr.strip()}"
            )

    def delete_secret(self, service: str, account: str):
        r = _run(["security", "delete-generic-password",
                  "-a", account, "-s", service])
        if r.returncode != 0 and "could not be found" not in r.stderr.lower():
            raise AccessDenied(
                f"Failed to clear {service!r} from Keychain: {r.stderr.strip()}"
            )


class SecretToolStore(SecretStore):
    """Wraps libsecret's ``secret-tool`` (GNOME Keyring, KWallet bridge)."""

    def get_secret(self, service: str, account: str | None = None) -> bytes:
        args = ["secret-tool", "lookup", "service", service]
        if account:
            args += ["account", account]
        r = _run(args)
        # secret-tool exits 1 with empty output when nothing matches
        if r.returncode == 0 and r.stdout:
            return r.stdout.rstrip("\n").encode()
        if r.returncode == 1 and not r.stderr.strip():
            raise SecretNotFound(f"Secret {service!r} not found")
        raise AccessDenied(f"Secret store access to {service!r} denied: {r.stderr.strip()}")

    def set_secret(self, service: str, account: str, secret: str):
        r = _run(["secret-tool", "store", f"--label={service}",
                  "service", service, "account", account], stdin=secret)
        if r.returncode != 0:
            raise AccessDenied(f"Failed to save {service!r}: {r.stderr.strip()}")

    def delete_secret(self, service: str, account: str):
        r = _run(["secret-tool", "clear", "service", service, "account", account])
        if r.returncode not in (0, 1):
            raise AccessDenied(f"Failed to clear {service!r}: {r.stderr.strip()}")


def default_secret_store() -> SecretStore:
    if sys.platform == "darwin":
        return MacKeychain()
    return SecretToolStore()
