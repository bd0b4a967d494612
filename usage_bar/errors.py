"""Error taxonomy shared by every fetch step.

Every error is terminal for a single fetch attempt; ``str(err)`` is the
message shown to the user.
"""


class UsageBarError(Exception):
    """Base class for all usage_bar errors."""


class StoreNotFound(UsageBarError):
    """The credential store (cookie DB, auth file) is absent or unreadable."""


class AccessDenied(UsageBarError):
    """The OS refused to hand out the secret protecting the store."""


class SecretNotFound(UsageBarError):
    """No secret stored under the requested service/account."""


class DecryptionError(UsageBarError):
    """A cookie value could not be decrypted."""


class RequiredCookieMissing(UsageBarError):
    def __init__(self, name: str):
        self.name = name
        super().__init__(
            f"Cookie {name!r} not found; log in to claude.ai in the source app"
        )


class TokenMissing(UsageBarError):
    """The auth file exists but holds no usable bearer token."""


class RequestFailed(UsageBarError):
    """The HTTP request never produced a response (DNS, TLS, timeout...)."""


class UpstreamError(UsageBarError):
    BODY_LIMIT = 200

    def __init__(self, status: int, body: str = "", provider: str = "API"):
        self.status = status
        self.body = (body or "")[: self.BODY_LIMIT]
        super().__init__(f"{provider} returned {status}: {self.body}")


class ParseError(UsageBarError):
    """The response (or auth file) is not the JSON object we expect."""
