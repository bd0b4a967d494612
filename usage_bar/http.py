"""Shared async GET for the provider clients."""

import json
import logging

from curl_cffi.requests import AsyncSession  # browser TLS fingerprint — gets past Cloudflare
from curl_cffi.requests.exceptions import RequestException

from usage_bar.errors import ParseError, RequestFailed, UpstreamError

log = logging.getLogger(__name__)

# Cloudflare fingerprint-checks Chrome aggressively; Safari passes cleanly.
IMPERSONATE = "safari184"
TIMEOUT = 15
USER_AGENT = "Mozilla/5.0 (Macintosh; Intel Mac OS X 10_15_7) AppleWebKit/537.36"


def new_session() -> AsyncSession:
    return AsyncSession(impersonate=IMPERSONATE, timeout=TIMEOUT)


async def get_json(session: AsyncSession, url: str, headers: dict,
                   provider: str = "API") -> dict:
    """GET *url* and return the decoded JSON object.

    Raises UpstreamError on non-2xx, RequestFailed when no response arrives,
    ParseError when the body is not a JSON object.
    """
    try:
        r = await session.get(url, headers=headers)
    except RequestException as e:
        raise RequestFailed(f"{provider} request failed: {e}") from e

    text = r.text or ""
    log.debug("GET %s  status=%s  body=%s", url, r.status_code, text[:800])
    if not 200 <= r.status_code < 300:
        raise UpstreamError(r.status_code, text, provider)

    try:
        data = json.loads(text)
    except ValueError as e:
        raise ParseError(f"Failed to parse {provider} response: {e}") from e
    if not isinstance(data, dict):
        raise ParseError(
            f"Failed to parse {provider} response: expected an object, "
            f"got {type(data).__name__}"
        )
    return data
