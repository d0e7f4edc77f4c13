# =============================================================================
# core/http.py  —  Minimal JSON-over-HTTP helper for the live providers
# =============================================================================
#
# The live map and flight providers make plain HTTPS calls with
# urllib.request.  This module turns every way such a call can go wrong
# into the project's error taxonomy:
#
#   malformed URL          → InvalidURL
#   non-2xx status         → HTTPError(code)
#   connection / timeout   → NetworkError
#   body is not JSON       → DecodingError
#
# The functions are synchronous; async callers wrap them in
# asyncio.to_thread().
# =============================================================================

import json
import logging
import urllib.error
import urllib.parse
import urllib.request
from typing import Optional

from core.errors import DecodingError, HTTPError, InvalidURL, NetworkError

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT = 10


def build_url(base: str, params: Optional[dict] = None) -> str:
    parsed = urllib.parse.urlparse(base)
    if parsed.scheme not in ("http", "https") or not parsed.netloc:
        raise InvalidURL(base)
    if not params:
        return base
    query = urllib.parse.urlencode({k: v for k, v in params.items() if v is not None})
    return f"{base}{'&' if parsed.query else '?'}{query}"


def request_json(
    url: str,
    params: Optional[dict] = None,
    *,
    form: Optional[dict] = None,
    headers: Optional[dict] = None,
    timeout: float = DEFAULT_TIMEOUT,
):
    """Send a GET (or a form POST when ``form`` is given) and decode the JSON body."""
    full_url = build_url(url, params)
    body = urllib.parse.urlencode(form).encode("utf-8") if form is not None else None
    request = urllib.request.Request(full_url, data=body, headers=headers or {})
    if body is not None:
        request.add_header("Content-Type", "application/x-www-form-urlencoded")

    try:
        with urllib.request.urlopen(request, timeout=timeout) as response:
            raw = response.read()
    except urllib.error.HTTPError as exc:
        detail = exc.read().decode("utf-8", errors="replace")[:200]
        raise HTTPError(exc.code, detail) from exc
    except (urllib.error.URLError, TimeoutError, OSError) as exc:
        raise NetworkError(str(getattr(exc, "reason", exc))) from exc

    try:
        return json.loads(raw.decode("utf-8"))
    except (UnicodeDecodeError, ValueError) as exc:
        raise DecodingError(f"response from {urllib.parse.urlparse(full_url).netloc} is not JSON") from exc
