from __future__ import annotations

import logging
import time

import httpx

from patchrss.connectors.base import UpstreamResponse
from patchrss.connectors.transport import GuardedTransport
from patchrss.errors import (
    UpstreamStatusError,
    UpstreamTimeoutError,
    UpstreamTooLargeError,
    UpstreamTransportError,
)
from patchrss.settings import DEFAULT_DOCS_URL

_log = logging.getLogger(__name__)

DEFAULT_USER_AGENT = f"patchrss (+{DEFAULT_DOCS_URL})"
_ACCEPT = "application/rss+xml, application/rdf+xml, application/atom+xml, application/xml;q=0.9, text/xml;q=0.8, */*;q=0.5"


class FeedFetcher:
    def __init__(
        self,
        *,
        user_agent: str = DEFAULT_USER_AGENT,
        timeout_seconds: float = 5.0,
        max_bytes: int = 10 * 1024 * 1024,
        max_redirects: int = 10,
        transport: httpx.BaseTransport | None = None,
    ):
        self._user_agent = user_agent
        self._timeout_seconds = max(0.1, float(timeout_seconds))
        self._max_bytes = max(1, int(max_bytes))
        self._max_redirects = max(0, int(max_redirects))
        self._transport = transport

    def _read_body(self, resp: httpx.Response, *, deadline: float) -> bytes:
        declared = resp.headers.get("content-length", "").strip()
        if declared.isdigit() and int(declared) > self._max_bytes:
            raise UpstreamTooLargeError(f"content-length {declared} exceeds {self._max_bytes}")

        chunks: list[bytes] = []
        total = 0
        for chunk in resp.iter_bytes():
            total += len(chunk)
            if total > self._max_bytes:
                raise UpstreamTooLargeError(f"body exceeds {self._max_bytes} bytes")
            if time.monotonic() > deadline:
                raise UpstreamTimeoutError("body read exceeded deadline")
            chunks.append(chunk)
        return b"".join(chunks)

    def fetch(self, url: str) -> UpstreamResponse:
        """GET ``url`` following redirects, bounded end to end by the timeout.

        Raises UpstreamStatusError for non-2xx, BlockedByPolicyError when the
        guarded transport refuses every resolved address, and the
        UpstreamTransportError family for everything on the wire.
        """
        deadline = time.monotonic() + self._timeout_seconds
        try:
            with httpx.Client(
                timeout=self._timeout_seconds,
                follow_redirects=True,
                max_redirects=self._max_redirects,
                headers={"User-Agent": self._user_agent, "Accept": _ACCEPT},
                transport=self._transport or GuardedTransport(deadline=deadline),
                trust_env=False,
            ) as client:
                with client.stream("GET", url) as resp:
                    if not resp.is_success:
                        _log.warning("Upstream %s answered %s", url, resp.status_code)
                        raise UpstreamStatusError(resp.status_code, resp.reason_phrase)
                    content = self._read_body(resp, deadline=deadline)
                    return UpstreamResponse(
                        status_code=resp.status_code,
                        url=str(resp.url),
                        content=content,
                        headers=dict(resp.headers.items()),
                    )
        except httpx.TimeoutException as e:
            raise UpstreamTimeoutError(str(e)) from e
        except httpx.HTTPError as e:
            raise UpstreamTransportError(f"{type(e).__name__}: {e}") from e
