from __future__ import annotations

import logging
import socket
import ssl
import time
from collections.abc import Iterable
from concurrent.futures import ThreadPoolExecutor
from concurrent.futures import TimeoutError as FutureTimeoutError
from typing import Any

import certifi
import httpcore
import httpx

from patchrss.errors import BlockedByPolicyError
from patchrss.services.url_guard import allowed_addresses

_log = logging.getLogger(__name__)

# getaddrinfo cannot be interrupted; lookups run here so callers can stop waiting.
_resolver_executor = ThreadPoolExecutor(max_workers=8, thread_name_prefix="patchrss-dns")


def _remaining(timeout: float | None, deadline: float | None, exc_class: type[Exception]) -> float | None:
    if deadline is None:
        return timeout
    left = deadline - time.monotonic()
    if left <= 0:
        raise exc_class("fetch deadline exceeded")
    return left if timeout is None else min(timeout, left)


def resolve_host(host: str, port: int, timeout: float | None = None) -> list[str]:
    future = _resolver_executor.submit(socket.getaddrinfo, host, port, type=socket.SOCK_STREAM)
    try:
        infos = future.result(timeout=timeout)
    except FutureTimeoutError as e:
        future.cancel()
        raise httpcore.ConnectTimeout(f"DNS lookup timed out for {host}") from e
    except socket.gaierror as e:
        raise httpcore.ConnectError(f"DNS lookup failed for {host}: {e}") from e
    addresses: list[str] = []
    for info in infos:
        sockaddr = info[4]
        if sockaddr and sockaddr[0] not in addresses:
            addresses.append(str(sockaddr[0]))
    return addresses


class DeadlineStream(httpcore.NetworkStream):
    """Clamps every socket operation to what is left of the fetch deadline."""

    def __init__(self, stream: httpcore.NetworkStream, deadline: float):
        self._stream = stream
        self._deadline = deadline

    def read(self, max_bytes: int, timeout: float | None = None) -> bytes:
        return self._stream.read(max_bytes, _remaining(timeout, self._deadline, httpcore.ReadTimeout))

    def write(self, buffer: bytes, timeout: float | None = None) -> None:
        self._stream.write(buffer, _remaining(timeout, self._deadline, httpcore.WriteTimeout))

    def close(self) -> None:
        self._stream.close()

    def start_tls(
        self,
        ssl_context: ssl.SSLContext,
        server_hostname: str | None = None,
        timeout: float | None = None,
    ) -> httpcore.NetworkStream:
        stream = self._stream.start_tls(
            ssl_context,
            server_hostname,
            _remaining(timeout, self._deadline, httpcore.ConnectTimeout),
        )
        return DeadlineStream(stream, self._deadline)

    def get_extra_info(self, info: str) -> Any:
        return self._stream.get_extra_info(info)


class PolicyNetworkBackend(httpcore.SyncBackend):
    """Connects only to globally routable addresses.

    Resolution happens here, at connect time, so every redirect hop and every
    DNS answer goes through the same filter. TLS still verifies against the
    original hostname. With a ``deadline`` (a ``time.monotonic()`` value) the
    lookup, the connect and every later read or write share that one budget.
    """

    def __init__(self, deadline: float | None = None):
        self._deadline = deadline

    def connect_tcp(
        self,
        host: str,
        port: int,
        timeout: float | None = None,
        local_address: str | None = None,
        socket_options: Iterable[Any] | None = None,
    ) -> httpcore.NetworkStream:
        resolved = resolve_host(host, port, timeout=_remaining(timeout, self._deadline, httpcore.ConnectTimeout))
        candidates = allowed_addresses(resolved)
        if not candidates:
            _log.warning("Blocked connection to %s (resolved to %s)", host, ", ".join(resolved) or "nothing")
            raise BlockedByPolicyError(host, resolved)

        last_error = httpcore.ConnectError(f"no address of {host} accepted a connection")
        for address in candidates:
            try:
                stream = super().connect_tcp(
                    address,
                    port,
                    timeout=_remaining(timeout, self._deadline, httpcore.ConnectTimeout),
                    local_address=local_address,
                    socket_options=socket_options,
                )
            except httpcore.ConnectError as e:
                last_error = e
                continue
            if self._deadline is None:
                return stream
            return DeadlineStream(stream, self._deadline)
        raise last_error


class GuardedTransport(httpx.HTTPTransport):
    def __init__(self, deadline: float | None = None) -> None:
        super().__init__(trust_env=False)
        # HTTPTransport has no hook for the network backend; swap the pool for one that has it.
        self._pool = httpcore.ConnectionPool(
            ssl_context=ssl.create_default_context(cafile=certifi.where()),
            network_backend=PolicyNetworkBackend(deadline=deadline),
        )
