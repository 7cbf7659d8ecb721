from __future__ import annotations

import ipaddress
import re
from urllib.parse import SplitResult, urlsplit

from patchrss.errors import BadSchemeError, InvalidURLError, LoopDetectedError, MissingParamError

_ALLOWED_SCHEMES = {"http", "https"}
_DEFAULT_PORTS = {"http": 80, "https": 443}
_SCHEME_RE = re.compile(r"^[a-zA-Z][a-zA-Z0-9+.-]*:")
_WHITESPACE_RE = re.compile(r"\s")

IPAddress = ipaddress.IPv4Address | ipaddress.IPv6Address


def _split_absolute(raw: str) -> SplitResult | None:
    raw = raw.strip()
    if not _SCHEME_RE.match(raw):
        return None
    try:
        parts = urlsplit(raw)
        # Accessing .port validates it (raises ValueError on garbage).
        parts.port
    except ValueError:
        return None
    if _WHITESPACE_RE.search(parts.netloc):
        return None
    if parts.scheme.lower() in _ALLOWED_SCHEMES and not parts.hostname:
        return None
    return parts


def is_valid_http_url(value: object) -> bool:
    if not isinstance(value, str) or not value.strip():
        return False
    parts = _split_absolute(value)
    if parts is None:
        return False
    return parts.scheme.lower() in _ALLOWED_SCHEMES


def url_authority(parts: SplitResult) -> str:
    """host[:port] as a browser would report it: lowercase, default port omitted."""
    host = (parts.hostname or "").lower()
    if ":" in host:
        host = f"[{host}]"
    port = parts.port
    if port is not None and port != _DEFAULT_PORTS.get(parts.scheme.lower()):
        return f"{host}:{port}"
    return host


def validate_target_url(raw: str | None, *, self_host: str) -> str:
    if raw is None or not raw.strip():
        raise MissingParamError()

    parts = _split_absolute(raw)
    if parts is None:
        raise InvalidURLError(raw)

    if parts.scheme.lower() not in _ALLOWED_SCHEMES:
        raise BadSchemeError()

    authority = url_authority(parts)
    if authority == self_host.strip().lower():
        raise LoopDetectedError()

    return _normalize(parts, authority)


def _normalize(parts: SplitResult, authority: str) -> str:
    """Serialize the way a browser does: lowercase scheme and host, default port dropped, "/" for an empty path."""
    userinfo, sep, _ = parts.netloc.rpartition("@")
    netloc = f"{userinfo}{sep}{authority}"
    return parts._replace(scheme=parts.scheme.lower(), netloc=netloc, path=parts.path or "/").geturl()


def _unwrap(ip: IPAddress) -> IPAddress:
    if isinstance(ip, ipaddress.IPv6Address):
        if ip.ipv4_mapped is not None:
            return ip.ipv4_mapped
        if ip.sixtofour is not None:
            return ip.sixtofour
    return ip


def is_blocked_address(value: str) -> bool:
    try:
        # Drop any IPv6 zone id ("fe80::1%eth0").
        ip = ipaddress.ip_address(value.split("%", 1)[0])
    except ValueError:
        return True
    ip = _unwrap(ip)
    return bool(
        not ip.is_global
        or ip.is_private
        or ip.is_loopback
        or ip.is_link_local
        or ip.is_multicast
        or ip.is_reserved
        or ip.is_unspecified
    )


def allowed_addresses(addresses: list[str]) -> list[str]:
    out: list[str] = []
    for address in addresses:
        if is_blocked_address(address) or address in out:
            continue
        out.append(address)
    return out
