from __future__ import annotations

import codecs
from email.message import Message

RSS_MEDIA_TYPE = "application/rss+xml"
DEFAULT_CHARSET = "utf-8"


def parse_charset(header: str | None) -> str | None:
    if not header or not header.strip():
        return None
    msg = Message()
    msg["content-type"] = header
    charset = msg.get_param("charset")
    if not isinstance(charset, str):
        return None
    charset = charset.strip()
    if not charset:
        return None
    try:
        codecs.lookup(charset)
    except LookupError:
        return None
    return charset


def resolve_content_type(header: str | None) -> tuple[str, str]:
    """Return (downstream content-type, charset).

    The upstream media type is discarded; only its charset survives.
    """
    charset = parse_charset(header) or DEFAULT_CHARSET
    return f"{RSS_MEDIA_TYPE}; charset={charset}", charset
