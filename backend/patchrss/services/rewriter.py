from __future__ import annotations

import re
import xml.etree.ElementTree as ET

from patchrss.schemas import ATOM_NAMESPACE, DC_NAMESPACE, Feed, FeedItem
from patchrss.services.url_guard import is_valid_http_url

_NAMESPACE_URIS = {"dc": DC_NAMESPACE}
_ADVENTAR_RSS_RE = re.compile(r"^(https://adventar\.org/calendars/[0-9]+)\.rss$")
# Code points outside the XML 1.0 Char production.
_XML_ILLEGAL_RE = re.compile("[\x00-\x08\x0b\x0c\x0e-\x1f\ufffe\uffff]")


def _clean(value: str) -> str:
    return _XML_ILLEGAL_RE.sub("", value)


def _append(parent: ET.Element, tag: str, value: str | None, attrib: dict[str, str] | None = None) -> None:
    if not value:
        return
    ET.SubElement(parent, tag, attrib or {}).text = _clean(value)


def derive_link(original_url: str) -> str:
    # adventar.org calendar feeds point <link> at nothing useful; use the HTML page instead.
    matched = _ADVENTAR_RSS_RE.match(original_url)
    if matched:
        return matched.group(1)
    return original_url


def is_guid_permalink(guid: str) -> bool:
    return is_valid_http_url(guid)


def _build_item(channel: ET.Element, item: FeedItem) -> None:
    node = ET.SubElement(channel, "item")
    _append(node, "title", item.title)
    _append(node, "link", item.link)
    _append(node, "pubDate", item.pub_date)
    _append(node, "description", item.description)
    if item.guid:
        _append(node, "guid", item.guid, {"isPermaLink": "true" if is_guid_permalink(item.guid) else "false"})
    _append(node, "dc:creator", item.dc_creator)


def build_patched_rss(original_url: str, feed: Feed, *, encoding: str = "utf-8") -> bytes:
    """Serialize ``feed`` as a normalized RSS 2.0 document.

    Only namespaces actually referenced by emitted elements are declared;
    ``atom`` is always present. The XML declaration names ``encoding``.
    """
    rss = ET.Element("rss", {"version": "2.0", "xmlns:atom": ATOM_NAMESPACE})
    for prefix in sorted(feed.namespaces):
        rss.set(f"xmlns:{prefix}", _NAMESPACE_URIS[prefix])

    channel = ET.SubElement(rss, "channel")
    _append(channel, "title", f"{feed.title} (patched)" if feed.title else None)
    link = feed.link if is_valid_http_url(feed.link) else derive_link(original_url)
    _append(channel, "link", link)
    _append(channel, "description", feed.description)
    _append(channel, "lastBuildDate", feed.last_build_date)
    _append(channel, "generator", f"{feed.generator} (patched by rsspatch)" if feed.generator else None)

    for item in feed.items:
        _build_item(channel, item)

    return ET.tostring(rss, encoding=encoding, xml_declaration=True)
