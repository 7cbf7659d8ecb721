from __future__ import annotations

import io
import logging
import re
import xml.etree.ElementTree as ET

import feedparser
from defusedxml import DefusedXmlException
from defusedxml import ElementTree as DefusedET

from patchrss.errors import UnparseableFeedError
from patchrss.schemas import ATOM_NAMESPACE, DC_NAMESPACE, Feed, FeedItem

_log = logging.getLogger(__name__)

_XML_DECLARATION_RE = re.compile(r"^\s*<\?xml[^>]*\?>")

_RDF_ROOT = "{http://www.w3.org/1999/02/22-rdf-syntax-ns#}RDF"
_RSS_RDF_NAMESPACES = ("{http://purl.org/rss/1.0/}", "{http://my.netscape.com/rdf/simple/0.9/}")
_ATOM_NAMESPACES = (f"{{{ATOM_NAMESPACE}}}", "{http://purl.org/atom/ns#}")
_DC_CREATOR = f"{{{DC_NAMESPACE}}}creator"


def _text(element: ET.Element | None) -> str | None:
    if element is None:
        return None
    value = "".join(element.itertext()).strip()
    return value or None


def _child_text(parent: ET.Element, *tags: str) -> str | None:
    for tag in tags:
        value = _text(parent.find(tag))
        if value:
            return value
    return None


def _atom_link(parent: ET.Element, ns: str) -> str | None:
    for link in parent.findall(f"{ns}link"):
        if link.get("rel", "alternate") != "alternate":
            continue
        href = (link.get("href") or "").strip()
        if href:
            return href
    return None


def _from_rss(root: ET.Element) -> Feed:
    channel = root.find("channel")
    if channel is None:
        _log.warning("RSS document has no <channel>")
        raise UnparseableFeedError()
    return Feed(
        title=_child_text(channel, "title"),
        link=_child_text(channel, "link"),
        description=_child_text(channel, "description"),
        last_build_date=_child_text(channel, "lastBuildDate"),
        generator=_child_text(channel, "generator"),
        items=[
            FeedItem(
                title=_child_text(item, "title"),
                link=_child_text(item, "link"),
                description=_child_text(item, "description"),
                pub_date=_child_text(item, "pubDate"),
                guid=_child_text(item, "guid"),
                dc_creator=_child_text(item, _DC_CREATOR),
            )
            for item in channel.findall("item")
        ],
    )


def _from_rdf(root: ET.Element) -> Feed:
    for ns in _RSS_RDF_NAMESPACES:
        channel = root.find(f"{ns}channel")
        if channel is not None:
            break
    else:
        _log.warning("RDF document has no RSS channel")
        raise UnparseableFeedError()
    return Feed(
        title=_child_text(channel, f"{ns}title"),
        link=_child_text(channel, f"{ns}link"),
        description=_child_text(channel, f"{ns}description"),
        items=[
            FeedItem(
                title=_child_text(item, f"{ns}title"),
                link=_child_text(item, f"{ns}link"),
                description=_child_text(item, f"{ns}description"),
                dc_creator=_child_text(item, _DC_CREATOR),
            )
            for item in root.findall(f"{ns}item")
        ],
    )


def _from_atom(root: ET.Element, ns: str) -> Feed:
    # Atom 1.0 names first, then their Atom 0.3 predecessors.
    return Feed(
        title=_child_text(root, f"{ns}title"),
        link=_atom_link(root, ns),
        description=_child_text(root, f"{ns}subtitle", f"{ns}tagline"),
        last_build_date=_child_text(root, f"{ns}updated", f"{ns}modified"),
        generator=_child_text(root, f"{ns}generator"),
        items=[
            FeedItem(
                title=_child_text(entry, f"{ns}title"),
                link=_atom_link(entry, ns),
                description=_child_text(entry, f"{ns}summary"),
                pub_date=_child_text(entry, f"{ns}published", f"{ns}issued"),
                guid=_child_text(entry, f"{ns}id"),
                dc_creator=_child_text(entry, _DC_CREATOR),
            )
            for entry in root.findall(f"{ns}entry")
        ],
    )


def _parse_tree(content: bytes, encoding: str | None) -> ET.Element:
    if not encoding:
        _log.warning("Body could not be decoded in any candidate charset")
        raise UnparseableFeedError()
    try:
        text = content.decode(encoding)
    except (LookupError, UnicodeDecodeError) as e:
        _log.warning("Body could not be decoded as %s: %s", encoding, e)
        raise UnparseableFeedError() from e
    # Already decoded; the declared encoding no longer applies.
    text = _XML_DECLARATION_RE.sub("", text.lstrip("\ufeff"), count=1)
    try:
        return DefusedET.fromstring(text)
    except (ET.ParseError, DefusedXmlException) as e:
        _log.warning("Body is not well-formed XML: %s", e)
        raise UnparseableFeedError() from e


def parse_feed(content: bytes, *, content_type: str | None = None) -> Feed:
    """Parse an RSS 2.0 / RSS 1.0 / Atom document into a Feed.

    feedparser decides whether the body is a feed at all and which charset
    decodes it. Field values are then read from the exact source elements:
    feedparser folds several elements into one key (``author`` also holds
    ``dc:creator`` and ``itunes:author``, ``summary`` falls back to
    ``content:encoded``), which would emit elements the upstream never had.
    """
    headers = {"content-type": content_type} if content_type else {}
    # A file object, never raw bytes: feedparser tries bytes as a local path first.
    parsed = feedparser.parse(
        io.BytesIO(content),
        response_headers=headers,
        resolve_relative_uris=False,
        sanitize_html=False,
    )
    if not parsed.get("version"):
        exc = parsed.get("bozo_exception")
        _log.warning("Body is not a recognizable feed: %s", exc or "unknown format")
        raise UnparseableFeedError()

    root = _parse_tree(content, parsed.get("encoding"))
    if root.tag == "rss":
        return _from_rss(root)
    if root.tag == _RDF_ROOT:
        return _from_rdf(root)
    for ns in _ATOM_NAMESPACES:
        if root.tag == f"{ns}feed":
            return _from_atom(root, ns)
    _log.warning("Unsupported feed document <%s> (%s)", root.tag, parsed.get("version"))
    raise UnparseableFeedError()
