from __future__ import annotations

import logging

from fastapi import APIRouter, Depends
from fastapi.responses import RedirectResponse, Response

from patchrss.connectors.base import Fetcher
from patchrss.connectors.feed import FeedFetcher
from patchrss.schemas import RequestContext
from patchrss.services.content_type import resolve_content_type
from patchrss.services.feed_parser import parse_feed
from patchrss.services.rewriter import build_patched_rss
from patchrss.services.url_guard import validate_target_url
from patchrss.settings import settings

_log = logging.getLogger(__name__)

CACHE_HEADERS = {"Cache-Control": "public, s-maxage=60"}

router = APIRouter(tags=["rss"])


def get_fetcher() -> Fetcher:
    return FeedFetcher(
        user_agent=settings.user_agent,
        timeout_seconds=settings.fetch_timeout_msec / 1000,
        max_bytes=settings.max_body_bytes,
        max_redirects=settings.max_redirects,
    )


@router.get("/")
def index():
    return RedirectResponse(settings.docs_url, status_code=302)


@router.get("/rss")
def patch_rss(url: str | None = None, fetcher: Fetcher = Depends(get_fetcher)):
    ctx = RequestContext(
        raw_url=url or "",
        target_url=validate_target_url(url, self_host=settings.self_host),
        self_host=settings.self_host,
    )

    upstream = fetcher.fetch(ctx.target_url)
    content_type, charset = resolve_content_type(upstream.content_type)
    feed = parse_feed(upstream.content, content_type=upstream.content_type)
    body = build_patched_rss(ctx.target_url, feed, encoding=charset)

    _log.info("Patched %s (%d items, upstream %s)", ctx.target_url, len(feed.items), upstream.status_code)
    return Response(content=body, media_type=content_type, headers=dict(CACHE_HEADERS))
