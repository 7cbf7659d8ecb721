from __future__ import annotations

from pydantic import BaseModel, Field

ATOM_NAMESPACE = "http://www.w3.org/2005/Atom"
DC_NAMESPACE = "http://purl.org/dc/elements/1.1/"


class FeedItem(BaseModel):
    title: str | None = None
    link: str | None = None
    description: str | None = None
    pub_date: str | None = None
    guid: str | None = None
    dc_creator: str | None = None

    @property
    def extension_prefixes(self) -> set[str]:
        prefixes: set[str] = set()
        if self.dc_creator:
            prefixes.add("dc")
        return prefixes


class Feed(BaseModel):
    title: str | None = None
    link: str | None = None
    description: str | None = None
    last_build_date: str | None = None
    generator: str | None = None
    items: list[FeedItem] = Field(default_factory=list)

    @property
    def namespaces(self) -> set[str]:
        """Extension prefixes referenced by at least one item."""
        used: set[str] = set()
        for item in self.items:
            used |= item.extension_prefixes
        return used


class RequestContext(BaseModel):
    raw_url: str
    target_url: str
    self_host: str
