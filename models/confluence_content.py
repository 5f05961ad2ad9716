from __future__ import annotations

from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator


def _to_str_id(v: Any) -> Any:
    # Some Confluence versions return numeric ids
    if isinstance(v, int):
        return str(v)
    return v


class ContentLinks(BaseModel):
    model_config = ConfigDict(extra="allow", populate_by_name=True)

    base: Optional[str] = None
    webui: Optional[str] = None
    download: Optional[str] = None


class ContentVersion(BaseModel):
    model_config = ConfigDict(extra="allow")

    number: int = 1


class RemotePage(BaseModel):
    """A Confluence page as returned by ``/rest/api/content``."""

    model_config = ConfigDict(extra="allow", populate_by_name=True)

    id: str
    title: str
    type: str = "page"
    version: ContentVersion = Field(default_factory=ContentVersion)
    links: ContentLinks = Field(default_factory=ContentLinks, alias="_links")

    @field_validator("id", mode="before")
    @classmethod
    def _normalize_id(cls, v: Any):
        return _to_str_id(v)

    def web_url(self, base_url: str) -> str:
        if self.links.webui:
            base = self.links.base or base_url
            return f"{base.rstrip('/')}{self.links.webui}"
        return f"{base_url.rstrip('/')}/pages/{self.id}"


class RemoteAttachment(BaseModel):
    """An attachment of a Confluence page, identified by its file name."""

    model_config = ConfigDict(extra="allow", populate_by_name=True)

    id: str
    title: str
    version: ContentVersion = Field(default_factory=ContentVersion)
    links: ContentLinks = Field(default_factory=ContentLinks, alias="_links")

    @field_validator("id", mode="before")
    @classmethod
    def _normalize_id(cls, v: Any):
        return _to_str_id(v)


class TransferState(BaseModel):
    """Documents fully imported by previous runs, persisted as JSON."""

    model_config = ConfigDict(extra="allow")

    transferred: list[str] = Field(default_factory=list)

    @field_validator("transferred", mode="before")
    @classmethod
    def _dedup(cls, v: Any):
        if v is None:
            return []
        if not isinstance(v, (list, tuple)):
            return v
        deduped = []
        for item in v:
            if item not in deduped:
                deduped.append(item)
        return deduped

    def is_transferred(self, identity: str) -> bool:
        return identity in self.transferred

    def mark_transferred(self, identity: str) -> None:
        if identity not in self.transferred:
            self.transferred.append(identity)
