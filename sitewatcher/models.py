"""Data models for SiteWatcher."""

from dataclasses import asdict, dataclass
from datetime import datetime
from typing import Any, Optional


@dataclass
class Site:
    """Represents a watched web site."""

    id: Optional[int]
    title: str
    url: str
    crawl_url: str
    selector: str
    last_url: str = ""
    owner_id: Optional[int] = None


@dataclass
class Page:
    """Represents a page discovered on a watched site."""

    id: Optional[int]
    site_id: int
    title: str
    url: str
    thumbnail_url: str = ""
    description: str = ""
    discovered_date: Optional[datetime] = None
    is_read: bool = False
    owner_id: Optional[int] = None


@dataclass
class SiteChanges:
    """Partial update for a site's configuration.

    A field left as None is not provided. Any other value, including an
    empty string, is written as given. The last-seen item URL is not part
    of this; only ingestion advances it.
    """

    title: Optional[str] = None
    url: Optional[str] = None
    crawl_url: Optional[str] = None
    selector: Optional[str] = None

    def fields(self) -> dict[str, Any]:
        """Return only the provided fields."""
        return {name: value for name, value in asdict(self).items() if value is not None}

    def is_empty(self) -> bool:
        return not self.fields()
