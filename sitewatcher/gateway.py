"""Persistence contract consumed by watchers and the watcher pool."""

from typing import Optional, Protocol

from .models import Page, Site, SiteChanges


class PersistenceGateway(Protocol):
    """Durable storage for sites and pages.

    Conflicting writes to the same site row are serialized by the
    implementation. record_page performs both ingestion writes as one unit.
    """

    def list_sites(self, owner_id: Optional[int] = None) -> list[Site]: ...

    def get_site(self, site_id: int) -> Optional[Site]: ...

    def add_site(self, site: Site) -> Site: ...

    def remove_site(self, site_id: int, delete_pages: bool = False) -> int: ...

    def update_site(self, site_id: int, changes: SiteChanges) -> int: ...

    def add_page(self, page: Page) -> Page: ...

    def set_site_last_url(self, site_id: int, url: str) -> None: ...

    def record_page(self, page: Page, last_url: str) -> Page: ...


class PersistenceError(Exception):
    """Raised when the storage layer fails."""

    pass


class SiteNotFoundError(PersistenceError):
    """Raised when a site does not exist in storage."""

    def __init__(self, site_id: int):
        self.site_id = site_id
        super().__init__(f"Site {site_id} not found")
