"""Business logic controllers for SiteWatcher pages."""

from typing import Optional

from .db import Database
from .gateway import SiteNotFoundError
from .models import Page, Site


class PageNotFoundError(Exception):
    """Raised when a page is not found."""

    def __init__(self, page_id: int):
        self.page_id = page_id
        super().__init__(f"Page {page_id} not found")


def get_sites(db: Database, owner_id: Optional[int] = None) -> list[Site]:
    """List watched sites, optionally for a single owner."""
    return db.list_sites(owner_id)


def get_pages(
    db: Database,
    show_all: bool = False,
    site_id: Optional[int] = None,
    owner_id: Optional[int] = None,
) -> tuple[list[Page], dict[int, str]]:
    """Get pages with optional filters.

    Args:
        db: Database instance
        show_all: If True, include read pages
        site_id: Optional site id to filter by
        owner_id: Optional owner id to filter by

    Returns:
        Tuple of (pages list, site_id -> site title mapping)

    Raises:
        SiteNotFoundError: If site_id provided but not found
    """
    if site_id is not None and db.get_site(site_id) is None:
        raise SiteNotFoundError(site_id)

    pages = db.list_pages(unread_only=not show_all, site_id=site_id, owner_id=owner_id)
    site_titles = {s.id: s.title for s in db.list_sites()}

    return pages, site_titles


def mark_page_read(db: Database, page_id: int) -> Page:
    """Mark a page as read.

    Args:
        db: Database instance
        page_id: Page ID to mark

    Returns:
        The page (before marking)

    Raises:
        PageNotFoundError: If page not found
    """
    page = db.get_page(page_id)
    if not page:
        raise PageNotFoundError(page_id)

    if not page.is_read:
        db.mark_page_read(page_id)

    return page


def mark_page_unread(db: Database, page_id: int) -> Page:
    """Mark a page as unread.

    Args:
        db: Database instance
        page_id: Page ID to mark

    Returns:
        The page (before marking)

    Raises:
        PageNotFoundError: If page not found
    """
    page = db.get_page(page_id)
    if not page:
        raise PageNotFoundError(page_id)

    if page.is_read:
        db.mark_page_unread(page_id)

    return page


def mark_all_pages_read(db: Database, site_id: Optional[int] = None) -> list[Page]:
    """Mark all unread pages as read.

    Args:
        db: Database instance
        site_id: Optional site id to filter by

    Returns:
        List of pages that were marked as read

    Raises:
        SiteNotFoundError: If site_id provided but not found
    """
    if site_id is not None and db.get_site(site_id) is None:
        raise SiteNotFoundError(site_id)

    pages = db.list_pages(unread_only=True, site_id=site_id)

    for page in pages:
        db.mark_page_read(page.id)

    return pages


def remove_page(db: Database, page_id: int) -> None:
    """Delete a page.

    Raises:
        PageNotFoundError: If page not found
    """
    if not db.remove_page(page_id):
        raise PageNotFoundError(page_id)
