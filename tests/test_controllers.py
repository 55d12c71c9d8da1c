"""Tests for controllers."""

import tempfile
from pathlib import Path

import pytest

from sitewatcher.controllers import (
    PageNotFoundError,
    get_pages,
    get_sites,
    mark_all_pages_read,
    mark_page_read,
    mark_page_unread,
    remove_page,
)
from sitewatcher.db import Database
from sitewatcher.gateway import SiteNotFoundError
from sitewatcher.models import Page, Site


@pytest.fixture
def db():
    """Create a temporary database for testing."""
    with tempfile.TemporaryDirectory() as tmpdir:
        db_path = Path(tmpdir) / "test.db"
        database = Database(db_path)
        yield database
        database.close()


def _add_site(db: Database, title: str = "Test Site", owner_id=None) -> Site:
    return db.add_site(
        Site(
            id=None,
            title=title,
            url="https://example.com",
            crawl_url="https://example.com/list",
            selector="a.item",
            owner_id=owner_id,
        )
    )


def _add_page(db: Database, site: Site, title: str, url: str) -> Page:
    return db.add_page(Page(id=None, site_id=site.id, title=title, url=url, owner_id=site.owner_id))


class TestGetSites:
    """Tests for get_sites controller."""

    def test_get_sites_empty(self, db: Database):
        """Test listing when no sites exist."""
        assert get_sites(db) == []

    def test_get_sites_by_owner(self, db: Database):
        """Test filtering sites by owner."""
        _add_site(db, "Mine", owner_id=1)
        _add_site(db, "Theirs", owner_id=2)

        sites = get_sites(db, owner_id=1)

        assert [s.title for s in sites] == ["Mine"]


class TestGetPages:
    """Tests for get_pages controller."""

    def test_get_pages_empty(self, db: Database):
        """Test getting pages when none exist."""
        pages, site_titles = get_pages(db)

        assert pages == []
        assert site_titles == {}

    def test_get_pages_unread_only(self, db: Database):
        """Test getting only unread pages."""
        site = _add_site(db)
        _add_page(db, site, "Unread", "https://example.com/1")
        read = _add_page(db, site, "Read", "https://example.com/2")
        db.mark_page_read(read.id)

        pages, site_titles = get_pages(db, show_all=False)

        assert len(pages) == 1
        assert pages[0].title == "Unread"
        assert site_titles[site.id] == "Test Site"

    def test_get_pages_show_all(self, db: Database):
        """Test getting all pages including read."""
        site = _add_site(db)
        _add_page(db, site, "Unread", "https://example.com/1")
        read = _add_page(db, site, "Read", "https://example.com/2")
        db.mark_page_read(read.id)

        pages, _ = get_pages(db, show_all=True)

        assert len(pages) == 2

    def test_get_pages_filter_by_site(self, db: Database):
        """Test filtering pages by site."""
        site1 = _add_site(db, "Site 1")
        site2 = _add_site(db, "Site 2")
        _add_page(db, site1, "P1", "https://example1.com/1")
        _add_page(db, site2, "P2", "https://example2.com/1")

        pages, _ = get_pages(db, show_all=True, site_id=site1.id)

        assert len(pages) == 1
        assert pages[0].title == "P1"

    def test_get_pages_filter_by_owner(self, db: Database):
        """Test filtering pages by owner."""
        mine = _add_site(db, "Mine", owner_id=1)
        theirs = _add_site(db, "Theirs", owner_id=2)
        _add_page(db, mine, "P1", "https://example1.com/1")
        _add_page(db, theirs, "P2", "https://example2.com/1")

        pages, _ = get_pages(db, show_all=True, owner_id=2)

        assert [p.title for p in pages] == ["P2"]

    def test_get_pages_site_not_found_raises(self, db: Database):
        """Test that filtering by non-existent site raises error."""
        with pytest.raises(SiteNotFoundError) as exc_info:
            get_pages(db, site_id=999)

        assert exc_info.value.site_id == 999


class TestMarkPageRead:
    """Tests for mark_page_read controller."""

    def test_mark_page_read_success(self, db: Database):
        """Test marking a page as read."""
        page = _add_page(db, _add_site(db), "Test", "https://example.com/1")

        result = mark_page_read(db, page.id)

        assert result.id == page.id
        assert result.is_read is False
        assert db.get_page(page.id).is_read is True

    def test_mark_page_read_already_read(self, db: Database):
        """Test marking an already read page."""
        page = _add_page(db, _add_site(db), "Test", "https://example.com/1")
        db.mark_page_read(page.id)

        result = mark_page_read(db, page.id)

        assert result.is_read is True

    def test_mark_page_read_not_found_raises(self, db: Database):
        """Test that marking non-existent page raises error."""
        with pytest.raises(PageNotFoundError) as exc_info:
            mark_page_read(db, 999)

        assert exc_info.value.page_id == 999


class TestMarkPageUnread:
    """Tests for mark_page_unread controller."""

    def test_mark_page_unread_success(self, db: Database):
        """Test marking a read page as unread."""
        page = _add_page(db, _add_site(db), "Test", "https://example.com/1")
        db.mark_page_read(page.id)

        result = mark_page_unread(db, page.id)

        assert result.is_read is True
        assert db.get_page(page.id).is_read is False

    def test_mark_page_unread_not_found_raises(self, db: Database):
        """Test that marking non-existent page raises error."""
        with pytest.raises(PageNotFoundError):
            mark_page_unread(db, 999)


class TestMarkAllPagesRead:
    """Tests for mark_all_pages_read controller."""

    def test_mark_all_pages_read(self, db: Database):
        """Test marking every unread page."""
        site = _add_site(db)
        _add_page(db, site, "P1", "https://example.com/1")
        _add_page(db, site, "P2", "https://example.com/2")

        marked = mark_all_pages_read(db)

        assert len(marked) == 2
        assert db.list_pages(unread_only=True) == []

    def test_mark_all_pages_read_for_site(self, db: Database):
        """Test that only the given site's pages are marked."""
        site1 = _add_site(db, "Site 1")
        site2 = _add_site(db, "Site 2")
        _add_page(db, site1, "P1", "https://example1.com/1")
        _add_page(db, site2, "P2", "https://example2.com/1")

        marked = mark_all_pages_read(db, site1.id)

        assert [p.title for p in marked] == ["P1"]
        assert [p.title for p in db.list_pages(unread_only=True)] == ["P2"]

    def test_mark_all_pages_read_site_not_found_raises(self, db: Database):
        """Test that a non-existent site raises error."""
        with pytest.raises(SiteNotFoundError):
            mark_all_pages_read(db, 999)


class TestRemovePage:
    """Tests for remove_page controller."""

    def test_remove_page_success(self, db: Database):
        """Test deleting a page."""
        page = _add_page(db, _add_site(db), "Test", "https://example.com/1")

        remove_page(db, page.id)

        assert db.get_page(page.id) is None

    def test_remove_page_not_found_raises(self, db: Database):
        """Test that deleting non-existent page raises error."""
        with pytest.raises(PageNotFoundError):
            remove_page(db, 999)
