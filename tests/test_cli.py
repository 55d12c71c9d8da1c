"""Tests for CLI commands."""

import tempfile
from pathlib import Path
from unittest.mock import patch

import pytest
from click.testing import CliRunner

from sitewatcher.cli import cli
from sitewatcher.db import Database
from sitewatcher.models import Page, Site

CRAWL_URL = "https://a.example/list"
ITEM_URL = "https://b.example/new/1"
LISTING = '<html><body><a class="item" href="/new/1">Newest</a></body></html>'
ITEM_PAGE = '<html><head><meta property="og:title" content="Item One"></head></html>'


@pytest.fixture
def db_path():
    """Point the CLI at a temporary database."""
    with tempfile.TemporaryDirectory() as tmpdir:
        path = Path(tmpdir) / "test.db"
        with patch("sitewatcher.db.DEFAULT_DB_PATH", path), patch("sitewatcher.cli.setup_logging"):
            yield path


@pytest.fixture
def runner() -> CliRunner:
    return CliRunner()


def _add_site(db_path: Path, **kwargs) -> Site:
    db = Database(db_path)
    try:
        return db.add_site(
            Site(id=None, title="Example", url="https://b.example", crawl_url=CRAWL_URL, selector="a.item", **kwargs)
        )
    finally:
        db.close()


class TestAddCommand:
    """Tests for the add command."""

    def test_add_and_first_check(self, runner: CliRunner, db_path: Path, web):
        """Test that add stores the site and records the first page."""
        web.pages[CRAWL_URL] = LISTING
        web.pages[ITEM_URL] = ITEM_PAGE

        result = runner.invoke(cli, ["add", "Example", "https://b.example", CRAWL_URL, "a.item"])

        assert result.exit_code == 0, result.output
        assert "Added site 'Example'" in result.output
        assert "New page: Item One" in result.output
        db = Database(db_path)
        try:
            assert db.list_sites()[0].last_url == ITEM_URL
            assert len(db.list_pages()) == 1
        finally:
            db.close()

    def test_add_verification_failure(self, runner: CliRunner, db_path: Path, web):
        """Test that a failed verification exits with an error."""
        result = runner.invoke(cli, ["add", "Example", "https://b.example", CRAWL_URL, "a.item"])

        assert result.exit_code == 1
        assert "Error:" in result.output
        db = Database(db_path)
        try:
            assert db.list_sites() == []
        finally:
            db.close()


class TestSiteCommands:
    """Tests for site management commands."""

    def test_list_sites_empty(self, runner: CliRunner, db_path: Path):
        """Test listing with no sites."""
        result = runner.invoke(cli, ["list-sites"])

        assert result.exit_code == 0
        assert "No sites watched yet" in result.output

    def test_list_sites(self, runner: CliRunner, db_path: Path):
        """Test listing stored sites."""
        site = _add_site(db_path)

        result = runner.invoke(cli, ["list-sites"])

        assert f"[{site.id}] Example" in result.output
        assert "Selector: a.item" in result.output

    def test_update(self, runner: CliRunner, db_path: Path):
        """Test changing a site's selector keeps its last URL."""
        site = _add_site(db_path, last_url=ITEM_URL)

        result = runner.invoke(cli, ["update", str(site.id), "--selector", "li a"])

        assert result.exit_code == 0, result.output
        db = Database(db_path)
        try:
            stored = db.get_site(site.id)
            assert stored.selector == "li a"
            assert stored.last_url == ITEM_URL
            assert stored.title == "Example"
        finally:
            db.close()

    def test_update_cannot_change_last_url(self, runner: CliRunner, db_path: Path):
        """Test that the last-seen item URL is not an update option."""
        site = _add_site(db_path, last_url=ITEM_URL)

        result = runner.invoke(cli, ["update", str(site.id), "--last-url", ""])

        assert result.exit_code == 2
        assert "No such option" in result.output
        db = Database(db_path)
        try:
            assert db.get_site(site.id).last_url == ITEM_URL
        finally:
            db.close()

    def test_update_missing(self, runner: CliRunner, db_path: Path):
        """Test updating a site that does not exist."""
        result = runner.invoke(cli, ["update", "999", "--title", "x"])

        assert result.exit_code == 1
        assert "Site 999 not found" in result.output

    def test_remove(self, runner: CliRunner, db_path: Path):
        """Test removing a site without confirmation."""
        site = _add_site(db_path)

        result = runner.invoke(cli, ["remove", str(site.id), "--yes"])

        assert result.exit_code == 0, result.output
        assert "Removed site 'Example'" in result.output

    def test_remove_missing(self, runner: CliRunner, db_path: Path):
        """Test removing a site that does not exist."""
        result = runner.invoke(cli, ["remove", "999", "--yes"])

        assert result.exit_code == 1


class TestCheckCommand:
    """Tests for the check command."""

    def test_check_all(self, runner: CliRunner, db_path: Path, web):
        """Test checking every site once."""
        _add_site(db_path)
        web.pages[CRAWL_URL] = LISTING
        web.pages[ITEM_URL] = ITEM_PAGE

        result = runner.invoke(cli, ["check"])

        assert result.exit_code == 0, result.output
        assert "New page: Item One" in result.output

    def test_check_failure_is_reported(self, runner: CliRunner, db_path: Path, web):
        """Test that a failed check is reported without crashing."""
        site = _add_site(db_path)

        result = runner.invoke(cli, ["check", str(site.id)])

        assert result.exit_code == 0
        assert "Check failed" in result.output


class TestRunCommand:
    """Tests for the run command."""

    def test_run_syncs_until_interrupted(self, runner: CliRunner, db_path: Path):
        """Test that run reconciles the pool on every sync tick and stops cleanly."""
        with patch("sitewatcher.cli.WatcherPool") as pool_cls, patch("sitewatcher.cli.threading.Event") as event_cls:
            pool = pool_cls.return_value
            pool.load_all.return_value = 0
            event_cls.return_value.wait.side_effect = [False, False, KeyboardInterrupt()]

            result = runner.invoke(cli, ["run", "--owner", "7"])

        assert result.exit_code == 0, result.output
        assert "Stopping" in result.output
        pool.load_all.assert_called_once_with(7)
        pool.start_all.assert_called_once()
        assert pool.sync.call_count == 2
        pool.sync.assert_called_with(7)
        pool.stop_all.assert_called_once()


class TestPageCommands:
    """Tests for page commands."""

    @pytest.fixture
    def page(self, db_path: Path) -> Page:
        site = _add_site(db_path)
        db = Database(db_path)
        try:
            return db.add_page(Page(id=None, site_id=site.id, title="Item One", url=ITEM_URL))
        finally:
            db.close()

    def test_pages(self, runner: CliRunner, page: Page):
        """Test listing unread pages."""
        result = runner.invoke(cli, ["pages"])

        assert "Unread pages (1)" in result.output
        assert "Item One" in result.output
        assert "Site: Example" in result.output

    def test_read_and_unread(self, runner: CliRunner, page: Page):
        """Test toggling a page's read state."""
        result = runner.invoke(cli, ["read", str(page.id)])
        assert f"Marked page {page.id} as read" in result.output

        result = runner.invoke(cli, ["read", str(page.id)])
        assert "already marked as read" in result.output

        result = runner.invoke(cli, ["unread", str(page.id)])
        assert f"Marked page {page.id} as unread" in result.output

    def test_read_all(self, runner: CliRunner, page: Page):
        """Test marking every page read."""
        result = runner.invoke(cli, ["read-all", "--yes"])

        assert "Marked 1 page(s) as read" in result.output

    def test_delete_page(self, runner: CliRunner, page: Page):
        """Test deleting a page."""
        result = runner.invoke(cli, ["delete-page", str(page.id)])
        assert result.exit_code == 0

        result = runner.invoke(cli, ["delete-page", str(page.id)])
        assert result.exit_code == 1
        assert f"Page {page.id} not found" in result.output
