"""CLI commands for SiteWatcher."""

import threading
from typing import Optional

import click

from . import config
from .controllers import (
    PageNotFoundError,
    get_pages,
    get_sites,
    mark_all_pages_read,
    mark_page_read,
    mark_page_unread,
    remove_page,
)
from .db import Database
from .gateway import PersistenceError, SiteNotFoundError
from .log import get_logger, setup_logging
from .models import Site, SiteChanges
from .pool import VerificationError, WatcherPool
from .watcher import Watcher

logger = get_logger(__name__)


def _fail(message: str) -> None:
    click.echo(click.style(f"Error: {message}", fg="red"))
    raise SystemExit(1)


@click.group()
@click.version_option(package_name="sitewatcher")
@click.option("--log-level", envvar="LOG_LEVEL", default="WARNING", show_default=True, help="Logging level")
def cli(log_level: str):
    """SiteWatcher - Watch web sites and collect newly published pages."""
    setup_logging(log_level)


@cli.command()
@click.argument("title")
@click.argument("url")
@click.argument("crawl_url")
@click.argument("selector")
@click.option("--owner", "owner_id", type=int, help="Owning user id")
def add(title: str, url: str, crawl_url: str, selector: str, owner_id: Optional[int]):
    """Add a new site to watch.

    URL is the site's base URL, CRAWL_URL the page listing new items, and
    SELECTOR a CSS selector matching the newest item's link.
    """
    db = Database()
    try:
        pool = WatcherPool(db, autostart=False)
        try:
            site = pool.add(
                Site(
                    id=None,
                    title=title,
                    url=url,
                    crawl_url=crawl_url,
                    selector=selector,
                    owner_id=owner_id,
                )
            )
        except VerificationError as e:
            _fail(str(e))
        except PersistenceError as e:
            _fail(f"Could not store site: {e}")

        click.echo(click.style(f"Added site '{title}' [{site.id}]", fg="green"))

        # Nothing is scheduled here; run the first check in the foreground
        watcher = pool.get(site.id)
        _print_check_result(watcher, watcher.check())
    finally:
        db.close()


@cli.command()
@click.argument("site_id", type=int)
@click.option("--delete-pages", is_flag=True, help="Also delete the site's pages")
@click.option("--yes", "-y", is_flag=True, help="Skip confirmation prompt")
def remove(site_id: int, delete_pages: bool, yes: bool):
    """Stop watching a site."""
    db = Database()
    try:
        site = db.get_site(site_id)
        if not site:
            _fail(f"Site {site_id} not found")

        if not yes:
            scope = " and all its pages" if delete_pages else ""
            click.confirm(f"Remove site '{site.title}'{scope}?", abort=True)

        pool = WatcherPool(db, autostart=False)
        pool.load_all()
        try:
            pool.remove(site_id, delete_pages=delete_pages)
        except SiteNotFoundError as e:
            _fail(str(e))
        click.echo(click.style(f"Removed site '{site.title}'", fg="green"))
    finally:
        db.close()


@cli.command()
@click.argument("site_id", type=int)
@click.option("--title", help="New title")
@click.option("--url", help="New base URL")
@click.option("--crawl-url", help="New crawl URL")
@click.option("--selector", help="New CSS selector")
def update(
    site_id: int,
    title: Optional[str],
    url: Optional[str],
    crawl_url: Optional[str],
    selector: Optional[str],
):
    """Change a site's settings."""
    changes = SiteChanges(title=title, url=url, crawl_url=crawl_url, selector=selector)
    db = Database()
    try:
        pool = WatcherPool(db, autostart=False)
        pool.load_all()
        try:
            site = pool.update(site_id, changes)
        except PersistenceError as e:
            _fail(str(e))
        click.echo(click.style(f"Updated site '{site.title}'", fg="green"))
    finally:
        db.close()


@cli.command("list-sites")
@click.option("--owner", "owner_id", type=int, help="Only sites of this user")
def list_sites(owner_id: Optional[int]):
    """List all watched sites."""
    db = Database()
    try:
        sites = get_sites(db, owner_id)
        if not sites:
            click.echo("No sites watched yet. Use 'sitewatcher add' to add one.")
            return

        click.echo(click.style(f"Watched sites ({len(sites)}):", fg="cyan", bold=True))
        click.echo()

        for site in sites:
            click.echo(click.style(f"  [{site.id}] {site.title}", fg="white", bold=True))
            click.echo(f"    URL: {site.url}")
            click.echo(f"    Crawl: {site.crawl_url}")
            click.echo(f"    Selector: {site.selector}")
            if site.last_url:
                click.echo(f"    Last item: {site.last_url}")
            click.echo()
    finally:
        db.close()


@cli.command()
@click.argument("site_id", type=int, required=False)
def check(site_id: Optional[int]):
    """Check sites for a new page once.

    If SITE_ID is provided, only that site is checked.
    Otherwise, all sites are checked.
    """
    db = Database()
    try:
        if site_id is not None:
            site = db.get_site(site_id)
            if site is None:
                _fail(f"Site {site_id} not found")
            sites = [site]
        else:
            sites = db.list_sites()
            if not sites:
                click.echo("No sites watched yet. Use 'sitewatcher add' to add one.")
                return
            click.echo(click.style(f"Checking {len(sites)} site(s)...", fg="cyan"))
            click.echo()

        total_new = 0
        for site in sites:
            watcher = Watcher(site, db)
            page = watcher.check()
            _print_check_result(watcher, page)
            if page is not None:
                total_new += 1

        if len(sites) > 1:
            click.echo()
            if total_new > 0:
                click.echo(click.style(f"Found {total_new} new page(s) total!", fg="green", bold=True))
            else:
                click.echo(click.style("No new pages found.", fg="yellow"))
    finally:
        db.close()


def _print_check_result(watcher: Watcher, page):
    """Print the outcome of a single check."""
    click.echo(click.style(f"  {watcher.site.title}", fg="white", bold=True))
    if watcher.failures:
        click.echo(click.style("    Check failed (see log output)", fg="red"))
    elif page is None:
        click.echo("    No new page")
    else:
        click.echo(click.style(f"    New page: {page.title or page.url}", fg="green"))
        click.echo(f"    URL: {page.url}")


@cli.command()
@click.option("--owner", "owner_id", type=int, help="Only watch sites of this user")
def run(owner_id: Optional[int]):
    """Watch every site until interrupted.

    Sites added, changed or removed by other commands are picked up every
    SITEWATCHER_SYNC_SECONDS.
    """
    db = Database()
    pool = WatcherPool(db)
    stopping = threading.Event()
    try:
        count = pool.load_all(owner_id)
        pool.start_all()
        click.echo(click.style(f"Watching {count} site(s). Press Ctrl+C to stop.", fg="cyan"))
        while not stopping.wait(config.SYNC_INTERVAL):
            try:
                pool.sync(owner_id)
            except PersistenceError as e:
                logger.error("Failed to sync watchers: %s", e)
    except KeyboardInterrupt:
        click.echo("Stopping...")
    finally:
        pool.stop_all()
        db.close()


@cli.command()
@click.option("--all", "-a", "show_all", is_flag=True, help="Show all pages (including read)")
@click.option("--site", "-s", "site_id", type=int, help="Filter by site id")
def pages(show_all: bool, site_id: Optional[int]):
    """List pages.

    By default, shows only unread pages.
    """
    db = Database()
    try:
        try:
            pages_list, site_titles = get_pages(db, show_all=show_all, site_id=site_id)
        except SiteNotFoundError as e:
            _fail(str(e))

        if not pages_list:
            if show_all:
                click.echo("No pages found.")
            else:
                click.echo(click.style("No unread pages!", fg="green"))
            return

        label = "All pages" if show_all else "Unread pages"
        click.echo(click.style(f"{label} ({len(pages_list)}):", fg="cyan", bold=True))
        click.echo()

        for page in pages_list:
            _print_page(page, site_titles.get(page.site_id, "Unknown"))
    finally:
        db.close()


def _print_page(page, site_title: str):
    """Print a single page."""
    status = click.style("[read]", fg="bright_black") if page.is_read else click.style("[new]", fg="yellow")
    id_str = click.style(f"[{page.id}]", fg="cyan")

    click.echo(f"  {id_str} {status} {page.title}")
    click.echo(f"       Site: {site_title}")
    click.echo(f"       URL: {page.url}")
    if page.description:
        click.echo(f"       {page.description}")
    if page.discovered_date:
        click.echo(f"       Found: {page.discovered_date.strftime('%Y-%m-%d %H:%M')}")
    click.echo()


@cli.command()
@click.argument("page_id", type=int)
def read(page_id: int):
    """Mark a page as read."""
    db = Database()
    try:
        try:
            page = mark_page_read(db, page_id)
        except PageNotFoundError as e:
            _fail(str(e))

        if page.is_read:
            click.echo(f"Page {page_id} is already marked as read.")
            return
        click.echo(click.style(f"Marked page {page_id} as read", fg="green"))
    finally:
        db.close()


@cli.command("read-all")
@click.option("--site", "-s", "site_id", type=int, help="Only mark pages from this site")
@click.option("--yes", "-y", is_flag=True, help="Skip confirmation prompt")
def read_all(site_id: Optional[int], yes: bool):
    """Mark all unread pages as read."""
    db = Database()
    try:
        if site_id is not None and db.get_site(site_id) is None:
            _fail(f"Site {site_id} not found")

        unread = db.list_pages(unread_only=True, site_id=site_id)
        if not unread:
            click.echo(click.style("No unread pages to mark as read.", fg="green"))
            return

        if not yes:
            scope = f"from site {site_id}" if site_id is not None else "all sites"
            click.confirm(f"Mark {len(unread)} page(s) {scope} as read?", abort=True)

        marked = mark_all_pages_read(db, site_id)
        click.echo(click.style(f"Marked {len(marked)} page(s) as read", fg="green"))
    finally:
        db.close()


@cli.command()
@click.argument("page_id", type=int)
def unread(page_id: int):
    """Mark a page as unread."""
    db = Database()
    try:
        try:
            page = mark_page_unread(db, page_id)
        except PageNotFoundError as e:
            _fail(str(e))

        if not page.is_read:
            click.echo(f"Page {page_id} is already marked as unread.")
            return
        click.echo(click.style(f"Marked page {page_id} as unread", fg="green"))
    finally:
        db.close()


@cli.command("delete-page")
@click.argument("page_id", type=int)
def delete_page(page_id: int):
    """Delete a page."""
    db = Database()
    try:
        try:
            remove_page(db, page_id)
        except PageNotFoundError as e:
            _fail(str(e))
        click.echo(click.style(f"Deleted page {page_id}", fg="green"))
    finally:
        db.close()


if __name__ == "__main__":
    cli()
