"""SQLite database operations for SiteWatcher."""

import sqlite3
import threading
from contextlib import contextmanager
from datetime import datetime
from pathlib import Path
from typing import Iterator, Optional

from . import config
from .gateway import PersistenceError, SiteNotFoundError
from .models import Page, Site, SiteChanges

DEFAULT_DB_PATH = config.DB_PATH


class Database:
    """SQLite implementation of the persistence gateway.

    One connection is shared by every watcher thread; all access goes
    through a re-entrant lock.
    """

    def __init__(self, db_path: Optional[Path] = None):
        """Initialize database connection.

        Args:
            db_path: Path to the SQLite database file. Defaults to SITEWATCHER_DB
                or ~/.sitewatcher/sitewatcher.db
        """
        self.db_path = Path(db_path or DEFAULT_DB_PATH)
        self.db_path.parent.mkdir(parents=True, exist_ok=True)
        self._conn: Optional[sqlite3.Connection] = None
        self._lock = threading.RLock()
        self._init_db()

    def _get_conn(self) -> sqlite3.Connection:
        """Get or create database connection."""
        if self._conn is None:
            self._conn = sqlite3.connect(self.db_path, check_same_thread=False)
            self._conn.row_factory = sqlite3.Row
        return self._conn

    @contextmanager
    def _transaction(self) -> Iterator[sqlite3.Connection]:
        """Run a block under the lock, committing on success.

        Any failure rolls back. sqlite errors are raised as PersistenceError.
        """
        with self._lock:
            conn = self._get_conn()
            try:
                yield conn
                conn.commit()
            except sqlite3.Error as e:
                conn.rollback()
                raise PersistenceError(str(e)) from e
            except Exception:
                conn.rollback()
                raise

    def _init_db(self) -> None:
        """Create tables if they don't exist."""
        with self._transaction() as conn:
            conn.executescript("""
                CREATE TABLE IF NOT EXISTS sites (
                    id INTEGER PRIMARY KEY,
                    title TEXT NOT NULL,
                    url TEXT NOT NULL,
                    crawl_url TEXT NOT NULL,
                    selector TEXT NOT NULL,
                    last_url TEXT NOT NULL DEFAULT '',
                    owner_id INTEGER
                );

                CREATE TABLE IF NOT EXISTS pages (
                    id INTEGER PRIMARY KEY,
                    site_id INTEGER NOT NULL,
                    title TEXT NOT NULL,
                    url TEXT NOT NULL,
                    thumbnail_url TEXT NOT NULL DEFAULT '',
                    description TEXT NOT NULL DEFAULT '',
                    discovered_date TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
                    is_read BOOLEAN DEFAULT FALSE,
                    owner_id INTEGER,
                    FOREIGN KEY (site_id) REFERENCES sites(id)
                );
            """)

    def close(self) -> None:
        """Close database connection."""
        with self._lock:
            if self._conn:
                self._conn.close()
                self._conn = None

    # Site operations

    def add_site(self, site: Site) -> Site:
        """Add a new site to watch.

        Args:
            site: Site object to add (id will be ignored)

        Returns:
            Site object with assigned id
        """
        with self._transaction() as conn:
            cursor = conn.execute(
                """
                INSERT INTO sites (title, url, crawl_url, selector, last_url, owner_id)
                VALUES (?, ?, ?, ?, ?, ?)
                """,
                (site.title, site.url, site.crawl_url, site.selector, site.last_url, site.owner_id),
            )
        site.id = cursor.lastrowid
        return site

    def get_site(self, site_id: int) -> Optional[Site]:
        """Get a site by id.

        Args:
            site_id: The site's id

        Returns:
            Site object or None if not found
        """
        with self._transaction() as conn:
            row = conn.execute("SELECT * FROM sites WHERE id = ?", (site_id,)).fetchone()
        return self._row_to_site(row) if row else None

    def list_sites(self, owner_id: Optional[int] = None) -> list[Site]:
        """List watched sites.

        Args:
            owner_id: If provided, only return sites owned by this user

        Returns:
            List of Site objects
        """
        query = "SELECT * FROM sites"
        params: list = []
        if owner_id is not None:
            query += " WHERE owner_id = ?"
            params.append(owner_id)
        query += " ORDER BY id"

        with self._transaction() as conn:
            rows = conn.execute(query, params).fetchall()
        return [self._row_to_site(row) for row in rows]

    def update_site(self, site_id: int, changes: SiteChanges) -> int:
        """Write the provided fields of a site.

        Args:
            site_id: The site's id
            changes: Fields to write; absent fields are left untouched

        Returns:
            Number of rows affected (0 if the site does not exist)
        """
        values = changes.fields()
        with self._transaction() as conn:
            if changes.is_empty():
                row = conn.execute("SELECT 1 FROM sites WHERE id = ?", (site_id,)).fetchone()
                return 1 if row else 0

            # Column names come from SiteChanges fields, never from input
            assignments = ", ".join(f"{name} = ?" for name in values)
            cursor = conn.execute(
                f"UPDATE sites SET {assignments} WHERE id = ?",
                (*values.values(), site_id),
            )
        return cursor.rowcount

    def set_site_last_url(self, site_id: int, url: str) -> None:
        """Advance the last-seen item URL of a site.

        Raises:
            SiteNotFoundError: If the site does not exist
        """
        with self._transaction() as conn:
            self._set_last_url(conn, site_id, url)

    def remove_site(self, site_id: int, delete_pages: bool = False) -> int:
        """Remove a site.

        Args:
            site_id: The site's id
            delete_pages: Also delete every page discovered on the site

        Returns:
            Number of rows affected (0 if the site does not exist)
        """
        with self._transaction() as conn:
            cursor = conn.execute("DELETE FROM sites WHERE id = ?", (site_id,))
            if cursor.rowcount and delete_pages:
                conn.execute("DELETE FROM pages WHERE site_id = ?", (site_id,))
        return cursor.rowcount

    def _row_to_site(self, row: sqlite3.Row) -> Site:
        """Convert a database row to a Site object."""
        return Site(
            id=row["id"],
            title=row["title"],
            url=row["url"],
            crawl_url=row["crawl_url"],
            selector=row["selector"],
            last_url=row["last_url"],
            owner_id=row["owner_id"],
        )

    # Page operations

    def add_page(self, page: Page) -> Page:
        """Add a new page.

        Args:
            page: Page object to add (id will be ignored)

        Returns:
            Page object with assigned id
        """
        with self._transaction() as conn:
            self._insert_page(conn, page)
        return page

    def record_page(self, page: Page, last_url: str) -> Page:
        """Insert a page and advance its site's last URL in one transaction.

        Args:
            page: Newly discovered page
            last_url: Item URL the site's change detection now points at

        Returns:
            Page object with assigned id

        Raises:
            SiteNotFoundError: If the site is gone; nothing is written
        """
        with self._transaction() as conn:
            self._insert_page(conn, page)
            self._set_last_url(conn, page.site_id, last_url)
        return page

    def _insert_page(self, conn: sqlite3.Connection, page: Page) -> None:
        if page.discovered_date is None:
            page.discovered_date = datetime.now()
        cursor = conn.execute(
            """
            INSERT INTO pages (site_id, title, url, thumbnail_url, description,
                               discovered_date, is_read, owner_id)
            VALUES (?, ?, ?, ?, ?, ?, ?, ?)
            """,
            (
                page.site_id,
                page.title,
                page.url,
                page.thumbnail_url,
                page.description,
                page.discovered_date.isoformat(),
                page.is_read,
                page.owner_id,
            ),
        )
        page.id = cursor.lastrowid

    def _set_last_url(self, conn: sqlite3.Connection, site_id: int, url: str) -> None:
        cursor = conn.execute("UPDATE sites SET last_url = ? WHERE id = ?", (url, site_id))
        if cursor.rowcount == 0:
            raise SiteNotFoundError(site_id)

    def get_page(self, page_id: int) -> Optional[Page]:
        """Get a page by id.

        Args:
            page_id: The page's id

        Returns:
            Page object or None if not found
        """
        with self._transaction() as conn:
            row = conn.execute("SELECT * FROM pages WHERE id = ?", (page_id,)).fetchone()
        return self._row_to_page(row) if row else None

    def list_pages(
        self,
        unread_only: bool = False,
        site_id: Optional[int] = None,
        owner_id: Optional[int] = None,
    ) -> list[Page]:
        """List pages with optional filters.

        Args:
            unread_only: If True, only return unread pages
            site_id: If provided, only return pages from this site
            owner_id: If provided, only return pages owned by this user

        Returns:
            List of Page objects, newest first
        """
        query = "SELECT * FROM pages WHERE 1=1"
        params: list = []

        if unread_only:
            query += " AND is_read = 0"
        if site_id is not None:
            query += " AND site_id = ?"
            params.append(site_id)
        if owner_id is not None:
            query += " AND owner_id = ?"
            params.append(owner_id)

        query += " ORDER BY discovered_date DESC, id DESC"
        with self._transaction() as conn:
            rows = conn.execute(query, params).fetchall()
        return [self._row_to_page(row) for row in rows]

    def mark_page_read(self, page_id: int) -> bool:
        """Mark a page as read.

        Returns:
            True if page was updated, False if not found
        """
        return self._set_read(page_id, True)

    def mark_page_unread(self, page_id: int) -> bool:
        """Mark a page as unread.

        Returns:
            True if page was updated, False if not found
        """
        return self._set_read(page_id, False)

    def _set_read(self, page_id: int, is_read: bool) -> bool:
        with self._transaction() as conn:
            cursor = conn.execute(
                "UPDATE pages SET is_read = ? WHERE id = ?",
                (is_read, page_id),
            )
        return cursor.rowcount > 0

    def remove_page(self, page_id: int) -> bool:
        """Remove a page.

        Returns:
            True if page was removed, False if not found
        """
        with self._transaction() as conn:
            cursor = conn.execute("DELETE FROM pages WHERE id = ?", (page_id,))
        return cursor.rowcount > 0

    def _row_to_page(self, row: sqlite3.Row) -> Page:
        """Convert a database row to a Page object."""
        return Page(
            id=row["id"],
            site_id=row["site_id"],
            title=row["title"],
            url=row["url"],
            thumbnail_url=row["thumbnail_url"],
            description=row["description"],
            discovered_date=self._parse_datetime(row["discovered_date"]),
            is_read=bool(row["is_read"]),
            owner_id=row["owner_id"],
        )

    @staticmethod
    def _parse_datetime(value: Optional[str]) -> Optional[datetime]:
        """Parse a datetime string from the database."""
        if value is None:
            return None
        try:
            return datetime.fromisoformat(value)
        except (ValueError, TypeError):
            return None
