"""Registry of running watchers, kept consistent with stored sites."""

from __future__ import annotations

import threading
from typing import Optional

from . import config
from .gateway import PersistenceError, PersistenceGateway, SiteNotFoundError
from .log import get_logger
from .models import Site, SiteChanges
from .scraper import ExtractionError, FetchError, fetch_document, find_new_item_url
from .watcher import TimerFactory, Watcher

logger = get_logger(__name__)


class VerificationError(Exception):
    """Raised when a new site fails its pre-flight check."""

    def __init__(self, site: Site, cause: Exception):
        self.site = site
        self.cause = cause
        super().__init__(f"Site '{site.title}' ({site.crawl_url}) failed verification: {cause}")


class WatcherPool:
    """Owns one Watcher per stored site.

    Every change to the site id -> watcher map goes through this class and
    happens under its lock. With autostart disabled, watchers are created but
    never scheduled, which suits one-shot callers that drive checks
    themselves.
    """

    def __init__(
        self,
        gateway: PersistenceGateway,
        interval: float = config.POLL_INTERVAL,
        timeout: int = config.FETCH_TIMEOUT,
        disable_threshold: int = config.DISABLE_THRESHOLD,
        timer_factory: TimerFactory = threading.Timer,
        autostart: bool = True,
    ):
        self.gateway = gateway
        self.interval = interval
        self.timeout = timeout
        self.disable_threshold = disable_threshold
        self.autostart = autostart
        self._timer_factory = timer_factory
        self._watchers: dict[int, Watcher] = {}
        self._lock = threading.RLock()

    def __len__(self) -> int:
        with self._lock:
            return len(self._watchers)

    def __contains__(self, site_id: object) -> bool:
        with self._lock:
            return site_id in self._watchers

    def get(self, site_id: int) -> Optional[Watcher]:
        with self._lock:
            return self._watchers.get(site_id)

    def site_ids(self) -> list[int]:
        with self._lock:
            return list(self._watchers)

    def load_all(self, owner_id: Optional[int] = None) -> int:
        """Create a watcher for every stored site without starting it.

        Args:
            owner_id: If provided, only load sites owned by this user

        Returns:
            Number of watchers created
        """
        sites = self.gateway.list_sites(owner_id)
        created = 0
        with self._lock:
            for site in sites:
                if site.id in self._watchers:
                    continue
                self._watchers[site.id] = self._make_watcher(site)
                created += 1
        logger.info("Loaded %d watcher(s)", created)
        return created

    def start_all(self) -> None:
        """Start every watcher in the pool."""
        with self._lock:
            watchers = list(self._watchers.values())
        for watcher in watchers:
            watcher.start()
        logger.info("Started %d watcher(s)", len(watchers))

    def stop_all(self) -> None:
        """Stop every watcher and empty the pool."""
        with self._lock:
            watchers = list(self._watchers.values())
            self._watchers.clear()
        for watcher in watchers:
            watcher.stop()
        logger.info("Stopped %d watcher(s)", len(watchers))

    def verify(self, site: Site) -> str:
        """Check that a site's crawl page is reachable and its selector resolves.

        Returns:
            The newest-item URL found

        Raises:
            VerificationError: If the page cannot be fetched or the selector
                does not locate a link
        """
        try:
            document = fetch_document(site.crawl_url, timeout=self.timeout)
            return find_new_item_url(document, site.selector, site.url)
        except (FetchError, ExtractionError) as e:
            raise VerificationError(site, e) from e

    def add(self, site: Site) -> Site:
        """Verify and store a new site, then create and start its watcher.

        Args:
            site: Site to add (id will be ignored)

        Returns:
            The stored Site with its id

        Raises:
            VerificationError: If the pre-flight check fails; nothing is stored
            PersistenceError: If the site cannot be stored
        """
        self.verify(site)

        with self._lock:
            site = self.gateway.add_site(site)
            self._install(site)

        logger.info(
            "Created watcher for site %s: title=%s url=%s",
            site.id, site.title, site.url,
            extra={"event": "watcher.created", "site_id": site.id},
        )
        return site

    def remove(self, site_id: int, delete_pages: bool = False) -> None:
        """Delete a site and stop its watcher.

        Raises:
            SiteNotFoundError: If no such site is stored; the pool is unchanged
        """
        with self._lock:
            if self.gateway.remove_site(site_id, delete_pages=delete_pages) == 0:
                raise SiteNotFoundError(site_id)
            watcher = self._watchers.pop(site_id, None)
            if watcher is not None:
                watcher.stop()
            else:
                logger.warning("Deleted site %s had no watcher", site_id)

        logger.info(
            "Deleted watcher for site %s",
            site_id,
            extra={"event": "watcher.deleted", "site_id": site_id},
        )

    def update(self, site_id: int, changes: SiteChanges) -> Site:
        """Store changes to a site and replace its watcher.

        The replacement reads the stored row, so new crawl URL or selector
        settings apply from its first check, and its failure counter starts
        at zero. Passing empty changes re-enables a disabled watcher.

        Returns:
            The stored Site after the update

        Raises:
            SiteNotFoundError: If no such site is stored
            PersistenceError: If the changes cannot be stored
        """
        with self._lock:
            old = self._watchers.get(site_id)
            if old is not None:
                old.stop()

            try:
                if self.gateway.update_site(site_id, changes) == 0:
                    raise SiteNotFoundError(site_id)
            except SiteNotFoundError:
                self._watchers.pop(site_id, None)
                raise
            except PersistenceError:
                if old is not None:
                    self._replace(site_id)
                raise

            site = self._replace(site_id)

        logger.info(
            "Replaced watcher for site %s: changes=%s",
            site_id, changes.fields(),
            extra={"event": "watcher.replaced", "site_id": site_id},
        )
        return site

    def sync(self, owner_id: Optional[int] = None) -> tuple[int, int, int]:
        """Bring the pool in line with the stored sites.

        Sites stored elsewhere (another process sharing the database) get a
        watcher, watchers whose site is gone are stopped and evicted, and
        watchers whose site settings changed are replaced. A disabled
        watcher of an unchanged site stays disabled.

        Args:
            owner_id: If provided, only sites owned by this user are kept

        Returns:
            Counts of (added, removed, replaced) watchers
        """
        sites = {site.id: site for site in self.gateway.list_sites(owner_id)}
        added = removed = replaced = 0
        with self._lock:
            for site_id in [i for i in self._watchers if i not in sites]:
                self._watchers.pop(site_id).stop()
                removed += 1
                logger.info(
                    "Deleted watcher for site %s (no longer stored)",
                    site_id,
                    extra={"event": "watcher.deleted", "site_id": site_id},
                )

            for site_id, site in sites.items():
                watcher = self._watchers.get(site_id)
                if watcher is None:
                    self._install(site)
                    added += 1
                    logger.info(
                        "Created watcher for site %s: title=%s url=%s",
                        site_id, site.title, site.url,
                        extra={"event": "watcher.created", "site_id": site_id},
                    )
                elif watcher.stopped or _settings(watcher.site) != _settings(site):
                    watcher.stop()
                    self._install(site)
                    replaced += 1
                    logger.info(
                        "Replaced watcher for site %s (stored settings changed)",
                        site_id,
                        extra={"event": "watcher.replaced", "site_id": site_id},
                    )

        if added or removed or replaced:
            logger.info("Synced watchers: %d added, %d removed, %d replaced", added, removed, replaced)
        return added, removed, replaced

    # ----------------------- internal -----------------------

    def _replace(self, site_id: int) -> Site:
        # Caller holds self._lock
        site = self.gateway.get_site(site_id)
        if site is None:
            self._watchers.pop(site_id, None)
            raise SiteNotFoundError(site_id)
        self._install(site)
        return site

    def _install(self, site: Site) -> None:
        # Caller holds self._lock
        watcher = self._make_watcher(site)
        self._watchers[site.id] = watcher
        if self.autostart:
            watcher.start()

    def _make_watcher(self, site: Site) -> Watcher:
        return Watcher(
            site,
            self.gateway,
            interval=self.interval,
            timeout=self.timeout,
            disable_threshold=self.disable_threshold,
            timer_factory=self._timer_factory,
        )


def _settings(site: Site) -> tuple[str, str, str, str]:
    return site.title, site.url, site.crawl_url, site.selector
