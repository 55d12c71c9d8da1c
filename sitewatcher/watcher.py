"""Per-site polling state machine for SiteWatcher.

A Watcher owns the schedule of one site. Each check fetches the site's crawl
page, resolves the newest-item link through the site's selector, and, when
that link differs from the site's last-seen URL, fetches the item and records
it as a new page. Consecutive failures are counted; reaching the disable
threshold stops the schedule until the watcher is recreated.
"""

from __future__ import annotations

import threading
from datetime import datetime
from enum import Enum
from typing import Callable, Optional

from . import config
from .gateway import PersistenceError, PersistenceGateway
from .log import get_logger
from .models import Page, Site
from .scraper import ExtractionError, FetchError, extract_metadata, fetch_document, find_new_item_url

logger = get_logger(__name__)

TimerFactory = Callable[[float, Callable[[], object]], threading.Timer]


class WatcherStatus(Enum):
    IDLE = "idle"
    POLLING = "polling"
    DISABLED = "disabled"


class Watcher:
    """Polls one site on a recurring timer.

    Every check runs synchronously on the thread that calls it (a timer
    thread when started). At most one check is in flight per watcher; a
    timer that fires during a check is dropped, and the running check
    rearms the timer when it completes.
    """

    def __init__(
        self,
        site: Site,
        gateway: PersistenceGateway,
        interval: float = config.POLL_INTERVAL,
        timeout: int = config.FETCH_TIMEOUT,
        disable_threshold: int = config.DISABLE_THRESHOLD,
        timer_factory: TimerFactory = threading.Timer,
    ):
        self.site = site
        self.gateway = gateway
        self.interval = interval
        self.timeout = timeout
        self.disable_threshold = disable_threshold
        self._timer_factory = timer_factory

        self._lock = threading.Lock()
        self._status = WatcherStatus.IDLE
        self._failures = 0
        self._started = False
        self._stopped = False
        self._kick: Optional[threading.Timer] = None
        self._timer: Optional[threading.Timer] = None

    def __repr__(self) -> str:
        return f"<Watcher site={self.site_id} status={self._status.value} failures={self._failures}>"

    @property
    def site_id(self) -> Optional[int]:
        return self.site.id

    @property
    def status(self) -> WatcherStatus:
        return self._status

    @property
    def failures(self) -> int:
        return self._failures

    @property
    def stopped(self) -> bool:
        return self._stopped

    def start(self) -> None:
        """Check immediately and arm the recurring timer.

        A watcher that was never started can still be checked by calling
        check() directly; it then runs once without scheduling anything.
        """
        with self._lock:
            if self._stopped or self._status is WatcherStatus.DISABLED:
                return
            self._started = True
            self._kick = self._new_timer(0, self.check)
            self._schedule()
        logger.debug("Started watcher for site %s", self.site_id)

    def stop(self) -> None:
        """Cancel pending timers.

        A check already in flight runs to completion but can no longer write
        once this returns.
        """
        with self._lock:
            self._stopped = True
            self._cancel_timers()
        logger.debug("Stopped watcher for site %s", self.site_id)

    def check(self) -> Optional[Page]:
        """Run one check of the site.

        Failures are logged and counted, never raised.

        Returns:
            The new Page if one was recorded, None otherwise
        """
        with self._lock:
            if self._stopped or self._status is not WatcherStatus.IDLE:
                logger.debug("Skipping check of site %s (%s)", self.site_id, self._status.value)
                return None
            self._status = WatcherStatus.POLLING

        page = None
        failed = True
        try:
            page = self._check_new_page()
            failed = False
        except (FetchError, ExtractionError, PersistenceError) as e:
            logger.error(
                "Failed to check site %s (%s): %s: %s",
                self.site_id, self.site.title, e.__class__.__name__, e,
            )
        except Exception:
            logger.exception("Unexpected error checking site %s (%s)", self.site_id, self.site.title)
        finally:
            self._finish(failed)

        return page

    # ----------------------- internal -----------------------

    def _check_new_page(self) -> Optional[Page]:
        # Another process may have ingested for this site or removed it
        stored = self.gateway.get_site(self.site.id)
        if stored is None:
            logger.info(
                "Site %s (%s) no longer exists; stopping its watcher", self.site_id, self.site.title,
                extra={"event": "watcher.orphaned", "site_id": self.site_id},
            )
            self.stop()
            return None
        self.site.last_url = stored.last_url

        document = fetch_document(self.site.crawl_url, timeout=self.timeout)
        candidate = find_new_item_url(document, self.site.selector, self.site.url)

        if candidate == self.site.last_url:
            logger.debug("No new item on site %s", self.site_id)
            return None

        item = fetch_document(candidate, timeout=self.timeout)
        meta = extract_metadata(item, candidate)
        page = Page(
            id=None,
            site_id=self.site.id,
            title=meta.title,
            url=meta.url,
            thumbnail_url=meta.thumbnail_url,
            description=meta.description,
            discovered_date=datetime.now(),
            is_read=False,
            owner_id=self.site.owner_id,
        )

        with self._lock:
            if self._stopped:
                logger.info("Discarding new item %s of stopped watcher for site %s", candidate, self.site_id)
                return None
            self.gateway.record_page(page, candidate)
            self.site.last_url = candidate

        logger.info(
            "Added a new page to site %s: id=%s title=%s",
            self.site_id, page.id, page.title,
            extra={"event": "page.created", "site_id": self.site_id, "page_id": page.id},
        )
        return page

    def _finish(self, failed: bool) -> None:
        with self._lock:
            if not failed:
                self._failures = 0
                self._status = WatcherStatus.IDLE
                self._schedule()
                return

            self._failures += 1
            if self._failures < self.disable_threshold:
                self._status = WatcherStatus.IDLE
                self._schedule()
                return

            self._status = WatcherStatus.DISABLED
            self._cancel_timers()

        logger.error(
            "Site %s (%s) failed %d times in a row; watcher disabled until the site is updated or removed",
            self.site_id, self.site.title, self._failures,
            extra={"event": "watcher.disabled", "site_id": self.site_id},
        )

    def _schedule(self) -> None:
        # Caller holds self._lock
        if self._stopped or not self._started:
            return
        if self._timer is not None:
            self._timer.cancel()
        self._timer = self._new_timer(self.interval, self.check)

    def _cancel_timers(self) -> None:
        for timer in (self._kick, self._timer):
            if timer is not None:
                timer.cancel()
        self._kick = None
        self._timer = None

    def _new_timer(self, delay: float, fn: Callable[[], object]) -> threading.Timer:
        timer = self._timer_factory(delay, fn)
        timer.daemon = True
        timer.start()
        return timer
