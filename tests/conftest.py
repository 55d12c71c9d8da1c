"""Shared fixtures for SiteWatcher tests."""

from unittest.mock import Mock, patch

import pytest
import requests


class FakeWeb:
    """Stands in for requests.get, serving HTML from a url -> html mapping."""

    def __init__(self):
        self.pages: dict[str, str] = {}
        self.calls: list[str] = []

    def __call__(self, url, headers=None, timeout=None):
        self.calls.append(url)
        if url not in self.pages:
            raise requests.ConnectionError(f"cannot reach {url}")
        response = Mock()
        response.content = self.pages[url].encode()
        response.raise_for_status = Mock()
        return response


class FakeTimer:
    """Timer that never runs on its own; tests fire it explicitly."""

    def __init__(self, interval, function):
        self.interval = interval
        self.function = function
        self.daemon = False
        self.started = False
        self.cancelled = False
        self.fired = False

    def start(self):
        self.started = True

    def cancel(self):
        self.cancelled = True

    def fire(self):
        self.fired = True
        return self.function()


class FakeTimers(list):
    """Timer factory recording every timer it creates."""

    def __call__(self, interval, function):
        timer = FakeTimer(interval, function)
        self.append(timer)
        return timer

    def pending(self) -> list[FakeTimer]:
        return [t for t in self if t.started and not t.cancelled and not t.fired]


@pytest.fixture
def web():
    """Patch HTTP fetching with a FakeWeb."""
    fake = FakeWeb()
    with patch("sitewatcher.scraper.requests.get", side_effect=fake):
        yield fake


@pytest.fixture
def timers():
    """Fake timer factory for watchers."""
    return FakeTimers()
