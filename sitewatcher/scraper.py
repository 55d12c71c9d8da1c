"""HTML fetching and extraction for SiteWatcher."""

import re
from dataclasses import dataclass
from typing import Optional, Union
from urllib.parse import urljoin

import requests
from bs4 import BeautifulSoup, Tag
from soupsieve import SelectorSyntaxError

from . import config

ABSOLUTE_URL_RE = re.compile(r"^(?:[a-z]+:)?//", re.IGNORECASE)

Document = Union[str, bytes]


@dataclass
class PageMetadata:
    """Open Graph metadata extracted from an item page."""

    title: str
    url: str
    thumbnail_url: str = ""
    description: str = ""


def fetch_document(url: str, timeout: int = config.FETCH_TIMEOUT) -> bytes:
    """Fetch a document over HTTP.

    Args:
        url: URL to fetch
        timeout: Request timeout in seconds

    Returns:
        Raw response body

    Raises:
        FetchError: On network failure, timeout, or a non-success status
    """
    try:
        response = requests.get(url, headers={"User-Agent": config.USER_AGENT}, timeout=timeout)
        response.raise_for_status()
    except requests.RequestException as e:
        raise FetchError(url, e) from e

    return response.content


def to_absolute_url(url: str, base_url: str) -> str:
    """Resolve url against base_url unless it is already absolute.

    Links starting with a scheme and "//" (or a bare "//") pass through
    unchanged.
    """
    if ABSOLUTE_URL_RE.match(url):
        return url
    return urljoin(base_url, url)


def find_new_item_url(document: Document, selector: str, base_url: str) -> str:
    """Locate the newest-item link in a listing page.

    The first element matching the selector is used. If it is not an anchor
    itself, its first descendant anchor is used instead.

    Args:
        document: HTML of the listing page
        selector: CSS selector locating the newest item
        base_url: URL relative links are resolved against

    Returns:
        Absolute URL of the newest item

    Raises:
        ExtractionError: If nothing matches or the match has no usable link
    """
    soup = BeautifulSoup(document, "html.parser")

    try:
        element = soup.select_one(selector)
    except SelectorSyntaxError as e:
        raise ExtractionError(selector, f"invalid selector ({e})") from e

    if element is None:
        raise ExtractionError(selector, "no element matches")

    link = element if element.name == "a" else element.find("a")
    href = (link.get("href") or "").strip() if link is not None else ""
    if not href:
        raise ExtractionError(selector, "matched element has no link")

    return to_absolute_url(href, base_url)


def extract_metadata(document: Document, fallback_url: str) -> PageMetadata:
    """Extract page metadata from Open Graph tags.

    Every field falls back in order and ends in an empty string, except the
    URL which falls back to the URL the document was fetched from.

    Args:
        document: HTML of the item page
        fallback_url: URL the document was fetched from

    Returns:
        PageMetadata for the page
    """
    soup = BeautifulSoup(document, "html.parser")

    title = _meta_content(soup, "og:title")
    if title is None:
        title = _document_title(soup)

    url = _meta_content(soup, "og:url")
    if url is None:
        url = fallback_url

    thumbnail_url = _meta_content(soup, "og:image")
    if thumbnail_url is None:
        thumbnail_url = _meta_content(soup, "og:image:secure_url") or ""

    description = _meta_content(soup, "og:description") or ""

    return PageMetadata(
        title=title,
        url=url,
        thumbnail_url=thumbnail_url,
        description=description,
    )


def _document_title(soup: BeautifulSoup) -> str:
    """Return the text of the document's <title>, ignoring inline SVG titles."""
    scope = soup.head if soup.head is not None else soup
    for tag in scope.find_all("title"):
        if tag.find_parent("svg") is None:
            return tag.get_text(strip=True)
    return ""


def _meta_content(soup: BeautifulSoup, prop: str) -> Optional[str]:
    """Return the content of the first <meta property=prop> tag, if any."""
    for tag in soup.find_all("meta", attrs={"property": prop}):
        if isinstance(tag, Tag) and tag.get("content") is not None:
            return str(tag["content"]).strip()
    return None


class FetchError(Exception):
    """Raised when a document cannot be fetched."""

    def __init__(self, url: str, cause: Exception):
        self.url = url
        self.cause = cause
        super().__init__(f"Failed to fetch {url}: {cause}")


class ExtractionError(Exception):
    """Raised when the newest-item link cannot be found in a page."""

    def __init__(self, selector: str, reason: str):
        self.selector = selector
        self.reason = reason
        super().__init__(f"Selector '{selector}': {reason}")
