"""Platform detection and canonical product URL construction."""

from __future__ import annotations

import logging
import re
from typing import Optional
from urllib.parse import quote, urlparse

from smartcompare.models import Listing, Platform

logger = logging.getLogger(__name__)

# Host substrings, checked in order
_DOMAIN_PLATFORMS = (
    ("amazon.com", Platform.AMAZON),
    ("ebay.com", Platform.EBAY),
    ("walmart.com", Platform.WALMART),
    ("bestbuy.com", Platform.BESTBUY),
    ("target.com", Platform.DIRECT),
    ("bhphotovideo.com", Platform.DIRECT),
)

_PRODUCT_URLS = {
    Platform.AMAZON: "https://www.amazon.com/dp/{id}",
    Platform.WALMART: "https://www.walmart.com/ip/{id}",
    # Search-by-SKU redirects to the product page when the SKU is exact
    Platform.BESTBUY: "https://www.bestbuy.com/site/searchpage.jsp?st={id}",
    Platform.EBAY: "https://www.ebay.com/itm/{id}",
}

_SEARCH_URLS = {
    Platform.AMAZON: "https://www.amazon.com/s?k={query}",
    Platform.EBAY: "https://www.ebay.com/sch/i.html?_nkw={query}",
    Platform.WALMART: "https://www.walmart.com/search?q={query}",
    Platform.BESTBUY: "https://www.bestbuy.com/site/searchpage.jsp?st={query}",
}

_NON_ALNUM = re.compile(r"[^a-zA-Z0-9]")


def map_domain_to_platform(url: Optional[str]) -> Optional[Platform]:
    """
    Map a URL's host to a known platform.

    Args:
        url: Absolute URL (e.g. https://www.bestbuy.com/site/...)

    Returns:
        Platform, or None if the URL is unparsable or the host is unknown
    """
    if not url:
        return None
    try:
        hostname = (urlparse(url).hostname or "").lower()
    except ValueError:
        return None
    if not hostname:
        return None

    for domain, platform in _DOMAIN_PLATFORMS:
        if domain in hostname:
            return platform
    return None


def resolve_canonical_url(listing: Listing) -> str:
    """
    Build the outbound link for a listing.

    Resolution order: stored http(s) URL, platform product page from the
    external id, platform search page from the title. An empty string means
    there is no usable link.
    """
    url = listing.url
    if url and (url.startswith("http://") or url.startswith("https://")):
        return url

    platform = listing.platform
    if listing.external_id:
        clean_id = _NON_ALNUM.sub("", listing.external_id)
        template = _PRODUCT_URLS.get(platform)
        if clean_id and template:
            return template.format(id=clean_id)

    if platform and listing.title:
        template = _SEARCH_URLS.get(platform)
        if template:
            return template.format(query=quote(listing.title, safe="!*'()"))

    return ""


def sanitize_url(url: str) -> str:
    """Force a link onto https."""
    if not url:
        return ""
    if url.startswith("http://"):
        return "https://" + url[len("http://"):]
    if not url.startswith("https://"):
        return f"https://{url}"
    return url
