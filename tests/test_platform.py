"""Tests for platform detection and canonical links."""

from conftest import make_listing
from smartcompare.models import Platform
from smartcompare.platform import map_domain_to_platform, resolve_canonical_url, sanitize_url


class TestMapDomainToPlatform:
    """Host to platform mapping."""

    def test_known_hosts(self):
        assert map_domain_to_platform("https://www.amazon.com/dp/B0C") == Platform.AMAZON
        assert map_domain_to_platform("https://www.ebay.com/itm/123") == Platform.EBAY
        assert map_domain_to_platform("https://www.walmart.com/ip/1") == Platform.WALMART
        assert map_domain_to_platform("https://www.bestbuy.com/site/x") == Platform.BESTBUY

    def test_direct_retailers(self):
        assert map_domain_to_platform("https://www.target.com/p/x") == Platform.DIRECT
        assert map_domain_to_platform("https://www.bhphotovideo.com/c/product/1") == Platform.DIRECT

    def test_host_is_case_insensitive(self):
        assert map_domain_to_platform("https://WWW.BestBuy.COM/site/x") == Platform.BESTBUY

    def test_unknown_or_malformed(self):
        assert map_domain_to_platform("https://www.newegg.com/p/1") is None
        assert map_domain_to_platform("not a url") is None
        assert map_domain_to_platform("http://[::1") is None
        assert map_domain_to_platform("") is None
        assert map_domain_to_platform(None) is None


class TestResolveCanonicalUrl:
    """Outbound link resolution order."""

    def test_stored_url_wins(self):
        listing = make_listing(url="https://x/y", external_id="ABC123")
        assert resolve_canonical_url(listing) == "https://x/y"

    def test_non_http_url_is_ignored(self):
        listing = make_listing(url="javascript:alert(1)", external_id="B0ABC")
        assert resolve_canonical_url(listing) == "https://www.amazon.com/dp/B0ABC"

    def test_external_id_is_cleaned(self):
        listing = make_listing(url="", external_id="ABC-123!")
        assert resolve_canonical_url(listing) == "https://www.amazon.com/dp/ABC123"

    def test_platform_product_paths(self):
        cases = {
            Platform.WALMART: "https://www.walmart.com/ip/555",
            Platform.BESTBUY: "https://www.bestbuy.com/site/searchpage.jsp?st=555",
            Platform.EBAY: "https://www.ebay.com/itm/555",
        }
        for platform, expected in cases.items():
            listing = make_listing(url="", external_id="555", platform=platform)
            assert resolve_canonical_url(listing) == expected

    def test_empty_clean_id_falls_back_to_search(self):
        listing = make_listing(url="", external_id="--!!", title="Sony XM5")
        assert resolve_canonical_url(listing) == "https://www.amazon.com/s?k=Sony%20XM5"

    def test_search_fallback_encodes_title(self):
        listing = make_listing(url="", platform=Platform.EBAY, title="A&B headphones")
        assert resolve_canonical_url(listing) == "https://www.ebay.com/sch/i.html?_nkw=A%26B%20headphones"

    def test_no_usable_link(self):
        listing = make_listing(url="", external_id=None, platform=None, title="")
        assert resolve_canonical_url(listing) == ""

    def test_direct_platform_has_no_search_page(self):
        listing = make_listing(url="", platform=Platform.DIRECT, external_id="123")
        assert resolve_canonical_url(listing) == ""


class TestSanitizeUrl:
    def test_forces_https(self):
        assert sanitize_url("http://bestbuy.com/x") == "https://bestbuy.com/x"
        assert sanitize_url("bestbuy.com/x") == "https://bestbuy.com/x"
        assert sanitize_url("https://bestbuy.com/x") == "https://bestbuy.com/x"
        assert sanitize_url("") == ""
