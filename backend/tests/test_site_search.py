"""
Tests for the cached company-site answer stage.
"""

import asyncio
import time

import httpx

from agent.answers.result import NOT_FOUND, AnswerSource, Found, NotFound
from agent.answers.site_search import PageCache, CachedPage, SiteSearch, html_to_text

BASE_URL = "https://www.khisima.test"
SEED_PATHS = ["/", "/services", "/about-us", "/contact", "/workplace"]

PAGE = """
<html><head><title>About &amp; Team</title><style>.x{color:red}</style></head>
<body><script>var tracking = 1;</script><h1>About us</h1><p>Kigali,&nbsp;Rwanda</p></body></html>
"""


def _run_search(handler, query, seed_paths=SEED_PATHS, repeat=1):
    """Run one or more searches against a mocked site; returns (results, requested urls)."""
    requested = []

    def record(request: httpx.Request) -> httpx.Response:
        requested.append(str(request.url))
        return handler(request)

    async def go():
        client = httpx.AsyncClient(transport=httpx.MockTransport(record))
        site = SiteSearch(BASE_URL, seed_paths, timeout_s=2.0, cache_ttl_s=900, client=client)
        try:
            return [await site.search(query) for _ in range(repeat)]
        finally:
            await client.aclose()

    return asyncio.run(go()), requested


class TestHtmlToText:
    """Test HTML reduction."""

    def test_title_and_text(self):
        """Title is extracted; scripts and styles are dropped; entities unescaped."""
        title, text = html_to_text(PAGE)
        assert title == "About & Team"
        assert "tracking" not in text
        assert "color" not in text
        assert "About us" in text
        assert "Kigali, Rwanda" in text

    def test_empty_markup(self):
        """Empty input gives empty strings."""
        assert html_to_text("") == ("", "")


class TestPageCache:
    """Test the TTL page cache."""

    def test_hit_within_ttl(self):
        """Fresh entries are served."""
        cache = PageCache(ttl_s=60)
        cache.put(CachedPage(url="u", title="t", text="x", fetched_at=time.monotonic()))
        assert cache.get("u").text == "x"
        assert len(cache) == 1

    def test_expired_entry_evicted(self):
        """An entry as old as the TTL is gone."""
        cache = PageCache(ttl_s=10)
        cache.put(CachedPage(url="u", title="t", text="x", fetched_at=time.monotonic() - 10))
        assert cache.get("u") is None
        assert len(cache) == 0


class TestCategoryMatching:
    """Test keyword category selection."""

    def setup_method(self):
        self.site = SiteSearch(BASE_URL, SEED_PATHS)

    def test_first_category_wins(self):
        """Location is checked before contact."""
        category = self.site.match_category("Where are you? What is your email?")
        assert category.name == "location"

    def test_contact(self):
        """Contact keywords."""
        assert self.site.match_category("What's your phone number").name == "contact"

    def test_services_and_countries(self):
        """Services and countries keywords."""
        assert self.site.match_category("what do you offer").name == "services"
        assert self.site.match_category("Which countries do you cover").name == "countries"

    def test_unmatched(self):
        """No keyword, no category."""
        assert self.site.match_category("urgent help needed") is None

    def test_seed_paths_gate_categories(self):
        """A category whose page is not seeded never answers."""
        site = SiteSearch(BASE_URL, ["/", "/contact"])
        assert site.match_category("where are you located") is None
        assert site.match_category("contact") is not None

    def test_url_for_root(self):
        """The root path maps to the bare base URL."""
        assert self.site.url_for("/") == BASE_URL
        assert SiteSearch(BASE_URL + "/", SEED_PATHS).url_for("/contact") == BASE_URL + "/contact"


class TestSearch:
    """Test search with a mocked site."""

    def test_found_with_source_and_url(self):
        """A matching category with a reachable page answers with the khisima tag."""
        results, requested = _run_search(lambda r: httpx.Response(200, text=PAGE), "where are you based?")
        result = results[0]
        assert isinstance(result, Found)
        assert result.source == AnswerSource.SITE
        assert result.to_dict()["source"] == "khisima"
        assert "Kigali" in result.answer
        assert result.url == BASE_URL + "/about-us"
        assert requested == [BASE_URL + "/about-us"]

    def test_page_is_cached(self):
        """A second lookup within the TTL does not refetch."""
        results, requested = _run_search(lambda r: httpx.Response(200, text=PAGE), "contact", repeat=3)
        assert all(isinstance(r, Found) for r in results)
        assert requested == [BASE_URL + "/contact"]

    def test_http_error_is_no_match(self):
        """Server errors are swallowed into NotFound."""
        results, _ = _run_search(lambda r: httpx.Response(503), "contact")
        assert isinstance(results[0], NotFound)
        assert results[0].reason == "fetch_failed"
        assert results[0].to_dict() == {}

    def test_failed_fetch_is_not_cached(self):
        """Failures are retried on the next lookup."""
        _, requested = _run_search(lambda r: httpx.Response(500), "contact", repeat=2)
        assert len(requested) == 2

    def test_network_error_is_no_match(self):
        """Timeouts and connection errors are swallowed into NotFound."""

        def boom(request):
            raise httpx.ConnectTimeout("timed out", request=request)

        results, _ = _run_search(boom, "phone")
        assert isinstance(results[0], NotFound)

    def test_unmatched_query_makes_no_request(self):
        """No category means no fetch."""
        results, requested = _run_search(lambda r: httpx.Response(200, text=PAGE), "asdkjasd")
        assert results[0] is NOT_FOUND
        assert requested == []
