import datetime as dt

import httpx
import pytest

from conftest import FakeProvider

from curator_api.config import FeedSource
from curator_api.services.providers.duckduckgo import DuckDuckGoProvider
from curator_api.services.providers.github import GitHubProvider, GitHubRateLimit
from curator_api.services.providers.google import GoogleSearchProvider
from curator_api.services.providers.news import NewsApiProvider, extract_summary, is_valid_article
from curator_api.services.providers.rss import RssProvider
from curator_api.services.providers.searxng import SearXNGProvider
from curator_api.services.providers.serpapi import SerpApiProvider
from curator_api.services.types import ContentType, SearchOptions


def transport_for(handler, seen=None):
    def record(request: httpx.Request) -> httpx.Response:
        if seen is not None:
            seen.append(request)
        return handler(request)

    return httpx.MockTransport(record)


def not_called(request: httpx.Request) -> httpx.Response:
    raise AssertionError(f"unexpected request to {request.url}")


# ===================================================================
# Google / SerpApi / SearXNG
# ===================================================================


@pytest.mark.asyncio
async def test_google_builds_request_and_maps_items(limiter) -> None:
    seen: list[httpx.Request] = []
    payload = {
        "items": [
            {
                "title": "React hooks guide",
                "link": "https://zenn.dev/someone/articles/hooks",
                "snippet": "useEffect in depth",
                "pagemap": {"metatags": [{"article:published_time": "2024-05-01T10:00:00Z"}]},
            },
            {"title": "no link here"},
        ]
    }
    provider = GoogleSearchProvider(
        api_key="key",
        cx="engine",
        limiter=limiter,
        transport=transport_for(lambda r: httpx.Response(200, json=payload), seen),
    )

    outcome = await provider.attempt("react hooks", 25, SearchOptions(language="ja", region="JP", date_restrict="w1"))

    params = seen[0].url.params
    assert params["key"] == "key"
    assert params["cx"] == "engine"
    assert params["q"] == "react hooks"
    assert params["num"] == "10"
    assert params["lr"] == "lang_ja"
    assert params["gl"] == "JP"
    assert params["safe"] == "active"
    assert params["dateRestrict"] == "w1"

    assert outcome.ok
    [item] = outcome.results
    assert item.domain == "zenn.dev"
    assert item.type is ContentType.WEB
    assert item.relevance_score == 0.8
    assert item.published_at == dt.datetime(2024, 5, 1, 10, tzinfo=dt.UTC)
    assert limiter.count(provider.rate_limit_key, provider.rate_limit) == 1


@pytest.mark.asyncio
async def test_google_without_cx_is_disabled_and_sends_nothing(limiter) -> None:
    provider = GoogleSearchProvider(api_key="key", cx="", limiter=limiter, transport=httpx.MockTransport(not_called))
    assert not provider.enabled()
    assert provider.missing_credentials() == ["cx"]

    outcome = await provider.attempt("anything", 5)
    assert outcome.ok
    assert outcome.results == []
    assert limiter.keys() == []


@pytest.mark.asyncio
async def test_serpapi_auth_failure_is_classified_and_still_counted(limiter) -> None:
    provider = SerpApiProvider(
        api_key="bad",
        limiter=limiter,
        transport=httpx.MockTransport(lambda r: httpx.Response(401, json={"error": "Invalid API key"})),
    )
    outcome = await provider.attempt("query", 5)

    assert not outcome.ok
    assert outcome.error.kind == "auth"
    assert outcome.error.status_code == 401
    assert outcome.results == []
    assert limiter.count(provider.rate_limit_key, provider.rate_limit) == 1


@pytest.mark.asyncio
async def test_serpapi_maps_organic_results(limiter) -> None:
    seen: list[httpx.Request] = []
    payload = {"organic_results": [{"title": "A", "link": "https://dev.to/a", "snippet": "s", "position": 1}]}
    provider = SerpApiProvider(
        api_key="k", limiter=limiter, transport=transport_for(lambda r: httpx.Response(200, json=payload), seen)
    )
    [item] = await provider.collect("q", 50, SearchOptions(language="en", region="US"))

    params = seen[0].url.params
    assert params["engine"] == "google"
    assert params["num"] == "20"
    assert params["hl"] == "en"
    assert params["gl"] == "US"
    assert item.relevance_score == 0.7
    assert item.extra == {"position": 1}


@pytest.mark.asyncio
async def test_searxng_retries_without_engine_restriction(limiter) -> None:
    seen: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        if "engines" in request.url.params:
            return httpx.Response(200, json={"results": []})
        return httpx.Response(200, json={"results": [{"url": "https://qiita.com/x", "title": "X", "engine": "bing"}]})

    provider = SearXNGProvider(
        base_url="http://searx.local/", engines="google", limiter=limiter, transport=transport_for(handler, seen)
    )
    [item] = await provider.collect("x", 5)

    assert len(seen) == 2
    assert seen[0].url.path == "/search"
    assert item.extra["engine"] == "bing"
    assert not SearXNGProvider(base_url="", limiter=limiter).enabled()


# ===================================================================
# DuckDuckGo
# ===================================================================


@pytest.mark.asyncio
async def test_duckduckgo_caps_results_at_five(limiter) -> None:
    payload = {
        "Heading": "Python",
        "Abstract": "Python is a programming language.",
        "AbstractURL": "https://en.wikipedia.org/wiki/Python",
        "RelatedTopics": [
            {"FirstURL": f"https://duckduckgo.com/t{i}", "Text": f"Topic {i} - more detail"} for i in range(10)
        ],
    }
    provider = DuckDuckGoProvider(limiter=limiter, transport=httpx.MockTransport(lambda r: httpx.Response(200, json=payload)))
    assert provider.enabled()

    results = await provider.collect("python", 10)

    assert len(results) == 5
    assert results[0].type is ContentType.ABSTRACT
    assert results[0].relevance_score == 0.6
    assert results[0].domain == "en.wikipedia.org"
    assert [r.type for r in results[1:]] == [ContentType.RELATED] * 4
    assert results[1].title == "Topic 0"
    assert results[1].relevance_score == 0.5


@pytest.mark.asyncio
async def test_duckduckgo_abstract_without_url(limiter) -> None:
    payload = {"Abstract": "Just text", "RelatedTopics": [{"Name": "Group", "Topics": []}]}
    provider = DuckDuckGoProvider(limiter=limiter, transport=httpx.MockTransport(lambda r: httpx.Response(200, json=payload)))
    [item] = await provider.collect("thing", 5)
    assert item.url == "#"
    assert item.domain == "duckduckgo.com"
    assert item.title == "thing"


# ===================================================================
# Failure classification
# ===================================================================


@pytest.mark.asyncio
async def test_http_429_is_a_quota_error(limiter) -> None:
    provider = NewsApiProvider(
        api_key="k", limiter=limiter, transport=httpx.MockTransport(lambda r: httpx.Response(429))
    )
    outcome = await provider.attempt("q", 5)
    assert outcome.error.kind == "quota"


@pytest.mark.asyncio
async def test_network_timeout_is_a_transport_error(limiter) -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ReadTimeout("timed out", request=request)

    provider = DuckDuckGoProvider(limiter=limiter, transport=httpx.MockTransport(handler))
    outcome = await provider.attempt("q", 5)
    assert outcome.error.kind == "transport"
    assert await provider.collect("q", 5) == []


@pytest.mark.asyncio
async def test_malformed_payloads_are_transport_errors(limiter) -> None:
    bad_json = DuckDuckGoProvider(
        limiter=limiter, transport=httpx.MockTransport(lambda r: httpx.Response(200, text="<html>oops</html>"))
    )
    wrong_shape = DuckDuckGoProvider(
        limiter=limiter, transport=httpx.MockTransport(lambda r: httpx.Response(200, json=[1, 2, 3]))
    )
    for provider in (bad_json, wrong_shape):
        outcome = await provider.attempt("q", 5)
        assert outcome.error.kind == "transport"
        assert "malformed" in str(outcome.error)


@pytest.mark.asyncio
async def test_slow_provider_times_out(limiter) -> None:
    provider = FakeProvider("slow", delay=0.5, limiter=limiter)
    provider.timeout = 0.01
    outcome = await provider.attempt("q", 5)
    assert outcome.error.kind == "transport"
    assert "timed out" in str(outcome.error)


# ===================================================================
# News API
# ===================================================================


def _article(**overrides):
    article = {
        "source": {"id": "tc", "name": "TechCrunch"},
        "author": None,
        "title": "New framework released",
        "description": "A <b>new</b> framework.",
        "url": "https://techcrunch.com/a",
        "urlToImage": "https://img.example/a.png",
        "publishedAt": "2024-06-01T08:30:00Z",
        "content": "Body text [+1234 chars]",
    }
    article.update(overrides)
    return article


@pytest.mark.asyncio
async def test_news_filters_removed_articles_and_sends_key_as_param(limiter) -> None:
    seen: list[httpx.Request] = []
    payload = {
        "status": "ok",
        "articles": [
            _article(),
            _article(title="[Removed]", url="https://techcrunch.com/b"),
            _article(url="https://removed.com"),
            _article(url="https://techcrunch.com/c", publishedAt=None),
            _article(url="https://techcrunch.com/a"),
        ],
    }
    provider = NewsApiProvider(
        api_key="secret", limiter=limiter, transport=transport_for(lambda r: httpx.Response(200, json=payload), seen)
    )
    results = await provider.collect("framework", 5)

    params = seen[0].url.params
    assert seen[0].url.path == "/v2/everything"
    assert params["apiKey"] == "secret"
    assert params["pageSize"] == "5"
    assert params["language"] == "en"
    assert params["sortBy"] == "publishedAt"

    [item] = results
    assert item.type is ContentType.NEWS
    assert item.source_name == "TechCrunch"
    assert item.summary == "A new framework."
    assert item.extra["author"] == "Unknown"
    assert item.extra["has_image"] is True


@pytest.mark.asyncio
async def test_news_error_status_in_body_is_classified(limiter) -> None:
    payload = {"status": "error", "code": "apiKeyInvalid", "message": "Your API key is invalid."}
    provider = NewsApiProvider(
        api_key="k", limiter=limiter, transport=httpx.MockTransport(lambda r: httpx.Response(200, json=payload))
    )
    outcome = await provider.attempt("q", 5)
    assert outcome.error.kind == "auth"


@pytest.mark.asyncio
async def test_news_top_headlines(limiter) -> None:
    seen: list[httpx.Request] = []
    provider = NewsApiProvider(
        api_key="k",
        limiter=limiter,
        transport=transport_for(lambda r: httpx.Response(200, json={"status": "ok", "articles": [_article()]}), seen),
    )
    results = await provider.top_headlines(category="technology", limit=3)
    assert seen[0].url.path == "/v2/top-headlines"
    assert seen[0].url.params["category"] == "technology"
    assert seen[0].url.params["country"] == "us"
    assert len(results) == 1


@pytest.mark.asyncio
async def test_news_collect_from_sources(limiter) -> None:
    seen: list[httpx.Request] = []
    payload = {"status": "ok", "articles": [_article(), _article(url="https://techcrunch.com/z")]}
    provider = NewsApiProvider(
        api_key="k", limiter=limiter, transport=transport_for(lambda r: httpx.Response(200, json=payload), seen)
    )

    results = await provider.collect_from_sources("ai", ["techcrunch", "the-verge"], limit=1)

    params = seen[0].url.params
    assert seen[0].url.path == "/v2/everything"
    assert params["sources"] == "techcrunch,the-verge"
    assert params["q"] == "ai"
    assert params["pageSize"] == "1"
    assert "language" not in params
    assert [r.url for r in results] == ["https://techcrunch.com/a"]
    assert limiter.count(provider.rate_limit_key, provider.rate_limit) == 1


def test_news_summary_rules() -> None:
    assert extract_summary({"description": "x" * 400}) == "x" * 300 + "..."
    assert extract_summary({"content": "<p>Hello</p> world [+812 chars]"}) == "Hello world"
    assert extract_summary({}) == "No summary available"
    assert not is_valid_article({"title": "t", "url": "https://a.com"})


# ===================================================================
# GitHub
# ===================================================================


def _repo(name: str, **overrides):
    repo = {
        "full_name": f"octo/{name}",
        "html_url": f"https://github.com/octo/{name}",
        "description": f"{name} library",
        "stargazers_count": 120,
        "forks_count": 7,
        "language": "Python",
        "owner": {"login": "octo"},
        "updated_at": "2024-06-01T00:00:00Z",
        "topics": ["cli"],
    }
    repo.update(overrides)
    return repo


@pytest.mark.asyncio
async def test_github_merges_search_and_trending(limiter) -> None:
    seen: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        if "created:>" in request.url.params["q"]:
            return httpx.Response(200, json={"items": [_repo("fresh"), _repo("alpha")]})
        return httpx.Response(200, json={"items": [_repo("alpha"), _repo("beta")]})

    provider = GitHubProvider(token="tok", limiter=limiter, transport=transport_for(handler, seen))
    results = await provider.collect("cli", 10)

    assert [r.title for r in results] == ["octo/alpha", "octo/beta", "octo/fresh 🔥"]
    assert results[2].extra["repository_type"] == "trending"
    assert "⭐ 120 stars" in results[0].summary
    assert seen[0].headers["Authorization"] == "token tok"
    assert seen[0].url.params["per_page"] == "7"
    assert seen[1].url.params["per_page"] == "3"
    assert limiter.count(provider.rate_limit_key, provider.rate_limit) == 1


@pytest.mark.asyncio
async def test_github_trending_failure_keeps_search_results(limiter) -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        if "created:>" in request.url.params["q"]:
            return httpx.Response(500)
        return httpx.Response(200, json={"items": [_repo("alpha")]})

    provider = GitHubProvider(limiter=limiter, transport=httpx.MockTransport(handler))
    results = await provider.collect("cli", 10)
    assert [r.title for r in results] == ["octo/alpha"]


@pytest.mark.asyncio
async def test_github_exhausted_quota_is_a_quota_error(limiter) -> None:
    provider = GitHubProvider(
        limiter=limiter,
        transport=httpx.MockTransport(lambda r: httpx.Response(403, headers={"x-ratelimit-remaining": "0"})),
    )
    outcome = await provider.attempt("cli", 10)
    assert outcome.error.kind == "quota"


@pytest.mark.asyncio
async def test_github_search_by_language(limiter) -> None:
    seen: list[httpx.Request] = []
    provider = GitHubProvider(
        limiter=limiter,
        transport=transport_for(lambda r: httpx.Response(200, json={"items": [_repo("alpha"), _repo("beta")]}), seen),
    )
    results = await provider.search_by_language("rust", limit=1)

    assert seen[0].url.params["q"] == "language:rust"
    assert seen[0].url.params["sort"] == "stars"
    assert [r.title for r in results] == ["octo/alpha"]
    assert limiter.count(provider.rate_limit_key, provider.rate_limit) == 1


@pytest.mark.asyncio
async def test_github_releases(limiter) -> None:
    seen: list[httpx.Request] = []
    payload = [
        {
            "name": "v2.0 Big one",
            "tag_name": "v2.0",
            "html_url": "https://github.com/octo/alpha/releases/tag/v2.0",
            "body": "## Highlights\r\n- faster " + "x" * 400,
            "published_at": "2024-06-01T12:00:00Z",
            "author": {"login": "octo"},
        },
        {"name": "draft", "tag_name": "v2.1", "html_url": "https://github.com/octo/alpha/d", "published_at": None},
        {
            "name": None,
            "tag_name": "v1.0",
            "html_url": "https://github.com/octo/alpha/releases/tag/v1.0",
            "body": None,
            "published_at": "2024-01-01T00:00:00Z",
            "author": None,
        },
    ]
    provider = GitHubProvider(
        limiter=limiter, transport=transport_for(lambda r: httpx.Response(200, json=payload), seen)
    )

    results = await provider.releases("octo", "alpha", limit=5)

    assert seen[0].url.path == "/repos/octo/alpha/releases"
    assert seen[0].url.params["per_page"] == "5"
    assert [r.title for r in results] == ["octo/alpha - v2.0 Big one", "octo/alpha - v1.0"]
    first = results[0]
    assert first.source_name == "GitHub Releases"
    assert first.summary.startswith("Highlights\n- faster")
    assert first.summary.endswith("...")
    assert "#" not in first.summary
    assert first.extra["tag_name"] == "v2.0"
    assert first.extra["repository"] == "octo/alpha"
    assert first.published_at == dt.datetime(2024, 6, 1, 12, tzinfo=dt.UTC)
    assert results[1].summary == "No release notes available"


@pytest.mark.asyncio
async def test_github_releases_for_missing_repo_is_empty(limiter) -> None:
    provider = GitHubProvider(limiter=limiter, transport=httpx.MockTransport(lambda r: httpx.Response(404)))
    assert await provider.releases("octo", "missing") == []


@pytest.mark.asyncio
async def test_github_rate_limit_info(limiter) -> None:
    payload = {"rate": {"limit": 5000, "remaining": 4990, "reset": 1717243200}}
    provider = GitHubProvider(
        token="tok", limiter=limiter, transport=httpx.MockTransport(lambda r: httpx.Response(200, json=payload))
    )

    info = await provider.rate_limit_info()

    assert info == GitHubRateLimit(
        limit=5000, remaining=4990, reset_at=dt.datetime.fromtimestamp(1717243200, dt.UTC)
    )
    assert limiter.keys() == []


@pytest.mark.asyncio
async def test_github_rate_limit_info_failure_returns_none(limiter) -> None:
    provider = GitHubProvider(limiter=limiter, transport=httpx.MockTransport(lambda r: httpx.Response(500)))
    assert await provider.rate_limit_info() is None


# ===================================================================
# RSS
# ===================================================================

FEED_XML = b"""<?xml version="1.0" encoding="UTF-8"?>
<rss version="2.0">
  <channel>
    <title>Example Blog</title>
    <item>
      <title>Python 3.13 released</title>
      <link>https://blog.example/python-313</link>
      <description>&lt;p&gt;Faster &lt;b&gt;CPython&lt;/b&gt;&lt;/p&gt;</description>
      <pubDate>Tue, 01 Oct 2024 12:00:00 GMT</pubDate>
      <category>release</category>
    </item>
    <item>
      <title>Rust news</title>
      <link>https://blog.example/rust</link>
      <description>Borrow checker</description>
    </item>
  </channel>
</rss>
"""


@pytest.mark.asyncio
async def test_rss_filters_by_query_and_survives_broken_feed(limiter) -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        if request.url.host == "broken.example":
            return httpx.Response(500)
        return httpx.Response(200, content=FEED_XML, headers={"Content-Type": "application/rss+xml"})

    feeds = [
        FeedSource(name="Example", url="https://blog.example/feed", category="tech"),
        FeedSource(name="Broken", url="https://broken.example/feed"),
        FeedSource(name="Inactive", url="https://inactive.example/feed", active=False),
    ]
    provider = RssProvider(feeds=feeds, limiter=limiter, transport=httpx.MockTransport(handler))
    [item] = await provider.collect("python", 10)

    assert item.source_name == "Example"
    assert item.type is ContentType.RSS
    assert item.summary == "Faster CPython"
    assert item.published_at == dt.datetime(2024, 10, 1, 12, tzinfo=dt.UTC)
    assert item.extra["categories"] == ["release"]
    assert item.extra["feed_category"] == "tech"


@pytest.mark.asyncio
async def test_rss_empty_query_keeps_everything(limiter) -> None:
    provider = RssProvider(
        feeds=[FeedSource(name="Example", url="https://blog.example/feed")],
        limiter=limiter,
        transport=httpx.MockTransport(lambda r: httpx.Response(200, content=FEED_XML)),
    )
    results = await provider.collect("", 10)
    assert [r.url for r in results] == ["https://blog.example/python-313", "https://blog.example/rust"]


def test_rss_without_active_feeds_is_disabled(limiter) -> None:
    provider = RssProvider(feeds=[FeedSource(name="Off", url="https://x.example", active=False)], limiter=limiter)
    assert not provider.enabled()
