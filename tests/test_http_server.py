"""HTTP 层的端到端测试：注入桩抓取器与模拟会话，覆盖 /trends 与 /summarize。"""

from __future__ import annotations

from unittest.mock import MagicMock, Mock

import pytest
import requests
from fastapi.testclient import TestClient

from conftest import StubFetcher, make_item
from github_ai_trends.cache import TrendsCache
from github_ai_trends.constants import CACHE_CONTROL_HEADER
from github_ai_trends.errors import RateLimitError
from github_ai_trends.fetcher import GitHubSearchClient, TrendsFetcher
from github_ai_trends.http_server import create_app
from github_ai_trends.summarizer import SummarizeRouter

SECRET = "gsk_live_secret_value"


def _mock_session() -> MagicMock:
    session = MagicMock(spec=requests.Session)
    session.headers = {}
    return session


@pytest.fixture
def provider_session() -> MagicMock:
    session = _mock_session()
    response = Mock(status_code=200)
    response.json.return_value = {"choices": [{"message": {"content": "One. Two. Three."}}]}
    session.post.return_value = response
    return session


def _client(fetcher, clock, provider_session=None) -> TestClient:
    cache = TrendsCache(fetcher, clock=clock)
    router = SummarizeRouter(session=provider_session or _mock_session(), clock=clock)
    return TestClient(create_app(cache=cache, router=router))


class TestTrendsEndpoint:

    def test_example_scenario(self, clock) -> None:
        """冷启动抓取后 30 秒内再次请求直接命中缓存。"""
        search = MagicMock(spec=GitHubSearchClient)
        search.search_repositories.return_value = {
            "total_count": 3,
            "items": [
                make_item(3, name="todo", stars=1000, topics=["cli"], description="Task tracker"),
                make_item(1, name="agent-kit", stars=50),
                make_item(2, name="vision-lab", stars=10),
            ],
        }
        client = _client(TrendsFetcher(client=search, clock=clock), clock)

        first = client.get("/trends")
        assert first.status_code == 200
        body = first.json()
        assert [repo["stargazers_count"] for repo in body["repositories"]] == [50, 10]
        assert body["total_count"] == 2
        assert body["cache_age_seconds"] == 0
        assert body["cached_at"] == "2024-03-10T12:00:00.000Z"
        assert "warning" not in body
        assert first.headers["cache-control"] == CACHE_CONTROL_HEADER

        clock.advance(seconds=30)
        second = client.get("/trends")
        assert second.json()["repositories"] == body["repositories"]
        assert second.json()["cache_age_seconds"] == 30
        assert search.search_repositories.call_count == 1

    @pytest.mark.parametrize("query", ["?t=1710072000000", "?t=", "?t"])
    def test_bypass_marker_presence_forces_refresh(self, clock, records, query) -> None:
        fetcher = StubFetcher(records)
        client = _client(fetcher, clock)
        client.get("/trends")
        response = client.get(f"/trends{query}")
        assert response.status_code == 200
        assert fetcher.calls == 2
        assert response.json()["cache_age_seconds"] == 0

    def test_stale_fallback_adds_warning(self, clock, records, upstream_down) -> None:
        client = _client(StubFetcher(records, upstream_down), clock)
        client.get("/trends")
        clock.advance(minutes=7)
        response = client.get("/trends")
        body = response.json()
        assert response.status_code == 200
        assert body["warning"] == "Using stale cached data due to GitHub API error"
        assert body["cache_age_seconds"] == 420
        assert body["total_count"] == 2
        assert "cache-control" not in response.headers

    def test_non_string_topics_on_refresh_still_return_200(self, clock) -> None:
        search = MagicMock(spec=GitHubSearchClient)
        search.search_repositories.side_effect = [
            {"total_count": 1, "items": [make_item(1, name="agent-kit", stars=50)]},
            {"total_count": 1, "items": [make_item(2, topics=[None, "x"])]},
        ]
        client = _client(TrendsFetcher(client=search, clock=clock), clock)
        assert client.get("/trends").status_code == 200
        response = client.get("/trends?t=1")
        assert response.status_code == 200
        assert response.json()["total_count"] == 0
        assert search.search_repositories.call_count == 2

    def test_unprocessable_refresh_serves_stale_data(self, clock) -> None:
        search = MagicMock(spec=GitHubSearchClient)
        search.search_repositories.side_effect = [
            {"total_count": 1, "items": [make_item(1, name="agent-kit", stars=50)]},
            {"total_count": 1},
        ]
        client = _client(TrendsFetcher(client=search, clock=clock), clock)
        client.get("/trends")
        response = client.get("/trends?t=1")
        body = response.json()
        assert response.status_code == 200
        assert body["warning"] == "Using stale cached data due to API error"
        assert [repo["id"] for repo in body["repositories"]] == [1]

    def test_no_data_returns_500(self, clock) -> None:
        limited = RateLimitError("GitHub API rate limit exceeded. Please try again later.", status=403)
        client = _client(StubFetcher(limited), clock)
        response = client.get("/trends")
        assert response.status_code == 500
        assert response.json() == {
            "error": "GitHub API rate limit exceeded. Please try again later.",
            "repositories": [],
            "total_count": 0,
        }

    def test_options_reports_status_without_fetching(self, clock, records) -> None:
        fetcher = StubFetcher(records)
        client = _client(fetcher, clock)
        empty = client.options("/trends").json()
        assert empty["cache_status"] == {"has_data": False, "last_fetch": None, "age_seconds": 0, "is_valid": False}
        assert empty["cache_duration_minutes"] == 5
        assert fetcher.calls == 0

        client.get("/trends")
        clock.advance(seconds=90)
        status = client.options("/trends").json()["cache_status"]
        assert status == {"has_data": True, "last_fetch": "2024-03-10T12:00:00.000Z", "age_seconds": 90, "is_valid": True}
        assert fetcher.calls == 1

    def test_health(self, clock) -> None:
        assert _client(StubFetcher([]), clock).get("/health").json() == {"status": "ok"}


class TestSummarizeEndpoint:

    def test_success(self, clock, provider_session) -> None:
        client = _client(StubFetcher([]), clock, provider_session)
        response = client.post("/summarize", json={"text": "repo text", "apiKey": SECRET, "provider": "groq"})
        assert response.status_code == 200
        assert response.json() == {"summary": "One. Two. Three.", "provider": "groq", "timestamp": "2024-03-10T12:00:00.000Z"}

    @pytest.mark.parametrize(
        "payload",
        [
            {"apiKey": SECRET, "provider": "openai"},
            {"text": "repo text", "provider": "openai"},
            {"text": "repo text", "apiKey": SECRET},
            {"text": "repo text", "apiKey": SECRET, "provider": "mistral"},
            ["not", "an", "object"],
        ],
    )
    def test_invalid_payload_returns_400(self, clock, provider_session, payload) -> None:
        client = _client(StubFetcher([]), clock, provider_session)
        response = client.post("/summarize", json=payload)
        assert response.status_code == 400
        assert response.json()["code"] == "validation_error"
        assert SECRET not in response.text
        provider_session.post.assert_not_called()

    def test_malformed_json_returns_400(self, clock, provider_session) -> None:
        client = _client(StubFetcher([]), clock, provider_session)
        response = client.post("/summarize", content=b"{not json", headers={"Content-Type": "application/json"})
        assert response.status_code == 400
        assert response.json()["code"] == "invalid_json"

    def test_provider_status_is_mirrored(self, clock, provider_session) -> None:
        failure = Mock(status_code=429, reason="Too Many Requests")
        failure.json.return_value = {"error": {"message": "Rate limit reached"}}
        provider_session.post.return_value = failure
        client = _client(StubFetcher([]), clock, provider_session)
        response = client.post("/summarize", json={"text": "repo text", "apiKey": SECRET, "provider": "openai"})
        assert response.status_code == 429
        body = response.json()
        assert body["code"] == "provider_error"
        assert "Rate limit reached" in body["error"]
        assert SECRET not in response.text

    def test_unreachable_provider_returns_502(self, clock, provider_session) -> None:
        provider_session.post.side_effect = requests.exceptions.ConnectTimeout("timed out")
        client = _client(StubFetcher([]), clock, provider_session)
        response = client.post("/summarize", json={"text": "repo text", "apiKey": SECRET, "provider": "groq"})
        assert response.status_code == 502
        assert SECRET not in response.text
