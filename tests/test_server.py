"""MCP/CLI 入口共用的辅助函数测试。"""

from __future__ import annotations

from unittest.mock import MagicMock

import pytest

from conftest import StubFetcher
from github_ai_trends.cache import TrendsCache
from github_ai_trends.errors import ProviderError, ValidationError
from github_ai_trends.server import build_arg_parser, fetch_trends_payload, summarize_payload
from github_ai_trends.summarizer import SummarizeRouter


def test_fetch_trends_payload_matches_http_shape(clock, records) -> None:
    payload = fetch_trends_payload(TrendsCache(StubFetcher(records), clock=clock))
    assert payload["total_count"] == 2
    assert payload["cache_age_seconds"] == 0


def test_fetch_trends_payload_reports_missing_data(clock, upstream_down) -> None:
    payload = fetch_trends_payload(TrendsCache(StubFetcher(upstream_down), clock=clock), force_refresh=True)
    assert payload == {"error": "GitHub API error: 503", "repositories": [], "total_count": 0}


def test_summarize_payload_rejects_bad_input() -> None:
    router = MagicMock(spec=SummarizeRouter)
    with pytest.raises(ValidationError):
        summarize_payload(router, "repo text", "", "openai")
    router.dispatch.assert_not_called()


def test_summarize_payload_returns_provider_error() -> None:
    router = MagicMock(spec=SummarizeRouter)
    router.dispatch.side_effect = ProviderError("Groq (Mixtral) API error: quota", status=429)
    assert summarize_payload(router, "repo text", "gsk_x", "groq") == {
        "error": "Groq (Mixtral) API error: quota",
        "status": 429,
    }


def test_arg_parser_defaults() -> None:
    args = build_arg_parser().parse_args(["--cli", "--force-refresh"])
    assert args.cli and args.force_refresh
    assert args.transport == "stdio"
