"""封装 GitHub 搜索查询构造、请求与 AI 相关性过滤的核心逻辑。"""

from __future__ import annotations

import logging
import os
import re
from collections import OrderedDict
from dataclasses import dataclass, field
from datetime import date, datetime, timedelta, timezone
from typing import Any, Callable, Dict, Iterable, List, Optional, Pattern

import requests

from .constants import (
    AI_TEXT_PATTERNS,
    AI_TOPIC_VOCABULARY,
    DEFAULT_TIMEOUT,
    GITHUB_ACCEPT,
    GITHUB_API_URL,
    LOOKBACK_DAYS,
    RATE_LIMIT_STATUSES,
    SEARCH_ORDER,
    SEARCH_PER_PAGE,
    SEARCH_SORT,
    SEARCH_TOPIC,
    USER_AGENT,
)
from .errors import RateLimitError, UpstreamError
from .models import RepositoryRecord
from .utils import read_timeout_from_env, utcnow

logger = logging.getLogger(__name__)


def cutoff_date(now: datetime, days: int = LOOKBACK_DAYS) -> date:
    """返回 now 往前 days 天的 UTC 日历日期。"""
    if now.tzinfo is not None:
        now = now.astimezone(timezone.utc)
    return (now - timedelta(days=days)).date()


def build_search_query(now: datetime, topic: str = SEARCH_TOPIC, days: int = LOOKBACK_DAYS) -> str:
    """生成 `topic:ai created:>YYYY-MM-DD` 形式的搜索表达式。"""
    return f"topic:{topic} created:>{cutoff_date(now, days).isoformat()}"


def _compile_text_pattern(patterns: Iterable[str]) -> Pattern[str]:
    return re.compile("(" + "|".join(patterns) + ")", re.IGNORECASE)


@dataclass(slots=True)
class RelevanceFilter:
    """AI 相关性判定：话题命中词表，或名称/描述命中正则，满足其一即保留。"""

    topics: frozenset[str] = AI_TOPIC_VOCABULARY
    text_patterns: tuple[str, ...] = AI_TEXT_PATTERNS
    _pattern: Pattern[str] = field(init=False, repr=False)

    def __post_init__(self) -> None:
        self.topics = frozenset(topic.lower() for topic in self.topics)
        self._pattern = _compile_text_pattern(self.text_patterns)

    def has_ai_topic(self, record: RepositoryRecord) -> bool:
        # 子串匹配，"generative-ai" 之类的话题同样命中
        return any(term in topic.lower() for topic in record.topics for term in self.topics)

    def mentions_ai(self, record: RepositoryRecord) -> bool:
        haystack = f"{record.name} {record.description or ''}"
        return self._pattern.search(haystack) is not None

    def matches(self, record: RepositoryRecord) -> bool:
        if record.stargazers_count < 0:
            return False
        return self.has_ai_topic(record) or self.mentions_ai(record)

    def apply(self, records: Iterable[RepositoryRecord]) -> List[RepositoryRecord]:
        """保持输入顺序过滤，不重新排序。"""
        return [record for record in records if self.matches(record)]


class GitHubSearchClient:
    """GitHub 仓库搜索接口的轻量封装，只拉取单页结果。"""

    def __init__(self, token: Optional[str] = None, timeout: int = DEFAULT_TIMEOUT) -> None:
        self.session = requests.Session()
        self.session.headers.update({"User-Agent": USER_AGENT, "Accept": GITHUB_ACCEPT})
        if token:
            self.session.headers["Authorization"] = f"Bearer {token}"
        self.timeout = timeout

    def search_repositories(
        self,
        query: str,
        sort: str = SEARCH_SORT,
        order: str = SEARCH_ORDER,
        per_page: int = SEARCH_PER_PAGE,
    ) -> Dict[str, Any]:
        """执行搜索，返回 `{total_count, items}`；失败时抛出 UpstreamError。"""
        url = f"{GITHUB_API_URL}/search/repositories"
        params = {"q": query, "sort": sort, "order": order, "per_page": per_page}
        logger.info("请求 GitHub 搜索接口：q=%s", query)
        try:
            response = self.session.get(url, params=params, timeout=self.timeout)
        except requests.exceptions.RequestException as exc:
            logger.error("请求 GitHub 搜索接口时发生异常：%s", exc)
            raise UpstreamError(f"GitHub API request failed: {exc}") from exc
        logger.debug("GitHub 搜索接口状态码：%s", response.status_code)
        if response.status_code in RATE_LIMIT_STATUSES:
            logger.warning("GitHub API 触发限流，状态码：%s，响应：%s", response.status_code, response.text)
            raise RateLimitError(
                "GitHub API rate limit exceeded. Please try again later.",
                status=response.status_code,
            )
        if not 200 <= response.status_code < 300:
            logger.error("GitHub 搜索接口返回错误，状态码：%s，响应：%s", response.status_code, response.text)
            raise UpstreamError(f"GitHub API error: {response.status_code}", status=response.status_code)
        try:
            data = response.json()
        except ValueError as exc:
            raise UpstreamError("GitHub API returned invalid JSON", status=response.status_code) from exc
        if not isinstance(data, dict) or not isinstance(data.get("items"), list):
            raise UpstreamError("GitHub API returned an unexpected payload", status=response.status_code)
        return data

    def close(self) -> None:
        """释放会话资源。"""
        self.session.close()


class TrendsFetcher:
    """构造查询 -> 请求 GitHub -> 解析去重 -> 相关性过滤。"""

    def __init__(
        self,
        client: Optional[GitHubSearchClient] = None,
        relevance_filter: Optional[RelevanceFilter] = None,
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        self.client = client or GitHubSearchClient()
        self.relevance_filter = relevance_filter or RelevanceFilter()
        self.clock = clock

    def fetch_and_filter(self) -> List[RepositoryRecord]:
        query = build_search_query(self.clock())
        data = self.client.search_repositories(query)
        try:
            return self._select(data)
        except Exception as exc:
            # 解析或过滤阶段的意外错误统一视为上游失败，交给缓存回退
            logger.exception("处理 GitHub 搜索结果时发生异常")
            raise UpstreamError(f"Failed to process GitHub response: {exc}") from exc

    def _select(self, data: Dict[str, Any]) -> List[RepositoryRecord]:
        items = data["items"]
        logger.info("近 %s 天查询返回 %s 个仓库（total_count=%s）", LOOKBACK_DAYS, len(items), data.get("total_count"))
        # 按 id 去重，保留首次出现的位置以维持星标排序
        unique: "OrderedDict[int, RepositoryRecord]" = OrderedDict()
        for item in items:
            try:
                record = RepositoryRecord.from_api(item)
            except (KeyError, TypeError, ValueError) as exc:
                logger.warning("跳过无法解析的仓库条目：%s", exc)
                continue
            unique.setdefault(record.id, record)
        filtered = self.relevance_filter.apply(unique.values())
        logger.info("AI 相关性过滤后剩余 %s 个仓库", len(filtered))
        return filtered

    def close(self) -> None:
        """确保底层 HTTP 会话被释放。"""
        self.client.close()


def build_fetcher_from_env() -> TrendsFetcher:
    """从环境变量读取 token 与超时，构造抓取器。"""
    token = os.environ.get("GITHUB_TOKEN") or os.environ.get("GITHUB_PAT")
    return TrendsFetcher(client=GitHubSearchClient(token=token, timeout=read_timeout_from_env()))
