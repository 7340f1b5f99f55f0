"""测试共用的时钟、仓库样例与桩对象。"""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
from typing import Any, Dict, List, Optional

import pytest

from github_ai_trends.errors import UpstreamError
from github_ai_trends.models import RepositoryRecord


class FakeClock:
    """可手动推进的时钟。"""

    def __init__(self, start: Optional[datetime] = None) -> None:
        self.now = start or datetime(2024, 3, 10, 12, 0, 0, tzinfo=timezone.utc)

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs: float) -> None:
        self.now = self.now + timedelta(**kwargs)


def make_item(
    repo_id: int,
    name: str = "llm-toolkit",
    stars: int = 10,
    topics: Optional[List[str]] = None,
    description: Optional[str] = "A toolkit",
) -> Dict[str, Any]:
    return {
        "id": repo_id,
        "name": name,
        "full_name": f"octo/{name}",
        "description": description,
        "stargazers_count": stars,
        "html_url": f"https://github.com/octo/{name}",
        "topics": ["ai"] if topics is None else topics,
        "updated_at": "2024-03-09T08:00:00Z",
        "language": "Python",
        "created_at": "2024-03-08T08:00:00Z",
    }


def make_record(repo_id: int, **kwargs: Any) -> RepositoryRecord:
    return RepositoryRecord.from_api(make_item(repo_id, **kwargs))


class StubFetcher:
    """按顺序返回预置结果的抓取器；元素为异常时抛出。"""

    def __init__(self, *outcomes: Any) -> None:
        self.outcomes = list(outcomes)
        self.calls = 0
        self.closed = False

    def fetch_and_filter(self) -> List[RepositoryRecord]:
        self.calls += 1
        outcome = self.outcomes.pop(0) if len(self.outcomes) > 1 else self.outcomes[0]
        if isinstance(outcome, Exception):
            raise outcome
        return list(outcome)

    def close(self) -> None:
        self.closed = True


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def records() -> List[RepositoryRecord]:
    return [make_record(1, name="agent-kit", stars=50), make_record(2, name="vision-lab", stars=10)]


@pytest.fixture
def upstream_down() -> UpstreamError:
    return UpstreamError("GitHub API error: 503", status=503)
