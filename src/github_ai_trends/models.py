"""定义趋势缓存与摘要路由会用到的数据结构。"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timedelta
from enum import Enum
from typing import Any, Dict, List, Mapping, Optional, Tuple

from .utils import age_seconds, isoformat_utc


@dataclass(frozen=True, slots=True)
class RepositoryRecord:
    """一次搜索结果中的仓库，创建后不再修改。"""

    id: int
    name: str
    full_name: str
    description: Optional[str]
    stargazers_count: int
    html_url: str
    topics: Tuple[str, ...]
    updated_at: str
    language: Optional[str]
    created_at: str

    @classmethod
    def from_api(cls, item: Mapping[str, Any]) -> "RepositoryRecord":
        """由 GitHub 搜索接口的 item 构造；description 为 None 与空串含义不同，原样保留。"""
        return cls(
            id=int(item["id"]),
            name=item.get("name") or "",
            full_name=item.get("full_name") or "",
            description=item.get("description"),
            stargazers_count=int(item.get("stargazers_count") or 0),
            html_url=item.get("html_url") or "",
            topics=tuple(topic for topic in item.get("topics") or () if isinstance(topic, str)),
            updated_at=item.get("updated_at") or "",
            language=item.get("language"),
            created_at=item.get("created_at") or "",
        )

    def to_dict(self) -> Dict[str, Any]:
        """转为与 GitHub 字段同名的 JSON 友好结构。"""
        return {
            "id": self.id,
            "name": self.name,
            "full_name": self.full_name,
            "description": self.description,
            "stargazers_count": self.stargazers_count,
            "html_url": self.html_url,
            "topics": list(self.topics),
            "updated_at": self.updated_at,
            "language": self.language,
            "created_at": self.created_at,
        }


@dataclass(frozen=True, slots=True)
class CacheSlot:
    """进程内唯一的缓存槽，整体替换，从不原地修改。"""

    records: Tuple[RepositoryRecord, ...]
    fetched_at: datetime

    def age(self, now: datetime) -> timedelta:
        return now - self.fetched_at


@dataclass(slots=True)
class TrendsResult:
    """一次 get_trends 调用的结果。"""

    records: Tuple[RepositoryRecord, ...]
    fetched_at: datetime
    is_stale: bool = False
    warning: Optional[str] = None
    cache_age_seconds: int = 0

    @property
    def total_count(self) -> int:
        return len(self.records)

    def to_dict(self) -> Dict[str, Any]:
        """转成 /trends 的响应体；仅在回退到旧数据时附带 warning。"""
        payload: Dict[str, Any] = {
            "repositories": [record.to_dict() for record in self.records],
            "cached_at": isoformat_utc(self.fetched_at),
            "total_count": self.total_count,
        }
        if self.warning:
            payload["warning"] = self.warning
        payload["cache_age_seconds"] = self.cache_age_seconds
        return payload


@dataclass(slots=True)
class CacheStatus:
    """缓存诊断信息，读取时不会触发抓取。"""

    has_data: bool
    last_fetch: Optional[datetime]
    age_seconds: int
    is_valid: bool

    @classmethod
    def from_slot(cls, slot: Optional[CacheSlot], now: datetime, window: timedelta) -> "CacheStatus":
        if slot is None:
            return cls(has_data=False, last_fetch=None, age_seconds=0, is_valid=False)
        age = slot.age(now)
        return cls(
            has_data=True,
            last_fetch=slot.fetched_at,
            age_seconds=age_seconds(age),
            is_valid=age < window,
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "has_data": self.has_data,
            "last_fetch": isoformat_utc(self.last_fetch) if self.last_fetch else None,
            "age_seconds": self.age_seconds,
            "is_valid": self.is_valid,
        }


class Provider(str, Enum):
    """支持的 LLM 提供方，闭集。"""

    OPENAI = "openai"
    GROQ = "groq"

    @classmethod
    def values(cls) -> List[str]:
        return [member.value for member in cls]


@dataclass(frozen=True, slots=True)
class ProviderConfig:
    """单个提供方的固定配置：新增提供方只需增加一条配置。"""

    endpoint: str
    model: str
    label: str


@dataclass(slots=True)
class SummarizeRequest:
    """单次摘要请求，只存在于请求生命周期内。"""

    text: str
    credential: str = field(repr=False)
    provider: Provider


@dataclass(slots=True)
class SummaryResult:
    """摘要结果。"""

    summary: str
    provider: Provider
    generated_at: datetime

    def to_dict(self) -> Dict[str, Any]:
        return {
            "summary": self.summary,
            "provider": self.provider.value,
            "timestamp": isoformat_utc(self.generated_at),
        }
