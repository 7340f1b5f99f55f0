"""服务内的异常层级，HTTP 与 MCP 入口据此映射状态码。"""

from __future__ import annotations

from typing import Optional


class AITrendsError(Exception):
    """所有业务异常的基类。"""


class UpstreamError(AITrendsError, RuntimeError):
    """GitHub 搜索接口不可达或返回非 2xx。status 为 None 表示传输层失败。"""

    def __init__(self, message: str, status: Optional[int] = None) -> None:
        super().__init__(message)
        self.message = message
        self.status = status


class RateLimitError(UpstreamError):
    """GitHub 未鉴权限流（403/429）。"""


class NoCachedData(UpstreamError):
    """刷新失败且缓存为空，没有可回退的数据。"""


class ValidationError(AITrendsError, ValueError):
    """摘要请求缺少字段或字段非法。"""


class ProviderError(AITrendsError, RuntimeError):
    """LLM 提供方调用失败，message 中不含调用方凭证。"""

    def __init__(self, message: str, status: Optional[int] = None) -> None:
        super().__init__(message)
        self.message = message
        self.status = status
