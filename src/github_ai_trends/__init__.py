"""GitHub AI Trends 服务的对外包入口。"""

from .cache import TrendsCache, build_cache_from_env
from .fetcher import TrendsFetcher, build_fetcher_from_env
from .summarizer import SummarizeRouter, build_router_from_env

__all__ = [
    "SummarizeRouter",
    "TrendsCache",
    "TrendsFetcher",
    "build_cache_from_env",
    "build_fetcher_from_env",
    "build_router_from_env",
]
