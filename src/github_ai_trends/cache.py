"""进程级单槽趋势缓存：新鲜度判定、强制刷新与失败时回退旧数据。"""

from __future__ import annotations

import logging
import threading
from datetime import datetime, timedelta
from typing import Callable, Iterable, Optional

from .constants import FRESHNESS_WINDOW, STALE_WARNING, STALE_WARNING_GENERIC
from .errors import NoCachedData, UpstreamError
from .fetcher import TrendsFetcher, build_fetcher_from_env
from .models import CacheSlot, CacheStatus, RepositoryRecord, TrendsResult
from .utils import age_seconds, read_flag_from_env, utcnow

logger = logging.getLogger(__name__)


class TrendsCache:
    """持有唯一的 CacheSlot，由应用创建后注入到各请求处理器。

    槽位只通过 `store` 整体替换；读取方拿到的引用要么是旧槽要么是新槽。
    默认不合并并发刷新，两个冷启动请求可能都会访问上游，最后写入者生效。
    开启 `single_flight` 后，并发刷新串行执行，等待者直接复用刚写入的新槽。
    """

    def __init__(
        self,
        fetcher: TrendsFetcher,
        freshness_window: timedelta = FRESHNESS_WINDOW,
        clock: Callable[[], datetime] = utcnow,
        single_flight: bool = False,
    ) -> None:
        self.fetcher = fetcher
        self.freshness_window = freshness_window
        self.clock = clock
        self.single_flight = single_flight
        self._slot: Optional[CacheSlot] = None
        self._swap_lock = threading.Lock()
        self._refresh_lock = threading.Lock()

    @property
    def slot(self) -> Optional[CacheSlot]:
        return self._slot

    def store(self, records: Iterable[RepositoryRecord], fetched_at: datetime) -> CacheSlot:
        """原子替换缓存槽。"""
        slot = CacheSlot(records=tuple(records), fetched_at=fetched_at)
        with self._swap_lock:
            self._slot = slot
        return slot

    def is_fresh(self, slot: Optional[CacheSlot], now: datetime) -> bool:
        return slot is not None and slot.age(now) < self.freshness_window

    def get_trends(self, bypass_requested: bool = False) -> TrendsResult:
        """返回趋势数据；缓存为空且刷新失败时抛出 NoCachedData。"""
        slot = self._slot
        now = self.clock()
        if not bypass_requested and self.is_fresh(slot, now):
            cache_age = age_seconds(slot.age(now))
            logger.info("返回缓存数据（age: %ss）", cache_age)
            return TrendsResult(records=slot.records, fetched_at=slot.fetched_at, cache_age_seconds=cache_age)

        logger.info("收到强制刷新请求" if bypass_requested else "缓存已过期，开始抓取新数据")
        try:
            fresh = self._refresh(slot)
        except UpstreamError as exc:
            return self._fallback(exc)
        return TrendsResult(records=fresh.records, fetched_at=fresh.fetched_at)

    def status(self) -> CacheStatus:
        """诊断用，不会触发抓取。"""
        return CacheStatus.from_slot(self._slot, self.clock(), self.freshness_window)

    def _refresh(self, observed: Optional[CacheSlot]) -> CacheSlot:
        if not self.single_flight:
            return self._fetch_and_store()
        with self._refresh_lock:
            current = self._slot
            if current is not None and current is not observed:
                logger.info("等待期间已有其他请求完成刷新，复用其结果")
                return current
            return self._fetch_and_store()

    def _fetch_and_store(self) -> CacheSlot:
        records = self.fetcher.fetch_and_filter()
        slot = self.store(records, self.clock())
        logger.info("抓取并缓存了 %s 个仓库", len(slot.records))
        return slot

    def _fallback(self, exc: UpstreamError) -> TrendsResult:
        slot = self._slot
        if slot is None:
            logger.error("GitHub 抓取失败且没有缓存可回退：%s", exc.message)
            raise NoCachedData(exc.message, status=exc.status) from exc
        cache_age = age_seconds(slot.age(self.clock()))
        logger.warning("GitHub 抓取失败，返回旧缓存数据（age: %ss）：%s", cache_age, exc.message)
        return TrendsResult(
            records=slot.records,
            fetched_at=slot.fetched_at,
            is_stale=True,
            warning=STALE_WARNING if exc.status is not None else STALE_WARNING_GENERIC,
            cache_age_seconds=cache_age,
        )

    def close(self) -> None:
        self.fetcher.close()


def build_cache_from_env(fetcher: Optional[TrendsFetcher] = None) -> TrendsCache:
    """从环境变量构造缓存，AI_TRENDS_SINGLE_FLIGHT 控制是否合并并发刷新。"""
    return TrendsCache(
        fetcher=fetcher or build_fetcher_from_env(),
        single_flight=read_flag_from_env("AI_TRENDS_SINGLE_FLIGHT"),
    )
