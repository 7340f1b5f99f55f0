"""工具函数模块，供缓存、抓取与摘要模块复用。"""

from __future__ import annotations

import logging
import os
import re
from datetime import datetime, timedelta, timezone
from typing import Optional

logger = logging.getLogger(__name__)


# 句末标点后跟空白或文本结尾，视为一句结束
_SENTENCE_END_RE = re.compile(r"[.!?。！？]+(?=\s|$)")
_SENTENCE_TERMINATORS = tuple(".!?。！？")
REDACTED = "***"


def utcnow() -> datetime:
    """返回带时区的当前 UTC 时间，作为默认时钟。"""
    return datetime.now(timezone.utc)


def isoformat_utc(moment: datetime) -> str:
    """输出 `2024-01-15T10:30:00.000Z` 形式的毫秒级 UTC 时间串。"""

    if moment.tzinfo is None:
        moment = moment.replace(tzinfo=timezone.utc)
    moment = moment.astimezone(timezone.utc)
    return moment.strftime("%Y-%m-%dT%H:%M:%S.") + f"{moment.microsecond // 1000:03d}Z"


def age_seconds(age: timedelta) -> int:
    """把缓存年龄四舍五入到整秒，负值（时钟回拨）按 0 处理。"""
    return max(0, int(age.total_seconds() + 0.5))


def redact(text: Optional[str], secret: Optional[str]) -> str:
    """把文本中出现的凭证替换为占位符，用于错误信息回传前的清洗。"""

    if not text:
        return ""
    if not secret:
        return text
    return text.replace(secret, REDACTED)


def count_sentences(text: str) -> int:
    """粗略统计句子数量，仅用于日志提示，不做强制校验。"""

    stripped = text.strip()
    if not stripped:
        return 0
    count = len(_SENTENCE_END_RE.findall(stripped))
    # 末句缺少标点时也计为一句
    if not stripped.endswith(_SENTENCE_TERMINATORS):
        count += 1
    return count


def read_timeout_from_env(name: str = "AI_TRENDS_HTTP_TIMEOUT", default: int = 20) -> int:
    """读取上游请求超时（秒），非法值回落到默认值。"""

    raw = os.environ.get(name)
    if not raw:
        return default
    try:
        return max(1, int(raw))
    except ValueError:
        logger.warning("%s=%s 不是整数，使用默认值 %s", name, raw, default)
        return default


def read_flag_from_env(name: str) -> bool:
    return os.environ.get(name, "").strip().lower() in {"1", "true", "yes", "on"}
