"""AI 趋势聚合服务的核心常量，便于全局复用。"""

from __future__ import annotations

from datetime import timedelta

from .models import Provider, ProviderConfig

# 缓存新鲜窗口：窗口内的请求直接命中缓存，不访问 GitHub
FRESHNESS_WINDOW = timedelta(minutes=5)
# 供中间层使用的 stale-while-revalidate 宽限期
STALE_WHILE_REVALIDATE = timedelta(minutes=10)
CACHE_CONTROL_HEADER = (
    f"public, s-maxage={int(FRESHNESS_WINDOW.total_seconds())}, "
    f"stale-while-revalidate={int(STALE_WHILE_REVALIDATE.total_seconds())}"
)

# 只搜索最近 7 天内创建的仓库
LOOKBACK_DAYS = 7
SEARCH_TOPIC = "ai"
SEARCH_SORT = "stars"
SEARCH_ORDER = "desc"
# 单页抓取，不做分页
SEARCH_PER_PAGE = 30

# 话题词表：话题中包含任一词（不区分大小写）即视为 AI 相关
AI_TOPIC_VOCABULARY: frozenset[str] = frozenset(
    {
        "ai",
        "machine-learning",
        "llm",
        "artificial-intelligence",
        "deep-learning",
        "neural-network",
        "tensorflow",
        "pytorch",
        "opencv",
    }
)
# 名称/描述词表，`.` 兼容 "computer vision" 与 "computer-vision" 等写法
AI_TEXT_PATTERNS: tuple[str, ...] = (
    "ai",
    "artificial",
    "intelligence",
    "machine",
    "learning",
    "neural",
    "deep",
    "ml",
    "nlp",
    "computer.vision",
    "data.science",
)

GITHUB_API_URL = "https://api.github.com"
GITHUB_ACCEPT = "application/vnd.github.v3+json"
USER_AGENT = "GitHub-AI-Trends/0.1 (+https://github.com)"
# 上游请求的默认超时（秒）
DEFAULT_TIMEOUT = 20
# GitHub 在未鉴权限流时可能返回 403 或 429
RATE_LIMIT_STATUSES: tuple[int, ...] = (403, 429)

# GitHub 返回非 2xx 时与传输层/处理异常时分别使用的回退提示
STALE_WARNING = "Using stale cached data due to GitHub API error"
STALE_WARNING_GENERIC = "Using stale cached data due to API error"

SUMMARY_INSTRUCTION = (
    "You are a technical writer summarizing GitHub repositories. "
    "Reply with exactly three sentences: the first describes what the project does, "
    "the second its key features, and the third its intended use case."
)
SUMMARY_SENTENCES = 3
SUMMARY_TEMPERATURE = 0.3
SUMMARY_MAX_TOKENS = 200

# 每个提供方一条配置，路由按枚举查表而非字符串分支
PROVIDER_CONFIGS: dict[Provider, ProviderConfig] = {
    Provider.OPENAI: ProviderConfig(
        endpoint="https://api.openai.com/v1/chat/completions",
        model="gpt-3.5-turbo",
        label="OpenAI (GPT-3.5)",
    ),
    Provider.GROQ: ProviderConfig(
        endpoint="https://api.groq.com/openai/v1/chat/completions",
        model="mixtral-8x7b-32768",
        label="Groq (Mixtral)",
    ),
}
