"""AI 趋势 MCP 服务器的入口与工具定义，也支持直接以 CLI 输出 JSON。"""

from __future__ import annotations

import argparse
import json
import logging
from typing import Any, Dict

from .cache import TrendsCache, build_cache_from_env
from .errors import NoCachedData, ProviderError
from .summarizer import SummarizeRouter, build_router_from_env
from .validation import build_trends_metadata, validate_inputs

logger = logging.getLogger(__name__)

try:  # pragma: no cover - 尽力加载的可选依赖
    from mcp.server.fastmcp import FastMCP
except ImportError:  # pragma: no cover
    FastMCP = None  # type: ignore


def _format_json(data: Dict[str, Any]) -> str:
    """格式化 JSON，便于 CLI 或 TextContent 输出。"""
    return json.dumps(data, ensure_ascii=False, indent=2)


def fetch_trends_payload(cache: TrendsCache, force_refresh: bool = False) -> Dict[str, Any]:
    """MCP 工具与 CLI 共用：与 GET /trends 相同的响应结构。"""
    try:
        return cache.get_trends(force_refresh).to_dict()
    except NoCachedData as exc:
        return {"error": exc.message, "repositories": [], "total_count": 0}


def summarize_payload(router: SummarizeRouter, text: Any, api_key: Any, provider: Any) -> Dict[str, Any]:
    """校验失败抛 ValueError 交给 MCP 框架；提供方错误转换成带 error 字段的结果。"""
    request = validate_inputs(text, api_key, provider)
    try:
        return router.dispatch(request).to_dict()
    except ProviderError as exc:
        return {"error": exc.message, "status": exc.status}


def _register_tools(server: "FastMCP", cache: TrendsCache, router: SummarizeRouter) -> None:
    """在 FastMCP 上挂载工具实现。"""

    @server.tool(
        name="fetch_ai_trends",
        description="返回最近 7 天创建的 AI/ML 热门仓库（按星标降序，带 5 分钟缓存）。"
    )
    def fetch_ai_trends_tool(force_refresh: bool = False) -> Dict[str, Any]:
        return fetch_trends_payload(cache, force_refresh)

    @server.tool(
        name="summarize_repository",
        description="使用指定的 LLM 提供方（openai/groq）生成三句话的仓库摘要。"
    )
    def summarize_repository_tool(text: str, api_key: str, provider: str = "openai") -> Dict[str, Any]:
        return summarize_payload(router, text, api_key, provider)

    @server.tool(
        name="trends_cache_status",
        description="查看趋势缓存状态，不会触发抓取。"
    )
    def trends_cache_status_tool() -> Dict[str, Any]:
        metadata = build_trends_metadata()
        metadata["cache_status"] = cache.status().to_dict()
        return metadata


def run_server(args: argparse.Namespace) -> None:
    """启动 MCP 服务器，可切换 stdio、SSE 或 Streamable HTTP。"""
    if FastMCP is None:
        raise RuntimeError("运行 MCP 服务器需要先安装 'mcp'，可执行 `pip install github-ai-trends[mcp]`。")
    logging.basicConfig(level=logging.INFO)
    server = FastMCP("github-ai-trends", host=args.host, port=args.port)
    _register_tools(server, build_cache_from_env(), build_router_from_env())
    server.run(transport=args.transport)


def run_cli(args: argparse.Namespace) -> None:
    """在不接入 MCP 宿主时，直接打印 JSON 到终端。"""
    cache = build_cache_from_env()
    try:
        print(_format_json(fetch_trends_payload(cache, args.force_refresh)))
    finally:
        cache.close()


def build_arg_parser() -> argparse.ArgumentParser:
    """构建统一的 CLI 参数解析器。"""
    parser = argparse.ArgumentParser(description="GitHub AI Trends MCP 服务器")
    parser.add_argument(
        "--cli",
        action="store_true",
        help="以 CLI 模式运行并直接输出 JSON，而非启动 MCP 服务器",
    )
    parser.add_argument("--force-refresh", action="store_true", help="CLI 模式下跳过缓存直接抓取")
    parser.add_argument(
        "--transport",
        choices=("stdio", "sse", "streamable-http"),
        default="stdio",
        help="运行 MCP 服务器时使用的传输协议",
    )
    parser.add_argument("--host", default="127.0.0.1", help="供 MCP HTTP 传输监听的主机地址")
    parser.add_argument("--port", type=int, default=8000, help="供 MCP HTTP 传输监听的端口")
    return parser


def main() -> None:
    """根据 --cli 开关切换 CLI 或 MCP 运行模式。"""
    parser = build_arg_parser()
    args = parser.parse_args()
    if args.cli:
        logging.basicConfig(level=logging.INFO)
        run_cli(args)
    else:
        run_server(args)


if __name__ == "__main__":
    main()
