"""FastAPI 版本的 AI 趋势与摘要 HTTP 服务入口。"""

from __future__ import annotations

import argparse
import logging
from contextlib import asynccontextmanager
from typing import Any, AsyncIterator, Dict, Optional

from fastapi import FastAPI, Request
from fastapi.concurrency import run_in_threadpool
from fastapi.responses import JSONResponse

from .cache import TrendsCache, build_cache_from_env
from .constants import CACHE_CONTROL_HEADER
from .errors import NoCachedData, ProviderError, ValidationError
from .summarizer import SummarizeRouter, build_router_from_env
from .utils import isoformat_utc, utcnow
from .validation import build_trends_metadata, validate_summarize_request

# 出现该查询参数（任意取值）即跳过新鲜度判断
BYPASS_PARAM = "t"


def _error_body(message: str, code: str) -> Dict[str, Any]:
    return {"error": message, "code": code, "timestamp": isoformat_utc(utcnow())}


def _provider_status(exc: ProviderError) -> int:
    """透传提供方的错误状态码，拿不到时按 502 处理。"""
    if exc.status is not None and 400 <= exc.status < 600:
        return exc.status
    return 502


def create_app(
    cache: Optional[TrendsCache] = None,
    router: Optional[SummarizeRouter] = None,
) -> FastAPI:
    """构建 FastAPI 应用；缓存与摘要路由可注入，未注入时从环境变量构造。"""

    trends_cache = cache or build_cache_from_env()
    summarize_router = router or build_router_from_env()

    @asynccontextmanager
    async def lifespan(_: FastAPI) -> AsyncIterator[None]:
        yield
        trends_cache.close()
        summarize_router.close()

    app = FastAPI(title="GitHub AI Trends HTTP", version="0.1.0", lifespan=lifespan)
    app.state.trends_cache = trends_cache
    app.state.summarize_router = summarize_router

    @app.get("/health", response_class=JSONResponse)
    def health() -> dict:
        return {"status": "ok"}

    @app.get("/trends")
    async def get_trends(request: Request) -> JSONResponse:
        bypass = BYPASS_PARAM in request.query_params
        try:
            result = await run_in_threadpool(trends_cache.get_trends, bypass)
        except NoCachedData as exc:
            return JSONResponse(
                status_code=500,
                content={"error": exc.message, "repositories": [], "total_count": 0},
            )
        # 回退到旧数据时不附带缓存头，避免中间层继续缓存过期结果
        headers = None if result.is_stale else {"Cache-Control": CACHE_CONTROL_HEADER}
        return JSONResponse(content=result.to_dict(), headers=headers)

    @app.options("/trends")
    def trends_status() -> JSONResponse:
        metadata = build_trends_metadata()
        metadata["cache_status"] = trends_cache.status().to_dict()
        return JSONResponse(content=metadata)

    @app.post("/summarize")
    async def summarize(request: Request) -> JSONResponse:
        try:
            payload = await request.json()
        except ValueError:
            return JSONResponse(status_code=400, content=_error_body("Request body must be valid JSON", "invalid_json"))
        try:
            summarize_request = validate_summarize_request(payload)
        except ValidationError as exc:  # 转换成 HTTP 400
            return JSONResponse(status_code=400, content=_error_body(str(exc), "validation_error"))
        try:
            result = await run_in_threadpool(summarize_router.dispatch, summarize_request)
        except ValidationError as exc:
            return JSONResponse(status_code=400, content=_error_body(str(exc), "validation_error"))
        except ProviderError as exc:
            return JSONResponse(status_code=_provider_status(exc), content=_error_body(exc.message, "provider_error"))
        return JSONResponse(content=result.to_dict())

    return app


def build_arg_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="GitHub AI Trends HTTP Server")
    parser.add_argument("--host", default="0.0.0.0", help="监听地址")
    parser.add_argument("--port", type=int, default=8000, help="监听端口")
    parser.add_argument("--reload", action="store_true", help="是否自动重载（开发模式）")
    return parser


def main() -> None:
    parser = build_arg_parser()
    args = parser.parse_args()
    logging.basicConfig(level=logging.INFO)
    import uvicorn

    uvicorn.run(
        "github_ai_trends.http_server:create_app",
        host=args.host,
        port=args.port,
        reload=args.reload,
        factory=True,
    )


if __name__ == "__main__":
    main()
