"""摘要路由：校验请求，按提供方配置转发到对应的 chat completion 接口。"""

from __future__ import annotations

import logging
from typing import Any, Callable, Dict, Mapping, Optional

import requests

from .constants import (
    DEFAULT_TIMEOUT,
    PROVIDER_CONFIGS,
    SUMMARY_INSTRUCTION,
    SUMMARY_MAX_TOKENS,
    SUMMARY_SENTENCES,
    SUMMARY_TEMPERATURE,
    USER_AGENT,
)
from .errors import ProviderError, ValidationError
from .models import Provider, ProviderConfig, SummarizeRequest, SummaryResult
from .utils import count_sentences, read_timeout_from_env, redact, utcnow
from .validation import validate_inputs

logger = logging.getLogger(__name__)


def build_messages(text: str) -> list[Dict[str, str]]:
    return [
        {"role": "system", "content": SUMMARY_INSTRUCTION},
        {"role": "user", "content": text},
    ]


def _provider_message(response: requests.Response) -> str:
    """尽量从 OpenAI 兼容的错误体里取出 error.message。"""
    try:
        body = response.json()
    except ValueError:
        return response.text or response.reason or ""
    if isinstance(body, dict):
        error = body.get("error")
        if isinstance(error, dict) and error.get("message"):
            return str(error["message"])
        if isinstance(error, str):
            return error
    return response.reason or ""


class SummarizeRouter:
    """无状态的摘要路由，不缓存结果，也不保存调用方凭证。"""

    def __init__(
        self,
        providers: Optional[Mapping[Provider, ProviderConfig]] = None,
        timeout: int = DEFAULT_TIMEOUT,
        session: Optional[requests.Session] = None,
        clock: Callable = utcnow,
    ) -> None:
        self.providers = dict(providers or PROVIDER_CONFIGS)
        self.timeout = timeout
        if session is None:
            session = requests.Session()
            session.headers.update({"User-Agent": USER_AGENT})
        self.session = session
        self.clock = clock

    def summarize(self, text: Any, credential: Any, provider: Any) -> SummaryResult:
        """校验后转发；校验失败时不会发起任何网络请求。"""
        return self.dispatch(validate_inputs(text, credential, provider))

    def dispatch(self, request: SummarizeRequest) -> SummaryResult:
        config = self.providers.get(request.provider)
        if config is None:
            raise ValidationError(f"Provider '{request.provider.value}' is not configured")
        payload = {
            "model": config.model,
            "messages": build_messages(request.text),
            "temperature": SUMMARY_TEMPERATURE,
            "max_tokens": SUMMARY_MAX_TOKENS,
        }
        # 凭证只放在本次请求头里，不写入 session
        headers = {
            "Authorization": f"Bearer {request.credential}",
            "Content-Type": "application/json",
            "User-Agent": USER_AGENT,
        }
        logger.info("转发摘要请求到 %s（model=%s，文本长度=%s）", request.provider.value, config.model, len(request.text))
        try:
            response = self.session.post(config.endpoint, json=payload, headers=headers, timeout=self.timeout)
        except requests.exceptions.RequestException as exc:
            message = redact(str(exc), request.credential)
            logger.error("请求 %s 失败：%s", request.provider.value, message)
            raise ProviderError(f"{config.label} request failed: {message}") from None
        if not 200 <= response.status_code < 300:
            message = redact(_provider_message(response), request.credential)
            logger.warning("%s 返回错误，状态码：%s，信息：%s", request.provider.value, response.status_code, message)
            raise ProviderError(
                f"{config.label} API error: {message or response.status_code}",
                status=response.status_code,
            )
        summary = self._extract_summary(response, request)
        sentences = count_sentences(summary)
        if sentences != SUMMARY_SENTENCES:
            logger.info("%s 返回了 %s 句摘要（期望 %s 句），按原样返回", request.provider.value, sentences, SUMMARY_SENTENCES)
        return SummaryResult(summary=summary, provider=request.provider, generated_at=self.clock())

    def _extract_summary(self, response: requests.Response, request: SummarizeRequest) -> str:
        try:
            body = response.json()
            content = body["choices"][0]["message"]["content"]
        except (ValueError, KeyError, IndexError, TypeError):
            logger.error("%s 返回了无法解析的响应体", request.provider.value)
            raise ProviderError(f"{self.providers[request.provider].label} returned an unexpected response") from None
        summary = redact(str(content or "").strip(), request.credential)
        if not summary:
            raise ProviderError(f"{self.providers[request.provider].label} returned an empty summary")
        return summary

    def close(self) -> None:
        """释放会话资源。"""
        self.session.close()


def build_router_from_env() -> SummarizeRouter:
    """从环境变量读取超时，构造摘要路由。凭证只来自每次请求。"""
    return SummarizeRouter(timeout=read_timeout_from_env())
