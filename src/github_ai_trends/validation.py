"""集中处理摘要请求的参数校验与共享元数据，供 HTTP 与 MCP 端共同使用。"""

from __future__ import annotations

from typing import Any, Dict, Mapping, Optional

from .constants import FRESHNESS_WINDOW, PROVIDER_CONFIGS
from .errors import ValidationError
from .models import Provider, SummarizeRequest


def _require_text(value: Any, field_name: str) -> str:
    if value is None:
        raise ValidationError(f"Missing required field: {field_name}")
    if not isinstance(value, str):
        raise ValidationError(f"Field '{field_name}' must be a string")
    if not value.strip():
        raise ValidationError(f"Field '{field_name}' must not be empty")
    return value


def parse_provider(value: Any) -> Provider:
    """把提供方字符串转换为枚举，不在闭集中的值直接拒绝。"""

    if value is None or (isinstance(value, str) and not value.strip()):
        raise ValidationError("Missing required field: provider")
    if isinstance(value, Provider):
        return value
    if not isinstance(value, str):
        raise ValidationError("Field 'provider' must be a string")
    try:
        return Provider(value.strip().lower())
    except ValueError:
        raise ValidationError(
            f"Unsupported provider '{value}', expected one of {Provider.values()}"
        ) from None


def validate_inputs(text: Any, credential: Any, provider: Any) -> SummarizeRequest:
    """校验文本/凭证/提供方并转换成 SummarizeRequest。错误信息从不包含凭证内容。"""

    return SummarizeRequest(
        text=_require_text(text, "text"),
        credential=_require_text(credential, "apiKey"),
        provider=parse_provider(provider),
    )


def validate_summarize_request(payload: Optional[Mapping[str, Any]]) -> SummarizeRequest:
    """校验 JSON 请求体，兼容 `apiKey` 与 `api_key` 两种字段名。"""

    if not isinstance(payload, Mapping):
        raise ValidationError("Request body must be a JSON object")
    credential = payload.get("apiKey")
    if credential is None:
        credential = payload.get("api_key")
    return validate_inputs(payload.get("text"), credential, payload.get("provider"))


def build_trends_metadata() -> Dict[str, object]:
    """提供 /trends 的缓存参数与端点说明，便于客户端展示。"""

    return {
        "message": "GitHub Trends API with In-Memory Caching",
        "cache_duration_minutes": int(FRESHNESS_WINDOW.total_seconds() // 60),
        "providers": {provider.value: config.label for provider, config in PROVIDER_CONFIGS.items()},
        "endpoints": {
            "GET /trends": "Returns trending AI/ML repositories",
            "GET /trends?t=timestamp": "Forces cache refresh",
            "POST /summarize": "Summarizes repository text with the chosen provider",
        },
    }
