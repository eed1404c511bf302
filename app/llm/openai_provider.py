"""
OpenAI Provider（基于 OpenAI SDK，也可以对接 OpenAI-compatible 网关）。

目标：
- **尽量薄**：只做协议适配与错误处理
- 复用应用级 `httpx.AsyncClient` 连接池
"""

from __future__ import annotations

import logging
from collections.abc import Sequence

import httpx
from openai import AsyncOpenAI, OpenAIError

from app.config import DEFAULT_OPENAI_MODEL_ID, OpenAIConfig
from app.infra.log import redact_secrets
from app.llm.base import (
    FALLBACK_MAX_TOKENS,
    FALLBACK_TEMPERATURE,
    ChatMessage,
    ModelOptions,
    ProviderInvocationError,
    resolve_option,
)

logger = logging.getLogger(__name__)


def _normalize_base_url(base_url: str) -> str:
    normalized = base_url.rstrip("/")
    if normalized.endswith("/v1"):
        return normalized
    return f"{normalized}/v1"


class OpenAIProvider:
    """OpenAI chat completions。"""

    def __init__(
        self,
        config: OpenAIConfig,
        http_client: httpx.AsyncClient | None = None,
        client: AsyncOpenAI | None = None,
    ) -> None:
        """
        - config: api_key / base_url / 默认模型参数
        - http_client: 复用 httpx.AsyncClient 连接池
        - client: 测试时可直接注入 SDK client
        """
        self._config = config
        if client is not None:
            self._client = client
        else:
            base_url = _normalize_base_url(str(config.base_url)) if config.base_url is not None else None
            self._client = AsyncOpenAI(api_key=config.api_key, base_url=base_url, http_client=http_client)
        logger.info(f"Initialized OpenAI provider: model={self.default_model_id}")

    @property
    def name(self) -> str:
        return "openai"

    @property
    def default_model_id(self) -> str | None:
        return self._config.model_id

    def is_available(self) -> bool:
        if not self._config.api_key:
            logger.warning("OpenAI provider not properly configured: missing API key")
            return False
        return True

    def format_messages(self, messages: Sequence[ChatMessage]) -> list[dict[str, object]]:
        return [{"role": m.role, "content": m.content} for m in messages]

    async def invoke(self, prompt: str, options: ModelOptions | None = None) -> str:
        options = options or ModelOptions()
        model_id = resolve_option(options.model_id, self._config.model_id, DEFAULT_OPENAI_MODEL_ID)
        max_tokens = resolve_option(options.max_tokens, self._config.max_tokens, FALLBACK_MAX_TOKENS)
        temperature = resolve_option(options.temperature, self._config.temperature, FALLBACK_TEMPERATURE)

        try:
            logger.info(
                f"Invoking OpenAI model: model={model_id}, prompt={len(prompt)} chars, "
                f"max_tokens={max_tokens}, temperature={temperature}"
            )
            response = await self._client.chat.completions.create(
                model=model_id,
                messages=self.format_messages([ChatMessage(role="user", content=prompt)]),
                max_tokens=max_tokens,
                temperature=temperature,
            )
        except (OpenAIError, httpx.HTTPError) as exc:
            message = redact_secrets(str(exc))
            logger.error(f"Failed to invoke OpenAI model: model={model_id}, error={message}")
            raise ProviderInvocationError(provider=self.name, message=message) from exc

        content = response.choices[0].message.content if response.choices else None
        if not content:
            logger.warning(f"OpenAI returned empty content: model={model_id}")
            return ""
        logger.info(f"Received OpenAI response: model={model_id}, {len(content)} chars")
        return str(content)
