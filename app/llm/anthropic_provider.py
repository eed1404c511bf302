"""
Anthropic Provider（Messages API）。

只取第一个 text block；没有 text block 时返回空串而不是抛错。
"""

from __future__ import annotations

import logging
from collections.abc import Sequence

import httpx
from anthropic import AnthropicError, AsyncAnthropic

from app.config import DEFAULT_ANTHROPIC_MODEL_ID, AnthropicConfig
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


def _first_text_block(content: Sequence[object] | None) -> str:
    for block in content or []:
        if getattr(block, "type", None) == "text":
            return getattr(block, "text", "") or ""
    return ""


class AnthropicProvider:
    def __init__(
        self,
        config: AnthropicConfig,
        http_client: httpx.AsyncClient | None = None,
        client: AsyncAnthropic | None = None,
    ) -> None:
        self._config = config
        self._client = client or AsyncAnthropic(api_key=config.api_key, http_client=http_client)
        logger.info(f"Initialized Anthropic provider: model={self.default_model_id}")

    @property
    def name(self) -> str:
        return "anthropic"

    @property
    def default_model_id(self) -> str | None:
        return self._config.model_id

    def is_available(self) -> bool:
        if not self._config.api_key:
            logger.warning("Anthropic provider not properly configured: missing API key")
            return False
        return True

    def format_messages(self, messages: Sequence[ChatMessage]) -> list[dict[str, object]]:
        # Messages API 只接受 user / assistant 两种角色
        return [
            {"role": "user" if m.role == "user" else "assistant", "content": m.content}
            for m in messages
        ]

    async def invoke(self, prompt: str, options: ModelOptions | None = None) -> str:
        options = options or ModelOptions()
        model_id = resolve_option(options.model_id, self._config.model_id, DEFAULT_ANTHROPIC_MODEL_ID)
        max_tokens = resolve_option(options.max_tokens, self._config.max_tokens, FALLBACK_MAX_TOKENS)
        temperature = resolve_option(options.temperature, self._config.temperature, FALLBACK_TEMPERATURE)

        try:
            logger.info(
                f"Invoking Anthropic model: model={model_id}, prompt={len(prompt)} chars, "
                f"max_tokens={max_tokens}, temperature={temperature}"
            )
            response = await self._client.messages.create(
                model=model_id,
                messages=self.format_messages([ChatMessage(role="user", content=prompt)]),
                max_tokens=max_tokens,
                temperature=temperature,
            )
        except (AnthropicError, httpx.HTTPError) as exc:
            message = redact_secrets(str(exc))
            logger.error(f"Failed to invoke Anthropic model: model={model_id}, error={message}")
            raise ProviderInvocationError(provider=self.name, message=message) from exc

        text = _first_text_block(getattr(response, "content", None))
        logger.info(f"Received Anthropic response: model={model_id}, {len(text)} chars")
        return text
