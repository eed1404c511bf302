"""
AWS Bedrock Provider（Converse API）。

注意：
- boto3 是同步 SDK，调用放到 worker thread（anyio.to_thread），不阻塞事件循环
- 凭证走 boto3 默认链（环境变量 / profile / IAM role），这里只关心 region
"""

from __future__ import annotations

import functools
import logging
from collections.abc import Sequence
from typing import Any

import anyio
import boto3
from botocore.exceptions import BotoCoreError, ClientError

from app.config import DEFAULT_BEDROCK_MODEL_ID, BedrockConfig
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


def _first_text_block(response: dict[str, Any]) -> str:
    content = response.get("output", {}).get("message", {}).get("content", [])
    for block in content:
        if isinstance(block, dict) and "text" in block:
            return block["text"] or ""
    return ""


class BedrockProvider:
    def __init__(self, config: BedrockConfig, client: Any | None = None) -> None:
        self._config = config
        self._client = client or boto3.client("bedrock-runtime", region_name=config.region)
        logger.info(f"Initialized Bedrock provider: model={self.default_model_id}, region={config.region}")

    @property
    def name(self) -> str:
        return "bedrock"

    @property
    def default_model_id(self) -> str | None:
        return self._config.model_id

    def is_available(self) -> bool:
        if not self._config.region or not self._config.model_id:
            logger.warning(
                f"Bedrock provider not properly configured: region={self._config.region!r}, "
                f"model={self._config.model_id!r}"
            )
            return False
        return True

    def format_messages(self, messages: Sequence[ChatMessage]) -> list[dict[str, object]]:
        return [{"role": m.role, "content": [{"text": m.content}]} for m in messages]

    async def invoke(self, prompt: str, options: ModelOptions | None = None) -> str:
        options = options or ModelOptions()
        model_id = resolve_option(options.model_id, self._config.model_id, DEFAULT_BEDROCK_MODEL_ID)
        max_tokens = resolve_option(options.max_tokens, self._config.max_tokens, FALLBACK_MAX_TOKENS)
        temperature = resolve_option(options.temperature, self._config.temperature, FALLBACK_TEMPERATURE)

        converse = functools.partial(
            self._client.converse,
            modelId=model_id,
            messages=self.format_messages([ChatMessage(role="user", content=prompt)]),
            inferenceConfig={"maxTokens": max_tokens, "temperature": temperature},
        )
        try:
            logger.info(
                f"Invoking Bedrock model: model={model_id}, prompt={len(prompt)} chars, "
                f"max_tokens={max_tokens}, temperature={temperature}"
            )
            response = await anyio.to_thread.run_sync(converse)
        except (BotoCoreError, ClientError) as exc:
            message = redact_secrets(str(exc))
            logger.error(f"Failed to invoke Bedrock model: model={model_id}, error={message}")
            raise ProviderInvocationError(provider=self.name, message=message) from exc

        text = _first_text_block(response)
        logger.info(f"Received Bedrock response: model={model_id}, {len(text)} chars")
        return text
