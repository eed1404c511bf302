"""
ModelManager：provider 注册表 + 默认 provider 选择 + fallback 编排。

规则：
- 第一个注册的 provider 成为默认；之后若注册的名字等于配置的默认名，则覆盖默认
- 同名 provider 后注册的覆盖先注册的（不报错）
- 主 provider 失败后，仅当 enable_fallback 且 fallback_provider 是另一个已注册 provider 时，尝试一次
- fallback 也失败：抛 fallback 的错误；没有可用 fallback：原样抛主 provider 的错误
- 这一层不做重试/退避（交给 SDK/transport）
"""

from __future__ import annotations

import logging

import httpx

from app.config import AIConfig
from app.infra.metrics import Metrics
from app.llm.base import (
    ModelInvocationResult,
    ModelOptions,
    ModelProvider,
    NoProviderAvailableError,
)

logger = logging.getLogger(__name__)


class ModelManager:
    def __init__(self, default_provider: str | None = None, metrics: Metrics | None = None) -> None:
        self._configured_default = default_provider
        self._metrics = metrics
        self._providers: dict[str, ModelProvider] = {}
        self._default: ModelProvider | None = None
        logger.info(f"Initialized model manager: default_provider={default_provider or '(first registered)'}")

    def register_provider(self, provider: ModelProvider) -> None:
        name = provider.name
        self._providers[name] = provider
        if self._default is None or name == self._configured_default or self._default.name == name:
            self._default = provider
            logger.info(f"Set default provider: {name}")

    def get_provider(self, name: str) -> ModelProvider | None:
        return self._providers.get(name)

    @property
    def default_provider(self) -> ModelProvider | None:
        return self._default

    def list_available_providers(self) -> list[str]:
        return list(self._providers)

    def _resolve_primary(self, options: ModelOptions) -> ModelProvider:
        if options.provider:
            requested = self._providers.get(options.provider)
            if requested is not None:
                return requested
            logger.warning(f"Requested provider is not registered, using default: requested={options.provider}")
        if self._default is None:
            raise NoProviderAvailableError("No AI model provider available")
        return self._default

    def _resolve_fallback(self, primary: ModelProvider, options: ModelOptions) -> ModelProvider | None:
        if not options.enable_fallback or not options.fallback_provider:
            return None
        fallback = self._providers.get(options.fallback_provider)
        if fallback is None:
            logger.warning(f"Fallback provider is not registered: {options.fallback_provider}")
            return None
        if fallback.name == primary.name:
            return None
        return fallback

    def _record(self, name: str) -> None:
        if self._metrics is not None:
            self._metrics.record(name)

    async def _attempt(self, provider: ModelProvider, prompt: str, options: ModelOptions) -> str:
        self._record("ai_calls_made")
        try:
            content = await provider.invoke(prompt, options)
        except Exception:
            self._record("ai_calls_failed")
            raise
        self._record("ai_calls_succeeded")
        return content

    async def invoke(self, prompt: str, options: ModelOptions | None = None) -> ModelInvocationResult:
        options = options or ModelOptions()
        primary = self._resolve_primary(options)

        try:
            logger.info(f"Attempting primary provider: provider={primary.name}, model={options.model_id}")
            content = await self._attempt(primary, prompt, options)
        except Exception as exc:
            logger.error(f"Primary provider failed: provider={primary.name}, error={exc}")
            fallback = self._resolve_fallback(primary, options)
            if fallback is None:
                raise

            logger.info(f"Attempting fallback provider: provider={fallback.name}")
            try:
                content = await self._attempt(fallback, prompt, options)
            except Exception as fallback_exc:
                logger.error(f"Fallback provider also failed: provider={fallback.name}, error={fallback_exc}")
                raise
            return ModelInvocationResult(
                content=content,
                provider_name=fallback.name,
                model_id=options.model_id,
                used_fallback=True,
            )

        return ModelInvocationResult(content=content, provider_name=primary.name, model_id=options.model_id)


def build_model_manager(
    ai_config: AIConfig,
    http_client: httpx.AsyncClient | None = None,
    metrics: Metrics | None = None,
) -> ModelManager:
    """按配置注册 provider（Bedrock -> OpenAI -> Anthropic）。"""
    manager = ModelManager(default_provider=ai_config.default_provider, metrics=metrics)

    if ai_config.bedrock is not None:
        from app.llm.bedrock_provider import BedrockProvider

        manager.register_provider(BedrockProvider(ai_config.bedrock))
    if ai_config.openai is not None and ai_config.openai.api_key:
        from app.llm.openai_provider import OpenAIProvider

        manager.register_provider(OpenAIProvider(ai_config.openai, http_client=http_client))
    if ai_config.anthropic is not None and ai_config.anthropic.api_key:
        from app.llm.anthropic_provider import AnthropicProvider

        manager.register_provider(AnthropicProvider(ai_config.anthropic, http_client=http_client))

    providers = manager.list_available_providers()
    if providers:
        logger.info(f"Available AI providers: {providers}")
    else:
        logger.warning("No AI providers registered. Check configuration.")
    return manager
