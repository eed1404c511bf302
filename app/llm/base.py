"""
模型 Provider 抽象（OpenAI / Anthropic / Bedrock 共用）。

约定：
- 每个后端实现同一组能力：name / default_model_id / is_available / invoke / format_messages
- `is_available` 只检查配置（key/region），**不做网络探测**
- `invoke` 只返回纯文本；SDK 抛出的异常统一包装为 `ProviderInvocationError`
- 参数优先级：调用参数 > provider 配置默认值 > 常量兜底
"""

from __future__ import annotations

from collections.abc import Sequence
from typing import Protocol, TypeVar, runtime_checkable

from pydantic import BaseModel

FALLBACK_MAX_TOKENS = 1000
FALLBACK_TEMPERATURE = 0.3

T = TypeVar("T")


class ChatMessage(BaseModel):
    """chat message 的最小结构（各 provider 再转成自己的格式）。"""

    role: str
    content: str


class ModelOptions(BaseModel):
    """一次调用的参数；全部可选，缺省时由 provider/manager 决定。"""

    provider: str | None = None
    model_id: str | None = None
    max_tokens: int | None = None
    temperature: float | None = None
    enable_fallback: bool = False
    fallback_provider: str | None = None


class ModelInvocationResult(BaseModel):
    content: str
    provider_name: str
    model_id: str | None = None
    used_fallback: bool = False


class NoProviderAvailableError(RuntimeError):
    """没有任何已注册的 provider 可用。"""

    pass


class ProviderInvocationError(RuntimeError):
    """后端 SDK 调用失败；携带 provider 名与原始错误信息。"""

    def __init__(self, provider: str, message: str) -> None:
        super().__init__(f"{provider}: {message}")
        self.provider = provider
        self.message = message


@runtime_checkable
class ModelProvider(Protocol):
    @property
    def name(self) -> str: ...

    @property
    def default_model_id(self) -> str | None: ...

    def is_available(self) -> bool: ...

    async def invoke(self, prompt: str, options: ModelOptions | None = None) -> str: ...

    def format_messages(self, messages: Sequence[ChatMessage]) -> list[dict[str, object]]: ...


def resolve_option(explicit: T | None, configured: T | None, fallback: T) -> T:
    """按优先级取值；注意 0 / 0.0 是合法的显式值，不能用 `or`。"""
    if explicit is not None:
        return explicit
    if configured is not None:
        return configured
    return fallback
