"""
应用配置加载。

设计目标：
- **严格**：缺少必要环境变量就直接报错（避免“看起来跑了其实没配置好”）
- **类型安全**：使用 Pydantic 校验 URL/字符串等，减少运行时踩坑
- **可测试**：核心加载函数接收 `environ` 显式输入，便于单元测试

Provider 规则：
- Bedrock：设置了 AWS_REGION 才启用
- OpenAI / Anthropic：设置了 API key 才启用
- 至少要有一个 provider，否则启动失败
"""

from __future__ import annotations

from collections.abc import Mapping
from typing import Literal

from pydantic import BaseModel, HttpUrl

DEFAULT_GITHUB_API_BASE_URL = "https://api.github.com"
DEFAULT_BEDROCK_MODEL_ID = "amazon.titan-text-premier-v1:0"
DEFAULT_OPENAI_MODEL_ID = "gpt-4"
DEFAULT_ANTHROPIC_MODEL_ID = "claude-3-opus-20240229"
DEFAULT_MAX_TOKENS = 1000
DEFAULT_TEMPERATURE = 0.3


class ServerConfig(BaseModel):
    host: str = "0.0.0.0"
    port: int = 3000
    api_prefix: str = "/api"


class GitHubConfig(BaseModel):
    """GitHub API + webhook 配置（全部必填）。"""

    api_base_url: HttpUrl
    token: str
    webhook_secret: str


class BedrockConfig(BaseModel):
    region: str
    model_id: str = DEFAULT_BEDROCK_MODEL_ID
    max_tokens: int = DEFAULT_MAX_TOKENS
    temperature: float = DEFAULT_TEMPERATURE


class OpenAIConfig(BaseModel):
    api_key: str
    base_url: HttpUrl | None = None
    model_id: str = DEFAULT_OPENAI_MODEL_ID
    max_tokens: int = DEFAULT_MAX_TOKENS
    temperature: float = DEFAULT_TEMPERATURE


class AnthropicConfig(BaseModel):
    api_key: str
    model_id: str = DEFAULT_ANTHROPIC_MODEL_ID
    max_tokens: int = DEFAULT_MAX_TOKENS
    temperature: float = DEFAULT_TEMPERATURE


class AIConfig(BaseModel):
    """模型层配置：默认 provider、服务级 fallback、各 provider 参数。"""

    default_provider: str = "bedrock"
    enable_fallback: bool = False
    fallback_provider: str | None = None
    bedrock: BedrockConfig | None = None
    openai: OpenAIConfig | None = None
    anthropic: AnthropicConfig | None = None


class LoggingConfig(BaseModel):
    level: Literal["debug", "info", "warn", "warning", "error"] = "info"
    file: str | None = None


class AppConfig(BaseModel):
    server: ServerConfig
    github: GitHubConfig
    ai: AIConfig
    logging: LoggingConfig


def _get(environ: Mapping[str, str], key: str) -> str | None:
    value = environ.get(key)
    if value is None or value == "":
        return None
    return value


def _get_int(environ: Mapping[str, str], key: str, default: int) -> int:
    raw = _get(environ, key)
    if raw is None:
        return default
    try:
        return int(raw)
    except ValueError as exc:
        raise ValueError(f"Env var {key} must be an integer, got: {raw!r}") from exc


def _get_float(environ: Mapping[str, str], key: str, default: float) -> float:
    raw = _get(environ, key)
    if raw is None:
        return default
    try:
        return float(raw)
    except ValueError as exc:
        raise ValueError(f"Env var {key} must be a number, got: {raw!r}") from exc


def _load_ai_config(environ: Mapping[str, str]) -> AIConfig:
    bedrock: BedrockConfig | None = None
    region = _get(environ, "AWS_REGION")
    if region is not None:
        bedrock = BedrockConfig(
            region=region,
            model_id=_get(environ, "AWS_BEDROCK_MODEL_ID") or DEFAULT_BEDROCK_MODEL_ID,
            max_tokens=_get_int(environ, "AWS_BEDROCK_MAX_TOKENS", DEFAULT_MAX_TOKENS),
            temperature=_get_float(environ, "AWS_BEDROCK_TEMPERATURE", DEFAULT_TEMPERATURE),
        )

    openai: OpenAIConfig | None = None
    openai_key = _get(environ, "OPENAI_API_KEY")
    if openai_key is not None:
        openai = OpenAIConfig(
            api_key=openai_key,
            base_url=_get(environ, "OPENAI_BASE_URL"),
            model_id=_get(environ, "OPENAI_MODEL_ID") or DEFAULT_OPENAI_MODEL_ID,
            max_tokens=_get_int(environ, "OPENAI_MAX_TOKENS", DEFAULT_MAX_TOKENS),
            temperature=_get_float(environ, "OPENAI_TEMPERATURE", DEFAULT_TEMPERATURE),
        )

    anthropic: AnthropicConfig | None = None
    anthropic_key = _get(environ, "ANTHROPIC_API_KEY")
    if anthropic_key is not None:
        anthropic = AnthropicConfig(
            api_key=anthropic_key,
            model_id=_get(environ, "ANTHROPIC_MODEL_ID") or DEFAULT_ANTHROPIC_MODEL_ID,
            max_tokens=_get_int(environ, "ANTHROPIC_MAX_TOKENS", DEFAULT_MAX_TOKENS),
            temperature=_get_float(environ, "ANTHROPIC_TEMPERATURE", DEFAULT_TEMPERATURE),
        )

    if bedrock is None and openai is None and anthropic is None:
        raise ValueError(
            "No AI provider configured: set AWS_REGION (Bedrock), OPENAI_API_KEY or ANTHROPIC_API_KEY"
        )

    return AIConfig(
        default_provider=_get(environ, "AI_DEFAULT_PROVIDER") or "bedrock",
        enable_fallback=(_get(environ, "AI_ENABLE_FALLBACK") or "").lower() == "true",
        fallback_provider=_get(environ, "AI_FALLBACK_PROVIDER"),
        bedrock=bedrock,
        openai=openai,
        anthropic=anthropic,
    )


def load_config_from_env(environ: Mapping[str, str]) -> AppConfig:
    """
    从环境变量加载并校验配置。

    - **输入**：`environ`（例如 `os.environ`）
    - **输出**：`AppConfig`
    - **失败**：必填项缺失/为空、数值非法、没有任何 provider 都抛 `ValueError`
    """
    required_keys: tuple[str, ...] = ("GITHUB_TOKEN", "GITHUB_WEBHOOK_SECRET")
    missing: list[str] = [key for key in required_keys if _get(environ, key) is None]
    if missing:
        raise ValueError(f"Missing required env vars: {', '.join(missing)}")

    server = ServerConfig(
        host=_get(environ, "HOST") or "0.0.0.0",
        port=_get_int(environ, "PORT", 3000),
        api_prefix=(_get(environ, "API_PREFIX") or "/api").rstrip("/"),
    )
    github = GitHubConfig(
        api_base_url=_get(environ, "GITHUB_API_BASE_URL") or DEFAULT_GITHUB_API_BASE_URL,
        token=environ["GITHUB_TOKEN"],
        webhook_secret=environ["GITHUB_WEBHOOK_SECRET"],
    )
    logging_config = LoggingConfig(
        level=(_get(environ, "LOG_LEVEL") or "info").lower(),
        file=_get(environ, "LOG_FILE"),
    )
    return AppConfig(server=server, github=github, ai=_load_ai_config(environ), logging=logging_config)
