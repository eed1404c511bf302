"""
FastAPI 服务入口。

这里做三件事：
- 加载配置（严格校验环境变量）并装配日志
- 组装外部依赖（HTTP Client / GitHub client / ModelManager / policy resolver / dispatcher）
- 装配路由（health + `{API_PREFIX}/webhook`）

注意：
- 业务流程不写在这里（由 `review/dispatcher.py` + `review/orchestrator.py` 负责）
- `httpx.AsyncClient` 会被复用（避免每个请求新建连接），应用关闭时释放
- 启动：`uvicorn app.main:build_app --factory`，或直接 `python -m app.main`
"""

from __future__ import annotations

import logging
import os
import time
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from datetime import datetime, timezone

import httpx
import uvicorn
from fastapi import FastAPI

from app.config import AppConfig
from app.config import load_config_from_env
from app.github.client import GitHubClient
from app.github.webhook import build_github_webhook_router
from app.infra.log import configure_logging
from app.infra.metrics import Metrics
from app.llm.manager import build_model_manager
from app.review.dispatcher import EventDispatcher
from app.review.orchestrator import build_review_orchestrator
from app.review.policy import ReviewPolicyResolver

logger = logging.getLogger(__name__)


def create_app(
    dispatcher: EventDispatcher,
    metrics: Metrics,
    api_prefix: str = "/api",
    http_client: httpx.AsyncClient | None = None,
) -> FastAPI:
    """只负责 HTTP 装配；依赖由调用方注入（测试直接传 fake dispatcher）。"""
    started_at = time.monotonic()

    @asynccontextmanager
    async def lifespan(_: FastAPI) -> AsyncIterator[None]:
        yield
        if http_client is not None:
            await http_client.aclose()

    app = FastAPI(title="AI PR Review", version="0.1.0", lifespan=lifespan)

    @app.get("/health")
    async def health() -> dict[str, object]:
        """健康检查：用于 k8s / LB 探活，顺带暴露进程内指标。"""
        return {
            "status": "ok",
            "uptime": round(time.monotonic() - started_at, 3),
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "metrics": metrics.snapshot(),
        }

    app.include_router(build_github_webhook_router(dispatcher), prefix=api_prefix)
    return app


def build_app(config: AppConfig | None = None) -> FastAPI:
    """创建并返回 FastAPI app（便于测试/复用）。"""

    # 1) 配置：缺失会直接抛错，启动失败（这是期望行为）
    config = config or load_config_from_env(os.environ)
    configure_logging(level=config.logging.level, file=config.logging.file)

    # 2) 可复用的 HTTP client：供 GitHub API 与 OpenAI 调用使用
    http_client = httpx.AsyncClient(timeout=httpx.Timeout(30.0))
    metrics = Metrics()

    github_client = GitHubClient(
        api_base_url=str(config.github.api_base_url),
        token=config.github.token,
        http_client=http_client,
        metrics=metrics,
    )

    # 3) 模型层：按配置注册 provider
    model_manager = build_model_manager(config.ai, http_client=http_client, metrics=metrics)

    # 4) policy -> orchestrator -> dispatcher
    policy_resolver = ReviewPolicyResolver(source=github_client)
    orchestrator = build_review_orchestrator(
        model_manager=model_manager,
        policy_resolver=policy_resolver,
        metrics=metrics,
        ai_config=config.ai,
    )
    dispatcher = EventDispatcher(
        github_client=github_client,
        orchestrator=orchestrator,
        metrics=metrics,
        webhook_secret=config.github.webhook_secret,
    )

    logger.info(f"Webhook endpoint: {config.server.api_prefix}/webhook")
    return create_app(
        dispatcher=dispatcher,
        metrics=metrics,
        api_prefix=config.server.api_prefix,
        http_client=http_client,
    )


def main() -> None:
    config = load_config_from_env(os.environ)
    uvicorn.run("app.main:build_app", factory=True, host=config.server.host, port=config.server.port)


if __name__ == "__main__":
    main()
