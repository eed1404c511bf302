"""
Review Orchestrator（核心流程编排）。

关键思想：
- **流程由工程代码控制**：policy -> prompt -> model -> comment，严格顺序
- **LLM 只负责生成 review 正文**：prompt 与评论格式都是确定性的

失败策略：
- 模型调用失败（含没有 provider）不抛出，而是生成一条失败说明评论，照常发到 PR 上
- 这样 webhook 仍然返回 200，GitHub 不会反复重投
"""

from __future__ import annotations

import logging
from dataclasses import dataclass

from app.config import AIConfig
from app.infra.log import redact_secrets
from app.infra.metrics import Metrics
from app.llm.base import ModelOptions
from app.llm.manager import ModelManager
from app.review.custom_rules import scan_snapshot
from app.review.models import PullRequestSnapshot
from app.review.models import ReviewDraft
from app.review.models import ReviewPolicy
from app.review.policy import ReviewPolicyResolver
from app.review.prompt import render_prompt
from app.review.synthesis import format_failure_comment
from app.review.synthesis import format_review_comment

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ReviewOrchestrator:
    """Orchestrator 运行时依赖集合。"""

    model_manager: ModelManager
    policy_resolver: ReviewPolicyResolver
    metrics: Metrics
    enable_fallback: bool = False
    fallback_provider: str | None = None


def build_review_orchestrator(
    model_manager: ModelManager,
    policy_resolver: ReviewPolicyResolver,
    metrics: Metrics,
    ai_config: AIConfig | None = None,
) -> ReviewOrchestrator:
    """创建 orchestrator；服务级 fallback 设置来自 AIConfig（仓库策略可覆盖）。"""
    return ReviewOrchestrator(
        model_manager=model_manager,
        policy_resolver=policy_resolver,
        metrics=metrics,
        enable_fallback=ai_config.enable_fallback if ai_config is not None else False,
        fallback_provider=ai_config.fallback_provider if ai_config is not None else None,
    )


def build_model_options(orchestrator: ReviewOrchestrator, policy: ReviewPolicy) -> ModelOptions:
    """仓库策略 `ai` 段 -> ModelOptions；未设置的 fallback 项沿用服务级配置。"""
    ai = policy.ai
    return ModelOptions(
        provider=ai.provider,
        model_id=ai.model_id,
        temperature=ai.temperature,
        max_tokens=ai.max_tokens,
        enable_fallback=ai.enable_fallback if ai.enable_fallback is not None else orchestrator.enable_fallback,
        fallback_provider=ai.fallback_provider or orchestrator.fallback_provider,
    )


async def resolve_policy(orchestrator: ReviewOrchestrator, owner: str, repo: str, ref: str) -> ReviewPolicy:
    return await orchestrator.policy_resolver.resolve(owner=owner, repo=repo, ref=ref)


async def compose_review(
    orchestrator: ReviewOrchestrator,
    snapshot: PullRequestSnapshot,
    policy: ReviewPolicy,
) -> ReviewDraft:
    """
    跑一次 review，返回要写回 GitHub 的评论正文。

    - Step 1: 渲染 prompt（确定性）
    - Step 2: 自定义规则扫描（只记日志，不做门禁）
    - Step 3: 调模型（ModelManager 负责 provider 选择与 fallback）
    - Step 4: 拼评论正文
    """
    prompt = render_prompt(snapshot=snapshot, policy=policy)

    violations = scan_snapshot(snapshot=snapshot, rules=policy.custom_rules, filters=policy.files)
    if violations:
        logger.info(f"Custom rule scan: {len(violations)} violation(s) in PR #{snapshot.number}")
        for v in violations:
            logger.debug(f"Custom rule hit: {v.rule} [{v.severity}] {v.path}:{v.line}")

    options = build_model_options(orchestrator=orchestrator, policy=policy)
    try:
        result = await orchestrator.model_manager.invoke(prompt, options)
    except Exception as exc:
        message = redact_secrets(str(exc)) or type(exc).__name__
        logger.exception(f"Failed to review pull request #{snapshot.number}")
        orchestrator.metrics.record_error(message)
        return ReviewDraft(body=format_failure_comment(error_message=message), succeeded=False)

    model_id = result.model_id
    if model_id is None:
        provider = orchestrator.model_manager.get_provider(result.provider_name)
        model_id = provider.default_model_id if provider is not None else None

    logger.info(
        f"Received AI review: provider={result.provider_name}, model={model_id}, "
        f"fallback={result.used_fallback}, {len(result.content)} chars"
    )
    return ReviewDraft(
        body=format_review_comment(
            content=result.content,
            provider_name=result.provider_name,
            model_id=model_id,
            used_fallback=result.used_fallback,
        ),
        succeeded=True,
        provider_name=result.provider_name,
        model_id=model_id,
        used_fallback=result.used_fallback,
    )
