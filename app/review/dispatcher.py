"""
Webhook 事件分发（一次投递 = 一个任务）。

状态机：Received -> Verified -> Classified -> {Skipped | ReviewTriggered} -> {Completed | Failed}

- 签名不对：401，不做任何外部调用
- 不支持的 event/action、非 PR 评论、没有触发词：200 + skip 原因
- 5 分钟内 review 过的 PR：200 + "PR was recently processed"（进程内、best-effort）
- review 执行中的任何异常：记录日志/指标后仍返回 200（避免 GitHub 重投风暴）

已知限制：
- 同一 PR 几乎同时到达的两次投递都可能通过去重检查（不加锁，接受重复 review）
- 去重表不淘汰，也不跨进程共享
"""

from __future__ import annotations

import json
import logging
import time
from collections.abc import Callable
from dataclasses import dataclass, field
from typing import Any

from app.github.adapter import build_pull_request_snapshot
from app.github.client import GitHubClient
from app.github.schemas import GitHubIssueCommentWebhookEvent
from app.github.schemas import GitHubPullRequestWebhookEvent
from app.github.signature import verify_github_signature
from app.infra.cache import Cache
from app.infra.cache import InMemoryCache
from app.infra.log import redact_secrets
from app.infra.metrics import Metrics
from app.review.models import ProcessingResult
from app.review.models import ReviewDedupEntry
from app.review.orchestrator import ReviewOrchestrator
from app.review.orchestrator import compose_review
from app.review.orchestrator import resolve_policy

logger = logging.getLogger(__name__)

REVIEWABLE_PULL_REQUEST_ACTIONS: frozenset[str] = frozenset({"opened", "synchronize", "reopened"})
TRIGGER_TOKEN = "/ai-review"
DEFAULT_COOLDOWN_SECONDS = 5 * 60


@dataclass(frozen=True)
class WebhookResponse:
    status_code: int
    body: dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class _ReviewTarget:
    owner: str
    repo: str
    number: int
    head_sha: str | None = None
    title: str | None = None
    body: str | None = None

    @property
    def key(self) -> str:
        return f"{self.owner}/{self.repo}/{self.number}"


class EventDispatcher:
    def __init__(
        self,
        github_client: GitHubClient,
        orchestrator: ReviewOrchestrator,
        metrics: Metrics,
        webhook_secret: str,
        dedup_cache: Cache[ReviewDedupEntry] | None = None,
        clock: Callable[[], float] = time.time,
        cooldown_seconds: float = DEFAULT_COOLDOWN_SECONDS,
    ) -> None:
        self._github = github_client
        self._orchestrator = orchestrator
        self._metrics = metrics
        self._webhook_secret = webhook_secret
        self._dedup: Cache[ReviewDedupEntry] = dedup_cache if dedup_cache is not None else InMemoryCache()
        self._clock = clock
        self._cooldown_seconds = cooldown_seconds

    async def handle_delivery(self, body: bytes, event_type: str | None, signature: str | None) -> WebhookResponse:
        """
        处理一次原始 webhook 投递（HTTP 层只负责把 body/header 交进来）。

        - 401：签名缺失或不匹配
        - 400：签名通过但 body 不是 JSON 对象
        - 200：其余所有情况（包括处理过程中的异常）
        """
        self._metrics.record("webhooks_received")

        if not signature or not verify_github_signature(body, signature, self._webhook_secret):
            logger.warning(f"Invalid webhook signature: event={event_type}")
            return WebhookResponse(status_code=401, body={"error": "Invalid signature"})

        try:
            payload = json.loads(body.decode("utf-8"))
        except (UnicodeDecodeError, json.JSONDecodeError):
            logger.warning(f"Invalid JSON payload: event={event_type}")
            return WebhookResponse(status_code=400, body={"error": "Invalid JSON payload"})
        if not isinstance(payload, dict):
            logger.warning(f"Webhook payload is not an object: event={event_type}")
            return WebhookResponse(status_code=400, body={"error": "Invalid JSON payload"})

        logger.info(f"Received webhook: event={event_type}")
        try:
            result = await self.dispatch(event_type or "", payload)
        except Exception as exc:
            message = redact_secrets(str(exc)) or type(exc).__name__
            logger.exception(f"Error processing webhook: event={event_type}")
            self._metrics.record_error(message)
            return WebhookResponse(status_code=200, body=ProcessingResult(processed=False, error=message).to_body())

        if result.processed:
            self._metrics.record("webhooks_processed")
        return WebhookResponse(status_code=200, body=result.to_body())

    async def dispatch(self, event_type: str, payload: dict[str, Any]) -> ProcessingResult:
        """按 event 类型分类；payload 结构不对会抛 `ValidationError`（由上层兜底）。"""
        if event_type == "pull_request":
            return await self._handle_pull_request(GitHubPullRequestWebhookEvent.model_validate(payload))
        if event_type == "issue_comment":
            return await self._handle_issue_comment(GitHubIssueCommentWebhookEvent.model_validate(payload))
        logger.info(f"Ignoring unsupported event type: {event_type}")
        return ProcessingResult.skipped(f'Event type "{event_type}" not supported')

    async def _handle_pull_request(self, event: GitHubPullRequestWebhookEvent) -> ProcessingResult:
        pr = event.pull_request
        target = _ReviewTarget(
            owner=event.repository.owner.login,
            repo=event.repository.name,
            number=pr.number,
            head_sha=pr.head.sha,
            title=pr.title,
            body=pr.body,
        )
        logger.info(f"Processing pull request event: action={event.action}, pr={target.key}")

        if event.action not in REVIEWABLE_PULL_REQUEST_ACTIONS:
            logger.info(f"Ignoring pull request event with action: {event.action}")
            return ProcessingResult.skipped(f'Action "{event.action}" not supported')
        return await self._review(target)

    async def _handle_issue_comment(self, event: GitHubIssueCommentWebhookEvent) -> ProcessingResult:
        if event.issue.pull_request is None:
            return ProcessingResult.skipped("Not a pull request comment")
        if event.action != "created":
            return ProcessingResult.skipped(f'Action "{event.action}" not supported')
        if TRIGGER_TOKEN not in event.comment.body:
            return ProcessingResult.skipped("Comment does not contain review trigger")

        target = _ReviewTarget(
            owner=event.repository.owner.login,
            repo=event.repository.name,
            number=event.issue.number,
        )
        logger.info(f"Processing manual review request: pr={target.key}, comment={event.comment.id}")
        return await self._review(target)

    def _recently_reviewed(self, target: _ReviewTarget) -> bool:
        entry = self._dedup.get(target.key)
        if entry is None:
            return False
        return self._clock() - entry.timestamp < self._cooldown_seconds

    async def _review(self, target: _ReviewTarget) -> ProcessingResult:
        """
        真正跑一次 review：fetch -> policy -> model -> comment，严格顺序。

        评论（包括模型失败时的失败说明评论）发出去之后才写去重表。
        """
        if self._recently_reviewed(target):
            logger.info(f"Skipping recently processed PR: {target.key}")
            return ProcessingResult.skipped("PR was recently processed")

        if target.head_sha is None:
            details = await self._github.get_pull_request_details(target.owner, target.repo, target.number)
            target = _ReviewTarget(
                owner=target.owner,
                repo=target.repo,
                number=target.number,
                head_sha=details.head.sha,
                title=details.title,
                body=details.body,
            )

        files = await self._github.list_pull_request_files(target.owner, target.repo, target.number)
        if not files:
            logger.info(f"No files changed in PR: {target.key}")
            return ProcessingResult.skipped("No files changed")

        policy = await resolve_policy(self._orchestrator, owner=target.owner, repo=target.repo, ref=target.head_sha)
        if not policy.general.enabled:
            logger.info(f"Reviews disabled by repository policy: {target.owner}/{target.repo}")
            return ProcessingResult.skipped("Reviews disabled by repository policy")

        snapshot = build_pull_request_snapshot(number=target.number, title=target.title, body=target.body, files=files)
        draft = await compose_review(self._orchestrator, snapshot=snapshot, policy=policy)
        comment = await self._github.create_comment(target.owner, target.repo, target.number, draft.body)

        self._dedup.set(target.key, ReviewDedupEntry(timestamp=self._clock(), comment_id=comment.id))
        logger.info(f"Posted review comment: pr={target.key}, comment={comment.id}, succeeded={draft.succeeded}")
        return ProcessingResult(processed=True, comment_id=comment.id)

