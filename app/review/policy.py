"""
仓库级 Review 策略解析（`.github/ai-review.yml`）。

流程：
- 按 `(owner, repo, ref)` 缓存；未命中才去仓库读文件
- 文件不存在 -> 默认策略（info）；其它读取/解析错误 -> 默认策略（warning）
- 无论成功失败都写缓存：同一个 ref 不会重复请求 GitHub
- 合并规则：dict 递归合并，list/标量整体覆盖（右侧优先）；空 section（None）不覆盖默认值

限制：
- 缓存没有 TTL，只能 `clear_cache()` 或重启进程
"""

from __future__ import annotations

import logging
from collections.abc import Mapping
from typing import Any, Protocol

import yaml
from pydantic import ValidationError

from app.github.client import GitHubNotFoundError
from app.github.schemas import GitHubFileContent
from app.infra.cache import Cache
from app.infra.cache import InMemoryCache
from app.infra.log import redact_secrets
from app.review.models import ReviewPolicy

logger = logging.getLogger(__name__)

POLICY_FILE_PATH = ".github/ai-review.yml"


class PolicySource(Protocol):
    """能按 ref 读取仓库文件的对象（生产环境就是 `GitHubClient`）。"""

    async def get_file_content(self, owner: str, repo: str, path: str, ref: str) -> GitHubFileContent: ...


def default_policy() -> ReviewPolicy:
    return ReviewPolicy()


def deep_merge(base: Mapping[str, Any], override: Mapping[str, Any]) -> dict[str, Any]:
    """Deep merge two dicts. Arrays are replaced, not merged."""
    result: dict[str, Any] = dict(base)
    for key, value in override.items():
        base_value = result.get(key)
        if isinstance(base_value, Mapping) and value is None:
            # YAML 里只写了 `ai:` 这种空 key，保留默认 section
            continue
        if isinstance(base_value, Mapping) and isinstance(value, Mapping):
            result[key] = deep_merge(base_value, value)
        else:
            result[key] = value
    return result


def merge_policy(document: object, base: ReviewPolicy | None = None) -> ReviewPolicy:
    """
    把 YAML 文档合并到默认策略上。

    - 空文档 / 根不是 mapping：视为“没有覆盖项”
    - 合并结果不符合 schema：抛 `ValidationError`（由调用方决定降级）
    """
    base_policy = base or default_policy()
    if not isinstance(document, Mapping):
        return base_policy
    merged = deep_merge(base_policy.model_dump(), document)
    return ReviewPolicy.model_validate(merged)


class ReviewPolicyResolver:
    def __init__(self, source: PolicySource, cache: Cache[ReviewPolicy] | None = None) -> None:
        self._source = source
        self._cache: Cache[ReviewPolicy] = cache if cache is not None else InMemoryCache()

    async def resolve(self, owner: str, repo: str, ref: str) -> ReviewPolicy:
        cache_key = f"{owner}/{repo}/{ref}"
        cached = self._cache.get(cache_key)
        if cached is not None:
            logger.info(f"Using cached review policy: {cache_key}")
            return cached

        policy = await self._load(owner=owner, repo=repo, ref=ref)
        self._cache.set(cache_key, policy)
        return policy

    async def _load(self, owner: str, repo: str, ref: str) -> ReviewPolicy:
        logger.info(f"Fetching review policy: {owner}/{repo}@{ref}")
        try:
            policy_file = await self._source.get_file_content(owner, repo, POLICY_FILE_PATH, ref)
        except GitHubNotFoundError:
            logger.info(f"No review policy found for {owner}/{repo}, using defaults")
            return default_policy()
        except Exception as exc:
            # 策略读不到不能阻断 review：降级为默认策略
            logger.warning(
                f"Error loading review policy for {owner}/{repo}, using defaults: {redact_secrets(str(exc))}"
            )
            return default_policy()

        try:
            policy = merge_policy(yaml.safe_load(policy_file.decoded_content))
        except (yaml.YAMLError, ValidationError) as exc:
            logger.warning(f"Invalid review policy in {owner}/{repo}, using defaults: {redact_secrets(str(exc))}")
            return default_policy()

        logger.info(f"Loaded custom review policy for {owner}/{repo}")
        return policy

    def clear_cache(self) -> None:
        self._cache.clear()
        logger.info("Cleared review policy cache")
