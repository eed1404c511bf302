from __future__ import annotations

"""
GitHub API 限流状态。

为什么需要这个模块：
- GitHub 每个响应都带 `X-RateLimit-Remaining` / `X-RateLimit-Reset`
- 配额耗尽后继续请求只会得到 403，不如本地直接拒绝（宁可失败，不要失控）
"""

import logging
import time
from collections.abc import Mapping
from dataclasses import dataclass

logger = logging.getLogger(__name__)

LOW_REMAINING_THRESHOLD = 100


class RateLimitExceededError(RuntimeError):
    """配额耗尽且尚未到重置时间时抛出。"""

    pass


def _parse_int_header(headers: Mapping[str, str], name: str) -> int | None:
    raw = headers.get(name)
    if raw is None or raw == "":
        return None
    try:
        return int(raw)
    except ValueError:
        logger.warning(f"Ignoring non-integer rate-limit header {name}={raw!r}")
        return None


@dataclass
class RateLimitState:
    """最近一次响应观察到的剩余额度与重置时间（epoch 秒）。"""

    remaining: int | None = None
    reset_at: int | None = None

    def update_from_headers(self, headers: Mapping[str, str]) -> None:
        remaining = _parse_int_header(headers, "x-ratelimit-remaining")
        reset_at = _parse_int_header(headers, "x-ratelimit-reset")
        if remaining is not None:
            self.remaining = remaining
        if reset_at is not None:
            self.reset_at = reset_at

        if self.remaining is not None and self.remaining < LOW_REMAINING_THRESHOLD:
            logger.warning(
                f"GitHub API rate limit running low: remaining={self.remaining}, reset_at={self.reset_at}"
            )

    def is_rate_limited(self) -> bool:
        return self.remaining is not None and self.remaining <= 0

    def seconds_until_reset(self, now: float | None = None) -> int | None:
        if self.reset_at is None:
            return None
        current = int(now if now is not None else time.time())
        return max(0, self.reset_at - current)

    def check(self, identity: str, now: float | None = None) -> None:
        """
        请求前检查。

        - identity: 本次请求的标识（例如 API path），只用于错误信息
        - 已耗尽但重置时间已过：放行（让下一次响应刷新状态）
        """
        if not self.is_rate_limited():
            return
        wait = self.seconds_until_reset(now=now)
        if wait is None or wait > 0:
            raise RateLimitExceededError(f"GitHub rate limit exhausted for {identity}; resets in {wait}s")
