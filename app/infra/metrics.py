"""
进程内指标（供 /health 展示）。

说明：
- 单进程、重启即丢失；只是最小可观测性，不替代 Prometheus
- 通过构造函数显式注入到 dispatcher / orchestrator / GitHub client，不用全局单例
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone

from app.infra.log import redact_secrets

logger = logging.getLogger(__name__)

COUNTER_NAMES: tuple[str, ...] = (
    "webhooks_received",
    "webhooks_processed",
    "ai_calls_made",
    "ai_calls_succeeded",
    "ai_calls_failed",
    "comments_posted",
    "errors",
)


def _zero_counters() -> dict[str, int]:
    return {name: 0 for name in COUNTER_NAMES}


@dataclass
class Metrics:
    """计数器 + 最近一次错误。"""

    counters: dict[str, int] = field(default_factory=_zero_counters)
    last_error: str | None = None
    last_error_time: str | None = None

    def record(self, name: str, value: int = 1) -> None:
        if name not in self.counters:
            raise ValueError(f"Unknown metric: {name}")
        self.counters[name] += value
        logger.debug(f"Metric: {name} +{value}")

    def record_error(self, message: str) -> None:
        self.counters["errors"] += 1
        self.last_error = redact_secrets(message)
        self.last_error_time = datetime.now(timezone.utc).isoformat()

    def snapshot(self) -> dict[str, int | str | None]:
        data: dict[str, int | str | None] = dict(self.counters)
        data["last_error"] = self.last_error
        data["last_error_time"] = self.last_error_time
        return data
