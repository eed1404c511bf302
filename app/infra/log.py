"""
日志配置 + 敏感信息脱敏。

约定：
- 各模块只用 `logging.getLogger(__name__)`，这里负责统一装配 handler
- 控制台输出人类可读格式；配置了 LOG_FILE 时额外写一份 JSON lines
- 任何要写进日志/评论/HTTP 响应的错误文本都先过 `redact_secrets`
"""

from __future__ import annotations

import json
import logging
import re
from datetime import datetime, timezone

_LEVELS: dict[str, int] = {
    "debug": logging.DEBUG,
    "info": logging.INFO,
    "warn": logging.WARNING,
    "warning": logging.WARNING,
    "error": logging.ERROR,
}

_SECRET_PATTERNS: tuple[tuple[re.Pattern[str], str], ...] = (
    (re.compile(r"sk-ant-[a-zA-Z0-9_-]+"), "[REDACTED_KEY]"),
    (re.compile(r"sk-[a-zA-Z0-9_-]{20,}"), "[REDACTED_KEY]"),
    (re.compile(r"gh[pousr]_[A-Za-z0-9]{20,}"), "[REDACTED_TOKEN]"),
    (re.compile(r"github_pat_[A-Za-z0-9_]{20,}"), "[REDACTED_TOKEN]"),
    (re.compile(r"AKIA[0-9A-Z]{16}"), "[REDACTED_KEY]"),
    (re.compile(r"sha256=[0-9a-fA-F]{16,}"), "sha256=[REDACTED]"),
    (re.compile(r"Bearer\s+\S+"), "Bearer [REDACTED]"),
    (re.compile(r"(?i)authorization:\s*\S+"), "Authorization: [REDACTED]"),
    (re.compile(r"(?i)x-api-key:\s*\S+"), "x-api-key: [REDACTED]"),
)


def redact_secrets(text: str) -> str:
    """把常见的 API key / token / 签名替换成占位符。"""
    if not text:
        return text
    redacted = text
    for pattern, replacement in _SECRET_PATTERNS:
        redacted = pattern.sub(replacement, redacted)
    return redacted


class RedactingFormatter(logging.Formatter):
    """控制台格式；整行（含 traceback 与链式异常）输出前统一脱敏。"""

    def format(self, record: logging.LogRecord) -> str:
        return redact_secrets(super().format(record))


class JsonLineFormatter(logging.Formatter):
    """一条日志一行 JSON（便于日志平台采集）。"""

    def format(self, record: logging.LogRecord) -> str:
        payload: dict[str, object] = {
            "timestamp": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
            "level": record.levelname.lower(),
            "logger": record.name,
            "message": redact_secrets(record.getMessage()),
        }
        if record.exc_info:
            payload["exc_info"] = redact_secrets(self.formatException(record.exc_info))
        return json.dumps(payload, ensure_ascii=False)


def parse_log_level(level: str) -> int:
    normalized = level.strip().lower()
    if normalized not in _LEVELS:
        raise ValueError(f"Unsupported log level: {level}")
    return _LEVELS[normalized]


def configure_logging(level: str, file: str | None = None) -> None:
    """
    装配 root logger。

    - level: debug/info/warn/error（兼容 warning）
    - file: 可选，JSON lines 输出路径
    """
    console = logging.StreamHandler()
    console.setFormatter(RedactingFormatter("%(asctime)s %(levelname)s %(name)s: %(message)s"))
    handlers: list[logging.Handler] = [console]
    if file:
        file_handler = logging.FileHandler(file, encoding="utf-8")
        file_handler.setFormatter(JsonLineFormatter())
        handlers.append(file_handler)
    logging.basicConfig(level=parse_log_level(level), handlers=handlers, force=True)
