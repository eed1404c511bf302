from __future__ import annotations

"""
自定义规则扫描（正则，确定性）。

特点：
- 每条规则对整段内容做全局匹配，每个命中产出一条 `RuleViolation`
- 行号 = 命中位置之前的换行数 + 1
- 正则非法的规则跳过并告警（不影响其它规则，也不中断 review）
"""

import logging
import re

from app.review.file_filter import should_include_file
from app.review.models import CustomRule
from app.review.models import FileFilters
from app.review.models import PullRequestSnapshot
from app.review.models import RuleViolation

logger = logging.getLogger(__name__)


def scan_custom_rules(path: str, content: str, rules: list[CustomRule]) -> list[RuleViolation]:
    violations: list[RuleViolation] = []
    for rule in rules:
        try:
            regex = re.compile(rule.pattern)
        except re.error as exc:
            logger.warning(f"Invalid regex pattern in custom rule: {rule.name} ({exc})")
            continue
        for match in regex.finditer(content):
            violations.append(
                RuleViolation(
                    rule=rule.name,
                    description=rule.description,
                    severity=rule.severity,
                    path=path,
                    line=content.count("\n", 0, match.start()) + 1,
                    matched_text=match.group(0),
                )
            )
    return violations


def scan_snapshot(
    snapshot: PullRequestSnapshot,
    rules: list[CustomRule],
    filters: FileFilters | None = None,
) -> list[RuleViolation]:
    """对每个有 patch 且未被过滤掉的文件跑一遍规则（行号相对于 patch 文本）。"""
    if not rules:
        return []
    violations: list[RuleViolation] = []
    for f in snapshot.files:
        if f.is_binary or not f.patch:
            continue
        if filters is not None and not should_include_file(f.filename, filters):
            continue
        violations.extend(scan_custom_rules(path=f.filename, content=f.patch, rules=rules))
    return violations
