"""
Review prompt 渲染（确定性模板，不依赖 LLM）。

结构：
1. 可选的 custom instructions
2. 一句指令：启用的关注点 + 启用的严重级别
3. PR 标题 / 描述
4. 每个被 include 的文件：diff 代码块；二进制或 patch 过长则一行占位
5. 自定义规则列表（如有）
6. 固定结尾：Summary / Key Findings / Recommendations

注意：这里不截断整体 prompt 长度，长度限制留给调用方/模型后端。
"""

from __future__ import annotations

import logging
import re

from app.review.file_filter import should_include_file
from app.review.models import PullRequestSnapshot
from app.review.models import ReviewPolicy

logger = logging.getLogger(__name__)

MAX_PATCH_CHARS = 10_000
OMITTED_FILE_PLACEHOLDER = "[Binary file or too large to include]"

_SEVERITY_LABELS: dict[str, str] = {"info": "informational"}


def enabled_focus_areas(policy: ReviewPolicy) -> list[str]:
    return [name.replace("_", " ") for name, enabled in policy.focus.model_dump().items() if enabled]


def enabled_severity_levels(policy: ReviewPolicy) -> list[str]:
    return [_SEVERITY_LABELS.get(name, name) for name, enabled in policy.severity.model_dump().items() if enabled]


def _fence_for(text: str) -> str:
    """代码块围栏要比内容里最长的连续反引号更长，否则 diff 会把代码块提前关掉。"""
    longest = max((len(run) for run in re.findall(r"`+", text)), default=0)
    return "`" * max(3, longest + 1)


def render_prompt(snapshot: PullRequestSnapshot, policy: ReviewPolicy) -> str:
    focus_areas = enabled_focus_areas(policy)
    severity_levels = enabled_severity_levels(policy)
    focus_text = ", ".join(focus_areas) or "general code quality"
    severity_text = ", ".join(severity_levels) or "all"

    parts: list[str] = []
    if policy.ai.custom_instructions:
        parts.append(f"{policy.ai.custom_instructions}\n\n")
    parts.append("Please review the following code changes in a pull request. ")
    parts.append(f"Focus on {focus_text}. ")
    parts.append(f"Include {severity_text} severity issues. ")
    parts.append("Provide feedback as a markdown report with sections for summary and detailed comments.\n\n")
    parts.append(f"PR Title: {snapshot.title or 'No title provided'}\n")
    parts.append(f"PR Description: {snapshot.body or 'No description provided'}\n\n")
    parts.append("Files changed:\n")

    included = 0
    for f in snapshot.files:
        if not should_include_file(f.filename, policy.files):
            continue
        included += 1
        if f.is_binary or (f.patch is not None and len(f.patch) > MAX_PATCH_CHARS):
            parts.append(f"{f.filename}: {OMITTED_FILE_PLACEHOLDER}\n")
            continue
        patch = f.patch or "No diff available"
        fence = _fence_for(patch)
        parts.append(f"{f.filename}:\n{fence}\n{patch}\n{fence}\n\n")

    if policy.custom_rules:
        parts.append("\nPlease also check for the following custom rules:\n")
        for rule in policy.custom_rules:
            parts.append(f"- {rule.name}: {rule.description} ({rule.severity} severity)\n")
        parts.append("\n")

    parts.append(
        "\nPlease organize your review with these sections:\n"
        "1. Summary - A brief overview of the changes and their purpose\n"
        f"2. Key Findings - Major issues or concerns, grouped by focus area ({focus_text})\n"
        "3. Recommendations - Specific suggestions for improvement\n\n"
        "Your review should be constructive, specific, and actionable."
    )

    prompt = "".join(parts)
    logger.info(
        f"Rendered review prompt: {len(prompt)} chars, files={included}/{len(snapshot.files)}, "
        f"focus={focus_areas}, severity={severity_levels}"
    )
    return prompt
