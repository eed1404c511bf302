from __future__ import annotations

"""
Synthesis（评论正文拼装）。

注意：
- 这里是**确定性输出**（不依赖 LLM），便于稳定回写 GitHub
- 失败时也输出一条同样格式的评论，让 PR 作者知道 review 没跑成
"""

REVIEW_HEADER = "## Automated Code Review"
FAILURE_MESSAGE = (
    "I encountered an error while trying to review this pull request. "
    "Please try again later or contact the administrator."
)


def format_review_comment(
    content: str,
    provider_name: str | None,
    model_id: str | None,
    used_fallback: bool = False,
) -> str:
    """
    模型输出 + 页脚（标注 provider/model，便于追溯）。

    - used_fallback：主 provider 失败、由 fallback provider 生成时在页脚注明
    """
    provider = provider_name or "AI"
    if used_fallback:
        provider = f"{provider} (fallback)"
    model = model_id or "unknown model"
    lines: list[str] = [
        REVIEW_HEADER,
        "",
        content.strip(),
        "",
        "---",
        f"*Review generated by AI-Powered PR Review using {provider} ({model})*",
        "",
    ]
    return "\n".join(lines)


def format_failure_comment(error_message: str) -> str:
    lines: list[str] = [
        REVIEW_HEADER,
        "",
        FAILURE_MESSAGE,
        "",
        f"Error: {error_message}",
        "",
        "---",
        "*AI-Powered PR Review*",
        "",
    ]
    return "\n".join(lines)
