"""
本地 Mock OpenAI-compatible LLM server。

用途：
- 在没有真实 LLM 网关的情况下，本地跑通闭环（OPENAI_BASE_URL 指到这里即可）
- 固定返回三段式 markdown review，文件列表从 prompt 里的 "Files changed:" 段落提取

启动：
  python -m app.dev.mock_openai_server
"""

from __future__ import annotations

import time
from collections.abc import Sequence

import uvicorn
from fastapi import FastAPI
from pydantic import BaseModel, Field

from app.llm.base import ChatMessage


class ChatCompletionRequest(BaseModel):
    model: str
    messages: list[ChatMessage] = Field(default_factory=list)
    max_tokens: int | None = None
    temperature: float | None = None


def _extract_changed_paths(prompt: str) -> list[str]:
    """
    从 review prompt 里提取文件 path 列表。

    形如：
      Files changed:
      src/a.py:
      ```
      ...
      ```
    """
    paths: list[str] = []
    in_files_section = False
    in_fence = False
    for line in prompt.splitlines():
        stripped = line.strip()
        if stripped == "Files changed:":
            in_files_section = True
            continue
        if not in_files_section:
            continue
        if stripped.startswith("```"):
            in_fence = not in_fence
            continue
        if in_fence or not stripped:
            continue
        if stripped.startswith("Please "):
            break
        path = stripped.split(":", 1)[0].strip()
        if path:
            paths.append(path)
    return paths


def _build_mock_review(messages: Sequence[ChatMessage]) -> str:
    user_texts = [m.content for m in messages if m.role == "user"]
    if not user_texts:
        raise ValueError("Mock server expects at least one user message")
    paths = _extract_changed_paths("\n".join(user_texts))
    first = paths[0] if paths else "the changed files"

    lines = [
        "### Summary",
        f"[MOCK] Reviewed {len(paths)} file(s).",
        "",
        "### Key Findings",
        f"- **code quality**: consider stricter input validation in `{first}`.",
        "",
        "### Recommendations",
        "- Add unit tests for the new code paths.",
    ]
    return "\n".join(lines)


app = FastAPI(title="Mock OpenAI-compatible LLM", version="0.1.0")


@app.post("/v1/chat/completions")
async def chat_completions(req: ChatCompletionRequest) -> dict[str, object]:
    content = _build_mock_review(messages=req.messages)
    return {
        "id": "chatcmpl-mock",
        "object": "chat.completion",
        "created": int(time.time()),
        "model": req.model,
        "choices": [
            {
                "index": 0,
                "message": {"role": "assistant", "content": content},
                "finish_reason": "stop",
            }
        ],
    }


def main() -> None:
    uvicorn.run(app, host="127.0.0.1", port=9001)


if __name__ == "__main__":
    main()
