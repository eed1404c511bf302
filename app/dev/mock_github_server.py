"""
本地 Mock GitHub API server（只覆盖最小闭环用到的接口）。

用途：
- 在没有真实 GitHub 的情况下，本地跑通：
  Webhook -> get PR files -> (policy 404 -> defaults) -> post PR comment
- GITHUB_API_BASE_URL 指到这里即可

启动：
  python -m app.dev.mock_github_server
"""

from __future__ import annotations

import time

import uvicorn
from fastapi import FastAPI
from fastapi import HTTPException
from pydantic import BaseModel

HEAD_SHA = "1111111111111111111111111111111111111111"


class CommentRequest(BaseModel):
    body: str


def _default_files_response() -> list[dict[str, object]]:
    return [
        {
            "filename": "src/example.py",
            "status": "modified",
            "additions": 4,
            "deletions": 1,
            "patch": (
                "@@ -1,3 +1,6 @@\n"
                " def add(a: int, b: int) -> int:\n"
                "-    return a + b\n"
                "+    # TODO: handle None inputs\n"
                "+    return a + b\n"
                "+\n"
                "+def sub(a: int, b: int) -> int:\n"
                "+    return a - b\n"
            ),
        },
        {
            "filename": "assets/logo.png",
            "status": "added",
            "additions": 0,
            "deletions": 0,
        },
    ]


app = FastAPI(title="Mock GitHub API", version="0.1.0")

_comments: list[dict[str, object]] = []


@app.get("/repos/{owner}/{repo}/pulls/{pull_number}")
async def get_pull_request(owner: str, repo: str, pull_number: int) -> dict[str, object]:
    return {
        "number": pull_number,
        "title": f"Mock PR for {owner}/{repo}",
        "body": "Adds a sub() helper.",
        "head": {"sha": HEAD_SHA, "ref": "feature/sub"},
    }


@app.get("/repos/{owner}/{repo}/pulls/{pull_number}/files")
async def list_pull_request_files(owner: str, repo: str, pull_number: int, page: int = 1) -> list[dict[str, object]]:
    _ = (owner, repo, pull_number)
    return _default_files_response() if page == 1 else []


@app.get("/repos/{owner}/{repo}/contents/{path:path}")
async def get_contents(owner: str, repo: str, path: str) -> dict[str, object]:
    raise HTTPException(status_code=404, detail=f"{path} not found in {owner}/{repo}")


@app.post("/repos/{owner}/{repo}/issues/{issue_number}/comments", status_code=201)
async def create_comment(owner: str, repo: str, issue_number: int, req: CommentRequest) -> dict[str, object]:
    comment_id = len(_comments) + 1
    comment = {
        "id": comment_id,
        "body": req.body,
        "repo": f"{owner}/{repo}",
        "issue_number": issue_number,
        "created_at": int(time.time()),
    }
    _comments.append(comment)
    return {"id": comment_id, "body": req.body}


@app.patch("/repos/{owner}/{repo}/issues/comments/{comment_id}")
async def update_comment(owner: str, repo: str, comment_id: int, req: CommentRequest) -> dict[str, object]:
    _ = (owner, repo)
    for comment in _comments:
        if comment["id"] == comment_id:
            comment["body"] = req.body
            return {"id": comment_id, "body": req.body}
    raise HTTPException(status_code=404, detail="Comment not found")


@app.get("/__debug__/comments")
async def debug_comments() -> dict[str, object]:
    return {"count": len(_comments), "comments": _comments}


def main() -> None:
    uvicorn.run(app, host="127.0.0.1", port=9002)


if __name__ == "__main__":
    main()
