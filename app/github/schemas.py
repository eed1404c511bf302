"""
GitHub Webhook / API response schemas（Pydantic）。

说明：
- 字段只覆盖当前闭环需要的子集（pull_request / issue_comment webhook + PR files + comments + contents）
- action 保持为 str：不支持的 action 要返回明确的 skip 原因，而不是校验失败
"""

from __future__ import annotations

from pydantic import BaseModel


class GitHubOwner(BaseModel):
    login: str


class GitHubRepository(BaseModel):
    name: str
    owner: GitHubOwner
    full_name: str | None = None


class GitHubPullRequestHead(BaseModel):
    sha: str
    ref: str | None = None


class GitHubPullRequest(BaseModel):
    """PR 对象（webhook 与 GET /pulls/{n} 共用）。"""

    number: int
    title: str | None = None
    body: str | None = None
    head: GitHubPullRequestHead


class GitHubPullRequestWebhookEvent(BaseModel):
    """
    GitHub `pull_request` webhook event（最小结构）。

    action: opened/reopened/synchronize 等
    """

    action: str
    pull_request: GitHubPullRequest
    repository: GitHubRepository


class GitHubIssue(BaseModel):
    """issue_comment 里的 issue；PR 上的评论会带 `pull_request` 链接对象。"""

    number: int
    pull_request: dict[str, object] | None = None


class GitHubIssueComment(BaseModel):
    id: int
    body: str = ""


class GitHubIssueCommentWebhookEvent(BaseModel):
    action: str
    issue: GitHubIssue
    comment: GitHubIssueComment
    repository: GitHubRepository


class GitHubPullRequestFile(BaseModel):
    """
    PR 文件列表 item（GET /pulls/{pull_number}/files）。

    patch 可能缺失（二进制 / diff 过大被截断）。
    """

    filename: str
    status: str
    patch: str | None = None
    additions: int = 0
    deletions: int = 0


class GitHubComment(BaseModel):
    id: int
    body: str = ""
    html_url: str | None = None


class GitHubFileContent(BaseModel):
    """GET /contents/{path} 的结果（已 base64 解码）。"""

    path: str
    sha: str | None = None
    decoded_content: str
