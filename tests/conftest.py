from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field

import pytest

from app.github.client import GitHubNotFoundError
from app.github.schemas import GitHubComment
from app.github.schemas import GitHubFileContent
from app.github.schemas import GitHubPullRequest
from app.github.schemas import GitHubPullRequestFile
from app.github.signature import compute_github_signature
from app.infra.metrics import Metrics
from app.llm.base import ModelOptions

WEBHOOK_SECRET = "test-webhook-secret"


@dataclass
class FakeProvider:
    """可编排的 provider：固定返回 content，或固定抛 error。"""

    provider_name: str
    content: str = "looks good"
    error: Exception | None = None
    model_id: str | None = None
    calls: list[tuple[str, ModelOptions | None]] = field(default_factory=list)

    @property
    def name(self) -> str:
        return self.provider_name

    @property
    def default_model_id(self) -> str | None:
        return self.model_id

    def is_available(self) -> bool:
        return True

    def format_messages(self, messages):
        return [{"role": m.role, "content": m.content} for m in messages]

    async def invoke(self, prompt: str, options: ModelOptions | None = None) -> str:
        self.calls.append((prompt, options))
        if self.error is not None:
            raise self.error
        return self.content


@dataclass
class FakeGitHub:
    """内存版 GitHub client：记录每一次调用。"""

    files: list[GitHubPullRequestFile] = field(default_factory=list)
    policy_yaml: str | None = None
    pr_title: str = "Add widgets"
    pr_body: str | None = "Implements widgets"
    head_sha: str = "abc123"
    calls: list[str] = field(default_factory=list)
    comments: list[GitHubComment] = field(default_factory=list)
    next_comment_id: int = 1001

    async def get_pull_request_details(self, owner: str, repo: str, pull_number: int) -> GitHubPullRequest:
        self.calls.append(f"details {owner}/{repo}#{pull_number}")
        return GitHubPullRequest.model_validate(
            {"number": pull_number, "title": self.pr_title, "body": self.pr_body, "head": {"sha": self.head_sha}}
        )

    async def list_pull_request_files(self, owner: str, repo: str, pull_number: int) -> list[GitHubPullRequestFile]:
        self.calls.append(f"files {owner}/{repo}#{pull_number}")
        return list(self.files)

    async def get_file_content(self, owner: str, repo: str, path: str, ref: str) -> GitHubFileContent:
        self.calls.append(f"content {owner}/{repo}:{path}@{ref}")
        if self.policy_yaml is None:
            raise GitHubNotFoundError(404, f"{path} not found")
        return GitHubFileContent(path=path, decoded_content=self.policy_yaml)

    async def create_comment(self, owner: str, repo: str, pull_number: int, body: str) -> GitHubComment:
        self.calls.append(f"comment {owner}/{repo}#{pull_number}")
        comment = GitHubComment(id=self.next_comment_id, body=body)
        self.next_comment_id += 1
        self.comments.append(comment)
        return comment


def make_pr_file(filename: str, patch: str | None = "@@ -1 +1 @@\n-a\n+b") -> GitHubPullRequestFile:
    return GitHubPullRequestFile(filename=filename, status="modified", patch=patch)


def sign(payload: dict[str, object], secret: str = WEBHOOK_SECRET) -> tuple[bytes, str]:
    body = json.dumps(payload).encode("utf-8")
    return body, compute_github_signature(body=body, secret=secret)


def pull_request_payload(action: str = "opened", number: int = 42) -> dict[str, object]:
    return {
        "action": action,
        "pull_request": {
            "number": number,
            "title": "Add widgets",
            "body": "Implements widgets",
            "head": {"sha": "abc123", "ref": "feature/widgets"},
        },
        "repository": {"name": "widgets", "full_name": "acme/widgets", "owner": {"login": "acme"}},
    }


def issue_comment_payload(body: str, action: str = "created", number: int = 42, on_pr: bool = True) -> dict[str, object]:
    issue: dict[str, object] = {"number": number}
    if on_pr:
        issue["pull_request"] = {"url": f"https://api.github.com/repos/acme/widgets/pulls/{number}"}
    return {
        "action": action,
        "issue": issue,
        "comment": {"id": 7, "body": body},
        "repository": {"name": "widgets", "owner": {"login": "acme"}},
    }


@pytest.fixture
def metrics() -> Metrics:
    return Metrics()


@pytest.fixture
def restore_root_logging():
    """`configure_logging` 会替换 root handlers；测试结束后还原。"""
    root = logging.getLogger()
    handlers = list(root.handlers)
    level = root.level
    yield
    for handler in list(root.handlers):
        root.removeHandler(handler)
        if handler not in handlers:
            handler.close()
    for handler in handlers:
        root.addHandler(handler)
    root.setLevel(level)
