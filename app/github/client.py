"""
GitHub API 客户端（外部系统连接器）。

约定：
- 这里只做 HTTP 调用 + 错误处理 + schema 校验
- 出错直接抛错（不要吞），便于定位与告警；404 单独抛 `GitHubNotFoundError`
- 每个响应都刷新限流状态；额度耗尽时请求前直接失败
"""

from __future__ import annotations

import base64
import binascii
import logging

import httpx

from app.github.schemas import GitHubComment
from app.github.schemas import GitHubFileContent
from app.github.schemas import GitHubPullRequest
from app.github.schemas import GitHubPullRequestFile
from app.infra.metrics import Metrics
from app.infra.rate_limit import RateLimitState

logger = logging.getLogger(__name__)


class GitHubAPIError(RuntimeError):
    def __init__(self, status_code: int, message: str) -> None:
        super().__init__(message)
        self.status_code = status_code


class GitHubNotFoundError(GitHubAPIError):
    pass


class GitHubClient:
    """最小 GitHub REST client（PR 详情/文件、文件内容、issue 评论）。"""

    def __init__(
        self,
        api_base_url: str,
        token: str,
        http_client: httpx.AsyncClient,
        metrics: Metrics | None = None,
        rate_limit: RateLimitState | None = None,
    ) -> None:
        self._api_base_url = api_base_url.rstrip("/")
        self._token = token
        self._http_client = http_client
        self._metrics = metrics
        self.rate_limit = rate_limit or RateLimitState()

    def _headers(self) -> dict[str, str]:
        return {
            "Authorization": f"Bearer {self._token}",
            "Accept": "application/vnd.github+json",
            "X-GitHub-Api-Version": "2022-11-28",
        }

    async def _request(self, method: str, path: str, **kwargs: object) -> httpx.Response:
        self.rate_limit.check(identity=f"{method} {path}")
        url = f"{self._api_base_url}{path}"
        response = await self._http_client.request(method, url, headers=self._headers(), **kwargs)
        self.rate_limit.update_from_headers(response.headers)
        if response.status_code == 404:
            raise GitHubNotFoundError(404, f"GitHub API 404 for {method} {path}")
        if response.status_code >= 400:
            raise GitHubAPIError(response.status_code, f"GitHub API error {response.status_code}: {response.text}")
        return response

    async def get_pull_request_details(self, owner: str, repo: str, pull_number: int) -> GitHubPullRequest:
        logger.info(f"Fetching PR details: {owner}/{repo}#{pull_number}")
        response = await self._request("GET", f"/repos/{owner}/{repo}/pulls/{pull_number}")
        return GitHubPullRequest.model_validate(response.json())

    async def list_pull_request_files(self, owner: str, repo: str, pull_number: int) -> list[GitHubPullRequestFile]:
        """
        拉取 PR 的变更文件列表（包含每个文件的 patch diff）。

        注意：GitHub API 有分页；这里会拉取全部文件。
        """
        logger.info(f"Fetching PR files: {owner}/{repo}#{pull_number}")
        per_page = 100
        page = 1
        all_items: list[GitHubPullRequestFile] = []
        while True:
            response = await self._request(
                "GET",
                f"/repos/{owner}/{repo}/pulls/{pull_number}/files",
                params={"per_page": per_page, "page": page},
            )
            data = response.json()
            if not isinstance(data, list):
                raise GitHubAPIError(response.status_code, f"Unexpected GitHub response shape for PR files: {data}")
            items = [GitHubPullRequestFile.model_validate(x) for x in data]
            all_items.extend(items)
            if len(items) < per_page:
                break
            page += 1
        return all_items

    async def get_file_content(self, owner: str, repo: str, path: str, ref: str) -> GitHubFileContent:
        """读取仓库内单个文件（base64 解码为文本）。目录或子模块会抛 `GitHubAPIError`。"""
        logger.info(f"Fetching file content: {owner}/{repo}:{path}@{ref}")
        response = await self._request("GET", f"/repos/{owner}/{repo}/contents/{path}", params={"ref": ref})
        data = response.json()
        if not isinstance(data, dict) or not isinstance(data.get("content"), str):
            raise GitHubAPIError(response.status_code, f"Content not found in response for {path}")
        try:
            decoded = base64.b64decode(data["content"]).decode("utf-8")
        except (binascii.Error, UnicodeDecodeError) as exc:
            raise GitHubAPIError(response.status_code, f"Cannot decode content of {path}: {exc}") from exc
        return GitHubFileContent(path=str(data.get("path", path)), sha=data.get("sha"), decoded_content=decoded)

    async def create_comment(self, owner: str, repo: str, pull_number: int, body: str) -> GitHubComment:
        """在 PR 会话区发一条评论（PR 在 GitHub 里也是 issue）。"""
        logger.info(f"Creating PR comment: {owner}/{repo}#{pull_number}")
        response = await self._request(
            "POST",
            f"/repos/{owner}/{repo}/issues/{pull_number}/comments",
            json={"body": body},
        )
        if self._metrics is not None:
            self._metrics.record("comments_posted")
        return GitHubComment.model_validate(response.json())

    async def update_comment(self, owner: str, repo: str, comment_id: int, body: str) -> GitHubComment:
        logger.info(f"Updating comment: {owner}/{repo} comment={comment_id}")
        response = await self._request(
            "PATCH",
            f"/repos/{owner}/{repo}/issues/comments/{comment_id}",
            json={"body": body},
        )
        return GitHubComment.model_validate(response.json())

    def is_rate_limited(self) -> bool:
        return self.rate_limit.is_rate_limited()

    def seconds_until_reset(self) -> int | None:
        return self.rate_limit.seconds_until_reset()
