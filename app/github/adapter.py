"""
GitHub -> Review domain adapter。

职责：
- 将 GitHub PR files/patch 转为平台无关的 `PullRequestSnapshot`
- patch 缺失（二进制 / diff 过大）的文件标记为 is_binary，由 prompt 渲染成占位行
- 纯重命名 / 仅权限变更的文件同样没有 patch，但不是二进制：保留为空 diff
"""

from __future__ import annotations

from app.github.schemas import GitHubPullRequestFile
from app.review.models import PullRequestFile
from app.review.models import PullRequestSnapshot

# 这些 status 下 GitHub 可能只改了元数据，本来就没有 patch
_METADATA_ONLY_STATUSES = frozenset({"renamed", "copied", "changed", "unchanged"})


def is_binary_file(f: GitHubPullRequestFile) -> bool:
    return f.patch is None and f.status not in _METADATA_ONLY_STATUSES


def build_pull_request_snapshot(
    number: int,
    title: str | None,
    body: str | None,
    files: list[GitHubPullRequestFile],
) -> PullRequestSnapshot:
    return PullRequestSnapshot(
        number=number,
        title=title,
        body=body,
        files=tuple(
            PullRequestFile(filename=f.filename, is_binary=is_binary_file(f), patch=f.patch)
            for f in files
        ),
    )
