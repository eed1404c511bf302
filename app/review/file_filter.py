from __future__ import annotations

"""
include/exclude glob 过滤（非 AI，确定性）。

通配符语义：
- `**/`：零或多级目录（所以 `**/*.ts` 也匹配根目录下的 `a.ts`）
- `**`：任意字符（可跨 `/`）
- `*`：单段内任意字符（不跨 `/`）
- `?`：任意单个字符
- 其它字符按字面匹配（`.` 等会被转义）
"""

import functools
import re

from app.review.models import FileFilters


@functools.lru_cache(maxsize=256)
def glob_to_regex(pattern: str) -> re.Pattern[str]:
    parts: list[str] = []
    i = 0
    while i < len(pattern):
        if pattern.startswith("**/", i):
            parts.append("(?:.*/)?")
            i += 3
        elif pattern.startswith("**", i):
            parts.append(".*")
            i += 2
        elif pattern[i] == "*":
            parts.append("[^/]*")
            i += 1
        elif pattern[i] == "?":
            parts.append(".")
            i += 1
        else:
            parts.append(re.escape(pattern[i]))
            i += 1
    return re.compile("".join(parts))


def matches_pattern(path: str, pattern: str) -> bool:
    return glob_to_regex(pattern).fullmatch(path) is not None


def should_include_file(path: str, filters: FileFilters) -> bool:
    """至少命中一个 include，且不命中任何 exclude。"""
    if any(matches_pattern(path, p) for p in filters.exclude):
        return False
    return any(matches_pattern(path, p) for p in filters.include)
